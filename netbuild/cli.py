#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from netbuild.core.build.config import BuildConfig
from netbuild.core.build.errors import BuildError
from netbuild.core.io.inp_reader import reproject_inp
from netbuild.core.pipeline.runner import build_inp
from netbuild.core.postprocess.export import export_network_csv, export_network_excel

logger = logging.getLogger("netbuild")


def _load_config(path: Path) -> Dict[str, Any]:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise BuildError(f"{path} is not valid JSON: {e}") from e


def _cmd_build(args: argparse.Namespace) -> int:
    raw = _load_config(Path(args.config))
    if not isinstance(raw, dict):
        raw = {"assignedData": raw}

    options = dict(raw.get("options") or {})
    if args.tolerance is not None:
        options["snapTolerance"] = args.tolerance
    if args.precision is not None:
        options["decimalPrecision"] = args.precision
    if args.title is not None:
        options["title"] = args.title
    if args.base_inp is not None:
        options["baseInp"] = Path(args.base_inp).read_text(encoding="utf-8", errors="replace")
    raw["options"] = options

    config = BuildConfig.from_dict(raw)
    result = build_inp(config, on_progress=lambda task: logger.info("%s", task))

    out = Path(args.output)
    out.write_text(result.inp_file, encoding="utf-8")
    logger.info("INP written: %s (%d nodes, %d links, %d warning(s))",
                out, len(result.network.nodes), len(result.network.links), len(result.warnings))

    if args.report:
        report = Path(args.report)
        if report.suffix.lower() in (".xlsx", ".xlsm"):
            export_network_excel(result.network, report, config.settings)
        else:
            export_network_csv(result.network, report)
        logger.info("Report written: %s", report)
    return 0


def _cmd_reproject(args: argparse.Namespace) -> int:
    src = Path(args.input)
    text = src.read_text(encoding="utf-8", errors="replace")
    out_text = reproject_inp(text, args.source, args.target, args.precision)
    Path(args.output).write_text(out_text, encoding="utf-8")
    logger.info("Reprojected %s from %s to %s -> %s", src, args.source, args.target, args.output)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="netbuild", description="Build EPANET INP models from GIS layers")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    sub = parser.add_subparsers(dest="command", required=True)

    b = sub.add_parser("build", help="Build an INP file from a JSON build configuration")
    b.add_argument("config", help="JSON file with settings, assignedData, attributeMapping, projection")
    b.add_argument("-o", "--output", required=True, help="Output INP path")
    b.add_argument("--report", help="Write node/link/issue tables (.xlsx file or CSV directory)")
    b.add_argument("--tolerance", type=float, help="Snap tolerance in working CRS units")
    b.add_argument("--precision", type=int, help="Decimal places in the INP")
    b.add_argument("--title", help="[TITLE] text")
    b.add_argument("--base-inp", help="Existing INP whose geometry sections are replaced")
    b.set_defaults(func=_cmd_build)

    r = sub.add_parser("reproject", help="Reproject the coordinates of an existing INP file")
    r.add_argument("input", help="Input INP path")
    r.add_argument("--from", dest="source", required=True, help="Source CRS (e.g. EPSG:4326)")
    r.add_argument("--to", dest="target", required=True, help="Target CRS")
    r.add_argument("-o", "--output", required=True, help="Output INP path")
    r.add_argument("--precision", type=int, default=4)
    r.set_defaults(func=_cmd_reproject)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s: %(message)s")

    try:
        return args.func(args)
    except BuildError as e:
        logger.error("%s", e.describe())
        return 1
    except OSError as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
