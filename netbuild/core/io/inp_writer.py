from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from netbuild.core.build.attributes import clean_id
from netbuild.core.build.config import ModelSettings
from netbuild.core.build.errors import SerializationFailure
from netbuild.core.build.schema import HEADLOSS_INP_CODE, get_element_schema
from netbuild.core.models.network import NetworkGraph

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "EPANET model built from GIS layers"


class _Formatter:
    def __init__(self, decimal_precision: int):
        self.p = int(decimal_precision)

    def num(self, v: Any) -> str:
        if v is None or v == "":
            return ""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return f"{float(v):.{self.p}f}"
        return str(v)


def _comment(attrs: Dict[str, Any]) -> str:
    c = attrs.get("Comment")
    if c is None or str(c).strip() == "":
        return ""
    return " ;" + " ".join(str(c).split())


def _row(cols: List[Tuple[str, int]], comment: str = "") -> str:
    return " " + " ".join(f"{text:<{width}}" for text, width in cols).rstrip() + comment


def _header(names: List[Tuple[str, int]]) -> str:
    return ";" + " ".join(f"{n:<{w}}" for n, w in names).rstrip()


def _default(kind: str, attr: str) -> Any:
    return get_element_schema(kind).default_values.get(attr)


def _word(value: Any, default: Any = "") -> str:
    """Single-token INP field (pattern ids, status, valve type)."""
    text = "" if value is None else str(value).strip()
    if not text:
        text = "" if default is None else str(default).strip()
    return clean_id(text) if text else ""


def network_geometry(network: NetworkGraph) -> Tuple[Dict[str, Tuple[float, float]], Dict[str, List[Tuple[float, float]]]]:
    """Node coordinates and link vertices, as read back by the coordinate extractor."""
    coordinates = {uid: n.coord for uid, n in network.nodes.items()}
    vertices = {uid: list(lk.vertices) for uid, lk in network.links.items() if lk.vertices}
    return coordinates, vertices


def coordinate_lines(
    coordinates: Dict[str, Tuple[float, float]],
    vertices: Dict[str, List[Tuple[float, float]]],
    decimal_precision: int = 4,
) -> List[str]:
    """[COORDINATES] and [VERTICES] blocks (each preceded by a blank line); empty blocks are skipped."""
    p = int(decimal_precision)
    out: List[str] = []
    if coordinates:
        out += ["", "[COORDINATES]", _header([("Node", 16), ("X-Coord", 16), ("Y-Coord", 16)])]
        for uid, (x, y) in coordinates.items():
            out.append(_row([(uid, 16), (f"{x:.{p}f}", 16), (f"{y:.{p}f}", 16)]))
    if vertices:
        out += ["", "[VERTICES]", _header([("Link", 16), ("X-Coord", 16), ("Y-Coord", 16)])]
        for uid, pts in vertices.items():
            for x, y in pts:
                out.append(_row([(uid, 16), (f"{x:.{p}f}", 16), (f"{y:.{p}f}", 16)]))
    return out


def write_inp(
    network: NetworkGraph,
    settings: ModelSettings,
    *,
    decimal_precision: int = 4,
    title: Optional[str] = None,
) -> str:
    """
    Render the graph as EPANET INP text.

    Section order: TITLE, OPTIONS, JUNCTIONS, RESERVOIRS, TANKS, PIPES, PUMPS,
    VALVES, COORDINATES, VERTICES, END. Ids are written as stored.
    """
    try:
        return _write_inp(network, settings, decimal_precision, title)
    except (KeyError, TypeError, ValueError) as e:
        raise SerializationFailure(f"Cannot render INP: {e}") from e


def _write_inp(network: NetworkGraph, settings: ModelSettings, decimal_precision: int, title: Optional[str]) -> str:
    f = _Formatter(decimal_precision)
    out: List[str] = []

    out += ["[TITLE]", " ".join((title or DEFAULT_TITLE).split())]

    out += ["", "[OPTIONS]"]
    out.append(_row([("Units", 20), (settings.flow_unit, 16)]))
    out.append(_row([("Headloss", 20), (HEADLOSS_INP_CODE[settings.headloss_formula], 16)]))

    # --- nodes ---
    out += ["", "[JUNCTIONS]", _header([("ID", 16), ("Elev", 12), ("Demand", 12), ("Pattern", 16)])]
    for n in network.nodes_of_kind("junction"):
        a = n.attributes
        demand = a.get("Demand", _default("nodes", "Demand"))
        out.append(_row(
            [(n.uid, 16), (f.num(a.get("Elevation", 0)), 12), (f.num(demand), 12), (_word(a.get("Pattern")), 16)],
            _comment(a),
        ))
    logger.info("Wrote [JUNCTIONS]")

    out += ["", "[RESERVOIRS]", _header([("ID", 16), ("Head", 12), ("Pattern", 16)])]
    for n in network.nodes_of_kind("reservoir"):
        a = n.attributes
        head = a.get("Head", _default("reservoirs", "Head"))
        out.append(_row([(n.uid, 16), (f.num(head), 12), (_word(a.get("Pattern")), 16)], _comment(a)))
    logger.info("Wrote [RESERVOIRS]")

    out += ["", "[TANKS]", _header([
        ("ID", 16), ("Elevation", 12), ("InitLevel", 12), ("MinLevel", 12),
        ("MaxLevel", 12), ("Diameter", 12), ("MinVol", 12), ("VolCurve", 12),
    ])]
    for n in network.nodes_of_kind("tank"):
        a = n.attributes
        vals = [a.get(k, _default("tanks", k)) for k in ("Elevation", "InitLevel", "MinLevel", "MaxLevel", "Diameter", "MinVolume")]
        out.append(_row([(n.uid, 16)] + [(f.num(v), 12) for v in vals] + [("", 12)], _comment(a)))
    logger.info("Wrote [TANKS]")

    # --- links ---
    out += ["", "[PIPES]", _header([
        ("ID", 16), ("Node1", 16), ("Node2", 16), ("Length", 12),
        ("Diameter", 12), ("Roughness", 12), ("MinorLoss", 12), ("Status", 8),
    ])]
    for lk in network.links_of_kind("pipe"):
        a = lk.attributes
        out.append(_row([
            (lk.uid, 16), (lk.node_from, 16), (lk.node_to, 16),
            (f.num(lk.length if lk.length is not None else a.get("Length")), 12),
            (f.num(a.get("Diameter", _default("pipes", "Diameter"))), 12),
            (f.num(a.get("Roughness")), 12),
            (f.num(a.get("MinorLoss", _default("pipes", "MinorLoss"))), 12),
            (_word(a.get("Status"), _default("pipes", "Status")), 8),
        ], _comment(a)))
    logger.info("Wrote [PIPES]")

    out += ["", "[PUMPS]", _header([("ID", 16), ("Node1", 16), ("Node2", 16), ("Parameters", 24)])]
    for lk in network.links_of_kind("pump"):
        a = lk.attributes
        params = a.get("Parameters") or _default("pumps", "Parameters")
        out.append(_row([(lk.uid, 16), (lk.node_from, 16), (lk.node_to, 16), (str(params), 24)], _comment(a)))
    logger.info("Wrote [PUMPS]")

    out += ["", "[VALVES]", _header([
        ("ID", 16), ("Node1", 16), ("Node2", 16), ("Diameter", 12),
        ("Type", 8), ("Setting", 12), ("MinorLoss", 12),
    ])]
    for lk in network.links_of_kind("valve"):
        a = lk.attributes
        out.append(_row([
            (lk.uid, 16), (lk.node_from, 16), (lk.node_to, 16),
            (f.num(a.get("Diameter", _default("valves", "Diameter"))), 12),
            (_word(a.get("Type"), _default("valves", "Type")).upper(), 8),
            (f.num(a.get("Setting", _default("valves", "Setting"))), 12),
            (f.num(a.get("MinorLoss", _default("valves", "MinorLoss"))), 12),
        ], _comment(a)))
    logger.info("Wrote [VALVES]")

    coordinates, vertices = network_geometry(network)
    out += coordinate_lines(coordinates, vertices, decimal_precision)

    out += ["", "[END]", ""]
    return "\n".join(out)
