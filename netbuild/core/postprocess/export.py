# netbuild/core/postprocess/export.py
from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from netbuild.core.build.config import ModelSettings
from netbuild.core.build.errors import ValidationIssue
from netbuild.core.build.schema import get_attribute_unit
from netbuild.core.models.network import NetworkGraph

NODE_COLUMNS = ["uid", "kind", "x", "y", "Elevation", "Demand", "Head", "source_kind", "source_index", "implicit"]
LINK_COLUMNS = [
    "uid", "kind", "node_from", "node_to", "Length", "Diameter", "Roughness",
    "n_vertices", "source_kind", "source_index",
]
ISSUE_COLUMNS = ["level", "code", "message", "hint"]


# -------------------------
# Tables
# -------------------------

def nodes_table(network: NetworkGraph) -> pd.DataFrame:
    rows = []
    for n in network.nodes.values():
        a = n.attributes
        rows.append({
            "uid": n.uid,
            "kind": n.kind,
            "x": n.x,
            "y": n.y,
            "Elevation": a.get("Elevation"),
            "Demand": a.get("Demand"),
            "Head": a.get("Head"),
            "source_kind": n.source_kind,
            "source_index": n.source_index,
            "implicit": n.implicit,
        })
    return pd.DataFrame(rows, columns=NODE_COLUMNS)


def links_table(network: NetworkGraph) -> pd.DataFrame:
    rows = []
    for lk in network.links.values():
        a = lk.attributes
        rows.append({
            "uid": lk.uid,
            "kind": lk.kind,
            "node_from": lk.node_from,
            "node_to": lk.node_to,
            "Length": lk.length,
            "Diameter": a.get("Diameter"),
            "Roughness": a.get("Roughness"),
            "n_vertices": len(lk.vertices),
            "source_kind": lk.source_kind,
            "source_index": lk.source_index,
        })
    return pd.DataFrame(rows, columns=LINK_COLUMNS)


def issues_table(issues: List[ValidationIssue]) -> pd.DataFrame:
    return pd.DataFrame([{c: getattr(i, c) for c in ISSUE_COLUMNS} for i in issues], columns=ISSUE_COLUMNS)


def network_tables(network: NetworkGraph) -> Dict[str, pd.DataFrame]:
    return {
        "nodes": nodes_table(network),
        "links": links_table(network),
        "issues": issues_table(network.issues),
    }


# -------------------------
# Exports
# -------------------------

def export_network_csv(network: NetworkGraph, out_dir: str | Path) -> Dict[str, Path]:
    """
    Writes nodes.csv, links.csv and issues.csv into out_dir.
    """
    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)
    paths = {}
    for name, df in network_tables(network).items():
        p = out / f"{name}.csv"
        df.to_csv(p, index=False)
        paths[name] = p
    return paths


def export_network_excel(
    network: NetworkGraph,
    path_xlsx: str | Path,
    settings: Optional[ModelSettings] = None,
) -> None:
    """
    One sheet per table, 2 header rows:
      - row 1: variable
      - row 2: unit (from the flow unit's unit group)
    """
    from openpyxl import Workbook
    from openpyxl.styles import Alignment, Font
    from openpyxl.utils import get_column_letter

    settings = settings or ModelSettings()

    wb = Workbook()
    wb.remove(wb.active)

    header_font = Font(name="Verdana", bold=True)
    units_font = Font(name="Verdana", bold=False)
    center = Alignment(horizontal="center", vertical="center")

    for name, df in network_tables(network).items():
        ws = wb.create_sheet(title=name[:31])
        cols = list(df.columns)

        for j, c in enumerate(cols, start=1):
            cell = ws.cell(row=1, column=j, value=c)
            cell.font = header_font
            cell.alignment = center

        for j, c in enumerate(cols, start=1):
            unit = get_attribute_unit(c, settings.flow_unit)
            if c in ("x", "y"):
                unit = network.crs or ""
            cell = ws.cell(row=2, column=j, value=unit or "")
            cell.font = units_font
            cell.alignment = center

        for i, rec in enumerate(df.itertuples(index=False), start=3):
            for j, v in enumerate(rec, start=1):
                ws.cell(row=i, column=j, value=None if pd.isna(v) else v)

        ws.freeze_panes = "A3"

        for j, c in enumerate(cols, start=1):
            ws.column_dimensions[get_column_letter(j)].width = max(10, min(40, len(c) + 6))

    wb.save(path_xlsx)
