from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import Dict, List, Sequence, Tuple

import numpy as np
from shapely import STRtree
from shapely.geometry import LineString as ShpLineString
from shapely.geometry import Point as ShpPoint
from shapely.geometry.base import BaseGeometry

from netbuild.core.build.errors import DegenerateGeometry, ValidationIssue
from netbuild.core.build.items import Coord, LineItem

logger = logging.getLogger(__name__)


def _dist(a: Coord, b: Coord) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])


def check_line(item: LineItem, tolerance: float) -> None:
    """
    Lines need two vertices and must not collapse to a point within tolerance.
    """
    if len(item.coords) < 2:
        raise DegenerateGeometry(
            f"Line feature {item.label} has {len(item.coords)} vertex/vertices; at least 2 are required",
            element_kind=item.element_kind,
            context={"feature_index": item.label},
        )
    first = item.coords[0]
    if all(_dist(first, c) <= tolerance for c in item.coords[1:]):
        raise DegenerateGeometry(
            f"Line feature {item.label} has zero length within tolerance {tolerance}",
            element_kind=item.element_kind,
            context={"feature_index": item.label},
        )


def _points_of(geom: BaseGeometry) -> List[Coord]:
    """Point locations of an intersection result; overlaps contribute their ends."""
    if geom.is_empty:
        return []
    gtype = geom.geom_type
    if gtype == "Point":
        return [(float(geom.x), float(geom.y))]
    if gtype == "LineString":
        cs = list(geom.coords)
        return [tuple(cs[0][:2]), tuple(cs[-1][:2])]
    if gtype in ("MultiPoint", "MultiLineString", "GeometryCollection"):
        out: List[Coord] = []
        for g in geom.geoms:
            out.extend(_points_of(g))
        return out
    # polygonal results cannot come from two lines
    return []


def _near_end(p: Coord, coords: Sequence[Coord], tol: float) -> Coord | None:
    for e in (coords[0], coords[-1]):
        if _dist(p, e) <= tol:
            return e
    return None


def _cut(coords: Sequence[Coord], splits: List[Tuple[float, Coord]], tol: float) -> List[List[Coord]]:
    """
    Cut a polyline at (distance-along, point) positions, sorted by distance.
    Split points become the shared end/start of consecutive pieces.
    """
    seg = np.hypot(*np.diff(np.asarray(coords, dtype=float), axis=0).T)
    cum = np.concatenate([[0.0], np.cumsum(seg)])

    pieces: List[List[Coord]] = []
    current: List[Coord] = [coords[0]]
    si = 0
    for idx in range(1, len(coords)):
        while si < len(splits) and splits[si][0] <= cum[idx]:
            p = splits[si][1]
            if len(current) > 1 and _dist(current[-1], p) <= tol:
                current[-1] = p
            else:
                current.append(p)
            pieces.append(current)
            current = [p]
            si += 1
        c = coords[idx]
        if _dist(current[-1], c) <= tol and idx < len(coords) - 1:
            continue
        if _dist(current[-1], c) <= tol and len(current) > 1:
            current[-1] = c
            continue
        current.append(c)
    pieces.append(current)
    return [pc for pc in pieces if len(pc) >= 2]


def simplify_crossings(
    items: Sequence[LineItem],
    anchors: Sequence[Coord],
    tolerance: float,
) -> Tuple[List[LineItem], List[ValidationIssue]]:
    """
    Split pipes wherever the network touches them away from their ends.

    - two pipes crossing (or overlapping) at a point that is not a shared end:
      both are split at the crossing
    - an anchor (explicit point feature) or another line's end within tolerance
      of a pipe's interior: the pipe is split at that location
    Valves and pumps drawn as lines are never split; crossings that would need
    it are reported as UnresolvedCrossing.
    """
    issues: List[ValidationIssue] = []
    for it in items:
        check_line(it, tolerance)
    if not items:
        return [], issues

    lines = [ShpLineString(it.coords) for it in items]
    tree = STRtree(lines)
    splits: Dict[int, List[Coord]] = {}

    def _unresolved(i: int, j: int | None, p: Coord) -> None:
        a = items[i]
        other = f" and {items[j].element_kind} {items[j].label}" if j is not None else ""
        issues.append(ValidationIssue(
            "warning",
            "UnresolvedCrossing",
            f"{a.element_kind} {a.label}{other} cross at ({p[0]:.4f}, {p[1]:.4f}) without a shared node.",
            "Valves and pumps drawn as lines are not split; add a node at the crossing.",
            {"point": p, "features": [a.label] + ([items[j].label] if j is not None else [])},
        ))

    # --- line x line ---
    left, right = tree.query(lines, predicate="intersects")
    for i, j in sorted({(int(a), int(b)) for a, b in zip(left, right) if a < b}):
        ci, cj = items[i].coords, items[j].coords
        for p in _points_of(lines[i].intersection(lines[j])):
            end_i = _near_end(p, ci, tolerance)
            end_j = _near_end(p, cj, tolerance)
            if end_i is not None and end_j is not None:
                continue  # shared end, endpoint snapping joins them
            if items[i].is_device or items[j].is_device:
                device_end = end_i if items[i].is_device else end_j
                if not (items[i].is_device and items[j].is_device) and device_end is not None:
                    continue  # device end on a pipe: the ends pass splits the pipe
                _unresolved(i, j, p)
                continue
            p = end_i or end_j or p
            for k, end in ((i, end_i), (j, end_j)):
                if end is None:
                    splits.setdefault(k, []).append(p)

    # --- anchors and line ends near a pipe interior ---
    ends: List[Coord] = []
    for it in items:
        ends.extend((it.coords[0], it.coords[-1]))
    for a in list(anchors) + ends:
        pt = ShpPoint(a)
        for k in sorted(int(x) for x in tree.query(pt, predicate="dwithin", distance=tolerance)):
            if _near_end(a, items[k].coords, tolerance) is not None:
                continue
            if items[k].is_device:
                continue
            splits.setdefault(k, []).append(a)

    out: List[LineItem] = []
    for k, it in enumerate(items):
        pts = splits.get(k)
        if not pts:
            out.append(it)
            continue
        line = lines[k]
        located = sorted((float(line.project(ShpPoint(p))), p) for p in pts)
        uniq: List[Tuple[float, Coord]] = []
        for d, p in located:
            if uniq and _dist(uniq[-1][1], p) <= tolerance:
                continue
            uniq.append((d, p))
        parts = _cut(it.coords, uniq, tolerance)
        total = float(line.length)
        logger.debug("Split %s %s into %d pieces", it.element_kind, it.label, len(parts))
        for n, pc in enumerate(parts, start=1):
            frac = float(ShpLineString(pc).length) / total if total > 0 else 1.0 / len(parts)
            out.append(replace(it, coords=tuple(pc), piece=n, pieces=len(parts), fraction=frac))
    return out, issues
