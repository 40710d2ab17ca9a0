from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Tuple

from netbuild.core.build.errors import SerializationFailure
from netbuild.core.build.projection import transform_point
from netbuild.core.io.inp_writer import coordinate_lines

Coordinates = Dict[str, Tuple[float, float]]
Vertices = Dict[str, List[Tuple[float, float]]]

GEOMETRY_SECTIONS = ("[COORDINATES]", "[VERTICES]")


@dataclass(frozen=True)
class NetworkData:
    coordinates: Coordinates = field(default_factory=dict)   # node id -> (x, y)
    vertices: Vertices = field(default_factory=dict)         # link id -> [(x, y), ...]
    inp: str = ""
    name: str = ""


def extract_geometry_data(inp_content: str) -> Tuple[Coordinates, Vertices]:
    """
    Node coordinates and link vertices from INP text. Comment and blank lines are skipped.
    """
    coordinates: Coordinates = {}
    vertices: Vertices = {}
    section = None

    for number, line in enumerate(inp_content.split("\n"), start=1):
        trimmed = line.strip()
        if trimmed.startswith(";") or trimmed == "":
            continue
        if trimmed.startswith("["):
            section = trimmed
            continue

        parts = trimmed.split()
        if len(parts) < 3 or section not in GEOMETRY_SECTIONS:
            continue
        try:
            xy = (float(parts[1]), float(parts[2]))
        except ValueError as e:
            raise SerializationFailure(
                f"Non-numeric coordinate in {section} at line {number}: {trimmed!r}",
                context={"line": number, "section": section},
            ) from e
        if section == "[COORDINATES]":
            coordinates[parts[0]] = xy
        else:
            vertices.setdefault(parts[0], []).append(xy)

    return coordinates, vertices


def update_inp_with_reprojected_data(
    inp_content: str,
    coordinates: Coordinates,
    vertices: Vertices,
    decimal_precision: int = 4,
) -> str:
    """
    Replace [COORDINATES] and [VERTICES] of an existing INP document.

    Every other line is kept verbatim and in order; the old geometry sections and
    [END] are dropped, the new sections are appended, then [END].
    """
    kept: List[str] = []
    inside_geometry = False

    for line in inp_content.split("\n"):
        trimmed = line.strip()
        if trimmed == "[END]":
            inside_geometry = False
            continue
        if trimmed.startswith("["):
            inside_geometry = trimmed in GEOMETRY_SECTIONS
            if inside_geometry:
                continue
            kept.append(line)
            continue
        if inside_geometry:
            continue
        kept.append(line)

    kept += coordinate_lines(coordinates, vertices, decimal_precision)
    kept += ["", "[END]", ""]
    return "\n".join(kept)


def parse_inp_file(path: str | Path) -> NetworkData:
    p = Path(path)
    content = p.read_text(encoding="utf-8", errors="replace")
    coordinates, vertices = extract_geometry_data(content)
    return NetworkData(coordinates=coordinates, vertices=vertices, inp=content, name=p.name)


def convert_coordinates(data: NetworkData, source: Any, target: Any) -> NetworkData:
    coordinates = {uid: transform_point(source, target, xy) for uid, xy in data.coordinates.items()}
    vertices = {uid: [transform_point(source, target, xy) for xy in pts] for uid, pts in data.vertices.items()}
    return NetworkData(coordinates=coordinates, vertices=vertices, inp=data.inp, name=data.name)


def reproject_inp(inp_content: str, source: Any, target: Any, decimal_precision: int = 4) -> str:
    """Reproject the geometry of an existing INP, leaving every other section untouched."""
    coordinates, vertices = extract_geometry_data(inp_content)
    data = convert_coordinates(NetworkData(coordinates, vertices, inp_content), source, target)
    return update_inp_with_reprojected_data(inp_content, data.coordinates, data.vertices, decimal_precision)
