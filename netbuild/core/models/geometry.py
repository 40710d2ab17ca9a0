from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterator, Tuple, Union

Coord = Tuple[float, float]


@dataclass(frozen=True, slots=True)
class Point:
    coordinates: Coord


@dataclass(frozen=True, slots=True)
class LineString:
    coordinates: Tuple[Coord, ...]


@dataclass(frozen=True, slots=True)
class Polygon:
    coordinates: Tuple[Tuple[Coord, ...], ...]   # rings


@dataclass(frozen=True, slots=True)
class MultiPoint:
    coordinates: Tuple[Coord, ...]


@dataclass(frozen=True, slots=True)
class MultiLineString:
    coordinates: Tuple[Tuple[Coord, ...], ...]


@dataclass(frozen=True, slots=True)
class MultiPolygon:
    coordinates: Tuple[Tuple[Tuple[Coord, ...], ...], ...]


@dataclass(frozen=True, slots=True)
class GeometryCollection:
    geometries: Tuple["Geometry", ...]


Geometry = Union[
    Point,
    LineString,
    Polygon,
    MultiPoint,
    MultiLineString,
    MultiPolygon,
    GeometryCollection,
]


class InvalidGeometry(ValueError):
    """Raised when a GeoJSON geometry object cannot be read."""


def _coord(c: Any) -> Coord:
    try:
        return (float(c[0]), float(c[1]))
    except (TypeError, ValueError, IndexError) as e:
        raise InvalidGeometry(f"Invalid coordinate: {c!r}") from e


def _coords(seq: Any) -> Tuple[Coord, ...]:
    return tuple(_coord(c) for c in (seq or ()))


def geometry_type(geom: Geometry) -> str:
    return type(geom).__name__


def geometry_from_geojson(obj: Dict[str, Any]) -> Geometry:
    """
    Read a GeoJSON geometry dict into the tagged variant.
    Z/M ordinates are dropped; only x, y are kept.
    """
    if not isinstance(obj, dict):
        raise InvalidGeometry(f"Geometry must be an object, got {type(obj).__name__}")

    gtype = obj.get("type")
    if gtype == "GeometryCollection":
        return GeometryCollection(tuple(geometry_from_geojson(g) for g in obj.get("geometries") or ()))

    coords = obj.get("coordinates")
    if coords is None:
        raise InvalidGeometry(f"Geometry of type {gtype!r} has no coordinates")

    if gtype == "Point":
        return Point(_coord(coords))
    if gtype == "LineString":
        return LineString(_coords(coords))
    if gtype == "Polygon":
        return Polygon(tuple(_coords(r) for r in coords))
    if gtype == "MultiPoint":
        return MultiPoint(_coords(coords))
    if gtype == "MultiLineString":
        return MultiLineString(tuple(_coords(line) for line in coords))
    if gtype == "MultiPolygon":
        return MultiPolygon(tuple(tuple(_coords(r) for r in poly) for poly in coords))

    raise InvalidGeometry(f"Unsupported geometry type: {gtype!r}")


def geometry_to_geojson(geom: Geometry) -> Dict[str, Any]:
    if isinstance(geom, GeometryCollection):
        return {"type": "GeometryCollection", "geometries": [geometry_to_geojson(g) for g in geom.geometries]}
    if isinstance(geom, Point):
        coords: Any = list(geom.coordinates)
    elif isinstance(geom, (LineString, MultiPoint)):
        coords = [list(c) for c in geom.coordinates]
    elif isinstance(geom, (Polygon, MultiLineString)):
        coords = [[list(c) for c in part] for part in geom.coordinates]
    elif isinstance(geom, MultiPolygon):
        coords = [[[list(c) for c in ring] for ring in poly] for poly in geom.coordinates]
    else:
        raise TypeError(f"Unhandled geometry variant: {type(geom).__name__}")
    return {"type": geometry_type(geom), "coordinates": coords}


def iter_coords(geom: Geometry) -> Iterator[Coord]:
    """All (x, y) pairs of a geometry, in storage order."""
    if isinstance(geom, Point):
        yield geom.coordinates
    elif isinstance(geom, (LineString, MultiPoint)):
        yield from geom.coordinates
    elif isinstance(geom, (Polygon, MultiLineString)):
        for part in geom.coordinates:
            yield from part
    elif isinstance(geom, MultiPolygon):
        for poly in geom.coordinates:
            for ring in poly:
                yield from ring
    elif isinstance(geom, GeometryCollection):
        for g in geom.geometries:
            yield from iter_coords(g)
    else:
        raise TypeError(f"Unhandled geometry variant: {type(geom).__name__}")
