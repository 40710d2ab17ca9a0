from __future__ import annotations

import logging
import math
from functools import lru_cache
from typing import Any, Dict, Iterable, Optional, Tuple

import numpy as np
from pyproj import CRS, Geod, Transformer
from pyproj.exceptions import CRSError, ProjError

from netbuild.core.build.config import ProjectionConfig
from netbuild.core.build.errors import InvalidProjection
from netbuild.core.models.feature import GeometryFeature
from netbuild.core.models.geometry import (
    Geometry,
    GeometryCollection,
    LineString,
    MultiLineString,
    MultiPoint,
    MultiPolygon,
    Point,
    Polygon,
    geometry_from_geojson,
    geometry_to_geojson,
    iter_coords,
)

logger = logging.getLogger(__name__)

WGS84 = "EPSG:4326"

_GEOD = Geod(ellps="WGS84")


@lru_cache(maxsize=64)
def _crs(identifier: str) -> CRS:
    try:
        return CRS.from_user_input(identifier)
    except CRSError as e:
        raise InvalidProjection(f"Cannot resolve CRS {identifier!r}: {e}", context={"crs": identifier}) from e


@lru_cache(maxsize=64)
def _transformer(source: str, target: str) -> Transformer:
    return Transformer.from_crs(_crs(source), _crs(target), always_xy=True)


def _key(crs: Any) -> str:
    if crs is None:
        raise InvalidProjection("CRS identifier is missing")
    if isinstance(crs, int):
        return f"EPSG:{crs}"
    text = str(crs).strip()
    if not text:
        raise InvalidProjection("CRS identifier is empty")
    return text


def resolve_crs(crs: Any) -> CRS:
    return _crs(_key(crs))


def is_geographic(crs: Any) -> bool:
    return bool(resolve_crs(crs).is_geographic)


def transform_point(source: Any, target: Any, xy: Tuple[float, float]) -> Tuple[float, float]:
    """
    Transform one (x, y) pair. Axis order is always (x/lon, y/lat).
    Raises InvalidProjection on an unknown CRS or a failed transform.
    """
    src, tgt = _key(source), _key(target)
    try:
        x, y = _transformer(src, tgt).transform(float(xy[0]), float(xy[1]), errcheck=True)
    except ProjError as e:
        raise InvalidProjection(
            f"Transform {src} -> {tgt} failed for {tuple(xy)!r}: {e}",
            context={"source": src, "target": tgt},
        ) from e
    if not (math.isfinite(x) and math.isfinite(y)):
        raise InvalidProjection(
            f"Transform {src} -> {tgt} produced a non-finite result for {tuple(xy)!r}",
            context={"source": src, "target": tgt},
        )
    return (float(x), float(y))


def transform_points(
    source: Any, target: Any, points: Iterable[Tuple[float, float]]
) -> Tuple[Tuple[float, float], ...]:
    return tuple(transform_point(source, target, p) for p in points)


def transform_geometry(geom: Geometry, source: Any, target: Any) -> Geometry:
    if isinstance(geom, Point):
        return Point(transform_point(source, target, geom.coordinates))
    if isinstance(geom, LineString):
        return LineString(transform_points(source, target, geom.coordinates))
    if isinstance(geom, MultiPoint):
        return MultiPoint(transform_points(source, target, geom.coordinates))
    if isinstance(geom, (Polygon, MultiLineString)):
        parts = tuple(transform_points(source, target, part) for part in geom.coordinates)
        return type(geom)(parts)
    if isinstance(geom, MultiPolygon):
        return MultiPolygon(tuple(
            tuple(transform_points(source, target, ring) for ring in poly) for poly in geom.coordinates
        ))
    if isinstance(geom, GeometryCollection):
        return GeometryCollection(tuple(transform_geometry(g, source, target) for g in geom.geometries))
    raise TypeError(f"Unhandled geometry variant: {type(geom).__name__}")


def transform_feature(feature: GeometryFeature, source: Any, target: Any) -> GeometryFeature:
    return GeometryFeature(
        geometry=transform_geometry(feature.geometry, source, target),
        properties=feature.properties,
        index=feature.index,
        part=feature.part,
    )


def transform_feature_collection(collection: Dict[str, Any], source: Any, target: Any) -> Dict[str, Any]:
    """
    GeoJSON in, GeoJSON out. Features without geometry are passed through.
    """
    out = dict(collection)
    features = []
    for f in collection.get("features") or []:
        g = f.get("geometry")
        if not g:
            features.append(f)
            continue
        new_geom = transform_geometry(geometry_from_geojson(g), source, target)
        features.append({**f, "geometry": geometry_to_geojson(new_geom)})
    out["features"] = features
    return out


def looks_like_latlng(geojson: Any) -> bool:
    """
    Heuristic: every coordinate of every feature falls in lon [-180, 180], lat [-90, 90].
    Accepts a FeatureCollection, a list of features, or GeometryFeature objects.
    """
    coords = list(_collect_coords(geojson))
    if not coords:
        return False
    arr = np.asarray(coords, dtype=float)
    lon, lat = arr[:, 0], arr[:, 1]
    return bool(
        np.all(np.isfinite(arr))
        and np.all((lon >= -180.0) & (lon <= 180.0))
        and np.all((lat >= -90.0) & (lat <= 90.0))
    )


def _collect_coords(obj: Any) -> Iterable[Tuple[float, float]]:
    if obj is None:
        return
    if isinstance(obj, GeometryFeature):
        yield from iter_coords(obj.geometry)
        return
    if isinstance(obj, list):
        for item in obj:
            yield from _collect_coords(item)
        return
    if isinstance(obj, dict):
        otype = obj.get("type")
        if otype == "FeatureCollection":
            yield from _collect_coords(obj.get("features") or [])
        elif otype == "Feature":
            if obj.get("geometry"):
                yield from iter_coords(geometry_from_geojson(obj["geometry"]))
        elif otype is not None:
            yield from iter_coords(geometry_from_geojson(obj))


def resolve_reprojection(projection: ProjectionConfig) -> Optional[Tuple[str, str]]:
    """
    Decide (source, target) for the build, or None when coordinates stay as they are.
    """
    if not projection.needs_reprojection:
        return None

    source = projection.original_projection
    if source is None and projection.data_is_latlng:
        source = WGS84
    if source is None:
        raise InvalidProjection(
            "Data needs reprojection but no source projection was given",
            context={"hint": "Select the projection the GIS data is stored in."},
        )
    target = projection.selected_projection
    if target is None:
        raise InvalidProjection("Data needs reprojection but no target projection was selected")

    # validate both up front
    resolve_crs(source)
    resolve_crs(target)

    if source == target:
        return None
    logger.info("Reprojecting input from %s to %s", source, target)
    return (source, target)


def working_crs(projection: ProjectionConfig) -> Optional[str]:
    """CRS the built network lives in, if known."""
    pair = resolve_reprojection(projection)
    if pair is not None:
        return pair[1]
    if projection.selected_projection:
        return projection.selected_projection
    if projection.original_projection:
        return projection.original_projection
    if projection.data_is_latlng:
        return WGS84
    return None


def polyline_length(coords: Iterable[Tuple[float, float]], *, geographic: bool = False) -> float:
    """
    Planar length in CRS units, or geodesic length in metres on WGS84 when geographic.
    """
    pts = np.asarray(list(coords), dtype=float)
    if len(pts) < 2:
        return 0.0
    if geographic:
        return float(_GEOD.line_length(pts[:, 0], pts[:, 1]))
    d = np.diff(pts, axis=0)
    return float(np.hypot(d[:, 0], d[:, 1]).sum())


FT_PER_M = 1.0 / 0.3048


def _metres_per_unit(crs: Any) -> Optional[float]:
    info = resolve_crs(crs).axis_info
    if not info:
        return None
    factor = info[0].unit_conversion_factor
    return float(factor) if factor else None


def model_length(coords: Iterable[Tuple[float, float]], crs: Optional[str], *, metric: bool) -> float:
    """
    Link length in the model's length unit (m for metric flow units, ft for US ones).
    Without a known CRS the planar length is taken as already being in model units.
    """
    if crs is None:
        return polyline_length(coords)
    if is_geographic(crs):
        metres = polyline_length(coords, geographic=True)
    else:
        factor = _metres_per_unit(crs)
        if factor is None:
            return polyline_length(coords)
        metres = polyline_length(coords) * factor
    return metres if metric else metres * FT_PER_M
