from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

from .geometry import Geometry, InvalidGeometry, geometry_from_geojson


@dataclass(frozen=True, slots=True)
class GeometryFeature:
    """
    One input spatial record.

    Notes:
    - index: position of the source feature inside its layer
    - part: position inside the parent multi-part geometry (None for single-part sources)
    - properties is a read-only view; parts of one multi-part feature share it
    """
    geometry: Geometry
    properties: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    index: int = 0
    part: Optional[int] = None

    @property
    def label(self) -> str:
        return f"#{self.index}" if self.part is None else f"#{self.index}.{self.part}"


def feature_from_geojson(obj: Dict[str, Any], index: int) -> GeometryFeature:
    geom = obj.get("geometry")
    if geom is None:
        raise InvalidGeometry(f"Feature #{index} has no geometry")
    props = dict(obj.get("properties") or {})
    return GeometryFeature(
        geometry=geometry_from_geojson(geom),
        properties=MappingProxyType(props),
        index=index,
    )


def features_from_collection(collection: Dict[str, Any]) -> List[GeometryFeature]:
    """
    Reads a GeoJSON FeatureCollection (or a bare list of features).
    """
    if isinstance(collection, list):
        raw = collection
    else:
        raw = (collection or {}).get("features") or []
    return [feature_from_geojson(f, i) for i, f in enumerate(raw)]
