from __future__ import annotations

from typing import Iterable, Iterator, Sequence

from netbuild.core.build.errors import InvalidGeometryForElement
from netbuild.core.build.schema import get_element_schema
from netbuild.core.models.feature import GeometryFeature
from netbuild.core.models.geometry import (
    GeometryCollection,
    LineString,
    MultiLineString,
    MultiPoint,
    MultiPolygon,
    Point,
    Polygon,
    geometry_type,
)


def normalize(feature: GeometryFeature) -> Iterator[GeometryFeature]:
    """
    Explode multi-part geometries into single-part features.

    MultiPoint(N) -> N Point, MultiLineString(N) -> N LineString, each sharing the
    parent's properties. Single-part features are yielded unchanged.
    """
    geom = feature.geometry
    if isinstance(geom, MultiPoint):
        for k, c in enumerate(geom.coordinates):
            yield GeometryFeature(Point(c), feature.properties, feature.index, k)
    elif isinstance(geom, MultiLineString):
        for k, line in enumerate(geom.coordinates):
            yield GeometryFeature(LineString(line), feature.properties, feature.index, k)
    elif isinstance(geom, (Point, LineString, Polygon, MultiPolygon, GeometryCollection)):
        yield feature
    else:
        raise TypeError(f"Unhandled geometry variant: {type(geom).__name__}")


class NormalizedLayer:
    """
    Lazy, restartable view of a layer's single-part features.

    Order is source order, then part order. Iterating twice yields the same sequence.
    """

    def __init__(self, features: Sequence[GeometryFeature]):
        self._features = features

    def __iter__(self) -> Iterator[GeometryFeature]:
        for f in self._features:
            yield from normalize(f)

    def __len__(self) -> int:
        return sum(1 for _ in self)


def check_geometry_types(element_kind: str, features: Iterable[GeometryFeature]) -> None:
    """
    Raise InvalidGeometryForElement for the first feature whose geometry the element kind refuses.
    """
    schema = get_element_schema(element_kind)
    for f in features:
        gtype = geometry_type(f.geometry)
        if not schema.accepts(gtype):
            raise InvalidGeometryForElement(element_kind, gtype, f.label)
