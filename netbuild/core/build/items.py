from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from netbuild.core.build.attributes import ResolvedAttributes
from netbuild.core.models.feature import GeometryFeature

Coord = Tuple[float, float]

# element kind -> link kind for line features
LINK_KIND = {"pipes": "pipe", "valves": "valve", "pumps": "pump"}

# element kind -> node kind for point features
NODE_KIND = {
    "nodes": "junction",
    "tanks": "tank",
    "reservoirs": "reservoir",
    "valves": "junction",
    "pumps": "junction",
}

DEVICE_KINDS = ("valves", "pumps")


@dataclass(frozen=True)
class PointItem:
    element_kind: str
    feature: GeometryFeature
    attributes: ResolvedAttributes

    @property
    def coord(self) -> Coord:
        return self.feature.geometry.coordinates  # type: ignore[union-attr]


@dataclass(frozen=True)
class LineItem:
    """
    One line to become a link. piece/pieces/fraction describe the result of
    crossing simplification (fraction = share of the source line's length).
    """
    element_kind: str
    feature: GeometryFeature
    attributes: ResolvedAttributes
    coords: Tuple[Coord, ...]
    piece: int = 1
    pieces: int = 1
    fraction: float = 1.0

    @property
    def is_device(self) -> bool:
        return self.element_kind in DEVICE_KINDS

    @property
    def label(self) -> str:
        return self.feature.label
