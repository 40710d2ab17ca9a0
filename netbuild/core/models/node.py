from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Optional

NodeKind = Literal["junction", "tank", "reservoir"]


@dataclass(frozen=True, slots=True)
class Node:
    """
    Hydraulic node of the built network.

    Notes:
    - uid: INP identifier, unique across every node of the model
    - x, y: coordinate in the working CRS
    - source_kind/source_index: element layer and feature that produced the node
      (None for junctions synthesized while building the topology)
    """
    uid: str
    kind: NodeKind
    x: float
    y: float

    attributes: Dict[str, Any] = field(default_factory=dict)

    source_kind: Optional[str] = None
    source_index: Optional[int] = None

    @property
    def implicit(self) -> bool:
        return self.source_kind is None

    @property
    def coord(self) -> tuple[float, float]:
        return (self.x, self.y)
