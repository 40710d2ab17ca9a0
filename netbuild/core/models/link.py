from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Optional, Tuple

LinkKind = Literal["pipe", "valve", "pump"]


@dataclass(frozen=True, slots=True)
class Link:
    """
    Hydraulic link of the built network.

    Notes:
    - node_from/node_to reference Node.uid
    - vertices are the intermediate shape points only, endpoints excluded
    - length is filled for pipes ([ft] or [m], same unit group as the flow unit)
    """
    uid: str
    kind: LinkKind
    node_from: str
    node_to: str

    vertices: Tuple[Tuple[float, float], ...] = ()
    attributes: Dict[str, Any] = field(default_factory=dict)
    length: Optional[float] = None

    source_kind: Optional[str] = None
    source_index: Optional[int] = None
