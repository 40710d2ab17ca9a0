from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional, Set

from .link import Link
from .node import Node

if TYPE_CHECKING:
    from netbuild.core.build.errors import ValidationIssue


@dataclass(frozen=True, slots=True)
class NetworkGraph:
    """
    Node/link graph produced by one build. Owned by the pipeline, discarded after serialization.
    """
    nodes: Dict[str, Node] = field(default_factory=dict)   # key: Node.uid
    links: Dict[str, Link] = field(default_factory=dict)   # key: Link.uid
    issues: List[ValidationIssue] = field(default_factory=list)

    crs: Optional[str] = None

    def nodes_of_kind(self, kind: str) -> List[Node]:
        return [n for n in self.nodes.values() if n.kind == kind]

    def links_of_kind(self, kind: str) -> List[Link]:
        return [lk for lk in self.links.values() if lk.kind == kind]

    def degrees(self) -> Dict[str, int]:
        deg = {uid: 0 for uid in self.nodes}
        for lk in self.links.values():
            for end in (lk.node_from, lk.node_to):
                if end in deg:
                    deg[end] += 1
        return deg

    def adjacency(self) -> Dict[str, Set[str]]:
        adj: Dict[str, Set[str]] = {uid: set() for uid in self.nodes}
        for lk in self.links.values():
            if lk.node_from in adj and lk.node_to in adj:
                adj[lk.node_from].add(lk.node_to)
                adj[lk.node_to].add(lk.node_from)
        return adj

    def remove_node(self, uid: str) -> None:
        """Drop a node together with every link touching it."""
        for luid in [k for k, lk in self.links.items() if uid in (lk.node_from, lk.node_to)]:
            del self.links[luid]
        del self.nodes[uid]
