from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List

from netbuild.core.build.errors import ValidationIssue
from netbuild.core.models.network import NetworkGraph

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConnectivityReport:
    degree: Dict[str, int]
    components: List[List[str]]                 # node uids, largest component first
    issues: List[ValidationIssue] = field(default_factory=list)

    @property
    def isolated_nodes(self) -> List[str]:
        return [uid for uid, d in self.degree.items() if d == 0]

    @property
    def is_connected(self) -> bool:
        return len(self.components) <= 1


def connected_components(network: NetworkGraph) -> List[List[str]]:
    """
    Components over the undirected link adjacency (iterative DFS).
    Sorted by size (desc), then by first node in insertion order.
    """
    adj = network.adjacency()
    order = {uid: i for i, uid in enumerate(network.nodes)}
    visited = set()
    comps: List[List[str]] = []
    for nid in adj:
        if nid in visited:
            continue
        comp = []
        stack = [nid]
        while stack:
            cur = stack.pop()
            if cur in visited:
                continue
            visited.add(cur)
            comp.append(cur)
            stack.extend(sorted(adj[cur] - visited, key=order.__getitem__))
        comps.append(sorted(comp, key=order.__getitem__))
    comps.sort(key=lambda c: (-len(c), order[c[0]]))
    return comps


def analyze_connectivity(network: NetworkGraph) -> ConnectivityReport:
    """
    Read-only pass: degrees, isolated nodes/links, disconnected components.
    Everything found is a warning; nothing here blocks serialization.
    """
    degree = network.degrees()
    comps = connected_components(network) if network.nodes else []
    issues: List[ValidationIssue] = []

    for uid, d in degree.items():
        if d == 0:
            node = network.nodes[uid]
            issues.append(ValidationIssue(
                "warning",
                "IsolatedNode",
                f"Node {uid} ({node.kind}) has no connected link.",
                "Connect it with a pipe or remove it from the source layer.",
                {"node": uid},
            ))

    for lk in network.links.values():
        if lk.node_from == lk.node_to:
            continue
        if degree.get(lk.node_from) == 1 and degree.get(lk.node_to) == 1:
            issues.append(ValidationIssue(
                "warning",
                "IsolatedLink",
                f"Link {lk.uid} ({lk.kind}) is not connected to any other link.",
                "Check snapping tolerance or the link's end coordinates.",
                {"link": lk.uid},
            ))

    if len(comps) > 1:
        issues.append(ValidationIssue(
            "warning",
            "DisconnectedNetwork",
            f"Network has {len(comps)} disconnected components.",
            "EPANET cannot solve a disconnected network; the INP is still written for manual repair.",
            {"components": comps},
        ))

    for it in issues:
        logger.warning("%s: %s", it.code, it.message)

    return ConnectivityReport(degree=degree, components=comps, issues=issues)
