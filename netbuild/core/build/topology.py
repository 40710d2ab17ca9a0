from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from netbuild.core.build.crossings import check_line
from netbuild.core.build.errors import DegenerateGeometry, DuplicateElementId, ValidationIssue
from netbuild.core.build.items import DEVICE_KINDS, LINK_KIND, NODE_KIND, Coord, LineItem, PointItem
from netbuild.core.build.projection import model_length
from netbuild.core.build.spatial_index import GridIndex
from netbuild.core.models.link import Link
from netbuild.core.models.network import NetworkGraph
from netbuild.core.models.node import Node

logger = logging.getLogger(__name__)

NODE_PREFIX = {"nodes": "J", "tanks": "T", "reservoirs": "R", None: "J"}
LINK_PREFIX = {"pipes": "P", "valves": "V", "pumps": "PU"}

NODE_NAMESPACE_KINDS = ("nodes", "tanks", "reservoirs")
LINK_NAMESPACE_KINDS = ("pipes", "valves", "pumps")

# seeding order of point layers
POINT_ORDER = ("nodes", "tanks", "reservoirs", "valves", "pumps")
# endpoint resolution order of line layers
LINE_ORDER = ("pipes", "valves", "pumps")


class IdRegistry:
    """
    Hands out INP identifiers. Mapped ids are reserved before anything is minted,
    so minted ids (J1, P1, ...) never collide with ids coming from the data.
    """

    def __init__(self) -> None:
        self._used: Dict[str, Set[str]] = {"node": set(), "link": set()}
        self._counters: Dict[Tuple[str, str], int] = {}

    def is_used(self, namespace: str, uid: str) -> bool:
        return uid in self._used[namespace]

    def reserve(self, namespace: str, uid: str, *, element_kind: str, where: Any) -> None:
        if uid in self._used[namespace]:
            raise DuplicateElementId(
                f"Id {uid!r} is used by more than one {namespace} (feature {where})",
                element_kind=element_kind,
                context={"id": uid, "feature_index": where},
            )
        self._used[namespace].add(uid)

    def mint(self, namespace: str, prefix: str) -> str:
        key = (namespace, prefix)
        n = self._counters.get(key, 0)
        while True:
            n += 1
            uid = f"{prefix}{n}"
            if uid not in self._used[namespace]:
                break
        self._counters[key] = n
        self._used[namespace].add(uid)
        return uid

    def claim(self, namespace: str, preferred: str) -> str:
        """preferred if free, else preferred_2, preferred_3, ..."""
        uid = preferred
        k = 1
        while uid in self._used[namespace]:
            k += 1
            uid = f"{preferred}_{k}"
        self._used[namespace].add(uid)
        return uid


@dataclass
class _LinkDraft:
    uid: str
    kind: str
    coords: List[Coord]
    node_from: str
    node_to: str
    attributes: Dict[str, Any]
    source_kind: Optional[str]
    source_index: Optional[int]
    fraction: float = 1.0


@dataclass
class TopologyBuilder:
    """
    Turns point and line items into a node/link graph.

    Nodes live in an insertion-ordered arena (dict keyed by uid); links refer to
    nodes by uid only. Every step processes its input in a fixed order, so the
    same input and tolerance always produce the same ids and wiring.
    """
    tolerance: float
    allow_self_loops: bool = False
    crs: Optional[str] = None
    metric: bool = False

    registry: IdRegistry = field(default_factory=IdRegistry)
    nodes: Dict[str, Node] = field(default_factory=dict)
    drafts: List[_LinkDraft] = field(default_factory=list)
    issues: List[ValidationIssue] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.index = GridIndex(self.tolerance)
        self._base_ids: Dict[Tuple[str, int, Optional[int]], str] = {}
        self._devices: List[Tuple[str, str, PointItem]] = []   # (anchor uid, link uid, item)

    # -----------------------------
    # Ids
    # -----------------------------
    def reserve_ids(self, points: Sequence[PointItem], lines: Sequence[LineItem]) -> None:
        """Reserve every mapped Id once per source feature."""
        seen: Set[Tuple[str, int]] = set()
        records = [(p.element_kind, p.feature, p.attributes) for p in points]
        records += [(li.element_kind, li.feature, li.attributes) for li in lines]
        for kind, feature, attrs in records:
            if (kind, feature.index) in seen:
                continue
            seen.add((kind, feature.index))
            uid = attrs.get("Id")
            if uid is None:
                continue
            namespace = "node" if kind in NODE_NAMESPACE_KINDS else "link"
            self.registry.reserve(namespace, uid, element_kind=kind, where=feature.index)

    def _base_id(self, kind: str, feature, attrs, namespace: str, prefix: str) -> str:
        key = (kind, feature.index, feature.part)
        if key in self._base_ids:
            return self._base_ids[key]
        mapped = attrs.get("Id")
        if mapped is None:
            uid = self.registry.mint(namespace, prefix)
        elif not feature.part:
            uid = mapped   # reserved already
        else:
            uid = self.registry.claim(namespace, f"{mapped}_{feature.part + 1}")
        self._base_ids[key] = uid
        return uid

    # -----------------------------
    # Nodes
    # -----------------------------
    def _add_node(self, uid: str, kind: str, xy: Coord, attributes: Dict[str, Any],
                  source_kind: Optional[str], source_index: Optional[int]) -> Node:
        node = Node(
            uid=uid,
            kind=kind,  # type: ignore[arg-type]
            x=float(xy[0]),
            y=float(xy[1]),
            attributes=attributes,
            source_kind=source_kind,
            source_index=source_index,
        )
        self.nodes[uid] = node
        self.index.insert(uid, node.x, node.y)
        return node

    def seed_nodes(self, points: Sequence[PointItem]) -> None:
        """Explicit nodes from point layers, in POINT_ORDER then input order."""
        for kind in POINT_ORDER:
            for p in (pt for pt in points if pt.element_kind == kind):
                if kind in DEVICE_KINDS:
                    link_uid = self._base_id(kind, p.feature, p.attributes, "link", LINK_PREFIX[kind])
                    anchor = self.index.nearest(p.coord[0], p.coord[1])
                    if anchor is not None:
                        logger.debug("Device %s anchored on existing node %s", link_uid, anchor)
                    else:
                        anchor = self.registry.claim("node", f"{link_uid}-1")
                        self._add_node(anchor, "junction", p.coord, {}, kind, p.feature.index)
                    self._devices.append((anchor, link_uid, p))
                    continue
                uid = self._base_id(kind, p.feature, p.attributes, "node", NODE_PREFIX[kind])
                attrs = {k: v for k, v in p.attributes.values.items() if k != "Id"}
                self._add_node(uid, NODE_KIND[kind], p.coord, attrs, kind, p.feature.index)

    def _node_at(self, xy: Coord) -> str:
        hit = self.index.nearest(xy[0], xy[1])
        if hit is not None:
            return hit
        uid = self.registry.mint("node", NODE_PREFIX[None])
        self._add_node(uid, "junction", xy, {}, None, None)
        logger.debug("Synthesized junction %s at (%s, %s)", uid, xy[0], xy[1])
        return uid

    # -----------------------------
    # Links
    # -----------------------------
    def add_lines(self, lines: Sequence[LineItem]) -> None:
        """Bind line ends to nodes, synthesizing junctions where nothing is within tolerance."""
        for kind in LINE_ORDER:
            for li in (x for x in lines if x.element_kind == kind):
                check_line(li, self.tolerance)
                base = self._base_id(kind, li.feature, li.attributes, "link", LINK_PREFIX[kind])
                uid = base if li.piece == 1 else self.registry.claim("link", f"{base}_{li.piece}")

                n_from = self._node_at(li.coords[0])
                n_to = self._node_at(li.coords[-1])
                if n_from == n_to and not self.allow_self_loops:
                    raise DegenerateGeometry(
                        f"Line feature {li.label} starts and ends on the same node {n_from!r}",
                        element_kind=kind,
                        context={"feature_index": li.label, "node": n_from},
                    )

                coords = list(li.coords)
                coords[0] = self.nodes[n_from].coord
                coords[-1] = self.nodes[n_to].coord
                attrs = {k: v for k, v in li.attributes.values.items() if k != "Id"}
                self.drafts.append(_LinkDraft(
                    uid=uid,
                    kind=LINK_KIND[kind],
                    coords=coords,
                    node_from=n_from,
                    node_to=n_to,
                    attributes=attrs,
                    source_kind=kind,
                    source_index=li.feature.index,
                    fraction=li.fraction,
                ))

    def expand_devices(self) -> None:
        """
        Valves and pumps given as points become links.

        The anchor keeps its first incident link, a twin node at the same location
        takes the others, and the device runs anchor -> twin.
        """
        for anchor, link_uid, item in self._devices:
            incident = [d for d in self.drafts if anchor in (d.node_from, d.node_to)]
            if not incident:
                self.issues.append(ValidationIssue(
                    "warning",
                    "UnattachedDevice",
                    f"{item.element_kind[:-1].capitalize()} {link_uid} is not attached to any link; "
                    f"no {LINK_KIND[item.element_kind]} was written and node {anchor} is kept on its own.",
                    "Place the device on a pipe, a pipe end or a node joining two pipes.",
                    {"node": anchor, "feature_index": item.feature.index},
                ))
                continue

            xy = self.nodes[anchor].coord
            twin = self.registry.claim("node", f"{link_uid}-2")
            elevation = self.nodes[anchor].attributes.get("Elevation")
            self._add_node(twin, "junction", xy, {} if elevation is None else {"Elevation": elevation}, None, None)
            for d in incident[1:]:
                if d.node_from == anchor:
                    d.node_from = twin
                if d.node_to == anchor:
                    d.node_to = twin

            attrs = {k: v for k, v in item.attributes.values.items() if k != "Id"}
            self.drafts.append(_LinkDraft(
                uid=link_uid,
                kind=LINK_KIND[item.element_kind],
                coords=[xy, xy],
                node_from=anchor,
                node_to=twin,
                attributes=attrs,
                source_kind=item.element_kind,
                source_index=item.feature.index,
            ))
            logger.debug("Device %s placed between %s and %s", link_uid, anchor, twin)

    # -----------------------------
    # Assembly
    # -----------------------------
    def _length(self, d: _LinkDraft) -> Optional[float]:
        if d.kind != "pipe":
            return None
        mapped = d.attributes.get("Length")
        if mapped is not None:
            return float(mapped) * d.fraction
        return model_length(d.coords, self.crs, metric=self.metric)

    def assemble(self) -> NetworkGraph:
        links: Dict[str, Link] = {}
        for d in self.drafts:
            length = self._length(d)
            attrs = dict(d.attributes)
            if length is not None:
                attrs["Length"] = length
            links[d.uid] = Link(
                uid=d.uid,
                kind=d.kind,  # type: ignore[arg-type]
                node_from=d.node_from,
                node_to=d.node_to,
                vertices=tuple(tuple(c) for c in d.coords[1:-1]),
                attributes=attrs,
                length=length,
                source_kind=d.source_kind,
                source_index=d.source_index,
            )
        return NetworkGraph(nodes=dict(self.nodes), links=links, issues=list(self.issues), crs=self.crs)


def build_topology(
    points: Sequence[PointItem],
    lines: Sequence[LineItem],
    *,
    tolerance: float,
    allow_self_loops: bool = False,
    crs: Optional[str] = None,
    metric: bool = False,
) -> NetworkGraph:
    """
    Build the network graph from normalized, attribute-resolved items.

    lines are expected to have gone through crossing simplification already.
    """
    builder = TopologyBuilder(tolerance=tolerance, allow_self_loops=allow_self_loops, crs=crs, metric=metric)
    builder.reserve_ids(points, lines)
    builder.seed_nodes(points)
    builder.add_lines(lines)
    builder.expand_devices()
    graph = builder.assemble()
    logger.info("Built network: %d nodes, %d links", len(graph.nodes), len(graph.links))
    return graph
