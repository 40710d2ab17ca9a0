from __future__ import annotations

import math
from typing import List

from netbuild.core.build.errors import NetworkValidationError, ValidationIssue
from netbuild.core.models.network import NetworkGraph

# EPANET limit on identifier length
MAX_ID_LENGTH = 31


def validate_network(network: NetworkGraph) -> List[ValidationIssue]:
    """
    Structural checks on a built graph.
    Returns a list of issues (errors and warnings). If errors exist, caller may raise.
    """
    issues: List[ValidationIssue] = []

    # --- Nodes ---
    if not network.nodes:
        issues.append(ValidationIssue(
            "error",
            "EmptyNetwork",
            "Network has zero nodes.",
            "Assign at least one point or line layer.",
        ))

    for uid, n in network.nodes.items():
        if not uid or not isinstance(uid, str):
            issues.append(ValidationIssue("error", "InvalidId", f"Node has invalid uid: {uid!r}"))
            continue
        if len(uid) > MAX_ID_LENGTH:
            issues.append(ValidationIssue(
                "warning", "LongId",
                f"Node id {uid!r} is longer than {MAX_ID_LENGTH} characters.",
                "EPANET truncates or rejects long ids.",
                {"node": uid},
            ))
        if not (math.isfinite(n.x) and math.isfinite(n.y)):
            issues.append(ValidationIssue("error", "InvalidCoordinate", f"Node(uid={uid}) has a non-finite coordinate."))

    # --- Links ---
    for uid, lk in network.links.items():
        if lk.node_from not in network.nodes:
            issues.append(ValidationIssue(
                "error", "DanglingLink",
                f"Link(uid={uid}) references unknown node_from uid={lk.node_from!r}.",
            ))
        if lk.node_to not in network.nodes:
            issues.append(ValidationIssue(
                "error", "DanglingLink",
                f"Link(uid={uid}) references unknown node_to uid={lk.node_to!r}.",
            ))
        if len(uid) > MAX_ID_LENGTH:
            issues.append(ValidationIssue(
                "warning", "LongId",
                f"Link id {uid!r} is longer than {MAX_ID_LENGTH} characters.",
                "EPANET truncates or rejects long ids.",
                {"link": uid},
            ))

        if lk.kind == "pipe":
            if lk.length is not None and lk.length <= 0:
                issues.append(ValidationIssue("warning", "NonPositiveLength", f"Pipe(uid={uid}) length <= 0: {lk.length}"))
            d = lk.attributes.get("Diameter")
            if d is not None and float(d) <= 0:
                issues.append(ValidationIssue("warning", "NonPositiveDiameter", f"Pipe(uid={uid}) diameter <= 0: {d}"))

    return issues


def raise_on_errors(issues: List[ValidationIssue]) -> None:
    errors = [i for i in issues if i.level == "error"]
    if errors:
        raise NetworkValidationError(errors)
