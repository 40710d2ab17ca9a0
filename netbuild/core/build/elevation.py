from __future__ import annotations

import logging
from dataclasses import replace

from netbuild.core.build.schema import get_element_schema
from netbuild.core.models.network import NetworkGraph

logger = logging.getLogger(__name__)

# node kind -> element schema holding its elevation default
_ELEVATION_SCHEMA = {"junction": "nodes", "tank": "tanks"}


def assign_elevations(network: NetworkGraph) -> int:
    """
    Give every junction and tank without an Elevation the schema default.

    Junctions synthesized during topology building have no source feature at
    all, so they always land here. Reservoirs carry Head instead and are left alone.
    Returns the number of nodes updated.
    """
    count = 0
    for uid, node in list(network.nodes.items()):
        schema_key = _ELEVATION_SCHEMA.get(node.kind)
        if schema_key is None or node.attributes.get("Elevation") is not None:
            continue
        default = get_element_schema(schema_key).default_values.get("Elevation", 0)
        attrs = dict(node.attributes)
        attrs["Elevation"] = float(default)
        network.nodes[uid] = replace(node, attributes=attrs)
        count += 1
    logger.info("Assigned default elevation to %d node(s)", count)
    return count
