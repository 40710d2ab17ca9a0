"""
Shared fixtures for the netbuild test suite.

GeoJSON builders plus a couple of ready-made build configurations.
"""

import pytest


# ============================================================================
# GeoJSON builders
# ============================================================================

def _feature(gtype, coords, **props):
    return {
        "type": "Feature",
        "geometry": {"type": gtype, "coordinates": coords},
        "properties": props,
    }


def _collection(*features):
    return {"type": "FeatureCollection", "features": list(features)}


@pytest.fixture
def feature():
    """Factory: feature("LineString", [[0, 0], [1, 0]], Id="P1")."""
    return _feature


@pytest.fixture
def collection():
    """Factory: collection(f1, f2, ...)."""
    return _collection


# ============================================================================
# Build configurations
# ============================================================================

@pytest.fixture
def small_network_config():
    """
    Reservoir R1 -> P-1 (one bend) -> J-A -> P-2 -> J-B, metric / Darcy-Weisbach.
    """
    return {
        "settings": {"flowUnit": "LPS", "headlossFormula": "Darcy-Weisbach"},
        "assignedData": {
            "reservoirs": _collection(_feature("Point", [0, 0], name="R1", head=50)),
            "nodes": _collection(
                _feature("Point", [100, 0], id="J-A", elev=10, dem=1.5),
                _feature("Point", [100, 100], id="J-B", elev=12),
            ),
            "pipes": _collection(
                _feature("LineString", [[0, 0], [50, 5], [100, 0]], pid="P-1", dia=200),
                _feature("LineString", [[100, 0], [100, 100]], pid="P-2", dia=150),
            ),
        },
        "attributeMapping": {
            "reservoirs": {"Id": "name", "Head": "head"},
            "nodes": {"Id": "id", "Elevation": "elev", "Demand": "dem"},
            "pipes": {"Id": "pid", "Diameter": "dia"},
        },
    }


@pytest.fixture
def crossing_config():
    """Two unmapped pipes crossing at (5, 0), no shared vertex."""
    return {
        "settings": {"flowUnit": "GPM"},
        "assignedData": {
            "pipes": _collection(
                _feature("LineString", [[0, 0], [10, 0]]),
                _feature("LineString", [[5, -5], [5, 5]]),
            ),
        },
        "attributeMapping": {},
    }


@pytest.fixture
def base_inp_text():
    return "\n".join([
        "[TITLE]",
        "Base model",
        "",
        "[JUNCTIONS]",
        ";ID  Elev",
        " J1  10",
        "",
        "[COORDINATES]",
        " J1  1.0  2.0",
        "",
        "[END]",
        "",
    ])
