"""
Tests for id handling, endpoint snapping, device expansion and link assembly.

Most cases run the whole build so that normalization, crossing simplification
and topology interact the way they do in production.
"""

import pytest

from netbuild.core.build.errors import DegenerateGeometry, DuplicateElementId
from netbuild.core.build.topology import IdRegistry
from netbuild.core.pipeline.runner import build_inp


def _pipes_config(collection, *features, mapping=None, **options):
    return {
        "settings": {"flowUnit": "GPM"},
        "assignedData": {"pipes": collection(*features)},
        "attributeMapping": {"pipes": mapping or {}},
        "options": options,
    }


class TestIdRegistry:

    def test_mint_skips_reserved(self):
        reg = IdRegistry()
        reg.reserve("node", "J1", element_kind="nodes", where=0)
        assert reg.mint("node", "J") == "J2"
        assert reg.mint("node", "J") == "J3"

    def test_namespaces_are_separate(self):
        reg = IdRegistry()
        reg.reserve("node", "A", element_kind="nodes", where=0)
        reg.reserve("link", "A", element_kind="pipes", where=0)
        assert reg.is_used("link", "A")

    def test_duplicate_reserve(self):
        reg = IdRegistry()
        reg.reserve("link", "P", element_kind="pipes", where=0)
        with pytest.raises(DuplicateElementId):
            reg.reserve("link", "P", element_kind="pipes", where=1)

    def test_claim_suffixes(self):
        reg = IdRegistry()
        assert reg.claim("link", "P7_2") == "P7_2"
        assert reg.claim("link", "P7_2") == "P7_2_2"


class TestSnapping:

    def test_ends_within_tolerance_share_a_node(self, feature, collection):
        cfg = _pipes_config(
            collection,
            feature("LineString", [[0, 0], [10, 0]]),
            feature("LineString", [[0, 0.005], [0, 10]]),
            snapTolerance=0.01,
        )
        result = build_inp(cfg)
        assert len(result.network.nodes) == 3
        assert "DisconnectedNetwork" not in result.warning_codes

    def test_ends_beyond_tolerance_stay_apart(self, feature, collection):
        cfg = _pipes_config(
            collection,
            feature("LineString", [[0, 0], [10, 0]]),
            feature("LineString", [[0, 0.02], [0, 10]]),
            snapTolerance=0.01,
        )
        result = build_inp(cfg)
        assert len(result.network.nodes) == 4
        assert "DisconnectedNetwork" in result.warning_codes

    def test_snapped_link_ends_take_node_coordinates(self, feature, collection):
        cfg = _pipes_config(
            collection,
            feature("LineString", [[0, 0], [10, 0]]),
            feature("LineString", [[10.004, 0], [20, 0]]),
            snapTolerance=0.01,
        )
        net = build_inp(cfg).network
        second = net.links["P2"]
        assert net.nodes[second.node_from].coord == (10.0, 0.0)
        assert second.length == pytest.approx(10.0)


class TestIds:

    def test_minted_ids(self, crossing_config):
        net = build_inp(crossing_config).network
        assert list(net.links) == ["P1", "P1_2", "P2", "P2_2"]
        assert list(net.nodes) == ["J1", "J2", "J3", "J4", "J5"]

    def test_multipart_parts_get_suffixed_ids(self, feature, collection):
        cfg = _pipes_config(
            collection,
            feature("MultiLineString", [[[0, 0], [10, 0]], [[20, 0], [30, 0]]], pid="M", dia=300),
            mapping={"Id": "pid", "Diameter": "dia"},
        )
        net = build_inp(cfg).network
        assert list(net.links) == ["M", "M_2"]
        assert all(lk.attributes["Diameter"] == 300.0 for lk in net.links.values())
        assert [lk.source_index for lk in net.links.values()] == [0, 0]

    def test_duplicate_mapped_id(self, feature, collection):
        cfg = _pipes_config(
            collection,
            feature("LineString", [[0, 0], [10, 0]], pid="X"),
            feature("LineString", [[10, 0], [20, 0]], pid="X"),
            mapping={"Id": "pid"},
        )
        with pytest.raises(DuplicateElementId) as exc:
            build_inp(cfg)
        assert exc.value.stage == "Building Network Graph"

    def test_mapped_ids_are_never_minted_twice(self, feature, collection):
        cfg = {
            "assignedData": {
                "nodes": collection(
                    feature("Point", [0, 0], id="J1"),
                    feature("Point", [100, 100], id="J2"),
                ),
                "pipes": collection(feature("LineString", [[0, 0], [10, 0]])),
            },
            "attributeMapping": {"nodes": {"Id": "id"}},
        }
        net = build_inp(cfg).network
        assert list(net.nodes) == ["J1", "J2", "J3"]
        assert net.links["P1"].node_to == "J3"


class TestCrossingsInGraph:

    def test_crossing_adds_one_junction_and_four_links(self, crossing_config):
        net = build_inp(crossing_config).network
        assert len(net.links) == 4
        assert len(net.nodes) == 5
        assert net.degrees()["J2"] == 4
        assert net.nodes["J2"].coord == (5.0, 0.0)
        assert all(lk.length == pytest.approx(5.0) for lk in net.links.values())

    def test_mapped_length_is_prorated(self, feature, collection):
        cfg = _pipes_config(
            collection,
            feature("LineString", [[0, 0], [10, 0]], L=1000),
            feature("LineString", [[2, -1], [2, 1]]),
            mapping={"Length": "L"},
        )
        net = build_inp(cfg).network
        assert net.links["P1"].length == pytest.approx(200.0)
        assert net.links["P1_2"].length == pytest.approx(800.0)


class TestDevices:

    def test_point_valve_between_two_pipes(self, feature, collection):
        cfg = {
            "assignedData": {
                "pipes": collection(
                    feature("LineString", [[0, 0], [10, 0]]),
                    feature("LineString", [[10, 0], [20, 0]]),
                ),
                "valves": collection(feature("Point", [10, 0], vid="PRV-1")),
            },
            "attributeMapping": {"valves": {"Id": "vid"}},
        }
        result = build_inp(cfg)
        net = result.network
        valve = net.links["PRV-1"]
        assert valve.kind == "valve"
        assert (valve.node_from, valve.node_to) == ("PRV-1-1", "PRV-1-2")
        assert net.nodes["PRV-1-1"].coord == net.nodes["PRV-1-2"].coord == (10.0, 0.0)
        assert net.links["P1"].node_to == "PRV-1-1"
        assert net.links["P2"].node_from == "PRV-1-2"
        assert valve.attributes["Type"] == "PRV"
        assert result.warnings == []

    def test_point_valve_on_explicit_node_uses_it_as_anchor(self, feature, collection):
        cfg = {
            "assignedData": {
                "nodes": collection(feature("Point", [10, 0], nid="N10", elev=12.5)),
                "pipes": collection(
                    feature("LineString", [[0, 0], [10, 0]]),
                    feature("LineString", [[10, 0], [20, 0]]),
                ),
                "valves": collection(feature("Point", [10, 0], vid="PRV-1")),
            },
            "attributeMapping": {
                "nodes": {"Id": "nid", "Elevation": "elev"},
                "valves": {"Id": "vid"},
            },
        }
        result = build_inp(cfg)
        net = result.network
        valve = net.links["PRV-1"]
        assert (valve.node_from, valve.node_to) == ("N10", "PRV-1-2")
        assert "PRV-1-1" not in net.nodes
        assert net.links["P1"].node_to == "N10"
        assert net.links["P2"].node_from == "PRV-1-2"
        assert net.nodes["PRV-1-2"].attributes["Elevation"] == pytest.approx(12.5)
        assert result.warnings == []

    def test_point_pump_in_pipe_interior_splits_the_pipe(self, feature, collection):
        cfg = {
            "assignedData": {
                "pipes": collection(feature("LineString", [[0, 0], [10, 0]])),
                "pumps": collection(feature("Point", [4, 0])),
            },
        }
        net = build_inp(cfg).network
        pump = net.links["PU1"]
        assert pump.kind == "pump"
        assert {net.links["P1"].node_to, net.links["P1_2"].node_from} == {"PU1-1", "PU1-2"}

    def test_unattached_device(self, feature, collection):
        cfg = {
            "assignedData": {
                "pipes": collection(feature("LineString", [[0, 0], [10, 0]])),
                "valves": collection(feature("Point", [50, 50])),
            },
        }
        result = build_inp(cfg)
        assert "V1" not in result.network.links
        assert "UnattachedDevice" in result.warning_codes
        assert "IsolatedNode" in result.warning_codes

    def test_line_valve_keeps_its_geometry(self, feature, collection):
        cfg = {
            "assignedData": {
                "pipes": collection(feature("LineString", [[0, 0], [10, 0]])),
                "valves": collection(feature("LineString", [[10, 0], [12, 0]])),
            },
        }
        net = build_inp(cfg).network
        assert net.links["V1"].kind == "valve"
        assert net.links["V1"].node_from == net.links["P1"].node_to


class TestDegenerate:

    def test_self_loop_rejected(self, feature, collection):
        cfg = _pipes_config(collection, feature("LineString", [[0, 0], [10, 0], [10, 10], [0, 0]]))
        with pytest.raises(DegenerateGeometry):
            build_inp(cfg)

    def test_self_loop_allowed(self, feature, collection):
        cfg = _pipes_config(collection, feature("LineString", [[0, 0], [10, 0], [10, 10], [0, 0]]), allowSelfLoops=True)
        lk = build_inp(cfg).network.links["P1"]
        assert lk.node_from == lk.node_to

    def test_zero_length_line(self, feature, collection):
        cfg = _pipes_config(collection, feature("LineString", [[1, 1], [1, 1]]))
        with pytest.raises(DegenerateGeometry) as exc:
            build_inp(cfg)
        assert exc.value.stage == "Simplifying Crossings"
