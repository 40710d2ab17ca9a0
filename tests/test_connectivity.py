"""
Unit tests for connectivity analysis, structural validation and elevation defaults.
"""

import pytest

from netbuild.core.build.connectivity import analyze_connectivity, connected_components
from netbuild.core.build.elevation import assign_elevations
from netbuild.core.build.errors import NetworkValidationError, ValidationIssue
from netbuild.core.build.validate import MAX_ID_LENGTH, raise_on_errors, validate_network
from netbuild.core.models.link import Link
from netbuild.core.models.network import NetworkGraph
from netbuild.core.models.node import Node


def _graph(nodes, links):
    return NetworkGraph(
        nodes={uid: Node(uid, kind, x, y, attrs) for uid, kind, x, y, attrs in nodes},
        links={lk.uid: lk for lk in links},
    )


@pytest.fixture
def two_islands():
    return _graph(
        [
            ("A", "reservoir", 0.0, 0.0, {"Head": 10}),
            ("B", "junction", 1.0, 0.0, {}),
            ("C", "junction", 2.0, 0.0, {"Elevation": 3.5}),
            ("D", "junction", 10.0, 0.0, {}),
            ("E", "junction", 11.0, 0.0, {}),
            ("F", "tank", 50.0, 50.0, {}),
        ],
        [
            Link("P1", "pipe", "A", "B", length=1.0),
            Link("P2", "pipe", "B", "C", length=1.0),
            Link("P3", "pipe", "D", "E", length=1.0),
        ],
    )


class TestConnectivity:

    def test_components_largest_first(self, two_islands):
        assert connected_components(two_islands) == [["A", "B", "C"], ["D", "E"], ["F"]]

    def test_warnings(self, two_islands):
        report = analyze_connectivity(two_islands)
        codes = [i.code for i in report.issues]
        assert codes.count("IsolatedNode") == 1
        assert codes.count("IsolatedLink") == 1
        assert codes.count("DisconnectedNetwork") == 1
        assert report.isolated_nodes == ["F"]
        assert not report.is_connected
        assert all(i.level == "warning" for i in report.issues)

    def test_isolated_link_detail(self, two_islands):
        report = analyze_connectivity(two_islands)
        link_issue = next(i for i in report.issues if i.code == "IsolatedLink")
        assert link_issue.details == {"link": "P3"}

    def test_removing_isolated_node_clears_warning(self, two_islands):
        two_islands.remove_node("F")
        codes = [i.code for i in analyze_connectivity(two_islands).issues]
        assert "IsolatedNode" not in codes

    def test_remove_node_drops_incident_links(self, two_islands):
        two_islands.remove_node("B")
        assert set(two_islands.links) == {"P3"}

    def test_read_only(self, two_islands):
        before = (dict(two_islands.nodes), dict(two_islands.links))
        analyze_connectivity(two_islands)
        assert (two_islands.nodes, two_islands.links) == before

    def test_connected(self):
        g = _graph([("A", "junction", 0.0, 0.0, {}), ("B", "junction", 1.0, 0.0, {})], [Link("P", "pipe", "A", "B")])
        report = analyze_connectivity(g)
        assert report.is_connected
        # a lone pipe is still an isolated link
        assert [i.code for i in report.issues] == ["IsolatedLink"]


class TestValidate:

    def test_dangling_link_is_an_error(self):
        g = _graph([("A", "junction", 0.0, 0.0, {})], [Link("P", "pipe", "A", "Z")])
        issues = validate_network(g)
        assert [i.code for i in issues if i.level == "error"] == ["DanglingLink"]
        with pytest.raises(NetworkValidationError):
            raise_on_errors(issues)

    def test_empty_network(self):
        issues = validate_network(NetworkGraph())
        assert issues[0].code == "EmptyNetwork"

    def test_long_id_warning(self):
        long_id = "N" * (MAX_ID_LENGTH + 1)
        g = _graph([(long_id, "junction", 0.0, 0.0, {}), ("B", "junction", 1.0, 0.0, {})],
                   [Link("P", "pipe", long_id, "B", length=1.0)])
        issues = validate_network(g)
        assert [i.code for i in issues] == ["LongId"]
        raise_on_errors(issues)

    def test_non_positive_values(self):
        g = _graph([("A", "junction", 0.0, 0.0, {}), ("B", "junction", 1.0, 0.0, {})],
                   [Link("P", "pipe", "A", "B", attributes={"Diameter": 0}, length=0.0)])
        codes = [i.code for i in validate_network(g)]
        assert codes == ["NonPositiveLength", "NonPositiveDiameter"]

    def test_issue_to_dict(self):
        issue = ValidationIssue("warning", "LongId", "too long", None, {"node": "X"})
        assert issue.to_dict() == {"level": "warning", "code": "LongId", "message": "too long", "details": {"node": "X"}}


class TestElevation:

    def test_defaults_for_junctions_and_tanks_only(self, two_islands):
        count = assign_elevations(two_islands)
        assert count == 4
        assert two_islands.nodes["B"].attributes["Elevation"] == 0.0
        assert two_islands.nodes["C"].attributes["Elevation"] == 3.5
        assert two_islands.nodes["F"].attributes["Elevation"] == 0.0
        assert "Elevation" not in two_islands.nodes["A"].attributes

    def test_second_pass_assigns_nothing(self, two_islands):
        assign_elevations(two_islands)
        assert assign_elevations(two_islands) == 0
