"""
Unit tests for the geometry variants, GeometryFeature and multi-part normalization.
"""

import pytest

from netbuild.core.build.errors import InvalidGeometryForElement
from netbuild.core.build.normalize import NormalizedLayer, check_geometry_types, normalize
from netbuild.core.models.feature import feature_from_geojson, features_from_collection
from netbuild.core.models.geometry import (
    GeometryCollection,
    InvalidGeometry,
    LineString,
    MultiLineString,
    Point,
    geometry_from_geojson,
    geometry_to_geojson,
    iter_coords,
)


class TestGeometryFromGeoJSON:

    def test_point_drops_z(self):
        g = geometry_from_geojson({"type": "Point", "coordinates": [1, 2, 99]})
        assert g == Point((1.0, 2.0))

    def test_multilinestring(self):
        g = geometry_from_geojson({"type": "MultiLineString", "coordinates": [[[0, 0], [1, 1]], [[2, 2], [3, 3]]]})
        assert isinstance(g, MultiLineString)
        assert len(g.coordinates) == 2

    def test_collection(self):
        g = geometry_from_geojson({
            "type": "GeometryCollection",
            "geometries": [{"type": "Point", "coordinates": [0, 0]}],
        })
        assert isinstance(g, GeometryCollection)
        assert g.geometries == (Point((0.0, 0.0)),)

    def test_unknown_type_raises(self):
        with pytest.raises(InvalidGeometry):
            geometry_from_geojson({"type": "Circle", "coordinates": [0, 0]})

    def test_bad_coordinate_raises(self):
        with pytest.raises(InvalidGeometry):
            geometry_from_geojson({"type": "Point", "coordinates": ["a", None]})

    def test_to_geojson_keeps_type_and_coords(self):
        obj = {"type": "LineString", "coordinates": [[0.0, 0.0], [1.5, 2.5]]}
        assert geometry_to_geojson(geometry_from_geojson(obj)) == obj

    def test_iter_coords_collection(self):
        g = GeometryCollection((Point((0.0, 0.0)), LineString(((1.0, 1.0), (2.0, 2.0)))))
        assert list(iter_coords(g)) == [(0.0, 0.0), (1.0, 1.0), (2.0, 2.0)]

    def test_iter_coords_rejects_foreign_objects(self):
        with pytest.raises(TypeError):
            list(iter_coords(object()))


class TestFeatures:

    def test_feature_properties_are_read_only(self, feature):
        f = feature_from_geojson(feature("Point", [0, 0], name="A"), 3)
        assert f.index == 3
        assert f.part is None
        assert f.label == "#3"
        with pytest.raises(TypeError):
            f.properties["name"] = "B"

    def test_feature_without_geometry(self):
        with pytest.raises(InvalidGeometry):
            feature_from_geojson({"type": "Feature", "geometry": None, "properties": {}}, 0)

    def test_features_from_collection_indexes(self, feature, collection):
        fs = features_from_collection(collection(feature("Point", [0, 0]), feature("Point", [1, 1])))
        assert [f.index for f in fs] == [0, 1]


class TestNormalize:

    def test_multipoint_explodes_with_shared_properties(self, feature):
        f = feature_from_geojson(feature("MultiPoint", [[0, 0], [1, 1], [2, 2]], kind="hydrant"), 0)
        parts = list(normalize(f))
        assert len(parts) == 3
        assert all(isinstance(p.geometry, Point) for p in parts)
        assert [p.part for p in parts] == [0, 1, 2]
        assert all(p.properties["kind"] == "hydrant" for p in parts)
        assert parts[1].label == "#0.1"

    def test_multilinestring_explodes(self, feature):
        f = feature_from_geojson(feature("MultiLineString", [[[0, 0], [1, 0]], [[2, 0], [3, 0]]]), 0)
        parts = list(normalize(f))
        assert [p.geometry for p in parts] == [
            LineString(((0.0, 0.0), (1.0, 0.0))),
            LineString(((2.0, 0.0), (3.0, 0.0))),
        ]

    def test_single_part_passes_through(self, feature):
        f = feature_from_geojson(feature("LineString", [[0, 0], [1, 0]]), 0)
        assert list(normalize(f)) == [f]

    def test_layer_is_restartable(self, feature):
        fs = [
            feature_from_geojson(feature("MultiPoint", [[0, 0], [1, 1]]), 0),
            feature_from_geojson(feature("Point", [5, 5]), 1),
        ]
        layer = NormalizedLayer(fs)
        assert len(layer) == 3
        assert list(layer) == list(layer)

    def test_check_geometry_types_rejects_lines_for_nodes(self, feature):
        fs = [feature_from_geojson(feature("LineString", [[0, 0], [1, 0]]), 0)]
        with pytest.raises(InvalidGeometryForElement) as exc:
            check_geometry_types("nodes", fs)
        assert exc.value.actual_type == "LineString"
        assert exc.value.element_kind == "nodes"

    def test_check_geometry_types_accepts_points_for_valves(self, feature):
        fs = [feature_from_geojson(feature("Point", [0, 0]), 0)]
        check_geometry_types("valves", fs)
