"""
Unit tests for core.spatial_index
"""
import json

import pytest

from core.models import SpatialItem
from core.spatial_index import SpatialIndex, build_point_index, search_bounds


POINTS = [
    {"id": "a", "lat": 10.0, "lng": 10.0},
    {"id": "b", "lat": 20.0, "lng": 20.0, "data": {"name": "Bravo"}},
    {"id": "c", "lat": 30.0, "lng": 30.0},
]


def _grid(size: int = 20) -> list[SpatialItem]:
    return [
        SpatialItem(min_x=x, min_y=y, max_x=x, max_y=y, id=f"{x}-{y}")
        for x in range(size)
        for y in range(size)
    ]


def _brute_force(items, bbox):
    min_x, min_y, max_x, max_y = bbox
    return {
        it.id for it in items
        if it.min_x <= max_x and it.max_x >= min_x and it.min_y <= max_y and it.max_y >= min_y
    }


class TestSpatialIndex:

    def test_empty_index(self):
        index = SpatialIndex()
        assert len(index) == 0
        assert index.search((0, 0, 10, 10)) == []
        assert not index.collides((0, 0, 10, 10))

    def test_bulk_load_matches_brute_force(self):
        items = _grid()
        index = SpatialIndex().load(items)
        assert len(index) == 400

        for bbox in [(0, 0, 5, 5), (3.5, 7.2, 12.1, 15.9), (19, 19, 30, 30), (-5, -5, -1, -1)]:
            found = {it.id for it in index.search(bbox)}
            assert found == _brute_force(items, bbox)

    def test_edges_are_inclusive(self):
        index = SpatialIndex().load(_grid(5))
        found = {it.id for it in index.search((1, 1, 2, 2))}
        assert found == {"1-1", "1-2", "2-1", "2-2"}

    def test_insert_and_load_keep_existing_items(self):
        index = SpatialIndex(max_entries=4).load(_grid(3))
        index.insert(SpatialItem(100, 100, 101, 101, id="far"))
        assert len(index) == 10
        assert [it.id for it in index.search((99, 99, 102, 102))] == ["far"]
        assert len(index.search((0, 0, 2, 2))) == 9

    def test_collides(self):
        index = SpatialIndex().load(_grid(10))
        assert index.collides((4.5, 4.5, 5.5, 5.5))
        assert not index.collides((4.2, 4.2, 4.8, 4.8))

    def test_clear(self):
        index = SpatialIndex().load(_grid(4))
        index.clear()
        assert index.all() == []

    def test_max_entries_too_small(self):
        with pytest.raises(ValueError):
            SpatialIndex(max_entries=1)


class TestSerialization:

    def test_json_round_trip_answers_same_queries(self):
        items = _grid()
        index = SpatialIndex().load(items)

        restored = SpatialIndex.from_json(json.loads(json.dumps(index.to_json())))

        bbox = (2.5, 2.5, 9.5, 6.5)
        assert {it.id for it in restored.search(bbox)} == _brute_force(items, bbox)

    def test_node_shape(self):
        tree = SpatialIndex().load(_grid(2)).to_json()
        assert tree["leaf"] is True
        assert tree["height"] == 1
        assert (tree["minX"], tree["minY"], tree["maxX"], tree["maxY"]) == (0, 0, 1, 1)
        assert set(tree["children"][0]) == {"minX", "minY", "maxX", "maxY", "id"}

    def test_empty_tree_json(self):
        tree = SpatialIndex().to_json()
        assert tree["children"] == []
        assert tree["minX"] is None
        json.dumps(tree)

    @pytest.mark.parametrize("bad", [
        [],
        {"leaf": True},
        {"children": [{"minX": 0}], "leaf": True, "height": 1},
        {"children": "nope", "leaf": False, "height": 2},
    ])
    def test_malformed_json(self, bad):
        with pytest.raises(ValueError):
            SpatialIndex.from_json(bad)


class TestPointHelpers:

    def test_search_bounds_finds_points_inside(self):
        tree = build_point_index(POINTS).to_json()
        results = search_bounds(tree, south_west=[5, 5], north_east=[25, 25])
        assert sorted(r.id for r in results) == ["a", "b"]

    def test_lat_lng_mapping(self):
        index = build_point_index([{"id": "x", "lat": 51.5, "lng": -0.12}])
        item = index.all()[0]
        assert (item.min_x, item.min_y) == (-0.12, 51.5)

    def test_data_survives_serialization(self):
        tree = build_point_index(POINTS).to_json()
        results = search_bounds(tree, [15, 15], [25, 25])
        assert results[0].data == {"name": "Bravo"}

    def test_no_points(self):
        with pytest.raises(ValueError, match="No points provided"):
            build_point_index([])
