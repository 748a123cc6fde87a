"""
Tests for topology checks and repairs.
"""
import pytest
from hypothesis import given, settings
from hypothesis.strategies import floats
from shapely.geometry import LineString, MultiPolygon, Point, Polygon, box
from shapely.strtree import STRtree

import tests
from landtopo.general import TopologyError
from landtopo.repair.topology import (
    check_topology,
    clean_overlap,
    find_gap,
    find_overlap,
    nearby_indexes,
    snap_line_nodes,
    snap_polygon_vertices,
    snap_vertices,
)
from landtopo.repair.vector_dataset import VectorDataset


def near_square(offset: float) -> Polygon:
    """
    Make square whose lower left vertex is offset from (1, 0).
    """
    return Polygon([(1 + offset, 0), (2, 0), (2, 1), (1.02, 1)])


@pytest.mark.parametrize(
    "polygons,assumed_overlaps",
    [
        ([box(0, 0, 2, 1), box(1, 0, 3, 1)], [(0, 1)]),
        ([box(0, 0, 1, 1), box(1, 0, 2, 1)], []),
        ([box(0, 0, 1, 1), box(0, 0, 1, 1)], []),
        ([box(0, 0, 4, 4), box(1, 1, 2, 2)], []),
        ([box(0, 0, 2, 1), box(5, 5, 6, 6), box(1, 0, 3, 1)], [(0, 2)]),
    ],
)
def test_find_overlap(polygons, assumed_overlaps):
    """
    Test find_overlap with pytest params.
    """
    assert find_overlap(tests.polygon_dataset(polygons)) == assumed_overlaps


@pytest.mark.parametrize(
    "polygons,threshold,assumed_gaps",
    [
        ([box(0, 0, 1, 1), box(1.005, 0, 2, 1)], 0.01, [(0, 1)]),
        ([box(0, 0, 1, 1), box(1.005, 0, 2, 1)], 0.001, []),
        ([box(0, 0, 1, 1), box(1, 0, 2, 1)], 0.01, []),
        ([box(0, 0, 2, 1), box(1, 0, 3, 1)], 0.01, []),
    ],
)
def test_find_gap(polygons, threshold, assumed_gaps):
    """
    Test find_gap with pytest params.
    """
    assert find_gap(tests.polygon_dataset(polygons), threshold) == assumed_gaps


def test_check_topology():
    """
    Test topology report messages.
    """
    dataset = tests.polygon_dataset(
        [box(0, 0, 2, 1), box(1, 0, 3, 1), box(3.005, 0, 4, 1)]
    )
    report = check_topology(dataset, 0.01)
    assert report.split("\n") == [
        "Polygon FID 0 overlaps with Polygon FID 1",
        "Polygon FID 1 has a gap with Polygon FID 2",
    ]
    assert check_topology(tests.polygon_dataset([box(0, 0, 1, 1)]), 0.01) == ""


def test_check_topology_invalid():
    """
    Test that invalid geometries are reported with their position.
    """
    dataset = tests.polygon_dataset([tests.BOWTIE])
    report = check_topology(dataset, 0.01)
    assert report.startswith("Self-intersection")
    assert report.endswith("FID 0")


def test_topology_requires_polygons():
    """
    Test that polygon checks reject line layers.
    """
    dataset = tests.line_dataset([LineString([(0, 0), (1, 0)])])
    for function in (find_overlap, lambda data: find_gap(data, 0.01)):
        with pytest.raises(TypeError):
            function(dataset)
    with pytest.raises(TypeError):
        snap_vertices(VectorDataset.from_records([({}, Point(0, 0))]))


def test_clean_overlap():
    """
    Test that overlaps are removed from the first feature.
    """
    dataset = tests.polygon_dataset([box(0, 0, 2, 1), box(1, 0, 3, 1)])
    clean_overlap(dataset, 0.01)
    first, second = dataset.geometry_list()
    assert first.area == pytest.approx(1.0)
    assert second.area == pytest.approx(2.0)
    assert find_overlap(dataset) == []
    assert first.touches(second)


def test_clean_overlap_split_difference():
    """
    Test that a non-polygon difference aborts cleaning.
    """
    dataset = tests.polygon_dataset([box(0, 0, 3, 1), box(1, -1, 2, 2)])
    with pytest.raises(TopologyError):
        clean_overlap(dataset, 0.01)


def test_clean_overlap_allowed_loops():
    """
    Test that the loop budget is enforced.
    """
    dataset = tests.polygon_dataset([box(0, 0, 2, 1), box(1, 0, 3, 1)])
    with pytest.raises(RecursionError):
        clean_overlap(dataset, 0.01, allowed_loops=-1)


def test_snap_polygon_vertices():
    """
    Test that near vertices move and coincident vertices stay.
    """
    dataset = tests.polygon_dataset([box(0, 0, 1, 1), near_square(0.005)])
    assert snap_polygon_vertices(dataset, 0.01) == 1
    first, second = dataset.geometry_list()
    first_coords = set(first.exterior.coords)
    assert (1.005, 0.0) in first_coords
    assert (1.0, 1.0) in first_coords
    assert (1.0, 0.0) not in first_coords
    assert list(second.exterior.coords) == list(near_square(0.005).exterior.coords)


@settings(deadline=None, max_examples=25)
@given(floats(min_value=0.001, max_value=0.009))
def test_snap_polygon_vertices_within_threshold(offset):
    """
    Test that vertices within threshold are snapped.
    """
    dataset = tests.polygon_dataset([box(0, 0, 1, 1), near_square(offset)])
    snap_vertices(dataset, 0.01)
    first = dataset.geometry_list()[0]
    assert (1.0 + offset, 0.0) in set(first.exterior.coords)


@settings(deadline=None, max_examples=25)
@given(floats(min_value=0.011, max_value=0.05))
def test_snap_polygon_vertices_beyond_threshold(offset):
    """
    Test that vertices beyond threshold are not snapped.
    """
    dataset = tests.polygon_dataset([box(0, 0, 1, 1), near_square(offset)])
    assert snap_vertices(dataset, 0.01) == 0
    assert dataset.geometry_list()[0].equals(box(0, 0, 1, 1))


def test_snap_line_nodes():
    """
    Test that near line endpoints are snapped.
    """
    dataset = tests.line_dataset(
        [LineString([(0, 0), (1, 0)]), LineString([(1.005, 0), (2, 0)])]
    )
    assert snap_line_nodes(dataset, 0.01) == 1
    first, second = dataset.geometry_list()
    assert first.coords[-1] == (1.005, 0.0)
    assert first.coords[0] == (0.0, 0.0)
    assert second.coords[0] == (1.005, 0.0)
    with pytest.raises(TypeError):
        snap_line_nodes(tests.polygon_dataset([box(0, 0, 1, 1)]), 0.01)


def test_snap_multipolygon_vertices():
    """
    Test that each part of a MultiPolygon feature is snapped.
    """
    multipolygon = MultiPolygon([box(0, 0, 1, 1), box(5, 5, 6, 6)])
    dataset = tests.polygon_dataset([multipolygon, near_square(0.005)])
    assert snap_polygon_vertices(dataset, 0.01) == 1
    first, second = dataset.geometry_list()
    assert isinstance(first, MultiPolygon)
    near_part, far_part = first.geoms
    assert (1.005, 0.0) in set(near_part.exterior.coords)
    assert far_part.equals(box(5, 5, 6, 6))
    assert second.equals(near_square(0.005))


def test_snap_multipolygon_targets():
    """
    Test that vertices snap onto parts of a MultiPolygon feature.
    """
    multipolygon = MultiPolygon([box(5, 5, 6, 6), near_square(0.005)])
    dataset = tests.polygon_dataset([box(0, 0, 1, 1), multipolygon])
    assert snap_vertices(dataset, 0.01) == 1
    assert (1.005, 0.0) in set(dataset.geometry_list()[0].exterior.coords)


def test_nearby_indexes():
    """
    Test that only features within twice the threshold are snapping candidates.
    """
    polygons = [box(0, 0, 1, 1), near_square(0.005)] + [
        box(10 + offset, 10, 11 + offset, 11) for offset in range(0, 20, 2)
    ]
    dataset = tests.polygon_dataset(polygons)
    tree = STRtree(dataset.geometry_list())
    assert nearby_indexes(tree, polygons[0], 0, 0.01) == [1]
    assert nearby_indexes(tree, polygons[1], 1, 0.01) == [0]
    assert nearby_indexes(tree, polygons[5], 5, 0.01) == []
    assert snap_polygon_vertices(dataset, 0.01) == 1
    assert (1.005, 0.0) in set(dataset.geometry_list()[0].exterior.coords)
    assert all(
        geom.equals(polygon)
        for geom, polygon in zip(dataset.geometry_list()[2:], polygons[2:])
    )


def test_snap_line_nodes_of_many_lines():
    """
    Test line node snapping among far apart lines.
    """
    lines = [LineString([(0, 0), (1, 0)]), LineString([(1.005, 0), (2, 0)])] + [
        LineString([(10 + offset, 0), (11 + offset, 0)]) for offset in range(0, 20, 2)
    ]
    dataset = tests.line_dataset(lines)
    assert snap_line_nodes(dataset, 0.01) == 1
    assert dataset.geometry_list()[0].coords[-1] == (1.005, 0.0)
    assert all(
        geom.equals(line) for geom, line in zip(dataset.geometry_list()[2:], lines[2:])
    )
