"""
Test parameters i.e. sample data, known geometries, etc.
"""
from itertools import permutations
from typing import Dict, List, Optional, Sequence, Tuple

import geopandas as gpd
from shapely.geometry import (
    GeometryCollection,
    LineString,
    MultiLineString,
    Point,
    Polygon,
    box,
)

from landtopo.general import SELF_ID_COLUMN
from landtopo.graph.polygon_graph import PolygonGraph
from landtopo.repair.vector_dataset import VectorDataset

# Three unit squares in an L shape. Square 1 is the corner.
L_SHAPE = {1: box(0, 0, 1, 1), 2: box(1, 0, 2, 1), 3: box(0, 1, 1, 2)}
L_SHAPE_NEIGHBOURS = {1: [2, 3], 2: [1], 3: [1]}
L_SHAPE_EDGE_COUNT = 5

# Two by two grid of unit squares.
GRID = {1: box(0, 0, 1, 1), 2: box(1, 0, 2, 1), 3: box(0, 1, 1, 2), 4: box(1, 1, 2, 2)}
GRID_NEIGHBOURS = {1: [2, 3], 2: [1, 4], 3: [1, 4], 4: [2, 3]}
GRID_EDGE_COUNT = 8

# Rectangle with two squares on top of it. The rectangle ring has no vertex
# at the junction of the squares.
T_SHAPE = {1: box(0, 0, 2, 1), 2: box(0, 1, 1, 2), 3: box(1, 1, 2, 2)}
T_SHAPE_NEIGHBOURS = {1: [2, 3], 2: [1, 3], 3: [1, 2]}
T_SHAPE_EDGE_COUNT = 6

BOWTIE = Polygon([(0, 0), (1, 1), (1, 0), (0, 1)])


def build_graph(items: Sequence[Tuple[int, Polygon]]) -> PolygonGraph:
    """
    Build graph by inserting polygons in the given order.
    """
    graph = PolygonGraph()
    for self_id, polygon in items:
        graph.add_polygon(polygon, self_id=self_id)
    return graph


def polygon_gdf(
    polygons: Sequence[Polygon], self_ids: Optional[Sequence[int]] = None
) -> gpd.GeoDataFrame:
    """
    Make GeoDataFrame of polygons with optional SELF_ID column.
    """
    data: Dict[str, List] = {}
    if self_ids is not None:
        data[SELF_ID_COLUMN] = list(self_ids)
    return gpd.GeoDataFrame(data, geometry=list(polygons))


def line_gdf(
    lines: Sequence[LineString], self_ids: Optional[Sequence[int]] = None
) -> gpd.GeoDataFrame:
    """
    Make GeoDataFrame of lines with optional SELF_ID column.
    """
    data: Dict[str, List] = {}
    if self_ids is not None:
        data[SELF_ID_COLUMN] = list(self_ids)
    return gpd.GeoDataFrame(data, geometry=list(lines))


def polygon_dataset(polygons: Sequence[Polygon]) -> VectorDataset:
    """
    Make polygon dataset with SELF_ID sequence.
    """
    return VectorDataset.from_records(
        [({SELF_ID_COLUMN: idx + 1}, polygon) for idx, polygon in enumerate(polygons)],
        name="polygons",
    )


def line_dataset(lines: Sequence[LineString]) -> VectorDataset:
    """
    Make line dataset with SELF_ID sequence.
    """
    return VectorDataset.from_records(
        [({SELF_ID_COLUMN: idx + 1}, line) for idx, line in enumerate(lines)],
        name="lines",
    )


test_insertion_order_params = [
    *[
        (list(order), L_SHAPE_NEIGHBOURS, L_SHAPE_EDGE_COUNT)
        for order in permutations(L_SHAPE.items())
    ],
    *[
        (list(order), T_SHAPE_NEIGHBOURS, T_SHAPE_EDGE_COUNT)
        for order in permutations(T_SHAPE.items())
    ],
]

test_merge_to_lines_params = [
    (LineString([(0, 0), (1, 0)]), ["LINESTRING (0 0, 1 0)"]),
    (
        MultiLineString([[(1, 0), (2, 0)], [(0, 0), (1, 0)]]),
        ["LINESTRING (0 0, 1 0, 2 0)"],
    ),
    (
        GeometryCollection([Point(0, 0), LineString([(5, 5), (6, 5)])]),
        ["LINESTRING (5 5, 6 5)"],
    ),
    (Point(0, 0), []),
    (LineString(), []),
    (None, []),
]

test_remove_repeated_coords_params = [
    ([(0, 0), (1, 0)], [(0.0, 0.0), (1.0, 0.0)]),
    ([(0, 0), (0, 0), (0, 0)], [(0.0, 0.0)]),
    ([(0, 0, 5), (1, 0, 5), (1, 0, 6)], [(0.0, 0.0), (1.0, 0.0)]),
    ([], []),
]

test_merge_edges_params = [
    # end to start
    ([(0, 0), (1, 0)], [(1, 0), (2, 0)], [(0, 0), (1, 0), (2, 0)]),
    # start to end
    ([(1, 0), (2, 0)], [(0, 0), (1, 0)], [(0, 0), (1, 0), (2, 0)]),
    # end to end
    ([(0, 0), (1, 0)], [(2, 0), (1, 0)], [(0, 0), (1, 0), (2, 0)]),
    # start to start
    ([(1, 0), (2, 0)], [(1, 0), (0, 0)], [(0, 0), (1, 0), (2, 0)]),
]

test_compute_line_intersections_with_params = [
    # Shared edge
    (box(0, 0, 1, 1), box(1, 0, 2, 1), [LineString([(1, 0), (1, 1)])]),
    # Partially shared edge
    (box(0, 0, 2, 1), box(1, 1, 3, 2), [LineString([(1, 1), (2, 1)])]),
    # Touching at a point
    (box(0, 0, 1, 1), box(1, 1, 2, 2), []),
    # Overlapping
    (box(0, 0, 2, 1), box(1, 0, 3, 1), []),
    # Disjoint
    (box(0, 0, 1, 1), box(5, 5, 6, 6), []),
]
