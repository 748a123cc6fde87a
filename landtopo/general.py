"""
Contains general constants and geometry helpers for landscape graphs.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple, Union

import numpy as np
from beartype import beartype
from shapely import wkt
from shapely.errors import ShapelyError
from shapely.geometry import (
    GeometryCollection,
    LineString,
    MultiLineString,
    MultiPolygon,
    Point,
    Polygon,
)
from shapely.geometry.base import BaseGeometry, BaseMultipartGeometry
from shapely.ops import linemerge
from shapely.validation import explain_validity

log = logging.getLogger(__name__)

# Columns of graph outputs
SELF_ID_COLUMN = "SELF_ID"
NEIGHBOUR_ID_COLUMN = "NEIGHBOUR_ID"
COMMON_LENGTH_COLUMN = "COMMON_LENGTH"
EDGE_ID_COLUMN = "EDGE_ID"
FACES_COLUMN = "FACES"
LENGTH_COLUMN = "LENGTH"
DEGREE_COLUMN = "DEGREE"
GEOMETRY_COLUMN = "geometry"

# Dimensionally extended nine-intersection patterns
# Interiors disjoint, boundaries share a line.
SHARED_BOUNDARY_PATTERN = "FF*F1****"
# Interiors share a line.
LINE_OVERLAP_PATTERN = "1********"

# Default thresholds
DEFAULT_BUFFER_DISTANCE = 0.01
DEFAULT_SNAP_THRESHOLD = 0.01
DEFAULT_ALLOWED_LOOPS = 100
FLOW_END_TOLERANCE = 0.0001
MINIMUM_RING_POINTS = 4

Number = Union[float, int]
PointTuple = Tuple[float, float]
Attributes = Dict[str, Any]


class TopologyError(ValueError):
    """
    Input geometries are not topologically consistent.

    Raised when a boundary cannot be resolved into edges, e.g. when an edge
    difference is not line-typed. The message contains the identifier of the
    offending feature and the WKT of the geometry that caused the failure.
    """


def coordinate_key(coord: Any) -> PointTuple:
    """
    Get a hashable two-dimensional key for a coordinate.

    >>> coordinate_key((1, 2.5, 3.0))
    (1.0, 2.5)
    """
    return (float(coord[0]), float(coord[1]))


def remove_repeated_coords(coords: Any) -> List[PointTuple]:
    """
    Remove consecutive duplicate coordinates.

    Z-coordinates are dropped.

    >>> remove_repeated_coords([(0, 0), (0, 0), (1, 0), (1, 0), (0, 0)])
    [(0.0, 0.0), (1.0, 0.0), (0.0, 0.0)]
    """
    coord_arr = np.asarray(list(coords), dtype=float)
    if coord_arr.size == 0:
        return []
    coord_arr = coord_arr[:, :2]
    keep = np.ones(len(coord_arr), dtype=bool)
    keep[1:] = np.any(coord_arr[1:] != coord_arr[:-1], axis=1)
    return [coordinate_key(coord) for coord in coord_arr[keep]]


def line_sort_key(line: LineString) -> Tuple[PointTuple, PointTuple, float]:
    """
    Get a deterministic ordering key for a line.

    Lines are ordered lexicographically by start coordinate, then by end
    coordinate and finally by length.

    >>> line_sort_key(LineString([(1, 0), (0, 0)]))
    ((1.0, 0.0), (0.0, 0.0), 1.0)
    """
    return (
        coordinate_key(line.coords[0]),
        coordinate_key(line.coords[-1]),
        line.length,
    )


def extract_lines(geom: Optional[BaseGeometry]) -> List[LineString]:
    """
    Extract all non-empty line parts of a geometry.

    Rings are converted to plain ``LineString`` geometries and points and
    polygons are ignored.

    >>> collection = GeometryCollection(
    ...     [Point(5, 5), LineString([(0, 0), (1, 0)]), MultiLineString([[(1, 0), (2, 0)]])]
    ... )
    >>> [line.wkt for line in extract_lines(collection)]
    ['LINESTRING (0 0, 1 0)', 'LINESTRING (1 0, 2 0)']
    """
    if geom is None or geom.is_empty:
        return []
    if isinstance(geom, LineString):
        return [LineString(geom.coords)]
    if isinstance(geom, BaseMultipartGeometry):
        lines = []
        for part in geom.geoms:
            lines.extend(extract_lines(part))
        return lines
    return []


def merge_to_lines(geom: Optional[BaseGeometry]) -> List[LineString]:
    """
    Merge the line parts of a geometry into maximal simple lines.

    The merge order of the geometry kernel is not guaranteed to be stable
    which is why the result is sorted with ``line_sort_key``.

    >>> lines = MultiLineString([[(1, 0), (2, 0)], [(0, 0), (1, 0)], [(5, 5), (6, 6)]])
    >>> [line.wkt for line in merge_to_lines(lines)]
    ['LINESTRING (0 0, 1 0, 2 0)', 'LINESTRING (5 5, 6 6)']
    """
    lines = extract_lines(geom)
    if len(lines) == 0:
        return []
    if len(lines) == 1:
        return lines
    merged = linemerge(lines)
    return sorted(extract_lines(merged), key=line_sort_key)


def safe_buffer(geom: Union[Point, LineString, Polygon], radius: Number, **kwargs):
    """
    Get type checked Polygon buffer.

    >>> result = safe_buffer(Point(0, 0), 1)
    >>> isinstance(result, Polygon), round(result.area, 3)
    (True, 3.137)
    """
    buffer = geom.buffer(radius, **kwargs)
    if not isinstance(buffer, Polygon):
        raise TypeError("Expected Polygon buffer.")
    return buffer


def intersection_length(line: LineString, area: Union[Polygon, MultiPolygon]) -> float:
    """
    Get summed length of the line parts of the intersection of line and area.

    >>> intersection_length(LineString([(-1, 0.5), (2, 0.5)]), Polygon([(0, 0), (1, 0), (1, 1), (0, 1)]))
    1.0
    """
    return float(sum(part.length for part in extract_lines(line.intersection(area))))


@beartype
def validity_reason(geom: BaseGeometry) -> Optional[str]:
    """
    Get human-readable reason for invalidity or None for valid geometries.

    >>> validity_reason(Polygon([(0, 0), (1, 0), (1, 1), (0, 1)])) is None
    True
    >>> validity_reason(Polygon([(0, 0), (1, 1), (1, 0), (0, 1)]))
    'Self-intersection[0.5 0.5]'
    """
    if geom.is_valid:
        return None
    return explain_validity(geom)


@beartype
def parse_geometry(geometry: Union[str, BaseGeometry]) -> BaseGeometry:
    """
    Parse geometry from WKT or pass through geometries.

    Parsing is locale-independent.

    >>> parse_geometry("POINT (1.5 2)").wkt
    'POINT (1.5 2)'
    """
    if isinstance(geometry, BaseGeometry):
        return geometry
    try:
        return wkt.loads(geometry)
    except ShapelyError as exc:
        raise ValueError(f"Could not parse WKT geometry: {geometry}") from exc


def report_repair_loop(loops: int, allowed_loops: int, process: str):
    """
    Report repair looping.

    >>> report_repair_loop(1, 10, "cleaning overlaps")
    >>> try:
    ...     report_repair_loop(11, 10, "cleaning overlaps")
    ... except RecursionError as exc:
    ...     print(exc)
    ...
    More loops have passed (11) than allowed by allowed_loops (10) for cleaning overlaps.
    """
    log.info(f"Loop :{ loops }")
    if loops >= 10:
        log.warning(
            f"{loops} loops have passed without resolved {process}."
            " Repair might not possibly be resolved."
        )
    if loops > allowed_loops:
        raise RecursionError(
            f"More loops have passed ({loops}) than allowed by allowed_loops "
            f"({allowed_loops}) for {process}."
        )
