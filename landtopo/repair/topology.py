"""
Detection and repair of overlaps, gaps and near-coincident vertices.

All functions operate on a ``VectorDataset`` layer and report feature pairs
by their positions in the layer. Each unordered pair is reported once with
the smaller position first.

Written features are not rolled back if a repair pass fails.
"""
import logging

import numpy as np
from beartype import beartype
from beartype.typing import List, Optional, Tuple, Union
from shapely.geometry import LinearRing, LineString, MultiPolygon, Polygon
from shapely.geometry.base import BaseGeometry
from shapely.ops import snap
from shapely.strtree import STRtree

from landtopo.general import (
    DEFAULT_ALLOWED_LOOPS,
    DEFAULT_SNAP_THRESHOLD,
    Number,
    TopologyError,
    report_repair_loop,
    validity_reason,
)
from landtopo.repair.vector_dataset import VectorDataset

log = logging.getLogger(__name__)

IndexPair = Tuple[int, int]


def require_polygon_type(dataset: VectorDataset, operation: str):
    """
    Raise TypeError if dataset is not a polygon layer.
    """
    if not dataset.is_polygon_type():
        raise TypeError(
            f"Expected polygon type dataset for {operation}."
            f" Got geometry types: {sorted(dataset.geometry_types())}"
        )


def candidate_pairs(
    geometries: List[BaseGeometry], distance: Optional[Number] = None
) -> List[IndexPair]:
    """
    Get index pairs of geometries that intersect or are within distance.

    >>> from shapely.geometry import box
    >>> candidate_pairs([box(0, 0, 1, 1), box(1, 0, 2, 1), box(5, 5, 6, 6)])
    [(0, 1)]
    >>> candidate_pairs([box(0, 0, 1, 1), box(1.5, 0, 2, 1)], distance=1.0)
    [(0, 1)]
    """
    if len(geometries) < 2:
        return []
    tree = STRtree(geometries)
    if distance is None:
        left, right = tree.query(geometries, predicate="intersects")
    else:
        left, right = tree.query(geometries, predicate="dwithin", distance=distance)
    return sorted(
        {
            (int(first), int(second))
            for first, second in zip(left, right)
            if first < second
        }
    )


@beartype
def find_overlap(dataset: VectorDataset) -> List[IndexPair]:
    """
    Find pairs of features whose geometries overlap.
    """
    require_polygon_type(dataset, "overlap detection")
    geometries = dataset.geometry_list()
    return [
        (first, second)
        for first, second in candidate_pairs(geometries)
        if not geometries[first].equals(geometries[second])
        and geometries[first].overlaps(geometries[second])
    ]


@beartype
def find_gap(dataset: VectorDataset, threshold: Number) -> List[IndexPair]:
    """
    Find pairs of features separated by less than threshold.

    Pairs that touch or overlap are not gaps.
    """
    require_polygon_type(dataset, "gap detection")
    geometries = dataset.geometry_list()
    gaps = []
    for first, second in candidate_pairs(geometries, distance=threshold):
        first_geom, second_geom = geometries[first], geometries[second]
        if (
            first_geom.equals(second_geom)
            or first_geom.touches(second_geom)
            or first_geom.overlaps(second_geom)
        ):
            continue
        if first_geom.distance(second_geom) < threshold:
            gaps.append((first, second))
    return gaps


@beartype
def check_topology(dataset: VectorDataset, threshold: Number) -> str:
    """
    Get a report of invalid geometries, overlaps and gaps.

    An empty report means no problems were found.
    """
    require_polygon_type(dataset, "topology check")
    messages = []
    for index, geom in enumerate(dataset.geometry_list()):
        reason = validity_reason(geom)
        if reason is not None:
            messages.append(f"{reason} FID {index}")
    for first, second in find_overlap(dataset):
        messages.append(f"Polygon FID {first} overlaps with Polygon FID {second}")
    for first, second in find_gap(dataset, threshold):
        messages.append(f"Polygon FID {first} has a gap with Polygon FID {second}")
    if len(messages) > 0:
        log.info(
            "Topology problems found.",
            extra=dict(dataset_name=dataset.name, problem_count=len(messages)),
        )
    return "\n".join(messages)


@beartype
def clean_overlap(
    dataset: VectorDataset,
    threshold: Number = DEFAULT_SNAP_THRESHOLD,
    allowed_loops: Optional[int] = None,
):
    """
    Remove overlaps by subtracting the second geometry from the first.

    The second geometry is snapped to the new first geometry within
    threshold. Overlaps are detected again after each written pair and
    the layer vertices are snapped when no overlaps remain.
    """
    require_polygon_type(dataset, "overlap cleaning")
    allowed_loops = DEFAULT_ALLOWED_LOOPS if allowed_loops is None else allowed_loops
    overlaps = find_overlap(dataset)
    loops = 0
    while len(overlaps) > 0:
        report_repair_loop(loops, allowed_loops, "cleaning overlaps")
        first, second = overlaps[0]
        geometries = dataset.geometry_list()
        difference = geometries[first].difference(geometries[second])
        if not isinstance(difference, Polygon) or difference.is_empty:
            raise TopologyError(
                f"Expected Polygon as difference of features {first} and {second}"
                f" of {dataset.name}. Got: {difference.geom_type}.\n{difference.wkt}"
            )
        snapped = snap(geometries[second], difference, threshold)
        dataset.set_geometry(first, difference)
        dataset.set_geometry(second, snapped)
        dataset.features()
        log.info(f"Cleaned overlap between features {first} and {second}.")
        overlaps = find_overlap(dataset)
        loops += 1
    snap_vertices(dataset, threshold)


def snap_coords(
    coords: np.ndarray, targets: np.ndarray, threshold: Number
) -> Tuple[np.ndarray, bool]:
    """
    Move coordinates onto the nearest target within threshold.

    Coordinates that already coincide with a target are left as is.

    >>> coords = np.array([[0.0, 0.0], [1.0, 0.0], [5.0, 5.0]])
    >>> targets = np.array([[0.0, 0.0], [1.005, 0.0], [5.02, 5.0]])
    >>> snapped, changed = snap_coords(coords, targets, 0.01)
    >>> snapped.tolist(), changed
    ([[0.0, 0.0], [1.005, 0.0], [5.0, 5.0]], True)
    """
    if len(targets) == 0 or len(coords) == 0:
        return coords, False
    differences = coords[:, None, :] - targets[None, :, :]
    distances = np.hypot(differences[..., 0], differences[..., 1])
    coincident = np.any(distances == 0.0, axis=1)
    candidates = np.where(
        (distances > 0.0) & (distances < threshold), distances, np.inf
    )
    nearest = np.argmin(candidates, axis=1)
    movable = ~coincident & np.isfinite(candidates[np.arange(len(coords)), nearest])
    snapped = coords.copy()
    snapped[movable] = targets[nearest[movable]]
    return snapped, bool(movable.any())


def _polygon_parts(geom: Union[Polygon, MultiPolygon]) -> List[Polygon]:
    if isinstance(geom, MultiPolygon):
        return list(geom.geoms)
    return [geom]


def _polygon_coords(polygon: Polygon) -> List[np.ndarray]:
    return [
        np.asarray(ring.coords)[:, :2]
        for ring in (polygon.exterior, *polygon.interiors)
    ]


def _line_endpoints(line: LineString) -> np.ndarray:
    coords = np.asarray(line.coords)[:, :2]
    return coords[[0, -1]]


def nearby_indexes(
    tree: STRtree, geom: BaseGeometry, index: int, threshold: Number
) -> List[int]:
    """
    Get indexes of other tree geometries that can have vertices within threshold.

    Tree geometries are as they were before snapping. Snapped vertices move
    less than threshold, so the query distance is twice the threshold.

    >>> from shapely.geometry import box
    >>> boxes = [box(0, 0, 1, 1), box(1.015, 0, 2, 1), box(5, 5, 6, 6)]
    >>> nearby_indexes(STRtree(boxes), boxes[0], 0, 0.01)
    [1]
    """
    found = tree.query(geom, predicate="dwithin", distance=2 * threshold)
    return sorted(int(other) for other in found if other != index)


def _stack_coords(coords: List[np.ndarray]) -> np.ndarray:
    return np.concatenate(coords) if len(coords) > 0 else np.empty((0, 2))


def _snap_polygon(
    polygon: Polygon, targets: np.ndarray, threshold: Number
) -> Tuple[Polygon, bool]:
    rings = []
    changed = False
    for ring_coords in _polygon_coords(polygon):
        snapped, ring_changed = snap_coords(ring_coords, targets, threshold)
        rings.append(LinearRing(snapped))
        changed = changed or ring_changed
    return Polygon(rings[0], rings[1:]), changed


@beartype
def snap_polygon_vertices(dataset: VectorDataset, threshold: Number) -> int:
    """
    Snap polygon vertices to near vertices of other polygons.

    Each part of a MultiPolygon is snapped separately. Only vertices of
    features near the snapped feature are snapping targets.

    Returns the number of changed features.
    """
    require_polygon_type(dataset, "polygon vertex snapping")
    original = dataset.geometry_list()
    tree = STRtree(original)
    changed_count = 0
    for index, geom in enumerate(original):
        if not isinstance(geom, (Polygon, MultiPolygon)):
            raise TypeError(
                f"Expected Polygon or MultiPolygon at feature {index} of {dataset.name}."
            )
        geometries = dataset.geometry_list()
        targets = _stack_coords(
            [
                coords
                for other_index in nearby_indexes(tree, geom, index, threshold)
                if isinstance(geometries[other_index], (Polygon, MultiPolygon))
                for part in _polygon_parts(geometries[other_index])
                for coords in _polygon_coords(part)
            ]
        )
        snapped_parts = [
            _snap_polygon(part, targets, threshold) for part in _polygon_parts(geom)
        ]
        if not any(changed for _, changed in snapped_parts):
            continue
        parts = [part for part, _ in snapped_parts]
        dataset.set_geometry(
            index, MultiPolygon(parts) if isinstance(geom, MultiPolygon) else parts[0]
        )
        changed_count += 1
        try:
            dataset.features()
        except ValueError as exc:
            raise ValueError(f"Unable to parse {dataset.name} after snapping.") from exc
    return changed_count


@beartype
def snap_line_nodes(dataset: VectorDataset, threshold: Number) -> int:
    """
    Snap line endpoints to near endpoints of other lines.

    Returns the number of changed features.
    """
    if not dataset.is_line_type():
        raise TypeError("Expected line type dataset for line node snapping.")
    original = dataset.geometry_list()
    tree = STRtree(original)
    changed_count = 0
    for index, line in enumerate(original):
        if not isinstance(line, LineString):
            raise TypeError(f"Expected LineString at feature {index} of {dataset.name}.")
        geometries = dataset.geometry_list()
        targets = _stack_coords(
            [
                _line_endpoints(geometries[other_index])
                for other_index in nearby_indexes(tree, line, index, threshold)
                if isinstance(geometries[other_index], LineString)
            ]
        )
        endpoints, changed = snap_coords(_line_endpoints(line), targets, threshold)
        if not changed:
            continue
        coords = np.asarray(line.coords)[:, :2].copy()
        coords[[0, -1]] = endpoints
        dataset.set_geometry(index, LineString(coords))
        changed_count += 1
        try:
            dataset.features()
        except ValueError as exc:
            raise ValueError(f"Unable to parse {dataset.name} after snapping.") from exc
    return changed_count


@beartype
def snap_vertices(dataset: VectorDataset, threshold: Number = DEFAULT_SNAP_THRESHOLD) -> int:
    """
    Snap near-coincident vertices of a line or polygon layer.
    """
    if dataset.is_line_type():
        return snap_line_nodes(dataset, threshold)
    if dataset.is_polygon_type():
        return snap_polygon_vertices(dataset, threshold)
    raise TypeError(
        f"Expected line or polygon type dataset for vertex snapping."
        f" Got geometry types: {sorted(dataset.geometry_types())}"
    )
