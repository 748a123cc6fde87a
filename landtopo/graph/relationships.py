"""
Classification of relationships between faces and line networks.

Line entities (e.g. streams or roads) are classified as neighbours of faces
by containment within, intersection with or sufficient contact with the
buffered face boundary. Barrier lines sever adjacency between faces and
directional lines define the downstream flow partner of a face.
"""
import logging
from enum import Enum, unique
from typing import NamedTuple

from beartype import beartype
from beartype.typing import Dict, List, Optional, Tuple
from shapely.geometry import Point, Polygon

from landtopo.general import (
    DEFAULT_BUFFER_DISTANCE,
    FLOW_END_TOLERANCE,
    Number,
    extract_lines,
    intersection_length,
    safe_buffer,
)
from landtopo.graph.entities import AreaEntity, Edge, LandEntity, LineEntity, LineNeighbour
from landtopo.graph.line_graph import LineStringGraph
from landtopo.graph.polygon_graph import PolygonGraph
from landtopo.repair.vector_dataset import VectorDataset

log = logging.getLogger(__name__)


@unique
class Relationship(Enum):
    """
    Relationships between a face and a line entity.
    """

    CONTAINS = "contains"
    INTERSECTS = "intersects"
    TOUCHES = "touches"


class FlowPartner(NamedTuple):
    """
    Downstream partner of a face and the flow path length to it.

    ``partner`` is None when the face has no downstream partner.
    """

    partner: Optional[LandEntity]
    flow_length: float


def check_contact_length(relation: Relationship, contact_length: Number):
    """
    Raise ValueError for TOUCHES without a positive contact length.

    >>> check_contact_length(Relationship.CONTAINS, 0)
    >>> try:
    ...     check_contact_length(Relationship.TOUCHES, 0)
    ... except ValueError as exc:
    ...     print(exc)
    ...
    Contact length must be greater than 0 for TOUCHES relationship.
    """
    if relation is Relationship.TOUCHES and not contact_length > 0:
        raise ValueError(
            "Contact length must be greater than 0 for TOUCHES relationship."
        )


def check_barrier_relation(relation: Relationship, contact_length: Number):
    """
    Raise ValueError for relationships not allowed for barriers.
    """
    check_contact_length(relation, contact_length)
    if relation is Relationship.INTERSECTS:
        raise ValueError("INTERSECTS relationship is not allowed for barriers.")


def edge_buffers(face: AreaEntity, buffer_distance: Number) -> List[Tuple[Edge, Polygon]]:
    """
    Get boundary edges of the face with their buffers.
    """
    return [(edge, safe_buffer(edge.line, buffer_distance)) for edge in face.edges]


def matching_edges(
    line_entity: LineEntity,
    relation: Relationship,
    boundary_buffer,
    buffers: List[Tuple[Edge, Polygon]],
    contact_length: Number,
) -> List[Edge]:
    """
    Get face edges the line is related to along the buffered boundary.

    Only CONTAINS and TOUCHES relate lines to specific edges.
    """
    line = line_entity.line
    if relation is Relationship.CONTAINS and line.within(boundary_buffer):
        return [edge for edge, buffer in buffers if line.within(buffer)]
    if relation is Relationship.TOUCHES and line.intersects(boundary_buffer):
        return [
            edge
            for edge, buffer in buffers
            if intersection_length(line, buffer) > contact_length
        ]
    return []


@beartype
def compute_line_string_neighbours(
    face: AreaEntity,
    line_graph: LineStringGraph,
    relation: Relationship,
    buffer_distance: Number = DEFAULT_BUFFER_DISTANCE,
    contact_length: Number = 0.0,
) -> Dict[int, LineNeighbour]:
    """
    Classify line entities as neighbours of the face.

    The line neighbours of the face are reset and then filled. With
    CONTAINS and TOUCHES the first matching edge of the face is recorded
    for each line.
    """
    check_contact_length(relation, contact_length)
    face.line_neighbours = {}
    boundary_buffer = face.buffered_boundary(buffer_distance)
    buffers = edge_buffers(face, buffer_distance)
    for line_entity in line_graph.entities:
        if relation is Relationship.INTERSECTS:
            if line_entity.line.intersects(boundary_buffer):
                face.line_neighbours.setdefault(
                    line_entity.self_id, LineNeighbour(line_entity, None)
                )
            continue
        for edge in matching_edges(
            line_entity, relation, boundary_buffer, buffers, contact_length
        ):
            face.line_neighbours.setdefault(
                line_entity.self_id, LineNeighbour(line_entity, edge.edge_id)
            )
    return dict(face.line_neighbours)


@beartype
def compute_neighbours_with_barriers(
    face: AreaEntity,
    line_graph: LineStringGraph,
    relation: Relationship,
    buffer_distance: Number = DEFAULT_BUFFER_DISTANCE,
    contact_length: Number = 0.0,
) -> List[int]:
    """
    Sever neighbour relations of the face along barrier lines.

    A neighbour is severed when a barrier line is related to the edge the
    face shares with it. Returns the remaining neighbour identifiers.
    """
    check_barrier_relation(relation, contact_length)
    boundary_buffer = face.buffered_boundary(buffer_distance)
    buffers = edge_buffers(face, buffer_distance)
    for line_entity in line_graph.entities:
        for edge in matching_edges(
            line_entity, relation, boundary_buffer, buffers, contact_length
        ):
            neighbour_id = face.neighbour_with_common_edge(edge)
            if neighbour_id is not None:
                log.debug(
                    f"Line {line_entity.self_id} severs face {face.self_id}"
                    f" from face {neighbour_id}."
                )
            face.sever_neighbour(neighbour_id)
    return face.ordered_neighbour_ids()


@beartype
def compute_graph_line_string_neighbours(
    graph: PolygonGraph,
    line_graph: LineStringGraph,
    relation: Relationship,
    buffer_distance: Number = DEFAULT_BUFFER_DISTANCE,
    contact_length: Number = 0.0,
) -> Dict[int, Dict[int, LineNeighbour]]:
    """
    Classify line neighbours of every face of the graph.
    """
    check_contact_length(relation, contact_length)
    log.info(
        "Classifying line neighbours.",
        extra=dict(
            relation=relation.value,
            buffer_distance=buffer_distance,
            contact_length=contact_length,
        ),
    )
    return {
        face.self_id: compute_line_string_neighbours(
            face, line_graph, relation, buffer_distance, contact_length
        )
        for face in graph.entities
    }


@beartype
def compute_graph_neighbours_with_barriers(
    graph: PolygonGraph,
    line_graph: LineStringGraph,
    relation: Relationship,
    buffer_distance: Number = DEFAULT_BUFFER_DISTANCE,
    contact_length: Number = 0.0,
) -> Dict[int, List[int]]:
    """
    Sever neighbour relations of every face of the graph along barriers.
    """
    check_barrier_relation(relation, contact_length)
    log.info(
        "Severing neighbours along barriers.",
        extra=dict(
            relation=relation.value,
            buffer_distance=buffer_distance,
            contact_length=contact_length,
        ),
    )
    return {
        face.self_id: compute_neighbours_with_barriers(
            face, line_graph, relation, buffer_distance, contact_length
        )
        for face in graph.entities
    }


@beartype
def compute_neighbour_by_line_topology(
    graph: PolygonGraph, face: AreaEntity, line_dataset: VectorDataset
) -> FlowPartner:
    """
    Find the downstream partner of the face along a directional line network.

    The first line starting within the face is followed. A neighbour face
    covering the line end point is the partner and the flow length is the
    line length. Otherwise a line neighbour of the face crossed by the line
    is the partner and the flow length is the length of the line part from
    the face to the line neighbour.
    """
    if not line_dataset.is_line_type():
        raise TypeError(
            f"Expected line type dataset for flow topology. Got: {line_dataset.name}"
        )
    no_partner = FlowPartner(None, 0.0)
    lines = extract_lines(line_dataset.geometries())
    polygon = face.polygon
    if not any(polygon.intersects(line) for line in lines):
        return no_partner

    source_line = next(
        (line for line in lines if polygon.covers(Point(line.coords[0]))), None
    )
    if source_line is None:
        return no_partner

    end_point = Point(source_line.coords[-1])
    for neighbour_id in face.ordered_neighbour_ids():
        neighbour = graph.get_entity(neighbour_id)
        if neighbour is None or neighbour_id == face.self_id:
            continue
        if neighbour.polygon.covers(end_point):
            return FlowPartner(neighbour, source_line.length)

    for line_neighbour in face.line_neighbours.values():
        neighbour_line = line_neighbour.entity.line
        if not neighbour_line.intersects(source_line):
            continue
        flow_length = 0.0
        for part in extract_lines(source_line.difference(neighbour_line)):
            part_end = Point(part.coords[-1])
            if part_end.distance(neighbour_line) <= FLOW_END_TOLERANCE and polygon.covers(
                Point(part.coords[0])
            ):
                flow_length = part.length
        return FlowPartner(line_neighbour.entity, flow_length)

    return no_partner


@beartype
def compute_graph_flow_partners(
    graph: PolygonGraph, line_dataset: VectorDataset
) -> Dict[int, FlowPartner]:
    """
    Find the downstream partner of every face of the graph.
    """
    return {
        face.self_id: compute_neighbour_by_line_topology(graph, face, line_dataset)
        for face in graph.self_id_ordered_entities()
    }
