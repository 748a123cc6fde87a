"""
Entities and edges of landscape graphs.

Faces (``AreaEntity``) and linear network elements (``LineEntity``) share the
``LandEntity`` capability set of geometry, attributes and identifier. Edges
are owned by the edge arena of a graph and faces refer to them by integer
handle.

Entities are not safe for concurrent mutation. Cached neighbour state is
invalidated whenever the edges of a face change and recomputed on the next
read which requires a single writer per graph.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum, unique
from typing import ClassVar, Dict, List, NamedTuple, Optional, Set, Tuple, Union

from shapely.geometry import LineString, MultiLineString, MultiPolygon, Polygon
from shapely.geometry.base import BaseGeometry

from landtopo.general import (
    LINE_OVERLAP_PATTERN,
    SHARED_BOUNDARY_PATTERN,
    Attributes,
    PointTuple,
    coordinate_key,
    merge_to_lines,
)

log = logging.getLogger(__name__)


@unique
class EntityKind(Enum):
    """
    Kinds of landscape entities.
    """

    AREA = "area"
    LINE = "line"


@dataclass(frozen=True)
class DirectedArc:
    """
    One of the two opposing arcs of an edge.

    The direction point is the coordinate next to the source node along the
    edge line.
    """

    edge_id: int
    source: PointTuple
    target: PointTuple
    direction_point: PointTuple
    forward: bool


@dataclass
class Edge:
    """
    Boundary segment bounding one face or shared by two faces.
    """

    edge_id: int
    line: LineString
    face_ids: List[int] = field(default_factory=list)

    def __post_init__(self):
        """
        Check that the line is a usable edge geometry.
        """
        if not isinstance(self.line, LineString) or len(self.line.coords) < 2:
            raise TypeError(
                f"Expected LineString with at least two coordinates for edge {self.edge_id}."
            )

    @property
    def start_node(self) -> PointTuple:
        """
        Get coordinate of the start node.
        """
        return coordinate_key(self.line.coords[0])

    @property
    def end_node(self) -> PointTuple:
        """
        Get coordinate of the end node.
        """
        return coordinate_key(self.line.coords[-1])

    @property
    def length(self) -> float:
        """
        Get length of the edge line.
        """
        return self.line.length

    @property
    def faces(self) -> Tuple[int, ...]:
        """
        Get identifiers of the faces the edge bounds.
        """
        return tuple(self.face_ids)

    @property
    def is_shared(self) -> bool:
        """
        Is the edge shared by two faces.
        """
        return len(self.face_ids) == 2

    @property
    def arcs(self) -> Tuple[DirectedArc, DirectedArc]:
        """
        Get the two opposing arcs of the edge.
        """
        coords = self.line.coords
        return (
            DirectedArc(
                edge_id=self.edge_id,
                source=self.start_node,
                target=self.end_node,
                direction_point=coordinate_key(coords[1]),
                forward=True,
            ),
            DirectedArc(
                edge_id=self.edge_id,
                source=self.end_node,
                target=self.start_node,
                direction_point=coordinate_key(coords[-2]),
                forward=False,
            ),
        )

    def add_face(self, face_id: int):
        """
        Record a face back-reference.

        An edge can bound at most two faces.
        """
        if face_id in self.face_ids:
            return
        if len(self.face_ids) >= 2:
            raise ValueError(
                f"Edge {self.edge_id} already bounds faces {self.face_ids}."
                f" Cannot add face {face_id}."
            )
        self.face_ids.append(face_id)

    def remove_face(self, face_id: int):
        """
        Remove a face back-reference.
        """
        if face_id in self.face_ids:
            self.face_ids.remove(face_id)

    def other_face(self, face_id: int) -> Optional[int]:
        """
        Get the identifier of the other face bounded by the edge.

        >>> edge = Edge(1, LineString([(0, 0), (1, 0)]), [3, 5])
        >>> edge.other_face(3), edge.other_face(5)
        (5, 3)
        """
        others = [other for other in self.face_ids if other != face_id]
        if len(others) == 0 or face_id not in self.face_ids:
            return None
        return others[0]

    def shares_endpoint_with(self, other: "Edge") -> bool:
        """
        Do the edges share at least one endpoint.
        """
        return bool(
            {self.start_node, self.end_node} & {other.start_node, other.end_node}
        )

    def is_coincident(self, other: "Edge") -> bool:
        """
        Do the edges share both endpoints in either orientation.

        >>> first = Edge(1, LineString([(0, 0), (1, 1), (2, 0)]))
        >>> second = Edge(2, LineString([(2, 0), (1, -1), (0, 0)]))
        >>> first.is_coincident(second)
        True
        """
        return {self.start_node, self.end_node} == {other.start_node, other.end_node}


@dataclass
class LandEntity:
    """
    Base of all landscape entities.

    Attribute values can be read freely but only existing attributes can be
    written to. New attributes are added through the graph.
    """

    self_id: int
    geometry: BaseGeometry
    attributes: Attributes = field(default_factory=dict)

    kind: ClassVar[EntityKind]

    def get_attribute_value(self, name: str):
        """
        Get attribute value or None if the attribute does not exist.
        """
        return self.attributes.get(name)

    def set_attribute_value(self, name: str, value) -> bool:
        """
        Set value of an existing attribute.

        Returns False if the attribute does not exist.
        """
        if name not in self.attributes:
            return False
        self.attributes[name] = value
        return True


@dataclass
class LineEntity(LandEntity):
    """
    Linear network element such as a stream or road segment.
    """

    kind = EntityKind.LINE

    def __post_init__(self):
        """
        Check geometry type.
        """
        if not isinstance(self.geometry, LineString):
            raise TypeError(
                f"Expected LineString geometry for line entity {self.self_id}."
                f" Got: {self.geometry.geom_type}"
            )

    @property
    def line(self) -> LineString:
        """
        Get the line geometry.
        """
        assert isinstance(self.geometry, LineString)
        return self.geometry

    @property
    def start_node(self) -> PointTuple:
        """
        Get coordinate of the line start point.
        """
        return coordinate_key(self.line.coords[0])

    @property
    def end_node(self) -> PointTuple:
        """
        Get coordinate of the line end point.
        """
        return coordinate_key(self.line.coords[-1])


class LineNeighbour(NamedTuple):
    """
    Line entity classified as a neighbour of a face.

    ``edge_id`` is the face edge the line follows or None when the
    relationship does not concern a specific edge.
    """

    entity: LineEntity
    edge_id: Optional[int]


@dataclass
class AreaEntity(LandEntity):
    """
    Face of a polygon graph.

    Edges are resolved through ``edge_arena`` which is owned by the graph
    that created the face.
    """

    edge_arena: Dict[int, Edge] = field(default_factory=dict, repr=False)

    kind = EntityKind.AREA

    def __post_init__(self):
        """
        Initialize private attributes used for caching.
        """
        if not isinstance(self.geometry, Polygon):
            raise TypeError(
                f"Expected Polygon geometry for area entity {self.self_id}."
                f" Got: {self.geometry.geom_type}"
            )
        self.edge_ids: List[int] = []
        # Line entity id -> classified line neighbour
        self.line_neighbours: Dict[int, LineNeighbour] = {}
        self._neighbours_map: Optional[Dict[int, List[Edge]]] = None
        self._severed_ids: Set[int] = set()

    @property
    def polygon(self) -> Polygon:
        """
        Get the polygon geometry.
        """
        assert isinstance(self.geometry, Polygon)
        return self.geometry

    @property
    def exterior_line(self) -> LineString:
        """
        Get the exterior ring as a LineString.
        """
        return LineString(self.polygon.exterior.coords)

    @property
    def edges(self) -> List[Edge]:
        """
        Get boundary edges in attachment order.
        """
        return [self.edge_arena[edge_id] for edge_id in self.edge_ids]

    def invalidate(self):
        """
        Invalidate cached neighbour state.
        """
        self._neighbours_map = None
        self.line_neighbours = {}

    def attach_edge(self, edge: Edge):
        """
        Attach edge to the face boundary.
        """
        if self.edge_arena.get(edge.edge_id) is not edge:
            raise ValueError(
                f"Edge {edge.edge_id} is not owned by the graph of face {self.self_id}."
            )
        edge.add_face(self.self_id)
        if edge.edge_id not in self.edge_ids:
            self.edge_ids.append(edge.edge_id)
        self.invalidate()

    def detach_edge(self, edge: Edge):
        """
        Detach edge from the face boundary.

        Detaching an edge that is not part of the boundary is a contract
        violation.
        """
        if edge.edge_id not in self.edge_ids:
            raise ValueError(
                f"Edge {edge.edge_id} is not an edge of face {self.self_id}."
            )
        self.edge_ids.remove(edge.edge_id)
        edge.remove_face(self.self_id)
        self.invalidate()

    def is_complete(self) -> bool:
        """
        Do the boundary edges reconstruct the exterior ring.
        """
        merged = merge_to_lines(
            MultiLineString([edge.line for edge in self.edges])
        )
        if len(merged) != 1:
            return False
        return merged[0].equals(self.exterior_line)

    def find_edge_line_intersecting_with(
        self, segment: LineString, ignore: Optional[int] = None
    ) -> Optional[Edge]:
        """
        Find first boundary edge whose line overlaps the segment along a line.
        """
        for edge in self.edges:
            if edge.edge_id == ignore:
                continue
            if edge.line.relate_pattern(segment, LINE_OVERLAP_PATTERN):
                return edge
        return None

    def compute_line_intersections_with(self, other: "AreaEntity") -> List[LineString]:
        """
        Get the shared boundary lines of two faces.

        Returns an empty list if the interiors of the faces are not disjoint
        or if the boundaries do not share a line.
        """
        if not self.polygon.relate_pattern(other.polygon, SHARED_BOUNDARY_PATTERN):
            return []
        return merge_to_lines(self.exterior_line.intersection(other.exterior_line))

    def compute_neighbours(self):
        """
        Compute the neighbour map from shared boundary edges.
        """
        neighbours_map: Dict[int, List[Edge]] = {}
        for edge in self.edges:
            other_id = edge.other_face(self.self_id)
            if other_id is None or other_id in self._severed_ids:
                continue
            neighbours_map.setdefault(other_id, []).append(edge)
        self._neighbours_map = neighbours_map

    @property
    def neighbours_map(self) -> Dict[int, List[Edge]]:
        """
        Get neighbour face identifiers mapped to shared edges.
        """
        if self._neighbours_map is None:
            self.compute_neighbours()
        if self._neighbours_map is not None:
            return self._neighbours_map
        raise TypeError("Expected self._neighbours_map to not be None.")

    def ordered_neighbour_ids(self) -> List[int]:
        """
        Get sorted identifiers of neighbour faces.
        """
        return sorted(self.neighbours_map)

    def sever_neighbour(self, neighbour_id: Optional[int]):
        """
        Remove a neighbour relation.

        The relation stays removed when the neighbour map is recomputed.
        """
        if neighbour_id is None:
            return
        self._severed_ids.add(neighbour_id)
        self.neighbours_map.pop(neighbour_id, None)

    @property
    def severed_ids(self) -> Set[int]:
        """
        Get identifiers of neighbours severed by barriers.
        """
        return set(self._severed_ids)

    def common_edges_with(self, other: "AreaEntity") -> List[Edge]:
        """
        Get edges shared with another face.
        """
        return list(self.neighbours_map.get(other.self_id, []))

    def common_boundary_length_with(self, other: "AreaEntity") -> float:
        """
        Get length of the boundary shared with another face.
        """
        return float(sum(edge.length for edge in self.common_edges_with(other)))

    def neighbour_with_common_edge(self, edge: Edge) -> Optional[int]:
        """
        Get the identifier of the neighbour sharing the edge.
        """
        for neighbour_id, edges in self.neighbours_map.items():
            if any(shared.edge_id == edge.edge_id for shared in edges):
                return neighbour_id
        return None

    def ordered_neighbours_by_boundary_length(self) -> List[Tuple[float, int]]:
        """
        Get neighbours with shared boundary lengths, shortest first.
        """
        return sorted(
            (float(sum(edge.length for edge in edges)), neighbour_id)
            for neighbour_id, edges in self.neighbours_map.items()
        )

    def buffered_boundary(self, distance: float) -> Union[Polygon, MultiPolygon]:
        """
        Get buffered polygon boundary.
        """
        return self.polygon.boundary.buffer(distance)

    @staticmethod
    def merge_edges(edge: Edge, other: Edge) -> LineString:
        """
        Join the lines of two edges sharing an endpoint.

        >>> first = Edge(1, LineString([(0, 0), (1, 0)]))
        >>> second = Edge(2, LineString([(2, 0), (1, 0)]))
        >>> AreaEntity.merge_edges(first, second).wkt
        'LINESTRING (0 0, 1 0, 2 0)'
        """
        if not edge.shares_endpoint_with(other):
            raise ValueError(
                f"Edges {edge.edge_id} and {other.edge_id} do not share an endpoint."
            )
        coords = list(edge.line.coords)
        other_coords = list(other.line.coords)
        if edge.end_node == other.start_node:
            merged = coords + other_coords[1:]
        elif edge.start_node == other.end_node:
            merged = other_coords + coords[1:]
        elif edge.end_node == other.end_node:
            merged = coords + other_coords[::-1][1:]
        else:
            merged = other_coords[::-1] + coords[1:]
        return LineString(merged)
