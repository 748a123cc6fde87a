"""
Topology graph builder for polygon layers.

``PolygonGraph`` is the main entrypoint. Polygons are inserted one at a time
and every boundary segment shared between the new polygon and an already
inserted polygon is materialized as a single edge referenced by both faces.
The boundary of the already inserted face is re-split so that the edges of
every face match its neighbours after each insertion.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

import geopandas as gpd
import networkx as nx
import pandas as pd
from shapely.geometry import LineString, MultiLineString, MultiPolygon, Point, Polygon
from shapely.ops import unary_union

from landtopo.general import (
    COMMON_LENGTH_COLUMN,
    DEGREE_COLUMN,
    EDGE_ID_COLUMN,
    FACES_COLUMN,
    GEOMETRY_COLUMN,
    LENGTH_COLUMN,
    NEIGHBOUR_ID_COLUMN,
    SELF_ID_COLUMN,
    Attributes,
    PointTuple,
    TopologyError,
    merge_to_lines,
    remove_repeated_coords,
    validity_reason,
)
from landtopo.graph.entities import AreaEntity, Edge, LandEntity

log = logging.getLogger(__name__)

# Face with its edges and the face references of each edge
FaceState = Tuple[AreaEntity, List[Tuple[Edge, List[int]]]]


def resolve_polygon(geom: Any, identifier: Any) -> Polygon:
    """
    Resolve input geometry to a single Polygon.

    Single-part MultiPolygons are accepted.

    >>> resolve_polygon(MultiPolygon([Polygon([(0, 0), (1, 0), (1, 1)])]), 1).wkt
    'POLYGON ((0 0, 1 0, 1 1, 0 0))'
    """
    if isinstance(geom, MultiPolygon) and len(geom.geoms) == 1:
        geom = geom.geoms[0]
    if not isinstance(geom, Polygon):
        raise TypeError(
            f"Expected Polygon geometry for feature {identifier}."
            f" Got: {type(geom).__name__}"
        )
    return geom


def resolve_self_ids(geodata: gpd.GeoDataFrame, id_column: str) -> List[int]:
    """
    Resolve identifiers from a column or from a sequence starting at 1.
    """
    if id_column in geodata.columns:
        self_ids = [int(value) for value in geodata[id_column]]
    else:
        log.info(f"No {id_column} column in input. Using a sequence starting at 1.")
        self_ids = list(range(1, geodata.shape[0] + 1))
    if len(set(self_ids)) != len(self_ids):
        raise ValueError(f"Expected unique values in {id_column} column.")
    return self_ids


def feature_attributes(row: pd.Series, geometry_column: str) -> Attributes:
    """
    Get attributes of a GeoDataFrame row without the geometry.
    """
    return row.drop(labels=[geometry_column]).to_dict()


@dataclass
class PolygonGraph:
    """
    Planar graph of faces, edges and nodes built from polygons.

    The graph owns all edges in ``edge_arena`` and all nodes in
    ``node_graph``. Nodes are keyed by exact coordinate and each edge is
    represented by two opposing arcs keyed by ``(edge_id, forward)``.

    The graph supports a single writer. Queries are valid once construction
    has finished.
    """

    crs: Any = None

    def __post_init__(self):
        """
        Initialize private attributes.
        """
        self.edge_arena: Dict[int, Edge] = {}
        self.node_graph = nx.MultiDiGraph()
        self.invalid_ids: Set[int] = set()
        self._entities: List[AreaEntity] = []
        self._entities_by_id: Dict[int, AreaEntity] = {}
        self._last_edge_id = 0

    def __len__(self) -> int:
        """
        Get number of faces.
        """
        return len(self._entities)

    @property
    def size(self) -> int:
        """
        Get number of faces.
        """
        return len(self)

    @classmethod
    def from_geodataframe(
        cls, geodata: gpd.GeoDataFrame, id_column: str = SELF_ID_COLUMN
    ) -> "PolygonGraph":
        """
        Build graph from polygon features of a GeoDataFrame.

        Identifiers are read from ``id_column`` or assigned from a sequence
        starting at 1 when the column does not exist.
        """
        if not isinstance(geodata, gpd.GeoDataFrame):
            raise TypeError("Expected GeoDataFrame as input.")
        geometry_column = geodata.geometry.name
        self_ids = resolve_self_ids(geodata, id_column)
        log.info(
            "Building polygon graph.",
            extra=dict(feature_count=geodata.shape[0], id_column=id_column),
        )
        graph = cls(crs=geodata.crs)
        for self_id, (_, row) in zip(self_ids, geodata.iterrows()):
            polygon = resolve_polygon(row[geometry_column], self_id)
            graph.add_polygon(
                polygon,
                attributes=feature_attributes(row, geometry_column),
                self_id=self_id,
            )
        graph.remove_unused_nodes()
        return graph

    @classmethod
    def from_vector_dataset(
        cls, dataset, id_column: str = SELF_ID_COLUMN
    ) -> "PolygonGraph":
        """
        Build graph from a polygon ``VectorDataset``.
        """
        if not dataset.is_polygon_type():
            raise TypeError(f"Expected polygon type dataset. Got: {dataset.name}")
        return cls.from_geodataframe(dataset.geodata, id_column=id_column)

    @classmethod
    def from_entities(
        cls, entities: Iterable[LandEntity], crs: Any = None
    ) -> "PolygonGraph":
        """
        Build graph from existing entities.

        Geometries, identifiers and attributes are reused. Edges are rebuilt.
        """
        graph = cls(crs=crs)
        for entity in entities:
            polygon = resolve_polygon(entity.geometry, entity.self_id)
            graph.add_polygon(
                polygon, attributes=dict(entity.attributes), self_id=entity.self_id
            )
        graph.remove_unused_nodes()
        return graph

    def copy(self) -> "PolygonGraph":
        """
        Get a new graph built from the faces of this graph.
        """
        return self.from_entities(self.self_id_ordered_entities(), crs=self.crs)

    def next_self_id(self) -> int:
        """
        Get next free identifier of the sequence starting at 1.
        """
        if len(self._entities_by_id) == 0:
            return 1
        return max(self._entities_by_id) + 1

    def add_polygon(
        self,
        polygon: Polygon,
        attributes: Optional[Attributes] = None,
        self_id: Optional[int] = None,
    ) -> AreaEntity:
        """
        Insert polygon as a new face.

        Invalid polygons are inserted with a warning and their identifiers
        are collected to ``invalid_ids``. A ``TopologyError`` aborts the
        insertion, the face is not registered and the edges of the existing
        faces are restored.
        """
        if self_id is None:
            self_id = self.next_self_id()
        polygon = resolve_polygon(polygon, self_id)
        if self_id in self._entities_by_id:
            raise ValueError(f"Face with identifier {self_id} already exists.")

        face = AreaEntity(
            self_id=self_id,
            geometry=polygon,
            attributes=dict(attributes) if attributes is not None else {},
            edge_arena=self.edge_arena,
        )
        reason = validity_reason(polygon)
        if reason is not None:
            log.warning(
                f"Polygon {self_id} is not valid: {reason}."
                " It is inserted but its edges might not be complete."
            )

        adjacent: List[Tuple[AreaEntity, List[LineString]]] = []
        for other in self._entities:
            lines = face.compute_line_intersections_with(other)
            if len(lines) > 0:
                adjacent.append((other, lines))

        states = self._face_states([other for other, _ in adjacent])
        last_edge_id = self._last_edge_id
        try:
            shared_lines = self._insert_edges(face, adjacent)
        except ValueError:
            self._restore_face_states(states, last_edge_id)
            log.error(f"Insertion of face {self_id} failed. Restored existing faces.")
            raise

        self._entities.append(face)
        self._entities_by_id[self_id] = face
        if reason is not None:
            self.invalid_ids.add(self_id)
        self.remove_unused_nodes()
        log.debug(
            f"Inserted face {self_id} with {len(face.edge_ids)} edges"
            f" of which {len(shared_lines)} shared."
        )
        return face

    def _insert_edges(
        self, face: AreaEntity, adjacent: List[Tuple[AreaEntity, List[LineString]]]
    ) -> List[LineString]:
        shared_lines: List[LineString] = []
        for other, lines in adjacent:
            for line in lines:
                edge = self.create_edge(line)
                if edge is None:
                    continue
                face.attach_edge(edge)
                other.attach_edge(edge)
                self.remove_segment(other, line, ignore=edge.edge_id)
                shared_lines.append(line)

        if len(shared_lines) == 0:
            remainder = face.exterior_line
        else:
            remainder = face.exterior_line.difference(unary_union(shared_lines))
        for line in merge_to_lines(remainder):
            edge = self.create_edge(line)
            if edge is not None:
                face.attach_edge(edge)
        return shared_lines

    def _face_states(self, faces: List[AreaEntity]) -> List[FaceState]:
        """
        Capture edges and edge face references of faces and their neighbours.
        """
        captured: Dict[int, AreaEntity] = {}
        for face in faces:
            captured[face.self_id] = face
            for edge in face.edges:
                for face_id in edge.face_ids:
                    neighbour = self._entities_by_id.get(face_id)
                    if neighbour is not None:
                        captured.setdefault(face_id, neighbour)
        return [
            (face, [(edge, list(edge.face_ids)) for edge in face.edges])
            for face in captured.values()
        ]

    def _restore_face_states(self, states: List[FaceState], last_edge_id: int):
        """
        Remove edges created after ``last_edge_id`` and restore captured faces.
        """
        for edge in [
            edge for edge in self.edge_arena.values() if edge.edge_id > last_edge_id
        ]:
            self._discard_edge(edge)
        for face, edge_states in states:
            for edge, face_ids in edge_states:
                if edge.edge_id not in self.edge_arena:
                    self._register_edge(edge)
                edge.face_ids = list(face_ids)
            face.edge_ids = [edge.edge_id for edge, _ in edge_states]
            face.invalidate()
        self.remove_unused_nodes()

    def create_edge(self, line: LineString) -> Optional[Edge]:
        """
        Create edge and its nodes and arcs from a line.

        Returns None for lines without two distinct coordinates.
        """
        coords = remove_repeated_coords(line.coords)
        if len(coords) < 2:
            log.debug(f"Skipping degenerate edge line {line.wkt}.")
            return None
        self._last_edge_id += 1
        edge = Edge(edge_id=self._last_edge_id, line=LineString(coords))
        self._register_edge(edge)
        return edge

    def _register_edge(self, edge: Edge):
        self.edge_arena[edge.edge_id] = edge
        for arc in edge.arcs:
            self.node_graph.add_edge(
                arc.source, arc.target, key=(edge.edge_id, arc.forward), arc=arc
            )

    def _discard_edge(self, edge: Edge):
        for arc in edge.arcs:
            self.node_graph.remove_edge(
                arc.source, arc.target, key=(edge.edge_id, arc.forward)
            )
        del self.edge_arena[edge.edge_id]

    def remove_edge(self, edge: Edge):
        """
        Remove edge, its arcs and its face references from the graph.
        """
        for face_id in list(edge.face_ids):
            face = self._entities_by_id.get(face_id)
            if face is None:
                edge.remove_face(face_id)
                continue
            log.warning(
                f"Removing edge {edge.edge_id} still referenced by face {face_id}."
            )
            face.detach_edge(edge)
        self._discard_edge(edge)

    def remove_segment(
        self, face: AreaEntity, segment: LineString, ignore: Optional[int] = None
    ):
        """
        Remove the part of the face boundary that coincides with segment.

        Every old edge of the face overlapping the segment is replaced with
        edges built from its remainder. The edge with identifier ``ignore``
        is left untouched.
        """
        old_edge = face.find_edge_line_intersecting_with(segment, ignore=ignore)
        if old_edge is None:
            raise TopologyError(
                f"Could not find edge of face {face.self_id} intersecting"
                f" segment {segment.wkt}."
            )
        while old_edge is not None:
            self._split_edge(face, old_edge, segment)
            old_edge = face.find_edge_line_intersecting_with(segment, ignore=ignore)

    def _split_edge(self, face: AreaEntity, old_edge: Edge, segment: LineString):
        difference = old_edge.line.difference(segment)
        if not difference.is_empty and not isinstance(
            difference, (LineString, MultiLineString)
        ):
            raise TopologyError(
                f"Expected line difference for edge {old_edge.edge_id} of face"
                f" {face.self_id}. Got: {difference.geom_type}.\n{difference.wkt}"
            )
        for line in merge_to_lines(difference):
            edge = self.create_edge(line)
            if edge is not None:
                face.attach_edge(edge)
        face.detach_edge(old_edge)
        self.remove_edge(old_edge)

    def remove_unused_nodes(self) -> int:
        """
        Remove nodes without arcs.
        """
        unused = list(nx.isolates(self.node_graph))
        self.node_graph.remove_nodes_from(unused)
        return len(unused)

    @property
    def entities(self) -> List[AreaEntity]:
        """
        Get faces in insertion order.
        """
        return list(self._entities)

    @property
    def entities_by_self_id(self) -> Dict[int, AreaEntity]:
        """
        Get faces by identifier.
        """
        return dict(self._entities_by_id)

    def get_entity(self, self_id: int) -> Optional[AreaEntity]:
        """
        Get face by identifier or None if it does not exist.
        """
        return self._entities_by_id.get(self_id)

    def self_id_ordered_entities(self) -> List[AreaEntity]:
        """
        Get faces ordered by identifier.
        """
        return [self._entities_by_id[self_id] for self_id in sorted(self._entities_by_id)]

    def is_complete(self) -> bool:
        """
        Do the edges of every face reconstruct the face exterior ring.
        """
        return all(face.is_complete() for face in self._entities)

    @property
    def edges(self) -> List[Edge]:
        """
        Get all edges.
        """
        return list(self.edge_arena.values())

    def get_edge(self, edge_id: int) -> Optional[Edge]:
        """
        Get edge by identifier or None if it does not exist.
        """
        return self.edge_arena.get(edge_id)

    @property
    def nodes(self) -> List[PointTuple]:
        """
        Get node coordinates.
        """
        return list(self.node_graph.nodes)

    def node_degree(self, coord: PointTuple) -> int:
        """
        Get number of edge endpoints at a node.
        """
        if coord not in self.node_graph:
            return 0
        return self.node_graph.out_degree(coord)

    def add_attribute(self, name: str, default: Any = None):
        """
        Add attribute to every face that does not have it.
        """
        for face in self._entities:
            face.attributes.setdefault(name, default)

    def remove_attribute(self, name: str):
        """
        Remove attribute from every face.
        """
        for face in self._entities:
            face.attributes.pop(name, None)

    def neighbour_dataframe(self) -> pd.DataFrame:
        """
        Get neighbour relations with common boundary lengths.
        """
        records = []
        for face in self.self_id_ordered_entities():
            for neighbour_id in face.ordered_neighbour_ids():
                records.append(
                    {
                        SELF_ID_COLUMN: face.self_id,
                        NEIGHBOUR_ID_COLUMN: neighbour_id,
                        COMMON_LENGTH_COLUMN: float(
                            sum(edge.length for edge in face.neighbours_map[neighbour_id])
                        ),
                    }
                )
        return pd.DataFrame(
            records,
            columns=[SELF_ID_COLUMN, NEIGHBOUR_ID_COLUMN, COMMON_LENGTH_COLUMN],
        )

    def to_geodataframes(
        self,
    ) -> Tuple[gpd.GeoDataFrame, gpd.GeoDataFrame, gpd.GeoDataFrame]:
        """
        Get faces, edges and nodes as GeoDataFrames.
        """
        faces = self.self_id_ordered_entities()
        face_records = [
            {**face.attributes, SELF_ID_COLUMN: face.self_id} for face in faces
        ]
        face_gdf = gpd.GeoDataFrame(
            pd.DataFrame(face_records, index=pd.RangeIndex(len(faces))),
            geometry=[face.polygon for face in faces],
            crs=self.crs,
        )

        edges = sorted(self.edge_arena.values(), key=lambda edge: edge.edge_id)
        edge_gdf = gpd.GeoDataFrame(
            {
                EDGE_ID_COLUMN: [edge.edge_id for edge in edges],
                FACES_COLUMN: [edge.faces for edge in edges],
                LENGTH_COLUMN: [edge.length for edge in edges],
                GEOMETRY_COLUMN: [edge.line for edge in edges],
            },
            geometry=GEOMETRY_COLUMN,
            crs=self.crs,
        )

        nodes = sorted(self.node_graph.nodes)
        node_gdf = gpd.GeoDataFrame(
            {
                DEGREE_COLUMN: [self.node_degree(node) for node in nodes],
                GEOMETRY_COLUMN: [Point(node) for node in nodes],
            },
            geometry=GEOMETRY_COLUMN,
            crs=self.crs,
        )
        return face_gdf, edge_gdf, node_gdf
