"""
Graph of linear network elements such as streams, ditches or roads.

Lines are never split or merged. The graph only records the nodes at line
endpoints so that connected lines can be looked up.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import geopandas as gpd
import networkx as nx
from shapely.geometry import GeometryCollection, LineString, MultiLineString

from landtopo.general import SELF_ID_COLUMN, Attributes, PointTuple
from landtopo.graph.entities import LineEntity
from landtopo.graph.polygon_graph import feature_attributes, resolve_self_ids

log = logging.getLogger(__name__)


def resolve_line(geom: Any, identifier: Any) -> LineString:
    """
    Resolve input geometry to a single LineString.

    >>> resolve_line(MultiLineString([[(0, 0), (1, 1)]]), 1).wkt
    'LINESTRING (0 0, 1 1)'
    """
    if isinstance(geom, MultiLineString) and len(geom.geoms) == 1:
        geom = geom.geoms[0]
    if not isinstance(geom, LineString):
        raise TypeError(
            f"Expected LineString geometry for feature {identifier}."
            f" Got: {type(geom).__name__}"
        )
    return geom


@dataclass
class LineStringGraph:
    """
    Directed graph of line entities.

    Each line is an arc from its start node to its end node keyed by the
    identifier of the line.
    """

    crs: Any = None

    def __post_init__(self):
        """
        Initialize private attributes.
        """
        self.node_graph = nx.MultiDiGraph()
        self._entities: List[LineEntity] = []
        self._entities_by_id: Dict[int, LineEntity] = {}

    def __len__(self) -> int:
        """
        Get number of lines.
        """
        return len(self._entities)

    @property
    def size(self) -> int:
        """
        Get number of lines.
        """
        return len(self)

    @classmethod
    def from_geodataframe(
        cls, geodata: gpd.GeoDataFrame, id_column: str = SELF_ID_COLUMN
    ) -> "LineStringGraph":
        """
        Build graph from line features of a GeoDataFrame.
        """
        if not isinstance(geodata, gpd.GeoDataFrame):
            raise TypeError("Expected GeoDataFrame as input.")
        geometry_column = geodata.geometry.name
        self_ids = resolve_self_ids(geodata, id_column)
        log.info(
            "Building line graph.",
            extra=dict(feature_count=geodata.shape[0], id_column=id_column),
        )
        graph = cls(crs=geodata.crs)
        for self_id, (_, row) in zip(self_ids, geodata.iterrows()):
            graph.add_line(
                resolve_line(row[geometry_column], self_id),
                attributes=feature_attributes(row, geometry_column),
                self_id=self_id,
            )
        return graph

    @classmethod
    def from_vector_dataset(
        cls, dataset, id_column: str = SELF_ID_COLUMN
    ) -> "LineStringGraph":
        """
        Build graph from a line ``VectorDataset``.
        """
        if not dataset.is_line_type():
            raise TypeError(f"Expected line type dataset. Got: {dataset.name}")
        return cls.from_geodataframe(dataset.geodata, id_column=id_column)

    def add_line(
        self,
        line: LineString,
        attributes: Optional[Attributes] = None,
        self_id: Optional[int] = None,
    ) -> LineEntity:
        """
        Add line as a new entity.
        """
        if self_id is None:
            self_id = max(self._entities_by_id, default=0) + 1
        if self_id in self._entities_by_id:
            raise ValueError(f"Line with identifier {self_id} already exists.")
        entity = LineEntity(
            self_id=self_id,
            geometry=resolve_line(line, self_id),
            attributes=dict(attributes) if attributes is not None else {},
        )
        self.node_graph.add_edge(entity.start_node, entity.end_node, key=self_id)
        self._entities.append(entity)
        self._entities_by_id[self_id] = entity
        return entity

    @property
    def entities(self) -> List[LineEntity]:
        """
        Get lines in insertion order.
        """
        return list(self._entities)

    def get_entity(self, self_id: int) -> Optional[LineEntity]:
        """
        Get line by identifier or None if it does not exist.
        """
        return self._entities_by_id.get(self_id)

    def self_id_ordered_entities(self) -> List[LineEntity]:
        """
        Get lines ordered by identifier.
        """
        return [self._entities_by_id[self_id] for self_id in sorted(self._entities_by_id)]

    @property
    def geometries(self) -> GeometryCollection:
        """
        Get all lines as a single collection.
        """
        return GeometryCollection([entity.line for entity in self._entities])

    def node_degree(self, coord: PointTuple) -> int:
        """
        Get number of line endpoints at a node.
        """
        if coord not in self.node_graph:
            return 0
        return self.node_graph.degree(coord)

    def downstream_entities(self, entity: LineEntity) -> List[LineEntity]:
        """
        Get lines starting at the end node of the line.
        """
        return [
            self._entities_by_id[key]
            for _, _, key in self.node_graph.out_edges(entity.end_node, keys=True)
        ]

    def upstream_entities(self, entity: LineEntity) -> List[LineEntity]:
        """
        Get lines ending at the start node of the line.
        """
        return [
            self._entities_by_id[key]
            for _, _, key in self.node_graph.in_edges(entity.start_node, keys=True)
        ]
