"""
In-memory feature layer used by topology repair and graph construction.

``VectorDataset`` wraps a copy of a ``geopandas.GeoDataFrame``. Parsed
features and the geometry collection of the layer are cached and the caches
are invalidated whenever a feature or a field is written.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Set, Tuple, Union

import geopandas as gpd
import numpy as np
import pandas as pd
from shapely.geometry import GeometryCollection, Polygon
from shapely.geometry.base import BaseGeometry
from shapely.strtree import STRtree

from landtopo.general import (
    MINIMUM_RING_POINTS,
    Attributes,
    parse_geometry,
    validity_reason,
)

log = logging.getLogger(__name__)

LINE_TYPES = {"LineString", "MultiLineString"}
POLYGON_TYPES = {"Polygon", "MultiPolygon"}
POINT_TYPES = {"Point", "MultiPoint"}

Feature = Tuple[Attributes, BaseGeometry]


@dataclass
class VectorDataset:
    """
    Layer of features with attributes and geometries.
    """

    geodata: gpd.GeoDataFrame
    name: str = "dataset"

    def __post_init__(self):
        """
        Copy input and initialize private attributes used for caching.
        """
        if not isinstance(self.geodata, gpd.GeoDataFrame):
            raise TypeError(
                f"Expected GeoDataFrame as geodata. Got: {type(self.geodata)}"
            )
        self.geodata = self.geodata.copy().reset_index(drop=True)
        self._features: Optional[List[Feature]] = None
        self._geometries: Optional[GeometryCollection] = None

    @classmethod
    def from_records(
        cls,
        records: Iterable[Tuple[Attributes, Union[str, BaseGeometry]]],
        crs=None,
        name: str = "dataset",
    ) -> "VectorDataset":
        """
        Create dataset from (attributes, geometry) pairs.

        Geometries can be given as WKT.

        >>> dataset = VectorDataset.from_records(
        ...     [({"SELF_ID": 1}, "POLYGON ((0 0, 1 0, 1 1, 0 1, 0 0))")]
        ... )
        >>> dataset.is_polygon_type(), dataset.contains_field("SELF_ID")
        (True, True)
        """
        attributes_list = []
        geometries = []
        for attributes, geometry in records:
            attributes_list.append(dict(attributes))
            geometries.append(parse_geometry(geometry))
        dataframe = pd.DataFrame(attributes_list, index=pd.RangeIndex(len(geometries)))
        return cls(gpd.GeoDataFrame(dataframe, geometry=geometries, crs=crs), name=name)

    def __len__(self) -> int:
        """
        Get number of features.
        """
        return self.geodata.shape[0]

    @property
    def geometry_column(self) -> str:
        """
        Get name of the geometry column.
        """
        return self.geodata.geometry.name

    def geometry_types(self) -> Set[str]:
        """
        Get geometry types of the layer.
        """
        return {geom.geom_type for geom in self.geodata.geometry if geom is not None}

    def _is_type(self, allowed: Set[str]) -> bool:
        geom_types = self.geometry_types()
        return len(geom_types) > 0 and geom_types.issubset(allowed)

    def is_line_type(self) -> bool:
        """
        Is the layer a line layer.
        """
        return self._is_type(LINE_TYPES)

    def is_polygon_type(self) -> bool:
        """
        Is the layer a polygon layer.
        """
        return self._is_type(POLYGON_TYPES)

    def is_point_type(self) -> bool:
        """
        Is the layer a point layer.
        """
        return self._is_type(POINT_TYPES)

    def geometry_list(self) -> List[BaseGeometry]:
        """
        Get unparsed feature geometries in feature order.
        """
        return list(self.geodata.geometry)

    def invalidate(self):
        """
        Invalidate parsed features and geometries.
        """
        self._features = None
        self._geometries = None

    def parse(self):
        """
        Parse and check all features.

        Invalid geometries are fatal.
        """
        features: List[Feature] = []
        for index, row in self.geodata.iterrows():
            geom = row[self.geometry_column]
            if geom is None or geom.is_empty:
                raise ValueError(f"Empty geometry at feature {index} of {self.name}.")
            if isinstance(geom, Polygon) and len(geom.exterior.coords) < MINIMUM_RING_POINTS:
                raise ValueError(
                    f"Polygon ring of feature {index} of {self.name} has less than"
                    f" {MINIMUM_RING_POINTS} points.\n{geom.wkt}"
                )
            reason = validity_reason(geom)
            if reason is not None:
                raise ValueError(
                    f"Invalid geometry at feature {index} of {self.name}:"
                    f" {reason}.\n{geom.wkt}"
                )
            features.append((row.drop(labels=[self.geometry_column]).to_dict(), geom))
        self._features = features
        self._geometries = GeometryCollection([geom for _, geom in features])
        log.debug(f"Parsed {len(features)} features of {self.name}.")

    def features(self) -> List[Feature]:
        """
        Get parsed (attributes, geometry) pairs.
        """
        if self._features is None:
            self.parse()
        if self._features is not None:
            return self._features
        raise TypeError("Expected self._features to not be None.")

    def geometries(self) -> GeometryCollection:
        """
        Get parsed geometries as a single collection.
        """
        if self._geometries is None:
            self.parse()
        if self._geometries is not None:
            return self._geometries
        raise TypeError("Expected self._geometries to not be None.")

    def set_geometry(self, index: int, geometry: BaseGeometry):
        """
        Write geometry of feature at index.
        """
        if not 0 <= index < len(self):
            raise IndexError(f"No feature at index {index} in {self.name}.")
        geometries = self.geometry_list()
        geometries[index] = geometry
        self.geodata[self.geometry_column] = gpd.GeoSeries(
            geometries, index=self.geodata.index, crs=self.geodata.crs
        )
        self.invalidate()

    def contains_field(self, name: str) -> bool:
        """
        Does the layer contain an attribute field.
        """
        return name in self.geodata.columns and name != self.geometry_column

    def is_int_value_set(self, name: str, value: int) -> bool:
        """
        Does any feature have the value in the field.
        """
        if not self.contains_field(name):
            return False
        return bool((self.geodata[name] == value).any())

    def set_index_int_field(self, name: str, begin: int = 1):
        """
        Fill an integer field with a sequence starting at ``begin``.
        """
        if not self.contains_field(name):
            raise ValueError(f"Field {name} does not exist in {self.name}.")
        if not pd.api.types.is_integer_dtype(self.geodata[name]):
            raise ValueError(f"Field {name} of {self.name} is not an integer field.")
        self.geodata[name] = np.arange(begin, begin + len(self), dtype=int)
        self.invalidate()

    def duplicate_geometry_indexes(self) -> List[Tuple[int, int]]:
        """
        Get index pairs of features with topologically equal geometries.
        """
        geometries = self.geometry_list()
        if len(geometries) < 2:
            return []
        tree = STRtree(geometries)
        left, right = tree.query(geometries, predicate="intersects")
        return sorted(
            {
                (int(first), int(second))
                for first, second in zip(left, right)
                if first < second and geometries[first].equals(geometries[second])
            }
        )

    def has_duplicate_geometry(self) -> bool:
        """
        Do any two features have topologically equal geometries.
        """
        return len(self.duplicate_geometry_indexes()) > 0
