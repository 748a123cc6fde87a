"""
landtopo.

Landscape topology graphs from polygon and line layers.
"""

import logging

from landtopo.graph.line_graph import LineStringGraph
from landtopo.graph.polygon_graph import PolygonGraph
from landtopo.repair.vector_dataset import VectorDataset

log = logging.getLogger(__name__)

__version__ = "0.1.0"


log.info(
    "Main imports available from landtopo/__init__.py:"
    f" {PolygonGraph, LineStringGraph, VectorDataset}"
)
