"""Derive causal topology graphs and collision-free layouts from signal-network entities."""

from .api import RecomputeScheduler, TopologyPipeline, TopologyResult, compute_topology
from .config import LayoutConfig, RouteConfig
from .entities import EntitySet

__all__ = [
    "EntitySet",
    "LayoutConfig",
    "RecomputeScheduler",
    "RouteConfig",
    "TopologyPipeline",
    "TopologyResult",
    "compute_topology",
]
