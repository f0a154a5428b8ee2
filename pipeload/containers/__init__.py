"""Containers module for planning transport volumes.

Provides transport presets, single-container capacity estimates and the
multi-container aggregator.
"""

from pipeload.containers.aggregator import (
    CapacityEstimate,
    ContainerAggregator,
    ContainerEntry,
    ContainerLoad,
    ContainerPlan,
    DemandLine,
    FreeRegion,
    LimitingFactor,
    PackingDetail,
    estimate_capacity,
)
from pipeload.containers.transport import (
    TRANSPORT_PRESETS,
    TransportType,
    Volume,
)

__all__ = [
    "CapacityEstimate",
    "ContainerAggregator",
    "ContainerEntry",
    "ContainerLoad",
    "ContainerPlan",
    "DemandLine",
    "FreeRegion",
    "LimitingFactor",
    "PackingDetail",
    "estimate_capacity",
    "TRANSPORT_PRESETS",
    "TransportType",
    "Volume",
]
