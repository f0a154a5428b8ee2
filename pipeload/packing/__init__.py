"""Packing module for placing pipes in a transport cross-section.

Provides the greedy circle packing engine and layout helpers.
"""

from pipeload.packing.circle_packer import (
    CirclePackingEngine,
    PackingConfig,
    PackingResult,
    PlacedCircle,
    Rectangle,
    bitangent_positions,
    bottom_left,
    grid_slots,
    pack_cross_section,
)
from pipeload.packing.layout import (
    CanvasCircle,
    export_layout,
    to_canvas,
    validate_layout,
)

__all__ = [
    "CirclePackingEngine",
    "PackingConfig",
    "PackingResult",
    "PlacedCircle",
    "Rectangle",
    "bitangent_positions",
    "bottom_left",
    "grid_slots",
    "pack_cross_section",
    "CanvasCircle",
    "export_layout",
    "to_canvas",
    "validate_layout",
]
