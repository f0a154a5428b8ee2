"""Layout helpers for packed cross-sections.

Text export, raster canvas coordinates and geometric validation of a
packing result.
"""

import math
from dataclasses import dataclass
from typing import List, Optional

from pipeload.config import get_settings
from pipeload.packing.circle_packer import PackingResult, Rectangle

# Slack for accumulated floating point error in placements
LAYOUT_EPSILON = 1e-6


@dataclass
class CanvasCircle:
    """A placed circle in raster coordinates (y grows downward)."""
    cx: float
    cy: float
    r: float
    template_id: str

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {"cx": self.cx, "cy": self.cy, "r": self.r, "template_id": self.template_id}


def to_canvas(
    result: PackingResult,
    rectangle: Rectangle,
    scale: Optional[float] = None,
    padding: float = 0.0,
) -> List[CanvasCircle]:
    """
    Map placements onto a canvas whose y axis points down.

    Args:
        result: Packing result
        rectangle: Packed cross-section
        scale: Pixels per centimeter, the configured canvas scale if omitted
        padding: Offset applied to both axes (pixels)

    Returns:
        Canvas circles in placement order
    """
    if scale is None:
        scale = get_settings().canvas_scale
    return [
        CanvasCircle(
            cx=circle.x * scale + padding,
            cy=(rectangle.height - circle.y) * scale + padding,
            r=circle.radius * scale,
            template_id=circle.template_id,
        )
        for circle in result.placed_circles
    ]


def validate_layout(
    result: PackingResult,
    rectangle: Rectangle,
    tolerance: float = 1e-3,
) -> bool:
    """Check every placement is in bounds and clear of its neighbours."""
    circles = result.placed_circles
    for circle in circles:
        r = circle.effective_radius
        if circle.x - r < -LAYOUT_EPSILON or circle.x + r > rectangle.width + LAYOUT_EPSILON:
            return False
        if circle.y - r < -LAYOUT_EPSILON or circle.y + r > rectangle.height + LAYOUT_EPSILON:
            return False

    for i, first in enumerate(circles):
        for second in circles[i + 1:]:
            distance = math.hypot(first.x - second.x, first.y - second.y)
            if distance < first.effective_radius + second.effective_radius - tolerance:
                return False
    return True


def export_layout(result: PackingResult, rectangle: Rectangle) -> str:
    """Export layout as text description."""
    lines = [
        "; Cross-section layout",
        f"; Section: {rectangle.width}x{rectangle.height}cm",
        f"; Utilization: {result.utilization(rectangle):.1f}%",
        f"; Circles placed: {result.total_placed} ({result.layout})",
        f"; Weight: {result.total_weight:.1f}kg",
        "",
    ]

    if not result.success:
        lines.append(f"; Error: {result.error_message}")
        return "\n".join(lines)

    for i, circle in enumerate(result.placed_circles):
        lines.append(f"; Circle {i + 1}: {circle.template_id}")
        lines.append(f";   Center: ({circle.x:.1f}, {circle.y:.1f})")
        lines.append(f";   Diameter: {circle.diameter:.1f}")
        lines.append("")

    if result.weight_capacity_exceeded:
        lines.append("; Weight capacity reached before the section was full")

    return "\n".join(lines)
