"""Cross-section circle packing for pipe loads.

Greedily places pipe templates as non-overlapping circles inside the
width x height cross-section of a transport volume. Pipes run along the
volume's length, so the cross-section is all the packer ever sees.
"""

import math
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from pipeload.telescoping.resolver import PackingTemplate
from pipeload.utils import get_logger, to_number

logger = get_logger("packing.circle_packer")

# Angular step for positions resting on a placed circle (0..pi inclusive)
TANGENT_STEPS = 8

# Heights closer than this are treated as one level when picking a position
Y_BAND = 0.01

Position = Tuple[float, float]
PositionFinder = Callable[[List["PlacedCircle"], float], Optional[Position]]


@dataclass
class Rectangle:
    """Cross-section of a transport volume (cm)."""
    width: float
    height: float

    @property
    def is_valid(self) -> bool:
        return self.width > 0 and self.height > 0

    @property
    def area(self) -> float:
        return max(0.0, self.width) * max(0.0, self.height)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {"width": self.width, "height": self.height}


@dataclass(frozen=True)
class PlacedCircle:
    """A template instance placed in the cross-section.

    ``effective_radius`` includes half the spacing, so two touching
    effective circles leave exactly the spacing between pipe surfaces.
    """
    x: float
    y: float  # Measured upward from the floor
    radius: float
    effective_radius: float
    template_id: str

    @property
    def diameter(self) -> float:
        return self.radius * 2

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "x": self.x,
            "y": self.y,
            "radius": self.radius,
            "effective_radius": self.effective_radius,
            "template_id": self.template_id,
        }


@dataclass
class PackingConfig:
    """Configuration for cross-section packing."""
    spacing: float = 0.0  # Minimum clearance between pipe surfaces (cm)
    weight_capacity: Optional[float] = None  # kg, None or 0 means unlimited
    max_rounds: int = 10_000  # Termination bound, not a normal stop
    tolerance: float = 1e-3  # Overlap slack for floating point error
    grid_fallback: bool = True  # Also try a square grid for uniform diameters

    @property
    def weight_limited(self) -> bool:
        return bool(self.weight_capacity) and self.weight_capacity > 0

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "spacing": self.spacing,
            "weight_capacity": self.weight_capacity,
            "max_rounds": self.max_rounds,
            "tolerance": self.tolerance,
            "grid_fallback": self.grid_fallback,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PackingConfig":
        """Create from dictionary."""
        return cls(
            spacing=to_number(data.get("spacing")),
            weight_capacity=to_number(data.get("weight_capacity")) or None,
            max_rounds=int(data.get("max_rounds", 10_000)),
            tolerance=to_number(data.get("tolerance", 1e-3)),
            grid_fallback=data.get("grid_fallback", True),
        )


@dataclass
class PackingResult:
    """Result of packing one cross-section."""
    success: bool
    placed_circles: List[PlacedCircle] = field(default_factory=list)
    counts: Dict[str, int] = field(default_factory=dict)  # Per template
    pipe_counts: Dict[str, int] = field(default_factory=dict)  # Per member pipe
    total_weight: float = 0.0
    weight_capacity_exceeded: bool = False
    rounds: int = 0
    layout: str = "greedy"  # "greedy" or "grid"
    error_message: Optional[str] = None

    @property
    def total_placed(self) -> int:
        return len(self.placed_circles)

    @property
    def total_pipes(self) -> int:
        return sum(self.pipe_counts.values())

    def utilization(self, rectangle: Rectangle) -> float:
        """Percentage of the cross-section covered by pipe circles."""
        if rectangle.area <= 0:
            return 0.0
        covered = sum(math.pi * c.radius ** 2 for c in self.placed_circles)
        return min(100.0, covered / rectangle.area * 100)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "success": self.success,
            "placed_circles": [c.to_dict() for c in self.placed_circles],
            "counts": dict(self.counts),
            "pipe_counts": dict(self.pipe_counts),
            "total_weight": self.total_weight,
            "weight_capacity_exceeded": self.weight_capacity_exceeded,
            "rounds": self.rounds,
            "layout": self.layout,
            "error_message": self.error_message,
        }


class _PlacementIndex:
    """Uniform grid over placed circles for neighbourhood lookups."""

    def __init__(self, circles: Sequence[PlacedCircle], cell_size: float):
        self.cell_size = cell_size
        self.cells: Dict[Tuple[int, int], List[int]] = defaultdict(list)
        for k, circle in enumerate(circles):
            self.cells[self._cell(circle.x, circle.y)].append(k)

    def _cell(self, x: float, y: float) -> Tuple[int, int]:
        return math.floor(x / self.cell_size), math.floor(y / self.cell_size)

    def near(self, x: float, y: float) -> Iterator[int]:
        """Indices of circles whose centers lie closer than one cell."""
        cx, cy = self._cell(x, y)
        for i in (-1, 0, 1):
            for j in (-1, 0, 1):
                yield from self.cells.get((cx + i, cy + j), ())


class CirclePackingEngine:
    """
    Greedy round-robin best-fit circle packer.

    Every round tries to place one more instance of each template, largest
    diameter first, at the lowest (then leftmost) valid position among the
    candidates generated from the circles already placed.
    """

    def __init__(self, config: Optional[PackingConfig] = None):
        """
        Initialize packing engine.

        Args:
            config: Packing configuration
        """
        self.config = config or PackingConfig()

    def effective_radius(self, template: PackingTemplate) -> float:
        """Template radius grown by half the spacing."""
        return template.radius + to_number(self.config.spacing) / 2

    def pack(
        self,
        templates: Iterable[PackingTemplate],
        rectangle: Rectangle,
    ) -> PackingResult:
        """
        Pack as many template instances as fit in the cross-section.

        Args:
            templates: Templates to place; the caller's collection is not modified
            rectangle: Cross-section to fill

        Returns:
            Packing result with placements and counts
        """
        if not rectangle.is_valid:
            return PackingResult(
                success=False,
                error_message=(
                    f"Invalid cross-section {rectangle.width}x{rectangle.height}: "
                    "width and height must be positive"
                ),
            )

        ordered = sorted(
            (t for t in templates if t.diameter > 0),
            key=lambda t: t.diameter,
            reverse=True,
        )
        if not ordered:
            return PackingResult(success=True)

        result = self._place_rounds(
            ordered,
            lambda placed, radius: self.find_position(placed, radius, rectangle),
        )

        diameters = {t.diameter for t in ordered}
        if self.config.grid_fallback and len(diameters) == 1:
            radius = self.effective_radius(ordered[0])
            slots = grid_slots(radius, rectangle)
            grid = self._place_rounds(
                ordered,
                lambda placed, _radius: slots[len(placed)] if len(placed) < len(slots) else None,
            )
            grid.layout = "grid"
            if grid.total_placed > result.total_placed:
                result = grid

        logger.debug(
            f"Packed {result.total_placed} circles in "
            f"{rectangle.width}x{rectangle.height} ({result.layout}, {result.rounds} rounds)"
        )
        return result

    def _place_rounds(
        self,
        ordered: List[PackingTemplate],
        finder: PositionFinder,
    ) -> PackingResult:
        """Run placement rounds until one places nothing."""
        placed: List[PlacedCircle] = []
        counts = {t.template_id: 0 for t in ordered}
        pipe_counts: Dict[str, int] = {}
        total_weight = 0.0
        exceeded = False
        rounds = 0

        while rounds < self.config.max_rounds:
            rounds += 1
            placed_any = False

            for template in ordered:
                radius = self.effective_radius(template)
                position = finder(placed, radius)
                if position is None:
                    continue

                new_total = total_weight + template.weight
                if self.config.weight_limited and new_total > self.config.weight_capacity:
                    exceeded = True
                    continue

                x, y = position
                placed.append(PlacedCircle(
                    x=x,
                    y=y,
                    radius=template.radius,
                    effective_radius=radius,
                    template_id=template.template_id,
                ))
                counts[template.template_id] += 1
                for member_id in template.member_ids:
                    pipe_counts[member_id] = pipe_counts.get(member_id, 0) + 1
                total_weight = new_total
                placed_any = True

            if not placed_any:
                break
        else:
            logger.warning(f"Packing stopped at the {self.config.max_rounds} round limit")

        return PackingResult(
            success=True,
            placed_circles=placed,
            counts=counts,
            pipe_counts=pipe_counts,
            total_weight=total_weight,
            weight_capacity_exceeded=exceeded,
            rounds=rounds,
        )

    def find_position(
        self,
        placed: Sequence[PlacedCircle],
        radius: float,
        rectangle: Rectangle,
    ) -> Optional[Position]:
        """Find the lowest, then leftmost, valid position for a circle."""
        if not placed:
            if 2 * radius <= rectangle.width and 2 * radius <= rectangle.height:
                return (radius, radius)
            return None

        max_placed = max(c.effective_radius for c in placed)
        index = _PlacementIndex(placed, 2 * (radius + max_placed))

        valid: List[Position] = []
        lowest = math.inf
        for x, y in self.candidate_positions(placed, radius, rectangle, index):
            # Positions above the band of the lowest valid one can never win
            if y >= lowest + Y_BAND:
                continue
            if self.can_place(x, y, radius, placed, rectangle, index):
                valid.append((x, y))
                lowest = min(lowest, y)

        return bottom_left(valid)

    def candidate_positions(
        self,
        placed: Sequence[PlacedCircle],
        radius: float,
        rectangle: Rectangle,
        index: Optional[_PlacementIndex] = None,
    ) -> Iterator[Position]:
        """Generate candidate centers for a circle of ``radius``."""
        # Floor
        step = radius / 2
        k = 0
        x = radius
        while x <= rectangle.width - radius:
            yield (x, radius)
            k += 1
            x = radius + k * step

        for circle in placed:
            # Resting against this circle
            reach = circle.effective_radius + radius
            for s in range(TANGENT_STEPS + 1):
                angle = math.pi * s / TANGENT_STEPS
                yield (circle.x + reach * math.cos(angle), circle.y + reach * math.sin(angle))

            # Directly to the right
            right_x = circle.x + reach
            if right_x + radius <= rectangle.width:
                yield (right_x, circle.y)

        # Nooks between two circles
        if index is None:
            pairs = (
                (i, j)
                for i in range(len(placed))
                for j in range(i + 1, len(placed))
            )
        else:
            pairs = (
                (i, j)
                for i, circle in enumerate(placed)
                for j in index.near(circle.x, circle.y)
                if j > i
            )
        for i, j in pairs:
            yield from bitangent_positions(placed[i], placed[j], radius)

    def can_place(
        self,
        x: float,
        y: float,
        radius: float,
        placed: Sequence[PlacedCircle],
        rectangle: Rectangle,
        index: Optional[_PlacementIndex] = None,
    ) -> bool:
        """Check bounds and clearance for a circle centered at (x, y)."""
        if x < radius or x > rectangle.width - radius:
            return False
        if y < radius or y > rectangle.height - radius:
            return False

        neighbours = index.near(x, y) if index is not None else range(len(placed))
        for k in neighbours:
            other = placed[k]
            distance = math.hypot(x - other.x, y - other.y)
            if distance < radius + other.effective_radius - self.config.tolerance:
                return False
        return True


def bottom_left(positions: Sequence[Position]) -> Optional[Position]:
    """
    Pick the lowest position, preferring the leftmost within ``Y_BAND``.

    Positions less than ``Y_BAND`` above the lowest one count as level with
    it, so the smallest ``x`` among them wins (then the smallest ``y``).
    """
    if not positions:
        return None
    lowest = min(y for _, y in positions)
    level = [(x, y) for x, y in positions if y < lowest + Y_BAND]
    return min(level)


def bitangent_positions(
    first: PlacedCircle,
    second: PlacedCircle,
    radius: float,
) -> List[Position]:
    """Centers touching both circles, if the two reach circles intersect."""
    dx = second.x - first.x
    dy = second.y - first.y
    distance = math.hypot(dx, dy)

    r1 = first.effective_radius + radius
    r2 = second.effective_radius + radius
    if not abs(r1 - r2) < distance < r1 + r2:
        return []

    a = (r1 * r1 - r2 * r2 + distance * distance) / (2 * distance)
    h = math.sqrt(max(0.0, r1 * r1 - a * a))
    px = first.x + a * dx / distance
    py = first.y + a * dy / distance

    return [
        (px + h * dy / distance, py - h * dx / distance),
        (px - h * dy / distance, py + h * dx / distance),
    ]


def grid_slots(radius: float, rectangle: Rectangle) -> List[Position]:
    """Square grid centers for equal circles, bottom row first."""
    if radius <= 0 or not rectangle.is_valid:
        return []
    pitch = 2 * radius
    columns = math.floor(rectangle.width / pitch + 1e-9)
    rows = math.floor(rectangle.height / pitch + 1e-9)
    return [
        (radius + col * pitch, radius + row * pitch)
        for row in range(rows)
        for col in range(columns)
    ]


# Convenience functions
def pack_cross_section(
    templates: Iterable[PackingTemplate],
    width: float,
    height: float,
    spacing: float = 0.0,
    weight_capacity: Optional[float] = None,
) -> PackingResult:
    """
    Pack templates into a cross-section.

    Args:
        templates: Packing templates
        width: Cross-section width (cm)
        height: Cross-section height (cm)
        spacing: Minimum clearance between pipes (cm)
        weight_capacity: Weight limit (kg), None for unlimited

    Returns:
        Packing result
    """
    config = PackingConfig(spacing=spacing, weight_capacity=weight_capacity)
    engine = CirclePackingEngine(config=config)
    return engine.pack(templates, Rectangle(width=width, height=height))
