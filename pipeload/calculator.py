"""Load calculation for pipe orders.

Runs an order through telescoping, cross-section packing and container
planning, and collects the figures a results table or a cross-section
view needs.

All dimensions are in cm, ordered quantities in m, weights in kg.
"""

import math
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from pipeload.config import Settings, get_settings
from pipeload.containers.aggregator import (
    CapacityEstimate,
    ContainerAggregator,
    ContainerPlan,
    DemandLine,
    LimitingFactor,
    estimate_capacity,
)
from pipeload.containers.transport import Volume
from pipeload.packing.circle_packer import CirclePackingEngine, PackingConfig, PackingResult
from pipeload.telescoping.resolver import (
    PipeSpec,
    SpaceSaved,
    TelescopingResolver,
    TelescopingResult,
    space_saved,
)
from pipeload.utils import (
    CM3_PER_M3,
    CM_PER_METER,
    cylinder_volume,
    format_number,
    get_logger,
)

logger = get_logger("calculator")


@dataclass
class PipeResult:
    """Figures for one pipe type of an order."""
    pipe: PipeSpec
    number_of_pipes: int = 0
    total_weight: float = 0.0  # kg
    volume_cm3: float = 0.0  # Bounding cylinders of the ordered length
    capacity: CapacityEstimate = field(default_factory=CapacityEstimate)

    @property
    def volume_m3(self) -> float:
        return self.volume_cm3 / CM3_PER_M3

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "pipe": self.pipe.to_dict(),
            "wall_thickness": self.pipe.wall_thickness,
            "number_of_pipes": self.number_of_pipes,
            "total_weight": self.total_weight,
            "volume_cm3": self.volume_cm3,
            "volume_m3": self.volume_m3,
            "capacity": self.capacity.to_dict(),
        }


@dataclass
class VolumeUsage:
    """Share of a container taken up by one packed cross-section (cm³)."""
    total_volume: float = 0.0
    used_volume: float = 0.0
    remaining_volume: float = 0.0
    percentage_used: float = 0.0

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "total_volume": self.total_volume,
            "used_volume": self.used_volume,
            "remaining_volume": self.remaining_volume,
            "percentage_used": self.percentage_used,
        }


@dataclass
class Recommendation:
    """A note for the person preparing the offer."""
    level: str  # "info" or "warning"
    message: str

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {"level": self.level, "message": self.message}


@dataclass
class LoadReport:
    """Everything calculated for an order."""
    success: bool
    volume: Volume = field(default_factory=Volume)
    pipe_results: List[PipeResult] = field(default_factory=list)
    telescoping: Optional[TelescopingResult] = None
    space_saved: Optional[SpaceSaved] = None
    arrangement: Optional[PackingResult] = None
    volume_usage: Optional[VolumeUsage] = None
    plan: Optional[ContainerPlan] = None
    pipes_extend_beyond_volume: bool = False
    error_message: Optional[str] = None

    @property
    def total_volume_m3(self) -> float:
        return sum(r.volume_m3 for r in self.pipe_results)

    @property
    def total_weight(self) -> float:
        return sum(r.total_weight for r in self.pipe_results)

    @property
    def total_pipes(self) -> int:
        return sum(r.number_of_pipes for r in self.pipe_results)

    @property
    def total_length_m(self) -> float:
        return sum(r.pipe.quantity_in_meters for r in self.pipe_results)

    @property
    def container_volume_m3(self) -> float:
        return self.volume.volume_m3

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "success": self.success,
            "volume": self.volume.to_dict(),
            "transport": self.volume.label,
            "pipe_results": [r.to_dict() for r in self.pipe_results],
            "total_volume_m3": self.total_volume_m3,
            "total_weight": self.total_weight,
            "total_pipes": self.total_pipes,
            "total_length_m": self.total_length_m,
            "container_volume_m3": self.container_volume_m3,
            "telescoping": self.telescoping.to_dict() if self.telescoping else None,
            "space_saved": self.space_saved.to_dict() if self.space_saved else None,
            "arrangement": self.arrangement.to_dict() if self.arrangement else None,
            "volume_usage": self.volume_usage.to_dict() if self.volume_usage else None,
            "plan": self.plan.to_dict() if self.plan else None,
            "pipes_extend_beyond_volume": self.pipes_extend_beyond_volume,
            "recommendations": [r.to_dict() for r in recommendations(self)],
            "error_message": self.error_message,
        }


def pipes_needed(pipe: PipeSpec) -> int:
    """Number of standard-length pipes covering the ordered quantity."""
    if pipe.standard_length <= 0:
        return 0
    # Rounded first so 0.3 m / 30 cm is 1 pipe, not 2
    return math.ceil(round(pipe.quantity_in_meters * CM_PER_METER / pipe.standard_length, 9))


class LoadCalculator:
    """
    Calculates transport requirements for a pipe order.

    Resolves telescoping, packs one cross-section with every template for
    the layout view and plans how many containers the full order needs.
    """

    def __init__(
        self,
        volume: Volume,
        settings: Optional[Settings] = None,
        min_space: Optional[float] = None,
        allowance: Optional[float] = None,
    ):
        """
        Initialize calculator.

        Args:
            volume: Transport volume
            settings: Settings, the global settings if omitted
            min_space: Minimum space between pipes (cm), overrides settings
            allowance: Nesting allowance (cm), overrides settings
        """
        self.volume = volume
        self.settings = settings or get_settings()
        self.min_space = self.settings.min_space if min_space is None else min_space
        self.allowance = self.settings.allowance if allowance is None else allowance

    def calculate(self, pipes: Iterable[PipeSpec]) -> LoadReport:
        """
        Calculate the full report for an order.

        Args:
            pipes: Pipe specifications

        Returns:
            Load report; ``success`` is False for unusable input
        """
        specs = list(pipes)

        if not self.volume.is_valid:
            return LoadReport(
                success=False,
                volume=self.volume,
                error_message="Invalid volume dimensions",
            )

        if not specs:
            return LoadReport(success=False, volume=self.volume, error_message="No pipes specified")

        valid = [p for p in specs if p.external_diameter > 0 and p.standard_length > 0]
        if not valid:
            return LoadReport(success=False, volume=self.volume, error_message="No valid pipes")

        pipe_results = [self.pipe_result(p) for p in valid]

        telescoping = TelescopingResolver(allowance=self.allowance).resolve(valid)
        arrangement = self.arrange(telescoping)

        plan = ContainerAggregator(self.volume, allowance=self.allowance).plan(
            [self.demand_line(r) for r in pipe_results],
            sum(r.total_weight for r in pipe_results),
        )

        report = LoadReport(
            success=True,
            volume=self.volume,
            pipe_results=pipe_results,
            telescoping=telescoping,
            space_saved=space_saved(valid, telescoping),
            arrangement=arrangement,
            volume_usage=self.volume_usage(arrangement, telescoping),
            plan=plan,
            pipes_extend_beyond_volume=any(
                t.length > self.volume.length for t in telescoping.templates
            ),
        )

        logger.info(
            f"{len(valid)} pipe types, {report.total_pipes} pipes, "
            f"{format_number(report.total_weight)} kg -> {plan.total} x {self.volume.label}"
        )
        return report

    def pipe_result(self, pipe: PipeSpec) -> PipeResult:
        """Per-type figures for one pipe."""
        return PipeResult(
            pipe=pipe,
            number_of_pipes=pipes_needed(pipe),
            total_weight=pipe.quantity_in_meters * pipe.weight_per_meter,
            volume_cm3=cylinder_volume(
                pipe.external_diameter,
                pipe.quantity_in_meters * CM_PER_METER,
            ),
            capacity=estimate_capacity(
                pipe,
                self.volume,
                spacing=self.min_space,
                grid_fast_path=self.settings.grid_fast_path,
                max_rounds=self.settings.max_rounds,
            ),
        )

    def demand_line(self, result: PipeResult) -> DemandLine:
        """Demand line for the container aggregator."""
        pipe = result.pipe
        return DemandLine(
            template_id=pipe.id,
            external_diameter=pipe.external_diameter,
            internal_diameter=pipe.internal_diameter,
            standard_length=pipe.standard_length,
            pipes_needed=result.number_of_pipes,
            capacity_per_container=result.capacity.capacity,
            pipes_per_row=result.capacity.pipes_per_row,
            pipes_per_column=result.capacity.pipes_per_column,
            pipes_along_length=result.capacity.pipes_along_length,
            unit_weight=pipe.unit_weight,
        )

    def arrange(self, telescoping: TelescopingResult) -> PackingResult:
        """Pack one cross-section with every template."""
        config = PackingConfig(
            spacing=self.min_space,
            weight_capacity=self.volume.weight_capacity or None,
            max_rounds=self.settings.max_rounds,
            tolerance=self.settings.overlap_tolerance,
        )
        return CirclePackingEngine(config).pack(telescoping.templates, self.volume.cross_section)

    def volume_usage(
        self,
        arrangement: PackingResult,
        telescoping: TelescopingResult,
    ) -> VolumeUsage:
        """Volume of the packed assemblies against the container volume."""
        lengths = {t.template_id: t.length for t in telescoping.templates}
        total = self.volume.volume_cm3
        used = sum(
            cylinder_volume(c.diameter, lengths.get(c.template_id, 0.0))
            for c in arrangement.placed_circles
        )
        return VolumeUsage(
            total_volume=total,
            used_volume=used,
            remaining_volume=total - used,
            percentage_used=(used / total) * 100 if total > 0 else 0.0,
        )


_LIMIT_REASONS = {
    LimitingFactor.PACKING: " (limited by cross-section packing)",
    LimitingFactor.WEIGHT: " (limited by weight)",
    LimitingFactor.BOTH: " (limited by both packing and weight)",
}


def recommendations(report: LoadReport) -> List[Recommendation]:
    """Notes to show alongside a report."""
    notes: List[Recommendation] = []

    if not report.success:
        notes.append(Recommendation("warning", report.error_message or "Calculation failed"))
        return notes

    if report.total_pipes == 0:
        notes.append(Recommendation(
            "warning",
            "No pipes added. Add pipe specifications to calculate.",
        ))
        return notes

    plan = report.plan
    if plan is not None and plan.infeasible:
        notes.append(Recommendation(
            "warning",
            f"{plan.error_message}: check pipe lengths and diameters against the volume",
        ))
    elif plan is not None and plan.total > 1:
        reason = _LIMIT_REASONS.get(plan.limiting_factor, "")
        notes.append(Recommendation(
            "info",
            f"{plan.total} x {report.volume.label} needed to transport all pipes{reason}",
        ))

    if plan is not None and plan.unallocated:
        left = ", ".join(f"{n} x {tid}" for tid, n in plan.unallocated.items())
        notes.append(Recommendation("warning", f"Not allocated to any container: {left}"))

    if report.pipes_extend_beyond_volume:
        notes.append(Recommendation("warning", "Some telescoped assemblies are longer than the volume"))

    if report.container_volume_m3 > 0:
        usage = report.total_volume_m3 / report.container_volume_m3 * 100
        notes.append(Recommendation(
            "info",
            f"Total pipe volume: {format_number(report.total_volume_m3)} m³ "
            f"({format_number(usage)}% of single container)",
        ))

    return notes


# Convenience functions
def calculate_load(
    pipes: Iterable[PipeSpec],
    volume: Volume,
    min_space: float = 0.0,
    allowance: float = 0.0,
) -> LoadReport:
    """
    Calculate transport requirements for an order.

    Args:
        pipes: Pipe specifications
        volume: Transport volume
        min_space: Minimum space between pipes (cm)
        allowance: Nesting allowance (cm)

    Returns:
        Load report
    """
    calculator = LoadCalculator(volume, min_space=min_space, allowance=allowance)
    return calculator.calculate(pipes)
