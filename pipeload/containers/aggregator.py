"""Container planning for full pipe orders.

Scales single-container capacities up to the whole order: how many
transport volumes are needed, what limits that number, and which pipes go
into each volume.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Union

from pipeload.containers.transport import Volume
from pipeload.packing.circle_packer import CirclePackingEngine, PackingConfig
from pipeload.telescoping.resolver import PackingTemplate, PipeSpec
from pipeload.utils import get_logger, to_number

logger = get_logger("containers.aggregator")

Count = Union[int, float]  # float only for math.inf


class LimitingFactor(str, Enum):
    """What drives the number of containers."""
    PACKING = "packing"
    WEIGHT = "weight"
    BOTH = "both"
    NONE = "none"


@dataclass
class CapacityEstimate:
    """How many pipes of one type fit in an empty container."""
    pipes_per_row: int = 0
    pipes_per_column: int = 0
    pipes_per_cross_section: int = 0
    pipes_along_length: int = 0
    capacity: int = 0
    fits_in_length: bool = False
    method: str = "grid"  # "grid" or "engine"

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "pipes_per_row": self.pipes_per_row,
            "pipes_per_column": self.pipes_per_column,
            "pipes_per_cross_section": self.pipes_per_cross_section,
            "pipes_along_length": self.pipes_along_length,
            "capacity": self.capacity,
            "fits_in_length": self.fits_in_length,
            "method": self.method,
        }


@dataclass
class DemandLine:
    """Demand and single-container capacity for one pipe type."""
    template_id: str
    external_diameter: float
    internal_diameter: float
    standard_length: float
    pipes_needed: int
    capacity_per_container: int
    pipes_per_row: int = 0
    pipes_per_column: int = 0
    pipes_along_length: int = 1
    unit_weight: float = 0.0  # kg per pipe

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "template_id": self.template_id,
            "external_diameter": self.external_diameter,
            "internal_diameter": self.internal_diameter,
            "standard_length": self.standard_length,
            "pipes_needed": self.pipes_needed,
            "capacity_per_container": self.capacity_per_container,
            "pipes_per_row": self.pipes_per_row,
            "pipes_per_column": self.pipes_per_column,
            "pipes_along_length": self.pipes_along_length,
            "unit_weight": self.unit_weight,
        }


@dataclass
class PackingDetail:
    """Containers one pipe type would need on its own."""
    template_id: str
    diameter: float
    pipes_needed: int
    pipes_per_container: int
    containers_needed: Count
    error: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "template_id": self.template_id,
            "diameter": self.diameter,
            "pipes_needed": self.pipes_needed,
            "pipes_per_container": self.pipes_per_container,
            "containers_needed": self.containers_needed,
            "error": self.error,
        }


@dataclass
class ContainerEntry:
    """Pipes of one type loaded into a container."""
    template_id: str
    count: int
    weight: float
    nested: bool = False  # Carried inside the dominant pipes
    standalone: bool = False  # Beside or above the dominant pipes

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "template_id": self.template_id,
            "count": self.count,
            "weight": self.weight,
            "nested": self.nested,
            "standalone": self.standalone,
        }


@dataclass
class ContainerLoad:
    """Contents of a single container."""
    number: int
    entries: List[ContainerEntry] = field(default_factory=list)

    @property
    def total_pipes(self) -> int:
        return sum(e.count for e in self.entries)

    @property
    def total_weight(self) -> float:
        return sum(e.weight for e in self.entries)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "number": self.number,
            "entries": [e.to_dict() for e in self.entries],
            "total_pipes": self.total_pipes,
            "total_weight": self.total_weight,
        }


@dataclass
class ContainerPlan:
    """How many containers an order needs and what goes in each."""
    total: Count = 0
    packing_containers: Count = 0
    weight_containers: int = 0
    limiting_factor: LimitingFactor = LimitingFactor.NONE
    infeasible: bool = False
    containers: List[ContainerLoad] = field(default_factory=list)
    unallocated: Dict[str, int] = field(default_factory=dict)
    packing_details: List[PackingDetail] = field(default_factory=list)
    weight_ratio: float = 0.0
    error_message: Optional[str] = None

    @property
    def total_pipes(self) -> int:
        return sum(c.total_pipes for c in self.containers)

    @property
    def total_weight(self) -> float:
        return sum(c.total_weight for c in self.containers)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "total": self.total,
            "packing_containers": self.packing_containers,
            "weight_containers": self.weight_containers,
            "limiting_factor": self.limiting_factor.value,
            "infeasible": self.infeasible,
            "containers": [c.to_dict() for c in self.containers],
            "unallocated": dict(self.unallocated),
            "packing_details": [d.to_dict() for d in self.packing_details],
            "weight_ratio": self.weight_ratio,
            "total_pipes": self.total_pipes,
            "total_weight": self.total_weight,
            "error_message": self.error_message,
        }


def _fit(span: float, diameter: float) -> int:
    """Whole diameters that fit in a span."""
    if diameter <= 0 or span <= 0:
        return 0
    return math.floor(span / diameter)


def _weight_limit(budget: float, unit_weight: float) -> Count:
    """Pipes of ``unit_weight`` that the weight budget left can carry."""
    if math.isinf(budget) or unit_weight <= 0:
        return math.inf
    return max(0, math.floor(budget / unit_weight))


@dataclass
class FreeRegion:
    """An empty rectangle of a container's cross-section (cm).

    Standalone pipes fill it in rows from the bottom; what a row leaves
    unused is not offered to later pipe types.
    """
    width: float
    height: float

    def slots(self, diameter: float, along: int) -> int:
        return _fit(self.width, diameter) * _fit(self.height, diameter) * along

    def fill(self, count: Count, diameter: float, along: int) -> int:
        """Place up to ``count`` pipes and shrink the region; returns pipes placed."""
        placed = min(count, self.slots(diameter, along))
        if placed <= 0:
            return 0
        rows = math.ceil(math.ceil(placed / along) / _fit(self.width, diameter))
        self.height = max(0.0, self.height - rows * diameter)
        return placed


def estimate_capacity(
    pipe: PipeSpec,
    volume: Volume,
    spacing: float = 0.0,
    grid_fast_path: bool = True,
    max_rounds: int = 10_000,
) -> CapacityEstimate:
    """
    Estimate how many pipes of one type fit in an empty container.

    The row x column formula is exact for equal circles without spacing;
    otherwise the packing engine fills one cross-section.

    Args:
        pipe: Pipe type
        volume: Transport volume
        spacing: Minimum clearance between pipes (cm)
        grid_fast_path: Allow the row x column formula
        max_rounds: Round limit passed to the packing engine

    Returns:
        Capacity estimate
    """
    diameter = pipe.external_diameter
    if diameter <= 0:
        return CapacityEstimate()

    per_row = _fit(volume.width, diameter)
    per_column = _fit(volume.height, diameter)
    along = _fit(volume.length, pipe.standard_length)
    fits_in_length = 0 < pipe.standard_length <= volume.length

    if grid_fast_path and to_number(spacing) == 0:
        cross_section = per_row * per_column
        method = "grid"
    else:
        engine = CirclePackingEngine(PackingConfig(spacing=spacing, max_rounds=max_rounds))
        template = PackingTemplate(
            template_id=pipe.id,
            diameter=diameter,
            length=pipe.standard_length,
            weight=pipe.unit_weight,
            member_ids=(pipe.id,),
        )
        cross_section = engine.pack([template], volume.cross_section).total_placed
        method = "engine"

    return CapacityEstimate(
        pipes_per_row=per_row,
        pipes_per_column=per_column,
        pipes_per_cross_section=cross_section,
        pipes_along_length=along,
        capacity=cross_section * along if fits_in_length else 0,
        fits_in_length=fits_in_length,
        method=method,
    )


class ContainerAggregator:
    """
    Plans containers for a whole order.

    The container count is the larger of what cross-section packing and
    weight capacity demand. The breakdown fills containers one by one with
    the largest pipe first, nests smaller pipes concentrically inside it,
    and puts the rest beside and above it, never past the container's
    weight capacity.
    """

    def __init__(self, volume: Volume, allowance: float = 0.0):
        """
        Initialize aggregator.

        Args:
            volume: Transport volume
            allowance: Radial clearance between nested pipes (cm)
        """
        self.volume = volume
        self.allowance = to_number(allowance)

    def plan(self, lines: Iterable[DemandLine], total_weight: float) -> ContainerPlan:
        """
        Plan containers for the given demand.

        Args:
            lines: Demand per pipe type
            total_weight: Weight of the whole order (kg)

        Returns:
            Container plan
        """
        demand = [line for line in lines if line.pipes_needed > 0]
        weight_capacity = to_number(self.volume.weight_capacity)
        total_weight = to_number(total_weight)

        details = []
        packing_containers: Count = 0
        for line in demand:
            if line.capacity_per_container <= 0:
                details.append(PackingDetail(
                    template_id=line.template_id,
                    diameter=line.external_diameter,
                    pipes_needed=line.pipes_needed,
                    pipes_per_container=0,
                    containers_needed=math.inf,
                    error=self._misfit_reason(line),
                ))
                packing_containers = math.inf
                continue

            needed = math.ceil(line.pipes_needed / line.capacity_per_container)
            details.append(PackingDetail(
                template_id=line.template_id,
                diameter=line.external_diameter,
                pipes_needed=line.pipes_needed,
                pipes_per_container=line.capacity_per_container,
                containers_needed=needed,
            ))
            packing_containers = max(packing_containers, needed)

        weight_ratio = total_weight / weight_capacity if weight_capacity > 0 else 0.0
        weight_containers = math.ceil(weight_ratio) if weight_capacity > 0 else 0

        if math.isinf(packing_containers):
            logger.warning("Some pipes cannot fit in the container")
            return ContainerPlan(
                total=math.inf,
                packing_containers=math.inf,
                weight_containers=weight_containers,
                limiting_factor=LimitingFactor.PACKING,
                infeasible=True,
                unallocated={line.template_id: line.pipes_needed for line in demand},
                packing_details=details,
                weight_ratio=weight_ratio,
                error_message="Some pipes cannot fit in the container",
            )

        total = max(packing_containers, weight_containers, 1)

        if packing_containers > weight_containers:
            limiting = LimitingFactor.PACKING
        elif weight_containers > packing_containers:
            limiting = LimitingFactor.WEIGHT
        elif packing_containers > 0:
            limiting = LimitingFactor.BOTH
        else:
            limiting = LimitingFactor.NONE

        containers, unallocated = self._breakdown(demand, total)
        if unallocated:
            logger.info(f"Demand left after {total} containers: {unallocated}")

        return ContainerPlan(
            total=total,
            packing_containers=packing_containers,
            weight_containers=weight_containers,
            limiting_factor=limiting,
            containers=containers,
            unallocated=unallocated,
            packing_details=details,
            weight_ratio=weight_ratio,
        )

    def is_nestable(self, inner: DemandLine, outer: DemandLine) -> bool:
        """Check if ``inner`` fits inside the bore of ``outer``."""
        return inner.external_diameter <= outer.internal_diameter - 2 * self.allowance

    def nesting_chain(
        self,
        host: DemandLine,
        candidates: Iterable[DemandLine],
    ) -> List[DemandLine]:
        """
        Pipes carried concentrically inside one ``host`` pipe.

        Candidates are taken largest first; each accepted pipe becomes the
        bore the next one has to fit.
        """
        chain = []
        for line in candidates:
            if self.is_nestable(line, host):
                chain.append(line)
                host = line
        return chain

    def free_regions(self, dominant: DemandLine, dominant_count: int) -> List[FreeRegion]:
        """Side and top rectangles left around the dominant pipes' grid footprint."""
        width = self.volume.width
        height = self.volume.height
        if dominant_count <= 0:
            return [FreeRegion(width, height)]

        cross_section = math.ceil(dominant_count / max(1, dominant.pipes_along_length))
        per_row = max(1, dominant.pipes_per_row)
        used_rows = math.ceil(cross_section / per_row)
        used_width = min(cross_section, per_row) * dominant.external_diameter
        used_height = used_rows * dominant.external_diameter

        return [
            FreeRegion(width - used_width, height),
            FreeRegion(used_width, height - used_height),
        ]

    def standalone_capacity(
        self,
        line: DemandLine,
        dominant: DemandLine,
        dominant_count: int,
    ) -> int:
        """Pipes of ``line`` that fit around the dominant pipes of an otherwise empty container."""
        along = max(0, line.pipes_along_length)
        return sum(
            region.slots(line.external_diameter, along)
            for region in self.free_regions(dominant, dominant_count)
        )

    def _breakdown(self, demand: List[DemandLine], total: int):
        """Fill containers one by one within their weight budget."""
        remaining = {line.template_id: line.pipes_needed for line in demand}
        containers = []
        if not demand:
            return [ContainerLoad(number=n + 1) for n in range(total)], {}

        weight_capacity = to_number(self.volume.weight_capacity)
        ordered = sorted(demand, key=lambda l: l.external_diameter, reverse=True)
        dominant = ordered[0]
        secondaries = ordered[1:]

        for number in range(1, total + 1):
            load = ContainerLoad(number=number)
            budget = weight_capacity if weight_capacity > 0 else math.inf

            dominant_count = min(
                remaining[dominant.template_id],
                dominant.capacity_per_container,
                _weight_limit(budget, dominant.unit_weight),
            )
            if dominant_count > 0:
                load.entries.append(ContainerEntry(
                    template_id=dominant.template_id,
                    count=dominant_count,
                    weight=dominant_count * dominant.unit_weight,
                ))
                remaining[dominant.template_id] -= dominant_count
                budget -= dominant_count * dominant.unit_weight

            # Outer pipes are filled in batches sharing the same nesting chain
            nested: Dict[str, int] = {}
            hosts = dominant_count
            while hosts > 0:
                chain = self.nesting_chain(
                    dominant,
                    [line for line in secondaries if remaining[line.template_id] > 0],
                )
                if not chain:
                    break
                chain_weight = sum(line.unit_weight for line in chain)
                batch = min(
                    hosts,
                    min(remaining[line.template_id] for line in chain),
                    _weight_limit(budget, chain_weight),
                )
                if batch <= 0:
                    break
                for line in chain:
                    nested[line.template_id] = nested.get(line.template_id, 0) + batch
                    remaining[line.template_id] -= batch
                budget -= batch * chain_weight
                hosts -= batch

            for line in secondaries:
                count = nested.get(line.template_id, 0)
                if count > 0:
                    load.entries.append(ContainerEntry(
                        template_id=line.template_id,
                        count=count,
                        weight=count * line.unit_weight,
                        nested=True,
                    ))

            # Secondaries share the free regions, largest diameter first
            regions = self.free_regions(dominant, dominant_count)
            for line in secondaries:
                wanted = min(
                    remaining[line.template_id],
                    _weight_limit(budget, line.unit_weight),
                )
                if wanted <= 0:
                    continue
                along = max(0, line.pipes_along_length)
                count = 0
                for region in regions:
                    count += region.fill(wanted - count, line.external_diameter, along)
                if count <= 0:
                    continue
                load.entries.append(ContainerEntry(
                    template_id=line.template_id,
                    count=count,
                    weight=count * line.unit_weight,
                    standalone=True,
                ))
                remaining[line.template_id] -= count
                budget -= count * line.unit_weight

            containers.append(load)

        unallocated = {tid: n for tid, n in remaining.items() if n > 0}
        return containers, unallocated

    def _misfit_reason(self, line: DemandLine) -> str:
        if line.standard_length > self.volume.length:
            return "Pipe length exceeds container length"
        return "Pipe diameter exceeds container dimensions"
