"""Telescoping resolution for pipe orders.

Determines which pipes can travel nested inside the bore of larger ones and
reduces every resolved group (or lone pipe) to a packing template with an
effective diameter, length and weight.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pipeload.utils import cylinder_volume, get_logger, to_number, weight_for_length

logger = get_logger("telescoping.resolver")


class TelescopingType(str, Enum):
    """How a pipe relates to its nesting group."""
    NONE = "none"  # Travels on its own
    FULL = "full"  # Every nested pipe fits within the outer pipe's length
    PARTIAL = "partial"  # At least one nested pipe sticks out of the outer pipe
    NESTED = "nested"  # Carried inside another pipe


@dataclass(frozen=True)
class PipeSpec:
    """A pipe type from an order.

    Diameters and ``standard_length`` are in centimeters,
    ``quantity_in_meters`` in meters and ``weight_per_meter`` in kg/m.
    """
    id: str
    external_diameter: float
    internal_diameter: float
    standard_length: float  # Length of a single pipe
    quantity_in_meters: float = 0.0  # Total length ordered
    weight_per_meter: float = 0.0

    @property
    def length(self) -> float:
        return self.standard_length

    @property
    def wall_thickness(self) -> float:
        return (self.external_diameter - self.internal_diameter) / 2

    @property
    def unit_weight(self) -> float:
        """Weight of one pipe of standard length."""
        return weight_for_length(self.standard_length, self.weight_per_meter)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "external_diameter": self.external_diameter,
            "internal_diameter": self.internal_diameter,
            "standard_length": self.standard_length,
            "quantity_in_meters": self.quantity_in_meters,
            "weight_per_meter": self.weight_per_meter,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PipeSpec":
        """Create from dictionary, treating missing numbers as zero."""
        return cls(
            id=str(data.get("id", "")),
            external_diameter=to_number(data.get("external_diameter")),
            internal_diameter=to_number(data.get("internal_diameter")),
            standard_length=to_number(data.get("standard_length", data.get("length"))),
            quantity_in_meters=to_number(data.get("quantity_in_meters")),
            weight_per_meter=to_number(data.get("weight_per_meter")),
        )


@dataclass(frozen=True)
class PackingTemplate:
    """A unit the packing engine places: a lone pipe or a nested group.

    ``member_ids`` starts with the outer pipe; nested pipes follow,
    innermost last.
    """
    template_id: str
    diameter: float
    length: float
    weight: float
    member_ids: Tuple[str, ...]

    @property
    def is_group(self) -> bool:
        return len(self.member_ids) > 1

    @property
    def radius(self) -> float:
        return self.diameter / 2

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "template_id": self.template_id,
            "diameter": self.diameter,
            "length": self.length,
            "weight": self.weight,
            "member_ids": list(self.member_ids),
        }


@dataclass
class NestingRelationship:
    """An outer pipe and the pipes carried inside it."""
    outer_id: str
    nested_ids: List[str] = field(default_factory=list)  # Innermost last
    telescoping_type: TelescopingType = TelescopingType.NONE

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "outer_id": self.outer_id,
            "nested_ids": list(self.nested_ids),
            "telescoping_type": self.telescoping_type.value,
        }


@dataclass
class PipeTelescoping:
    """Resolved telescoping view of a single pipe."""
    pipe_id: str
    telescoping_type: TelescopingType
    effective_diameter: float
    effective_length: float
    nested_with: List[str] = field(default_factory=list)
    nested_in: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "pipe_id": self.pipe_id,
            "telescoping_type": self.telescoping_type.value,
            "effective_diameter": self.effective_diameter,
            "effective_length": self.effective_length,
            "nested_with": list(self.nested_with),
            "nested_in": self.nested_in,
        }


@dataclass
class TelescopingResult:
    """Outcome of a telescoping resolution."""
    pipes: List[PipeTelescoping] = field(default_factory=list)  # Input order
    relationships: List[NestingRelationship] = field(default_factory=list)
    group_templates: List[PackingTemplate] = field(default_factory=list)
    standalone_templates: List[PackingTemplate] = field(default_factory=list)

    @property
    def templates(self) -> List[PackingTemplate]:
        """Group templates followed by standalone templates."""
        return list(self.group_templates) + list(self.standalone_templates)

    def for_pipe(self, pipe_id: str) -> Optional[PipeTelescoping]:
        """Look up the resolved view of a pipe."""
        for view in self.pipes:
            if view.pipe_id == pipe_id:
                return view
        return None

    def tree(self) -> List[dict]:
        """Nest the per-pipe views as outer -> inner chains.

        Pipes inside a group sit concentrically, so every member is the
        child of the one before it.
        """
        views = {view.pipe_id: view for view in self.pipes}
        roots = []
        for view in self.pipes:
            if view.nested_in is not None:
                continue
            root = dict(view.to_dict(), children=[])
            node = root
            for member_id in view.nested_with:
                child = dict(views[member_id].to_dict(), children=[])
                node["children"].append(child)
                node = child
            roots.append(root)
        return roots

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "pipes": [p.to_dict() for p in self.pipes],
            "relationships": [r.to_dict() for r in self.relationships],
            "group_templates": [t.to_dict() for t in self.group_templates],
            "standalone_templates": [t.to_dict() for t in self.standalone_templates],
        }


@dataclass
class SpaceSaved:
    """Volume comparison between loose and telescoped pipes (cm³)."""
    original_volume: float = 0.0
    telescoped_volume: float = 0.0
    space_saved: float = 0.0
    percentage_saved: float = 0.0

    @classmethod
    def between(cls, original: float, telescoped: float) -> "SpaceSaved":
        saved = original - telescoped
        percentage = (saved / original) * 100 if original > 0 else 0.0
        return cls(
            original_volume=original,
            telescoped_volume=telescoped,
            space_saved=saved,
            percentage_saved=percentage,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "original_volume": self.original_volume,
            "telescoped_volume": self.telescoped_volume,
            "space_saved": self.space_saved,
            "percentage_saved": self.percentage_saved,
        }


@dataclass
class TelescopingSuggestion:
    """A nesting group worth presenting to the user."""
    outer_pipe: PipeSpec
    inner_pipes: List[PipeSpec]
    telescoping_type: TelescopingType
    space_saved: SpaceSaved

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "outer_pipe": self.outer_pipe.to_dict(),
            "inner_pipes": [p.to_dict() for p in self.inner_pipes],
            "telescoping_type": self.telescoping_type.value,
            "space_saved": self.space_saved.to_dict(),
        }


class TelescopingResolver:
    """
    Resolves which pipes nest inside which.

    Larger pipes are offered as hosts first; each host swallows the largest
    pipes that still fit its remaining bore, concentrically, one level at a
    time.
    """

    def __init__(self, allowance: float = 0.0):
        """
        Initialize resolver.

        Args:
            allowance: Radial clearance kept around every nested pipe (cm)
        """
        self.allowance = to_number(allowance)

    def available_bore(self, pipe: PipeSpec) -> float:
        """Largest external diameter that may nest inside ``pipe``."""
        return pipe.internal_diameter - 2 * self.allowance

    def resolve(self, pipes: Iterable[PipeSpec]) -> TelescopingResult:
        """
        Resolve telescoping groups for a list of pipes.

        Args:
            pipes: Pipe specifications; the caller's collection is not modified

        Returns:
            Per-pipe views, relationships and packing templates
        """
        specs = list(pipes)
        # Positions into specs; sorted() is stable so equal diameters keep input order
        ordered = sorted(
            range(len(specs)),
            key=lambda k: specs[k].external_diameter,
            reverse=True,
        )

        consumed = set()
        groups: List[Tuple[int, List[int]]] = []

        for outer_pos in ordered:
            if outer_pos in consumed:
                continue

            member_pos: List[int] = []
            available = self.available_bore(specs[outer_pos])
            if available > 0:
                for pos in ordered:
                    if pos == outer_pos or pos in consumed:
                        continue
                    if specs[pos].external_diameter <= available:
                        consumed.add(pos)
                        member_pos.append(pos)
                        available = self.available_bore(specs[pos])
                        if available <= 0:
                            break

            if member_pos:
                groups.append((outer_pos, member_pos))

        views: Dict[int, PipeTelescoping] = {}
        relationships = []
        group_templates = []
        grouped = set()

        for outer_pos, member_pos in groups:
            outer = specs[outer_pos]
            members = [specs[pos] for pos in member_pos]
            member_types = [
                TelescopingType.FULL if m.length <= outer.length else TelescopingType.PARTIAL
                for m in members
            ]
            group_type = (
                TelescopingType.PARTIAL
                if TelescopingType.PARTIAL in member_types
                else TelescopingType.FULL
            )

            if group_type == TelescopingType.FULL:
                effective_diameter = outer.external_diameter
                effective_length = outer.length
            else:
                effective_diameter = max(
                    outer.external_diameter,
                    max(m.external_diameter for m in members),
                )
                effective_length = max(outer.length, max(m.length for m in members))

            weight = sum(
                weight_for_length(p.length, p.weight_per_meter)
                for p in [outer] + members
            )
            member_ids = [m.id for m in members]

            views[outer_pos] = PipeTelescoping(
                pipe_id=outer.id,
                telescoping_type=group_type,
                effective_diameter=effective_diameter,
                effective_length=effective_length,
                nested_with=list(member_ids),
            )
            for pos, member in zip(member_pos, members):
                views[pos] = PipeTelescoping(
                    pipe_id=member.id,
                    telescoping_type=TelescopingType.NESTED,
                    effective_diameter=member.external_diameter,
                    effective_length=member.length,
                    nested_in=outer.id,
                )

            relationships.append(NestingRelationship(
                outer_id=outer.id,
                nested_ids=list(member_ids),
                telescoping_type=group_type,
            ))
            group_templates.append(PackingTemplate(
                template_id=outer.id,
                diameter=effective_diameter,
                length=effective_length,
                weight=weight,
                member_ids=tuple([outer.id] + member_ids),
            ))
            grouped.add(outer_pos)
            grouped.update(member_pos)

        standalone_templates = []
        for pos in ordered:
            if pos in grouped:
                continue
            pipe = specs[pos]
            views[pos] = PipeTelescoping(
                pipe_id=pipe.id,
                telescoping_type=TelescopingType.NONE,
                effective_diameter=pipe.external_diameter,
                effective_length=pipe.length,
            )
            standalone_templates.append(PackingTemplate(
                template_id=pipe.id,
                diameter=pipe.external_diameter,
                length=pipe.length,
                weight=pipe.unit_weight,
                member_ids=(pipe.id,),
            ))

        logger.debug(
            f"Resolved {len(specs)} pipes into {len(group_templates)} groups "
            f"and {len(standalone_templates)} standalone templates"
        )

        return TelescopingResult(
            pipes=[views[pos] for pos in range(len(specs))],
            relationships=relationships,
            group_templates=group_templates,
            standalone_templates=standalone_templates,
        )


def space_saved(pipes: Iterable[PipeSpec], result: TelescopingResult) -> SpaceSaved:
    """Compare the volume of loose pipes with their telescoped assemblies."""
    specs = list(pipes)
    original = sum(cylinder_volume(p.external_diameter, p.length) for p in specs)
    telescoped = sum(
        cylinder_volume(view.effective_diameter, view.effective_length)
        for view in result.pipes
        if view.nested_in is None
    )
    return SpaceSaved.between(original, telescoped)


def telescoping_suggestions(
    pipes: Iterable[PipeSpec],
    allowance: float = 0.0,
) -> List[TelescopingSuggestion]:
    """List every nesting group with the space it saves."""
    specs = list(pipes)
    by_id = {p.id: p for p in specs}
    result = TelescopingResolver(allowance).resolve(specs)

    suggestions = []
    for relationship in result.relationships:
        outer = by_id[relationship.outer_id]
        inner = [by_id[pid] for pid in relationship.nested_ids]
        view = result.for_pipe(outer.id)

        original = cylinder_volume(outer.external_diameter, outer.length) + sum(
            cylinder_volume(p.external_diameter, p.length) for p in inner
        )
        telescoped = cylinder_volume(view.effective_diameter, view.effective_length)

        suggestions.append(TelescopingSuggestion(
            outer_pipe=outer,
            inner_pipes=inner,
            telescoping_type=relationship.telescoping_type,
            space_saved=SpaceSaved.between(original, telescoped),
        ))
    return suggestions


def clear_telescoping(pipes: Iterable[PipeSpec]) -> List[PipeTelescoping]:
    """Per-pipe views with every pipe travelling on its own."""
    return [
        PipeTelescoping(
            pipe_id=p.id,
            telescoping_type=TelescopingType.NONE,
            effective_diameter=p.external_diameter,
            effective_length=p.length,
        )
        for p in pipes
    ]


# Convenience functions
def resolve_telescoping(
    pipes: Iterable[PipeSpec],
    allowance: float = 0.0,
) -> TelescopingResult:
    """
    Resolve telescoping groups.

    Args:
        pipes: Pipe specifications
        allowance: Radial clearance between nested pipes (cm)

    Returns:
        Telescoping result
    """
    return TelescopingResolver(allowance=allowance).resolve(pipes)
