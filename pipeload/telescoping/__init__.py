"""Telescoping module for nesting smaller pipes inside larger ones.

Provides the resolver that turns raw pipe specifications into packing
templates.
"""

from pipeload.telescoping.resolver import (
    NestingRelationship,
    PackingTemplate,
    PipeSpec,
    PipeTelescoping,
    SpaceSaved,
    TelescopingResolver,
    TelescopingResult,
    TelescopingSuggestion,
    TelescopingType,
    clear_telescoping,
    resolve_telescoping,
    space_saved,
    telescoping_suggestions,
)

__all__ = [
    "NestingRelationship",
    "PackingTemplate",
    "PipeSpec",
    "PipeTelescoping",
    "SpaceSaved",
    "TelescopingResolver",
    "TelescopingResult",
    "TelescopingSuggestion",
    "TelescopingType",
    "clear_telescoping",
    "resolve_telescoping",
    "space_saved",
    "telescoping_suggestions",
]
