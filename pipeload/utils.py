"""Shared utilities for pipeload."""

import logging
import math
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

# Log records go to stderr, stdout is left to command output
log_console = Console(stderr=True)

# Pipe lengths are kept in centimeters, weights are given per meter
CM_PER_METER = 100.0
CM3_PER_M3 = 1_000_000.0


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Set up logging with Rich handler."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=log_console, rich_tracebacks=True)],
    )
    return logging.getLogger("pipeload")


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a module."""
    return logging.getLogger(f"pipeload.{name}")


def to_number(value) -> float:
    """Coerce an optional numeric field, treating missing values as zero."""
    if value is None:
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number):
        return 0.0
    return number


def cylinder_volume(diameter: float, length: float) -> float:
    """Volume of a bounding cylinder (same units as inputs, cubed)."""
    return math.pi * (diameter / 2) ** 2 * length


def weight_for_length(length_cm: float, weight_per_meter: float) -> float:
    """Weight in kg of a pipe section given its length in cm."""
    return (length_cm / CM_PER_METER) * weight_per_meter


def format_number(value: Optional[float], decimals: int = 2) -> str:
    """Format number for display."""
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return "-"
    if math.isinf(value):
        return "∞"
    return f"{value:.{decimals}f}"


def format_percentage(value: Optional[float], decimals: int = 1) -> str:
    """Format percentage for display."""
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return "-"
    return f"{value:.{decimals}f}%"


def format_weight(kg: Optional[float]) -> str:
    """Format a weight with thousands separators."""
    if kg is None or (isinstance(kg, float) and math.isnan(kg)):
        return "-"
    return f"{kg:,.2f} kg"
