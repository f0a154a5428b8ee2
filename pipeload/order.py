"""Order files: validated input for the calculator.

An order is a JSON document::

    {
      "volume": {"transport": "container_hc40"},
      "config": {"min_space": 0, "allowance": 0.5},
      "pipes": [
        {"id": "P1", "external_diameter": 20, "internal_diameter": 18,
         "standard_length": 600, "quantity_in_meters": 1200,
         "weight_per_meter": 3.2}
      ]
    }

``volume`` takes either a ``transport`` preset or explicit dimensions
(explicit values override the preset).
"""

import json
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field, ValidationError, model_validator

from pipeload.config import get_settings
from pipeload.containers.transport import TransportType, Volume
from pipeload.telescoping.resolver import PipeSpec
from pipeload.utils import get_logger

logger = get_logger("order")


class OrderError(Exception):
    """Raised when an order file cannot be read or is invalid."""

    def __init__(self, message: str, errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.errors = errors or {}


class PipeInput(BaseModel):
    id: str
    external_diameter: float = Field(gt=0)
    internal_diameter: float = Field(gt=0)
    standard_length: float = Field(gt=0)
    quantity_in_meters: float = Field(gt=0)
    weight_per_meter: float = Field(gt=0)

    @model_validator(mode="after")
    def check_wall(self) -> "PipeInput":
        if self.external_diameter <= self.internal_diameter:
            raise ValueError("External diameter must be greater than internal diameter")
        return self

    def to_spec(self) -> PipeSpec:
        return PipeSpec(**self.model_dump())


class VolumeInput(BaseModel):
    transport: Optional[TransportType] = None  # Settings default when omitted
    length: Optional[float] = Field(default=None, gt=0)
    width: Optional[float] = Field(default=None, gt=0)
    height: Optional[float] = Field(default=None, gt=0)
    weight_capacity: Optional[float] = Field(default=None, ge=0)

    def to_volume(self) -> Volume:
        transport = self.transport or TransportType(get_settings().default_transport)
        volume = Volume.for_transport(transport.value)
        for name in ("length", "width", "height", "weight_capacity"):
            value = getattr(self, name)
            if value is not None:
                setattr(volume, name, value)
        return volume


class ConfigInput(BaseModel):
    min_space: float = Field(default=0.0, ge=0)
    allowance: float = Field(default=0.0, ge=0)


class Order(BaseModel):
    volume: VolumeInput = Field(default_factory=VolumeInput)
    config: ConfigInput = Field(default_factory=ConfigInput)
    pipes: List[PipeInput] = Field(min_length=1)

    @model_validator(mode="after")
    def check_volume(self) -> "Order":
        if not self.volume.to_volume().is_valid:
            raise ValueError("Volume length, width and height must be positive")
        return self

    def to_pipes(self) -> List[PipeSpec]:
        return [p.to_spec() for p in self.pipes]

    def to_volume(self) -> Volume:
        return self.volume.to_volume()


def _field_errors(exc: ValidationError) -> Dict[str, str]:
    """Flatten pydantic errors to dotted field names."""
    errors = {}
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"]) or "order"
        errors[location] = error["msg"]
    return errors


def parse_order(data: dict) -> Order:
    """Validate an order document."""
    try:
        return Order.model_validate(data)
    except ValidationError as e:
        errors = _field_errors(e)
        raise OrderError(f"Invalid order ({len(errors)} errors)", errors) from e


def load_order(path: Union[str, Path]) -> Order:
    """
    Load and validate an order file.

    Args:
        path: Path to a JSON order file

    Returns:
        Validated order

    Raises:
        OrderError: If the file is unreadable or invalid
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise OrderError(f"Cannot read order file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise OrderError(f"Order file {path} is not valid JSON: {e}") from e

    order = parse_order(data)
    logger.debug(f"Loaded order {path.name} with {len(order.pipes)} pipe types")
    return order
