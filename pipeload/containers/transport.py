"""Transport volumes and their presets."""

from dataclasses import dataclass
from enum import Enum
from typing import Dict

from pipeload.packing.circle_packer import Rectangle
from pipeload.utils import CM3_PER_M3, to_number


class TransportType(str, Enum):
    """Transport volume presets."""
    CONTAINER_HC40 = "container_hc40"
    TRUCK = "truck"
    CUSTOM = "custom"


# Dimensions in cm, weight capacity in kg
TRANSPORT_PRESETS: Dict[TransportType, dict] = {
    TransportType.CONTAINER_HC40: {
        "label": "Container HC 40ft",
        "length": 1200.0,
        "width": 235.0,
        "height": 265.0,
        "weight_capacity": 23000.0,
    },
    TransportType.TRUCK: {
        "label": "Truck",
        "length": 1350.0,
        "width": 245.0,
        "height": 300.0,
        "weight_capacity": 23000.0,
    },
    TransportType.CUSTOM: {
        "label": "Custom",
        "length": 0.0,
        "width": 0.0,
        "height": 0.0,
        "weight_capacity": 0.0,
    },
}


@dataclass
class Volume:
    """A transport volume: pipes lie along its length."""
    length: float = 0.0
    width: float = 0.0
    height: float = 0.0
    weight_capacity: float = 0.0  # 0 means unlimited
    transport_type: TransportType = TransportType.CUSTOM

    @property
    def label(self) -> str:
        return TRANSPORT_PRESETS[self.transport_type]["label"]

    @property
    def cross_section(self) -> Rectangle:
        return Rectangle(width=self.width, height=self.height)

    @property
    def is_valid(self) -> bool:
        return self.length > 0 and self.width > 0 and self.height > 0

    @property
    def volume_cm3(self) -> float:
        return self.length * self.width * self.height

    @property
    def volume_m3(self) -> float:
        return self.volume_cm3 / CM3_PER_M3

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "length": self.length,
            "width": self.width,
            "height": self.height,
            "weight_capacity": self.weight_capacity,
            "transport_type": self.transport_type.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Volume":
        """Create from dictionary, treating missing numbers as zero."""
        return cls(
            length=to_number(data.get("length")),
            width=to_number(data.get("width")),
            height=to_number(data.get("height")),
            weight_capacity=to_number(data.get("weight_capacity")),
            transport_type=TransportType(data.get("transport_type", "custom")),
        )

    @classmethod
    def for_transport(cls, transport: str) -> "Volume":
        """Create volume for a transport preset."""
        transport_type = TransportType(transport)
        preset = TRANSPORT_PRESETS[transport_type]
        return cls(
            length=preset["length"],
            width=preset["width"],
            height=preset["height"],
            weight_capacity=preset["weight_capacity"],
            transport_type=transport_type,
        )
