"""Configuration management for pipeload."""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PIPELOAD_",
        extra="ignore",
    )

    # Clearances (cm)
    min_space: float = Field(default=0.0, ge=0, description="Minimum space between pipe surfaces")
    allowance: float = Field(default=0.0, ge=0, description="Radial clearance reserved between nested pipes")

    # Packing engine
    max_rounds: int = Field(default=10_000, gt=0, description="Upper bound on placement rounds")
    overlap_tolerance: float = Field(default=1e-3, ge=0, description="Floating point slack for overlap checks")
    grid_fast_path: bool = Field(
        default=True,
        description="Use the row x column formula for container capacity when spacing is zero",
    )

    # Transport
    default_transport: str = Field(default="custom", description="Transport preset used when none is given")

    # Output
    canvas_scale: float = Field(default=10.0, gt=0, description="Pixels per centimeter for canvas coordinates")
    log_level: str = Field(default="INFO", description="Logging level")


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def configure(settings: Optional[Settings]) -> None:
    """Override global settings; None reloads them from the environment."""
    global _settings
    _settings = settings
