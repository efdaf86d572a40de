"""Configuration management for pr-pilot."""

from pr_pilot.config.exceptions import (
    ConfigurationError,
    InvalidConfigurationError,
    MissingConfigurationError,
)
from pr_pilot.config.models import AutoFixSettings, CISettings, PrPilotConfig

__all__ = [
    "AutoFixSettings",
    "CISettings",
    "ConfigurationError",
    "InvalidConfigurationError",
    "MissingConfigurationError",
    "PrPilotConfig",
]
