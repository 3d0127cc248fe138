"""Core module initialization."""

from costpilot.core.config import Settings, get_settings
from costpilot.core.exceptions import (
    CostPilotError,
    CostQueryShapeError,
    CredentialResolutionError,
    ProviderError,
    ScenarioValidationError,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Errors
    "CostPilotError",
    "ProviderError",
    "CostQueryShapeError",
    "CredentialResolutionError",
    "ScenarioValidationError",
]
