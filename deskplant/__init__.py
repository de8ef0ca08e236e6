"""
DeskPlant - a Pomodoro focus timer that grows a virtual desk plant.

Completed focus sessions water the plant; neglect makes it wilt.
"""

__version__ = "0.1.0"

from deskplant.exceptions import (
    ConfigError,
    DeskPlantError,
    FeatureLockedError,
    LicenseError,
    StateTransitionError,
)

__all__ = [
    "__version__",
    "DeskPlantError",
    "ConfigError",
    "FeatureLockedError",
    "LicenseError",
    "StateTransitionError",
]
