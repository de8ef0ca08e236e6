"""
DeskPlant - Configuration Management

Loads ~/.config/deskplant/config.json plus environment overrides.
Timer defaults are validated against the same bounds the timer enforces
when durations are customized at runtime.
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from deskplant.exceptions import ConfigError

# Configuration paths
CONFIG_DIR = Path.home() / ".config" / "deskplant"
CONFIG_FILE = CONFIG_DIR / "config.json"
DEFAULT_DB_PATH = CONFIG_DIR / "deskplant.db"

# Duration bounds in minutes, inclusive
WORK_MINUTES_RANGE = (15, 60)
SHORT_BREAK_MINUTES_RANGE = (3, 15)
LONG_BREAK_MINUTES_RANGE = (10, 30)

# LemonSqueezy license API
LICENSE_API_BASE_URL = "https://api.lemonsqueezy.com/v1/licenses"
LICENSE_STORE_ID = 53624
LICENSE_PRODUCT_ID = 720905


def validate_minutes(name: str, minutes: int, bounds: tuple[int, int]) -> int:
    """
    Check a duration against its inclusive bounds.

    Raises:
        ConfigError: If minutes is not an int inside bounds
    """
    low, high = bounds
    if isinstance(minutes, bool) or not isinstance(minutes, int):
        raise ConfigError(f"{name} must be a whole number of minutes", {"value": minutes})
    if not low <= minutes <= high:
        raise ConfigError(
            f"{name} must be between {low} and {high} minutes",
            {"value": minutes, "min": low, "max": high},
        )
    return minutes


@dataclass
class DeskPlantConfig:
    """Main configuration container for DeskPlant."""

    work_minutes: int = 25
    short_break_minutes: int = 5
    long_break_minutes: int = 15
    long_break_every: int = 4

    # Driver intervals in seconds
    tick_interval: float = 1.0
    health_check_interval: float = 300.0

    db_path: str = str(DEFAULT_DB_PATH)

    # License server
    api_base_url: str = LICENSE_API_BASE_URL
    store_id: int = LICENSE_STORE_ID
    product_id: int = LICENSE_PRODUCT_ID
    request_timeout: float = 30.0

    def __post_init__(self) -> None:
        self.db_path = str(Path(self.db_path).expanduser())
        self.validate()

    def validate(self) -> None:
        """
        Check every field that has a legal range.

        Raises:
            ConfigError: On the first invalid value
        """
        validate_minutes("work_minutes", self.work_minutes, WORK_MINUTES_RANGE)
        validate_minutes("short_break_minutes", self.short_break_minutes, SHORT_BREAK_MINUTES_RANGE)
        validate_minutes("long_break_minutes", self.long_break_minutes, LONG_BREAK_MINUTES_RANGE)
        if self.long_break_every < 1:
            raise ConfigError("long_break_every must be at least 1", {"value": self.long_break_every})
        if self.tick_interval <= 0 or self.health_check_interval <= 0:
            raise ConfigError(
                "Driver intervals must be positive",
                {
                    "tick_interval": self.tick_interval,
                    "health_check_interval": self.health_check_interval,
                },
            )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "work_minutes": self.work_minutes,
            "short_break_minutes": self.short_break_minutes,
            "long_break_minutes": self.long_break_minutes,
            "long_break_every": self.long_break_every,
            "tick_interval": self.tick_interval,
            "health_check_interval": self.health_check_interval,
            "db_path": self.db_path,
            "api_base_url": self.api_base_url,
            "store_id": self.store_id,
            "product_id": self.product_id,
            "request_timeout": self.request_timeout,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DeskPlantConfig":
        """Create config from dictionary; unknown keys are ignored."""
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


def load_config(path: Path | None = None) -> DeskPlantConfig:
    """
    Load configuration from file and environment.

    Args:
        path: Config file to read (defaults to ~/.config/deskplant/config.json)

    Returns:
        DeskPlantConfig with all settings loaded

    Raises:
        ConfigError: If configuration is invalid
    """
    config_file = path or CONFIG_FILE
    data: dict[str, Any] = {}

    if config_file.exists():
        try:
            with open(config_file) as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(
                f"Invalid JSON in {config_file}",
                {"error": str(e)},
            )
        if not isinstance(data, dict):
            raise ConfigError(f"Expected a JSON object in {config_file}")

    if db_path := os.environ.get("DESKPLANT_DB_PATH"):
        data["db_path"] = db_path
    if api_url := os.environ.get("DESKPLANT_LICENSE_API_URL"):
        data["api_base_url"] = api_url

    try:
        return DeskPlantConfig.from_dict(data)
    except TypeError as e:
        raise ConfigError("Malformed configuration value", {"error": str(e)})


def save_config(config: DeskPlantConfig, path: Path | None = None) -> None:
    """Save configuration to file."""
    config_file = path or CONFIG_FILE
    config_file.parent.mkdir(parents=True, exist_ok=True)

    with open(config_file, "w") as f:
        json.dump(config.to_dict(), f, indent=2)
