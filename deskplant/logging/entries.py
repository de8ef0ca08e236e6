"""
Event log entries.

One dataclass per stream. Entries are serialized once, by the caller,
and written verbatim as a JSONL line.
"""

import json
from dataclasses import asdict, dataclass, fields
from datetime import datetime
from typing import Any, TypeVar

E = TypeVar("E", bound="EventEntry")


class EventEntry:
    """Serialization shared by every entry dataclass."""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)  # type: ignore[call-overload]

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    @classmethod
    def from_dict(cls: type[E], data: dict[str, Any]) -> E:
        """Rebuild an entry from a log line, ignoring derived or unknown keys."""
        known = {f.name for f in fields(cls)}  # type: ignore[arg-type]
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class TimerLogEntry(EventEntry):
    """A timer transition or completion."""

    timestamp: str  # ISO 8601
    event: str  # "start_work", "pause", "work_completed", ...
    from_state: str = ""
    to_state: str = ""
    remaining_seconds: float = 0.0
    phase_duration_seconds: float = 0.0
    sessions_completed: int = 0
    skipped: bool = False


@dataclass
class PlantLogEntry(EventEntry):
    """A plant mutation, with health before and after."""

    timestamp: str
    event: str  # "water", "wither", "decay", "change_type", "reset"
    plant_type: str = ""
    health_before: float = 0.0
    health_after: float = 0.0
    level: int = 1
    total_sessions: int = 0
    hours_since_watered: float | None = None

    @property
    def health_delta(self) -> float:
        return round(self.health_after - self.health_before, 4)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["health_delta"] = self.health_delta
        return data


@dataclass
class LicenseLogEntry(EventEntry):
    """A license activation, validation or deactivation."""

    timestamp: str
    event: str  # "activate", "validate", "deactivate"
    success: bool = False
    key_suffix: str = ""  # last 4 characters only
    device_name: str = ""
    latency_ms: int = 0
    cleared_record: bool = False
    error: str | None = None
    error_type: str | None = None


def now_iso() -> str:
    return datetime.now().isoformat()


def mask_key(key: str) -> str:
    """Keep only the last four characters of a license key."""
    return key[-4:] if len(key) > 4 else ""
