"""
DeskPlant - Plant Model

Health, growth and decay arithmetic for the desk plant. PlantState is the
pure value; PlantModel owns one, persists it after every mutation and
emits on_changed so observers can redraw.

Health is always in [0, 100] and level always equals
1 + total_sessions // SESSIONS_PER_LEVEL.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from deskplant.events import Event
from deskplant.logging import PlantLogEntry, now_iso, plant_logger
from deskplant.storage import PLANT_STATE_KEY, KeyValueStore, load_or_none

logger = logging.getLogger(__name__)

MAX_HEALTH = 100.0
MIN_HEALTH = 0.0
WATER_GAIN = 10.0  # health per session, scaled by growth_rate
WITHER_LOSS = 15.0  # health per wither, scaled by wither_rate
DECAY_GRACE_HOURS = 4.0
DECAY_PER_HOUR = 2.0  # after the grace period, scaled by wither_rate
SESSIONS_PER_LEVEL = 5


class PlantType(str, Enum):
    """Available plant variants."""

    BONSAI = "Bonsai"
    CACTUS = "Cactus"
    BAMBOO = "Bamboo"
    SUNFLOWER = "Sunflower"
    SAKURA = "Sakura"
    MONSTERA = "Monstera"

    @property
    def traits(self) -> PlantTraits:
        return PLANT_TRAITS[self]

    @property
    def growth_rate(self) -> float:
        return self.traits.growth_rate

    @property
    def wither_rate(self) -> float:
        return self.traits.wither_rate

    @property
    def emoji(self) -> str:
        return self.traits.emoji

    @property
    def name_key(self) -> str:
        return f"plant.type.{self.value.lower()}"

    @property
    def description_key(self) -> str:
        return f"plant.description.{self.value.lower()}"


@dataclass(frozen=True)
class PlantTraits:
    """Per-variant constants."""

    growth_rate: float  # multiplies watering gain
    wither_rate: float  # multiplies withering and decay loss
    emoji: str
    wilting_emoji: str  # health < 40
    critical_emoji: str  # health < 20


PLANT_TRAITS: dict[PlantType, PlantTraits] = {
    PlantType.BONSAI: PlantTraits(0.8, 1.2, "🌳", "🍂", "🥀"),
    PlantType.CACTUS: PlantTraits(1.0, 0.7, "🌵", "🏜️", "💀"),
    PlantType.BAMBOO: PlantTraits(1.3, 1.0, "🎋", "🍃", "🪵"),
    PlantType.SUNFLOWER: PlantTraits(1.2, 1.3, "🌻", "🥀", "🥀"),
    PlantType.SAKURA: PlantTraits(0.9, 1.4, "🌸", "🍂", "🥀"),
    PlantType.MONSTERA: PlantTraits(1.1, 0.9, "🌿", "🍃", "🪵"),
}

DEFAULT_PLANT_TYPE = PlantType.BONSAI


class HealthStatus(str, Enum):
    """Health tiers, highest first."""

    THRIVING = "thriving"  # [80, 100]
    HEALTHY = "healthy"  # [60, 80)
    NEEDS_CARE = "needscare"  # [40, 60)
    WILTING = "wilting"  # [20, 40)
    CRITICAL = "critical"  # [0, 20)

    @property
    def key(self) -> str:
        """Translation key for this status."""
        return f"plant.status.{self.value}"


def health_status_for(health: float) -> HealthStatus:
    """Map a health value to its tier."""
    if health >= 80:
        return HealthStatus.THRIVING
    if health >= 60:
        return HealthStatus.HEALTHY
    if health >= 40:
        return HealthStatus.NEEDS_CARE
    if health >= 20:
        return HealthStatus.WILTING
    return HealthStatus.CRITICAL


def _clamp(value: float) -> float:
    return max(MIN_HEALTH, min(MAX_HEALTH, value))


def _parse_timestamp(value: str) -> datetime:
    if not isinstance(value, str):
        raise TypeError(f"timestamp must be a string, got {type(value).__name__}")
    # fromisoformat only accepts a trailing Z from 3.11 on
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is not None:
        # Clock comparisons use naive local time
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


@dataclass
class PlantState:
    """The persisted plant."""

    plant_type: PlantType = DEFAULT_PLANT_TYPE
    health: float = MAX_HEALTH
    total_sessions: int = 0
    last_watered_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self) -> None:
        self.health = _clamp(float(self.health))
        if self.total_sessions < 0:
            raise ValueError("total_sessions must be >= 0")

    @property
    def level(self) -> int:
        return 1 + self.total_sessions // SESSIONS_PER_LEVEL

    @property
    def health_status(self) -> HealthStatus:
        return health_status_for(self.health)

    @property
    def size(self) -> float:
        """Display scale in [0.5, 2.0] from health and level."""
        health_factor = self.health / MAX_HEALTH
        level_factor = min(self.level / 10.0, 1.0)
        return 0.5 + health_factor * level_factor * 1.5

    @property
    def display_emoji(self) -> str:
        traits = self.plant_type.traits
        if self.health < 20:
            return traits.critical_emoji
        if self.health < 40:
            return traits.wilting_emoji
        return traits.emoji

    def hours_since_watered(self, now: datetime) -> float:
        return (now - self.last_watered_at).total_seconds() / 3600

    def water(self, now: datetime) -> None:
        self.health = min(MAX_HEALTH, self.health + WATER_GAIN * self.plant_type.growth_rate)
        self.total_sessions += 1
        self.last_watered_at = now

    def wither(self) -> None:
        self.health = max(MIN_HEALTH, self.health - WITHER_LOSS * self.plant_type.wither_rate)

    def decay(self, now: datetime) -> float:
        """
        Apply neglect decay for the time since the last watering.

        Returns:
            The health actually lost (0.0 inside the grace period)
        """
        hours = self.hours_since_watered(now)
        if hours <= DECAY_GRACE_HOURS:
            return 0.0
        amount = (hours - DECAY_GRACE_HOURS) * DECAY_PER_HOUR * self.plant_type.wither_rate
        before = self.health
        self.health = max(MIN_HEALTH, self.health - amount)
        return before - self.health

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.plant_type.value,
            "health": self.health,
            "level": self.level,
            "totalSessions": self.total_sessions,
            "lastWatered": self.last_watered_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PlantState:
        """
        Build from a stored record.

        Every field must be present; level is re-derived from totalSessions.
        An offset-aware lastWatered is converted to naive local time.

        Raises:
            KeyError, ValueError, TypeError: If the record is incomplete or malformed
        """
        missing = {"type", "health", "level", "totalSessions", "lastWatered"} - set(data)
        if missing:
            raise KeyError(f"missing fields: {sorted(missing)}")
        last_watered = _parse_timestamp(data["lastWatered"])
        return cls(
            plant_type=PlantType(data["type"]),
            health=float(data["health"]),
            total_sessions=int(data["totalSessions"]),
            last_watered_at=last_watered,
        )


class PlantModel:
    """
    Owns the plant state and its persistence.

    Every mutation saves under PLANT_STATE_KEY, writes a PlantLogEntry and
    emits on_changed(state).
    """

    def __init__(self, store: KeyValueStore, state: PlantState | None = None):
        self.store = store
        self.state = state or PlantState()
        self.on_changed = Event("plant_changed")

    @classmethod
    def load(cls, store: KeyValueStore) -> PlantModel:
        """Load the saved plant, or start a fresh one if none is readable."""
        data = load_or_none(store, PLANT_STATE_KEY)
        if data is None:
            logger.info("No saved plant, creating a new one")
            return cls(store)
        try:
            state = PlantState.from_dict(data)
        except (KeyError, ValueError, TypeError) as e:
            logger.warning("Saved plant unreadable (%s), creating a new one", e)
            return cls(store)
        logger.info(
            "Loaded plant: %s, health %.1f, level %d",
            state.plant_type.value,
            state.health,
            state.level,
        )
        return cls(store, state)

    # Derived views

    @property
    def health(self) -> float:
        return self.state.health

    @property
    def level(self) -> int:
        return self.state.level

    @property
    def total_sessions(self) -> int:
        return self.state.total_sessions

    @property
    def plant_type(self) -> PlantType:
        return self.state.plant_type

    @property
    def health_status(self) -> HealthStatus:
        return self.state.health_status

    @property
    def size(self) -> float:
        return self.state.size

    @property
    def display_emoji(self) -> str:
        return self.state.display_emoji

    # Mutations

    def water(self, now: datetime | None = None) -> None:
        """Reward one completed focus session."""
        before = self.state.health
        self.state.water(now or datetime.now())
        self._commit("water", before)

    def wither(self) -> None:
        before = self.state.health
        self.state.wither()
        self._commit("wither", before)

    def check_health(self, now: datetime | None = None) -> float:
        """
        Apply decay if the plant has gone unwatered past the grace period.

        Decay is measured from the last watering, not the last check: call
        this on a fixed schedule only.

        Returns:
            Health lost by this call
        """
        now = now or datetime.now()
        hours = self.state.hours_since_watered(now)
        if hours <= DECAY_GRACE_HOURS:
            return 0.0
        before = self.state.health
        lost = self.state.decay(now)
        self._commit("decay", before, hours_since_watered=hours)
        return lost

    def change_type(self, plant_type: PlantType) -> None:
        before = self.state.health
        self.state.plant_type = plant_type
        self._commit("change_type", before)

    def reset(self) -> None:
        """Replace the plant with fresh defaults."""
        before = self.state.health
        self.state = PlantState()
        self._commit("reset", before)

    def save(self) -> None:
        self.store.save(PLANT_STATE_KEY, self.state.to_dict())

    def _commit(self, event: str, health_before: float, hours_since_watered: float | None = None) -> None:
        self.save()
        plant_logger.info(
            PlantLogEntry(
                timestamp=now_iso(),
                event=event,
                plant_type=self.state.plant_type.value,
                health_before=health_before,
                health_after=self.state.health,
                level=self.state.level,
                total_sessions=self.state.total_sessions,
                hours_since_watered=hours_since_watered,
            ).to_json()
        )
        logger.debug(
            "Plant %s: health %.1f -> %.1f, level %d",
            event,
            health_before,
            self.state.health,
            self.state.level,
        )
        self.on_changed.emit(self.state)
