"""
DeskPlant - App Coordinator

Builds the application context once at startup and wires the timer's
completion events to the plant and the statistics. Only a full,
non-skipped focus session waters the plant and counts toward the stats.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from deskplant.config import DeskPlantConfig
from deskplant.exceptions import ConfigError, FeatureLockedError
from deskplant.license import LemonSqueezyClient, LicenseClient, LicenseGate
from deskplant.notifications import Notifier, NullNotifier
from deskplant.plant import PlantModel, PlantState, PlantType
from deskplant.preferences import Preferences, Translator, identity_translate
from deskplant.scheduler import PeriodicTask
from deskplant.stats import DailyStat, StatsAggregator
from deskplant.storage import (
    SESSIONS_COMPLETED_KEY,
    TIMER_DURATIONS_KEY,
    KeyValueStore,
    SQLiteStore,
    load_or_none,
)
from deskplant.timer import BreakCompleted, TimerEngine, WorkCompleted

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Everything the app needs, constructed once and passed by reference."""

    config: DeskPlantConfig
    store: KeyValueStore
    plant: PlantModel
    timer: TimerEngine
    stats: StatsAggregator
    license: LicenseGate
    preferences: Preferences
    notify: Notifier = field(default_factory=NullNotifier)
    translate: Translator = identity_translate
    timer_ticker: PeriodicTask | None = None


def _saved_durations(store: KeyValueStore, config: DeskPlantConfig) -> dict[str, int]:
    durations = {
        "work": config.work_minutes,
        "short_break": config.short_break_minutes,
        "long_break": config.long_break_minutes,
    }
    saved = load_or_none(store, TIMER_DURATIONS_KEY)
    if isinstance(saved, dict):
        for name in durations:
            if isinstance(saved.get(name), int):
                durations[name] = saved[name]
    return durations


def build_context(
    config: DeskPlantConfig,
    store: KeyValueStore | None = None,
    license_client: LicenseClient | None = None,
    notify: Notifier | None = None,
    translate: Translator = identity_translate,
    timer_ticker: PeriodicTask | None = None,
) -> AppContext:
    """
    Load persisted state and construct every component.

    Args:
        config: Loaded configuration
        store: Persistence collaborator (defaults to SQLite at config.db_path)
        license_client: Remote license collaborator (defaults to LemonSqueezy)
        notify: Notification sink (defaults to discarding)
        translate: Localization lookup
        timer_ticker: 1-second driver for the timer; None for manual ticking
    """
    store = store if store is not None else SQLiteStore(config.db_path)
    client = license_client or LemonSqueezyClient(
        base_url=config.api_base_url,
        timeout=config.request_timeout,
    )

    sessions = load_or_none(store, SESSIONS_COMPLETED_KEY)
    durations = _saved_durations(store, config)
    timer_kwargs = {
        "long_break_every": config.long_break_every,
        "sessions_completed": sessions if isinstance(sessions, int) and sessions >= 0 else 0,
        "ticker": timer_ticker,
    }
    try:
        timer = TimerEngine(
            work_minutes=durations["work"],
            short_break_minutes=durations["short_break"],
            long_break_minutes=durations["long_break"],
            **timer_kwargs,
        )
    except ConfigError:
        logger.warning("Saved timer durations out of range, using configured defaults")
        timer = TimerEngine(
            work_minutes=config.work_minutes,
            short_break_minutes=config.short_break_minutes,
            long_break_minutes=config.long_break_minutes,
            **timer_kwargs,
        )

    return AppContext(
        config=config,
        store=store,
        plant=PlantModel.load(store),
        timer=timer,
        stats=StatsAggregator.load(store),
        license=LicenseGate(
            store,
            client,
            store_id=config.store_id,
            product_id=config.product_id,
            translate=translate,
        ),
        preferences=Preferences(store),
        notify=notify or NullNotifier(),
        translate=translate,
        timer_ticker=timer_ticker,
    )


class AppCoordinator:
    """
    Connects the timer to the plant and the statistics.

    Work completed  -> water plant, record stat (skipped sessions get nothing)
    Break completed -> notification only
    Slow tick       -> plant decay check and a persistence flush
    """

    def __init__(
        self,
        context: AppContext,
        clock: Callable[[], datetime] = datetime.now,
        health_ticker: PeriodicTask | None = None,
    ):
        self.context = context
        self._clock = clock
        self._health_ticker = health_ticker or PeriodicTask(
            context.config.health_check_interval, name="health-check"
        )

        context.timer.on_work_completed.add_listener(self.handle_work_completed)
        context.timer.on_break_completed.add_listener(self.handle_break_completed)

    @property
    def plant(self) -> PlantModel:
        return self.context.plant

    @property
    def timer(self) -> TimerEngine:
        return self.context.timer

    @property
    def stats(self) -> StatsAggregator:
        return self.context.stats

    # ---- Timer event handlers ----

    def handle_work_completed(self, event: WorkCompleted) -> None:
        t = self.context.translate
        if event.skipped:
            logger.info("Work session skipped, plant not watered")
            self._notify(t("notification.sessionSkipped.title"), t("notification.sessionSkipped.body"))
            return

        now = self._clock()
        self.plant.water(now)
        self.stats.record(now.date(), event.duration_minutes)
        self.context.store.save(SESSIONS_COMPLETED_KEY, self.timer.sessions_completed)

        next_break = "long" if self.timer.next_break_is_long else "short"
        self._notify(
            t("notification.workComplete.title"),
            t(f"notification.workComplete.{next_break}Break"),
        )

    def handle_break_completed(self, event: BreakCompleted) -> None:
        t = self.context.translate
        self._notify(t("notification.breakComplete.title"), t("notification.breakComplete.body"))

    def run_health_check(self) -> float:
        """Slow-tick body: decay the plant and flush persistence."""
        lost = self.plant.check_health(self._clock())
        self.flush()
        return lost

    # ---- License-gated operations ----

    def select_plant_type(self, plant_type: PlantType) -> None:
        """
        Raises:
            FeatureLockedError: If the variant needs a license
        """
        if plant_type not in self.context.license.available_plant_types():
            raise FeatureLockedError(
                f"{plant_type.value} requires DeskPlant Pro",
                feature=f"plant:{plant_type.value}",
            )
        self.plant.change_type(plant_type)

    def update_timer_durations(
        self,
        work: int | None = None,
        short_break: int | None = None,
        long_break: int | None = None,
    ) -> None:
        """
        Raises:
            FeatureLockedError: If timer customization needs a license
            ConfigError: If a value is outside its bounds
        """
        if not self.context.license.can_customize_timer_durations():
            raise FeatureLockedError(
                "Custom timer durations require DeskPlant Pro",
                feature="timer_durations",
            )
        self.timer.set_durations(work=work, short_break=short_break, long_break=long_break)
        self.context.store.save(TIMER_DURATIONS_KEY, self.timer.durations_minutes())

    # ---- Data management ----

    def reset_progress(self) -> None:
        """Fresh plant and a zero session counter. Daily stats are kept."""
        self.plant.reset()
        self.timer.sessions_completed = 0
        self.context.store.save(SESSIONS_COMPLETED_KEY, 0)
        logger.info("Plant progress reset")

    def export_data(self) -> str:
        """Serialize the plant and history to a JSON snapshot."""
        return json.dumps(
            {
                "plantState": self.plant.state.to_dict(),
                "dailyStats": [s.to_dict() for s in self.stats.stats],
                "exportDate": self._clock().isoformat(),
            }
        )

    def import_data(self, blob: str) -> bool:
        """
        Replace the plant and history from an export_data() snapshot.

        Returns:
            False (and changes nothing) if the snapshot is malformed
        """
        try:
            data: dict[str, Any] = json.loads(blob)
            state = PlantState.from_dict(data["plantState"])
            history = [DailyStat.from_dict(item) for item in data["dailyStats"]]
        except (json.JSONDecodeError, KeyError, ValueError, TypeError) as e:
            logger.warning("Rejected import: %s", e)
            return False

        self.plant.state = state
        self.plant.save()
        self.plant.on_changed.emit(state)
        self.stats.replace(history)
        logger.info("Imported %d days of history", len(history))
        return True

    def flush(self) -> None:
        self.plant.save()
        self.stats.save()
        self.context.store.save(SESSIONS_COMPLETED_KEY, self.timer.sessions_completed)

    # ---- Lifecycle ----

    async def start(self) -> None:
        """Startup health check, license check and the slow driver."""
        self.run_health_check()
        await self.context.license.check_on_startup()
        self._health_ticker.start(self.run_health_check)
        logger.info("DeskPlant started")

    def shutdown(self) -> None:
        """Stop both drivers and persist everything."""
        self.timer.stop()
        self._health_ticker.stop()
        if self.context.timer_ticker is not None:
            self.context.timer_ticker.stop()
        self.flush()
        logger.info("DeskPlant stopped")

    def _notify(self, title: str, body: str) -> None:
        self.context.notify(title, body, self.context.preferences.sound_enabled)
