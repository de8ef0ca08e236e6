"""
Daily focus statistics.

One DailyStat per calendar day, created lazily on the first completed
session of that day. History is never pruned.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any

from deskplant.storage import DAILY_STATS_KEY, KeyValueStore, load_or_none

logger = logging.getLogger(__name__)


@dataclass
class DailyStat:
    """Totals for one local calendar day."""

    date: date
    sessions_completed: int = 0
    total_minutes: int = 0

    @property
    def formatted_date(self) -> str:
        """Short display form, e.g. 'Oct 19'."""
        return f"{self.date.strftime('%b')} {self.date.day}"

    def is_today(self, today: date | None = None) -> bool:
        return self.date == (today or date.today())

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "sessionsCompleted": self.sessions_completed,
            "totalMinutes": self.total_minutes,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DailyStat:
        # Accepts a bare date or a full timestamp
        day = date.fromisoformat(data["date"][:10])
        return cls(
            date=day,
            sessions_completed=int(data["sessionsCompleted"]),
            total_minutes=int(data["totalMinutes"]),
        )


class StatsAggregator:
    """Folds completed sessions into per-day totals."""

    def __init__(self, store: KeyValueStore, stats: list[DailyStat] | None = None):
        self.store = store
        self._stats: list[DailyStat] = list(stats or [])

    @classmethod
    def load(cls, store: KeyValueStore) -> StatsAggregator:
        """Load saved history; unreadable history starts empty."""
        data = load_or_none(store, DAILY_STATS_KEY)
        if data is None:
            return cls(store)
        try:
            stats = [DailyStat.from_dict(item) for item in data]
        except (KeyError, ValueError, TypeError) as e:
            logger.warning("Saved daily stats unreadable (%s), starting fresh", e)
            return cls(store)
        return cls(store, stats)

    @property
    def stats(self) -> list[DailyStat]:
        return list(self._stats)

    def find(self, day: date) -> DailyStat | None:
        for stat in self._stats:
            if stat.date == day:
                return stat
        return None

    def record(self, day: date, minutes_of_work: int) -> DailyStat:
        """Add one completed session of minutes_of_work to day."""
        stat = self.find(day)
        if stat is None:
            stat = DailyStat(date=day, sessions_completed=1, total_minutes=minutes_of_work)
            self._stats.append(stat)
        else:
            stat.sessions_completed += 1
            stat.total_minutes += minutes_of_work
        self.save()
        logger.debug(
            "Recorded session for %s: %d sessions, %d min",
            day.isoformat(),
            stat.sessions_completed,
            stat.total_minutes,
        )
        return stat

    def today_stats(self, today: date | None = None) -> DailyStat | None:
        return self.find(today or date.today())

    def week_stats(self, today: date | None = None) -> list[DailyStat]:
        """Entries from the last 7 days, today included, newest first."""
        cutoff = (today or date.today()) - timedelta(days=7)
        recent = [s for s in self._stats if s.date > cutoff]
        return sorted(recent, key=lambda s: s.date, reverse=True)

    def streak(self, today: date | None = None) -> int:
        """Consecutive days with an entry, counting back from today."""
        days = {s.date for s in self._stats}
        current = today or date.today()
        count = 0
        while current in days:
            count += 1
            current -= timedelta(days=1)
        return count

    def total_focus_minutes(self) -> int:
        return sum(s.total_minutes for s in self._stats)

    def total_sessions(self) -> int:
        return sum(s.sessions_completed for s in self._stats)

    def replace(self, stats: list[DailyStat]) -> None:
        """Swap in a whole history (used by import)."""
        self._stats = list(stats)
        self.save()

    def save(self) -> None:
        self.store.save(DAILY_STATS_KEY, [s.to_dict() for s in self._stats])
