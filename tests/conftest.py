"""Shared fixtures."""

from datetime import datetime

import pytest

from deskplant.logging import LogConfig, configure_logging
from deskplant.storage import MemoryStore


class CorruptibleStore(MemoryStore):
    """MemoryStore that can hold undecodable values."""

    def put_raw(self, key: str, raw: str) -> None:
        self._data[key] = raw


@pytest.fixture(autouse=True)
def isolated_logs(tmp_path):
    """Send the JSONL event logs to a temp directory."""
    configure_logging(LogConfig(log_dir=tmp_path / "logs"))
    yield tmp_path / "logs"


@pytest.fixture
def store():
    return CorruptibleStore()


@pytest.fixture
def noon():
    return datetime(2026, 10, 19, 12, 0, 0)
