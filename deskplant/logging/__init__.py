"""
DeskPlant Logging System.

Structured JSONL event streams, one file each under ~/.deskplant/logs/:
    - timer.jsonl    state transitions, completions, skips
    - plant.jsonl    watering, withering, decay, resets
    - license.jsonl  activation, validation, deactivation

Usage:
    from deskplant.logging import plant_logger, PlantLogEntry, now_iso

    entry = PlantLogEntry(timestamp=now_iso(), event="water", ...)
    plant_logger.info(entry.to_json())

Files are only created when a stream is first written to.
"""

import logging
import threading
from typing import Any

from .config import LogConfig, get_config, set_config
from .entries import (
    LicenseLogEntry,
    PlantLogEntry,
    TimerLogEntry,
    mask_key,
    now_iso,
)
from .handlers import STREAMS, create_stream_logger

_loggers: dict[str, logging.Logger] = {}
_init_lock = threading.Lock()


def _stream_logger(stream: str) -> logging.Logger:
    logger = _loggers.get(stream)
    if logger is not None:
        return logger
    with _init_lock:
        if stream not in _loggers:
            _loggers[stream] = create_stream_logger(stream, get_config())
        return _loggers[stream]


def configure_logging(config: LogConfig) -> None:
    """Install a new log config; streams reopen on their next write."""
    with _init_lock:
        set_config(config)
        for logger in _loggers.values():
            for handler in list(logger.handlers):
                handler.close()
                logger.removeHandler(handler)
        _loggers.clear()


class _LazyLogger:
    """Stream logger that opens its file on first use."""

    def __init__(self, stream: str):
        if stream not in STREAMS:
            raise ValueError(f"Unknown event stream: {stream}")
        self.stream = stream

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        _stream_logger(self.stream).debug(msg, *args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        _stream_logger(self.stream).info(msg, *args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        _stream_logger(self.stream).warning(msg, *args, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        _stream_logger(self.stream).error(msg, *args, **kwargs)


timer_logger = _LazyLogger("timer")
plant_logger = _LazyLogger("plant")
license_logger = _LazyLogger("license")


__all__ = [
    # Loggers
    "timer_logger",
    "plant_logger",
    "license_logger",
    # Log entries
    "TimerLogEntry",
    "PlantLogEntry",
    "LicenseLogEntry",
    # Utilities
    "now_iso",
    "mask_key",
    # Config
    "LogConfig",
    "get_config",
    "set_config",
    "configure_logging",
]
