"""
Event stream handlers.

Each DeskPlant event stream (timer, plant, license) is one JSONL file.
Entries arrive already serialized by their dataclass; the handler stamps
the stream name on every line so rotated files can be merged later.
"""

import json
import logging
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .config import LogConfig

STREAMS = ("timer", "plant", "license")


class EventStreamHandler(RotatingFileHandler):
    """Size-rotated JSONL file for one event stream."""

    def __init__(self, stream: str, filepath: Path, max_bytes: int, backup_count: int):
        filepath.parent.mkdir(parents=True, exist_ok=True)
        super().__init__(
            str(filepath),
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        self.stream_name = stream
        self.setFormatter(PassthroughFormatter())

    def to_line(self, record: logging.LogRecord) -> str:
        message = self.format(record)
        try:
            data = json.loads(message)
        except json.JSONDecodeError:
            data = None
        if not isinstance(data, dict):
            data = {
                "timestamp": datetime.fromtimestamp(record.created).isoformat(),
                "event": "message",
                "level": record.levelname,
                "message": message,
            }
        data["stream"] = self.stream_name
        return json.dumps(data, default=str)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = self.to_line(record)
            if self.shouldRollover(record):
                self.doRollover()
            if self.stream is None:
                self.stream = self._open()
            self.stream.write(line + "\n")
            self.flush()
        except Exception:
            self.handleError(record)


class PassthroughFormatter(logging.Formatter):
    """Entries are serialized by their dataclass; pass them through."""

    def format(self, record: logging.LogRecord) -> str:
        return record.getMessage()


def create_stream_logger(stream: str, config: LogConfig) -> logging.Logger:
    """
    Build the logger for one event stream from config.

    Args:
        stream: One of STREAMS
        config: Paths, rotation and per-stream levels

    Returns:
        Logger writing only to the stream's JSONL file
    """
    if stream not in STREAMS:
        raise ValueError(f"Unknown event stream: {stream}")

    logger = logging.getLogger(f"deskplant.events.{stream}")
    level = config.level_for(stream)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for old in list(logger.handlers):
        old.close()
        logger.removeHandler(old)

    logger.addHandler(
        EventStreamHandler(
            stream,
            config.path_for(stream),
            max_bytes=config.max_file_size_bytes,
            backup_count=config.backup_count,
        )
    )
    logger.propagate = False
    return logger
