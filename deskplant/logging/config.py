"""
Event log configuration.

One level applies to every stream unless a stream has its own override,
e.g. DESKPLANT_LOG_LEVEL_LICENSE=DEBUG while debugging activation.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_LOG_DIR = Path.home() / ".deskplant" / "logs"


@dataclass
class LogConfig:
    """Where the event streams go and how much they keep."""

    log_dir: Path = field(default_factory=lambda: DEFAULT_LOG_DIR)
    max_file_size_bytes: int = 5 * 1024 * 1024  # 5MB
    backup_count: int = 3

    level: str = "INFO"
    stream_levels: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_env(cls) -> "LogConfig":
        """Defaults overridden by DESKPLANT_LOG_* variables."""
        config = cls()

        if log_dir := os.environ.get("DESKPLANT_LOG_DIR"):
            config.log_dir = Path(log_dir).expanduser()

        if level := os.environ.get("DESKPLANT_LOG_LEVEL"):
            config.level = level.upper()

        for stream in ("timer", "plant", "license"):
            if stream_level := os.environ.get(f"DESKPLANT_LOG_LEVEL_{stream.upper()}"):
                config.stream_levels[stream] = stream_level.upper()

        if max_size := os.environ.get("DESKPLANT_LOG_MAX_SIZE_MB"):
            try:
                config.max_file_size_bytes = int(max_size) * 1024 * 1024
            except ValueError:
                logger.warning("Ignoring DESKPLANT_LOG_MAX_SIZE_MB=%r", max_size)

        return config

    def level_for(self, stream: str) -> str:
        return self.stream_levels.get(stream, self.level)

    def path_for(self, stream: str) -> Path:
        return self.log_dir / f"{stream}.jsonl"

    def ensure_log_dir(self) -> None:
        self.log_dir.mkdir(parents=True, exist_ok=True)


_config: LogConfig | None = None


def get_config() -> LogConfig:
    """Active config, read from the environment on first use."""
    global _config
    if _config is None:
        _config = LogConfig.from_env()
        _config.ensure_log_dir()
    return _config


def set_config(config: LogConfig) -> None:
    """Replace the active config (tests point it at a temp dir)."""
    global _config
    _config = config
    _config.ensure_log_dir()
