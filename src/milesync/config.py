"""Configuration management for milesync."""

import json
import logging
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Optional

from platformdirs import user_config_dir, user_data_dir, user_log_dir

__all__ = [
    "Config",
    "SyncSettings",
    "setup_logging",
    "DEFAULT_API_URL",
    "DEFAULT_BATCH_SIZE",
    "MAX_BATCH_SIZE",
]

logger = logging.getLogger(__name__)

APP_NAME = "Mile A Day Sync"
APP_AUTHOR = "MindGoblin"

# API endpoints
DEFAULT_API_URL = "https://mad.mindgoblin.tech"

# Sync settings
DEFAULT_BATCH_SIZE = 50
MAX_BATCH_SIZE = 500
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RETRY_BASE_DELAY = 2.0  # seconds
DEFAULT_INTER_BATCH_DELAY = 0.5  # seconds
DEFAULT_REQUEST_TIMEOUT = 30  # seconds
DEFAULT_SYNC_INTERVAL_MINUTES = 60
FOREGROUND_MIN_INTERVAL = 5 * 60  # seconds
SILENT_SYNC_THRESHOLD = 50  # workouts


@dataclass
class SyncSettings:
    """Sync configuration."""

    batch_size: int = DEFAULT_BATCH_SIZE
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    retry_base_delay: float = DEFAULT_RETRY_BASE_DELAY
    retry_jitter: bool = False
    retry_bad_request: bool = False  # 400 is terminal unless enabled
    inter_batch_delay: float = DEFAULT_INTER_BATCH_DELAY
    request_timeout: int = DEFAULT_REQUEST_TIMEOUT
    interval_minutes: int = DEFAULT_SYNC_INTERVAL_MINUTES
    foreground_min_interval: int = FOREGROUND_MIN_INTERVAL
    silent_sync_threshold: int = SILENT_SYNC_THRESHOLD

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")
        self.batch_size = min(self.batch_size, MAX_BATCH_SIZE)
        self.max_attempts = max(1, self.max_attempts)


@dataclass
class Config:
    """Main configuration object."""

    api_url: str = DEFAULT_API_URL
    sync: SyncSettings = field(default_factory=SyncSettings)
    debug_mode: bool = False

    @classmethod
    def get_config_dir(cls) -> Path:
        """Get the configuration directory path."""
        return Path(user_config_dir(APP_NAME, APP_AUTHOR))

    @classmethod
    def get_data_dir(cls) -> Path:
        """Get the data directory path (for the SQLite sync state)."""
        return Path(user_data_dir(APP_NAME, APP_AUTHOR))

    @classmethod
    def get_log_dir(cls) -> Path:
        """Get the log directory path."""
        return Path(user_log_dir(APP_NAME, APP_AUTHOR))

    @classmethod
    def get_config_file(cls) -> Path:
        """Get the config file path."""
        return cls.get_config_dir() / "config.json"

    @classmethod
    def load(cls, config_file: Optional[Path] = None) -> "Config":
        """Load config from file, or return defaults."""
        config_file = config_file or cls.get_config_file()
        if config_file.exists():
            try:
                with open(config_file, "r") as f:
                    data = json.load(f)
                return cls._from_dict(data)
            except (OSError, ValueError, TypeError) as e:
                logger.warning(f"Failed to load config: {e}, using defaults")
        return cls()

    @classmethod
    def _from_dict(cls, data: dict) -> "Config":
        """Create Config from dictionary, ignoring unknown keys."""
        sync_data = data.pop("sync", {}) or {}
        sync_data = {
            k: v for k, v in sync_data.items() if k in SyncSettings.__dataclass_fields__
        }
        return cls(
            sync=SyncSettings(**sync_data),
            **{k: v for k, v in data.items() if k in cls.__dataclass_fields__},
        )

    def save(self, config_file: Optional[Path] = None) -> None:
        """Save config to file."""
        config_file = config_file or self.get_config_file()
        config_file.parent.mkdir(parents=True, exist_ok=True)

        data = asdict(self)
        with open(config_file, "w") as f:
            json.dump(data, f, indent=2)
        logger.info(f"Config saved to {config_file}")


def setup_logging(debug: bool = False) -> None:
    """Configure logging."""
    log_dir = Config.get_log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "milesync.log"

    level = logging.DEBUG if debug else logging.INFO
    format_str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler(),
        ],
    )

    # Reduce noise from libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
