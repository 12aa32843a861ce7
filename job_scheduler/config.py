"""
Scheduler configuration management.

Handles loading, saving, and validating scheduler settings. Values are
resolved from explicit arguments, JOB_SCHEDULER_* environment variables
(including a .env file), a JSON config file, and finally defaults.
"""

import json
import logging
import logging.handlers
import os
from dataclasses import dataclass, field, fields, asdict
from datetime import timedelta, tzinfo
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from dotenv import load_dotenv

from job_scheduler import timezones

load_dotenv()

logger = logging.getLogger(__name__)

ENV_CONFIG_PATH = 'JOB_SCHEDULER_CONFIG_PATH'
ENV_TIMEZONE = 'JOB_SCHEDULER_TIMEZONE'
ENV_IDLE_WAIT_MS = 'JOB_SCHEDULER_IDLE_WAIT_MS'
ENV_MAX_SLEEP = 'JOB_SCHEDULER_MAX_SLEEP'
ENV_LOG_LEVEL = 'JOB_SCHEDULER_LOG_LEVEL'
ENV_LOG_FILE = 'JOB_SCHEDULER_LOG_FILE'

# Wait suggested when there are no jobs to predict from
DEFAULT_IDLE_WAIT_MS = 500


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    file: Optional[str] = None
    max_bytes: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5


@dataclass
class SchedulerConfig:
    """
    Scheduler settings.

    Attributes:
        timezone: Offset applied to jobs at add time, e.g. "+08:00"
        idle_wait_ms: Wait suggested by time_till_next_job() with no jobs
        max_sleep_seconds: Upper bound on a single sleep of the run loop
        logging: Logging settings
    """
    timezone: str = "+00:00"
    idle_wait_ms: int = DEFAULT_IDLE_WAIT_MS
    max_sleep_seconds: Optional[float] = None
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def tzinfo(self) -> tzinfo:
        return timezones.parse_offset(self.timezone)

    @property
    def idle_wait(self) -> timedelta:
        return timedelta(milliseconds=self.idle_wait_ms)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SchedulerConfig':
        """
        Build a config from a dict shaped like the JSON file.

        Raises:
            ValueError: If the data is not a mapping or has unknown keys
        """
        if not isinstance(data, dict):
            raise ValueError(f"Config must be a JSON object, got {type(data).__name__}")
        data = dict(data)
        logging_data = data.pop('logging', None) or {}
        if not isinstance(logging_data, dict):
            raise ValueError(f"'logging' must be a JSON object, got {type(logging_data).__name__}")

        unknown = sorted(set(data) - _field_names(cls))
        unknown += sorted(f"logging.{key}" for key in set(logging_data) - _field_names(LoggingConfig))
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(unknown)}")
        return cls(logging=LoggingConfig(**logging_data), **data)

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> 'SchedulerConfig':
        """
        Load configuration.

        Configuration path priority:
        1. Explicit config_path argument
        2. JOB_SCHEDULER_CONFIG_PATH environment variable
        3. No file (defaults)

        Environment variables override values read from the file.

        Raises:
            ValueError: If the resulting configuration is invalid
        """
        if not config_path:
            config_path = os.environ.get(ENV_CONFIG_PATH)

        if config_path:
            path = Path(config_path).expanduser()
            try:
                with open(path, 'r') as f:
                    config = cls.from_dict(json.load(f))
            except Exception as e:
                logger.error(f"Failed to load config from {path}: {e}")
                raise
            logger.info(f"Loaded scheduler configuration from {path}")
        else:
            config = cls()

        config._apply_environment()

        errors = config.validate()
        if errors:
            raise ValueError("Invalid scheduler configuration: " + "; ".join(errors))
        return config

    def _apply_environment(self):
        """Override settings from JOB_SCHEDULER_* environment variables."""
        if os.environ.get(ENV_TIMEZONE):
            self.timezone = os.environ[ENV_TIMEZONE]
        if os.environ.get(ENV_IDLE_WAIT_MS):
            self.idle_wait_ms = int(os.environ[ENV_IDLE_WAIT_MS])
        if os.environ.get(ENV_MAX_SLEEP):
            self.max_sleep_seconds = float(os.environ[ENV_MAX_SLEEP])
        if os.environ.get(ENV_LOG_LEVEL):
            self.logging.level = os.environ[ENV_LOG_LEVEL].upper()
        if os.environ.get(ENV_LOG_FILE):
            self.logging.file = os.environ[ENV_LOG_FILE]

    def save(self, config_path: str):
        """Save configuration to a JSON file."""
        path = Path(config_path).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w') as f:
            json.dump(asdict(self), f, indent=2)

        logger.info(f"Saved configuration to {path}")

    def validate(self) -> List[str]:
        """
        Validate configuration.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if not isinstance(self.timezone, str):
            errors.append(f"'timezone' must be a string, got {type(self.timezone).__name__}")
        else:
            try:
                timezones.parse_offset(self.timezone)
            except ValueError as e:
                errors.append(f"'timezone': {e}")

        if not _is_int(self.idle_wait_ms):
            errors.append(f"'idle_wait_ms' must be an integer, got {type(self.idle_wait_ms).__name__}")
        elif self.idle_wait_ms < 0:
            errors.append("'idle_wait_ms' must be non-negative")

        if self.max_sleep_seconds is not None:
            if not _is_number(self.max_sleep_seconds):
                errors.append(
                    f"'max_sleep_seconds' must be a number, got {type(self.max_sleep_seconds).__name__}"
                )
            elif self.max_sleep_seconds <= 0:
                errors.append("'max_sleep_seconds' must be positive")

        level = self.logging.level
        if not isinstance(level, str):
            errors.append(f"'logging.level' must be a string, got {type(level).__name__}")
        elif logging.getLevelName(level.upper()) not in (
            logging.DEBUG, logging.INFO, logging.WARNING, logging.ERROR, logging.CRITICAL
        ):
            errors.append(f"'logging.level': unknown level {level!r}")

        if self.logging.file is not None and not isinstance(self.logging.file, str):
            errors.append(f"'logging.file' must be a string, got {type(self.logging.file).__name__}")

        for name in ('max_bytes', 'backup_count'):
            value = getattr(self.logging, name)
            if not _is_int(value) or value < 0:
                errors.append(f"'logging.{name}' must be a non-negative integer")

        return errors


def _field_names(cls) -> Set[str]:
    return {f.name for f in fields(cls)}


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


# Handlers added by the last setup_logging() call
_installed_handlers: List[logging.Handler] = []


def setup_logging(logging_config: Optional[LoggingConfig] = None, verbose: bool = False):
    """
    Send log records to the console and, if configured, a rotating file.

    Calling this again replaces the handlers installed by the previous
    call; handlers added by anything else are left alone.
    """
    logging_config = logging_config or LoggingConfig()
    level = logging.DEBUG if verbose else getattr(logging, logging_config.level.upper(), logging.INFO)

    handlers: List[logging.Handler] = []

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    handlers.append(console_handler)

    if logging_config.file:
        log_path = Path(logging_config.file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=logging_config.max_bytes,
            backupCount=logging_config.backup_count
        )
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
        ))
        handlers.append(file_handler)

    root_logger = logging.getLogger()
    for handler in _installed_handlers:
        root_logger.removeHandler(handler)
        handler.close()
    _installed_handlers.clear()

    root_logger.setLevel(level)
    for handler in handlers:
        handler.setLevel(level)
        root_logger.addHandler(handler)
        _installed_handlers.append(handler)
