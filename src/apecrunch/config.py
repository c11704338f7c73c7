"""Calculator settings loaded from environment variables.

Environment variables:
    APECRUNCH_DECIMAL_PLACES: Digits shown after the decimal point (default: 6)
    APECRUNCH_AUTOSAVE_INTERVAL: Save after this many new entries; 0 disables
        periodic checkpoints (default: 1)
    APECRUNCH_DATA_DIR: Directory holding the history file
        (default: ~/.local/share/apecrunch)
    APECRUNCH_HISTORY_FILE: History file path; relative paths are resolved
        against the data directory (default: history.bin)
    APECRUNCH_LOG_LEVEL: Logging level for the CLI (default: WARNING)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final

ENV_DECIMAL_PLACES: Final[str] = "APECRUNCH_DECIMAL_PLACES"
ENV_AUTOSAVE_INTERVAL: Final[str] = "APECRUNCH_AUTOSAVE_INTERVAL"
ENV_DATA_DIR: Final[str] = "APECRUNCH_DATA_DIR"
ENV_HISTORY_FILE: Final[str] = "APECRUNCH_HISTORY_FILE"
ENV_LOG_LEVEL: Final[str] = "APECRUNCH_LOG_LEVEL"

DEFAULT_DECIMAL_PLACES: Final[int] = 6
MAX_DECIMAL_PLACES: Final[int] = 64
DEFAULT_AUTOSAVE_INTERVAL: Final[int] = 1
DEFAULT_HISTORY_FILE: Final[str] = "history.bin"
DEFAULT_LOG_LEVEL: Final[str] = "WARNING"


class SettingsError(Exception):
    """Raised when calculator configuration is invalid."""


@dataclass(frozen=True)
class CalcSettings:
    """Calculator configuration (immutable).

    Attributes:
        decimal_places: Digits shown after the decimal point. Affects display
            only, never parsing or evaluation.
        autosave_interval: Entries between checkpoints; 0 saves only on close.
        data_dir: Directory holding the history file.
        history_file: History file name or path.
    """

    decimal_places: int = DEFAULT_DECIMAL_PLACES
    autosave_interval: int = DEFAULT_AUTOSAVE_INTERVAL
    data_dir: Path = field(default_factory=lambda: Path.home() / ".local" / "share" / "apecrunch")
    history_file: Path = Path(DEFAULT_HISTORY_FILE)

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if not 0 <= self.decimal_places <= MAX_DECIMAL_PLACES:
            raise SettingsError(
                f"{ENV_DECIMAL_PLACES} must be between 0 and {MAX_DECIMAL_PLACES}, "
                f"got {self.decimal_places}"
            )
        if self.autosave_interval < 0:
            raise SettingsError(
                f"{ENV_AUTOSAVE_INTERVAL} must be a non-negative integer, "
                f"got {self.autosave_interval}"
            )

    @property
    def history_path(self) -> Path:
        """Absolute location of the history file."""
        if self.history_file.is_absolute():
            return self.history_file
        return self.data_dir / self.history_file


def _parse_int(env_var: str, default: int) -> int:
    """Parse an integer from an environment variable.

    Raises:
        SettingsError: If the value is set but not an integer.
    """
    raw = os.environ.get(env_var)
    if raw is None:
        return default

    raw = raw.strip()
    if not raw:
        return default

    try:
        return int(raw)
    except ValueError as e:
        raise SettingsError(f"{env_var} must be an integer, got '{raw}'") from e


def _parse_path(env_var: str, default: Path) -> Path:
    raw = os.environ.get(env_var, "").strip()
    if not raw:
        return default
    return Path(raw).expanduser()


def load_settings() -> CalcSettings:
    """Load calculator settings from environment variables.

    Returns:
        CalcSettings with validated values.

    Raises:
        SettingsError: If any value is invalid.
    """
    defaults = CalcSettings()
    return CalcSettings(
        decimal_places=_parse_int(ENV_DECIMAL_PLACES, DEFAULT_DECIMAL_PLACES),
        autosave_interval=_parse_int(ENV_AUTOSAVE_INTERVAL, DEFAULT_AUTOSAVE_INTERVAL),
        data_dir=_parse_path(ENV_DATA_DIR, defaults.data_dir),
        history_file=_parse_path(ENV_HISTORY_FILE, defaults.history_file),
    )


def resolve_log_level() -> int:
    """Map APECRUNCH_LOG_LEVEL to a logging level, defaulting to WARNING."""
    name = os.environ.get(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL).strip().upper()
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        raise SettingsError(f"{ENV_LOG_LEVEL} must be a logging level name, got '{name}'")
    return level
