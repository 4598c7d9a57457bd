"""
Configuration for streaming and conversation history.

Values come from dataclass defaults, overridden by environment variables
(a ``.env`` file is loaded first when present):

    EDEN_MAX_UNIT_LENGTH      — max characters per message (default 1980)
    EDEN_EDIT_INTERVAL_MS     — min milliseconds between edits (default 1500)
    EDEN_MIN_CHARS_PER_EDIT   — min buffered chars before a follow-up edit (default 10)
    EDEN_PLACEHOLDER          — text shown before the first chunk arrives
    EDEN_HISTORY_LENGTH       — messages kept per user (default 10)
    EDEN_HISTORY_USERS        — max users kept in memory (default unbounded)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


# Discord's limit is 2000; leave a little room for formatting
DEFAULT_MAX_UNIT_LENGTH = 1980
DEFAULT_EDIT_INTERVAL_MS = 1500
DEFAULT_MIN_CHARS_PER_EDIT = 10
DEFAULT_PLACEHOLDER = "🤔 Thinking..."
DEFAULT_HISTORY_LENGTH = 10


@dataclass
class StreamConfig:
    """Streamer configuration."""

    max_unit_length: int = DEFAULT_MAX_UNIT_LENGTH
    min_edit_interval_ms: int = DEFAULT_EDIT_INTERVAL_MS
    min_chars_per_edit: int = DEFAULT_MIN_CHARS_PER_EDIT
    placeholder: str = DEFAULT_PLACEHOLDER

    @property
    def min_edit_interval(self) -> float:
        """Minimum edit interval in seconds."""
        return self.min_edit_interval_ms / 1000.0

    def validate(self) -> "StreamConfig":
        if self.max_unit_length <= 0:
            raise ValueError(f"max_unit_length must be positive, got {self.max_unit_length}")
        if self.min_edit_interval_ms < 0:
            raise ValueError(f"min_edit_interval_ms must be >= 0, got {self.min_edit_interval_ms}")
        if self.min_chars_per_edit < 0:
            raise ValueError(f"min_chars_per_edit must be >= 0, got {self.min_chars_per_edit}")
        if len(self.placeholder) > self.max_unit_length:
            raise ValueError("placeholder does not fit in a single unit")
        return self


@dataclass
class HistoryConfig:
    """Conversation history configuration."""

    max_messages: int = DEFAULT_HISTORY_LENGTH
    max_keys: int | None = None         # None = unbounded

    def validate(self) -> "HistoryConfig":
        if self.max_messages <= 0:
            raise ValueError(f"max_messages must be positive, got {self.max_messages}")
        if self.max_keys is not None and self.max_keys <= 0:
            raise ValueError(f"max_keys must be positive, got {self.max_keys}")
        return self


def _env_int(key: str, default: int | None) -> int | None:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from None


def load_config(env_file: str | Path | None = None) -> tuple[StreamConfig, HistoryConfig]:
    """Build stream and history configs from the environment."""
    if env_file is not None:
        load_dotenv(env_file)
    else:
        load_dotenv()

    stream = StreamConfig(
        max_unit_length=_env_int("EDEN_MAX_UNIT_LENGTH", DEFAULT_MAX_UNIT_LENGTH),
        min_edit_interval_ms=_env_int("EDEN_EDIT_INTERVAL_MS", DEFAULT_EDIT_INTERVAL_MS),
        min_chars_per_edit=_env_int("EDEN_MIN_CHARS_PER_EDIT", DEFAULT_MIN_CHARS_PER_EDIT),
        placeholder=os.getenv("EDEN_PLACEHOLDER") or DEFAULT_PLACEHOLDER,
    )
    history = HistoryConfig(
        max_messages=_env_int("EDEN_HISTORY_LENGTH", DEFAULT_HISTORY_LENGTH),
        max_keys=_env_int("EDEN_HISTORY_USERS", None),
    )
    return stream.validate(), history.validate()
