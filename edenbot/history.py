"""
In-memory conversation history.

- One history per key (usually the user ID), created on first use
- Each history is trimmed to the newest ``max_messages`` on every insert
- Optionally, at most ``max_keys`` histories are kept; the least recently
  used one is evicted first
- Nothing is persisted; a restart forgets everything
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

from loguru import logger

from edenbot.config import HistoryConfig


Role = Literal["user", "assistant"]


@dataclass
class HistoryMessage:
    role: Role
    content: str
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> dict[str, Any]:
        return {"role": self.role, "content": self.content, "timestamp": self.timestamp}


class HistoryRegistry:
    """Keyed, size-bounded conversation histories."""

    def __init__(self, config: HistoryConfig | None = None) -> None:
        self.config = (config or HistoryConfig()).validate()
        self._histories: OrderedDict[str, list[HistoryMessage]] = OrderedDict()

    def get(self, key: str) -> list[HistoryMessage]:
        """Return the live history for ``key``, creating it if needed."""
        if key not in self._histories:
            self._histories[key] = []
            self._evict()
        self._histories.move_to_end(key)
        return self._histories[key]

    def messages(self, key: str) -> list[HistoryMessage]:
        """Snapshot of a history (safe to keep while new messages are added)."""
        return list(self.get(key))

    def add_user_message(self, key: str, content: str) -> None:
        self._insert(key, HistoryMessage(role="user", content=content))

    def add_ai_message(self, key: str, content: str) -> None:
        self._insert(key, HistoryMessage(role="assistant", content=content))

    def reset(self, key: str) -> None:
        if self._histories.pop(key, None) is not None:
            logger.info(f"[history] {key!r} reset")

    def keys(self) -> list[str]:
        return list(self._histories.keys())

    def _insert(self, key: str, msg: HistoryMessage) -> None:
        history = self.get(key)
        history.append(msg)
        overflow = len(history) - self.config.max_messages
        if overflow > 0:
            del history[:overflow]
            logger.debug(f"[history] {key!r} trimmed {overflow} old message(s)")

    def _evict(self) -> None:
        limit = self.config.max_keys
        if limit is None:
            return
        while len(self._histories) > limit:
            evicted, _ = self._histories.popitem(last=False)
            logger.debug(f"[history] Evicted {evicted!r}")

    def __len__(self) -> int:
        return len(self._histories)

    def __repr__(self) -> str:
        return f"HistoryRegistry(keys={len(self._histories)}, max_messages={self.config.max_messages})"
