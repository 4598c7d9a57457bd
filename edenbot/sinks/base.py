"""
Abstract base classes for sinks.

A sink hosts editable, length-bounded content units (chat messages).
The streamer only talks to a sink through this interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class SinkError(Exception):
    """A sink operation failed. Treated as transient by the streamer."""


class RateLimitedError(SinkError):
    """The sink refused the call because of its rate limit."""

    def __init__(self, message: str = "rate limited", retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class UnitNotFoundError(SinkError):
    """The unit was deleted or is no longer reachable. Fatal for a stream."""


# ---------------------------------------------------------------------------
# Data types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class UnitHandle:
    """Address of one editable unit inside a sink."""

    unit_id: str                      # Platform message ID
    raw: Any = field(default=None, compare=False, repr=False)


@dataclass
class UnitOptions:
    """Options applied when a unit is created."""

    ephemeral: bool = False           # Only visible to the requesting user
    reply_to: str | None = None       # Platform message ID to reply to
    metadata: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Sink
# ---------------------------------------------------------------------------

class Sink(ABC):
    """Abstract base class for message sinks."""

    name: str = "base"
    max_unit_length: int = 2000

    @abstractmethod
    async def create_unit(self, content: str, options: UnitOptions | None = None) -> UnitHandle:
        """Create a new unit holding ``content``."""
        ...

    @abstractmethod
    async def fetch_content(self, unit: UnitHandle) -> str:
        """Return the authoritative current content of a unit."""
        ...

    @abstractmethod
    async def edit_unit(self, unit: UnitHandle, content: str) -> None:
        """Replace the content of a unit wholesale."""
        ...

    async def append_follow_up(self, content: str, options: UnitOptions | None = None) -> UnitHandle:
        """Create a unit that continues an overflowing stream.

        Sinks with a distinct follow-up primitive (e.g. interaction
        follow-ups) override this; by default it is ``create_unit``.
        """
        return await self.create_unit(content, options)
