"""
CLI sink for local testing.

Keeps units in memory and renders them to a text stream as live typing:
edits that extend a unit only write the new suffix, any other edit
re-renders the unit on a fresh line.
"""

from __future__ import annotations

import sys
from typing import TextIO

from loguru import logger

from edenbot.sinks.base import Sink, UnitHandle, UnitNotFoundError, UnitOptions


class CLISink(Sink):
    """
    In-process sink that prints units to a terminal.

    Usage::

        sink = CLISink(max_unit_length=500)
        streamer = ResponseStreamer(sink)
        await streamer.start()
    """

    name = "cli"

    def __init__(
        self,
        max_unit_length: int = 2000,
        stream: TextIO | None = None,
        bot_name: str = "Bot",
    ) -> None:
        self.max_unit_length = max_unit_length
        self.bot_name = bot_name
        self._stream = stream
        self._units: dict[str, str] = {}
        self._options: dict[str, UnitOptions] = {}
        self._order: list[str] = []
        self._counter = 0
        self._rendered: str | None = None   # unit id currently on the last line

    @property
    def out(self) -> TextIO:
        return self._stream or sys.stdout

    # ------------------------------------------------------------------
    # Sink API
    # ------------------------------------------------------------------

    async def create_unit(self, content: str, options: UnitOptions | None = None) -> UnitHandle:
        self._counter += 1
        unit_id = f"cli_{self._counter}"
        self._units[unit_id] = content
        self._options[unit_id] = options or UnitOptions()
        self._order.append(unit_id)
        self._render_new(unit_id, content)
        logger.debug(f"[cli] Created unit {unit_id} ({len(content)} chars)")
        return UnitHandle(unit_id)

    async def fetch_content(self, unit: UnitHandle) -> str:
        return self._lookup(unit)

    async def edit_unit(self, unit: UnitHandle, content: str) -> None:
        previous = self._lookup(unit)
        self._units[unit.unit_id] = content
        if self._rendered == unit.unit_id and content.startswith(previous):
            self.out.write(content[len(previous):])
            self.out.flush()
        else:
            self._render_new(unit.unit_id, content)

    # ------------------------------------------------------------------
    # Inspection helpers
    # ------------------------------------------------------------------

    def delete_unit(self, unit_id: str) -> None:
        """Remove a unit, as if it had been deleted by someone else."""
        self._units.pop(unit_id, None)
        if self._rendered == unit_id:
            self._rendered = None

    def contents(self) -> list[str]:
        """Contents of all live units in creation order."""
        return [self._units[uid] for uid in self._order if uid in self._units]

    def options_for(self, unit_id: str) -> UnitOptions:
        return self._options[unit_id]

    def finish(self) -> None:
        """Terminate the current output line."""
        if self._rendered is not None:
            self.out.write("\n")
            self.out.flush()
            self._rendered = None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _lookup(self, unit: UnitHandle) -> str:
        try:
            return self._units[unit.unit_id]
        except KeyError:
            raise UnitNotFoundError(f"unknown unit {unit.unit_id!r}") from None

    def _render_new(self, unit_id: str, content: str) -> None:
        if self._rendered is not None:
            self.out.write("\n")
        tag = " (ephemeral)" if self._options[unit_id].ephemeral else ""
        self.out.write(f"{self.bot_name}{tag}: {content}")
        self.out.flush()
        self._rendered = unit_id
