"""Shared fixtures: a recording in-memory sink with failure injection."""

from __future__ import annotations

import asyncio
import time
from typing import Callable

import pytest

from edenbot.config import StreamConfig
from edenbot.sinks.base import Sink, UnitHandle, UnitNotFoundError, UnitOptions
from edenbot.streamer import ResponseStreamer

PLACEHOLDER = "..."


class FakeSink(Sink):
    """Sink that records every call and can be told to fail."""

    name = "fake"

    def __init__(self, max_unit_length: int = 2000, latency: float = 0.0) -> None:
        self.max_unit_length = max_unit_length
        self.latency = latency
        self.units: dict[str, str] = {}
        self.order: list[str] = []
        self.options: dict[str, UnitOptions | None] = {}
        self.calls: list[tuple[str, str]] = []
        self.edits: list[tuple[str, str]] = []
        self.follow_ups: list[str] = []
        # Exceptions raised (in order) by the next calls of each kind
        self.create_errors: list[Exception] = []
        self.follow_up_errors: list[Exception] = []
        self.edit_errors: list[Exception] = []
        self.fetch_errors: list[Exception] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def _enter(self, op: str, unit_id: str = "") -> None:
        self.calls.append((op, unit_id))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.latency:
                await asyncio.sleep(self.latency)
        finally:
            self.in_flight -= 1

    def _new_unit(self, content: str, options: UnitOptions | None) -> UnitHandle:
        assert len(content) <= self.max_unit_length
        unit_id = f"u{len(self.order) + 1}"
        self.units[unit_id] = content
        self.order.append(unit_id)
        self.options[unit_id] = options
        return UnitHandle(unit_id)

    async def create_unit(self, content: str, options: UnitOptions | None = None) -> UnitHandle:
        await self._enter("create")
        if self.create_errors:
            raise self.create_errors.pop(0)
        return self._new_unit(content, options)

    async def append_follow_up(self, content: str, options: UnitOptions | None = None) -> UnitHandle:
        await self._enter("follow_up")
        if self.follow_up_errors:
            raise self.follow_up_errors.pop(0)
        self.follow_ups.append(content)
        return self._new_unit(content, options)

    async def fetch_content(self, unit: UnitHandle) -> str:
        await self._enter("fetch", unit.unit_id)
        if self.fetch_errors:
            raise self.fetch_errors.pop(0)
        if unit.unit_id not in self.units:
            raise UnitNotFoundError(unit.unit_id)
        return self.units[unit.unit_id]

    async def edit_unit(self, unit: UnitHandle, content: str) -> None:
        await self._enter("edit", unit.unit_id)
        if self.edit_errors:
            raise self.edit_errors.pop(0)
        if unit.unit_id not in self.units:
            raise UnitNotFoundError(unit.unit_id)
        assert len(content) <= self.max_unit_length
        self.units[unit.unit_id] = content
        self.edits.append((unit.unit_id, content))

    def contents(self) -> list[str]:
        return [self.units[uid] for uid in self.order]

    def transcript(self) -> str:
        """Everything committed, in unit order, without an untouched placeholder."""
        parts = self.contents()
        if parts and parts[0] == PLACEHOLDER:
            parts = parts[1:]
        return "".join(parts)


def make_config(**overrides) -> StreamConfig:
    values = dict(
        max_unit_length=2000,
        min_edit_interval_ms=10,
        min_chars_per_edit=10,
        placeholder=PLACEHOLDER,
    )
    values.update(overrides)
    return StreamConfig(**values)


async def wait_for(condition: Callable[[], bool], timeout: float = 2.0) -> None:
    deadline = time.monotonic() + timeout
    while not condition():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.002)


async def settle(streamer: ResponseStreamer, timeout: float = 2.0) -> None:
    """Wait until no flush is pending any more."""
    await wait_for(lambda: not streamer.has_pending_flush, timeout)


@pytest.fixture
def sink() -> FakeSink:
    return FakeSink()
