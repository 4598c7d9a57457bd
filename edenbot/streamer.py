"""
Response streamer — turns a stream of text chunks into message edits.

The streamer owns one "active" unit in a sink and keeps editing it while
chunks arrive, so the reply appears to be typed live:
- add_chunk() only buffers; at most one flush is scheduled at any time
- A flush waits until min_edit_interval has passed since the last commit
- Later flushes are skipped until min_chars_per_edit are buffered; the very
  first flush always runs, because it replaces the placeholder
- When a unit would overflow, the text is cut at a newline or space and
  continues in a follow-up unit (at most one new unit per flush cycle)
- finalize() drains the buffer and returns the content of the last unit

Every edit re-reads the unit right before composing the new content. Sinks
offer no compare-and-swap, so this only narrows the window in which an
external edit can be overwritten; it does not close it.
"""

from __future__ import annotations

import asyncio
import contextlib
import time

from loguru import logger

from edenbot.config import StreamConfig
from edenbot.sinks.base import (
    RateLimitedError,
    Sink,
    SinkError,
    UnitHandle,
    UnitNotFoundError,
    UnitOptions,
)
from edenbot.splitting import find_split_point, iter_pieces


class ResponseStreamer:
    """Streams one response into a sink.

    Usage::

        streamer = ResponseStreamer(sink, StreamConfig())
        await streamer.start()
        async for chunk in stream:
            streamer.add_chunk(chunk)
        final = await streamer.finalize()
    """

    def __init__(self, sink: Sink, config: StreamConfig | None = None) -> None:
        self.sink = sink
        self.config = (config or StreamConfig()).validate()
        self._max_len = min(self.config.max_unit_length, sink.max_unit_length)

        self._buffer = ""
        self._unit: UnitHandle | None = None
        self._emitted = 0                 # chars of ours in the active unit
        self._committed = ""              # last content written to the active unit
        self._commits = 0
        self._units_created = 0
        self._follow_up_options = UnitOptions()

        # Timing
        self._last_flush_at = 0.0
        self._not_before = 0.0            # back-off after a failed edit

        # Single-slot flush timer
        self._pending: asyncio.Task[None] | None = None
        self._flushing = False
        self._rearm = False

        self._terminated = False
        self._lost = False                # stopped by a fatal sink error
        self._finalizing: asyncio.Task[str] | None = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def start(self, options: UnitOptions | None = None) -> bool:
        """Post the placeholder unit. Returns False if the stream is dead."""
        if self._unit is not None or self._terminated:
            return self._unit is not None

        try:
            self._unit = await self.sink.create_unit(self.config.placeholder, options)
        except SinkError as exc:
            self._abort(f"could not create the initial unit: {exc}")
            return False

        self._units_created += 1
        self._last_flush_at = time.monotonic()
        logger.debug(f"[streamer] Placeholder posted as unit {self._unit.unit_id}")

        # Chunks may have arrived before the placeholder existed
        if self._buffer:
            self._schedule()
        return True

    def add_chunk(self, text: str) -> None:
        """Buffer a chunk and make sure a flush is scheduled. Never raises."""
        if self._terminated or not text:
            return
        self._buffer += text
        if self._flushing:
            self._rearm = True
        self._schedule()

    def set_follow_up_options(self, options: UnitOptions) -> None:
        """Options for every unit created after the first one."""
        self._follow_up_options = options

    async def finalize(self) -> str:
        """Stop scheduling, drain the buffer and return the last unit's content.

        Only the last unit is reported, not the whole multi-unit transcript.
        Every call, including overlapping ones, shares the same drain and
        result; later calls perform no sink operations.
        """
        if self._finalizing is None:
            self._terminated = True
            self._finalizing = asyncio.get_running_loop().create_task(self._finalize())
        return await asyncio.shield(self._finalizing)

    @property
    def terminated(self) -> bool:
        return self._terminated

    @property
    def has_pending_flush(self) -> bool:
        return self._pending is not None

    @property
    def units_created(self) -> int:
        return self._units_created

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def _schedule(self) -> None:
        """Arm the flush timer unless one is already pending."""
        if self._pending is not None or self._terminated or self._unit is None:
            return

        now = time.monotonic()
        delay = max(
            0.0,
            self.config.min_edit_interval - (now - self._last_flush_at),
            self._not_before - now,
        )
        self._pending = asyncio.get_running_loop().create_task(self._run_scheduled(delay))

    async def _run_scheduled(self, delay: float) -> None:
        rearm = False
        try:
            await asyncio.sleep(delay)
            if self._terminated:
                return
            self._flushing = True
            try:
                rearm = await self._flush()
            except Exception:
                logger.exception("[streamer] Unexpected error during flush")
            finally:
                self._flushing = False
        finally:
            self._pending = None

        # Residual after an overflow, or chunks that arrived mid-flush
        rearm = rearm or self._rearm
        self._rearm = False
        if rearm and self._buffer and not self._terminated:
            self._schedule()

    async def _disarm(self) -> None:
        """Cancel a waiting flush, or let an in-flight one finish."""
        task = self._pending
        if task is None:
            return
        if self._flushing:
            await task
        else:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._pending = None

    # ------------------------------------------------------------------
    # Flush
    # ------------------------------------------------------------------

    async def _flush(self) -> bool:
        """Run one flush cycle. Returns True if more buffered text is waiting."""
        if not self._buffer:
            return False
        if self._commits > 0 and len(self._buffer) < self.config.min_chars_per_edit:
            logger.debug(f"[streamer] Holding {len(self._buffer)} chars until more arrive")
            return False

        if self._emitted + len(self._buffer) <= self._max_len:
            await self._commit(self._buffer)
            return False
        return await self._split()

    async def _commit(self, pending: str) -> bool:
        """Append ``pending`` (a prefix of the buffer) to the active unit."""
        unit = self._unit
        if unit is None:
            return False
        try:
            current = await self.sink.fetch_content(unit)
            content = self._compose(current, pending)
            await self.sink.edit_unit(unit, content)
        except SinkError as exc:
            self._on_sink_error(exc, f"edit of unit {unit.unit_id}")
            return False

        # The buffer may have grown while we were waiting on the sink
        self._buffer = self._buffer[len(pending):]
        self._emitted = len(content)
        self._committed = content
        self._mark_committed()
        return True

    async def _split(self) -> bool:
        """Fill the active unit up to a boundary and continue in a new one."""
        remaining = max(0, self._max_len - self._emitted)
        split = find_split_point(self._buffer, remaining)
        head = self._buffer[:split]
        if head and not await self._commit(head):
            return False

        seed = self._buffer[:self._max_len]
        try:
            unit = await self.sink.append_follow_up(seed, self._follow_up_options)
        except SinkError as exc:
            self._abort(f"could not create a follow-up unit: {exc}")
            return False

        self._unit = unit
        self._units_created += 1
        self._buffer = self._buffer[len(seed):]
        self._emitted = len(seed)
        self._committed = seed
        self._mark_committed()
        logger.info(
            f"[streamer] Overflow: continued in unit {unit.unit_id} "
            f"({len(seed)} chars, {len(self._buffer)} still buffered)"
        )
        return bool(self._buffer)

    # ------------------------------------------------------------------
    # Finalize
    # ------------------------------------------------------------------

    async def _finalize(self) -> str:
        await self._disarm()

        if self._lost:
            if self._buffer:
                logger.warning(
                    f"[streamer] Stream was stopped, abandoning {len(self._buffer)} undelivered chars"
                )
                self._buffer = ""
            final = self._committed
        else:
            final = await self._drain()

        logger.debug(
            f"[streamer] Finalized: {self._units_created} unit(s), last unit {len(final)} chars"
        )
        return final

    async def _drain(self) -> str:
        """Deliver the rest of the buffer. Sink errors are logged, not raised."""
        pending, self._buffer = self._buffer, ""

        if self._unit is None:
            if not pending:
                return ""
            logger.warning("[streamer] finalize() with buffered text but no active unit")
            return await self._send_rest(pending) or ""

        if not pending:
            return self._committed

        current = self._committed
        if self._emitted > 0:
            try:
                current = await self.sink.fetch_content(self._unit)
            except UnitNotFoundError as exc:
                logger.error(f"[streamer] Active unit is gone, dropping {len(pending)} chars: {exc}")
                return self._committed
            except SinkError as exc:
                logger.warning(f"[streamer] Could not re-read unit, using last committed content: {exc}")

        if self._emitted + len(pending) <= self._max_len:
            content = self._compose(current, pending)
            try:
                await self.sink.edit_unit(self._unit, content)
            except UnitNotFoundError as exc:
                logger.error(f"[streamer] Final edit failed, unit is gone: {exc}")
                return self._committed
            except SinkError as exc:
                logger.warning(f"[streamer] Final edit failed, sending the rest as a follow-up: {exc}")
                return await self._send_rest(pending) or self._committed
            self._emitted = len(content)
            self._committed = content
            return content

        remaining = max(0, self._max_len - self._emitted)
        split = find_split_point(pending, remaining)
        head, tail = pending[:split], pending[split:]
        if head:
            content = self._compose(current, head)
            try:
                await self.sink.edit_unit(self._unit, content)
            except UnitNotFoundError as exc:
                logger.error(f"[streamer] Final split edit failed, unit is gone, dropping {len(pending)} chars: {exc}")
                return self._committed
            except SinkError as exc:
                logger.warning(f"[streamer] Final split edit failed, moving it to the follow-up: {exc}")
                tail = pending
            else:
                self._emitted = len(content)
                self._committed = content
        return await self._send_rest(tail) or self._committed

    async def _send_rest(self, text: str) -> str | None:
        """Best-effort delivery as follow-up units. Returns the last one sent."""
        last: str | None = None
        sent = 0
        for piece in iter_pieces(text, self._max_len):
            try:
                unit = await self.sink.append_follow_up(piece, self._follow_up_options)
            except SinkError as exc:
                logger.error(f"[streamer] Follow-up failed, {len(text) - sent} chars undelivered: {exc}")
                break
            self._unit = unit
            self._units_created += 1
            self._emitted = len(piece)
            self._committed = piece
            sent += len(piece)
            last = piece
        return last

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _compose(self, current: str, pending: str) -> str:
        # Nothing of ours in the unit yet: replace the placeholder
        content = pending if self._emitted == 0 else current + pending
        if len(content) > self._max_len:
            logger.warning(
                f"[streamer] Unit changed externally, truncating "
                f"{len(content) - self._max_len} chars"
            )
            content = content[:self._max_len]
        return content

    def _mark_committed(self) -> None:
        self._commits += 1
        self._last_flush_at = time.monotonic()
        self._not_before = 0.0

    def _on_sink_error(self, exc: SinkError, action: str) -> None:
        if isinstance(exc, UnitNotFoundError):
            self._abort(f"{action} failed, unit is gone: {exc}")
            return

        wait = self.config.min_edit_interval
        if isinstance(exc, RateLimitedError) and exc.retry_after:
            wait = max(wait, exc.retry_after)
        self._not_before = time.monotonic() + wait
        logger.warning(
            f"[streamer] {action} failed, keeping {len(self._buffer)} chars buffered: {exc}"
        )

    def _abort(self, reason: str) -> None:
        self._terminated = True
        self._lost = True
        logger.error(f"[streamer] Streaming stopped: {reason}")

    def __repr__(self) -> str:
        unit = self._unit.unit_id if self._unit else None
        return (
            f"ResponseStreamer(sink={self.sink.name!r}, unit={unit!r}, "
            f"buffered={len(self._buffer)}, terminated={self._terminated})"
        )
