"""
Conversation drivers.

Connect a chunk source (any async iterator of text, e.g. an LLM stream)
to a sink through a ResponseStreamer:

    respond():   user message → history → source(history, message)
                 → add_chunk() ... → finalize() → assistant reply → history
    summarize(): text → source(text) → add_chunk() ... → finalize()

Both report failures to the user as ephemeral follow-ups.
"""

from __future__ import annotations

from dataclasses import replace
from typing import AsyncIterator, Callable

from loguru import logger

from edenbot.config import StreamConfig
from edenbot.history import HistoryMessage, HistoryRegistry
from edenbot.sinks.base import Sink, SinkError, UnitOptions
from edenbot.streamer import ResponseStreamer


# (history before this message, user message) -> stream of reply chunks
ChunkSource = Callable[[list[HistoryMessage], str], AsyncIterator[str]]
# text to summarize -> stream of summary chunks
SummarySource = Callable[[str], AsyncIterator[str]]

SUMMARY_PLACEHOLDER = "✍️ Summarizing..."
MIN_SUMMARY_LENGTH = 50

START_FAILED_NOTICE = "Sorry, couldn't start the response stream."
SHORT_TEXT_NOTICE = "Please provide more text to summarize effectively."


class ChatService:
    """Streams replies into sinks and keeps per-user history.

    Usage::

        chat = ChatService()
        reply = await chat.respond(sink, user_id, "Hello!", source=my_llm_stream)
        summary = await chat.summarize(sink, long_text, source=my_summary_stream)
    """

    def __init__(
        self,
        history: HistoryRegistry | None = None,
        config: StreamConfig | None = None,
    ) -> None:
        self.history = history or HistoryRegistry()
        self.config = config or StreamConfig()

    async def respond(
        self,
        sink: Sink,
        user_id: str,
        message: str,
        source: ChunkSource,
        *,
        ephemeral: bool = False,
    ) -> str:
        """Stream one reply. Returns the full reply text (partial on error)."""
        prior = self.history.messages(user_id)
        # Recorded before generation so it survives a failed reply
        self.history.add_user_message(user_id, message)

        reply, completed = await self._stream(
            sink,
            lambda: source(prior, message),
            error_label="the conversation",
            ephemeral=ephemeral,
        )
        if completed and reply.strip():
            self.history.add_ai_message(user_id, reply.strip())
        return reply

    async def summarize(
        self,
        sink: Sink,
        text: str,
        source: SummarySource,
        *,
        ephemeral: bool = False,
    ) -> str:
        """Stream a summary of ``text``. No history is read or written.

        Texts shorter than MIN_SUMMARY_LENGTH get an ephemeral notice and
        no stream is started.
        """
        if len(text) < MIN_SUMMARY_LENGTH:
            logger.info(f"[chat] Refusing to summarize {len(text)} chars")
            await self._notify(sink, SHORT_TEXT_NOTICE)
            return ""

        summary, _ = await self._stream(
            sink,
            lambda: source(text),
            error_label="summarization",
            ephemeral=ephemeral,
            placeholder=SUMMARY_PLACEHOLDER,
        )
        return summary

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _stream(
        self,
        sink: Sink,
        chunks: Callable[[], AsyncIterator[str]],
        *,
        error_label: str,
        ephemeral: bool,
        placeholder: str | None = None,
    ) -> tuple[str, bool]:
        """Feed ``chunks()`` through a streamer.

        Returns the text produced and whether the source ran to completion.
        The source is not called when the placeholder cannot be posted.
        """
        config = self.config if placeholder is None else replace(self.config, placeholder=placeholder)
        streamer = ResponseStreamer(sink, config)
        options = UnitOptions(ephemeral=True) if ephemeral else None
        if options is not None:
            streamer.set_follow_up_options(options)

        if not await streamer.start(options):
            await self._notify(sink, START_FAILED_NOTICE)
            return "", False

        produced = ""
        try:
            async for chunk in chunks():
                streamer.add_chunk(chunk)
                produced += chunk
        except Exception as exc:
            logger.error(f"[chat] Generation failed during {error_label}: {exc}")
            await streamer.finalize()
            await self._notify(
                sink, f"❌ An error occurred during {error_label}: {str(exc) or 'Unknown error'}"
            )
            return produced, False

        await streamer.finalize()
        logger.info(f"[chat] Streamed {len(produced)} chars in {streamer.units_created} unit(s)")
        return produced, True

    async def _notify(self, sink: Sink, text: str) -> None:
        try:
            await sink.append_follow_up(text[:sink.max_unit_length], UnitOptions(ephemeral=True))
        except SinkError as exc:
            logger.error(f"[chat] Error sending notice to {sink.name}: {exc}")
