"""Tests for the terminal sink."""

from __future__ import annotations

import io

import pytest

from edenbot.sinks.base import UnitNotFoundError, UnitOptions
from edenbot.sinks.cli import CLISink
from edenbot.streamer import ResponseStreamer
from tests.conftest import make_config, settle


class TestCLISink:
    @pytest.mark.asyncio
    async def test_appends_are_typed_in_place(self):
        out = io.StringIO()
        sink = CLISink(stream=out, bot_name="Eden")
        unit = await sink.create_unit("")
        await sink.edit_unit(unit, "Hel")
        await sink.edit_unit(unit, "Hello")
        sink.finish()
        assert out.getvalue() == "Eden: Hello\n"

    @pytest.mark.asyncio
    async def test_rewrites_render_a_new_line(self):
        out = io.StringIO()
        sink = CLISink(stream=out, bot_name="Eden")
        unit = await sink.create_unit("Thinking...")
        await sink.edit_unit(unit, "Hi")
        assert out.getvalue() == "Eden: Thinking...\nEden: Hi"
        assert await sink.fetch_content(unit) == "Hi"

    @pytest.mark.asyncio
    async def test_marks_ephemeral_units(self):
        out = io.StringIO()
        sink = CLISink(stream=out)
        unit = await sink.create_unit("secret", UnitOptions(ephemeral=True))
        assert out.getvalue() == "Bot (ephemeral): secret"
        assert sink.options_for(unit.unit_id).ephemeral

    @pytest.mark.asyncio
    async def test_deleted_unit_is_not_found(self):
        sink = CLISink(stream=io.StringIO())
        unit = await sink.create_unit("x")
        sink.delete_unit(unit.unit_id)
        with pytest.raises(UnitNotFoundError):
            await sink.fetch_content(unit)
        with pytest.raises(UnitNotFoundError):
            await sink.edit_unit(unit, "y")

    @pytest.mark.asyncio
    async def test_streams_across_units(self):
        sink = CLISink(max_unit_length=12, stream=io.StringIO())
        streamer = ResponseStreamer(sink, make_config(max_unit_length=12))
        await streamer.start()
        streamer.add_chunk("one two three four five")
        await settle(streamer)
        await streamer.finalize()
        assert "".join(sink.contents()) == "one two three four five"
        assert all(len(c) <= 12 for c in sink.contents())
