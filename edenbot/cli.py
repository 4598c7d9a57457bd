"""
edenbot CLI entry point.

Usage:
    edenbot replay notes.md                 # Stream a file into the terminal
    cat notes.md | edenbot replay           # ... or stdin
    edenbot replay notes.md --sink feishu --chat-id oc_xxx
    edenbot --help
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import AsyncIterator

from loguru import logger

__version__ = "0.1.0"


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="edenbot",
        description="edenbot - stream text into rate-limited chat messages",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"edenbot {__version__}",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    replay = sub.add_parser("replay", help="Stream a text file as if a model was typing it")
    replay.add_argument("file", nargs="?", help="Text file to stream (default: stdin)")
    replay.add_argument("--chunk-size", type=int, default=24, help="Characters per chunk (default: 24)")
    replay.add_argument("--delay", type=float, default=0.05, help="Seconds between chunks (default: 0.05)")
    replay.add_argument("--max-unit-length", type=int, default=None, help="Max characters per message")
    replay.add_argument("--interval-ms", type=int, default=None, help="Min milliseconds between edits")
    replay.add_argument("--min-chars", type=int, default=None, help="Min buffered characters per edit")
    replay.add_argument("--sink", choices=["cli", "feishu"], default="cli", help="Where to stream (default: cli)")
    replay.add_argument("--chat-id", default="", help="Feishu chat ID (with --sink feishu)")
    replay.add_argument("--user", default="cli", help="History key for the exchange (default: cli)")
    replay.add_argument("--env-file", default=None, help="Path to a .env file")
    replay.add_argument("--log-level", default=None, help="Log level (default: $LOG_LEVEL or WARNING)")

    args = parser.parse_args(argv)
    _configure_logging(args.log_level or os.getenv("LOG_LEVEL", "WARNING"))

    try:
        asyncio.run(_run_replay(args))
    except KeyboardInterrupt:
        print("\n[edenbot] Bye!", file=sys.stderr)


def _configure_logging(level: str) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
        level=level.upper(),
    )
    log_file = os.getenv("EDEN_LOG_FILE", "").strip()
    if log_file:
        logger.add(
            Path(log_file).expanduser(),
            rotation="10 MB",
            retention="7 days",
            level="DEBUG",
        )


def _require(key: str) -> str:
    val = os.getenv(key, "").strip()
    if not val:
        print(f"ERROR: {key} is not set. Add it to your environment or .env file.", file=sys.stderr)
        sys.exit(1)
    return val


async def replay_source(text: str, chunk_size: int, delay: float) -> AsyncIterator[str]:
    """Yield ``text`` in fixed-size chunks, pausing between them."""
    for start in range(0, len(text), chunk_size):
        yield text[start:start + chunk_size]
        if delay > 0:
            await asyncio.sleep(delay)


async def _run_replay(args: argparse.Namespace) -> None:
    from edenbot.chat import ChatService
    from edenbot.config import load_config
    from edenbot.history import HistoryRegistry

    stream_cfg, history_cfg = load_config(args.env_file)
    if args.max_unit_length is not None:
        stream_cfg.max_unit_length = args.max_unit_length
    if args.interval_ms is not None:
        stream_cfg.min_edit_interval_ms = args.interval_ms
    if args.min_chars is not None:
        stream_cfg.min_chars_per_edit = args.min_chars
    stream_cfg.validate()

    if args.chunk_size <= 0:
        print("ERROR: --chunk-size must be positive", file=sys.stderr)
        sys.exit(1)

    if args.file:
        text = Path(args.file).read_text(encoding="utf-8")
    else:
        text = sys.stdin.read()

    # Build sink
    if args.sink == "feishu":
        from edenbot.sinks.feishu import FeishuSink
        if not args.chat_id:
            print("ERROR: --chat-id is required with --sink feishu", file=sys.stderr)
            sys.exit(1)
        sink = FeishuSink(
            app_id=_require("FEISHU_APP_ID"),
            app_secret=_require("FEISHU_APP_SECRET"),
            chat_id=args.chat_id,
        )
    else:
        from edenbot.sinks.cli import CLISink
        sink = CLISink(max_unit_length=stream_cfg.max_unit_length)

    chat = ChatService(history=HistoryRegistry(history_cfg), config=stream_cfg)

    def source(history: list, message: str) -> AsyncIterator[str]:
        return replay_source(text, args.chunk_size, args.delay)

    reply = await chat.respond(sink, args.user, args.file or "<stdin>", source)

    if hasattr(sink, "finish"):
        sink.finish()
    print(f"[edenbot] Streamed {len(reply)} chars via {sink.name}", file=sys.stderr)


if __name__ == "__main__":
    main()
