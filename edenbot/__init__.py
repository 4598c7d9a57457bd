"""edenbot — stream LLM replies into rate-limited, length-limited chat messages."""

from edenbot.chat import ChatService, ChunkSource, SummarySource
from edenbot.config import HistoryConfig, StreamConfig, load_config
from edenbot.history import HistoryMessage, HistoryRegistry
from edenbot.sinks.base import (
    RateLimitedError,
    Sink,
    SinkError,
    UnitHandle,
    UnitNotFoundError,
    UnitOptions,
)
from edenbot.sinks.cli import CLISink
from edenbot.splitting import find_split_point, iter_pieces
from edenbot.streamer import ResponseStreamer

__version__ = "0.1.0"
__all__ = [
    # Core
    "ResponseStreamer", "find_split_point", "iter_pieces",
    # Config
    "StreamConfig", "HistoryConfig", "load_config",
    # Conversation
    "ChatService", "ChunkSource", "SummarySource", "HistoryRegistry", "HistoryMessage",
    # Sinks
    "Sink", "UnitHandle", "UnitOptions", "CLISink",
    # Errors
    "SinkError", "RateLimitedError", "UnitNotFoundError",
]
