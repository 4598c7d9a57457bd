"""
Sink package.
"""

from edenbot.sinks.base import (
    RateLimitedError,
    Sink,
    SinkError,
    UnitHandle,
    UnitNotFoundError,
    UnitOptions,
)
from edenbot.sinks.cli import CLISink
from edenbot.sinks.feishu import FeishuSink

__all__ = [
    "Sink",
    "UnitHandle",
    "UnitOptions",
    "SinkError",
    "RateLimitedError",
    "UnitNotFoundError",
    "CLISink",
    "FeishuSink",
]
