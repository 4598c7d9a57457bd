"""
Feishu (Lark) sink — streams replies into editable text messages.

Features:
- Send: text message to a chat, or a reply to a given message
- Edit: wholesale update of a text message
- Fetch: current content of a message (re-read before every edit)
- Error mapping: recalled messages are fatal, frequency limits back off

Setup:
1. Create a Feishu app at https://open.feishu.cn
2. Enable "Bot" capability
3. Grant the im:message and im:message:send_as_bot scopes

Environment variables:
    FEISHU_APP_ID      — App ID from developer console
    FEISHU_APP_SECRET  — App Secret from developer console
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

from loguru import logger

from edenbot.sinks.base import (
    RateLimitedError,
    Sink,
    SinkError,
    UnitHandle,
    UnitNotFoundError,
    UnitOptions,
)

try:
    import lark_oapi as lark
    from lark_oapi.api.im.v1 import (
        CreateMessageRequest,
        CreateMessageRequestBody,
        GetMessageRequest,
        ReplyMessageRequest,
        ReplyMessageRequestBody,
        UpdateMessageRequest,
        UpdateMessageRequestBody,
    )
    LARK_AVAILABLE = True
except ImportError:
    LARK_AVAILABLE = False
    lark = None  # type: ignore[assignment]


# Open API response codes
_CODE_MESSAGE_RECALLED = 230011
_CODE_RATE_LIMITED = 99991400

# Text messages are far larger than this; keep edits small so they stay cheap
FEISHU_UNIT_LENGTH = 4000


def _text_content(text: str) -> str:
    return json.dumps({"text": text}, ensure_ascii=False)


def _parse_text_content(content_str: str) -> str:
    """Extract the text of a Feishu text message body."""
    try:
        content = json.loads(content_str)
    except json.JSONDecodeError:
        return content_str
    if isinstance(content, dict):
        return content.get("text", "")
    return ""


class FeishuSink(Sink):
    """Feishu text-message sink bound to one chat."""

    name = "feishu"

    def __init__(
        self,
        app_id: str,
        app_secret: str,
        chat_id: str,
        *,
        max_unit_length: int = FEISHU_UNIT_LENGTH,
        client: Any = None,
    ) -> None:
        if client is None:
            if not LARK_AVAILABLE:
                raise ImportError(
                    "lark-oapi is required for Feishu support.\n"
                    "Install with: pip install lark-oapi"
                )
            client = lark.Client.builder() \
                .app_id(app_id) \
                .app_secret(app_secret) \
                .log_level(lark.LogLevel.WARNING) \
                .build()

        self.app_id = app_id
        self.chat_id = chat_id
        self.max_unit_length = max_unit_length
        self._client = client

    # ------------------------------------------------------------------
    # Sink API
    # ------------------------------------------------------------------

    async def create_unit(self, content: str, options: UnitOptions | None = None) -> UnitHandle:
        options = options or UnitOptions()
        if options.ephemeral:
            logger.debug("[feishu] Ephemeral units are not supported, sending a normal message")

        if options.reply_to:
            req = ReplyMessageRequest.builder() \
                .message_id(options.reply_to) \
                .request_body(
                    ReplyMessageRequestBody.builder()
                    .msg_type("text")
                    .content(_text_content(content))
                    .reply_in_thread(False)
                    .build()
                ).build()
            resp = await self._call(self._client.im.v1.message.reply, req, "reply")
        else:
            req = CreateMessageRequest.builder() \
                .receive_id_type("chat_id") \
                .request_body(
                    CreateMessageRequestBody.builder()
                    .receive_id(self.chat_id)
                    .msg_type("text")
                    .content(_text_content(content))
                    .build()
                ).build()
            resp = await self._call(self._client.im.v1.message.create, req, "create")

        message_id = resp.data.message_id
        logger.debug(f"[feishu] Created message {message_id} in {self.chat_id}")
        return UnitHandle(message_id, raw=resp.data)

    async def fetch_content(self, unit: UnitHandle) -> str:
        req = GetMessageRequest.builder().message_id(unit.unit_id).build()
        resp = await self._call(self._client.im.v1.message.get, req, "get")
        items = resp.data.items if resp.data else None
        if not items:
            raise UnitNotFoundError(f"message {unit.unit_id} not found")
        item = items[0]
        if getattr(item, "deleted", False):
            raise UnitNotFoundError(f"message {unit.unit_id} was deleted")
        return _parse_text_content(item.body.content if item.body else "")

    async def edit_unit(self, unit: UnitHandle, content: str) -> None:
        req = UpdateMessageRequest.builder() \
            .message_id(unit.unit_id) \
            .request_body(
                UpdateMessageRequestBody.builder()
                .msg_type("text")
                .content(_text_content(content))
                .build()
            ).build()
        await self._call(self._client.im.v1.message.update, req, "update")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _call(self, method: Any, req: Any, action: str) -> Any:
        """Run a blocking SDK call off the event loop and map failures."""
        try:
            resp = await asyncio.to_thread(method, req)
        except Exception as exc:
            raise SinkError(f"feishu {action} error: {exc}") from exc

        if not resp.success():
            detail = f"feishu {action} failed: {resp.code} {resp.msg}"
            if resp.code == _CODE_MESSAGE_RECALLED:
                raise UnitNotFoundError(detail)
            if resp.code == _CODE_RATE_LIMITED:
                raise RateLimitedError(detail, retry_after=1.0)
            raise SinkError(detail)
        return resp
