"""WebSocket frames for live message streams."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class WsInbound(BaseModel):
    """Client → Server: open | close | message.send | ping."""

    type: str
    data: dict[str, Any] = {}


class OpenStreamData(BaseModel):
    # None opens the public room
    conversation_id: int | None = None


class SendMessageData(BaseModel):
    content: str | None = None


class WsOutbound(BaseModel):
    """Server → Client: snapshot | message.created | stream.closed | error | pong."""

    type: str
    data: dict[str, Any] = {}

    @classmethod
    def frame(cls, type_: str, data: dict[str, Any] | None = None) -> str:
        return cls(type=type_, data=data or {}).model_dump_json()
