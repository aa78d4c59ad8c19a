"""Live message streams over WebSocket.

One connection holds at most one open stream; ``open`` switches it.
"""
from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator

import pydantic
from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from arthive_chat.api.deps import DirectoryDep, FeedDep, get_verifier
from arthive_chat.api.v1.schemas.message import MessageResponse
from arthive_chat.application.dto.principal import Principal
from arthive_chat.application.exceptions import AppError
from arthive_chat.application.policies.permissions import assert_participant
from arthive_chat.application.ports.directory import DirectoryService
from arthive_chat.config import settings
from arthive_chat.domain.entities.message import ChatMessage
from arthive_chat.infrastructure.ws.protocol import (
    OpenStreamData,
    SendMessageData,
    WsInbound,
    WsOutbound,
)
from arthive_chat.services import message_service
from arthive_chat.services.message_stream import ActiveConversation

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])


async def _authenticate(token: str) -> Principal | None:
    try:
        verifier = get_verifier()
        return await verifier.verify(token)
    except Exception:
        logger.debug("WS auth failed", exc_info=True)
        return None


_frame = WsOutbound.frame


def _message_data(item: ChatMessage) -> dict:
    return MessageResponse.from_chat_message(item).model_dump(mode="json")


@router.websocket("/ws/messages")
async def ws_messages(
    websocket: WebSocket,
    directory: DirectoryDep,
    feed: FeedDep,
    token: str = Query(...),
) -> None:
    principal = await _authenticate(token)
    if principal is None:
        await websocket.close(code=4001, reason="Authentication failed")
        return

    await websocket.accept()
    session = _StreamSession(websocket, principal, directory, ActiveConversation(
        directory,
        feed,
        messages_table=settings.MESSAGES_TABLE,
        room_table=settings.ROOM_MESSAGES_TABLE,
    ))
    heartbeat_task = asyncio.create_task(
        _heartbeat(websocket), name=f"ws-heartbeat-{principal.user_id}",
    )
    try:
        await session.read_loop()
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WS error for %s", principal.user_id)
    finally:
        heartbeat_task.cancel()
        await session.close()


async def _heartbeat(ws: WebSocket) -> None:
    interval = settings.WS_HEARTBEAT_SECONDS
    try:
        while True:
            await asyncio.sleep(interval)
            await ws.send_text(_frame("pong"))
    except asyncio.CancelledError:
        pass
    except Exception:
        logger.debug("WS heartbeat stopped", exc_info=True)


class _StreamSession:
    def __init__(
        self,
        ws: WebSocket,
        principal: Principal,
        directory: DirectoryService,
        active: ActiveConversation,
    ) -> None:
        self._ws = ws
        self._principal = principal
        self._directory = directory
        self._active = active
        self._forwarder: asyncio.Task[None] | None = None

    async def read_loop(self) -> None:
        while True:
            raw = await self._ws.receive_text()
            try:
                msg = WsInbound.model_validate_json(raw)
            except pydantic.ValidationError:
                await self._ws.send_text(_frame("error", {"code": "invalid_payload"}))
                continue

            try:
                if msg.type == "ping":
                    await self._ws.send_text(_frame("pong"))
                elif msg.type == "open":
                    await self._open(OpenStreamData.model_validate(msg.data))
                elif msg.type == "close":
                    await self.close()
                    await self._ws.send_text(_frame("stream.closed"))
                elif msg.type == "message.send":
                    await self._send(SendMessageData.model_validate(msg.data))
                else:
                    await self._ws.send_text(
                        _frame("error", {"code": "unknown_type", "type": msg.type})
                    )
            except pydantic.ValidationError:
                await self._ws.send_text(_frame("error", {"code": "invalid_data"}))
            except AppError as exc:
                await self._ws.send_text(
                    _frame("error", {"code": type(exc).__name__, "detail": exc.detail})
                )

    async def _open(self, data: OpenStreamData) -> None:
        conversation_id = data.conversation_id
        if conversation_id is not None:
            await assert_participant(self._directory, conversation_id, self._principal.user_id)

        await self._stop_forwarding()
        stream = await self._active.switch(conversation_id)
        snapshot, updates = stream.follow()
        await self._ws.send_text(_frame("snapshot", {
            "conversation_id": conversation_id,
            "messages": [_message_data(m) for m in snapshot],
        }))
        self._forwarder = asyncio.create_task(
            self._forward(updates), name=f"ws-forward-{conversation_id}",
        )

    async def _send(self, data: SendMessageData) -> None:
        stream = self._active.stream
        if stream is None:
            await self._ws.send_text(_frame("error", {"code": "no_open_stream"}))
            return
        await message_service.send_message(
            self._directory,
            stream.conversation_id,
            self._principal.user_id,
            data.content,
        )

    async def _forward(self, updates: AsyncIterator[ChatMessage]) -> None:
        try:
            async for item in updates:
                await self._ws.send_text(_frame("message.created", _message_data(item)))
        except Exception:
            logger.debug("WS forwarder for %s stopped", self._principal.user_id, exc_info=True)

    async def _stop_forwarding(self) -> None:
        forwarder, self._forwarder = self._forwarder, None
        if forwarder is not None:
            forwarder.cancel()
            try:
                await forwarder
            except asyncio.CancelledError:
                pass

    async def close(self) -> None:
        await self._stop_forwarding()
        await self._active.close()
