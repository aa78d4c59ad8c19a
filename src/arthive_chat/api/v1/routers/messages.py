from __future__ import annotations

from fastapi import APIRouter

from arthive_chat.api.deps import CurrentPrincipal, DirectoryDep
from arthive_chat.api.v1.schemas.message import MessageResponse, SendMessageRequest
from arthive_chat.application.policies.permissions import assert_participant
from arthive_chat.services import message_service

router = APIRouter(prefix="/api/v1/messages", tags=["messages"])


@router.get("/conversations/{conversation_id}/messages", response_model=list[MessageResponse])
async def list_messages(
    conversation_id: int,
    principal: CurrentPrincipal,
    directory: DirectoryDep,
) -> list[MessageResponse]:
    await assert_participant(directory, conversation_id, principal.user_id)
    items = await message_service.list_messages(directory, conversation_id)
    return [MessageResponse.from_chat_message(m) for m in items]


@router.post("/conversations/{conversation_id}/messages", status_code=202)
async def send_message(
    conversation_id: int,
    body: SendMessageRequest,
    principal: CurrentPrincipal,
    directory: DirectoryDep,
) -> dict[str, str]:
    message_service.validate_content(body.content)
    await assert_participant(directory, conversation_id, principal.user_id)
    await message_service.send_message(directory, conversation_id, principal.user_id, body.content)
    return {"status": "accepted"}


@router.get("/room/messages", response_model=list[MessageResponse])
async def list_room_messages(
    _principal: CurrentPrincipal,
    directory: DirectoryDep,
) -> list[MessageResponse]:
    items = await message_service.list_messages(directory, None)
    return [MessageResponse.from_chat_message(m) for m in items]


@router.post("/room/messages", status_code=202)
async def send_room_message(
    body: SendMessageRequest,
    principal: CurrentPrincipal,
    directory: DirectoryDep,
) -> dict[str, str]:
    await message_service.send_message(directory, None, principal.user_id, body.content)
    return {"status": "accepted"}
