from __future__ import annotations

from fastapi import APIRouter, Query

from arthive_chat.api.deps import CurrentPrincipal, DirectoryDep
from arthive_chat.api.v1.schemas.directory import (
    DirectoryResponse,
    StartConversationRequest,
    StartConversationResponse,
)
from arthive_chat.config import settings
from arthive_chat.services import conversation_service

router = APIRouter(prefix="/api/v1/messages", tags=["directory"])


@router.get("/directory", response_model=DirectoryResponse)
async def read_directory(
    principal: CurrentPrincipal,
    directory: DirectoryDep,
    conversation_id: int | None = Query(None, ge=1),
) -> DirectoryResponse:
    state = await conversation_service.load_directory(
        directory,
        principal.user_id,
        conversation_id,
        suggestion_limit=settings.SUGGESTION_LIMIT,
    )
    return DirectoryResponse.from_state(state)


@router.post("/conversations", response_model=StartConversationResponse)
async def start_conversation(
    body: StartConversationRequest,
    principal: CurrentPrincipal,
    directory: DirectoryDep,
) -> StartConversationResponse:
    conversation_id = await conversation_service.start_conversation(
        directory, principal.user_id, body.other_user_id,
    )
    return StartConversationResponse(conversation_id=conversation_id)
