from __future__ import annotations

from typing import Any

from arthive_chat.domain.entities.message import ChatMessage, Message
from arthive_chat.infrastructure.db.mappers import profile as profile_mapper
from arthive_chat.infrastructure.db.models.message import MessageModel, RoomMessageModel
from arthive_chat.infrastructure.db.models.profile import ProfileModel


def model_to_entity(model: MessageModel | RoomMessageModel) -> Message:
    return Message(
        id=model.id,
        conversation_id=getattr(model, "conversation_id", None),
        sender_id=str(model.sender_id),
        content=model.content,
        created_at=model.created_at,
    )


def model_to_chat_message(
    model: MessageModel | RoomMessageModel,
    sender: ProfileModel | None,
) -> ChatMessage:
    return ChatMessage(
        message=model_to_entity(model),
        sender=profile_mapper.model_to_entity(sender) if sender is not None else None,
    )


def model_to_row(model: MessageModel | RoomMessageModel) -> dict[str, Any]:
    """Row as published on the notification feed."""
    row: dict[str, Any] = {
        "id": model.id,
        "sender_id": str(model.sender_id),
        "content": model.content,
        "created_at": model.created_at,
    }
    if isinstance(model, MessageModel):
        row["conversation_id"] = model.conversation_id
    return row
