from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from arthive_chat.api.v1.schemas.profile import ProfileResponse
from arthive_chat.config import settings
from arthive_chat.domain.entities.message import ChatMessage
from arthive_chat.services import profile_service


class SendMessageRequest(BaseModel):
    content: str


class MessageResponse(BaseModel):
    id: int
    conversation_id: int | None
    sender_id: str
    content: str
    created_at: datetime
    sender: ProfileResponse | None
    sender_name: str
    sender_avatar: str

    @classmethod
    def from_chat_message(cls, item: ChatMessage) -> MessageResponse:
        msg = item.message
        return cls(
            id=msg.id,
            conversation_id=msg.conversation_id,
            sender_id=msg.sender_id,
            content=msg.content,
            created_at=msg.created_at,
            sender=ProfileResponse.from_profile(item.sender) if item.sender else None,
            sender_name=profile_service.display_name(item.sender, settings.UNKNOWN_USER_NAME),
            sender_avatar=profile_service.avatar_for(
                msg.sender_id, item.sender, settings.AVATAR_PLACEHOLDER_URL,
            ),
        )
