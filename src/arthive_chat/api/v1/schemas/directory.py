from __future__ import annotations

from pydantic import BaseModel

from arthive_chat.api.v1.schemas.profile import ProfileResponse
from arthive_chat.application.dto.directory import DirectoryState
from arthive_chat.config import settings
from arthive_chat.domain.entities.conversation import ConversationListEntry
from arthive_chat.services import profile_service


class ConversationEntryResponse(BaseModel):
    conversation_id: int
    other_user_id: str
    other_participant: ProfileResponse | None
    display_name: str
    avatar: str

    @classmethod
    def from_entry(cls, entry: ConversationListEntry) -> ConversationEntryResponse:
        other = entry.other_participant
        return cls(
            conversation_id=entry.conversation_id,
            other_user_id=entry.other_user_id,
            other_participant=ProfileResponse.from_profile(other) if other else None,
            display_name=profile_service.display_name(other, settings.UNKNOWN_USER_NAME),
            avatar=profile_service.avatar_for(
                entry.other_user_id, other, settings.AVATAR_PLACEHOLDER_URL,
            ),
        )


class DirectoryResponse(BaseModel):
    conversations: list[ConversationEntryResponse]
    suggestions: list[ProfileResponse]

    @classmethod
    def from_state(cls, state: DirectoryState) -> DirectoryResponse:
        return cls(
            conversations=[ConversationEntryResponse.from_entry(e) for e in state.conversations],
            suggestions=[ProfileResponse.from_profile(p) for p in state.suggestions],
        )


class StartConversationRequest(BaseModel):
    other_user_id: str


class StartConversationResponse(BaseModel):
    conversation_id: int
