from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from arthive_chat.domain.entities.profile import Profile


@dataclass(frozen=True, slots=True)
class Message:
    id: int
    conversation_id: int | None
    sender_id: str
    content: str
    created_at: datetime


@dataclass(frozen=True, slots=True)
class ChatMessage:
    """A message joined with its sender profile (``None`` when unresolved)."""

    message: Message
    sender: Profile | None

    @property
    def id(self) -> int:
        return self.message.id
