from __future__ import annotations

from typing import Protocol, Sequence

from arthive_chat.domain.entities.message import ChatMessage
from arthive_chat.domain.entities.profile import Profile


class DirectoryService(Protocol):
    """Table access and RPCs offered by the managed backend.

    Every method may raise ``BackendUnavailableError``.
    """

    async def list_participations(self, user_id: str) -> list[int]: ...

    async def list_other_participants(
        self,
        conversation_ids: Sequence[int],
        excluding_user_id: str,
    ) -> list[tuple[int, str]]:
        """Return ``(conversation_id, user_id)`` for every other member.

        Only conversations ``excluding_user_id`` belongs to are visible.
        """
        ...

    async def get_profiles(self, user_ids: Sequence[str]) -> list[Profile]: ...

    async def get_profile(self, user_id: str) -> Profile | None: ...

    async def get_or_create_conversation(self, user_a: str, user_b: str) -> int:
        """Idempotent and independent of argument order."""
        ...

    async def list_messages(self, conversation_id: int | None) -> list[ChatMessage]:
        """Messages ascending by ``created_at``; ``None`` is the public room."""
        ...

    async def insert_message(
        self,
        conversation_id: int | None,
        sender_id: str,
        content: str,
    ) -> None: ...

    async def suggest_profiles(self, limit: int, excluding_user_id: str) -> list[Profile]: ...
