from __future__ import annotations

from dataclasses import dataclass

from arthive_chat.domain.entities.profile import Profile


@dataclass(frozen=True, slots=True)
class ConversationListEntry:
    """Client-side view of one conversation: its id and the counterpart.

    ``other_participant`` is ``None`` when the counterpart has no profile;
    ``other_user_id`` is always known.
    """

    conversation_id: int
    other_user_id: str
    other_participant: Profile | None
