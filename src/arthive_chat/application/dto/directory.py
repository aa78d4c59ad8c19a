from __future__ import annotations

from dataclasses import dataclass, field

from arthive_chat.domain.entities.conversation import ConversationListEntry
from arthive_chat.domain.entities.profile import Profile


@dataclass(frozen=True, slots=True)
class DirectoryState:
    """Result of a directory load.

    ``suggestions`` is only populated when ``conversations`` is empty.
    """

    conversations: list[ConversationListEntry] = field(default_factory=list)
    suggestions: list[Profile] = field(default_factory=list)
