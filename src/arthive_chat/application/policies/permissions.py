from __future__ import annotations

from arthive_chat.application.exceptions import ForbiddenError
from arthive_chat.application.ports.directory import DirectoryService


async def assert_participant(
    directory: DirectoryService,
    conversation_id: int,
    user_id: str,
) -> None:
    """Raise unless ``user_id`` is a member of ``conversation_id``."""
    pairs = await directory.list_other_participants([conversation_id], user_id)
    if not pairs:
        raise ForbiddenError("Not a participant of this conversation")
