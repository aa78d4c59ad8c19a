from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Mapping

from arthive_chat.application.exceptions import ValidationError
from arthive_chat.application.ports.directory import DirectoryService
from arthive_chat.domain.entities.message import ChatMessage, Message

logger = logging.getLogger(__name__)


def validate_content(content: str | None) -> str:
    if content is None or not content.strip():
        raise ValidationError("Message content must not be empty")
    return content


async def send_message(
    directory: DirectoryService,
    conversation_id: int | None,
    sender_id: str,
    content: str | None,
) -> None:
    """Write one message row.

    Nothing is appended locally: the message shows up through its own
    insert event on the notification feed.
    """
    content = validate_content(content)
    await directory.insert_message(conversation_id, sender_id, content)
    logger.debug("Message from %s written to conversation %s", sender_id, conversation_id)


async def list_messages(
    directory: DirectoryService,
    conversation_id: int | None,
) -> list[ChatMessage]:
    return await directory.list_messages(conversation_id)


def message_from_row(row: Mapping[str, Any]) -> Message:
    """Build a ``Message`` from a raw inserted row as delivered by the feed."""
    created_at = row["created_at"]
    if isinstance(created_at, str):
        created_at = datetime.fromisoformat(created_at)
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)

    conversation_id = row.get("conversation_id")
    return Message(
        id=int(row["id"]),
        conversation_id=int(conversation_id) if conversation_id is not None else None,
        sender_id=str(row["sender_id"]),
        content=str(row["content"]),
        created_at=created_at,
    )
