from __future__ import annotations

from enum import StrEnum


class FeedEvent(StrEnum):
    INSERT = "INSERT"


class FeedTable(StrEnum):
    MESSAGES = "messages"
    ROOM_MESSAGES = "room_messages"
