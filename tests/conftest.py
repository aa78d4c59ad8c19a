"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator, Awaitable, Callable, Mapping, Sequence

import pytest

from arthive_chat.application.exceptions import BackendUnavailableError
from arthive_chat.domain.entities.message import ChatMessage, Message
from arthive_chat.domain.entities.participant import Participant
from arthive_chat.domain.entities.profile import Profile

ALICE = "11111111-1111-1111-1111-111111111111"
BOB = "22222222-2222-2222-2222-222222222222"
CAROL = "33333333-3333-3333-3333-333333333333"

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_profile(user_id: str, username: str | None = None, avatar_url: str | None = None) -> Profile:
    return Profile(id=user_id, username=username, avatar_url=avatar_url)


def make_message(
    message_id: int,
    *,
    conversation_id: int | None = 42,
    sender_id: str = ALICE,
    content: str = "hello",
    t: int | None = None,
) -> Message:
    return Message(
        id=message_id,
        conversation_id=conversation_id,
        sender_id=sender_id,
        content=content,
        created_at=T0 + timedelta(seconds=t if t is not None else message_id),
    )


def message_row(message: Message) -> dict[str, Any]:
    row: dict[str, Any] = {
        "id": message.id,
        "sender_id": message.sender_id,
        "content": message.content,
        "created_at": message.created_at.isoformat(),
    }
    if message.conversation_id is not None:
        row["conversation_id"] = message.conversation_id
    return row


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0)


async def settle(rounds: int = 20) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


@dataclass
class FakeSubscription:
    table: str
    filter: dict[str, Any] | None
    _queue: asyncio.Queue = field(default_factory=asyncio.Queue)
    closed: bool = False

    def deliver(self, row: Mapping[str, Any]) -> None:
        if self.closed:
            return
        if self.filter and any(str(row.get(k)) != str(v) for k, v in self.filter.items()):
            return
        self._queue.put_nowait(dict(row))

    def drop(self) -> None:
        """End the iterator without a close() call, as a lost connection does."""
        self._queue.put_nowait(None)

    def __aiter__(self) -> AsyncIterator[dict[str, Any]]:
        return self._rows()

    async def _rows(self) -> AsyncIterator[dict[str, Any]]:
        while True:
            row = await self._queue.get()
            if row is None:
                return
            yield row

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._queue.put_nowait(None)

    async def __aenter__(self) -> FakeSubscription:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


@dataclass
class FakeFeed:
    subscriptions: list[FakeSubscription] = field(default_factory=list)

    async def subscribe_inserts(
        self,
        table: str,
        filter: Mapping[str, Any] | None = None,
    ) -> FakeSubscription:
        sub = FakeSubscription(table=table, filter=dict(filter) if filter else None)
        self.subscriptions.append(sub)
        return sub

    @property
    def active(self) -> list[FakeSubscription]:
        return [s for s in self.subscriptions if not s.closed]

    def publish(self, table: str, row: Mapping[str, Any]) -> None:
        for sub in self.active:
            if sub.table == table:
                sub.deliver(row)


@dataclass
class FakeDirectory:
    """In-memory DirectoryService with row-level visibility of participants."""

    profiles: dict[str, Profile] = field(default_factory=dict)
    participants: list[Participant] = field(default_factory=list)
    messages: list[Message] = field(default_factory=list)
    feed: FakeFeed | None = None
    # conversations the participation query does not see yet (replication lag)
    lagging: set[int] = field(default_factory=set)
    failing: set[str] = field(default_factory=set)
    calls: list[tuple[str, Any]] = field(default_factory=list)
    during_list_messages: Callable[[], Awaitable[None]] | None = None
    _pairs: dict[frozenset[str], int] = field(default_factory=dict)
    _conversation_ids: Any = field(default_factory=lambda: itertools.count(100))
    _message_ids: Any = field(default_factory=lambda: itertools.count(1000))

    def _record(self, name: str, arg: Any = None) -> None:
        self.calls.append((name, arg))
        if name in self.failing:
            raise BackendUnavailableError(f"{name} failed")

    def add_profile(self, user_id: str, username: str | None = None, avatar_url: str | None = None) -> Profile:
        profile = make_profile(user_id, username, avatar_url)
        self.profiles[user_id] = profile
        return profile

    def add_conversation(self, conversation_id: int, *user_ids: str) -> int:
        for uid in user_ids:
            self.participants.append(Participant(conversation_id=conversation_id, user_id=uid))
        if len(user_ids) == 2:
            self._pairs[frozenset(user_ids)] = conversation_id
        return conversation_id

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    async def list_participations(self, user_id: str) -> list[int]:
        self._record("list_participations", user_id)
        return [
            p.conversation_id
            for p in self.participants
            if p.user_id == user_id and p.conversation_id not in self.lagging
        ]

    async def list_other_participants(
        self,
        conversation_ids: Sequence[int],
        excluding_user_id: str,
    ) -> list[tuple[int, str]]:
        self._record("list_other_participants", tuple(conversation_ids))
        visible = {
            p.conversation_id for p in self.participants if p.user_id == excluding_user_id
        }
        return [
            (p.conversation_id, p.user_id)
            for p in self.participants
            if p.conversation_id in conversation_ids
            and p.conversation_id in visible
            and p.user_id != excluding_user_id
        ]

    async def get_profiles(self, user_ids: Sequence[str]) -> list[Profile]:
        self._record("get_profiles", tuple(user_ids))
        return [self.profiles[uid] for uid in user_ids if uid in self.profiles]

    async def get_profile(self, user_id: str) -> Profile | None:
        self._record("get_profile", user_id)
        return self.profiles.get(user_id)

    async def get_or_create_conversation(self, user_a: str, user_b: str) -> int:
        self._record("get_or_create_conversation", (user_a, user_b))
        key = frozenset((user_a, user_b))
        if key not in self._pairs:
            self.add_conversation(next(self._conversation_ids), user_a, user_b)
        return self._pairs[key]

    async def list_messages(self, conversation_id: int | None) -> list[ChatMessage]:
        self._record("list_messages", conversation_id)
        rows = sorted(
            (m for m in self.messages if m.conversation_id == conversation_id),
            key=lambda m: (m.created_at, m.id),
        )
        snapshot = [ChatMessage(message=m, sender=self.profiles.get(m.sender_id)) for m in rows]
        if self.during_list_messages is not None:
            await self.during_list_messages()
        return snapshot

    async def insert_message(
        self,
        conversation_id: int | None,
        sender_id: str,
        content: str,
    ) -> None:
        self._record("insert_message", (conversation_id, sender_id, content))
        message = Message(
            id=next(self._message_ids),
            conversation_id=conversation_id,
            sender_id=sender_id,
            content=content,
            created_at=datetime.now(timezone.utc),
        )
        self.messages.append(message)
        if self.feed is not None:
            table = "messages" if conversation_id is not None else "room_messages"
            self.feed.publish(table, message_row(message))

    async def suggest_profiles(self, limit: int, excluding_user_id: str) -> list[Profile]:
        self._record("suggest_profiles", (limit, excluding_user_id))
        return [p for uid, p in self.profiles.items() if uid != excluding_user_id][:limit]


@pytest.fixture
def feed() -> FakeFeed:
    return FakeFeed()


@pytest.fixture
def directory(feed: FakeFeed) -> FakeDirectory:
    d = FakeDirectory(feed=feed)
    d.add_profile(ALICE, "alice", "https://cdn.example/alice.png")
    d.add_profile(BOB, "bob")
    d.add_profile(CAROL, "carol")
    return d
