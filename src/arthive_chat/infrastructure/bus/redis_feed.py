"""Redis Pub/Sub notification feed: one channel per table."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Mapping, Self

import redis.asyncio as aioredis

from arthive_chat.domain.value_objects.enums import FeedEvent
from arthive_chat.infrastructure.bus.serializer import deserialize_event, serialize_insert

logger = logging.getLogger(__name__)


def channel_for(prefix: str, table: str) -> str:
    return f"{prefix}:{table}"


def matches_filter(row: Mapping[str, Any], filter: Mapping[str, Any] | None) -> bool:
    """Column equality, comparing by string form as rows come back from JSON."""
    if not filter:
        return True
    for column, expected in filter.items():
        if column not in row or str(row[column]) != str(expected):
            return False
    return True


class RedisInsertPublisher:
    """Implements application.ports.feed.InsertPublisher."""

    def __init__(self, redis: aioredis.Redis, channel_prefix: str) -> None:
        self._redis = redis
        self._prefix = channel_prefix

    async def publish_insert(self, table: str, row: Mapping[str, Any]) -> None:
        await self._redis.publish(channel_for(self._prefix, table), serialize_insert(table, row))


class RedisSubscription:
    """One channel subscription with a background listener task.

    Matching rows are queued until read, so inserts published between
    ``start()`` and the first read are kept.
    """

    def __init__(
        self,
        redis: aioredis.Redis,
        channel: str,
        filter: Mapping[str, Any] | None = None,
    ) -> None:
        self._redis = redis
        self._channel = channel
        self._filter = dict(filter) if filter else None
        self._queue: asyncio.Queue[dict[str, Any] | None] = asyncio.Queue()
        self._pubsub: Any = None
        self._task: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def channel(self) -> str:
        return self._channel

    async def start(self) -> None:
        pubsub = self._redis.pubsub()
        try:
            await pubsub.subscribe(self._channel)
        except BaseException:
            await pubsub.aclose()
            raise
        self._pubsub = pubsub
        self._task = asyncio.create_task(self._listen(), name=f"feed-{self._channel}")
        logger.debug("Subscribed to channel=%s filter=%s", self._channel, self._filter)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        if self._pubsub is not None:
            await self._pubsub.unsubscribe(self._channel)
            await self._pubsub.aclose()
        self._queue.put_nowait(None)
        logger.debug("Unsubscribed from channel=%s", self._channel)

    def __aiter__(self) -> AsyncIterator[dict[str, Any]]:
        return self._rows()

    async def _rows(self) -> AsyncIterator[dict[str, Any]]:
        while not self._closed or not self._queue.empty():
            row = await self._queue.get()
            if row is None:
                return
            yield row

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _listen(self) -> None:
        try:
            async for message in self._pubsub.listen():
                if message["type"] != "message":
                    continue
                try:
                    event, _table, row = deserialize_event(message["data"])
                except (ValueError, KeyError, TypeError):
                    logger.warning("Malformed feed message on channel=%s", self._channel)
                    continue
                if event != FeedEvent.INSERT or not matches_filter(row, self._filter):
                    continue
                self._queue.put_nowait(row)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Feed listener failed on channel=%s", self._channel)
            self._queue.put_nowait(None)


class RedisNotificationFeed:
    """Implements application.ports.feed.NotificationFeed."""

    def __init__(self, redis: aioredis.Redis, channel_prefix: str) -> None:
        self._redis = redis
        self._prefix = channel_prefix

    async def subscribe_inserts(
        self,
        table: str,
        filter: Mapping[str, Any] | None = None,
    ) -> RedisSubscription:
        subscription = RedisSubscription(self._redis, channel_for(self._prefix, table), filter)
        await subscription.start()
        return subscription
