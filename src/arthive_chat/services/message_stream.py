"""Live, append-only message list for one open conversation.

The subscription is opened before the history is loaded so that inserts
committed while the bulk load runs are buffered by the feed instead of
lost. Rows already present in the history are dropped by message id.
"""
from __future__ import annotations

import asyncio
import logging
from types import TracebackType
from typing import Any, AsyncIterator, Self

from arthive_chat.application.exceptions import AppError
from arthive_chat.application.ports.directory import DirectoryService
from arthive_chat.application.ports.feed import NotificationFeed, Subscription
from arthive_chat.domain.entities.message import ChatMessage
from arthive_chat.domain.entities.profile import Profile
from arthive_chat.domain.value_objects.enums import FeedTable
from arthive_chat.services import profile_service
from arthive_chat.services.message_service import message_from_row

logger = logging.getLogger(__name__)


class MessageStream:
    """Messages of ``conversation_id`` (``None`` for the public room)."""

    def __init__(
        self,
        directory: DirectoryService,
        feed: NotificationFeed,
        conversation_id: int | None,
        *,
        messages_table: str = FeedTable.MESSAGES,
        room_table: str = FeedTable.ROOM_MESSAGES,
    ) -> None:
        self._directory = directory
        self._feed = feed
        self._conversation_id = conversation_id
        self._table = messages_table if conversation_id is not None else room_table
        self._messages: list[ChatMessage] = []
        self._seen: set[int] = set()
        self._subscription: Subscription | None = None
        self._consumer: asyncio.Task[None] | None = None
        self._listeners: set[asyncio.Queue[ChatMessage | None]] = set()

    @property
    def conversation_id(self) -> int | None:
        return self._conversation_id

    @property
    def table(self) -> str:
        return self._table

    @property
    def filter(self) -> dict[str, Any] | None:
        if self._conversation_id is None:
            return None
        return {"conversation_id": self._conversation_id}

    @property
    def messages(self) -> list[ChatMessage]:
        return list(self._messages)

    @property
    def is_open(self) -> bool:
        consumer = self._consumer
        return self._subscription is not None and consumer is not None and not consumer.done()

    async def open(self) -> None:
        if self._subscription is not None:
            raise RuntimeError("Message stream is already open")

        subscription = await self._feed.subscribe_inserts(self._table, self.filter)
        try:
            history = await self._directory.list_messages(self._conversation_id)
        except BaseException:
            await subscription.close()
            raise

        self._subscription = subscription
        for item in history:
            self._append(item)
        self._consumer = asyncio.create_task(
            self._consume(subscription),
            name=f"message-stream-{self._table}-{self._conversation_id}",
        )
        logger.info(
            "Message stream opened table=%s conversation=%s history=%d",
            self._table,
            self._conversation_id,
            len(history),
        )

    async def close(self) -> None:
        subscription, self._subscription = self._subscription, None
        consumer, self._consumer = self._consumer, None
        if subscription is None:
            return

        await subscription.close()
        if consumer is not None:
            consumer.cancel()
            try:
                await consumer
            except asyncio.CancelledError:
                pass
        self._end_listeners()
        logger.info(
            "Message stream closed table=%s conversation=%s",
            self._table,
            self._conversation_id,
        )

    def follow(self) -> tuple[list[ChatMessage], AsyncIterator[ChatMessage]]:
        """Current messages plus an iterator of everything appended after them.

        The iterator ends when the stream closes.
        """
        queue: asyncio.Queue[ChatMessage | None] = asyncio.Queue()
        if self._subscription is None:
            queue.put_nowait(None)
        else:
            self._listeners.add(queue)
        return list(self._messages), self._drain(queue)

    async def _drain(self, queue: asyncio.Queue[ChatMessage | None]) -> AsyncIterator[ChatMessage]:
        try:
            while True:
                item = await queue.get()
                if item is None:
                    return
                yield item
        finally:
            self._listeners.discard(queue)

    async def __aenter__(self) -> Self:
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def _consume(self, subscription: Subscription) -> None:
        try:
            async for row in subscription:
                await self._handle_row(row)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception(
                "Message stream for conversation=%s stopped", self._conversation_id,
            )
        finally:
            # close() detaches the subscription before cancelling us
            if self._subscription is subscription:
                await self._release_dead(subscription)

    async def _release_dead(self, subscription: Subscription) -> None:
        logger.warning(
            "Feed ended for table=%s conversation=%s; stream is no longer live",
            self._table,
            self._conversation_id,
        )
        self._subscription = None
        self._consumer = None
        try:
            await subscription.close()
        except Exception:
            logger.debug("Closing a dead subscription failed", exc_info=True)
        self._end_listeners()

    def _end_listeners(self) -> None:
        for queue in self._listeners:
            queue.put_nowait(None)

    async def _handle_row(self, row: dict[str, Any]) -> None:
        try:
            message = message_from_row(row)
        except (KeyError, TypeError, ValueError):
            logger.warning("Dropping malformed %s row: %r", self._table, row)
            return

        if message.id in self._seen:
            logger.debug("Skipping duplicate message id=%s", message.id)
            return

        sender = await self._resolve_sender(message.sender_id)
        self._append(ChatMessage(message=message, sender=sender))

    async def _resolve_sender(self, sender_id: str) -> Profile | None:
        try:
            return await profile_service.resolve_profile(self._directory, sender_id)
        except AppError as exc:
            logger.warning("Sender profile %s unresolved: %s", sender_id, exc.detail)
            return None

    def _append(self, item: ChatMessage) -> None:
        if item.id in self._seen:
            return
        self._seen.add(item.id)
        self._messages.append(item)
        for queue in self._listeners:
            queue.put_nowait(item)


def open_stream(
    directory: DirectoryService,
    feed: NotificationFeed,
    conversation_id: int | None,
    **options: Any,
) -> MessageStream:
    """Unopened stream; use as ``async with open_stream(...) as stream``."""
    return MessageStream(directory, feed, conversation_id, **options)


class ActiveConversation:
    """Owns the single open stream of a view.

    ``switch`` closes the current stream before the next one is opened.
    """

    def __init__(
        self,
        directory: DirectoryService,
        feed: NotificationFeed,
        **stream_options: Any,
    ) -> None:
        self._directory = directory
        self._feed = feed
        self._stream_options = stream_options
        self._stream: MessageStream | None = None
        self._lock = asyncio.Lock()

    @property
    def stream(self) -> MessageStream | None:
        return self._stream

    async def switch(self, conversation_id: int | None) -> MessageStream:
        async with self._lock:
            current = self._stream
            if current is not None and current.is_open and current.conversation_id == conversation_id:
                return current

            await self._close_current()
            stream = MessageStream(
                self._directory, self._feed, conversation_id, **self._stream_options,
            )
            await stream.open()
            self._stream = stream
            return stream

    async def close(self) -> None:
        async with self._lock:
            await self._close_current()

    async def _close_current(self) -> None:
        stream, self._stream = self._stream, None
        if stream is not None:
            await stream.close()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()
