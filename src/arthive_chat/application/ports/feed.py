from __future__ import annotations

from typing import Any, AsyncIterator, Mapping, Protocol, Self


class Subscription(Protocol):
    """Live stream of rows inserted into one table.

    Iterating yields raw row dicts. ``close()`` releases the subscription and
    ends iteration; it is safe to call more than once.
    """

    def __aiter__(self) -> AsyncIterator[dict[str, Any]]: ...

    async def close(self) -> None: ...

    async def __aenter__(self) -> Self: ...

    async def __aexit__(self, *exc_info: object) -> None: ...


class NotificationFeed(Protocol):
    async def subscribe_inserts(
        self,
        table: str,
        filter: Mapping[str, Any] | None = None,
    ) -> Subscription:
        """Subscribe to inserts on ``table``, optionally filtered by column equality."""
        ...


class InsertPublisher(Protocol):
    async def publish_insert(self, table: str, row: Mapping[str, Any]) -> None: ...
