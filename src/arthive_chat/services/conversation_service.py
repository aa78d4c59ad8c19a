from __future__ import annotations

import logging
from typing import Awaitable, Callable, Sequence

from arthive_chat.application.dto.directory import DirectoryState
from arthive_chat.application.exceptions import (
    AppError,
    BackendUnavailableError,
    ConversationStartError,
    ForbiddenError,
    ValidationError,
)
from arthive_chat.application.ports.directory import DirectoryService
from arthive_chat.domain.entities.conversation import ConversationListEntry
from arthive_chat.services import profile_service

logger = logging.getLogger(__name__)

DEFAULT_SUGGESTION_LIMIT = 5

FetchMissing = Callable[[int], Awaitable[ConversationListEntry | None]]


async def build_entries(
    directory: DirectoryService,
    conversation_ids: Sequence[int],
    current_user_id: str,
) -> list[ConversationListEntry]:
    """One entry per conversation, in backend order, with the counterpart resolved.

    Conversations without another participant are left out.
    """
    pairs = await directory.list_other_participants(conversation_ids, current_user_id)
    profiles = await profile_service.resolve_profiles(directory, (uid for _, uid in pairs))

    entries: list[ConversationListEntry] = []
    seen: set[int] = set()
    for conversation_id, user_id in pairs:
        if conversation_id in seen:
            continue
        seen.add(conversation_id)
        entries.append(ConversationListEntry(conversation_id, user_id, profiles.get(user_id)))
    return entries


async def fetch_conversation_entry(
    directory: DirectoryService,
    current_user_id: str,
    conversation_id: int,
) -> ConversationListEntry:
    """Resolve a single conversation the list query may not include yet."""
    pairs = await directory.list_other_participants([conversation_id], current_user_id)
    if not pairs:
        raise ForbiddenError(f"Not a participant of conversation {conversation_id}")
    _, other_user_id = pairs[0]
    profile = await profile_service.resolve_profile(directory, other_user_id)
    return ConversationListEntry(conversation_id, other_user_id, profile)


async def reconcile(
    entries: Sequence[ConversationListEntry],
    target_id: int | None,
    fetch_missing: FetchMissing,
) -> list[ConversationListEntry]:
    """Prepend ``target_id`` to ``entries`` when the loaded list lacks it.

    A failed lookup leaves the list as it was.
    """
    if target_id is None or any(e.conversation_id == target_id for e in entries):
        return list(entries)

    try:
        missing = await fetch_missing(target_id)
    except AppError as exc:
        logger.warning("Could not reconcile conversation %s: %s", target_id, exc.detail)
        return list(entries)

    if missing is None:
        return list(entries)

    logger.info("Reconciled conversation %s missing from the loaded list", target_id)
    return [missing, *entries]


async def load_directory(
    directory: DirectoryService,
    current_user_id: str,
    url_conversation_id: int | None = None,
    *,
    suggestion_limit: int = DEFAULT_SUGGESTION_LIMIT,
) -> DirectoryState:
    conversation_ids = await directory.list_participations(current_user_id)

    entries: list[ConversationListEntry] = []
    suggestions = []
    if conversation_ids:
        entries = await build_entries(directory, conversation_ids, current_user_id)
    else:
        found = await directory.suggest_profiles(suggestion_limit, current_user_id)
        suggestions = [p for p in found if p.id != current_user_id][:suggestion_limit]

    async def _fetch_missing(conversation_id: int) -> ConversationListEntry:
        return await fetch_conversation_entry(directory, current_user_id, conversation_id)

    entries = await reconcile(entries, url_conversation_id, _fetch_missing)

    # suggestions only make sense for a user with no conversations at all
    if entries:
        suggestions = []
    return DirectoryState(conversations=entries, suggestions=suggestions)


async def start_conversation(
    directory: DirectoryService,
    current_user_id: str,
    other_user_id: str,
) -> int:
    """Return the id of the two-party conversation, creating it if needed."""
    if current_user_id == other_user_id:
        raise ValidationError("Cannot start a conversation with yourself")
    try:
        return await directory.get_or_create_conversation(current_user_id, other_user_id)
    except BackendUnavailableError as exc:
        logger.warning(
            "get_or_create_conversation failed for %s/%s: %s",
            current_user_id,
            other_user_id,
            exc.detail,
        )
        raise ConversationStartError("Could not start conversation") from exc


class ConversationDirectory:
    """Directory state for the signed-in user.

    ``refresh`` reloads only when the user or the addressed conversation
    changed since the last load. A load that completes after a newer one was
    started is discarded.
    """

    def __init__(
        self,
        directory: DirectoryService,
        *,
        suggestion_limit: int = DEFAULT_SUGGESTION_LIMIT,
    ) -> None:
        self._directory = directory
        self._suggestion_limit = suggestion_limit
        self._key: tuple[str, int | None] | None = None
        self._state = DirectoryState()
        self._generation = 0

    @property
    def state(self) -> DirectoryState:
        return self._state

    @property
    def current_user_id(self) -> str | None:
        return self._key[0] if self._key else None

    async def refresh(
        self,
        current_user_id: str,
        url_conversation_id: int | None = None,
        *,
        force: bool = False,
    ) -> DirectoryState:
        key = (current_user_id, url_conversation_id)
        if not force and key == self._key:
            return self._state

        self._generation += 1
        generation = self._generation
        state = await load_directory(
            self._directory,
            current_user_id,
            url_conversation_id,
            suggestion_limit=self._suggestion_limit,
        )
        if generation != self._generation:
            logger.debug("Discarding stale directory load for %s", current_user_id)
            return self._state

        self._key = key
        self._state = state
        return state

    def sign_out(self) -> None:
        self._generation += 1
        self._key = None
        self._state = DirectoryState()

    async def start_conversation(self, other_user_id: str) -> int:
        if self._key is None:
            raise ForbiddenError("No signed-in user")
        return await start_conversation(self._directory, self._key[0], other_user_id)
