"""Profile resolution shared by the directory and the message stream.

There is no cache: every call is a fresh round trip to the backend.
"""
from __future__ import annotations

from typing import Iterable
from urllib.parse import quote

from arthive_chat.application.ports.directory import DirectoryService
from arthive_chat.domain.entities.profile import Profile

DEFAULT_AVATAR_URL = "https://api.dicebear.com/7.x/identicon/svg?seed={seed}"
UNKNOWN_USER_NAME = "An unknown whisper"


async def resolve_profiles(
    directory: DirectoryService,
    user_ids: Iterable[str],
) -> dict[str, Profile | None]:
    """Batch-resolve profiles. Ids without a profile map to ``None``."""
    ids = list(dict.fromkeys(user_ids))
    if not ids:
        return {}
    found = {p.id: p for p in await directory.get_profiles(ids)}
    return {uid: found.get(uid) for uid in ids}


async def resolve_profile(directory: DirectoryService, user_id: str) -> Profile | None:
    return await directory.get_profile(user_id)


def avatar_for(
    user_id: str,
    profile: Profile | None,
    template: str = DEFAULT_AVATAR_URL,
) -> str:
    """Profile avatar, or a placeholder identicon seeded by ``user_id``."""
    if profile is not None and profile.avatar_url:
        return profile.avatar_url
    return template.format(seed=quote(user_id, safe=""))


def display_name(profile: Profile | None, fallback: str = UNKNOWN_USER_NAME) -> str:
    if profile is not None and profile.username:
        return profile.username
    return fallback
