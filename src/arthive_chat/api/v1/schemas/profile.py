from __future__ import annotations

from pydantic import BaseModel

from arthive_chat.config import settings
from arthive_chat.domain.entities.profile import Profile
from arthive_chat.services import profile_service


class ProfileResponse(BaseModel):
    id: str
    username: str | None
    avatar_url: str | None
    display_name: str
    avatar: str

    @classmethod
    def from_profile(cls, profile: Profile) -> ProfileResponse:
        return cls(
            id=profile.id,
            username=profile.username,
            avatar_url=profile.avatar_url,
            display_name=profile_service.display_name(profile, settings.UNKNOWN_USER_NAME),
            avatar=profile_service.avatar_for(profile.id, profile, settings.AVATAR_PLACEHOLDER_URL),
        )
