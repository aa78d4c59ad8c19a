from __future__ import annotations

from arthive_chat.domain.entities.profile import Profile
from arthive_chat.infrastructure.db.models.profile import ProfileModel


def model_to_entity(model: ProfileModel) -> Profile:
    return Profile(
        id=str(model.id),
        username=model.username,
        avatar_url=model.avatar_url,
    )
