"""Import all models so Alembic can discover them via Base.metadata."""
from arthive_chat.infrastructure.db.models.conversation import ConversationModel
from arthive_chat.infrastructure.db.models.message import MessageModel, RoomMessageModel
from arthive_chat.infrastructure.db.models.participant import ParticipantModel
from arthive_chat.infrastructure.db.models.profile import ProfileModel

__all__ = [
    "ConversationModel",
    "MessageModel",
    "ParticipantModel",
    "ProfileModel",
    "RoomMessageModel",
]
