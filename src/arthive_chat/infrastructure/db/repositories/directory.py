"""SQLAlchemy implementation of the DirectoryService port."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Sequence

from sqlalchemy import func, insert, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import aliased

from arthive_chat.application.exceptions import BackendUnavailableError
from arthive_chat.application.ports.feed import InsertPublisher
from arthive_chat.domain.entities.message import ChatMessage
from arthive_chat.domain.entities.profile import Profile
from arthive_chat.domain.value_objects.enums import FeedTable
from arthive_chat.infrastructure.db.mappers import message as message_mapper
from arthive_chat.infrastructure.db.mappers import profile as profile_mapper
from arthive_chat.infrastructure.db.models.conversation import ConversationModel
from arthive_chat.infrastructure.db.models.message import MessageModel, RoomMessageModel
from arthive_chat.infrastructure.db.models.participant import ParticipantModel
from arthive_chat.infrastructure.db.models.profile import ProfileModel

logger = logging.getLogger(__name__)


class SqlAlchemyDirectory:
    """Implements application.ports.directory.DirectoryService.

    Each call runs in its own session. Committed message inserts are
    handed to ``publisher`` so subscribers of the feed see them.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        publisher: InsertPublisher | None = None,
        *,
        messages_table: str = FeedTable.MESSAGES,
        room_table: str = FeedTable.ROOM_MESSAGES,
    ) -> None:
        self._session_factory = session_factory
        self._publisher = publisher
        self._messages_table = messages_table
        self._room_table = room_table

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except (SQLAlchemyError, OSError) as exc:
            logger.warning("Directory query failed: %s", exc)
            raise BackendUnavailableError("Directory service unavailable") from exc

    async def list_participations(self, user_id: str) -> list[int]:
        stmt = (
            select(ParticipantModel.conversation_id)
            .where(ParticipantModel.user_id == user_id)
            .order_by(ParticipantModel.conversation_id)
        )
        async with self._session() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def list_other_participants(
        self,
        conversation_ids: Sequence[int],
        excluding_user_id: str,
    ) -> list[tuple[int, str]]:
        if not conversation_ids:
            return []
        me = aliased(ParticipantModel)
        is_member = (
            select(me.id)
            .where(
                me.conversation_id == ParticipantModel.conversation_id,
                me.user_id == excluding_user_id,
            )
            .exists()
        )
        stmt = (
            select(ParticipantModel.conversation_id, ParticipantModel.user_id)
            .where(
                ParticipantModel.conversation_id.in_(conversation_ids),
                ParticipantModel.user_id != excluding_user_id,
                is_member,
            )
            .order_by(ParticipantModel.conversation_id, ParticipantModel.id)
        )
        async with self._session() as session:
            result = await session.execute(stmt)
            return [(cid, str(uid)) for cid, uid in result.all()]

    async def get_profiles(self, user_ids: Sequence[str]) -> list[Profile]:
        if not user_ids:
            return []
        stmt = select(ProfileModel).where(ProfileModel.id.in_(user_ids))
        async with self._session() as session:
            result = await session.execute(stmt)
            return [profile_mapper.model_to_entity(m) for m in result.scalars().all()]

    async def get_profile(self, user_id: str) -> Profile | None:
        async with self._session() as session:
            model = await session.get(ProfileModel, user_id)
            return profile_mapper.model_to_entity(model) if model else None

    async def get_or_create_conversation(self, user_a: str, user_b: str) -> int:
        low, high = sorted((user_a, user_b))
        stmt = (
            pg_insert(ConversationModel)
            .values(user_low=low, user_high=high)
            .on_conflict_do_nothing(constraint="uq_conversation_pair")
            .returning(ConversationModel.id)
        )
        async with self._session() as session:
            result = await session.execute(stmt)
            conversation_id = result.scalar_one_or_none()

            if conversation_id is None:
                # Conflict: the pair already has a conversation
                existing = await session.execute(
                    select(ConversationModel.id).where(
                        ConversationModel.user_low == low,
                        ConversationModel.user_high == high,
                    )
                )
                return existing.scalar_one()

            session.add_all(
                [
                    ParticipantModel(conversation_id=conversation_id, user_id=low),
                    ParticipantModel(conversation_id=conversation_id, user_id=high),
                ]
            )
            await session.commit()
            logger.info("Created conversation %s for %s/%s", conversation_id, low, high)
            return conversation_id

    async def list_messages(self, conversation_id: int | None) -> list[ChatMessage]:
        model = self._message_model(conversation_id)
        stmt = (
            select(model, ProfileModel)
            .outerjoin(ProfileModel, ProfileModel.id == model.sender_id)
            .order_by(model.created_at.asc(), model.id.asc())
        )
        if conversation_id is not None:
            stmt = stmt.where(MessageModel.conversation_id == conversation_id)
        async with self._session() as session:
            result = await session.execute(stmt)
            return [message_mapper.model_to_chat_message(m, p) for m, p in result.all()]

    async def insert_message(
        self,
        conversation_id: int | None,
        sender_id: str,
        content: str,
    ) -> None:
        model = self._message_model(conversation_id)
        values: dict[str, object] = {"sender_id": sender_id, "content": content}
        if conversation_id is not None:
            values["conversation_id"] = conversation_id
        stmt = insert(model).values(**values).returning(model)

        async with self._session() as session:
            result = await session.execute(stmt)
            row = message_mapper.model_to_row(result.scalar_one())
            await session.commit()

        if self._publisher is None:
            return
        table = self._room_table if conversation_id is None else self._messages_table
        try:
            await self._publisher.publish_insert(table, row)
        except Exception:
            # The row is committed; only the live echo is lost.
            logger.exception("Failed to publish insert on %s id=%s", table, row["id"])

    async def suggest_profiles(self, limit: int, excluding_user_id: str) -> list[Profile]:
        stmt = (
            select(ProfileModel)
            .where(ProfileModel.id != excluding_user_id)
            .order_by(func.random())
            .limit(limit)
        )
        async with self._session() as session:
            result = await session.execute(stmt)
            return [profile_mapper.model_to_entity(m) for m in result.scalars().all()]

    @staticmethod
    def _message_model(conversation_id: int | None) -> type[MessageModel] | type[RoomMessageModel]:
        return RoomMessageModel if conversation_id is None else MessageModel
