# messenger/gateways/chat_gateway.py
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from messenger.domain.entities import pair_key
from messenger.domain.exceptions import Conflict
from messenger.gateways.interfaces import IChatGateway
from messenger.infrastructure import models
from messenger.infrastructure.data_mappers import ChatMapper
from messenger.infrastructure.models import utcnow
from messenger.infrastructure.uow import UnitOfWork, UoWModel


class ChatGateway(IChatGateway):
    def __init__(self, session: AsyncSession, uow: UnitOfWork):
        self.session = session
        self.uow = uow
        uow.mappers[models.Chat] = ChatMapper(session)

    async def get_chat(self, chat_id: UUID) -> Optional[UoWModel]:
        stmt = (
            select(models.Chat)
            .filter(models.Chat.id == chat_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        chat = result.unique().scalar_one_or_none()
        return UoWModel(chat, self.uow) if chat else None

    async def find_by_pair(self, user_a: UUID, user_b: UUID) -> Optional[UoWModel]:
        first, second = pair_key(user_a, user_b)
        stmt = (
            select(models.Chat)
            .filter(
                models.Chat.participant_a_id == first,
                models.Chat.participant_b_id == second,
            )
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        chat = result.unique().scalar_one_or_none()
        return UoWModel(chat, self.uow) if chat else None

    async def list_for_user(self, user_id: UUID) -> List[UoWModel]:
        stmt = (
            select(models.Chat)
            .filter(
                or_(
                    models.Chat.participant_a_id == user_id,
                    models.Chat.participant_b_id == user_id,
                )
            )
            .order_by(models.Chat.updated_at.desc(), models.Chat.created_at.desc())
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        chats = result.unique().scalars().all()
        return [UoWModel(chat, self.uow) for chat in chats]

    async def create_chat(self, user_a: UUID, user_b: UUID) -> UoWModel:
        first, second = pair_key(user_a, user_b)
        now = utcnow()
        db_chat = models.Chat(
            participant_a_id=first,
            participant_b_id=second,
            created_at=now,
            updated_at=now,
        )
        self.uow.register_new(db_chat)
        try:
            await self.uow.flush()
        except IntegrityError as e:
            await self.uow.rollback()
            raise Conflict("A chat between these users already exists") from e

        # Reload with participants eagerly loaded
        return await self.get_chat(db_chat.id)

    async def lock_chat(self, chat_id: UUID) -> Optional[UoWModel]:
        """Take the chat row's write lock for the rest of the transaction.

        A no-op UPDATE rather than ``SELECT ... FOR UPDATE`` so the lock also
        holds on SQLite. The chat is reloaded after the lock is granted.
        """
        stmt = (
            update(models.Chat)
            .where(models.Chat.id == chat_id)
            .values(last_message_id=models.Chat.last_message_id)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)
        return await self.get_chat(chat_id)

    async def record_last_message(
        self, chat_id: UUID, message_id: UUID, at: datetime
    ) -> Optional[UoWModel]:
        # pointer and timestamp move together and only forwards
        stmt = (
            update(models.Chat)
            .where(models.Chat.id == chat_id, models.Chat.updated_at < at)
            .values(last_message_id=message_id, updated_at=at)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)
        return await self.get_chat(chat_id)
