# messenger/gateways/message_gateway.py
from datetime import datetime
from typing import Any, List, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from messenger.gateways.interfaces import IMessageGateway
from messenger.infrastructure import models
from messenger.infrastructure.data_mappers import MessageMapper
from messenger.infrastructure.uow import UnitOfWork, UoWModel


class MessageGateway(IMessageGateway):
    def __init__(self, session: AsyncSession, uow: UnitOfWork):
        self.session = session
        self.uow = uow
        uow.mappers[models.Message] = MessageMapper(session)

    async def get_message(self, message_id: UUID) -> Optional[UoWModel]:
        stmt = (
            select(models.Message)
            .filter(models.Message.id == message_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        message = result.unique().scalar_one_or_none()
        return UoWModel(message, self.uow) if message else None

    async def list_for_chat(self, chat_id: UUID, skip: int = 0) -> List[UoWModel]:
        stmt = (
            select(models.Message)
            .filter(models.Message.chat_id == chat_id)
            .order_by(models.Message.created_at.asc())
            .offset(skip)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        messages = result.unique().scalars().all()
        return [UoWModel(message, self.uow) for message in messages]

    async def find_recent_duplicate(
        self,
        chat_id: UUID,
        sender_id: UUID,
        content: str,
        attachments: List[dict[str, Any]],
        since: datetime,
    ) -> Optional[UoWModel]:
        stmt = (
            select(models.Message)
            .filter(
                models.Message.chat_id == chat_id,
                models.Message.sender_id == sender_id,
                models.Message.content == content,
                models.Message.created_at >= since,
            )
            .order_by(models.Message.created_at.desc())
        )
        result = await self.session.execute(stmt)
        # JSON equality is not portable across backends, compare in Python
        for message in result.unique().scalars().all():
            if (message.attachments or []) == attachments:
                return UoWModel(message, self.uow)
        return None

    async def create_message(
        self,
        chat_id: UUID,
        sender_id: UUID,
        content: str,
        attachments: List[dict[str, Any]],
        created_at: datetime,
    ) -> UoWModel:
        db_message = models.Message(
            chat_id=chat_id,
            sender_id=sender_id,
            content=content,
            attachments=attachments,
            created_at=created_at,
        )
        self.uow.register_new(db_message)
        await self.uow.flush()

        # Reload with the sender eagerly loaded
        return await self.get_message(db_message.id)

    async def set_status(self, message_id: UUID, previous: str, status: str) -> bool:
        """Compare and set: writes only while the stored status is still ``previous``."""
        stmt = (
            update(models.Message)
            .where(models.Message.id == message_id, models.Message.status == previous)
            .values(status=status)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1
