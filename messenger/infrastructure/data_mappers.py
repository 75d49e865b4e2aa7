# messenger/infrastructure/data_mappers.py

from typing import Generic, Protocol, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from messenger.infrastructure import models

ModelT_contra = TypeVar("ModelT_contra", contravariant=True)
ModelT = TypeVar("ModelT")


class DataMapper(Protocol[ModelT_contra]):
    async def insert(self, model: ModelT_contra):
        raise NotImplementedError

    async def update(self, model: ModelT_contra):
        raise NotImplementedError


class SessionMapper(Generic[ModelT]):
    """Maps one ORM model type onto an ``AsyncSession``."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def insert(self, model: ModelT):
        self.session.add(model)
        await self.session.flush()

    async def update(self, model: ModelT):
        await self.session.merge(model)


class UserMapper(SessionMapper[models.User]):
    pass


class ChatMapper(SessionMapper[models.Chat]):
    pass


class MessageMapper(SessionMapper[models.Message]):
    pass


class FriendRequestMapper(SessionMapper[models.FriendRequest]):
    pass
