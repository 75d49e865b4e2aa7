# messenger/gateways/user_gateway.py
from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from messenger.domain.exceptions import Conflict
from messenger.gateways.interfaces import IUserGateway
from messenger.infrastructure import models, schemas
from messenger.infrastructure.data_mappers import UserMapper
from messenger.infrastructure.uow import UnitOfWork, UoWModel


class UserGateway(IUserGateway):
    def __init__(self, session: AsyncSession, uow: UnitOfWork):
        self.session = session
        self.uow = uow
        uow.mappers[models.User] = UserMapper(session)

    async def get_user(self, user_id: UUID) -> UoWModel | None:
        stmt = select(models.User).filter(models.User.id == user_id)
        result = await self.session.execute(stmt)
        user = result.scalar_one_or_none()
        return UoWModel(user, self.uow) if user else None

    async def get_users(self, user_ids: list[UUID]) -> list[UoWModel]:
        if not user_ids:
            return []
        stmt = select(models.User).filter(models.User.id.in_(user_ids))
        result = await self.session.execute(stmt)
        users = result.scalars().all()
        return [UoWModel(user, self.uow) for user in users]

    async def get_by_email(self, email: str) -> UoWModel | None:
        stmt = select(models.User).filter(
            func.lower(models.User.email) == func.lower(email)
        )
        result = await self.session.execute(stmt)
        user = result.scalar_one_or_none()
        return UoWModel(user, self.uow) if user else None

    async def get_by_username(self, username: str) -> UoWModel | None:
        stmt = select(models.User).filter(
            func.lower(models.User.username) == func.lower(username)
        )
        result = await self.session.execute(stmt)
        user = result.scalar_one_or_none()
        return UoWModel(user, self.uow) if user else None

    async def search_users(self, query: str, current_user_id: UUID) -> list[UoWModel]:
        pattern = f"%{query}%"
        stmt = (
            select(models.User)
            .filter(
                models.User.id != current_user_id,
                or_(
                    models.User.username.ilike(pattern),
                    models.User.display_name.ilike(pattern),
                ),
            )
            .order_by(models.User.username)
            .limit(50)
        )
        result = await self.session.execute(stmt)
        users = result.scalars().all()
        return [UoWModel(user, self.uow) for user in users]

    async def create_user(
        self, user: schemas.UserCreate, hashed_password: str
    ) -> UoWModel:
        db_user = models.User(
            username=user.username,
            email=user.email,
            display_name=user.display_name or user.username,
            hashed_password=hashed_password,
        )
        uow_user = self.uow.register_new(db_user)
        try:
            await self.uow.flush()
        except IntegrityError as e:
            await self.uow.rollback()
            raise Conflict("Username or email already registered") from e
        return uow_user

    async def update_profile(
        self, user: UoWModel, user_update: schemas.UserUpdate
    ) -> UoWModel:
        for key, value in user_update.model_dump(exclude_unset=True).items():
            if value is None:
                continue
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, dict):
                # nested settings are merged, unset keys keep their stored value
                value = {**(getattr(user, key) or {}), **value}
            setattr(user, key, value)
        try:
            await self.uow.flush()
        except IntegrityError as e:
            await self.uow.rollback()
            raise Conflict("Email already registered") from e
        return user

    async def update_password(self, user: UoWModel, hashed_password: str) -> None:
        user.hashed_password = hashed_password
        await self.uow.flush()

    async def set_presence(
        self, user: UoWModel, presence: str, last_seen: datetime | None = None
    ) -> UoWModel:
        user.presence = presence
        if last_seen is not None:
            user.last_seen = last_seen
        await self.uow.flush()
        return user

    async def add_picture(self, user: UoWModel, picture_url: str) -> UoWModel:
        # a new list so the JSON column registers the change
        user.pictures = [*(user.pictures or []), picture_url]
        await self.uow.flush()
        return user
