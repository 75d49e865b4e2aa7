# messenger/interactors/user_interactor.py
from uuid import UUID

from messenger.config import AppConfig
from messenger.domain.entities import PresenceStatus, parse_identifier
from messenger.domain.exceptions import InvalidArgument, NotFound
from messenger.gateways.interfaces import IUserGateway
from messenger.infrastructure import schemas
from messenger.infrastructure.database import storage_guard
from messenger.infrastructure.models import utcnow
from messenger.infrastructure.security import SecurityService
from messenger.infrastructure.uow import UnitOfWork, UoWModel


class UserInteractor:
    def __init__(
        self,
        uow: UnitOfWork,
        security_service: SecurityService,
        user_gateway: IUserGateway,
        config: AppConfig,
    ):
        self.uow = uow
        self.security_service = security_service
        self.user_gateway = user_gateway
        self.config = config

    @property
    def timeout(self) -> float:
        return self.config.STORAGE_TIMEOUT_SECONDS

    async def get_user(self, user_id: UUID | str) -> schemas.User | None:
        user_id = parse_identifier(user_id, "user ID")
        async with storage_guard(self.timeout):
            user: UoWModel | None = await self.user_gateway.get_user(user_id)
        return schemas.User.model_validate(user._model) if user else None

    async def get_user_by_username(self, username: str) -> schemas.User | None:
        async with storage_guard(self.timeout):
            user: UoWModel | None = await self.user_gateway.get_by_username(username)
        return schemas.User.model_validate(user._model) if user else None

    async def get_user_by_email(self, email: str) -> schemas.User | None:
        async with storage_guard(self.timeout):
            user: UoWModel | None = await self.user_gateway.get_by_email(email)
        return schemas.User.model_validate(user._model) if user else None

    async def create_user(self, user: schemas.UserCreate) -> schemas.User:
        hashed_password = self.security_service.get_password_hash(user.password)
        async with storage_guard(self.timeout):
            if await self.user_gateway.get_by_username(user.username):
                raise InvalidArgument("Username already registered")
            if await self.user_gateway.get_by_email(user.email):
                raise InvalidArgument("Email already registered")
            new_user = await self.user_gateway.create_user(user, hashed_password)
            await self.uow.commit()
        return schemas.User.model_validate(new_user._model)

    async def update_user(
        self, user_id: UUID, user_update: schemas.UserUpdate
    ) -> schemas.User:
        async with storage_guard(self.timeout):
            user = await self._load(user_id)
            if user_update.email and user_update.email.lower() != user.email.lower():
                if await self.user_gateway.get_by_email(user_update.email):
                    raise InvalidArgument("Email already registered")
            user = await self.user_gateway.update_profile(user, user_update)
            await self.uow.commit()
        return schemas.User.model_validate(user._model)

    async def add_picture(self, user_id: UUID, picture_url: str) -> schemas.User:
        picture_url = picture_url.strip()
        if not picture_url:
            raise InvalidArgument("Picture URL cannot be empty")
        async with storage_guard(self.timeout):
            user = await self._load(user_id)
            user = await self.user_gateway.add_picture(user, picture_url)
            await self.uow.commit()
        return schemas.User.model_validate(user._model)

    async def search_users(
        self, query: str, current_user_id: UUID
    ) -> list[schemas.UserBasic]:
        query = query.strip()
        if not query:
            return []
        async with storage_guard(self.timeout):
            users = await self.user_gateway.search_users(query, current_user_id)
        return [schemas.UserBasic.model_validate(user._model) for user in users]

    async def verify_user_password(
        self, username: str, password: str
    ) -> schemas.User | None:
        async with storage_guard(self.timeout):
            user: UoWModel | None = await self.user_gateway.get_by_username(username)
        if not user:
            return None
        if self.security_service.verify_password(password, user.hashed_password):
            return schemas.User.model_validate(user._model)
        return None

    async def change_password(
        self, user_id: UUID, current_password: str, new_password: str
    ) -> None:
        async with storage_guard(self.timeout):
            user = await self._load(user_id)
            if not self.security_service.verify_password(
                current_password, user.hashed_password
            ):
                raise InvalidArgument("Current password is incorrect")
            await self.user_gateway.update_password(
                user, self.security_service.get_password_hash(new_password)
            )
            await self.uow.commit()

    async def set_presence(
        self, user_id: UUID, status: PresenceStatus | str
    ) -> schemas.User:
        """Store a presence change and stamp ``last_seen``."""
        try:
            status = PresenceStatus(status)
        except ValueError:
            raise InvalidArgument(f"Invalid presence status '{status}'")
        async with storage_guard(self.timeout):
            user = await self._load(user_id)
            user = await self.user_gateway.set_presence(
                user, status.value, last_seen=utcnow()
            )
            await self.uow.commit()
        return schemas.User.model_validate(user._model)

    async def _load(self, user_id: UUID) -> UoWModel:
        user = await self.user_gateway.get_user(user_id)
        if user is None:
            raise NotFound("User not found")
        return user
