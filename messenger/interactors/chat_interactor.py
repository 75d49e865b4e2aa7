# messenger/interactors/chat_interactor.py
from contextlib import AbstractAsyncContextManager
from datetime import datetime
from uuid import UUID

from messenger.config import AppConfig
from messenger.domain.entities import pair_key, parse_identifier
from messenger.domain.exceptions import Conflict, Forbidden, InvalidArgument, NotFound
from messenger.gateways.interfaces import IChatGateway, IContactGateway, IUserGateway
from messenger.infrastructure import schemas
from messenger.infrastructure.database import storage_guard
from messenger.infrastructure.locks import KeyedLocks
from messenger.infrastructure.uow import UnitOfWork, UoWModel


class ChatInteractor:
    """Chat registry: one chat per unordered pair of users."""

    def __init__(
        self,
        uow: UnitOfWork,
        chat_gateway: IChatGateway,
        user_gateway: IUserGateway,
        contact_gateway: IContactGateway,
        pair_locks: KeyedLocks,
        config: AppConfig,
    ):
        self.uow = uow
        self.chat_gateway = chat_gateway
        self.user_gateway = user_gateway
        self.contact_gateway = contact_gateway
        self.pair_locks = pair_locks
        self.config = config

    @property
    def timeout(self) -> float:
        return self.config.STORAGE_TIMEOUT_SECONDS

    async def create_or_get(
        self, user_a: UUID | str, user_b: UUID | str
    ) -> tuple[schemas.Chat, bool]:
        """Return the pair's chat, creating it on first use.

        The boolean is ``True`` only when this call inserted the chat.
        Concurrent calls for the same pair are serialized on a per-pair lock;
        the unique pair constraint covers anything the lock cannot see.
        """
        user_a = parse_identifier(user_a, "user ID")
        user_b = parse_identifier(user_b, "user ID")
        if user_a == user_b:
            raise InvalidArgument("A chat needs two distinct participants")

        async with storage_guard(self.timeout):
            async with self.pair_lock(user_a, user_b):
                users = await self.user_gateway.get_users([user_a, user_b])
                if len(users) != 2:
                    raise NotFound("User not found")

                try:
                    chat, created = await self.stage_for_pair(user_a, user_b)
                    if created:
                        await self.uow.commit()
                except Conflict:
                    # another writer got there first
                    chat = await self.chat_gateway.find_by_pair(user_a, user_b)
                    if chat is None:
                        raise
                    return schemas.Chat.model_validate(chat._model), False
                return schemas.Chat.model_validate(chat._model), created

    def pair_lock(self, user_a: UUID, user_b: UUID) -> AbstractAsyncContextManager[None]:
        return self.pair_locks.hold(pair_key(user_a, user_b))

    async def stage_for_pair(self, user_a: UUID, user_b: UUID) -> tuple[UoWModel, bool]:
        """Find the pair's chat or insert it into the open transaction.

        Nothing is committed, so the caller can land other writes atomically
        with the chat. Callers hold ``pair_lock`` for the pair.
        """
        existing = await self.chat_gateway.find_by_pair(user_a, user_b)
        if existing:
            return existing, False
        await self._check_creation_policy(user_a, user_b)
        return await self.chat_gateway.create_chat(user_a, user_b), True

    async def _check_creation_policy(self, user_a: UUID, user_b: UUID) -> None:
        if await self.contact_gateway.is_blocked_between(user_a, user_b):
            raise Forbidden("Cannot start a chat with this user")
        if self.config.CHAT_REQUIRES_CONTACT and not await self.contact_gateway.are_contacts(
            user_a, user_b
        ):
            raise Forbidden("Chats can only be started between contacts")

    async def get_chat(self, chat_id: UUID | str) -> schemas.Chat:
        chat_id = parse_identifier(chat_id, "chat ID")
        async with storage_guard(self.timeout):
            chat = await self._load(chat_id)
        return schemas.Chat.model_validate(chat._model)

    async def list_for_user(self, user_id: UUID | str) -> list[schemas.Chat]:
        user_id = parse_identifier(user_id, "user ID")
        async with storage_guard(self.timeout):
            chats = await self.chat_gateway.list_for_user(user_id)
        return [schemas.Chat.model_validate(chat._model) for chat in chats]

    async def find_for_pair(
        self, user_a: UUID | str, user_b: UUID | str
    ) -> schemas.Chat | None:
        user_a = parse_identifier(user_a, "user ID")
        user_b = parse_identifier(user_b, "user ID")
        async with storage_guard(self.timeout):
            chat = await self.chat_gateway.find_by_pair(user_a, user_b)
        return schemas.Chat.model_validate(chat._model) if chat else None

    async def lock_for_append(self, chat_id: UUID) -> schemas.Chat:
        """Serialize appends to a chat until the current transaction ends.

        The returned chat is read under the lock, so its ``updated_at`` is the
        latest committed one.
        """
        async with storage_guard(self.timeout):
            chat = await self.chat_gateway.lock_chat(chat_id)
            if chat is None:
                raise NotFound("Chat not found")
        return schemas.Chat.model_validate(chat._model)

    async def record_last_message(
        self, chat_id: UUID, message_id: UUID, at: datetime
    ) -> schemas.Chat:
        async with storage_guard(self.timeout):
            chat = await self.chat_gateway.record_last_message(chat_id, message_id, at)
            if chat is None:
                raise NotFound("Chat not found")
            await self.uow.commit()
        return schemas.Chat.model_validate(chat._model)

    async def _load(self, chat_id: UUID) -> UoWModel:
        chat = await self.chat_gateway.get_chat(chat_id)
        if chat is None:
            raise NotFound("Chat not found")
        return chat
