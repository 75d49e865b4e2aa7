# messenger/interactors/contact_interactor.py
from uuid import UUID

from messenger.config import AppConfig
from messenger.domain.entities import FriendRequestState, parse_identifier
from messenger.domain.exceptions import (
    Conflict,
    Forbidden,
    InvalidArgument,
    NotFound,
    Unavailable,
)
from messenger.gateways.interfaces import IContactGateway, IUserGateway
from messenger.infrastructure import schemas
from messenger.infrastructure.database import storage_guard
from messenger.infrastructure.uow import UnitOfWork, UoWModel
from messenger.interactors.chat_interactor import ChatInteractor


class ContactInteractor:
    def __init__(
        self,
        uow: UnitOfWork,
        contact_gateway: IContactGateway,
        user_gateway: IUserGateway,
        chat_interactor: ChatInteractor,
        config: AppConfig,
    ):
        self.uow = uow
        self.contact_gateway = contact_gateway
        self.user_gateway = user_gateway
        self.chat_interactor = chat_interactor
        self.config = config

    @property
    def timeout(self) -> float:
        return self.config.STORAGE_TIMEOUT_SECONDS

    async def list_contacts(self, user_id: UUID) -> list[schemas.UserBasic]:
        async with storage_guard(self.timeout):
            contacts = await self.contact_gateway.list_contacts(user_id)
        return [schemas.UserBasic.model_validate(user._model) for user in contacts]

    async def list_blocked(self, user_id: UUID) -> list[schemas.UserBasic]:
        async with storage_guard(self.timeout):
            blocked = await self.contact_gateway.list_blocked(user_id)
        return [schemas.UserBasic.model_validate(user._model) for user in blocked]

    async def remove_contact(self, user_id: UUID, contact_id: UUID | str) -> None:
        contact_id = parse_identifier(contact_id, "user ID")
        async with storage_guard(self.timeout):
            removed = await self.contact_gateway.remove_contacts(user_id, contact_id)
            if not removed:
                raise NotFound("Contact not found")
            await self.uow.commit()

    async def block_user(self, user_id: UUID, target_id: UUID | str) -> None:
        target_id = parse_identifier(target_id, "user ID")
        if target_id == user_id:
            raise InvalidArgument("You cannot block yourself")
        async with storage_guard(self.timeout):
            await self._require_user(target_id)
            await self.contact_gateway.block(user_id, target_id)
            await self.uow.commit()

    async def unblock_user(self, user_id: UUID, target_id: UUID | str) -> None:
        target_id = parse_identifier(target_id, "user ID")
        async with storage_guard(self.timeout):
            removed = await self.contact_gateway.unblock(user_id, target_id)
            if not removed:
                raise NotFound("User is not blocked")
            await self.uow.commit()

    async def connect(self, user_a: UUID, user_b: UUID) -> None:
        """Make two users mutual contacts without a request."""
        async with storage_guard(self.timeout):
            await self.contact_gateway.add_contacts(user_a, user_b)
            await self.uow.commit()

    async def list_incoming_requests(self, user_id: UUID) -> list[schemas.FriendRequest]:
        async with storage_guard(self.timeout):
            requests = await self.contact_gateway.list_incoming_requests(user_id)
        return [schemas.FriendRequest.model_validate(r._model) for r in requests]

    async def send_request(
        self, sender_id: UUID, recipient_id: UUID | str
    ) -> schemas.FriendRequest:
        recipient_id = parse_identifier(recipient_id, "user ID")
        if recipient_id == sender_id:
            raise InvalidArgument("You cannot send a friend request to yourself")
        async with storage_guard(self.timeout):
            await self._require_user(recipient_id)
            if await self.contact_gateway.is_blocked_between(sender_id, recipient_id):
                raise Forbidden("Cannot send a friend request to this user")
            if await self.contact_gateway.are_contacts(sender_id, recipient_id):
                raise Conflict("Already in contacts")
            if await self.contact_gateway.find_pending_request(sender_id, recipient_id):
                raise Conflict("Friend request already sent")
            request = await self.contact_gateway.create_request(sender_id, recipient_id)
            await self.uow.commit()
        return schemas.FriendRequest.model_validate(request._model)

    async def accept_request(
        self, request_id: UUID | str, user_id: UUID
    ) -> tuple[schemas.FriendRequest, schemas.Chat, bool]:
        """Accept an incoming request: both users become contacts and get a chat.

        Returns the resolved request, the pair's chat and whether that chat
        was created by this call. Contacts, request and chat are committed
        together; if any step fails the request stays pending.
        """
        async with storage_guard(self.timeout):
            request = await self._load_pending_request(request_id, user_id)
            sender_id, recipient_id = request.sender_id, request.recipient_id
            if await self.contact_gateway.is_blocked_between(sender_id, recipient_id):
                raise Forbidden("Cannot accept a friend request from this user")

            async with self.chat_interactor.pair_lock(sender_id, recipient_id):
                await self.contact_gateway.add_contacts(sender_id, recipient_id)
                request = await self.contact_gateway.resolve_request(
                    request, FriendRequestState.ACCEPTED.value
                )
                try:
                    chat, created = await self.chat_interactor.stage_for_pair(
                        sender_id, recipient_id
                    )
                except Conflict as e:
                    # the insert lost to another process and rolled everything back
                    raise Unavailable("Chat was created concurrently, retry") from e
                await self.uow.commit()
        return (
            schemas.FriendRequest.model_validate(request._model),
            schemas.Chat.model_validate(chat._model),
            created,
        )

    async def decline_request(
        self, request_id: UUID | str, user_id: UUID
    ) -> schemas.FriendRequest:
        async with storage_guard(self.timeout):
            request = await self._load_pending_request(request_id, user_id)
            request = await self.contact_gateway.resolve_request(
                request, FriendRequestState.DECLINED.value
            )
            await self.uow.commit()
        return schemas.FriendRequest.model_validate(request._model)

    async def _load_pending_request(
        self, request_id: UUID | str, user_id: UUID
    ) -> UoWModel:
        request_id = parse_identifier(request_id, "request ID")
        request = await self.contact_gateway.get_request(request_id)
        if request is None:
            raise NotFound("Friend request not found")
        if request.recipient_id != user_id:
            raise Forbidden("Only the recipient can answer a friend request")
        if request.state != FriendRequestState.PENDING.value:
            raise Conflict(f"Friend request already {request.state}")
        return request

    async def _require_user(self, user_id: UUID) -> None:
        if await self.user_gateway.get_user(user_id) is None:
            raise NotFound("User not found")
