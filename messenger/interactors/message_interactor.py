# messenger/interactors/message_interactor.py
from datetime import timedelta
from typing import Any, Iterable
from uuid import UUID

from pydantic import ValidationError

from messenger.config import AppConfig
from messenger.domain.entities import (
    DeliveryStatus,
    check_transition,
    parse_delivery_status,
    parse_identifier,
)
from messenger.domain.exceptions import Forbidden, InvalidArgument, NotFound
from messenger.gateways.interfaces import IMessageGateway, IUserGateway
from messenger.infrastructure import schemas
from messenger.infrastructure.database import storage_guard
from messenger.infrastructure.models import utcnow
from messenger.infrastructure.uow import UnitOfWork
from messenger.interactors.chat_interactor import ChatInteractor

# stored for attachment-only messages so content is never empty
ATTACHMENT_PLACEHOLDER = " "


class MessageInteractor:
    def __init__(
        self,
        uow: UnitOfWork,
        message_gateway: IMessageGateway,
        user_gateway: IUserGateway,
        chat_interactor: ChatInteractor,
        config: AppConfig,
    ):
        self.uow = uow
        self.message_gateway = message_gateway
        self.user_gateway = user_gateway
        self.chat_interactor = chat_interactor
        self.config = config

    @property
    def timeout(self) -> float:
        return self.config.STORAGE_TIMEOUT_SECONDS

    async def send(
        self,
        chat_id: UUID | str,
        sender_id: UUID | str,
        content: str,
        attachments: Iterable[Any] = (),
        actor_id: UUID | None = None,
    ) -> tuple[schemas.Message, bool]:
        """Append a message to a chat.

        Returns the stored message and whether it was inserted by this call.
        A resend of an identical message inside the duplicate window returns
        the earlier message with ``False``.
        """
        chat_id = parse_identifier(chat_id, "chat ID")
        sender_id = parse_identifier(sender_id, "sender ID")
        text, attachment_data = self._normalize_payload(content, attachments)

        async with storage_guard(self.timeout):
            chat = await self.chat_interactor.get_chat(chat_id)
            sender = await self.user_gateway.get_user(sender_id)
            if sender is None:
                raise NotFound("Sender not found")
            if actor_id is not None and actor_id != sender_id:
                raise Forbidden("Cannot send messages on behalf of another user")
            if sender_id not in chat.participant_ids:
                raise Forbidden("Sender is not a participant of this chat")

            # appends to one chat run one at a time from here to the commit
            chat = await self.chat_interactor.lock_for_append(chat_id)
            now = utcnow()
            window = self.config.DUPLICATE_WINDOW_SECONDS
            if window > 0:
                duplicate = await self.message_gateway.find_recent_duplicate(
                    chat_id,
                    sender_id,
                    text,
                    attachment_data,
                    since=now - timedelta(seconds=window),
                )
                if duplicate:
                    # nothing new to store, end the transaction to release the lock
                    await self.uow.commit()
                    return schemas.Message.model_validate(duplicate._model), False

            # keep created_at strictly increasing inside the chat
            created_at = max(now, chat.updated_at + timedelta(microseconds=1))
            message = await self.message_gateway.create_message(
                chat_id, sender_id, text, attachment_data, created_at
            )
            # commits the message together with the chat's pointer
            await self.chat_interactor.record_last_message(
                chat_id, message.id, message.created_at
            )
        return schemas.Message.model_validate(message._model), True

    def _normalize_payload(
        self, content: str | None, attachments: Iterable[Any]
    ) -> tuple[str, list[dict[str, Any]]]:
        try:
            attachment_data = [
                schemas.Attachment.model_validate(attachment).model_dump(mode="json")
                for attachment in attachments or ()
            ]
        except ValidationError as e:
            raise InvalidArgument(f"Invalid attachment: {e.errors()[0]['msg']}") from e

        text = (content or "").strip()
        if not text:
            if not attachment_data:
                raise InvalidArgument("Message content cannot be empty")
            text = ATTACHMENT_PLACEHOLDER
        if len(text) > self.config.MAX_MESSAGE_LENGTH:
            raise InvalidArgument(
                f"Message content exceeds {self.config.MAX_MESSAGE_LENGTH} characters"
            )
        return text, attachment_data

    async def list_messages(
        self,
        chat_id: UUID | str,
        since: int = 0,
        viewer_id: UUID | None = None,
    ) -> list[schemas.Message]:
        """Messages of a chat in ascending order, skipping the first ``since``."""
        chat_id = parse_identifier(chat_id, "chat ID")
        if since < 0:
            raise InvalidArgument("since must not be negative")
        async with storage_guard(self.timeout):
            chat = await self.chat_interactor.get_chat(chat_id)
            if viewer_id is not None and viewer_id not in chat.participant_ids:
                raise Forbidden("Not a participant of this chat")
            messages = await self.message_gateway.list_for_chat(chat_id, skip=since)
        return [schemas.Message.model_validate(message._model) for message in messages]

    async def find_between(
        self, user_a: UUID | str, user_b: UUID | str
    ) -> list[schemas.Message]:
        chat = await self.chat_interactor.find_for_pair(user_a, user_b)
        if chat is None:
            return []
        return await self.list_messages(chat.id)

    async def update_status(
        self,
        message_id: UUID | str,
        new_status: str | DeliveryStatus,
        actor_id: UUID | None = None,
    ) -> tuple[schemas.Message, DeliveryStatus | None]:
        """Move a message along its delivery status.

        Returns the message and its previous status, or ``None`` in place of
        the previous status when the update was a no-op.
        """
        status = parse_delivery_status(new_status)
        message_id = parse_identifier(message_id, "message ID")

        async with storage_guard(self.timeout):
            message = await self.message_gateway.get_message(message_id)
            if message is None:
                raise NotFound("Message not found")
            if actor_id is not None:
                chat = await self.chat_interactor.get_chat(message.chat_id)
                if actor_id not in chat.participant_ids:
                    raise Forbidden("Not a participant of this chat")

            # a lost compare-and-set means another writer moved the status,
            # so re-read and judge the transition against the new value
            while True:
                previous = DeliveryStatus(message.status)
                if not check_transition(previous, status):
                    return schemas.Message.model_validate(message._model), None
                if await self.message_gateway.set_status(
                    message_id, previous.value, status.value
                ):
                    break
                message = await self.message_gateway.get_message(message_id)

            await self.uow.commit()
            message = await self.message_gateway.get_message(message_id)
        return schemas.Message.model_validate(message._model), previous
