# messenger/realtime/socket_handler.py
import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from typing import Any

from pydantic import ValidationError

from messenger.domain.entities import PresenceStatus, parse_identifier
from messenger.domain.events import MessageCreated, MessageStatusUpdated, UserStatusChanged
from messenger.domain.exceptions import ChatServiceError, Forbidden
from messenger.infrastructure.event_dispatcher import EventDispatcher
from messenger.realtime import protocol
from messenger.realtime.hub import Connection, RealtimeHub

ScopeFactory = Callable[[], AbstractAsyncContextManager[Any]]


class ClientEventHandler:
    """Runs client websocket frames against the same use cases as HTTP.

    ``scope_factory`` opens a fresh session per frame and yields an object with
    ``users``, ``chats`` and ``messages`` interactors. Failures are reported
    to the sending connection only.
    """

    def __init__(
        self,
        hub: RealtimeHub,
        scope_factory: ScopeFactory,
        dispatcher: EventDispatcher,
        logger: logging.Logger | None = None,
    ):
        self.hub = hub
        self.scope_factory = scope_factory
        self.dispatcher = dispatcher
        self.logger = logger or logging.getLogger("MessengerAPI")
        self.handlers = {
            protocol.JOIN_CHAT: self.join_chat,
            protocol.SEND_MESSAGE: self.send_message,
            protocol.UPDATE_MESSAGE_STATUS: self.update_message_status,
            protocol.JOIN_USER: self.join_user,
        }

    async def handle(self, connection: Connection, raw: Any) -> None:
        try:
            event = protocol.ClientEvent.model_validate(raw)
        except ValidationError:
            connection.send(protocol.error("Malformed event"))
            return

        handler = self.handlers.get(event.type)
        if handler is None:
            connection.send(protocol.error(f"Unknown event type '{event.type}'"))
            return

        try:
            await handler(connection, event.data)
        except ValidationError as e:
            connection.send(
                protocol.error(f"Invalid {event.type} payload: {e.errors()[0]['msg']}")
            )
        except ChatServiceError as e:
            self.logger.debug(f"{event.type} rejected for {connection.user_id}: {e.message}")
            connection.send(protocol.error(e.message))

    async def join_chat(self, connection: Connection, data: dict[str, Any]) -> None:
        payload = protocol.JoinChat.model_validate(data)
        await self.hub.join_chat_room(connection, payload.chat_id)

    async def send_message(self, connection: Connection, data: dict[str, Any]) -> None:
        payload = protocol.SendMessage.model_validate(data)
        async with self.scope_factory() as interactors:
            message, created = await interactors.messages.send(
                payload.chat_id,
                payload.sender_id or connection.user_id,
                payload.content,
                payload.attachments,
                actor_id=connection.user_id,
            )
        if created:
            await self.dispatcher.dispatch(MessageCreated(message=message))

    async def update_message_status(
        self, connection: Connection, data: dict[str, Any]
    ) -> None:
        payload = protocol.UpdateMessageStatus.model_validate(data)
        async with self.scope_factory() as interactors:
            message, previous = await interactors.messages.update_status(
                payload.message_id, payload.status, actor_id=connection.user_id
            )
        if previous is not None:
            await self.dispatcher.dispatch(
                MessageStatusUpdated(message=message, previous_status=previous)
            )

    async def join_user(self, connection: Connection, data: dict[str, Any]) -> None:
        payload = protocol.JoinUser.model_validate(data)
        user_id = parse_identifier(payload.user_id, "user ID")
        if user_id != connection.user_id:
            raise Forbidden("Cannot join another user's presence channel")
        await self.hub.join_presence_channel(connection, user_id)
        await self._announce_presence(user_id, PresenceStatus.ONLINE)

    async def disconnected(self, connection: Connection) -> None:
        went_offline = await self.hub.disconnect(connection)
        if not went_offline or connection.user_id is None:
            return
        try:
            await self._announce_presence(connection.user_id, PresenceStatus.OFFLINE)
        except ChatServiceError as e:
            self.logger.warning(
                f"Could not mark user {connection.user_id} offline: {e.message}"
            )

    async def _announce_presence(self, user_id, status: PresenceStatus) -> None:
        async with self.scope_factory() as interactors:
            user = await interactors.users.set_presence(user_id, status)
        await self.dispatcher.dispatch(
            UserStatusChanged(user_id=user_id, status=status, last_seen=user.last_seen)
        )
