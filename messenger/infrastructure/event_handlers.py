# messenger/infrastructure/event_handlers.py
import logging
from typing import Any

from messenger.domain.events import (
    ChatCreated,
    MessageCreated,
    MessageEvent,
    MessageStatusUpdated,
    UserStatusChanged,
)
from messenger.infrastructure.event_dispatcher import EventDispatcher
from messenger.infrastructure.redis_client import (
    RedisClient,
    chat_channel,
    chat_status_channel,
    user_status_channel,
)
from messenger.realtime import protocol
from messenger.realtime.hub import RealtimeHub


class EventHandlers:
    """Fans committed events out to live connections and mirrors them to Redis."""

    def __init__(
        self,
        hub: RealtimeHub,
        redis_client: RedisClient | None = None,
        logger: logging.Logger | None = None,
    ):
        self.hub = hub
        self.redis_client = redis_client
        self.logger = logger or logging.getLogger("MessengerAPI")

    def register(self, dispatcher: EventDispatcher) -> None:
        dispatcher.register(MessageCreated.__name__, self.publish_message_created)
        dispatcher.register(
            MessageStatusUpdated.__name__, self.publish_message_status_updated
        )
        dispatcher.register(
            UserStatusChanged.__name__, self.publish_user_status_changed
        )
        dispatcher.register(ChatCreated.__name__, self.publish_chat_created)

    async def mirror(self, channel: str, payload: dict[str, Any]) -> None:
        if self.redis_client is None or not self.redis_client.connected:
            return
        await self.redis_client.publish_json(channel, payload)

    async def publish_message_event(
        self,
        event: MessageEvent,
        channel: str,
        additional_data: dict[str, Any] | None = None,
    ) -> None:
        message_data = event.message.model_dump(mode="json")
        if additional_data:
            message_data.update(additional_data)
        await self.mirror(channel, message_data)

    async def publish_message_created(self, event: MessageCreated) -> None:
        delivered = await self.hub.publish_new_message(event.message)
        self.logger.debug(
            f"Message {event.message.id} pushed to {delivered} connection(s)"
        )
        await self.publish_message_event(event, chat_channel(event.chat_id))

    async def publish_message_status_updated(self, event: MessageStatusUpdated) -> None:
        await self.hub.publish_status_change(event.message)
        await self.publish_message_event(
            event,
            chat_status_channel(event.chat_id),
            {"previous_status": event.previous_status.value},
        )

    async def publish_user_status_changed(self, event: UserStatusChanged) -> None:
        await self.hub.publish_presence_change(event.user_id, event.status)
        await self.mirror(
            user_status_channel(event.user_id),
            event.model_dump(mode="json"),
        )

    async def publish_chat_created(self, event: ChatCreated) -> None:
        for participant_id in event.chat.participant_ids:
            await self.hub.publish_to_user(
                participant_id, protocol.chat_created(event.chat)
            )
