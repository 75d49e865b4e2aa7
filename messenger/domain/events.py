# messenger/domain/events.py
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from messenger.domain.entities import DeliveryStatus, PresenceStatus
from messenger.infrastructure import schemas


class Event(BaseModel):
    pass


class MessageEvent(Event):
    message: schemas.Message

    @property
    def chat_id(self) -> UUID:
        return self.message.chat_id


class MessageCreated(MessageEvent):
    pass


class MessageStatusUpdated(MessageEvent):
    previous_status: DeliveryStatus


class UserStatusChanged(Event):
    user_id: UUID
    status: PresenceStatus
    last_seen: datetime | None = None


class ChatCreated(Event):
    chat: schemas.Chat
