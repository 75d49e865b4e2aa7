# messenger/realtime/protocol.py
"""Typed websocket protocol.

Every frame is a JSON envelope ``{"type": ..., "data": {...}}``. Client frames
accept camelCase keys (``chatId``) as well as snake_case ones; server frames
carry the same JSON shapes as the HTTP API.
"""
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from messenger.domain.entities import PresenceStatus
from messenger.infrastructure import schemas

# client -> server
JOIN_CHAT = "joinChat"
SEND_MESSAGE = "sendMessage"
UPDATE_MESSAGE_STATUS = "updateMessageStatus"
JOIN_USER = "joinUser"

# server -> client
CHAT_HISTORY = "chatHistory"
NEW_MESSAGE = "newMessage"
MESSAGE_STATUS = "messageStatus"
USER_STATUS_CHANGE = "userStatusChange"
CHAT_CREATED = "chatCreated"
ERROR = "error"


class ClientEvent(BaseModel):
    type: str
    data: dict[str, Any] = Field(default_factory=dict)


class ClientPayload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class JoinChat(ClientPayload):
    chat_id: str


class SendMessage(ClientPayload):
    chat_id: str
    sender_id: str | None = None
    content: str = ""
    attachments: list[schemas.Attachment] = Field(default_factory=list)


class UpdateMessageStatus(ClientPayload):
    message_id: str
    status: str


class JoinUser(ClientPayload):
    user_id: str


class ServerEvent(BaseModel):
    type: str
    data: Any = None


def chat_history(messages: list[schemas.Message]) -> ServerEvent:
    return ServerEvent(type=CHAT_HISTORY, data=messages)


def new_message(message: schemas.Message) -> ServerEvent:
    return ServerEvent(type=NEW_MESSAGE, data=message)


def message_status(message: schemas.Message) -> ServerEvent:
    return ServerEvent(type=MESSAGE_STATUS, data=message)


def user_status_change(user_id: UUID, status: PresenceStatus) -> ServerEvent:
    return ServerEvent(
        type=USER_STATUS_CHANGE,
        data={"user_id": str(user_id), "status": PresenceStatus(status).value},
    )


def chat_created(chat: schemas.Chat) -> ServerEvent:
    return ServerEvent(type=CHAT_CREATED, data=chat)


def error(message: str) -> ServerEvent:
    return ServerEvent(type=ERROR, data={"message": message})
