# messenger/tests/unit/test_socket_handler.py
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from messenger.domain.entities import DeliveryStatus, PresenceStatus
from messenger.domain.events import MessageCreated, MessageStatusUpdated, UserStatusChanged
from messenger.domain.exceptions import Forbidden
from messenger.infrastructure import schemas
from messenger.realtime import protocol
from messenger.realtime.hub import Connection, RealtimeHub
from messenger.realtime.socket_handler import ClientEventHandler


def make_message():
    sender_id = uuid4()
    return schemas.Message(
        id=uuid4(),
        chat_id=uuid4(),
        sender_id=sender_id,
        content="hello",
        status=DeliveryStatus.READ,
        created_at=datetime.now(UTC),
        sender=schemas.UserBasic(
            id=sender_id,
            username="sender",
            display_name="",
            profile_picture="",
            presence=PresenceStatus.ONLINE,
        ),
    )


class FakeSocket:
    def __init__(self):
        self.sent = []

    async def send_json(self, data):
        self.sent.append(data)

    async def close(self, code=1000):
        pass


@pytest.fixture
def interactors():
    users = AsyncMock()
    users.set_presence.return_value = SimpleNamespace(last_seen=datetime.now(UTC))
    return SimpleNamespace(users=users, messages=AsyncMock(), chats=AsyncMock())


@pytest.fixture
def dispatcher():
    return AsyncMock()


@pytest.fixture
async def hub():
    hub = RealtimeHub(history_loader=AsyncMock(return_value=[]))
    yield hub
    await hub.stop()


@pytest.fixture
def handler(hub, interactors, dispatcher):
    @asynccontextmanager
    async def scope():
        yield interactors

    return ClientEventHandler(hub, scope, dispatcher)


@pytest.fixture
async def connection(hub):
    connection = Connection(FakeSocket(), uuid4())
    await hub.register(connection)
    return connection


async def frames(connection):
    await connection.flush()
    return connection.websocket.sent


async def test_join_chat_accepts_camel_case(handler, hub, connection):
    chat_id = uuid4()
    await handler.handle(connection, {"type": "joinChat", "data": {"chatId": str(chat_id)}})
    assert chat_id in hub.rooms
    assert (await frames(connection))[0]["type"] == protocol.CHAT_HISTORY


async def test_join_chat_with_bad_id_keeps_connection(handler, connection):
    await handler.handle(connection, {"type": "joinChat", "data": {"chat_id": "nope"}})
    assert await frames(connection) == [
        {"type": "error", "data": {"message": "Invalid chat ID"}}
    ]
    assert not connection.closed


async def test_send_message_uses_connection_user_as_actor(
    handler, connection, interactors, dispatcher
):
    message = make_message()
    interactors.messages.send.return_value = (message, True)
    chat_id = str(uuid4())

    await handler.handle(
        connection,
        {"type": "sendMessage", "data": {"chatId": chat_id, "content": "hi"}},
    )

    args, kwargs = interactors.messages.send.call_args
    assert args[0] == chat_id
    assert args[1] == connection.user_id
    assert args[2] == "hi"
    assert kwargs["actor_id"] == connection.user_id
    event = dispatcher.dispatch.call_args.args[0]
    assert isinstance(event, MessageCreated)
    assert event.message is message


async def test_duplicate_send_dispatches_nothing(handler, connection, interactors, dispatcher):
    interactors.messages.send.return_value = (object(), False)
    await handler.handle(
        connection,
        {"type": "sendMessage", "data": {"chatId": str(uuid4()), "content": "hi"}},
    )
    dispatcher.dispatch.assert_not_awaited()


async def test_rejected_send_is_reported_to_sender_only(
    handler, hub, connection, interactors
):
    other = Connection(FakeSocket(), uuid4())
    await hub.register(other)
    interactors.messages.send.side_effect = Forbidden(
        "Sender is not a participant of this chat"
    )

    await handler.handle(
        connection,
        {"type": "sendMessage", "data": {"chatId": str(uuid4()), "content": "hi"}},
    )

    assert await frames(connection) == [
        {"type": "error", "data": {"message": "Sender is not a participant of this chat"}}
    ]
    assert await frames(other) == []


async def test_status_update_dispatches_only_on_change(
    handler, connection, interactors, dispatcher
):
    message_id = str(uuid4())
    interactors.messages.update_status.return_value = (object(), None)
    await handler.handle(
        connection,
        {"type": "updateMessageStatus", "data": {"messageId": message_id, "status": "read"}},
    )
    dispatcher.dispatch.assert_not_awaited()

    interactors.messages.update_status.return_value = (
        make_message(),
        DeliveryStatus.SENT,
    )
    await handler.handle(
        connection,
        {"type": "updateMessageStatus", "data": {"messageId": message_id, "status": "read"}},
    )
    event = dispatcher.dispatch.call_args.args[0]
    assert isinstance(event, MessageStatusUpdated)
    assert event.previous_status is DeliveryStatus.SENT


async def test_join_user_marks_online(handler, hub, connection, interactors, dispatcher):
    await handler.handle(
        connection, {"type": "joinUser", "data": {"userId": str(connection.user_id)}}
    )

    assert hub.is_user_connected(connection.user_id)
    interactors.users.set_presence.assert_awaited_once_with(
        connection.user_id, PresenceStatus.ONLINE
    )
    event = dispatcher.dispatch.call_args.args[0]
    assert isinstance(event, UserStatusChanged)
    assert event.status is PresenceStatus.ONLINE


async def test_join_user_for_someone_else_is_rejected(handler, hub, connection):
    await handler.handle(connection, {"type": "joinUser", "data": {"userId": str(uuid4())}})
    assert (await frames(connection))[0]["type"] == protocol.ERROR
    assert hub.presence_channels == {}


async def test_last_disconnect_marks_offline(handler, hub, connection, interactors, dispatcher):
    second = Connection(FakeSocket(), connection.user_id)
    await hub.register(second)
    for conn in (connection, second):
        await handler.handle(
            conn, {"type": "joinUser", "data": {"userId": str(connection.user_id)}}
        )
    dispatcher.dispatch.reset_mock()
    interactors.users.set_presence.reset_mock()

    await handler.disconnected(connection)
    interactors.users.set_presence.assert_not_awaited()

    await handler.disconnected(second)
    interactors.users.set_presence.assert_awaited_once_with(
        connection.user_id, PresenceStatus.OFFLINE
    )
    event = dispatcher.dispatch.call_args.args[0]
    assert event.status is PresenceStatus.OFFLINE
    assert event.last_seen is not None


async def test_unknown_and_malformed_frames(handler, connection):
    await handler.handle(connection, {"type": "typing", "data": {}})
    await handler.handle(connection, ["not", "an", "envelope"])
    await handler.handle(connection, {"type": "joinChat", "data": {}})

    sent = await frames(connection)
    assert [frame["type"] for frame in sent] == ["error", "error", "error"]
    assert "Unknown event type" in sent[0]["data"]["message"]
    assert sent[1]["data"]["message"] == "Malformed event"
    assert "Invalid joinChat payload" in sent[2]["data"]["message"]
