import asyncio
from types import SimpleNamespace

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import create_async_engine

from messenger.api.dependencies import interactor_scope
from messenger.domain.entities import DeliveryStatus, FriendRequestState
from messenger.domain.exceptions import Conflict, Unavailable
from messenger.gateways.chat_gateway import ChatGateway
from messenger.infrastructure import models, schemas
from messenger.infrastructure.database import create_database
from messenger.infrastructure.locks import KeyedLocks
from messenger.infrastructure.security import SecurityService

pytestmark = pytest.mark.asyncio


@pytest.fixture
async def file_state(tmp_path, app_config):
    """Application state on a file database, one session per scope."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'race.db'}")
    database = create_database(engine)
    await database.connect()
    yield SimpleNamespace(
        database=database,
        config=app_config,
        security_service=SecurityService(app_config),
        pair_locks=KeyedLocks(),
    )
    await database.disconnect()


async def register(state, name):
    async with interactor_scope(state) as interactors:
        return await interactors.users.create_user(
            schemas.UserCreate(
                username=name, email=f"{name}@example.com", password="testpassword"
            )
        )


async def create_in_own_session(state, user_a, user_b):
    async with interactor_scope(state) as interactors:
        return await interactors.chats.create_or_get(user_a, user_b)


async def count_chats(state):
    async with state.database.session() as session:
        result = await session.execute(select(func.count()).select_from(models.Chat))
        return result.scalar_one()


async def test_concurrent_sessions_create_one_chat(file_state):
    alice = await register(file_state, "alice")
    bob = await register(file_state, "bob")

    results = await asyncio.gather(
        *(
            create_in_own_session(file_state, *pair)
            for pair in [(alice.id, bob.id), (bob.id, alice.id)] * 3
        )
    )

    assert len({chat.id for chat, _ in results}) == 1
    assert [created for _, created in results].count(True) == 1
    assert await count_chats(file_state) == 1


async def test_unique_pair_holds_without_shared_lock(file_state):
    alice = await register(file_state, "alice")
    bob = await register(file_state, "bob")

    async def create_with_private_lock(user_a, user_b):
        state = SimpleNamespace(**{**vars(file_state), "pair_locks": KeyedLocks()})
        return await create_in_own_session(state, user_a, user_b)

    results = await asyncio.gather(
        create_with_private_lock(alice.id, bob.id),
        create_with_private_lock(bob.id, alice.id),
    )

    assert len({chat.id for chat, _ in results}) == 1
    assert await count_chats(file_state) == 1


async def send_in_own_session(state, chat_id, sender_id, content):
    async with interactor_scope(state) as interactors:
        message, _ = await interactors.messages.send(chat_id, sender_id, content)
        return message


async def update_status_in_own_session(state, message_id, status):
    async with interactor_scope(state) as interactors:
        return await interactors.messages.update_status(message_id, status)


async def test_concurrent_status_updates_never_move_backwards(file_state):
    alice = await register(file_state, "alice")
    bob = await register(file_state, "bob")
    chat, _ = await create_in_own_session(file_state, alice.id, bob.id)
    message = await send_in_own_session(file_state, chat.id, alice.id, "hi")

    results = await asyncio.gather(
        update_status_in_own_session(file_state, message.id, "read"),
        update_status_in_own_session(file_state, message.id, "delivered"),
        return_exceptions=True,
    )

    # "delivered" either lands first or is rejected once "read" is stored
    for result in results:
        assert not isinstance(result, Exception) or isinstance(result, Conflict)
    async with interactor_scope(file_state) as interactors:
        stored = await interactors.messages.list_messages(chat.id)
    assert [m.status for m in stored] == [DeliveryStatus.READ]


async def test_concurrent_sends_keep_last_message_pointer(file_state):
    alice = await register(file_state, "alice")
    bob = await register(file_state, "bob")
    chat, _ = await create_in_own_session(file_state, alice.id, bob.id)

    for round_number in range(10):
        await asyncio.gather(
            send_in_own_session(file_state, chat.id, alice.id, f"a{round_number}"),
            send_in_own_session(file_state, chat.id, bob.id, f"b{round_number}"),
        )

        async with interactor_scope(file_state) as interactors:
            history = await interactors.messages.list_messages(chat.id)
            current = await interactors.chats.get_chat(chat.id)
        assert len(history) == 2 * (round_number + 1)
        assert current.last_message_id == history[-1].id
        assert current.updated_at == history[-1].created_at
        created = [m.created_at for m in history]
        assert created == sorted(set(created))


async def test_failed_accept_leaves_request_pending(file_state, monkeypatch):
    alice = await register(file_state, "alice")
    bob = await register(file_state, "bob")
    async with interactor_scope(file_state) as interactors:
        request = await interactors.contacts.send_request(alice.id, bob.id)

    async def unavailable(self, user_a, user_b):
        raise Unavailable("Storage unavailable")

    monkeypatch.setattr(ChatGateway, "create_chat", unavailable)
    with pytest.raises(Unavailable):
        async with interactor_scope(file_state) as interactors:
            await interactors.contacts.accept_request(request.id, bob.id)
    monkeypatch.undo()

    async with interactor_scope(file_state) as interactors:
        pending = await interactors.contacts.list_incoming_requests(bob.id)
        assert [r.id for r in pending] == [request.id]
        assert await interactors.contacts.list_contacts(alice.id) == []

        accepted, chat, created = await interactors.contacts.accept_request(request.id, bob.id)
    assert accepted.state == FriendRequestState.ACCEPTED
    assert created
    assert await count_chats(file_state) == 1
