# messenger/tests/unit/test_chat_interactor.py
import asyncio
from datetime import UTC, datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from messenger.domain.entities import pair_key
from messenger.domain.exceptions import Conflict, Forbidden, InvalidArgument, NotFound
from messenger.infrastructure.locks import KeyedLocks
from messenger.interactors.chat_interactor import ChatInteractor


def user_record(user_id):
    return SimpleNamespace(
        id=user_id,
        username=f"user_{user_id.hex[:6]}",
        display_name="",
        profile_picture="",
        presence="offline",
    )


def chat_record(user_a, user_b):
    first, second = pair_key(user_a, user_b)
    now = datetime.now(UTC)
    return SimpleNamespace(
        id=uuid4(),
        participants=[user_record(first), user_record(second)],
        last_message_id=None,
        last_message=None,
        created_at=now,
        updated_at=now,
    )


class InMemoryChatGateway:
    """Yields to the loop between reads and writes like a real database would."""

    def __init__(self):
        self.chats = {}
        self.inserts = 0

    async def find_by_pair(self, user_a, user_b):
        await asyncio.sleep(0)
        record = self.chats.get(pair_key(user_a, user_b))
        return SimpleNamespace(_model=record) if record else None

    async def create_chat(self, user_a, user_b):
        await asyncio.sleep(0.01)
        key = pair_key(user_a, user_b)
        if key in self.chats:
            raise Conflict("A chat between these users already exists")
        self.inserts += 1
        self.chats[key] = chat_record(user_a, user_b)
        return SimpleNamespace(_model=self.chats[key])


@pytest.fixture
def users():
    return uuid4(), uuid4()


@pytest.fixture
def user_gateway(users):
    gateway = AsyncMock()
    gateway.get_users.return_value = [user_record(u) for u in users]
    return gateway


@pytest.fixture
def contact_gateway():
    gateway = AsyncMock()
    gateway.is_blocked_between.return_value = False
    gateway.are_contacts.return_value = True
    return gateway


def build(chat_gateway, user_gateway, contact_gateway, config, locks=None):
    return ChatInteractor(
        AsyncMock(), chat_gateway, user_gateway, contact_gateway, locks or KeyedLocks(), config
    )


async def test_concurrent_creates_produce_one_chat(
    users, user_gateway, contact_gateway, app_config
):
    chat_gateway = InMemoryChatGateway()
    interactor = build(chat_gateway, user_gateway, contact_gateway, app_config)
    user_a, user_b = users

    results = await asyncio.gather(
        interactor.create_or_get(user_a, user_b),
        interactor.create_or_get(user_b, user_a),
        interactor.create_or_get(str(user_a), str(user_b)),
    )

    assert chat_gateway.inserts == 1
    assert len({chat.id for chat, _ in results}) == 1
    assert sorted(created for _, created in results) == [False, False, True]
    assert len(interactor.pair_locks) == 0


async def test_existing_chat_is_returned_unchanged(
    users, user_gateway, contact_gateway, app_config
):
    chat_gateway = InMemoryChatGateway()
    interactor = build(chat_gateway, user_gateway, contact_gateway, app_config)
    first, created = await interactor.create_or_get(*users)
    again, created_again = await interactor.create_or_get(*reversed(users))

    assert created and not created_again
    assert again.id == first.id
    assert again.participant_ids == first.participant_ids


async def test_lost_insert_falls_back_to_existing_chat(
    users, user_gateway, contact_gateway, app_config
):
    existing = chat_record(*users)
    chat_gateway = AsyncMock()
    chat_gateway.find_by_pair.side_effect = [None, SimpleNamespace(_model=existing)]
    chat_gateway.create_chat.side_effect = Conflict("duplicate pair")
    interactor = build(chat_gateway, user_gateway, contact_gateway, app_config)

    chat, created = await interactor.create_or_get(*users)

    assert chat.id == existing.id
    assert created is False


async def test_conflict_without_existing_chat_is_raised(
    users, user_gateway, contact_gateway, app_config
):
    chat_gateway = AsyncMock()
    chat_gateway.find_by_pair.return_value = None
    chat_gateway.create_chat.side_effect = Conflict("duplicate pair")
    interactor = build(chat_gateway, user_gateway, contact_gateway, app_config)

    with pytest.raises(Conflict):
        await interactor.create_or_get(*users)


async def test_same_user_twice_is_invalid(user_gateway, contact_gateway, app_config):
    interactor = build(AsyncMock(), user_gateway, contact_gateway, app_config)
    user_id = uuid4()
    with pytest.raises(InvalidArgument):
        await interactor.create_or_get(user_id, user_id)


async def test_malformed_id_is_invalid(user_gateway, contact_gateway, app_config):
    interactor = build(AsyncMock(), user_gateway, contact_gateway, app_config)
    with pytest.raises(InvalidArgument):
        await interactor.create_or_get("abc", uuid4())


async def test_unknown_user_is_not_found(users, contact_gateway, app_config):
    user_gateway = AsyncMock()
    user_gateway.get_users.return_value = [user_record(users[0])]
    chat_gateway = InMemoryChatGateway()
    interactor = build(chat_gateway, user_gateway, contact_gateway, app_config)

    with pytest.raises(NotFound):
        await interactor.create_or_get(*users)
    assert chat_gateway.inserts == 0


async def test_block_forbids_new_chat(users, user_gateway, contact_gateway, app_config):
    contact_gateway.is_blocked_between.return_value = True
    chat_gateway = InMemoryChatGateway()
    interactor = build(chat_gateway, user_gateway, contact_gateway, app_config)

    with pytest.raises(Forbidden):
        await interactor.create_or_get(*users)
    assert chat_gateway.inserts == 0


async def test_contact_requirement(users, user_gateway, contact_gateway, app_config):
    app_config.CHAT_REQUIRES_CONTACT = True
    contact_gateway.are_contacts.return_value = False
    interactor = build(InMemoryChatGateway(), user_gateway, contact_gateway, app_config)

    with pytest.raises(Forbidden):
        await interactor.create_or_get(*users)

    contact_gateway.are_contacts.return_value = True
    _, created = await interactor.create_or_get(*users)
    assert created


async def test_get_unknown_chat_is_not_found(user_gateway, contact_gateway, app_config):
    chat_gateway = AsyncMock()
    chat_gateway.get_chat.return_value = None
    interactor = build(chat_gateway, user_gateway, contact_gateway, app_config)
    with pytest.raises(NotFound):
        await interactor.get_chat(uuid4())
