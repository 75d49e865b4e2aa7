import logging
from types import SimpleNamespace

import pytest

from messenger.api.dependencies import interactor_scope
from messenger.infrastructure.database import create_database
from messenger.infrastructure.locks import KeyedLocks
from messenger.seed import DEMO_USERS, seed_demo_data

pytestmark = pytest.mark.asyncio


@pytest.fixture
def state(engine, app_config, security_service):
    return SimpleNamespace(
        database=create_database(engine),
        config=app_config,
        security_service=security_service,
        pair_locks=KeyedLocks(),
    )


async def test_seed_is_repeatable(state):
    logger = logging.getLogger("test_seed")
    await seed_demo_data(state, logger)
    await seed_demo_data(state, logger)

    async with interactor_scope(state) as interactors:
        john = await interactors.users.get_user_by_username("john")
        assert john.presence == DEMO_USERS[0]["presence"]
        assert john.bio == DEMO_USERS[0]["bio"]

        contacts = await interactors.contacts.list_contacts(john.id)
        assert {c.username for c in contacts} == {"jane", "mainuser"}

        chats = await interactors.chats.list_for_user(john.id)
        assert len(chats) == 2
