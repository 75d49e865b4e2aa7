# messenger/seed.py
import logging
from itertools import combinations
from typing import Any

from messenger.api.dependencies import interactor_scope
from messenger.domain.entities import PresenceStatus
from messenger.infrastructure import schemas

DEMO_USERS = [
    {
        "username": "john",
        "email": "john@example.com",
        "password": "password123",
        "display_name": "John Doe",
        "bio": "A random test user.",
        "custom_message": "Hello, I am John!",
        "profile_picture": "https://randomuser.me/api/portraits/men/1.jpg",
        "presence": PresenceStatus.BUSY,
    },
    {
        "username": "jane",
        "email": "jane@example.com",
        "password": "password456",
        "display_name": "Jane Doe",
        "bio": "Another random test user.",
        "custom_message": "Hi, I'm Jane!",
        "profile_picture": "https://randomuser.me/api/portraits/women/1.jpg",
        "presence": PresenceStatus.ONLINE,
    },
    {
        "username": "mainuser",
        "email": "mainuser@example.com",
        "password": "password123",
        "display_name": "Main User",
        "bio": "This is the main user.",
        "custom_message": "Hello, I'm the main user!",
        "profile_picture": "https://randomuser.me/api/portraits/men/2.jpg",
        "presence": PresenceStatus.OFFLINE,
    },
]


async def seed_demo_data(state: Any, logger: logging.Logger) -> None:
    """Create the demo users as mutual contacts with a chat for every pair.

    Safe to run repeatedly: existing users, contacts and chats are reused.
    """
    async with interactor_scope(state) as interactors:
        users = interactors.users
        user_ids = []
        for demo in DEMO_USERS:
            user = await users.get_user_by_username(demo["username"])
            if user is None:
                user = await users.create_user(
                    schemas.UserCreate(
                        username=demo["username"],
                        email=demo["email"],
                        password=demo["password"],
                        display_name=demo["display_name"],
                    )
                )
                await users.update_user(
                    user.id,
                    schemas.UserUpdate(
                        bio=demo["bio"],
                        custom_message=demo["custom_message"],
                        profile_picture=demo["profile_picture"],
                    ),
                )
                await users.set_presence(user.id, demo["presence"])
                logger.info(f"Seeded demo user {demo['username']}")
            user_ids.append(user.id)

        for user_a, user_b in combinations(user_ids, 2):
            await interactors.contacts.connect(user_a, user_b)
            await interactors.chats.create_or_get(user_a, user_b)

    logger.info(f"Demo data ready: {len(user_ids)} users with mutual contacts and chats")
