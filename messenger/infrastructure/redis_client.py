# messenger/infrastructure/redis_client.py
import json
import logging
from typing import Any
from uuid import UUID

import redis.asyncio as redis


def chat_channel(chat_id: UUID) -> str:
    return f"chat:{chat_id}"


def chat_status_channel(chat_id: UUID) -> str:
    return f"chat:{chat_id}:status"


def user_status_channel(user_id: UUID) -> str:
    return f"user:{user_id}:status"


class RedisClient:
    """Mirrors domain events onto Redis channels for external subscribers.

    Payloads are the JSON shapes of the HTTP API. Mirroring is fire and
    forget: nothing is stored, so a subscriber only sees what is published
    while it listens.
    """

    def __init__(self, host: str, port: int, logger: logging.Logger):
        self.host = host
        self.port = port
        self.client: redis.Redis | None = None
        self.logger = logger

    @property
    def connected(self) -> bool:
        return self.client is not None

    async def connect(self) -> None:
        client = redis.Redis(
            host=self.host,
            port=self.port,
            db=0,
            decode_responses=True,
        )
        try:
            await client.ping()
        except redis.ConnectionError as e:
            self.logger.error(f"Failed to connect to Redis: {e!s}")
            self.logger.error(f"Redis host: {self.host}, Redis port: {self.port}")
            await client.aclose()
            raise
        self.client = client
        self.logger.info(f"Successfully connected to Redis at {self.host}:{self.port}")

    async def disconnect(self) -> None:
        if self.client is None:
            return
        client, self.client = self.client, None
        await client.aclose()
        self.logger.info("Disconnected from Redis")

    async def publish(self, channel: str, message: str) -> int:
        """Publish ``message`` and return how many subscribers received it."""
        if self.client is None:
            raise RuntimeError("Redis client not connected")
        receivers = await self.client.publish(channel, message)
        self.logger.debug(f"Published message to channel {channel} ({receivers} receivers)")
        return receivers

    async def publish_json(self, channel: str, payload: dict[str, Any]) -> int:
        return await self.publish(channel, json.dumps(payload, default=str))
