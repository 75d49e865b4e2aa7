# messenger/realtime/hub.py
import asyncio
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import Any
from uuid import UUID, uuid4

from messenger.domain.entities import PresenceStatus, parse_identifier
from messenger.domain.exceptions import ChatServiceError, InvalidArgument
from messenger.infrastructure import schemas
from messenger.realtime import protocol
from messenger.realtime.protocol import ServerEvent

HistoryLoader = Callable[[UUID, UUID | None], Awaitable[list[schemas.Message]]]


class Connection:
    """One websocket plus its outbound queue.

    A single writer task drains the queue, so events reach the socket in the
    order they were enqueued and a slow client only delays itself.
    """

    def __init__(
        self,
        websocket: Any,
        user_id: UUID | None = None,
        logger: logging.Logger | None = None,
    ):
        self.id = uuid4()
        self.websocket = websocket
        self.user_id = user_id
        self.rooms: set[UUID] = set()
        self.presence_channel: UUID | None = None
        self.queue: asyncio.Queue[ServerEvent | None] = asyncio.Queue()
        self.logger = logger or logging.getLogger("MessengerAPI")
        self.closed = False
        self._writer: asyncio.Task | None = None

    def start(self) -> None:
        if self._writer is None:
            self._writer = asyncio.create_task(self._write_loop())

    def send(self, event: ServerEvent) -> None:
        if not self.closed:
            self.queue.put_nowait(event)

    async def flush(self) -> None:
        """Wait until everything queued so far has been written."""
        await self.queue.join()

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.queue.put_nowait(None)
        if self._writer is not None:
            await self._writer

    async def _write_loop(self) -> None:
        broken = False
        while True:
            event = await self.queue.get()
            try:
                if event is None:
                    return
                if not broken:
                    await self.websocket.send_json(event.model_dump(mode="json"))
            except Exception as e:
                # the socket is gone, drain the rest without writing
                broken = True
                self.logger.warning(f"Dropping events for connection {self.id}: {e!s}")
            finally:
                self.queue.task_done()


class RealtimeHub:
    """Room and presence-channel subscriptions for every live connection.

    Rooms are keyed by chat id. Each connection holds at most one presence
    channel, keyed by the user id it announced with ``joinUser``.
    """

    def __init__(
        self,
        history_loader: HistoryLoader | None = None,
        logger: logging.Logger | None = None,
    ):
        self.history_loader = history_loader
        self.logger = logger or logging.getLogger("MessengerAPI")
        self.rooms: dict[UUID, set[Connection]] = defaultdict(set)
        self.presence_channels: dict[UUID, set[Connection]] = defaultdict(set)
        self.connections: dict[UUID, Connection] = {}
        self.running = False
        self._lock = asyncio.Lock()

    async def start(self) -> None:
        self.running = True
        self.logger.info("Realtime hub started")

    async def stop(self) -> None:
        self.running = False
        for connection in list(self.connections.values()):
            await self.disconnect(connection)
            try:
                await connection.websocket.close(code=1001)
            except Exception as e:
                self.logger.debug(f"Connection {connection.id} already closed: {e!s}")
        self.logger.info("Realtime hub stopped")

    async def register(self, connection: Connection) -> None:
        connection.start()
        async with self._lock:
            self.connections[connection.id] = connection

    async def join_chat_room(self, connection: Connection, chat_id: Any) -> None:
        try:
            room = parse_identifier(chat_id, "chat ID")
        except InvalidArgument as e:
            connection.send(protocol.error(e.message))
            return

        # subscribe before loading so nothing published meanwhile is lost
        async with self._lock:
            self.rooms[room].add(connection)
            connection.rooms.add(room)

        try:
            history = (
                await self.history_loader(room, connection.user_id)
                if self.history_loader
                else []
            )
        except ChatServiceError as e:
            await self.leave_chat_room(connection, room)
            connection.send(protocol.error(e.message))
            return
        connection.send(protocol.chat_history(history))

    async def leave_chat_room(self, connection: Connection, chat_id: UUID) -> None:
        async with self._lock:
            self._unsubscribe(self.rooms, chat_id, connection)
            connection.rooms.discard(chat_id)

    async def join_presence_channel(self, connection: Connection, user_id: UUID) -> None:
        async with self._lock:
            if connection.presence_channel is not None:
                self._unsubscribe(
                    self.presence_channels, connection.presence_channel, connection
                )
            self.presence_channels[user_id].add(connection)
            connection.presence_channel = user_id

    async def publish_new_message(self, message: schemas.Message) -> int:
        return await self._publish_to_room(message.chat_id, protocol.new_message(message))

    async def publish_status_change(self, message: schemas.Message) -> int:
        return await self._publish_to_room(
            message.chat_id, protocol.message_status(message)
        )

    async def publish_presence_change(
        self, user_id: UUID, status: PresenceStatus
    ) -> int:
        event = protocol.user_status_change(user_id, status)
        async with self._lock:
            targets = list(self.connections.values())
        for connection in targets:
            connection.send(event)
        return len(targets)

    async def publish_to_user(self, user_id: UUID, event: ServerEvent) -> int:
        async with self._lock:
            targets = list(self.presence_channels.get(user_id, ()))
        for connection in targets:
            connection.send(event)
        return len(targets)

    async def disconnect(self, connection: Connection) -> bool:
        """Drop every subscription of ``connection`` and close its writer.

        Returns ``True`` when this was the last connection holding the
        presence channel of its user.
        """
        went_offline = False
        async with self._lock:
            for room in list(connection.rooms):
                self._unsubscribe(self.rooms, room, connection)
            connection.rooms.clear()
            channel = connection.presence_channel
            if channel is not None and connection in self.presence_channels.get(
                channel, ()
            ):
                self._unsubscribe(self.presence_channels, channel, connection)
                went_offline = channel not in self.presence_channels
            connection.presence_channel = None
            self.connections.pop(connection.id, None)
        await connection.close()
        return went_offline

    def is_user_connected(self, user_id: UUID) -> bool:
        return bool(self.presence_channels.get(user_id))

    async def _publish_to_room(self, chat_id: UUID, event: ServerEvent) -> int:
        async with self._lock:
            targets = list(self.rooms.get(chat_id, ()))
        for connection in targets:
            connection.send(event)
        return len(targets)

    @staticmethod
    def _unsubscribe(
        table: dict[UUID, set[Connection]], key: UUID, connection: Connection
    ) -> None:
        members = table.get(key)
        if members is None:
            return
        members.discard(connection)
        if not members:
            del table[key]
