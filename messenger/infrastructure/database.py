# messenger/infrastructure/database.py
import asyncio
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from messenger.domain.exceptions import Unavailable


class Base(DeclarativeBase):
    pass


class Database:
    def __init__(
        self,
        engine: AsyncEngine,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ):
        self.engine = engine
        self.SessionLocal = session_factory or async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    async def connect(self) -> None:
        async with self.engine.begin() as conn:
            import messenger.infrastructure.models  # noqa: F401

            await conn.run_sync(Base.metadata.create_all)

    async def disconnect(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        async with self.SessionLocal() as session:
            yield session

    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        async with self.session() as session:
            yield session


def create_database(
    engine: AsyncEngine,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> Database:
    return Database(engine, session_factory)


@asynccontextmanager
async def storage_guard(timeout: float | None) -> AsyncIterator[None]:
    """Bound a block of storage work and report stalls as ``Unavailable``.

    A ``timeout`` of ``None`` or ``0`` leaves the block unbounded.
    """
    try:
        async with asyncio.timeout(timeout or None):
            yield
    except TimeoutError as e:
        raise Unavailable("Storage operation timed out, retry later") from e
    except OperationalError as e:
        raise Unavailable(f"Storage is unavailable: {e.orig}") from e
