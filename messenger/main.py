# messenger/main.py
import logging
import sys
from contextlib import asynccontextmanager
from functools import partial
from uuid import UUID

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import create_async_engine

from messenger.api import auth, chats, contacts, messages, realtime, users
from messenger.api.dependencies import interactor_scope
from messenger.config import AppConfig
from messenger.domain.exceptions import ChatServiceError
from messenger.infrastructure import schemas
from messenger.infrastructure.database import create_database
from messenger.infrastructure.event_dispatcher import EventDispatcher
from messenger.infrastructure.event_handlers import EventHandlers
from messenger.infrastructure.locks import KeyedLocks
from messenger.infrastructure.redis_client import RedisClient
from messenger.infrastructure.security import SecurityService
from messenger.realtime.hub import RealtimeHub
from messenger.realtime.socket_handler import ClientEventHandler
from messenger.seed import seed_demo_data


class Application:
    def __init__(self, config: AppConfig):
        self.config = config
        self.logger = self.setup_logger()
        engine = create_async_engine(config.DATABASE_URL, echo=False)
        self.database = create_database(engine)
        self.redis_client = (
            RedisClient(config.REDIS_HOST, config.REDIS_PORT, self.logger)
            if config.REDIS_HOST
            else None
        )
        self.security_service = SecurityService(config)
        self.pair_locks = KeyedLocks()
        self.event_dispatcher = EventDispatcher(self.logger)
        self.hub = RealtimeHub(history_loader=self.load_history, logger=self.logger)
        self.socket_handler = ClientEventHandler(
            self.hub, partial(interactor_scope, self), self.event_dispatcher, self.logger
        )
        self.event_handlers = EventHandlers(self.hub, self.redis_client, self.logger)
        self.event_handlers.register(self.event_dispatcher)

    async def load_history(
        self, chat_id: UUID, viewer_id: UUID | None
    ) -> list[schemas.Message]:
        async with interactor_scope(self) as interactors:
            return await interactors.messages.list_messages(chat_id, viewer_id=viewer_id)

    @asynccontextmanager
    async def lifespan(self, app: FastAPI):
        await self.database.connect()
        if self.redis_client is not None:
            await self.redis_client.connect()
        await self.hub.start()
        if self.config.SEED_DEMO_DATA:
            await seed_demo_data(self, self.logger)
        yield
        await self.hub.stop()
        if self.redis_client is not None:
            await self.redis_client.disconnect()
        await self.database.disconnect()

    def setup_logger(self):
        logger = logging.getLogger("MessengerAPI")
        logger.setLevel(self.config.LOG_LEVEL.upper())

        if not logger.handlers:
            c_handler = logging.StreamHandler(sys.stdout)
            formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            )
            c_handler.setFormatter(formatter)
            logger.addHandler(c_handler)

        return logger

    def create_app(self) -> FastAPI:
        app = FastAPI(
            title=self.config.PROJECT_NAME,
            version=self.config.PROJECT_VERSION,
            description=self.config.PROJECT_DESCRIPTION,
            openapi_url=f"{self.config.API_V1_STR}/openapi.json",
            lifespan=self.lifespan,
        )

        app.state.config = self.config
        app.state.security_service = self.security_service
        app.state.event_dispatcher = self.event_dispatcher
        app.state.database = self.database
        app.state.redis_client = self.redis_client
        app.state.pair_locks = self.pair_locks
        app.state.hub = self.hub
        app.state.socket_handler = self.socket_handler
        app.state.logger = self.logger

        app.include_router(
            auth.router, prefix=f"{self.config.API_V1_STR}/auth", tags=["auth"]
        )
        app.include_router(
            users.router, prefix=f"{self.config.API_V1_STR}/users", tags=["users"]
        )
        app.include_router(
            contacts.router,
            prefix=f"{self.config.API_V1_STR}/contacts",
            tags=["contacts"],
        )
        app.include_router(
            chats.router, prefix=f"{self.config.API_V1_STR}/chats", tags=["chats"]
        )
        app.include_router(
            messages.router,
            prefix=f"{self.config.API_V1_STR}/messages",
            tags=["messages"],
        )
        app.include_router(realtime.router, prefix=self.config.API_V1_STR, tags=["realtime"])

        @app.get("/")
        async def root():
            return {"message": "Welcome to the Messenger API"}

        @app.exception_handler(ChatServiceError)
        async def chat_service_exception_handler(request: Request, exc: ChatServiceError):
            if exc.retryable:
                self.logger.warning(f"{request.method} {request.url.path}: {exc.message}")
            return JSONResponse(
                status_code=exc.status_code,
                content={"detail": exc.message},
                headers={"Retry-After": "1"} if exc.retryable else None,
            )

        @app.exception_handler(RequestValidationError)
        async def validation_exception_handler(
            request: Request, exc: RequestValidationError
        ):
            return JSONResponse(
                status_code=400,
                content={"detail": jsonable_encoder(exc.errors())},
            )

        @app.exception_handler(Exception)
        async def global_exception_handler(request: Request, exc: Exception):
            self.logger.exception(f"Unhandled error on {request.method} {request.url.path}")
            return JSONResponse(
                status_code=500,
                content={"message": f"An unexpected error occurred: {str(exc)}"},
            )

        return app


def create():
    config = AppConfig()
    application = Application(config)
    app = application.create_app()
    application.logger.info("Application created and configured")

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create(), host="127.0.0.1", port=8000)
