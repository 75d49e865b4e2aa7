# messenger/api/dependencies.py
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, NamedTuple

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from messenger.config import AppConfig
from messenger.gateways.chat_gateway import ChatGateway
from messenger.gateways.contact_gateway import ContactGateway
from messenger.gateways.message_gateway import MessageGateway
from messenger.gateways.user_gateway import UserGateway
from messenger.infrastructure import schemas
from messenger.infrastructure.event_dispatcher import EventDispatcher
from messenger.infrastructure.locks import KeyedLocks
from messenger.infrastructure.security import SecurityService
from messenger.infrastructure.uow import UnitOfWork
from messenger.interactors.chat_interactor import ChatInteractor
from messenger.interactors.contact_interactor import ContactInteractor
from messenger.interactors.message_interactor import MessageInteractor
from messenger.interactors.user_interactor import UserInteractor
from messenger.realtime.hub import RealtimeHub

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


def get_config(request: Request) -> AppConfig:
    return request.app.state.config


def get_security_service(request: Request) -> SecurityService:
    return request.app.state.security_service


def get_event_dispatcher(request: Request) -> EventDispatcher:
    return request.app.state.event_dispatcher


def get_hub(request: Request) -> RealtimeHub:
    return request.app.state.hub


def get_pair_locks(request: Request) -> KeyedLocks:
    return request.app.state.pair_locks


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    async with request.app.state.database.session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_uow(session: AsyncSession = Depends(get_session)) -> UnitOfWork:
    return UnitOfWork(session)


async def get_user_gateway(
    session: AsyncSession = Depends(get_session), uow: UnitOfWork = Depends(get_uow)
):
    return UserGateway(session, uow)


async def get_chat_gateway(
    session: AsyncSession = Depends(get_session), uow: UnitOfWork = Depends(get_uow)
):
    return ChatGateway(session, uow)


async def get_message_gateway(
    session: AsyncSession = Depends(get_session), uow: UnitOfWork = Depends(get_uow)
):
    return MessageGateway(session, uow)


async def get_contact_gateway(
    session: AsyncSession = Depends(get_session), uow: UnitOfWork = Depends(get_uow)
):
    return ContactGateway(session, uow)


async def get_user_interactor(
    uow: UnitOfWork = Depends(get_uow),
    security_service: SecurityService = Depends(get_security_service),
    user_gateway: UserGateway = Depends(get_user_gateway),
    config: AppConfig = Depends(get_config),
):
    return UserInteractor(uow, security_service, user_gateway, config)


async def get_chat_interactor(
    uow: UnitOfWork = Depends(get_uow),
    chat_gateway: ChatGateway = Depends(get_chat_gateway),
    user_gateway: UserGateway = Depends(get_user_gateway),
    contact_gateway: ContactGateway = Depends(get_contact_gateway),
    pair_locks: KeyedLocks = Depends(get_pair_locks),
    config: AppConfig = Depends(get_config),
):
    return ChatInteractor(
        uow, chat_gateway, user_gateway, contact_gateway, pair_locks, config
    )


async def get_message_interactor(
    uow: UnitOfWork = Depends(get_uow),
    message_gateway: MessageGateway = Depends(get_message_gateway),
    user_gateway: UserGateway = Depends(get_user_gateway),
    chat_interactor: ChatInteractor = Depends(get_chat_interactor),
    config: AppConfig = Depends(get_config),
):
    return MessageInteractor(uow, message_gateway, user_gateway, chat_interactor, config)


async def get_contact_interactor(
    uow: UnitOfWork = Depends(get_uow),
    contact_gateway: ContactGateway = Depends(get_contact_gateway),
    user_gateway: UserGateway = Depends(get_user_gateway),
    chat_interactor: ChatInteractor = Depends(get_chat_interactor),
    config: AppConfig = Depends(get_config),
):
    return ContactInteractor(uow, contact_gateway, user_gateway, chat_interactor, config)


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    security_service: SecurityService = Depends(get_security_service),
    user_interactor: UserInteractor = Depends(get_user_interactor),
) -> schemas.User:
    user_id = security_service.decode_access_token(token)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await user_interactor.get_user(user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_current_active_user(
    current_user: schemas.User = Depends(get_current_user),
) -> schemas.User:
    if not current_user.is_active:
        raise HTTPException(status_code=400, detail="Inactive user")
    return current_user


class Interactors(NamedTuple):
    users: UserInteractor
    chats: ChatInteractor
    messages: MessageInteractor
    contacts: ContactInteractor


def build_interactors(session: AsyncSession, state: Any) -> Interactors:
    """Wire the interactors for one session outside of a request."""
    uow = UnitOfWork(session)
    user_gateway = UserGateway(session, uow)
    contact_gateway = ContactGateway(session, uow)
    chats = ChatInteractor(
        uow,
        ChatGateway(session, uow),
        user_gateway,
        contact_gateway,
        state.pair_locks,
        state.config,
    )
    return Interactors(
        users=UserInteractor(uow, state.security_service, user_gateway, state.config),
        chats=chats,
        messages=MessageInteractor(
            uow, MessageGateway(session, uow), user_gateway, chats, state.config
        ),
        contacts=ContactInteractor(
            uow, contact_gateway, user_gateway, chats, state.config
        ),
    )


@asynccontextmanager
async def interactor_scope(state: Any) -> AsyncIterator[Interactors]:
    async with state.database.session() as session:
        try:
            yield build_interactors(session, state)
        except Exception:
            await session.rollback()
            raise
