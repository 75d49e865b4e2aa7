# messenger/gateways/contact_gateway.py
from uuid import UUID

from sqlalchemy import and_, delete, insert, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from messenger.domain.entities import FriendRequestState
from messenger.domain.exceptions import Conflict
from messenger.gateways.interfaces import IContactGateway
from messenger.infrastructure import models
from messenger.infrastructure.data_mappers import FriendRequestMapper
from messenger.infrastructure.models import user_blocks, user_contacts, utcnow
from messenger.infrastructure.uow import UnitOfWork, UoWModel


class ContactGateway(IContactGateway):
    """Contact lists, blocks and friend requests.

    Contacts are stored in both directions, so ``user_contacts`` always holds
    two rows per friendship. Blocks are directional.
    """

    def __init__(self, session: AsyncSession, uow: UnitOfWork):
        self.session = session
        self.uow = uow
        uow.mappers[models.FriendRequest] = FriendRequestMapper(session)

    async def list_contacts(self, user_id: UUID) -> list[UoWModel]:
        stmt = (
            select(models.User)
            .join(user_contacts, user_contacts.c.contact_id == models.User.id)
            .filter(user_contacts.c.user_id == user_id)
            .order_by(models.User.username)
        )
        result = await self.session.execute(stmt)
        return [UoWModel(user, self.uow) for user in result.scalars().all()]

    async def list_blocked(self, user_id: UUID) -> list[UoWModel]:
        stmt = (
            select(models.User)
            .join(user_blocks, user_blocks.c.blocked_id == models.User.id)
            .filter(user_blocks.c.user_id == user_id)
            .order_by(models.User.username)
        )
        result = await self.session.execute(stmt)
        return [UoWModel(user, self.uow) for user in result.scalars().all()]

    async def are_contacts(self, user_a: UUID, user_b: UUID) -> bool:
        stmt = select(user_contacts.c.user_id).filter(
            user_contacts.c.user_id == user_a, user_contacts.c.contact_id == user_b
        )
        result = await self.session.execute(stmt)
        return result.first() is not None

    async def is_blocked_between(self, user_a: UUID, user_b: UUID) -> bool:
        stmt = select(user_blocks.c.user_id).filter(
            or_(
                and_(
                    user_blocks.c.user_id == user_a, user_blocks.c.blocked_id == user_b
                ),
                and_(
                    user_blocks.c.user_id == user_b, user_blocks.c.blocked_id == user_a
                ),
            )
        )
        result = await self.session.execute(stmt)
        return result.first() is not None

    async def add_contacts(self, user_a: UUID, user_b: UUID) -> None:
        if await self.are_contacts(user_a, user_b):
            return
        await self.session.execute(
            insert(user_contacts),
            [
                {"user_id": user_a, "contact_id": user_b},
                {"user_id": user_b, "contact_id": user_a},
            ],
        )
        await self.uow.flush()

    async def remove_contacts(self, user_a: UUID, user_b: UUID) -> bool:
        result = await self.session.execute(
            delete(user_contacts).where(
                or_(
                    and_(
                        user_contacts.c.user_id == user_a,
                        user_contacts.c.contact_id == user_b,
                    ),
                    and_(
                        user_contacts.c.user_id == user_b,
                        user_contacts.c.contact_id == user_a,
                    ),
                )
            )
        )
        await self.uow.flush()
        return result.rowcount > 0

    async def block(self, user_id: UUID, blocked_id: UUID) -> None:
        exists = await self.session.execute(
            select(user_blocks.c.user_id).filter(
                user_blocks.c.user_id == user_id, user_blocks.c.blocked_id == blocked_id
            )
        )
        if exists.first() is None:
            await self.session.execute(
                insert(user_blocks).values(user_id=user_id, blocked_id=blocked_id)
            )
        await self.remove_contacts(user_id, blocked_id)

    async def unblock(self, user_id: UUID, blocked_id: UUID) -> bool:
        result = await self.session.execute(
            delete(user_blocks).where(
                user_blocks.c.user_id == user_id, user_blocks.c.blocked_id == blocked_id
            )
        )
        await self.uow.flush()
        return result.rowcount > 0

    async def get_request(self, request_id: UUID) -> UoWModel | None:
        stmt = (
            select(models.FriendRequest)
            .filter(models.FriendRequest.id == request_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        request = result.unique().scalar_one_or_none()
        return UoWModel(request, self.uow) if request else None

    async def find_pending_request(
        self, sender_id: UUID, recipient_id: UUID
    ) -> UoWModel | None:
        stmt = select(models.FriendRequest).filter(
            models.FriendRequest.sender_id == sender_id,
            models.FriendRequest.recipient_id == recipient_id,
            models.FriendRequest.state == FriendRequestState.PENDING.value,
        )
        result = await self.session.execute(stmt)
        request = result.unique().scalars().first()
        return UoWModel(request, self.uow) if request else None

    async def list_incoming_requests(self, user_id: UUID) -> list[UoWModel]:
        stmt = (
            select(models.FriendRequest)
            .filter(
                models.FriendRequest.recipient_id == user_id,
                models.FriendRequest.state == FriendRequestState.PENDING.value,
            )
            .order_by(models.FriendRequest.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return [UoWModel(request, self.uow) for request in result.unique().scalars().all()]

    async def create_request(self, sender_id: UUID, recipient_id: UUID) -> UoWModel:
        db_request = models.FriendRequest(
            sender_id=sender_id,
            recipient_id=recipient_id,
            created_at=utcnow(),
        )
        self.uow.register_new(db_request)
        try:
            await self.uow.flush()
        except IntegrityError as e:
            await self.uow.rollback()
            raise Conflict("Friend request could not be stored") from e

        # Reload with both users eagerly loaded
        return await self.get_request(db_request.id)

    async def resolve_request(self, request: UoWModel, state: str) -> UoWModel:
        request.state = state
        request.responded_at = utcnow()
        await self.uow.flush()
        return request
