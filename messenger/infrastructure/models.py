# messenger/infrastructure/models.py
import uuid
from datetime import UTC, date, datetime
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    Table,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator

from messenger.domain.entities import (
    DeliveryStatus,
    FriendRequestState,
    Gender,
    PresenceStatus,
)
from messenger.infrastructure.database import Base


def utcnow() -> datetime:
    return datetime.now(UTC)


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC datetimes, also on backends that drop the offset."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


user_contacts = Table(
    "user_contacts",
    Base.metadata,
    Column("user_id", Uuid, ForeignKey("users.id"), primary_key=True),
    Column("contact_id", Uuid, ForeignKey("users.id"), primary_key=True),
)

user_blocks = Table(
    "user_blocks",
    Base.metadata,
    Column("user_id", Uuid, ForeignKey("users.id"), primary_key=True),
    Column("blocked_id", Uuid, ForeignKey("users.id"), primary_key=True),
)


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    username: Mapped[str] = mapped_column(String, unique=True, index=True)
    email: Mapped[str] = mapped_column(String, unique=True, index=True)
    hashed_password: Mapped[str] = mapped_column(String)
    display_name: Mapped[str] = mapped_column(String, default="")
    bio: Mapped[str] = mapped_column(String, default="")
    custom_message: Mapped[str] = mapped_column(
        String, default="Hey there! I am using this app."
    )
    profile_picture: Mapped[str] = mapped_column(String, default="")
    pictures: Mapped[list[str]] = mapped_column(JSON, default=list)
    phone_number: Mapped[str] = mapped_column(String, default="")
    date_of_birth: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    gender: Mapped[str] = mapped_column(String, default=Gender.OTHER.value)
    social_media: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    preferences: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    presence: Mapped[str] = mapped_column(
        String, default=PresenceStatus.OFFLINE.value
    )
    last_seen: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, onupdate=utcnow
    )


class Chat(Base):
    __tablename__ = "chats"

    # participants are stored ordered, so the pair constraint is order-independent
    __table_args__ = (
        UniqueConstraint(
            "participant_a_id", "participant_b_id", name="uq_chats_participant_pair"
        ),
        CheckConstraint(
            "participant_a_id <> participant_b_id", name="ck_chats_distinct_participants"
        ),
        Index("ix_chats_updated", "updated_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    participant_a_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), index=True
    )
    participant_b_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), index=True
    )
    # weak reference, deliberately without a foreign key
    last_message_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)

    participant_a: Mapped[User] = relationship(
        "User", foreign_keys=[participant_a_id], lazy="joined"
    )
    participant_b: Mapped[User] = relationship(
        "User", foreign_keys=[participant_b_id], lazy="joined"
    )
    last_message: Mapped[Optional["Message"]] = relationship(
        "Message",
        primaryjoin="foreign(Chat.last_message_id) == Message.id",
        viewonly=True,
        lazy="selectin",
    )

    @property
    def participants(self) -> list[User]:
        return [self.participant_a, self.participant_b]

    @property
    def participant_ids(self) -> list[uuid.UUID]:
        return [self.participant_a_id, self.participant_b_id]


class Message(Base):
    __tablename__ = "messages"

    __table_args__ = (
        Index("ix_messages_chat_created", "chat_id", "created_at"),
        Index("ix_messages_sender_created", "sender_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    chat_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("chats.id"), index=True
    )
    sender_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), index=True
    )
    content: Mapped[str] = mapped_column(Text)
    attachments: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    status: Mapped[str] = mapped_column(
        String, default=DeliveryStatus.SENT.value, index=True
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)

    sender: Mapped[User] = relationship(
        "User",
        lazy="joined",  # Many-to-one, always rendered with the message
    )


class FriendRequest(Base):
    __tablename__ = "friend_requests"

    __table_args__ = (
        Index("ix_friend_requests_recipient_state", "recipient_id", "state"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    sender_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"))
    recipient_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"))
    state: Mapped[str] = mapped_column(String, default=FriendRequestState.PENDING.value)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    responded_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime, nullable=True
    )

    sender: Mapped[User] = relationship(
        "User", foreign_keys=[sender_id], lazy="joined"
    )
    recipient: Mapped[User] = relationship(
        "User", foreign_keys=[recipient_id], lazy="joined"
    )
