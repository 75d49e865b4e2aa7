# messenger/infrastructure/schemas.py
from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from messenger.domain.entities import (
    AttachmentKind,
    DeliveryStatus,
    FriendRequestState,
    Gender,
    PresenceStatus,
)


class UserBase(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr


class UserBasic(BaseModel):
    id: UUID
    username: str
    display_name: str
    profile_picture: str
    presence: PresenceStatus

    model_config = ConfigDict(from_attributes=True)


class SocialMedia(BaseModel):
    facebook: str = ""
    twitter: str = ""
    instagram: str = ""


class Preferences(BaseModel):
    theme: str = "light"
    notifications: bool = True


class UserCreate(UserBase):
    password: str = Field(..., min_length=8)
    display_name: str | None = None


class UserUpdate(BaseModel):
    email: EmailStr | None = None
    display_name: str | None = Field(None, max_length=100)
    bio: str | None = Field(None, max_length=500)
    custom_message: str | None = Field(None, max_length=200)
    profile_picture: str | None = None
    pictures: list[str] | None = None
    phone_number: str | None = Field(None, max_length=32)
    date_of_birth: date | None = None
    gender: Gender | None = None
    social_media: SocialMedia | None = None
    preferences: Preferences | None = None

    @field_validator("date_of_birth")
    @classmethod
    def date_of_birth_in_past(cls, value: date | None) -> date | None:
        if value is not None and value >= date.today():
            raise ValueError("date_of_birth must be in the past")
        return value


class User(UserBase):
    id: UUID
    display_name: str
    bio: str
    custom_message: str
    profile_picture: str
    pictures: list[str] = Field(default_factory=list)
    phone_number: str = ""
    date_of_birth: date | None = None
    gender: Gender = Gender.OTHER
    social_media: SocialMedia = Field(default_factory=SocialMedia)
    preferences: Preferences = Field(default_factory=Preferences)
    presence: PresenceStatus
    last_seen: datetime
    created_at: datetime
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class PictureAdd(BaseModel):
    picture_url: str = Field(..., min_length=1)


class PresenceUpdate(BaseModel):
    status: PresenceStatus


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8)


class Attachment(BaseModel):
    kind: AttachmentKind
    url: str = Field(..., min_length=1)
    display_name: str | None = None

    model_config = ConfigDict(from_attributes=True)


class MessageCreate(BaseModel):
    sender_id: UUID | None = None
    content: str = ""
    attachments: list[Attachment] = Field(default_factory=list)


class MessageSummary(BaseModel):
    id: UUID
    sender_id: UUID
    content: str
    status: DeliveryStatus
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class Message(BaseModel):
    id: UUID
    chat_id: UUID
    sender_id: UUID
    content: str
    attachments: list[Attachment] = Field(default_factory=list)
    status: DeliveryStatus
    created_at: datetime
    sender: UserBasic

    model_config = ConfigDict(from_attributes=True)


class MessageStatusUpdate(BaseModel):
    status: DeliveryStatus


class ChatCreate(BaseModel):
    participant_ids: list[UUID]

    @field_validator("participant_ids")
    @classmethod
    def exactly_two_participants(cls, value: list[UUID]) -> list[UUID]:
        if len(value) != 2:
            raise ValueError("participant_ids must contain exactly two user IDs")
        return value


class Chat(BaseModel):
    id: UUID
    participants: list[UserBasic]
    last_message_id: UUID | None = None
    last_message: MessageSummary | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @property
    def participant_ids(self) -> list[UUID]:
        return [participant.id for participant in self.participants]


class FriendRequestCreate(BaseModel):
    recipient_id: UUID


class FriendRequest(BaseModel):
    id: UUID
    sender_id: UUID
    recipient_id: UUID
    state: FriendRequestState
    created_at: datetime
    responded_at: datetime | None = None
    sender: UserBasic
    recipient: UserBasic

    model_config = ConfigDict(from_attributes=True)


class FriendRequestAccepted(BaseModel):
    request: FriendRequest
    chat: Chat


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str
    expires_at: datetime
    user_id: UUID


class RefreshTokenRequest(BaseModel):
    refresh_token: str
