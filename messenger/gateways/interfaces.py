# messenger/gateways/interfaces.py
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, List, Optional
from uuid import UUID

from messenger.infrastructure import schemas
from messenger.infrastructure.uow import UoWModel


class IChatGateway(ABC):
    @abstractmethod
    async def get_chat(self, chat_id: UUID) -> Optional[UoWModel]:
        pass

    @abstractmethod
    async def find_by_pair(self, user_a: UUID, user_b: UUID) -> Optional[UoWModel]:
        pass

    @abstractmethod
    async def list_for_user(self, user_id: UUID) -> List[UoWModel]:
        pass

    @abstractmethod
    async def create_chat(self, user_a: UUID, user_b: UUID) -> UoWModel:
        pass

    @abstractmethod
    async def lock_chat(self, chat_id: UUID) -> Optional[UoWModel]:
        pass

    @abstractmethod
    async def record_last_message(
        self, chat_id: UUID, message_id: UUID, at: datetime
    ) -> Optional[UoWModel]:
        pass


class IMessageGateway(ABC):
    @abstractmethod
    async def get_message(self, message_id: UUID) -> Optional[UoWModel]:
        pass

    @abstractmethod
    async def list_for_chat(self, chat_id: UUID, skip: int = 0) -> List[UoWModel]:
        pass

    @abstractmethod
    async def find_recent_duplicate(
        self,
        chat_id: UUID,
        sender_id: UUID,
        content: str,
        attachments: List[dict[str, Any]],
        since: datetime,
    ) -> Optional[UoWModel]:
        pass

    @abstractmethod
    async def create_message(
        self,
        chat_id: UUID,
        sender_id: UUID,
        content: str,
        attachments: List[dict[str, Any]],
        created_at: datetime,
    ) -> UoWModel:
        pass

    @abstractmethod
    async def set_status(self, message_id: UUID, previous: str, status: str) -> bool:
        pass


class IUserGateway(ABC):
    @abstractmethod
    async def get_user(self, user_id: UUID) -> Optional[UoWModel]:
        pass

    @abstractmethod
    async def get_users(self, user_ids: List[UUID]) -> List[UoWModel]:
        pass

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[UoWModel]:
        pass

    @abstractmethod
    async def get_by_username(self, username: str) -> Optional[UoWModel]:
        pass

    @abstractmethod
    async def search_users(self, query: str, current_user_id: UUID) -> List[UoWModel]:
        pass

    @abstractmethod
    async def create_user(
        self, user: schemas.UserCreate, hashed_password: str
    ) -> UoWModel:
        pass

    @abstractmethod
    async def update_profile(
        self, user: UoWModel, user_update: schemas.UserUpdate
    ) -> UoWModel:
        pass

    @abstractmethod
    async def add_picture(self, user: UoWModel, picture_url: str) -> UoWModel:
        pass

    @abstractmethod
    async def update_password(self, user: UoWModel, hashed_password: str) -> None:
        pass

    @abstractmethod
    async def set_presence(
        self, user: UoWModel, presence: str, last_seen: Optional[datetime] = None
    ) -> UoWModel:
        pass


class IContactGateway(ABC):
    @abstractmethod
    async def list_contacts(self, user_id: UUID) -> List[UoWModel]:
        pass

    @abstractmethod
    async def list_blocked(self, user_id: UUID) -> List[UoWModel]:
        pass

    @abstractmethod
    async def are_contacts(self, user_a: UUID, user_b: UUID) -> bool:
        pass

    @abstractmethod
    async def is_blocked_between(self, user_a: UUID, user_b: UUID) -> bool:
        pass

    @abstractmethod
    async def add_contacts(self, user_a: UUID, user_b: UUID) -> None:
        pass

    @abstractmethod
    async def remove_contacts(self, user_a: UUID, user_b: UUID) -> bool:
        pass

    @abstractmethod
    async def block(self, user_id: UUID, blocked_id: UUID) -> None:
        pass

    @abstractmethod
    async def unblock(self, user_id: UUID, blocked_id: UUID) -> bool:
        pass

    @abstractmethod
    async def get_request(self, request_id: UUID) -> Optional[UoWModel]:
        pass

    @abstractmethod
    async def find_pending_request(
        self, sender_id: UUID, recipient_id: UUID
    ) -> Optional[UoWModel]:
        pass

    @abstractmethod
    async def list_incoming_requests(self, user_id: UUID) -> List[UoWModel]:
        pass

    @abstractmethod
    async def create_request(self, sender_id: UUID, recipient_id: UUID) -> UoWModel:
        pass

    @abstractmethod
    async def resolve_request(self, request: UoWModel, state: str) -> UoWModel:
        pass
