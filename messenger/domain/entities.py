# messenger/domain/entities.py
from enum import Enum
from uuid import UUID

from messenger.domain.exceptions import Conflict, InvalidArgument


class DeliveryStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"


class PresenceStatus(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"
    BUSY = "busy"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class AttachmentKind(str, Enum):
    IMAGE = "image"
    FILE = "file"


class FriendRequestState(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


_DELIVERY_ORDER = {
    DeliveryStatus.PENDING: 0,
    DeliveryStatus.SENT: 1,
    DeliveryStatus.DELIVERED: 2,
    DeliveryStatus.READ: 3,
}


def parse_delivery_status(value: str | DeliveryStatus) -> DeliveryStatus:
    try:
        return DeliveryStatus(value)
    except ValueError:
        allowed = ", ".join(status.value for status in DeliveryStatus)
        raise InvalidArgument(f"Invalid status '{value}', expected one of: {allowed}")


def check_transition(current: DeliveryStatus, new: DeliveryStatus) -> bool:
    """Validate a delivery status change.

    Returns ``True`` when the status actually changes and ``False`` when
    ``new`` equals ``current`` (an accepted no-op). Raises ``Conflict`` for a
    regression or for any move out of ``failed``.
    """
    if new == current:
        return False
    if current == DeliveryStatus.FAILED:
        raise Conflict(f"Message already failed, cannot move to '{new.value}'")
    if new == DeliveryStatus.FAILED:
        return True
    if _DELIVERY_ORDER[new] < _DELIVERY_ORDER[current]:
        raise Conflict(
            f"Status cannot move backwards from '{current.value}' to '{new.value}'"
        )
    return True


def parse_identifier(value: str | UUID, label: str = "ID") -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        raise InvalidArgument(f"Invalid {label}")


def pair_key(user_a: UUID, user_b: UUID) -> tuple[UUID, UUID]:
    """Order-independent key for a pair of participants."""
    return (user_a, user_b) if str(user_a) < str(user_b) else (user_b, user_a)
