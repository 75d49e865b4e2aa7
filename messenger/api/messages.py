# messenger/api/messages.py
from uuid import UUID

from fastapi import APIRouter, Depends

from messenger.api.dependencies import (
    get_current_active_user,
    get_event_dispatcher,
    get_message_interactor,
)
from messenger.domain.events import MessageStatusUpdated
from messenger.infrastructure import schemas
from messenger.infrastructure.event_dispatcher import EventDispatcher
from messenger.interactors.message_interactor import MessageInteractor

router = APIRouter()


@router.patch("/{message_id}/status", response_model=schemas.Message)
async def update_message_status(
    message_id: UUID,
    status_update: schemas.MessageStatusUpdate,
    message_interactor: MessageInteractor = Depends(get_message_interactor),
    current_user: schemas.User = Depends(get_current_active_user),
    event_dispatcher: EventDispatcher = Depends(get_event_dispatcher),
):
    message, previous = await message_interactor.update_status(
        message_id, status_update.status, actor_id=current_user.id
    )
    if previous is not None:
        await event_dispatcher.dispatch(
            MessageStatusUpdated(message=message, previous_status=previous)
        )
    return message
