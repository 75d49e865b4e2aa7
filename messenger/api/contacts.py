# messenger/api/contacts.py
from uuid import UUID

from fastapi import APIRouter, Depends

from messenger.api.dependencies import (
    get_contact_interactor,
    get_current_active_user,
    get_event_dispatcher,
)
from messenger.domain.events import ChatCreated
from messenger.infrastructure import schemas
from messenger.infrastructure.event_dispatcher import EventDispatcher
from messenger.interactors.contact_interactor import ContactInteractor

router = APIRouter()


@router.get("/", response_model=list[schemas.UserBasic])
async def read_contacts(
    contact_interactor: ContactInteractor = Depends(get_contact_interactor),
    current_user: schemas.User = Depends(get_current_active_user),
):
    return await contact_interactor.list_contacts(current_user.id)


@router.get("/blocked", response_model=list[schemas.UserBasic])
async def read_blocked(
    contact_interactor: ContactInteractor = Depends(get_contact_interactor),
    current_user: schemas.User = Depends(get_current_active_user),
):
    return await contact_interactor.list_blocked(current_user.id)


@router.post("/blocked/{user_id}", status_code=204)
async def block_user(
    user_id: UUID,
    contact_interactor: ContactInteractor = Depends(get_contact_interactor),
    current_user: schemas.User = Depends(get_current_active_user),
):
    await contact_interactor.block_user(current_user.id, user_id)


@router.delete("/blocked/{user_id}", status_code=204)
async def unblock_user(
    user_id: UUID,
    contact_interactor: ContactInteractor = Depends(get_contact_interactor),
    current_user: schemas.User = Depends(get_current_active_user),
):
    await contact_interactor.unblock_user(current_user.id, user_id)


@router.get("/requests", response_model=list[schemas.FriendRequest])
async def read_incoming_requests(
    contact_interactor: ContactInteractor = Depends(get_contact_interactor),
    current_user: schemas.User = Depends(get_current_active_user),
):
    return await contact_interactor.list_incoming_requests(current_user.id)


@router.post("/requests", response_model=schemas.FriendRequest, status_code=201)
async def send_friend_request(
    friend_request: schemas.FriendRequestCreate,
    contact_interactor: ContactInteractor = Depends(get_contact_interactor),
    current_user: schemas.User = Depends(get_current_active_user),
):
    return await contact_interactor.send_request(
        current_user.id, friend_request.recipient_id
    )


@router.post("/requests/{request_id}/accept", response_model=schemas.FriendRequestAccepted)
async def accept_friend_request(
    request_id: UUID,
    contact_interactor: ContactInteractor = Depends(get_contact_interactor),
    current_user: schemas.User = Depends(get_current_active_user),
    event_dispatcher: EventDispatcher = Depends(get_event_dispatcher),
):
    request, chat, created = await contact_interactor.accept_request(
        request_id, current_user.id
    )
    if created:
        await event_dispatcher.dispatch(ChatCreated(chat=chat))
    return schemas.FriendRequestAccepted(request=request, chat=chat)


@router.post("/requests/{request_id}/decline", response_model=schemas.FriendRequest)
async def decline_friend_request(
    request_id: UUID,
    contact_interactor: ContactInteractor = Depends(get_contact_interactor),
    current_user: schemas.User = Depends(get_current_active_user),
):
    return await contact_interactor.decline_request(request_id, current_user.id)


@router.delete("/{user_id}", status_code=204)
async def remove_contact(
    user_id: UUID,
    contact_interactor: ContactInteractor = Depends(get_contact_interactor),
    current_user: schemas.User = Depends(get_current_active_user),
):
    await contact_interactor.remove_contact(current_user.id, user_id)
