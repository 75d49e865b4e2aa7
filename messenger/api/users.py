# messenger/api/users.py
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException

from messenger.api.dependencies import (
    get_current_active_user,
    get_event_dispatcher,
    get_user_interactor,
)
from messenger.domain.events import UserStatusChanged
from messenger.infrastructure import schemas
from messenger.infrastructure.event_dispatcher import EventDispatcher
from messenger.interactors.user_interactor import UserInteractor

router = APIRouter()


@router.get("/me", response_model=schemas.User)
async def read_users_me(current_user: schemas.User = Depends(get_current_active_user)):
    return current_user


@router.put("/me", response_model=schemas.User)
async def update_user(
    user_update: schemas.UserUpdate,
    user_interactor: UserInteractor = Depends(get_user_interactor),
    current_user: schemas.User = Depends(get_current_active_user),
):
    return await user_interactor.update_user(current_user.id, user_update)


@router.post("/me/pictures", response_model=schemas.User)
async def add_picture(
    picture: schemas.PictureAdd,
    user_interactor: UserInteractor = Depends(get_user_interactor),
    current_user: schemas.User = Depends(get_current_active_user),
):
    return await user_interactor.add_picture(current_user.id, picture.picture_url)


@router.put("/me/status", response_model=schemas.User)
async def update_presence(
    presence: schemas.PresenceUpdate,
    user_interactor: UserInteractor = Depends(get_user_interactor),
    current_user: schemas.User = Depends(get_current_active_user),
    event_dispatcher: EventDispatcher = Depends(get_event_dispatcher),
):
    user = await user_interactor.set_presence(current_user.id, presence.status)
    await event_dispatcher.dispatch(
        UserStatusChanged(
            user_id=user.id, status=user.presence, last_seen=user.last_seen
        )
    )
    return user


@router.get("/search", response_model=list[schemas.UserBasic])
async def search_users(
    query: str,
    user_interactor: UserInteractor = Depends(get_user_interactor),
    current_user: schemas.User = Depends(get_current_active_user),
):
    return await user_interactor.search_users(query, current_user.id)


@router.get("/{user_id}", response_model=schemas.User)
async def read_user(
    user_id: UUID,
    user_interactor: UserInteractor = Depends(get_user_interactor),
    current_user: schemas.User = Depends(get_current_active_user),
):
    user = await user_interactor.get_user(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user
