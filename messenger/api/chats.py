# messenger/api/chats.py
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from messenger.api.dependencies import (
    get_chat_interactor,
    get_current_active_user,
    get_event_dispatcher,
    get_message_interactor,
)
from messenger.domain.events import ChatCreated, MessageCreated
from messenger.infrastructure import schemas
from messenger.infrastructure.event_dispatcher import EventDispatcher
from messenger.interactors.chat_interactor import ChatInteractor
from messenger.interactors.message_interactor import MessageInteractor

router = APIRouter()


@router.post(
    "/create",
    response_model=schemas.Chat,
    status_code=status.HTTP_201_CREATED,
    responses={200: {"description": "The pair already had a chat"}},
)
async def create_chat(
    chat: schemas.ChatCreate,
    response: Response,
    chat_interactor: ChatInteractor = Depends(get_chat_interactor),
    current_user: schemas.User = Depends(get_current_active_user),
    event_dispatcher: EventDispatcher = Depends(get_event_dispatcher),
):
    if current_user.id not in chat.participant_ids:
        raise HTTPException(
            status_code=403, detail="You can only create chats you take part in"
        )
    user_a, user_b = chat.participant_ids
    new_chat, created = await chat_interactor.create_or_get(user_a, user_b)
    if created:
        await event_dispatcher.dispatch(ChatCreated(chat=new_chat))
    else:
        response.status_code = status.HTTP_200_OK
    return new_chat


@router.get("/user/{user_id}", response_model=list[schemas.Chat])
async def read_user_chats(
    user_id: UUID,
    chat_interactor: ChatInteractor = Depends(get_chat_interactor),
    current_user: schemas.User = Depends(get_current_active_user),
):
    if user_id != current_user.id:
        raise HTTPException(status_code=403, detail="Cannot list another user's chats")
    return await chat_interactor.list_for_user(user_id)


@router.get("/messages/{user_a}/{user_b}", response_model=list[schemas.Message])
async def read_messages_between(
    user_a: UUID,
    user_b: UUID,
    message_interactor: MessageInteractor = Depends(get_message_interactor),
    current_user: schemas.User = Depends(get_current_active_user),
):
    if current_user.id not in (user_a, user_b):
        raise HTTPException(
            status_code=403, detail="Not a participant of this conversation"
        )
    return await message_interactor.find_between(user_a, user_b)


@router.get("/{chat_id}", response_model=schemas.Chat)
async def read_chat(
    chat_id: UUID,
    chat_interactor: ChatInteractor = Depends(get_chat_interactor),
    current_user: schemas.User = Depends(get_current_active_user),
):
    chat = await chat_interactor.get_chat(chat_id)
    if current_user.id not in chat.participant_ids:
        raise HTTPException(status_code=403, detail="Not a participant of this chat")
    return chat


@router.post(
    "/{chat_id}/send",
    response_model=schemas.Message,
    status_code=status.HTTP_201_CREATED,
    responses={200: {"description": "Identical message was just sent"}},
)
async def send_message(
    chat_id: UUID,
    message: schemas.MessageCreate,
    response: Response,
    message_interactor: MessageInteractor = Depends(get_message_interactor),
    current_user: schemas.User = Depends(get_current_active_user),
    event_dispatcher: EventDispatcher = Depends(get_event_dispatcher),
):
    db_message, created = await message_interactor.send(
        chat_id,
        message.sender_id or current_user.id,
        message.content,
        message.attachments,
        actor_id=current_user.id,
    )
    if created:
        await event_dispatcher.dispatch(MessageCreated(message=db_message))
    else:
        response.status_code = status.HTTP_200_OK
    return db_message


@router.get("/{chat_id}/messages", response_model=list[schemas.Message])
async def read_messages(
    chat_id: UUID,
    since: int = Query(0, ge=0, description="Number of leading messages to skip"),
    message_interactor: MessageInteractor = Depends(get_message_interactor),
    current_user: schemas.User = Depends(get_current_active_user),
):
    return await message_interactor.list_messages(
        chat_id, since=since, viewer_id=current_user.id
    )
