# messenger/api/realtime.py
import json

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from messenger.api.dependencies import interactor_scope
from messenger.realtime import protocol
from messenger.realtime.hub import Connection

router = APIRouter()

# application-defined close code, mirrors HTTP 401
CLOSE_UNAUTHORIZED = 4401


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: str | None = None):
    state = websocket.app.state
    user_id = state.security_service.decode_access_token(token) if token else None
    if user_id is not None:
        async with interactor_scope(state) as interactors:
            user = await interactors.users.get_user(user_id)
        if user is None or not user.is_active:
            user_id = None

    await websocket.accept()
    if user_id is None:
        await websocket.close(code=CLOSE_UNAUTHORIZED, reason="Could not validate credentials")
        return

    connection = Connection(websocket, user_id, state.logger)
    await state.hub.register(connection)
    state.logger.info(f"Websocket connection {connection.id} opened for user {user_id}")
    try:
        while True:
            text = await websocket.receive_text()
            try:
                raw = json.loads(text)
            except ValueError:
                connection.send(protocol.error("Frames must be JSON"))
                continue
            await state.socket_handler.handle(connection, raw)
    except WebSocketDisconnect as e:
        state.logger.info(f"Websocket connection {connection.id} closed ({e.code})")
    finally:
        await state.socket_handler.disconnected(connection)
