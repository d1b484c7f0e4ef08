from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from skyline.core.logging import get_logger
from skyline.realtime.events import AUTH_ERROR, AUTH_SUCCESS, AuthMessage
from skyline.realtime.notifier import EventNotifier

log = get_logger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def ws_channel(websocket: WebSocket):
    """
    Real-time channel. The connection receives nothing until it sends
    {"type": "auth", "token": ...} with a token from /v1/auth/ws-token.
    """
    notifier: EventNotifier = websocket.app.state.notifier
    await websocket.accept()
    user_id: str | None = None
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            if raw is None:
                log.debug("ws_binary_frame_ignored", user_id=user_id)
                continue
            try:
                msg = AuthMessage.model_validate_json(raw)
            except ValidationError:
                log.debug("ws_message_ignored", user_id=user_id)
                continue
            authed = notifier.authenticate(msg.token, websocket)
            if authed is None:
                await websocket.send_json(AUTH_ERROR.to_wire())
                continue
            if user_id is not None and user_id != authed:
                notifier.unregister(user_id, websocket)
            user_id = authed
            await websocket.send_json(AUTH_SUCCESS.to_wire())
    except WebSocketDisconnect:
        pass
    finally:
        if user_id is not None:
            notifier.unregister(user_id, websocket)
