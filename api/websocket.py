"""
WebSocket Endpoint

職責：
1. 接受連線並配發 connection_id
2. 把收到的 {"event", "data"} 交給 RoomSessionController
3. 連線關閉時觸發 disconnect
"""
import uuid
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from schemas import InboundMessage

router = APIRouter(tags=["websocket"])
logger = logging.getLogger(__name__)


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    房間事件通道

    訊息格式：
        {"event": "join_room", "data": {"playerName": "Bob", "roomId": "3f9a1c2e"}}

    回應格式相同（event 為 outbound 事件名稱）
    """
    hub = websocket.app.state.hub
    controller = websocket.app.state.controller

    await websocket.accept()
    connection_id = str(uuid.uuid4())
    hub.register(connection_id, websocket)
    logger.info(f"Client connected: {connection_id}")

    try:
        while True:
            raw = await websocket.receive_text()

            try:
                message = InboundMessage.model_validate_json(raw)
            except ValidationError:
                await hub.emit_to_connection(connection_id, "error", {"message": "Invalid message"})
                continue

            await controller.dispatch(connection_id, message.event, message.data)

    except WebSocketDisconnect:
        logger.info(f"Client disconnected: {connection_id}")
    except Exception as e:
        logger.error(f"WebSocket error for connection {connection_id}: {e}", exc_info=True)
    finally:
        hub.unregister(connection_id)
        await controller.handle_disconnect(connection_id)
