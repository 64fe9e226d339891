"""
WebSocket 連線中心：Transport 介面的 FastAPI 實作

職責：
1. 記錄 connection_id -> WebSocket
2. 記錄 room_id -> 連線群組（廣播用）
3. 以 {"event": ..., "data": ...} 的 JSON 格式送出事件
"""
from typing import Dict, List, Optional
import logging

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionHub:
    """程序內的連線與房間群組（只追蹤本程序的連線）"""

    def __init__(self):
        self._connections: Dict[str, WebSocket] = {}
        # Format: {room_id: {connection_id: None}}（dict 當有序 set 用）
        self._groups: Dict[str, Dict[str, None]] = {}

    def register(self, conn_id: str, websocket: WebSocket) -> None:
        self._connections[conn_id] = websocket
        logger.debug(f"Registered connection {conn_id} ({len(self._connections)} open)")

    def unregister(self, conn_id: str) -> None:
        self._connections.pop(conn_id, None)
        for room_id in list(self._groups):
            self.leave_room_group(conn_id, room_id)
        logger.debug(f"Unregistered connection {conn_id} ({len(self._connections)} open)")

    def join_room_group(self, conn_id: str, room_id: str) -> None:
        self._groups.setdefault(room_id, {})[conn_id] = None

    def leave_room_group(self, conn_id: str, room_id: str) -> None:
        members = self._groups.get(room_id)
        if members is None:
            return
        members.pop(conn_id, None)
        if not members:
            del self._groups[room_id]

    def members(self, room_id: str) -> List[str]:
        return list(self._groups.get(room_id, {}))

    def is_connected(self, conn_id: str) -> bool:
        return conn_id in self._connections

    async def emit_to_connection(self, conn_id: str, event: str, payload: Optional[dict] = None) -> None:
        """
        送出事件給單一連線

        連線已關閉（例如寬限期內的斷線玩家）時直接略過
        """
        websocket = self._connections.get(conn_id)
        if websocket is None:
            logger.debug(f"Skipping {event} for closed connection {conn_id}")
            return

        try:
            await websocket.send_json({"event": event, "data": payload or {}})
        except Exception as e:
            logger.warning(f"Error sending {event} to connection {conn_id}: {e}")

    async def emit_to_room(
        self,
        room_id: str,
        event: str,
        payload: Optional[dict] = None,
        exclude: Optional[str] = None
    ) -> None:
        """廣播事件給房間群組內所有連線（可排除一條）"""
        for conn_id in self.members(room_id):
            if conn_id == exclude:
                continue
            await self.emit_to_connection(conn_id, event, payload)
