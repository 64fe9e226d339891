"""
Room Store：程序內唯一的房間登記表

職責：
1. 建立 Room（含 master 玩家）
2. 查詢 Room
3. 刪除 Room

只管 map 層級的新增/刪除；單一房間內的讀寫序列化交給 RoomLocks
"""
import threading
from typing import Dict, List, Optional
import logging

from models import Room
from core.exceptions import RoomAlreadyExists
from core.membership import MembershipManager

logger = logging.getLogger(__name__)


class RoomStore:
    """房間登記表（啟動時建立一次，傳給 controller 使用）"""

    def __init__(self):
        self._rooms: Dict[str, Room] = {}
        self._lock = threading.RLock()

    def create(
        self,
        room_id: str,
        master_conn_id: str,
        master_name: str,
        theme: str,
        now: Optional[float] = None
    ) -> Room:
        """
        建立新房間，建立者成為 master

        參數：
            room_id: 房間 ID（由呼叫者生成）
            master_conn_id: 建立者的連線 ID
            master_name: 建立者名稱（已 trim）
            theme: 房間主題（已 trim）
            now: 建立時間（寫入 master 的 last_seen）

        返回：
            新的 Room

        異常：
            RoomAlreadyExists: room_id 已被使用
        """
        with self._lock:
            if room_id in self._rooms:
                raise RoomAlreadyExists(room_id)

            room = Room(id=room_id, master_id=master_conn_id, theme=theme)
            MembershipManager.add_participant(room, master_conn_id, master_name, now)
            self._rooms[room_id] = room

        logger.info(f"Created room {room_id} (theme={theme!r}) with master {master_name}")
        return room

    def get(self, room_id: Optional[str]) -> Optional[Room]:
        if not room_id:
            return None
        with self._lock:
            return self._rooms.get(room_id)

    def contains(self, room_id: str) -> bool:
        with self._lock:
            return room_id in self._rooms

    def delete(self, room_id: str) -> None:
        with self._lock:
            removed = self._rooms.pop(room_id, None)
        if removed is not None:
            logger.info(f"Room {room_id} deleted")

    def room_ids(self) -> List[str]:
        with self._lock:
            return list(self._rooms)

    def __len__(self) -> int:
        with self._lock:
            return len(self._rooms)
