"""
並發控制工具

提供 Room 級別的鎖定機制，防止同一房間的 read-modify-write 交錯

每個 room_id 對應一把 asyncio.Lock；不同房間互不影響，可以完全並行
"""
import asyncio
from contextlib import asynccontextmanager
from typing import Dict, List


class RoomLocks:
    """
    Room 鎖登記表

    鎖以引用計數管理：有人持有或等待時存在，全部釋放後移除，
    避免已刪除房間的鎖無限累積
    """

    def __init__(self):
        self._entries: Dict[str, List] = {}

    @asynccontextmanager
    async def with_room_lock(self, room_id: str):
        """
        鎖定一個 Room

        使用場景：
        - 修改 Room 成員、卡牌、master 時
        - 需要確保整段操作期間不被同房間的其他事件插隊

        範例：
            async with locks.with_room_lock(room_id):
                room = store.get(room_id)
                if not room:
                    raise RoomNotFound(room_id)
                ...

        注意：
            - 進入區塊後必須重新從 store 取得 Room（等鎖期間房間可能已被刪除）
            - 不可重入，區塊內不要再鎖同一個房間
        """
        entry = self._entries.get(room_id)
        if entry is None:
            entry = [asyncio.Lock(), 0]
            self._entries[room_id] = entry
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if entry[1] == 0 and self._entries.get(room_id) is entry:
                del self._entries[room_id]

    def is_locked(self, room_id: str) -> bool:
        entry = self._entries.get(room_id)
        return entry is not None and entry[0].locked()

    def __len__(self) -> int:
        return len(self._entries)
