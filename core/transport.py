"""
Transport 介面：core 對外發送事件時唯一依賴的協作者

實作見 api/hub.py（FastAPI WebSocket），測試用記錄式實作見 tests/conftest.py
"""
from typing import Any, Optional, Protocol


class Transport(Protocol):

    async def emit_to_connection(self, conn_id: str, event: str, payload: Optional[dict] = None) -> None:
        ...

    async def emit_to_room(
        self,
        room_id: str,
        event: str,
        payload: Optional[dict] = None,
        exclude: Optional[str] = None
    ) -> None:
        ...

    def join_room_group(self, conn_id: str, room_id: str) -> Any:
        ...

    def leave_room_group(self, conn_id: str, room_id: str) -> Any:
        ...
