"""
事件 payload 的 Pydantic schema

欄位名稱一律使用前端的 camelCase（透過 alias），Python 端使用 snake_case
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class EventModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True)


# ============ Inbound ============

class CreateRoomPayload(EventModel):
    player_name: Optional[str] = None
    theme: Optional[str] = None


class JoinRoomPayload(EventModel):
    player_name: Optional[str] = None
    room_id: Optional[str] = None


class RoomPayload(EventModel):
    """只帶 roomId 的事件：distribute_cards、reset_game、keep_alive、request_card_redistribution"""
    room_id: Optional[str] = None


class PlayerTargetPayload(EventModel):
    """remove_player、reconnect_player"""
    room_id: Optional[str] = None
    player_name: Optional[str] = None


class InboundMessage(BaseModel):
    """WebSocket 收到的原始訊息：{"event": ..., "data": {...}}"""
    event: str
    data: dict = Field(default_factory=dict)


# ============ Outbound ============

class PlayerInfo(EventModel):
    id: str
    name: str
    is_master: bool


class RoomCreatedEvent(EventModel):
    room_id: str
    theme: str


class RoomJoinedEvent(EventModel):
    room_id: str
    theme: str
    is_master: bool
    players: List[PlayerInfo]


class UpdatePlayersEvent(EventModel):
    players: List[PlayerInfo]


class CardDistributedEvent(EventModel):
    card: int


class GameStartedEvent(EventModel):
    players: List[PlayerInfo]
    player_count: int


class PlayerRemovedEvent(EventModel):
    message: str


class ErrorEvent(EventModel):
    message: str
