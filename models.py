"""
資料模型：Room、Participant 與連線 session

全部存在記憶體中（程序重啟即消失），由 RoomStore 統一持有
"""
import enum
from dataclasses import dataclass, field
from typing import Dict, List, Optional


class ConnectionState(str, enum.Enum):
    """玩家連線狀態"""
    ACTIVE = "active"
    DISCONNECTED = "disconnected"


@dataclass
class Participant:
    id: str
    name: str
    is_master: bool = False
    state: ConnectionState = ConnectionState.ACTIVE
    disconnected_at: Optional[float] = None
    # 斷線前的連線 ID，重連時用來找回卡牌
    previous_id: Optional[str] = None
    last_seen: Optional[float] = None

    @property
    def is_disconnected(self) -> bool:
        return self.state == ConnectionState.DISCONNECTED

    def to_public(self) -> dict:
        return {"id": self.id, "name": self.name, "isMaster": self.is_master}


@dataclass
class Room:
    """
    房間狀態

    participants 以連線 ID 為 key，dict 保持加入順序
    （選新 master 時依賴這個順序）
    """
    id: str
    master_id: str
    theme: str
    participants: Dict[str, Participant] = field(default_factory=dict)
    cards: Dict[str, int] = field(default_factory=dict)
    started: bool = False

    def find_by_name(self, name: str) -> Optional[Participant]:
        for participant in self.participants.values():
            if participant.name == name:
                return participant
        return None

    def roster(self) -> List[dict]:
        return [p.to_public() for p in self.participants.values()]

    @property
    def player_count(self) -> int:
        return len(self.participants)


@dataclass
class ConnectionSession:
    """單一連線目前所在的房間（disconnect 事件沒有 payload，靠這個找回房間）"""
    room_id: str
    player_name: str
