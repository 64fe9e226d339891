"""
Membership Manager：管理單一房間的玩家集合

職責：
1. 加入 / 移除玩家
2. 斷線標記與重連對應（依名稱找回原玩家）
3. 斷線寬限期滿後的踢除判斷
4. master 移交

所有方法都只改傳入的 Room，呼叫者必須已持有該房間的鎖；
時間一律由呼叫者傳入（now），方便測試
"""
from typing import Optional
import logging

from models import Room, Participant, ConnectionState

logger = logging.getLogger(__name__)


class MembershipManager:
    """Room 成員狀態機"""

    @staticmethod
    def add_participant(room: Room, conn_id: str, name: str, now: Optional[float] = None) -> Participant:
        """
        加入新玩家（狀態一律為 Active）

        如果房間原本是空的，新玩家直接成為 master
        """
        participant = Participant(id=conn_id, name=name, last_seen=now)
        room.participants[conn_id] = participant

        if len(room.participants) == 1:
            MembershipManager._assign_master(room, participant)

        return participant

    @staticmethod
    def mark_disconnected(room: Room, conn_id: str, now: float) -> Optional[Participant]:
        """
        標記玩家斷線（暫時）

        不移除玩家，也不動卡牌：寬限期內玩家仍計入 participants 與 cards，
        master 身分也保留

        返回：
            被標記的 Participant，找不到則 None
        """
        participant = room.participants.get(conn_id)
        if participant is None:
            return None

        participant.state = ConnectionState.DISCONNECTED
        participant.disconnected_at = now
        participant.previous_id = conn_id
        return participant

    @staticmethod
    def touch(room: Room, conn_id: str, now: float) -> bool:
        """keep-alive：只更新 last_seen，不改變連線狀態"""
        participant = room.participants.get(conn_id)
        if participant is None:
            return False
        participant.last_seen = now
        return True

    @staticmethod
    def reconcile_reconnect(room: Room, new_conn_id: str, name: str, now: Optional[float] = None) -> Optional[Participant]:
        """
        重連對應：依名稱找回原玩家，改掛到新的連線 ID

        流程：
        1. 依 name 找玩家（transport 每次連線都會給新 ID，無法用舊 ID 找）
        2. 以新 ID 取代舊 ID，保留原本的加入順序
        3. 卡牌跟著搬到新 ID
        4. 如果是 master，Room.master_id 一併更新

        參數：
            room: 目標房間
            new_conn_id: 新的連線 ID
            name: 玩家名稱

        返回：
            對應到的 Participant；沒有同名玩家則 None（不會新建玩家）

        注意：
            同名玩家只會對應到第一個（依加入順序）
        """
        participant = room.find_by_name(name)
        if participant is None:
            return None

        occupant = room.participants.get(new_conn_id)
        if occupant is not None and occupant is not participant:
            # 這條連線已經是房內另一位玩家
            return None

        old_id = participant.id
        if old_id != new_conn_id:
            room.participants = {
                (new_conn_id if key == old_id else key): value
                for key, value in room.participants.items()
            }
            if old_id in room.cards:
                room.cards[new_conn_id] = room.cards.pop(old_id)

        participant.previous_id = old_id
        participant.id = new_conn_id
        participant.state = ConnectionState.ACTIVE
        participant.disconnected_at = None
        participant.last_seen = now

        if participant.is_master:
            room.master_id = new_conn_id

        return participant

    @staticmethod
    def resolve_card(room: Room, participant: Participant) -> Optional[int]:
        """
        找回重連玩家的卡牌，並確保卡牌掛在目前的連線 ID 上

        順序：
        1. 目前的連線 ID
        2. 斷線前的連線 ID（previous_id）
        3. 掃描所有卡牌，找持有者名稱相同的
        """
        card = room.cards.get(participant.id)
        if card is not None:
            return card

        owner = None
        if participant.previous_id and participant.previous_id in room.cards:
            owner = participant.previous_id
        else:
            for conn_id in room.cards:
                holder = room.participants.get(conn_id)
                if holder is not None and holder.name == participant.name:
                    owner = conn_id
                    break

        if owner is None:
            return None

        card = room.cards.pop(owner)
        room.cards[participant.id] = card
        return card

    @staticmethod
    def is_eviction_due(room: Room, conn_id: str, now: float, grace_seconds: float) -> bool:
        """
        檢查斷線玩家是否該被踢除

        條件（全部成立）：
        - 以 conn_id 為 key 的玩家仍存在
        - 仍是 Disconnected
        - now - disconnected_at >= grace_seconds
        """
        participant = room.participants.get(conn_id)
        if participant is None or not participant.is_disconnected:
            return False
        if participant.disconnected_at is None:
            return False
        return now - participant.disconnected_at >= grace_seconds

    @staticmethod
    def evict_if_expired(room: Room, conn_id: str, now: float, grace_seconds: float) -> Optional[Participant]:
        """寬限期滿才移除；條件不成立時什麼都不做"""
        if not MembershipManager.is_eviction_due(room, conn_id, now, grace_seconds):
            return None
        return MembershipManager.remove_participant(room, conn_id)

    @staticmethod
    def remove_participant(room: Room, conn_id: str) -> Optional[Participant]:
        """
        立即移除玩家（連同卡牌）

        如果移除的是 master 且房間還有人，依加入順序選出新 master

        返回：
            被移除的 Participant，找不到則 None
        """
        removed = room.participants.pop(conn_id, None)
        if removed is None:
            return None

        room.cards.pop(conn_id, None)

        if room.master_id == conn_id or removed.is_master:
            removed.is_master = False
            MembershipManager.elect_new_master(room)

        return removed

    @staticmethod
    def elect_new_master(room: Room) -> Optional[Participant]:
        """
        選出新 master：最早加入的剩餘玩家

        房間為空時返回 None（由呼叫者刪除房間）
        """
        if not room.participants:
            return None

        successor = next(iter(room.participants.values()))
        MembershipManager._assign_master(room, successor)
        logger.info(f"New master {successor.name} assigned in room {room.id}")
        return successor

    @staticmethod
    def _assign_master(room: Room, participant: Participant) -> None:
        for other in room.participants.values():
            other.is_master = other is participant
        room.master_id = participant.id
