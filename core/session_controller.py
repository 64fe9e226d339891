"""
Room Session Controller：處理所有房間事件

職責：
1. 驗證事件前置條件（欄位、房間存在、master 權限）
2. 透過 MembershipManager / card_service 修改 Room
3. 決定要送出哪些事件（個別連線 or 整個房間）

原則：
- 同一房間的每個事件都在 RoomLocks 內完整執行，不同房間互不影響
- 卡牌一律整批重發：開局後任何成員變動都重新抽一整組不重複的號碼
- 業務異常在 dispatch 邊界轉成 error 事件，只回給發出事件的連線
"""
import random
import time
from typing import Awaitable, Callable, Dict, List, Optional
import logging

from pydantic import BaseModel, ValidationError as PayloadValidationError

from models import Room, ConnectionSession
from schemas import (
    CreateRoomPayload,
    JoinRoomPayload,
    RoomPayload,
    PlayerTargetPayload,
    PlayerInfo,
    RoomCreatedEvent,
    RoomJoinedEvent,
    UpdatePlayersEvent,
    CardDistributedEvent,
    GameStartedEvent,
    PlayerRemovedEvent,
    ErrorEvent,
)
from core.exceptions import (
    ThemeTierException,
    ValidationError,
    RoomNotFound,
    PlayerNotFound,
    NotRoomMaster,
    CannotRemoveMaster,
    AllocationShortfall,
)
from core.locks import RoomLocks
from core.membership import MembershipManager
from core.room_store import RoomStore
from core.scheduler import TaskScheduler
from core.transport import Transport
from services.card_service import allocate_cards, DEFAULT_UNIVERSE_SIZE
from services.naming_service import generate_room_id

logger = logging.getLogger(__name__)

DEFAULT_GRACE_PERIOD_SECONDS = 120.0

# 未預期錯誤時回給客戶端的訊息
FAILURE_MESSAGES = {
    "create_room": "Failed to create room",
    "join_room": "Failed to join room",
    "distribute_cards": "Failed to distribute cards",
    "reset_game": "Failed to reset game",
    "remove_player": "Failed to remove player",
    "request_card_redistribution": "Failed to resend card",
    "keep_alive": "Failed to refresh connection",
    "reconnect_player": "Failed to reconnect",
}

Handler = Callable[[str, dict], Awaitable[None]]


class RoomSessionController:
    """房間事件協調者（程序內只建立一個）"""

    def __init__(
        self,
        store: RoomStore,
        transport: Transport,
        scheduler: TaskScheduler,
        locks: Optional[RoomLocks] = None,
        *,
        grace_period_seconds: float = DEFAULT_GRACE_PERIOD_SECONDS,
        card_universe_size: int = DEFAULT_UNIVERSE_SIZE,
        room_id_length: int = 8,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
        room_id_factory: Optional[Callable[[], str]] = None,
    ):
        self.store = store
        self.transport = transport
        self.scheduler = scheduler
        self.locks = locks or RoomLocks()
        self.grace_period_seconds = grace_period_seconds
        self.card_universe_size = card_universe_size
        self._clock = clock
        self._rng = rng
        self._room_id_factory = room_id_factory or (lambda: generate_room_id(room_id_length))
        self._sessions: Dict[str, ConnectionSession] = {}

        self._handlers: Dict[str, Handler] = {
            "create_room": self.create_room,
            "join_room": self.join_room,
            "distribute_cards": self.distribute_cards,
            "reset_game": self.reset_game,
            "remove_player": self.remove_player,
            "request_card_redistribution": self.request_card_redistribution,
            "keep_alive": self.keep_alive,
            "reconnect_player": self.reconnect_player,
        }

    @property
    def events(self) -> List[str]:
        return list(self._handlers)

    def session_for(self, conn_id: str) -> Optional[ConnectionSession]:
        return self._sessions.get(conn_id)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def dispatch(self, conn_id: str, event: str, payload: Optional[dict] = None) -> None:
        """
        事件入口：依事件名稱找 handler 執行

        異常處理：
            - ThemeTierException：回傳 error{message} 給 conn_id
            - 其他異常：記錄 log，回傳該事件的通用錯誤訊息
        """
        handler = self._handlers.get(event)
        if handler is None:
            logger.warning(f"Unknown event {event!r} from {conn_id}")
            await self._emit_error(conn_id, f"Unknown event: {event}")
            return

        try:
            await handler(conn_id, payload or {})
        except ThemeTierException as e:
            logger.info(f"Rejected {event} from {conn_id}: {e.message}")
            await self._emit_error(conn_id, e.message)
        except Exception as e:
            logger.error(f"Error handling {event} from {conn_id}: {e}", exc_info=True)
            await self._emit_error(conn_id, FAILURE_MESSAGES.get(event, "Internal error"))

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    async def create_room(self, conn_id: str, payload: dict) -> None:
        """
        建立房間（呼叫者成為 master）

        前置條件：
        - playerName、theme 不可為空

        送出：
        - room_created → 呼叫者
        - room_joined → 呼叫者
        """
        data = self._parse(CreateRoomPayload, payload)
        name = self._require(data.player_name, "Player name is required")
        theme = self._require(data.theme, "Theme is required")
        self._require_no_other_room(conn_id)

        # 1. 生成唯一的房間 ID
        room_id = self._room_id_factory()
        while self.store.contains(room_id):
            logger.warning(f"Room id collision detected, regenerating: {room_id}")
            room_id = self._room_id_factory()

        async with self.locks.with_room_lock(room_id):
            # 2. 建立房間（含 master）
            room = self.store.create(room_id, conn_id, name, theme, now=self._clock())

            self.transport.join_room_group(conn_id, room_id)
            self._sessions[conn_id] = ConnectionSession(room_id=room_id, player_name=name)

            # 3. 通知建立者
            await self.transport.emit_to_connection(
                conn_id, "room_created", RoomCreatedEvent(room_id=room_id, theme=theme).to_payload()
            )
            await self.transport.emit_to_connection(
                conn_id, "room_joined", self._room_joined(room, conn_id)
            )

        logger.info(f"Room {room_id} created by {name} - theme: {theme}")

    async def join_room(self, conn_id: str, payload: dict) -> None:
        """
        加入房間

        前置條件：
        - playerName 不可為空
        - 房間必須存在

        效果：
        - 新增 Active 玩家
        - 若已開局，整批重發卡牌（含新玩家）

        異常：
            ValidationError、RoomNotFound、AllocationShortfall（開局後卡池不足）
        """
        data = self._parse(JoinRoomPayload, payload)
        name = self._require(data.player_name, "Player name is required")
        room_id = data.room_id
        if not room_id:
            raise RoomNotFound(room_id)
        self._require_no_other_room(conn_id, room_id)

        async with self.locks.with_room_lock(room_id):
            room = self._get_room(room_id)

            if conn_id in room.participants:
                raise ValidationError("Already joined this room")

            # 開局後加入會整批重發，卡池必須容得下新玩家
            if room.started and room.player_count + 1 > self.card_universe_size:
                raise AllocationShortfall(room.player_count + 1, self.card_universe_size)

            MembershipManager.add_participant(room, conn_id, name, self._clock())
            self.transport.join_room_group(conn_id, room_id)
            self._sessions[conn_id] = ConnectionSession(room_id=room_id, player_name=name)

            await self.transport.emit_to_connection(
                conn_id, "room_joined", self._room_joined(room, conn_id)
            )
            await self.transport.emit_to_room(
                room_id, "update_players", self._update_players(room), exclude=conn_id
            )

            if room.started:
                await self._deal_cards(room)
                logger.info(f"Cards redistributed in room {room_id} for new player")

            logger.info(f"{name} joined room {room_id} ({room.player_count} players)")

    async def distribute_cards(self, conn_id: str, payload: dict) -> None:
        """
        發牌（master only）

        流程：
        1. 驗證 master 身分
        2. 抽出與玩家數相同的不重複號碼（不足則整個中止）
        3. 依加入順序指派並個別通知
        4. started = True，廣播 game_started
        """
        room_id = self._parse(RoomPayload, payload).room_id

        async with self.locks.with_room_lock(room_id):
            room = self._get_room(room_id)
            self._require_master(room, conn_id, "Only the master can distribute cards")

            if room.player_count < 1:
                raise ValidationError("Need at least one player to distribute cards")

            await self._deal_cards(room)
            room.started = True
            await self.transport.emit_to_room(room_id, "game_started", self._game_started(room))

            logger.info(f"Cards distributed in room {room_id} to {room.player_count} players")

    async def reset_game(self, conn_id: str, payload: dict) -> None:
        """
        重置並立即重新發牌（master only）

        流程：
        1. 清空卡牌、started = False，廣播 game_reset
        2. 重新抽牌並個別通知
        3. started = True，廣播 game_started

        注意：
            第 2 步卡池不足時中止，房間停在已重置狀態（沒有卡、未開局）
        """
        room_id = self._parse(RoomPayload, payload).room_id

        async with self.locks.with_room_lock(room_id):
            room = self._get_room(room_id)
            self._require_master(room, conn_id, "Only the master can reset the game")

            room.cards = {}
            room.started = False
            await self.transport.emit_to_room(room_id, "game_reset", {})

            await self._deal_cards(room)
            room.started = True
            await self.transport.emit_to_room(room_id, "game_started", self._game_started(room))

            logger.info(f"Game reset in room {room_id}")

    async def remove_player(self, conn_id: str, payload: dict) -> None:
        """
        踢除玩家（master only，無寬限期）

        前置條件：
        - 呼叫者是 master
        - 目標玩家（依名稱）存在且不是 master

        送出：
        - player_removed → 被踢除的連線
        - update_players → 房間其他人
        - 已開局時整批重發卡牌
        """
        data = self._parse(PlayerTargetPayload, payload)
        target_name = self._require(data.player_name, "Player name is required")
        room_id = data.room_id

        async with self.locks.with_room_lock(room_id):
            room = self._get_room(room_id)
            self._require_master(room, conn_id, "Only the master can remove players")

            target = room.find_by_name(target_name)
            if target is None:
                raise PlayerNotFound(target_name)
            if target.is_master:
                raise CannotRemoveMaster()

            MembershipManager.remove_participant(room, target.id)
            self._forget_session(target.id, room_id)

            await self.transport.emit_to_connection(
                target.id,
                "player_removed",
                PlayerRemovedEvent(message="You have been removed from the room by the master").to_payload()
            )
            self.transport.leave_room_group(target.id, room_id)
            await self.transport.emit_to_room(room_id, "update_players", self._update_players(room))

            if room.started and room.player_count > 0:
                await self._deal_cards(room)
                logger.info(f"Cards redistributed in room {room_id} after player removal")

            logger.info(f"Player {target_name} removed from room {room_id} by master")

    async def request_card_redistribution(self, conn_id: str, payload: dict) -> None:
        """重送呼叫者目前的卡牌；未開局或沒有卡就忽略"""
        room_id = self._parse(RoomPayload, payload).room_id
        if not room_id or not self.store.contains(room_id):
            return

        async with self.locks.with_room_lock(room_id):
            room = self.store.get(room_id)
            if room is None or not room.started:
                return
            card = room.cards.get(conn_id)
            if card is None:
                return
            await self.transport.emit_to_connection(
                conn_id, "card_distributed", CardDistributedEvent(card=card).to_payload()
            )
            logger.info(f"Card resent to {conn_id} in room {room_id}")

    async def keep_alive(self, conn_id: str, payload: dict) -> None:
        """更新玩家的 last_seen；房間或玩家不存在就忽略"""
        room_id = self._parse(RoomPayload, payload).room_id
        if not room_id or not self.store.contains(room_id):
            return

        async with self.locks.with_room_lock(room_id):
            room = self.store.get(room_id)
            if room is not None and MembershipManager.touch(room, conn_id, self._clock()):
                logger.debug(f"Keep-alive from {conn_id} in room {room_id}")

    async def reconnect_player(self, conn_id: str, payload: dict) -> None:
        """
        重連：依名稱把原玩家改掛到新連線

        找不到同名玩家時不做任何事（不會新建玩家）

        送出：
        - room_joined → 重連的連線
        - update_players → 房間其他人
        - 已開局時，card_distributed（原本的號碼）→ 重連的連線
        """
        data = self._parse(PlayerTargetPayload, payload)
        room_id = data.room_id
        name = (data.player_name or "").strip()
        if not room_id or not name or not self.store.contains(room_id):
            return
        self._require_no_other_room(conn_id, room_id)

        async with self.locks.with_room_lock(room_id):
            room = self.store.get(room_id)
            if room is None:
                return

            participant = MembershipManager.reconcile_reconnect(room, conn_id, name, self._clock())
            if participant is None:
                logger.info(f"Reconnect ignored: no player named {name} in room {room_id}")
                return

            self.transport.join_room_group(conn_id, room_id)
            self._sessions[conn_id] = ConnectionSession(room_id=room_id, player_name=name)

            await self.transport.emit_to_connection(
                conn_id, "room_joined", self._room_joined(room, conn_id)
            )
            await self.transport.emit_to_room(
                room_id, "update_players", self._update_players(room), exclude=conn_id
            )

            if room.started:
                card = MembershipManager.resolve_card(room, participant)
                if card is None:
                    logger.warning(
                        f"No card found for reconnected player {name} in room {room_id} "
                        f"(cards={room.cards})"
                    )
                else:
                    await self.transport.emit_to_connection(
                        conn_id, "card_distributed", CardDistributedEvent(card=card).to_payload()
                    )

            logger.info(f"{name} reconnected to room {room_id} as {conn_id}")

    async def handle_disconnect(self, conn_id: str) -> None:
        """
        transport 層斷線：標記斷線並排程寬限期後的踢除

        斷線當下不廣播；所有錯誤只記錄，不往外拋
        """
        try:
            session = self._sessions.pop(conn_id, None)
            if session is None:
                return

            room_id = session.room_id
            async with self.locks.with_room_lock(room_id):
                room = self.store.get(room_id)
                if room is None:
                    return
                participant = MembershipManager.mark_disconnected(room, conn_id, self._clock())
                if participant is None:
                    return

                self.scheduler.schedule(
                    self.grace_period_seconds, self._on_eviction_due, room_id, conn_id
                )
                logger.info(f"{participant.name} disconnected from room {room_id} (temporary)")
        except Exception as e:
            logger.error(f"Error handling disconnect of {conn_id}: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Eviction
    # ------------------------------------------------------------------

    async def _on_eviction_due(self, room_id: str, conn_id: str) -> None:
        """
        寬限期計時器觸發

        只帶 room_id 和 conn_id，觸發時重新從 store 取最新狀態：
        - 房間已刪除、玩家已重連或已被踢除 → 什麼都不做
        - 計時器提早醒來 → 以剩餘時間重新排程
        """
        async with self.locks.with_room_lock(room_id):
            room = self.store.get(room_id)
            if room is None:
                return

            participant = room.participants.get(conn_id)
            if participant is None or not participant.is_disconnected:
                logger.debug(f"Eviction of {conn_id} in room {room_id} skipped (reconnected or gone)")
                return

            now = self._clock()
            remaining = self.grace_period_seconds - (now - participant.disconnected_at)
            if remaining > 0:
                logger.warning(
                    f"Eviction timer for {conn_id} in room {room_id} fired {remaining:.3f}s early, rescheduling"
                )
                self.scheduler.schedule(remaining, self._on_eviction_due, room_id, conn_id)
                return

            removed = MembershipManager.evict_if_expired(room, conn_id, now, self.grace_period_seconds)
            if removed is None:
                return

            logger.info(f"{removed.name} permanently removed from room {room_id}")

            # 房間空了就刪除
            if room.player_count == 0:
                self.store.delete(room_id)
                return

            await self.transport.emit_to_room(room_id, "update_players", self._update_players(room))

            if room.started:
                await self._deal_cards(room)
                logger.info(f"Cards redistributed in room {room_id} after player left")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _deal_cards(self, room: Room) -> None:
        """
        整批發牌：抽號碼 → 依加入順序指派 → 個別通知

        抽出的數量不足時直接拋出 AllocationShortfall，room.cards 保持原狀
        """
        count = room.player_count
        numbers = allocate_cards(count, self.card_universe_size, self._rng)
        if len(numbers) != count:
            raise AllocationShortfall(count, self.card_universe_size)

        room.cards = dict(zip(room.participants, numbers))

        for conn_id, card in room.cards.items():
            await self.transport.emit_to_connection(
                conn_id, "card_distributed", CardDistributedEvent(card=card).to_payload()
            )

    def _get_room(self, room_id: Optional[str]) -> Room:
        room = self.store.get(room_id)
        if room is None:
            raise RoomNotFound(room_id)
        return room

    @staticmethod
    def _require_master(room: Room, conn_id: str, message: str) -> None:
        if room.master_id != conn_id:
            raise NotRoomMaster(message)

    @staticmethod
    def _require(value: Optional[str], message: str) -> str:
        value = (value or "").strip()
        if not value:
            raise ValidationError(message)
        return value

    @staticmethod
    def _parse(model: type[BaseModel], payload: dict):
        try:
            return model.model_validate(payload)
        except PayloadValidationError:
            raise ValidationError("Invalid payload")

    def _require_no_other_room(self, conn_id: str, room_id: Optional[str] = None) -> None:
        """
        一條連線同時只能在一個房間

        舊 session 的房間已刪除、或玩家已不在房內時，直接丟掉舊 session
        """
        session = self._sessions.get(conn_id)
        if session is None or session.room_id == room_id:
            return
        room = self.store.get(session.room_id)
        if room is None or conn_id not in room.participants:
            del self._sessions[conn_id]
            return
        raise ValidationError("Already in another room")

    def _forget_session(self, conn_id: str, room_id: str) -> None:
        session = self._sessions.get(conn_id)
        if session is not None and session.room_id == room_id:
            del self._sessions[conn_id]

    async def _emit_error(self, conn_id: str, message: str) -> None:
        await self.transport.emit_to_connection(conn_id, "error", ErrorEvent(message=message).to_payload())

    @staticmethod
    def _players(room: Room) -> List[PlayerInfo]:
        return [PlayerInfo.model_validate(player) for player in room.roster()]

    def _room_joined(self, room: Room, conn_id: str) -> dict:
        return RoomJoinedEvent(
            room_id=room.id,
            theme=room.theme,
            is_master=room.master_id == conn_id,
            players=self._players(room)
        ).to_payload()

    def _update_players(self, room: Room) -> dict:
        return UpdatePlayersEvent(players=self._players(room)).to_payload()

    def _game_started(self, room: Room) -> dict:
        return GameStartedEvent(players=self._players(room), player_count=room.player_count).to_payload()
