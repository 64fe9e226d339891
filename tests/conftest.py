import random
import string
from typing import Dict, List, Optional, Tuple

import pytest

from core.room_store import RoomStore
from core.session_controller import RoomSessionController


class RecordingTransport:
    """記錄所有送出事件的 Transport（依實際收件連線展開廣播）"""

    def __init__(self):
        self.groups: Dict[str, Dict[str, None]] = {}
        self.sent: List[Tuple[str, str, dict]] = []

    async def emit_to_connection(self, conn_id, event, payload=None):
        self.sent.append((conn_id, event, payload or {}))

    async def emit_to_room(self, room_id, event, payload=None, exclude=None):
        for conn_id in list(self.groups.get(room_id, {})):
            if conn_id != exclude:
                self.sent.append((conn_id, event, payload or {}))

    def join_room_group(self, conn_id, room_id):
        self.groups.setdefault(room_id, {})[conn_id] = None

    def leave_room_group(self, conn_id, room_id):
        self.groups.get(room_id, {}).pop(conn_id, None)

    def events_for(self, conn_id: str) -> List[Tuple[str, dict]]:
        return [(event, payload) for target, event, payload in self.sent if target == conn_id]

    def names_for(self, conn_id: str) -> List[str]:
        return [event for event, _ in self.events_for(conn_id)]

    def last(self, conn_id: str, event: str) -> Optional[dict]:
        for target, name, payload in reversed(self.sent):
            if target == conn_id and name == event:
                return payload
        return None

    def clear(self):
        self.sent.clear()


class ManualScheduler:
    """只記錄排程，由測試手動觸發"""

    def __init__(self):
        self.jobs = []

    def schedule(self, delay, callback, *args):
        self.jobs.append((delay, callback, args))

    async def run_all(self):
        jobs, self.jobs = self.jobs, []
        for _, callback, args in jobs:
            await callback(*args)

    @property
    def delays(self):
        return [delay for delay, _, _ in self.jobs]


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def assert_room_invariants(room):
    """master 唯一且與 master_id 一致；cards 的 key 都是房內玩家"""
    if room.participants:
        masters = [p for p in room.participants.values() if p.is_master]
        assert len(masters) == 1
        assert masters[0].id == room.master_id
        assert room.master_id in room.participants
    for conn_id, participant in room.participants.items():
        assert participant.id == conn_id
    assert set(room.cards) <= set(room.participants)
    if room.started:
        assert set(room.cards) == set(room.participants)
        assert len(set(room.cards.values())) == len(room.cards)


@pytest.fixture
def store():
    return RoomStore()


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_controller(store, transport, scheduler, clock):
    def factory(**overrides):
        ids = iter(string.ascii_uppercase)
        options = dict(
            grace_period_seconds=120.0,
            card_universe_size=100,
            clock=clock,
            rng=random.Random(42),
            room_id_factory=lambda: next(ids),
        )
        options.update(overrides)
        return RoomSessionController(store, transport, scheduler, **options)
    return factory


@pytest.fixture
def controller(make_controller):
    return make_controller()


@pytest.fixture
def check_invariants():
    return assert_room_invariants
