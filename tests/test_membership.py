import pytest

from core.membership import MembershipManager
from models import ConnectionState, Room


@pytest.fixture
def room(store):
    room = store.create("A", "alice-1", "Alice", "space")
    MembershipManager.add_participant(room, "bob-1", "Bob", now=1000.0)
    MembershipManager.add_participant(room, "carol-1", "Carol", now=1000.0)
    return room


def test_first_participant_of_empty_room_becomes_master(check_invariants):
    room = Room(id="Z", master_id="", theme="void")

    participant = MembershipManager.add_participant(room, "c1", "Dan")

    assert participant.is_master is True
    assert room.master_id == "c1"
    check_invariants(room)


def test_later_participants_join_active_and_not_master(room, check_invariants):
    bob = room.participants["bob-1"]

    assert bob.is_master is False
    assert bob.state == ConnectionState.ACTIVE
    assert list(room.participants) == ["alice-1", "bob-1", "carol-1"]
    check_invariants(room)


def test_mark_disconnected_keeps_participant_and_card(room):
    room.cards = {"alice-1": 5, "bob-1": 17, "carol-1": 42}

    bob = MembershipManager.mark_disconnected(room, "bob-1", now=1010.0)

    assert bob.state == ConnectionState.DISCONNECTED
    assert bob.disconnected_at == 1010.0
    assert bob.previous_id == "bob-1"
    assert "bob-1" in room.participants
    assert room.cards["bob-1"] == 17


def test_mark_disconnected_unknown_connection(room):
    assert MembershipManager.mark_disconnected(room, "ghost", now=1.0) is None


def test_touch_refreshes_last_seen_only(room):
    MembershipManager.mark_disconnected(room, "bob-1", now=1010.0)

    assert MembershipManager.touch(room, "bob-1", now=1020.0) is True
    bob = room.participants["bob-1"]
    assert bob.last_seen == 1020.0
    assert bob.state == ConnectionState.DISCONNECTED
    assert MembershipManager.touch(room, "ghost", now=1020.0) is False


def test_reconnect_rekeys_participant_in_place(room, check_invariants):
    room.cards = {"alice-1": 5, "bob-1": 17, "carol-1": 42}
    MembershipManager.mark_disconnected(room, "bob-1", now=1010.0)

    bob = MembershipManager.reconcile_reconnect(room, "bob-2", "Bob", now=1050.0)

    assert bob.id == "bob-2"
    assert bob.previous_id == "bob-1"
    assert bob.state == ConnectionState.ACTIVE
    assert bob.disconnected_at is None
    assert list(room.participants) == ["alice-1", "bob-2", "carol-1"]
    assert room.cards == {"alice-1": 5, "bob-2": 17, "carol-1": 42}
    check_invariants(room)


def test_reconnecting_master_moves_master_id(room, check_invariants):
    MembershipManager.mark_disconnected(room, "alice-1", now=1010.0)

    MembershipManager.reconcile_reconnect(room, "alice-2", "Alice")

    assert room.master_id == "alice-2"
    assert room.participants["alice-2"].is_master is True
    check_invariants(room)


def test_reconnect_with_unknown_name_changes_nothing(room):
    before = dict(room.participants)

    assert MembershipManager.reconcile_reconnect(room, "x-1", "Mallory") is None
    assert room.participants == before
    assert room.master_id == "alice-1"


def test_resolve_card_via_previous_connection(room):
    bob = room.participants["bob-1"]
    # 卡牌還掛在舊 ID 上的情況
    room.participants = {("bob-2" if k == "bob-1" else k): v for k, v in room.participants.items()}
    bob.id, bob.previous_id = "bob-2", "bob-1"
    room.cards = {"alice-1": 5, "bob-1": 17, "carol-1": 42}

    assert MembershipManager.resolve_card(room, bob) == 17
    assert room.cards == {"alice-1": 5, "bob-2": 17, "carol-1": 42}


def test_resolve_card_falls_back_to_name_scan(room):
    room.cards = {"alice-1": 5, "bob-1": 17}
    namesake = MembershipManager.add_participant(room, "bob-9", "Bob")

    assert MembershipManager.resolve_card(room, namesake) == 17
    assert room.cards == {"alice-1": 5, "bob-9": 17}


def test_resolve_card_when_nothing_held(room):
    room.cards = {"alice-1": 5}

    assert MembershipManager.resolve_card(room, room.participants["carol-1"]) is None


def test_eviction_waits_for_full_grace_window(room):
    MembershipManager.mark_disconnected(room, "bob-1", now=1000.0)

    assert MembershipManager.evict_if_expired(room, "bob-1", now=1119.9, grace_seconds=120) is None
    assert "bob-1" in room.participants

    removed = MembershipManager.evict_if_expired(room, "bob-1", now=1120.0, grace_seconds=120)
    assert removed.name == "Bob"
    assert "bob-1" not in room.participants


def test_eviction_skips_reconnected_participant(room):
    MembershipManager.mark_disconnected(room, "bob-1", now=1000.0)
    MembershipManager.reconcile_reconnect(room, "bob-2", "Bob")

    assert MembershipManager.evict_if_expired(room, "bob-1", now=5000.0, grace_seconds=120) is None
    assert MembershipManager.evict_if_expired(room, "bob-2", now=5000.0, grace_seconds=120) is None
    assert "bob-2" in room.participants


def test_eviction_skips_active_participant(room):
    assert MembershipManager.evict_if_expired(room, "carol-1", now=9999.0, grace_seconds=120) is None


def test_removing_master_elects_earliest_remaining(room, check_invariants):
    room.cards = {"alice-1": 5, "bob-1": 17, "carol-1": 42}

    removed = MembershipManager.remove_participant(room, "alice-1")

    assert removed.name == "Alice"
    assert room.master_id == "bob-1"
    assert room.participants["bob-1"].is_master is True
    assert "alice-1" not in room.cards
    check_invariants(room)


def test_removing_non_master_keeps_master(room, check_invariants):
    MembershipManager.remove_participant(room, "carol-1")

    assert room.master_id == "alice-1"
    check_invariants(room)


def test_removing_last_participant_leaves_room_empty(store):
    room = store.create("B", "solo", "Solo", "alone")

    MembershipManager.remove_participant(room, "solo")

    assert room.participants == {}
    assert MembershipManager.elect_new_master(room) is None


def test_remove_unknown_connection(room):
    assert MembershipManager.remove_participant(room, "ghost") is None
    assert len(room.participants) == 3
