from api.hub import ConnectionHub


class FakeWebSocket:
    def __init__(self, broken=False):
        self.messages = []
        self.broken = broken

    async def send_json(self, data):
        if self.broken:
            raise RuntimeError("socket closed")
        self.messages.append(data)


async def test_emit_to_room_respects_exclude():
    hub = ConnectionHub()
    alice, bob = FakeWebSocket(), FakeWebSocket()
    hub.register("alice-1", alice)
    hub.register("bob-1", bob)
    hub.join_room_group("alice-1", "A")
    hub.join_room_group("bob-1", "A")

    await hub.emit_to_room("A", "update_players", {"players": []}, exclude="bob-1")

    assert alice.messages == [{"event": "update_players", "data": {"players": []}}]
    assert bob.messages == []


async def test_missing_or_broken_connections_are_skipped():
    hub = ConnectionHub()
    broken, ok = FakeWebSocket(broken=True), FakeWebSocket()
    hub.register("broken", broken)
    hub.register("ok", ok)
    for conn_id in ("gone", "broken", "ok"):
        hub.join_room_group(conn_id, "A")

    await hub.emit_to_room("A", "game_reset")

    assert ok.messages == [{"event": "game_reset", "data": {}}]


async def test_unregister_leaves_all_groups():
    hub = ConnectionHub()
    hub.register("alice-1", FakeWebSocket())
    hub.join_room_group("alice-1", "A")
    hub.join_room_group("alice-1", "B")

    hub.unregister("alice-1")

    assert hub.members("A") == []
    assert hub.members("B") == []
    assert not hub.is_connected("alice-1")
