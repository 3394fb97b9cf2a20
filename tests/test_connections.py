"""Tests for the connection directory and broadcaster, using in-memory sockets."""

import asyncio

from relay_hub.hub.connections import ConnectionManager


class FakeWebSocket:
    """Records what the hub sends; optionally fails every send."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.accepted = False
        self.client = None
        self.sent = []

    async def accept(self):
        await asyncio.sleep(0)
        self.accepted = True

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(data)


async def _let_writers_run():
    for _ in range(10):
        await asyncio.sleep(0)


def test_connect_assigns_unique_session_ids():
    async def scenario():
        manager = ConnectionManager()
        ws_a, ws_b = FakeWebSocket(), FakeWebSocket()
        a = await manager.connect(ws_a)
        b = await manager.connect(ws_b)

        assert ws_a.accepted and ws_b.accepted
        assert a.session_id != b.session_id
        assert manager.online_count == 2
        assert {s["role"] for s in manager.get_all_sessions()} == {"observer"}

        await manager.disconnect(a.session_id)
        await manager.disconnect(b.session_id)

    asyncio.run(scenario())


def test_broadcast_excludes_only_the_given_session():
    async def scenario():
        manager = ConnectionManager()
        sockets = [FakeWebSocket() for _ in range(3)]
        sessions = [await manager.connect(ws) for ws in sockets]

        delivered = await manager.broadcast({"type": "pin_state_update"}, exclude=sessions[0].session_id)
        await _let_writers_run()

        assert delivered == 2
        assert sockets[0].sent == []
        assert sockets[1].sent == [{"type": "pin_state_update"}]
        assert sockets[2].sent == [{"type": "pin_state_update"}]

        for session in sessions:
            await manager.disconnect(session.session_id)

    asyncio.run(scenario())


def test_failed_send_does_not_stop_fan_out():
    async def scenario():
        manager = ConnectionManager()
        broken, healthy = FakeWebSocket(fail=True), FakeWebSocket()
        broken_session = await manager.connect(broken)
        healthy_session = await manager.connect(healthy)

        await manager.broadcast({"type": "devices_list", "devices": []})
        await _let_writers_run()
        await manager.broadcast({"type": "sensor_update"})
        await _let_writers_run()

        assert broken_session.closed
        assert healthy.sent == [{"type": "devices_list", "devices": []}, {"type": "sensor_update"}]
        assert await manager.send(broken_session.session_id, {"type": "x"}) is False

        await manager.disconnect(broken_session.session_id)
        await manager.disconnect(healthy_session.session_id)

    asyncio.run(scenario())


def test_backlogged_session_drops_messages():
    async def scenario():
        manager = ConnectionManager(outbound_queue_size=1)
        slow, fast = FakeWebSocket(), FakeWebSocket()
        slow_session = await manager.connect(slow)
        fast_session = await manager.connect(fast)

        # Nothing yields between these, so the slow queue stays full
        assert slow_session.enqueue({"type": "first"}) is True
        assert slow_session.enqueue({"type": "second"}) is False
        assert await manager.broadcast({"type": "third"}) == 1

        await _let_writers_run()
        assert slow.sent == [{"type": "first"}]
        assert fast.sent == [{"type": "third"}]

        await manager.disconnect(slow_session.session_id)
        await manager.disconnect(fast_session.session_id)

    asyncio.run(scenario())


def test_send_to_unknown_session_returns_false():
    async def scenario():
        manager = ConnectionManager()
        assert await manager.send("missing", {"type": "command"}) is False

    asyncio.run(scenario())


def test_disconnect_is_idempotent_and_stops_delivery():
    async def scenario():
        manager = ConnectionManager()
        ws = FakeWebSocket()
        session = await manager.connect(ws)

        assert await manager.disconnect(session.session_id) is session
        assert await manager.disconnect(session.session_id) is None
        assert manager.is_connected(session.session_id) is False
        assert await manager.broadcast({"type": "devices_list"}) == 0

        await _let_writers_run()
        assert ws.sent == []

    asyncio.run(scenario())


def test_initial_message_is_first_and_misses_nothing():
    async def scenario():
        manager = ConnectionManager()
        state = {"n": 0}

        async def churn():
            for _ in range(20):
                state["n"] += 1
                await manager.broadcast({"type": "update", "n": state["n"]})
                await asyncio.sleep(0)

        ws = FakeWebSocket()
        _, session = await asyncio.gather(
            churn(),
            manager.connect(ws, initial_message=lambda: {"type": "snapshot", "n": state["n"]}),
        )
        await _let_writers_run()

        first, updates = ws.sent[0], ws.sent[1:]
        assert first["type"] == "snapshot"
        # Every change after the snapshot arrives, in order, and nothing older does
        assert [u["n"] for u in updates] == list(range(first["n"] + 1, 21))

        await manager.disconnect(session.session_id)

    asyncio.run(scenario())
