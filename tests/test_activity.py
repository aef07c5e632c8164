"""Tests for the activity bus, the /ws channel handlers, the observer and the watcher."""

import asyncio
import json
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Optional

import pytest
from websockets.exceptions import ConnectionClosedOK

from nijawallet.activity import (
    ActivityBus,
    ActivityChannel,
    ActivityObserver,
    ActivityRecord,
    ActivityStatus,
    ActivityType,
    MessageType,
    ObserverGaveUp,
    make_message,
)
from nijawallet.activity.bus import ActivityEvent
from nijawallet.activity.server import ObserverConnection
from nijawallet.activity.watcher import ConfirmationWatcher
from nijawallet.chain.base import ChainEndpoint
from nijawallet.errors import Malformed, UpstreamError, UpstreamUnavailable
from nijawallet.hdwallet.base import ChainTag

WALLET = "0x9858EfFD232B4033E47d90003D41EC34EcaEda94"
OTHER = "0x" + "33" * 20


def record(tx_hash="0xaa", status=ActivityStatus.PENDING, address=WALLET, timestamp=1000, **details):
    return ActivityRecord(
        hash=tx_hash,
        type=ActivityType.SEND,
        status=status,
        timestamp=timestamp,
        attributed_address=address,
        details={"chain": "ETH", **details},
    )


class TestActivityBus:
    """Tests for ActivityBus."""

    @pytest.mark.asyncio
    async def test_publish_fans_out_in_order(self, bus):
        subscription, snapshot = await bus.subscribe()
        assert snapshot == []

        await bus.publish(record())
        await bus.update_status("0xaa", ActivityStatus.CONFIRMED)

        first = await subscription.get()
        second = await subscription.get()
        assert first.created and first.record.status == ActivityStatus.PENDING
        assert not second.created and second.record.status == ActivityStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_status_regression_ignored(self, bus):
        await bus.publish(record(status=ActivityStatus.CONFIRMED))
        subscription, _ = await bus.subscribe()

        result = await bus.publish(record(status=ActivityStatus.PENDING))

        assert result is None
        assert bus.get("0xaa").status == ActivityStatus.CONFIRMED
        assert subscription._queue.empty()

    @pytest.mark.asyncio
    async def test_final_status_cannot_flip(self, bus):
        await bus.publish(record())
        await bus.update_status("0xaa", ActivityStatus.FAILED)

        assert await bus.update_status("0xaa", ActivityStatus.CONFIRMED) is None
        assert bus.get("0xaa").status == ActivityStatus.FAILED

    @pytest.mark.asyncio
    async def test_unchanged_republish_not_fanned_out(self, bus):
        await bus.publish(record())
        subscription, _ = await bus.subscribe()

        assert await bus.publish(record()) is None
        assert subscription._queue.empty()

    @pytest.mark.asyncio
    async def test_update_keeps_identity_and_merges_details(self, bus):
        await bus.publish(record(timestamp=1000, to=OTHER))

        updated = await bus.update_status("0xaa", ActivityStatus.CONFIRMED, {"block": 7})

        assert updated.timestamp == 1000
        assert updated.details == {"chain": "ETH", "to": OTHER, "block": 7}

    @pytest.mark.asyncio
    async def test_unknown_hash_update_ignored(self, bus):
        assert await bus.update_status("0xmissing", ActivityStatus.CONFIRMED) is None

    @pytest.mark.asyncio
    async def test_subscribe_snapshot_is_atomic(self, bus):
        """Records before subscribing are in the snapshot; later ones arrive as events."""
        await bus.publish(record("0x01", timestamp=2))
        await bus.publish(record("0x02", timestamp=1))

        subscription, snapshot = await bus.subscribe()
        await bus.publish(record("0x03", timestamp=3))

        assert [r.hash for r in snapshot] == ["0x02", "0x01"]
        event = await subscription.get()
        assert event.record.hash == "0x03"
        assert subscription._queue.empty()

    @pytest.mark.asyncio
    async def test_address_filter(self, bus):
        subscription, _ = await bus.subscribe(WALLET.lower())

        await bus.publish(record("0x01", address=OTHER))
        await bus.publish(record("0x02", address=WALLET))

        event = await subscription.get()
        assert event.record.hash == "0x02"
        assert [r.hash for r in bus.snapshot(OTHER)] == ["0x01"]

    @pytest.mark.asyncio
    async def test_slow_subscriber_closed_on_overflow(self, bus):
        subscription, _ = await bus.subscribe()

        for i in range(bus.queue_size + 1):
            await bus.publish(record(f"0x{i:02x}"))

        assert subscription.closed
        assert subscription.overflowed
        assert await subscription.get() is None
        assert bus.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_records_survive_restart(self, bus, file_store):
        await bus.publish(record("0x01"))
        await bus.update_status("0x01", ActivityStatus.CONFIRMED)

        reopened = ActivityBus(file_store)
        await reopened.open()

        assert reopened.get("0x01").status == ActivityStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_close_ends_subscriptions(self, bus):
        subscription, _ = await bus.subscribe()

        await bus.close()

        assert [event async for event in subscription] == []


class TestChannelMessages:
    """Tests for ActivityChannel.handle_message."""

    @pytest.fixture
    def channel(self, bus):
        return ActivityChannel(bus, write_token="secret")

    @pytest.mark.asyncio
    async def test_heartbeat(self, channel):
        connection = ObserverConnection(None, "observer", None, can_write=False)

        reply = await channel.handle_message(connection, {"type": "heartbeat"})

        assert reply["type"] == "heartbeat-response"
        assert "timestamp" in reply

    @pytest.mark.asyncio
    async def test_writer_publishes(self, channel, bus):
        connection = ObserverConnection(None, "api-server", None, can_write=True)

        reply = await channel.handle_message(connection, {
            "type": "activity-sync",
            "data": record("0xbb").to_dict(),
        })
        await channel.handle_message(connection, {
            "type": "TRANSACTION_UPDATE",
            "data": {"hash": "0xbb", "status": "confirmed"},
        })

        assert reply is None
        assert bus.get("0xbb").status == ActivityStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_read_only_observer_cannot_publish(self, channel, bus):
        connection = ObserverConnection(None, "observer", None, can_write=False)

        reply = await channel.handle_message(connection, {
            "type": "TRANSACTION",
            "data": record("0xcc").to_dict(),
        })

        assert reply["type"] == "error"
        assert bus.get("0xcc") is None

    @pytest.mark.asyncio
    async def test_bad_status_is_malformed(self, channel):
        connection = ObserverConnection(None, "api-server", None, can_write=True)

        with pytest.raises(Malformed):
            await channel.handle_message(connection, {
                "type": "TRANSACTION_UPDATE",
                "data": {"hash": "0xbb", "status": "mined"},
            })

    @pytest.mark.asyncio
    async def test_unknown_type(self, channel):
        connection = ObserverConnection(None, "observer", None, can_write=False)

        reply = await channel.handle_message(connection, {"type": "SELF_DESTRUCT"})

        assert reply["type"] == "error"

    def test_event_messages(self):
        created = ActivityChannel.event_messages(ActivityEvent(record(), created=True))
        updated = ActivityChannel.event_messages(ActivityEvent(record(), created=False))

        assert [m["type"] for m in created] == ["activity-update", "TRANSACTION"]
        assert [m["type"] for m in updated] == ["activity-update", "TRANSACTION_UPDATE"]
        assert created[0]["data"]["hash"] == "0xaa"


class FakeSocket:
    """Scripted websocket: yields queued messages, then closes."""

    def __init__(self, messages: list[dict]):
        self._incoming = [json.dumps(m) for m in messages]
        self.sent: list[dict] = []

    async def send(self, raw: str) -> None:
        self.sent.append(json.loads(raw))

    async def recv(self) -> str:
        if not self._incoming:
            raise ConnectionClosedOK(None, None)
        return self._incoming.pop(0)

    async def close(self) -> None:
        pass


class TestActivityObserver:
    """Tests for the reconnecting observer client."""

    def test_backoff_doubles(self):
        observer = ActivityObserver("ws://test/ws", backoff_base=1.0)

        assert [observer.backoff_delay(n) for n in range(1, 5)] == [1.0, 2.0, 4.0, 8.0]

    def test_final_status_never_replaced_by_pending(self):
        observer = ActivityObserver("ws://test/ws")

        assert observer.apply({"hash": "0x1", "status": "pending"})
        assert observer.apply({"hash": "0x1", "status": "confirmed"})
        assert not observer.apply({"hash": "0x1", "status": "pending"})
        assert observer.view["0x1"]["status"] == "confirmed"

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        delays = []

        @asynccontextmanager
        async def refuse(url):
            raise OSError("connection refused")
            yield

        async def sleep(delay):
            delays.append(delay)

        observer = ActivityObserver("ws://test/ws", connect=refuse, sleep=sleep)

        with pytest.raises(ObserverGaveUp) as exc_info:
            await observer.run()

        assert exc_info.value.attempts == 5
        assert delays == [1.0, 2.0, 4.0, 8.0]

    @pytest.mark.asyncio
    async def test_session_applies_updates(self):
        socket = FakeSocket([
            make_message(MessageType.WELCOME, message="hi"),
            make_message(MessageType.INITIAL_DATA, records=[{"hash": "0x1", "status": "pending"}]),
            make_message(MessageType.ACTIVITY_UPDATE, data={"hash": "0x1", "status": "confirmed"}),
            make_message(MessageType.TRANSACTION_UPDATE, data={"hash": "0x1", "status": "pending"}),
        ])
        seen = []

        @asynccontextmanager
        async def connect(url):
            yield socket

        async def on_update(data):
            seen.append(data["status"])

        async def sleep(delay):
            await observer.stop()

        observer = ActivityObserver(
            "ws://test/ws", role="api-server", connect=connect, sleep=sleep, on_update=on_update
        )
        await observer.run()

        assert socket.sent[0]["type"] == "HANDSHAKE"
        assert socket.sent[0]["service"] == "api-server"
        assert observer.view["0x1"]["status"] == "confirmed"
        assert seen == ["pending", "confirmed"]


class ScriptedEndpoint(ChainEndpoint):
    """Endpoint whose status answers are scripted."""

    def __init__(self, answers: list):
        self.answers = list(answers)
        self.polls = 0

    @property
    def chain_tag(self) -> ChainTag:
        return ChainTag.ETH

    async def get_balance(self, address: str) -> Decimal:
        return Decimal("0")

    async def prepare_transfer(self, keypair, to_address: str, value: Decimal):
        raise NotImplementedError

    async def broadcast(self, signed) -> str:
        raise NotImplementedError

    async def get_status(self, tx_hash: str) -> Optional[ActivityStatus]:
        self.polls += 1
        answer = self.answers.pop(0) if self.answers else None
        if isinstance(answer, Exception):
            raise answer
        return answer


class TestConfirmationWatcher:
    """Tests for ConfirmationWatcher."""

    @pytest.mark.asyncio
    async def test_polls_until_final(self, bus):
        endpoint = ScriptedEndpoint([None, UpstreamUnavailable("down"), ActivityStatus.CONFIRMED])
        watcher = ConfirmationWatcher(bus, {ChainTag.ETH: endpoint}, poll_interval=0, max_polls=5)
        await bus.publish(record())

        assert watcher.track(bus.get("0xaa"))
        await asyncio.gather(*watcher._tasks.values())

        assert bus.get("0xaa").status == ActivityStatus.CONFIRMED
        assert endpoint.polls == 3
        assert watcher.tracked == []

    @pytest.mark.asyncio
    async def test_gives_up_leaving_pending(self, bus):
        endpoint = ScriptedEndpoint([])
        watcher = ConfirmationWatcher(bus, {ChainTag.ETH: endpoint}, poll_interval=0, max_polls=3)
        await bus.publish(record())

        watcher.track(bus.get("0xaa"))
        await asyncio.gather(*watcher._tasks.values())

        assert bus.get("0xaa").status == ActivityStatus.PENDING
        assert endpoint.polls == 3

    @pytest.mark.asyncio
    async def test_reconcile_pending_at_startup(self, bus):
        endpoint = ScriptedEndpoint([ActivityStatus.FAILED])
        await bus.publish(record("0x01"))
        await bus.publish(record("0x02", status=ActivityStatus.CONFIRMED))
        watcher = ConfirmationWatcher(bus, {ChainTag.ETH: endpoint}, poll_interval=0)

        assert watcher.reconcile_pending() == 1
        await watcher.close()

    @pytest.mark.asyncio
    async def test_check_once(self, bus):
        endpoint = ScriptedEndpoint([ActivityStatus.CONFIRMED])
        watcher = ConfirmationWatcher(bus, {ChainTag.ETH: endpoint})
        await bus.publish(record())

        checked = await watcher.check("0xaa")

        assert checked.status == ActivityStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_rpc_rejection_stops_polling(self, bus):
        endpoint = ScriptedEndpoint([UpstreamError("invalid hash", rpc_code=-32602), ActivityStatus.CONFIRMED])
        watcher = ConfirmationWatcher(bus, {ChainTag.ETH: endpoint}, poll_interval=0, max_polls=5)
        await bus.publish(record())

        watcher.track(bus.get("0xaa"))
        await asyncio.gather(*watcher._tasks.values())

        assert endpoint.polls == 1
        assert bus.get("0xaa").status == ActivityStatus.PENDING

    @pytest.mark.asyncio
    async def test_crashed_watch_is_logged(self, bus, caplog):
        endpoint = ScriptedEndpoint([ActivityStatus.CONFIRMED])
        watcher = ConfirmationWatcher(bus, {ChainTag.ETH: endpoint}, poll_interval=0)
        await bus.publish(record())

        async def broken_update(*args, **kwargs):
            raise UpstreamUnavailable("disk full")

        bus.update_status = broken_update
        watcher.track(bus.get("0xaa"))
        await asyncio.gather(*watcher._tasks.values(), return_exceptions=True)
        await asyncio.sleep(0)

        assert watcher.tracked == []
        assert "crashed" in caplog.text
