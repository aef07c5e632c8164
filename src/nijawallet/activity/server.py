"""Server side of the /ws activity channel.

Connection lifecycle:
    observer -> HANDSHAKE {role, address?, token?}
    server   -> WELCOME, INITIAL_DATA {records}
    observer -> heartbeat            server -> heartbeat-response
    server   -> activity-update {data} on every change, plus TRANSACTION
                (new hash) or TRANSACTION_UPDATE (status change)
    observer -> TRANSACTION / activity-sync {data}, TRANSACTION_UPDATE {data}

An observer that sends nothing for ``idle_timeout`` seconds is presumed dead
and its socket is closed.
"""

import asyncio
import json
import logging
import secrets
from typing import Optional

from fastapi import WebSocket, WebSocketDisconnect

from nijawallet.activity.bus import ActivityBus, ActivityEvent, Subscription
from nijawallet.activity.models import ActivityRecord, MessageType, make_message, parse_status
from nijawallet.errors import Malformed

logger = logging.getLogger(__name__)

CLOSE_NORMAL = 1000
CLOSE_POLICY = 1008
CLOSE_IDLE = 4408
CLOSE_OVERFLOW = 4429


class ObserverConnection:
    """One connected observer."""

    def __init__(self, websocket: WebSocket, role: str, address: Optional[str], can_write: bool):
        self.websocket = websocket
        self.role = role
        self.address = address
        self.can_write = can_write
        self._send_lock = asyncio.Lock()

    async def send(self, message: dict) -> None:
        async with self._send_lock:
            await self.websocket.send_json(message)


class ActivityChannel:
    """Serves observers from an ActivityBus."""

    def __init__(
        self,
        bus: ActivityBus,
        idle_timeout: float = 30.0,
        handshake_timeout: float = 10.0,
        write_token: str = "",
    ):
        self.bus = bus
        self.idle_timeout = idle_timeout
        self.handshake_timeout = handshake_timeout
        self.write_token = write_token
        self._connections: set[ObserverConnection] = set()

    @property
    def observer_count(self) -> int:
        return len(self._connections)

    async def handle(self, websocket: WebSocket) -> None:
        """Run one observer connection to completion."""
        await websocket.accept()
        connection = await self._handshake(websocket)
        if connection is None:
            return

        subscription, records = await self.bus.subscribe(connection.address)
        self._connections.add(connection)
        logger.info(f"Observer connected: role={connection.role} ({self.observer_count} total)")

        try:
            await connection.send(make_message(
                MessageType.WELCOME,
                message="Connected to NijaWallet activity channel",
                role=connection.role,
            ))
            await connection.send(make_message(
                MessageType.INITIAL_DATA,
                records=[r.to_dict() for r in records],
            ))
            await self._pump(connection, subscription)
        except WebSocketDisconnect:
            pass
        finally:
            self.bus.unsubscribe(subscription)
            self._connections.discard(connection)
            logger.info(f"Observer disconnected: role={connection.role}")

    async def _handshake(self, websocket: WebSocket) -> Optional[ObserverConnection]:
        try:
            raw = await asyncio.wait_for(websocket.receive_text(), timeout=self.handshake_timeout)
            message = json.loads(raw)
        except asyncio.TimeoutError:
            logger.warning("Observer did not send HANDSHAKE in time")
            await websocket.close(code=CLOSE_POLICY, reason="handshake timeout")
            return None
        except (WebSocketDisconnect, ValueError):
            return None

        if not isinstance(message, dict) or message.get("type") != MessageType.HANDSHAKE.value:
            await websocket.close(code=CLOSE_POLICY, reason="expected HANDSHAKE")
            return None

        role = str(message.get("role") or message.get("service") or "observer")
        address = message.get("address") or None
        token = message.get("token") or ""
        can_write = not self.write_token or secrets.compare_digest(str(token), self.write_token)
        return ObserverConnection(websocket, role, address, can_write)

    async def _pump(self, connection: ObserverConnection, subscription: Subscription) -> None:
        reader = asyncio.create_task(self._read_loop(connection))
        writer = asyncio.create_task(self._write_loop(connection, subscription))
        try:
            done, _ = await asyncio.wait({reader, writer}, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                exc = task.exception()
                if exc is not None and not isinstance(exc, WebSocketDisconnect):
                    logger.error(f"Observer {connection.role} failed: {exc}")
        finally:
            for task in (reader, writer):
                task.cancel()
            await asyncio.gather(reader, writer, return_exceptions=True)

    async def _write_loop(self, connection: ObserverConnection, subscription: Subscription) -> None:
        async for event in subscription:
            for message in self.event_messages(event):
                await connection.send(message)

        if subscription.overflowed:
            await connection.websocket.close(code=CLOSE_OVERFLOW, reason="observer too slow")

    @staticmethod
    def event_messages(event: ActivityEvent) -> list[dict]:
        """Messages sent to observers for one bus event."""
        data = event.record.to_dict()
        announce = MessageType.TRANSACTION if event.created else MessageType.TRANSACTION_UPDATE
        return [
            make_message(MessageType.ACTIVITY_UPDATE, data=data),
            make_message(announce, data=data),
        ]

    async def _read_loop(self, connection: ObserverConnection) -> None:
        websocket = connection.websocket
        while True:
            try:
                raw = await asyncio.wait_for(websocket.receive_text(), timeout=self.idle_timeout)
            except asyncio.TimeoutError:
                logger.info(f"Observer {connection.role} idle for {self.idle_timeout}s - closing")
                await websocket.close(code=CLOSE_IDLE, reason="idle timeout")
                return

            try:
                message = json.loads(raw)
                reply = await self.handle_message(connection, message)
            except ValueError:
                reply = make_message(MessageType.ERROR, message="invalid JSON")
            except Malformed as e:
                reply = make_message(MessageType.ERROR, message=e.message)

            if reply is not None:
                await connection.send(reply)

    async def handle_message(self, connection: ObserverConnection, message: dict) -> Optional[dict]:
        """Process one inbound message and return the direct reply, if any."""
        if not isinstance(message, dict):
            raise Malformed("message must be an object")
        message_type = message.get("type")

        if message_type == MessageType.HEARTBEAT.value:
            return make_message(MessageType.HEARTBEAT_RESPONSE)

        if message_type in (MessageType.TRANSACTION.value, MessageType.ACTIVITY_SYNC.value):
            if not connection.can_write:
                return make_message(MessageType.ERROR, message="observer is read-only")
            record = ActivityRecord.from_dict(message.get("data"))
            await self.bus.publish(record)
            return None

        if message_type == MessageType.TRANSACTION_UPDATE.value:
            if not connection.can_write:
                return make_message(MessageType.ERROR, message="observer is read-only")
            data = message.get("data") or {}
            if not isinstance(data, dict) or not data.get("hash"):
                raise Malformed("TRANSACTION_UPDATE requires data.hash")
            details = data.get("details") if isinstance(data.get("details"), dict) else None
            await self.bus.update_status(data["hash"], parse_status(data.get("status")), details)
            return None

        if message_type == MessageType.HANDSHAKE.value:
            return None

        return make_message(MessageType.ERROR, message=f"unknown message type: {message_type}")
