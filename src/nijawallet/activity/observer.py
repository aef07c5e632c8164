"""Client side of the /ws activity channel.

An ActivityObserver keeps a local view of activity records keyed by hash.
Updates overwrite the stored entry, except that a final status (confirmed,
failed) is never replaced by pending. On disconnect it reconnects with
exponential backoff and gives up after ``max_reconnect_attempts`` failed
attempts in a row, raising ObserverGaveUp so an operator can step in.
"""

import asyncio
import json
import logging
from typing import Awaitable, Callable, Optional

import websockets
from websockets.exceptions import ConnectionClosed

from nijawallet.activity.models import ActivityStatus, MessageType, make_message

logger = logging.getLogger(__name__)

MAX_RECONNECT_ATTEMPTS = 5


class ObserverGaveUp(Exception):
    """Reconnection attempts are exhausted."""

    def __init__(self, url: str, attempts: int, last_error: Optional[BaseException] = None):
        super().__init__(f"Gave up on {url} after {attempts} reconnect attempts: {last_error}")
        self.url = url
        self.attempts = attempts
        self.last_error = last_error


class ActivityObserver:
    """Subscribes to a remote activity channel.

    Args:
        url: ws:// or wss:// URL of the /ws endpoint
        role: Role announced in HANDSHAKE
        address: Only receive activity for this identity (None = all)
        token: Write token, required to publish when the server has one
        max_reconnect_attempts: Consecutive failures before giving up
        backoff_base: First reconnect delay in seconds, doubled per attempt
        heartbeat_interval: Seconds between heartbeats
        idle_timeout: Reconnect if the server sends nothing for this long
        on_update: Called with each record dict applied to the local view
    """

    def __init__(
        self,
        url: str,
        role: str = "observer",
        address: Optional[str] = None,
        token: Optional[str] = None,
        max_reconnect_attempts: int = MAX_RECONNECT_ATTEMPTS,
        backoff_base: float = 1.0,
        heartbeat_interval: float = 10.0,
        idle_timeout: float = 30.0,
        on_update: Optional[Callable[[dict], Awaitable[None]]] = None,
        connect=websockets.connect,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.url = url
        self.role = role
        self.address = address
        self.token = token
        self.max_reconnect_attempts = max_reconnect_attempts
        self.backoff_base = backoff_base
        self.heartbeat_interval = heartbeat_interval
        self.idle_timeout = idle_timeout
        self.on_update = on_update
        self._connect = connect
        self._sleep = sleep
        self.view: dict[str, dict] = {}
        self.connected = False
        self._stop = asyncio.Event()
        self._ws = None

    def backoff_delay(self, attempt: int) -> float:
        """Delay before reconnect attempt ``attempt`` (1-based): 1s, 2s, 4s, ..."""
        return self.backoff_base * (2 ** (attempt - 1))

    def apply(self, record: dict) -> bool:
        """Apply one record to the local view.

        Returns:
            False if the record was ignored (no hash, or a status regression)
        """
        tx_hash = record.get("hash") if isinstance(record, dict) else None
        if not tx_hash:
            return False
        current = self.view.get(tx_hash)
        if current is not None:
            old = current.get("status")
            new = record.get("status")
            if old != ActivityStatus.PENDING.value and new == ActivityStatus.PENDING.value:
                logger.debug(f"Ignoring stale pending update for {tx_hash[:12]}...")
                return False
        self.view[tx_hash] = record
        return True

    async def run(self) -> None:
        """Connect and process messages until stop() is called.

        Raises:
            ObserverGaveUp: After max_reconnect_attempts consecutive failures
        """
        failures = 0
        last_error: Optional[BaseException] = None

        while not self._stop.is_set():
            welcomed = False
            try:
                async with self._connect(self.url) as ws:
                    self._ws = ws
                    await self._send(make_message(
                        MessageType.HANDSHAKE,
                        role=self.role,
                        service=self.role,
                        address=self.address,
                        token=self.token,
                    ))
                    welcomed = await self._session(ws)
            except asyncio.CancelledError:
                raise
            except ConnectionClosed as e:
                last_error = e
                logger.warning(f"Activity channel closed: {e}")
            except (OSError, asyncio.TimeoutError, websockets.InvalidHandshake) as e:
                last_error = e
                logger.warning(f"Activity channel unavailable at {self.url}: {e}")
            finally:
                self._ws = None
                self.connected = False

            if self._stop.is_set():
                break

            failures = 0 if welcomed else failures + 1
            if failures >= self.max_reconnect_attempts:
                logger.error(
                    f"Max reconnection attempts reached ({failures}) - "
                    f"check the activity server at {self.url}"
                )
                raise ObserverGaveUp(self.url, failures, last_error)

            delay = self.backoff_delay(max(failures, 1))
            logger.info(
                f"Reconnecting to activity channel in {delay}s "
                f"(attempt {failures + 1}/{self.max_reconnect_attempts})"
            )
            await self._sleep(delay)

    async def _session(self, ws) -> bool:
        """Process one connection. Returns True if the server sent WELCOME."""
        welcomed = False
        heartbeat = asyncio.create_task(self._heartbeat_loop())
        try:
            while not self._stop.is_set():
                raw = await asyncio.wait_for(ws.recv(), timeout=self.idle_timeout)
                try:
                    message = json.loads(raw)
                except ValueError:
                    logger.warning("Ignoring non-JSON message from activity channel")
                    continue
                if not isinstance(message, dict):
                    continue
                if message.get("type") == MessageType.WELCOME.value:
                    welcomed = True
                    self.connected = True
                    logger.info(f"Connected to activity channel as {self.role}")
                await self.handle_message(message)
        except asyncio.TimeoutError:
            logger.warning(f"No traffic from activity channel for {self.idle_timeout}s")
        except ConnectionClosed:
            if not welcomed:
                raise
            logger.info("Activity channel connection closed")
        finally:
            heartbeat.cancel()
            await asyncio.gather(heartbeat, return_exceptions=True)
        return welcomed

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            await self._send(make_message(MessageType.HEARTBEAT))

    async def _send(self, message: dict) -> None:
        if self._ws is None:
            return
        await self._ws.send(json.dumps(message))

    async def handle_message(self, message: dict) -> None:
        message_type = message.get("type")

        if message_type == MessageType.INITIAL_DATA.value:
            records = message.get("records") or []
            for record in records:
                await self._apply_and_notify(record)
            logger.info(f"Received initial data: {len(records)} records")
        elif message_type in (
            MessageType.ACTIVITY_UPDATE.value,
            MessageType.TRANSACTION.value,
            MessageType.TRANSACTION_UPDATE.value,
        ):
            await self._apply_and_notify(message.get("data") or {})
        elif message_type == MessageType.ERROR.value:
            logger.warning(f"Activity channel error: {message.get('message')}")

    async def _apply_and_notify(self, record: dict) -> None:
        if self.apply(record) and self.on_update is not None:
            await self.on_update(record)

    async def publish(self, record: dict) -> None:
        """Send a record to the server (requires write access)."""
        await self._send(make_message(MessageType.TRANSACTION, data=record))

    async def stop(self) -> None:
        """Stop the run loop and close the current connection."""
        self._stop.set()
        if self._ws is not None:
            await self._ws.close()
