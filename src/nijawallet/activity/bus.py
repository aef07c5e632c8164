"""In-process publish/subscribe for activity records.

Every subscriber owns a bounded FIFO queue and all fan-out happens while the
bus lock is held, so each subscriber sees updates for a given hash in publish
order. A subscriber that falls behind far enough to fill its queue is closed;
it reconnects and re-reads the current state instead of receiving a gapped
stream.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from nijawallet.activity.models import ActivityRecord, ActivityStatus
from nijawallet.hdwallet.base import addresses_equal
from nijawallet.storage import NS_ACTIVITY, KeyValueStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActivityEvent:
    """One fan-out item.

    Attributes:
        record: Record state after the change
        created: True for a newly seen hash, False for a status/details update
    """

    record: ActivityRecord
    created: bool


_CLOSED = object()


class Subscription:
    """A subscriber's ordered view of the bus."""

    def __init__(self, maxsize: int, address: Optional[str] = None):
        self.address = address
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize + 1)
        self._maxsize = maxsize
        self.closed = False
        self.overflowed = False

    def wants(self, record: ActivityRecord) -> bool:
        return self.address is None or addresses_equal(self.address, record.attributed_address)

    def offer(self, event: ActivityEvent) -> bool:
        """Enqueue without waiting. Closes the subscription on overflow."""
        if self.closed:
            return False
        if self._queue.qsize() >= self._maxsize:
            self.overflowed = True
            logger.warning("Activity subscriber queue full - closing subscriber")
            self.close()
            return False
        self._queue.put_nowait(event)
        return True

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        # Discard undelivered events; the reserved slot always fits the sentinel
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)

    async def get(self) -> Optional[ActivityEvent]:
        """Next event, or None once the subscription is closed."""
        item = await self._queue.get()
        if item is _CLOSED:
            self._queue.put_nowait(_CLOSED)
            return None
        return item

    def __aiter__(self) -> AsyncIterator[ActivityEvent]:
        return self

    async def __anext__(self) -> ActivityEvent:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event


class ActivityBus:
    """Owns the activity records and fans changes out to subscribers.

    Records are written through to the backing store before any subscriber
    sees them. Status only moves forward (pending -> confirmed|failed);
    attempts to move it backward are ignored.
    """

    def __init__(self, store: KeyValueStore, queue_size: int = 256):
        self._store = store
        self.queue_size = queue_size
        self._records: dict[str, ActivityRecord] = {}
        self._subscribers: set[Subscription] = set()
        self._lock = asyncio.Lock()

    async def open(self) -> None:
        """Load persisted records."""
        loaded = 0
        for data in await self._store.list(NS_ACTIVITY):
            try:
                record = ActivityRecord.from_dict(data)
            except Exception as e:
                logger.warning(f"Skipping unreadable activity record: {e}")
                continue
            self._records[record.hash] = record
            loaded += 1
        logger.info(f"Activity bus loaded {loaded} records")

    async def close(self) -> None:
        async with self._lock:
            for subscription in list(self._subscribers):
                subscription.close()
            self._subscribers.clear()

    async def publish(self, record: ActivityRecord) -> Optional[ActivityRecord]:
        """Create or update a record and fan it out.

        Returns:
            The stored record, or None if the update was a status regression
            or changed nothing (no fan-out happens in either case)
        """
        async with self._lock:
            existing = self._records.get(record.hash)
            if existing is None:
                stored, created = record, True
            else:
                if not existing.status.can_become(record.status):
                    logger.warning(
                        f"Ignoring status regression for {record.hash[:12]}...: "
                        f"{existing.status.value} -> {record.status.value}"
                    )
                    return None
                stored, created = existing.merged_with(record), False
                if stored == existing:
                    return None

            await self._store.put(NS_ACTIVITY, stored.hash, stored.to_dict())
            self._records[stored.hash] = stored
            self._fan_out(ActivityEvent(record=stored, created=created))

        logger.info(
            f"Activity {stored.hash[:12]}... {'created' if created else 'updated'}: "
            f"{stored.type.value}/{stored.status.value}"
        )
        return stored

    async def update_status(
        self,
        tx_hash: str,
        status: ActivityStatus,
        details: Optional[dict] = None,
    ) -> Optional[ActivityRecord]:
        """Transition a known record. Unknown hashes are logged and ignored."""
        existing = self._records.get(tx_hash)
        if existing is None:
            logger.warning(f"Status update for unknown activity {tx_hash[:12]}...")
            return None
        update = ActivityRecord(
            hash=tx_hash,
            type=existing.type,
            status=status,
            timestamp=existing.timestamp,
            attributed_address=existing.attributed_address,
            details=details or {},
        )
        return await self.publish(update)

    def _fan_out(self, event: ActivityEvent) -> None:
        for subscription in list(self._subscribers):
            if subscription.closed:
                self._subscribers.discard(subscription)
                continue
            if subscription.wants(event.record) and not subscription.offer(event):
                self._subscribers.discard(subscription)

    async def subscribe(self, address: Optional[str] = None) -> tuple[Subscription, list[ActivityRecord]]:
        """Register a subscriber and return it with the current state.

        Both are taken under the bus lock, so every later change reaches the
        subscription and none is already reflected in the snapshot.
        """
        async with self._lock:
            subscription = Subscription(self.queue_size, address=address)
            self._subscribers.add(subscription)
            return subscription, self._snapshot(address)

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription.close()
        self._subscribers.discard(subscription)

    def _snapshot(self, address: Optional[str]) -> list[ActivityRecord]:
        records = [
            r for r in self._records.values()
            if address is None or addresses_equal(address, r.attributed_address)
        ]
        return sorted(records, key=lambda r: r.timestamp)

    def snapshot(self, address: Optional[str] = None) -> list[ActivityRecord]:
        """Current records, oldest first, optionally for one identity."""
        return self._snapshot(address)

    def get(self, tx_hash: str) -> Optional[ActivityRecord]:
        return self._records.get(tx_hash)

    def pending(self) -> list[ActivityRecord]:
        return [r for r in self._snapshot(None) if r.status is ActivityStatus.PENDING]

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
