"""Confirmation watcher.

Polls chain endpoints for the final status of pending activity records and
moves them to confirmed or failed. At start-up every record still pending in
the store is re-tracked, so a restart never strands a pending transaction.
"""

import asyncio
import logging
from typing import Optional

from nijawallet.activity.bus import ActivityBus
from nijawallet.activity.models import ActivityRecord, ActivityStatus
from nijawallet.chain.base import ChainEndpoint
from nijawallet.errors import WalletError
from nijawallet.hdwallet.base import ChainTag

logger = logging.getLogger(__name__)


class ConfirmationWatcher:
    """Tracks pending hashes until they reach a final status.

    Args:
        bus: Activity bus that owns the records
        endpoints: Endpoint per chain
        poll_interval: Seconds between polls of one hash
        max_polls: Polls before a hash is left pending for manual reconciliation
    """

    def __init__(
        self,
        bus: ActivityBus,
        endpoints: dict[ChainTag, ChainEndpoint],
        poll_interval: float = 5.0,
        max_polls: int = 60,
    ):
        self.bus = bus
        self.endpoints = endpoints
        self.poll_interval = poll_interval
        self.max_polls = max_polls
        self._tasks: dict[str, asyncio.Task] = {}

    @property
    def tracked(self) -> list[str]:
        return list(self._tasks)

    def _endpoint_for(self, record: ActivityRecord) -> Optional[ChainEndpoint]:
        chain = (record.details or {}).get("chain")
        if chain is None:
            chain = ChainTag.ETH.value if record.hash.startswith("0x") else ChainTag.SOL.value
        try:
            return self.endpoints.get(ChainTag(chain))
        except ValueError:
            return None

    def track(self, record: ActivityRecord) -> bool:
        """Start polling a pending record. Returns False if nothing to do."""
        if record.status is not ActivityStatus.PENDING or record.hash in self._tasks:
            return False
        endpoint = self._endpoint_for(record)
        if endpoint is None:
            logger.warning(f"No endpoint to watch {record.hash[:12]}...")
            return False
        task = asyncio.create_task(self._watch(record.hash, endpoint))
        self._tasks[record.hash] = task
        task.add_done_callback(lambda t: self._finished(record.hash, t))
        return True

    def _finished(self, tx_hash: str, task: asyncio.Task) -> None:
        self._tasks.pop(tx_hash, None)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Watcher for {tx_hash[:12]}... crashed: {error!r}")

    def reconcile_pending(self) -> int:
        """Re-track every pending record (called at start-up)."""
        count = sum(1 for record in self.bus.pending() if self.track(record))
        if count:
            logger.info(f"Re-tracking {count} pending transactions")
        return count

    async def check(self, tx_hash: str) -> Optional[ActivityRecord]:
        """Poll once and apply a final status if the chain reports one.

        Raises:
            UpstreamUnavailable: The endpoint could not be reached
        """
        record = self.bus.get(tx_hash)
        if record is None or record.status is not ActivityStatus.PENDING:
            return record
        endpoint = self._endpoint_for(record)
        if endpoint is None:
            return record

        status = await endpoint.get_status(tx_hash)
        if status is None:
            return record
        updated = await self.bus.update_status(tx_hash, status)
        return updated or self.bus.get(tx_hash)

    async def _watch(self, tx_hash: str, endpoint: ChainEndpoint) -> None:
        for poll in range(1, self.max_polls + 1):
            try:
                status = await endpoint.get_status(tx_hash)
            except WalletError as e:
                if not e.retryable:
                    logger.error(f"Status poll for {tx_hash[:12]}... rejected: {e.message}")
                    return
                logger.warning(f"Status poll {poll} for {tx_hash[:12]}... failed: {e.message}")
                status = None

            if status is not None:
                await self.bus.update_status(tx_hash, status)
                return
            await asyncio.sleep(self.poll_interval)

        logger.warning(
            f"{tx_hash[:12]}... still pending after {self.max_polls} polls - needs reconciliation"
        )

    async def close(self) -> None:
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
