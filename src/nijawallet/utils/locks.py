"""Per-wallet critical sections.

"read ledger -> authorize -> sign/submit -> record pending" must run one at a
time per wallet, otherwise two concurrent transactions can both pass a
rolling spend limit against the same stale ledger.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from nijawallet.errors import WalletBusy
from nijawallet.hdwallet.base import normalize_address

logger = logging.getLogger(__name__)


class WalletLocks:
    """Registry of asyncio locks keyed by wallet address.

    Example:
        async with locks.hold(address, operation="sendTransaction"):
            # Check ledger, authorize, submit
            ...
    """

    def __init__(self, timeout: Optional[float] = 30.0):
        """Initialize the registry.

        Args:
            timeout: Maximum time to wait for a lock (None = wait forever)
        """
        self.timeout = timeout
        self._locks: dict[str, asyncio.Lock] = {}

    def get(self, address: str) -> asyncio.Lock:
        """Get or create the lock for an address."""
        key = normalize_address(address)
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    @asynccontextmanager
    async def hold(
        self,
        address: str,
        operation: str = "wallet_operation",
        timeout: Optional[float] = None,
    ) -> AsyncIterator[None]:
        """Hold the wallet's lock for the duration of the block.

        Raises:
            WalletBusy: Lock not acquired within the timeout
        """
        lock = self.get(address)
        wait = self.timeout if timeout is None else timeout

        try:
            if wait:
                await asyncio.wait_for(lock.acquire(), timeout=wait)
            else:
                await lock.acquire()
        except asyncio.TimeoutError:
            logger.warning(f"Lock timeout for {address[:10]}... after {wait}s: {operation}")
            raise WalletBusy(f"Wallet busy: could not start {operation} within {wait}s")

        logger.debug(f"Lock acquired for {address[:10]}...: {operation}")
        try:
            yield
        finally:
            lock.release()
            logger.debug(f"Lock released for {address[:10]}...: {operation}")

    def is_locked(self, address: str) -> bool:
        lock = self._locks.get(normalize_address(address))
        return lock is not None and lock.locked()

    def clear(self) -> None:
        """Drop idle locks."""
        for key in [k for k, lock in self._locks.items() if not lock.locked()]:
            del self._locks[key]
