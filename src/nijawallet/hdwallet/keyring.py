"""Process-owned keyring.

Resolves "which derived keypair controls this address" and caches derived
keypairs in memory. Nothing derived here is ever persisted.
"""

import asyncio
import logging
import threading
from typing import Optional

from nijawallet.crypto import SeedVault
from nijawallet.errors import DerivationError, InvalidSeed, WalletNotInitialized
from nijawallet.hdwallet.base import ChainKeypair, ChainTag, normalize_address
from nijawallet.hdwallet.factory import derive_keypair, parse_chain_tag

logger = logging.getLogger(__name__)


class Keyring:
    """Derives and caches keypairs from the custodial seed.

    If the seed is missing or derivation of the primary accounts fails at
    start-up, the keyring reports itself uninitialized and every signing
    path fails with WalletNotInitialized. It never falls back to a fresh
    random key.
    """

    def __init__(self, vault: Optional[SeedVault], max_account_index: int = 4):
        self._vault = vault
        self.max_account_index = max_account_index
        self._cache: dict[tuple[ChainTag, int], ChainKeypair] = {}
        self._by_address: dict[str, ChainKeypair] = {}
        self._lock = threading.Lock()
        self._init_error: Optional[str] = None if vault else "No seed phrase configured"

    @property
    def initialized(self) -> bool:
        return self._vault is not None and self._init_error is None

    @property
    def init_error(self) -> Optional[str]:
        return self._init_error

    def warm_up(self) -> None:
        """Derive accounts 0..max_account_index on every chain.

        Called once at start-up, so address lookups afterwards are cache
        hits. A failure marks the wallet uninitialized rather than crashing
        the process.
        """
        if self._vault is None:
            logger.warning("Keyring has no seed - signing disabled")
            return

        for chain_tag in ChainTag:
            try:
                keypairs = [self.keypair(chain_tag, i) for i in range(self.max_account_index + 1)]
            except (InvalidSeed, DerivationError) as e:
                self._init_error = f"{chain_tag.value}: {e.message}"
                logger.error("Keyring initialization failed: %s", self._init_error)
                return
            logger.info(
                "Keyring ready for %s (%s..., %d accounts)",
                chain_tag.value, keypairs[0].address[:10], len(keypairs),
            )

    def _require_vault(self) -> SeedVault:
        if self._vault is None or self._init_error:
            raise WalletNotInitialized(self._init_error or "Wallet is not initialized")
        return self._vault

    def keypair(self, chain_tag, account_index: int = 0) -> ChainKeypair:
        """Get (deriving if needed) the keypair for a chain and account."""
        tag = parse_chain_tag(chain_tag)
        key = (tag, account_index)

        with self._lock:
            cached = self._cache.get(key)
            if cached is not None:
                return cached

        vault = self._require_vault()
        with vault.unlocked() as phrase:
            keypair = derive_keypair(phrase, tag, account_index)

        with self._lock:
            self._cache[key] = keypair
            self._by_address[normalize_address(keypair.address)] = keypair
        return keypair

    def find_keypair(self, address: str, chain_tag=None) -> Optional[ChainKeypair]:
        """Find the keypair controlling an address.

        Scans account indexes 0..max_account_index on the given chain (or on
        every chain when chain_tag is None).

        Returns:
            ChainKeypair, or None if the address is not held by this seed
        """
        self._require_vault()
        normalized = normalize_address(address)

        with self._lock:
            cached = self._by_address.get(normalized)
        if cached is not None and (chain_tag is None or cached.chain_tag == parse_chain_tag(chain_tag)):
            return cached

        chains = [parse_chain_tag(chain_tag)] if chain_tag is not None else list(ChainTag)
        for tag in chains:
            for index in range(self.max_account_index + 1):
                keypair = self.keypair(tag, index)
                if normalize_address(keypair.address) == normalized:
                    return keypair
        return None

    async def resolve(self, address: str, chain_tag=None) -> Optional[ChainKeypair]:
        """find_keypair off the event loop (derivation is CPU-bound)."""
        return await asyncio.to_thread(self.find_keypair, address, chain_tag)

    def addresses(self, account_index: int = 0) -> dict[str, str]:
        """Addresses of one account on every chain."""
        self._require_vault()
        return {tag.value: self.keypair(tag, account_index).address for tag in ChainTag}

    def forget(self) -> None:
        """Drop every cached keypair (called at shutdown)."""
        with self._lock:
            self._cache.clear()
            self._by_address.clear()
