"""Process-wide service container.

Every long-lived component is constructed here at start-up, handed to the
components that need it, and torn down at shutdown. Nothing is kept in
module-level globals.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from nijawallet.activity.bus import ActivityBus
from nijawallet.activity.server import ActivityChannel
from nijawallet.activity.watcher import ConfirmationWatcher
from nijawallet.bridge import ProviderBridge
from nijawallet.chain import ChainEndpoint, create_endpoints
from nijawallet.config import Settings
from nijawallet.crypto import SeedVault
from nijawallet.errors import InvalidSeed
from nijawallet.hdwallet import Keyring
from nijawallet.hdwallet.base import ChainTag
from nijawallet.policy import PolicyStore
from nijawallet.sessions import SessionStore
from nijawallet.storage import KeyValueStore, create_store
from nijawallet.utils.locks import WalletLocks

logger = logging.getLogger(__name__)


@dataclass
class WalletServices:
    """Everything the HTTP and WebSocket surfaces call into."""

    settings: Settings
    store: KeyValueStore
    keyring: Keyring
    sessions: SessionStore
    policies: PolicyStore
    bus: ActivityBus
    channel: ActivityChannel
    endpoints: dict[ChainTag, ChainEndpoint]
    watcher: ConfirmationWatcher
    locks: WalletLocks
    bridge: ProviderBridge

    @classmethod
    async def start(
        cls,
        settings: Settings,
        store: Optional[KeyValueStore] = None,
        endpoints: Optional[dict[ChainTag, ChainEndpoint]] = None,
    ) -> "WalletServices":
        """Build and start all services.

        Args:
            settings: Application settings
            store: Backing store override (defaults to the configured backend)
            endpoints: Chain endpoint overrides (defaults from settings)
        """
        store = store or create_store(settings)
        await store.open()

        try:
            vault = SeedVault.from_settings(settings)
        except InvalidSeed as e:
            logger.error(f"Seed could not be unlocked: {e.message}")
            vault = None
        keyring = Keyring(vault, max_account_index=settings.max_account_index)
        await asyncio.to_thread(keyring.warm_up)

        sessions = SessionStore(store, ttl_ms=settings.session_ttl_ms)
        await sessions.purge_expired()

        bus = ActivityBus(store, queue_size=settings.observer_queue_size)
        await bus.open()

        endpoints = endpoints or create_endpoints(settings)
        watcher = ConfirmationWatcher(
            bus,
            endpoints,
            poll_interval=settings.watcher_poll_interval,
            max_polls=settings.watcher_max_polls,
        )
        watcher.reconcile_pending()

        policies = PolicyStore(store)
        locks = WalletLocks(timeout=settings.wallet_lock_timeout)
        bridge = ProviderBridge(
            sessions=sessions,
            policies=policies,
            bus=bus,
            keyring=keyring,
            endpoints=endpoints,
            locks=locks,
            watcher=watcher,
        )
        channel = ActivityChannel(
            bus,
            idle_timeout=settings.observer_idle_timeout,
            handshake_timeout=settings.observer_handshake_timeout,
            write_token=settings.admin_token,
        )

        logger.info(
            f"Services started: store={store.name} dry_run={settings.dry_run} "
            f"wallet_initialized={keyring.initialized}"
        )
        return cls(
            settings=settings,
            store=store,
            keyring=keyring,
            sessions=sessions,
            policies=policies,
            bus=bus,
            channel=channel,
            endpoints=endpoints,
            watcher=watcher,
            locks=locks,
            bridge=bridge,
        )

    async def stop(self) -> None:
        """Tear everything down in reverse order of start-up."""
        await self.watcher.close()
        await self.bus.close()
        for endpoint in self.endpoints.values():
            await endpoint.close()
        self.sessions.close()
        self.keyring.forget()
        await self.store.close()
        logger.info("Services stopped")
