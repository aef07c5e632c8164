"""Pytest configuration and fixtures."""

import os

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "true"
os.environ["DRY_RUN"] = "true"
os.environ["ADMIN_TOKEN"] = ""

from nijawallet.activity.bus import ActivityBus
from nijawallet.config import Settings
from nijawallet.crypto import SeedVault
from nijawallet.hdwallet import Keyring
from nijawallet.policy import PolicyStore
from nijawallet.services import WalletServices
from nijawallet.sessions import SessionStore
from nijawallet.storage import FileKeyValueStore, SqlKeyValueStore

# BIP-39 test vector; account 0 on m/44'/60'/0'/0/0
TEST_MNEMONIC = (
    "abandon abandon abandon abandon abandon abandon "
    "abandon abandon abandon abandon abandon about"
)
TEST_ETH_ADDRESS = "0x9858EfFD232B4033E47d90003D41EC34EcaEda94"

ORIGIN = "https://dapp.example"
RECIPIENT = "0x" + "11" * 20


class FakeClock:
    """Settable epoch-millisecond clock."""

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings(tmp_path):
    """Settings for a dry-run wallet on a temporary file store."""
    return Settings(
        _env_file=None,
        environment="test",
        wallet_seed_phrase=TEST_MNEMONIC,
        storage_backend="file",
        data_dir=str(tmp_path / "data"),
        dry_run=True,
        admin_token="",
        public_base_url="http://wallet.test",
        watcher_poll_interval=0.01,
        watcher_max_polls=5,
        observer_idle_timeout=5.0,
        observer_handshake_timeout=2.0,
    )


@pytest_asyncio.fixture
async def file_store(tmp_path):
    store = FileKeyValueStore(str(tmp_path / "store"))
    await store.open()
    yield store
    await store.close()


@pytest_asyncio.fixture
async def sql_store():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    store = SqlKeyValueStore(engine)
    await store.open()
    yield store
    await store.close()
    await engine.dispose()


@pytest.fixture
def keyring():
    keyring = Keyring(SeedVault.from_plaintext(TEST_MNEMONIC))
    keyring.warm_up()
    return keyring


@pytest_asyncio.fixture
async def sessions(file_store, clock):
    return SessionStore(file_store, ttl_ms=24 * 60 * 60 * 1000, clock=clock)


@pytest_asyncio.fixture
async def bus(file_store):
    bus = ActivityBus(file_store, queue_size=8)
    await bus.open()
    yield bus
    await bus.close()


@pytest.fixture
def policies(file_store):
    return PolicyStore(file_store)


@pytest_asyncio.fixture
async def services(settings):
    """Fully started service container."""
    services = await WalletServices.start(settings)
    yield services
    await services.stop()


@pytest_asyncio.fixture
async def client(services):
    """Async client against an app using the started services."""
    from nijawallet.api.app import create_app

    app = create_app(settings=services.settings, services=services)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
