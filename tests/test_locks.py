"""Tests for per-wallet locks."""

import asyncio

import pytest

from nijawallet.errors import WalletBusy
from nijawallet.utils import WalletLocks

WALLET = "0x9858EfFD232B4033E47d90003D41EC34EcaEda94"


class TestWalletLocks:
    """Tests for WalletLocks."""

    @pytest.mark.asyncio
    async def test_same_lock_for_address_case(self):
        locks = WalletLocks()

        assert locks.get(WALLET) is locks.get(WALLET.lower())

    @pytest.mark.asyncio
    async def test_serializes_critical_sections(self):
        locks = WalletLocks()
        order = []

        async def worker(name):
            async with locks.hold(WALLET, operation=name):
                order.append(f"{name}-start")
                await asyncio.sleep(0.01)
                order.append(f"{name}-end")

        await asyncio.gather(worker("a"), worker("b"))

        assert order == ["a-start", "a-end", "b-start", "b-end"]

    @pytest.mark.asyncio
    async def test_timeout_raises_busy(self):
        locks = WalletLocks(timeout=0.05)

        async with locks.hold(WALLET):
            assert locks.is_locked(WALLET)
            with pytest.raises(WalletBusy):
                async with locks.hold(WALLET.lower()):
                    pass

        assert not locks.is_locked(WALLET)

    @pytest.mark.asyncio
    async def test_different_wallets_do_not_block(self):
        locks = WalletLocks(timeout=0.05)

        async with locks.hold(WALLET):
            async with locks.hold("0x" + "11" * 20):
                assert locks.is_locked(WALLET)

    @pytest.mark.asyncio
    async def test_released_on_error(self):
        locks = WalletLocks()

        with pytest.raises(RuntimeError):
            async with locks.hold(WALLET):
                raise RuntimeError("boom")

        assert not locks.is_locked(WALLET)
        locks.clear()
        assert locks._locks == {}
