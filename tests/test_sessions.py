"""Tests for the session store."""

import pytest

from conftest import ORIGIN, TEST_ETH_ADDRESS
from nijawallet.errors import Malformed, Unauthorized
from nijawallet.sessions import SessionDenial, SessionDenied, SessionState, SessionStore
from nijawallet.storage import NS_SESSION

DAY_MS = 24 * 60 * 60 * 1000


class TestSessionStore:
    """Tests for SessionStore."""

    @pytest.mark.asyncio
    async def test_create_and_validate(self, sessions):
        session = await sessions.create(TEST_ETH_ADDRESS, "0xaa36a7", ORIGIN)

        validated = await sessions.validate(session.id, ORIGIN)

        assert validated.address == TEST_ETH_ADDRESS
        assert validated.chain_id == "0xaa36a7"
        assert validated.state == SessionState.ACTIVE
        assert len(session.id) >= 32

    @pytest.mark.asyncio
    async def test_unknown_session(self, sessions):
        with pytest.raises(SessionDenied) as exc_info:
            await sessions.validate("does-not-exist", ORIGIN)

        assert exc_info.value.denial == SessionDenial.NOT_FOUND
        assert isinstance(exc_info.value, Unauthorized)

    @pytest.mark.asyncio
    async def test_garbage_session_id_is_not_found(self, sessions):
        with pytest.raises(SessionDenied) as exc_info:
            await sessions.validate("../../etc/passwd", ORIGIN)

        assert exc_info.value.denial == SessionDenial.NOT_FOUND

    @pytest.mark.asyncio
    async def test_origin_mismatch(self, sessions):
        session = await sessions.create(TEST_ETH_ADDRESS, "0xaa36a7", ORIGIN)

        with pytest.raises(SessionDenied) as exc_info:
            await sessions.validate(session.id, "https://evil.example")

        assert exc_info.value.denial == SessionDenial.ORIGIN_MISMATCH
        # The rightful origin is unaffected
        assert (await sessions.validate(session.id, ORIGIN)).address == TEST_ETH_ADDRESS

    @pytest.mark.asyncio
    async def test_origin_checked_before_expiry(self, sessions, clock):
        session = await sessions.create(TEST_ETH_ADDRESS, "0xaa36a7", ORIGIN)
        clock.advance(DAY_MS * 2)

        with pytest.raises(SessionDenied) as exc_info:
            await sessions.validate(session.id, "https://evil.example")

        assert exc_info.value.denial == SessionDenial.ORIGIN_MISMATCH

    @pytest.mark.asyncio
    async def test_expiry_boundary(self, sessions, clock, file_store):
        """Valid at exactly 24h, expired 1ms later, then gone from the store."""
        session = await sessions.create(TEST_ETH_ADDRESS, "0xaa36a7", ORIGIN)

        clock.advance(DAY_MS)
        await sessions.validate(session.id, ORIGIN)

        clock.advance(1)
        with pytest.raises(SessionDenied) as exc_info:
            await sessions.validate(session.id, ORIGIN)

        assert exc_info.value.denial == SessionDenial.EXPIRED
        assert await file_store.get(NS_SESSION, session.id) is None

    @pytest.mark.asyncio
    async def test_validation_does_not_extend_lifetime(self, sessions, clock):
        session = await sessions.create(TEST_ETH_ADDRESS, "0xaa36a7", ORIGIN)
        for _ in range(3):
            clock.advance(DAY_MS // 3)
            await sessions.validate(session.id, ORIGIN)

        clock.advance(DAY_MS // 3)
        with pytest.raises(SessionDenied):
            await sessions.validate(session.id, ORIGIN)

    @pytest.mark.asyncio
    async def test_write_through_survives_restart(self, sessions, file_store, clock):
        session = await sessions.create(TEST_ETH_ADDRESS, "0xaa36a7", ORIGIN)
        clock.advance(5000)
        await sessions.validate(session.id, ORIGIN)

        restarted = SessionStore(file_store, clock=clock)
        validated = await restarted.validate(session.id, ORIGIN)

        assert validated.address == TEST_ETH_ADDRESS
        stored = await file_store.get(NS_SESSION, session.id)
        assert stored["last_accessed_at"] == clock.now

    @pytest.mark.asyncio
    async def test_touch_refreshes_without_origin(self, sessions, clock):
        session = await sessions.create(TEST_ETH_ADDRESS, "0xaa36a7", ORIGIN)
        clock.advance(1000)

        touched = await sessions.touch(session.id)

        assert touched.last_accessed_at == clock.now
        assert touched.created_at == session.created_at

    @pytest.mark.asyncio
    async def test_revoke(self, sessions):
        session = await sessions.create(TEST_ETH_ADDRESS, "0xaa36a7", ORIGIN)

        assert await sessions.revoke(session.id) is True
        assert await sessions.revoke(session.id) is False
        with pytest.raises(SessionDenied) as exc_info:
            await sessions.validate(session.id, ORIGIN)
        assert exc_info.value.denial == SessionDenial.NOT_FOUND

    @pytest.mark.asyncio
    async def test_purge_expired(self, sessions, clock):
        old = await sessions.create(TEST_ETH_ADDRESS, "0xaa36a7", ORIGIN)
        clock.advance(DAY_MS - 1000)
        fresh = await sessions.create(TEST_ETH_ADDRESS, "0xaa36a7", ORIGIN)
        clock.advance(2000)

        assert await sessions.purge_expired() == 1
        await sessions.validate(fresh.id, ORIGIN)
        with pytest.raises(SessionDenied):
            await sessions.validate(old.id, ORIGIN)

    @pytest.mark.asyncio
    async def test_expires_in(self, sessions, clock):
        session = await sessions.create(TEST_ETH_ADDRESS, "0xaa36a7", ORIGIN)
        clock.advance(1000)

        assert sessions.expires_in_ms(session) == DAY_MS - 1000
        assert sessions.expires_in_ms(session, now=clock.now + DAY_MS) == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("address,chain_id,origin", [
        ("", "0xaa36a7", ORIGIN),
        (TEST_ETH_ADDRESS, " ", ORIGIN),
        (TEST_ETH_ADDRESS, "0xaa36a7", None),
    ])
    async def test_create_requires_fields(self, sessions, address, chain_id, origin):
        with pytest.raises(Malformed):
            await sessions.create(address, chain_id, origin)
