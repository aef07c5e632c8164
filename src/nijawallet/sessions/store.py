"""Session store: session token -> wallet identity.

The store is an object with an explicit lifecycle, created at start-up and
handed to every component that needs it. The in-memory cache is a read
accelerator only; every mutation is written through to the backing store
before the call returns.
"""

import asyncio
import logging
import secrets
import time
from dataclasses import replace
from typing import Callable, Optional

from nijawallet.errors import Malformed
from nijawallet.sessions.models import Session, SessionDenial, SessionDenied, SessionState
from nijawallet.storage import NS_SESSION, KeyValueStore

logger = logging.getLogger(__name__)

DEFAULT_TTL_MS = 24 * 60 * 60 * 1000


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class SessionStore:
    """Creates, validates and destroys sessions.

    Validation rules, checked in this order:
        1. unknown id -> NotFound
        2. origin differs from the bound origin -> OriginMismatch (no state change)
        3. older than ttl_ms since creation -> Expired (evicted everywhere)
        4. otherwise Active, last_accessed_at refreshed and persisted
    """

    def __init__(
        self,
        store: KeyValueStore,
        ttl_ms: int = DEFAULT_TTL_MS,
        clock: Callable[[], int] = now_ms,
    ):
        self._store = store
        self.ttl_ms = ttl_ms
        self._clock = clock
        self._cache: dict[str, Session] = {}
        self._lock = asyncio.Lock()

    async def create(self, address: str, chain_id: str, origin: str) -> Session:
        """Bind a new session to (address, chain_id, origin)."""
        for name, value in (("address", address), ("chainId", chain_id), ("origin", origin)):
            if not isinstance(value, str) or not value.strip():
                raise Malformed(f"{name} is required")

        now = self._clock()
        session = Session(
            id=secrets.token_urlsafe(32),
            address=address.strip(),
            chain_id=chain_id.strip(),
            origin=origin.strip(),
            created_at=now,
            last_accessed_at=now,
        )
        async with self._lock:
            await self._store.put(NS_SESSION, session.id, session.to_dict())
            self._cache[session.id] = session

        logger.info(f"Session {session.log_id} created for {session.address[:10]}... ({session.origin})")
        return replace(session)

    async def _load(self, session_id: str) -> Optional[Session]:
        cached = self._cache.get(session_id)
        if cached is not None:
            return cached
        try:
            data = await self._store.get(NS_SESSION, session_id)
        except Malformed:
            return None
        if data is None:
            return None
        session = Session.from_dict(data)
        self._cache[session_id] = session
        return session

    async def _evict(self, session_id: str) -> None:
        self._cache.pop(session_id, None)
        await self._store.delete(NS_SESSION, session_id)

    async def validate(self, session_id: Optional[str], origin: Optional[str]) -> Session:
        """Validate a session for a request from ``origin``.

        Returns:
            A copy of the refreshed session

        Raises:
            SessionDenied: NotFound, OriginMismatch or Expired
        """
        if not session_id:
            raise SessionDenied(SessionDenial.NOT_FOUND)

        async with self._lock:
            session = await self._load(session_id)
            if session is None:
                raise SessionDenied(SessionDenial.NOT_FOUND)

            if origin != session.origin:
                logger.warning(
                    f"Session {session.log_id} origin mismatch: bound={session.origin} got={origin}"
                )
                raise SessionDenied(SessionDenial.ORIGIN_MISMATCH)

            now = self._clock()
            if session.age_ms(now) > self.ttl_ms:
                await self._evict(session_id)
                logger.info(f"Session {session.log_id} expired")
                raise SessionDenied(SessionDenial.EXPIRED)

            refreshed = replace(session, last_accessed_at=now, state=SessionState.ACTIVE)
            await self._store.put(NS_SESSION, session_id, refreshed.to_dict())
            self._cache[session_id] = refreshed
            return replace(refreshed)

    async def touch(self, session_id: str) -> Session:
        """Refresh last_accessed_at without an origin check."""
        async with self._lock:
            session = await self._load(session_id)
            if session is None:
                raise SessionDenied(SessionDenial.NOT_FOUND)

            now = self._clock()
            if session.age_ms(now) > self.ttl_ms:
                await self._evict(session_id)
                raise SessionDenied(SessionDenial.EXPIRED)

            refreshed = replace(session, last_accessed_at=now)
            await self._store.put(NS_SESSION, session_id, refreshed.to_dict())
            self._cache[session_id] = refreshed
            return replace(refreshed)

    async def revoke(self, session_id: str) -> bool:
        """Destroy a session. Later validation reports NotFound."""
        async with self._lock:
            session = await self._load(session_id)
            if session is None:
                return False
            await self._evict(session_id)
        logger.info(f"Session {session.log_id} revoked")
        return True

    def expires_in_ms(self, session: Session, now: Optional[int] = None) -> int:
        """Remaining lifetime, never negative."""
        current = self._clock() if now is None else now
        return max(0, session.created_at + self.ttl_ms - current)

    async def purge_expired(self) -> int:
        """Remove every expired session from the backing store.

        Returns:
            Number of sessions removed
        """
        now = self._clock()
        removed = 0
        async with self._lock:
            for data in await self._store.list(NS_SESSION):
                try:
                    session = Session.from_dict(data)
                except (KeyError, ValueError) as e:
                    logger.warning(f"Skipping unreadable session record: {e}")
                    continue
                if session.age_ms(now) > self.ttl_ms:
                    await self._evict(session.id)
                    removed += 1
        if removed:
            logger.info(f"Purged {removed} expired sessions")
        return removed

    def close(self) -> None:
        """Drop the in-memory cache (called at shutdown)."""
        self._cache.clear()
