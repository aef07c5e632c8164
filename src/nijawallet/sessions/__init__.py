"""Origin-bound session store."""

from nijawallet.sessions.models import Session, SessionDenial, SessionDenied, SessionState
from nijawallet.sessions.store import SessionStore, now_ms

__all__ = [
    "Session",
    "SessionDenial",
    "SessionDenied",
    "SessionState",
    "SessionStore",
    "now_ms",
]
