"""Session models."""

from dataclasses import asdict, dataclass
from enum import Enum

from nijawallet.errors import Unauthorized


class SessionState(str, Enum):
    """Lifecycle of a session."""

    FRESH = "fresh"        # Created, not yet validated
    ACTIVE = "active"      # Validated at least once
    EXPIRED = "expired"    # Older than the session lifetime
    REVOKED = "revoked"    # Explicitly destroyed


class SessionDenial(str, Enum):
    """Why a session failed validation."""

    NOT_FOUND = "NotFound"
    ORIGIN_MISMATCH = "OriginMismatch"
    EXPIRED = "Expired"


class SessionDenied(Unauthorized):
    """Session validation failed.

    Surfaces as Unauthorized at the provider boundary; ``denial`` tells
    which rule rejected it.
    """

    def __init__(self, denial: SessionDenial):
        super().__init__(f"Session rejected: {denial.value}", data={"denial": denial.value})
        self.denial = denial


@dataclass
class Session:
    """Origin-bound credential for one wallet identity.

    Timestamps are epoch milliseconds.
    """

    id: str
    address: str
    chain_id: str
    origin: str
    created_at: int
    last_accessed_at: int
    state: SessionState = SessionState.FRESH

    def age_ms(self, now_ms: int) -> int:
        return now_ms - self.created_at

    def to_dict(self) -> dict:
        data = asdict(self)
        data["state"] = self.state.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Session":
        return cls(
            id=data["id"],
            address=data["address"],
            chain_id=data["chain_id"],
            origin=data["origin"],
            created_at=int(data["created_at"]),
            last_accessed_at=int(data["last_accessed_at"]),
            state=SessionState(data.get("state", SessionState.FRESH.value)),
        )

    @property
    def log_id(self) -> str:
        return f"{self.id[:8]}..."
