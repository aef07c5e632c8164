"""Activity records and the real-time channel message types."""

import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional

from nijawallet.errors import Malformed


class ActivityType(str, Enum):
    """Kind of wallet activity."""

    MINT = "mint"
    TRANSFER = "transfer"
    FRACTIONALIZE = "fractionalize"
    SELL = "sell"
    BUY = "buy"
    SEND = "send"
    RECEIVE = "receive"


class ActivityStatus(str, Enum):
    """Status of an activity. Only pending -> confirmed|failed is allowed."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"

    @property
    def is_final(self) -> bool:
        return self is not ActivityStatus.PENDING

    def can_become(self, new: "ActivityStatus") -> bool:
        return self is new or (self is ActivityStatus.PENDING and new.is_final)


class MessageType(str, Enum):
    """Messages exchanged on the /ws activity channel."""

    HANDSHAKE = "HANDSHAKE"
    WELCOME = "WELCOME"
    INITIAL_DATA = "INITIAL_DATA"
    HEARTBEAT = "heartbeat"
    HEARTBEAT_RESPONSE = "heartbeat-response"
    ACTIVITY_UPDATE = "activity-update"
    ACTIVITY_SYNC = "activity-sync"
    TRANSACTION = "TRANSACTION"
    TRANSACTION_UPDATE = "TRANSACTION_UPDATE"
    ERROR = "error"


def make_message(message_type: MessageType, **fields: Any) -> dict:
    """Build a channel message stamped with the current time (epoch ms)."""
    return {"type": message_type.value, **fields, "timestamp": int(time.time() * 1000)}


def parse_status(value: Any) -> ActivityStatus:
    try:
        return ActivityStatus(value)
    except ValueError:
        raise Malformed(f"Unknown activity status: {value!r}")


@dataclass
class ActivityRecord:
    """Audit-trail entry for one transaction, keyed uniquely by hash.

    Attributes:
        hash: Transaction hash (0x hex) or signature (base58)
        type: ActivityType
        status: ActivityStatus
        timestamp: Submission time, epoch milliseconds
        attributed_address: Wallet identity the activity belongs to
        details: Free-form payload (to, value, token, chain, ...)
    """

    hash: str
    type: ActivityType
    status: ActivityStatus
    timestamp: int
    attributed_address: str
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "hash": self.hash,
            "type": self.type.value,
            "status": self.status.value,
            "timestamp": self.timestamp,
            "address": self.attributed_address,
            "details": dict(self.details),
        }

    @classmethod
    def from_dict(cls, data: Any, default_timestamp: Optional[int] = None) -> "ActivityRecord":
        """Parse the wire/persisted form, raising Malformed on bad input."""
        if not isinstance(data, dict):
            raise Malformed("activity must be an object")
        tx_hash = data.get("hash")
        if not isinstance(tx_hash, str) or not tx_hash:
            raise Malformed("activity hash is required")

        try:
            activity_type = ActivityType(data.get("type", ActivityType.TRANSFER.value))
        except ValueError:
            raise Malformed(f"Unknown activity type: {data.get('type')!r}")

        timestamp = data.get("timestamp", default_timestamp)
        if timestamp is None:
            timestamp = int(time.time() * 1000)
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            raise Malformed("activity timestamp must be epoch milliseconds")

        details = data.get("details") or {}
        if not isinstance(details, dict):
            raise Malformed("activity details must be an object")

        return cls(
            hash=tx_hash,
            type=activity_type,
            status=parse_status(data.get("status", ActivityStatus.PENDING.value)),
            timestamp=int(timestamp),
            attributed_address=str(data.get("address") or data.get("attributedAddress") or ""),
            details=details,
        )

    def merged_with(self, update: "ActivityRecord") -> "ActivityRecord":
        """Apply an update: status and details change, identity and timestamp do not."""
        return replace(
            self,
            status=update.status,
            details={**self.details, **update.details},
        )
