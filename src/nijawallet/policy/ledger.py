"""Rolling-window spend aggregation.

The ledger is derived from activity records and is not authoritative; the
engine compares policy limits against it at decision time.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Iterable

from nijawallet.hdwallet.base import addresses_equal

DAY = timedelta(days=1)
WEEK = timedelta(days=7)
MONTH = timedelta(days=30)

# Activity types that move value out of the wallet
OUTGOING_TYPES = frozenset({"send", "transfer", "buy", "mint"})


def _plain(value) -> str:
    return getattr(value, "value", value)


def to_epoch_ms(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp() * 1000)


@dataclass
class SpendingLedger:
    """Native-unit spend entries as (epoch ms, amount) pairs."""

    entries: list[tuple[int, Decimal]] = field(default_factory=list)

    @classmethod
    def from_activities(cls, records: Iterable, address: str) -> "SpendingLedger":
        """Build a ledger from the identity's non-failed outgoing native transfers.

        Token transfers are not counted; limits are expressed in native units.
        """
        entries = []
        for record in records:
            if _plain(record.status) == "failed" or _plain(record.type) not in OUTGOING_TYPES:
                continue
            if not addresses_equal(record.attributed_address, address):
                continue
            details = record.details or {}
            if details.get("token"):
                continue
            try:
                amount = Decimal(str(details.get("value", "0")))
            except (InvalidOperation, ValueError):
                continue
            entries.append((record.timestamp, amount))
        return cls(entries=entries)

    def spent_within(self, window: timedelta, now: datetime) -> Decimal:
        """Sum of entries in (now - window, now]."""
        end = to_epoch_ms(now)
        start = end - int(window.total_seconds() * 1000)
        return sum((amount for ts, amount in self.entries if start < ts <= end), Decimal("0"))
