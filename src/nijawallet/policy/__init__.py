"""Parental-control policy evaluation."""

from nijawallet.policy.engine import authorize
from nijawallet.policy.ledger import SpendingLedger
from nijawallet.policy.models import (
    PolicyDecision,
    PolicySnapshot,
    ProposedTransaction,
    SpendingLimits,
    TimeRestrictions,
    parse_amount,
)
from nijawallet.policy.store import PolicyStore

__all__ = [
    "PolicyDecision",
    "PolicySnapshot",
    "PolicyStore",
    "ProposedTransaction",
    "SpendingLedger",
    "SpendingLimits",
    "TimeRestrictions",
    "authorize",
    "parse_amount",
]
