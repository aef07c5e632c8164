"""Parental-control policy engine.

Checks run in a fixed order, allow-lists first, then limits, then time:

1. policy disabled -> allowed
2. recipient allow-list
3. DApp allow-list
4. token allow-list
5. per-transaction limit
6. daily / weekly / monthly rolling limits (including this transaction)
7. time restrictions

The engine performs no I/O and reads no clock: identical inputs always give
the identical decision.
"""

import logging
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from nijawallet.hdwallet.base import addresses_equal
from nijawallet.policy.ledger import DAY, MONTH, WEEK, SpendingLedger
from nijawallet.policy.models import PolicyDecision, PolicySnapshot, ProposedTransaction, SpendingLimits

logger = logging.getLogger(__name__)

REASON_RECIPIENT = "recipient not allowed"
REASON_DAPP = "dapp not allowed"
REASON_TOKEN = "token not allowed"
REASON_PER_TX = "exceeds per-transaction limit"
REASON_HOURS = "outside allowed hours"


def _normalize_origin(origin: str) -> str:
    return origin.strip().rstrip("/").lower()


def _token_key(token: str) -> str:
    token = token.strip()
    if token.lower().startswith("0x"):
        return token.lower()
    # Symbols compare case-insensitively; base58 mints are case-sensitive
    if len(token) <= 10:
        return token.upper()
    return token


def _local_time(now: datetime, tz_name: str) -> datetime:
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(ZoneInfo(tz_name))


def authorize(
    policy: PolicySnapshot,
    tx: ProposedTransaction,
    ledger: SpendingLedger,
    now: datetime,
) -> PolicyDecision:
    """Decide whether a proposed transaction may be signed.

    Args:
        policy: Current policy snapshot for the sending identity
        tx: Proposed transaction (value in native units)
        ledger: Spend history of the sending identity
        now: Evaluation instant

    Returns:
        PolicyDecision.allow() or PolicyDecision.deny(reason)
    """
    if not policy.enabled:
        return PolicyDecision.allow()

    if policy.allowed_addresses and not any(
        addresses_equal(tx.to, allowed) for allowed in policy.allowed_addresses
    ):
        return PolicyDecision.deny(REASON_RECIPIENT)

    if policy.allowed_dapps and tx.origin is not None:
        allowed = {_normalize_origin(o) for o in policy.allowed_dapps}
        if _normalize_origin(tx.origin) not in allowed:
            return PolicyDecision.deny(REASON_DAPP)

    if policy.allowed_tokens and tx.token:
        allowed = {_token_key(t) for t in policy.allowed_tokens}
        if _token_key(tx.token) not in allowed:
            return PolicyDecision.deny(REASON_TOKEN)

    limits = policy.spending_limits
    if SpendingLimits.is_set(limits.per_transaction) and tx.value > limits.per_transaction:
        return PolicyDecision.deny(REASON_PER_TX)

    for label, limit, window in (
        ("daily", limits.daily, DAY),
        ("weekly", limits.weekly, WEEK),
        ("monthly", limits.monthly, MONTH),
    ):
        if not SpendingLimits.is_set(limit):
            continue
        spent = ledger.spent_within(window, now)
        if spent + tx.value > limit:
            logger.debug(f"{label} limit hit: spent={spent} value={tx.value} limit={limit}")
            return PolicyDecision.deny(f"exceeds {label} limit")

    if policy.time_restrictions is not None:
        local = _local_time(now, policy.timezone)
        weekday = (local.weekday() + 1) % 7  # 0 = Sunday
        restrictions = policy.time_restrictions
        if not (restrictions.hour_allowed(local.hour) and restrictions.day_allowed(weekday)):
            return PolicyDecision.deny(REASON_HOURS)

    return PolicyDecision.allow()
