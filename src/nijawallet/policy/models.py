"""Policy snapshot and transaction models."""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from nijawallet.errors import Malformed, PolicyRejected

LIMIT_FIELDS = ("perTransaction", "daily", "weekly", "monthly")


def parse_amount(value: Any, field_name: str = "value") -> Decimal:
    """Parse a non-negative decimal amount (str, int or Decimal)."""
    if isinstance(value, bool) or value is None:
        raise Malformed(f"{field_name} must be a number")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise Malformed(f"{field_name} is not a valid number: {value!r}")
    if not amount.is_finite() or amount < 0:
        raise Malformed(f"{field_name} must be a non-negative number")
    return amount


def _optional_limit(value: Any, field_name: str) -> Optional[Decimal]:
    if value is None:
        return None
    return parse_amount(value, field_name)


@dataclass
class SpendingLimits:
    """Native-unit spending limits. None or 0 means no limit of that kind."""

    per_transaction: Optional[Decimal] = None
    daily: Optional[Decimal] = None
    weekly: Optional[Decimal] = None
    monthly: Optional[Decimal] = None

    @staticmethod
    def is_set(limit: Optional[Decimal]) -> bool:
        return limit is not None and limit > 0

    @classmethod
    def from_dict(cls, data: dict) -> "SpendingLimits":
        if not isinstance(data, dict):
            raise Malformed("spendingLimits must be an object")
        return cls(
            per_transaction=_optional_limit(data.get("perTransaction"), "perTransaction"),
            daily=_optional_limit(data.get("daily"), "daily"),
            weekly=_optional_limit(data.get("weekly"), "weekly"),
            monthly=_optional_limit(data.get("monthly"), "monthly"),
        )

    def to_dict(self) -> dict:
        def fmt(v: Optional[Decimal]) -> Optional[str]:
            return None if v is None else str(v)

        return {
            "perTransaction": fmt(self.per_transaction),
            "daily": fmt(self.daily),
            "weekly": fmt(self.weekly),
            "monthly": fmt(self.monthly),
        }


@dataclass
class TimeRestrictions:
    """Allowed local hours [start_hour, end_hour) on the listed weekdays.

    Weekdays use 0 = Sunday ... 6 = Saturday. start_hour > end_hour wraps
    past midnight; start_hour == end_hour places no hour restriction.
    """

    start_hour: int = 0
    end_hour: int = 24
    days_allowed: list[int] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "TimeRestrictions":
        if not isinstance(data, dict):
            raise Malformed("timeRestrictions must be an object")
        start = data.get("startHour", 0)
        end = data.get("endHour", 24)
        days = data.get("daysAllowed") or []
        for name, hour in (("startHour", start), ("endHour", end)):
            if isinstance(hour, bool) or not isinstance(hour, int) or not 0 <= hour <= 24:
                raise Malformed(f"{name} must be an integer between 0 and 24")
        if not isinstance(days, list) or any(
            isinstance(d, bool) or not isinstance(d, int) or not 0 <= d <= 6 for d in days
        ):
            raise Malformed("daysAllowed must be a list of integers 0-6")
        return cls(start_hour=start, end_hour=end, days_allowed=sorted(set(days)))

    def to_dict(self) -> dict:
        return {
            "startHour": self.start_hour,
            "endHour": self.end_hour,
            "daysAllowed": list(self.days_allowed),
        }

    def hour_allowed(self, hour: int) -> bool:
        if self.start_hour == self.end_hour:
            return True
        if self.start_hour < self.end_hour:
            return self.start_hour <= hour < self.end_hour
        return hour >= self.start_hour or hour < self.end_hour

    def day_allowed(self, weekday: int) -> bool:
        return not self.days_allowed or weekday in self.days_allowed


def _string_list(data: dict, key: str) -> list[str]:
    values = data.get(key) or []
    if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
        raise Malformed(f"{key} must be a list of strings")
    return [v.strip() for v in values if v.strip()]


@dataclass
class PolicySnapshot:
    """Parental-control configuration for one wallet identity.

    An empty allow-list places no restriction of that kind; a non-empty one
    lets only listed values pass.
    """

    enabled: bool = False
    spending_limits: SpendingLimits = field(default_factory=SpendingLimits)
    allowed_addresses: list[str] = field(default_factory=list)
    allowed_tokens: list[str] = field(default_factory=list)
    allowed_dapps: list[str] = field(default_factory=list)
    time_restrictions: Optional[TimeRestrictions] = None
    timezone: str = "UTC"

    @classmethod
    def from_dict(cls, data: dict) -> "PolicySnapshot":
        """Build a snapshot from its camelCase wire form, validating every field."""
        if not isinstance(data, dict):
            raise Malformed("policy must be an object")

        enabled = data.get("enabled", False)
        if not isinstance(enabled, bool):
            raise Malformed("enabled must be a boolean")

        timezone = data.get("timezone") or "UTC"
        try:
            ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise Malformed(f"Unknown timezone: {timezone}")

        restrictions = data.get("timeRestrictions")
        return cls(
            enabled=enabled,
            spending_limits=SpendingLimits.from_dict(data.get("spendingLimits") or {}),
            allowed_addresses=_string_list(data, "allowedAddresses"),
            allowed_tokens=_string_list(data, "allowedTokens"),
            allowed_dapps=_string_list(data, "allowedDApps"),
            time_restrictions=TimeRestrictions.from_dict(restrictions) if restrictions else None,
            timezone=timezone,
        )

    def to_dict(self) -> dict:
        return {
            "enabled": self.enabled,
            "spendingLimits": self.spending_limits.to_dict(),
            "allowedAddresses": list(self.allowed_addresses),
            "allowedTokens": list(self.allowed_tokens),
            "allowedDApps": list(self.allowed_dapps),
            "timeRestrictions": self.time_restrictions.to_dict() if self.time_restrictions else None,
            "timezone": self.timezone,
        }


@dataclass(frozen=True)
class ProposedTransaction:
    """A transaction awaiting authorization.

    Attributes:
        to: Recipient address
        value: Amount in native units (ETH, SOL)
        token: Token tag or contract/mint address, None for native transfers
        origin: DApp origin that requested the transaction
    """

    to: str
    value: Decimal
    token: Optional[str] = None
    origin: Optional[str] = None


@dataclass(frozen=True)
class PolicyDecision:
    """Allowed, or Denied with a human-readable reason."""

    allowed: bool
    reason: Optional[str] = None

    @classmethod
    def allow(cls) -> "PolicyDecision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: str) -> "PolicyDecision":
        return cls(allowed=False, reason=reason)

    def raise_for_denial(self) -> None:
        if not self.allowed:
            raise PolicyRejected(self.reason or "denied by policy")
