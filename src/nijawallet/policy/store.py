"""Persistence of policy snapshots, one record per wallet identity."""

import logging

from nijawallet.errors import Malformed
from nijawallet.hdwallet.base import normalize_address
from nijawallet.policy.models import PolicySnapshot
from nijawallet.storage import NS_POLICY, KeyValueStore

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset({
    "enabled",
    "spendingLimits",
    "allowedAddresses",
    "allowedTokens",
    "allowedDApps",
    "timeRestrictions",
    "timezone",
})


class PolicyStore:
    """Reads and updates policy snapshots.

    A wallet without a stored snapshot has the default (disabled) policy.
    """

    def __init__(self, store: KeyValueStore):
        self._store = store

    @staticmethod
    def _key(address: str) -> str:
        if not address:
            raise Malformed("address is required")
        return normalize_address(address)

    async def get(self, address: str) -> PolicySnapshot:
        data = await self._store.get(NS_POLICY, self._key(address))
        if data is None:
            return PolicySnapshot()
        return PolicySnapshot.from_dict(data.get("policy", {}))

    async def put(self, address: str, snapshot: PolicySnapshot) -> PolicySnapshot:
        key = self._key(address)
        await self._store.put(NS_POLICY, key, {"address": key, "policy": snapshot.to_dict()})
        return snapshot

    async def update(self, address: str, changes: dict) -> PolicySnapshot:
        """Apply a partial update and persist the result.

        Nested objects (spendingLimits, timeRestrictions) are merged
        field-by-field; lists replace the stored list.
        """
        if not isinstance(changes, dict):
            raise Malformed("policy update must be an object")
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise Malformed(f"Unknown policy fields: {', '.join(sorted(unknown))}")

        merged = (await self.get(address)).to_dict()
        for name, value in changes.items():
            if name == "spendingLimits" and isinstance(value, dict):
                merged["spendingLimits"] = {**merged["spendingLimits"], **value}
            elif name == "timeRestrictions" and isinstance(value, dict) and merged["timeRestrictions"]:
                merged["timeRestrictions"] = {**merged["timeRestrictions"], **value}
            else:
                merged[name] = value

        snapshot = PolicySnapshot.from_dict(merged)
        await self.put(address, snapshot)
        logger.info(f"Policy updated for {address[:10]}...: {', '.join(sorted(changes))}")
        return snapshot
