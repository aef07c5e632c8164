"""Parental-control policy endpoints (admin token)."""

from typing import Any

from fastapi import APIRouter, Body, Depends

from nijawallet.api.deps import get_services, require_admin_token
from nijawallet.services import WalletServices

router = APIRouter(prefix="/api/v1/policy", tags=["Policy"])


@router.get("/{address}")
async def get_policy(
    address: str,
    _: bool = Depends(require_admin_token),
    services: WalletServices = Depends(get_services),
):
    """Current policy snapshot for a wallet identity."""
    snapshot = await services.policies.get(address)
    return {"address": address, "policy": snapshot.to_dict()}


@router.put("/{address}")
async def update_policy(
    address: str,
    changes: dict[str, Any] = Body(...),
    _: bool = Depends(require_admin_token),
    services: WalletServices = Depends(get_services),
):
    """Partially update a policy snapshot.

    Only the fields present in the body change; nested spendingLimits and
    timeRestrictions objects are merged field-by-field.
    """
    snapshot = await services.policies.update(address, changes)
    return {"address": address, "policy": snapshot.to_dict()}
