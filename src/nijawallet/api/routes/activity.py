"""Activity endpoints and the /ws observer channel."""

from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, WebSocket

from nijawallet.activity.models import parse_status
from nijawallet.api.deps import get_services, require_admin_token
from nijawallet.services import WalletServices

router = APIRouter()


@router.get("/api/v1/activity")
async def list_activity(
    address: Optional[str] = Query(None),
    services: WalletServices = Depends(get_services),
):
    """Activity records, oldest first (the same data INITIAL_DATA carries)."""
    records = services.bus.snapshot(address)
    return {"records": [r.to_dict() for r in records], "count": len(records)}


@router.get("/api/v1/activity/{tx_hash}")
async def get_activity(tx_hash: str, services: WalletServices = Depends(get_services)):
    """One activity record by hash."""
    record = services.bus.get(tx_hash)
    if record is None:
        raise HTTPException(status_code=404, detail="Activity not found")
    return record.to_dict()


@router.post("/api/v1/activity/{tx_hash}/reconcile")
async def reconcile_activity(
    tx_hash: str,
    body: Optional[dict] = Body(None),
    _: bool = Depends(require_admin_token),
    services: WalletServices = Depends(get_services),
):
    """Resolve a pending record.

    With ``{"status": "confirmed" | "failed"}`` the status is set directly;
    otherwise the chain endpoint is polled once.
    """
    record = services.bus.get(tx_hash)
    if record is None:
        raise HTTPException(status_code=404, detail="Activity not found")

    if body and body.get("status"):
        await services.bus.update_status(tx_hash, parse_status(body["status"]), {"reconciled": True})
    else:
        await services.watcher.check(tx_hash)

    return services.bus.get(tx_hash).to_dict()


@router.websocket("/ws")
async def activity_socket(websocket: WebSocket):
    """Real-time activity channel."""
    services: WalletServices = websocket.app.state.services
    await services.channel.handle(websocket)
