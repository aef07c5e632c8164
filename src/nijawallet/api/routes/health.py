"""Health check endpoints."""

from fastapi import APIRouter, Depends

from nijawallet import __version__
from nijawallet.api.deps import get_services
from nijawallet.services import WalletServices

router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy", "service": "nijawallet"}


@router.get("/health/detailed")
async def detailed_health(services: WalletServices = Depends(get_services)):
    """Detailed health check with configuration info."""
    keyring = services.keyring
    return {
        "status": "healthy" if keyring.initialized else "degraded",
        "service": "nijawallet",
        "version": __version__,
        "wallet": {
            "initialized": keyring.initialized,
            "error": keyring.init_error,
        },
        "storage": services.store.name,
        "activity": {
            "observers": services.channel.observer_count,
            "subscribers": services.bus.subscriber_count,
            "pending": len(services.bus.pending()),
            "watching": len(services.watcher.tracked),
        },
        "endpoints": {tag.value: endpoint.name for tag, endpoint in services.endpoints.items()},
        "config": services.settings.get_safe_dict(),
    }
