"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from nijawallet import __version__
from nijawallet.config import Settings, get_settings
from nijawallet.errors import WalletError
from nijawallet.services import WalletServices

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    services: Optional[WalletServices] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to run with (defaults to get_settings())
        services: Pre-built services; when given, the caller owns their lifecycle
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        # Startup
        owned = services is None
        app.state.services = services or await WalletServices.start(settings)
        yield
        # Shutdown
        if owned:
            await app.state.services.stop()

    app = FastAPI(
        title="NijaWallet API",
        description="Custodial multi-chain wallet backend",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )
    if services is not None:
        app.state.services = services

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else settings.allowed_origins,
        allow_credentials=not settings.debug,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(WalletError)
    async def wallet_error_handler(request: Request, exc: WalletError) -> JSONResponse:
        return JSONResponse(status_code=exc.http_status, content={"error": exc.to_dict()})

    # Register routes
    from nijawallet.api.routes import activity, health, policy, provider, sessions, wallet

    app.include_router(health.router, tags=["Health"])
    app.include_router(sessions.router, tags=["Sessions"])
    app.include_router(wallet.router, tags=["Wallet"])
    app.include_router(provider.router, tags=["Provider"])
    app.include_router(policy.router)
    app.include_router(activity.router, tags=["Activity"])

    return app
