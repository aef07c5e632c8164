"""Session endpoints."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from nijawallet.api.deps import SessionHeaders, get_services, session_headers
from nijawallet.services import WalletServices

router = APIRouter()


class SessionCreateRequest(BaseModel):
    """Request to bind a session to a wallet identity."""

    address: str = Field(..., min_length=1)
    chain_id: str = Field(..., alias="chainId", min_length=1)
    origin: str = Field(..., min_length=1)


class SessionCreateResponse(BaseModel):
    """Created session."""

    sessionId: str
    expiresInMs: int


class SessionVerifyResponse(BaseModel):
    """Result of a session check."""

    valid: bool
    address: str
    chainId: str
    expiresIn: int


@router.post("/api/session/create", response_model=SessionCreateResponse)
async def create_session(
    request: SessionCreateRequest,
    services: WalletServices = Depends(get_services),
) -> SessionCreateResponse:
    """Create a session for (address, chainId, origin)."""
    session = await services.sessions.create(request.address, request.chain_id, request.origin)
    return SessionCreateResponse(
        sessionId=session.id,
        expiresInMs=services.sessions.expires_in_ms(session),
    )


@router.post("/api/v1/session/verify", response_model=SessionVerifyResponse)
async def verify_session(
    headers: SessionHeaders = Depends(session_headers),
    services: WalletServices = Depends(get_services),
) -> SessionVerifyResponse:
    """Validate the session headers and refresh the session."""
    session = await services.sessions.validate(headers.session_id, headers.origin)
    return SessionVerifyResponse(
        valid=True,
        address=session.address,
        chainId=session.chain_id,
        expiresIn=services.sessions.expires_in_ms(session),
    )


@router.delete("/api/v1/session")
async def revoke_session(
    headers: SessionHeaders = Depends(session_headers),
    services: WalletServices = Depends(get_services),
):
    """Destroy the caller's session."""
    await services.sessions.validate(headers.session_id, headers.origin)
    revoked = await services.sessions.revoke(headers.session_id)
    return {"revoked": revoked}
