"""Custodial wallet endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Query
from pydantic import BaseModel

from nijawallet.api.deps import SessionHeaders, get_services, require_admin_token, session_headers
from nijawallet.errors import Malformed
from nijawallet.hdwallet import parse_chain_tag
from nijawallet.hdwallet.base import ChainTag
from nijawallet.services import WalletServices

router = APIRouter()


class ConnectRequest(BaseModel):
    """Optional connect parameters."""

    chain: str = "ETH"
    account_index: int = 0


class ConnectResponse(BaseModel):
    """Connection details for an embedded page."""

    address: str
    rpcUrl: str
    sessionToken: str
    chainId: str
    expiresInMs: int


@router.post("/api/wallet/connect", response_model=ConnectResponse)
async def connect_wallet(
    request: Optional[ConnectRequest] = None,
    origin: Optional[str] = Header(None),
    services: WalletServices = Depends(get_services),
) -> ConnectResponse:
    """Open a session for the custodial account, bound to the caller's Origin."""
    if not origin:
        raise Malformed("Missing Origin header")
    request = request or ConnectRequest()

    chain = parse_chain_tag(request.chain)
    keypair = services.keyring.keypair(chain, request.account_index)
    settings = services.settings
    chain_id = settings.default_chain_id if chain == ChainTag.ETH else settings.sol_chain_id

    session = await services.sessions.create(keypair.address, chain_id, origin)
    return ConnectResponse(
        address=keypair.address,
        rpcUrl=f"{settings.public_base_url.rstrip('/')}/rpc",
        sessionToken=session.id,
        chainId=session.chain_id,
        expiresInMs=services.sessions.expires_in_ms(session),
    )


@router.get("/api/wallet/address")
async def session_address(
    headers: SessionHeaders = Depends(session_headers),
    services: WalletServices = Depends(get_services),
):
    """Address bound to the caller's session."""
    session = await services.sessions.validate(headers.session_id, headers.origin)
    return {"address": session.address, "chainId": session.chain_id}


@router.get("/api/v1/wallet/addresses")
async def wallet_addresses(
    account: int = Query(0, ge=0),
    _: bool = Depends(require_admin_token),
    services: WalletServices = Depends(get_services),
):
    """Custodial addresses of one account on every chain."""
    if account > services.keyring.max_account_index:
        raise Malformed(f"account must be <= {services.keyring.max_account_index}")
    return {
        "account": account,
        "addresses": services.keyring.addresses(account),
        "paths": {
            tag.value: services.keyring.keypair(tag, account).derivation_path for tag in ChainTag
        },
    }
