"""Shared FastAPI dependencies."""

import secrets
from dataclasses import dataclass

from fastapi import Header, HTTPException, Request
from starlette.requests import HTTPConnection

from nijawallet.errors import Malformed
from nijawallet.services import WalletServices


def get_services(connection: HTTPConnection) -> WalletServices:
    """Service container attached to the app at start-up."""
    return connection.app.state.services


@dataclass(frozen=True)
class SessionHeaders:
    """Session token and origin carried by every authenticated call."""

    session_id: str
    origin: str


def read_session_headers(request: Request, required: bool = True):
    settings = get_services(request).settings
    session_id = request.headers.get(settings.session_header)
    origin = request.headers.get(settings.origin_header)
    if not session_id or not origin:
        if not required:
            return None
        raise Malformed(
            f"Missing {settings.session_header} or {settings.origin_header} header"
        )
    return SessionHeaders(session_id=session_id, origin=origin)


async def session_headers(request: Request) -> SessionHeaders:
    """Require both session headers; absence is a client error."""
    return read_session_headers(request)


async def require_admin_token(request: Request, x_admin_token: str = Header(None)) -> bool:
    """Verify admin token from header.

    If ADMIN_TOKEN is not set, allows access (dev mode).
    """
    settings = get_services(request).settings

    if not settings.admin_token:
        return True

    if not x_admin_token or not secrets.compare_digest(x_admin_token, settings.admin_token):
        raise HTTPException(status_code=401, detail="Invalid admin token")

    return True
