"""Provider endpoints: REST request, JSON-RPC envelope and the injected script."""

import json
from typing import Any, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from nijawallet.api.deps import SessionHeaders, get_services, read_session_headers, session_headers
from nijawallet.bridge import METHOD_ALIASES
from nijawallet.errors import Malformed
from nijawallet.services import WalletServices

router = APIRouter()

# Methods /rpc answers without a session
PUBLIC_RPC_METHODS = {"chainId", "net_version"}


class ProviderRequestBody(BaseModel):
    """EIP-1193 request arguments."""

    method: str
    params: Optional[list[Any]] = Field(default_factory=list)


@router.post("/api/v1/request")
async def provider_request(
    body: ProviderRequestBody,
    headers: SessionHeaders = Depends(session_headers),
    services: WalletServices = Depends(get_services),
):
    """Run one provider call for the caller's session."""
    response = await services.bridge.request(
        headers.session_id, headers.origin, body.method, body.params
    )
    return JSONResponse(status_code=response.http_status, content=response.to_dict())


def _rpc_error(request_id: Any, error: dict) -> dict:
    payload = {"code": error["code"], "message": error["message"]}
    if "data" in error:
        payload["data"] = error["data"]
    return {"jsonrpc": "2.0", "id": request_id, "error": payload}


@router.post("/rpc")
async def json_rpc(request: Request, services: WalletServices = Depends(get_services)):
    """JSON-RPC 2.0 envelope over the provider bridge. Always HTTP 200."""
    try:
        envelope = await request.json()
    except ValueError:
        return _rpc_error(None, {"code": -32700, "message": "Parse error"})
    if not isinstance(envelope, dict):
        return _rpc_error(None, Malformed("Request must be a JSON object").to_dict())

    request_id = envelope.get("id")
    method = envelope.get("method")
    params = envelope.get("params") or []

    headers = read_session_headers(request, required=False)
    if headers is None:
        canonical = METHOD_ALIASES.get(method) if isinstance(method, str) else None
        if canonical not in PUBLIC_RPC_METHODS:
            error = Malformed(
                f"Missing {services.settings.session_header} or {services.settings.origin_header} header"
            )
            return _rpc_error(request_id, error.to_dict())
        chain_id = services.settings.default_chain_id
        result = chain_id if canonical == "chainId" else str(int(chain_id, 16))
        return {"jsonrpc": "2.0", "id": request_id, "result": result}

    response = await services.bridge.request(headers.session_id, headers.origin, method, params)
    if response.ok:
        return {"jsonrpc": "2.0", "id": request_id, "result": response.result}
    return _rpc_error(request_id, response.error)


PROVIDER_SCRIPT = """\
(function () {
  var BASE_URL = %(base_url)s;
  var SESSION_HEADER = %(session_header)s;
  var ORIGIN_HEADER = %(origin_header)s;
  var STORAGE_KEY = 'nija_session';
  var listeners = {};

  function emit(event, payload) {
    (listeners[event] || []).forEach(function (cb) {
      try { cb(payload); } catch (e) { console.error(e); }
    });
  }

  function ProviderRpcError(error) {
    var err = new Error(error.message);
    err.code = error.code;
    err.name = error.name;
    err.data = error.data;
    return err;
  }

  var provider = {
    isNijaWallet: true,
    name: 'Nija Wallet',

    connect: async function () {
      var res = await fetch(BASE_URL + '/api/wallet/connect', { method: 'POST' });
      var body = await res.json();
      if (!res.ok) { throw ProviderRpcError(body.error || { code: res.status, message: 'connect failed' }); }
      localStorage.setItem(STORAGE_KEY, body.sessionToken);
      emit('connect', { chainId: body.chainId });
      emit('accountsChanged', [body.address]);
      return body;
    },

    request: async function (args) {
      var headers = { 'Content-Type': 'application/json' };
      headers[SESSION_HEADER] = localStorage.getItem(STORAGE_KEY) || '';
      headers[ORIGIN_HEADER] = window.location.origin;
      var res = await fetch(BASE_URL + '/api/v1/request', {
        method: 'POST',
        headers: headers,
        body: JSON.stringify({ method: args.method, params: args.params || [] })
      });
      var body = await res.json();
      if (body.error) {
        if (res.status === 401) { emit('disconnect', body.error); }
        throw ProviderRpcError(body.error);
      }
      return body.result;
    },

    on: function (event, cb) {
      (listeners[event] = listeners[event] || []).push(cb);
      return provider;
    },

    removeListener: function (event, cb) {
      listeners[event] = (listeners[event] || []).filter(function (x) { return x !== cb; });
      return provider;
    }
  };

  window.nijaWallet = provider;
  if (!window.ethereum) { window.ethereum = provider; }
})();
"""


@router.get("/provider.js")
async def provider_script(services: WalletServices = Depends(get_services)):
    """Script a page includes to get an EIP-1193 provider backed by this server."""
    settings = services.settings
    script = PROVIDER_SCRIPT % {
        "base_url": json.dumps(settings.public_base_url.rstrip("/")),
        "session_header": json.dumps(settings.session_header),
        "origin_header": json.dumps(settings.origin_header),
    }
    return Response(content=script, media_type="application/javascript")
