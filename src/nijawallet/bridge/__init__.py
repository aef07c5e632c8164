"""Provider bridge: the request/response surface used by embedded pages."""

from nijawallet.bridge.provider import (
    METHOD_ALIASES,
    ProviderBridge,
    ProviderResponse,
    chain_for_session,
    parse_value,
)

__all__ = [
    "METHOD_ALIASES",
    "ProviderBridge",
    "ProviderResponse",
    "chain_for_session",
    "parse_value",
]
