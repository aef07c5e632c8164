"""Error taxonomy shared by every layer.

Key-layer errors (InvalidSeed, DerivationError) are fatal to the requested
operation. Unauthorized and PolicyRejected are deliberately distinct so a
caller can tell "log in again" from "a guardian rule blocked this".
UpstreamUnavailable is the only class a caller may retry.
"""

from typing import Any, Optional


class WalletError(Exception):
    """Base class for all wallet errors.

    Attributes:
        code: Numeric code used on the provider (EIP-1193 / JSON-RPC) surface
        http_status: Status returned by the HTTP edge
        retryable: Whether a caller may retry the same request
    """

    code: int = -32603
    http_status: int = 500
    retryable: bool = False

    def __init__(self, message: str = "", data: Optional[Any] = None):
        self.message = message or self.__class__.__name__
        self.data = data
        super().__init__(self.message)

    @property
    def name(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> dict:
        payload = {"code": self.code, "name": self.name, "message": self.message}
        if self.data is not None:
            payload["data"] = self.data
        return payload


class InvalidSeed(WalletError):
    """Seed phrase is empty or not a valid BIP-39 mnemonic."""

    code = -32000
    http_status = 500


class DerivationError(WalletError):
    """The derivation library failed; no fallback key is ever produced."""

    code = -32001
    http_status = 500


class WalletNotInitialized(WalletError):
    """No usable seed is configured, or derivation failed at start-up."""

    code = -32003
    http_status = 503


class Unauthorized(WalletError):
    """Session missing, expired, revoked or bound to another origin."""

    code = 4100
    http_status = 401


class PolicyRejected(WalletError):
    """A parental-control rule denied the transaction."""

    code = 4001
    http_status = 403

    def __init__(self, reason: str):
        super().__init__(reason, data={"reason": reason})
        self.reason = reason


class MethodNotFound(WalletError):
    """Provider method is not part of the supported set."""

    code = -32601
    http_status = 404


class Malformed(WalletError):
    """Request has the wrong shape; never retried."""

    code = -32602
    http_status = 400


class UpstreamUnavailable(WalletError):
    """Chain endpoint or backing store did not answer in time."""

    code = 4900
    http_status = 503
    retryable = True


class UpstreamError(UpstreamUnavailable):
    """Chain endpoint answered with a JSON-RPC error object.

    Not retried: the endpoint is reachable but rejected the call.
    """

    retryable = False

    def __init__(self, message: str, rpc_code: Optional[int] = None):
        super().__init__(message, data={"rpc_code": rpc_code} if rpc_code is not None else None)
        self.rpc_code = rpc_code


class WalletBusy(WalletError):
    """Per-wallet critical section could not be entered in time."""

    code = -32002
    http_status = 409
    retryable = True
