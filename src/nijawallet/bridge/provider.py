"""EIP-1193 style provider bridge.

Every call resolves the caller's session first. Mutating calls then resolve
the custodial keypair for the session address; sendTransaction additionally
passes the parental-control policy inside the wallet's critical section
before anything is signed:

    validate session -> authorize -> sign -> publish pending -> broadcast -> hash

``request`` never raises for a bad call; the outcome is always a
ProviderResponse carrying a result or a structured error.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Optional

from nijawallet.activity.bus import ActivityBus
from nijawallet.activity.models import ActivityRecord, ActivityStatus, ActivityType
from nijawallet.activity.watcher import ConfirmationWatcher
from nijawallet.chain.base import ChainEndpoint
from nijawallet.errors import Malformed, MethodNotFound, Unauthorized, UpstreamError, WalletError
from nijawallet.hdwallet import Keyring, get_deriver
from nijawallet.hdwallet.base import ChainKeypair, ChainTag, addresses_equal
from nijawallet.policy import PolicyStore, ProposedTransaction, SpendingLedger, authorize, parse_amount
from nijawallet.sessions import Session, SessionStore, now_ms
from nijawallet.signing import sign_message
from nijawallet.utils.locks import WalletLocks

logger = logging.getLogger(__name__)

# Wire method name -> canonical name
METHOD_ALIASES = {
    "accounts": "accounts",
    "eth_accounts": "accounts",
    "requestAccounts": "requestAccounts",
    "eth_requestAccounts": "requestAccounts",
    "chainId": "chainId",
    "eth_chainId": "chainId",
    "net_version": "net_version",
    "sendTransaction": "sendTransaction",
    "eth_sendTransaction": "sendTransaction",
    "getBalance": "getBalance",
    "eth_getBalance": "getBalance",
    "sign": "sign",
    "personal_sign": "personal_sign",
    "eth_sign": "eth_sign",
}

NATIVE_SYMBOLS = {ChainTag.ETH: "ETH", ChainTag.SOL: "SOL"}
BASE_UNITS = {ChainTag.ETH: Decimal(10**18), ChainTag.SOL: Decimal(10**9)}


@dataclass
class ProviderResponse:
    """Outcome of one provider call: exactly one of result / error is set."""

    result: Any = None
    error: Optional[dict] = None
    http_status: int = 200

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, result: Any) -> "ProviderResponse":
        return cls(result=result)

    @classmethod
    def failure(cls, exc: WalletError) -> "ProviderResponse":
        return cls(error=exc.to_dict(), http_status=exc.http_status)

    def to_dict(self) -> dict:
        return {"result": self.result} if self.ok else {"error": self.error}


def chain_for_session(session: Session) -> ChainTag:
    """Chain implied by a session's chain id (0x.. or decimal = ETH, solana:* = SOL)."""
    chain_id = session.chain_id.strip().lower()
    if chain_id.startswith("solana"):
        return ChainTag.SOL
    if chain_id.startswith("0x") or chain_id.isdigit():
        return ChainTag.ETH
    raise Malformed(f"Unsupported chain id: {session.chain_id}")


def parse_value(raw: Any, chain: ChainTag) -> Decimal:
    """Transaction value in native units.

    Accepts a decimal amount ("0.5", 0.5) or a 0x hex quantity of base units
    (wei, lamports).
    """
    if isinstance(raw, str) and raw.lower().startswith("0x"):
        try:
            base_units = int(raw, 16)
        except ValueError:
            raise Malformed(f"value is not a valid hex quantity: {raw}")
        return Decimal(base_units) / BASE_UNITS[chain]
    return parse_amount(raw, "value")


class ProviderBridge:
    """Request/response façade over sessions, policy, keys and chains."""

    def __init__(
        self,
        sessions: SessionStore,
        policies: PolicyStore,
        bus: ActivityBus,
        keyring: Keyring,
        endpoints: dict[ChainTag, ChainEndpoint],
        locks: WalletLocks,
        watcher: Optional[ConfirmationWatcher] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.sessions = sessions
        self.policies = policies
        self.bus = bus
        self.keyring = keyring
        self.endpoints = endpoints
        self.locks = locks
        self.watcher = watcher
        self._clock = clock
        self._handlers = {
            "accounts": self._accounts,
            "requestAccounts": self._accounts,
            "chainId": self._chain_id,
            "net_version": self._net_version,
            "getBalance": self._get_balance,
            "sendTransaction": self._send_transaction,
            "sign": self._sign,
            "personal_sign": self._sign,
            "eth_sign": self._sign,
        }

    async def request(
        self,
        session_id: Optional[str],
        origin: Optional[str],
        method: Any,
        params: Any = None,
    ) -> ProviderResponse:
        """Run one provider call and capture its outcome."""
        try:
            result = await self.call(session_id, origin, method, params)
        except WalletError as e:
            if e.http_status >= 500:
                logger.error(f"Provider {method} failed: {e.name}: {e.message}")
            else:
                logger.info(f"Provider {method} denied: {e.name}: {e.message}")
            return ProviderResponse.failure(e)
        except Exception:
            logger.exception(f"Unexpected error in provider {method}")
            return ProviderResponse.failure(WalletError("Internal error"))
        return ProviderResponse.success(result)

    async def call(self, session_id: Optional[str], origin: Optional[str], method: Any, params: Any = None) -> Any:
        """Run one provider call, raising WalletError subclasses on failure."""
        if not isinstance(method, str) or not method:
            raise Malformed("method is required")
        if params is None:
            params = []
        if not isinstance(params, list):
            raise Malformed("params must be a list")

        canonical = METHOD_ALIASES.get(method)
        if canonical is None:
            raise MethodNotFound(f"Method not supported: {method}")

        session = await self.sessions.validate(session_id, origin)
        return await self._handlers[canonical](session, canonical, params)

    def _endpoint(self, chain: ChainTag) -> ChainEndpoint:
        endpoint = self.endpoints.get(chain)
        if endpoint is None:
            raise MethodNotFound(f"No endpoint configured for {chain.value}")
        return endpoint

    async def _custodial_keypair(self, session: Session, chain: ChainTag) -> ChainKeypair:
        keypair = await self.keyring.resolve(session.address, chain)
        if keypair is None:
            raise Unauthorized("Session address is not held by this wallet")
        return keypair

    async def _accounts(self, session: Session, method: str, params: list) -> list[str]:
        return [session.address]

    async def _chain_id(self, session: Session, method: str, params: list) -> str:
        return session.chain_id

    async def _net_version(self, session: Session, method: str, params: list) -> str:
        chain_id = session.chain_id
        if chain_id.lower().startswith("0x"):
            return str(int(chain_id, 16))
        return chain_id

    async def _get_balance(self, session: Session, method: str, params: list) -> Any:
        """ETH: hex wei (as eth_getBalance). SOL: integer lamports (as getBalance)."""
        chain = chain_for_session(session)
        address = params[0] if params else session.address
        if not isinstance(address, str) or not get_deriver(chain).is_valid_address(address):
            raise Malformed(f"Invalid {chain.value} address: {address!r}")

        balance = await self._endpoint(chain).get_balance(address)
        base_units = int(balance * BASE_UNITS[chain])
        return hex(base_units) if chain == ChainTag.ETH else base_units

    async def _send_transaction(self, session: Session, method: str, params: list) -> str:
        if not params or not isinstance(params[0], dict):
            raise Malformed("sendTransaction expects [{to, value}]")
        tx_params = params[0]
        chain = chain_for_session(session)

        sender = tx_params.get("from")
        if sender and not addresses_equal(sender, session.address):
            raise Unauthorized("from does not match the session address")

        to = tx_params.get("to")
        if not isinstance(to, str) or not get_deriver(chain).is_valid_address(to):
            raise Malformed(f"Invalid {chain.value} recipient: {to!r}")

        value = parse_value(tx_params.get("value", "0"), chain)
        token = tx_params.get("token")
        if token and str(token).upper() != NATIVE_SYMBOLS[chain]:
            raise Malformed("Only native transfers are supported")

        keypair = await self._custodial_keypair(session, chain)
        endpoint = self._endpoint(chain)

        async with self.locks.hold(session.address, operation="sendTransaction"):
            policy = await self.policies.get(session.address)
            ledger = SpendingLedger.from_activities(self.bus.snapshot(session.address), session.address)
            now = datetime.fromtimestamp(self._clock() / 1000, tz=timezone.utc)
            proposed = ProposedTransaction(to=to, value=value, token=token, origin=session.origin)
            authorize(policy, proposed, ledger, now).raise_for_denial()

            submission = asyncio.ensure_future(
                self._submit(keypair, endpoint, session, chain, to, value)
            )
            try:
                return await asyncio.shield(submission)
            except asyncio.CancelledError:
                # Signed transactions are irrevocable: finish bookkeeping before unlocking
                logger.warning(f"Caller abandoned sendTransaction for {session.address[:10]}...; finishing")
                await asyncio.wait({submission})
                raise

    async def _submit(
        self,
        keypair: ChainKeypair,
        endpoint: ChainEndpoint,
        session: Session,
        chain: ChainTag,
        to: str,
        value: Decimal,
    ) -> str:
        signed = await endpoint.prepare_transfer(keypair, to, value)
        record = ActivityRecord(
            hash=signed.tx_hash,
            type=ActivityType.SEND,
            status=ActivityStatus.PENDING,
            timestamp=self._clock(),
            attributed_address=session.address,
            details={
                "chain": chain.value,
                "chainId": session.chain_id,
                "from": keypair.address,
                "to": to,
                "value": str(value),
                "origin": session.origin,
            },
        )
        # A spend is in the ledger before it can reach the chain
        stored = await self.bus.publish(record) or record

        try:
            tx_hash = await endpoint.broadcast(signed)
        except UpstreamError as e:
            await self._mark_failed(stored, e)
            raise
        except Exception:
            # The node may still have it; the watcher settles the record
            self._track(stored)
            raise

        self._track(stored)
        return tx_hash

    def _track(self, record: ActivityRecord) -> None:
        if self.watcher is not None:
            self.watcher.track(record)

    async def _mark_failed(self, record: ActivityRecord, error: UpstreamError) -> None:
        logger.warning(f"Broadcast of {record.hash[:12]}... rejected: {error.message}")
        try:
            await self.bus.update_status(record.hash, ActivityStatus.FAILED, {"error": error.message})
        except WalletError as e:
            logger.error(f"Could not mark {record.hash[:12]}... failed, left pending: {e.message}")

    async def _sign(self, session: Session, method: str, params: list) -> str:
        if method == "eth_sign":
            if len(params) < 2:
                raise Malformed("eth_sign expects [address, message]")
            address, message = params[0], params[1]
        else:
            if not params:
                raise Malformed(f"{method} expects [message, address?]")
            message = params[0]
            address = params[1] if len(params) > 1 else None

        if not isinstance(message, str):
            raise Malformed("message must be a string")
        if address is not None and (not isinstance(address, str) or not addresses_equal(address, session.address)):
            raise Unauthorized("Signing address does not match the session address")

        keypair = await self._custodial_keypair(session, chain_for_session(session))
        return sign_message(keypair, message).signature
