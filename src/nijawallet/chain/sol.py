"""Solana JSON-RPC endpoint."""

import base64
import logging
from decimal import Decimal
from typing import Optional

from nijawallet.activity.models import ActivityStatus
from nijawallet.chain.base import ChainEndpoint, already_submitted
from nijawallet.chain.client import RpcClient
from nijawallet.errors import Malformed, UpstreamError
from nijawallet.hdwallet.base import ChainKeypair, ChainTag
from nijawallet.signing import SignedTransaction, sign_sol_transfer

logger = logging.getLogger(__name__)

LAMPORTS_PER_SOL = Decimal(10**9)

# Preflight answer for a signature the cluster has already seen
ALREADY_PROCESSED = ("already been processed", "alreadyprocessed")


def to_lamports(value: Decimal) -> int:
    lamports = value * LAMPORTS_PER_SOL
    if lamports != lamports.to_integral_value():
        raise Malformed("SOL amount has more than 9 decimal places")
    return int(lamports)


class SolanaEndpoint(ChainEndpoint):
    """Solana cluster endpoint."""

    def __init__(self, rpc: RpcClient, commitment: str = "confirmed"):
        self.rpc = rpc
        self.commitment = commitment

    @property
    def chain_tag(self) -> ChainTag:
        return ChainTag.SOL

    async def get_balance(self, address: str) -> Decimal:
        result = await self.rpc.call("getBalance", [address, {"commitment": self.commitment}])
        return Decimal(result["value"]) / LAMPORTS_PER_SOL

    async def _latest_blockhash(self) -> str:
        result = await self.rpc.call("getLatestBlockhash", [{"commitment": self.commitment}])
        return result["value"]["blockhash"]

    async def prepare_transfer(self, keypair: ChainKeypair, to_address: str, value: Decimal) -> SignedTransaction:
        lamports = to_lamports(value)
        blockhash = await self._latest_blockhash()
        return sign_sol_transfer(keypair, to_address, lamports, blockhash)

    async def broadcast(self, signed: SignedTransaction) -> str:
        encoded = base64.b64encode(signed.raw).decode()
        try:
            await self.rpc.call("sendTransaction", [encoded, {"encoding": "base64"}])
        except UpstreamError as e:
            if not already_submitted(e, ALREADY_PROCESSED):
                raise
            logger.info(f"SOL transfer {signed.tx_hash} already processed")
        logger.info(f"SOL transfer broadcast: {signed.tx_hash}")
        return signed.tx_hash

    async def get_status(self, tx_hash: str) -> Optional[ActivityStatus]:
        result = await self.rpc.call(
            "getSignatureStatuses", [[tx_hash], {"searchTransactionHistory": True}]
        )
        status = (result.get("value") or [None])[0]
        if not status:
            return None
        if status.get("err") is not None:
            return ActivityStatus.FAILED
        if status.get("confirmationStatus") in ("confirmed", "finalized"):
            return ActivityStatus.CONFIRMED
        return None

    async def close(self) -> None:
        await self.rpc.close()
