"""Ethereum JSON-RPC endpoint."""

import logging
from decimal import Decimal
from typing import Optional

from eth_utils import from_wei, to_checksum_address, to_wei

from nijawallet.activity.models import ActivityStatus
from nijawallet.chain.base import ChainEndpoint, already_submitted
from nijawallet.chain.client import RpcClient
from nijawallet.errors import Malformed, UpstreamError
from nijawallet.hdwallet.base import ChainKeypair, ChainTag
from nijawallet.signing import SignedTransaction, sign_eth_transaction

logger = logging.getLogger(__name__)

# Plain ETH transfer
TRANSFER_GAS = 21000

# Node answers for a raw transaction it already holds (geth, erigon, nethermind)
ALREADY_KNOWN = ("already known", "known transaction", "already imported")


def checksum_address(address: str) -> str:
    try:
        return to_checksum_address(address)
    except (TypeError, ValueError):
        raise Malformed(f"Invalid ETH address: {address}")


class EthereumEndpoint(ChainEndpoint):
    """Ethereum mainnet/testnet endpoint (legacy gas-price transactions)."""

    def __init__(self, rpc: RpcClient, chain_id: int):
        self.rpc = rpc
        self.chain_id = chain_id

    @property
    def chain_tag(self) -> ChainTag:
        return ChainTag.ETH

    async def get_balance(self, address: str) -> Decimal:
        result = await self.rpc.call("eth_getBalance", [address, "latest"])
        return Decimal(from_wei(int(result, 16), "ether"))

    async def _get_nonce(self, address: str) -> int:
        result = await self.rpc.call("eth_getTransactionCount", [address, "pending"])
        return int(result, 16)

    async def _get_gas_price(self) -> int:
        result = await self.rpc.call("eth_gasPrice", [])
        return int(result, 16)

    async def prepare_transfer(self, keypair: ChainKeypair, to_address: str, value: Decimal) -> SignedTransaction:
        tx = {
            "nonce": await self._get_nonce(keypair.address),
            "gasPrice": await self._get_gas_price(),
            "gas": TRANSFER_GAS,
            "to": checksum_address(to_address),
            "value": to_wei(value, "ether"),
            "data": b"",
            "chainId": self.chain_id,
        }
        return sign_eth_transaction(keypair, tx)

    async def broadcast(self, signed: SignedTransaction) -> str:
        try:
            await self.rpc.call("eth_sendRawTransaction", ["0x" + signed.raw.hex()])
        except UpstreamError as e:
            if not already_submitted(e, ALREADY_KNOWN):
                raise
            logger.info(f"ETH transfer {signed.tx_hash} already known to the node")
        logger.info(f"ETH transfer broadcast: {signed.tx_hash}")
        return signed.tx_hash

    async def get_status(self, tx_hash: str) -> Optional[ActivityStatus]:
        receipt = await self.rpc.call("eth_getTransactionReceipt", [tx_hash])
        if not receipt:
            return None
        return ActivityStatus.CONFIRMED if receipt.get("status") == "0x1" else ActivityStatus.FAILED

    async def close(self) -> None:
        await self.rpc.close()
