"""Dry-run endpoint: real signing, simulated network.

Transactions are signed with the derived keys exactly as for a real
broadcast, but nothing leaves the process. Every transaction confirms on
the first status poll.
"""

import hashlib
import itertools
import logging
from decimal import Decimal
from typing import Optional

from eth_utils import to_wei
from solders.hash import Hash

from nijawallet.activity.models import ActivityStatus
from nijawallet.chain.base import ChainEndpoint
from nijawallet.chain.eth import checksum_address
from nijawallet.chain.sol import to_lamports
from nijawallet.errors import UpstreamError
from nijawallet.hdwallet.base import ChainKeypair, ChainTag, normalize_address
from nijawallet.signing import SignedTransaction, sign_eth_transaction, sign_sol_transfer

logger = logging.getLogger(__name__)

# Simulated starting balance for every address
DEFAULT_BALANCE = Decimal("10")


class DryRunEndpoint(ChainEndpoint):
    """Simulated endpoint for one chain."""

    def __init__(self, chain_tag: ChainTag, chain_id: int = 11155111, balance: Decimal = DEFAULT_BALANCE):
        self._chain_tag = chain_tag
        self.chain_id = chain_id
        self.default_balance = balance
        self._balances: dict[str, Decimal] = {}
        self._prepared: dict[str, tuple[str, Decimal]] = {}
        self._sent: dict[str, str] = {}
        self._nonces = itertools.count()

    @property
    def chain_tag(self) -> ChainTag:
        return self._chain_tag

    async def get_balance(self, address: str) -> Decimal:
        return self._balances.get(normalize_address(address), self.default_balance)

    async def prepare_transfer(self, keypair: ChainKeypair, to_address: str, value: Decimal) -> SignedTransaction:
        nonce = next(self._nonces)
        if self._chain_tag == ChainTag.ETH:
            signed = sign_eth_transaction(keypair, {
                "nonce": nonce,
                "gasPrice": 10**9,
                "gas": 21000,
                "to": checksum_address(to_address),
                "value": to_wei(value, "ether"),
                "data": b"",
                "chainId": self.chain_id,
            })
        else:
            blockhash = Hash(hashlib.sha256(f"dry-run:{nonce}".encode()).digest())
            signed = sign_sol_transfer(keypair, to_address, to_lamports(value), str(blockhash))

        self._prepared[signed.tx_hash] = (normalize_address(keypair.address), value)
        logger.info(f"[DRY RUN] {self._chain_tag.value} transfer of {value} to {to_address} signed: {signed.tx_hash}")
        return signed

    async def broadcast(self, signed: SignedTransaction) -> str:
        if signed.tx_hash in self._sent:
            return signed.tx_hash
        prepared = self._prepared.pop(signed.tx_hash, None)
        if prepared is None:
            raise UpstreamError(f"Unknown transaction: {signed.tx_hash}")
        sender, value = prepared
        self._balances[sender] = (await self.get_balance(sender)) - value
        self._sent[signed.tx_hash] = sender
        logger.info(f"[DRY RUN] {self._chain_tag.value} transfer broadcast: {signed.tx_hash}")
        return signed.tx_hash

    async def get_status(self, tx_hash: str) -> Optional[ActivityStatus]:
        if tx_hash in self._sent:
            return ActivityStatus.CONFIRMED
        return None
