"""Chain endpoint interface.

An endpoint builds and signs native transfers, broadcasts signed payloads,
and reports balances and receipt status. Endpoints are the only components
that talk to blockchain nodes.

Signing and broadcast are separate steps so the caller learns the
transaction hash before anything leaves the process.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional

from nijawallet.activity.models import ActivityStatus
from nijawallet.errors import UpstreamError
from nijawallet.hdwallet.base import ChainKeypair, ChainTag
from nijawallet.signing import SignedTransaction


def already_submitted(error: UpstreamError, markers: tuple[str, ...]) -> bool:
    """True if a broadcast rejection means the node already holds the transaction."""
    message = error.message.lower()
    return any(marker in message for marker in markers)


class ChainEndpoint(ABC):
    """Abstract base class for chain endpoints."""

    @property
    @abstractmethod
    def chain_tag(self) -> ChainTag:
        pass

    @property
    def name(self) -> str:
        return self.__class__.__name__

    @abstractmethod
    async def get_balance(self, address: str) -> Decimal:
        """Native balance in whole units (ETH, SOL)."""
        pass

    @abstractmethod
    async def prepare_transfer(self, keypair: ChainKeypair, to_address: str, value: Decimal) -> SignedTransaction:
        """Build and sign a native transfer without broadcasting it."""
        pass

    @abstractmethod
    async def broadcast(self, signed: SignedTransaction) -> str:
        """Submit a signed transaction.

        A node that reports the transaction as already known counts as a
        successful broadcast.

        Returns:
            ``signed.tx_hash``

        Raises:
            UpstreamError: The node rejected the transaction
            UpstreamUnavailable: The node could not be reached
        """
        pass

    @abstractmethod
    async def get_status(self, tx_hash: str) -> Optional[ActivityStatus]:
        """Final status of a transaction, or None while it is still pending."""
        pass

    async def close(self) -> None:
        """Release network resources."""
