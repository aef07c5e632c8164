"""Base types for signing.

Signing flow:
1. Build unsigned transaction
2. Sign with a derived ChainKeypair
3. Broadcast the raw signed payload
"""

from dataclasses import dataclass
from typing import Optional

from nijawallet.errors import WalletError


@dataclass
class SignatureResult:
    """Result of a message signing operation.

    Attributes:
        chain: ETH or SOL
        address: Address that produced the signature
        signature: 0x-hex (ETH) or base58 (SOL) signature
        message_hash: Hash that was signed (ETH only)
    """
    chain: str
    address: str
    signature: str
    message_hash: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "chain": self.chain,
            "address": self.address,
            "signature": self.signature,
            "messageHash": self.message_hash,
        }


@dataclass
class SignedTransaction:
    """A signed, not yet broadcast, transaction.

    Attributes:
        chain: ETH or SOL
        tx_hash: Transaction hash (ETH) or first signature (SOL)
        raw: Serialized payload ready for broadcast
    """
    chain: str
    tx_hash: str
    raw: bytes


class SigningError(WalletError):
    """Exception raised when signing fails."""

    code = -32603
    http_status = 500
