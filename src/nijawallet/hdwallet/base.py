"""HD key derivation base interface.

Each chain derives a signing keypair from a BIP-39 seed using its own
BIP-44/SLIP-10 path. Derivation is a pure function of
(seed phrase, chain tag, account index): re-deriving is how an owner
recovers funds, so no implementation may introduce randomness.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum


class ChainTag(str, Enum):
    """Chains whose keys can be derived from the seed."""

    ETH = "ETH"
    SOL = "SOL"


@dataclass(frozen=True)
class ChainKeypair:
    """A derived keypair.

    The private key is kept out of repr/str so a stray log line can never
    print it.
    """

    address: str
    private_key: bytes = field(repr=False)
    chain_tag: ChainTag
    account_index: int
    derivation_path: str

    @property
    def public_info(self) -> dict:
        """Everything about the keypair that is safe to return to a caller."""
        return {
            "address": self.address,
            "chain": self.chain_tag.value,
            "account_index": self.account_index,
            "derivation_path": self.derivation_path,
        }


class KeyDeriver(ABC):
    """Abstract base class for per-chain key derivation.

    Usage:
        deriver = ETHKeyDeriver()
        keypair = deriver.derive(seed_bytes, account_index=0)
    """

    @property
    @abstractmethod
    def chain_tag(self) -> ChainTag:
        """Chain this deriver produces keys for."""
        pass

    @property
    @abstractmethod
    def coin_type(self) -> int:
        """SLIP-44 coin type number."""
        pass

    @property
    def purpose(self) -> int:
        """BIP purpose number."""
        return 44

    @abstractmethod
    def get_derivation_path(self, account_index: int) -> str:
        """Full derivation path for an account index."""
        pass

    @abstractmethod
    def derive(self, seed: bytes, account_index: int) -> ChainKeypair:
        """Derive the keypair for an account index from BIP-39 seed bytes.

        Args:
            seed: 64-byte BIP-39 seed
            account_index: Account index (0, 1, 2, ...)

        Returns:
            ChainKeypair for the account
        """
        pass

    @abstractmethod
    def is_valid_address(self, address: str) -> bool:
        """Check whether an address is well-formed for this chain."""
        pass

    def normalize_address(self, address: str) -> str:
        """Canonical form used for comparisons and storage keys."""
        return address


def normalize_address(address: str) -> str:
    """Chain-agnostic canonical form.

    Hex (0x) addresses compare case-insensitively; base58 addresses are
    case-sensitive and are returned unchanged.
    """
    address = address.strip()
    if address[:2].lower() == "0x":
        return address.lower()
    return address


def addresses_equal(a: str, b: str) -> bool:
    """Compare two addresses using normalize_address."""
    return normalize_address(a) == normalize_address(b)
