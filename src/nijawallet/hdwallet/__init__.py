"""HD wallet module for deterministic multi-chain key derivation."""

from nijawallet.hdwallet.base import ChainKeypair, ChainTag, KeyDeriver
from nijawallet.hdwallet.factory import (
    derive_keypair,
    get_deriver,
    get_supported_chains,
    parse_chain_tag,
)
from nijawallet.hdwallet.keyring import Keyring

__all__ = [
    "ChainKeypair",
    "ChainTag",
    "KeyDeriver",
    "Keyring",
    "derive_keypair",
    "get_deriver",
    "get_supported_chains",
    "parse_chain_tag",
]
