"""Key derivation entry point.

derive_keypair() is the only function the rest of the code calls to turn a
seed phrase into a keypair. It performs no I/O and never substitutes a
random key when derivation fails.
"""

import logging

from bip_utils import Bip39MnemonicValidator, Bip39SeedGenerator

from nijawallet.errors import DerivationError, InvalidSeed, Malformed, WalletError
from nijawallet.hdwallet.base import ChainKeypair, ChainTag, KeyDeriver
from nijawallet.hdwallet.eth import ETHKeyDeriver
from nijawallet.hdwallet.sol import SOLKeyDeriver

logger = logging.getLogger(__name__)

# Chain tag to deriver class mapping
DERIVER_CLASSES: dict[ChainTag, type[KeyDeriver]] = {
    ChainTag.ETH: ETHKeyDeriver,
    ChainTag.SOL: SOLKeyDeriver,
}


def get_supported_chains() -> list[str]:
    """Get list of chain tags keys can be derived for."""
    return [tag.value for tag in DERIVER_CLASSES]


def parse_chain_tag(chain_tag) -> ChainTag:
    """Coerce a string or ChainTag into a ChainTag.

    Raises:
        Malformed: If the chain tag is not supported
    """
    if isinstance(chain_tag, ChainTag):
        return chain_tag
    try:
        return ChainTag(str(chain_tag).upper())
    except ValueError:
        raise Malformed(f"Unsupported chain tag: {chain_tag!r}")


def get_deriver(chain_tag) -> KeyDeriver:
    """Get the deriver for a chain tag."""
    return DERIVER_CLASSES[parse_chain_tag(chain_tag)]()


def normalize_seed_phrase(seed_phrase: str) -> str:
    """Lower-case the phrase and collapse whitespace between words."""
    return " ".join(seed_phrase.strip().lower().split())


def seed_from_phrase(seed_phrase: str) -> bytes:
    """Validate a BIP-39 mnemonic and return its 64-byte seed.

    Raises:
        InvalidSeed: If the phrase is empty or fails BIP-39 validation
    """
    if not seed_phrase or not seed_phrase.strip():
        raise InvalidSeed("Seed phrase is empty")

    phrase = normalize_seed_phrase(seed_phrase)
    if not Bip39MnemonicValidator().IsValid(phrase):
        raise InvalidSeed("Seed phrase is not a valid BIP-39 mnemonic")

    return Bip39SeedGenerator(phrase).Generate()


def derive_keypair(seed_phrase: str, chain_tag, account_index: int = 0) -> ChainKeypair:
    """Derive the keypair for (seed phrase, chain tag, account index).

    Args:
        seed_phrase: BIP-39 mnemonic
        chain_tag: ETH or SOL
        account_index: Account index, 0 for the primary account

    Returns:
        ChainKeypair

    Raises:
        InvalidSeed: Empty or malformed seed phrase
        Malformed: Unsupported chain tag or negative index
        DerivationError: The derivation library failed
    """
    deriver = get_deriver(chain_tag)
    if not isinstance(account_index, int) or account_index < 0:
        raise Malformed(f"Account index must be a non-negative integer, got {account_index!r}")

    seed = seed_from_phrase(seed_phrase)

    try:
        return deriver.derive(seed, account_index)
    except WalletError:
        raise
    except Exception as e:
        logger.error(
            "Key derivation failed for %s account %d: %s",
            deriver.chain_tag.value,
            account_index,
            type(e).__name__,
        )
        raise DerivationError(
            f"{deriver.chain_tag.value} derivation failed for account {account_index}"
        ) from e
