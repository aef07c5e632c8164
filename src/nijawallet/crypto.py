"""Cryptographic utilities for seed storage.

Uses Fernet (AES-128-CBC with HMAC) for symmetric encryption. The seed is
kept encrypted at rest and in memory; it is decrypted only inside
SeedVault.unlocked(), whose buffer is overwritten on exit.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from cryptography.fernet import Fernet, InvalidToken

from nijawallet.errors import InvalidSeed

logger = logging.getLogger(__name__)


def generate_master_key() -> str:
    """Generate a new master encryption key.

    Returns:
        Base64-encoded 32-byte key suitable for Fernet
    """
    return Fernet.generate_key().decode()


def encrypt_seed_phrase(seed_phrase: str, master_key: str) -> str:
    """Encrypt a seed phrase with a master key."""
    return Fernet(master_key.encode()).encrypt(seed_phrase.encode()).decode()


class SeedVault:
    """Holds the custodial seed phrase as a Fernet token.

    Usage:
        vault = SeedVault(encrypted_seed, master_key)
        with vault.unlocked() as phrase:
            keypair = derive_keypair(phrase, "ETH")
    """

    def __init__(self, encrypted_seed: str, master_key: str):
        """Initialize with an encrypted seed and its key.

        Raises:
            InvalidSeed: If the token cannot be decrypted with the key
        """
        try:
            self._fernet = Fernet(master_key.encode())
        except (TypeError, ValueError):
            raise InvalidSeed("Master key is not a valid Fernet key")
        self._token = encrypted_seed.encode()
        try:
            self._fernet.decrypt(self._token)
        except InvalidToken:
            raise InvalidSeed("Encrypted seed phrase cannot be decrypted with the master key")

    @classmethod
    def from_plaintext(cls, seed_phrase: str) -> "SeedVault":
        """Wrap a plaintext phrase under an ephemeral in-memory key."""
        if not seed_phrase or not seed_phrase.strip():
            raise InvalidSeed("Seed phrase is empty")
        key = generate_master_key()
        return cls(encrypt_seed_phrase(seed_phrase, key), key)

    @classmethod
    def from_settings(cls, settings) -> Optional["SeedVault"]:
        """Build a vault from Settings, or None if no seed is configured."""
        if settings.seed_phrase_encrypted and settings.master_key:
            return cls(settings.seed_phrase_encrypted, settings.master_key)

        if settings.wallet_seed_phrase:
            if settings.is_production:
                logger.warning(
                    "Plaintext WALLET_SEED_PHRASE in production - use SEED_PHRASE_ENCRYPTED"
                )
            return cls.from_plaintext(settings.wallet_seed_phrase)

        return None

    @contextmanager
    def unlocked(self) -> Iterator[str]:
        """Yield the decrypted phrase and wipe the decryption buffer on exit.

        Python strings are immutable, so the yielded str can outlive the
        block until garbage collection; callers must not keep a reference.
        """
        buffer = bytearray(self._fernet.decrypt(self._token))
        try:
            yield buffer.decode()
        finally:
            for i in range(len(buffer)):
                buffer[i] = 0

    def __repr__(self) -> str:
        return "SeedVault(<encrypted>)"
