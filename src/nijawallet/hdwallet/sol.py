"""SOL key derivation using SLIP-10 Ed25519.

Derivation path: m/44'/501'/index'/0'
Address format: base58 public key

Solana is Ed25519, so every level is hardened. The 32-byte key at the
change level is the seed of the Solana keypair.
"""

from bip_utils import Bip44, Bip44Changes, Bip44Coins
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from nijawallet.hdwallet.base import ChainKeypair, ChainTag, KeyDeriver


class SOLKeyDeriver(KeyDeriver):
    """Solana key derivation on Ed25519."""

    @property
    def chain_tag(self) -> ChainTag:
        return ChainTag.SOL

    @property
    def coin_type(self) -> int:
        return 501

    def get_derivation_path(self, account_index: int) -> str:
        return f"m/{self.purpose}'/{self.coin_type}'/{account_index}'/0'"

    def derive(self, seed: bytes, account_index: int) -> ChainKeypair:
        """Derive a Solana keypair for an account."""
        bip44 = Bip44.FromSeed(seed, Bip44Coins.SOLANA)
        node = bip44.Purpose().Coin().Account(account_index).Change(Bip44Changes.CHAIN_EXT)

        private_key = node.PrivateKey().Raw().ToBytes()[:32]
        keypair = Keypair.from_seed(private_key)

        return ChainKeypair(
            address=str(keypair.pubkey()),
            private_key=private_key,
            chain_tag=self.chain_tag,
            account_index=account_index,
            derivation_path=self.get_derivation_path(account_index),
        )

    def is_valid_address(self, address: str) -> bool:
        """Validate a base58 Ed25519 public key."""
        if not address or address.startswith("0x"):
            return False
        try:
            Pubkey.from_string(address)
        except Exception:
            return False
        return True


def solana_keypair(keypair: ChainKeypair) -> Keypair:
    """Rebuild the solders Keypair for a derived SOL ChainKeypair."""
    return Keypair.from_seed(keypair.private_key)
