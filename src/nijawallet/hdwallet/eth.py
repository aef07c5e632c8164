"""ETH key derivation using BIP44.

Derivation path: m/44'/60'/0'/0/index
Address format: 0x... (EIP-55 checksum encoded)

This is the path a stock Ethereum wallet uses for account N, so the same
seed phrase imported elsewhere shows the same addresses.
"""

from bip_utils import Bip44, Bip44Changes, Bip44Coins
from eth_utils import is_address, to_checksum_address

from nijawallet.hdwallet.base import ChainKeypair, ChainTag, KeyDeriver


class ETHKeyDeriver(KeyDeriver):
    """Ethereum key derivation on secp256k1.

    Example:
        deriver = ETHKeyDeriver()
        keypair = deriver.derive(seed, account_index=0)
        # ChainKeypair(address="0x...", ...)
    """

    @property
    def chain_tag(self) -> ChainTag:
        return ChainTag.ETH

    @property
    def coin_type(self) -> int:
        return 60

    def get_derivation_path(self, account_index: int) -> str:
        return f"m/{self.purpose}'/{self.coin_type}'/0'/0/{account_index}"

    def derive(self, seed: bytes, account_index: int) -> ChainKeypair:
        """Derive an ETH keypair at the given address index."""
        bip44 = Bip44.FromSeed(seed, Bip44Coins.ETHEREUM)
        node = (
            bip44.Purpose()
            .Coin()
            .Account(0)
            .Change(Bip44Changes.CHAIN_EXT)
            .AddressIndex(account_index)
        )

        private_key = node.PrivateKey().Raw().ToBytes()
        address = to_checksum_address(node.PublicKey().ToAddress())

        return ChainKeypair(
            address=address,
            private_key=private_key,
            chain_tag=self.chain_tag,
            account_index=account_index,
            derivation_path=self.get_derivation_path(account_index),
        )

    def is_valid_address(self, address: str) -> bool:
        """Validate Ethereum address format (0x + 40 hex chars)."""
        if not address or not address.startswith("0x") or len(address) != 42:
            return False
        return is_address(address)

    def normalize_address(self, address: str) -> str:
        return address.lower()
