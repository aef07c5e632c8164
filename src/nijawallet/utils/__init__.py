"""Utility modules."""

from nijawallet.utils.locks import WalletLocks

__all__ = ["WalletLocks"]
