"""NijaWallet - custodial multi-chain wallet backend."""

__version__ = "0.1.0"
