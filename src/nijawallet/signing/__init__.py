"""Transaction and message signing with derived keys."""

from nijawallet.signing.base import SignatureResult, SignedTransaction, SigningError
from nijawallet.signing.local import sign_eth_transaction, sign_message, sign_sol_transfer

__all__ = [
    "SignatureResult",
    "SignedTransaction",
    "SigningError",
    "sign_eth_transaction",
    "sign_message",
    "sign_sol_transfer",
]
