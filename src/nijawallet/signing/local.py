"""Local signing with derived in-memory keys.

ETH uses eth_account (EIP-191 personal messages, legacy/EIP-1559 tx dicts).
SOL uses solders (Ed25519 message signatures, System transfers).
"""

import logging
from typing import Union

from eth_account import Account
from eth_account.messages import _hash_eip191_message, encode_defunct
from solders.hash import Hash
from solders.message import Message
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer
from solders.transaction import Transaction

from nijawallet.hdwallet.base import ChainKeypair, ChainTag
from nijawallet.hdwallet.sol import solana_keypair
from nijawallet.signing.base import SignatureResult, SignedTransaction, SigningError

logger = logging.getLogger(__name__)


def _to_bytes(message: Union[str, bytes]) -> bytes:
    if isinstance(message, bytes):
        return message
    if message.startswith("0x"):
        try:
            return bytes.fromhex(message[2:])
        except ValueError:
            pass
    return message.encode()


def sign_message(keypair: ChainKeypair, message: Union[str, bytes]) -> SignatureResult:
    """Sign an arbitrary message with a derived key.

    A 0x-prefixed hex string is signed as the bytes it encodes, matching
    personal_sign.
    """
    payload = _to_bytes(message)

    try:
        if keypair.chain_tag == ChainTag.ETH:
            signable = encode_defunct(primitive=payload)
            signed = Account.sign_message(signable, private_key=keypair.private_key)
            return SignatureResult(
                chain=keypair.chain_tag.value,
                address=keypair.address,
                signature="0x" + bytes(signed.signature).hex(),
                message_hash="0x" + bytes(_hash_eip191_message(signable)).hex(),
            )

        signature = solana_keypair(keypair).sign_message(payload)
        return SignatureResult(
            chain=keypair.chain_tag.value,
            address=keypair.address,
            signature=str(signature),
        )

    except Exception as e:
        logger.error("Message signing failed for %s: %s", keypair.chain_tag.value, e)
        raise SigningError(f"{keypair.chain_tag.value} message signing failed") from e


def sign_eth_transaction(keypair: ChainKeypair, tx: dict) -> SignedTransaction:
    """Sign an Ethereum transaction dict (nonce, gas, gasPrice, to, value, chainId)."""
    if keypair.chain_tag != ChainTag.ETH:
        raise SigningError("ETH transaction requires an ETH keypair")

    try:
        signed = Account.sign_transaction(tx, keypair.private_key)
    except Exception as e:
        logger.error("ETH transaction signing failed: %s", e)
        raise SigningError("ETH transaction signing failed") from e

    return SignedTransaction(
        chain=ChainTag.ETH.value,
        tx_hash="0x" + bytes(signed.hash).hex(),
        raw=bytes(signed.raw_transaction),
    )


def sign_sol_transfer(
    keypair: ChainKeypair,
    to_address: str,
    lamports: int,
    recent_blockhash: str,
) -> SignedTransaction:
    """Build and sign a System Program transfer."""
    if keypair.chain_tag != ChainTag.SOL:
        raise SigningError("SOL transfer requires a SOL keypair")

    try:
        signer = solana_keypair(keypair)
        instruction = transfer(
            TransferParams(
                from_pubkey=signer.pubkey(),
                to_pubkey=Pubkey.from_string(to_address),
                lamports=lamports,
            )
        )
        message = Message([instruction], signer.pubkey())
        tx = Transaction([signer], message, Hash.from_string(recent_blockhash))
    except Exception as e:
        logger.error("SOL transfer signing failed: %s", e)
        raise SigningError("SOL transfer signing failed") from e

    return SignedTransaction(
        chain=ChainTag.SOL.value,
        tx_hash=str(tx.signatures[0]),
        raw=bytes(tx),
    )
