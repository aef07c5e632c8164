#!/usr/bin/env python3
"""Encrypt a seed phrase for SEED_PHRASE_ENCRYPTED.

Generates a new MASTER_KEY unless one is passed in the environment.

Usage:
    python scripts/encrypt_seed.py   # prompts for seed phrase
"""

import os
import sys
from getpass import getpass

from nijawallet.crypto import SeedVault, encrypt_seed_phrase, generate_master_key
from nijawallet.errors import WalletError
from nijawallet.hdwallet import derive_keypair


def main():
    """Main entry point."""
    print("Enter the seed phrase to encrypt (12 or 24 words):")
    mnemonic = getpass("Seed phrase: ")

    try:
        # Refuse to encrypt anything that does not derive
        primary = derive_keypair(mnemonic, "ETH").address
        master_key = os.environ.get("MASTER_KEY") or generate_master_key()
        encrypted = encrypt_seed_phrase(mnemonic, master_key)
        SeedVault(encrypted, master_key)
    except WalletError as e:
        print(f"Error: {e.message}")
        sys.exit(1)

    print("=" * 60)
    print(f"Primary ETH address: {primary}")
    print("Add these to your .env file (keep MASTER_KEY separate from backups):")
    print("=" * 60)
    if not os.environ.get("MASTER_KEY"):
        print(f"MASTER_KEY={master_key}")
    print(f"SEED_PHRASE_ENCRYPTED={encrypted}")


if __name__ == "__main__":
    main()
