#!/usr/bin/env python3
"""Derive custodial ETH and SOL addresses from a seed phrase.

Used to check that a seed recovers the expected addresses before it is
configured on a server.

Usage:
    python scripts/derive_addresses.py [--accounts N]   # prompts for seed phrase
"""

import argparse
import sys
from getpass import getpass

from nijawallet.errors import WalletError
from nijawallet.hdwallet import derive_keypair, get_supported_chains


def derive_addresses(mnemonic: str, accounts: int) -> list[dict]:
    """Derive public info for accounts 0..accounts-1 on every chain."""
    rows = []
    for index in range(accounts):
        for chain in get_supported_chains():
            rows.append(derive_keypair(mnemonic, chain, index).public_info)
    return rows


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Derive wallet addresses from a seed phrase")
    parser.add_argument("--accounts", type=int, default=1, help="Number of accounts to derive")
    args = parser.parse_args()

    print("Enter your seed phrase (12 or 24 words):")
    mnemonic = getpass("Seed phrase: ")

    try:
        rows = derive_addresses(mnemonic, max(args.accounts, 1))
    except WalletError as e:
        print(f"Error: {e.message}")
        sys.exit(1)

    print("=" * 72)
    for row in rows:
        print(f"{row['chain']:<4} #{row['account_index']:<3} {row['derivation_path']:<22} {row['address']}")
    print("=" * 72)


if __name__ == "__main__":
    main()
