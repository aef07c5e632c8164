"""Tests for key derivation, the keyring and the seed vault."""

from unittest.mock import patch

import pytest

from conftest import TEST_ETH_ADDRESS, TEST_MNEMONIC
from nijawallet.crypto import SeedVault, encrypt_seed_phrase, generate_master_key
from nijawallet.errors import InvalidSeed, Malformed, WalletNotInitialized
from nijawallet.hdwallet import (
    ChainTag,
    Keyring,
    derive_keypair,
    get_deriver,
    get_supported_chains,
    parse_chain_tag,
)
from nijawallet.hdwallet.base import addresses_equal, normalize_address


class TestDeriveKeypair:
    """Tests for derive_keypair."""

    def test_eth_known_vector(self):
        """Account 0 matches the standard Ethereum path for the test mnemonic."""
        keypair = derive_keypair(TEST_MNEMONIC, "ETH", 0)

        assert keypair.address == TEST_ETH_ADDRESS
        assert keypair.derivation_path == "m/44'/60'/0'/0/0"
        assert len(keypair.private_key) == 32

    def test_deterministic(self):
        """Same inputs always give the same keypair."""
        for chain in get_supported_chains():
            a = derive_keypair(TEST_MNEMONIC, chain, 3)
            b = derive_keypair(TEST_MNEMONIC, chain, 3)
            assert a == b

    def test_accounts_differ(self):
        """Different account indexes give different addresses."""
        addresses = {derive_keypair(TEST_MNEMONIC, "ETH", i).address for i in range(4)}
        assert len(addresses) == 4

    def test_phrase_whitespace_and_case(self):
        """Extra whitespace and capitals do not change the result."""
        messy = "  " + TEST_MNEMONIC.upper().replace(" ", "   ") + "\n"
        assert derive_keypair(messy, "ETH").address == TEST_ETH_ADDRESS

    def test_sol_path_and_address(self):
        """Solana keys use the hardened account path and base58 addresses."""
        keypair = derive_keypair(TEST_MNEMONIC, "SOL", 2)

        assert keypair.derivation_path == "m/44'/501'/2'/0'"
        assert get_deriver("SOL").is_valid_address(keypair.address)
        assert not keypair.address.startswith("0x")

    def test_empty_seed_rejected(self):
        with pytest.raises(InvalidSeed):
            derive_keypair("   ", "ETH")

    def test_invalid_mnemonic_rejected(self):
        """A phrase with a bad checksum never yields a key."""
        bad = " ".join(["abandon"] * 12)
        with pytest.raises(InvalidSeed):
            derive_keypair(bad, "ETH")

    def test_unknown_chain_rejected(self):
        with pytest.raises(Malformed):
            derive_keypair(TEST_MNEMONIC, "BTC")

    def test_negative_index_rejected(self):
        with pytest.raises(Malformed):
            derive_keypair(TEST_MNEMONIC, "ETH", -1)

    def test_private_key_not_in_repr(self):
        keypair = derive_keypair(TEST_MNEMONIC, "ETH")
        assert keypair.private_key.hex() not in repr(keypair)


class TestAddressHelpers:
    """Tests for chain tag and address helpers."""

    def test_parse_chain_tag(self):
        assert parse_chain_tag("eth") == ChainTag.ETH
        assert parse_chain_tag(ChainTag.SOL) == ChainTag.SOL

    def test_eth_addresses_compare_case_insensitively(self):
        assert addresses_equal(TEST_ETH_ADDRESS, TEST_ETH_ADDRESS.lower())
        assert normalize_address(TEST_ETH_ADDRESS) == TEST_ETH_ADDRESS.lower()

    def test_eth_address_validation(self):
        deriver = get_deriver("ETH")
        assert deriver.is_valid_address(TEST_ETH_ADDRESS)
        assert not deriver.is_valid_address("0x1234")
        assert not deriver.is_valid_address("not-an-address")


class TestSeedVault:
    """Tests for the encrypted seed holder."""

    def test_round_trip_through_vault(self):
        key = generate_master_key()
        vault = SeedVault(encrypt_seed_phrase(TEST_MNEMONIC, key), key)

        with vault.unlocked() as phrase:
            assert phrase == TEST_MNEMONIC
        assert "abandon" not in repr(vault)

    def test_wrong_key_rejected(self):
        encrypted = encrypt_seed_phrase(TEST_MNEMONIC, generate_master_key())
        with pytest.raises(InvalidSeed):
            SeedVault(encrypted, generate_master_key())

    def test_garbage_key_rejected(self):
        encrypted = encrypt_seed_phrase(TEST_MNEMONIC, generate_master_key())
        with pytest.raises(InvalidSeed):
            SeedVault(encrypted, "not-a-fernet-key")


class TestKeyring:
    """Tests for the process keyring."""

    def test_warm_up_initializes(self, keyring):
        assert keyring.initialized
        assert keyring.init_error is None
        assert keyring.addresses(0)["ETH"] == TEST_ETH_ADDRESS

    def test_find_keypair_by_address(self, keyring):
        """Any address within the scanned account range resolves."""
        target = derive_keypair(TEST_MNEMONIC, "ETH", 2)

        found = keyring.find_keypair(target.address.lower(), "ETH")

        assert found is not None
        assert found.account_index == 2

    def test_find_keypair_unknown_address(self, keyring):
        assert keyring.find_keypair("0x" + "22" * 20, "ETH") is None

    @pytest.mark.asyncio
    async def test_lookups_after_warm_up_do_not_derive(self, keyring):
        """Every scanned account is derived at warm-up; lookups are cache hits."""
        target = derive_keypair(TEST_MNEMONIC, "SOL", keyring.max_account_index)

        with patch("nijawallet.hdwallet.keyring.derive_keypair") as derive:
            found = await keyring.resolve(target.address, "SOL")
            missing = await keyring.resolve("0x" + "22" * 20, "ETH")

        assert found.account_index == keyring.max_account_index
        assert missing is None
        derive.assert_not_called()

    def test_no_seed_is_not_initialized(self):
        """Without a seed every signing path fails; no random key is made."""
        keyring = Keyring(None)
        keyring.warm_up()

        assert not keyring.initialized
        with pytest.raises(WalletNotInitialized):
            keyring.keypair("ETH")

    def test_invalid_seed_marks_uninitialized(self):
        keyring = Keyring(SeedVault.from_plaintext("not a real seed phrase at all"))
        keyring.warm_up()

        assert not keyring.initialized
        assert "ETH" in keyring.init_error
        with pytest.raises(WalletNotInitialized):
            keyring.find_keypair(TEST_ETH_ADDRESS)
