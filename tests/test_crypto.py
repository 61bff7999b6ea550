"""Tests for key derivation and AES-256-GCM sealing."""

import pytest

from pwdvault.crypto import CryptoManager, KeyMaterial
from pwdvault.exceptions import AuthenticationFailure, InvalidParameters


class TestDeriveKey:

    def test_deterministic(self, crypto):
        salt = crypto.generate_salt()
        assert crypto.derive_key("passphrase", salt, 1) == crypto.derive_key("passphrase", salt, 1)

    def test_key_length(self, crypto):
        assert len(crypto.derive_key("passphrase", crypto.generate_salt(), 1)) == 32

    def test_salt_changes_key(self, crypto):
        k1 = crypto.derive_key("passphrase", b"\x00" * 16, 1)
        k2 = crypto.derive_key("passphrase", b"\x01" * 16, 1)
        assert k1 != k2

    def test_iterations_change_key(self, crypto):
        salt = crypto.generate_salt()
        assert crypto.derive_key("passphrase", salt, 1) != crypto.derive_key("passphrase", salt, 2)

    def test_passphrase_changes_key(self, crypto):
        salt = crypto.generate_salt()
        assert crypto.derive_key("one", salt, 1) != crypto.derive_key("two", salt, 1)

    @pytest.mark.parametrize("salt", [b"", b"short", b"x" * 32])
    def test_bad_salt_length(self, crypto, salt):
        with pytest.raises(InvalidParameters):
            crypto.derive_key("passphrase", salt, 1)

    def test_non_positive_iterations(self, crypto):
        with pytest.raises(InvalidParameters):
            crypto.derive_key("passphrase", crypto.generate_salt(), 0)

    def test_invalid_memory_cost(self):
        with pytest.raises(InvalidParameters):
            CryptoManager(memory_cost=4, parallelism=1)


class TestSealOpen:

    def test_roundtrip(self, crypto):
        key = crypto.derive_key("passphrase", crypto.generate_salt(), 1)
        nonce, ciphertext, tag = crypto.seal(b"secret payload", key)
        assert len(nonce) == 12
        assert len(tag) == 16
        assert ciphertext != b"secret payload"
        assert crypto.open(nonce, ciphertext, tag, key) == b"secret payload"

    def test_fresh_nonce_per_call(self, crypto):
        key = crypto.derive_key("passphrase", crypto.generate_salt(), 1)
        first = crypto.seal(b"same", key)
        second = crypto.seal(b"same", key)
        assert first[0] != second[0]
        assert first[1] != second[1]

    def test_wrong_key_fails(self, crypto):
        salt = crypto.generate_salt()
        key = crypto.derive_key("right", salt, 1)
        wrong = crypto.derive_key("wrong", salt, 1)
        nonce, ciphertext, tag = crypto.seal(b"secret", key)
        with pytest.raises(AuthenticationFailure):
            crypto.open(nonce, ciphertext, tag, wrong)

    def test_tampered_ciphertext_fails(self, crypto):
        key = crypto.derive_key("passphrase", crypto.generate_salt(), 1)
        nonce, ciphertext, tag = crypto.seal(b"secret payload", key)
        tampered = bytes([ciphertext[0] ^ 0x01]) + ciphertext[1:]
        with pytest.raises(AuthenticationFailure):
            crypto.open(nonce, tampered, tag, key)

    def test_truncated_tag_fails(self, crypto):
        key = crypto.derive_key("passphrase", crypto.generate_salt(), 1)
        nonce, ciphertext, tag = crypto.seal(b"secret payload", key)
        with pytest.raises(AuthenticationFailure):
            crypto.open(nonce, ciphertext, tag[:8], key)

    def test_associated_data_is_authenticated(self, crypto):
        key = crypto.derive_key("passphrase", crypto.generate_salt(), 1)
        nonce, ciphertext, tag = crypto.seal(b"secret", key, b"header-v1")
        assert crypto.open(nonce, ciphertext, tag, key, b"header-v1") == b"secret"
        with pytest.raises(AuthenticationFailure):
            crypto.open(nonce, ciphertext, tag, key, b"header-v2")

    def test_bad_nonce_length(self, crypto):
        key = crypto.derive_key("passphrase", crypto.generate_salt(), 1)
        _, ciphertext, tag = crypto.seal(b"secret", key)
        with pytest.raises(InvalidParameters):
            crypto.open(b"\x00" * 8, ciphertext, tag, key)

    def test_bad_key_length(self, crypto):
        with pytest.raises(InvalidParameters):
            crypto.seal(b"secret", b"too short")


class TestKeyMaterial:

    def test_wipe_zeroes_and_drops_key(self):
        km = KeyMaterial(b"k" * 32, b"s" * 16)
        buffer = km._key
        km.wipe()
        assert km.wiped
        assert buffer == bytearray(32)
        with pytest.raises(InvalidParameters):
            km.key

    def test_context_manager_wipes_on_error(self):
        km = KeyMaterial(b"k" * 32, b"s" * 16)
        with pytest.raises(RuntimeError):
            with km:
                raise RuntimeError("boom")
        assert km.wiped

    def test_matches(self):
        km = KeyMaterial(b"k" * 32, b"s" * 16)
        assert km.matches(b"k" * 32)
        assert not km.matches(b"x" * 32)
        km.wipe()
        assert not km.matches(b"k" * 32)

    def test_rejects_bad_sizes(self):
        with pytest.raises(InvalidParameters):
            KeyMaterial(b"k" * 16, b"s" * 16)
        with pytest.raises(InvalidParameters):
            KeyMaterial(b"k" * 32, b"s" * 8)

    def test_repr_does_not_leak_key(self):
        km = KeyMaterial(b"k" * 32, b"s" * 16)
        assert "kkkk" not in repr(km)
