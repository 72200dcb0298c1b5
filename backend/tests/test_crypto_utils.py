"""Tests for server-side encryption and password hashing."""

import base64
from dataclasses import replace

import pytest

from burnlink.config import Settings
from burnlink.errors import DecryptionFailure, EncryptionKeyConfigError
from burnlink.services.crypto_utils import (
    ServerCipher,
    decrypt,
    encrypt,
    generate_encryption_key,
    hash_password,
    load_encryption_key,
    verify_password,
)

KEY = b"\x01" * 32
OTHER_KEY = b"\x02" * 32


class TestSymmetricEncryption:
    @pytest.mark.parametrize("plaintext", ["hello", "", "ünïcødé ✓", "x" * 10_000])
    def test_round_trip(self, plaintext):
        assert decrypt(encrypt(plaintext, KEY), KEY) == plaintext

    def test_fresh_iv_per_call(self):
        first = encrypt("same", KEY)
        second = encrypt("same", KEY)
        assert first.iv != second.iv
        assert first.ciphertext != second.ciphertext

    def test_ciphertext_does_not_contain_plaintext(self):
        payload = encrypt("correct horse battery staple", KEY)
        assert b"correct horse" not in payload.ciphertext

    def test_wrong_key_is_decryption_failure(self):
        payload = encrypt("hello", KEY)
        with pytest.raises(DecryptionFailure):
            decrypt(payload, OTHER_KEY)

    def test_tampered_ciphertext_is_decryption_failure(self):
        payload = encrypt("hello", KEY)
        flipped = bytes([payload.ciphertext[0] ^ 0xFF]) + payload.ciphertext[1:]
        with pytest.raises(DecryptionFailure):
            decrypt(replace(payload, ciphertext=flipped), KEY)

    def test_truncated_tag_is_decryption_failure(self):
        payload = encrypt("hello", KEY)
        with pytest.raises(DecryptionFailure):
            decrypt(replace(payload, auth_tag=payload.auth_tag[:8]), KEY)

    @pytest.mark.parametrize("bad_key", [b"", b"short", b"\x00" * 31, b"\x00" * 33])
    def test_malformed_key_rejected(self, bad_key):
        with pytest.raises(ValueError):
            encrypt("hello", bad_key)

    def test_server_cipher_round_trip(self):
        cipher = ServerCipher(KEY)
        assert cipher.decrypt(cipher.encrypt("payload")) == "payload"


class TestPasswordHashing:
    def test_verify_correct_password(self):
        password_hash = hash_password("hunter2")
        assert verify_password("hunter2", password_hash)

    def test_verify_wrong_password(self):
        password_hash = hash_password("hunter2")
        assert not verify_password("hunter3", password_hash)

    def test_hash_is_salted(self):
        assert hash_password("same") != hash_password("same")

    def test_hash_is_argon2id(self):
        assert hash_password("pw").startswith("$argon2id$")

    def test_garbage_hash_does_not_verify(self):
        assert not verify_password("pw", "not-a-hash")


class TestEncryptionKeyLoading:
    def test_missing_key_refuses(self):
        with pytest.raises(EncryptionKeyConfigError, match="ENCRYPTION_KEY is required"):
            load_encryption_key(Settings(encryption_key=None))

    def test_empty_key_refuses(self):
        with pytest.raises(EncryptionKeyConfigError):
            ServerCipher.from_settings(Settings(encryption_key=""))

    def test_non_base64_key_refuses(self):
        with pytest.raises(EncryptionKeyConfigError, match="base64"):
            load_encryption_key(Settings(encryption_key="not base64!!"))

    def test_wrong_length_key_refuses(self):
        short = base64.b64encode(b"\x00" * 16).decode()
        with pytest.raises(EncryptionKeyConfigError, match="32 bytes"):
            load_encryption_key(Settings(encryption_key=short))

    def test_generated_key_loads(self):
        key = load_encryption_key(Settings(encryption_key=generate_encryption_key()))
        assert len(key) == 32
