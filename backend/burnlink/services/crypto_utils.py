import base64
import binascii
import secrets
from dataclasses import dataclass

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from burnlink.config import Settings
from burnlink.errors import DecryptionFailure, EncryptionKeyConfigError

KEY_LENGTH = 32  # AES-256
IV_LENGTH = 12  # 96-bit GCM nonce
AUTH_TAG_LENGTH = 16

# Configure Argon2id with secure parameters
# time_cost=3, memory_cost=65536 (64MB), parallelism=4
ph = PasswordHasher(
    time_cost=3,
    memory_cost=65536,
    parallelism=4,
    hash_len=32,
    salt_len=16,
)


def hash_password(password: str) -> str:
    """Hash a secret's access password using Argon2id."""
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its Argon2id hash."""
    try:
        return ph.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


@dataclass(frozen=True, slots=True)
class EncryptedPayload:
    ciphertext: bytes
    iv: bytes
    auth_tag: bytes


def _check_key(key: bytes) -> None:
    if not isinstance(key, bytes) or len(key) != KEY_LENGTH:
        raise ValueError(f"Encryption key must be exactly {KEY_LENGTH} bytes")


def encrypt(plaintext: str, key: bytes) -> EncryptedPayload:
    """
    Encrypt text with AES-256-GCM under a fresh random nonce.

    Only a malformed key makes this fail.
    """
    _check_key(key)
    iv = secrets.token_bytes(IV_LENGTH)
    sealed = AESGCM(key).encrypt(iv, plaintext.encode("utf-8"), None)
    return EncryptedPayload(
        ciphertext=sealed[:-AUTH_TAG_LENGTH],
        iv=iv,
        auth_tag=sealed[-AUTH_TAG_LENGTH:],
    )


def decrypt(payload: EncryptedPayload, key: bytes) -> str:
    """Decrypt a payload produced by :func:`encrypt`, raising DecryptionFailure on any mismatch."""
    _check_key(key)
    if payload.iv is None or len(payload.iv) != IV_LENGTH:
        raise DecryptionFailure()
    if payload.auth_tag is None or len(payload.auth_tag) != AUTH_TAG_LENGTH:
        raise DecryptionFailure()
    try:
        plaintext = AESGCM(key).decrypt(payload.iv, payload.ciphertext + payload.auth_tag, None)
        return plaintext.decode("utf-8")
    except (InvalidTag, UnicodeDecodeError, TypeError) as e:
        raise DecryptionFailure() from e


def load_encryption_key(settings: Settings) -> bytes:
    """
    Decode ENCRYPTION_KEY from settings.

    There is no fallback key: a missing or malformed value stops startup.
    """
    if not settings.encryption_key:
        raise EncryptionKeyConfigError(
            "ENCRYPTION_KEY is required (base64 of 32 random bytes); refusing to start"
        )
    try:
        key = base64.b64decode(settings.encryption_key, validate=True)
    except (binascii.Error, ValueError) as e:
        raise EncryptionKeyConfigError("ENCRYPTION_KEY is not valid base64") from e
    if len(key) != KEY_LENGTH:
        raise EncryptionKeyConfigError(f"ENCRYPTION_KEY must decode to exactly {KEY_LENGTH} bytes")
    return key


def generate_encryption_key() -> str:
    """Generate a value suitable for ENCRYPTION_KEY."""
    return base64.b64encode(secrets.token_bytes(KEY_LENGTH)).decode()


class ServerCipher:
    """Holds the process-wide key for the server-side encryption layer."""

    def __init__(self, key: bytes) -> None:
        _check_key(key)
        self._key = key

    @classmethod
    def from_settings(cls, settings: Settings) -> "ServerCipher":
        return cls(load_encryption_key(settings))

    def encrypt(self, plaintext: str) -> EncryptedPayload:
        return encrypt(plaintext, self._key)

    def decrypt(self, payload: EncryptedPayload) -> str:
        return decrypt(payload, self._key)
