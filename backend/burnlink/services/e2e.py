"""
Client-side end-to-end encryption helpers.

A creator can seal the text with a random per-secret key before it ever
reaches the server. The sealed form is what gets submitted as ``content``
(and is then wrapped again by the server-side layer). The key travels only
in the share link's fragment, which browsers never send over the network:

    https://<host>/secret/<id>#<64 hex chars>

Wire format of the sealed content, compatible with the WebCrypto client:

    {"ciphertext": base64(ciphertext || 16-byte tag), "iv": 32 hex chars}

The server never calls into this module.
"""

import base64
import binascii
import json
import re
import secrets
from urllib.parse import urlparse

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from burnlink.errors import DecryptionFailure

FRAGMENT_KEY_BYTES = 32  # 256-bit key
FRAGMENT_IV_BYTES = 16  # 128-bit IV

_KEY_HEX_RE = re.compile(r"^[0-9a-fA-F]{64}$")
_SECRET_PATH_RE = re.compile(r"^/secret/([^/]+)/?$")


def generate_fragment_key() -> str:
    """Return a fresh 256-bit key as 64 hex characters."""
    return secrets.token_hex(FRAGMENT_KEY_BYTES)


def _key_bytes(key_hex: str) -> bytes:
    if not key_hex or not _KEY_HEX_RE.match(key_hex):
        raise ValueError("Fragment key must be 64 hex characters")
    return bytes.fromhex(key_hex)


def seal(plaintext: str, key_hex: str) -> str:
    """Encrypt text for submission as a secret's content."""
    key = _key_bytes(key_hex)
    iv = secrets.token_bytes(FRAGMENT_IV_BYTES)
    sealed = AESGCM(key).encrypt(iv, plaintext.encode("utf-8"), None)
    return json.dumps(
        {
            "ciphertext": base64.b64encode(sealed).decode(),
            "iv": iv.hex(),
        }
    )


def open_sealed(content: str, key_hex: str) -> str:
    """Reverse :func:`seal`. Any malformed input or wrong key is a DecryptionFailure."""
    try:
        key = _key_bytes(key_hex)
        envelope = json.loads(content)
        sealed = base64.b64decode(envelope["ciphertext"], validate=True)
        iv = bytes.fromhex(envelope["iv"])
        if len(iv) != FRAGMENT_IV_BYTES:
            raise ValueError("IV must be 16 bytes")
        return AESGCM(key).decrypt(iv, sealed, None).decode("utf-8")
    except (
        ValueError,
        TypeError,
        KeyError,
        binascii.Error,
        InvalidTag,
    ) as e:
        raise DecryptionFailure("Failed to decrypt secret. The link or key may be invalid.") from e


def build_share_url(base_url: str, secret_id: str, key_hex: str | None = None) -> str:
    """Build the link handed to the recipient, with the fragment key if one was used."""
    url = f"{base_url.rstrip('/')}/secret/{secret_id}"
    if key_hex is not None:
        _key_bytes(key_hex)
        url = f"{url}#{key_hex.lower()}"
    return url


def parse_share_url(url: str) -> tuple[str, str | None]:
    """Split a share link into (secret_id, fragment key or None)."""
    parsed = urlparse(url)
    match = _SECRET_PATH_RE.match(parsed.path)
    if not match:
        raise ValueError(f"Not a share link: {url}")
    fragment = parsed.fragment or None
    if fragment is not None and not _KEY_HEX_RE.match(fragment):
        raise ValueError("Missing or invalid decryption key in URL")
    return match.group(1), fragment
