"""
Passkey-based encryption of stored access tokens.

The key is derived deterministically from the passkey: the first 32 hex
characters of SHA-256(passkey), used as a 32-byte AES-256 key. Ciphertexts are
AES-256-GCM with a random 96-bit nonce, serialized as
``base64(nonce || ciphertext || tag)``.
"""

import base64
import binascii
import hashlib
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from suitecloud_auth.exceptions import PasskeyRequiredError

NONCE_SIZE = 12
KEY_SIZE = 32


def derive_key(passkey: str) -> bytes | None:
    """
    Derive the AES-256 key for a passkey.

    Args:
        passkey: Passkey from the environment

    Returns:
        32-byte key, or None for an empty passkey
    """
    normalized = (passkey or "").strip()
    if not normalized:
        return None
    digest = hashlib.sha256(normalized.encode("utf-8")).hexdigest()
    return digest[:KEY_SIZE].encode("ascii")


def encrypt(plaintext: str, key: bytes) -> str:
    """Encrypt a token with a derived key."""
    nonce = os.urandom(NONCE_SIZE)
    ciphertext = AESGCM(key).encrypt(nonce, plaintext.encode("utf-8"), None)
    return base64.b64encode(nonce + ciphertext).decode("ascii")


def decrypt(payload: str, key: bytes) -> str:
    """
    Decrypt a token produced by ``encrypt``.

    Raises:
        PasskeyRequiredError: If the payload is corrupt or the passkey differs
            from the one used to encrypt
    """
    try:
        raw = base64.b64decode(payload.encode("ascii"), validate=True)
    except (binascii.Error, ValueError, UnicodeEncodeError) as e:
        raise PasskeyRequiredError("Stored access token is not valid ciphertext.") from e

    nonce, ciphertext = raw[:NONCE_SIZE], raw[NONCE_SIZE:]
    try:
        return AESGCM(key).decrypt(nonce, ciphertext, None).decode("utf-8")
    except (InvalidTag, ValueError) as e:
        raise PasskeyRequiredError(
            "Stored access token cannot be decrypted with the configured passkey."
        ) from e
