"""
PKCE (Proof Key for Code Exchange) utilities.
"""

import base64
import hashlib
import secrets
from collections.abc import Callable

RandomBytes = Callable[[int], bytes]

CODE_VERIFIER_BYTES = 64
STATE_BYTES = 32


def base64url(data: bytes) -> str:
    """Unpadded base64url encoding."""
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def generate_code_verifier(random_bytes: RandomBytes = secrets.token_bytes) -> str:
    """
    Generates a random code verifier for PKCE.

    Args:
        random_bytes: Source of randomness, injectable for tests

    Returns:
        Code verifier in base64url format (86 characters)
    """
    return base64url(random_bytes(CODE_VERIFIER_BYTES))


def generate_code_challenge(code_verifier: str) -> str:
    """
    Generates a code challenge from the code verifier using SHA256.

    Args:
        code_verifier: Generated code verifier

    Returns:
        Code challenge in base64url format
    """
    digest = hashlib.sha256(code_verifier.encode("utf-8")).digest()
    return base64url(digest)


def generate_state(random_bytes: RandomBytes = secrets.token_bytes) -> str:
    """
    Generate an opaque OAuth state token.

    Returns:
        str: base64url string carrying 256 bits of entropy
    """
    return base64url(random_bytes(STATE_BYTES))
