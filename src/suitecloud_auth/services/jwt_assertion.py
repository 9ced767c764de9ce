"""
JWT client assertions for the client_credentials grant.

Assertions are compact JWTs signed with PS256 (RSA-PSS, SHA-256, salt length
equal to the digest length). The grant identifies the client, not a user, so
no ``sub`` claim is set.
"""

import json
from typing import Any

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from suitecloud_auth.constants import DEFAULT_ASSERTION_TTL_SECONDS
from suitecloud_auth.exceptions import JwtSigningError
from suitecloud_auth.utils.clock import Clock, utc_now
from suitecloud_auth.utils.pkce import base64url


def _encode_segment(value: dict[str, Any]) -> str:
    return base64url(json.dumps(value, separators=(",", ":")).encode("utf-8"))


def _load_rsa_private_key(private_key_pem: str | bytes) -> rsa.RSAPrivateKey:
    data = (
        private_key_pem.encode("utf-8")
        if isinstance(private_key_pem, str)
        else private_key_pem
    )
    try:
        key = serialization.load_pem_private_key(data, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise JwtSigningError(f"Invalid private key for JWT assertion: {e}") from e

    if not isinstance(key, rsa.RSAPrivateKey):
        raise JwtSigningError("JWT assertion requires an RSA private key (PS256).")
    return key


class JwtAssertionSigner:
    """Builds and signs client-credentials JWT assertions."""

    def __init__(self, clock: Clock = utc_now):
        """
        Initialize the signer.

        Args:
            clock: Source of the current time when ``now_seconds`` is not given
        """
        self._clock = clock

    def sign(
        self,
        audience: str,
        issuer: str,
        kid: str,
        private_key_pem: str | bytes,
        scope: str | None = None,
        now_seconds: int | None = None,
        expires_in_seconds: int = DEFAULT_ASSERTION_TTL_SECONDS,
    ) -> str:
        """
        Create a signed assertion.

        Args:
            audience: Token endpoint URL (``aud``)
            issuer: OAuth client id (``iss``)
            kid: Certificate id registered for the client
            private_key_pem: PEM-encoded RSA private key
            scope: Optional ``scope`` claim
            now_seconds: Issue time override (epoch seconds)
            expires_in_seconds: Lifetime of the assertion

        Returns:
            Compact JWT ``header.payload.signature``

        Raises:
            JwtSigningError: If the key is malformed or not RSA
        """
        now = int(now_seconds if now_seconds is not None else self._clock().timestamp())
        ttl = expires_in_seconds or DEFAULT_ASSERTION_TTL_SECONDS

        header = {"alg": "PS256", "typ": "JWT", "kid": kid}
        payload: dict[str, Any] = {
            "iss": issuer,
            "aud": audience,
            "iat": now,
            "exp": now + ttl,
        }
        if scope:
            payload["scope"] = scope

        signing_input = f"{_encode_segment(header)}.{_encode_segment(payload)}"

        key = _load_rsa_private_key(private_key_pem)
        signature = key.sign(
            signing_input.encode("utf-8"),
            padding.PSS(
                mgf=padding.MGF1(hashes.SHA256()),
                salt_length=padding.PSS.DIGEST_LENGTH,
            ),
            hashes.SHA256(),
        )
        return f"{signing_input}.{base64url(signature)}"
