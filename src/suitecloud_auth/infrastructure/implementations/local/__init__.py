"""Local file-based implementations."""

from suitecloud_auth.infrastructure.implementations.local.credential_store import (
    LocalCredentialStore,
)

__all__ = ["LocalCredentialStore"]
