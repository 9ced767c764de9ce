"""Abstract repository interfaces for infrastructure operations."""

from suitecloud_auth.infrastructure.repositories.credential_store import (
    CredentialStore,
)

__all__ = ["CredentialStore"]
