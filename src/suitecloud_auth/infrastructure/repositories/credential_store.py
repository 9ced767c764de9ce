"""
Abstract interface for credential record storage.

Handles the lifecycle of named credential records (authIds):
- Listing and reading public views (no token secrets)
- Reading records with the access token decrypted
- Insert/replace with the access token encrypted at rest
- Rename and removal
"""

from abc import ABC, abstractmethod
from pathlib import Path

from suitecloud_auth.models import AuthRecord, HydrationResult, RequiresPasskey


class CredentialStore(ABC):
    """
    Abstract interface for credential record storage.

    Implementations must never return ``access_token`` or its ciphertext from
    ``list`` or ``get``, and must never persist an access token in plaintext.
    """

    @property
    @abstractmethod
    def store_path(self) -> Path:
        """Location of the persisted store."""
        pass

    @abstractmethod
    def list(self) -> dict[str, AuthRecord]:
        """
        List all records.

        Returns:
            Mapping of authId to public record
        """
        pass

    @abstractmethod
    def get(self, auth_id: str) -> AuthRecord | None:
        """
        Get the public view of a record.

        Args:
            auth_id: Record name

        Returns:
            Record without token secrets, or None if absent
        """
        pass

    @abstractmethod
    def hydrate(self, auth_id: str) -> HydrationResult | None:
        """
        Load a record with its access token decrypted.

        Args:
            auth_id: Record name

        Returns:
            ``Hydrated`` or ``RequiresPasskey``, or None if absent
        """
        pass

    def get_with_secrets(self, auth_id: str) -> AuthRecord | None:
        """
        Load a record with its access token decrypted.

        Args:
            auth_id: Record name

        Returns:
            Hydrated record, or None if absent

        Raises:
            PasskeyRequiredError: If the token is encrypted and no usable
                passkey is configured
        """
        result = self.hydrate(auth_id)
        if result is None:
            return None
        if isinstance(result, RequiresPasskey):
            raise result.error
        return result.record

    @abstractmethod
    def upsert(self, auth_id: str, record: AuthRecord) -> None:
        """
        Insert or replace a record.

        Args:
            auth_id: Record name
            record: Record, possibly carrying a plaintext access token
        """
        pass

    @abstractmethod
    def remove(self, auth_id: str) -> bool:
        """
        Remove a record.

        Returns:
            True if removed, False if it did not exist
        """
        pass

    @abstractmethod
    def rename(self, from_auth_id: str, to_auth_id: str) -> None:
        """
        Move a record to a new name without changing its content.

        Raises:
            CredentialStoreError: If the source is absent or the target exists
        """
        pass
