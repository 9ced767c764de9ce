"""
Credential store document and hydration results.
"""

from dataclasses import dataclass
from typing import Any

from pydantic import Field, PrivateAttr

from suitecloud_auth.constants import STORE_VERSION
from suitecloud_auth.exceptions import PasskeyRequiredError
from suitecloud_auth.models.auth import AuthRecord, CamelModel


class StoreDocument(CamelModel):
    """
    On-disk layout: ``{version, updatedAt, authIds: {authId: record}}``.

    Records that fail validation are kept apart as raw JSON: they are not
    listed or returned, but they can be removed or renamed and are written
    back unchanged.
    """

    version: int = STORE_VERSION
    updated_at: str | None = None
    auth_ids: dict[str, AuthRecord] = Field(default_factory=dict)

    _unreadable: dict[str, Any] = PrivateAttr(default_factory=dict)

    @property
    def unreadable(self) -> dict[str, Any]:
        """Raw JSON of the records that could not be parsed, by authId."""
        return self._unreadable

    def contains(self, auth_id: str) -> bool:
        return auth_id in self.auth_ids or auth_id in self._unreadable

    def pop(self, auth_id: str) -> AuthRecord | dict[str, Any] | None:
        """Detach a record, parsed or raw."""
        if auth_id in self.auth_ids:
            return self.auth_ids.pop(auth_id)
        return self._unreadable.pop(auth_id, None)

    def put(self, auth_id: str, record: AuthRecord | dict[str, Any]) -> None:
        self.pop(auth_id)
        if isinstance(record, AuthRecord):
            self.auth_ids[auth_id] = record
        else:
            self._unreadable[auth_id] = record

    def to_json_dict(self) -> dict[str, Any]:
        data = super().to_json_dict()
        data.setdefault("authIds", {}).update(self._unreadable)
        return data


@dataclass(frozen=True)
class Hydrated:
    """Record with its access token decrypted (or with no token at all)."""

    record: AuthRecord


@dataclass(frozen=True)
class RequiresPasskey:
    """
    Record whose token is encrypted but cannot be decrypted.

    Attributes:
        record: Public view of the record (no token secrets)
        error: Error explaining which environment variables to set
    """

    record: AuthRecord
    error: PasskeyRequiredError


HydrationResult = Hydrated | RequiresPasskey
