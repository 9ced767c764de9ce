"""
Local JSON-file credential store.

Stores every record of one SDK home directory in a single file:
    {sdk_home}/
        auth/
            auth-store.json

The file is read whole on every operation and rewritten whole on every
mutation. There is no locking: two processes writing the same SDK home race
and the last writer wins.
"""

import json
import os
import tempfile
from collections.abc import Callable
from pathlib import Path

from loguru import logger
from pydantic import ValidationError

from suitecloud_auth.config import Settings
from suitecloud_auth.constants import STORE_FILE, STORE_FOLDER, STORE_VERSION
from suitecloud_auth.exceptions import CredentialStoreError, PasskeyRequiredError
from suitecloud_auth.infrastructure.repositories.credential_store import (
    CredentialStore,
)
from suitecloud_auth.models import (
    AuthRecord,
    Hydrated,
    HydrationResult,
    RequiresPasskey,
    StoreDocument,
)
from suitecloud_auth.utils.clock import Clock, to_iso, utc_now
from suitecloud_auth.utils.crypto import decrypt, derive_key, encrypt


def _passkey_from_environment() -> str | None:
    return Settings().get_passkey()


class LocalCredentialStore(CredentialStore):
    """
    File-based credential storage with passkey encryption of access tokens.

    The passkey is looked up on every call (environment by default), so a
    passkey exported mid-session is honoured without rebuilding the store.
    """

    def __init__(
        self,
        sdk_home: str | Path,
        passkey_provider: Callable[[], str | None] = _passkey_from_environment,
        clock: Clock = utc_now,
    ):
        """
        Initialize local credential store.

        Args:
            sdk_home: SDK home directory
            passkey_provider: Returns the current passkey, or None
            clock: Source of the current time for ``updatedAt``
        """
        self.sdk_home = Path(sdk_home)
        self._store_path = self.sdk_home / STORE_FOLDER / STORE_FILE
        self._passkey_provider = passkey_provider
        self._clock = clock

    @property
    def store_path(self) -> Path:
        return self._store_path

    # ------------------------------------------------------------------
    # File access
    # ------------------------------------------------------------------

    def _read_store(self) -> StoreDocument:
        """Read the whole store; a missing file is an empty store."""
        if not self._store_path.exists():
            return StoreDocument(updated_at=to_iso(self._clock()))

        try:
            data = json.loads(self._store_path.read_text(encoding="utf-8"))
        except ValueError as e:
            raise CredentialStoreError(
                f"Invalid auth store format at {self._store_path}: {e}"
            ) from e

        if not isinstance(data, dict):
            raise CredentialStoreError(
                f"Invalid auth store format at {self._store_path}"
            )
        raw_records = data.pop("authIds", None)
        if not isinstance(raw_records, dict):
            raw_records = {}

        try:
            store = StoreDocument.model_validate(data)
        except ValidationError as e:
            raise CredentialStoreError(
                f"Invalid auth store format at {self._store_path}: {e}"
            ) from e

        for auth_id, raw in raw_records.items():
            try:
                store.put(auth_id, AuthRecord.model_validate(raw))
            except ValidationError as e:
                logger.warning(
                    f'Ignoring unreadable record for authId "{auth_id}" in '
                    f"{self._store_path}: {e.error_count()} invalid field(s)"
                )
                store.put(auth_id, raw)
        return store

    def _write_store(self, store: StoreDocument) -> None:
        """Serialize the whole store, replacing the file atomically."""
        document = store.model_copy(
            update={"version": STORE_VERSION, "updated_at": to_iso(self._clock())}
        )
        payload = json.dumps(document.to_json_dict(), indent=2)

        directory = self._store_path.parent
        directory.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(dir=directory, prefix=".auth-store-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            try:
                os.chmod(tmp_name, 0o600)
            except OSError as e:
                logger.warning(f"Could not set file permissions: {e}")
            os.replace(tmp_name, self._store_path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _current_key(self) -> bytes | None:
        passkey = self._passkey_provider()
        return derive_key(passkey) if passkey else None

    # ------------------------------------------------------------------
    # Secret handling
    # ------------------------------------------------------------------

    def _persist_secrets(self, record: AuthRecord) -> AuthRecord:
        """Encrypt the access token, or drop it when no passkey is set."""
        token = record.token
        if token is None or not token.access_token:
            return record

        key = self._current_key()
        if key is None:
            logger.debug(
                "No passkey configured; access token is not persisted and "
                "will be re-obtained on next use"
            )
            token = token.model_copy(update={"access_token": None})
        else:
            token = token.model_copy(
                update={
                    "access_token_enc": encrypt(token.access_token, key),
                    "access_token": None,
                }
            )
        return record.model_copy(update={"token": token})

    def _hydrate_secrets(self, record: AuthRecord) -> HydrationResult:
        token = record.token
        if token is None or not token.access_token_enc:
            return Hydrated(record)

        key = self._current_key()
        if key is None:
            return RequiresPasskey(record.without_secrets(), PasskeyRequiredError())

        try:
            access_token = decrypt(token.access_token_enc, key)
        except PasskeyRequiredError as e:
            return RequiresPasskey(record.without_secrets(), e)

        token = token.model_copy(
            update={"access_token": access_token, "access_token_enc": None}
        )
        return Hydrated(record.model_copy(update={"token": token}))

    # ------------------------------------------------------------------
    # CredentialStore
    # ------------------------------------------------------------------

    def list(self) -> dict[str, AuthRecord]:
        store = self._read_store()
        return {
            auth_id: record.without_secrets()
            for auth_id, record in store.auth_ids.items()
        }

    def get(self, auth_id: str) -> AuthRecord | None:
        record = self._read_store().auth_ids.get(auth_id)
        return record.without_secrets() if record else None

    def hydrate(self, auth_id: str) -> HydrationResult | None:
        record = self._read_store().auth_ids.get(auth_id)
        return self._hydrate_secrets(record) if record else None

    def upsert(self, auth_id: str, record: AuthRecord) -> None:
        store = self._read_store()
        store.put(auth_id, self._persist_secrets(record))
        self._write_store(store)
        logger.info(f'Stored credentials for authId "{auth_id}"')

    def remove(self, auth_id: str) -> bool:
        store = self._read_store()
        if not store.contains(auth_id):
            return False
        store.pop(auth_id)
        self._write_store(store)
        logger.info(f'Removed authId "{auth_id}"')
        return True

    def rename(self, from_auth_id: str, to_auth_id: str) -> None:
        store = self._read_store()
        if not store.contains(from_auth_id):
            raise CredentialStoreError(f'Authentication ID "{from_auth_id}" not found.')
        if store.contains(to_auth_id):
            raise CredentialStoreError(
                f'Authentication ID "{to_auth_id}" already exists.'
            )
        store.put(to_auth_id, store.pop(from_auth_id))
        self._write_store(store)
        logger.info(f'Renamed authId "{from_auth_id}" to "{to_auth_id}"')
