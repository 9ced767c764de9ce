"""
Token lifecycle: hand out valid access tokens for stored credentials.

Callers ask for an authId and get back the REST domain, system domain and an
access token that will stay valid for at least the safety margin. Expired
tokens are renewed with the flow that created the record and the renewed
record is written back to the store.
"""

from datetime import datetime, timedelta

from loguru import logger

from suitecloud_auth.constants import EXPIRY_SAFETY_MARGIN_SECONDS
from suitecloud_auth.exceptions import AuthIdNotFoundError, ConfigurationError
from suitecloud_auth.infrastructure.repositories import CredentialStore
from suitecloud_auth.models import (
    AccessContext,
    AuthRecord,
    AuthResult,
    AuthType,
    RequiresPasskey,
)
from suitecloud_auth.services.client_credentials import ClientCredentialsAuthenticator
from suitecloud_auth.services.pkce import PkceAuthenticator
from suitecloud_auth.utils.clock import Clock, to_iso, utc_now

SUPPORTED_TYPES = {auth_type.value for auth_type in AuthType}


def is_expired(
    expires_at: datetime | None,
    now: datetime,
    margin_seconds: int = EXPIRY_SAFETY_MARGIN_SECONDS,
) -> bool:
    """Unknown expiry counts as expired."""
    if expires_at is None:
        return True
    return expires_at <= now + timedelta(seconds=margin_seconds)


def _unsupported(auth_id: str) -> ConfigurationError:
    return ConfigurationError(
        f'Authentication ID "{auth_id}" is not a supported auth type for REST operations.'
    )


class TokenLifecycleManager:
    """Keeps stored credentials usable, refreshing them on demand."""

    def __init__(
        self,
        store: CredentialStore,
        ci_authenticator: ClientCredentialsAuthenticator,
        pkce_authenticator: PkceAuthenticator,
        clock: Clock = utc_now,
    ):
        """
        Initialize the manager.

        Args:
            store: Credential record storage
            ci_authenticator: Renews client-credentials records
            pkce_authenticator: Renews PKCE records through their refresh token
            clock: Source of the current time for expiry checks
        """
        self.store = store
        self.ci_authenticator = ci_authenticator
        self.pkce_authenticator = pkce_authenticator
        self._clock = clock

    def _load_for_refresh(self, auth_id: str) -> AuthRecord:
        """
        Load a record with its access token, tolerating a missing passkey for
        client-credentials records since they can simply authenticate again.
        """
        result = self.store.hydrate(auth_id)
        if result is None:
            raise AuthIdNotFoundError(auth_id)

        if isinstance(result, RequiresPasskey):
            if result.record.type == AuthType.PKCE.value:
                raise result.error
            logger.debug(
                f'Access token of "{auth_id}" cannot be decrypted; re-authenticating'
            )
        return result.record

    def _check_supported(self, auth_id: str, record: AuthRecord) -> None:
        if record.type not in SUPPORTED_TYPES or record.auth_config is None:
            raise _unsupported(auth_id)

    async def _reauthorize(self, auth_id: str, record: AuthRecord) -> AuthRecord:
        config = record.auth_config
        if record.type == AuthType.CLIENT_CREDENTIALS.value:
            result: AuthResult = await self.ci_authenticator.authenticate_ci(
                account_id=config.account_id,
                certificate_id=config.certificate_id,
                private_key_path=config.private_key_path,
                client_id=config.client_id,
                domain=config.domain,
                scope=config.scope,
            )
        elif record.type == AuthType.PKCE.value:
            result = await self.pkce_authenticator.refresh_with_refresh_token(
                account_id=config.account_id,
                client_id=config.client_id,
                refresh_token=record.token.refresh_token if record.token else None,
                scope=config.scope,
                domains=record.domains,
                domain=config.domain,
            )
        else:
            raise _unsupported(auth_id)

        updated = record.merged_with(result, to_iso(self._clock()))
        self.store.upsert(auth_id, updated)
        logger.info(f'Refreshed credentials for authId "{auth_id}"')
        return updated

    async def ensure_valid_access_token(self, auth_id: str) -> AccessContext:
        """
        Get a usable access token for an authId.

        Args:
            auth_id: Stored credential name

        Returns:
            AccessContext with REST domain, system domain and access token

        Raises:
            AuthIdNotFoundError: No record under ``auth_id``
            PasskeyRequiredError: PKCE token encrypted and no usable passkey
            ConfigurationError: Unsupported record, missing refresh data, or
                no domains/token after refresh
        """
        record = self._load_for_refresh(auth_id)
        self._check_supported(auth_id, record)

        token = record.token
        now = self._clock()
        if (
            token is None
            or not token.access_token
            or is_expired(token.expires_at_datetime(), now)
        ):
            record = await self._reauthorize(auth_id, record)

        rest_domain = record.domains.rest_domain if record.domains else None
        if not rest_domain:
            raise ConfigurationError(
                f'Authentication ID "{auth_id}" is missing REST domain information.'
            )
        access_token = record.token.access_token if record.token else None
        if not access_token:
            raise ConfigurationError(
                f'Authentication ID "{auth_id}" has no access token available.'
            )

        return AccessContext(
            rest_domain=rest_domain,
            system_domain=record.domains.system_domain,
            access_token=access_token,
        )

    async def refresh_authorization(self, auth_id: str) -> AuthRecord:
        """
        Renew a credential regardless of its expiry.

        Returns:
            Updated record, without token secrets

        Raises:
            AuthIdNotFoundError: No record under ``auth_id``
            PasskeyRequiredError: Stored token encrypted and no usable passkey
            ConfigurationError: Unsupported record or missing refresh data
        """
        record = self.store.get_with_secrets(auth_id)
        if record is None:
            raise AuthIdNotFoundError(auth_id)
        self._check_supported(auth_id, record)

        updated = await self._reauthorize(auth_id, record)
        return updated.without_secrets()

    def inspect_authorization(self, auth_id: str) -> bool:
        """
        Whether a credential is past its expiry.

        Uses the public record only, without the safety margin, so it never
        needs the passkey.

        Returns:
            True when the credential needs reauthorization
        """
        record = self.store.get(auth_id)
        if record is None:
            raise AuthIdNotFoundError(auth_id)
        expires_at = record.token.expires_at_datetime() if record.token else None
        return is_expired(expires_at, self._clock(), margin_seconds=0)
