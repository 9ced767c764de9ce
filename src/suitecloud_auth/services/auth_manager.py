"""
Entry points used by the rest of the command-line tool.

``AuthManager`` ties authenticators, credential store and token lifecycle
together behind the operations other commands need: authenticate and store a
credential, list, inspect, rename and remove stored credentials, resolve
domains, and obtain a valid access token.

Usage:
    from suitecloud_auth.factory import ServiceFactory

    factory = ServiceFactory.from_settings(get_settings())
    async with factory.create_auth_manager() as auth:
        context = await auth.ensure_valid_access_token("prod")
"""

from pathlib import Path

from loguru import logger

from suitecloud_auth.constants import DEFAULT_CALLBACK_TIMEOUT_MS
from suitecloud_auth.exceptions import AuthIdNotFoundError
from suitecloud_auth.infrastructure.http import HttpClient
from suitecloud_auth.infrastructure.repositories import CredentialStore
from suitecloud_auth.models import (
    AccessContext,
    AuthInfo,
    AuthRecord,
    AuthResult,
    AuthType,
    ResolvedDomains,
)
from suitecloud_auth.services.client_credentials import ClientCredentialsAuthenticator
from suitecloud_auth.services.domains import DomainResolver
from suitecloud_auth.services.pkce import PkceAuthenticator
from suitecloud_auth.services.token_lifecycle import TokenLifecycleManager
from suitecloud_auth.utils.clock import Clock, to_iso, utc_now


class AuthManager:
    """Facade over authentication, storage and token lifecycle."""

    def __init__(
        self,
        http_client: HttpClient,
        store: CredentialStore,
        domain_resolver: DomainResolver,
        ci_authenticator: ClientCredentialsAuthenticator,
        pkce_authenticator: PkceAuthenticator,
        lifecycle: TokenLifecycleManager,
        clock: Clock = utc_now,
    ):
        self.http_client = http_client
        self.store = store
        self.domain_resolver = domain_resolver
        self.ci_authenticator = ci_authenticator
        self.pkce_authenticator = pkce_authenticator
        self.lifecycle = lifecycle
        self._clock = clock

    async def aclose(self) -> None:
        await self.http_client.aclose()

    async def __aenter__(self) -> "AuthManager":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def _save_new_record(
        self, auth_id: str, auth_type: AuthType, result: AuthResult
    ) -> None:
        record = AuthRecord.from_result(auth_type, result, to_iso(self._clock()))
        self.store.upsert(auth_id, record)

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def authenticate_pkce(
        self,
        auth_id: str,
        domain: str | None = None,
        client_id: str | None = None,
        sdk_path: str | Path | None = None,
        scope: str | None = None,
        timeout_ms: int = DEFAULT_CALLBACK_TIMEOUT_MS,
    ) -> AuthResult:
        """
        Authenticate interactively in the browser and store the credential.

        Args:
            auth_id: Name to store the credential under (replaces an existing one)
            domain: Login domain; production when omitted
            client_id: Integration client id override
            sdk_path: Directory holding the SDK settings file
            scope: Requested scope
            timeout_ms: How long to wait for the browser redirect

        Returns:
            AuthResult of the authorization, including the access token
        """
        result = await self.pkce_authenticator.authenticate(
            domain=domain,
            client_id=client_id,
            sdk_path=sdk_path,
            scope=scope,
            timeout_ms=timeout_ms,
        )
        self._save_new_record(auth_id, AuthType.PKCE, result)
        return result

    async def authenticate_ci(
        self,
        auth_id: str,
        account_id: str,
        certificate_id: str,
        private_key_path: str,
        client_id: str | None = None,
        domain: str | None = None,
        scope: str | None = None,
    ) -> AuthResult:
        """
        Authenticate with client credentials and store the credential.

        Returns:
            AuthResult of the authentication, including the access token
        """
        result = await self.ci_authenticator.authenticate_ci(
            account_id=account_id,
            certificate_id=certificate_id,
            private_key_path=private_key_path,
            client_id=client_id,
            domain=domain,
            scope=scope,
        )
        self._save_new_record(auth_id, AuthType.CLIENT_CREDENTIALS, result)
        return result

    # ------------------------------------------------------------------
    # Stored credentials
    # ------------------------------------------------------------------

    def list_auth_ids(self) -> dict[str, AuthRecord]:
        return self.store.list()

    def get_auth_info(self, auth_id: str) -> AuthInfo:
        record = self.store.get(auth_id)
        if record is None:
            raise AuthIdNotFoundError(auth_id)
        return AuthInfo(account_info=record.account_info, host_info=record.host_info)

    def remove_auth_id(self, auth_id: str) -> None:
        if not self.store.remove(auth_id):
            raise AuthIdNotFoundError(auth_id)

    def rename_auth_id(self, from_auth_id: str, to_auth_id: str) -> None:
        if self.store.get(from_auth_id) is None:
            raise AuthIdNotFoundError(from_auth_id)
        self.store.rename(from_auth_id, to_auth_id)

    # ------------------------------------------------------------------
    # Domains and tokens
    # ------------------------------------------------------------------

    async def resolve_domains(
        self, account_id: str, domain: str | None = None
    ) -> ResolvedDomains:
        return await self.domain_resolver.resolve_domains(account_id, domain=domain)

    async def ensure_valid_access_token(self, auth_id: str) -> AccessContext:
        return await self.lifecycle.ensure_valid_access_token(auth_id)

    async def refresh_authorization(self, auth_id: str) -> AuthRecord:
        return await self.lifecycle.refresh_authorization(auth_id)

    def inspect_authorization(self, auth_id: str) -> bool:
        needs_reauthorization = self.lifecycle.inspect_authorization(auth_id)
        if needs_reauthorization:
            logger.debug(f'authId "{auth_id}" needs reauthorization')
        return needs_reauthorization
