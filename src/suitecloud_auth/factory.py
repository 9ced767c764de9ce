"""
Service factory wiring the authentication core.

Builds one shared HTTP client and the services on top of it from a single
immutable ``Settings`` instance.

Usage:
    from suitecloud_auth.config import get_settings
    from suitecloud_auth.factory import ServiceFactory

    factory = ServiceFactory.from_settings(get_settings())
    async with factory.create_auth_manager() as auth:
        context = await auth.ensure_valid_access_token("prod")
"""

import httpx
from loguru import logger

from suitecloud_auth.config import Settings
from suitecloud_auth.core.logging import intercept_standard_logging
from suitecloud_auth.infrastructure.http import HttpClient
from suitecloud_auth.infrastructure.implementations.local import LocalCredentialStore
from suitecloud_auth.infrastructure.repositories import CredentialStore
from suitecloud_auth.services.auth_manager import AuthManager
from suitecloud_auth.services.browser import open_in_default_browser
from suitecloud_auth.services.client_credentials import ClientCredentialsAuthenticator
from suitecloud_auth.services.domains import DomainResolver
from suitecloud_auth.services.jwt_assertion import JwtAssertionSigner
from suitecloud_auth.services.pkce import BrowserOpener, PkceAuthenticator
from suitecloud_auth.services.token_lifecycle import TokenLifecycleManager
from suitecloud_auth.utils.clock import Clock, utc_now


class ServiceFactory:
    """
    Factory for the authentication services.

    Instances are cached per factory, so every service shares the same HTTP
    client and credential store.
    """

    def __init__(
        self,
        settings: Settings,
        passkey: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        open_browser: BrowserOpener = open_in_default_browser,
        clock: Clock = utc_now,
    ):
        """
        Initialize service factory.

        Args:
            settings: Immutable process settings
            passkey: Fixed passkey for the credential store; when None the
                store reads the environment on every call
            transport: Optional httpx transport, mainly for tests
            open_browser: Browser launcher for the PKCE flow
            clock: Source of the current time for every service
        """
        self.settings = settings
        self._passkey = passkey
        self._transport = transport
        self._open_browser = open_browser
        self._clock = clock

        self._http_client: HttpClient | None = None
        self._store: CredentialStore | None = None
        self._domain_resolver: DomainResolver | None = None
        self._ci_authenticator: ClientCredentialsAuthenticator | None = None
        self._pkce_authenticator: PkceAuthenticator | None = None
        self._lifecycle: TokenLifecycleManager | None = None

        logger.debug(
            f"Initialized ServiceFactory with SDK home: {settings.get_sdk_home_path()}"
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "ServiceFactory":
        """
        Create factory from Settings object.

        Also routes standard-library logging of httpx and asyncio into loguru.
        """
        intercept_standard_logging()
        return cls(settings=settings)

    def get_http_client(self) -> HttpClient:
        if self._http_client is None:
            self._http_client = HttpClient(self.settings, transport=self._transport)
        return self._http_client

    def get_credential_store(self) -> CredentialStore:
        if self._store is None:
            if self._passkey is not None:
                passkey = self._passkey
                self._store = LocalCredentialStore(
                    self.settings.get_sdk_home_path(),
                    passkey_provider=lambda: passkey,
                    clock=self._clock,
                )
            else:
                self._store = LocalCredentialStore(
                    self.settings.get_sdk_home_path(), clock=self._clock
                )
        return self._store

    def get_domain_resolver(self) -> DomainResolver:
        if self._domain_resolver is None:
            self._domain_resolver = DomainResolver(self.get_http_client())
        return self._domain_resolver

    def get_ci_authenticator(self) -> ClientCredentialsAuthenticator:
        if self._ci_authenticator is None:
            self._ci_authenticator = ClientCredentialsAuthenticator(
                http_client=self.get_http_client(),
                domain_resolver=self.get_domain_resolver(),
                signer=JwtAssertionSigner(clock=self._clock),
                settings=self.settings,
                clock=self._clock,
            )
        return self._ci_authenticator

    def get_pkce_authenticator(self) -> PkceAuthenticator:
        if self._pkce_authenticator is None:
            self._pkce_authenticator = PkceAuthenticator(
                http_client=self.get_http_client(),
                domain_resolver=self.get_domain_resolver(),
                settings=self.settings,
                open_browser=self._open_browser,
                clock=self._clock,
            )
        return self._pkce_authenticator

    def get_token_lifecycle_manager(self) -> TokenLifecycleManager:
        if self._lifecycle is None:
            self._lifecycle = TokenLifecycleManager(
                store=self.get_credential_store(),
                ci_authenticator=self.get_ci_authenticator(),
                pkce_authenticator=self.get_pkce_authenticator(),
                clock=self._clock,
            )
        return self._lifecycle

    def create_auth_manager(self) -> AuthManager:
        return AuthManager(
            http_client=self.get_http_client(),
            store=self.get_credential_store(),
            domain_resolver=self.get_domain_resolver(),
            ci_authenticator=self.get_ci_authenticator(),
            pkce_authenticator=self.get_pkce_authenticator(),
            lifecycle=self.get_token_lifecycle_manager(),
            clock=self._clock,
        )
