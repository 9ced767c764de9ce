"""
Interactive OAuth 2.0 authorization-code flow with PKCE, and refresh-token
reauthorization.

The authorization step opens the system browser at the account's login page
and receives the redirect on a loopback server. The resulting code is
exchanged for tokens at the REST domain of the account reported in the
callback.
"""

import json
import re
import secrets
from collections.abc import Awaitable, Callable
from pathlib import Path
from urllib.parse import urlencode

from loguru import logger

from suitecloud_auth.config import Settings
from suitecloud_auth.constants import (
    AUTHORIZE_PATH,
    DEFAULT_CALLBACK_TIMEOUT_MS,
    DEVELOPMENT_INTEGRATION_CLIENT_ID,
    PKCE_ROLE_FALLBACK,
    PRODUCTION_INTEGRATION_CLIENT_ID,
    SDK_SETTINGS_FILE,
    SETUP_COMMAND,
)
from suitecloud_auth.exceptions import (
    AuthorizationError,
    ConfigurationError,
    StateMismatchError,
)
from suitecloud_auth.infrastructure.http import HttpClient
from suitecloud_auth.models import AuthConfig, AuthResult, Domains, HostInfo, Token
from suitecloud_auth.services.browser import open_in_default_browser
from suitecloud_auth.services.callback_server import LoopbackCallbackServer
from suitecloud_auth.services.domains import DomainResolver, normalize_account_id
from suitecloud_auth.services.oauth_common import (
    expires_at_from,
    fetch_token_info,
    hostname_of,
    map_token_info,
    normalize_domain_url,
    normalize_scope,
    production_base_url,
    raise_for_token_response,
    scope_or_default,
    token_url,
)
from suitecloud_auth.utils.clock import Clock, utc_now
from suitecloud_auth.utils.pkce import (
    RandomBytes,
    generate_code_challenge,
    generate_code_verifier,
    generate_state,
)

BrowserOpener = Callable[[str], Awaitable[None]]
CallbackServerFactory = Callable[[str], LoopbackCallbackServer]

DEVELOPMENT_HOST_PATTERNS = (
    re.compile(r"^\w+\.app\.f\.netsuite\.com$"),
    re.compile(r"^system\.f\.netsuite\.com$"),
    re.compile(r"^\w+\.suitetalk\.api\.f\.netsuite\.com$"),
)


def default_integration_client_id(domain_url: str | None) -> str:
    """Built-in client id: the development one for F-domain hosts."""
    host = (hostname_of(domain_url) or "").lower()
    if any(pattern.match(host) for pattern in DEVELOPMENT_HOST_PATTERNS):
        return DEVELOPMENT_INTEGRATION_CLIENT_ID
    return PRODUCTION_INTEGRATION_CLIENT_ID


def read_sdk_settings_client_id(sdk_path: str | Path | None) -> str | None:
    """
    ``integrationClientId`` from the SDK settings file, if present.

    Raises:
        ConfigurationError: If the settings file is not valid JSON
    """
    if not sdk_path:
        return None
    settings_file = Path(sdk_path) / SDK_SETTINGS_FILE
    if not settings_file.is_file():
        return None

    try:
        data = json.loads(settings_file.read_text(encoding="utf-8"))
    except ValueError as e:
        raise ConfigurationError(
            f"Invalid SDK settings file {settings_file}: {e}"
        ) from e

    if not isinstance(data, dict):
        return None
    value = data.get("integrationClientId")
    if not isinstance(value, str):
        return None
    return value.strip() or None


class PkceAuthenticator:
    """
    Authorization-code + PKCE authentication and refresh.

    Browser launch, randomness, clock and the callback server are injectable
    so the full flow runs in tests without a browser.
    """

    def __init__(
        self,
        http_client: HttpClient,
        domain_resolver: DomainResolver,
        settings: Settings,
        open_browser: BrowserOpener = open_in_default_browser,
        random_bytes: RandomBytes = secrets.token_bytes,
        clock: Clock = utc_now,
        callback_server_factory: CallbackServerFactory = LoopbackCallbackServer,
    ):
        self.http_client = http_client
        self.domain_resolver = domain_resolver
        self.settings = settings
        self._open_browser = open_browser
        self._random_bytes = random_bytes
        self._clock = clock
        self._callback_server_factory = callback_server_factory

    def resolve_client_id(
        self,
        client_id: str | None,
        domain_url: str | None,
        sdk_path: str | Path | None = None,
    ) -> str:
        """
        Pick the integration client id.

        Priority: explicit value, environment, SDK settings file, built-in
        default for the domain.
        """
        explicit = (client_id or "").strip()
        if explicit:
            return explicit
        from_env = self.settings.get_integration_client_id()
        if from_env:
            return from_env
        from_file = read_sdk_settings_client_id(
            sdk_path if sdk_path is not None else self.settings.get_sdk_home_path()
        )
        if from_file:
            return from_file
        return default_integration_client_id(domain_url)

    def _resolve_scope(self, scope: str | None) -> str:
        return normalize_scope(scope) or scope_or_default(
            self.settings.get_scope_override()
        )

    def build_authorize_url(
        self,
        domain_url: str,
        client_id: str,
        redirect_uri: str,
        scope: str,
        state: str,
        code_challenge: str,
    ) -> str:
        query = urlencode(
            {
                "response_type": "code",
                "client_id": client_id,
                "redirect_uri": redirect_uri,
                "scope": scope,
                "state": state,
                "code_challenge": code_challenge,
                "code_challenge_method": "S256",
            }
        )
        return f"{domain_url}{AUTHORIZE_PATH}?{query}"

    async def authenticate(
        self,
        domain: str | None = None,
        client_id: str | None = None,
        sdk_path: str | Path | None = None,
        scope: str | None = None,
        timeout_ms: int = DEFAULT_CALLBACK_TIMEOUT_MS,
    ) -> AuthResult:
        """
        Run the interactive authorization.

        Args:
            domain: Login domain; production when omitted
            client_id: Integration client id override
            sdk_path: Directory holding the SDK settings file
            scope: Requested scope
            timeout_ms: How long to wait for the browser redirect

        Returns:
            AuthResult for the account the user logged into

        Raises:
            AuthorizationError: The callback reported an error or lacked data
            StateMismatchError: The callback ``state`` is missing or wrong
            CallbackTimeoutError: No callback within ``timeout_ms``
            BrowserLaunchError: The browser could not be started
            TokenRequestError: The code exchange failed
        """
        domain_url = normalize_domain_url(domain, default=production_base_url())
        resolved_client_id = self.resolve_client_id(client_id, domain_url, sdk_path)
        resolved_scope = self._resolve_scope(scope)

        code_verifier = generate_code_verifier(self._random_bytes)
        code_challenge = generate_code_challenge(code_verifier)
        state = generate_state(self._random_bytes)

        server = self._callback_server_factory(state)
        try:
            await server.start()
            redirect_uri = server.redirect_uri
            authorize_url = self.build_authorize_url(
                domain_url,
                resolved_client_id,
                redirect_uri,
                resolved_scope,
                state,
                code_challenge,
            )

            logger.info("Opening browser for OAuth authorization")
            await self._open_browser(authorize_url)
            params = await server.wait_for_callback(timeout_ms)
        finally:
            await server.close()

        if params.get("error"):
            error = params["error"]
            description = params.get("error_description")
            raise AuthorizationError(
                f"OAuth authorization failed ({error}): {description or error}",
                code=error,
                description=description,
            )
        returned_state = (params.get("state") or "").strip()
        code = (params.get("code") or "").strip()
        account_id = (params.get("company") or "").strip()
        if not returned_state or returned_state != state:
            raise StateMismatchError()
        if not code:
            raise AuthorizationError(
                f'OAuth authorization callback missing code. Retry "{SETUP_COMMAND}".'
            )
        if not account_id:
            raise AuthorizationError(
                "OAuth authorization callback missing company (account id). "
                f'Retry "{SETUP_COMMAND}".'
            )

        domains = await self.domain_resolver.resolve_domains(
            normalize_account_id(account_id), domain=domain
        )

        logger.info(f"Exchanging authorization code for account {account_id}")
        response = await self.http_client.request_form(
            token_url(domains.rest_domain),
            {
                "grant_type": "authorization_code",
                "client_id": resolved_client_id,
                "code": code,
                "redirect_uri": redirect_uri,
                "code_verifier": code_verifier,
            },
        )
        token_data = raise_for_token_response(
            response, "OAuth2 authorization code exchange"
        )

        access_token = token_data["access_token"]
        token_info = await fetch_token_info(
            self.http_client, domains.rest_domain, access_token
        )

        return AuthResult(
            account_info=map_token_info(account_id, token_info, PKCE_ROLE_FALLBACK),
            host_info=domains.host_info,
            domains=domains.as_domains(),
            token=Token(
                access_token=access_token,
                refresh_token=token_data.get("refresh_token"),
                expires_at=expires_at_from(token_data.get("expires_in"), self._clock()),
                token_type=token_data.get("token_type") or "Bearer",
                scope=token_data.get("scope") or resolved_scope,
            ),
            auth_config=AuthConfig(
                account_id=account_id,
                client_id=resolved_client_id,
                domain=domain_url,
                scope=resolved_scope,
            ),
        )

    async def refresh_with_refresh_token(
        self,
        account_id: str,
        client_id: str,
        refresh_token: str,
        scope: str | None = None,
        domains: Domains | None = None,
        domain: str | None = None,
    ) -> AuthResult:
        """
        Exchange a refresh token for a new access token.

        Cached domains are reused when both REST and system domains are known.
        A rotated refresh token is adopted; otherwise the previous one is kept.

        Raises:
            ConfigurationError: Missing account id, client id or refresh token
            TokenRequestError: The token endpoint refused the refresh
        """
        if not (account_id or "").strip():
            raise ConfigurationError("Missing account id for PKCE reauthorization.")
        if not (client_id or "").strip():
            raise ConfigurationError("Missing client id for PKCE reauthorization.")
        if not (refresh_token or "").strip():
            raise ConfigurationError(
                "Missing refresh token for PKCE reauthorization. "
                f'Re-run "{SETUP_COMMAND}".'
            )
        account_id = account_id.strip()
        client_id = client_id.strip()
        refresh_token = refresh_token.strip()

        if domains is not None and domains.rest_domain and domains.system_domain:
            resolved_domains = domains
            host_info = HostInfo(host_name=hostname_of(domains.system_domain))
        else:
            discovered = await self.domain_resolver.resolve_domains(
                normalize_account_id(account_id), domain=domain
            )
            resolved_domains = discovered.as_domains()
            host_info = discovered.host_info

        logger.info(f"Refreshing PKCE access token for account {account_id}")
        response = await self.http_client.request_form(
            token_url(resolved_domains.rest_domain),
            {
                "grant_type": "refresh_token",
                "client_id": client_id,
                "refresh_token": refresh_token,
            },
        )
        token_data = raise_for_token_response(response, "OAuth2 refresh")

        access_token = token_data["access_token"]
        token_info = await fetch_token_info(
            self.http_client, resolved_domains.rest_domain, access_token
        )
        resolved_scope = token_data.get("scope") or scope_or_default(scope)

        return AuthResult(
            account_info=map_token_info(account_id, token_info, PKCE_ROLE_FALLBACK),
            host_info=host_info,
            domains=resolved_domains,
            token=Token(
                access_token=access_token,
                refresh_token=token_data.get("refresh_token") or refresh_token,
                expires_at=expires_at_from(token_data.get("expires_in"), self._clock()),
                token_type=token_data.get("token_type") or "Bearer",
                scope=resolved_scope,
            ),
            auth_config=AuthConfig(
                account_id=account_id,
                client_id=client_id,
                scope=scope_or_default(scope),
            ),
        )
