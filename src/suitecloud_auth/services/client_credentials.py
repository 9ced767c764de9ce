"""
OAuth 2.0 client_credentials grant with a signed JWT assertion.

Machine-to-machine authentication: the client proves its identity with a
PS256 assertion signed by the private key of a certificate registered in the
account. Refreshing such a credential means running the same flow again.
"""

from pathlib import Path

from loguru import logger

from suitecloud_auth.config import Settings
from suitecloud_auth.constants import CI_ROLE_FALLBACK, JWT_BEARER_ASSERTION_TYPE
from suitecloud_auth.exceptions import ConfigurationError
from suitecloud_auth.infrastructure.http import HttpClient
from suitecloud_auth.models import AuthConfig, AuthResult, Token
from suitecloud_auth.services.domains import DomainResolver, normalize_account_id
from suitecloud_auth.services.jwt_assertion import JwtAssertionSigner
from suitecloud_auth.services.oauth_common import (
    expires_at_from,
    fetch_token_info,
    map_token_info,
    normalize_scope,
    raise_for_token_response,
    scope_or_default,
    token_url,
)
from suitecloud_auth.utils.clock import Clock, utc_now


def _to_absolute_path(value: str) -> Path:
    path = Path(value.strip()).expanduser()
    return path if path.is_absolute() else Path.cwd() / path


class ClientCredentialsAuthenticator:
    """
    Authenticates with the client_credentials grant.

    Collaborators are injected so the flow can be exercised without network
    access or wall-clock dependence.
    """

    def __init__(
        self,
        http_client: HttpClient,
        domain_resolver: DomainResolver,
        signer: JwtAssertionSigner,
        settings: Settings,
        clock: Clock = utc_now,
    ):
        """
        Initialize the authenticator.

        Args:
            http_client: Client for token and tokeninfo requests
            domain_resolver: Datacenter discovery
            signer: JWT assertion signer
            settings: Source of client id and scope overrides
            clock: Source of the current time
        """
        self.http_client = http_client
        self.domain_resolver = domain_resolver
        self.signer = signer
        self.settings = settings
        self._clock = clock

    def _resolve_client_id(self, client_id: str | None) -> str:
        resolved = (client_id or "").strip() or self.settings.get_ci_client_id()
        if not resolved:
            raise ConfigurationError(
                "Missing OAuth2 client ID for client_credentials. "
                "Provide --clientid or set SUITECLOUD_CLIENT_ID."
            )
        return resolved

    def _resolve_scope(self, scope: str | None) -> str:
        return normalize_scope(scope) or scope_or_default(
            self.settings.get_scope_override()
        )

    async def authenticate_ci(
        self,
        account_id: str,
        certificate_id: str,
        private_key_path: str,
        client_id: str | None = None,
        domain: str | None = None,
        scope: str | None = None,
    ) -> AuthResult:
        """
        Obtain an access token with a signed client assertion.

        Args:
            account_id: Account id (``-sb1`` / ``_SB1`` forms accepted)
            certificate_id: Certificate id, sent as the JWT ``kid``
            private_key_path: PEM private key file; relative paths resolve
                against the working directory
            client_id: OAuth client id; falls back to the environment
            domain: Optional base domain override for discovery
            scope: Scope; falls back to the environment, then
                ``rest_webservices``

        Returns:
            AuthResult whose ``auth_config`` repeats every input of this call

        Raises:
            ConfigurationError: Missing account, certificate, client id or key
            DomainDiscoveryError: Discovery failed
            JwtSigningError: The key cannot sign PS256
            TokenRequestError: The token endpoint refused the assertion
        """
        if not (account_id or "").strip():
            raise ConfigurationError("Missing account id for client_credentials.")
        if not (certificate_id or "").strip():
            raise ConfigurationError("Missing certificate id for client_credentials.")
        if not (private_key_path or "").strip():
            raise ConfigurationError("Missing private key path for client_credentials.")

        resolved_client_id = self._resolve_client_id(client_id)
        key_path = _to_absolute_path(private_key_path)
        if not key_path.is_file():
            raise ConfigurationError(f"Private key file not found: {key_path}")

        domains = await self.domain_resolver.resolve_domains(
            normalize_account_id(account_id), domain=domain
        )
        endpoint = token_url(domains.rest_domain)

        resolved_scope = self._resolve_scope(scope)
        assertion = self.signer.sign(
            audience=endpoint,
            issuer=resolved_client_id,
            kid=certificate_id,
            private_key_pem=key_path.read_text(encoding="utf-8"),
            scope=resolved_scope,
        )

        logger.info(f"Requesting client_credentials token for account {account_id}")
        response = await self.http_client.request_form(
            endpoint,
            {
                "grant_type": "client_credentials",
                "client_id": resolved_client_id,
                "client_assertion_type": JWT_BEARER_ASSERTION_TYPE,
                "client_assertion": assertion,
            },
        )
        token_data = raise_for_token_response(response, "OAuth2 token request")

        access_token = token_data["access_token"]
        token_info = await fetch_token_info(
            self.http_client, domains.rest_domain, access_token
        )

        return AuthResult(
            account_info=map_token_info(account_id, token_info, CI_ROLE_FALLBACK),
            host_info=domains.host_info,
            domains=domains.as_domains(),
            token=Token(
                access_token=access_token,
                expires_at=expires_at_from(token_data.get("expires_in"), self._clock()),
                token_type=token_data.get("token_type") or "Bearer",
            ),
            auth_config=AuthConfig(
                account_id=account_id,
                client_id=resolved_client_id,
                certificate_id=certificate_id,
                private_key_path=str(key_path),
                domain=domain or None,
                scope=resolved_scope,
            ),
        )
