"""
Error taxonomy for the authentication core.

- Configuration errors: something the user must fix locally (missing client
  id, key file, refresh token, unsupported record). Never retried.
- Protocol errors: the remote side refused or answered unexpectedly. They carry
  the upstream OAuth ``error`` code and description when available.
- Callback timeouts: the browser redirect never arrived.
- Secret-access errors: a stored token cannot be decrypted with the current
  environment.
"""

from suitecloud_auth.constants import PASSKEY_ENV_VARS, SETUP_COMMAND


class AuthError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(AuthError):
    """Local configuration is missing or invalid."""


class AuthIdNotFoundError(ConfigurationError):
    """No credential record is stored under the requested authId."""

    def __init__(self, auth_id: str):
        super().__init__(f'Authentication ID "{auth_id}" not found.')
        self.auth_id = auth_id


class ProtocolError(AuthError):
    """
    Remote endpoint failure.

    Attributes:
        code: OAuth ``error`` value, if the server sent one
        description: OAuth ``error_description`` or response text
        status_code: HTTP status, when the failure came from an HTTP response
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        description: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.description = description
        self.status_code = status_code


class DomainDiscoveryError(ProtocolError):
    """Datacenter URL discovery failed."""


class TokenRequestError(ProtocolError):
    """Token endpoint rejected the request or answered without a token."""


class AuthorizationError(ProtocolError):
    """Authorization callback reported an error or lacked required data."""


class StateMismatchError(AuthorizationError):
    """Callback ``state`` does not match the value sent to the browser."""

    def __init__(self):
        super().__init__(
            "OAuth authorization callback state mismatch. "
            f'Retry "{SETUP_COMMAND}".'
        )


class CallbackTimeoutError(AuthError):
    """The browser redirect did not arrive before the deadline."""

    def __init__(self, timeout_seconds: int):
        super().__init__(
            f"OAuth authorization timed out after {timeout_seconds}s. "
            f'Retry "{SETUP_COMMAND}".'
        )
        self.timeout_seconds = timeout_seconds


class CallbackServerError(AuthError):
    """The loopback callback server could not be started."""


class BrowserLaunchError(AuthError):
    """The system browser could not be launched."""


class PasskeyRequiredError(AuthError):
    """A stored token is encrypted and no usable passkey is configured."""

    def __init__(self, message: str | None = None):
        super().__init__(
            message
            or "Credentials for authId require a passkey. "
            f"Set {PASSKEY_ENV_VARS[0]} or {PASSKEY_ENV_VARS[1]}."
        )


class CredentialStoreError(AuthError):
    """The credential store file is invalid or an operation conflicts."""


class JwtSigningError(AuthError):
    """The client assertion could not be signed."""
