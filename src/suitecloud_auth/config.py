"""
Process configuration and environment variables.

This module unifies configuration using pydantic-settings.
Variables can come from:
1. .env file
2. System environment variables (have priority)
3. Default values

Several settings accept more than one environment variable. The variables are
listed in priority order through ``AliasChoices``: the first one that is set
to a non-empty value wins. For example, ``SUITECLOUD_CI_PASSKEY`` takes
precedence over ``SUITECLOUD_FALLBACK_PASSKEY``, and an empty
``SUITECLOUD_CI_PASSKEY`` falls through to the fallback.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from suitecloud_auth.constants import DEFAULT_SDK_HOME_FOLDER


def _strip_quotes(value: str | None) -> str | None:
    """Trim a value and drop one pair of surrounding quotes, if any."""
    raw = (value or "").strip()
    if not raw:
        return None
    if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in ("'", '"'):
        raw = raw[1:-1].strip()
    return raw or None


class Settings(BaseSettings):
    """
    Environment-derived configuration, built once and passed down explicitly.

    Instances are immutable. Build a new instance to pick up environment
    changes (the credential store does so for the passkey on every call).

    Example:
        # In .env or as environment variable:
        SUITECLOUD_CI_PASSKEY=my-passkey
        SUITECLOUD_SDK_HOME=/opt/suitecloud
        LOG_LEVEL=DEBUG
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_ignore_empty=True,
        extra="ignore",
        populate_by_name=True,
        frozen=True,
    )

    # ============================================================================
    # SDK HOME
    # ============================================================================
    sdk_home: str | None = Field(
        default=None,
        validation_alias=AliasChoices("SUITECLOUD_SDK_HOME"),
        description="SDK home directory holding the credential store",
    )

    # ============================================================================
    # CREDENTIAL STORE ENCRYPTION
    # ============================================================================
    passkey: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "SUITECLOUD_CI_PASSKEY", "SUITECLOUD_FALLBACK_PASSKEY"
        ),
        description="Passkey used to encrypt stored access tokens",
    )

    # ============================================================================
    # OAUTH CLIENT OVERRIDES
    # ============================================================================
    ci_client_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "SUITECLOUD_CLIENT_ID",
            "SUITECLOUD_OAUTH_CLIENT_ID",
            "NS_CLIENT_ID",
        ),
        description="Client ID for the client_credentials grant",
    )
    integration_client_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "SUITECLOUD_INTEGRATION_CLIENT_ID",
            "SUITECLOUD_OAUTH_CLIENT_ID",
            "SUITECLOUD_CLIENT_ID",
        ),
        description="Client ID for the interactive PKCE flow",
    )
    scope: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "SUITECLOUD_SCOPE", "SUITECLOUD_SCOPES", "NS_SCOPES"
        ),
        description="OAuth scope override (space separated)",
    )

    # ============================================================================
    # HTTP SETTINGS
    # ============================================================================
    proxy: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "SUITECLOUD_PROXY", "npm_config_https_proxy", "npm_config_proxy"
        ),
        description="Proxy URL for token endpoint traffic",
    )
    http_timeout_seconds: float = Field(
        default=30.0, description="Timeout for token endpoint requests"
    )
    http_max_redirects: int = Field(default=5, description="Maximum redirects")
    http_trace: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "SUITECLOUD_HTTP_TRACE", "npm_config_suitecloud_http_trace"
        ),
        description="Log sanitized HTTP requests and responses",
    )
    http_trace_body: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "SUITECLOUD_HTTP_TRACE_BODY",
            "npm_config_suitecloud_http_trace_body",
        ),
        description="Include body snippets in the HTTP trace",
    )
    http_trace_file: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "SUITECLOUD_HTTP_TRACE_FILE",
            "npm_config_suitecloud_http_trace_file",
        ),
        description="JSON-lines file receiving the HTTP trace",
    )

    # ============================================================================
    # LOGGING SETTINGS
    # ============================================================================
    log_level: str = Field(
        default="WARNING",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    log_format: str = Field(
        default="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | trace_id={extra[trace_id]} | {name}:{function}:{line} - {message}",  # noqa: E501
        description="Log format",
    )
    logger_enqueue: bool = Field(
        default=False, description="Enqueue logs using multiprocessing"
    )

    # ============================================================================
    # HELPER METHODS
    # ============================================================================

    def get_sdk_home_path(self) -> Path:
        """
        Get the SDK home directory.

        Returns:
            Path: ``SUITECLOUD_SDK_HOME`` or ``~/.suitecloud-sdk``.
        """
        if self.sdk_home and self.sdk_home.strip():
            return Path(self.sdk_home.strip()).expanduser()
        return Path.home() / DEFAULT_SDK_HOME_FOLDER

    def get_passkey(self) -> str | None:
        """Passkey with surrounding whitespace removed, or None when unset."""
        value = (self.passkey or "").strip()
        return value or None

    def get_scope_override(self) -> str | None:
        """Scope override with config-style quotes removed."""
        return _strip_quotes(self.scope)

    def get_ci_client_id(self) -> str | None:
        return _strip_quotes(self.ci_client_id)

    def get_integration_client_id(self) -> str | None:
        return _strip_quotes(self.integration_client_id)


# ============================================================================
# SINGLETON PATTERN - Process-wide settings instance
# ============================================================================


@lru_cache
def get_settings() -> Settings:
    """
    Get process settings (LRU cached).

    This function is cached, so the environment is only read once.
    To refresh the configuration, clear the cache:
        get_settings.cache_clear()

    Returns:
        Settings: Configuration instance.
    """
    return Settings()
