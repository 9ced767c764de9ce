"""Tests for environment-derived settings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from suitecloud_auth.config import Settings, get_settings


def test_default_sdk_home():
    """Test SDK home defaults to ~/.suitecloud-sdk."""
    assert Settings().get_sdk_home_path() == Path.home() / ".suitecloud-sdk"


def test_sdk_home_from_environment(monkeypatch, tmp_path):
    """Test SUITECLOUD_SDK_HOME overrides the default."""
    monkeypatch.setenv("SUITECLOUD_SDK_HOME", str(tmp_path))

    assert Settings().get_sdk_home_path() == tmp_path


def test_passkey_priority(monkeypatch):
    """Test the CI passkey wins over the fallback passkey."""
    monkeypatch.setenv("SUITECLOUD_FALLBACK_PASSKEY", "fallback")
    assert Settings().get_passkey() == "fallback"

    monkeypatch.setenv("SUITECLOUD_CI_PASSKEY", " primary ")
    assert Settings().get_passkey() == "primary"


def test_empty_passkey_falls_through_to_fallback(monkeypatch):
    """Test an empty CI passkey does not hide the fallback passkey."""
    monkeypatch.setenv("SUITECLOUD_CI_PASSKEY", "")
    monkeypatch.setenv("SUITECLOUD_FALLBACK_PASSKEY", "fallback")

    assert Settings().get_passkey() == "fallback"


@pytest.mark.parametrize(
    "empty,fallback,getter,expected",
    [
        ("SUITECLOUD_CLIENT_ID", "NS_CLIENT_ID", "get_ci_client_id", "ns"),
        (
            "SUITECLOUD_INTEGRATION_CLIENT_ID",
            "SUITECLOUD_CLIENT_ID",
            "get_integration_client_id",
            "ns",
        ),
        ("SUITECLOUD_SCOPE", "NS_SCOPES", "get_scope_override", "ns"),
    ],
)
def test_empty_variables_fall_through(
    monkeypatch, empty, fallback, getter, expected
):
    """Test empty higher-priority variables are skipped."""
    monkeypatch.setenv(empty, "")
    monkeypatch.setenv(fallback, expected)

    assert getattr(Settings(), getter)() == expected


def test_passkey_unset():
    """Test a missing passkey is None."""
    assert Settings().get_passkey() is None


def test_ci_client_id_priority(monkeypatch):
    """Test client_credentials client id lookup order."""
    monkeypatch.setenv("NS_CLIENT_ID", "ns")
    assert Settings().get_ci_client_id() == "ns"

    monkeypatch.setenv("SUITECLOUD_OAUTH_CLIENT_ID", "oauth")
    assert Settings().get_ci_client_id() == "oauth"

    monkeypatch.setenv("SUITECLOUD_CLIENT_ID", "suitecloud")
    assert Settings().get_ci_client_id() == "suitecloud"


def test_integration_client_id_priority(monkeypatch):
    """Test PKCE client id lookup order."""
    monkeypatch.setenv("SUITECLOUD_CLIENT_ID", "generic")
    assert Settings().get_integration_client_id() == "generic"

    monkeypatch.setenv("SUITECLOUD_INTEGRATION_CLIENT_ID", "integration")
    assert Settings().get_integration_client_id() == "integration"


def test_scope_override_strips_quotes(monkeypatch):
    """Test quoted scope values from config files are unquoted."""
    monkeypatch.setenv("SUITECLOUD_SCOPES", '"rest_webservices restlets"')

    assert Settings().get_scope_override() == "rest_webservices restlets"


def test_scope_priority(monkeypatch):
    """Test SUITECLOUD_SCOPE wins over NS_SCOPES."""
    monkeypatch.setenv("NS_SCOPES", "restlets")
    monkeypatch.setenv("SUITECLOUD_SCOPE", "rest_webservices")

    assert Settings().get_scope_override() == "rest_webservices"


def test_proxy_from_npm_config(monkeypatch):
    """Test npm proxy variables are honoured."""
    monkeypatch.setenv("npm_config_proxy", "http://proxy.local:3128")

    assert Settings().proxy == "http://proxy.local:3128"


def test_http_trace_flags(monkeypatch):
    """Test trace switches parse as booleans."""
    monkeypatch.setenv("SUITECLOUD_HTTP_TRACE", "1")

    settings = Settings()

    assert settings.http_trace is True
    assert settings.http_trace_body is False


def test_settings_are_immutable():
    """Test settings cannot be changed after creation."""
    settings = Settings()

    with pytest.raises(ValidationError):
        settings.passkey = "changed"


def test_get_settings_is_cached():
    """Test get_settings returns the same instance until the cache is cleared."""
    first = get_settings()

    assert get_settings() is first

    get_settings.cache_clear()
    assert get_settings() is not first
