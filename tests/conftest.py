"""Global pytest configuration and fixtures for all tests."""

from datetime import UTC, datetime

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from suitecloud_auth.config import Settings, get_settings

ENVIRONMENT_VARIABLES = [
    "SUITECLOUD_SDK_HOME",
    "SUITECLOUD_CI_PASSKEY",
    "SUITECLOUD_FALLBACK_PASSKEY",
    "SUITECLOUD_CLIENT_ID",
    "SUITECLOUD_OAUTH_CLIENT_ID",
    "SUITECLOUD_INTEGRATION_CLIENT_ID",
    "NS_CLIENT_ID",
    "SUITECLOUD_SCOPE",
    "SUITECLOUD_SCOPES",
    "NS_SCOPES",
    "SUITECLOUD_PROXY",
    "npm_config_https_proxy",
    "npm_config_proxy",
    "SUITECLOUD_HTTP_TRACE",
    "SUITECLOUD_HTTP_TRACE_BODY",
    "SUITECLOUD_HTTP_TRACE_FILE",
    "npm_config_suitecloud_http_trace",
    "npm_config_suitecloud_http_trace_body",
    "npm_config_suitecloud_http_trace_file",
]

FIXED_NOW = datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    """
    Remove SuiteCloud variables from the environment for every test.

    Tests then opt in to exactly the variables they exercise. The working
    directory is moved to a temporary folder so no ``.env`` file is read.
    """
    for name in ENVIRONMENT_VARIABLES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def fixed_clock():
    """Clock frozen at 2024-01-01T12:00:00Z."""
    return lambda: FIXED_NOW


@pytest.fixture
def sdk_home(tmp_path):
    """Empty SDK home directory."""
    path = tmp_path / "sdk-home"
    path.mkdir()
    return path


@pytest.fixture
def settings(sdk_home):
    """Settings pointing at the temporary SDK home."""
    return Settings(sdk_home=str(sdk_home))


@pytest.fixture(scope="session")
def rsa_private_key():
    """RSA key pair shared by the signing tests."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def rsa_private_key_pem(rsa_private_key):
    """PEM (PKCS#8, unencrypted) of the shared RSA key."""
    return rsa_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")


@pytest.fixture
def private_key_file(tmp_path, rsa_private_key_pem):
    """Private key written to a temporary file."""
    path = tmp_path / "private-key.pem"
    path.write_text(rsa_private_key_pem, encoding="ascii")
    return path
