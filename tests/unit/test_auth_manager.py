"""Tests for the AuthManager facade and the service factory wiring."""

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import respx

from suitecloud_auth.exceptions import AuthIdNotFoundError, CredentialStoreError
from suitecloud_auth.factory import ServiceFactory
from suitecloud_auth.infrastructure.implementations.local import LocalCredentialStore
from suitecloud_auth.models import (
    AccountInfo,
    AuthConfig,
    AuthInfo,
    AuthResult,
    Domains,
    HostInfo,
    Token,
)
from suitecloud_auth.services.auth_manager import AuthManager
from suitecloud_auth.services.pkce import PkceAuthenticator

DISCOVERY_URL = "https://system.netsuite.com/rest/datacenterurls"
REST_DOMAIN = "https://test.suitetalk.api.netsuite.com"
SYSTEM_DOMAIN = "https://test.app.netsuite.com"
TOKEN_URL = f"{REST_DOMAIN}/services/rest/auth/oauth2/v1/token"
TOKEN_INFO_URL = f"{REST_DOMAIN}/rest/tokeninfo"
NOW_ISO = "2024-01-01T12:00:00.000Z"


def mock_ci_endpoints():
    respx.get(DISCOVERY_URL).mock(
        return_value=httpx.Response(
            200, json={"restDomain": REST_DOMAIN, "systemDomain": SYSTEM_DOMAIN}
        )
    )
    token_route = respx.post(TOKEN_URL).mock(
        return_value=httpx.Response(
            200, json={"access_token": "abc", "expires_in": 3600}
        )
    )
    respx.get(TOKEN_INFO_URL).mock(
        return_value=httpx.Response(
            200, json={"companyName": "Test Co", "companyId": "TEST"}
        )
    )
    return token_route


@pytest.fixture
def factory(settings, fixed_clock):
    return ServiceFactory(settings, passkey="test-passkey", clock=fixed_clock)


@pytest.fixture
def auth_manager(factory):
    return factory.create_auth_manager()


async def authenticate_test_account(auth_manager, private_key_file, auth_id="ci"):
    return await auth_manager.authenticate_ci(
        auth_id=auth_id,
        account_id="TEST",
        certificate_id="cert-1",
        private_key_path=str(private_key_file),
        client_id="client-1",
    )


# ===========================
# Factory
# ===========================


def test_factory_caches_services(factory):
    """Test every service shares one HTTP client and one store."""
    assert factory.get_http_client() is factory.get_http_client()
    assert factory.get_credential_store() is factory.get_credential_store()
    assert factory.get_domain_resolver().http_client is factory.get_http_client()
    assert factory.get_ci_authenticator().http_client is factory.get_http_client()
    assert factory.get_pkce_authenticator().http_client is factory.get_http_client()

    manager = factory.create_auth_manager()
    assert manager.store is factory.get_credential_store()
    assert manager.lifecycle is factory.get_token_lifecycle_manager()
    assert manager.lifecycle.store is manager.store


def test_factory_store_location(factory, sdk_home):
    """Test the store lives under the configured SDK home."""
    store = factory.get_credential_store()

    assert isinstance(store, LocalCredentialStore)
    assert store.store_path == sdk_home / "auth" / "auth-store.json"


def test_from_settings(settings):
    """Test the factory can be built from settings alone."""
    factory = ServiceFactory.from_settings(settings)

    assert factory.settings is settings


@pytest.mark.asyncio
async def test_auth_manager_context_closes_http_client(factory):
    """Test leaving the context releases the HTTP client."""
    http_client = factory.get_http_client()
    http_client._get_client()

    async with factory.create_auth_manager():
        pass

    assert http_client._client is None


# ===========================
# Authentication and storage
# ===========================


@respx.mock
@pytest.mark.asyncio
async def test_authenticate_ci_stores_record(auth_manager, factory, private_key_file):
    """Test a CI login is stored with type, timestamps and encrypted token."""
    mock_ci_endpoints()

    result = await authenticate_test_account(auth_manager, private_key_file)

    assert result.token.access_token == "abc"

    document = json.loads(factory.get_credential_store().store_path.read_text())
    stored = document["authIds"]["ci"]
    assert stored["type"] == "CLIENT_CREDENTIALS"
    assert stored["createdAt"] == NOW_ISO
    assert stored["updatedAt"] == NOW_ISO
    assert "accessToken" not in stored["token"]
    assert stored["token"]["accessTokenEnc"]
    assert stored["authConfig"]["certificateId"] == "cert-1"

    listed = auth_manager.list_auth_ids()
    assert list(listed) == ["ci"]
    assert listed["ci"].token.access_token is None
    assert listed["ci"].token.access_token_enc is None


@respx.mock
@pytest.mark.asyncio
async def test_stored_token_is_reused(auth_manager, private_key_file):
    """Test a fresh stored token is handed out without another grant."""
    token_route = mock_ci_endpoints()
    await authenticate_test_account(auth_manager, private_key_file)

    context = await auth_manager.ensure_valid_access_token("ci")

    assert context.access_token == "abc"
    assert context.rest_domain == REST_DOMAIN
    assert context.system_domain == SYSTEM_DOMAIN
    assert token_route.call_count == 1
    assert auth_manager.inspect_authorization("ci") is False


@respx.mock
@pytest.mark.asyncio
async def test_refresh_authorization_runs_new_grant(auth_manager, private_key_file):
    """Test an explicit refresh repeats the grant and hides the token."""
    token_route = mock_ci_endpoints()
    await authenticate_test_account(auth_manager, private_key_file)

    record = await auth_manager.refresh_authorization("ci")

    assert token_route.call_count == 2
    assert record.token.access_token is None
    assert record.account_info.company_name == "Test Co"


@pytest.mark.asyncio
async def test_authenticate_pkce_stores_record(factory, fixed_clock):
    """Test a PKCE login is stored with the PKCE type."""
    pkce_authenticator = MagicMock(spec=PkceAuthenticator)
    pkce_authenticator.authenticate = AsyncMock(
        return_value=AuthResult(
            account_info=AccountInfo(company_name="Test Co", company_id="TEST"),
            host_info=HostInfo(host_name="test.app.netsuite.com"),
            domains=Domains(rest_domain=REST_DOMAIN, system_domain=SYSTEM_DOMAIN),
            token=Token(access_token="abc", refresh_token="refresh"),
            auth_config=AuthConfig(account_id="TEST", client_id="client-1"),
        )
    )
    auth_manager = AuthManager(
        http_client=factory.get_http_client(),
        store=factory.get_credential_store(),
        domain_resolver=factory.get_domain_resolver(),
        ci_authenticator=factory.get_ci_authenticator(),
        pkce_authenticator=pkce_authenticator,
        lifecycle=factory.get_token_lifecycle_manager(),
        clock=fixed_clock,
    )

    await auth_manager.authenticate_pkce("pkce", domain="test.netsuite.com")

    pkce_authenticator.authenticate.assert_awaited_once_with(
        domain="test.netsuite.com",
        client_id=None,
        sdk_path=None,
        scope=None,
        timeout_ms=300_000,
    )
    record = auth_manager.store.get("pkce")
    assert record.type == "PKCE"
    assert record.created_at == NOW_ISO
    assert record.token.refresh_token == "refresh"


@respx.mock
@pytest.mark.asyncio
async def test_passkey_from_environment(
    settings, fixed_clock, monkeypatch, private_key_file
):
    """Test the store reads the passkey from the environment by default."""
    monkeypatch.setenv("SUITECLOUD_CI_PASSKEY", "env-passkey")
    mock_ci_endpoints()
    factory = ServiceFactory(settings, clock=fixed_clock)
    auth_manager = factory.create_auth_manager()

    await authenticate_test_account(auth_manager, private_key_file)

    record = factory.get_credential_store().get_with_secrets("ci")
    assert record.token.access_token == "abc"


# ===========================
# Stored credential management
# ===========================


@respx.mock
@pytest.mark.asyncio
async def test_get_auth_info(auth_manager, private_key_file):
    """Test account and host info of a stored credential."""
    mock_ci_endpoints()
    await authenticate_test_account(auth_manager, private_key_file)

    info = auth_manager.get_auth_info("ci")

    assert isinstance(info, AuthInfo)
    assert info.account_info.company_name == "Test Co"
    assert info.host_info.host_name == "test.app.netsuite.com"
    assert info.to_json_dict() == {
        "accountInfo": {
            "companyName": "Test Co",
            "companyId": "TEST",
            "roleName": "OAuth2 (CI)",
        },
        "hostInfo": {"hostName": "test.app.netsuite.com"},
    }


@respx.mock
@pytest.mark.asyncio
async def test_rename_and_remove(auth_manager, private_key_file):
    """Test renaming then removing a stored credential."""
    mock_ci_endpoints()
    await authenticate_test_account(auth_manager, private_key_file)

    auth_manager.rename_auth_id("ci", "prod")
    assert list(auth_manager.list_auth_ids()) == ["prod"]

    auth_manager.remove_auth_id("prod")
    assert auth_manager.list_auth_ids() == {}


@respx.mock
@pytest.mark.asyncio
async def test_rename_onto_existing_id(auth_manager, private_key_file):
    """Test renaming onto a taken authId fails."""
    mock_ci_endpoints()
    await authenticate_test_account(auth_manager, private_key_file, "one")
    await authenticate_test_account(auth_manager, private_key_file, "two")

    with pytest.raises(CredentialStoreError, match="already exists"):
        auth_manager.rename_auth_id("one", "two")


@pytest.mark.parametrize(
    "operation",
    [
        lambda manager: manager.get_auth_info("missing"),
        lambda manager: manager.remove_auth_id("missing"),
        lambda manager: manager.rename_auth_id("missing", "other"),
        lambda manager: manager.inspect_authorization("missing"),
    ],
)
def test_unknown_auth_id(auth_manager, operation):
    """Test operations on a missing authId name it in the error."""
    with pytest.raises(AuthIdNotFoundError, match='"missing" not found'):
        operation(auth_manager)


@respx.mock
@pytest.mark.asyncio
async def test_resolve_domains(auth_manager):
    """Test domain resolution is exposed as is."""
    respx.get(DISCOVERY_URL).mock(
        return_value=httpx.Response(
            200, json={"restDomain": REST_DOMAIN, "systemDomain": SYSTEM_DOMAIN}
        )
    )

    domains = await auth_manager.resolve_domains("TEST")

    assert domains.rest_domain == REST_DOMAIN
    assert domains.host_info.host_name == "test.app.netsuite.com"
