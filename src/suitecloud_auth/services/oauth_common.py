"""
Helpers shared by the client-credentials and PKCE authenticators.
"""

from datetime import datetime, timedelta
from typing import Any
from urllib.parse import urlsplit

import httpx
from loguru import logger

from suitecloud_auth.constants import (
    DEFAULT_SCOPE,
    PRODUCTION_DOMAIN,
    TOKEN_INFO_PATH,
    TOKEN_PATH,
)
from suitecloud_auth.exceptions import AuthError, TokenRequestError
from suitecloud_auth.infrastructure.http import HttpClient, HttpResponse
from suitecloud_auth.models import AccountInfo
from suitecloud_auth.utils.clock import to_iso

COMPANY_NAME_KEYS = ("companyName", "company", "companyname", "accountName")
COMPANY_ID_KEYS = ("companyId", "companyid", "account", "accountId")
ROLE_NAME_KEYS = ("roleName", "rolename", "role")


def normalize_domain_url(value: str | None, default: str | None = None) -> str | None:
    """
    Normalize a domain or URL to ``scheme://host`` without trailing slashes.

    Bare hostnames get ``https://``. Empty values return ``default``.
    """
    raw = (value or "").strip()
    if not raw:
        return default
    if not raw.startswith(("http://", "https://")):
        raw = f"https://{raw}"
    return raw.rstrip("/")


def production_base_url() -> str:
    return f"https://{PRODUCTION_DOMAIN}"


def hostname_of(url: str | None) -> str | None:
    """Hostname of a domain URL, or the raw value if it cannot be parsed."""
    if not url:
        return None
    try:
        return urlsplit(normalize_domain_url(url)).hostname or url
    except ValueError:
        return url


def token_url(rest_domain: str) -> str:
    return f"{rest_domain}{TOKEN_PATH}"


def normalize_scope(value: str | None) -> str | None:
    """Trim a scope and remove config-style surrounding quotes."""
    raw = (value or "").strip()
    if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in ("'", '"'):
        raw = raw[1:-1].strip()
    return raw or None


def scope_or_default(value: str | None) -> str:
    return normalize_scope(value) or DEFAULT_SCOPE


def expires_at_from(expires_in: Any, now: datetime) -> str | None:
    """
    Absolute expiry for an ``expires_in`` value.

    Returns:
        ISO timestamp, or None when ``expires_in`` is absent, zero or invalid
    """
    try:
        seconds = float(expires_in or 0)
    except (TypeError, ValueError):
        return None
    if seconds <= 0:
        return None
    return to_iso(now + timedelta(seconds=seconds))


def parse_oauth_error(response: HttpResponse) -> tuple[str | None, str | None]:
    """Extract ``error`` and ``error_description`` from a token response."""
    data = response.json_object()
    code = data.get("error") or None
    description = data.get("error_description") or response.text or None
    return code, description


def raise_for_token_response(response: HttpResponse, action: str) -> dict[str, Any]:
    """
    Validate a token endpoint response.

    Args:
        response: Token endpoint response
        action: Human-readable name of the request for error messages

    Returns:
        Token response body

    Raises:
        TokenRequestError: On non-2xx status or a body without ``access_token``
    """
    if not response.ok:
        code, description = parse_oauth_error(response)
        suffix = f" ({code})" if code else ""
        raise TokenRequestError(
            f"{action} failed{suffix} (status={response.status_code}): "
            f"{description or response.text}",
            code=code,
            description=description,
            status_code=response.status_code,
        )

    data = response.json_object()
    if not data.get("access_token"):
        raise TokenRequestError(
            f"{action} response missing access_token: {response.text}",
            status_code=response.status_code,
        )
    return data


def _first(data: dict[str, Any] | None, keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = (data or {}).get(key)
        if value:
            return str(value)
    return None


def map_token_info(
    account_id: str, token_info: dict[str, Any] | None, fallback_role: str
) -> AccountInfo:
    """Map a tokeninfo payload to ``AccountInfo``, filling gaps with the account id."""
    return AccountInfo(
        company_name=_first(token_info, COMPANY_NAME_KEYS) or account_id,
        company_id=_first(token_info, COMPANY_ID_KEYS) or account_id,
        role_name=_first(token_info, ROLE_NAME_KEYS) or fallback_role,
    )


async def fetch_token_info(
    http_client: HttpClient, rest_domain: str, access_token: str
) -> dict[str, Any] | None:
    """
    Fetch ``/rest/tokeninfo`` for descriptive account metadata.

    Best effort: any failure is logged and yields None, since authentication
    stays usable without the metadata.
    """
    try:
        response = await http_client.request_json(
            "GET",
            f"{rest_domain}{TOKEN_INFO_PATH}",
            headers={"authorization": f"Bearer {access_token}"},
        )
    except (httpx.HTTPError, AuthError) as e:
        logger.debug(f"tokeninfo request failed: {e}")
        return None

    if not response.ok:
        logger.debug(f"tokeninfo request returned status {response.status_code}")
        return None
    return response.json_object() or None
