"""
Datacenter discovery for NetSuite accounts.

Maps an account id to the REST, system (UI) and web services base URLs through
``GET {baseDomain}/rest/datacenterurls?account={accountId}``.
"""

import re
from typing import Any
from urllib.parse import quote

from loguru import logger

from suitecloud_auth.constants import DATACENTER_URLS_PATH
from suitecloud_auth.exceptions import DomainDiscoveryError
from suitecloud_auth.infrastructure.http import HttpClient
from suitecloud_auth.infrastructure.http.sanitizer import sanitize_url
from suitecloud_auth.models import HostInfo, ResolvedDomains
from suitecloud_auth.services.oauth_common import (
    hostname_of,
    normalize_domain_url,
    production_base_url,
)

ACCOUNT_SUFFIX_PATTERN = re.compile(r"^(.+)-(sb|rp)(\d+)$", re.IGNORECASE)


def normalize_account_id(account_id: str | None) -> str:
    """
    Convert ``1234567-sb1`` / ``1234567-rp2`` to ``1234567_SB1`` / ``1234567_RP2``.

    Other values are returned trimmed and otherwise unchanged.
    """
    raw = (account_id or "").strip()
    match = ACCOUNT_SUFFIX_PATTERN.match(raw)
    if not match:
        return raw
    prefix, env, number = match.groups()
    return f"{prefix}_{env.upper()}{number}"


def _pick(data: dict[str, Any], key: str) -> str | None:
    urls = data.get("urls") if isinstance(data.get("urls"), dict) else {}
    return data.get(key) or urls.get(key) or None


class DomainResolver:
    """Resolves the service base URLs of an account."""

    def __init__(self, http_client: HttpClient):
        """
        Initialize the resolver.

        Args:
            http_client: Client used for the discovery request
        """
        self.http_client = http_client

    async def resolve_domains(
        self, account_id: str, domain: str | None = None
    ) -> ResolvedDomains:
        """
        Resolve domains for an account.

        Args:
            account_id: Account id, sandbox suffixes in either form
            domain: Optional base domain override used only for discovery

        Returns:
            ResolvedDomains with normalized URLs and the system hostname

        Raises:
            DomainDiscoveryError: On non-2xx status or incomplete response
        """
        if not (account_id or "").strip():
            raise DomainDiscoveryError("Missing account id for datacenter discovery.")

        base_url = normalize_domain_url(domain, default=production_base_url())
        normalized_account = normalize_account_id(account_id)
        request_url = (
            f"{base_url}{DATACENTER_URLS_PATH}"
            f"?account={quote(normalized_account, safe='')}"
        )

        logger.debug(f"Resolving datacenter domains via {sanitize_url(request_url)}")
        response = await self.http_client.request_json("GET", request_url)
        if not response.ok:
            raise DomainDiscoveryError(
                f"Failed to resolve datacenter domains "
                f"(status={response.status_code}): {response.text}",
                status_code=response.status_code,
            )

        data = response.json_object()
        rest_domain = _pick(data, "restDomain")
        system_domain = _pick(data, "systemDomain")
        webservices_domain = _pick(data, "webservicesDomain")
        if not rest_domain or not system_domain:
            raise DomainDiscoveryError(
                f"Unexpected datacenterurls response: {response.text}",
                status_code=response.status_code,
            )

        return ResolvedDomains(
            rest_domain=normalize_domain_url(rest_domain),
            system_domain=normalize_domain_url(system_domain),
            webservices_domain=normalize_domain_url(webservices_domain),
            host_info=HostInfo(host_name=hostname_of(system_domain)),
        )

