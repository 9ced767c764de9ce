"""
Credential data models.

All models serialize with camelCase keys, the format of the credential store
file, and accept either camelCase or snake_case on input. Unknown keys are kept
so records written by newer versions survive a read-modify-write cycle.
Numbers found in string fields (for example a numeric ``companyId``) are
read as strings.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from suitecloud_auth.utils.clock import parse_iso


class CamelModel(BaseModel):
    """Base model for camelCase JSON documents."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        coerce_numbers_to_str=True,
    )

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize with camelCase keys, dropping unset optional values."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def explicit_fields(self) -> dict[str, Any]:
        """Serialize only the fields that were explicitly provided."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


class AuthType(str, Enum):
    """Credential record types."""

    CLIENT_CREDENTIALS = "CLIENT_CREDENTIALS"
    PKCE = "PKCE"


class AccountInfo(CamelModel):
    """Descriptive account metadata fetched after authentication."""

    company_name: str | None = Field(default=None, description="Company name")
    company_id: str | None = Field(default=None, description="Account identifier")
    role_name: str | None = Field(default=None, description="Role of the token")


class HostInfo(CamelModel):
    """Host the account's UI is served from."""

    host_name: str | None = Field(default=None, description="System hostname")


class Domains(CamelModel):
    """Base URLs of one account, as ``scheme://host``."""

    rest_domain: str | None = Field(default=None, description="REST base URL")
    system_domain: str | None = Field(default=None, description="UI base URL")
    webservices_domain: str | None = Field(
        default=None, description="SOAP web services base URL"
    )


class ResolvedDomains(Domains):
    """Result of datacenter discovery: domains plus derived host info."""

    host_info: HostInfo = Field(default_factory=HostInfo)

    def as_domains(self) -> Domains:
        return Domains(
            rest_domain=self.rest_domain,
            system_domain=self.system_domain,
            webservices_domain=self.webservices_domain,
        )


class AuthConfig(CamelModel):
    """
    Inputs needed to repeat an authentication flow.

    Client-credentials records fill ``certificate_id`` and
    ``private_key_path``; PKCE records leave them empty. Code and verifier of
    the authorization-code flow are single-use and never stored.
    """

    account_id: str | None = None
    client_id: str | None = None
    domain: str | None = None
    scope: str | None = None
    certificate_id: str | None = None
    private_key_path: str | None = None


class Token(CamelModel):
    """
    Token material.

    ``access_token`` and ``access_token_enc`` are mutually exclusive once
    persisted: the store keeps only the ciphertext, or nothing at all.
    """

    access_token: str | None = None
    access_token_enc: str | None = None
    refresh_token: str | None = None
    expires_at: str | None = None
    token_type: str | None = None
    scope: str | None = None

    def expires_at_datetime(self) -> datetime | None:
        """Expiry as aware datetime; None means "treat as expired"."""
        return parse_iso(self.expires_at)

    def without_secrets(self) -> "Token":
        """Copy without the access token or its ciphertext."""
        return self.model_copy(update={"access_token": None, "access_token_enc": None})


class AuthResult(CamelModel):
    """Outcome of an authentication or refresh flow."""

    account_info: AccountInfo
    host_info: HostInfo
    domains: Domains
    token: Token
    auth_config: AuthConfig


class AuthRecord(CamelModel):
    """
    Stored credential for one authId.

    ``type`` is kept as a plain string so records of unknown types can still
    be read, listed and rejected explicitly.
    """

    type: str | None = None
    account_info: AccountInfo | None = None
    host_info: HostInfo | None = None
    domains: Domains | None = None
    auth_config: AuthConfig | None = None
    token: Token | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_result(
        cls, auth_type: AuthType, result: AuthResult, now_iso: str
    ) -> "AuthRecord":
        """Build a fresh record from a successful authentication."""
        return cls(
            type=auth_type.value,
            account_info=result.account_info,
            host_info=result.host_info,
            domains=result.domains,
            auth_config=result.auth_config,
            token=result.token,
            created_at=now_iso,
            updated_at=now_iso,
        )

    def merged_with(self, result: AuthResult, now_iso: str) -> "AuthRecord":
        """
        Apply a refresh result.

        Account info, host info and domains are replaced; auth config and token
        are shallow-merged so that fields the refresh did not return (for
        example a non-rotated refresh token) survive.
        """
        auth_config = AuthConfig.model_validate(
            {
                **(self.auth_config.explicit_fields() if self.auth_config else {}),
                **result.auth_config.explicit_fields(),
            }
        )
        token = Token.model_validate(
            {
                **(self.token.explicit_fields() if self.token else {}),
                **result.token.explicit_fields(),
            }
        )
        return self.model_copy(
            update={
                "account_info": result.account_info,
                "host_info": result.host_info,
                "domains": result.domains,
                "auth_config": auth_config,
                "token": token,
                "updated_at": now_iso,
            }
        )

    def without_secrets(self) -> "AuthRecord":
        """Public view, safe to print."""
        if self.token is None:
            return self.model_copy()
        return self.model_copy(update={"token": self.token.without_secrets()})


class AuthInfo(CamelModel):
    """Descriptive view of a stored credential."""

    account_info: AccountInfo | None = None
    host_info: HostInfo | None = None


class AccessContext(BaseModel):
    """What downstream callers need to talk to the account's REST API."""

    model_config = ConfigDict(frozen=True)

    rest_domain: str
    system_domain: str | None = None
    access_token: str
