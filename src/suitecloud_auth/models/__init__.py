"""
Models package.

Pydantic models for credential records, tokens and the store document.
"""

from suitecloud_auth.models.auth import (
    AccessContext,
    AccountInfo,
    AuthInfo,
    AuthConfig,
    AuthRecord,
    AuthResult,
    AuthType,
    Domains,
    HostInfo,
    ResolvedDomains,
    Token,
)
from suitecloud_auth.models.store import (
    Hydrated,
    HydrationResult,
    RequiresPasskey,
    StoreDocument,
)

__all__ = [
    "AccessContext",
    "AccountInfo",
    "AuthInfo",
    "AuthConfig",
    "AuthRecord",
    "AuthResult",
    "AuthType",
    "Domains",
    "HostInfo",
    "Hydrated",
    "HydrationResult",
    "RequiresPasskey",
    "ResolvedDomains",
    "StoreDocument",
    "Token",
]
