"""
Redaction of URLs and headers before they reach the HTTP trace.

Account identifiers (``1234567``, ``1234567-sb1``, ``1234567_SB1``), email
addresses, credentials in query parameters and authorization/cookie headers
are replaced by placeholders.
"""

import json
import re
from collections.abc import Mapping
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import httpx

EMAIL_PATTERN = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
ACCOUNT_ID_PATTERN = re.compile(r"\b\d{6,}(?:[-_](?:sb|rp)\d+)?\b", re.IGNORECASE)
SENSITIVE_PARAM_PATTERN = re.compile(r"token|pass|secret|key|authorization", re.IGNORECASE)
ACCOUNT_PARAM_NAMES = {"account", "company", "companyid", "c"}
REDACTED_HEADERS = {"authorization", "cookie", "set-cookie"}
FORM_SECRET_PARAMS = {"code", "code_verifier", "client_assertion"}

URL_REDACTION_PLACEHOLDER = "redacted"
HEADER_REDACTION_PLACEHOLDER = "<redacted>"


def _sanitize_account_like(value: str) -> str:
    return ACCOUNT_ID_PATTERN.sub(URL_REDACTION_PLACEHOLDER, value)


def _sanitize_email_like(value: str) -> str:
    return EMAIL_PATTERN.sub(URL_REDACTION_PLACEHOLDER, value)


def _should_redact_param(name: str) -> bool:
    key = name.strip().lower()
    if not key:
        return False
    if SENSITIVE_PARAM_PATTERN.search(key):
        return True
    return key in ACCOUNT_PARAM_NAMES


def sanitize_url(url: str | httpx.URL) -> str:
    """
    Redact a URL for logging.

    The input is never modified; a new string is returned.

    Args:
        url: URL string or ``httpx.URL``

    Returns:
        Sanitized URL string
    """
    text = str(url)
    try:
        parts = urlsplit(text)
        query = []
        for key, value in parse_qsl(parts.query, keep_blank_values=True):
            if (
                _should_redact_param(key)
                or EMAIL_PATTERN.search(value)
                or ACCOUNT_ID_PATTERN.search(value)
            ):
                value = URL_REDACTION_PLACEHOLDER
            query.append((key, value))

        netloc = _sanitize_account_like(parts.netloc)
        path = _sanitize_account_like(parts.path)
        serialized = urlunsplit(
            (parts.scheme, netloc, path, urlencode(query), parts.fragment)
        )
    except ValueError:
        serialized = text

    return _sanitize_email_like(_sanitize_account_like(serialized))


def sanitize_headers(headers: Mapping[str, Any] | None) -> dict[str, Any]:
    """
    Redact headers for logging.

    Args:
        headers: Request or response headers

    Returns:
        New dict with secrets replaced
    """
    sanitized: dict[str, Any] = {}
    for key, value in (headers or {}).items():
        name = str(key).lower()

        if name in REDACTED_HEADERS:
            sanitized[key] = HEADER_REDACTION_PLACEHOLDER
        elif name == "host":
            sanitized[key] = _sanitize_account_like(str(value))
        elif isinstance(value, str) and value.startswith(("http://", "https://")):
            sanitized[key] = sanitize_url(value)
        else:
            sanitized[key] = value
    return sanitized


def sanitize_form_body(body: str) -> str:
    """
    Redact an ``application/x-www-form-urlencoded`` body for logging.

    Grant secrets (codes, verifiers, assertions, tokens) are replaced; other
    values get the same account and email redaction as URLs.
    """
    pairs = []
    for key, value in parse_qsl(body, keep_blank_values=True):
        if _should_redact_param(key) or key.lower() in FORM_SECRET_PARAMS:
            value = URL_REDACTION_PLACEHOLDER
        else:
            value = _sanitize_email_like(_sanitize_account_like(value))
        pairs.append((key, value))
    return urlencode(pairs)


def _redact_json(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            key: URL_REDACTION_PLACEHOLDER
            if _should_redact_param(str(key))
            else _redact_json(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [_redact_json(item) for item in value]
    if isinstance(value, str):
        return _sanitize_email_like(_sanitize_account_like(value))
    return value


def sanitize_json_body(body: str) -> str:
    """
    Redact a JSON response body for logging.

    Values under credential-like keys (``access_token``, ``refresh_token``)
    are replaced. Bodies that are not JSON get account and email redaction.
    """
    try:
        data = json.loads(body)
    except ValueError:
        return _sanitize_email_like(_sanitize_account_like(body))
    return json.dumps(_redact_json(data))
