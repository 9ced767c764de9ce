"""
HTTP client for token endpoint traffic.

Wraps ``httpx.AsyncClient`` with:
- JSON and form-encoded helpers returning a small ``HttpResponse``
- proxy, timeout and redirect settings from ``Settings``
- optional sanitized request/response trace, tagged with a per-exchange trace id
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx
from loguru import logger

from suitecloud_auth.config import Settings
from suitecloud_auth.core.trace_context import new_trace_id, trace_id_context
from suitecloud_auth.exceptions import ProtocolError
from suitecloud_auth.infrastructure.http.sanitizer import (
    sanitize_form_body,
    sanitize_headers,
    sanitize_json_body,
    sanitize_url,
)

TRACE_SNIPPET_LENGTH = 500
TRACE_MAX_RESPONSE_BODY = 1000


@dataclass
class HttpResponse:
    """
    Buffered HTTP response.

    Attributes:
        status_code: HTTP status
        headers: Response headers (lower-case names)
        text: Decoded body
        data: Parsed JSON body, or None when the body is empty or the status is
            not 2xx and the body is not JSON
    """

    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    text: str = ""
    data: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json_object(self) -> dict[str, Any]:
        """Parsed body if it is a JSON object, else an empty dict."""
        return self.data if isinstance(self.data, dict) else {}


class HttpClient:
    """
    Async HTTP client shared by the authentication services.

    The underlying ``httpx.AsyncClient`` is created lazily and must be released
    with ``aclose()`` (or by using the client as an async context manager).
    """

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the client.

        Args:
            settings: Process settings (proxy, timeout, trace switches)
            transport: Optional httpx transport, mainly for tests
        """
        self.settings = settings
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.settings.http_timeout_seconds,
                follow_redirects=True,
                max_redirects=self.settings.http_max_redirects,
                proxy=self.settings.proxy or None,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "HttpClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def request(
        self,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        content: str | None = None,
    ) -> HttpResponse:
        """
        Send a request and buffer the response.

        Args:
            method: HTTP method
            url: Absolute URL
            headers: Request headers
            content: Optional request body

        Returns:
            HttpResponse with ``data`` left empty

        Raises:
            httpx.HTTPError: On transport failures (connection, timeout,
                too many redirects)
        """
        method = method.upper()
        request_headers = dict(headers or {})
        trace_token = trace_id_context.set(new_trace_id())
        try:
            self._trace_request(method, url, request_headers, content)

            response = await self._get_client().request(
                method, url, headers=request_headers, content=content
            )

            result = HttpResponse(
                status_code=response.status_code,
                headers={k.lower(): v for k, v in response.headers.items()},
                text=response.text,
            )
            self._trace_response(url, result)
            return result
        finally:
            trace_id_context.reset(trace_token)

    async def request_json(
        self,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        content: str | None = None,
    ) -> HttpResponse:
        """
        Send a request expecting a JSON answer.

        Raises:
            ProtocolError: If a 2xx response carries a body that is not JSON
        """
        response = await self.request(
            method,
            url,
            headers={"accept": "application/json", **(headers or {})},
            content=content,
        )
        if not response.text:
            return response

        try:
            response.data = json.loads(response.text)
        except ValueError as e:
            if response.ok:
                content_type = response.headers.get("content-type", "")
                snippet = response.text[:TRACE_SNIPPET_LENGTH]
                raise ProtocolError(
                    f"Failed to parse JSON response (content-type={content_type}): "
                    f"{snippet}",
                    status_code=response.status_code,
                ) from e
        return response

    async def request_form(
        self,
        url: str,
        form: dict[str, str],
        headers: dict[str, str] | None = None,
    ) -> HttpResponse:
        """POST an ``application/x-www-form-urlencoded`` body, expecting JSON."""
        body = str(httpx.QueryParams(form))
        return await self.request_json(
            "POST",
            url,
            headers={
                "content-type": "application/x-www-form-urlencoded",
                **(headers or {}),
            },
            content=body,
        )

    # ------------------------------------------------------------------
    # Trace
    # ------------------------------------------------------------------

    def _trace_request(
        self, method: str, url: str, headers: dict[str, str], body: str | None
    ) -> None:
        if not self.settings.http_trace:
            return
        self._write_trace(
            {
                "phase": "request",
                "method": method,
                "url": sanitize_url(url),
                "headers": sanitize_headers(headers),
                "bodyLength": len(body.encode("utf-8")) if body else 0,
            }
        )
        if self.settings.http_trace_body and body:
            if "x-www-form-urlencoded" in headers.get("content-type", ""):
                body = sanitize_form_body(body)
            self._write_trace(
                {"phase": "request-body", "bodySnippet": body[:TRACE_SNIPPET_LENGTH]}
            )

    def _trace_response(self, url: str, response: HttpResponse) -> None:
        if not self.settings.http_trace:
            return
        self._write_trace(
            {
                "phase": "response",
                "url": sanitize_url(url),
                "statusCode": response.status_code,
                "headers": sanitize_headers(response.headers),
                "bodyLength": len(response.text),
            }
        )
        if (
            self.settings.http_trace_body
            and response.text
            and len(response.text) <= TRACE_MAX_RESPONSE_BODY
        ):
            self._write_trace(
                {
                    "phase": "response-body",
                    "contentType": response.headers.get("content-type", ""),
                    "bodySnippet": sanitize_json_body(response.text)[
                        :TRACE_SNIPPET_LENGTH
                    ],
                }
            )

    def _write_trace(self, entry: dict[str, Any]) -> None:
        entry = {"traceId": trace_id_context.get(), **entry}
        line = json.dumps(entry)

        trace_file = self.settings.http_trace_file
        if trace_file:
            try:
                with Path(trace_file).open("a", encoding="utf-8") as handle:
                    handle.write(line + "\n")
                return
            except OSError as e:
                logger.warning(f"Could not write HTTP trace file {trace_file}: {e}")

        logger.info("HTTP trace: {}", line)
