"""
Loopback HTTP server receiving the OAuth authorization redirect.

Listens on 127.0.0.1, on the first free port of a fixed range, and resolves a
one-shot future with the query parameters of the first request made to the
callback path. Everything else is answered with 404.
"""

import asyncio
import errno
import math
from enum import Enum
from urllib.parse import parse_qsl, urlsplit

from loguru import logger

from suitecloud_auth.constants import (
    CALLBACK_HOST,
    CALLBACK_PATH,
    CALLBACK_PORT_MAX,
    CALLBACK_PORT_MIN,
    DEFAULT_CALLBACK_TIMEOUT_MS,
    OAUTH_FAILURE_HTML,
    OAUTH_SUCCESS_HTML,
)
from suitecloud_auth.exceptions import CallbackServerError, CallbackTimeoutError

REQUEST_READ_TIMEOUT_SECONDS = 10

REASONS = {200: "OK", 400: "Bad Request", 404: "Not Found"}


class CallbackServerState(str, Enum):
    STARTING = "STARTING"
    LISTENING = "LISTENING"
    CALLBACK_RECEIVED = "CALLBACK_RECEIVED"
    TIMED_OUT = "TIMED_OUT"
    CLOSED = "CLOSED"


def _build_response(status: int, body: str, content_type: str) -> bytes:
    payload = body.encode("utf-8")
    head = (
        f"HTTP/1.1 {status} {REASONS.get(status, '')}\r\n"
        f"Content-Type: {content_type}\r\n"
        f"Content-Length: {len(payload)}\r\n"
        "Connection: close\r\n"
        "\r\n"
    )
    return head.encode("latin-1") + payload


class LoopbackCallbackServer:
    """
    One-shot receiver for the authorization-code redirect.

    Usage:
        async with LoopbackCallbackServer(expected_state=state) as server:
            open_browser(build_url(server.redirect_uri))
            params = await server.wait_for_callback(timeout_ms)
    """

    def __init__(
        self,
        expected_state: str,
        host: str = CALLBACK_HOST,
        port_min: int = CALLBACK_PORT_MIN,
        port_max: int = CALLBACK_PORT_MAX,
        path: str = CALLBACK_PATH,
    ):
        self.expected_state = expected_state
        self.host = host
        self.port_min = port_min
        self.port_max = port_max
        self.path = path
        self.port: int | None = None
        self.state = CallbackServerState.STARTING
        self._server: asyncio.Server | None = None
        self._callback: asyncio.Future[dict[str, str]] | None = None

    @property
    def redirect_uri(self) -> str:
        if self.port is None:
            raise CallbackServerError("Callback server is not listening.")
        return f"http://{self.host}:{self.port}{self.path}"

    async def start(self) -> "LoopbackCallbackServer":
        """
        Bind the first free port of the configured range.

        Raises:
            CallbackServerError: On a bind error other than "address in use",
                or when every port of the range is taken
        """
        if self._server is not None:
            return self

        self._callback = asyncio.get_running_loop().create_future()
        for port in range(self.port_min, self.port_max + 1):
            try:
                self._server = await asyncio.start_server(
                    self._handle_connection, self.host, port
                )
            except OSError as e:
                if e.errno == errno.EADDRINUSE:
                    logger.debug(f"Callback port {port} in use, trying next")
                    continue
                raise CallbackServerError(
                    f"Failed to start OAuth callback server on port {port}: {e}"
                ) from e

            self.port = port
            self.state = CallbackServerState.LISTENING
            logger.debug(f"OAuth callback server listening on {self.redirect_uri}")
            return self

        raise CallbackServerError(
            "Unable to start OAuth callback server: no free port in range "
            f"{self.port_min}-{self.port_max}."
        )

    async def wait_for_callback(self, timeout_ms: int | None) -> dict[str, str]:
        """
        Wait for the first request to the callback path.

        Args:
            timeout_ms: Deadline in milliseconds; zero, negative or None means the
                default of five minutes

        Returns:
            Query parameters of the callback (first value per key)

        Raises:
            CallbackTimeoutError: If no callback arrives in time
        """
        if self._callback is None:
            raise CallbackServerError("Callback server is not listening.")
        if not timeout_ms or timeout_ms <= 0:
            timeout_ms = DEFAULT_CALLBACK_TIMEOUT_MS
        try:
            return await asyncio.wait_for(
                asyncio.shield(self._callback), timeout=timeout_ms / 1000
            )
        except asyncio.TimeoutError:
            if self.state == CallbackServerState.LISTENING:
                self.state = CallbackServerState.TIMED_OUT
            raise CallbackTimeoutError(math.ceil(timeout_ms / 1000)) from None

    async def close(self) -> None:
        """Stop listening. Safe to call more than once."""
        if self.state == CallbackServerState.CLOSED:
            return
        self.state = CallbackServerState.CLOSED
        if self._callback is not None and not self._callback.done():
            self._callback.cancel()
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

    async def __aenter__(self) -> "LoopbackCallbackServer":
        return await self.start()

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _is_success(self, params: dict[str, str]) -> bool:
        return (
            not params.get("error")
            and bool(params.get("code"))
            and params.get("state") == self.expected_state
        )

    def _resolve(self, params: dict[str, str]) -> None:
        if self._callback is None or self._callback.done():
            return
        self.state = CallbackServerState.CALLBACK_RECEIVED
        self._callback.set_result(params)

    async def _handle_connection(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        try:
            head = await asyncio.wait_for(
                reader.readuntil(b"\r\n\r\n"), timeout=REQUEST_READ_TIMEOUT_SECONDS
            )
        except (
            asyncio.TimeoutError,
            asyncio.IncompleteReadError,
            asyncio.LimitOverrunError,
            ConnectionError,
        ) as e:
            logger.debug(f"Discarding malformed callback request: {e!r}")
            writer.close()
            return

        request_line = head.split(b"\r\n", 1)[0]
        parts = request_line.decode("latin-1").split(" ")
        target = parts[1] if len(parts) >= 2 else "/"
        url = urlsplit(target)

        if url.path != self.path:
            response = _build_response(404, "Not found", "text/plain; charset=utf-8")
        else:
            params: dict[str, str] = {}
            for key, value in parse_qsl(url.query, keep_blank_values=True):
                params.setdefault(key, value)

            if self._is_success(params):
                response = _build_response(
                    200, OAUTH_SUCCESS_HTML, "text/html; charset=utf-8"
                )
            else:
                response = _build_response(
                    400, OAUTH_FAILURE_HTML, "text/html; charset=utf-8"
                )
            self._resolve(params)

        try:
            writer.write(response)
            await writer.drain()
        except ConnectionError as e:
            logger.debug(f"Callback client disconnected: {e!r}")
        finally:
            writer.close()
