"""Integration tests for the loopback callback server on real sockets."""

import asyncio
import errno
import socket

import httpx
import pytest

from suitecloud_auth.exceptions import CallbackServerError, CallbackTimeoutError
from suitecloud_auth.services.callback_server import (
    CallbackServerState,
    LoopbackCallbackServer,
)


def free_port_pair() -> int:
    """First port of two adjacent free loopback ports."""
    for _ in range(50):
        with socket.socket() as probe:
            probe.bind(("127.0.0.1", 0))
            port = probe.getsockname()[1]
        if port >= 65535:
            continue
        try:
            with socket.socket() as first, socket.socket() as second:
                first.bind(("127.0.0.1", port))
                second.bind(("127.0.0.1", port + 1))
        except OSError:
            continue
        return port
    pytest.skip("No adjacent free loopback ports")


def make_server(state="expected-state", port=None, port_max=None):
    port = port or free_port_pair()
    return LoopbackCallbackServer(
        expected_state=state, port_min=port, port_max=port_max or port
    )


async def get(url):
    async with httpx.AsyncClient(trust_env=False) as client:
        return await client.get(url)


class TestCallbackResponses:
    """Responses served to the browser."""

    @pytest.mark.asyncio
    async def test_success_callback(self):
        """Test a valid redirect is answered 200 and resolves the wait."""
        async with make_server() as server:
            assert server.state == CallbackServerState.LISTENING
            assert server.redirect_uri == (
                f"http://127.0.0.1:{server.port}/suitecloud-auth"
            )

            response = await get(
                f"{server.redirect_uri}?code=abc&state=expected-state&company=123"
            )
            params = await server.wait_for_callback(1000)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert "Authentication completed." in response.text
        assert params == {"code": "abc", "state": "expected-state", "company": "123"}
        assert server.state == CallbackServerState.CLOSED

    @pytest.mark.asyncio
    async def test_wrong_state_is_answered_400(self):
        """Test a foreign state gets the failure page but still resolves."""
        async with make_server() as server:
            response = await get(f"{server.redirect_uri}?code=abc&state=forged")
            params = await server.wait_for_callback(1000)

        assert response.status_code == 400
        assert "Authentication failed." in response.text
        assert params["state"] == "forged"

    @pytest.mark.asyncio
    async def test_error_callback_is_answered_400(self):
        """Test an error redirect gets the failure page."""
        async with make_server() as server:
            response = await get(
                f"{server.redirect_uri}?error=access_denied"
                "&error_description=User+denied&state=expected-state"
            )
            params = await server.wait_for_callback(1000)

        assert response.status_code == 400
        assert params["error"] == "access_denied"
        assert params["error_description"] == "User denied"

    @pytest.mark.asyncio
    async def test_other_paths_are_not_found(self):
        """Test requests outside the callback path do not resolve the wait."""
        async with make_server() as server:
            response = await get(f"http://127.0.0.1:{server.port}/favicon.ico")

            assert response.status_code == 404
            assert response.text == "Not found"
            assert server.state == CallbackServerState.LISTENING

    @pytest.mark.asyncio
    async def test_first_callback_wins(self):
        """Test later callbacks are answered but do not change the result."""
        async with make_server() as server:
            await get(f"{server.redirect_uri}?code=first&state=expected-state")
            second = await get(f"{server.redirect_uri}?code=second&state=other")
            params = await server.wait_for_callback(1000)

        assert second.status_code == 400
        assert params["code"] == "first"

    @pytest.mark.asyncio
    async def test_repeated_keys_take_first_value(self):
        """Test only the first value of a repeated parameter is kept."""
        async with make_server() as server:
            await get(f"{server.redirect_uri}?code=one&code=two&state=expected-state")
            params = await server.wait_for_callback(1000)

        assert params["code"] == "one"


class TestCallbackLifecycle:
    """Binding, timeout and shutdown."""

    @pytest.mark.asyncio
    async def test_timeout(self):
        """Test the wait fails with the rounded-up timeout in seconds."""
        async with make_server() as server:
            with pytest.raises(CallbackTimeoutError, match="timed out after 1s"):
                await server.wait_for_callback(50)

            assert server.state == CallbackServerState.TIMED_OUT

    @pytest.mark.asyncio
    async def test_non_positive_timeout_uses_default(self):
        """Test a zero timeout waits for the callback instead of failing."""
        async with make_server() as server:
            waiter = asyncio.create_task(server.wait_for_callback(0))
            await asyncio.sleep(0.05)
            assert not waiter.done()

            await get(f"{server.redirect_uri}?code=abc&state=expected-state")
            params = await waiter

        assert params["code"] == "abc"

    @pytest.mark.asyncio
    async def test_other_bind_errors_are_fatal(self, monkeypatch):
        """Test a bind error other than address-in-use stops the scan."""
        attempts = []

        async def refuse(*args, **kwargs):
            attempts.append(args[2])
            raise OSError(errno.EACCES, "Permission denied")

        monkeypatch.setattr(
            "suitecloud_auth.services.callback_server.asyncio.start_server", refuse
        )
        server = LoopbackCallbackServer(
            expected_state="expected-state", port_min=52300, port_max=52301
        )

        with pytest.raises(CallbackServerError, match="on port 52300"):
            await server.start()

        assert attempts == [52300]
        assert server.state == CallbackServerState.STARTING

    @pytest.mark.asyncio
    async def test_port_in_use_moves_to_next_port(self):
        """Test a taken port is skipped."""
        port = free_port_pair()
        async with make_server(port=port) as first:
            async with make_server(port=port, port_max=port + 1) as second:
                assert first.port == port
                assert second.port == port + 1

    @pytest.mark.asyncio
    async def test_no_free_port(self):
        """Test an exhausted range is reported."""
        port = free_port_pair()
        async with make_server(port=port):
            with pytest.raises(CallbackServerError, match="no free port in range"):
                await make_server(port=port).start()

    def test_redirect_uri_requires_listening(self):
        """Test the redirect URI is unavailable before start."""
        with pytest.raises(CallbackServerError, match="not listening"):
            _ = make_server().redirect_uri

    @pytest.mark.asyncio
    async def test_close_is_idempotent_and_releases_port(self):
        """Test close twice, then the port can be bound again."""
        server = make_server()
        await server.start()
        port = server.port

        await server.close()
        await server.close()

        assert server.state == CallbackServerState.CLOSED
        async with make_server(port=port) as again:
            assert again.port == port

    @pytest.mark.asyncio
    async def test_close_cancels_pending_wait(self):
        """Test closing the server ends a pending wait."""
        server = make_server()
        await server.start()
        waiter = asyncio.create_task(server.wait_for_callback(5000))
        await asyncio.sleep(0)

        await server.close()

        with pytest.raises(asyncio.CancelledError):
            await waiter
