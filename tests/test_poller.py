"""Tests for public URL discovery against a stub status API."""

import asyncio
import json

import httpx
import pytest

from devtunnel.config import Settings
from devtunnel.errors import NotReadyError
from devtunnel.poller import PublicUrlPoller, find_public_url
from devtunnel.retry import RetryPolicy

PUBLIC_URL = "https://abcd.example.ngrok.io"


class StubStatusApi:
    """Answers GET /api/tunnels, reporting a tunnel from ``ready_on`` onwards."""

    def __init__(self, ready_on: int | None = None, before=None):
        self.ready_on = ready_on
        self.before = before or (lambda: httpx.Response(200, json={"tunnels": []}))
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.ready_on is not None and len(self.requests) >= self.ready_on:
            return httpx.Response(
                200,
                json={
                    "tunnels": [
                        {"public_url": "http://abcd.example.ngrok.io", "proto": "http"},
                        {"public_url": PUBLIC_URL, "proto": "https"},
                    ]
                },
            )
        return self.before()

    def poller(self, attempts: int = 10, delay: float = 0.0) -> PublicUrlPoller:
        return PublicUrlPoller(
            policy=RetryPolicy(max_attempts=attempts, delay=delay),
            transport=httpx.MockTransport(self),
        )


class TestFindPublicUrl:
    def test_first_https_entry(self):
        payload = {
            "tunnels": [
                {"public_url": "http://a.ngrok.io"},
                {"public_url": "https://a.ngrok.io"},
                {"public_url": "https://b.ngrok.io"},
            ]
        }
        assert find_public_url(payload) == "https://a.ngrok.io"

    def test_no_https_entry(self):
        assert find_public_url({"tunnels": [{"public_url": "http://a.ngrok.io"}]}) is None

    def test_empty_tunnels(self):
        assert find_public_url({"tunnels": []}) is None

    @pytest.mark.parametrize(
        "payload",
        [
            None,
            [],
            {},
            {"tunnels": None},
            {"tunnels": "https://a.ngrok.io"},
            {"tunnels": ["https://a.ngrok.io"]},
            {"tunnels": [{"public_url": 42}]},
            {"tunnels": [{"name": "command_line"}]},
        ],
    )
    def test_unexpected_shapes(self, payload):
        assert find_public_url(payload) is None


class TestResolvePublicUrl:
    async def test_first_attempt(self):
        api = StubStatusApi(ready_on=1)
        assert await api.poller().resolve_public_url() == PUBLIC_URL
        assert len(api.requests) == 1
        assert str(api.requests[0].url) == "http://127.0.0.1:4040/api/tunnels"
        assert api.requests[0].method == "GET"

    async def test_ready_on_sixth_attempt(self):
        api = StubStatusApi(ready_on=6)
        assert await api.poller().resolve_public_url() == PUBLIC_URL
        assert len(api.requests) == 6

    async def test_never_ready(self):
        api = StubStatusApi()
        with pytest.raises(NotReadyError) as exc_info:
            await api.poller().resolve_public_url()
        assert exc_info.value.attempts == 10
        assert len(api.requests) == 10

    async def test_connection_errors_are_retried(self):
        def refuse():
            raise httpx.ConnectError("connection refused")

        api = StubStatusApi(ready_on=3, before=refuse)
        assert await api.poller().resolve_public_url() == PUBLIC_URL
        assert len(api.requests) == 3

    async def test_invalid_json_is_retried(self):
        api = StubStatusApi(ready_on=2, before=lambda: httpx.Response(200, text="<html>"))
        assert await api.poller().resolve_public_url() == PUBLIC_URL
        assert len(api.requests) == 2

    async def test_server_error_is_retried(self):
        api = StubStatusApi(
            ready_on=2,
            before=lambda: httpx.Response(502, content=json.dumps({"tunnels": []})),
        )
        assert await api.poller().resolve_public_url() == PUBLIC_URL
        assert len(api.requests) == 2

    async def test_attempts_are_spaced(self):
        api = StubStatusApi(ready_on=3)
        loop = asyncio.get_running_loop()
        started = loop.time()
        await api.poller(delay=0.05).resolve_public_url()
        assert loop.time() - started >= 0.1

    async def test_custom_budget(self):
        api = StubStatusApi()
        with pytest.raises(NotReadyError) as exc_info:
            await api.poller(attempts=3).resolve_public_url()
        assert exc_info.value.attempts == 3
        assert len(api.requests) == 3


class TestPollerFromSettings:
    def test_settings_are_applied(self):
        settings = Settings(
            api_url="http://127.0.0.1:4041/api/tunnels",
            poll_attempts=4,
            poll_delay=0.5,
            request_timeout=1.0,
        )
        poller = PublicUrlPoller.from_settings(settings)
        assert poller.api_url == "http://127.0.0.1:4041/api/tunnels"
        assert poller.policy == RetryPolicy(max_attempts=4, delay=0.5)
        assert poller.timeout == 1.0
