"""Tests for the governed source API client."""

import json

import httpx
import pytest
from helpers import SleepRecorder

from cratepilot.domain.entities import ApiConfig, RateLimitConfig, RequestCounters
from cratepilot.domain.exceptions import ConfigurationError, RequestError
from cratepilot.infrastructure.integrations.api_client import SourceApiClient
from cratepilot.infrastructure.rate_limiter import RateGovernor

BASE_URL = "https://api.example.com/v1"


def _config(api_key: str | None = "secret-key", retry_attempts: int = 3) -> ApiConfig:
    return ApiConfig(
        base_url=BASE_URL,
        api_key=api_key,
        rate_limit=RateLimitConfig(
            requests_per_second=10,
            requests_per_minute=600,
            retry_attempts=retry_attempts,
            retry_delay_ms=1000,
        ),
    )


def _client(
    handler: object,
    sleep_recorder: SleepRecorder,
    config: ApiConfig | None = None,
    auth_headers: object = None,
) -> SourceApiClient:
    config = config or _config()
    return SourceApiClient(
        config,
        RequestCounters(),
        governor=RateGovernor(config=config.rate_limit, sleep=sleep_recorder),
        auth_headers=auth_headers,  # type: ignore[arg-type]
        transport=httpx.MockTransport(handler),  # type: ignore[arg-type]
    )


class TestSourceApiClientInit:
    """Test client construction."""

    def test_empty_base_url_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            SourceApiClient(ApiConfig(base_url="  "), RequestCounters())

    def test_build_url(self) -> None:
        client = SourceApiClient(_config(), RequestCounters())
        assert client.build_url("/search") == f"{BASE_URL}/search"
        assert client.build_url("tracks/1") == f"{BASE_URL}/tracks/1"
        assert client.build_url("https://other.example.com/page2") == "https://other.example.com/page2"


class TestSourceApiClientHeaders:
    """Test auth and content headers."""

    async def test_get_has_bearer_and_no_content_type(
        self, sleep_recorder: SleepRecorder
    ) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"ok": True})

        client = _client(handler, sleep_recorder)
        try:
            assert await client.request("/search", params={"q": "house"}) == {"ok": True}
        finally:
            await client.close()

        assert seen[0].headers["Authorization"] == "Bearer secret-key"
        assert "Content-Type" not in seen[0].headers
        assert seen[0].url.params["q"] == "house"

    async def test_post_sends_json_body(self, sleep_recorder: SleepRecorder) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json={"created": True})

        client = _client(handler, sleep_recorder)
        try:
            await client.request("/tracks", method="POST", body={"id": "x"})
        finally:
            await client.close()

        assert seen[0].headers["Content-Type"] == "application/json"
        assert json.loads(seen[0].content) == {"id": "x"}

    async def test_source_auth_overrides_default(self, sleep_recorder: SleepRecorder) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={})

        async def auth_headers() -> dict[str, str]:
            return {"Authorization": "Bearer source-token"}

        client = _client(handler, sleep_recorder, auth_headers=auth_headers)
        try:
            await client.request("/me")
        finally:
            await client.close()

        assert seen[0].headers["Authorization"] == "Bearer source-token"

    async def test_no_api_key_no_authorization(self, sleep_recorder: SleepRecorder) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(204)

        client = _client(handler, sleep_recorder, config=_config(api_key=None))
        try:
            assert await client.request("/ping") is None
        finally:
            await client.close()

        assert "Authorization" not in seen[0].headers


class TestSourceApiClientErrors:
    """Test failure handling and counting."""

    async def test_non_success_raises_and_counts(self, sleep_recorder: SleepRecorder) -> None:
        client = _client(lambda request: httpx.Response(404), sleep_recorder)
        try:
            with pytest.raises(RequestError) as exc_info:
                await client.request("/tracks/missing")
        finally:
            await client.close()

        assert exc_info.value.status_code == 404
        assert exc_info.value.reason == "Not Found"
        assert exc_info.value.url == f"{BASE_URL}/tracks/missing"
        assert client.counters.request_count == 1
        assert client.counters.last_request_time > 0

    async def test_transport_error_wrapped(self, sleep_recorder: SleepRecorder) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("All connection attempts failed", request=request)

        client = _client(handler, sleep_recorder)
        try:
            with pytest.raises(RequestError) as exc_info:
                await client.request("/search")
        finally:
            await client.close()

        assert exc_info.value.status_code is None
        assert "All connection attempts failed" in exc_info.value.message
        assert client.counters.request_count == 1

    async def test_429_retried_with_retry_after(self, sleep_recorder: SleepRecorder) -> None:
        responses = [
            httpx.Response(429, headers={"Retry-After": "2"}),
            httpx.Response(200, json={"ok": True}),
        ]

        client = _client(lambda request: responses.pop(0), sleep_recorder)
        try:
            assert await client.request("/search") == {"ok": True}
        finally:
            await client.close()

        assert 2.0 in sleep_recorder.delays
        assert client.counters.request_count == 2

    async def test_429_gives_up_after_retry_attempts(self, sleep_recorder: SleepRecorder) -> None:
        client = _client(
            lambda request: httpx.Response(429),
            sleep_recorder,
            config=_config(retry_attempts=2),
        )
        try:
            with pytest.raises(RequestError) as exc_info:
                await client.request("/search")
        finally:
            await client.close()

        assert exc_info.value.is_rate_limited
        # first attempt + 2 retries
        assert client.counters.request_count == 3

    async def test_consecutive_requests_are_paced(self, sleep_recorder: SleepRecorder) -> None:
        """Test the governor is asked to wait before the second request."""
        client = _client(lambda request: httpx.Response(200, json={}), sleep_recorder)
        try:
            await client.request("/a")
            await client.request("/b")
        finally:
            await client.close()

        assert client.counters.request_count == 2
        assert len(sleep_recorder.delays) == 1
        assert 0 < sleep_recorder.delays[0] <= 0.1
