from __future__ import annotations

import asyncio
import json
from collections.abc import Callable, Mapping  # noqa: TC003

import httpx
import pytest

from cruisesync.adapters.http_resilience import ResilientClient
from cruisesync.adapters.remote_session import (
    AuthenticationError,
    RemoteSessionError,
    RemoteSessionNavigator,
)
from cruisesync.config import RemoteSessionConfig, ResilienceConfig

BASE_URL = "https://sandbox.test"


def _make_client_factory(
    handler: Callable[[httpx.Request], httpx.Response],
) -> Callable[[ResilienceConfig], ResilientClient]:
    async def async_handler(request: httpx.Request) -> httpx.Response:
        return handler(request)

    def factory(resilience: ResilienceConfig) -> ResilientClient:
        client = ResilientClient(resilience)
        client._client = httpx.AsyncClient(transport=httpx.MockTransport(async_handler))  # noqa: SLF001  # type: ignore[reportPrivateUsage]
        return client

    return factory


def _config(**overrides: object) -> RemoteSessionConfig:
    values: dict[str, object] = {
        "base_url": BASE_URL,
        "site_url": "https://cruise.test",
        "auth_retry_attempts": 3,
        "auth_backoff_seconds": 0.5,
        "poll_interval_seconds": 0.01,
    }
    values.update(overrides)
    return RemoteSessionConfig(**values)  # type: ignore[arg-type]


class FakeSandbox:
    def __init__(self) -> None:
        self.requests: list[tuple[str, str, object]] = []
        self.events: list[list[dict[str, object]]] = [
            [{"type": "auth_status", "loggedIn": True}],
            [{"type": "log", "message": "hello"}],
        ]
        self.reject_status: list[int] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        path = request.url.path
        self.requests.append((request.method, path, body or dict(request.url.params)))
        if self.reject_status:
            return httpx.Response(self.reject_status.pop(0))
        if request.method == "POST" and path == "/sessions":
            return httpx.Response(201, json={"sessionId": "s-1"})
        if request.method == "GET" and path == "/sessions/s-1":
            return httpx.Response(200, json={"loggedIn": True, "url": "https://cruise.test"})
        if path == "/sessions/s-1/events":
            batch = self.events.pop(0) if self.events else []
            cursor = f"c{len(self.requests)}" if batch else None
            return httpx.Response(200, json={"events": batch, "cursor": cursor})
        if request.method == "DELETE":
            return httpx.Response(204)
        return httpx.Response(202)


def test_session_lifecycle() -> None:
    sandbox = FakeSandbox()

    async def scenario() -> bool:
        navigator = RemoteSessionNavigator(_config(), client_factory=_make_client_factory(sandbox))
        async with navigator:
            assert navigator.session_id == "s-1"
            logged_in = await navigator.is_logged_in()
            await navigator.navigate("/club-royale/offers")
            await navigator.start_extractor(1)
        return logged_in

    assert asyncio.run(scenario())
    assert sandbox.requests == [
        ("POST", "/sessions", {"siteUrl": "https://cruise.test"}),
        ("GET", "/sessions/s-1", {}),
        ("POST", "/sessions/s-1/navigate", {"url": "https://cruise.test/club-royale/offers"}),
        ("POST", "/sessions/s-1/extractors", {"step": 1}),
        ("DELETE", "/sessions/s-1", {}),
    ]


def test_poll_events_advances_cursor() -> None:
    sandbox = FakeSandbox()

    async def scenario() -> tuple[list[dict[str, object]], list[dict[str, object]]]:
        async with RemoteSessionNavigator(
            _config(), client_factory=_make_client_factory(sandbox)
        ) as navigator:
            first = await navigator.poll_events()
            second = await navigator.poll_events()
        return first, second

    first, second = asyncio.run(scenario())

    assert first == [{"type": "auth_status", "loggedIn": True}]
    assert second == [{"type": "log", "message": "hello"}]
    event_requests = [params for _, path, params in sandbox.requests if path.endswith("/events")]
    assert event_requests[0] == {}
    assert event_requests[1] == {"after": "c2"}


def test_pump_events_until_stopped() -> None:
    sandbox = FakeSandbox()
    received: list[object] = []

    async def scenario() -> int:
        async with RemoteSessionNavigator(
            _config(), client_factory=_make_client_factory(sandbox)
        ) as navigator:
            stop = asyncio.Event()
            pump = asyncio.create_task(navigator.pump_events(received.append, stop=stop))
            await asyncio.sleep(0.1)
            stop.set()
            return await pump

    delivered = asyncio.run(scenario())

    assert delivered == 2
    assert [event["type"] for event in received] == ["auth_status", "log"]  # type: ignore[index]


def test_pump_events_survives_failed_polls_and_handler_errors() -> None:
    sandbox = FakeSandbox()
    sandbox.events.insert(0, [{"type": "boom"}])
    failing_polls = [500, 502]

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/events") and failing_polls:
            return httpx.Response(failing_polls.pop(0))
        return sandbox(request)

    received: list[object] = []

    def deliver(event: Mapping[str, object]) -> None:
        if event["type"] == "boom":
            raise ValueError("cannot handle boom")
        received.append(event)

    async def scenario() -> int:
        async with RemoteSessionNavigator(
            _config(), client_factory=_make_client_factory(handler)
        ) as navigator:
            stop = asyncio.Event()
            pump = asyncio.create_task(navigator.pump_events(deliver, stop=stop))
            await asyncio.sleep(0.3)
            stop.set()
            return await pump

    delivered = asyncio.run(scenario())

    assert failing_polls == []
    assert delivered == 2
    assert [event["type"] for event in received] == ["auth_status", "log"]  # type: ignore[index]


def test_pump_events_stops_on_cancellation() -> None:
    sandbox = FakeSandbox()

    async def scenario() -> None:
        async with RemoteSessionNavigator(
            _config(), client_factory=_make_client_factory(sandbox)
        ) as navigator:
            stop = asyncio.Event()
            pump = asyncio.create_task(navigator.pump_events(lambda _: None, stop=stop))
            await asyncio.sleep(0.05)
            pump.cancel()
            await pump

    with pytest.raises(asyncio.CancelledError):
        asyncio.run(scenario())


def test_auth_rejection_is_retried_with_backoff() -> None:
    sandbox = FakeSandbox()
    sandbox.reject_status = [401, 403]
    delays: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        delays.append(seconds)

    async def scenario() -> str:
        navigator = RemoteSessionNavigator(
            _config(), client_factory=_make_client_factory(sandbox), sleep=fake_sleep
        )
        session_id = await navigator.open()
        await navigator.close()
        return session_id

    assert asyncio.run(scenario()) == "s-1"
    assert delays == [0.5, 1.0]


def test_auth_rejection_gives_up_after_attempts() -> None:
    sandbox = FakeSandbox()
    sandbox.reject_status = [401, 401]
    delays: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        delays.append(seconds)

    async def scenario() -> None:
        navigator = RemoteSessionNavigator(
            _config(auth_retry_attempts=2),
            client_factory=_make_client_factory(sandbox),
            sleep=fake_sleep,
        )
        try:
            await navigator.open()
        finally:
            await navigator.close()

    with pytest.raises(AuthenticationError) as excinfo:
        asyncio.run(scenario())

    assert excinfo.value.status_code == 401
    assert delays == [0.5]


def test_server_error_is_reported() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            return httpx.Response(201, json={"sessionId": "s-1"})
        return httpx.Response(404)

    async def scenario() -> None:
        navigator = RemoteSessionNavigator(_config(), client_factory=_make_client_factory(handler))
        await navigator.open()
        try:
            await navigator.is_logged_in()
        finally:
            navigator._session_id = None  # noqa: SLF001  # type: ignore[reportPrivateUsage]
            await navigator.close()

    with pytest.raises(RemoteSessionError, match="GET /sessions/s-1 failed with 404"):
        asyncio.run(scenario())


def test_unexpected_open_response() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        _ = request
        return httpx.Response(200, json={"id": "nope"})

    async def scenario() -> None:
        navigator = RemoteSessionNavigator(_config(), client_factory=_make_client_factory(handler))
        try:
            await navigator.open()
        finally:
            await navigator.close()

    with pytest.raises(RemoteSessionError, match="Unexpected response when opening a session"):
        asyncio.run(scenario())


def test_navigator_requires_open_session() -> None:
    navigator = RemoteSessionNavigator(_config())

    with pytest.raises(RemoteSessionError, match="not open"):
        asyncio.run(navigator.navigate("anywhere"))
