"""Navigator backed by a remote browser sandbox reachable over HTTP.

The sandbox hosts the page and the extractor. It exposes a small JSON API:

- ``POST /sessions`` opens a browser session and returns ``{"sessionId": ...}``
- ``GET /sessions/{id}`` reports ``{"loggedIn": bool, "url": ...}``
- ``POST /sessions/{id}/navigate`` with ``{"url": ...}``
- ``POST /sessions/{id}/extractors`` with ``{"step": n}``
- ``GET /sessions/{id}/events?after=<cursor>`` returns queued envelopes
- ``DELETE /sessions/{id}`` closes the session

Authentication failures (401/403) on a single call are retried with exponential
backoff; throttling and transport errors are retried by the transport.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .http_resilience import ResilientClient

if TYPE_CHECKING:
    from types import TracebackType

    from cruisesync.config.http_resilience import ResilienceConfig
    from cruisesync.config.remote import RemoteSessionConfig
    from cruisesync.domain.ports import Navigator

log = getLogger(__name__)

_AUTH_FAILURE_STATUSES = frozenset({401, 403})
_MAX_POLL_BACKOFF_SECONDS = 30.0


class RemoteSessionError(RuntimeError):
    """Raised when the sandbox API returns an unusable response."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(RemoteSessionError):
    """Raised when the sandbox rejects our credentials."""


class RemoteModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class SessionCreated(RemoteModel):
    session_id: str = Field(alias="sessionId")


class SessionState(RemoteModel):
    logged_in: bool = Field(default=False, alias="loggedIn")
    url: str | None = None


class EventPage(RemoteModel):
    events: list[dict[str, Any]] = Field(default_factory=list)
    cursor: str | None = None


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


@dataclass(slots=True)
class RemoteSessionNavigator:
    config: RemoteSessionConfig
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep)
    _client: ResilientClient | None = field(default=None, init=False)
    _session_id: str | None = field(default=None, init=False)
    _cursor: str | None = field(default=None, init=False)

    async def __aenter__(self) -> RemoteSessionNavigator:
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def session_id(self) -> str:
        if self._session_id is None:
            raise RemoteSessionError("Remote session is not open")
        return self._session_id

    async def open(self) -> str:
        if self._client is None:
            self._client = self.client_factory(self.config.resilience)
        payload = await self._call("POST", "/sessions", json={"siteUrl": self.config.site_url})
        try:
            created = SessionCreated.model_validate(payload)
        except ValidationError as exc:
            raise RemoteSessionError("Unexpected response when opening a session") from exc
        self._session_id = created.session_id
        self._cursor = None
        log.info("Opened remote session %s", created.session_id)
        return created.session_id

    async def close(self) -> None:
        client, self._client = self._client, None
        if client is None:
            return
        try:
            if self._session_id is not None:
                await self._call("DELETE", f"/sessions/{self._session_id}", client=client)
                log.info("Closed remote session %s", self._session_id)
        finally:
            self._session_id = None
            await client.aclose()

    async def is_logged_in(self) -> bool:
        payload = await self._call("GET", f"/sessions/{self.session_id}")
        try:
            return SessionState.model_validate(payload).logged_in
        except ValidationError as exc:
            raise RemoteSessionError("Unexpected session status response") from exc

    async def navigate(self, target: str) -> None:
        url = f"{self.config.site_url}/{target.lstrip('/')}"
        log.info("Navigating remote session to %s", url)
        await self._call("POST", f"/sessions/{self.session_id}/navigate", json={"url": url})

    async def start_extractor(self, step: int) -> None:
        log.info("Starting extractor for step %d", step)
        await self._call("POST", f"/sessions/{self.session_id}/extractors", json={"step": step})

    async def poll_events(self) -> list[dict[str, Any]]:
        params = {"after": self._cursor} if self._cursor else None
        payload = await self._call("GET", f"/sessions/{self.session_id}/events", params=params)
        try:
            page = EventPage.model_validate(payload)
        except ValidationError as exc:
            raise RemoteSessionError("Unexpected events response") from exc
        if page.cursor:
            self._cursor = page.cursor
        return page.events

    async def pump_events(
        self, handler: Callable[[Mapping[str, object]], object], *, stop: asyncio.Event
    ) -> int:
        """Forward queued envelopes to ``handler`` until ``stop`` is set.

        A failed poll or a handler error is logged and the loop carries on; polls back
        off exponentially while they keep failing. Only cancellation ends it early.
        """

        delivered = 0
        failures = 0
        while not stop.is_set():
            delay = self.config.poll_interval_seconds
            try:
                events = await self.poll_events()
            except Exception:  # noqa: BLE001
                failures += 1
                delay = min(delay * 2**failures, _MAX_POLL_BACKOFF_SECONDS)
                log.exception(
                    "Polling remote events failed (%d in a row); retrying in %.2fs",
                    failures,
                    delay,
                )
                events = []
            else:
                failures = 0
            for event in events:
                try:
                    handler(event)
                except Exception:  # noqa: BLE001
                    log.exception("Handler rejected remote event %s", event.get("type"))
                    continue
                delivered += 1
            try:
                await asyncio.wait_for(stop.wait(), timeout=delay)
            except TimeoutError:
                continue
        return delivered

    async def _call(
        self,
        method: str,
        path: str,
        *,
        client: ResilientClient | None = None,
        json: object = None,
        params: Mapping[str, str] | None = None,
    ) -> object:
        active = client or self._client
        if active is None:
            raise RemoteSessionError("Remote session client is not open")
        attempts = max(1, self.config.auth_retry_attempts)
        for attempt in range(1, attempts + 1):
            try:
                return await self._request(active, method, path, json=json, params=params)
            except AuthenticationError:
                if attempt >= attempts:
                    raise
                delay = self.config.auth_backoff_seconds * (2 ** (attempt - 1))
                log.warning(
                    "Authentication rejected for %s %s (attempt %d/%d); retrying in %.1fs",
                    method,
                    path,
                    attempt,
                    attempts,
                    delay,
                )
                await self.sleep(delay)
        raise RemoteSessionError(f"{method} {path} was not attempted")

    async def _request(
        self,
        client: ResilientClient,
        method: str,
        path: str,
        *,
        json: object,
        params: Mapping[str, str] | None,
    ) -> object:
        url = f"{self.config.base_url}{path}"
        if json is None:
            response = await client.request(method, url, params=params)
        else:
            response = await client.request(method, url, json=json, params=params)
        if response.status_code in _AUTH_FAILURE_STATUSES:
            raise AuthenticationError(
                f"Remote session rejected credentials ({response.status_code})",
                status_code=response.status_code,
            )
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise RemoteSessionError(
                f"{method} {path} failed with {response.status_code}",
                status_code=response.status_code,
            ) from exc
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteSessionError(f"{method} {path} returned invalid JSON") from exc


if TYPE_CHECKING:

    def _navigator_check(navigator: RemoteSessionNavigator) -> Navigator:
        return navigator
