"""Configuration for the remote extraction sandbox."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from .env import env_float, env_int, require_env_vars
from .http_resilience import RateLimit, ResilienceConfig

DEFAULT_SITE_URL = "https://www.royalcaribbean.com"
REMOTE_RATE_LIMIT = RateLimit(max_calls=10, per_seconds=1.0)


@dataclass(frozen=True, slots=True)
class RemoteSessionConfig:
    base_url: str
    api_token: str | None = None
    site_url: str = DEFAULT_SITE_URL
    auth_retry_attempts: int = 3
    auth_backoff_seconds: float = 0.5
    poll_interval_seconds: float = 1.0
    resilience: ResilienceConfig = field(
        default_factory=lambda: ResilienceConfig(name="remote-session", ratelimit=REMOTE_RATE_LIMIT)
    )


def get_remote_session_config() -> RemoteSessionConfig:
    values = require_env_vars(["CRUISESYNC_REMOTE_URL"])
    base_url = values["CRUISESYNC_REMOTE_URL"].rstrip("/")
    token = os.getenv("CRUISESYNC_REMOTE_TOKEN") or None
    headers = {"Authorization": f"Bearer {token}"} if token else None
    return RemoteSessionConfig(
        base_url=base_url,
        api_token=token,
        site_url=os.getenv("CRUISESYNC_SITE_URL", DEFAULT_SITE_URL).rstrip("/"),
        auth_retry_attempts=env_int("CRUISESYNC_AUTH_RETRIES", 3),
        auth_backoff_seconds=env_float("CRUISESYNC_AUTH_BACKOFF", 0.5),
        poll_interval_seconds=env_float("CRUISESYNC_POLL_INTERVAL", 1.0),
        resilience=ResilienceConfig(
            name="remote-session",
            base_url=base_url,
            ratelimit=REMOTE_RATE_LIMIT,
            default_headers=headers,
        ),
    )
