"""Timing and retry defaults for extraction sessions."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_bool, env_float, env_int

DEFAULT_STALL_TIMEOUT_SECONDS = 30.0
DEFAULT_STEP_TIMEOUT_SECONDS = 300.0
DEFAULT_SETTLE_SECONDS = 5.0
DEFAULT_MAX_BOUNCES = 2
DEFAULT_LOG_TAIL = 50
DEFAULT_FINGERPRINT_PREFIX = 2048


@dataclass(frozen=True, slots=True)
class SessionConfig:
    stall_timeout_seconds: float = DEFAULT_STALL_TIMEOUT_SECONDS
    step_timeout_seconds: float = DEFAULT_STEP_TIMEOUT_SECONDS
    settle_seconds: float = DEFAULT_SETTLE_SECONDS
    max_bounces: int = DEFAULT_MAX_BOUNCES
    log_tail: int = DEFAULT_LOG_TAIL
    fingerprint_prefix: int = DEFAULT_FINGERPRINT_PREFIX
    atomic_writes: bool = False


def get_session_config() -> SessionConfig:
    return SessionConfig(
        stall_timeout_seconds=env_float(
            "CRUISESYNC_STALL_TIMEOUT", DEFAULT_STALL_TIMEOUT_SECONDS
        ),
        step_timeout_seconds=env_float("CRUISESYNC_STEP_TIMEOUT", DEFAULT_STEP_TIMEOUT_SECONDS),
        settle_seconds=env_float("CRUISESYNC_SETTLE_SECONDS", DEFAULT_SETTLE_SECONDS),
        max_bounces=env_int("CRUISESYNC_MAX_BOUNCES", DEFAULT_MAX_BOUNCES),
        log_tail=env_int("CRUISESYNC_LOG_TAIL", DEFAULT_LOG_TAIL),
        atomic_writes=env_bool("CRUISESYNC_ATOMIC_WRITES"),
    )
