from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import pytest

from cruisesync.app import quality_report, repair_report, replay_session, run_remote_session
from cruisesync.config import RemoteSessionConfig
from cruisesync.domain.model import EntityKind
from cruisesync.ingestion import NotAuthenticatedError, SyncCounts
from tests.helpers.records import (
    batch,
    booking_row,
    logged_in,
    loyalty_api_payload,
    network_payload,
    offer_row,
    step_complete,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from datetime import date
    from pathlib import Path

    from cruisesync.adapters.memory import InMemorySnapshotStore
    from cruisesync.config import SessionConfig

EXPECTED_COUNTS = SyncCounts(offers=1, sailings=2, upcoming_cruises=1, courtesy_holds=1)


def _recorded_session() -> list[dict[str, Any]]:
    return [
        logged_in(),
        batch("offers", [offer_row()], step=1),
        step_complete(1, 1),
        batch("bookings", [booking_row(), booking_row("7654321", status="Courtesy Hold")], step=2),
        step_complete(2, 2),
        {**network_payload(loyalty_api_payload(), endpoint="/api/loyalty"), "step": 3},
    ]


@pytest.fixture
def recording(tmp_path: Path) -> Path:
    path = tmp_path / "session.jsonl"
    path.write_text(
        "\n".join(json.dumps(envelope) for envelope in _recorded_session()) + "\n",
        encoding="utf-8",
    )
    return path


def test_replay_commits_to_store(
    recording: Path,
    memory_store: InMemorySnapshotStore,
    fast_config: SessionConfig,
    today: date,
) -> None:
    result = asyncio.run(
        replay_session(recording, store=memory_store, config=fast_config, today=lambda: today)
    )

    assert result.counts == EXPECTED_COUNTS
    assert result.committed
    assert set(memory_store.writes) == set(EntityKind)
    assert len(memory_store.rows(EntityKind.BOOKED_CRUISES)) == 2


def test_replay_dry_run_writes_nothing(
    recording: Path,
    memory_store: InMemorySnapshotStore,
    fast_config: SessionConfig,
    today: date,
) -> None:
    result = asyncio.run(
        replay_session(
            recording, store=memory_store, config=fast_config, dry_run=True, today=lambda: today
        )
    )

    assert result.outcome is None
    assert not result.committed
    assert result.preview is not None
    assert result.preview.for_kind(EntityKind.OFFERS).counts["new"] == 1
    assert memory_store.writes == []


def test_replay_without_login_is_refused(
    tmp_path: Path, memory_store: InMemorySnapshotStore, fast_config: SessionConfig
) -> None:
    path = tmp_path / "anonymous.jsonl"
    path.write_text(json.dumps(step_complete(1)) + "\n", encoding="utf-8")

    with pytest.raises(NotAuthenticatedError):
        asyncio.run(replay_session(path, store=memory_store, config=fast_config))


def test_reports_read_stored_records(
    recording: Path,
    memory_store: InMemorySnapshotStore,
    fast_config: SessionConfig,
    today: date,
) -> None:
    asyncio.run(
        replay_session(recording, store=memory_store, config=fast_config, today=lambda: today)
    )

    report = asyncio.run(quality_report(store=memory_store, today=today))
    summary = asyncio.run(repair_report(store=memory_store, today=today))

    assert report.validation.total_records == 5
    assert 0 <= report.score.overall <= 100
    assert summary.total_records == 5


@dataclass
class FakeRemoteNavigator:
    config: RemoteSessionConfig
    scripts: dict[int, list[dict[str, Any]]] = field(default_factory=dict)
    handler: Callable[[Mapping[str, object]], object] | None = None
    closed: bool = False

    async def __aenter__(self) -> FakeRemoteNavigator:
        return self

    async def __aexit__(self, *_: object) -> None:
        self.closed = True

    async def is_logged_in(self) -> bool:
        return True

    async def pump_events(
        self, handler: Callable[[Mapping[str, object]], object], *, stop: asyncio.Event
    ) -> int:
        self.handler = handler
        await stop.wait()
        return 0

    async def navigate(self, target: str) -> None:
        _ = target
        await asyncio.sleep(0)

    async def start_extractor(self, step: int) -> None:
        assert self.handler is not None
        for envelope in self.scripts.get(step, [step_complete(step)]):
            self.handler(envelope)


def test_remote_session_pumps_events(
    memory_store: InMemorySnapshotStore, fast_config: SessionConfig
) -> None:
    created: list[FakeRemoteNavigator] = []

    def factory(config: RemoteSessionConfig) -> FakeRemoteNavigator:
        navigator = FakeRemoteNavigator(
            config,
            scripts={
                1: [batch("offers", [offer_row()], step=1), step_complete(1, 1)],
                2: [batch("bookings", [booking_row()], step=2), step_complete(2, 1)],
                3: [
                    network_payload(loyalty_api_payload(), endpoint="/api/loyalty"),
                    step_complete(3),
                ],
            },
        )
        created.append(navigator)
        return navigator

    result = asyncio.run(
        run_remote_session(
            remote_config=RemoteSessionConfig(base_url="https://sandbox.test"),
            store=memory_store,
            config=fast_config,
            dry_run=True,
            navigator_factory=factory,  # type: ignore[arg-type]
        )
    )

    assert result.counts == SyncCounts(offers=1, sailings=2, upcoming_cruises=1)
    assert result.preview is not None
    (navigator,) = created
    assert navigator.closed
