"""Scripted navigator standing in for a live extraction sandbox."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

type Envelope = Mapping[str, Any]


@dataclass
class ScriptedNavigator:
    """Delivers canned envelopes for each step when its extractor starts.

    ``scripts`` maps a step number to the envelopes of each visit, in visit order;
    a revisit beyond the scripted ones delivers nothing. ``delay`` spaces messages
    out on the event loop instead of delivering them inline.
    """

    scripts: dict[int, list[Sequence[Envelope]]] = field(default_factory=dict)
    failing_targets: set[str] = field(default_factory=set)
    failing_steps: set[int] = field(default_factory=set)
    delay: float | None = None
    handler: Callable[[Envelope], object] | None = None
    visited: list[str] = field(default_factory=list)
    started: list[int] = field(default_factory=list)
    _tasks: list[asyncio.Task[None]] = field(default_factory=list)

    def bind(self, handler: Callable[[Envelope], object]) -> None:
        self.handler = handler

    async def navigate(self, target: str) -> None:
        self.visited.append(target)
        if target in self.failing_targets:
            raise ConnectionError(f"cannot reach {target}")

    async def start_extractor(self, step: int) -> None:
        visit = self.started.count(step)
        self.started.append(step)
        if step in self.failing_steps:
            raise RuntimeError("extractor failed to load")
        visits = self.scripts.get(step, [])
        envelopes = list(visits[visit]) if visit < len(visits) else []
        if self.delay is None:
            self._deliver(envelopes)
        else:
            self._tasks.append(asyncio.create_task(self._deliver_later(envelopes)))

    def _deliver(self, envelopes: Sequence[Envelope]) -> None:
        if self.handler is None:
            raise RuntimeError("no handler bound")
        for envelope in envelopes:
            self.handler(envelope)

    async def _deliver_later(self, envelopes: Sequence[Envelope]) -> None:
        for envelope in envelopes:
            await asyncio.sleep(self.delay or 0)
            self._deliver([envelope])
