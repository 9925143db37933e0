"""Port for driving the remote extraction session."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Navigator(Protocol):
    """Moves the remote page and starts the extractor for a step.

    Extractor output does not come back through this port; it arrives as messages
    handed to the orchestrator.
    """

    async def navigate(self, target: str) -> None: ...

    async def start_extractor(self, step: int) -> None: ...
