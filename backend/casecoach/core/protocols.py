"""Boundary Protocols — contracts between core and shell.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - External collaborators (assessment, live rooms, timers) accessed through Protocol types
    - Implementations provided by shell via dependency injection

Design Decisions:
    - Protocol over ABC: structural subtyping, test fakes need no inheritance
"""

from typing import Any, Callable, Protocol


class AssessmentEngine(Protocol):
    """Stateless transcript -> structured score."""
    async def analyze(self, payload: dict) -> dict: ...


class LiveSessionGateway(Protocol):
    """Issues and deletes ephemeral media rooms."""
    def issue_credential(self, room_name: str, participant_name: str) -> dict: ...
    async def delete_room(self, room_name: str) -> None: ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Schedules a plain callback after a delay (asyncio loop or virtual clock)."""
    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle: ...
