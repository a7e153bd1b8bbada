"""Room Timer — per-room countdown that reclaims a live room after a fixed duration.

Invariants:
    - At most one active timer per room: start() cancels the previous one first
    - cancel() is idempotent; cancelling an absent timer is a no-op returning False
    - Expiry removes the room's entry, then spawns LiveSessionGateway.delete_room
    - delete_room failures are logged and never retried or re-raised
    - Cancellation is best-effort: a callback the scheduler already dequeued still runs

Design Decisions:
    - Scheduler injected (asyncio loop by default): tests drive a virtual clock
    - Deletion tasks tracked in a set so they are not garbage collected mid-flight and
      so shutdown can wait for them
"""

import asyncio
import logging
from typing import Any, Callable

from casecoach.core.domain_types import DEFAULT_ROOM_TIMER_SECONDS
from casecoach.core.protocols import LiveSessionGateway, Scheduler, TimerHandle

logger = logging.getLogger(__name__)


class LoopScheduler:
    """Scheduler backed by the running asyncio event loop."""

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback, *args)


class RoomTimer:
    """Registry of reclamation timers, keyed by room name."""

    def __init__(
        self,
        gateway: LiveSessionGateway,
        scheduler: Scheduler | None = None,
        default_duration_seconds: float = DEFAULT_ROOM_TIMER_SECONDS,
    ):
        self._gateway = gateway
        self._scheduler = scheduler or LoopScheduler()
        self._default_duration = default_duration_seconds
        self._timers: dict[str, TimerHandle] = {}
        self._deletions: set[asyncio.Task] = set()

    def start(self, room_name: str, duration_seconds: float | None = None) -> None:
        self.cancel(room_name)
        delay = self._default_duration if duration_seconds is None else duration_seconds
        self._timers[room_name] = self._scheduler.call_later(delay, self._expire, room_name)
        logger.info(f"Room timer started ({delay}s)", extra={"room_name": room_name})

    def cancel(self, room_name: str) -> bool:
        handle = self._timers.pop(room_name, None)
        if handle is None:
            return False
        handle.cancel()
        logger.info("Room timer cancelled", extra={"room_name": room_name})
        return True

    def active(self, room_name: str) -> bool:
        return room_name in self._timers

    def _expire(self, room_name: str) -> None:
        self._timers.pop(room_name, None)
        logger.info("Room timer expired, reclaiming room", extra={"room_name": room_name})
        task = asyncio.get_running_loop().create_task(
            self._reclaim(room_name), name=f"reclaim-room-{room_name}",
        )
        self._deletions.add(task)
        task.add_done_callback(self._deletions.discard)

    async def _reclaim(self, room_name: str) -> None:
        try:
            await self._gateway.delete_room(room_name)
        except Exception as e:
            logger.warning(
                f"Room reclamation failed: {e}", extra={"room_name": room_name},
            )

    async def wait_idle(self) -> None:
        """Wait for in-flight room deletions to settle."""
        if self._deletions:
            await asyncio.gather(*list(self._deletions), return_exceptions=True)

    async def shutdown(self) -> None:
        for room_name in list(self._timers):
            self.cancel(room_name)
        await self.wait_idle()
