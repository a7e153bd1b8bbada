"""Test Fakes — in-process stand-ins for the assessment engine, LiveKit and the event-loop clock.

Invariants:
    - FakeAssessmentEngine records every payload; fail_with() makes later calls raise
    - FakeGateway records every delete_room call, optionally failing them
    - VirtualScheduler fires callbacks only inside advance(), in due-time order
"""

import asyncio
import heapq
import itertools

from casecoach.core.errors import AssessmentEngineError, LiveSessionError

SAMPLE_ANALYSIS = {
    "overallWeightedScore": 7.5,
    "overallLabel": "Good",
    "summary": "Structured answer with a clear hypothesis.",
}


class FakeAssessmentEngine:
    """AssessmentEngine returning a canned analysis, or raising a configured error."""

    def __init__(self, result: dict | None = None):
        self.result = dict(SAMPLE_ANALYSIS) if result is None else result
        self.error: Exception | None = None
        self.calls: list[dict] = []

    def fail_with(self, error: Exception | None = None) -> None:
        self.error = error or AssessmentEngineError("engine down", "api_error")

    async def analyze(self, payload: dict) -> dict:
        self.calls.append(payload)
        if self.error is not None:
            raise self.error
        return self.result


class FakeGateway:
    """LiveSessionGateway recording every delete_room call."""

    def __init__(self):
        self.deleted: list[str] = []
        self.fail_deletes = False

    def issue_credential(self, room_name: str, participant_name: str) -> dict:
        return {"token": f"lk-{room_name}-{participant_name}", "url": "ws://livekit.test"}

    async def delete_room(self, room_name: str) -> None:
        self.deleted.append(room_name)
        if self.fail_deletes:
            raise LiveSessionError("room service unavailable", "delete_room")


class _VirtualHandle:
    def __init__(self, when: float, callback, args):
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class VirtualScheduler:
    """Scheduler on a manual clock: callbacks fire only inside advance()."""

    def __init__(self):
        self.now = 0.0
        self._heap: list[tuple[float, int, _VirtualHandle]] = []
        self._seq = itertools.count()

    def call_later(self, delay, callback, *args):
        handle = _VirtualHandle(self.now + delay, callback, args)
        heapq.heappush(self._heap, (handle.when, next(self._seq), handle))
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for _, _, h in self._heap if not h.cancelled)

    async def advance(self, seconds: float) -> None:
        """Move the clock forward, firing due callbacks in order, then let tasks run."""
        self.now += seconds
        while self._heap and self._heap[0][0] <= self.now:
            _, _, handle = heapq.heappop(self._heap)
            if not handle.cancelled:
                handle.callback(*handle.args)
        await asyncio.sleep(0)


def auth_header(access_token: str) -> dict:
    return {"Authorization": f"Bearer {access_token}"}


def analyze_body(room_name: str = "room-1", participant: str = "dev-123", **overrides) -> dict:
    """Minimal valid POST /interviews/analyze payload (camelCase, as the client sends it)."""
    body = {
        "roomName": room_name,
        "participantIdentity": participant,
        "sessionData": {
            "transcript": "I would start by sizing the market.",
            "duration": 312.5,
            "totalWords": 540,
            "averagePace": 128.0,
            "paceTimeline": [
                {"timestamp": 30.0, "wpm": 120.0, "segmentStart": 0.0, "segmentEnd": 30.0},
            ],
            "fillers": [
                {"word": "um", "timestamp": 12.1, "contextBefore": "so", "contextAfter": "the"},
            ],
            "pauses": [{"duration": 2.4, "timestamp": 40.0}],
        },
        "caseQuestion": "Estimate the market size for e-bikes in Lisbon.",
        "difficulty": "medium",
        "candidateAnswer": "About 40M EUR per year.",
    }
    body.update(overrides)
    return body
