"""Interview Views — pure formatting of interview job rows for API responses.

Invariants:
    - result is exposed only for completed jobs
    - Summaries never include the transcript or the capability token
    - Missing optional metrics render as None, never raise
"""

from datetime import datetime
from typing import Protocol
from uuid import UUID

from casecoach.core.domain_types import InterviewStatus
from casecoach.core.job_state import result_allowed


class InterviewLike(Protocol):
    """Structural contract for the interview ORM row."""
    id: UUID
    owner_id: UUID
    room_name: str
    participant_identity: str
    session_data: dict
    case_question: str
    difficulty: str
    candidate_answer: str | None
    status: str
    result: dict | None
    created_at: datetime
    processed_at: datetime | None


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def format_metrics(session_data: dict) -> dict:
    """Speech metrics derived from the submitted session data."""
    return {
        "averagePace": session_data.get("averagePace"),
        "totalWords": session_data.get("totalWords"),
        "fillerCount": len(session_data.get("fillers") or []),
        "pauseCount": len(session_data.get("pauses") or []),
        "paceTimeline": session_data.get("paceTimeline") or [],
    }


def format_interview(interview: InterviewLike) -> dict:
    status = InterviewStatus(interview.status)
    session_data = interview.session_data or {}
    return {
        "id": str(interview.id),
        "userId": str(interview.owner_id),
        "roomName": interview.room_name,
        "status": status.value,
        "createdAt": _iso(interview.created_at),
        "processedAt": _iso(interview.processed_at),
        "duration": session_data.get("duration"),
        "transcript": session_data.get("transcript"),
        "metrics": format_metrics(session_data),
        "caseQuestion": interview.case_question,
        "difficulty": interview.difficulty,
        "candidateAnswer": interview.candidate_answer,
        "caseAnalysis": interview.result if result_allowed(status) else None,
    }


def format_summary(interview: InterviewLike) -> dict:
    status = InterviewStatus(interview.status)
    analysis = (interview.result or {}) if result_allowed(status) else {}
    return {
        "id": str(interview.id),
        "status": status.value,
        "createdAt": _iso(interview.created_at),
        "duration": (interview.session_data or {}).get("duration"),
        "caseQuestion": interview.case_question,
        "difficulty": interview.difficulty,
        "candidateAnswer": interview.candidate_answer,
        "overallWeightedScore": analysis.get("overallWeightedScore"),
        "overallLabel": analysis.get("overallLabel"),
    }


def format_summary_page(
    interviews: list[InterviewLike], total: int, limit: int, offset: int,
) -> dict:
    return {
        "interviews": [format_summary(i) for i in interviews],
        "total": total,
        "pagination": {"limit": limit, "offset": offset},
    }
