"""Interview Schemas — analysis submission payload and acceptance response.

Invariants:
    - room_name, participant_identity, case_question: stripped, non-empty
    - difficulty in {easy, medium, hard}
    - session_data mirrors what the transcription client records (pace, fillers, pauses)
"""

from typing import Any

from pydantic import Field, field_validator

from casecoach.core.domain_types import Difficulty, InterviewStatus
from casecoach.schemas.base import CamelModel


class PaceTimelineItem(CamelModel):
    timestamp: float
    wpm: float
    segment_start: float
    segment_end: float


class FillerWord(CamelModel):
    word: str
    timestamp: float
    context_before: str
    context_after: str


class Pause(CamelModel):
    duration: float
    timestamp: float


class Word(CamelModel):
    word: str
    start: float
    end: float
    confidence: float


class SessionData(CamelModel):
    transcript: str = Field(min_length=1)
    duration: float = Field(ge=0)
    total_words: int = Field(ge=0)
    average_pace: float = Field(ge=0)
    pace_timeline: list[PaceTimelineItem] = Field(default_factory=list)
    fillers: list[FillerWord] = Field(default_factory=list)
    pauses: list[Pause] = Field(default_factory=list)
    words: list[Word] = Field(default_factory=list)
    transcript_segments: list[dict[str, Any]] = Field(default_factory=list)


class AnalyzeInterviewRequest(CamelModel):
    room_name: str = Field(min_length=1, max_length=200)
    participant_identity: str = Field(min_length=1, max_length=200)
    session_data: SessionData
    case_question: str = Field(min_length=1, max_length=5000)
    difficulty: Difficulty
    candidate_answer: str | None = Field(None, max_length=5000)

    @field_validator("room_name", "participant_identity", "case_question")
    @classmethod
    def strip_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("cannot be empty or whitespace")
        return v

    def engine_payload(self) -> dict:
        """The opaque input handed to the assessment engine."""
        return {
            "sessionData": self.session_data.model_dump(by_alias=True),
            "caseQuestion": self.case_question,
            "difficulty": self.difficulty.value,
            "candidateAnswer": self.candidate_answer,
        }


class AnalyzeInterviewResponse(CamelModel):
    interview_id: str
    status: InterviewStatus
    message: str
    access_token: str
