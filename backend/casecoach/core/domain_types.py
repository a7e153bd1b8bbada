"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - UserId, InterviewId wrap UUIDs — never use bare UUID in domain logic
    - All valid states encoded as Enums — no raw string matching
    - InterviewStatus.PROCESSING is the only non-terminal state

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON and to DB string columns without custom encoders
"""

from enum import Enum
from typing import NewType
from uuid import UUID


# ─── Identity Types ──────────────────────────────────────────────

UserId = NewType("UserId", UUID)
InterviewId = NewType("InterviewId", UUID)
CapabilityToken = NewType("CapabilityToken", str)   # 64 lowercase hex chars


# ─── Enums ───────────────────────────────────────────────────────

class IdentityKind(str, Enum):
    """User record variant — maps to DB `kind` column."""
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"


class TokenType(str, Enum):
    """JWT `typ` claim — keeps access and refresh tokens non-interchangeable."""
    ACCESS = "access"
    REFRESH = "refresh"


class InterviewStatus(str, Enum):
    """Interview job lifecycle — maps to DB `status` column."""
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


TERMINAL_STATUSES = frozenset({InterviewStatus.COMPLETED, InterviewStatus.FAILED})


# ─── Constants ───────────────────────────────────────────────────

DEFAULT_CONSENT_METADATA: dict = {"has_granted_interview_consent": False}
ANONYMOUS_NAME_PREFIX = "Guest-"
ANONYMOUS_NAME_ALIAS_CHARS = 8
DEFAULT_ROOM_TIMER_SECONDS = 300.0
ANALYSIS_ACCEPTED_MESSAGE = "Interview saved. AI analysis in progress..."
