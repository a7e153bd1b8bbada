"""Interview Job State Machine — pure transition rules.

Invariants:
    - processing -> completed | failed, exactly once
    - completed and failed are terminal; no transition leaves them
    - Only completed jobs carry a result
"""

from casecoach.core.domain_types import InterviewStatus, TERMINAL_STATUSES
from casecoach.core.errors import InvalidTransitionError


def check_transition(current: InterviewStatus, target: InterviewStatus) -> None:
    """Raise InvalidTransitionError unless current -> target is allowed."""
    if current in TERMINAL_STATUSES or target not in TERMINAL_STATUSES:
        raise InvalidTransitionError(current.value, target.value)


def is_terminal(status: InterviewStatus) -> bool:
    return status in TERMINAL_STATUSES


def result_allowed(status: InterviewStatus) -> bool:
    return status is InterviewStatus.COMPLETED
