"""Anthropic Assessment Engine — scores a market-sizing interview transcript as JSON.

Invariants:
    - One Messages API call per analyze(); no retry, no backoff (SDK retries disabled)
    - The SDK client timeout is the only bound on call latency
    - Every failure (API error, empty reply, non-JSON reply) raises AssessmentEngineError
    - Returned dict always carries overallWeightedScore and overallLabel

Design Decisions:
    - Prompt kept deliberately small: scoring rubric lives in the model instructions,
      the rest of the system treats analyze() as opaque
"""

import json
import logging

import anthropic
from anthropic import (
    APIError,
    APIConnectionError,
    APITimeoutError,
    RateLimitError,
)

from casecoach.core.errors import AssessmentEngineError, ErrorContext

logger = logging.getLogger(__name__)

OVERALL_LABELS = ("Insufficient", "Adequate", "Good", "Very Good", "Outstanding")

SYSTEM_PROMPT = (
    "You are an interviewer at a top strategy consulting firm grading a candidate's "
    "market sizing case. Score each dimension from 1 to 5: structuredProblemSolving, "
    "businessJudgment, quantitativeSkills, communication, sanityCheck. Each dimension "
    "is an object with a numeric score and a feedback string. Return ONLY a JSON "
    "object with those five keys plus overallWeightedScore (1-5), overallLabel (one "
    f"of {', '.join(OVERALL_LABELS)}), priorityImprovements (list of "
    "{timestamp, feedback}) and highlights (list of strings)."
)


def build_user_message(payload: dict) -> str:
    """Render the submitted session for the model."""
    session = payload.get("sessionData") or {}
    fillers = session.get("fillers") or []
    pauses = session.get("pauses") or []
    lines = [
        f"CASE QUESTION: {payload.get('caseQuestion', '')}",
        f"DIFFICULTY: {payload.get('difficulty', '')}",
        f"CANDIDATE FINAL ANSWER: {payload.get('candidateAnswer') or 'not provided'}",
        "",
        "TRANSCRIPT:",
        session.get("transcript", ""),
        "",
        f"DURATION: {session.get('duration')}s, WORDS: {session.get('totalWords')}, "
        f"AVERAGE PACE: {session.get('averagePace')} WPM",
        f"FILLER WORDS: {len(fillers)}, PAUSES: {len(pauses)}",
    ]
    return "\n".join(lines)


def parse_analysis(text: str) -> dict:
    """Extract the JSON object from the model reply."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.strip("`")
        if cleaned.startswith("json"):
            cleaned = cleaned[len("json"):]
    start, end = cleaned.find("{"), cleaned.rfind("}")
    if start == -1 or end <= start:
        raise AssessmentEngineError("reply contains no JSON object", "invalid_reply")
    try:
        analysis = json.loads(cleaned[start:end + 1])
    except json.JSONDecodeError as e:
        raise AssessmentEngineError(f"reply is not valid JSON: {e}", "invalid_reply")
    if not isinstance(analysis.get("overallWeightedScore"), (int, float)):
        raise AssessmentEngineError("overallWeightedScore missing", "invalid_reply")
    if analysis.get("overallLabel") not in OVERALL_LABELS:
        raise AssessmentEngineError("overallLabel missing or unknown", "invalid_reply")
    return analysis


class AnthropicAssessmentEngine:
    """AssessmentEngine backed by the Anthropic Messages API."""

    def __init__(
        self,
        api_key: str,
        model: str,
        max_tokens: int = 4096,
        timeout_seconds: int = 300,
    ):
        self.client = anthropic.AsyncAnthropic(
            api_key=api_key,
            timeout=timeout_seconds,
            max_retries=0,
        )
        self.model = model
        self.max_tokens = max_tokens

    async def analyze(self, payload: dict) -> dict:
        ctx = ErrorContext(interview_id=payload.get("interviewId"))
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": build_user_message(payload)}],
            )
        except RateLimitError:
            raise AssessmentEngineError("rate limit exceeded", "rate_limit", context=ctx)
        except APITimeoutError:
            raise AssessmentEngineError("API timeout", "timeout", context=ctx)
        except APIConnectionError as e:
            raise AssessmentEngineError(str(e), "connection_error", context=ctx)
        except APIError as e:
            raise AssessmentEngineError(str(e), "api_error", context=ctx)

        text = "".join(
            block.text for block in response.content
            if getattr(block, "type", None) == "text"
        )
        if not text:
            raise AssessmentEngineError("empty reply", "empty_reply", context=ctx)
        logger.info(
            "Assessment engine success",
            extra={"interview_id": payload.get("interviewId")},
        )
        return parse_analysis(text)
