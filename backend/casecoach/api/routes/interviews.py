"""Interview Routes — analysis submission and result retrieval.

Invariants:
    - POST /analyze returns as soon as the job is persisted and queued
    - /access* routes authorize by the X-Interview-Token capability header only
    - /mine* routes are owner-scoped by the bearer identity
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from casecoach.api.dependencies import (
    get_capability_token, get_current_identity, get_optional_identity,
)
from casecoach.core.domain_types import InterviewStatus
from casecoach.core.identity import Identity
from casecoach.infrastructure.database import get_db
from casecoach.schemas.interview import AnalyzeInterviewRequest, AnalyzeInterviewResponse
from casecoach.services.runtime import Runtime, get_runtime

router = APIRouter(prefix="/api/v1/interviews", tags=["interviews"])


@router.post("/analyze", response_model=AnalyzeInterviewResponse)
async def analyze_interview(
    body: AnalyzeInterviewRequest,
    principal: Identity | None = Depends(get_optional_identity),
    db: AsyncSession = Depends(get_db),
    runtime: Runtime = Depends(get_runtime),
):
    """Save the interview and start AI analysis in the background."""
    return await runtime.orchestrator.submit(db, body, principal)


@router.get("/access")
async def get_by_access_token(
    token: str = Depends(get_capability_token),
    db: AsyncSession = Depends(get_db),
    runtime: Runtime = Depends(get_runtime),
):
    return await runtime.orchestrator.get_by_capability(db, token)


@router.get("/access/history")
async def history_by_access_token(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    token: str = Depends(get_capability_token),
    db: AsyncSession = Depends(get_db),
    runtime: Runtime = Depends(get_runtime),
):
    """Every interview of the token's owner, newest first."""
    return await runtime.orchestrator.history_by_capability(db, token, limit, offset)


@router.get("/mine")
async def list_my_interviews(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    status_filter: InterviewStatus | None = Query(None, alias="status"),
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
    runtime: Runtime = Depends(get_runtime),
):
    return await runtime.orchestrator.list_owned(
        db, identity, limit, offset, status_filter,
    )


@router.get("/mine/{interview_id}")
async def get_my_interview(
    interview_id: UUID,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
    runtime: Runtime = Depends(get_runtime),
):
    return await runtime.orchestrator.get_owned(db, identity, interview_id)
