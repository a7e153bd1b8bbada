"""Job Orchestrator — admits interview-analysis jobs and runs them off the request path.

Invariants:
    - A job is persisted in 'processing' with its capability token before it is queued
    - A job leaves 'processing' exactly once (conditional UPDATE in InterviewRepository.finish)
    - Failed jobs carry no result; a failed completion write falls back to a failure write
    - The room timer is cancelled only after the terminal state is committed
    - Capability tokens are format-checked before any store lookup; malformed, missing
      and unknown tokens raise the same NotFoundError
    - Without an authenticated principal the job belongs to whoever the device alias
      already points at (an upgraded account included); a guest is created only if none

Design Decisions:
    - Detached execution goes through AnalysisWorkerPool (bounded queue), never
      asyncio.create_task per request
    - Background work opens its own session through session_scope; the request
      session is closed by the time the job runs
    - No timeout or retry around the assessment call: a failure is terminal
"""

import logging
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from typing import Callable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from casecoach.core.capability_token import generate_capability_token, is_valid_capability_token
from casecoach.core.domain_types import (
    InterviewStatus, ANALYSIS_ACCEPTED_MESSAGE,
)
from casecoach.core.errors import NotFoundError, ServiceBusyError
from casecoach.core.format_interviews import format_interview, format_summary_page
from casecoach.core.identity import Identity, AuthenticatedIdentity
from casecoach.core.protocols import AssessmentEngine
from casecoach.models.interview import Interview
from casecoach.schemas.interview import AnalyzeInterviewRequest
from casecoach.services.identity_lifecycle import resolve_device_owner
from casecoach.services.repositories import InterviewRepository
from casecoach.services.room_timer import RoomTimer
from casecoach.services.worker_pool import AnalysisWorkerPool

logger = logging.getLogger(__name__)

SessionScope = Callable[[], AbstractAsyncContextManager[AsyncSession]]


@dataclass(frozen=True)
class AnalysisTask:
    interview_id: UUID
    room_name: str
    payload: dict


class JobOrchestrator:

    def __init__(
        self,
        session_scope: SessionScope,
        engine: AssessmentEngine,
        room_timer: RoomTimer,
        workers: int = 4,
        queue_size: int = 100,
    ):
        self._session_scope = session_scope
        self._engine = engine
        self._room_timer = room_timer
        self.pool: AnalysisWorkerPool[AnalysisTask] = AnalysisWorkerPool(
            self.run_analysis, workers=workers, max_pending=queue_size,
        )

    def start(self) -> None:
        self.pool.start()

    async def join(self) -> None:
        """Wait for every queued analysis to settle."""
        await self.pool.join()

    async def shutdown(self, drain: bool = True) -> None:
        await self.pool.shutdown(drain=drain)

    # ─── Admission ───────────────────────────────────────────────

    async def submit(
        self,
        db: AsyncSession,
        request: AnalyzeInterviewRequest,
        principal: Identity | None = None,
    ) -> dict:
        """Persist a processing job and queue its analysis. Returns immediately."""
        if isinstance(principal, AuthenticatedIdentity):
            owner_id = principal.id
        else:
            owner = await resolve_device_owner(db, request.participant_identity)
            owner_id = owner.id

        interview = Interview(
            owner_id=owner_id,
            room_name=request.room_name,
            participant_identity=request.participant_identity,
            session_data=request.session_data.model_dump(by_alias=True),
            case_question=request.case_question,
            difficulty=request.difficulty.value,
            candidate_answer=request.candidate_answer,
            capability_token=generate_capability_token(),
            status=InterviewStatus.PROCESSING.value,
        )
        jobs = InterviewRepository(db)
        await jobs.add(interview)
        await db.commit()
        logger.info(
            "Interview saved, analysis queued",
            extra={"interview_id": str(interview.id), "user_id": str(owner_id)},
        )

        task = AnalysisTask(
            interview_id=interview.id,
            room_name=request.room_name,
            payload={**request.engine_payload(), "interviewId": str(interview.id)},
        )
        try:
            self.pool.submit(task)
        except ServiceBusyError:
            await jobs.finish(interview.id, InterviewStatus.FAILED)
            await db.commit()
            self._room_timer.cancel(request.room_name)
            logger.warning(
                "Analysis rejected, queue full",
                extra={"interview_id": str(interview.id), "room_name": request.room_name},
            )
            raise

        return {
            "interviewId": str(interview.id),
            "status": InterviewStatus.PROCESSING.value,
            "message": ANALYSIS_ACCEPTED_MESSAGE,
            "accessToken": interview.capability_token,
        }

    # ─── Detached execution ──────────────────────────────────────

    async def run_analysis(self, task: AnalysisTask) -> None:
        log_extra = {"interview_id": str(task.interview_id), "room_name": task.room_name}
        try:
            analysis = await self._engine.analyze(task.payload)
            async with self._session_scope() as db:
                await InterviewRepository(db).finish(
                    task.interview_id, InterviewStatus.COMPLETED, analysis,
                )
                await db.commit()
            logger.info("Analysis completed", extra=log_extra)
        except Exception as e:
            logger.error(f"Analysis failed: {e}", extra=log_extra)
            await self._record_failure(task)
        self._room_timer.cancel(task.room_name)

    async def _record_failure(self, task: AnalysisTask) -> None:
        try:
            async with self._session_scope() as db:
                await InterviewRepository(db).finish(task.interview_id, InterviewStatus.FAILED)
                await db.commit()
        except Exception as e:
            logger.error(
                f"Could not record analysis failure: {e}",
                extra={"interview_id": str(task.interview_id)},
            )

    # ─── Reads ───────────────────────────────────────────────────

    async def _by_capability(self, db: AsyncSession, token: str) -> Interview:
        if not is_valid_capability_token(token):
            raise NotFoundError("Interview")
        interview = await InterviewRepository(db).get_by_capability(token)
        if interview is None:
            raise NotFoundError("Interview")
        return interview

    async def get_by_capability(self, db: AsyncSession, token: str) -> dict:
        return format_interview(await self._by_capability(db, token))

    async def history_by_capability(
        self, db: AsyncSession, token: str, limit: int = 20, offset: int = 0,
    ) -> dict:
        """Every job of the capability token's owner, newest first."""
        interview = await self._by_capability(db, token)
        rows, total = await InterviewRepository(db).list_owned(
            interview.owner_id, limit, offset,
        )
        return format_summary_page(rows, total, limit, offset)

    async def get_owned(
        self, db: AsyncSession, identity: Identity, interview_id: UUID,
    ) -> dict:
        interview = await InterviewRepository(db).get_owned(identity.id, interview_id)
        if interview is None:
            raise NotFoundError("Interview")
        return format_interview(interview)

    async def list_owned(
        self,
        db: AsyncSession,
        identity: Identity,
        limit: int = 20,
        offset: int = 0,
        status: InterviewStatus | None = None,
    ) -> dict:
        rows, total = await InterviewRepository(db).list_owned(
            identity.id, limit, offset, status,
        )
        return format_summary_page(rows, total, limit, offset)
