"""Repositories — IdentityStore and JobStore over the async SQLAlchemy session.

Invariants:
    - Repositories never commit; the calling service owns the transaction
    - InterviewRepository.finish() is a conditional UPDATE on status = 'processing':
      a job leaves processing at most once, whoever calls first wins
    - Owner-scoped reads filter on owner_id in SQL, never after loading
"""

from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select, update, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from casecoach.core.domain_types import IdentityKind, InterviewStatus
from casecoach.core.job_state import check_transition, result_allowed
from casecoach.models.user import User
from casecoach.models.interview import Interview


class UserRepository:
    """IdentityStore — durable user records."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, user_id: UUID) -> User | None:
        return await self.db.get(User, user_id)

    async def find_anonymous(self, device_alias: str) -> User | None:
        result = await self.db.execute(
            select(User).where(and_(
                User.device_alias == device_alias,
                User.kind == IdentityKind.ANONYMOUS.value,
            )),
        )
        return result.scalar_one_or_none()

    async def find_by_device(self, device_alias: str) -> User | None:
        """Any record linked to the alias; an upgraded account outranks a later guest."""
        result = await self.db.execute(
            select(User)
            .where(User.device_alias == device_alias)
            .order_by(
                (User.kind == IdentityKind.AUTHENTICATED.value).desc(),
                User.created_at.asc(),
            )
            .limit(1),
        )
        return result.scalar_one_or_none()

    async def find_authenticated(self, email: str) -> User | None:
        result = await self.db.execute(
            select(User).where(and_(
                User.email == email,
                User.kind == IdentityKind.AUTHENTICATED.value,
            )),
        )
        return result.scalar_one_or_none()

    async def add(self, user: User) -> User:
        self.db.add(user)
        await self.db.flush()
        return user

    async def count_interviews(self, user_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(Interview).where(
                Interview.owner_id == user_id,
            ),
        )
        return result.scalar_one()


class InterviewRepository:
    """JobStore — durable interview-job records."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(self, interview: Interview) -> Interview:
        self.db.add(interview)
        await self.db.flush()
        return interview

    async def get(self, interview_id: UUID) -> Interview | None:
        return await self.db.get(Interview, interview_id)

    async def get_by_capability(self, token: str) -> Interview | None:
        result = await self.db.execute(
            select(Interview).where(Interview.capability_token == token),
        )
        return result.scalar_one_or_none()

    async def get_owned(self, owner_id: UUID, interview_id: UUID) -> Interview | None:
        result = await self.db.execute(
            select(Interview).where(and_(
                Interview.id == interview_id,
                Interview.owner_id == owner_id,
            )),
        )
        return result.scalar_one_or_none()

    async def list_owned(
        self,
        owner_id: UUID,
        limit: int,
        offset: int,
        status: InterviewStatus | None = None,
    ) -> tuple[list[Interview], int]:
        """Newest first. Returns (page, total matching rows)."""
        conditions = [Interview.owner_id == owner_id]
        if status is not None:
            conditions.append(Interview.status == status.value)
        page = await self.db.execute(
            select(Interview)
            .where(*conditions)
            .order_by(Interview.created_at.desc())
            .limit(limit)
            .offset(offset),
        )
        total = await self.db.execute(
            select(func.count()).select_from(Interview).where(*conditions),
        )
        return list(page.scalars().all()), total.scalar_one()

    async def finish(
        self,
        interview_id: UUID,
        target: InterviewStatus,
        result: dict | None = None,
    ) -> bool:
        """Move a processing job to a terminal state. False if it already left processing."""
        check_transition(InterviewStatus.PROCESSING, target)
        values: dict = {"status": target.value}
        if result_allowed(target):
            values["result"] = result
            values["processed_at"] = datetime.now(timezone.utc)
        outcome = await self.db.execute(
            update(Interview)
            .where(and_(
                Interview.id == interview_id,
                Interview.status == InterviewStatus.PROCESSING.value,
            ))
            .values(**values)
            .execution_options(synchronize_session=False),
        )
        return outcome.rowcount == 1
