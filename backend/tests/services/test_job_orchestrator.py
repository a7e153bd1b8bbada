"""Job Orchestrator — verifies admission, detached execution and capability/owner-scoped reads.

Tests:
    - submit persists a processing job owned by the right identity and returns its token
    - Analysis success → completed with result; failure → failed with no result
    - A failed completion write falls back to a failure write
    - Terminal jobs never revert
    - The room timer is cancelled once the job settles
    - Full queue → job marked failed, room timer cancelled, ServiceBusyError raised
    - Without a bearer, a device already linked to an upgraded account submits to that account
    - Capability tokens are format-checked before any store lookup
    - Owner-scoped reads never leak another user's jobs
"""

from contextlib import asynccontextmanager
from uuid import UUID, uuid4

import pytest
from sqlalchemy import select

from casecoach.core.domain_types import InterviewStatus
from casecoach.core.errors import NotFoundError, ServiceBusyError
from casecoach.core.identity import identity_from_record
from casecoach.models.interview import Interview
from casecoach.models.user import User
from casecoach.schemas.interview import AnalyzeInterviewRequest
from casecoach.services.job_orchestrator import JobOrchestrator
from casecoach.services.repositories import InterviewRepository
from casecoach.services.room_timer import RoomTimer
from tests.fakes import FakeGateway, SAMPLE_ANALYSIS, analyze_body


def _request(**kwargs) -> AnalyzeInterviewRequest:
    return AnalyzeInterviewRequest.model_validate(analyze_body(**kwargs))


@pytest.fixture
def orchestrator(runtime):
    return runtime.orchestrator


async def _settle(orchestrator, db) -> None:
    """Wait for queued analyses, then drop rows cached in the test session."""
    await orchestrator.join()
    db.expire_all()


async def _job(db, interview_id) -> Interview:
    db.expire_all()
    return (await db.execute(
        select(Interview).where(Interview.id == interview_id),
    )).scalar_one()


# ─── Admission ───────────────────────────────────────────────────


async def test_submit_returns_processing_with_token(orchestrator, test_db):
    accepted = await orchestrator.submit(test_db, _request())

    assert accepted["status"] == "processing"
    assert len(accepted["accessToken"]) == 64
    assert accepted["message"]
    job = await _job(test_db, UUID(accepted["interviewId"]))
    assert job.capability_token == accepted["accessToken"]


async def test_submit_without_principal_owns_by_participant_alias(orchestrator, test_db):
    first = await orchestrator.submit(test_db, _request(participant="dev-123"))
    second = await orchestrator.submit(test_db, _request(participant="dev-123"))
    await _settle(orchestrator, test_db)

    owners = (await test_db.execute(select(Interview.owner_id))).scalars().all()
    assert len(set(owners)) == 1
    owner = await test_db.get(User, owners[0])
    assert owner.device_alias == "dev-123"
    assert first["accessToken"] != second["accessToken"]


async def test_submit_with_principal_owns_by_principal(orchestrator, test_db, lifecycle):
    account = await lifecycle.signup("a@b.com", "Ann", "Passw0rd1")
    await orchestrator.submit(test_db, _request(participant="dev-999"), account.identity)
    await _settle(orchestrator, test_db)

    owners = (await test_db.execute(select(Interview.owner_id))).scalars().all()
    assert owners == [account.identity.id]


# ─── Detached execution ──────────────────────────────────────────


async def test_successful_analysis_completes_job(orchestrator, test_db, fake_engine):
    accepted = await orchestrator.submit(test_db, _request())
    await _settle(orchestrator, test_db)

    view = await orchestrator.get_by_capability(test_db, accepted["accessToken"])
    assert view["status"] == "completed"
    assert view["caseAnalysis"] == SAMPLE_ANALYSIS
    assert view["processedAt"] is not None
    assert fake_engine.calls[0]["caseQuestion"].startswith("Estimate")


async def test_failed_analysis_marks_failed_without_result(orchestrator, test_db, fake_engine):
    fake_engine.fail_with()
    accepted = await orchestrator.submit(test_db, _request())
    await _settle(orchestrator, test_db)

    view = await orchestrator.get_by_capability(test_db, accepted["accessToken"])
    assert view["status"] == "failed"
    assert view["caseAnalysis"] is None


async def test_failed_completion_write_falls_back_to_failure(test_session_factory, fake_engine, test_db):
    calls = {"n": 0}

    @asynccontextmanager
    async def flaky_scope():
        calls["n"] += 1
        if calls["n"] == 1:
            raise RuntimeError("connection dropped")
        async with test_session_factory() as db:
            yield db

    orchestrator = JobOrchestrator(
        flaky_scope, fake_engine, RoomTimer(FakeGateway()), workers=1,
    )
    orchestrator.start()
    accepted = await orchestrator.submit(test_db, _request())
    await _settle(orchestrator, test_db)
    await orchestrator.shutdown()

    view = await orchestrator.get_by_capability(test_db, accepted["accessToken"])
    assert view["status"] == "failed"
    assert view["caseAnalysis"] is None


async def test_terminal_job_never_reverts(orchestrator, test_db):
    accepted = await orchestrator.submit(test_db, _request())
    await _settle(orchestrator, test_db)
    job_id = UUID(accepted["interviewId"])

    jobs = InterviewRepository(test_db)
    assert await jobs.finish(job_id, InterviewStatus.FAILED) is False
    await test_db.commit()

    job = await _job(test_db, job_id)
    assert job.status == "completed"
    assert job.result == SAMPLE_ANALYSIS


async def test_room_timer_cancelled_after_analysis(runtime, test_db, fake_gateway, scheduler):
    runtime.room_timer.start("room-1")
    await runtime.orchestrator.submit(test_db, _request(room_name="room-1"))
    await _settle(runtime.orchestrator, test_db)

    assert not runtime.room_timer.active("room-1")
    await scheduler.advance(600)
    assert fake_gateway.deleted == []


async def test_room_timer_cancelled_after_failure(runtime, test_db, fake_engine, fake_gateway, scheduler):
    fake_engine.fail_with()
    runtime.room_timer.start("room-1")
    await runtime.orchestrator.submit(test_db, _request(room_name="room-1"))
    await _settle(runtime.orchestrator, test_db)

    assert not runtime.room_timer.active("room-1")


async def test_full_queue_fails_job_and_raises_busy(test_session_factory, fake_engine, test_db):
    # Workers never started: the single queue slot stays occupied.
    orchestrator = JobOrchestrator(
        test_session_factory, fake_engine, RoomTimer(FakeGateway()), workers=1, queue_size=1,
    )
    await orchestrator.submit(test_db, _request())

    with pytest.raises(ServiceBusyError):
        await orchestrator.submit(test_db, _request(room_name="room-2"))

    statuses = (await test_db.execute(
        select(Interview.room_name, Interview.status).order_by(Interview.created_at),
    )).all()
    assert statuses == [("room-1", "processing"), ("room-2", "failed")]


# ─── Capability reads ────────────────────────────────────────────


@pytest.mark.parametrize("token", ["", "a" * 63, "a" * 65, "z" * 64, "A" * 64])
async def test_malformed_token_rejected_before_lookup(orchestrator, test_db, monkeypatch, token):
    lookups = []

    async def spy(self, value):
        lookups.append(value)
        return None

    monkeypatch.setattr(InterviewRepository, "get_by_capability", spy)
    with pytest.raises(NotFoundError):
        await orchestrator.get_by_capability(test_db, token)
    assert lookups == []


async def test_unknown_token_not_found(orchestrator, test_db):
    with pytest.raises(NotFoundError) as exc:
        await orchestrator.get_by_capability(test_db, "b" * 64)
    assert exc.value.http_status == 404


async def test_history_by_capability_lists_owner_jobs(orchestrator, test_db):
    first = await orchestrator.submit(test_db, _request(room_name="room-1", participant="dev-a"))
    await orchestrator.submit(test_db, _request(room_name="room-2", participant="dev-a"))
    await orchestrator.submit(test_db, _request(room_name="room-3", participant="dev-b"))
    await _settle(orchestrator, test_db)

    page = await orchestrator.history_by_capability(test_db, first["accessToken"])
    assert page["total"] == 2
    assert len(page["interviews"]) == 2
    assert all(s["status"] == "completed" for s in page["interviews"])


# ─── Owner-scoped reads ──────────────────────────────────────────


async def test_get_owned_hides_other_users_jobs(orchestrator, test_db, lifecycle):
    accepted = await orchestrator.submit(test_db, _request(participant="dev-a"))
    other = await lifecycle.create_anonymous("dev-b")
    job_id = UUID(accepted["interviewId"])

    with pytest.raises(NotFoundError):
        await orchestrator.get_owned(test_db, other.identity, job_id)


async def test_get_owned_returns_own_job(orchestrator, test_db, lifecycle):
    accepted = await orchestrator.submit(test_db, _request(participant="dev-a"))
    await _settle(orchestrator, test_db)
    owner = await lifecycle.create_anonymous("dev-a")
    job_id = UUID(accepted["interviewId"])

    view = await orchestrator.get_owned(test_db, owner.identity, job_id)
    assert view["id"] == accepted["interviewId"]


async def test_get_owned_unknown_id(orchestrator, test_db, lifecycle):
    owner = await lifecycle.create_anonymous("dev-a")
    with pytest.raises(NotFoundError):
        await orchestrator.get_owned(test_db, owner.identity, uuid4())


async def test_list_owned_paginates_newest_first(orchestrator, test_db, fake_engine):
    for room in ("room-1", "room-2", "room-3"):
        await orchestrator.submit(test_db, _request(room_name=room, participant="dev-a"))
    await _settle(orchestrator, test_db)
    owner = (await test_db.execute(
        select(User).where(User.device_alias == "dev-a"),
    )).scalar_one()
    identity = identity_from_record(owner)

    page = await orchestrator.list_owned(test_db, identity, limit=2, offset=0)
    assert page["total"] == 3
    assert len(page["interviews"]) == 2
    assert page["pagination"] == {"limit": 2, "offset": 0}

    ids_newest_first = [
        str(i) for i in (await test_db.execute(
            select(Interview.id).order_by(Interview.created_at.desc()),
        )).scalars().all()
    ]
    assert [s["id"] for s in page["interviews"]] == ids_newest_first[:2]


async def test_list_owned_status_filter(orchestrator, test_db, fake_engine):
    await orchestrator.submit(test_db, _request(room_name="room-1", participant="dev-a"))
    await _settle(orchestrator, test_db)
    fake_engine.fail_with()
    await orchestrator.submit(test_db, _request(room_name="room-2", participant="dev-a"))
    await _settle(orchestrator, test_db)
    owner = (await test_db.execute(
        select(User).where(User.device_alias == "dev-a"),
    )).scalar_one()

    page = await orchestrator.list_owned(
        test_db, identity_from_record(owner), status=InterviewStatus.FAILED,
    )
    assert page["total"] == 1
    assert page["interviews"][0]["status"] == "failed"


async def test_full_queue_cancels_room_timer(test_session_factory, fake_engine, test_db, scheduler):
    timer = RoomTimer(FakeGateway(), scheduler=scheduler)
    orchestrator = JobOrchestrator(
        test_session_factory, fake_engine, timer, workers=1, queue_size=1,
    )
    await orchestrator.submit(test_db, _request(room_name="room-1"))
    timer.start("room-2")

    with pytest.raises(ServiceBusyError):
        await orchestrator.submit(test_db, _request(room_name="room-2"))
    assert not timer.active("room-2")


async def test_submit_after_upgrade_goes_to_upgraded_account(orchestrator, test_db, lifecycle):
    guest = await lifecycle.create_anonymous("dev-123")
    upgraded = await lifecycle.upgrade("dev-123", "a@b.com", "Ann", "Passw0rd1")

    accepted = await orchestrator.submit(test_db, _request(participant="dev-123"))
    await _settle(orchestrator, test_db)

    job = await _job(test_db, UUID(accepted["interviewId"]))
    assert job.owner_id == upgraded.identity.id == guest.identity.id
    users = (await test_db.execute(
        select(User).where(User.device_alias == "dev-123"),
    )).scalars().all()
    assert len(users) == 1


async def test_submit_prefers_upgraded_account_over_later_guest(orchestrator, test_db, lifecycle):
    await lifecycle.create_anonymous("dev-123")
    upgraded = await lifecycle.upgrade("dev-123", "a@b.com", "Ann", "Passw0rd1")
    await lifecycle.create_anonymous("dev-123")

    accepted = await orchestrator.submit(test_db, _request(participant="dev-123"))
    job = await _job(test_db, UUID(accepted["interviewId"]))
    assert job.owner_id == upgraded.identity.id
