"""Runtime — process-wide collaborators assembled once in the lifespan.

Invariants:
    - One TokenIssuer, RoomTimer, LiveSessionGateway and JobOrchestrator per process
    - Shutdown order: drain the analysis pool, then cancel room timers, then close clients

Design Decisions:
    - Module-level singleton mirroring db_manager: request handlers reach it through
      get_runtime, tests swap collaborators with app.dependency_overrides
    - Background sessions resolve db_manager at call time, so a patched manager is used
"""

import logging
from dataclasses import dataclass

from casecoach.config import Settings
from casecoach.core.protocols import AssessmentEngine, LiveSessionGateway, Scheduler
from casecoach.infrastructure.assessment_engine import AnthropicAssessmentEngine
from casecoach.infrastructure.database import get_session_manager
from casecoach.infrastructure.livekit_gateway import LiveKitGateway
from casecoach.services.job_orchestrator import JobOrchestrator, SessionScope
from casecoach.services.room_timer import RoomTimer
from casecoach.services.token_issuer import TokenIssuer

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    settings: Settings
    issuer: TokenIssuer
    gateway: LiveSessionGateway
    room_timer: RoomTimer
    orchestrator: JobOrchestrator


def _default_session_scope():
    return get_session_manager().session()


def build_runtime(
    settings: Settings,
    engine: AssessmentEngine | None = None,
    gateway: LiveSessionGateway | None = None,
    scheduler: Scheduler | None = None,
    session_scope: SessionScope | None = None,
) -> Runtime:
    """Wire collaborators from settings; any of them may be injected instead."""
    issuer = TokenIssuer(
        access_secret=settings.jwt_access_secret,
        refresh_secret=settings.jwt_refresh_secret,
        access_ttl_seconds=settings.jwt_access_ttl_seconds,
        refresh_ttl_seconds=settings.jwt_refresh_ttl_seconds,
    )
    if gateway is None:
        gateway = LiveKitGateway(
            url=settings.livekit_url,
            api_key=settings.livekit_api_key,
            api_secret=settings.livekit_api_secret,
            credential_ttl_seconds=settings.livekit_credential_ttl_seconds,
        )
    if engine is None:
        engine = AnthropicAssessmentEngine(
            api_key=settings.anthropic_api_key,
            model=settings.assessment_model,
            max_tokens=settings.assessment_max_tokens,
            timeout_seconds=settings.anthropic_timeout_seconds,
        )
    room_timer = RoomTimer(
        gateway, scheduler=scheduler,
        default_duration_seconds=settings.room_timer_seconds,
    )
    orchestrator = JobOrchestrator(
        session_scope=session_scope or _default_session_scope,
        engine=engine,
        room_timer=room_timer,
        workers=settings.analysis_workers,
        queue_size=settings.analysis_queue_size,
    )
    return Runtime(
        settings=settings,
        issuer=issuer,
        gateway=gateway,
        room_timer=room_timer,
        orchestrator=orchestrator,
    )


# Singleton (initialized on startup)
runtime: Runtime | None = None


def init_runtime(settings: Settings, **overrides) -> Runtime:
    """Build the runtime and start the analysis workers. Needs a running loop."""
    global runtime
    runtime = build_runtime(settings, **overrides)
    runtime.orchestrator.start()
    return runtime


async def shutdown_runtime() -> None:
    global runtime
    if runtime is None:
        return
    await runtime.orchestrator.shutdown(drain=True)
    await runtime.room_timer.shutdown()
    if isinstance(runtime.gateway, LiveKitGateway):
        await runtime.gateway.aclose()
    runtime = None
    logger.info("Runtime stopped")


def get_runtime() -> Runtime:
    """FastAPI dependency for process-wide collaborators."""
    if runtime is None:
        raise RuntimeError("Runtime not initialized")
    return runtime
