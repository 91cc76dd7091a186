"""
Router: /cloth - Interactive Cloth Sessions

Exposes the configuration surface and the renderer feed of the simulator
over HTTP. The host drives the loop: it posts one tick per animation frame
and draws the returned positions and edges.

Endpoints:
- POST   /cloth/sessions                      create a session
- GET    /cloth/sessions/{id}                 config + current frame
- DELETE /cloth/sessions/{id}                 drop a session
- PATCH  /cloth/sessions/{id}/config          slider / checkbox input
- POST   /cloth/sessions/{id}/reset           rebuild on next tick
- POST   /cloth/sessions/{id}/forget_impulse  zero lambdas on next tick
- POST   /cloth/sessions/{id}/tick            one host frame
- POST   /cloth/sessions/{id}/run             headless run with the session config
"""

from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from clothsim.logging_utils import get_logger
from clothsim.models.settings import settings
from clothsim.sim.analysis import StretchReport, stretch_report
from clothsim.sim.runner import RunFrame, run_headless
from clothsim.sim.schema import ConfigUpdate, FrameSnapshot, GridSettings, SolverConfig, StepOutcome
from clothsim.sim.session import ClothSession, get_session_store
from clothsim.sim.solver import DegenerateConstraintError

logger = get_logger("cloth")

router = APIRouter(prefix="/cloth", tags=["cloth"])


# ===========================
# Request/Response Models
# ===========================

class CreateSessionRequest(BaseModel):
    """Request body for session creation."""

    config: ConfigUpdate = Field(
        default_factory=ConfigUpdate,
        description="Initial overrides applied on top of the defaults"
    )


class SessionResponse(BaseModel):
    session_id: str
    created_at: datetime
    updated_at: datetime
    config: SolverConfig
    grid: GridSettings
    frame: FrameSnapshot
    warnings: list[str] = Field(
        default_factory=list,
        description="Rejected configuration fields (previous values kept)"
    )


class TickRequest(BaseModel):
    timestamp_ms: float = Field(
        allow_inf_nan=False,
        description="Host frame timestamp in milliseconds (animation-frame clock)"
    )


class TickResponse(BaseModel):
    session_id: str
    outcome: StepOutcome
    frame: FrameSnapshot
    stretch: Optional[StretchReport] = None


class RunRequest(BaseModel):
    duration_s: float = Field(
        default=2.0,
        gt=0.0,
        description="Simulated wall-clock duration in seconds"
    )
    frame_rate: float = Field(
        default=60.0,
        gt=0.0,
        le=240.0,
        description="Host frames per second"
    )
    every: int = Field(
        default=1,
        ge=1,
        description="Record every n-th frame"
    )


class RunResponse(BaseModel):
    session_id: str
    frames: list[RunFrame]
    stretch: StretchReport
    meta: dict[str, Any] = Field(default_factory=dict)


# ===========================
# Helpers
# ===========================

def _get_session(session_id: str) -> ClothSession:
    session = get_session_store().get_session(session_id)
    if not session:
        raise HTTPException(
            status_code=404,
            detail=f"Session {session_id} not found"
        )
    return session


def _session_response(session: ClothSession, warnings: list[str] | None = None) -> SessionResponse:
    return SessionResponse(
        session_id=session.session_id,
        created_at=session.created_at,
        updated_at=session.updated_at,
        config=session.config,
        grid=session.grid,
        frame=session.frame(),
        warnings=warnings or [],
    )


# ===========================
# Endpoints
# ===========================

@router.post("/sessions", response_model=SessionResponse)
async def create_session(request: Optional[CreateSessionRequest] = None):
    session = get_session_store().create_session()
    warnings: list[str] = []
    if request is not None:
        warnings = session.apply_update(request.config)
    logger.info(f"[cloth] Created session {session.session_id} ({session.grid.particles_x}x{session.grid.particles_y})")
    return _session_response(session, warnings)


@router.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str):
    return _session_response(_get_session(session_id))


@router.delete("/sessions/{session_id}")
async def delete_session(session_id: str) -> dict[str, str]:
    _get_session(session_id)
    get_session_store().delete_session(session_id)
    return {"status": "deleted", "session_id": session_id}


@router.patch("/sessions/{session_id}/config", response_model=SessionResponse)
async def update_config(session_id: str, update: ConfigUpdate):
    """
    Apply configuration surface input.

    Invalid fields are ignored and reported in `warnings`; valid fields in the
    same request still apply.
    """
    session = _get_session(session_id)
    warnings = session.apply_update(update)
    return _session_response(session, warnings)


@router.post("/sessions/{session_id}/reset")
async def reset_session(session_id: str) -> dict[str, str]:
    _get_session(session_id).request_reset()
    return {"status": "reset_pending", "session_id": session_id}


@router.post("/sessions/{session_id}/forget_impulse")
async def forget_impulse(session_id: str) -> dict[str, str]:
    _get_session(session_id).forget_impulse()
    return {"status": "lambda_clear_pending", "session_id": session_id}


@router.post("/sessions/{session_id}/tick", response_model=TickResponse)
async def tick(session_id: str, request: TickRequest, diagnostics: bool = False):
    session = _get_session(session_id)
    try:
        outcome = session.tick(request.timestamp_ms / 1000.0)
    except DegenerateConstraintError as e:
        logger.error(f"[cloth] Degenerate constraint in session {session_id}: {e}")
        raise HTTPException(
            status_code=500,
            detail=f"Simulation error: {str(e)}"
        )

    stretch = None
    if diagnostics and session.scheduler.state is not None:
        stretch = stretch_report(session.scheduler.state)

    return TickResponse(
        session_id=session_id,
        outcome=outcome,
        frame=session.frame(),
        stretch=stretch,
    )


@router.post("/sessions/{session_id}/run", response_model=RunResponse)
async def run_session(session_id: str, request: RunRequest):
    """
    Headless run on a fresh cloth built from the session's config and grid.

    The session's interactive state is left untouched.
    """
    session = _get_session(session_id)
    if request.duration_s > settings.RUN_MAX_DURATION_S:
        raise HTTPException(
            status_code=400,
            detail=f"duration_s exceeds limit of {settings.RUN_MAX_DURATION_S}s"
        )

    logger.info(f"[cloth] Headless run for {session_id}: {request.duration_s}s @ {request.frame_rate}fps")
    try:
        result = run_headless(
            session.config,
            session.grid,
            duration_s=request.duration_s,
            frame_rate=request.frame_rate,
            target_dt=session.scheduler.target_dt,
            gravity=session.scheduler.gravity,
            every=request.every,
        )
    except DegenerateConstraintError as e:
        logger.error(f"[cloth] Headless run failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Simulation error: {str(e)}"
        )

    return RunResponse(
        session_id=session_id,
        frames=result.frames,
        stretch=result.stretch,
        meta=result.meta,
    )
