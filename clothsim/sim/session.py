"""Interactive cloth sessions.

A session is the boundary between the configuration surface (sliders,
checkboxes, buttons) and the simulation core. Input is validated one field at
a time; a rejected value leaves the previous value in place and is reported
as a warning, never forwarded to the solver.
"""
from __future__ import annotations

import math
import uuid
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from clothsim.logging_utils import get_logger
from clothsim.models.settings import Settings, get_settings
from clothsim.sim.integrator import gravity_vector
from clothsim.sim.schema import ConfigUpdate, FrameSnapshot, GridSettings, SolverConfig, StepOutcome
from clothsim.sim.scheduler import StepScheduler

logger = get_logger(__name__)

_GRID_FIELDS = ("particles_x", "particles_y")
_SOLVER_FIELDS = (
    "iteration_count",
    "stiffness",
    "solve_mode",
    "warm_start",
    "eta",
    "damping",
    "jacobi_relaxation",
)


def default_solver_config(settings: Settings | None = None) -> SolverConfig:
    settings = settings or get_settings()
    return SolverConfig(
        iteration_count=settings.SOLVER_ITERATION_COUNT,
        stiffness=settings.SOLVER_STIFFNESS,
        solve_mode=settings.SOLVER_MODE,
        warm_start=settings.SOLVER_WARM_START,
        eta=settings.SOLVER_ETA,
        damping=settings.SOLVER_DAMPING,
        jacobi_relaxation=settings.SOLVER_JACOBI_RELAXATION,
    )


def default_grid(settings: Settings | None = None) -> GridSettings:
    settings = settings or get_settings()
    return GridSettings(particles_x=settings.CLOTH_PARTICLES_X, particles_y=settings.CLOTH_PARTICLES_Y)


def _stiffness_from_log10(value: Any) -> float:
    exponent = float(value)
    if not math.isfinite(exponent):
        raise ValueError("stiffness_log10 must be finite")
    stiffness = 10.0 ** exponent
    if not math.isfinite(stiffness):
        raise ValueError("stiffness_log10 is too large")
    return stiffness


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    return errors[0]["msg"] if errors else str(exc)


class ClothSession:
    """One simulated cloth plus the configuration that drives it."""

    def __init__(
        self,
        config: SolverConfig | None = None,
        grid: GridSettings | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.session_id = str(uuid.uuid4())
        self.created_at = datetime.now()
        self.updated_at = self.created_at
        self.config = config or default_solver_config(self.settings)
        self.grid = grid or default_grid(self.settings)
        self.scheduler = StepScheduler(
            grid=self.grid,
            target_dt=self.settings.TARGET_DT_S,
            gravity=gravity_vector(self.settings.GRAVITY_M_S2, self.settings.GRAVITY_SCALE),
        )

    # Configuration surface

    def apply_update(self, update: ConfigUpdate | dict[str, Any]) -> list[str]:
        """Apply every valid field of `update`; return warnings for rejected ones.

        Grid dimensions are stored for the next reset. Switching solve mode or
        toggling warm start clears stored impulses on the next tick.
        """
        if isinstance(update, dict):
            update = ConfigUpdate(**update)
        values = update.model_dump(exclude_none=True)
        warnings: list[str] = []

        previous = self.config

        if "stiffness_log10" in values:
            raw = values.pop("stiffness_log10")
            try:
                stiffness = _stiffness_from_log10(raw)
                if "stiffness" not in values:
                    self.config = self._with_solver_field("stiffness", stiffness)
            except (TypeError, ValueError) as exc:
                reason = _first_error(exc) if isinstance(exc, ValidationError) else str(exc)
                warnings.append(self._reject("stiffness_log10", raw, reason))

        for name in _GRID_FIELDS:
            if name in values:
                self._apply_grid_field(name, values[name], warnings)

        for name in _SOLVER_FIELDS:
            if name in values:
                try:
                    self.config = self._with_solver_field(name, values[name])
                except ValidationError as exc:
                    warnings.append(self._reject(name, values[name], _first_error(exc)))

        if self.config.solve_mode != previous.solve_mode or self.config.warm_start != previous.warm_start:
            self.scheduler.request_lambda_clear()
            logger.info(
                "Solver mode/warm start changed (%s, warm_start=%s); impulses will be cleared",
                self.config.solve_mode.value, self.config.warm_start,
            )

        self.updated_at = datetime.now()
        return warnings

    def _apply_grid_field(self, name: str, raw: Any, warnings: list[str]) -> None:
        try:
            grid = GridSettings.model_validate({**self.grid.model_dump(), name: raw})
        except ValidationError as exc:
            warnings.append(self._reject(name, raw, _first_error(exc)))
            return
        limit = self.settings.CLOTH_MAX_PARTICLES_PER_AXIS
        if getattr(grid, name) > limit:
            warnings.append(self._reject(name, raw, f"exceeds limit of {limit} particles per axis"))
            return
        self.grid = grid
        self.scheduler.grid = grid

    def _with_solver_field(self, name: str, raw: Any) -> SolverConfig:
        return SolverConfig.model_validate({**self.config.model_dump(), name: raw})

    @staticmethod
    def _reject(name: str, raw: Any, reason: str) -> str:
        message = f"{name}={raw!r} rejected: {reason}"
        logger.warning("Config input %s", message)
        return message

    def request_reset(self) -> None:
        self.scheduler.request_reset()
        self.updated_at = datetime.now()

    def forget_impulse(self) -> None:
        self.scheduler.request_lambda_clear()
        self.updated_at = datetime.now()

    # Frame loop

    def tick(self, timestamp: float) -> StepOutcome:
        """Advance on a host frame at `timestamp` seconds."""
        outcome = self.scheduler.tick(timestamp, self.config)
        self.updated_at = datetime.now()
        return outcome

    def frame(self) -> FrameSnapshot:
        state = self.scheduler.state
        if state is None:
            return FrameSnapshot()
        return state.snapshot()


class SessionStore:
    """
    In-memory storage for cloth sessions.

    Sessions are not persisted across process restarts.
    """

    def __init__(self):
        self._sessions: dict[str, ClothSession] = {}

    def create_session(self, **kwargs: Any) -> ClothSession:
        session = ClothSession(**kwargs)
        self._sessions[session.session_id] = session
        return session

    def get_session(self, session_id: str) -> ClothSession | None:
        return self._sessions.get(session_id)

    def delete_session(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def list_sessions(self) -> list[ClothSession]:
        return list(self._sessions.values())


# Global session store instance
_store = SessionStore()


def get_session_store() -> SessionStore:
    """Get global session store instance."""
    return _store


__all__ = [
    "ClothSession",
    "SessionStore",
    "default_grid",
    "default_solver_config",
    "get_session_store",
]
