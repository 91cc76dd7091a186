"""Fixed-step scheduler driven by host frame timestamps.

The host calls `tick` once per rendered frame. Pending resets and lambda
clears are honoured first; then, if at least `target_dt` has elapsed since
the last processed timestamp, exactly one integrate + solve step runs. Slow
frames are not caught up with extra steps.
"""
from __future__ import annotations

import numpy as np

from clothsim.logging_utils import get_logger
from clothsim.sim.integrator import gravity_vector, integrate
from clothsim.sim.schema import TARGET_DT_S, GridSettings, SolverConfig, StepOutcome
from clothsim.sim.solver import SolveReport, XPBDSolver
from clothsim.sim.state import ClothState
from clothsim.sim.topology import build_grid

logger = get_logger(__name__)

# Slack on the step gate so frame timestamps k/60 do not fall a rounding
# error short of target_dt.
STEP_EPSILON_S = 1e-9


class StepScheduler:
    """Owns the simulation state and its reset / lambda-clear lifecycle.

    A new scheduler starts with both a reset and a lambda clear pending, so
    the first tick builds the cloth.
    """

    def __init__(
        self,
        grid: GridSettings | None = None,
        target_dt: float = TARGET_DT_S,
        gravity: np.ndarray | None = None,
    ) -> None:
        self.grid = grid or GridSettings()
        self.target_dt = target_dt
        self.gravity = gravity_vector() if gravity is None else np.asarray(gravity, dtype=np.float64)
        self.state: ClothState | None = None
        self.last_timestamp: float = 0.0
        self.pending_reset = True
        self.pending_lambda_clear = True

    def request_reset(self) -> None:
        self.pending_reset = True
        self.pending_lambda_clear = True

    def request_lambda_clear(self) -> None:
        self.pending_lambda_clear = True

    def tick(self, timestamp: float, config: SolverConfig) -> StepOutcome:
        """Process one host frame at `timestamp` (seconds)."""
        outcome = StepOutcome()

        if self.pending_reset or self.state is None:
            self.state = build_grid(self.grid)
            self.last_timestamp = timestamp
            self.pending_reset = False
            outcome.reset = True
            logger.info(
                "Cloth reset: %d particles, %d constraints",
                self.state.num_particles, self.state.num_constraints,
            )

        state = self.state

        if self.pending_lambda_clear:
            state.zero_lambdas()
            self.pending_lambda_clear = False
            outcome.lambdas_cleared = True
            logger.info("Stored constraint impulses cleared")

        delta = timestamp - self.last_timestamp
        outcome.delta_s = delta

        if delta + STEP_EPSILON_S >= self.target_dt:
            self.last_timestamp = timestamp
            report = self.step(config)
            outcome.stepped = True
            outcome.skipped_constraints = report.skipped_constraints

        outcome.time_step = state.time_step
        return outcome

    def step(self, config: SolverConfig) -> SolveReport:
        """Run one integrate + solve step regardless of timing."""
        state = self.state
        if state is None:
            raise RuntimeError("Scheduler has no state; tick once to build the cloth")

        integrate(state, config.damping, self.target_dt, self.gravity)
        report = XPBDSolver(config, self.target_dt).solve(state)
        state.time_step += 1
        logger.debug(
            "Step %d: %s x%d, skipped=%d",
            state.time_step, config.solve_mode.value, report.iterations, report.skipped_constraints,
        )
        return report


__all__ = ["TARGET_DT_S", "STEP_EPSILON_S", "StepScheduler"]
