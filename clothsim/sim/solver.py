"""XPBD distance-constraint solver.

Each step runs ``iteration_count`` passes over the constraints. For a
constraint between p0 and p1 with rest length L:

    n       = (p0 - p1) / |p0 - p1|
    C       = |p0 - p1| - L
    a~      = 1 / (stiffness * dt^2)
    dlambda = -(C * n + a~ * lambda) / (w0 + w1 + a~)

At iteration 0 the lambda term is dropped, the previous step's lambda scaled
by the effective eta is added when warm-starting, and lambda restarts from
that delta. Corrections are split by relative inverse mass:
``p0 += dlambda * w0/(w0+w1)`` and ``p1 -= dlambda * w1/(w0+w1)``.

Gauss-Seidel applies each correction immediately, in constraint build order.
Jacobi gathers every correction against one snapshot into a per-particle
workspace and applies it scaled by ``jacobi_relaxation`` at the end of the
iteration.
"""
from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from clothsim.logging_utils import get_logger
from clothsim.sim.schema import SolveMode, SolverConfig
from clothsim.sim.state import ClothState

logger = get_logger(__name__)


class DegenerateConstraintError(RuntimeError):
    """Both endpoints of a constraint sit at the same point.

    The constraint normal is undefined. Grid construction never produces
    coincident particles, so this indicates a topology defect.
    """

    def __init__(self, constraint_index: int, p0: int, p1: int) -> None:
        super().__init__(
            f"Constraint {constraint_index} ({p0}, {p1}) has zero length; normal is undefined"
        )
        self.constraint_index = constraint_index
        self.p0 = p0
        self.p1 = p1


@dataclass
class SolveReport:
    iterations: int
    skipped_constraints: int


class XPBDSolver:
    """Projects the distance constraints of a `ClothState` for one step."""

    def __init__(self, config: SolverConfig, dt: float) -> None:
        self.config = config
        self.dt = dt
        self.compliance = config.compliance(dt)
        self.warm_factor = config.effective_eta if config.warm_start else None

    def solve(self, state: ClothState) -> SolveReport:
        if self.config.solve_mode is SolveMode.JACOBI:
            skipped = self._solve_jacobi(state)
        else:
            skipped = self._solve_gauss_seidel(state)
        return SolveReport(iterations=self.config.iteration_count, skipped_constraints=skipped)

    def _solve_gauss_seidel(self, state: ClothState) -> int:
        # Plain floats: each constraint is a handful of scalar ops, and numpy
        # per-row overhead dominates at that size.
        pos = state.positions.tolist()
        lam = state.lambdas.tolist()
        inv = state.inv_masses.tolist()
        rest = state.rest_lengths.tolist()
        pairs = state.constraints.tolist()

        a_tilde = self.compliance
        warm = self.warm_factor
        skipped = 0

        for iteration in range(self.config.iteration_count):
            for k, (i0, i1) in enumerate(pairs):
                w0 = inv[i0]
                w1 = inv[i1]
                total = w0 + w1
                if total == 0.0:
                    if iteration == 0:
                        skipped += 1
                    continue

                x0 = pos[i0]
                x1 = pos[i1]
                dx = x0[0] - x1[0]
                dy = x0[1] - x1[1]
                dz = x0[2] - x1[2]
                length = math.sqrt(dx * dx + dy * dy + dz * dz)
                if length == 0.0:
                    raise DegenerateConstraintError(k, i0, i1)
                normal = (dx / length, dy / length, dz / length)
                residual = length - rest[k]
                denom = total + a_tilde

                lk = lam[k]
                if iteration == 0:
                    delta = [-(residual * n) / denom for n in normal]
                    if warm is not None:
                        delta = [d + warm * l for d, l in zip(delta, lk)]
                    lam[k] = delta
                else:
                    delta = [-(residual * n + a_tilde * l) / denom for n, l in zip(normal, lk)]
                    lam[k] = [l + d for l, d in zip(lk, delta)]

                r0 = w0 / total
                r1 = w1 / total
                for c in range(3):
                    x0[c] += delta[c] * r0
                    x1[c] += -delta[c] * r1

        if state.num_constraints:
            state.positions[:] = pos
            state.lambdas[:] = lam
        return skipped

    def _solve_jacobi(self, state: ClothState) -> int:
        inv = state.inv_masses
        i0 = state.constraints[:, 0]
        i1 = state.constraints[:, 1]
        total = inv[i0] + inv[i1]
        active = total > 0.0
        skipped = int((~active).sum())

        i0, i1, total = i0[active], i1[active], total[active]
        rest = state.rest_lengths[active]
        lam = state.lambdas[active]
        rel0 = (inv[i0] / total)[:, None]
        rel1 = (inv[i1] / total)[:, None]
        denom = (total + self.compliance)[:, None]

        a_tilde = self.compliance
        relaxation = self.config.jacobi_relaxation
        workspace = np.zeros_like(state.positions)

        for iteration in range(self.config.iteration_count):
            d = state.positions[i0] - state.positions[i1]
            length = np.sqrt(np.sum(d * d, axis=1))
            if np.any(length == 0.0):
                bad = int(np.flatnonzero(length == 0.0)[0])
                k = int(np.flatnonzero(active)[bad])
                raise DegenerateConstraintError(k, int(i0[bad]), int(i1[bad]))
            normal = d / length[:, None]
            residual = (length - rest)[:, None]

            if iteration == 0:
                delta = -(residual * normal) / denom
                if self.warm_factor is not None:
                    delta = delta + self.warm_factor * lam
                lam = delta.copy()
            else:
                delta = -(residual * normal + a_tilde * lam) / denom
                lam = lam + delta

            np.add.at(workspace, i0, delta * rel0)
            np.add.at(workspace, i1, -delta * rel1)
            state.positions += workspace * relaxation
            workspace.fill(0.0)

        state.lambdas[active] = lam
        return skipped


def solve(state: ClothState, config: SolverConfig, dt: float) -> SolveReport:
    """Run every solver iteration of one step on `state`."""
    return XPBDSolver(config, dt).solve(state)


__all__ = ["DegenerateConstraintError", "SolveReport", "XPBDSolver", "solve"]
