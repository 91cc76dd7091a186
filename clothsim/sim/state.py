"""Simulation context for one cloth.

Particles and constraints live in flat arrays; constraints refer to particles
by integer index, so a reset can replace every array wholesale.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from clothsim.sim.schema import FrameSnapshot

if TYPE_CHECKING:
    import numpy.typing as npt


@dataclass
class ClothState:
    """Particle and constraint arrays mutated by the integrator and solver.

    Attributes:
        positions: (N, 3) current particle positions.
        previous_positions: (N, 3) positions at the previous step.
        is_fixed: (N,) anchor mask; anchored particles have inverse mass 0.
        constraints: (M, 2) particle index pairs ``(p0, p1)``.
        rest_lengths: (M,) distance between each pair at build time.
        lambdas: (M, 3) accumulated Lagrange multipliers, kept across steps.
        time_step: steps simulated since the state was built.
    """

    positions: npt.NDArray[np.float64]
    previous_positions: npt.NDArray[np.float64]
    is_fixed: npt.NDArray[np.bool_]
    constraints: npt.NDArray[np.int64]
    rest_lengths: npt.NDArray[np.float64]
    lambdas: npt.NDArray[np.float64]
    time_step: int = 0

    @property
    def num_particles(self) -> int:
        return int(self.positions.shape[0])

    @property
    def num_constraints(self) -> int:
        return int(self.constraints.shape[0])

    @property
    def inv_masses(self) -> npt.NDArray[np.float64]:
        return np.where(self.is_fixed, 0.0, 1.0)

    def zero_lambdas(self) -> None:
        self.lambdas.fill(0.0)

    def edges(self) -> list[tuple[int, int]]:
        return [(int(p0), int(p1)) for p0, p1 in self.constraints]

    def snapshot(self) -> FrameSnapshot:
        return FrameSnapshot(
            positions=[tuple(p) for p in self.positions.tolist()],
            edges=self.edges(),
            fixed=np.flatnonzero(self.is_fixed).tolist(),
            time_step=self.time_step,
        )

    def copy(self) -> ClothState:
        return ClothState(
            positions=self.positions.copy(),
            previous_positions=self.previous_positions.copy(),
            is_fixed=self.is_fixed.copy(),
            constraints=self.constraints.copy(),
            rest_lengths=self.rest_lengths.copy(),
            lambdas=self.lambdas.copy(),
            time_step=self.time_step,
        )


__all__ = ["ClothState"]
