"""Topology builder: particle grid and distance constraints.

Particle ``(x, y)`` of a ``particles_x * particles_y`` grid has index
``x * particles_y + y``. Constraints are emitted in a fixed order, which the
Gauss-Seidel solver depends on for reproducible results:

1. vertical structural   ``(x, y)-(x, y+1)``, every column
2. horizontal structural ``(x, y)-(x+1, y)``, every row
3. shear, two per cell   ``(x, y)-(x+1, y+1)`` then ``(x+1, y)-(x, y+1)``
"""
from __future__ import annotations

from typing import Sequence

import numpy as np

from clothsim.logging_utils import get_logger
from clothsim.sim.schema import GridSettings
from clothsim.sim.state import ClothState

logger = get_logger(__name__)

# Small out-of-plane tilt so the sheet is not perfectly planar.
Z_TILT = 0.01


def grid_positions(particles_x: int, particles_y: int) -> tuple[np.ndarray, np.ndarray]:
    """Return ``(positions, is_fixed)`` for a unit grid centered at the origin.

    The top row (y index 0) is at +0.5 and rows descend; the two end particles
    of the top row are anchored.
    """
    ix, iy = np.meshgrid(np.arange(particles_x), np.arange(particles_y), indexing="ij")
    xpos = ix / particles_x - 0.5
    ypos = iy / particles_y - 0.5
    positions = np.stack([xpos, -ypos, xpos * Z_TILT], axis=-1).reshape(-1, 3).astype(np.float64)

    is_fixed = ((iy == 0) & ((ix == 0) | (ix == particles_x - 1))).reshape(-1)
    return positions, is_fixed


def grid_constraint_pairs(particles_x: int, particles_y: int) -> np.ndarray:
    """Return the (M, 2) constraint index pairs in build order."""
    idx = np.arange(particles_x * particles_y).reshape(particles_x, particles_y)

    vertical = np.stack([idx[:, :-1], idx[:, 1:]], axis=-1).reshape(-1, 2)
    horizontal = np.stack([idx[:-1, :], idx[1:, :]], axis=-1).reshape(-1, 2)

    diagonal = np.stack([idx[:-1, :-1], idx[1:, 1:]], axis=-1)
    anti_diagonal = np.stack([idx[1:, :-1], idx[:-1, 1:]], axis=-1)
    shear = np.stack([diagonal, anti_diagonal], axis=2).reshape(-1, 2)

    return np.concatenate([vertical, horizontal, shear]).astype(np.int64)


def build_from_points(
    positions: Sequence[Sequence[float]] | np.ndarray,
    is_fixed: Sequence[bool] | np.ndarray,
    pairs: Sequence[Sequence[int]] | np.ndarray,
) -> ClothState:
    """Build a state from explicit particles and constraint pairs.

    Rest lengths are measured from `positions`. Pairs joining two anchored
    particles carry no mass to move and are dropped.

    Raises:
        ValueError: on shape mismatches, out-of-range indices or self-pairs.
    """
    positions = np.array(positions, dtype=np.float64).reshape(-1, 3)
    is_fixed = np.array(is_fixed, dtype=bool).reshape(-1)
    pairs = np.array(pairs, dtype=np.int64).reshape(-1, 2)

    n = positions.shape[0]
    if is_fixed.shape[0] != n:
        raise ValueError(f"is_fixed has {is_fixed.shape[0]} entries for {n} particles")
    if pairs.size and (pairs.min() < 0 or pairs.max() >= n):
        raise ValueError("constraint references a particle index out of range")
    if np.any(pairs[:, 0] == pairs[:, 1]):
        raise ValueError("constraint endpoints must be distinct particles")

    movable = ~(is_fixed[pairs[:, 0]] & is_fixed[pairs[:, 1]])
    if not np.all(movable):
        logger.debug("Dropping %d constraints between anchored particles", int((~movable).sum()))
        pairs = pairs[movable]

    rest_lengths = np.linalg.norm(positions[pairs[:, 0]] - positions[pairs[:, 1]], axis=1)

    return ClothState(
        positions=positions,
        previous_positions=positions.copy(),
        is_fixed=is_fixed,
        constraints=pairs,
        rest_lengths=rest_lengths,
        lambdas=np.zeros((pairs.shape[0], 3), dtype=np.float64),
    )


def build_grid(grid: GridSettings) -> ClothState:
    """Build the cloth for `grid`: positions at rest, zero velocity, zero lambdas."""
    positions, is_fixed = grid_positions(grid.particles_x, grid.particles_y)
    pairs = grid_constraint_pairs(grid.particles_x, grid.particles_y)
    state = build_from_points(positions, is_fixed, pairs)
    logger.debug(
        "Built %dx%d grid: %d particles, %d constraints",
        grid.particles_x, grid.particles_y, state.num_particles, state.num_constraints,
    )
    return state


__all__ = ["grid_positions", "grid_constraint_pairs", "build_from_points", "build_grid"]
