"""Position-history (Verlet-style) integrator.

Velocity is never stored: it is the difference between the current and the
previous position, so `damping` scales that difference every step.
"""
from __future__ import annotations

import numpy as np

from clothsim.sim.state import ClothState

DOWN = np.array([0.0, -1.0, 0.0])


def gravity_vector(magnitude_m_s2: float = 9.8, scale: float = 0.1) -> np.ndarray:
    return DOWN * magnitude_m_s2 * scale


def integrate(state: ClothState, damping: float, dt: float, gravity: np.ndarray) -> None:
    """Predict new positions for every free particle, in place.

    ``v = (x - x_prev) * damping + gravity * dt``; ``x_prev = x``; ``x += v``.
    Anchored particles keep both their current and previous positions.
    """
    free = ~state.is_fixed
    current = state.positions[free]
    velocity = (current - state.previous_positions[free]) * damping
    velocity = velocity + gravity * dt
    state.previous_positions[free] = current
    state.positions[free] = current + velocity


__all__ = ["DOWN", "gravity_vector", "integrate"]
