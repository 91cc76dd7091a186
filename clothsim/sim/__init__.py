"""Cloth simulation core.

This module provides:
- Configuration and output schema (schema.py)
- Topology builder for the particle grid (topology.py)
- Verlet-style integrator (integrator.py)
- XPBD distance-constraint solver, Gauss-Seidel and Jacobi (solver.py)
- Fixed-step scheduler with reset / impulse lifecycle (scheduler.py)
- Interactive sessions at the configuration boundary (session.py)
"""

from clothsim.sim.schema import (
    ConfigUpdate,
    FrameSnapshot,
    GridSettings,
    SolveMode,
    SolverConfig,
    StepOutcome,
)
from clothsim.sim.state import ClothState
from clothsim.sim.topology import build_from_points, build_grid
from clothsim.sim.integrator import gravity_vector, integrate
from clothsim.sim.solver import DegenerateConstraintError, XPBDSolver, solve
from clothsim.sim.scheduler import TARGET_DT_S, StepScheduler
from clothsim.sim.session import ClothSession, get_session_store
from clothsim.sim.runner import run_headless

__all__ = [
    # Schema
    "ConfigUpdate",
    "FrameSnapshot",
    "GridSettings",
    "SolveMode",
    "SolverConfig",
    "StepOutcome",
    # Core
    "ClothState",
    "build_from_points",
    "build_grid",
    "gravity_vector",
    "integrate",
    "DegenerateConstraintError",
    "XPBDSolver",
    "solve",
    "TARGET_DT_S",
    "StepScheduler",
    # Sessions
    "ClothSession",
    "get_session_store",
    "run_headless",
]
