"""Cloth simulation schema.

Solver configuration, grid topology parameters and the per-tick outputs handed
to renderers. Configuration models are frozen: the core only reads them, and a
changed value always means a new validated instance.
"""
from __future__ import annotations

import math
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Fixed simulation step; one step per host frame at 60 Hz.
TARGET_DT_S = 1.0 / 60.0

# Warm-start carry-over is damped in Gauss-Seidel mode: sequential projection
# already over-corrects, so only 0.7 of eta is re-injected. Empirically tuned.
GAUSS_SEIDEL_ETA_SCALE = 0.7


class SolveMode(str, Enum):
  GAUSS_SEIDEL = "gauss_seidel"
  JACOBI = "jacobi"


class GridSettings(BaseModel):
  model_config = ConfigDict(frozen=True)

  particles_x: int = Field(10, ge=2, description="Particle columns.")
  particles_y: int = Field(10, ge=2, description="Particle rows.")

  @property
  def num_particles(self) -> int:
    return self.particles_x * self.particles_y


class SolverConfig(BaseModel):
  """Parameters read by the integrator and the XPBD solver for one step."""
  model_config = ConfigDict(frozen=True, allow_inf_nan=False)

  iteration_count: int = Field(2, ge=1, description="Solver iterations per step.")
  stiffness: float = Field(5000.0, gt=0.0, description="XPBD stiffness; compliance is 1/(stiffness*dt^2).")
  solve_mode: SolveMode = Field(SolveMode.GAUSS_SEIDEL, description="Constraint projection order.")
  warm_start: bool = Field(True, description="Re-inject the previous step's lambda at iteration 0.")
  eta: float = Field(1.0, ge=0.0, le=1.0, description="Warm-start carry-over fraction.")
  damping: float = Field(0.6, ge=0.0, le=1.0, description="Velocity retention factor per step.")
  jacobi_relaxation: float = Field(0.6, ge=0.0, le=1.0, description="Under-relaxation of simultaneous corrections.")

  @field_validator("solve_mode", mode="before")
  @classmethod
  def _normalize_mode(cls, v: Any):
    if isinstance(v, str):
      key = v.strip().lower().replace("-", "_").replace(" ", "_")
      return {"gaussseidel": "gauss_seidel", "gs": "gauss_seidel"}.get(key, key)
    return v

  @model_validator(mode="after")
  def _check_compliance(self) -> "SolverConfig":
    scaled = self.stiffness * TARGET_DT_S * TARGET_DT_S
    if scaled == 0.0 or not math.isfinite(1.0 / scaled):
      raise ValueError(f"stiffness {self.stiffness!r} is too small for a finite compliance")
    return self

  def compliance(self, dt: float) -> float:
    return 1.0 / (self.stiffness * dt * dt)

  @property
  def effective_eta(self) -> float:
    if self.solve_mode is SolveMode.GAUSS_SEIDEL:
      return GAUSS_SEIDEL_ETA_SCALE * self.eta
    return self.eta


class ConfigUpdate(BaseModel):
  """Partial, unvalidated input from the configuration surface.

  Values are validated one field at a time when the update is applied
  (see ClothSession.apply_update); a rejected value does not block the rest.
  """
  model_config = ConfigDict(extra="forbid")

  particles_x: Optional[Any] = None
  particles_y: Optional[Any] = None
  iteration_count: Optional[Any] = None
  stiffness: Optional[Any] = None
  stiffness_log10: Optional[Any] = Field(None, description="Slider form of stiffness: stiffness = 10**value.")
  solve_mode: Optional[Any] = None
  warm_start: Optional[Any] = None
  eta: Optional[Any] = None
  damping: Optional[Any] = None
  jacobi_relaxation: Optional[Any] = None


class FrameSnapshot(BaseModel):
  """Render feed: ordered particle positions and constraint index pairs."""
  positions: list[tuple[float, float, float]] = Field(default_factory=list)
  edges: list[tuple[int, int]] = Field(default_factory=list)
  fixed: list[int] = Field(default_factory=list, description="Indices of anchored particles.")
  time_step: int = Field(0, description="Steps simulated since the last reset.")


class StepOutcome(BaseModel):
  stepped: bool = Field(False, description="Whether integration and solving ran this tick.")
  reset: bool = Field(False, description="Whether the topology was rebuilt this tick.")
  lambdas_cleared: bool = Field(False, description="Whether stored impulses were zeroed this tick.")
  delta_s: float = Field(0.0, description="Time since the last processed timestamp.")
  time_step: int = 0
  skipped_constraints: int = Field(0, description="Constraints with two anchored endpoints, ignored by the solver.")


__all__ = [
  "TARGET_DT_S",
  "GAUSS_SEIDEL_ETA_SCALE",
  "SolveMode",
  "GridSettings",
  "SolverConfig",
  "ConfigUpdate",
  "FrameSnapshot",
  "StepOutcome",
]
