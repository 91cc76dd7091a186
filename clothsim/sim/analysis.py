"""Constraint stretch diagnostics."""

from __future__ import annotations

import numpy as np
from pydantic import BaseModel, Field

from clothsim.sim.state import ClothState


class StretchReport(BaseModel):
    """How far the constraints are from their rest lengths."""

    max_error_m: float = Field(0.0, description="Largest |length - rest_length|.")
    mean_error_m: float = Field(0.0, description="Mean |length - rest_length|.")
    max_relative_stretch: float = Field(0.0, description="Largest |length - rest_length| / rest_length.")
    max_lambda_norm: float = Field(0.0, description="Largest stored impulse magnitude.")


def constraint_lengths(state: ClothState) -> np.ndarray:
    p0 = state.positions[state.constraints[:, 0]]
    p1 = state.positions[state.constraints[:, 1]]
    return np.linalg.norm(p0 - p1, axis=1)


def stretch_report(state: ClothState) -> StretchReport:
    if state.num_constraints == 0:
        return StretchReport()
    error = np.abs(constraint_lengths(state) - state.rest_lengths)
    return StretchReport(
        max_error_m=float(error.max()),
        mean_error_m=float(error.mean()),
        max_relative_stretch=float((error / state.rest_lengths).max()),
        max_lambda_norm=float(np.linalg.norm(state.lambdas, axis=1).max()),
    )


__all__ = ["StretchReport", "constraint_lengths", "stretch_report"]
