"""Headless cloth runs: synthetic host frames in, recorded frames and stretch out."""
from __future__ import annotations

import math
from typing import Any

import numpy as np
from pydantic import BaseModel, Field

from clothsim.sim.analysis import StretchReport, stretch_report
from clothsim.sim.schema import FrameSnapshot, GridSettings, SolverConfig
from clothsim.sim.scheduler import TARGET_DT_S, StepScheduler


class RunFrame(BaseModel):
    t: float = Field(description="Host timestamp of the frame in seconds")
    stepped: bool
    frame: FrameSnapshot


class RunResult(BaseModel):
    frames: list[RunFrame] = Field(default_factory=list)
    stretch: StretchReport = Field(default_factory=StretchReport)
    meta: dict[str, Any] = Field(default_factory=dict)


def run_headless(
    config: SolverConfig,
    grid: GridSettings,
    duration_s: float,
    frame_rate: float = 60.0,
    target_dt: float = TARGET_DT_S,
    gravity: np.ndarray | None = None,
    every: int = 1,
) -> RunResult:
    """Drive a fresh cloth with synthetic frame timestamps.

    Frames arrive at `frame_rate` for `duration_s`; the scheduler decides
    which of them step. Every `every`-th frame is recorded, plus the last.
    """
    if duration_s <= 0 or frame_rate <= 0:
        raise ValueError("duration_s and frame_rate must be positive")
    every = max(1, int(every))

    scheduler = StepScheduler(grid=grid, target_dt=target_dt, gravity=gravity)
    total_frames = int(math.floor(duration_s * frame_rate)) + 1

    frames: list[RunFrame] = []
    steps = 0
    for idx in range(total_frames):
        t = idx / frame_rate
        outcome = scheduler.tick(t, config)
        steps += int(outcome.stepped)
        if idx % every == 0 or idx == total_frames - 1:
            frames.append(RunFrame(t=round(t, 6), stepped=outcome.stepped, frame=scheduler.state.snapshot()))

    return RunResult(
        frames=frames,
        stretch=stretch_report(scheduler.state),
        meta={
            "frames_count": total_frames,
            "recorded_frames": len(frames),
            "steps": steps,
            "solve_mode": config.solve_mode.value,
            "particles": scheduler.state.num_particles,
            "constraints": scheduler.state.num_constraints,
        },
    )


__all__ = ["RunFrame", "RunResult", "run_headless"]
