import numpy as np
import pytest

from clothsim.sim.analysis import stretch_report
from clothsim.sim.runner import run_headless
from clothsim.sim.schema import GridSettings, SolverConfig
from clothsim.sim.topology import build_from_points, build_grid


def test_stretch_is_zero_at_rest():
    report = stretch_report(build_grid(GridSettings(particles_x=3, particles_y=3)))
    assert report.max_error_m == pytest.approx(0.0, abs=1e-15)
    assert report.max_lambda_norm == 0.0


def test_stretch_of_pulled_rod():
    state = build_from_points([[0, 0, 0], [0, -1, 0]], [True, False], [[0, 1]])
    state.positions[1] = [0.0, -1.25, 0.0]
    report = stretch_report(state)
    assert report.max_error_m == pytest.approx(0.25)
    assert report.max_relative_stretch == pytest.approx(0.25)


def test_no_constraints_gives_empty_report():
    state = build_from_points([[0, 0, 0]], [False], np.empty((0, 2)))
    assert stretch_report(state).max_error_m == 0.0


def test_stiffer_cloth_stretches_less():
    grid = GridSettings(particles_x=5, particles_y=5)
    soft = run_headless(SolverConfig(stiffness=1e3, iteration_count=4), grid, duration_s=0.5)
    stiff = run_headless(SolverConfig(stiffness=1e7, iteration_count=4), grid, duration_s=0.5)
    assert stiff.stretch.mean_error_m < soft.stretch.mean_error_m


def test_run_headless_rejects_bad_duration():
    with pytest.raises(ValueError):
        run_headless(SolverConfig(), GridSettings(), duration_s=0.0)
