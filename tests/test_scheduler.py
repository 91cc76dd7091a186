from __future__ import annotations

import numpy as np
import pytest

from clothsim.sim.integrator import gravity_vector, integrate
from clothsim.sim.scheduler import TARGET_DT_S, StepScheduler
from clothsim.sim.schema import GridSettings, SolveMode, SolverConfig
from clothsim.sim.solver import XPBDSolver
from clothsim.sim.topology import build_from_points, grid_constraint_pairs, grid_positions


def make_scheduler(px: int = 4, py: int = 4) -> StepScheduler:
    return StepScheduler(grid=GridSettings(particles_x=px, particles_y=py))


def test_first_tick_builds_cloth_without_stepping():
    scheduler = make_scheduler()
    outcome = scheduler.tick(5.0, SolverConfig())
    assert outcome.reset is True
    assert outcome.lambdas_cleared is True
    assert outcome.stepped is False
    assert outcome.time_step == 0
    assert scheduler.state.num_particles == 16
    assert scheduler.last_timestamp == 5.0


def test_short_frames_are_render_only():
    scheduler = make_scheduler()
    config = SolverConfig()
    scheduler.tick(0.0, config)
    before = scheduler.state.positions.copy()

    outcome = scheduler.tick(TARGET_DT_S * 0.5, config)
    assert outcome.stepped is False
    np.testing.assert_array_equal(scheduler.state.positions, before)
    assert scheduler.last_timestamp == 0.0


def test_one_step_per_due_frame_without_catch_up():
    scheduler = make_scheduler()
    config = SolverConfig()
    scheduler.tick(0.0, config)

    outcome = scheduler.tick(1.0, config)  # sixty target steps late
    assert outcome.stepped is True
    assert outcome.time_step == 1
    assert outcome.delta_s == pytest.approx(1.0)
    assert scheduler.last_timestamp == 1.0

    outcome = scheduler.tick(1.0 + TARGET_DT_S, config)
    assert outcome.stepped is True
    assert outcome.time_step == 2


def test_backwards_timestamp_does_not_step():
    scheduler = make_scheduler()
    config = SolverConfig()
    scheduler.tick(1.0, config)
    outcome = scheduler.tick(0.5, config)
    assert outcome.stepped is False
    assert outcome.time_step == 0


def test_frame_timestamps_at_sixty_hz_step_every_frame():
    scheduler = make_scheduler()
    config = SolverConfig()
    steps = sum(scheduler.tick(k / 60.0, config).stepped for k in range(61))
    assert steps == 60


def test_step_gate_tolerates_only_rounding_slack():
    scheduler = make_scheduler()
    config = SolverConfig()
    scheduler.tick(0.0, config)

    assert scheduler.tick(TARGET_DT_S - 2e-9, config).stepped is False
    assert scheduler.last_timestamp == 0.0
    assert scheduler.tick(TARGET_DT_S - 5e-10, config).stepped is True


def test_gravity_only_single_particle():
    scheduler = make_scheduler()
    scheduler.tick(0.0, SolverConfig())
    scheduler.state = build_from_points([[0.0, 0.0, 0.0]], [False], np.empty((0, 2)))

    outcome = scheduler.tick(TARGET_DT_S, SolverConfig(damping=1.0))
    assert outcome.stepped is True
    np.testing.assert_allclose(scheduler.state.positions[0], gravity_vector() * TARGET_DT_S)


def test_reset_restores_initial_layout():
    scheduler = make_scheduler()
    config = SolverConfig()
    scheduler.tick(0.0, config)
    initial = scheduler.state.positions.copy()
    for k in range(1, 10):
        scheduler.tick(k * 0.02, config)
    assert not np.array_equal(scheduler.state.positions, initial)

    scheduler.request_reset()
    outcome = scheduler.tick(1.0, config)
    assert outcome.reset is True
    assert outcome.stepped is False
    assert outcome.time_step == 0
    np.testing.assert_array_equal(scheduler.state.positions, initial)
    assert not scheduler.state.lambdas.any()


def test_grid_change_applies_on_reset_only():
    scheduler = make_scheduler(3, 3)
    config = SolverConfig()
    scheduler.tick(0.0, config)
    scheduler.grid = GridSettings(particles_x=5, particles_y=2)
    scheduler.tick(0.02, config)
    assert scheduler.state.num_particles == 9

    scheduler.request_reset()
    scheduler.tick(0.04, config)
    assert scheduler.state.num_particles == 10


def test_forget_impulse_then_cold_step():
    # 2x2 cloth with a single anchor
    positions, _ = grid_positions(2, 2)
    is_fixed = np.array([True, False, False, False])
    scheduler = make_scheduler(2, 2)
    config = SolverConfig(warm_start=True, iteration_count=1, solve_mode=SolveMode.GAUSS_SEIDEL)
    scheduler.tick(0.0, config)
    scheduler.state = build_from_points(positions, is_fixed, grid_constraint_pairs(2, 2))

    for k in range(1, 8):
        assert scheduler.tick(k * 0.02, config).stepped
    assert np.abs(scheduler.state.lambdas).max() > 0.0

    scheduler.request_lambda_clear()
    outcome = scheduler.tick(7 * 0.02 + 0.001, config)
    assert outcome.lambdas_cleared is True
    assert outcome.stepped is False
    np.testing.assert_array_equal(scheduler.state.lambdas, np.zeros_like(scheduler.state.lambdas))

    expected = scheduler.state.copy()
    integrate(expected, config.damping, TARGET_DT_S, scheduler.gravity)
    after_integration = expected.copy()
    cold = config.model_copy(update={"warm_start": False})
    XPBDSolver(cold, TARGET_DT_S).solve(expected)

    assert scheduler.tick(8 * 0.02, config).stepped
    np.testing.assert_array_equal(scheduler.state.positions, expected.positions)
    np.testing.assert_array_equal(scheduler.state.lambdas, expected.lambdas)

    # The first constraint sees no earlier correction: closed-form cold start.
    i0, i1 = after_integration.constraints[0]
    d = after_integration.positions[i0] - after_integration.positions[i1]
    length = np.linalg.norm(d)
    inv = after_integration.inv_masses
    a_tilde = config.compliance(TARGET_DT_S)
    delta = -((length - after_integration.rest_lengths[0]) * d / length) / (inv[i0] + inv[i1] + a_tilde)
    np.testing.assert_allclose(scheduler.state.lambdas[0], delta, rtol=1e-12, atol=1e-15)


def test_step_without_state_raises():
    scheduler = make_scheduler()
    with pytest.raises(RuntimeError):
        scheduler.step(SolverConfig())
