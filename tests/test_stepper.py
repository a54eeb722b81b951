import math

import numpy as np
import pytest

from track_propagation import (
    BoundParameters,
    ConstantField,
    ConstrainedStep,
    ConstraintType,
    CurvilinearParameters,
    PlaneSurface,
    Propagator,
    PropagatorError,
    PropagatorOptions,
    PropagatorStatus,
    RungeKuttaStepper,
    StraightLineStepper,
    VoidNavigator,
    units,
)
from track_propagation.stepper import make_state


def test_constrained_step_minimum_and_release():
    cs = ConstrainedStep(100.0)
    assert cs.value() == 100.0
    assert cs.current_type() is ConstraintType.USER
    cs.update(5.0, ConstraintType.NAVIGATOR)
    cs.update(-7.0, ConstraintType.ABORTER)
    assert cs.value() == 5.0
    assert cs.value(ConstraintType.ABORTER) == 7.0
    # without release a larger value cannot loosen the constraint
    cs.update(50.0, ConstraintType.NAVIGATOR)
    assert cs.value(ConstraintType.NAVIGATOR) == 5.0
    cs.update(50.0, ConstraintType.NAVIGATOR, release=True)
    assert cs.value(ConstraintType.NAVIGATOR) == 50.0
    cs.release(ConstraintType.ABORTER)
    assert cs.value() == 50.0
    assert "navigator" in str(cs)


def test_update_free_normalizes_direction():
    stepper = StraightLineStepper()
    st = make_state(CurvilinearParameters((0, 0, 0), (0, 0, 2.0), 1.0))
    stepper.update_free(st, (1.0, 2.0, 3.0), (3.0, 4.0, 0.0), 0.5, 2.0)
    assert np.allclose(stepper.position(st), [1.0, 2.0, 3.0])
    assert np.linalg.norm(stepper.direction(st)) == pytest.approx(1.0)
    assert np.allclose(stepper.direction(st), [0.6, 0.8, 0.0])
    assert stepper.momentum(st) == pytest.approx(0.5)
    assert stepper.time(st) == pytest.approx(2.0)


def test_curvilinear_round_trip():
    start = CurvilinearParameters((1.0, -2.0, 3.0), (0.3, 0.4, 1.2), charge=-1.0, time=4.0)
    stepper = StraightLineStepper()
    st = stepper.make_state(start)
    pars, jacobian, path = stepper.curvilinear_state(st)
    assert np.allclose(pars.position, start.position)
    assert np.allclose(pars.momentum, start.momentum)
    assert pars.charge == -1.0
    assert pars.time == pytest.approx(4.0)
    assert path == 0.0
    assert np.allclose(jacobian, np.eye(6))

    stepper.update(st, pars)
    assert np.allclose(stepper.position(st), start.position)
    assert np.allclose(stepper.direction(st), start.direction)
    assert abs(np.linalg.norm(stepper.direction(st)) - 1.0) < 1e-12
    assert stepper.momentum(st) == pytest.approx(start.absolute_momentum)
    assert stepper.time(st) == pytest.approx(start.time)
    assert stepper.charge(st) == -1.0


def test_neutral_q_over_p():
    start = CurvilinearParameters((0, 0, 0), (2.0, 0.0, 0.0), charge=0.0)
    assert start.q_over_p == pytest.approx(0.5)
    assert start.absolute_momentum == pytest.approx(2.0)


def test_straight_line_step_length_and_time():
    start = CurvilinearParameters((0, 0, 0), (0.0, 1.0, 0.0), charge=1.0)
    options = PropagatorOptions(max_path_length=250.0, max_step_size=100.0)
    result = Propagator(StraightLineStepper(), VoidNavigator()).propagate(start, options)
    assert result.status is PropagatorStatus.PATH_LIMIT
    assert result.steps == 3
    assert result.path_length == pytest.approx(250.0)
    assert np.allclose(result.end_parameters.position, [0.0, 250.0, 0.0])
    beta = 1.0 / math.sqrt(1.0 + options.mass ** 2)
    assert result.end_parameters.time == pytest.approx(250.0 / (beta * units.c))


def test_runge_kutta_helix_half_turn():
    bz = 2.0 * units.T
    p = 1.0 * units.GeV
    radius = p / (units.LORENTZ_FACTOR * bz)
    start = CurvilinearParameters((0, 0, 0), (p, 0.0, 0.0), charge=1.0)
    options = PropagatorOptions(max_path_length=math.pi * radius, max_steps=10000)
    propagator = Propagator(RungeKuttaStepper(ConstantField((0.0, 0.0, bz))), VoidNavigator())
    result = propagator.propagate(start, options)

    assert result.status is PropagatorStatus.PATH_LIMIT
    end = result.end_parameters
    assert np.allclose(end.position, [0.0, -2.0 * radius, 0.0], atol=1.0)
    assert np.allclose(end.direction, [-1.0, 0.0, 0.0], atol=1e-3)
    assert end.absolute_momentum == pytest.approx(p)
    assert np.linalg.norm(end.direction) == pytest.approx(1.0)


def test_runge_kutta_neutral_is_straight():
    start = CurvilinearParameters((0, 0, 0), (0.0, 0.0, 1.0), charge=0.0)
    propagator = Propagator(RungeKuttaStepper(ConstantField((0.0, 0.0, 2.0))), VoidNavigator())
    result = propagator.propagate(start, PropagatorOptions(max_path_length=500.0))
    assert np.allclose(result.end_parameters.position, [0.0, 0.0, 500.0])


def test_runge_kutta_step_size_adjustment_failure():
    start = CurvilinearParameters((0, 0, 0), (0.1, 0.0, 0.0), charge=1.0)
    stepper = RungeKuttaStepper(ConstantField((0.0, 0.0, 4.0)), max_trials=0)
    result = Propagator(stepper, VoidNavigator()).propagate(start, PropagatorOptions())
    assert result.status is PropagatorStatus.FAILED
    assert result.error is PropagatorError.STEP_SIZE_ADJUSTMENT_FAILED
    assert result.end_parameters is not None


def test_update_from_bound_parameters():
    stepper = RungeKuttaStepper(ConstantField((0.0, 0.0, 2.0)))
    st = make_state(CurvilinearParameters((0, 0, 0), (1.0, 0.0, 0.0), 1.0))
    surface = PlaneSurface.perpendicular_to("z", 50.0)
    cov = np.diag([0.1, 0.1, 0.01, 0.01, 0.1, 1.0]) ** 2
    pars = BoundParameters.from_global(surface, (3.0, 4.0, 50.0), (0.2, -0.7, 1.3),
                                       charge=1.0, time=7.0, covariance=cov)
    stepper.update(st, pars)
    assert abs(np.linalg.norm(stepper.direction(st)) - 1.0) < 1e-12
    assert np.allclose(stepper.position(st), [3.0, 4.0, 50.0])
    assert stepper.momentum(st) == pytest.approx(np.linalg.norm([0.2, -0.7, 1.3]))
    assert stepper.time(st) == pytest.approx(7.0)
    assert st.cov_transport
    assert np.allclose(st.covariance, cov)
    assert np.allclose(st.jac_to_global, surface.bound_to_free_jacobian(st.position, st.direction))
