import numpy as np
import pytest

from track_propagation import (
    ActionList,
    BoundParameters,
    CurvilinearParameters,
    EndOfWorldReached,
    Navigator,
    PlaneSurface,
    Propagator,
    PropagatorError,
    PropagatorOptions,
    PropagatorStatus,
    SteppingLogger,
    StepLimitReached,
    StraightLineStepper,
    SurfaceCollector,
    VoidNavigator,
)
from track_propagation.debug import debug_log
from track_propagation.propagator import PropagatorState
from track_propagation.stepper import make_state


def _propagator(volume):
    return Propagator(StraightLineStepper(), Navigator(volume))


def test_collects_three_planes_in_order(volume, planes, start_x):
    options = PropagatorOptions(max_path_length=10.0, actions=[SurfaceCollector()])
    result = _propagator(volume).propagate(start_x, options)

    assert result.ok
    assert result.status is PropagatorStatus.PATH_LIMIT
    assert result.steps == 4
    assert result.path_length == pytest.approx(10.0)
    hits = result[SurfaceCollector].collected
    assert [h.surface for h in hits] == planes
    for hit, x in zip(hits, (1.0, 2.0, 3.0)):
        assert np.allclose(hit.position, [x, 0.0, 0.0])
        assert np.allclose(hit.direction, [1.0, 0.0, 0.0])
    assert isinstance(result.end_parameters, CurvilinearParameters)
    assert np.allclose(result.end_parameters.position, [10.0, 0.0, 0.0])


def test_path_limit_precedes_target(volume, planes, start_x):
    options = PropagatorOptions(max_path_length=3.0)
    result = _propagator(volume).propagate(start_x, options, target=planes[2])
    assert result.steps == 3
    assert result.status is PropagatorStatus.PATH_LIMIT
    assert isinstance(result.end_parameters, CurvilinearParameters)


def test_target_reached_gives_bound_parameters(volume, planes, start_x):
    result = _propagator(volume).propagate(start_x, PropagatorOptions(), target=planes[2])
    assert result.status is PropagatorStatus.TARGET_REACHED
    assert result.steps == 3
    end = result.end_parameters
    assert isinstance(end, BoundParameters)
    assert end.surface is planes[2]
    assert np.allclose(end.parameters[:2], [0.0, 0.0])
    assert result.path_length == pytest.approx(3.0)


def test_target_without_navigator(planes, start_x):
    result = Propagator(StraightLineStepper(), VoidNavigator()).propagate(
        start_x, PropagatorOptions(), target=planes[1])
    assert result.status is PropagatorStatus.TARGET_REACHED
    assert result.steps == 1
    assert np.allclose(result.end_parameters.position, [2.0, 0.0, 0.0])


def test_end_of_world(volume, start_x):
    options = PropagatorOptions(aborters=[EndOfWorldReached()], actions=[SurfaceCollector()])
    result = _propagator(volume).propagate(start_x, options)
    assert result.status is PropagatorStatus.NAVIGATION_DEAD_END
    assert result.error is PropagatorError.NAVIGATION_DEAD_END
    assert result.steps == 3
    assert len(result[SurfaceCollector].collected) == 3
    assert np.allclose(result.end_parameters.position, [3.0, 0.0, 0.0])


def test_step_limit(start_x):
    options = PropagatorOptions(max_steps=2)
    result = Propagator(StraightLineStepper(), VoidNavigator()).propagate(start_x, options)
    assert result.status is PropagatorStatus.STEP_LIMIT
    assert result.error is PropagatorError.STEP_COUNT_LIMIT_REACHED
    assert result.steps == 2
    assert result.path_length == pytest.approx(2 * options.max_step_size)


def test_step_limit_aborter(start_x):
    options = PropagatorOptions(max_step_size=5.0, aborters=[StepLimitReached(3)])
    result = Propagator(StraightLineStepper(), VoidNavigator()).propagate(start_x, options)
    assert result.status is PropagatorStatus.STEP_LIMIT
    assert result.ok
    assert result.steps == 3
    assert result.path_length == pytest.approx(15.0)


def test_stepping_logger_is_monotonic(volume, start_x):
    options = PropagatorOptions(max_path_length=10.0, actions=[SteppingLogger()])
    result = _propagator(volume).propagate(start_x, options)
    steps = result[SteppingLogger].steps
    assert len(steps) == result.steps
    paths = [s.path_length for s in steps]
    assert paths == sorted(paths)
    assert [s.step_size for s in steps] == pytest.approx([1.0, 1.0, 1.0, 7.0])


def test_debug_output(volume, start_x):
    quiet = _propagator(volume).propagate(start_x, PropagatorOptions(max_path_length=10.0))
    assert quiet.debug_string == ""

    options = PropagatorOptions(max_path_length=10.0, debug=True, actions=[SurfaceCollector()])
    loud = _propagator(volume).propagate(start_x, options)
    lines = loud.debug_string.splitlines()
    assert lines
    assert all("|" in line for line in lines)
    assert any("Collect surface" in line for line in lines)
    assert any(line.strip().startswith("navigator") for line in lines)
    assert any("Next step size" in line for line in lines)


def test_duplicate_action_types_rejected():
    with pytest.raises(ValueError):
        ActionList(SurfaceCollector(), SurfaceCollector())


def test_results_are_independent(volume, start_x):
    options = PropagatorOptions(max_path_length=10.0, actions=[SurfaceCollector()])
    propagator = _propagator(volume)
    first = propagator.propagate(start_x, options)
    second = propagator.propagate(start_x, options)
    assert first[SurfaceCollector] is not second[SurfaceCollector]
    assert len(first[SurfaceCollector].collected) == 3
    assert len(second[SurfaceCollector].collected) == 3


@pytest.mark.parametrize("debug, expected_calls", [(False, 0), (True, 1)])
def test_debug_message_built_only_when_enabled(start_x, debug, expected_calls):
    calls = []

    def message():
        calls.append(1)
        return "built"

    state = PropagatorState(options=PropagatorOptions(debug=debug), stepping=make_state(start_x))
    debug_log(state, "x", message)
    assert len(calls) == expected_calls
    assert ("built" in state.debug_string) is debug


def test_covariance_track_along_beam_axis():
    cov = np.diag([0.1, 0.2, 0.01, 0.02, 0.1, 1.0]) ** 2
    start = CurvilinearParameters((0, 0, 0), (0.0, 0.0, 1.0), charge=1.0, covariance=cov)
    propagator = Propagator(StraightLineStepper(), VoidNavigator())

    free = propagator.propagate(start, PropagatorOptions(max_path_length=10.0))
    assert free.status is PropagatorStatus.PATH_LIMIT
    assert np.allclose(free.end_parameters.position, [0.0, 0.0, 10.0])
    assert np.all(np.isfinite(free.end_parameters.covariance))

    target = PlaneSurface.perpendicular_to("z", 5.0)
    bound = propagator.propagate(start, PropagatorOptions(), target=target)
    assert bound.status is PropagatorStatus.TARGET_REACHED
    assert bound.ok
    c = bound.end_parameters.covariance
    assert np.all(np.isfinite(c))
    assert np.allclose(c, c.T)
    assert np.all(np.isfinite(bound.transport_jacobian))
