import pytest

from track_propagation import PropagatorError, Result, SimulatorError, SurfaceError, TrackingError
from track_propagation.errors import ErrorCode


def test_messages_and_categories():
    assert PropagatorError.STEP_SIZE_ADJUSTMENT_FAILED.message == \
        "Step size adjustment exceeds maximum trials"
    assert SimulatorError.INVALID_INPUT_PARTICLE_ID.message == \
        "Input particle id with non-zero generation or sub-particle"
    assert SurfaceError.INVALID_LOCAL_POSITION.category == "SurfaceError"
    assert str(PropagatorError.FAILURE) == "PropagatorError: Propagation failed"


def test_unknown_message():
    class Bare(ErrorCode):
        SOMETHING = 1

    assert Bare.SOMETHING.message == "unknown"


def test_result_success_and_failure():
    ok = Result.success(3.0)
    assert ok.ok and bool(ok)
    assert ok.value == 3.0
    assert ok.error is None

    bad = Result.failure(PropagatorError.NAVIGATION_DEAD_END)
    assert not bad.ok and not bad
    assert bad.error is PropagatorError.NAVIGATION_DEAD_END
    with pytest.raises(TrackingError) as excinfo:
        bad.unwrap()
    assert excinfo.value.code is PropagatorError.NAVIGATION_DEAD_END
