"""
Abort conditions, checked in registration order after every step.

An aborter is a callable ``(state, stepper) -> bool``; its ``status``
attribute names the termination reason reported when it fires.  Aborters may
also constrain the next step so the propagation lands on their condition.
"""
import math
from enum import Enum
from typing import Optional

from .debug import debug_log
from .geometry import IntersectionStatus, PlaneSurface
from .stepper import ConstraintType


class PropagatorStatus(Enum):
    TARGET_REACHED = "target reached"
    PATH_LIMIT = "path limit reached"
    STEP_LIMIT = "step limit reached"
    NAVIGATION_DEAD_END = "navigation dead-end"
    ABORTED = "aborted"
    FAILED = "failed"


class PathLimitReached:
    status = PropagatorStatus.PATH_LIMIT

    def __init__(self, limit: float = math.inf, tolerance: float = 1e-4) -> None:
        self.limit = abs(limit)
        self.tolerance = tolerance

    def __call__(self, state, stepper) -> bool:
        remaining = self.limit - abs(state.stepping.path_accumulated)
        if remaining <= self.tolerance:
            debug_log(state, "path limit", lambda: "Path limit reached")
            return True
        if math.isfinite(remaining):
            stepper.update_step_size(state.stepping, remaining, ConstraintType.ABORTER, release=False)
        return False


class StepLimitReached:
    status = PropagatorStatus.STEP_LIMIT

    def __init__(self, max_steps: int) -> None:
        self.max_steps = max_steps

    def __call__(self, state, stepper) -> bool:
        return state.steps >= self.max_steps


class SurfaceReached:
    """Fires when *surface* is the current surface or the track lies on it."""

    status = PropagatorStatus.TARGET_REACHED

    def __init__(self, surface: PlaneSurface, tolerance: float = 1e-4) -> None:
        self.surface = surface
        self.tolerance = tolerance

    def __call__(self, state, stepper) -> bool:
        if state.navigation.current_surface is self.surface:
            debug_log(state, "surface reached", lambda: "Target surface reached")
            return True
        st = state.stepping
        hit = self.surface.intersect(stepper.position(st), stepper.direction(st), self.tolerance)
        if hit.status is IntersectionStatus.ON_SURFACE:
            debug_log(state, "surface reached", lambda: "Target surface reached")
            return True
        if hit.status is IntersectionStatus.REACHABLE and hit.path_length > 0.0:
            stepper.update_step_size(st, hit.path_length, ConstraintType.ABORTER, release=False)
        return False


class EndOfWorldReached:
    """Fires when the navigator found no further surface to target."""

    status = PropagatorStatus.NAVIGATION_DEAD_END

    def __call__(self, state, stepper) -> bool:
        return state.navigation.navigation_break


class AbortList:
    """Ordered aborters; the first one to fire decides the status."""

    def __init__(self, *aborters) -> None:
        self.aborters = tuple(aborters)

    def __call__(self, state, stepper) -> Optional[object]:
        stepper.release_step_size(state.stepping, ConstraintType.ABORTER)
        for aborter in self.aborters:
            if aborter(state, stepper):
                return aborter
        return None

    def __iter__(self):
        return iter(self.aborters)

    def __len__(self) -> int:
        return len(self.aborters)
