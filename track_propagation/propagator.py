"""
Generic propagation loop over a stepper, a navigator, actions and aborters.
"""
import logging
import math
from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np

from . import units
from .aborters import AbortList, PathLimitReached, PropagatorStatus, SurfaceReached
from .actions import ActionList, ActionResults
from .debug import debug_log
from .errors import ErrorCode, PropagatorError
from .geometry import PlaneSurface
from .navigator import NavigationState
from .stepper import PION_MASS, StepperState

logger = logging.getLogger(__name__)


@dataclass
class PropagatorOptions:
    """
    Options of one propagation.

    ``actions`` and ``aborters`` are shared, stateless objects; per-propagation
    data lives in the result slots and the propagator state.
    """
    max_path_length: float = math.inf
    max_steps: int = 1000
    max_step_size: float = 10.0 * units.m
    tolerance: float = 1e-4
    target_tolerance: float = 1e-4
    mass: float = PION_MASS
    debug: bool = False
    debug_pfx_width: int = 30
    debug_msg_width: int = 50
    actions: Sequence = ()
    aborters: Sequence = ()


@dataclass
class PropagatorState:
    options: PropagatorOptions
    stepping: StepperState
    navigation: NavigationState = field(default_factory=NavigationState)
    steps: int = 0
    debug_string: str = ""


@dataclass
class PropagatorResult:
    end_parameters: object
    transport_jacobian: np.ndarray
    path_length: float
    steps: int
    status: PropagatorStatus
    action_results: ActionResults
    error: Optional[ErrorCode] = None
    debug_string: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    def __getitem__(self, action_type):
        return self.action_results[action_type]


class Propagator:
    """
    Drives a stepper and a navigator until an aborter fires.

    Per iteration: navigator target -> stepper step -> observers -> navigator
    status -> actions -> aborters.  Termination always produces end
    parameters and the full set of action results.
    """

    def __init__(self, stepper, navigator) -> None:
        self.stepper = stepper
        self.navigator = navigator

    def _debug(self, state, message) -> None:
        debug_log(state, "propagator", message)

    def propagate(self, start, options: Optional[PropagatorOptions] = None,
                  target: Optional[PlaneSurface] = None) -> PropagatorResult:
        options = options if options is not None else PropagatorOptions()
        stepper = self.stepper
        actions = options.actions if isinstance(options.actions, ActionList) \
            else ActionList(*options.actions)
        builtin = []
        if math.isfinite(options.max_path_length):
            builtin.append(PathLimitReached(options.max_path_length, options.target_tolerance))
        if target is not None:
            builtin.append(SurfaceReached(target, options.target_tolerance))
        aborters = AbortList(*builtin, *options.aborters)

        state = PropagatorState(
            options=options,
            stepping=stepper.make_state(start, mass=options.mass,
                                        max_step_size=options.max_step_size,
                                        tolerance=options.tolerance),
        )
        results = actions.make_results()
        status: Optional[PropagatorStatus] = None
        error: Optional[ErrorCode] = None

        self._debug(state, lambda: "Initializing propagation")
        self.navigator.initialize(state, stepper)
        actions(state, stepper, results)
        fired = aborters(state, stepper)
        if fired is not None:
            status = getattr(fired, "status", PropagatorStatus.ABORTED)

        while status is None:
            if state.steps >= options.max_steps:
                status = PropagatorStatus.STEP_LIMIT
                error = PropagatorError.STEP_COUNT_LIMIT_REACHED
                self._debug(state, lambda: f"Reached maximum number of steps: {options.max_steps}")
                break
            self.navigator.target(state, stepper)
            self._debug(state, lambda: f"Next step size: {stepper.output_step_size(state.stepping)}")
            res = stepper.step(state)
            if not res.ok:
                status = PropagatorStatus.FAILED
                error = res.error
                logger.debug("Step failed: %s", res.error)
                break
            state.steps += 1
            h = res.value
            self._debug(state, lambda: f"Step with size = {h:.4f} performed")
            actions.observe(state, stepper)
            self.navigator.status(state, stepper)
            actions(state, stepper, results)
            fired = aborters(state, stepper)
            if fired is not None:
                status = getattr(fired, "status", PropagatorStatus.ABORTED)

        if status is PropagatorStatus.NAVIGATION_DEAD_END:
            error = PropagatorError.NAVIGATION_DEAD_END

        end_parameters = None
        if target is not None and status is PropagatorStatus.TARGET_REACHED:
            bound = stepper.bound_state(state.stepping, target)
            if bound.ok:
                end_parameters, jacobian, path = bound.value
            else:
                error = bound.error
        if end_parameters is None:
            end_parameters, jacobian, path = stepper.curvilinear_state(state.stepping)

        self._debug(state, lambda: f"Finished after {state.steps} steps: {status.value}")
        return PropagatorResult(
            end_parameters=end_parameters,
            transport_jacobian=jacobian,
            path_length=path,
            steps=state.steps,
            status=status,
            action_results=results,
            error=error,
            debug_string=state.debug_string,
        )
