"""
Steppers: per-propagation numerical state and the algorithms advancing it.

Both steppers expose the same operations (``step``, ``update``,
``update_free``, ``bound_state``, ``curvilinear_state``,
``covariance_transport`` and accessors), described by :class:`Stepper`, so the
propagator can drive either one.
"""
import logging
import math
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Optional, Protocol, Tuple

import numpy as np

from . import covariance as engine
from . import units
from ._core import (
    _rkn4_first_stage,
    _rkn4_middle_stages,
    _rkn4_last_stage,
    _rkn4_transport,
    _straight_line_transport,
)
from .errors import PropagatorError, Result
from .geometry import PlaneSurface
from .parameters import BoundParameters, CurvilinearParameters, q_over_p

logger = logging.getLogger(__name__)

PION_MASS = 0.13957039 * units.GeV


class ConstraintType(IntEnum):
    ACCURACY = 0
    ACTOR = 1
    ABORTER = 2
    USER = 3
    NAVIGATOR = 4


class ConstrainedStep:
    """
    Step size limited by several independent constraints; the smallest wins.
    """

    __slots__ = ("values",)

    def __init__(self, user: float = math.inf) -> None:
        self.values = [math.inf] * len(ConstraintType)
        self.values[ConstraintType.USER] = abs(user)

    def value(self, kind: Optional[ConstraintType] = None) -> float:
        if kind is not None:
            return self.values[kind]
        return min(self.values)

    def current_type(self) -> ConstraintType:
        return ConstraintType(int(np.argmin(self.values)))

    def update(self, value: float, kind: ConstraintType, release: bool = False) -> None:
        if release:
            self.values[kind] = math.inf
        if abs(value) < self.values[kind]:
            self.values[kind] = abs(value)

    def release(self, kind: ConstraintType) -> None:
        self.values[kind] = math.inf

    def __str__(self) -> str:
        name = self.current_type().name.lower()
        return f"{self.value():.4f} ({name})"


@dataclass
class StepperState:
    """Free state of one propagation; owned by that propagation only."""
    position: np.ndarray
    direction: np.ndarray
    momentum: float
    charge: float
    time: float = 0.0
    mass: float = PION_MASS
    covariance: Optional[np.ndarray] = None
    cov_transport: bool = False
    jac_to_global: np.ndarray = field(default_factory=lambda: np.zeros((8, 6)))
    jac_transport: np.ndarray = field(default_factory=lambda: np.eye(8))
    derivative: np.ndarray = field(default_factory=lambda: np.zeros(8))
    jacobian: np.ndarray = field(default_factory=lambda: np.eye(6))
    path_accumulated: float = 0.0
    step_size: ConstrainedStep = field(default_factory=ConstrainedStep)
    previous_step_size: float = 0.0
    tolerance: float = 1e-4

    @property
    def q_over_p(self) -> float:
        return q_over_p(self.charge, self.momentum)

    @property
    def dtds(self) -> float:
        """dt/ds = 1 / (beta c)."""
        return math.sqrt(1.0 + (self.mass / self.momentum) ** 2) / units.c

    @property
    def dtds_dqop(self) -> float:
        q = self.charge if self.charge != 0.0 else 1.0
        return self.mass ** 2 * self.q_over_p / (q * q * units.c ** 2 * self.dtds)


def make_state(start, *, mass: float = PION_MASS, max_step_size: float = math.inf,
               tolerance: float = 1e-4) -> StepperState:
    """Initialise a stepper state from bound or curvilinear start parameters."""
    position = np.array(start.position, dtype=np.float64)
    direction = np.array(start.direction, dtype=np.float64)
    state = StepperState(
        position=position,
        direction=direction / np.linalg.norm(direction),
        momentum=start.absolute_momentum,
        charge=start.charge,
        time=start.time,
        mass=mass,
        step_size=ConstrainedStep(max_step_size),
        tolerance=tolerance,
    )
    if start.covariance is not None:
        state.covariance = start.covariance.copy()
        state.cov_transport = True
        state.jac_to_global = start.reference_surface.bound_to_free_jacobian(position, direction)
    return state


class Stepper(Protocol):
    """Operations the propagator needs from a stepping algorithm."""

    def make_state(self, start, **kwargs) -> StepperState: ...

    def step(self, state) -> Result[float]: ...

    def update(self, state: StepperState, parameters: BoundParameters) -> None: ...

    def update_free(self, state: StepperState, position, direction, momentum: float,
                    time: float) -> None: ...

    def bound_state(self, state: StepperState, surface: PlaneSurface) -> Result: ...

    def curvilinear_state(self, state: StepperState) -> Tuple[CurvilinearParameters, np.ndarray, float]: ...

    def covariance_transport(self, state: StepperState, surface: Optional[PlaneSurface] = None) -> None: ...

    def update_step_size(self, state: StepperState, value: float, kind: ConstraintType,
                         release: bool = True) -> None: ...

    def release_step_size(self, state: StepperState, kind: ConstraintType) -> None: ...

    def output_step_size(self, state: StepperState) -> str: ...


def _update_from_parameters(state: StepperState, pars) -> None:
    mom = pars.momentum
    p = float(np.linalg.norm(mom))
    state.position = np.array(pars.position, dtype=np.float64)
    state.direction = mom / p
    state.momentum = p
    state.time = pars.time
    if pars.covariance is not None:
        state.covariance = pars.covariance.copy()
        state.cov_transport = True
    state.jac_to_global = pars.reference_surface.bound_to_free_jacobian(state.position, state.direction)
    state.jac_transport = np.eye(8)
    state.derivative = np.zeros(8)


def _update_free(state: StepperState, position, direction, momentum: float, time: float) -> None:
    d = np.array(direction, dtype=np.float64)
    state.position = np.array(position, dtype=np.float64)
    state.direction = d / np.linalg.norm(d)
    state.momentum = float(momentum)
    state.time = float(time)


class _StepperAccess:
    """Accessors and frame conversions common to all steppers."""

    def make_state(self, start, **kwargs) -> StepperState:
        return make_state(start, **kwargs)

    @staticmethod
    def position(state: StepperState) -> np.ndarray:
        return state.position

    @staticmethod
    def direction(state: StepperState) -> np.ndarray:
        return state.direction

    @staticmethod
    def momentum(state: StepperState) -> float:
        return state.momentum

    @staticmethod
    def charge(state: StepperState) -> float:
        return state.charge

    @staticmethod
    def time(state: StepperState) -> float:
        return state.time

    def update(self, state: StepperState, parameters: BoundParameters) -> None:
        _update_from_parameters(state, parameters)

    def update_free(self, state: StepperState, position, direction, momentum: float,
                    time: float) -> None:
        _update_free(state, position, direction, momentum, time)

    def bound_state(self, state: StepperState, surface: PlaneSurface) -> Result:
        return engine.bound_state(state, surface)

    def curvilinear_state(self, state: StepperState):
        return engine.curvilinear_state(state)

    def covariance_transport(self, state: StepperState,
                             surface: Optional[PlaneSurface] = None) -> None:
        if surface is None:
            engine.transport_covariance_to_curvilinear(state)
        else:
            engine.transport_covariance_to_bound(state, surface)

    @staticmethod
    def update_step_size(state: StepperState, value: float, kind: ConstraintType,
                         release: bool = True) -> None:
        state.step_size.update(value, kind, release)

    @staticmethod
    def release_step_size(state: StepperState, kind: ConstraintType) -> None:
        state.step_size.release(kind)

    @staticmethod
    def output_step_size(state: StepperState) -> str:
        return str(state.step_size)


class StraightLineStepper(_StepperAccess):
    """Zero-curvature stepping for field-free regions."""

    def step(self, propagator_state) -> Result[float]:
        state = propagator_state.stepping
        h = state.step_size.value()
        if not math.isfinite(h):
            return Result.failure(PropagatorError.STEP_SIZE_ADJUSTMENT_FAILED)
        dtds = state.dtds
        state.position = state.position + h * state.direction
        state.time += h * dtds
        if state.cov_transport:
            state.jac_transport = _straight_line_transport(h, state.dtds_dqop) @ state.jac_transport
            state.derivative[0:3] = state.direction
            state.derivative[3] = dtds
            state.derivative[4:8] = 0.0
        state.path_accumulated += h
        state.previous_step_size = h
        return Result.success(h)


class RungeKuttaStepper(_StepperAccess):
    """
    Adaptive 4th order Runge-Kutta-Nyström integration of the Lorentz force.

    Parameters
    ----------
    field : MagneticField
        Provider of ``field_at(position)``.
    max_trials : int
        Step-size reductions allowed before the step is given up.
    step_size_cutoff : float
        Smallest step [mm] accepted during adaptation.
    """

    def __init__(self, field, *, max_trials: int = 10000, step_size_cutoff: float = 1e-6) -> None:
        self.field = field
        self.max_trials = max_trials
        self.step_size_cutoff = step_size_cutoff

    def _field(self, position: np.ndarray) -> np.ndarray:
        return np.array(self.field.field_at(position), dtype=np.float64)

    def step(self, propagator_state) -> Result[float]:
        state = propagator_state.stepping
        h = state.step_size.value()
        if not math.isfinite(h):
            return Result.failure(PropagatorError.STEP_SIZE_ADJUSTMENT_FAILED)

        pos, direction = state.position, state.direction
        lam = units.LORENTZ_FACTOR * state.charge / state.momentum
        dlam = units.LORENTZ_FACTOR if state.charge != 0.0 else 0.0
        b_first = self._field(pos)

        trials = 0
        while True:
            k1, pos1 = _rkn4_first_stage(pos, direction, lam, h, b_first)
            b_middle = self._field(pos1)
            k2, k3, pos2 = _rkn4_middle_stages(pos, direction, lam, h, k1, b_middle)
            b_last = self._field(pos2)
            k4, new_pos, new_dir, error = _rkn4_last_stage(pos, direction, lam, h,
                                                           k1, k2, k3, b_last)
            error = max(error, 1e-20)
            scaling = min(max(math.sqrt(math.sqrt(state.tolerance / (2.0 * error))), 0.25), 4.0)
            if error <= state.tolerance:
                break
            h *= scaling
            trials += 1
            if trials > self.max_trials or h < self.step_size_cutoff:
                logger.debug("Step size adjustment failed after %d trials (h=%g)", trials, h)
                return Result.failure(PropagatorError.STEP_SIZE_ADJUSTMENT_FAILED)

        dtds = state.dtds
        if state.cov_transport:
            d = _rkn4_transport(direction, lam, dlam, h, k1, k2, k3,
                                b_first, b_middle, b_last, state.dtds_dqop)
            state.jac_transport = d @ state.jac_transport
            state.derivative[0:3] = new_dir
            state.derivative[3] = dtds
            state.derivative[4:7] = k4
            state.derivative[7] = 0.0

        state.position = new_pos
        state.direction = new_dir
        state.time += h * dtds
        state.path_accumulated += h
        state.previous_step_size = h
        state.step_size.update(h * scaling, ConstraintType.ACCURACY, release=True)
        return Result.success(h)
