"""
Actions run by the propagator after every step.

An action provides ``make_result()`` for its result slot, ``__call__(state,
stepper, result)`` for the acting pass and ``observe(state, stepper)`` for the
observer-only pass.  Actions check their own trigger condition and do nothing
when it does not hold.
"""
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Protocol

import numpy as np

from . import units
from .debug import debug_log
from .geometry import PlaneSurface
from .parameters import PHI, THETA


class Action(Protocol):
    def make_result(self): ...

    def __call__(self, state, stepper, result) -> None: ...

    def observe(self, state, stepper) -> None: ...


class ActionResults(Mapping):
    """Result slots keyed by action type."""

    def __init__(self, slots: dict) -> None:
        self._slots = slots

    def __getitem__(self, key):
        return self._slots[key]

    def __iter__(self) -> Iterator:
        return iter(self._slots)

    def __len__(self) -> int:
        return len(self._slots)

    def __repr__(self) -> str:
        return f"ActionResults({', '.join(t.__name__ for t in self._slots)})"


class ActionList:
    """Ordered actions, at most one per type."""

    def __init__(self, *actions: Action) -> None:
        types = [type(a) for a in actions]
        if len(set(types)) != len(types):
            raise ValueError("An ActionList may hold only one action of each type.")
        self.actions = tuple(actions)

    def make_results(self) -> ActionResults:
        return ActionResults({type(a): a.make_result() for a in self.actions})

    def __call__(self, state, stepper, results: ActionResults) -> None:
        for action in self.actions:
            action(state, stepper, results[type(action)])

    def observe(self, state, stepper) -> None:
        for action in self.actions:
            action.observe(state, stepper)

    def __iter__(self):
        return iter(self.actions)

    def __len__(self) -> int:
        return len(self.actions)


# --------------------------------------------------------------------------- #
# Surface collection
# --------------------------------------------------------------------------- #

@dataclass(frozen=True)
class SurfaceSelector:
    """Selects sensitive, material-carrying and/or any (passive) surfaces."""
    select_sensitive: bool = True
    select_material: bool = False
    select_passive: bool = False

    def __call__(self, surface: PlaneSurface) -> bool:
        if self.select_sensitive and surface.detector_element is not None:
            return True
        if self.select_material and surface.material is not None:
            return True
        return self.select_passive


@dataclass(frozen=True)
class SurfaceHit:
    surface: PlaneSurface
    position: np.ndarray
    direction: np.ndarray


@dataclass
class SurfaceCollectorResult:
    collected: List[SurfaceHit] = field(default_factory=list)


class SurfaceCollector:
    """Records every selected surface the navigator reports as current."""

    def __init__(self, selector: Optional[SurfaceSelector] = None) -> None:
        self.selector = selector if selector is not None else SurfaceSelector()

    def make_result(self) -> SurfaceCollectorResult:
        return SurfaceCollectorResult()

    def __call__(self, state, stepper, result: SurfaceCollectorResult) -> None:
        surface = state.navigation.current_surface
        if surface is None or not self.selector(surface):
            return
        result.collected.append(SurfaceHit(
            surface=surface,
            position=np.array(stepper.position(state.stepping)),
            direction=np.array(stepper.direction(state.stepping)),
        ))
        debug_log(state, "surface collector", lambda: f"Collect surface  {surface.geometry_id}")

    def observe(self, state, stepper) -> None:
        pass


# --------------------------------------------------------------------------- #
# Step logging
# --------------------------------------------------------------------------- #

@dataclass(frozen=True)
class Step:
    position: np.ndarray
    momentum: np.ndarray
    step_size: float
    path_length: float
    surface: Optional[PlaneSurface] = None


@dataclass
class SteppingLoggerResult:
    steps: List[Step] = field(default_factory=list)


class SteppingLogger:
    """Records the state after every step, e.g. for plotting."""

    def make_result(self) -> SteppingLoggerResult:
        return SteppingLoggerResult()

    def __call__(self, state, stepper, result: SteppingLoggerResult) -> None:
        st = state.stepping
        result.steps.append(Step(
            position=np.array(stepper.position(st)),
            momentum=stepper.momentum(st) * np.array(stepper.direction(st)),
            step_size=st.previous_step_size,
            path_length=st.path_accumulated,
            surface=state.navigation.current_surface,
        ))

    def observe(self, state, stepper) -> None:
        pass


# --------------------------------------------------------------------------- #
# Material effects
# --------------------------------------------------------------------------- #

@dataclass(frozen=True)
class MaterialInteraction:
    surface: PlaneSurface
    position: np.ndarray
    path_in_x0: float
    delta_p: float
    sigma_phi2: float
    sigma_theta2: float


@dataclass
class MaterialInteractorResult:
    interactions: List[MaterialInteraction] = field(default_factory=list)
    material_in_x0: float = 0.0


def highland_theta0(p: float, mass: float, charge: float, path_in_x0: float) -> float:
    """Width of the projected multiple-scattering angle [rad]."""
    if path_in_x0 <= 0.0:
        return 0.0
    energy = math.sqrt(p * p + mass * mass)
    beta = p / energy
    q = abs(charge) if charge != 0.0 else 1.0
    return (13.6 * units.MeV * q / (beta * p) * math.sqrt(path_in_x0)
            * (1.0 + 0.038 * math.log(path_in_x0)))


class MaterialInteractor:
    """
    Applies multiple scattering and mean energy loss on surfaces carrying
    :class:`~track_propagation.geometry.SurfaceMaterial`.

    The covariance is first transported onto the surface, the scattering
    variances are added to (phi, theta), and the momentum is reduced through
    the stepper's ``update_free``.
    """

    def __init__(self, multiple_scattering: bool = True, energy_loss: bool = True) -> None:
        self.multiple_scattering = multiple_scattering
        self.energy_loss = energy_loss

    def make_result(self) -> MaterialInteractorResult:
        return MaterialInteractorResult()

    def __call__(self, state, stepper, result: MaterialInteractorResult) -> None:
        surface = state.navigation.current_surface
        if surface is None or surface.material is None:
            return
        st = state.stepping
        material = surface.material
        direction = stepper.direction(st)
        cos_incidence = max(abs(float(surface.normal @ direction)), 1e-6)
        path_length = material.thickness / cos_incidence
        path_in_x0 = material.thickness_in_x0 / cos_incidence
        p = stepper.momentum(st)

        sigma_phi2 = sigma_theta2 = 0.0
        if self.multiple_scattering:
            theta0 = highland_theta0(p, st.mass, st.charge, path_in_x0)
            sin_theta = math.sqrt(max(1.0 - direction[2] ** 2, 1e-12))
            sigma_theta2 = theta0 * theta0
            sigma_phi2 = sigma_theta2 / (sin_theta * sin_theta)
            if st.cov_transport:
                stepper.covariance_transport(st, surface)
                st.covariance[PHI, PHI] += sigma_phi2
                st.covariance[THETA, THETA] += sigma_theta2

        delta_p = 0.0
        if self.energy_loss and material.dedx > 0.0:
            energy = math.sqrt(p * p + st.mass * st.mass)
            new_energy = max(energy - material.dedx * path_length, st.mass * (1.0 + 1e-9))
            new_p = math.sqrt(new_energy * new_energy - st.mass * st.mass)
            delta_p = new_p - p
            stepper.update_free(st, stepper.position(st), direction, new_p, stepper.time(st))

        result.material_in_x0 += path_in_x0
        result.interactions.append(MaterialInteraction(
            surface=surface,
            position=np.array(stepper.position(st)),
            path_in_x0=path_in_x0,
            delta_p=delta_p,
            sigma_phi2=sigma_phi2,
            sigma_theta2=sigma_theta2,
        ))
        debug_log(state, "material interactor",
                  lambda: f"Material {path_in_x0:.4f} X0 on {surface.geometry_id}, dp = {delta_p:.6f}")

    def observe(self, state, stepper) -> None:
        pass
