"""
Track parameters bound to a surface or to the curvilinear frame.

Bound vector: ``(loc0, loc1, phi, theta, q/p, t)``.
Free vector:  ``(x, y, z, t, Tx, Ty, Tz, q/p)``.
Neutral tracks carry ``1/p`` in the q/p slot.
"""
import math
from typing import Iterable, Optional

import numpy as np

from .geometry import PlaneSurface

BOUND_SIZE = 6
FREE_SIZE = 8

LOC0, LOC1, PHI, THETA, QOP, TIME = range(BOUND_SIZE)

FREE_POS = slice(0, 3)
FREE_TIME = 3
FREE_DIR = slice(4, 7)
FREE_QOP = 7


def q_over_p(charge: float, momentum: float) -> float:
    return (charge if charge != 0.0 else 1.0) / momentum


def direction_from_angles(phi: float, theta: float) -> np.ndarray:
    sin_theta = math.sin(theta)
    return np.array([math.cos(phi) * sin_theta, math.sin(phi) * sin_theta, math.cos(theta)])


def angles_from_direction(direction: Iterable[float]):
    d = np.asarray(direction, dtype=np.float64)
    return math.atan2(d[1], d[0]), math.acos(max(-1.0, min(1.0, d[2])))


def _checked_covariance(covariance) -> Optional[np.ndarray]:
    if covariance is None:
        return None
    cov = np.array(covariance, dtype=np.float64)
    if cov.shape != (BOUND_SIZE, BOUND_SIZE):
        raise ValueError(f"covariance must be {BOUND_SIZE}x{BOUND_SIZE}, got {cov.shape}")
    return cov


class _SingleTrackParameters:
    """Shared accessors; subclasses set the reference surface and vector."""

    reference_surface: PlaneSurface
    parameters: np.ndarray
    charge: float
    covariance: Optional[np.ndarray]

    @property
    def position(self) -> np.ndarray:
        return self.reference_surface.local_to_global(self.parameters[LOC0:LOC1 + 1])

    @property
    def direction(self) -> np.ndarray:
        return direction_from_angles(self.parameters[PHI], self.parameters[THETA])

    @property
    def absolute_momentum(self) -> float:
        q = self.charge if self.charge != 0.0 else 1.0
        return abs(q / self.parameters[QOP])

    @property
    def momentum(self) -> np.ndarray:
        return self.absolute_momentum * self.direction

    @property
    def time(self) -> float:
        return float(self.parameters[TIME])

    @property
    def q_over_p(self) -> float:
        return float(self.parameters[QOP])

    def __repr__(self) -> str:
        return (f"{type(self).__name__}(position={np.round(self.position, 6).tolist()}, "
                f"momentum={np.round(self.momentum, 6).tolist()}, charge={self.charge:g}, "
                f"time={self.time:g})")


class BoundParameters(_SingleTrackParameters):
    """Parameters expressed in the local frame of *surface*."""

    def __init__(self, surface: PlaneSurface, parameters: Iterable[float], charge: float,
                 covariance=None) -> None:
        self.reference_surface = surface
        self.parameters = np.array(parameters, dtype=np.float64)
        if self.parameters.shape != (BOUND_SIZE,):
            raise ValueError(f"bound parameters need {BOUND_SIZE} entries")
        self.charge = float(charge)
        self.covariance = _checked_covariance(covariance)

    @classmethod
    def from_global(cls, surface: PlaneSurface, position: Iterable[float],
                    momentum: Iterable[float], charge: float, time: float = 0.0,
                    covariance=None) -> "BoundParameters":
        mom = np.asarray(momentum, dtype=np.float64)
        p = float(np.linalg.norm(mom))
        if not p > 0.0:
            raise ValueError("momentum must be non-zero")
        local = surface.global_to_local(position, mom / p)
        phi, theta = angles_from_direction(mom / p)
        pars = [local[0], local[1], phi, theta, q_over_p(charge, p), time]
        return cls(surface, pars, charge, covariance)

    @property
    def surface(self) -> PlaneSurface:
        return self.reference_surface


class CurvilinearParameters(_SingleTrackParameters):
    """Parameters in the frame perpendicular to the momentum at *position*."""

    def __init__(self, position: Iterable[float], momentum: Iterable[float], charge: float,
                 time: float = 0.0, covariance=None) -> None:
        pos = np.array(position, dtype=np.float64)
        mom = np.asarray(momentum, dtype=np.float64)
        p = float(np.linalg.norm(mom))
        if not p > 0.0:
            raise ValueError("momentum must be non-zero")
        direction = mom / p
        phi, theta = angles_from_direction(direction)
        self._position = pos
        self.reference_surface = PlaneSurface.curvilinear(pos, direction)
        self.parameters = np.array([0.0, 0.0, phi, theta, q_over_p(charge, p), time])
        self.charge = float(charge)
        self.covariance = _checked_covariance(covariance)

    @property
    def position(self) -> np.ndarray:
        return self._position.copy()
