"""
Covariance transport between bound, curvilinear and free frames.

The full Jacobian from the last bound frame to a new one is

    J = freeToBound * (1 + derivative x freeToPath) * jacTransport * jacToGlobal

where the middle factor corrects for the path length needed to reach the new
surface.  After each transport the free transport Jacobian is reset and the
bound-to-free Jacobian is re-anchored on the new frame.
"""
from typing import Tuple

import numpy as np

from .errors import Result, SurfaceError
from .geometry import PlaneSurface
from .parameters import BoundParameters, CurvilinearParameters, angles_from_direction


def _transport(state, surface: PlaneSurface) -> None:
    pos, direction = state.position, state.direction
    correction = np.eye(8) + np.outer(state.derivative,
                                      surface.free_to_path_derivative(pos, direction))
    jac_full = (surface.free_to_bound_jacobian(pos, direction)
                @ correction @ state.jac_transport @ state.jac_to_global)
    if state.covariance is not None:
        cov = jac_full @ state.covariance @ jac_full.T
        state.covariance = 0.5 * (cov + cov.T)
    state.jacobian = jac_full @ state.jacobian
    state.jac_transport = np.eye(8)
    state.derivative = np.zeros(8)
    state.jac_to_global = surface.bound_to_free_jacobian(pos, direction)


def transport_covariance_to_bound(state, surface: PlaneSurface) -> None:
    _transport(state, surface)


def transport_covariance_to_curvilinear(state) -> None:
    _transport(state, PlaneSurface.curvilinear(state.position, state.direction))


def bound_state(state, surface: PlaneSurface, tolerance: float = 1e-4
                ) -> Result[Tuple[BoundParameters, np.ndarray, float]]:
    """
    Express the stepper state on *surface*.

    Fails with ``INVALID_LOCAL_POSITION`` when the projected position lies
    outside the surface bounds.
    """
    local = surface.global_to_local(state.position, state.direction)
    if not surface.inside(local, tolerance):
        return Result.failure(SurfaceError.INVALID_LOCAL_POSITION)
    if state.cov_transport:
        transport_covariance_to_bound(state, surface)
    phi, theta = angles_from_direction(state.direction)
    pars = BoundParameters(
        surface,
        [local[0], local[1], phi, theta, state.q_over_p, state.time],
        state.charge,
        None if state.covariance is None else state.covariance.copy(),
    )
    return Result.success((pars, state.jacobian.copy(), state.path_accumulated))


def curvilinear_state(state) -> Tuple[CurvilinearParameters, np.ndarray, float]:
    if state.cov_transport:
        transport_covariance_to_curvilinear(state)
    pars = CurvilinearParameters(
        state.position,
        state.momentum * state.direction,
        state.charge,
        state.time,
        None if state.covariance is None else state.covariance.copy(),
    )
    return pars, state.jacobian.copy(), state.path_accumulated
