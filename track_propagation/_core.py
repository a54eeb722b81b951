"""
Low-level NumPy+Numba helpers for Runge-Kutta stepping, transport Jacobians,
plane intersection and bin search.
"""
import math
import numpy as np
from numba import njit, int64, float64
from typing import Tuple


@njit(cache=True, fastmath=True)
def _cross(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    out = np.empty(3, dtype=float64)
    out[0] = a[1] * b[2] - a[2] * b[1]
    out[1] = a[2] * b[0] - a[0] * b[2]
    out[2] = a[0] * b[1] - a[1] * b[0]
    return out


@njit(cache=True, fastmath=True)
def _cross_matrix(v: np.ndarray) -> np.ndarray:
    """Matrix ``M`` with ``M @ a == a x v``."""
    m = np.zeros((3, 3), dtype=float64)
    m[0, 1] = v[2]
    m[0, 2] = -v[1]
    m[1, 0] = -v[2]
    m[1, 2] = v[0]
    m[2, 0] = v[1]
    m[2, 1] = -v[0]
    return m


@njit(cache=True, fastmath=True)
def _matmul3(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    out = np.zeros((3, 3), dtype=float64)
    for i in range(3):
        for j in range(3):
            acc = 0.0
            for k in range(3):
                acc += a[i, k] * b[k, j]
            out[i, j] = acc
    return out


@njit(cache=True, fastmath=True)
def _matvec3(a: np.ndarray, v: np.ndarray) -> np.ndarray:
    out = np.zeros(3, dtype=float64)
    for i in range(3):
        out[i] = a[i, 0] * v[0] + a[i, 1] * v[1] + a[i, 2] * v[2]
    return out


# --------------------------------------------------------------------------- #
# Runge-Kutta-Nyström stages (field sampled by the caller between stages)
# --------------------------------------------------------------------------- #

@njit(cache=True, fastmath=True)
def _rkn4_first_stage(position: np.ndarray, direction: np.ndarray,
                      lam: float, h: float,
                      b_first: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Return ``k1`` and the mid-step position where the field is sampled next."""
    k1 = lam * _cross(direction, b_first)
    pos1 = position + 0.5 * h * direction + 0.125 * h * h * k1
    return k1, pos1


@njit(cache=True, fastmath=True)
def _rkn4_middle_stages(position: np.ndarray, direction: np.ndarray,
                        lam: float, h: float, k1: np.ndarray,
                        b_middle: np.ndarray
                        ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Return ``k2``, ``k3`` and the end-of-step position."""
    k2 = lam * _cross(direction + 0.5 * h * k1, b_middle)
    k3 = lam * _cross(direction + 0.5 * h * k2, b_middle)
    pos2 = position + h * direction + 0.5 * h * h * k3
    return k2, k3, pos2


@njit(cache=True, fastmath=True)
def _rkn4_last_stage(position: np.ndarray, direction: np.ndarray,
                     lam: float, h: float,
                     k1: np.ndarray, k2: np.ndarray, k3: np.ndarray,
                     b_last: np.ndarray
                     ) -> Tuple[np.ndarray, np.ndarray, np.ndarray, float]:
    """
    Finish the step.

    Returns ``(k4, new_position, new_direction, error_estimate)``; the error
    estimate is ``h^2 * |k1 - k2 - k3 + k4|_1``.
    """
    k4 = lam * _cross(direction + h * k3, b_last)
    new_pos = position + h * direction + h * h / 6.0 * (k1 + k2 + k3)
    new_dir = direction + h / 6.0 * (k1 + 2.0 * k2 + 2.0 * k3 + k4)
    norm = math.sqrt(new_dir[0] ** 2 + new_dir[1] ** 2 + new_dir[2] ** 2)
    new_dir = new_dir / norm
    err = h * h * np.sum(np.abs(k1 - k2 - k3 + k4))
    return k4, new_pos, new_dir, err


@njit(cache=True, fastmath=True)
def _rkn4_transport(direction: np.ndarray, lam: float, dlam: float, h: float,
                    k1: np.ndarray, k2: np.ndarray, k3: np.ndarray,
                    b_first: np.ndarray, b_middle: np.ndarray,
                    b_last: np.ndarray, dtds_dqop: float) -> np.ndarray:
    """
    Free transport Jacobian (8x8) of one RKN4 step.

    The field is frozen at the three sample points, i.e. field gradients are
    neglected.  ``dlam`` is d(lam)/d(q/p).
    """
    eye = np.eye(3, dtype=float64)
    x1 = lam * _cross_matrix(b_first)
    x2 = lam * _cross_matrix(b_middle)
    x3 = lam * _cross_matrix(b_last)

    dk1_dt = x1
    dk2_dt = _matmul3(x2, eye + 0.5 * h * dk1_dt)
    dk3_dt = _matmul3(x2, eye + 0.5 * h * dk2_dt)
    dk4_dt = _matmul3(x3, eye + h * dk3_dt)

    dk1_dl = dlam * _cross(direction, b_first)
    dk2_dl = (dlam * _cross(direction + 0.5 * h * k1, b_middle)
              + _matvec3(x2, 0.5 * h * dk1_dl))
    dk3_dl = (dlam * _cross(direction + 0.5 * h * k2, b_middle)
              + _matvec3(x2, 0.5 * h * dk2_dl))
    dk4_dl = (dlam * _cross(direction + h * k3, b_last)
              + _matvec3(x3, h * dk3_dl))

    d = np.eye(8, dtype=float64)
    d[0:3, 4:7] = h * eye + h * h / 6.0 * (dk1_dt + dk2_dt + dk3_dt)
    d[4:7, 4:7] = eye + h / 6.0 * (dk1_dt + 2.0 * dk2_dt + 2.0 * dk3_dt + dk4_dt)
    d[0:3, 7] = h * h / 6.0 * (dk1_dl + dk2_dl + dk3_dl)
    d[4:7, 7] = h / 6.0 * (dk1_dl + 2.0 * dk2_dl + 2.0 * dk3_dl + dk4_dl)
    d[3, 7] = h * dtds_dqop
    return d


@njit(cache=True, fastmath=True)
def _straight_line_transport(h: float, dtds_dqop: float) -> np.ndarray:
    d = np.eye(8, dtype=float64)
    for k in range(3):
        d[k, 4 + k] = h
    d[3, 7] = h * dtds_dqop
    return d


# --------------------------------------------------------------------------- #
# Geometry helpers
# --------------------------------------------------------------------------- #

@njit(cache=True)
def _plane_intersection(position: np.ndarray, direction: np.ndarray,
                        center: np.ndarray, normal: np.ndarray) -> float:
    """Path length along *direction* to the plane, or inf if parallel."""
    denom = (normal[0] * direction[0] + normal[1] * direction[1]
             + normal[2] * direction[2])
    if abs(denom) < 1e-15:
        return math.inf
    num = (normal[0] * (center[0] - position[0])
           + normal[1] * (center[1] - position[1])
           + normal[2] * (center[2] - position[2]))
    return num / denom


@njit(cache=True)
def _search_equidistant(value: float, vmin: float, step: float,
                        bins: int64, closed: bool) -> int64:
    idx = int(math.floor((value - vmin) / step))
    if closed:
        idx = idx % bins
        if idx < 0:
            idx += bins
    elif idx < 0:
        idx = 0
    elif idx >= bins:
        idx = bins - 1
    return idx


@njit(cache=True)
def _search_arbitrary(value: float, boundaries: np.ndarray,
                      closed: bool) -> int64:
    bins = boundaries.shape[0] - 1
    if value < boundaries[0] or value >= boundaries[bins]:
        if closed:
            return bins - 1 if value < boundaries[0] else 0
        return 0 if value < boundaries[0] else bins - 1
    # right-sided search: bin i covers [b_i, b_{i+1})
    return int(np.searchsorted(boundaries, value, side='right')) - 1
