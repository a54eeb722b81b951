"""
Minimal detector geometry: plane surfaces, layers and a tracking volume whose
layers are indexed by a :class:`~track_propagation.binned_array.BinnedArray`.
"""
import math
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Sequence, Tuple

import numpy as np

from ._core import _plane_intersection
from .binned_array import BinnedArray
from .binning import BinningData, BinningValue, BinUtility


@dataclass(frozen=True, order=True)
class GeometryID:
    """Hierarchical surface identifier."""
    volume: int = 0
    boundary: int = 0
    layer: int = 0
    approach: int = 0
    sensitive: int = 0

    def __str__(self) -> str:
        return (f"[ {self.volume:3d} | {self.boundary:3d} | {self.layer:3d} | "
                f"{self.approach:3d} | {self.sensitive:4d} ]")


@dataclass(frozen=True)
class DetectorElement:
    """Marks a surface as sensitive (read out)."""
    identifier: int
    thickness: float = 0.0


@dataclass(frozen=True)
class SurfaceMaterial:
    """Homogeneous slab: thickness [mm], radiation length [mm], dE/dx [GeV/mm]."""
    thickness: float
    x0: float
    dedx: float = 0.0

    @property
    def thickness_in_x0(self) -> float:
        return self.thickness / self.x0


class InfiniteBounds:
    def inside(self, local: Iterable[float], tolerance: float = 0.0) -> bool:
        return True

    def __repr__(self) -> str:
        return "InfiniteBounds()"


class RectangleBounds:
    def __init__(self, half_x: float, half_y: float) -> None:
        if half_x <= 0.0 or half_y <= 0.0:
            raise ValueError("Rectangle half lengths must be positive.")
        self.half_x = float(half_x)
        self.half_y = float(half_y)

    def inside(self, local: Iterable[float], tolerance: float = 0.0) -> bool:
        l0, l1 = local[0], local[1]
        return abs(l0) <= self.half_x + tolerance and abs(l1) <= self.half_y + tolerance

    def __repr__(self) -> str:
        return f"RectangleBounds({self.half_x:g}, {self.half_y:g})"


class IntersectionStatus(Enum):
    UNREACHABLE = 0
    MISSED = 1
    REACHABLE = 2
    ON_SURFACE = 3


@dataclass(frozen=True)
class Intersection:
    position: np.ndarray
    path_length: float
    status: IntersectionStatus

    @property
    def valid(self) -> bool:
        return self.status in (IntersectionStatus.REACHABLE, IntersectionStatus.ON_SURFACE)


_AXES = {"x": 0, "y": 1, "z": 2}

# phi is undefined along the z axis; the free-to-bound Jacobian uses this floor
_MIN_SIN_THETA = 1e-12


class PlaneSurface:
    """
    Plane defined by a center and a rotation whose columns are the local
    x axis, the local y axis and the normal.
    """

    def __init__(
        self,
        center: Iterable[float],
        rotation: Optional[np.ndarray] = None,
        *,
        bounds=None,
        geometry_id: Optional[GeometryID] = None,
        detector_element: Optional[DetectorElement] = None,
        material: Optional[SurfaceMaterial] = None,
    ) -> None:
        self.center = np.asarray(center, dtype=np.float64)
        if rotation is None:
            self.rotation = np.eye(3)
        else:
            self.rotation = np.asarray(rotation, dtype=np.float64)
            if self.rotation.shape != (3, 3):
                raise ValueError("rotation must be 3x3")
        self.bounds = bounds if bounds is not None else InfiniteBounds()
        self.geometry_id = geometry_id if geometry_id is not None else GeometryID()
        self.detector_element = detector_element
        self.material = material

    @classmethod
    def perpendicular_to(cls, axis: str, offset: float, **kwargs) -> "PlaneSurface":
        """Plane with its normal along the global *axis* at coordinate *offset*."""
        k = _AXES[axis]
        eye = np.eye(3)
        rotation = np.column_stack((eye[(k + 1) % 3], eye[(k + 2) % 3], eye[k]))
        center = np.zeros(3)
        center[k] = offset
        return cls(center, rotation, **kwargs)

    @classmethod
    def curvilinear(cls, position: Iterable[float], direction: Iterable[float]) -> "PlaneSurface":
        """Plane through *position* perpendicular to *direction* (U, V, T frame)."""
        t = np.asarray(direction, dtype=np.float64)
        if abs(t[2]) < 0.999995:
            u = np.array([-t[1], t[0], 0.0])
        else:
            u = np.array([0.0, -t[2], t[1]])
        u /= np.linalg.norm(u)
        v = np.cross(t, u)
        return cls(position, np.column_stack((u, v, t)))

    # ---------------------------------------------------------------------
    # Frame transformations
    # ---------------------------------------------------------------------
    @property
    def normal(self) -> np.ndarray:
        return self.rotation[:, 2]

    def local_to_global(self, local: Iterable[float], direction=None) -> np.ndarray:
        return self.center + self.rotation[:, 0] * local[0] + self.rotation[:, 1] * local[1]

    def global_to_local(self, position: Iterable[float], direction=None) -> np.ndarray:
        rel = np.asarray(position, dtype=np.float64) - self.center
        return self.rotation[:, :2].T @ rel

    def inside(self, local: Iterable[float], tolerance: float = 0.0) -> bool:
        return self.bounds.inside(local, tolerance)

    def distance(self, position: Iterable[float]) -> float:
        """Signed distance of *position* from the plane along the normal."""
        return float(self.normal @ (np.asarray(position, dtype=np.float64) - self.center))

    def on_surface(self, position: Iterable[float], tolerance: float = 1e-4) -> bool:
        if abs(self.distance(position)) > tolerance:
            return False
        return self.inside(self.global_to_local(position), tolerance)

    def intersect(self, position: Iterable[float], direction: Iterable[float],
                  tolerance: float = 1e-4, check_bounds: bool = True) -> Intersection:
        """Straight-line intersection along *direction*."""
        p = np.asarray(position, dtype=np.float64)
        d = np.asarray(direction, dtype=np.float64)
        s = _plane_intersection(p, d, self.center, self.normal)
        if math.isinf(s):
            return Intersection(p, math.inf, IntersectionStatus.UNREACHABLE)
        point = p + s * d
        if check_bounds and not self.inside(self.global_to_local(point), tolerance):
            return Intersection(point, s, IntersectionStatus.MISSED)
        if abs(s) < tolerance:
            return Intersection(point, s, IntersectionStatus.ON_SURFACE)
        return Intersection(point, s, IntersectionStatus.REACHABLE)

    # ---------------------------------------------------------------------
    # Jacobians, bound (loc0, loc1, phi, theta, q/p, t) <-> free (x, t, T, q/p)
    # ---------------------------------------------------------------------
    def bound_to_free_jacobian(self, position, direction) -> np.ndarray:
        d = np.asarray(direction, dtype=np.float64)
        phi = math.atan2(d[1], d[0])
        theta = math.acos(max(-1.0, min(1.0, d[2])))
        sin_phi, cos_phi = math.sin(phi), math.cos(phi)
        sin_theta, cos_theta = math.sin(theta), math.cos(theta)

        jac = np.zeros((8, 6))
        jac[0:3, 0] = self.rotation[:, 0]
        jac[0:3, 1] = self.rotation[:, 1]
        jac[3, 5] = 1.0
        jac[4, 2] = -sin_theta * sin_phi
        jac[5, 2] = sin_theta * cos_phi
        jac[4, 3] = cos_theta * cos_phi
        jac[5, 3] = cos_theta * sin_phi
        jac[6, 3] = -sin_theta
        jac[7, 4] = 1.0
        return jac

    def free_to_bound_jacobian(self, position, direction) -> np.ndarray:
        d = np.asarray(direction, dtype=np.float64)
        phi = math.atan2(d[1], d[0])
        theta = math.acos(max(-1.0, min(1.0, d[2])))
        sin_phi, cos_phi = math.sin(phi), math.cos(phi)
        sin_theta, cos_theta = max(math.sin(theta), _MIN_SIN_THETA), math.cos(theta)

        jac = np.zeros((6, 8))
        jac[0, 0:3] = self.rotation[:, 0]
        jac[1, 0:3] = self.rotation[:, 1]
        jac[5, 3] = 1.0
        jac[2, 4] = -sin_phi / sin_theta
        jac[2, 5] = cos_phi / sin_theta
        jac[3, 4] = cos_phi * cos_theta
        jac[3, 5] = sin_phi * cos_theta
        jac[3, 6] = -sin_theta
        jac[4, 7] = 1.0
        return jac

    def free_to_path_derivative(self, position, direction) -> np.ndarray:
        """d(path length to reach the plane) / d(free parameters)."""
        n = self.normal
        row = np.zeros(8)
        row[0:3] = -n / float(n @ np.asarray(direction, dtype=np.float64))
        return row

    def __repr__(self) -> str:
        return f"PlaneSurface(center={tuple(self.center)}, id={self.geometry_id})"


class Layer:
    """
    A representing surface plus an optional binned array of sensitive surfaces
    indexed in the representing surface's local frame.
    """

    def __init__(
        self,
        representing_surface: PlaneSurface,
        surface_array: Optional[BinnedArray] = None,
        *,
        geometry_id: Optional[GeometryID] = None,
    ) -> None:
        self.representing_surface = representing_surface
        self.surface_array = surface_array
        self.geometry_id = geometry_id if geometry_id is not None else representing_surface.geometry_id

    @property
    def surfaces(self) -> Tuple[PlaneSurface, ...]:
        if self.surface_array is None:
            return ()
        return self.surface_array.array_objects()

    def compatible_surface(self, position: Iterable[float]) -> Optional[PlaneSurface]:
        """Sensitive surface binned at the global *position*, if any."""
        if self.surface_array is None:
            return None
        local = self.representing_surface.global_to_local(position)
        bu = self.surface_array.bin_utility()
        if bu is not None and not bu.inside(local):
            return None
        surface, _ = self.surface_array.object(local)
        return surface

    def __repr__(self) -> str:
        return f"Layer({self.geometry_id}, surfaces={len(self.surfaces)})"


class TrackingVolume:
    """Volume whose layers are looked up through a global :class:`BinnedArray`."""

    def __init__(self, layer_array: BinnedArray, *, name: str = "world", volume_id: int = 0) -> None:
        self.layer_array = layer_array
        self.name = name
        self.volume_id = volume_id

    @classmethod
    def from_layers(
        cls,
        layers: Sequence[Layer],
        binning_value: BinningValue,
        extent: Tuple[float, float],
        **kwargs,
    ) -> "TrackingVolume":
        """
        Bin *layers* along *binning_value* with boundaries halfway between
        neighbouring layer centers and the outer *extent*.
        """
        if not layers:
            raise ValueError("A tracking volume needs at least one layer.")
        probe = BinningData(binning_value, bins=1, range=(extent[0], extent[1]))
        keyed = sorted(((probe.value(l.representing_surface.center), l) for l in layers),
                       key=lambda kl: kl[0])
        values = [k for k, _ in keyed]
        boundaries = [extent[0]]
        boundaries += [0.5 * (a + b) for a, b in zip(values[:-1], values[1:])]
        boundaries.append(extent[1])
        bu = BinUtility(BinningData(binning_value, boundaries=boundaries))
        pairs = [(l, l.representing_surface.center) for _, l in keyed]
        return cls(BinnedArray.from_pairs(pairs, bu), **kwargs)

    @property
    def layers(self) -> Tuple[Layer, ...]:
        return self.layer_array.array_objects()

    def layer_at(self, position: Iterable[float]) -> Optional[Layer]:
        bu = self.layer_array.bin_utility()
        if bu is not None and not bu.inside(position):
            return None
        layer, _ = self.layer_array.object(position)
        return layer

    def __repr__(self) -> str:
        return f"TrackingVolume({self.name!r}, layers={len(self.layers)})"
