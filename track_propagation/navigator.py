"""
Navigation through a :class:`~track_propagation.geometry.TrackingVolume`.

The navigator keeps the stepper's navigation step constraint pointed at the
next surface ahead and flags arrival by setting ``current_surface``.
"""
import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional

from .debug import debug_log
from .geometry import Layer, PlaneSurface, TrackingVolume
from .stepper import ConstraintType

logger = logging.getLogger(__name__)


@dataclass
class NavigationState:
    current_surface: Optional[PlaneSurface] = None
    target_surface: Optional[PlaneSurface] = None
    target_layer: Optional[Layer] = None
    start_layer: Optional[Layer] = None
    passed_layers: List[Layer] = field(default_factory=list)
    navigation_break: bool = False


class Navigator:
    """
    Straight-line look-ahead navigator.

    On every call to :meth:`target` the layers not yet passed are intersected
    along the current direction.  The sensitive surface of the closest layer
    is resolved through the layer's surface :class:`BinnedArray`; if there is
    none at the intersection the layer's representing surface is targeted.
    """

    def __init__(self, volume: TrackingVolume, *, on_surface_tolerance: float = 1e-4) -> None:
        self.volume = volume
        self.on_surface_tolerance = on_surface_tolerance

    def _debug(self, state, message) -> None:
        debug_log(state, "navigator", message)

    def initialize(self, state, stepper) -> None:
        nav = state.navigation
        position = stepper.position(state.stepping)
        nav.start_layer = self.volume.layer_at(position)
        self._debug(state, lambda: f"Starting in layer {nav.start_layer.geometry_id}"
                    if nav.start_layer is not None else "Starting outside of any layer")
        self.status(state, stepper)

    def _resolve(self, layer: Layer, position, direction):
        """Return ``(surface, path_length)`` for the surface to aim at in *layer*."""
        tol = self.on_surface_tolerance
        rep = layer.representing_surface.intersect(position, direction, tol, check_bounds=False)
        if not math.isfinite(rep.path_length):
            return None, math.inf
        sensitive = layer.compatible_surface(rep.position)
        if sensitive is not None:
            hit = sensitive.intersect(position, direction, tol)
            if hit.valid:
                return sensitive, hit.path_length
        if layer.representing_surface.inside(
                layer.representing_surface.global_to_local(rep.position), tol):
            return layer.representing_surface, rep.path_length
        return None, math.inf

    def _candidates(self, state, stepper):
        nav = state.navigation
        position = stepper.position(state.stepping)
        direction = stepper.direction(state.stepping)
        found = []
        for layer in self.volume.layers:
            if any(layer is passed for passed in nav.passed_layers):
                continue
            surface, s = self._resolve(layer, position, direction)
            if surface is not None and s > -self.on_surface_tolerance:
                found.append((s, layer, surface))
        found.sort(key=lambda c: c[0])
        return found

    def status(self, state, stepper) -> None:
        """Post-step update: detect arrival on the targeted surface."""
        nav = state.navigation
        nav.current_surface = None
        position = stepper.position(state.stepping)
        candidates = self._candidates(state, stepper)
        if candidates:
            s, layer, surface = candidates[0]
            if abs(s) < self.on_surface_tolerance:
                nav.current_surface = surface
                nav.passed_layers.append(layer)
                nav.target_surface = None
                nav.target_layer = None
                self._debug(state, lambda: f"Status: on surface {surface.geometry_id}")
                candidates = candidates[1:]
        if not candidates:
            nav.navigation_break = True
            self._debug(state, lambda: "Status: no further surface ahead")
        logger.debug("navigation status at %s: %s", position, nav.current_surface)

    def target(self, state, stepper) -> None:
        """Pre-step update: constrain the step to reach the next surface."""
        nav = state.navigation
        candidates = self._candidates(state, stepper)
        candidates = [c for c in candidates if c[0] >= self.on_surface_tolerance]
        if not candidates:
            nav.target_surface = None
            nav.target_layer = None
            nav.navigation_break = True
            stepper.release_step_size(state.stepping, ConstraintType.NAVIGATOR)
            return
        s, layer, surface = candidates[0]
        nav.target_surface = surface
        nav.target_layer = layer
        stepper.update_step_size(state.stepping, s, ConstraintType.NAVIGATOR, release=True)
        self._debug(state, lambda: f"Target surface {surface.geometry_id} at {s:.4f}")


class VoidNavigator:
    """Navigation without geometry: never targets nor reaches a surface."""

    def initialize(self, state, stepper) -> None:
        pass

    def status(self, state, stepper) -> None:
        state.navigation.current_surface = None

    def target(self, state, stepper) -> None:
        pass
