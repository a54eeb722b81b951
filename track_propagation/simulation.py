"""
Fast simulation: propagate primary particles through the geometry and record
the sensitive surfaces they cross.

Particles are independent, so :meth:`Simulator.simulate_all` runs them on a
thread pool that shares the (read-only) geometry, field and propagator.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

import numpy as np

from .aborters import EndOfWorldReached, PropagatorStatus
from .actions import (
    MaterialInteraction,
    MaterialInteractor,
    SurfaceCollector,
    SurfaceHit,
    SurfaceSelector,
)
from .errors import Result, SimulatorError
from .parameters import CurvilinearParameters
from .propagator import Propagator, PropagatorOptions
from .stepper import PION_MASS

logger = logging.getLogger(__name__)


@dataclass(frozen=True, order=True)
class Barcode:
    """Particle identifier; simulation input must be generation 0, sub-particle 0."""
    vertex_primary: int = 0
    vertex_secondary: int = 0
    particle: int = 0
    generation: int = 0
    sub_particle: int = 0

    @property
    def is_primary(self) -> bool:
        return self.generation == 0 and self.sub_particle == 0


@dataclass(frozen=True)
class Particle:
    barcode: Barcode
    position: Tuple[float, float, float]
    direction: Tuple[float, float, float]
    momentum: float
    charge: float
    mass: float = PION_MASS
    time: float = 0.0

    def parameters(self) -> CurvilinearParameters:
        d = np.asarray(self.direction, dtype=np.float64)
        return CurvilinearParameters(self.position, self.momentum * d / np.linalg.norm(d),
                                     self.charge, self.time)


@dataclass(frozen=True)
class SimulatedTrack:
    particle: Particle
    hits: Tuple[SurfaceHit, ...]
    interactions: Tuple[MaterialInteraction, ...]
    end_parameters: CurvilinearParameters
    status: PropagatorStatus


@dataclass
class SimulatorConfig:
    max_path_length: float = 10_000.0
    max_steps: int = 1000
    material_interaction: bool = True
    selector: SurfaceSelector = field(default_factory=SurfaceSelector)


class Simulator:
    def __init__(self, propagator: Propagator, config: Optional[SimulatorConfig] = None) -> None:
        self.propagator = propagator
        self.config = config if config is not None else SimulatorConfig()

    def _options(self, particle: Particle) -> PropagatorOptions:
        actions = [SurfaceCollector(self.config.selector)]
        if self.config.material_interaction:
            actions.append(MaterialInteractor())
        return PropagatorOptions(
            max_path_length=self.config.max_path_length,
            max_steps=self.config.max_steps,
            mass=particle.mass,
            actions=actions,
            aborters=[EndOfWorldReached()],
        )

    def simulate(self, particle: Particle) -> Result[SimulatedTrack]:
        if not particle.barcode.is_primary:
            logger.debug("Rejecting particle %s", particle.barcode)
            return Result.failure(SimulatorError.INVALID_INPUT_PARTICLE_ID)
        result = self.propagator.propagate(particle.parameters(), self._options(particle))
        interactions = ()
        if self.config.material_interaction:
            interactions = tuple(result[MaterialInteractor].interactions)
        track = SimulatedTrack(
            particle=particle,
            hits=tuple(result[SurfaceCollector].collected),
            interactions=interactions,
            end_parameters=result.end_parameters,
            status=result.status,
        )
        return Result.success(track)

    def simulate_all(self, particles: Iterable[Particle],
                     max_workers: Optional[int] = None) -> List[Result[SimulatedTrack]]:
        """Simulate independent particles concurrently; output order follows input."""
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            return list(pool.map(self.simulate, particles))
