"""
Charged-particle track propagation through a magnetic field and a binned
detector geometry.
"""
from .aborters import (
    AbortList,
    EndOfWorldReached,
    PathLimitReached,
    PropagatorStatus,
    StepLimitReached,
    SurfaceReached,
)
from .actions import (
    ActionList,
    ActionResults,
    MaterialInteractor,
    SteppingLogger,
    SurfaceCollector,
    SurfaceHit,
    SurfaceSelector,
)
from .binned_array import BinnedArray
from .binning import BinningData, BinningOption, BinningValue, BinUtility
from .errors import (
    PropagatorError,
    Result,
    SimulatorError,
    SurfaceError,
    TrackingError,
)
from .field import ConstantField, MagneticField, NullField
from .geometry import (
    DetectorElement,
    GeometryID,
    Layer,
    PlaneSurface,
    RectangleBounds,
    SurfaceMaterial,
    TrackingVolume,
)
from .navigator import NavigationState, Navigator, VoidNavigator
from .parameters import BoundParameters, CurvilinearParameters
from .propagator import Propagator, PropagatorOptions, PropagatorResult
from .stepper import ConstrainedStep, ConstraintType, RungeKuttaStepper, StraightLineStepper

__all__ = [
    "AbortList", "EndOfWorldReached", "PathLimitReached", "PropagatorStatus",
    "StepLimitReached", "SurfaceReached",
    "ActionList", "ActionResults", "MaterialInteractor", "SteppingLogger",
    "SurfaceCollector", "SurfaceHit", "SurfaceSelector",
    "BinnedArray", "BinningData", "BinningOption", "BinningValue", "BinUtility",
    "PropagatorError", "Result", "SimulatorError", "SurfaceError", "TrackingError",
    "ConstantField", "MagneticField", "NullField",
    "DetectorElement", "GeometryID", "Layer", "PlaneSurface", "RectangleBounds",
    "SurfaceMaterial", "TrackingVolume",
    "NavigationState", "Navigator", "VoidNavigator",
    "BoundParameters", "CurvilinearParameters",
    "Propagator", "PropagatorOptions", "PropagatorResult",
    "ConstrainedStep", "ConstraintType", "RungeKuttaStepper", "StraightLineStepper",
]
