"""
Magnetic field providers.
"""
from typing import Iterable, Protocol, runtime_checkable

import numpy as np


@runtime_checkable
class MagneticField(Protocol):
    """Anything returning the field [T] at a global position [mm]."""

    def field_at(self, position: np.ndarray) -> np.ndarray: ...


class ConstantField:
    """Homogeneous field, the same everywhere."""

    def __init__(self, bfield: Iterable[float]) -> None:
        self.bfield = np.asarray(bfield, dtype=np.float64)
        self.bfield.setflags(write=False)

    def field_at(self, position: np.ndarray) -> np.ndarray:
        return self.bfield

    def __repr__(self) -> str:
        return f"ConstantField({tuple(self.bfield)})"


class NullField(ConstantField):
    def __init__(self) -> None:
        super().__init__((0.0, 0.0, 0.0))
