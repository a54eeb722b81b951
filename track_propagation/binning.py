"""
Bin utilities: immutable descriptions of how up to three coordinates are
discretised into bins.
"""
import math
from enum import Enum
from typing import Iterable, Mapping, Optional, Sequence, Tuple

import numpy as np

from ._core import _search_equidistant, _search_arbitrary


class BinningValue(Enum):
    X = "x"
    Y = "y"
    Z = "z"
    R = "r"
    PHI = "phi"
    RPHI = "rphi"
    H = "h"
    ETA = "eta"
    MAG = "mag"


class BinningOption(Enum):
    OPEN = "open"
    CLOSED = "closed"


class BinningType(Enum):
    EQUIDISTANT = "equidistant"
    ARBITRARY = "arbitrary"


# binning values read from the first local coordinate; all others use the second
_LOCAL_FIRST = (BinningValue.X, BinningValue.R, BinningValue.RPHI)


class BinningData:
    """One binned axis."""

    __slots__ = ("value_type", "option", "binning_type", "_bins", "_min", "_max",
                 "_step", "_boundaries")

    def __init__(
        self,
        value_type: BinningValue,
        *,
        bins: Optional[int] = None,
        range: Optional[Tuple[float, float]] = None,
        boundaries: Optional[Sequence[float]] = None,
        option: BinningOption = BinningOption.OPEN,
    ) -> None:
        if boundaries is not None:
            b = np.array(boundaries, dtype=np.float64)
            if b.ndim != 1 or b.shape[0] < 2:
                raise ValueError("Arbitrary binning needs at least two boundaries.")
            if np.any(np.diff(b) <= 0.0):
                raise ValueError("Bin boundaries must be strictly increasing.")
            n_bins = b.shape[0] - 1
            vmin, vmax = float(b[0]), float(b[-1])
            btype = BinningType.ARBITRARY
        elif bins is not None and range is not None:
            n_bins = int(bins)
            if n_bins < 1:
                raise ValueError(f"Binning along {value_type.value} needs at least one bin, got {n_bins}.")
            vmin, vmax = float(range[0]), float(range[1])
            if not vmax > vmin:
                raise ValueError("Binning range must satisfy min < max.")
            b = np.linspace(vmin, vmax, n_bins + 1)
            btype = BinningType.EQUIDISTANT
        else:
            raise ValueError("Must specify either bins+range or boundaries.")

        b.setflags(write=False)
        object.__setattr__(self, "value_type", value_type)
        object.__setattr__(self, "option", option)
        object.__setattr__(self, "binning_type", btype)
        object.__setattr__(self, "_bins", n_bins)
        object.__setattr__(self, "_min", vmin)
        object.__setattr__(self, "_max", vmax)
        object.__setattr__(self, "_step", (vmax - vmin) / n_bins)
        object.__setattr__(self, "_boundaries", b)

    def __setattr__(self, name, value):
        raise AttributeError(f"{type(self).__name__} is immutable")

    @classmethod
    def from_dict(cls, config: Mapping) -> "BinningData":
        """
        Build from a serialized description, e.g.::

            {"value": "phi", "option": "closed", "bins": 12, "min": -3.14, "max": 3.14}
            {"value": "z", "boundaries": [-100, -20, 20, 100]}
        """
        value_type = BinningValue(config["value"])
        option = BinningOption(config.get("option", "open"))
        if "boundaries" in config:
            return cls(value_type, boundaries=config["boundaries"], option=option)
        return cls(value_type, bins=config["bins"],
                   range=(config["min"], config["max"]), option=option)

    # ---------------------------------------------------------------------
    # Properties
    # ---------------------------------------------------------------------
    @property
    def bins(self) -> int:
        return self._bins

    @property
    def min(self) -> float:
        return self._min

    @property
    def max(self) -> float:
        return self._max

    @property
    def boundaries(self) -> np.ndarray:
        return self._boundaries

    def center(self, bin: int) -> float:
        return 0.5 * float(self._boundaries[bin] + self._boundaries[bin + 1])

    # ---------------------------------------------------------------------
    # Lookup
    # ---------------------------------------------------------------------
    def value(self, position: Iterable[float]) -> float:
        """Project a 2D local or 3D global position onto this axis."""
        p = np.asarray(position, dtype=np.float64)
        vt = self.value_type
        if p.shape[0] == 2:
            return float(p[0] if vt in _LOCAL_FIRST else p[1])
        x, y, z = float(p[0]), float(p[1]), float(p[2])
        if vt is BinningValue.X:
            return x
        if vt is BinningValue.Y:
            return y
        if vt is BinningValue.Z:
            return z
        perp = math.hypot(x, y)
        if vt is BinningValue.R:
            return perp
        if vt is BinningValue.PHI:
            return math.atan2(y, x)
        if vt is BinningValue.RPHI:
            return perp * math.atan2(y, x)
        if vt is BinningValue.H:
            return math.atan2(perp, z)
        if vt is BinningValue.ETA:
            return math.asinh(z / perp) if perp > 0.0 else math.copysign(math.inf, z)
        return math.sqrt(x * x + y * y + z * z)

    def search(self, value: float) -> int:
        closed = self.option is BinningOption.CLOSED
        if self.binning_type is BinningType.EQUIDISTANT:
            return int(_search_equidistant(value, self._min, self._step,
                                           self._bins, closed))
        return int(_search_arbitrary(value, self._boundaries, closed))

    def search_position(self, position: Iterable[float]) -> int:
        return self.search(self.value(position))

    def inside(self, position: Iterable[float]) -> bool:
        if self.option is BinningOption.CLOSED:
            return True
        v = self.value(position)
        return self._min <= v <= self._max

    def __repr__(self) -> str:
        return (f"BinningData({self.value_type.value}, bins={self._bins}, "
                f"range=({self._min:g}, {self._max:g}), {self.option.value})")


class BinUtility:
    """
    Immutable set of up to three binned axes.

    Axes beyond :meth:`dimensions` report a single bin and index ``0``.
    """

    __slots__ = ("_data",)

    def __init__(self, *binning_data: BinningData) -> None:
        if len(binning_data) > 3:
            raise ValueError("A BinUtility supports at most three dimensions.")
        for bd in binning_data:
            if not isinstance(bd, BinningData):
                raise TypeError(f"Expected BinningData, got {type(bd).__name__}.")
        object.__setattr__(self, "_data", tuple(binning_data))

    def __setattr__(self, name, value):
        raise AttributeError("BinUtility is immutable")

    @classmethod
    def from_dicts(cls, configs: Sequence[Mapping]) -> "BinUtility":
        return cls(*(BinningData.from_dict(c) for c in configs))

    def __add__(self, other: "BinUtility") -> "BinUtility":
        return BinUtility(*(self._data + other._data))

    @property
    def binning_data(self) -> Tuple[BinningData, ...]:
        return self._data

    def dimensions(self) -> int:
        return len(self._data)

    def bins(self, axis: Optional[int] = None) -> int:
        """Bins along *axis*; without an axis, the total number of cells."""
        if axis is None:
            return self.bins(0) * self.bins(1) * self.bins(2)
        if axis >= len(self._data):
            return 1
        return self._data[axis].bins

    def binning_value(self, axis: int = 0) -> BinningValue:
        return self._data[axis].value_type

    def inside(self, position: Iterable[float]) -> bool:
        return all(bd.inside(position) for bd in self._data)

    def bin(self, position: Iterable[float], axis: int = 0) -> int:
        if axis >= len(self._data):
            return 0
        return self._data[axis].search_position(position)

    def bin_triple(self, position: Iterable[float]) -> Tuple[int, int, int]:
        return (self.bin(position, 0), self.bin(position, 1), self.bin(position, 2))

    def __repr__(self) -> str:
        return f"BinUtility({', '.join(repr(bd) for bd in self._data)})"
