"""
Read-only binned lookup of geometry objects.

A :class:`BinnedArray` trades memory (a dense 3D object grid that may repeat
the same reference over adjacent bins) for an O(1) "which object contains
this point" query without hashing or comparisons.
"""
import logging
from typing import Generic, Iterable, Optional, Sequence, Tuple, TypeVar

import numpy as np

from .binning import BinUtility

logger = logging.getLogger(__name__)

T = TypeVar("T")

Bins = Tuple[int, int, int]


def _unique_by_identity(objects: Iterable) -> Tuple:
    seen = {}
    for obj in objects:
        if obj is not None and id(obj) not in seen:
            seen[id(obj)] = obj
    return tuple(seen.values())


class BinnedArray(Generic[T]):
    """
    0D-3D array of objects, indexed through a :class:`BinUtility`.

    Construct with :meth:`single`, :meth:`from_pairs` or :meth:`from_grid`.
    The grid is stored as ``grid[i2, i1, i0]`` with ``None`` for empty cells.
    Instances are immutable and meant to be shared by reference; copying is
    refused.
    """

    __slots__ = ("_grid", "_objects", "_bin_utility")

    def __init__(self, grid: np.ndarray, bin_utility: Optional[BinUtility],
                 discovered: Optional[Iterable] = None) -> None:
        grid = np.array(grid, dtype=object)
        if grid.ndim != 3:
            raise ValueError("object grid must be 3-D")
        if bin_utility is None:
            if grid.shape != (1, 1, 1):
                raise ValueError("a BinnedArray without BinUtility holds exactly one cell")
        else:
            expected = (bin_utility.bins(2), bin_utility.bins(1), bin_utility.bins(0))
            if grid.shape != expected:
                raise ValueError(f"grid shape {grid.shape} does not match bin utility {expected}")
        grid.setflags(write=False)
        object.__setattr__(self, "_grid", grid)
        present = {id(obj) for obj in grid.flat if obj is not None}
        order = grid.flat if discovered is None else discovered
        objects = tuple(obj for obj in _unique_by_identity(order) if id(obj) in present)
        object.__setattr__(self, "_objects", objects)
        object.__setattr__(self, "_bin_utility", bin_utility)

    # ---------------------------------------------------------------------
    # Construction policies
    # ---------------------------------------------------------------------
    @classmethod
    def single(cls, obj: T) -> "BinnedArray[T]":
        """Wrap one object; every query returns it."""
        grid = np.empty((1, 1, 1), dtype=object)
        grid[0, 0, 0] = obj
        return cls(grid, None)

    @classmethod
    def from_pairs(cls, pairs: Sequence[Tuple[T, Iterable[float]]],
                   bin_utility: BinUtility) -> "BinnedArray[T]":
        """
        Fill from ``(object, position)`` pairs.

        Positions outside the bin utility's domain are dropped.  When two
        objects fall into the same bin the later one wins; the earlier object
        is kept in :meth:`array_objects` only if another cell still
        references it.
        """
        grid = np.empty((bin_utility.bins(2), bin_utility.bins(1), bin_utility.bins(0)),
                        dtype=object)
        discovered = []
        for obj, position in pairs:
            if not bin_utility.inside(position):
                logger.debug("Dropping %r at %s: outside of %r", obj, tuple(position), bin_utility)
                continue
            i0, i1, i2 = bin_utility.bin_triple(position)
            if grid[i2, i1, i0] is not None and grid[i2, i1, i0] is not obj:
                logger.debug("Bin (%d, %d, %d) overwritten by %r", i0, i1, i2, obj)
            grid[i2, i1, i0] = obj
            discovered.append(obj)
        return cls(grid, bin_utility, discovered)

    @classmethod
    def from_grid(cls, grid, bin_utility: BinUtility) -> "BinnedArray[T]":
        """Take a pre-built ``grid[i2][i1][i0]`` as given."""
        arr = np.empty((bin_utility.bins(2), bin_utility.bins(1), bin_utility.bins(0)),
                       dtype=object)
        n2, n1, n0 = arr.shape
        if (len(grid) != n2 or any(len(plane) != n1 for plane in grid)
                or any(len(row) != n0 for plane in grid for row in plane)):
            raise ValueError("grid shape does not match bin utility")
        for i2, plane in enumerate(grid):
            for i1, row in enumerate(plane):
                for i0, obj in enumerate(row):
                    arr[i2, i1, i0] = obj
        return cls(arr, bin_utility)

    # ---------------------------------------------------------------------
    # Immutability
    # ---------------------------------------------------------------------
    def __setattr__(self, name, value):
        raise AttributeError("BinnedArray is immutable")

    def __copy__(self):
        raise TypeError("BinnedArray cannot be copied, share the instance instead")

    def __deepcopy__(self, memo):
        raise TypeError("BinnedArray cannot be copied, share the instance instead")

    # ---------------------------------------------------------------------
    # Lookup
    # ---------------------------------------------------------------------
    def object(self, position: Iterable[float]) -> Tuple[Optional[T], Bins]:
        """
        Return ``(object, (i0, i1, i2))`` for a 2D local or 3D global position.

        The position is not range-checked: open axes clamp, closed axes wrap.
        """
        bu = self._bin_utility
        if bu is None:
            return self._grid[0, 0, 0], (0, 0, 0)
        p = np.asarray(position, dtype=np.float64)
        dim = bu.dimensions()
        i2 = bu.bin(p, 2) if dim > 2 else 0
        i1 = bu.bin(p, 1) if dim > 1 else 0
        i0 = bu.bin(p, 0) if dim > 0 else 0
        return self._grid[i2, i1, i0], (i0, i1, i2)

    def array_objects(self) -> Tuple[T, ...]:
        """Distinct stored objects in first-discovery order."""
        return self._objects

    def object_grid(self) -> np.ndarray:
        """Read-only ``grid[i2, i1, i0]``; repeated references are expected."""
        return self._grid

    def bin_utility(self) -> Optional[BinUtility]:
        return self._bin_utility

    def __len__(self) -> int:
        return len(self._objects)

    def __repr__(self) -> str:
        return f"BinnedArray(shape={self._grid.shape}, objects={len(self._objects)})"
