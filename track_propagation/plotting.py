"""
Trajectory and hit plots.
"""
from typing import Optional, Sequence

import numpy as np
import matplotlib.pyplot as plt
from mpl_toolkits.mplot3d import Axes3D  # noqa: F401

from .actions import Step, SurfaceHit


def plot_trajectory(
    steps: Sequence[Step],
    hits: Sequence[SurfaceHit] = (),
    ax: Optional[Axes3D] = None,
    color: str = 'C0',
    hit_color: str = 'C3',
    show: bool = True,
) -> Axes3D:
    """Plot a :class:`SteppingLogger` trajectory and collected surface hits in 3D."""
    if ax is None:
        fig = plt.figure()
        ax = fig.add_subplot(111, projection='3d')

    if steps:
        xyz = np.array([s.position for s in steps])
        ax.plot(xyz[:, 0], xyz[:, 1], xyz[:, 2], color=color, marker='.', linewidth=1.0)
    if hits:
        hxyz = np.array([h.position for h in hits])
        ax.scatter(hxyz[:, 0], hxyz[:, 1], hxyz[:, 2], color=hit_color, marker='o')

    ax.set_xlabel('x [mm]')
    ax.set_ylabel('y [mm]')
    ax.set_zlabel('z [mm]')

    if show:
        plt.show()
    return ax
