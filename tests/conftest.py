import numpy as np
import pytest

from track_propagation import (
    BinningValue,
    CurvilinearParameters,
    DetectorElement,
    GeometryID,
    Layer,
    PlaneSurface,
    TrackingVolume,
)


def make_planes(xs=(1.0, 2.0, 3.0), **kwargs):
    """Sensitive planes perpendicular to x, one per layer."""
    return [
        PlaneSurface.perpendicular_to(
            "x", x,
            geometry_id=GeometryID(volume=1, layer=2 * (k + 1), sensitive=1),
            detector_element=DetectorElement(k + 1),
            **kwargs,
        )
        for k, x in enumerate(xs)
    ]


def make_volume(planes, extent=(0.0, 4.0)):
    return TrackingVolume.from_layers([Layer(p) for p in planes], BinningValue.X, extent)


@pytest.fixture
def planes():
    return make_planes()


@pytest.fixture
def volume(planes):
    return make_volume(planes)


@pytest.fixture
def start_x():
    return CurvilinearParameters(np.zeros(3), (1.0, 0.0, 0.0), charge=1.0)
