import itertools

import numpy as np
import pytest

from conftest import make_planes, make_volume
from track_propagation import (
    CurvilinearParameters,
    DetectorElement,
    Navigator,
    PlaneSurface,
    Propagator,
    PropagatorOptions,
    StraightLineStepper,
    SurfaceCollector,
    SurfaceMaterial,
    SurfaceSelector,
)
from track_propagation.geometry import GeometryID
from track_propagation.propagator import PropagatorState
from track_propagation.stepper import make_state

MATERIAL = SurfaceMaterial(thickness=0.3, x0=93.7)


@pytest.mark.parametrize(
    "sensitive, material, passive",
    list(itertools.product((False, True), repeat=3)),
)
def test_selector_truth_table(sensitive, material, passive):
    selector = SurfaceSelector(sensitive, material, passive)
    bare = PlaneSurface.perpendicular_to("z", 0.0)
    det = PlaneSurface.perpendicular_to("z", 0.0, detector_element=DetectorElement(1))
    mat = PlaneSurface.perpendicular_to("z", 0.0, material=MATERIAL)
    both = PlaneSurface.perpendicular_to("z", 0.0, detector_element=DetectorElement(2),
                                         material=MATERIAL)
    assert selector(bare) is passive
    assert selector(det) is (sensitive or passive)
    assert selector(mat) is (material or passive)
    assert selector(both) is (sensitive or material or passive)


def _mixed_planes():
    return [
        PlaneSurface.perpendicular_to("x", 1.0, geometry_id=GeometryID(layer=2),
                                      detector_element=DetectorElement(1)),
        PlaneSurface.perpendicular_to("x", 2.0, geometry_id=GeometryID(layer=4),
                                      material=MATERIAL),
        PlaneSurface.perpendicular_to("x", 3.0, geometry_id=GeometryID(layer=6)),
    ]


@pytest.mark.parametrize(
    "selector, expected",
    [
        (SurfaceSelector(), [0]),
        (SurfaceSelector(select_sensitive=False, select_material=True), [1]),
        (SurfaceSelector(select_sensitive=True, select_material=True), [0, 1]),
        (SurfaceSelector(select_passive=True), [0, 1, 2]),
        (SurfaceSelector(select_sensitive=False), []),
    ],
)
def test_collector_respects_selector(selector, expected):
    planes = _mixed_planes()
    start = CurvilinearParameters((0, 0, 0), (1.0, 0.0, 0.0), charge=1.0)
    options = PropagatorOptions(max_path_length=10.0, actions=[SurfaceCollector(selector)])
    result = Propagator(StraightLineStepper(), Navigator(make_volume(planes))).propagate(start, options)
    assert [h.surface for h in result[SurfaceCollector].collected] == [planes[k] for k in expected]


def test_collected_hits_are_monotonic_along_track():
    planes = make_planes((1.0, 2.0, 3.0, 4.0, 5.0))
    start = CurvilinearParameters((0, 0, 0), (1.0, 0.3, 0.1), charge=-1.0)
    options = PropagatorOptions(max_path_length=20.0, actions=[SurfaceCollector()])
    result = Propagator(StraightLineStepper(), Navigator(make_volume(planes, (0.0, 6.0)))).propagate(
        start, options)
    hits = result[SurfaceCollector].collected
    assert len(hits) == 5
    xs = [h.position[0] for h in hits]
    assert np.allclose(xs, [1.0, 2.0, 3.0, 4.0, 5.0])
    assert xs == sorted(xs)
    assert all(h.surface.on_surface(h.position) for h in hits)


class RevisitingNavigator:
    """Reports *surface* as current after each step listed in *on_steps*."""

    def __init__(self, surface, on_steps):
        self.surface = surface
        self.on_steps = set(on_steps)

    def initialize(self, state, stepper):
        self.status(state, stepper)

    def status(self, state, stepper):
        hit = state.steps in self.on_steps
        state.navigation.current_surface = self.surface if hit else None

    def target(self, state, stepper):
        pass


def test_recrossing_a_surface_appends_again():
    surface = PlaneSurface.perpendicular_to("x", 0.0, detector_element=DetectorElement(1))
    start = CurvilinearParameters((0, 0, 0), (1.0, 0.0, 0.0), charge=1.0)
    options = PropagatorOptions(max_path_length=5.0, max_step_size=1.0,
                                actions=[SurfaceCollector()])
    propagator = Propagator(StraightLineStepper(), RevisitingNavigator(surface, (2, 4)))
    result = propagator.propagate(start, options)

    assert result.steps == 5
    hits = result[SurfaceCollector].collected
    assert [h.surface for h in hits] == [surface, surface]
    assert np.allclose([h.position[0] for h in hits], [2.0, 4.0])


def test_collected_length_grows_by_one_per_selected_step():
    sensitive = PlaneSurface.perpendicular_to("x", 0.0, detector_element=DetectorElement(1))
    passive = PlaneSurface.perpendicular_to("x", 0.0)
    stepper = StraightLineStepper()
    state = PropagatorState(
        options=PropagatorOptions(),
        stepping=make_state(CurvilinearParameters((0, 0, 0), (1.0, 0.0, 0.0), charge=1.0)),
    )
    collector = SurfaceCollector()
    result = collector.make_result()

    sequence = [None, sensitive, passive, sensitive, sensitive, None]
    previous = 0
    for current in sequence:
        state.navigation.current_surface = current
        collector(state, stepper, result)
        expected = previous + (1 if current is sensitive else 0)
        assert len(result.collected) == expected
        previous = expected
    assert len(result.collected) == 3
