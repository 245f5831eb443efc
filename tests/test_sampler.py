"""Tests for exposure sampling."""

from datetime import datetime

import numpy as np
import pytest
import pyvista as pv

from exposure_engine.models import AnalysisMode, DaylightFactor, Hours, SurfaceSample, WindExposure
from exposure_engine.sampler import first_hit_distance, sample, wind_direction
from exposure_engine.scene import build_occluder_set, extract_samples
from exposure_engine.sun import window_sun_samples

from conftest import mesh_from_polydata


def make_sample(position, normal, degenerate=False):
    return SurfaceSample(
        position=tuple(position), normal=tuple(normal), mesh_id="t", index=0, degenerate=degenerate
    )


class CountingOccluders:
    """Occluder stand-in that records how many rays were cast."""

    n_cells = 1

    def __init__(self):
        self.calls = 0

    def ray_trace(self, origin, end_point):
        self.calls += 1
        return np.empty((0, 3)), np.empty(0, dtype=int)


@pytest.fixture
def summer_sun(summer_day):
    return window_sun_samples(summer_day, 40.0, 0.0)


class TestSunHours:
    """Test direct-sun exposure."""

    def test_unobstructed_roof_gets_full_window(self, roof_mesh, summer_sun):
        """All five samples lit -> 8 hours."""
        occluders = build_occluder_set([roof_mesh])
        results = sample(extract_samples(roof_mesh), occluders, AnalysisMode.SUN_HOURS,
                         summer_sun, show_progress=False)
        assert len(results) == 3
        for r in results:
            assert r.raw_value == pytest.approx(1.0)
            assert r.scaled_value == Hours(8.0)

    def test_enclosed_roof_gets_nothing(self, roof_mesh, enclosure, summer_sun):
        occluders = build_occluder_set([roof_mesh, enclosure])
        results = sample(extract_samples(roof_mesh), occluders, "sun-hours",
                         summer_sun, show_progress=False)
        assert all(r.scaled_value.value == 0.0 for r in results)

    def test_surface_facing_away_casts_no_rays(self, summer_sun):
        occluders = CountingOccluders()
        down = make_sample((0, 0, 10), (0, 0, -1))
        results = sample([down], occluders, AnalysisMode.SUN_HOURS, summer_sun, show_progress=False)
        assert results[0].raw_value == 0.0
        assert occluders.calls == 0

    def test_polar_night_is_zero(self, roof_mesh):
        night = window_sun_samples(datetime(2024, 12, 21), 80.0, 0.0)
        results = sample(extract_samples(roof_mesh), build_occluder_set([roof_mesh]),
                         AnalysisMode.SUN_HOURS, night, show_progress=False)
        assert all(r.scaled_value == Hours(0.0) for r in results)

    def test_window_hours_scale_the_value(self, roof_mesh, summer_sun):
        results = sample(extract_samples(roof_mesh), build_occluder_set([roof_mesh]),
                         AnalysisMode.SUN_HOURS, summer_sun, window_hours=6.0, show_progress=False)
        assert all(r.scaled_value == Hours(6.0) for r in results)

    def test_no_direction_set_is_zero(self, roof_mesh):
        results = sample(extract_samples(roof_mesh), build_occluder_set([]),
                         AnalysisMode.SUN_HOURS, None, show_progress=False)
        assert all(r.raw_value == 0.0 for r in results)


class TestHitTolerance:
    """Test self-intersection filtering near the ray origin."""

    @pytest.fixture
    def canopy(self):
        def _canopy(z):
            plane = pv.Plane(center=(0.0, 0.0, z), direction=(0, 0, 1), i_size=10, j_size=10)
            return build_occluder_set([mesh_from_polydata(plane, "canopy")])
        return _canopy

    def test_hit_within_tolerance_is_ignored(self, canopy):
        origin = np.array([0.2, 0.35, 10.1])
        assert first_hit_distance(canopy(10.25), origin, np.array([0.0, 0.0, 1.0])) is None

    def test_hit_beyond_tolerance_occludes(self, canopy):
        origin = np.array([0.2, 0.35, 10.1])
        distance = first_hit_distance(canopy(10.5), origin, np.array([0.0, 0.0, 1.0]))
        assert distance == pytest.approx(0.4)

    def test_empty_occluders_never_hit(self):
        assert first_hit_distance(pv.PolyData(), np.zeros(3), np.array([0.0, 0.0, 1.0])) is None


class TestDaylight:
    """Test the sky-view daylight proxy."""

    def test_open_horizontal_surface(self):
        results = sample([make_sample((0, 0, 0), (0, 0, 1))], build_occluder_set([]),
                         AnalysisMode.DAYLIGHT, show_progress=False)
        assert results[0].scaled_value.value == pytest.approx(1.0)

    def test_open_vertical_surface(self):
        results = sample([make_sample((0, 0, 0), (1, 0, 0))], build_occluder_set([]),
                         AnalysisMode.DAYLIGHT, show_progress=False)
        assert results[0].scaled_value.value == pytest.approx(0.2)

    def test_values_are_daylight_factors(self):
        results = sample([make_sample((0, 0, 0), (0, 0, 1))], build_occluder_set([]),
                         AnalysisMode.DAYLIGHT, show_progress=False)
        assert results[0].scaled_value == DaylightFactor(1.0)

    def test_covered_surface(self, roof_mesh, enclosure):
        occluders = build_occluder_set([enclosure])
        results = sample(extract_samples(roof_mesh), occluders, AnalysisMode.DAYLIGHT,
                         show_progress=False)
        assert all(r.scaled_value.value == 0.0 for r in results)


class TestWind:
    """Test orientation-based wind exposure."""

    def test_prevailing_wind_is_north_east(self):
        assert wind_direction() == pytest.approx([np.sqrt(0.5), np.sqrt(0.5), 0.0])

    def test_windward_leeward_and_roof(self):
        n = wind_direction()
        samples = [
            make_sample((0, 0, 0), n),
            make_sample((0, 0, 0), -n),
            make_sample((0, 0, 0), (0, 0, 1)),
        ]
        results = sample(samples, None, AnalysisMode.WIND, show_progress=False)
        assert [r.scaled_value.value for r in results] == pytest.approx([1.0, 0.0, 0.5])
        assert all(isinstance(r.scaled_value, WindExposure) for r in results)

    def test_custom_wind_direction(self):
        results = sample([make_sample((0, 0, 0), (1, 0, 0))], None, AnalysisMode.WIND,
                         direction_set=(2.0, 0.0, 0.0), show_progress=False)
        assert results[0].raw_value == pytest.approx(1.0)


class TestEdgeCases:
    """Test degenerate input and invalid modes."""

    def test_degenerate_sample_is_neutral(self, summer_sun):
        bad = make_sample((0, 0, 0), (0, 0, 0), degenerate=True)
        results = sample([bad], CountingOccluders(), AnalysisMode.SUN_HOURS, summer_sun,
                         show_progress=False)
        assert results[0].raw_value == 0.5
        assert results[0].scaled_value == Hours(4.0)

    def test_mode_none_is_rejected(self):
        with pytest.raises(ValueError):
            sample([], None, AnalysisMode.NONE, show_progress=False)

    def test_unknown_mode_is_rejected(self):
        with pytest.raises(ValueError):
            sample([], None, "thermal", show_progress=False)

    def test_empty_sample_list(self):
        assert sample([], None, AnalysisMode.WIND, show_progress=False) == []
