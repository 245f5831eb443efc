"""Tests for the ground-level heatmap."""

import numpy as np
import pytest
from shapely.geometry import box

from exposure_engine.ground import GROUND_MESH_ID, compute_ground_mask, default_spacing, generate_ground_samples
from exposure_engine.models import AnalysisMode, GroundSite, SceneSnapshot
from exposure_engine.orchestrator import analyze


class TestGroundGrid:
    """Test grid generation and footprint exclusion."""

    def test_default_spacing(self):
        assert default_spacing(box(0, 0, 20, 20)) == pytest.approx(2.0)
        assert default_spacing(box(0, 0, 1000, 1000)) == pytest.approx(np.sqrt(1e6 / 600))

    def test_footprints_are_excluded(self):
        footprint = box(5, 5, 10, 10)
        samples = generate_ground_samples(box(0, 0, 20, 20), [footprint], spacing=1.0)
        assert samples
        for s in samples:
            x, y, z = s.position
            assert not (4.75 <= x <= 10.25 and 4.75 <= y <= 10.25)
            assert z == pytest.approx(0.5)
            assert s.normal == (0.0, 0.0, 1.0)
            assert s.mesh_id == GROUND_MESH_ID

    def test_points_outside_site_are_dropped(self):
        mask = compute_ground_mask(np.array([5.0, 50.0]), np.array([5.0, 5.0]), box(0, 0, 10, 10), [])
        assert mask.tolist() == [True, False]

    def test_empty_site(self):
        assert generate_ground_samples(box(0, 0, 0, 0)) == []


class TestGroundAnalysis:
    """Test the ground heatmap inside an analysis pass."""

    def test_ground_table_in_report(self):
        site = GroundSite(polygon=box(0, 0, 20, 20), footprints=[box(5, 5, 10, 10)], spacing=2.0)
        scene = SceneSnapshot(meshes=[], site=site)
        result = analyze(scene, AnalysisMode.WIND, show_progress=False)
        table = result.report.ground
        assert len(table) == len(result.results[GROUND_MESH_ID]) > 0
        assert set(table.columns) == {'x', 'y', 'z', 'raw', 'value', 'band', 'color'}
        assert (table['value'] == 0.5).all()
        assert (table['band'] == 'continuous').all()
        assert GROUND_MESH_ID not in result.color_buffers
