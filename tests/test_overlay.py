"""Tests for overlay lifecycle."""

import numpy as np
import pytest

from exposure_engine.overlay import OverlayBuilder, OverlayState, make_overlay

RED = [1.0, 0.0, 0.0]
GREEN = [0.0, 0.8, 0.0]


class TestOverlay:
    """Test the overlay artifact."""

    def test_colours_are_read_only(self):
        overlay = make_overlay("roof", [RED] * 3)
        assert overlay.colors.shape == (3, 3)
        with pytest.raises(ValueError):
            overlay.colors[0] = GREEN

    def test_builder_copies_buffer(self):
        buffer = np.array([RED] * 3)
        overlay = make_overlay("roof", buffer)
        buffer[:] = 0.0
        assert overlay.colors[0] == pytest.approx(RED)

    def test_to_rgb8(self):
        overlay = make_overlay("roof", [GREEN])
        assert overlay.to_rgb8().tolist() == [[0, 204, 0]]

    def test_to_polydata_leaves_source_untouched(self, roof_mesh):
        before = roof_mesh.positions.copy()
        poly = make_overlay("roof", [RED] * 3).to_polydata(roof_mesh)
        assert poly.n_points == 3
        assert poly.n_cells == 1
        assert poly.point_data['exposure_rgb'].tolist() == [[255, 0, 0]] * 3
        poly.points[:] = 0.0
        assert np.array_equal(roof_mesh.positions, before)

    def test_to_polydata_rejects_other_mesh(self, roof_mesh, wall_mesh):
        with pytest.raises(ValueError):
            make_overlay("roof", [RED] * 3).to_polydata(wall_mesh)
        with pytest.raises(ValueError):
            make_overlay("roof", [RED] * 2).to_polydata(roof_mesh)


class TestOverlayBuilder:
    """Test create, replace and remove."""

    def test_apply_and_replace(self):
        builder = OverlayBuilder()
        first = builder.apply("roof", [RED] * 3)
        second = builder.apply("roof", [GREEN] * 3)
        assert len(builder) == 1
        assert builder.get("roof") is second
        assert builder.get("roof") is not first
        assert builder.state("roof") is OverlayState.ACTIVE

    def test_remove(self):
        builder = OverlayBuilder()
        builder.apply("roof", [RED] * 3)
        assert builder.remove("roof") is True
        assert builder.remove("roof") is False
        assert builder.state("roof") is OverlayState.ABSENT
        assert builder.get("roof") is None

    def test_state_follows_membership(self):
        """An overlay is active exactly while the builder holds it."""
        builder = OverlayBuilder()
        overlay = builder.apply("roof", [RED] * 3)
        assert not hasattr(overlay, "state")
        assert builder.state("roof") is OverlayState.ACTIVE
        assert builder.state("wall") is OverlayState.ABSENT
        builder.remove("roof")
        assert builder.state("roof") is OverlayState.ABSENT

    def test_remove_all(self):
        builder = OverlayBuilder()
        builder.apply("roof", [RED] * 3)
        builder.apply("wall", [RED] * 6)
        assert builder.remove_all() == 2
        assert len(builder) == 0
        assert builder.remove_all() == 0

    def test_callbacks(self):
        applied, removed = [], []
        builder = OverlayBuilder(on_apply=applied.append, on_remove=removed.append)
        builder.apply("roof", [RED] * 3)
        builder.apply("wall", [RED] * 6)
        builder.remove_all()
        assert [o.owner_mesh_id for o in applied] == ["roof", "wall"]
        assert sorted(removed) == ["roof", "wall"]
