"""
Pytest configuration and fixtures for exposure engine tests.

Provides reusable test fixtures for:
- Target meshes (roof triangle, wall quad)
- Occluder geometry (enclosing box, low canopy)
- Regulation documents
- A controllable clock for the orchestrator
"""

import sys
from datetime import datetime
from pathlib import Path

import numpy as np
import pytest
import pyvista as pv

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from exposure_engine.models import Credit, MeshData, Regulation, SceneSnapshot


def mesh_from_polydata(poly: pv.PolyData, mesh_id: str) -> MeshData:
    """Convert a PyVista primitive into an occluder MeshData (no normals)."""
    poly = poly.triangulate()
    faces = poly.faces.reshape(-1, 4)[:, 1:]
    return MeshData(id=mesh_id, positions=np.asarray(poly.points), faces=faces)


# =============================================================================
# GEOMETRY FIXTURES
# =============================================================================

@pytest.fixture
def roof_mesh() -> MeshData:
    """Horizontal roof triangle at z=10 with upward normals."""
    positions = np.array([[0.0, 0.0, 10.0], [1.0, 0.0, 10.0], [0.0, 1.0, 10.0]])
    normals = np.tile([0.0, 0.0, 1.0], (3, 1))
    return MeshData(id="roof", positions=positions, normals=normals)


@pytest.fixture
def wall_mesh() -> MeshData:
    """Vertical wall quad (two triangles) facing north-east, into the prevailing wind."""
    n = np.array([np.sin(np.pi / 4), np.cos(np.pi / 4), 0.0])
    base = np.array([50.0, 50.0, 0.0])
    tangent = np.array([n[1], -n[0], 0.0])
    corners = [base, base + tangent, base + tangent + [0, 0, 3], base + [0, 0, 3]]
    positions = np.array([corners[0], corners[1], corners[2], corners[0], corners[2], corners[3]])
    normals = np.tile(n, (6, 1))
    return MeshData(id="wall", positions=positions, normals=normals)


@pytest.fixture
def enclosure() -> MeshData:
    """Closed box around the roof triangle, blocking every direction."""
    return mesh_from_polydata(
        pv.Cube(center=(0.3, 0.3, 10.0), x_length=20.0, y_length=20.0, z_length=20.0),
        "enclosure",
    )


@pytest.fixture
def scene(roof_mesh) -> SceneSnapshot:
    """Unobstructed roof at 40°N on the prime meridian."""
    return SceneSnapshot(meshes=[roof_mesh], latitude=40.0, longitude=0.0)


@pytest.fixture
def summer_day() -> datetime:
    return datetime(2024, 6, 21)


# =============================================================================
# REGULATION FIXTURES
# =============================================================================

@pytest.fixture
def unrelated_regulation() -> Regulation:
    """Active certification with no daylight numbers (defaults apply)."""
    return Regulation(
        name="LEED v4",
        credits=[Credit(name="Optimize Energy Performance", requirements=["Reduce energy use by 10 percent"])],
    )


@pytest.fixture
def sunlight_regulation() -> Regulation:
    return Regulation(
        name="IGBC",
        credits=[Credit(name="Daylighting", requirements=["Minimum 2 hours direct sunlight"])],
    )


# =============================================================================
# CLOCK
# =============================================================================

class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
