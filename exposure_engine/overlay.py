"""
Overlay artifacts carrying per-vertex classification colours.

An overlay is parented to a source mesh by id but never modifies it:
removing the overlay leaves the source mesh exactly as it was.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import numpy as np
import pyvista as pv

from exposure_engine.models import MeshData
from exposure_engine.scene import to_world

logger = logging.getLogger(__name__)


class OverlayState(Enum):
    ABSENT = "absent"
    ACTIVE = "active"


@dataclass(frozen=True)
class Overlay:
    """
    Colour buffer (N, 3) of RGB floats in [0, 1], aligned 1:1 with the owner's vertices.

    Presence in an OverlayBuilder is what makes an overlay active.
    """

    owner_mesh_id: str
    colors: np.ndarray

    @property
    def n_vertices(self) -> int:
        return len(self.colors)

    def to_rgb8(self) -> np.ndarray:
        return np.round(np.asarray(self.colors) * 255).astype(np.uint8)

    def to_polydata(self, mesh: MeshData) -> pv.PolyData:
        """
        Separate world-space PyVista mesh carrying the colours as point data.

        Args:
            mesh: The owning source mesh (read, never modified)

        Returns:
            New PolyData with an 'exposure_rgb' uint8 point array
        """
        if mesh.id != self.owner_mesh_id:
            raise ValueError(f"Overlay belongs to {self.owner_mesh_id}, not {mesh.id}")
        if mesh.n_vertices != self.n_vertices:
            raise ValueError(
                f"Overlay has {self.n_vertices} colours but mesh {mesh.id} has {mesh.n_vertices} vertices"
            )
        positions, _ = to_world(mesh)
        if mesh.faces is not None:
            triangles = mesh.faces
        elif mesh.n_vertices % 3 == 0:
            triangles = np.arange(mesh.n_vertices).reshape(-1, 3)
        else:
            triangles = None

        if triangles is not None and len(triangles):
            faces = np.column_stack([np.full(len(triangles), 3), triangles]).ravel()
            poly = pv.PolyData(positions.copy(), faces)
        else:
            poly = pv.PolyData(positions.copy())
        poly.point_data['exposure_rgb'] = self.to_rgb8()
        return poly


def make_overlay(mesh_id: str, color_buffer) -> Overlay:
    colors = np.array(color_buffer, dtype=np.float32).reshape(-1, 3)
    colors.setflags(write=False)
    return Overlay(owner_mesh_id=mesh_id, colors=colors)


class OverlayBuilder:
    """
    Create, replace and remove overlays keyed by mesh id.

    `on_apply(overlay)` and `on_remove(mesh_id)` let the rendering host follow
    the lifecycle.
    """

    def __init__(
        self,
        on_apply: Optional[Callable] = None,
        on_remove: Optional[Callable] = None,
    ):
        self._overlays = {}
        self._on_apply = on_apply
        self._on_remove = on_remove

    def apply(self, mesh_id: str, color_buffer) -> Overlay:
        """Create or atomically replace the overlay of a mesh."""
        overlay = make_overlay(mesh_id, color_buffer)
        replaced = mesh_id in self._overlays
        # Single assignment: readers see either the old overlay or the new one
        self._overlays[mesh_id] = overlay
        logger.debug(f"{'Replaced' if replaced else 'Created'} overlay for mesh {mesh_id} "
                     f"({overlay.n_vertices} vertices)")
        if self._on_apply is not None:
            self._on_apply(overlay)
        return overlay

    def remove(self, mesh_id: str) -> bool:
        """Remove the overlay of a mesh. Returns False if there was none."""
        overlay = self._overlays.pop(mesh_id, None)
        if overlay is None:
            return False
        if self._on_remove is not None:
            self._on_remove(mesh_id)
        return True

    def remove_all(self) -> int:
        mesh_ids = list(self._overlays)
        for mesh_id in mesh_ids:
            self.remove(mesh_id)
        if mesh_ids:
            logger.info(f"Removed {len(mesh_ids)} overlays")
        return len(mesh_ids)

    def get(self, mesh_id: str) -> Optional[Overlay]:
        return self._overlays.get(mesh_id)

    def state(self, mesh_id: str) -> OverlayState:
        return OverlayState.ACTIVE if mesh_id in self._overlays else OverlayState.ABSENT

    @property
    def active_ids(self) -> list:
        return list(self._overlays)

    def __len__(self):
        return len(self._overlays)
