"""
Scene preparation: world-space surface samples and the occluder set.

Both are derived from the host meshes at the start of a pass and discarded
afterwards.
"""

import logging
from typing import Optional

import numpy as np
import pyvista as pv

from exposure_engine.models import MeshData, SurfaceSample

logger = logging.getLogger(__name__)


def to_world(mesh: MeshData) -> tuple:
    """
    Apply the mesh world transform.

    Positions go through the full 4x4 matrix; normals through the
    inverse-transpose of its 3x3 part and are renormalised. Zero-length
    normals stay zero.

    Returns:
        Tuple of (positions, normals), each of shape (N, 3)
    """
    matrix = mesh.transform
    homogeneous = np.column_stack([mesh.positions, np.ones(len(mesh.positions))])
    world = homogeneous @ matrix.T
    w = world[:, 3:4]
    w = np.where(np.abs(w) > 1e-12, w, 1.0)
    positions = world[:, :3] / w

    normals = None
    if mesh.normals is not None:
        linear = matrix[:3, :3]
        try:
            normal_matrix = np.linalg.inv(linear).T
        except np.linalg.LinAlgError:
            logger.warning(f"Mesh {mesh.id}: singular transform, normals left untransformed")
            normal_matrix = np.eye(3)
        normals = mesh.normals @ normal_matrix.T
        lengths = np.linalg.norm(normals, axis=1, keepdims=True)
        with np.errstate(invalid='ignore', divide='ignore'):
            normals = np.where(lengths > 1e-12, normals / lengths, 0.0)
    return positions, normals


def validate_mesh(mesh: MeshData) -> list:
    """
    Check a host mesh for missing or inconsistent buffers.

    Returns:
        List of issue descriptions (empty if the mesh can be sampled)
    """
    issues = []
    if mesh.positions is None or len(mesh.positions) == 0:
        issues.append("missing position buffer")
    if mesh.normals is None or len(mesh.normals) == 0:
        issues.append("missing normal buffer")
    if not issues and len(mesh.positions) != len(mesh.normals):
        issues.append(
            f"position/normal count mismatch ({len(mesh.positions)} vs {len(mesh.normals)})"
        )
    return issues


def extract_samples(mesh: MeshData) -> Optional[list]:
    """
    One SurfaceSample per vertex of the mesh, in vertex-buffer order.

    Args:
        mesh: Host mesh

    Returns:
        List of SurfaceSample, or None if the mesh lacks usable buffers
        (logged as a warning; the pass continues with other meshes)
    """
    issues = validate_mesh(mesh)
    if issues:
        logger.warning(f"Skipping mesh {mesh.id}: {', '.join(issues)}")
        return None

    positions, normals = to_world(mesh)
    finite = np.isfinite(positions).all(axis=1) & np.isfinite(normals).all(axis=1)
    unit = np.linalg.norm(np.where(np.isfinite(normals), normals, 0.0), axis=1) > 0.5
    degenerate = ~(finite & unit)
    if degenerate.any():
        logger.warning(f"Mesh {mesh.id}: {int(degenerate.sum())} degenerate samples")

    return [
        SurfaceSample(
            position=tuple(float(c) for c in positions[i]),
            normal=tuple(float(c) for c in normals[i]),
            mesh_id=mesh.id,
            index=i,
            degenerate=bool(degenerate[i]),
        )
        for i in range(len(positions))
    ]


def _triangles(mesh: MeshData) -> Optional[np.ndarray]:
    if mesh.faces is not None:
        return mesh.faces
    if mesh.n_vertices % 3 != 0:
        return None
    return np.arange(mesh.n_vertices).reshape(-1, 3)


def build_occluder_set(meshes) -> pv.PolyData:
    """
    Merge all meshes into one world-space triangle mesh for ray tracing.

    The returned PolyData is treated as immutable for the duration of a pass;
    pyvista caches its ray-trace locator on first use, so every ray of the
    pass shares one spatial index.

    Args:
        meshes: Iterable of MeshData (targets and context geometry alike)

    Returns:
        PyVista PolyData (possibly empty)
    """
    all_points = []
    all_faces = []
    offset = 0
    seen = set()

    for mesh in meshes:
        if mesh.id in seen:
            continue
        seen.add(mesh.id)

        if mesh.positions is None or len(mesh.positions) == 0:
            logger.warning(f"Occluder {mesh.id}: missing position buffer, ignored")
            continue
        triangles = _triangles(mesh)
        if triangles is None or len(triangles) == 0:
            logger.warning(
                f"Occluder {mesh.id}: {mesh.n_vertices} vertices do not form triangles, ignored"
            )
            continue
        if (triangles.min() < 0 or triangles.max() >= mesh.n_vertices):
            logger.warning(f"Occluder {mesh.id}: face index out of range, ignored")
            continue

        positions, _ = to_world(mesh)
        all_points.append(positions)
        all_faces.append(triangles + offset)
        offset += len(positions)

    if not all_points:
        return pv.PolyData()

    points = np.vstack(all_points)
    triangles = np.vstack(all_faces)
    faces = np.column_stack([np.full(len(triangles), 3), triangles]).ravel()
    occluders = pv.PolyData(points, faces)
    logger.info(f"Occluder set: {occluders.n_points} points, {occluders.n_cells} triangles")
    return occluders
