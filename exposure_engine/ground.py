"""
Ground-level sample grid for site heatmaps.

Lays a regular grid over the site, drops points under building footprints
and returns upward-facing surface samples that go through the same sampler
and classifier as building surfaces.
"""

import logging
from typing import Optional

import geopandas as gpd
import numpy as np
import pandas as pd

from exposure_engine import config
from exposure_engine.models import SurfaceSample

logger = logging.getLogger(__name__)

GROUND_MESH_ID = "ground"


def default_spacing(site_polygon) -> float:
    """Spacing giving roughly GROUND_TARGET_POINTS points, never below the minimum."""
    area = float(site_polygon.area)
    return max(config.GROUND_MIN_SPACING, float(np.sqrt(area / config.GROUND_TARGET_POINTS)))


def compute_ground_mask(
    grid_x: np.ndarray,
    grid_y: np.ndarray,
    site_polygon,
    footprints,
    buffer_distance: float = config.FOOTPRINT_BUFFER,
) -> np.ndarray:
    """
    Boolean mask of grid points inside the site and outside every footprint.

    Args:
        grid_x: X coordinates of grid points (1D array)
        grid_y: Y coordinates of grid points (1D array)
        site_polygon: Shapely polygon of the site
        footprints: Iterable of shapely footprint polygons
        buffer_distance: Outward footprint buffer in meters

    Returns:
        Boolean array: True for ground points
    """
    grid_points_gdf = gpd.GeoDataFrame(geometry=gpd.points_from_xy(grid_x, grid_y))
    mask = grid_points_gdf.within(site_polygon).values

    footprints = [f for f in (footprints or []) if f is not None and not f.is_empty]
    if footprints and mask.any():
        footprints_gdf = gpd.GeoDataFrame(geometry=footprints)
        if buffer_distance > 0:
            footprints_gdf = footprints_gdf.set_geometry(footprints_gdf.geometry.buffer(buffer_distance))
        # Points inside several footprints appear more than once; unique() collapses them
        joined = gpd.sjoin(grid_points_gdf[mask], footprints_gdf, how='inner', predicate='within')
        in_building = np.zeros(len(grid_points_gdf), dtype=bool)
        in_building[joined.index.unique().to_numpy()] = True
        mask &= ~in_building

    logger.info(f"Ground mask: {int(mask.sum())}/{len(mask)} grid points are open ground")
    return mask


def generate_ground_samples(
    site_polygon,
    footprints=None,
    spacing: Optional[float] = None,
    ground_z: float = 0.0,
    evaluation_height: float = config.GROUND_EVALUATION_HEIGHT,
) -> list:
    """
    Upward-facing samples on a regular grid over open ground.

    Args:
        site_polygon: Shapely polygon of the site (scene coordinates)
        footprints: Iterable of shapely building footprints to exclude
        spacing: Grid spacing in meters (default from site area)
        ground_z: Ground elevation
        evaluation_height: Height of the sample points above ground

    Returns:
        List of SurfaceSample with mesh_id 'ground'
    """
    if site_polygon is None or site_polygon.is_empty:
        return []
    spacing = spacing or default_spacing(site_polygon)

    x_min, y_min, x_max, y_max = site_polygon.bounds
    x_coords = np.arange(x_min, x_max, spacing)
    y_coords = np.arange(y_min, y_max, spacing)
    X, Y = np.meshgrid(x_coords, y_coords)
    grid_x = X.ravel()
    grid_y = Y.ravel()
    logger.info(f"Ground grid: {len(grid_x)} points at {spacing:.1f}m spacing")

    if len(grid_x) == 0:
        return []
    mask = compute_ground_mask(grid_x, grid_y, site_polygon, footprints)

    z = ground_z + evaluation_height
    return [
        SurfaceSample(
            position=(float(x), float(y), float(z)),
            normal=(0.0, 0.0, 1.0),
            mesh_id=GROUND_MESH_ID,
            index=i,
        )
        for i, (x, y) in enumerate(zip(grid_x[mask], grid_y[mask]))
    ]


def ground_table(results, colors) -> pd.DataFrame:
    """Tabulate ground results: x, y, z, raw, value, band, colour."""
    return pd.DataFrame({
        'x': [r.sample.position[0] for r in results],
        'y': [r.sample.position[1] for r in results],
        'z': [r.sample.position[2] for r in results],
        'raw': [r.raw_value for r in results],
        'value': [r.scaled_value.value for r in results],
        'band': [r.band.value for r in results],
        'color': [tuple(c) for c in colors],
    })
