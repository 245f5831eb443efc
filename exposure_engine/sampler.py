"""
Exposure sampling by ray casting against the occluder set.

For each surface sample:
- sun-hours: share of valid sun positions that reach the sample unobstructed
- daylight: one straight-up sky probe blended with surface horizontality
- wind: orientation of the surface relative to the prevailing wind (no rays)

Every value is a normalized exposure in [0, 1]; the scaled value carries the
metric's own units (hours for sun-hours).
"""

import logging

import numpy as np
import pyvista as pv
from tqdm import tqdm

from exposure_engine import config
from exposure_engine.models import METRIC_VALUE_TYPES, AnalysisMode, ExposureResult

logger = logging.getLogger(__name__)

UP = np.array([0.0, 0.0, 1.0])


def wind_direction(azimuth_deg: float = config.PREVAILING_WIND_AZIMUTH_DEG) -> np.ndarray:
    """
    Horizontal unit vector pointing toward where the wind comes from.

    Args:
        azimuth_deg: Compass bearing of the wind source (0 = north, 90 = east)
    """
    rad = np.deg2rad(azimuth_deg)
    return np.array([np.sin(rad), np.cos(rad), 0.0])


def first_hit_distance(
    occluders: pv.PolyData,
    origin: np.ndarray,
    direction: np.ndarray,
    tolerance: float = config.HIT_TOLERANCE,
    ray_length: float = config.RAY_LENGTH,
):
    """
    Distance to the nearest occluder hit beyond the tolerance, or None.

    Hits within `tolerance` of the origin are self-intersections of the
    surface the ray starts on and are ignored.
    """
    if occluders.n_cells == 0:
        return None
    ray_end = origin + direction * ray_length
    intersection, _ = occluders.ray_trace(origin, ray_end)
    if len(intersection) == 0:
        return None
    distances = np.linalg.norm(np.asarray(intersection).reshape(-1, 3) - origin, axis=1)
    distances = distances[distances > tolerance]
    if len(distances) == 0:
        return None
    return float(distances.min())


def is_occluded(occluders: pv.PolyData, origin: np.ndarray, direction: np.ndarray) -> bool:
    return first_hit_distance(occluders, origin, direction) is not None


def _finite_or_neutral(value: float) -> float:
    if not np.isfinite(value):
        logger.warning(f"Non-finite exposure value {value}, using neutral {config.NEUTRAL_VALUE}")
        return config.NEUTRAL_VALUE
    return float(value)


def _ray_origin(position: np.ndarray, normal: np.ndarray) -> np.ndarray:
    return position + normal * config.RAY_EPSILON


def solar_exposure(sample, occluders: pv.PolyData, sun_dirs: np.ndarray) -> float:
    """
    Fraction of valid sun directions that light the sample.

    Directions the surface faces away from count as not lit and are never
    ray-cast. With no valid directions the exposure is 0.
    """
    if len(sun_dirs) == 0:
        return 0.0
    position = np.asarray(sample.position)
    normal = np.asarray(sample.normal)
    origin = _ray_origin(position, normal)

    lit = 0
    for sun_dir in sun_dirs:
        if np.dot(normal, sun_dir) <= 0:
            continue
        if not is_occluded(occluders, origin, sun_dir):
            lit += 1
    return lit / len(sun_dirs)


def sky_exposure(sample, occluders: pv.PolyData) -> float:
    """Daylight proxy: 0 under cover, else base + weight * max(0, n·up)."""
    position = np.asarray(sample.position)
    normal = np.asarray(sample.normal)
    if is_occluded(occluders, _ray_origin(position, normal), UP):
        return 0.0
    return config.SKY_BASE + config.SKY_HORIZONTAL_WEIGHT * max(0.0, float(np.dot(normal, UP)))


def wind_exposure(sample, wind_dir: np.ndarray) -> float:
    """Windward faces approach 1, leeward faces 0."""
    return (float(np.dot(np.asarray(sample.normal), wind_dir)) + 1.0) / 2.0


def _valid_sun_directions(direction_set) -> np.ndarray:
    dirs = [s.direction for s in (direction_set or []) if s.valid]
    return np.asarray(dirs, dtype=float).reshape(-1, 3)


def sample(
    samples: list,
    occluders: pv.PolyData,
    mode,
    direction_set=None,
    window_hours: float = config.SUN_WINDOW_HOURS,
    show_progress: bool = config.SHOW_PROGRESS,
) -> list:
    """
    Compute exposure for each surface sample.

    Args:
        samples: List of SurfaceSample
        occluders: Occluder set from `build_occluder_set`
        mode: AnalysisMode (or its string form); must not be 'none'
        direction_set: Sun-hours: list of SunSample. Wind: optional wind
            source vector (defaults to the prevailing wind). Ignored for daylight.
        window_hours: Nominal daylight hours represented by the sun samples
        show_progress: Display a tqdm progress bar

    Returns:
        List of ExposureResult aligned with `samples`
    """
    mode = AnalysisMode.parse(mode)
    if mode is AnalysisMode.NONE:
        raise ValueError("Cannot sample exposure for mode 'none'")

    # Direction vectors are prepared once per pass, not per sample
    if mode is AnalysisMode.SUN_HOURS:
        sun_dirs = _valid_sun_directions(direction_set)
        if len(sun_dirs) == 0:
            logger.warning("No sun samples above the horizon; sun-hours exposure is 0")
    elif mode is AnalysisMode.WIND:
        wind_dir = wind_direction() if direction_set is None else np.asarray(direction_set, dtype=float)
        norm = np.linalg.norm(wind_dir)
        wind_dir = wind_dir / norm if norm > 0 else wind_direction()

    value_type = METRIC_VALUE_TYPES[mode.metric]
    scale = window_hours if mode is AnalysisMode.SUN_HOURS else 1.0

    results = []
    pbar = tqdm(total=len(samples), desc=f"Computing {mode.value}", unit="points",
                disable=not show_progress)

    for surface_sample in samples:
        if surface_sample.degenerate:
            raw = config.NEUTRAL_VALUE
        elif mode is AnalysisMode.SUN_HOURS:
            raw = solar_exposure(surface_sample, occluders, sun_dirs)
        elif mode is AnalysisMode.DAYLIGHT:
            raw = sky_exposure(surface_sample, occluders)
        else:
            raw = wind_exposure(surface_sample, wind_dir)
        raw = _finite_or_neutral(raw)

        scaled = value_type(raw * scale)

        results.append(ExposureResult(sample=surface_sample, raw_value=raw, scaled_value=scaled))
        pbar.update(1)

    if results:
        pbar.set_postfix({'mean_raw': f'{np.mean([r.raw_value for r in results]):.3f}'})
    pbar.close()

    return results
