"""
Sun position calculation.

Wraps pvlib's solar position algorithm and converts its output to the
engine's convention: azimuth measured from south, increasing toward west,
altitude above the horizon, both in radians. Direction vectors use the local
scene frame (east = +x, north = +y, up = +z).
"""

import logging
from datetime import datetime, timedelta, timezone

import numpy as np
import pandas as pd
import pvlib

from exposure_engine import config
from exposure_engine.models import SunSample

logger = logging.getLogger(__name__)


def _standard_meridian_tz(longitude: float) -> timezone:
    """Fixed-offset zone of the standard meridian nearest the site (15° per hour)."""
    return timezone(timedelta(hours=int(round(longitude / 15.0))))


def _to_index(timestamps, longitude: float) -> pd.DatetimeIndex:
    """
    Build a tz-aware index.

    Naive timestamps are read as local clock time at the site, approximated by
    the nearest standard meridian. Aware timestamps are used as given.
    """
    index = pd.DatetimeIndex(list(timestamps))
    if index.tz is None:
        index = index.tz_localize(_standard_meridian_tz(longitude))
    return index


def sun_direction(azimuth: float, altitude: float) -> np.ndarray:
    """
    Unit vector pointing toward the sun.

    Args:
        azimuth: Radians from south, increasing toward west
        altitude: Radians above the horizon

    Returns:
        Array (x, y, z) with east = +x, north = +y, up = +z
    """
    cos_alt = np.cos(altitude)
    return np.array([
        -np.sin(azimuth) * cos_alt,
        -np.cos(azimuth) * cos_alt,
        np.sin(altitude),
    ])


def sun_positions(timestamps, latitude: float, longitude: float) -> list:
    """
    Compute sun samples for a sequence of timestamps.

    Samples with the sun at or below the horizon are returned too; callers
    check `SunSample.valid` before using them.

    Args:
        timestamps: Iterable of datetimes (naive = local clock time at the site)
        latitude: Site latitude (degrees)
        longitude: Site longitude (degrees)

    Returns:
        List of SunSample, one per timestamp, in input order
    """
    index = _to_index(timestamps, longitude)
    if len(index) == 0:
        return []

    solar_pos = pvlib.solarposition.get_solarposition(index, latitude, longitude)

    # pvlib azimuth: 0° = North, 90° = East. Engine azimuth: 0 = South, toward West.
    azimuth_rad = np.mod(np.deg2rad(solar_pos['azimuth'].values) - np.pi, 2 * np.pi)
    altitude_rad = np.deg2rad(solar_pos['elevation'].values)

    samples = []
    for ts, az, alt in zip(index, azimuth_rad, altitude_rad):
        direction = sun_direction(az, alt)
        samples.append(SunSample(
            timestamp=ts.to_pydatetime(),
            azimuth=float(az),
            altitude=float(alt),
            direction=tuple(float(c) for c in direction),
        ))
    return samples


def position(timestamp: datetime, latitude: float, longitude: float) -> tuple:
    """
    Sun azimuth and altitude (radians) for one instant.

    Always returns a value; the sun may be below the horizon (altitude <= 0).
    """
    sample = sun_positions([timestamp], latitude, longitude)[0]
    return sample.azimuth, sample.altitude


def daily_window_times(
    reference_date,
    start_hour: float = config.SUN_WINDOW_START_HOUR,
    end_hour: float = config.SUN_WINDOW_END_HOUR,
    count: int = config.SUN_SAMPLE_COUNT,
) -> list:
    """Evenly spaced local times spanning the daylight window on the reference date."""
    day = pd.Timestamp(reference_date).normalize()
    hours = np.linspace(start_hour, end_hour, count)
    return [(day + pd.Timedelta(hours=float(h))).to_pydatetime() for h in hours]


def window_sun_samples(reference_date, latitude: float, longitude: float) -> list:
    """
    Sun samples for the configured window on the reference date.

    Returns every sample; polar night simply yields no valid ones.
    """
    samples = sun_positions(daily_window_times(reference_date), latitude, longitude)
    n_valid = sum(1 for s in samples if s.valid)
    logger.info(f"Sun samples: {n_valid}/{len(samples)} above horizon "
                f"at ({latitude:.4f}°, {longitude:.4f}°)")
    return samples
