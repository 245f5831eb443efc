"""Compliance classification of scaled exposure values."""

import logging
from typing import Optional

import numpy as np
from matplotlib.colors import Normalize, hsv_to_rgb, to_rgb

from exposure_engine import config
from exposure_engine.models import Band, ThresholdSet

logger = logging.getLogger(__name__)

BAND_COLORS = {
    Band.BELOW_MINIMUM: to_rgb(config.COLOR_BELOW_MINIMUM),
    Band.MEETS_MINIMUM: to_rgb(config.COLOR_MEETS_MINIMUM),
    Band.EXCEEDS_TARGET: to_rgb(config.COLOR_EXCEEDS_TARGET),
}


def classify_band(value: float, minimum: float, target: float) -> Band:
    """
    Three-band classification.

    value >= target -> exceeds-target; minimum <= value < target ->
    meets-minimum; value < minimum -> below-minimum.
    """
    if value >= target:
        return Band.EXCEEDS_TARGET
    if value >= minimum:
        return Band.MEETS_MINIMUM
    return Band.BELOW_MINIMUM


def gradient_color(value: float, vmin: float, vmax: float) -> tuple:
    """Blue (low) to red (high) hue gradient over [vmin, vmax], clipped."""
    fraction = float(Normalize(vmin=vmin, vmax=vmax, clip=True)(value))
    if not np.isfinite(fraction):
        fraction = 0.0
    hue = config.GRADIENT_HUE_LOW + (config.GRADIENT_HUE_HIGH - config.GRADIENT_HUE_LOW) * fraction
    return tuple(float(c) for c in hsv_to_rgb([hue, 1.0, 1.0]))


def classify(scaled_value, thresholds: Optional[dict] = None) -> tuple:
    """
    Classify a typed exposure value.

    Args:
        scaled_value: Hours, DaylightFactor or WindExposure
        thresholds: Mapping Metric -> ThresholdSet (from `resolve_thresholds`),
            a single ThresholdSet, or None when no certification is active

    Returns:
        Tuple of (Band, rgb colour). Band.CONTINUOUS means the gradient was used.

    Raises:
        ValueError: If a ThresholdSet for a different metric is supplied
    """
    metric = scaled_value.metric
    value = float(scaled_value.value)

    if isinstance(thresholds, ThresholdSet):
        if thresholds.metric is not metric:
            raise ValueError(
                f"Cannot classify {metric.value} against {thresholds.metric.value} thresholds"
            )
        threshold = thresholds
    elif thresholds:
        threshold = thresholds.get(metric)
    else:
        threshold = None

    if threshold is None:
        vmin, vmax = config.GRADIENT_RANGES[metric.value]
        return Band.CONTINUOUS, gradient_color(value, vmin, vmax)

    band = classify_band(value, threshold.minimum, threshold.target)
    return band, BAND_COLORS[band]
