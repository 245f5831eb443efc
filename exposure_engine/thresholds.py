"""
Compliance threshold extraction from green-building certification text.

Requirement strings such as "Minimum 2 hours direct sunlight" or
"2.5% daylight factor required" are scanned for numbers with units. Within
one document the smallest value wins; across documents the largest of those
minimums wins (the strictest applicable rule). Missing numbers are not an
error: the engine falls back to default thresholds so classification is
always possible while a certification is active.
"""

import logging
import math
import re
from collections.abc import Mapping
from functools import lru_cache
from typing import Optional

from exposure_engine import config
from exposure_engine.models import Credit, Metric, Regulation, ThresholdSet

logger = logging.getLogger(__name__)

HOURS_PATTERN = re.compile(r'(\d+(?:\.\d+)?)\s*(?:hours?|hrs?)\b', re.IGNORECASE)
DAYLIGHT_FACTOR_PATTERN = re.compile(
    r'(\d+(?:\.\d+)?)\s*%\s*(?:daylight\s*factor|DF)\b', re.IGNORECASE
)

# Keys of explicitly declared thresholds on a regulation
EXPLICIT_KEYS = {
    "sunHours": Metric.SUN_HOURS,
    "daylightFactor": Metric.DAYLIGHT_FACTOR,
    "windExposure": Metric.WIND_EXPOSURE,
}

DEFAULT_THRESHOLDS = {
    Metric.SUN_HOURS: ThresholdSet(
        Metric.SUN_HOURS, config.DEFAULT_SUN_HOURS_MIN, config.DEFAULT_SUN_HOURS_TARGET
    ),
    Metric.DAYLIGHT_FACTOR: ThresholdSet(
        Metric.DAYLIGHT_FACTOR,
        config.DEFAULT_DAYLIGHT_FACTOR_MIN,
        config.DEFAULT_DAYLIGHT_FACTOR_TARGET,
    ),
}


def _scan_minimums(requirement_texts) -> dict:
    """Smallest value of each metric found in one set of requirement strings."""
    minimums = {}
    for text in requirement_texts:
        text = str(text)
        for match in HOURS_PATTERN.finditer(text):
            hours = float(match.group(1))
            if Metric.SUN_HOURS not in minimums or hours < minimums[Metric.SUN_HOURS]:
                minimums[Metric.SUN_HOURS] = hours
        for match in DAYLIGHT_FACTOR_PATTERN.finditer(text):
            df = float(match.group(1)) / 100.0
            if Metric.DAYLIGHT_FACTOR not in minimums or df < minimums[Metric.DAYLIGHT_FACTOR]:
                minimums[Metric.DAYLIGHT_FACTOR] = df
    return minimums


def extract_thresholds(requirement_texts) -> dict:
    """
    Parse thresholds from the requirement strings of one document.

    Args:
        requirement_texts: Iterable of free-text requirement strings

    Returns:
        Dict mapping Metric to ThresholdSet. Metrics without a match are
        absent; defaults are applied later by `resolve_thresholds`.
    """
    return {
        metric: ThresholdSet(metric, minimum, minimum * config.TARGET_FACTOR)
        for metric, minimum in _scan_minimums(requirement_texts).items()
    }


def is_relevant_credit(credit: Credit) -> bool:
    """Credits about daylight or sun access (by name), or indoor-environment codes."""
    name = credit.name.lower()
    if any(keyword in name for keyword in config.CREDIT_KEYWORDS):
        return True
    return config.CREDIT_CODE_MARKER in (credit.code or "")


def _to_finite_float(value) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _explicit_values(regulation: Regulation) -> dict:
    """
    Validated explicit thresholds of a regulation.

    Returns:
        Dict mapping each usable key to (minimum, target or None). Malformed
        entries are logged and skipped, so parsing or defaults apply instead.
    """
    declared = regulation.analysis_thresholds
    if not isinstance(declared, Mapping):
        logger.warning(f"Regulation {regulation.name!r}: analysis thresholds are not a mapping, ignored")
        return {}

    values = {}
    for key in EXPLICIT_KEYS:
        entry = declared.get(key)
        if entry is None:
            continue
        if not isinstance(entry, Mapping):
            logger.warning(f"Regulation {regulation.name!r}: {key} threshold {entry!r} is not a mapping, ignored")
            continue
        if entry.get("min") is None:
            continue
        minimum = _to_finite_float(entry["min"])
        if minimum is None:
            logger.warning(f"Regulation {regulation.name!r}: {key} minimum {entry['min']!r} is not a number, ignored")
            continue
        target = entry.get("target")
        if target is not None:
            target = _to_finite_float(target)
            if target is None:
                logger.warning(f"Regulation {regulation.name!r}: {key} target {entry['target']!r} "
                               f"is not a number, derived from minimum")
        values[key] = (minimum, target)
    return values


def _explicit_thresholds(regulation: Regulation) -> dict:
    thresholds = {}
    for key, (minimum, target) in _explicit_values(regulation).items():
        metric = EXPLICIT_KEYS[key]
        if target is None:
            target = minimum * config.TARGET_FACTOR
        thresholds[metric] = ThresholdSet(metric, minimum, max(target, minimum))
    return thresholds


def regulation_thresholds(regulation: Regulation) -> dict:
    """
    Thresholds declared by a single regulation document.

    Explicit `analysis_thresholds` take priority; otherwise the requirement
    text of the relevant credits is parsed.
    """
    explicit = _explicit_thresholds(regulation)
    if explicit:
        logger.debug(f"Regulation {regulation.name!r}: explicit thresholds {explicit}")
        return explicit

    texts = [
        requirement
        for credit in regulation.credits
        if is_relevant_credit(credit)
        for requirement in credit.requirements
    ]
    parsed = extract_thresholds(texts)
    logger.debug(f"Regulation {regulation.name!r}: parsed thresholds {parsed}")
    return parsed


def merge_thresholds(per_document) -> dict:
    """
    Combine per-document thresholds: the maximum minimum wins, and so does
    the maximum target.
    """
    merged = {}
    for thresholds in per_document:
        for metric, ts in thresholds.items():
            current = merged.get(metric)
            if current is None:
                merged[metric] = ts
            else:
                merged[metric] = ThresholdSet(
                    metric, max(current.minimum, ts.minimum), max(current.target, ts.target)
                )
    return merged


def _fingerprint(regulations) -> tuple:
    return tuple(
        (
            reg.name,
            tuple((c.name, c.code, tuple(c.requirements)) for c in reg.credits),
            tuple(sorted(
                (key, minimum, target)
                for key, (minimum, target) in _explicit_values(reg).items()
            )),
        )
        for reg in regulations
    )


@lru_cache(maxsize=32)
def _resolve_cached(fingerprint: tuple) -> dict:
    regulations = [
        Regulation(
            name=name,
            credits=[Credit(name=c[0], code=c[1], requirements=list(c[2])) for c in credits],
            analysis_thresholds={k: {"min": mn, "target": tg} for k, mn, tg in explicit},
        )
        for name, credits, explicit in fingerprint
    ]
    merged = merge_thresholds(regulation_thresholds(r) for r in regulations)
    for metric, default in DEFAULT_THRESHOLDS.items():
        if metric not in merged:
            logger.debug(f"No {metric.value} threshold found, using default {default}")
            merged[metric] = default
    return merged


def resolve_thresholds(regulations) -> Optional[dict]:
    """
    Thresholds for the active regulation set.

    Args:
        regulations: List of Regulation objects or plain dicts

    Returns:
        None when no regulation is active (gradient colouring applies),
        otherwise a dict mapping Metric to ThresholdSet with sun-hours and
        daylight-factor always present.
    """
    if not regulations:
        return None
    regulations = [r if isinstance(r, Regulation) else Regulation.from_dict(r) for r in regulations]
    return dict(_resolve_cached(_fingerprint(regulations)))
