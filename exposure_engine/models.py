"""
Data model shared by the exposure engine.

Meshes and occluders arrive from the rendering host as plain numpy buffers.
Everything here is derived fresh for each analysis pass, except regulation
documents which the host keeps between passes.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import numpy as np


class AnalysisMode(Enum):
    NONE = "none"
    SUN_HOURS = "sun-hours"
    DAYLIGHT = "daylight"
    WIND = "wind"

    @classmethod
    def parse(cls, value) -> "AnalysisMode":
        """Accept an AnalysisMode or its string form ('sun-hours', 'wind', ...)."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"Unknown analysis mode: {value!r}. "
                f"Supported modes: {[m.value for m in cls]}"
            ) from None

    @property
    def metric(self) -> Optional["Metric"]:
        return _MODE_METRICS.get(self)


class Metric(Enum):
    SUN_HOURS = "sun_hours"
    DAYLIGHT_FACTOR = "daylight_factor"
    WIND_EXPOSURE = "wind_exposure"


_MODE_METRICS = {
    AnalysisMode.SUN_HOURS: Metric.SUN_HOURS,
    AnalysisMode.DAYLIGHT: Metric.DAYLIGHT_FACTOR,
    AnalysisMode.WIND: Metric.WIND_EXPOSURE,
}


class Band(Enum):
    BELOW_MINIMUM = "below-minimum"
    MEETS_MINIMUM = "meets-minimum"
    EXCEEDS_TARGET = "exceeds-target"
    CONTINUOUS = "continuous"


# Typed metric values. Each one knows its metric, so a sun-hours reading can
# never be classified against daylight-factor thresholds by accident.

@dataclass(frozen=True)
class Hours:
    value: float
    metric = Metric.SUN_HOURS


@dataclass(frozen=True)
class DaylightFactor:
    value: float
    metric = Metric.DAYLIGHT_FACTOR


@dataclass(frozen=True)
class WindExposure:
    value: float
    metric = Metric.WIND_EXPOSURE


METRIC_VALUE_TYPES = {
    Metric.SUN_HOURS: Hours,
    Metric.DAYLIGHT_FACTOR: DaylightFactor,
    Metric.WIND_EXPOSURE: WindExposure,
}


@dataclass
class MeshData:
    """
    A host mesh as seen by the engine.

    Args:
        id: Identity of the owning mesh (overlays are keyed on it)
        positions: Local-space vertex positions, shape (N, 3), or None if missing
        normals: Local-space vertex normals, shape (N, 3), or None if missing
        transform: 4x4 world matrix applied to column vectors
        faces: Optional triangle indices, shape (M, 3). Without them the
            buffers are non-indexed and every three vertices form a triangle.
    """

    id: str
    positions: Optional[np.ndarray]
    normals: Optional[np.ndarray] = None
    transform: np.ndarray = field(default_factory=lambda: np.eye(4))
    faces: Optional[np.ndarray] = None

    def __post_init__(self):
        self.transform = np.asarray(self.transform, dtype=float)
        if self.transform.shape != (4, 4):
            raise ValueError(
                f"Mesh {self.id}: transform must be 4x4, got {self.transform.shape}"
            )
        if self.positions is not None:
            self.positions = np.asarray(self.positions, dtype=float).reshape(-1, 3)
        if self.normals is not None:
            self.normals = np.asarray(self.normals, dtype=float).reshape(-1, 3)
        if self.faces is not None:
            self.faces = np.asarray(self.faces, dtype=np.int64).reshape(-1, 3)

    @property
    def n_vertices(self) -> int:
        return 0 if self.positions is None else len(self.positions)


@dataclass(frozen=True)
class SurfaceSample:
    """World-space sample point. `position` is the un-nudged source vertex."""

    position: tuple
    normal: tuple
    mesh_id: str
    index: int
    degenerate: bool = False


@dataclass(frozen=True)
class SunSample:
    timestamp: object
    azimuth: float
    altitude: float
    direction: tuple

    @property
    def valid(self) -> bool:
        return self.altitude > 0


@dataclass(frozen=True)
class ThresholdSet:
    metric: Metric
    minimum: float
    target: float


@dataclass(frozen=True)
class ExposureResult:
    sample: SurfaceSample
    raw_value: float
    scaled_value: object  # Hours | DaylightFactor | WindExposure
    band: Band = Band.CONTINUOUS


@dataclass
class Credit:
    name: str
    requirements: list = field(default_factory=list)
    code: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "Credit":
        requirements = data.get("requirementTexts", data.get("requirements")) or []
        return cls(
            name=data.get("name", ""),
            requirements=[str(r) for r in requirements],
            code=data.get("code") or "",
        )


@dataclass
class Regulation:
    """
    A green-building certification document.

    `analysis_thresholds` holds explicitly declared values keyed by
    'sunHours', 'daylightFactor' or 'windExposure', each {'min', 'target'}.
    """

    name: str = ""
    credits: list = field(default_factory=list)
    analysis_thresholds: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "Regulation":
        thresholds = data.get("analysisThresholds") or {}
        credits = list(data.get("credits") or [])
        # Certification documents group credits into categories
        for category in data.get("categories") or []:
            credits.extend(category.get("credits") or [])
        return cls(
            name=data.get("name", ""),
            credits=[c if isinstance(c, Credit) else Credit.from_dict(c) for c in credits],
            # Non-mapping values are kept so threshold resolution can report them
            analysis_thresholds=dict(thresholds) if isinstance(thresholds, Mapping) else thresholds,
        )


@dataclass
class GroundSite:
    """Site polygon (shapely) and building footprints for the ground heatmap."""

    polygon: object
    footprints: list = field(default_factory=list)
    spacing: Optional[float] = None
    ground_z: float = 0.0


@dataclass
class SceneSnapshot:
    """
    Immutable view of the host scene for one analysis pass.

    Args:
        meshes: Target meshes that receive overlays
        occluders: Additional geometry used only as ray targets
        latitude: Site latitude (degrees)
        longitude: Site longitude (degrees)
        site: Optional ground site for the ground heatmap
    """

    meshes: list
    occluders: list = field(default_factory=list)
    latitude: float = 0.0
    longitude: float = 0.0
    site: Optional[GroundSite] = None
