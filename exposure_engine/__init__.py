"""Environmental exposure analysis: sun hours, sky visibility and wind exposure."""

from exposure_engine.classifier import classify
from exposure_engine.models import (
    AnalysisMode,
    Band,
    Credit,
    DaylightFactor,
    GroundSite,
    Hours,
    MeshData,
    Metric,
    Regulation,
    SceneSnapshot,
    SurfaceSample,
    ThresholdSet,
    WindExposure,
)
from exposure_engine.orchestrator import AnalysisOrchestrator, EngineState, analyze
from exposure_engine.overlay import Overlay, OverlayBuilder
from exposure_engine.sampler import sample
from exposure_engine.sun import position
from exposure_engine.thresholds import extract_thresholds, resolve_thresholds

__all__ = [
    "AnalysisMode",
    "AnalysisOrchestrator",
    "Band",
    "Credit",
    "DaylightFactor",
    "EngineState",
    "GroundSite",
    "Hours",
    "MeshData",
    "Metric",
    "Overlay",
    "OverlayBuilder",
    "Regulation",
    "SceneSnapshot",
    "SurfaceSample",
    "ThresholdSet",
    "WindExposure",
    "analyze",
    "classify",
    "extract_thresholds",
    "position",
    "resolve_thresholds",
    "sample",
]
