"""Aggregate statistics over the results of an analysis pass."""

from dataclasses import dataclass, field
from typing import Optional

import numpy as np
import pandas as pd

from exposure_engine.models import AnalysisMode


@dataclass
class MeshSummary:
    mesh_id: str
    n_samples: int
    mean_value: float
    compliant_fraction: Optional[float]


@dataclass
class AnalysisReport:
    """
    Outcome of one pass.

    `compliant_fraction` is the share of non-degenerate samples at or above
    the metric minimum, or None when no thresholds apply (gradient mode).
    """

    mode: AnalysisMode
    generation: int
    meshes: dict = field(default_factory=dict)
    skipped: list = field(default_factory=list)
    ground: Optional[pd.DataFrame] = None
    mean_value: float = 0.0
    compliant_fraction: Optional[float] = None

    def summary(self) -> pd.DataFrame:
        rows = [
            {
                'mesh_id': s.mesh_id,
                'n_samples': s.n_samples,
                'mean_value': s.mean_value,
                'compliant_fraction': s.compliant_fraction,
            }
            for s in self.meshes.values()
        ]
        return pd.DataFrame(rows, columns=['mesh_id', 'n_samples', 'mean_value', 'compliant_fraction'])


def _valid(results):
    return [r for r in results if not r.sample.degenerate]


def summarize_mesh(mesh_id: str, results, threshold=None) -> MeshSummary:
    """
    Mean scaled value and compliant fraction for one mesh.

    Args:
        mesh_id: Mesh identity
        results: ExposureResults of the mesh
        threshold: ThresholdSet of the active metric, or None
    """
    valid = _valid(results)
    if not valid:
        return MeshSummary(mesh_id, len(results), 0.0, None if threshold is None else 0.0)
    values = np.array([r.scaled_value.value for r in valid])
    compliant = None
    if threshold is not None:
        compliant = float(np.mean(values >= threshold.minimum))
    return MeshSummary(mesh_id, len(results), float(values.mean()), compliant)


def overall(summaries, threshold=None) -> tuple:
    """Sample-weighted mean value and compliant fraction across meshes."""
    weights = np.array([s.n_samples for s in summaries], dtype=float)
    if len(summaries) == 0 or weights.sum() == 0:
        return 0.0, (None if threshold is None else 0.0)
    means = np.array([s.mean_value for s in summaries])
    mean_value = float(np.average(means, weights=weights))
    if threshold is None:
        return mean_value, None
    fractions = np.array([s.compliant_fraction or 0.0 for s in summaries])
    return mean_value, float(np.average(fractions, weights=weights))
