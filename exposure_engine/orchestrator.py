"""
Analysis orchestration.

`analyze()` runs one complete pass (sampling, classification, colour
buffers) over a scene snapshot. `AnalysisOrchestrator` wraps it in the
mode-transition state machine the rendering host drives:

    Idle --mode set / input change--> PendingRecompute --debounce--> Active(mode)
    any  --mode none--> Idle   (synchronous; overlays removed immediately)

Debouncing is host-driven: inputs are recorded with a deadline and the host
calls `tick()` from its loop. A generation counter identifies each input
revision so superseded work is recognised without timers or threads.
"""

import logging
import time
from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from typing import Callable, Optional

import numpy as np

from exposure_engine import config
from exposure_engine.classifier import classify
from exposure_engine.ground import GROUND_MESH_ID, generate_ground_samples, ground_table
from exposure_engine.models import AnalysisMode, SceneSnapshot
from exposure_engine.overlay import OverlayBuilder
from exposure_engine.sampler import sample
from exposure_engine.scene import build_occluder_set, extract_samples
from exposure_engine.stats import AnalysisReport, overall, summarize_mesh
from exposure_engine.sun import window_sun_samples
from exposure_engine.thresholds import resolve_thresholds

logger = logging.getLogger(__name__)


class EngineState(Enum):
    IDLE = "idle"
    PENDING_RECOMPUTE = "pending-recompute"
    ACTIVE = "active"


@dataclass
class PassResult:
    """Colour buffers (per mesh id), exposure results and the aggregate report of one pass."""

    color_buffers: dict = field(default_factory=dict)
    results: dict = field(default_factory=dict)
    report: Optional[AnalysisReport] = None


def _classify_results(results, thresholds) -> tuple:
    classified = []
    colors = np.zeros((len(results), 3), dtype=np.float32)
    for i, result in enumerate(results):
        band, color = classify(result.scaled_value, thresholds)
        classified.append(replace(result, band=band))
        colors[i] = color
    return classified, colors


def analyze(
    scene: Optional[SceneSnapshot],
    mode,
    reference_date=None,
    regulations=None,
    generation: int = 0,
    show_progress: bool = config.SHOW_PROGRESS,
) -> PassResult:
    """
    Run one analysis pass.

    Args:
        scene: Snapshot of target meshes, occluders and site location
        mode: AnalysisMode or its string form
        reference_date: Date (or datetime) for solar sampling
        regulations: Active regulation documents (Regulation or dicts)
        generation: Input revision this pass belongs to
        show_progress: Display tqdm progress bars

    Returns:
        PassResult. Empty when the mode is 'none' or there are no meshes.
    """
    mode = AnalysisMode.parse(mode)
    report = AnalysisReport(mode=mode, generation=generation)
    result = PassResult(report=report)
    if mode is AnalysisMode.NONE or scene is None or (not scene.meshes and scene.site is None):
        logger.info("Nothing to analyze")
        return result

    logger.info(f"Running {mode.value} analysis on {len(scene.meshes)} meshes")
    thresholds = resolve_thresholds(regulations or [])
    threshold = thresholds.get(mode.metric) if thresholds else None
    if thresholds is None:
        logger.info("No regulations active, using gradient colouring")
    else:
        logger.info(f"Thresholds for {mode.value}: {threshold}")

    occluders = None
    if mode is not AnalysisMode.WIND:
        occluders = build_occluder_set(list(scene.meshes) + list(scene.occluders))

    direction_set = None
    if mode is AnalysisMode.SUN_HOURS:
        if reference_date is None:
            logger.warning("No reference date given, using today")
            reference_date = date.today()
        direction_set = window_sun_samples(reference_date, scene.latitude, scene.longitude)

    summaries = []
    for mesh in scene.meshes:
        samples = extract_samples(mesh)
        if samples is None:
            report.skipped.append(mesh.id)
            continue
        exposures = sample(samples, occluders, mode, direction_set, show_progress=show_progress)
        classified, colors = _classify_results(exposures, thresholds)
        result.results[mesh.id] = classified
        result.color_buffers[mesh.id] = colors
        summary = summarize_mesh(mesh.id, classified, threshold)
        report.meshes[mesh.id] = summary
        summaries.append(summary)

    report.mean_value, report.compliant_fraction = overall(summaries, threshold)

    if scene.site is not None:
        site = scene.site
        ground_samples = generate_ground_samples(
            site.polygon, site.footprints, spacing=site.spacing, ground_z=site.ground_z
        )
        exposures = sample(ground_samples, occluders, mode, direction_set, show_progress=show_progress)
        classified, colors = _classify_results(exposures, thresholds)
        result.results[GROUND_MESH_ID] = classified
        report.ground = ground_table(classified, colors)

    logger.info(f"Analysis complete: {len(result.color_buffers)} meshes, "
                f"{len(report.skipped)} skipped, mean value {report.mean_value:.3f}")
    return result


class AnalysisOrchestrator:
    """
    State machine driving analysis passes for the rendering host.

    Args:
        overlays: OverlayBuilder receiving results (a new one by default)
        clock: Monotonic clock in seconds
        debounce: Debounce window in seconds
        show_progress: Display tqdm progress bars during passes
    """

    def __init__(
        self,
        overlays: Optional[OverlayBuilder] = None,
        clock: Callable = time.monotonic,
        debounce: float = config.DEBOUNCE_SECONDS,
        show_progress: bool = False,
    ):
        self.overlays = overlays if overlays is not None else OverlayBuilder()
        self._clock = clock
        self._debounce = debounce
        self._show_progress = show_progress

        self._mode = AnalysisMode.NONE
        self._scene = None
        self._date = None
        self._regulations = []

        self._state = EngineState.IDLE
        self._generation = 0
        self._deadline = None
        self._running = False
        self.last_report = None

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def mode(self) -> AnalysisMode:
        return self._mode

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def pending(self) -> bool:
        return self._state is EngineState.PENDING_RECOMPUTE

    # Input changes

    def set_mode(self, mode) -> None:
        mode = AnalysisMode.parse(mode)
        if mode is AnalysisMode.NONE:
            self._to_idle()
            return
        self._mode = mode
        self._schedule()

    def set_date(self, reference_date) -> None:
        self._date = reference_date
        if self._mode is not AnalysisMode.NONE:
            self._schedule()

    def set_regulations(self, regulations) -> None:
        self._regulations = list(regulations or [])
        if self._mode is not AnalysisMode.NONE:
            self._schedule()

    def set_scene(self, scene: Optional[SceneSnapshot]) -> None:
        self._scene = scene
        if self._mode is not AnalysisMode.NONE:
            self._schedule()

    def _schedule(self) -> None:
        self._generation += 1
        self._deadline = self._clock() + self._debounce
        self._state = EngineState.PENDING_RECOMPUTE

    def _to_idle(self) -> None:
        """Cancel pending work and remove every overlay, without waiting on anything."""
        self._mode = AnalysisMode.NONE
        self._generation += 1
        self._deadline = None
        self._state = EngineState.IDLE
        self.overlays.remove_all()

    # Host loop

    def tick(self, now: Optional[float] = None) -> Optional[AnalysisReport]:
        """Run the pending pass if its debounce window has elapsed."""
        if self._state is not EngineState.PENDING_RECOMPUTE or self._running:
            return None
        now = self._clock() if now is None else now
        if now < self._deadline:
            return None
        return self._run_pending()

    def flush(self) -> Optional[AnalysisReport]:
        """Run the pending pass now, ignoring the debounce window."""
        if self._state is not EngineState.PENDING_RECOMPUTE or self._running:
            return None
        return self._run_pending()

    def _run_pending(self) -> Optional[AnalysisReport]:
        generation = self._generation
        mode, scene, reference_date = self._mode, self._scene, self._date
        regulations = list(self._regulations)

        self._running = True
        try:
            result = analyze(
                scene, mode, reference_date, regulations,
                generation=generation, show_progress=self._show_progress,
            )
        finally:
            self._running = False

        if self._mode is AnalysisMode.NONE:
            logger.info(f"Discarding pass {generation}: analysis switched off")
            return None

        self._apply(result)
        self.last_report = result.report

        if self._generation == generation:
            self._state = EngineState.ACTIVE
            self._deadline = None
        else:
            # Inputs changed while running; the newer pending recompute stays scheduled
            logger.info(f"Pass {generation} superseded by {self._generation}")
        return result.report

    def _apply(self, result: PassResult) -> None:
        for mesh_id in self.overlays.active_ids:
            if mesh_id not in result.color_buffers:
                self.overlays.remove(mesh_id)
        for mesh_id, colors in result.color_buffers.items():
            self.overlays.apply(mesh_id, colors)
