#!/usr/bin/env python3
"""
Compute per-vertex environmental exposure on an STL scene.

The scene mesh is used both as the analysis target and as the occluder set.
Each vertex gets an exposure value (sun hours, sky-view daylight proxy or
wind exposure), classified against the thresholds of the given green-building
regulations (or a continuous gradient when none are given).

Usage:
    python scripts/compute_exposure.py --stl data/raw/scene.stl --mode sun-hours --date 2024-06-21
    python scripts/compute_exposure.py --stl data/raw/scene.stl --mode daylight --regulations data/raw/leed.json
"""

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import pyvista as pv

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from exposure_engine.config import DPI, OUTPUTS_DIR
from exposure_engine.models import AnalysisMode, MeshData, SceneSnapshot
from exposure_engine.orchestrator import analyze
from exposure_engine.overlay import make_overlay

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def load_scene_mesh(stl_path: Path, mesh_id: str = "scene") -> MeshData:
    """
    Load an STL file as a triangulated mesh with point normals.

    Args:
        stl_path: Path to STL file
        mesh_id: Identity given to the mesh

    Returns:
        MeshData in scene coordinates (identity transform)
    """
    logger.info(f"Loading mesh from {stl_path}...")
    mesh = pv.read(str(stl_path)).triangulate().clean()
    mesh = mesh.compute_normals(point_normals=True, cell_normals=False, auto_orient_normals=True)
    logger.info(f"  Loaded {mesh.n_points} points, {mesh.n_cells} cells")

    faces = mesh.faces.reshape(-1, 4)[:, 1:]
    return MeshData(
        id=mesh_id,
        positions=np.asarray(mesh.points),
        normals=np.asarray(mesh.point_data['Normals']),
        faces=faces,
    )


def load_regulations(path: Path) -> list:
    """Load regulation documents from a JSON file (a list or a single document)."""
    with open(path) as f:
        data = json.load(f)
    return data if isinstance(data, list) else [data]


def save_results(mesh: MeshData, result, mode: AnalysisMode, output_dir: Path):
    """
    Save exposure values, coloured mesh and histogram.

    Saves:
    - exposure.csv → x, y, z, raw, value, band per vertex
    - exposure.vtp → scene mesh with 'exposure_rgb' point colours
    - exposure_histogram.png → distribution of values
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    results = result.results[mesh.id]

    table = pd.DataFrame({
        'x': [r.sample.position[0] for r in results],
        'y': [r.sample.position[1] for r in results],
        'z': [r.sample.position[2] for r in results],
        'raw': [r.raw_value for r in results],
        'value': [r.scaled_value.value for r in results],
        'band': [r.band.value for r in results],
    })
    csv_path = output_dir / "exposure.csv"
    table.to_csv(csv_path, index=False)
    logger.info(f"  Saved {csv_path}")

    overlay = make_overlay(mesh.id, result.color_buffers[mesh.id])
    vtp_path = output_dir / "exposure.vtp"
    overlay.to_polydata(mesh).save(str(vtp_path))
    logger.info(f"  Saved {vtp_path}")

    fig, ax = plt.subplots(figsize=(8, 6))
    ax.hist(table['value'], bins=50, edgecolor='black', alpha=0.7)
    unit = 'Hours of Direct Sunlight' if mode is AnalysisMode.SUN_HOURS else f'{mode.value} exposure (0-1)'
    ax.set_xlabel(unit, fontsize=12)
    ax.set_ylabel('Frequency', fontsize=12)
    ax.set_title(f'Distribution of {mode.value} values', fontsize=14, fontweight='bold')
    ax.axvline(table['value'].mean(), color='red', linestyle='--', linewidth=2,
               label=f"Mean: {table['value'].mean():.3f}")
    ax.legend()
    ax.grid(True, alpha=0.3)
    plt.tight_layout()
    hist_path = output_dir / "exposure_histogram.png"
    plt.savefig(hist_path, dpi=DPI, bbox_inches='tight')
    plt.close()
    logger.info(f"  Saved {hist_path}")


def main():
    """Main execution block."""
    parser = argparse.ArgumentParser(description='Compute per-vertex exposure from STL file')
    parser.add_argument('--stl', type=str, required=True, help='Path to STL file')
    parser.add_argument('--mode', type=str, default='sun-hours',
                        choices=['sun-hours', 'daylight', 'wind'], help='Analysis mode')
    parser.add_argument('--date', type=str, default=None,
                        help='Reference date YYYY-MM-DD for solar sampling (default: today)')
    parser.add_argument('--latitude', type=float, default=-22.9519, help='Site latitude (degrees, default: Rio de Janeiro)')
    parser.add_argument('--longitude', type=float, default=-43.2105, help='Site longitude (degrees, default: Rio de Janeiro)')
    parser.add_argument('--regulations', type=str, default=None,
                        help='JSON file with green-building regulation documents (optional)')
    parser.add_argument('--output-dir', type=str, default=None, help='Output directory (default: outputs/exposure)')

    args = parser.parse_args()

    stl_path = Path(args.stl)
    if not stl_path.exists():
        print(f"Error: STL file not found: {stl_path}")
        sys.exit(1)

    regulations = []
    if args.regulations:
        regulations_path = Path(args.regulations)
        if not regulations_path.exists():
            print(f"Error: Regulations file not found: {regulations_path}")
            sys.exit(1)
        regulations = load_regulations(regulations_path)

    output_dir = Path(args.output_dir) if args.output_dir else OUTPUTS_DIR / "exposure"
    reference_date = datetime.strptime(args.date, '%Y-%m-%d') if args.date else None
    mode = AnalysisMode.parse(args.mode)

    print("=" * 60)
    print("EXPOSURE ANALYSIS")
    print("=" * 60)
    print(f"STL file: {stl_path}")
    print(f"Mode: {mode.value}")
    print(f"Location: ({args.latitude:.4f}°, {args.longitude:.4f}°)")
    print(f"Regulations: {len(regulations)}")
    print("=" * 60)

    mesh = load_scene_mesh(stl_path)
    scene = SceneSnapshot(meshes=[mesh], latitude=args.latitude, longitude=args.longitude)
    result = analyze(scene, mode, reference_date, regulations, show_progress=True)

    if mesh.id not in result.color_buffers:
        print("Error: scene mesh could not be analyzed (see warnings above)")
        sys.exit(1)

    save_results(mesh, result, mode, output_dir)

    report = result.report
    print("\nExposure Statistics:")
    print(f"  Mean value: {report.mean_value:.3f}")
    if report.compliant_fraction is not None:
        print(f"  Compliant samples: {report.compliant_fraction * 100:.1f}%")
    print("\n" + "=" * 60)
    print("EXPOSURE ANALYSIS COMPLETE")
    print(f"Results saved to: {output_dir}")
    print("=" * 60)


if __name__ == "__main__":
    main()
