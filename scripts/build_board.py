#!/usr/bin/env python3
"""Build colored board solids from a circuit JSON file."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from pcb_solids import BuildConfig, BoardGeometryError
from pipeline import PipelineConfig, run_pipeline_from_circuit_json


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Reconstruct a 3D board model (substrate + copper) from circuit JSON"
    )
    parser.add_argument("--circuit", required=True, help="Path to circuit JSON")
    parser.add_argument("--name", default="board", help="Design/run name")
    parser.add_argument("--runs-dir", default="runs", help="Runs output root")
    parser.add_argument(
        "--backend",
        choices=["mesh", "manifold"],
        default="mesh",
        help="Geometry backend for boolean operations",
    )
    parser.add_argument(
        "--engine",
        default="manifold",
        help="trimesh boolean engine used by the mesh backend",
    )
    parser.add_argument(
        "--copper-segments",
        type=int,
        default=64,
        help="Facets for pad, ring and barrel circles",
    )
    parser.add_argument(
        "--strict-shapes",
        action="store_true",
        help="Fail on any unsupported shape instead of skipping it",
    )
    parser.add_argument("--no-glb", action="store_true", help="Skip GLB export")
    parser.add_argument("--no-stl", action="store_true", help="Skip combined STL export")
    parser.add_argument(
        "--per-solid-stl", action="store_true", help="Also export one STL per solid"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logs"
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    config = PipelineConfig(
        runs_dir=args.runs_dir,
        export_glb=not args.no_glb,
        export_stl=not args.no_stl,
        export_per_solid_stl=args.per_solid_stl,
        build=BuildConfig(
            backend=args.backend,
            boolean_engine=args.engine,
            copper_segments=max(8, int(args.copper_segments)),
            strict_shapes=args.strict_shapes,
        ),
    )
    try:
        result = run_pipeline_from_circuit_json(args.circuit, args.name, config)
    except BoardGeometryError as exc:
        logging.getLogger(__name__).error("Build failed: %s", exc)
        return 1

    build = result.build
    print(f"Run: {result.run_id}")
    print(f"Solids: {len(build.solids)} ({len(build.skipped)} records skipped)")
    if result.glb_path:
        print(f"GLB: {result.glb_path}")
    if result.stl_path:
        print(f"STL: {result.stl_path}")
    print(f"Summary: {result.summary_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
