"""Single-path pipeline: circuit JSON -> board solids -> run artifacts.

Each run gets its own folder under ``runs_dir``:

    <run_id>/input/       copy of the circuit JSON
    <run_id>/exports/     board.glb (colored scene), board.stl, per-solid STLs
    <run_id>/metrics.json
    <run_id>/summary.md
    <run_id>/manifest.json
"""

from __future__ import annotations

import json
import logging
import re
import shutil
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import trimesh

from pcb_solids import BuildConfig, BuildResult, build_board_solids

logger = logging.getLogger(__name__)


@dataclass
class PipelineConfig:
    runs_dir: str = "runs"
    export_glb: bool = True
    export_stl: bool = True
    export_per_solid_stl: bool = False
    build: BuildConfig = field(default_factory=BuildConfig)


@dataclass
class RunPaths:
    run_id: str
    run_dir: Path
    input_dir: Path
    exports_dir: Path
    manifest_path: Path
    metrics_path: Path
    summary_path: Path


@dataclass
class PipelineResult:
    run_id: str
    run_dir: str
    manifest_path: str
    metrics_path: str
    summary_path: str
    input_path: str
    glb_path: Optional[str] = None
    stl_path: Optional[str] = None
    solid_stl_paths: List[str] = field(default_factory=list)
    build: Optional[BuildResult] = None


# ─── Run folder ─────────────────────────────────────────────────────────────

def _run_slug(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.strip().lower()).strip("-")
    return slug or "board"


def prepare_run_dir(runs_root: str, design_name: str) -> RunPaths:
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    run_id = f"{stamp}_{_run_slug(design_name)}"
    run_dir = Path(runs_root) / run_id
    input_dir = run_dir / "input"
    exports_dir = run_dir / "exports"
    for path in (input_dir, exports_dir):
        path.mkdir(parents=True, exist_ok=True)
    return RunPaths(
        run_id=run_id,
        run_dir=run_dir,
        input_dir=input_dir,
        exports_dir=exports_dir,
        manifest_path=run_dir / "manifest.json",
        metrics_path=run_dir / "metrics.json",
        summary_path=run_dir / "summary.md",
    )


def write_json(path: Path, payload: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, default=str), encoding="utf-8")


def load_circuit_json(path: str) -> List[Dict[str, Any]]:
    """Records from a circuit JSON file: a list, or ``{"elements": [...]}``."""
    with open(path, "r", encoding="utf-8") as f:
        payload = json.load(f)
    if isinstance(payload, dict):
        payload = payload.get("elements")
    if not isinstance(payload, list):
        raise ValueError(f"{path}: expected a list of circuit records")
    return payload


# ─── Exports ────────────────────────────────────────────────────────────────

def _export_solids(
    build: BuildResult, paths: RunPaths, design_name: str, config: PipelineConfig
) -> Dict[str, Any]:
    slug = _run_slug(design_name)
    out: Dict[str, Any] = {"glb": None, "stl": None, "solid_stls": []}
    if not build.solids:
        logger.warning("No solids to export for %s", design_name)
        return out

    if config.export_glb:
        glb_path = paths.exports_dir / f"{slug}.glb"
        glb_path.write_bytes(build.to_scene().export(file_type="glb"))
        out["glb"] = str(glb_path)

    if config.export_stl:
        stl_path = paths.exports_dir / f"{slug}.stl"
        combined = trimesh.util.concatenate([s.mesh for s in build.solids])
        combined.export(str(stl_path))
        out["stl"] = str(stl_path)

    if config.export_per_solid_stl:
        solids_dir = paths.exports_dir / "solids"
        solids_dir.mkdir(parents=True, exist_ok=True)
        for solid in build.solids:
            solid_path = solids_dir / f"{_run_slug(solid.key)}.stl"
            solid.mesh.export(str(solid_path))
            out["solid_stls"].append(str(solid_path))
    return out


def _build_summary(run_id: str, elapsed_s: float, build: BuildResult) -> str:
    counts: Dict[str, int] = {}
    for solid in build.solids:
        counts[solid.kind.value] = counts.get(solid.kind.value, 0) + 1
    lines = [
        f"# Run {run_id}",
        "",
        f"- Duration: {elapsed_s:.2f}s",
        f"- Backend: {build.stats.get('backend', 'unknown')}",
        f"- Board: {build.thickness:.3f} mm {build.material}",
        f"- Solids: {len(build.solids)}",
    ]
    for kind, count in sorted(counts.items()):
        lines.append(f"  - {kind}: {count}")
    lines.append(f"- Skipped records: {len(build.skipped)}")
    for entry in build.skipped:
        lines.append(f"  - {entry.element_type} [{entry.element_id}]: {entry.reason}")
    lines.append("")
    return "\n".join(lines)


def run_pipeline_from_circuit_json(
    json_path: str,
    design_name: str = "board",
    config: Optional[PipelineConfig] = None,
) -> PipelineResult:
    source = Path(json_path)
    if not source.is_file():
        raise FileNotFoundError(f"Circuit JSON not found: {json_path}")

    if config is None:
        config = PipelineConfig()

    started = time.perf_counter()
    paths = prepare_run_dir(config.runs_dir, design_name)
    copied = paths.input_dir / source.name
    shutil.copy2(source, copied)

    records = load_circuit_json(str(copied))
    logger.info("Building %s from %d records", design_name, len(records))
    build = build_board_solids(records, config=config.build)
    exports = _export_solids(build, paths, design_name, config)
    elapsed = time.perf_counter() - started

    write_json(
        paths.metrics_path,
        {
            "run_id": paths.run_id,
            "elapsed_s": round(elapsed, 3),
            "build": build.stats,
            "thickness_mm": build.thickness,
            "material": build.material,
            "solids": [
                {
                    "key": s.key,
                    "kind": s.kind.value,
                    "faces": int(len(s.mesh.faces)),
                    "volume_mm3": round(float(s.mesh.volume), 6),
                }
                for s in build.solids
            ],
            "skipped": [asdict(entry) for entry in build.skipped],
        },
    )
    paths.summary_path.write_text(
        _build_summary(paths.run_id, elapsed, build), encoding="utf-8"
    )
    write_json(
        paths.manifest_path,
        {
            "run_id": paths.run_id,
            "design_name": design_name,
            "input": str(copied),
            "created_utc": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            "config": asdict(config),
            "exports": exports,
        },
    )
    logger.info("Run %s written to %s", paths.run_id, paths.run_dir)

    return PipelineResult(
        run_id=paths.run_id,
        run_dir=str(paths.run_dir),
        manifest_path=str(paths.manifest_path),
        metrics_path=str(paths.metrics_path),
        summary_path=str(paths.summary_path),
        input_path=str(copied),
        glb_path=exports["glb"],
        stl_path=exports["stl"],
        solid_stl_paths=exports["solid_stls"],
        build=build,
    )
