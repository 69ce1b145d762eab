"""Finalize-time color assignment.

Colors are attached once, after every boolean operation, by painting the
exported ``trimesh`` face colors. No intermediate solid carries color.
"""

from __future__ import annotations

import logging
from typing import Iterable, List

import numpy as np
import trimesh

from materials import COPPER_COLOR, RGB, get_material
from pcb_solids.context import BoardWork, BuildContext, FeatureSolid
from pcb_solids.contracts import ColoredSolid, FeatureKind

logger = logging.getLogger(__name__)


def board_color(material: str, masked: bool = False) -> RGB:
    entry = get_material(material)
    return entry.masked_board_color if masked else entry.board_color


def pour_color(material: str, covered_with_solder_mask: bool) -> RGB:
    if covered_with_solder_mask:
        return get_material(material).masked_copper_color
    return COPPER_COLOR


def apply_color(mesh: trimesh.Trimesh, color: RGB) -> trimesh.Trimesh:
    """Paint every face with ``color`` (components in [0, 1])."""
    rgba = np.array([*(np.clip(color, 0.0, 1.0) * 255.0), 255.0]).round().astype(np.uint8)
    if len(mesh.faces):
        mesh.visual.face_colors = np.tile(rgba, (len(mesh.faces), 1))
    return mesh


def _export(
    ctx: BuildContext, key: str, kind: FeatureKind, solid, color: RGB
) -> List[ColoredSolid]:
    mesh = ctx.backend.to_mesh(solid)
    if mesh.is_empty:
        logger.debug("%s produced no geometry, omitted", key)
        return []
    return [ColoredSolid(key=key, kind=kind, mesh=apply_color(mesh, color), color=color)]


def _export_features(
    ctx: BuildContext, features: Iterable[FeatureSolid], kind: FeatureKind
) -> List[ColoredSolid]:
    out: List[ColoredSolid] = []
    for feature in features:
        if kind in (FeatureKind.COPPER_POUR, FeatureKind.TRACE):
            color = pour_color(ctx.material, feature.covered_with_solder_mask)
        else:
            color = COPPER_COLOR
        out.extend(_export(ctx, feature.key, kind, feature.solid, color))
    return out


def colorize_work(work: BoardWork, ctx: BuildContext) -> List[ColoredSolid]:
    """Ordered output: board, plated-hole copper, pads, traces, vias, pours."""
    solids = _export(
        ctx,
        work.board_key,
        FeatureKind.BOARD,
        work.board,
        board_color(ctx.material, masked=work.board_color_masked),
    )
    solids += _export_features(ctx, work.plated_holes, FeatureKind.PLATED_HOLE)
    solids += _export_features(ctx, work.pads, FeatureKind.PAD)
    solids += _export_features(ctx, work.traces, FeatureKind.TRACE)
    solids += _export_features(ctx, work.vias, FeatureKind.VIA)
    solids += _export_features(ctx, work.copper_pours, FeatureKind.COPPER_POUR)
    return solids
