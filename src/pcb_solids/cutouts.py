"""Board cutouts: through-slots and openings in the substrate."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Sequence

from geometry_primitives import clamp_rect_border_radius
from pcb_solids.backends import Solid
from pcb_solids.context import BoardWork, BuildContext
from pcb_solids.contracts import Cutout
from pcb_solids.errors import DegenerateGeometryError, UnsupportedShapeError
from pcb_solids.primitives import cylinder, polygon_prism, rounded_rect_prism

logger = logging.getLogger(__name__)


def build_cutout_solid(cutout: Cutout, ctx: BuildContext) -> Solid:
    """Cutter prism for one cutout, 1.5x the board thickness tall."""
    depth = ctx.drill_depth
    shape = cutout.shape

    if shape == "rect":
        if not cutout.width or not cutout.height or cutout.width <= 0 or cutout.height <= 0:
            raise DegenerateGeometryError("pcb_cutout", cutout.id, "rect needs positive width and height")
        radius = clamp_rect_border_radius(cutout.width, cutout.height, cutout.corner_radius)
        return rounded_rect_prism(
            ctx,
            cutout.width,
            cutout.height,
            depth,
            radius,
            center=cutout.center,
            rotation=cutout.rotation,
            segments=ctx.config.copper_segments,
        )

    if shape == "circle":
        if not cutout.radius or cutout.radius <= 0:
            raise DegenerateGeometryError("pcb_cutout", cutout.id, "circle needs a positive radius")
        return cylinder(
            ctx, cutout.radius, depth, center=cutout.center, segments=ctx.config.drill_segments
        )

    if shape == "polygon":
        solid = polygon_prism(ctx, cutout.points, depth)
        if solid is None:
            raise DegenerateGeometryError("pcb_cutout", cutout.id, "polygon has fewer than 3 points")
        return solid

    raise UnsupportedShapeError("pcb_cutout", shape, cutout.id)


def carve_cutouts(ctx: BuildContext, board: Solid, cutters: Sequence[Solid]) -> Solid:
    """Union every cutter, then subtract once."""
    if not cutters:
        return board
    logger.debug("Carving %d cutouts", len(cutters))
    return ctx.subtract(board, cutters)


def process_cutout(work: BoardWork, cutout: Cutout, ctx: BuildContext) -> BoardWork:
    """Queue a cutter; carving happens once when the phase ends."""
    solid = build_cutout_solid(cutout, ctx)
    return replace(work, pending_cutouts=work.pending_cutouts + (solid,))


def flush_cutouts(work: BoardWork, ctx: BuildContext) -> BoardWork:
    if not work.pending_cutouts:
        return work
    board = carve_cutouts(ctx, work.board, work.pending_cutouts)
    ctx.retire(work.board, *work.pending_cutouts, keep=board)
    return replace(work, board=board, pending_cutouts=())
