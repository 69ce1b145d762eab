"""Drilling: plated holes, non-plated holes and vias.

Each hole produces a :class:`Drill`. Its ``board_cut`` is subtracted from
the board and from pads, pours and traces built earlier. Its ``copper_cut``
re-cuts plated-hole and via copper built earlier. Re-cuts are only issued
where the 2D footprints overlap.

Plated holes also produce copper: a pad ring on each face plus a barrel
lining the bore, all built from 2D profiles:

    pad     copper outline on the top and bottom faces
    barrel  outer edge of the plating tube
    bore    finished hole through the copper
    drill   hole through the substrate, slightly larger than the bore
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable, Dict, Optional, Tuple

from shapely.geometry.base import BaseGeometry

from geometry_primitives import (
    circle_profile,
    ellipse_profile,
    pill_profile,
    polygon_profile,
    rect_profile,
    rounded_rect_profile,
)
from pcb_solids.backends import Solid
from pcb_solids.context import BoardWork, BuildContext, Drill, FeatureSolid
from pcb_solids.contracts import Hole, PlatedHole, Via
from pcb_solids.copper import build_via_copper, clip_to_board
from pcb_solids.errors import DegenerateGeometryError, UnsupportedShapeError
from pcb_solids.primitives import cuboid, cylinder, oval_prism, pill_prism

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlatedProfiles:
    pad: BaseGeometry
    barrel: BaseGeometry
    bore: BaseGeometry
    drill: BaseGeometry


def _positive(value: Optional[float], what: str, element_type: str, element_id: str) -> float:
    if value is None or value <= 0:
        raise DegenerateGeometryError(element_type, element_id, f"{what} must be > 0")
    return float(value)


# ─── Plated hole profiles ───────────────────────────────────────────────────

def _circle_profiles(ph: PlatedHole, ctx: BuildContext) -> PlatedProfiles:
    cfg = ctx.config
    d = _positive(ph.hole_diameter, "hole_diameter", "pcb_plated_hole", ph.id)
    outer = ph.outer_diameter if ph.outer_diameter is not None else d + cfg.default_outer_margin
    if outer < d:
        raise DegenerateGeometryError(
            "pcb_plated_hole", ph.id, f"outer diameter {outer} is smaller than hole {d}"
        )
    seg = cfg.copper_segments
    c = (ph.x, ph.y)
    return PlatedProfiles(
        pad=circle_profile(outer / 2.0, seg, c),
        barrel=circle_profile(min(outer / 2.0, d / 2.0 + cfg.plating_thickness), seg, c),
        bore=circle_profile(d / 2.0, seg, c),
        drill=circle_profile(d / 2.0 + cfg.drill_clearance, seg, c),
    )


def _slot_profiles(ph: PlatedHole, ctx: BuildContext) -> PlatedProfiles:
    """pill, rotated_pill and oval holes with a matching pad."""
    cfg = ctx.config
    w = _positive(ph.hole_width or ph.hole_diameter, "hole_width", "pcb_plated_hole", ph.id)
    h = _positive(ph.hole_height or ph.hole_diameter, "hole_height", "pcb_plated_hole", ph.id)
    ow = ph.outer_width or ph.outer_diameter or w + cfg.default_outer_margin
    oh = ph.outer_height or ph.outer_diameter or h + cfg.default_outer_margin
    if ow < w or oh < h:
        raise DegenerateGeometryError(
            "pcb_plated_hole", ph.id, f"outer {ow}x{oh} is smaller than hole {w}x{h}"
        )

    fn = ellipse_profile if ph.shape == "oval" else pill_profile
    seg = cfg.copper_segments
    c = (ph.x, ph.y)
    rot = ph.ccw_rotation
    p = cfg.plating_thickness
    m = cfg.drill_clearance
    return PlatedProfiles(
        pad=fn(ow, oh, seg, c, rot),
        barrel=fn(min(ow, w + 2 * p), min(oh, h + 2 * p), seg, c, rot),
        bore=fn(w, h, seg, c, rot),
        drill=fn(w + 2 * m, h + 2 * m, seg, c, rot),
    )


def _rect_pad(ph: PlatedHole, ctx: BuildContext, rotation: float) -> BaseGeometry:
    pw = _positive(ph.rect_pad_width, "rect_pad_width", "pcb_plated_hole", ph.id)
    pad_h = _positive(ph.rect_pad_height, "rect_pad_height", "pcb_plated_hole", ph.id)
    return rounded_rect_profile(
        pw, pad_h, ph.rect_border_radius, ctx.config.copper_segments, (ph.x, ph.y), rotation
    )


def _hole_center(ph: PlatedHole) -> Tuple[float, float]:
    return (ph.x + ph.hole_offset_x, ph.y + ph.hole_offset_y)


def _circle_rect_pad_profiles(ph: PlatedHole, ctx: BuildContext) -> PlatedProfiles:
    cfg = ctx.config
    d = _positive(ph.hole_diameter, "hole_diameter", "pcb_plated_hole", ph.id)
    seg = cfg.copper_segments
    hc = _hole_center(ph)
    return PlatedProfiles(
        pad=_rect_pad(ph, ctx, ph.rect_ccw_rotation),
        barrel=circle_profile(d / 2.0 + cfg.plating_thickness, seg, hc),
        bore=circle_profile(d / 2.0, seg, hc),
        drill=circle_profile(d / 2.0 + cfg.drill_clearance, seg, hc),
    )


def _pill_rect_pad_profiles(ph: PlatedHole, ctx: BuildContext) -> PlatedProfiles:
    cfg = ctx.config
    w = _positive(ph.hole_width, "hole_width", "pcb_plated_hole", ph.id)
    h = _positive(ph.hole_height, "hole_height", "pcb_plated_hole", ph.id)
    rotated = ph.shape == "rotated_pill_hole_with_rect_pad"
    hole_rot = ph.hole_ccw_rotation if rotated else 0.0
    rect_rot = ph.rect_ccw_rotation if rotated else 0.0
    seg = cfg.copper_segments
    hc = _hole_center(ph)
    p = cfg.plating_thickness
    m = cfg.drill_clearance
    return PlatedProfiles(
        pad=_rect_pad(ph, ctx, rect_rot),
        barrel=pill_profile(w + 2 * p, h + 2 * p, seg, hc, hole_rot),
        bore=pill_profile(w, h, seg, hc, hole_rot),
        drill=pill_profile(w + 2 * m, h + 2 * m, seg, hc, hole_rot),
    )


def polygon_pad_hole_profile(
    ph: PlatedHole, ctx: BuildContext, size_delta: float
) -> BaseGeometry:
    """Hole of a polygon-pad plated hole, grown by ``size_delta``.

    Each dimension is clamped to at least the drill clearance.
    """
    cfg = ctx.config
    floor = cfg.drill_clearance
    seg = cfg.copper_segments
    hc = _hole_center(ph)
    shape = ph.hole_shape or "circle"

    if shape == "circle":
        d = _positive(ph.hole_diameter, "hole_diameter", "pcb_plated_hole", ph.id)
        return circle_profile(max(d + size_delta, floor) / 2.0, seg, hc)

    if shape in ("oval", "pill", "rotated_pill"):
        w = _positive(ph.hole_width or ph.hole_diameter, "hole_width", "pcb_plated_hole", ph.id)
        h = _positive(ph.hole_height or ph.hole_diameter, "hole_height", "pcb_plated_hole", ph.id)
        fn = ellipse_profile if shape == "oval" else pill_profile
        rotation = ph.ccw_rotation if shape == "rotated_pill" else 0.0
        return fn(max(w + size_delta, floor), max(h + size_delta, floor), seg, hc, rotation)

    # Any other hole shape is drilled as a cylinder.
    logger.debug("Plated hole [%s] hole shape %r drilled as a cylinder", ph.id, shape)
    d = ph.hole_diameter or ph.hole_width or ph.hole_height or floor
    return circle_profile(max(d + size_delta, floor) / 2.0, seg, hc)


def _polygon_pad_profiles(ph: PlatedHole, ctx: BuildContext) -> PlatedProfiles:
    cfg = ctx.config
    pad = polygon_profile([(ph.x + px, ph.y + py) for px, py in ph.pad_outline])
    if pad is None:
        raise DegenerateGeometryError("pcb_plated_hole", ph.id, "pad_outline has fewer than 3 points")
    return PlatedProfiles(
        pad=pad,
        barrel=polygon_pad_hole_profile(ph, ctx, 2 * cfg.plating_thickness),
        bore=polygon_pad_hole_profile(ph, ctx, 0.0),
        drill=polygon_pad_hole_profile(ph, ctx, 2 * cfg.drill_clearance),
    )


PLATED_HOLE_PROFILES: Dict[str, Callable[[PlatedHole, BuildContext], PlatedProfiles]] = {
    "circle": _circle_profiles,
    "pill": _slot_profiles,
    "oval": _slot_profiles,
    "rotated_pill": _slot_profiles,
    "circular_hole_with_rect_pad": _circle_rect_pad_profiles,
    "pill_hole_with_rect_pad": _pill_rect_pad_profiles,
    "rotated_pill_hole_with_rect_pad": _pill_rect_pad_profiles,
    "hole_with_polygon_pad": _polygon_pad_profiles,
}


def plated_hole_profiles(ph: PlatedHole, ctx: BuildContext) -> PlatedProfiles:
    builder = PLATED_HOLE_PROFILES.get(ph.shape)
    if builder is None:
        raise UnsupportedShapeError("pcb_plated_hole", ph.shape, ph.id)
    return builder(ph, ctx)


def build_plated_hole(
    ph: PlatedHole, work: BoardWork, ctx: BuildContext
) -> Tuple[Optional[FeatureSolid], Drill]:
    """Plated copper (clipped to the board) and the hole's drill."""
    profiles = plated_hole_profiles(ph, ctx)
    key = f"plated-hole-{ph.id}"

    pad_ring = profiles.pad.difference(profiles.bore)
    barrel = profiles.barrel.difference(profiles.bore)
    parts = [
        ctx.prism(barrel, ctx.thickness),
        ctx.prism(pad_ring, ctx.copper_thickness, ctx.layer_z("top")),
        ctx.prism(pad_ring, ctx.copper_thickness, ctx.layer_z("bottom")),
    ]
    copper = ctx.union(parts)
    ctx.retire(*parts, keep=copper)
    feature = clip_to_board(ctx, work, key, copper, profiles.pad.union(profiles.barrel))
    drill = Drill(
        key=key,
        board_cut=ctx.prism(profiles.drill, ctx.drill_depth),
        copper_cut=ctx.prism(profiles.bore, ctx.drill_depth),
        footprint=profiles.drill,
        copper_footprint=profiles.bore,
    )
    return feature, drill


# ─── Non-plated holes and vias ──────────────────────────────────────────────

def build_hole_drill(hole: Hole, ctx: BuildContext) -> Drill:
    cfg = ctx.config
    seg = cfg.drill_segments
    c = (hole.x, hole.y)
    depth = ctx.drill_depth
    shape = "circle" if hole.hole_shape == "round" else hole.hole_shape

    if shape == "circle":
        d = _positive(hole.hole_diameter, "hole_diameter", "pcb_hole", hole.id)
        board_r = d / 2.0 + cfg.drill_clearance
        board = circle_profile(board_r, seg, c)
        board_cut = cylinder(ctx, board_r, depth, c, segments=seg)
        copper = circle_profile(d / 2.0 + cfg.drill_clearance / 2.0, seg, c)
    elif shape in ("pill", "rotated_pill", "oval"):
        w = _positive(hole.hole_width or hole.hole_diameter, "hole_width", "pcb_hole", hole.id)
        h = _positive(hole.hole_height or hole.hole_diameter, "hole_height", "pcb_hole", hole.id)
        if shape == "oval":
            board = ellipse_profile(w, h, seg, c, hole.ccw_rotation)
            board_cut = oval_prism(ctx, w, h, depth, c, rotation=hole.ccw_rotation, segments=seg)
        else:
            board = pill_profile(w, h, seg, c, hole.ccw_rotation)
            board_cut = pill_prism(ctx, w, h, depth, c, rotation=hole.ccw_rotation, segments=seg)
        copper = board.buffer(-cfg.pill_copper_inset)
        if copper.is_empty:
            copper = board
    elif shape == "square":
        d = _positive(hole.hole_diameter, "hole_diameter", "pcb_hole", hole.id)
        board = rect_profile(d, d, c, hole.ccw_rotation)
        board_cut = cuboid(ctx, d, d, depth, c, rotation=hole.ccw_rotation)
        copper = board
    else:
        raise UnsupportedShapeError("pcb_hole", hole.hole_shape, hole.id)

    return Drill(
        key=f"hole-{hole.id}",
        board_cut=board_cut,
        copper_cut=ctx.prism(copper, depth),
        footprint=board,
        copper_footprint=copper,
    )


def build_via_drill(via: Via, ctx: BuildContext) -> Drill:
    cfg = ctx.config
    d = _positive(via.hole_diameter, "hole_diameter", "pcb_via", via.id)
    c = (via.x, via.y)
    board = circle_profile(d / 2.0 + cfg.drill_clearance, cfg.via_segments, c)
    bore = circle_profile(d / 2.0, cfg.via_segments, c)
    return Drill(
        key=f"via-{via.id}",
        board_cut=ctx.prism(board, ctx.drill_depth),
        copper_cut=ctx.prism(bore, ctx.drill_depth),
        footprint=board,
        copper_footprint=bore,
    )


# ─── Applying drills ────────────────────────────────────────────────────────

def _recut(
    ctx: BuildContext,
    features: Tuple[FeatureSolid, ...],
    cutter: Solid,
    footprint: BaseGeometry,
) -> Tuple[FeatureSolid, ...]:
    out = []
    for feature in features:
        if feature.footprint.intersects(footprint):
            solid = ctx.subtract(feature.solid, [cutter])
            ctx.retire(feature.solid, keep=solid)
            if ctx.is_empty(solid):
                logger.debug("%s fully removed by drill", feature.key)
                continue
            feature = replace(
                feature, solid=solid, footprint=feature.footprint.difference(footprint)
            )
        out.append(feature)
    return tuple(out)


def apply_drill(work: BoardWork, drill: Drill, ctx: BuildContext) -> BoardWork:
    """Drill the board and re-cut every overlapping copper feature."""
    board = ctx.subtract(work.board, [drill.board_cut])
    ctx.retire(work.board, keep=board)
    return replace(
        work,
        board=board,
        pads=_recut(ctx, work.pads, drill.board_cut, drill.footprint),
        copper_pours=_recut(ctx, work.copper_pours, drill.board_cut, drill.footprint),
        traces=_recut(ctx, work.traces, drill.board_cut, drill.footprint),
        plated_holes=_recut(ctx, work.plated_holes, drill.copper_cut, drill.copper_footprint),
        vias=_recut(ctx, work.vias, drill.copper_cut, drill.copper_footprint),
        drills=work.drills + (drill,),
    )


def process_plated_hole(work: BoardWork, ph: PlatedHole, ctx: BuildContext) -> BoardWork:
    feature, drill = build_plated_hole(ph, work, ctx)
    work = apply_drill(work, drill, ctx)
    if feature is not None:
        work = replace(work, plated_holes=work.plated_holes + (feature,))
    return work


def process_hole(work: BoardWork, hole: Hole, ctx: BuildContext) -> BoardWork:
    return apply_drill(work, build_hole_drill(hole, ctx), ctx)


def process_via(work: BoardWork, via: Via, ctx: BuildContext) -> BoardWork:
    # Copper first: an invalid via raises before anything is drilled.
    feature = build_via_copper(via, work, ctx)
    work = apply_drill(work, build_via_drill(via, ctx), ctx)
    return replace(work, vias=work.vias + (feature,))
