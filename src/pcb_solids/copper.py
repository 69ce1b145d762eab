"""Copper features: SMT pads, copper pours, traces and via copper.

Surface copper is a thin prism (``copper_thickness``) centred just above the
top face or just below the bottom face. Every feature is intersected with the
board clip volume so nothing overhangs the outline.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Tuple

from shapely.geometry import LineString
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union

from geometry_primitives import (
    Point2,
    brep_profile,
    circle_profile,
    polygon_profile,
    rect_profile,
    rounded_rect_profile,
)
from pcb_solids.backends import Solid
from pcb_solids.context import BoardWork, BuildContext, FeatureSolid
from pcb_solids.contracts import CopperPour, PcbTrace, SmtPad, Via
from pcb_solids.errors import DegenerateGeometryError, UnsupportedShapeError

logger = logging.getLogger(__name__)


def clip_to_board(
    ctx: BuildContext,
    work: BoardWork,
    key: str,
    solid: Solid,
    footprint: BaseGeometry,
    covered_with_solder_mask: bool = False,
) -> Optional[FeatureSolid]:
    """Intersect a feature with the clip volume; None if nothing remains."""
    footprint = footprint.intersection(work.clip_footprint)
    if footprint.is_empty:
        logger.debug("%s lies outside the board outline, dropped", key)
        ctx.retire(solid)
        return None
    clipped = ctx.intersect(work.clip, solid)
    ctx.retire(solid, keep=clipped)
    if ctx.is_empty(clipped):
        logger.debug("%s is empty after clipping, dropped", key)
        return None
    return FeatureSolid(key, clipped, footprint, covered_with_solder_mask)


# ─── SMT pads ───────────────────────────────────────────────────────────────

def smt_pad_profile(pad: SmtPad, ctx: BuildContext) -> BaseGeometry:
    segments = ctx.config.copper_segments
    center = (pad.x, pad.y)

    if pad.shape in ("rect", "rotated_rect"):
        if not pad.width or not pad.height or pad.width <= 0 or pad.height <= 0:
            raise DegenerateGeometryError("pcb_smtpad", pad.id, f"{pad.shape} needs positive width and height")
        rotation = pad.ccw_rotation if pad.shape == "rotated_rect" else 0.0
        return rounded_rect_profile(
            pad.width, pad.height, pad.corner_radius, segments, center, rotation
        )

    if pad.shape == "circle":
        radius = pad.radius
        if radius is None and pad.width:
            radius = pad.width / 2.0
        if not radius or radius <= 0:
            raise DegenerateGeometryError("pcb_smtpad", pad.id, "circle needs a positive radius")
        return circle_profile(radius, segments, center)

    if pad.shape == "polygon":
        profile = polygon_profile(pad.points)
        if profile is None:
            raise DegenerateGeometryError("pcb_smtpad", pad.id, "polygon has fewer than 3 points")
        return profile

    raise UnsupportedShapeError("pcb_smtpad", pad.shape, pad.id)


def build_smt_pad(
    pad: SmtPad, work: BoardWork, ctx: BuildContext
) -> Optional[FeatureSolid]:
    profile = smt_pad_profile(pad, ctx)
    solid = ctx.prism(profile, ctx.copper_thickness, ctx.layer_z(pad.layer))
    return clip_to_board(ctx, work, f"pad-{pad.id}", solid, profile)


def process_pad(work: BoardWork, pad: SmtPad, ctx: BuildContext) -> BoardWork:
    feature = build_smt_pad(pad, work, ctx)
    if feature is None:
        return work
    return replace(work, pads=work.pads + (feature,))


# ─── Copper pours ───────────────────────────────────────────────────────────

def copper_pour_profile(pour: CopperPour, ctx: BuildContext) -> BaseGeometry:
    if pour.shape == "rect":
        if not pour.width or not pour.height or pour.width <= 0 or pour.height <= 0:
            raise DegenerateGeometryError("pcb_copper_pour", pour.id, "rect needs positive width and height")
        return rect_profile(pour.width, pour.height, pour.center, pour.rotation)

    if pour.shape == "polygon":
        profile = polygon_profile(pour.points)
        if profile is None:
            raise DegenerateGeometryError("pcb_copper_pour", pour.id, "polygon has fewer than 3 points")
        return profile

    if pour.shape == "brep":
        if pour.brep_shape is None:
            raise DegenerateGeometryError("pcb_copper_pour", pour.id, "brep pour has no brep_shape")
        profile = brep_profile(
            pour.brep_shape.outer_ring, pour.brep_shape.inner_rings, ctx.config.arc_segments
        )
        if profile is None:
            raise DegenerateGeometryError("pcb_copper_pour", pour.id, "brep outer ring has fewer than 3 points")
        return profile

    raise UnsupportedShapeError("pcb_copper_pour", pour.shape, pour.id)


def build_copper_pour(
    pour: CopperPour,
    work: BoardWork,
    ctx: BuildContext,
    hole_cutters: Sequence[Solid] = (),
) -> Optional[FeatureSolid]:
    """Pour solid, minus ``hole_cutters`` when given, clipped to the board."""
    profile = copper_pour_profile(pour, ctx)
    solid = ctx.prism(profile, ctx.copper_thickness, ctx.layer_z(pour.layer))
    if hole_cutters:
        cut = ctx.subtract(solid, hole_cutters)
        ctx.retire(solid, keep=cut)
        solid = cut
    return clip_to_board(
        ctx, work, f"pour-{pour.id}", solid, profile, pour.covered_with_solder_mask
    )


def process_copper_pour(
    work: BoardWork, pour: CopperPour, ctx: BuildContext
) -> BoardWork:
    cutters = [drill.board_cut for drill in work.drills]
    feature = build_copper_pour(pour, work, ctx, hole_cutters=cutters)
    if feature is None:
        return work
    return replace(work, copper_pours=work.copper_pours + (feature,))


# ─── Via copper ─────────────────────────────────────────────────────────────

def build_via_copper(via: Via, work: BoardWork, ctx: BuildContext) -> FeatureSolid:
    """Barrel plus top and bottom annular rings, minus the bore.

    Raises DegenerateGeometryError unless outer diameter > hole diameter.
    """
    hole_d, outer_d = via.hole_diameter, via.outer_diameter
    if not hole_d or not outer_d or hole_d <= 0:
        raise DegenerateGeometryError("pcb_via", via.id, "needs hole and outer diameters")
    if outer_d <= hole_d:
        raise DegenerateGeometryError(
            "pcb_via",
            via.id,
            f"outer diameter {outer_d} must exceed hole diameter {hole_d}",
        )

    segments = ctx.config.via_segments
    center = (via.x, via.y)
    bore = circle_profile(hole_d / 2.0, segments, center)
    barrel_r = min(outer_d / 2.0, hole_d / 2.0 + ctx.config.plating_thickness)
    barrel = circle_profile(barrel_r, segments, center).difference(bore)
    ring = circle_profile(outer_d / 2.0, segments, center).difference(bore)

    parts = [
        ctx.prism(barrel, ctx.thickness),
        ctx.prism(ring, ctx.copper_thickness, ctx.layer_z("top")),
        ctx.prism(ring, ctx.copper_thickness, ctx.layer_z("bottom")),
    ]
    copper = ctx.union(parts)
    ctx.retire(*parts, keep=copper)
    feature = clip_to_board(ctx, work, f"via-{via.id}", copper, ring)
    if feature is None:
        raise DegenerateGeometryError("pcb_via", via.id, "lies outside the board outline")
    return feature


# ─── Traces ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class TraceSegment:
    """A run of route points on one copper layer."""

    layer: str
    width: float
    points: Tuple[Point2, ...]


def trace_segments(trace: PcbTrace, default_width: float) -> List[TraceSegment]:
    """Split a route wherever it changes layer or passes through a via.

    The transition point ends one segment and starts the next. A segment
    takes the width of its first point that carries one.
    """
    segments: List[TraceSegment] = []
    points: List[Point2] = []
    layer: Optional[str] = None
    width: Optional[float] = None

    def close() -> None:
        if len(points) >= 2:
            w = width if width is not None else default_width
            segments.append(TraceSegment(layer or "top", w, tuple(points)))

    for rp in trace.route:
        xy = (rp.x, rp.y)
        if rp.route_type == "via":
            points.append(xy)
            close()
            points, layer, width = [xy], None, None
            continue
        if layer is not None and rp.layer != layer:
            points.append(xy)
            close()
            points, width = [xy], None
        elif not points or points[-1] != xy:
            points.append(xy)
        layer = rp.layer
        if width is None:
            width = rp.width
    close()
    return segments


def trace_segment_profile(
    segment: TraceSegment, work: BoardWork, ctx: BuildContext
) -> BaseGeometry:
    """Round-capped outline of a segment, minus holes already drilled."""
    quad_segs = max(1, ctx.config.copper_segments // 4)
    profile = LineString(segment.points).buffer(segment.width / 2.0, quad_segs=quad_segs)
    drilled = [d.footprint for d in work.drills if d.footprint.intersects(profile)]
    if drilled:
        profile = profile.difference(unary_union(drilled))
    return profile


def build_traces(
    trace: PcbTrace, work: BoardWork, ctx: BuildContext
) -> List[FeatureSolid]:
    """One clipped, solder-masked copper solid per route segment."""
    segments = trace_segments(trace, ctx.config.default_trace_width)
    if not segments:
        raise DegenerateGeometryError("pcb_trace", trace.id, "route needs two distinct points")

    features: List[FeatureSolid] = []
    for index, segment in enumerate(segments):
        if segment.layer not in ("top", "bottom"):
            logger.debug("Trace [%s] segment on %s layer skipped", trace.id, segment.layer)
            continue
        if segment.width <= 0:
            raise DegenerateGeometryError("pcb_trace", trace.id, "width must be > 0")
        profile = trace_segment_profile(segment, work, ctx)
        if profile.is_empty:
            continue
        key = f"trace-{trace.id}" if len(segments) == 1 else f"trace-{trace.id}-{index}"
        solid = ctx.prism(profile, ctx.copper_thickness, ctx.layer_z(segment.layer))
        feature = clip_to_board(ctx, work, key, solid, profile, covered_with_solder_mask=True)
        if feature is not None:
            features.append(feature)
    return features


def process_trace(work: BoardWork, trace: PcbTrace, ctx: BuildContext) -> BoardWork:
    features = build_traces(trace, work, ctx)
    if not features:
        return work
    return replace(work, traces=work.traces + tuple(features))
