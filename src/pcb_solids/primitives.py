"""3D prism builders: a 2D profile placed in the board plane, extruded along Z.

Drills and cutouts are built from these. They are also exported from
:mod:`pcb_solids` for callers composing extra solids in a build context.
"""

from __future__ import annotations

from typing import Optional, Sequence

from geometry_primitives import (
    Point2,
    brep_profile,
    circle_profile,
    ellipse_profile,
    pill_profile,
    polygon_profile,
    rect_profile,
    rounded_rect_profile,
)
from pcb_solids.backends import Solid
from pcb_solids.context import BuildContext
from pcb_solids.contracts import BrepShape


def cuboid(
    ctx: BuildContext,
    width: float,
    height: float,
    depth: float,
    center: Point2 = (0.0, 0.0),
    z: float = 0.0,
    rotation: float = 0.0,
) -> Solid:
    return ctx.prism(rect_profile(width, height, center, rotation), depth, z)


def cylinder(
    ctx: BuildContext,
    radius: float,
    depth: float,
    center: Point2 = (0.0, 0.0),
    z: float = 0.0,
    segments: int = 32,
) -> Solid:
    return ctx.prism(circle_profile(radius, segments, center), depth, z)


def rounded_rect_prism(
    ctx: BuildContext,
    width: float,
    height: float,
    depth: float,
    radius: Optional[float],
    center: Point2 = (0.0, 0.0),
    z: float = 0.0,
    rotation: float = 0.0,
    segments: int = 64,
) -> Solid:
    profile = rounded_rect_profile(width, height, radius, segments, center, rotation)
    return ctx.prism(profile, depth, z)


def pill_prism(
    ctx: BuildContext,
    width: float,
    height: float,
    depth: float,
    center: Point2 = (0.0, 0.0),
    z: float = 0.0,
    rotation: float = 0.0,
    segments: int = 32,
) -> Solid:
    return ctx.prism(pill_profile(width, height, segments, center, rotation), depth, z)


def oval_prism(
    ctx: BuildContext,
    width: float,
    height: float,
    depth: float,
    center: Point2 = (0.0, 0.0),
    z: float = 0.0,
    rotation: float = 0.0,
    segments: int = 64,
) -> Solid:
    return ctx.prism(ellipse_profile(width, height, segments, center, rotation), depth, z)


def polygon_prism(
    ctx: BuildContext, points: Sequence[Point2], depth: float, z: float = 0.0
) -> Optional[Solid]:
    """None when the polygon has fewer than three usable points."""
    profile = polygon_profile(points)
    if profile is None:
        return None
    return ctx.prism(profile, depth, z)


def brep_prism(
    ctx: BuildContext, brep: BrepShape, depth: float, z: float = 0.0
) -> Optional[Solid]:
    profile = brep_profile(brep.outer_ring, brep.inner_rings, ctx.config.arc_segments)
    if profile is None:
        return None
    return ctx.prism(profile, depth, z)
