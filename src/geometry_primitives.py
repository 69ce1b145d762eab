"""
2D profile geometry for board features.

Built on Shapely. Every board feature is a prism: a 2D profile (circle,
rounded rectangle, pill, ellipse, polygon, or a ring of bulge arcs) placed in
the board plane and extruded along Z. This module builds those profiles and
the polygon helpers the solid builders share (winding, corner-radius
clamping, bulge arc expansion).
"""
import math
from typing import List, Optional, Sequence, Tuple

import numpy as np
from shapely import affinity
from shapely.geometry import GeometryCollection, MultiPolygon, Polygon
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union
from shapely.validation import make_valid

Point2 = Tuple[float, float]
BulgeVertex = Tuple[float, float, float]  # (x, y, bulge)

_POINT_EPS = 1e-12
_BULGE_EPS = 1e-9


# ─── Polygon helpers ────────────────────────────────────────────────────────

def signed_area(points: Sequence[Point2]) -> float:
    """Shoelace signed area. Positive for counter-clockwise rings."""
    if len(points) < 3:
        return 0.0
    pts = np.asarray(points, dtype=float)
    x = pts[:, 0]
    y = pts[:, 1]
    return float(0.5 * (np.dot(x, np.roll(y, -1)) - np.dot(np.roll(x, -1), y)))


def are_points_clockwise(points: Sequence[Point2]) -> bool:
    # Zero-area rings count as clockwise and get reversed.
    return signed_area(points) <= 0.0


def normalize_winding(points: Sequence[Point2]) -> List[Point2]:
    """Return the ring in counter-clockwise order."""
    pts = [(float(x), float(y)) for x, y in points]
    if are_points_clockwise(pts):
        pts.reverse()
    return pts


def clamp_rect_border_radius(
    width: float, height: float, radius: Optional[float]
) -> float:
    """Effective corner radius: min(radius, width/2, height/2), 0 if unset."""
    if radius is None or not math.isfinite(radius) or radius <= 0:
        return 0.0
    if width <= 0 or height <= 0:
        return 0.0
    return max(0.0, min(float(radius), width / 2.0, height / 2.0))


def polygonal_parts(geom: Optional[BaseGeometry]) -> List[Polygon]:
    """Non-empty polygons contained in a Shapely result."""
    if geom is None or geom.is_empty:
        return []
    if isinstance(geom, Polygon):
        return [geom] if geom.area > 0 else []
    if isinstance(geom, (MultiPolygon, GeometryCollection)):
        parts: List[Polygon] = []
        for sub in geom.geoms:
            parts.extend(polygonal_parts(sub))
        return parts
    return []


def place(
    profile: BaseGeometry,
    center: Point2 = (0.0, 0.0),
    rotation_deg: float = 0.0,
) -> BaseGeometry:
    """Rotate a profile about the origin, then move it to ``center``."""
    if profile.is_empty:
        return profile
    if rotation_deg:
        profile = affinity.rotate(profile, rotation_deg, origin=(0.0, 0.0))
    cx, cy = center
    if cx or cy:
        profile = affinity.translate(profile, xoff=cx, yoff=cy)
    return profile


def _dedupe(points: List[Point2]) -> List[Point2]:
    out: List[Point2] = []
    for p in points:
        if out and abs(p[0] - out[-1][0]) < _POINT_EPS and abs(p[1] - out[-1][1]) < _POINT_EPS:
            continue
        out.append(p)
    if len(out) > 1 and abs(out[0][0] - out[-1][0]) < _POINT_EPS and abs(out[0][1] - out[-1][1]) < _POINT_EPS:
        out.pop()
    return out


# ─── Profiles ───────────────────────────────────────────────────────────────

def circle_profile(
    radius: float, segments: int = 32, center: Point2 = (0.0, 0.0)
) -> Polygon:
    """N-gon approximation of a circle, first vertex at angle 0."""
    if radius <= 0:
        return Polygon()
    n = max(3, int(segments))
    angles = np.linspace(0.0, 2.0 * np.pi, n, endpoint=False)
    cx, cy = center
    return Polygon(
        list(zip(cx + radius * np.cos(angles), cy + radius * np.sin(angles)))
    )


def rect_profile(
    width: float,
    height: float,
    center: Point2 = (0.0, 0.0),
    rotation_deg: float = 0.0,
) -> BaseGeometry:
    if width <= 0 or height <= 0:
        return Polygon()
    hw, hh = width / 2.0, height / 2.0
    rect = Polygon([(-hw, -hh), (hw, -hh), (hw, hh), (-hw, hh)])
    return place(rect, center, rotation_deg)


def rounded_rect_profile(
    width: float,
    height: float,
    radius: Optional[float],
    segments: int = 64,
    center: Point2 = (0.0, 0.0),
    rotation_deg: float = 0.0,
) -> BaseGeometry:
    """Rectangle with circular corners.

    The radius is clamped with :func:`clamp_rect_border_radius`; a clamped
    radius of zero gives a plain rectangle. ``segments`` is the vertex budget
    for all four corners together.
    """
    r = clamp_rect_border_radius(width, height, radius)
    if r <= 0:
        return rect_profile(width, height, center, rotation_deg)

    hw, hh = width / 2.0, height / 2.0
    steps = max(1, int(segments) // 4)
    corners = [
        (hw - r, -hh + r, -0.5 * np.pi),
        (hw - r, hh - r, 0.0),
        (-hw + r, hh - r, 0.5 * np.pi),
        (-hw + r, -hh + r, np.pi),
    ]
    points: List[Point2] = []
    for cx, cy, start in corners:
        for k in range(steps + 1):
            a = start + 0.5 * np.pi * k / steps
            points.append((cx + r * math.cos(a), cy + r * math.sin(a)))
    return place(Polygon(_dedupe(points)), center, rotation_deg)


def pill_profile(
    width: float,
    height: float,
    segments: int = 32,
    center: Point2 = (0.0, 0.0),
    rotation_deg: float = 0.0,
) -> BaseGeometry:
    """Stadium: a rectangle with two semicircular end caps.

    The caps sit on the longer axis. Equal width and height give a circle.
    """
    if width <= 0 or height <= 0:
        return Polygon()
    if abs(width - height) < 1e-9:
        return place(circle_profile(width / 2.0, segments), center, rotation_deg)

    long_side = max(width, height)
    short_side = min(width, height)
    r = short_side / 2.0
    half = (long_side - short_side) / 2.0
    steps = max(2, int(segments) // 2)

    points: List[Point2] = []
    for k in range(steps + 1):
        a = -0.5 * np.pi + np.pi * k / steps
        points.append((half + r * math.cos(a), r * math.sin(a)))
    for k in range(steps + 1):
        a = 0.5 * np.pi + np.pi * k / steps
        points.append((-half + r * math.cos(a), r * math.sin(a)))

    pill = Polygon(_dedupe(points))
    if height > width:
        pill = affinity.rotate(pill, 90.0, origin=(0.0, 0.0))
    return place(pill, center, rotation_deg)


def ellipse_profile(
    width: float,
    height: float,
    segments: int = 64,
    center: Point2 = (0.0, 0.0),
    rotation_deg: float = 0.0,
) -> BaseGeometry:
    if width <= 0 or height <= 0:
        return Polygon()
    n = max(3, int(segments))
    angles = np.linspace(0.0, 2.0 * np.pi, n, endpoint=False)
    ellipse = Polygon(
        list(zip(width / 2.0 * np.cos(angles), height / 2.0 * np.sin(angles)))
    )
    return place(ellipse, center, rotation_deg)


def polygon_profile(points: Sequence[Point2]) -> Optional[BaseGeometry]:
    """Counter-clockwise polygon from raw points, or None when degenerate.

    Self-intersecting input is repaired with ``make_valid``, which may split
    it into several polygons.
    """
    pts = _dedupe([(float(x), float(y)) for x, y in points])
    if len(pts) < 3:
        return None
    poly = Polygon(normalize_winding(pts))
    if not poly.is_valid:
        parts = polygonal_parts(make_valid(poly))
        if not parts:
            return None
        poly = parts[0] if len(parts) == 1 else MultiPolygon(parts)
    if poly.is_empty or poly.area <= 0:
        return None
    return poly


# ─── Bulge arcs ─────────────────────────────────────────────────────────────

def segment_to_points(
    p1: Point2, p2: Point2, bulge: float, arc_segments: int = 16
) -> List[Point2]:
    """Interior points of the arc from p1 to p2 described by ``bulge``.

    bulge = tan(theta / 4) where theta is the signed sweep angle; positive
    sweeps counter-clockwise. Endpoints are excluded, and a zero bulge (a
    straight edge) contributes nothing.
    """
    if not bulge or abs(bulge) < _BULGE_EPS:
        return []

    x1, y1 = p1
    x2, y2 = p2
    dx, dy = x2 - x1, y2 - y1
    dist = math.hypot(dx, dy)
    if dist < _POINT_EPS:
        return []

    theta = 4.0 * math.atan(bulge)
    radius = abs(dist / (2.0 * math.sin(theta / 2.0)))
    m = math.sqrt(max(0.0, radius * radius - (dist / 2.0) ** 2))

    ux, uy = dx / dist, dy / dist
    nx, ny = -uy, ux
    # Sweeps past a half turn keep the centre on the far side of the chord.
    side = math.copysign(1.0, bulge) * (1.0 if abs(theta) <= math.pi else -1.0)
    cx = (x1 + x2) / 2.0 + nx * m * side
    cy = (y1 + y2) / 2.0 + ny * m * side

    start = math.atan2(y1 - cy, x1 - cx)
    num_steps = max(2, math.ceil(arc_segments * abs(theta) / (2.0 * math.pi) * 4))
    step = theta / num_steps
    return [
        (cx + radius * math.cos(start + step * i), cy + radius * math.sin(start + step * i))
        for i in range(1, num_steps)
    ]


def ring_to_points(
    vertices: Sequence[BulgeVertex], arc_segments: int = 16
) -> List[Point2]:
    """Expand a closed ring of bulge vertices into a point list."""
    points: List[Point2] = []
    count = len(vertices)
    for i, (x, y, bulge) in enumerate(vertices):
        points.append((float(x), float(y)))
        if bulge:
            nx, ny, _ = vertices[(i + 1) % count]
            points.extend(segment_to_points((x, y), (nx, ny), bulge, arc_segments))
    return points


def brep_profile(
    outer: Sequence[BulgeVertex],
    inner_rings: Sequence[Sequence[BulgeVertex]] = (),
    arc_segments: int = 16,
) -> Optional[BaseGeometry]:
    """Outer ring minus every inner ring, after arc expansion."""
    shell = polygon_profile(ring_to_points(outer, arc_segments))
    if shell is None:
        return None

    holes = []
    for ring in inner_rings:
        hole = polygon_profile(ring_to_points(ring, arc_segments))
        if hole is not None:
            holes.append(hole)
    if holes:
        shell = shell.difference(unary_union(holes))
    if shell.is_empty:
        return None
    return shell
