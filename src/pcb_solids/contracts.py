"""Contracts for board solid construction: input records, config, outputs."""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import trimesh

logger = logging.getLogger(__name__)

Vec2 = Tuple[float, float]
RGB = Tuple[float, float, float]


@dataclass(frozen=True)
class BuildConfig:
    """Configuration for board solid construction. Lengths in mm."""

    backend: str = "mesh"  # "mesh" | "manifold"
    boolean_engine: str = "manifold"  # trimesh boolean engine for the mesh backend
    copper_thickness: float = 0.01
    copper_surface_offset: float = 0.001
    plating_thickness: float = 0.01
    drill_clearance: float = 0.01  # board drills are the hole plus this, radially
    pill_copper_inset: float = 0.02
    default_outer_margin: float = 0.2  # outer = hole + margin when outer size is missing
    clip_xy_outset: float = 0.05
    clip_z_margin: float = 1.0
    drill_depth_factor: float = 1.5  # cutter height as a multiple of thickness

    # Faceting
    copper_segments: int = 64
    via_segments: int = 32
    drill_segments: int = 32
    arc_segments: int = 16

    default_trace_width: float = 0.1

    default_board_thickness: float = 1.2
    default_panel_thickness: float = 1.6
    strict_shapes: bool = False  # unknown shape tags are fatal for every kind


# ─── Input records ──────────────────────────────────────────────────────────

def _point(value: Any) -> Vec2:
    if isinstance(value, Mapping):
        return (float(value.get("x", 0.0)), float(value.get("y", 0.0)))
    x, y = value[0], value[1]
    return (float(x), float(y))


def _points(values: Optional[Iterable[Any]]) -> Tuple[Vec2, ...]:
    if not values:
        return ()
    return tuple(_point(v) for v in values)


def _opt_float(record: Mapping[str, Any], *keys: str) -> Optional[float]:
    for key in keys:
        value = record.get(key)
        if value is not None:
            return float(value)
    return None


def _element_id(record: Mapping[str, Any], type_tag: str) -> str:
    value = record.get(f"{type_tag}_id")
    if value:
        return str(value)
    canonical = json.dumps(record, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:12]


def _corner_radius(record: Mapping[str, Any]) -> Optional[float]:
    return _opt_float(record, "corner_radius", "rect_border_radius", "rect_pad_border_radius")


@dataclass(frozen=True)
class PcbBoard:
    id: str
    center: Vec2 = (0.0, 0.0)
    width: Optional[float] = None
    height: Optional[float] = None
    thickness: Optional[float] = None
    material: str = "fr4"
    num_layers: int = 2
    outline: Tuple[Vec2, ...] = ()
    panel_id: Optional[str] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "PcbBoard":
        return cls(
            id=_element_id(record, "pcb_board"),
            center=_point(record.get("center") or (0.0, 0.0)),
            width=_opt_float(record, "width"),
            height=_opt_float(record, "height"),
            thickness=_opt_float(record, "thickness"),
            material=str(record.get("material") or "fr4"),
            num_layers=int(record.get("num_layers") or 2),
            outline=_points(record.get("outline")),
            panel_id=record.get("pcb_panel_id"),
        )


@dataclass(frozen=True)
class PcbPanel:
    id: str
    center: Vec2 = (0.0, 0.0)
    width: Optional[float] = None
    height: Optional[float] = None
    covered_with_solder_mask: bool = False

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "PcbPanel":
        return cls(
            id=_element_id(record, "pcb_panel"),
            center=_point(record.get("center") or (0.0, 0.0)),
            width=_opt_float(record, "width"),
            height=_opt_float(record, "height"),
            covered_with_solder_mask=bool(record.get("covered_with_solder_mask", False)),
        )


@dataclass(frozen=True)
class PlatedHole:
    id: str
    shape: str
    x: float = 0.0
    y: float = 0.0
    hole_diameter: Optional[float] = None
    hole_width: Optional[float] = None
    hole_height: Optional[float] = None
    outer_diameter: Optional[float] = None
    outer_width: Optional[float] = None
    outer_height: Optional[float] = None
    hole_offset_x: float = 0.0
    hole_offset_y: float = 0.0
    ccw_rotation: float = 0.0
    hole_ccw_rotation: float = 0.0
    rect_pad_width: Optional[float] = None
    rect_pad_height: Optional[float] = None
    rect_border_radius: Optional[float] = None
    rect_ccw_rotation: float = 0.0
    hole_shape: Optional[str] = None
    pad_outline: Tuple[Vec2, ...] = ()

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "PlatedHole":
        return cls(
            id=_element_id(record, "pcb_plated_hole"),
            shape=str(record.get("shape") or ""),
            x=float(record.get("x", 0.0)),
            y=float(record.get("y", 0.0)),
            hole_diameter=_opt_float(record, "hole_diameter"),
            hole_width=_opt_float(record, "hole_width"),
            hole_height=_opt_float(record, "hole_height"),
            outer_diameter=_opt_float(record, "outer_diameter"),
            outer_width=_opt_float(record, "outer_width"),
            outer_height=_opt_float(record, "outer_height"),
            hole_offset_x=float(record.get("hole_offset_x") or 0.0),
            hole_offset_y=float(record.get("hole_offset_y") or 0.0),
            ccw_rotation=float(record.get("ccw_rotation") or 0.0),
            hole_ccw_rotation=float(record.get("hole_ccw_rotation") or 0.0),
            rect_pad_width=_opt_float(record, "rect_pad_width"),
            rect_pad_height=_opt_float(record, "rect_pad_height"),
            rect_border_radius=_corner_radius(record),
            rect_ccw_rotation=float(record.get("rect_ccw_rotation") or 0.0),
            hole_shape=record.get("hole_shape"),
            pad_outline=_points(record.get("pad_outline")),
        )


@dataclass(frozen=True)
class Hole:
    id: str
    hole_shape: str
    x: float = 0.0
    y: float = 0.0
    hole_diameter: Optional[float] = None
    hole_width: Optional[float] = None
    hole_height: Optional[float] = None
    ccw_rotation: float = 0.0

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Hole":
        return cls(
            id=_element_id(record, "pcb_hole"),
            hole_shape=str(record.get("hole_shape") or record.get("shape") or "circle"),
            x=float(record.get("x", 0.0)),
            y=float(record.get("y", 0.0)),
            hole_diameter=_opt_float(record, "hole_diameter", "diameter"),
            hole_width=_opt_float(record, "hole_width"),
            hole_height=_opt_float(record, "hole_height"),
            ccw_rotation=float(record.get("ccw_rotation") or 0.0),
        )


@dataclass(frozen=True)
class SmtPad:
    id: str
    shape: str
    x: float = 0.0
    y: float = 0.0
    width: Optional[float] = None
    height: Optional[float] = None
    radius: Optional[float] = None
    points: Tuple[Vec2, ...] = ()
    layer: str = "top"
    ccw_rotation: float = 0.0
    corner_radius: Optional[float] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "SmtPad":
        return cls(
            id=_element_id(record, "pcb_smtpad"),
            shape=str(record.get("shape") or ""),
            x=float(record.get("x", 0.0)),
            y=float(record.get("y", 0.0)),
            width=_opt_float(record, "width"),
            height=_opt_float(record, "height"),
            radius=_opt_float(record, "radius"),
            points=_points(record.get("points")),
            layer=str(record.get("layer") or "top"),
            ccw_rotation=float(record.get("ccw_rotation") or 0.0),
            corner_radius=_corner_radius(record),
        )


@dataclass(frozen=True)
class Via:
    id: str
    x: float = 0.0
    y: float = 0.0
    hole_diameter: Optional[float] = None
    outer_diameter: Optional[float] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Via":
        return cls(
            id=_element_id(record, "pcb_via"),
            x=float(record.get("x", 0.0)),
            y=float(record.get("y", 0.0)),
            hole_diameter=_opt_float(record, "hole_diameter"),
            outer_diameter=_opt_float(record, "outer_diameter"),
        )


@dataclass(frozen=True)
class Cutout:
    id: str
    shape: str
    center: Vec2 = (0.0, 0.0)
    width: Optional[float] = None
    height: Optional[float] = None
    radius: Optional[float] = None
    points: Tuple[Vec2, ...] = ()
    rotation: float = 0.0
    corner_radius: Optional[float] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Cutout":
        return cls(
            id=_element_id(record, "pcb_cutout"),
            shape=str(record.get("shape") or ""),
            center=_point(record.get("center") or (0.0, 0.0)),
            width=_opt_float(record, "width"),
            height=_opt_float(record, "height"),
            radius=_opt_float(record, "radius"),
            points=_points(record.get("points")),
            rotation=float(record.get("rotation") or 0.0),
            corner_radius=_corner_radius(record),
        )


@dataclass(frozen=True)
class BrepShape:
    """Outer ring plus optional inner rings of (x, y, bulge) vertices."""

    outer_ring: Tuple[Tuple[float, float, float], ...]
    inner_rings: Tuple[Tuple[Tuple[float, float, float], ...], ...] = ()

    @staticmethod
    def _ring(ring: Any) -> Tuple[Tuple[float, float, float], ...]:
        vertices = ring.get("vertices", ()) if isinstance(ring, Mapping) else ring
        out = []
        for v in vertices or ():
            if isinstance(v, Mapping):
                out.append((float(v.get("x", 0.0)), float(v.get("y", 0.0)), float(v.get("bulge") or 0.0)))
            else:
                bulge = float(v[2]) if len(v) > 2 and v[2] is not None else 0.0
                out.append((float(v[0]), float(v[1]), bulge))
        return tuple(out)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "BrepShape":
        return cls(
            outer_ring=cls._ring(record.get("outer_ring") or ()),
            inner_rings=tuple(cls._ring(r) for r in record.get("inner_rings") or ()),
        )


@dataclass(frozen=True)
class CopperPour:
    id: str
    shape: str
    layer: str = "top"
    center: Vec2 = (0.0, 0.0)
    width: Optional[float] = None
    height: Optional[float] = None
    rotation: float = 0.0
    points: Tuple[Vec2, ...] = ()
    brep_shape: Optional[BrepShape] = None
    covered_with_solder_mask: bool = True

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "CopperPour":
        brep = record.get("brep_shape")
        return cls(
            id=_element_id(record, "pcb_copper_pour"),
            shape=str(record.get("shape") or ""),
            layer=str(record.get("layer") or "top"),
            center=_point(record.get("center") or (0.0, 0.0)),
            width=_opt_float(record, "width"),
            height=_opt_float(record, "height"),
            rotation=float(record.get("rotation") or 0.0),
            points=_points(record.get("points")),
            brep_shape=BrepShape.from_record(brep) if brep else None,
            # Only an explicit False exposes the copper.
            covered_with_solder_mask=record.get("covered_with_solder_mask") is not False,
        )


@dataclass(frozen=True)
class RoutePoint:
    """One point of a trace route: a ``wire`` point or a ``via`` transition."""

    route_type: str
    x: float
    y: float
    width: Optional[float] = None
    layer: str = "top"

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "RoutePoint":
        return cls(
            route_type=str(record.get("route_type") or "wire"),
            x=float(record.get("x", 0.0)),
            y=float(record.get("y", 0.0)),
            width=_opt_float(record, "width"),
            layer=str(record.get("layer") or record.get("from_layer") or "top"),
        )


@dataclass(frozen=True)
class PcbTrace:
    id: str
    route: Tuple[RoutePoint, ...] = ()

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "PcbTrace":
        return cls(
            id=_element_id(record, "pcb_trace"),
            route=tuple(RoutePoint.from_record(p) for p in record.get("route") or ()),
        )


RECORD_TYPES = {
    "pcb_board": PcbBoard,
    "pcb_panel": PcbPanel,
    "pcb_plated_hole": PlatedHole,
    "pcb_hole": Hole,
    "pcb_smtpad": SmtPad,
    "pcb_via": Via,
    "pcb_cutout": Cutout,
    "pcb_copper_pour": CopperPour,
    "pcb_trace": PcbTrace,
}

Element = Union[
    PcbBoard, PcbPanel, PlatedHole, Hole, SmtPad, Via, Cutout, CopperPour, PcbTrace
]


@dataclass
class CircuitElements:
    """Input records partitioned by kind, in input order."""

    boards: List[PcbBoard] = field(default_factory=list)
    panels: List[PcbPanel] = field(default_factory=list)
    plated_holes: List[PlatedHole] = field(default_factory=list)
    holes: List[Hole] = field(default_factory=list)
    smt_pads: List[SmtPad] = field(default_factory=list)
    vias: List[Via] = field(default_factory=list)
    cutouts: List[Cutout] = field(default_factory=list)
    copper_pours: List[CopperPour] = field(default_factory=list)
    traces: List[PcbTrace] = field(default_factory=list)

    def counts(self) -> Dict[str, int]:
        return {
            "boards": len(self.boards),
            "panels": len(self.panels),
            "plated_holes": len(self.plated_holes),
            "holes": len(self.holes),
            "smt_pads": len(self.smt_pads),
            "vias": len(self.vias),
            "cutouts": len(self.cutouts),
            "copper_pours": len(self.copper_pours),
            "traces": len(self.traces),
        }


_BUCKETS = {
    PcbBoard: "boards",
    PcbPanel: "panels",
    PlatedHole: "plated_holes",
    Hole: "holes",
    SmtPad: "smt_pads",
    Via: "vias",
    Cutout: "cutouts",
    CopperPour: "copper_pours",
    PcbTrace: "traces",
}


def partition_elements(
    elements: Iterable[Union[Mapping[str, Any], Element]],
) -> CircuitElements:
    """Sort records into per-kind lists. Unrelated record types are ignored."""
    out = CircuitElements()
    ignored = 0
    for element in elements:
        if isinstance(element, Mapping):
            record_cls = RECORD_TYPES.get(element.get("type"))
            if record_cls is None:
                ignored += 1
                continue
            element = record_cls.from_record(element)
        bucket = _BUCKETS.get(type(element))
        if bucket is None:
            ignored += 1
            continue
        getattr(out, bucket).append(element)
    if ignored:
        logger.debug("Ignored %d records with no solid geometry", ignored)
    return out


# ─── Outputs ────────────────────────────────────────────────────────────────

class FeatureKind(str, Enum):
    BOARD = "board"
    PLATED_HOLE = "plated_hole"
    PAD = "pad"
    VIA = "via"
    COPPER_POUR = "copper_pour"
    TRACE = "trace"


@dataclass
class ColoredSolid:
    """A finished solid with its display color."""

    key: str
    kind: FeatureKind
    mesh: trimesh.Trimesh
    color: RGB


@dataclass(frozen=True)
class SkippedElement:
    """A record left out of the model, with the reason."""

    element_type: str
    element_id: str
    reason: str


@dataclass
class BuildResult:
    solids: List[ColoredSolid]
    thickness: float
    material: str
    skipped: List[SkippedElement] = field(default_factory=list)
    stats: Dict[str, Any] = field(default_factory=dict)

    def by_kind(self, kind: FeatureKind) -> List[ColoredSolid]:
        return [s for s in self.solids if s.kind == kind]

    @property
    def board(self) -> Optional[ColoredSolid]:
        boards = self.by_kind(FeatureKind.BOARD)
        return boards[0] if boards else None

    def to_scene(self) -> trimesh.Scene:
        scene = trimesh.Scene()
        for solid in self.solids:
            scene.add_geometry(solid.mesh, node_name=solid.key, geom_name=solid.key)
        return scene
