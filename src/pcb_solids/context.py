"""Build context and the accumulator threaded through every build step."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional, Tuple

from shapely.geometry.base import BaseGeometry

from pcb_solids.backends import GeometryBackend, Solid, SolidArena
from pcb_solids.contracts import BuildConfig, ColoredSolid, SkippedElement


@dataclass(frozen=True)
class BuildContext:
    """Per-build constants shared by all steps."""

    config: BuildConfig
    backend: GeometryBackend
    arena: SolidArena
    thickness: float
    material: str = "fr4"

    @property
    def drill_depth(self) -> float:
        return self.thickness * self.config.drill_depth_factor

    @property
    def copper_thickness(self) -> float:
        return self.config.copper_thickness

    def layer_z(self, layer: str) -> float:
        """Z centre of copper on ``layer``; bottom mirrors top."""
        z = self.thickness / 2.0 + self.config.copper_surface_offset
        return -z if layer == "bottom" else z

    def prism(
        self, profile: BaseGeometry, height: float, z_center: float = 0.0
    ) -> Solid:
        return self.arena.track(self.backend.extrude(profile, height, z_center))

    def union(self, solids) -> Solid:
        return self.arena.track(self.backend.union(list(solids)))

    def subtract(self, solid: Solid, cutters) -> Solid:
        return self.arena.track(self.backend.subtract(solid, list(cutters)))

    def intersect(self, solid: Solid, other: Solid) -> Solid:
        return self.arena.track(self.backend.intersect(solid, other))

    def is_empty(self, solid: Solid) -> bool:
        return self.backend.is_empty(solid)

    def retire(self, *solids: Solid, keep: Solid = None) -> None:
        """Release superseded solids; ``keep`` is their replacement.

        Backends may hand an input back unchanged (a subtract with nothing
        to cut, a union of one part), so ``keep`` is never released.
        """
        for solid in solids:
            if solid is not None and solid is not keep:
                self.arena.release(solid)


@dataclass(frozen=True)
class FeatureSolid:
    """A copper solid plus its 2D footprint, used for cheap overlap tests."""

    key: str
    solid: Solid
    footprint: BaseGeometry
    covered_with_solder_mask: bool = False


@dataclass(frozen=True)
class Drill:
    """Cutters produced by one hole.

    ``board_cut`` removes substrate and cuts pads and pours; ``copper_cut``
    re-cuts plated copper built by earlier holes.
    """

    key: str
    board_cut: Solid
    copper_cut: Solid
    footprint: BaseGeometry
    copper_footprint: BaseGeometry


@dataclass(frozen=True)
class BoardWork:
    """Accumulated geometry. Every step returns a new value."""

    board: Solid
    clip: Solid
    clip_footprint: BaseGeometry
    pads: Tuple[FeatureSolid, ...] = ()
    copper_pours: Tuple[FeatureSolid, ...] = ()
    traces: Tuple[FeatureSolid, ...] = ()
    plated_holes: Tuple[FeatureSolid, ...] = ()
    vias: Tuple[FeatureSolid, ...] = ()
    drills: Tuple[Drill, ...] = ()
    pending_cutouts: Tuple[Solid, ...] = ()
    skipped: Tuple[SkippedElement, ...] = ()
    board_key: str = "board"
    board_color_masked: bool = False
    results: Optional[Tuple[ColoredSolid, ...]] = None

    def with_skipped(self, entry: SkippedElement) -> "BoardWork":
        return replace(self, skipped=self.skipped + (entry,))
