"""Board shell and clip volume construction.

The shell is the board outline (or an axis-aligned width x height rectangle)
extruded by the board thickness, centred on z=0. The clip volume is the same
footprint pushed out by a small lateral margin and made taller than the
board, so intersecting copper with it trims only what overhangs the outline.
With a panel, the panel rectangle is the shell and every board becomes a
cutout in it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from shapely.geometry.base import BaseGeometry

from geometry_primitives import polygon_profile, rect_profile
from pcb_solids.context import BoardWork, BuildContext
from pcb_solids.contracts import BuildConfig, CircuitElements, PcbBoard
from pcb_solids.cutouts import carve_cutouts
from pcb_solids.errors import BoardDefinitionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BoardDefinition:
    """Resolved shell parameters for one build."""

    key: str
    footprint: BaseGeometry
    thickness: float
    material: str
    board_cutouts: Tuple[BaseGeometry, ...] = ()
    is_panel: bool = False
    covered_with_solder_mask: bool = False


def board_footprint(board: PcbBoard) -> Optional[BaseGeometry]:
    """Outline polygon when usable, else the width x height rectangle."""
    if board.outline:
        profile = polygon_profile(board.outline)
        if profile is not None:
            return profile
        logger.warning(
            "Board [%s] outline has fewer than 3 usable points, falling back to width/height",
            board.id,
        )
    if board.width and board.height and board.width > 0 and board.height > 0:
        return rect_profile(board.width, board.height, board.center)
    return None


def resolve_board_definition(
    elements: CircuitElements, config: BuildConfig
) -> BoardDefinition:
    """Pick the authoritative shell: the first panel, else the first board."""
    if elements.panels:
        return _panel_definition(elements, config)

    boards = [b for b in elements.boards if not b.panel_id] or elements.boards
    if not boards:
        raise BoardDefinitionError("No pcb_board or pcb_panel record in input")
    board = boards[0]
    if len(boards) > 1:
        logger.warning(
            "%d boards in input, building board [%s] only", len(boards), board.id
        )

    thickness = (
        board.thickness if board.thickness is not None else config.default_board_thickness
    )
    if thickness <= 0:
        raise BoardDefinitionError(f"Board [{board.id}] thickness must be > 0, got {thickness}")

    footprint = board_footprint(board)
    if footprint is None:
        raise BoardDefinitionError(
            f"Board [{board.id}] needs an outline or positive width and height"
        )
    return BoardDefinition(
        key=f"board-{board.id}",
        footprint=footprint,
        thickness=thickness,
        material=board.material,
    )


def _panel_definition(
    elements: CircuitElements, config: BuildConfig
) -> BoardDefinition:
    panel = elements.panels[0]
    if not panel.width or not panel.height or panel.width <= 0 or panel.height <= 0:
        raise BoardDefinitionError(f"Panel [{panel.id}] needs positive width and height")

    first = elements.boards[0] if elements.boards else None
    thickness = config.default_panel_thickness
    material = "fr4"
    if first is not None:
        if first.thickness is not None:
            thickness = first.thickness
        material = first.material
    if thickness <= 0:
        raise BoardDefinitionError(f"Panel [{panel.id}] thickness must be > 0, got {thickness}")

    cutouts = []
    for board in elements.boards:
        footprint = board_footprint(board)
        if footprint is None:
            logger.warning("Board [%s] in panel has no footprint, not cut", board.id)
            continue
        cutouts.append(footprint)

    return BoardDefinition(
        key=f"panel-{panel.id}",
        footprint=rect_profile(panel.width, panel.height, panel.center),
        thickness=thickness,
        material=material,
        board_cutouts=tuple(cutouts),
        is_panel=True,
        covered_with_solder_mask=panel.covered_with_solder_mask,
    )


def build_clip_footprint(
    definition: BoardDefinition, config: BuildConfig
) -> BaseGeometry:
    return definition.footprint.buffer(config.clip_xy_outset, join_style="mitre")


def build_board_shell(definition: BoardDefinition, ctx: BuildContext) -> BoardWork:
    """Initial accumulator: undrilled shell plus the clip volume."""
    config = ctx.config
    board = ctx.prism(definition.footprint, ctx.thickness)
    if definition.board_cutouts:
        cutters = [ctx.prism(fp, ctx.drill_depth) for fp in definition.board_cutouts]
        carved = carve_cutouts(ctx, board, cutters)
        ctx.retire(board, *cutters, keep=carved)
        board = carved

    clip_footprint = build_clip_footprint(definition, config)
    clip = ctx.prism(clip_footprint, ctx.thickness + 2.0 * config.clip_z_margin)
    logger.debug(
        "Shell %s: %.3f mm thick, %d board cutouts",
        definition.key,
        ctx.thickness,
        len(definition.board_cutouts),
    )
    return BoardWork(
        board=board,
        clip=clip,
        clip_footprint=clip_footprint,
        board_key=definition.key,
        board_color_masked=definition.is_panel and definition.covered_with_solder_mask,
    )
