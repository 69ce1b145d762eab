"""Simplified board preview: the shell only, no copper and no drilling.

Shown while the full build is still stepping. Panels keep their board
cutouts so the preview matches the final silhouette.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from pcb_solids.backends import GeometryBackend, SolidArena, backend_from_config
from pcb_solids.colorize import apply_color, board_color
from pcb_solids.context import BuildContext
from pcb_solids.contracts import BuildConfig, CircuitElements, ColoredSolid, FeatureKind
from pcb_solids.shell import resolve_board_definition

logger = logging.getLogger(__name__)


def build_preview_solids(
    elements: CircuitElements,
    config: Optional[BuildConfig] = None,
    backend: Optional[GeometryBackend] = None,
) -> List[ColoredSolid]:
    config = config or BuildConfig()
    definition = resolve_board_definition(elements, config)
    backend = backend or backend_from_config(config)

    with SolidArena(backend) as arena:
        ctx = BuildContext(
            config=config,
            backend=backend,
            arena=arena,
            thickness=definition.thickness,
            material=definition.material,
        )
        shell = ctx.prism(definition.footprint, ctx.thickness)
        if definition.board_cutouts:
            cutters = [ctx.prism(fp, ctx.drill_depth) for fp in definition.board_cutouts]
            shell = ctx.subtract(shell, cutters)
        mesh = backend.to_mesh(shell)

    color = board_color(
        definition.material,
        masked=definition.is_panel and definition.covered_with_solder_mask,
    )
    logger.debug("Preview shell %s with %d faces", definition.key, len(mesh.faces))
    return [
        ColoredSolid(
            key=f"{definition.key}-preview",
            kind=FeatureKind.BOARD,
            mesh=apply_color(mesh, color),
            color=color,
        )
    ]
