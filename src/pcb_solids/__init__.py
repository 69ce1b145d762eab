"""Public API for board solid construction."""

from pcb_solids.backends import ManifoldBackend, MeshBackend, get_backend
from pcb_solids.builder import (
    BoardSolidBuilder,
    BuildPhase,
    BuildState,
    advance,
    build_board_solids,
)
from pcb_solids.contracts import (
    BuildConfig,
    BuildResult,
    ColoredSolid,
    FeatureKind,
    partition_elements,
)
from pcb_solids.errors import (
    BoardDefinitionError,
    BoardGeometryError,
    DegenerateGeometryError,
    UnsupportedShapeError,
)
from pcb_solids.preview import build_preview_solids
from pcb_solids.primitives import (
    brep_prism,
    cuboid,
    cylinder,
    oval_prism,
    pill_prism,
    polygon_prism,
    rounded_rect_prism,
)

__all__ = [
    "BoardDefinitionError",
    "BoardGeometryError",
    "BoardSolidBuilder",
    "BuildConfig",
    "BuildPhase",
    "BuildResult",
    "BuildState",
    "ColoredSolid",
    "DegenerateGeometryError",
    "FeatureKind",
    "ManifoldBackend",
    "MeshBackend",
    "UnsupportedShapeError",
    "advance",
    "brep_prism",
    "build_board_solids",
    "build_preview_solids",
    "cuboid",
    "cylinder",
    "get_backend",
    "oval_prism",
    "partition_elements",
    "pill_prism",
    "polygon_prism",
    "rounded_rect_prism",
]
