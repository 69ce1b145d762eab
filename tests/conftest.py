"""
Shared test fixtures for board solid construction tests.
"""
import sys
import warnings
from pathlib import Path

# trimesh emits divide warnings when computing mass properties of empty results.
warnings.filterwarnings(
    "ignore",
    message="invalid value encountered in divide",
    category=RuntimeWarning,
    module=r"trimesh\..*",
)

import numpy as np
import pytest

# Add src/ to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from pcb_solids.backends import SolidArena, get_backend
from pcb_solids.context import BuildContext
from pcb_solids.contracts import BuildConfig, partition_elements
from pcb_solids.shell import build_board_shell, resolve_board_definition


def ngon_area(radius, segments):
    """Area of the regular N-gon used for circle profiles."""
    return 0.5 * segments * radius ** 2 * np.sin(2 * np.pi / segments)


@pytest.fixture(params=["mesh", "manifold"])
def backend(request):
    """Each geometry backend in turn."""
    return get_backend(request.param)


@pytest.fixture
def config():
    return BuildConfig()


@pytest.fixture
def board_record():
    """A 10x10mm, 1.2mm FR-4 board centred on the origin."""
    return {
        "type": "pcb_board",
        "pcb_board_id": "board_0",
        "center": {"x": 0, "y": 0},
        "width": 10,
        "height": 10,
        "thickness": 1.2,
        "material": "fr4",
    }


@pytest.fixture
def make_work(backend, config):
    """Build (ctx, work) for a list of records: shell and clip only."""

    def _make(records, cfg=None):
        cfg = cfg or config
        elements = partition_elements(records)
        definition = resolve_board_definition(elements, cfg)
        ctx = BuildContext(
            config=cfg,
            backend=backend,
            arena=SolidArena(backend),
            thickness=definition.thickness,
            material=definition.material,
        )
        return ctx, build_board_shell(definition, ctx)

    return _make


@pytest.fixture
def mixed_board(board_record):
    """One of every feature kind on a 10x10 board."""
    return [
        board_record,
        {"type": "pcb_smtpad", "pcb_smtpad_id": "pad_a", "shape": "rect",
         "x": -3, "y": 3, "width": 1.2, "height": 0.8, "layer": "top"},
        {"type": "pcb_smtpad", "pcb_smtpad_id": "pad_b", "shape": "circle",
         "x": 3, "y": 3, "radius": 0.5, "layer": "bottom"},
        {"type": "pcb_copper_pour", "pcb_copper_pour_id": "pour_a", "shape": "rect",
         "center": {"x": 0, "y": -3}, "width": 6, "height": 2, "layer": "top"},
        {"type": "pcb_plated_hole", "pcb_plated_hole_id": "ph_a", "shape": "circle",
         "x": 0, "y": 0, "hole_diameter": 1.0, "outer_diameter": 2.0},
        {"type": "pcb_hole", "pcb_hole_id": "hole_a", "hole_shape": "circle",
         "x": -3, "y": -3, "hole_diameter": 0.8},
        {"type": "pcb_cutout", "pcb_cutout_id": "cut_a", "shape": "rect",
         "center": {"x": 3.5, "y": 0}, "width": 1, "height": 2},
        {"type": "pcb_via", "pcb_via_id": "via_a", "x": 2, "y": -3,
         "hole_diameter": 0.3, "outer_diameter": 0.6},
    ]
