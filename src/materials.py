"""
Board substrate catalog.

Substrate colors for the board body and for copper seen through solder mask.
Used by pcb_solids.colorize for finalize-time color assignment.
"""

import logging
from dataclasses import dataclass
from typing import Tuple

logger = logging.getLogger(__name__)

RGB = Tuple[float, float, float]

DEFAULT_MATERIAL = "fr4"

# Bare copper, shared by pads, plated barrels, vias and exposed pours.
COPPER_COLOR: RGB = (0.9, 0.6, 0.2)


def _hex_rgb(r: int, g: int, b: int) -> RGB:
    return (r / 255.0, g / 255.0, b / 255.0)


@dataclass(frozen=True)
class BoardMaterial:
    """A PCB substrate."""

    name: str
    board_color: RGB  # Bare substrate body
    masked_board_color: RGB  # Substrate under solder mask
    masked_copper_color: RGB  # Copper traces/pours under solder mask


MATERIALS = {
    "fr4": BoardMaterial(
        name="FR-4 glass epoxy",
        board_color=_hex_rgb(0x05, 0xA3, 0x2E),
        masked_board_color=_hex_rgb(0x1A, 0xB8, 0x43),
        masked_copper_color=_hex_rgb(0x1A, 0xB8, 0x43),
    ),
    "fr1": BoardMaterial(
        name="FR-1 paper phenolic",
        board_color=_hex_rgb(0x8C, 0x6B, 0x3E),
        masked_board_color=_hex_rgb(0xA8, 0x84, 0x52),
        masked_copper_color=_hex_rgb(0xB8, 0x8E, 0x55),
    ),
}


def get_material(key: str) -> BoardMaterial:
    """Catalog lookup; unknown substrates fall back to FR-4."""
    material = MATERIALS.get((key or DEFAULT_MATERIAL).lower())
    if material is None:
        logger.debug("Unknown board material %r, using %s", key, DEFAULT_MATERIAL)
        material = MATERIALS[DEFAULT_MATERIAL]
    return material
