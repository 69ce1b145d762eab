"""Error taxonomy for board solid construction."""

from __future__ import annotations

from typing import Optional


class BoardGeometryError(Exception):
    """Base error for board solid construction."""


class BoardDefinitionError(BoardGeometryError):
    """The board or panel record cannot produce a shell. Fatal."""


class UnsupportedShapeError(BoardGeometryError):
    """A record carries a shape tag this engine has no builder for."""

    def __init__(self, element_type: str, shape: Optional[str], element_id: str):
        self.element_type = element_type
        self.shape = shape
        self.element_id = element_id
        super().__init__(
            f"{element_type} [{element_id}] has unsupported shape {shape!r}"
        )


class DegenerateGeometryError(BoardGeometryError):
    """A record's dimensions cannot form a solid; the record is skipped."""

    def __init__(self, element_type: str, element_id: str, reason: str):
        self.element_type = element_type
        self.element_id = element_id
        self.reason = reason
        super().__init__(f"{element_type} [{element_id}]: {reason}")


class BooleanOperationError(BoardGeometryError):
    """The geometry backend failed a boolean operation. Fatal."""


class BuilderStateError(BoardGeometryError):
    """The builder was used out of order or after a fatal error."""


class BuilderBusyError(BuilderStateError):
    """A drive loop is already running on this builder."""
