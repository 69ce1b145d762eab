"""Boolean geometry backends.

Every board feature is built from extruded 2D profiles and combined with
union, difference and intersection. The builders only talk to the
:class:`GeometryBackend` interface, so the solid representation can be
swapped:

- ``mesh``: solids are ``trimesh.Trimesh`` objects, booleans dispatched
  through ``trimesh.boolean`` (manifold engine by default).
- ``manifold``: solids are resident ``manifold3d.Manifold`` handles and
  booleans use the manifold operators directly; meshes are only produced at
  finalize.
"""

from __future__ import annotations

import logging
import operator
from abc import ABC, abstractmethod
from functools import reduce
from typing import Any, Dict, List, Optional, Sequence, Type

import numpy as np
import trimesh
from shapely.geometry.base import BaseGeometry

from geometry_primitives import polygonal_parts
from pcb_solids.contracts import BuildConfig
from pcb_solids.errors import BooleanOperationError

logger = logging.getLogger(__name__)

Solid = Any


class GeometryBackend(ABC):
    """Capability interface for solid construction and CSG."""

    name = "abstract"

    def extrude(
        self, profile: BaseGeometry, height: float, z_center: float = 0.0
    ) -> Solid:
        """Extrude a 2D profile by ``height``, centred on ``z_center``."""
        polygons = polygonal_parts(profile)
        if not polygons or height <= 0:
            return self.empty()
        meshes = []
        for poly in polygons:
            mesh = trimesh.creation.extrude_polygon(poly, height)
            mesh.apply_translation([0.0, 0.0, z_center - height / 2.0])
            meshes.append(mesh)
        mesh = meshes[0] if len(meshes) == 1 else trimesh.util.concatenate(meshes)
        return self.from_mesh(mesh)

    @abstractmethod
    def empty(self) -> Solid:
        """The empty solid."""

    @abstractmethod
    def is_empty(self, solid: Solid) -> bool:
        ...

    @abstractmethod
    def from_mesh(self, mesh: trimesh.Trimesh) -> Solid:
        """Adopt a closed triangle mesh as a backend solid."""

    @abstractmethod
    def to_mesh(self, solid: Solid) -> trimesh.Trimesh:
        """Export a solid as a new, independent ``trimesh.Trimesh``."""

    @abstractmethod
    def union(self, solids: Sequence[Solid]) -> Solid:
        ...

    @abstractmethod
    def subtract(self, solid: Solid, cutters: Sequence[Solid]) -> Solid:
        """``solid`` minus the union of ``cutters``."""

    @abstractmethod
    def intersect(self, solid: Solid, other: Solid) -> Solid:
        ...

    def release(self, solid: Solid) -> None:
        """Free a handle. Backends holding native memory override this."""

    def volume(self, solid: Solid) -> float:
        if self.is_empty(solid):
            return 0.0
        return float(self.to_mesh(solid).volume)


class MeshBackend(GeometryBackend):
    """Explicit polygon-mesh CSG through ``trimesh.boolean``."""

    name = "mesh"

    def __init__(self, engine: str = "manifold"):
        self.engine = engine

    def empty(self) -> trimesh.Trimesh:
        return trimesh.Trimesh()

    def is_empty(self, solid: Optional[trimesh.Trimesh]) -> bool:
        return solid is None or solid.is_empty

    def from_mesh(self, mesh: trimesh.Trimesh) -> trimesh.Trimesh:
        return mesh

    def to_mesh(self, solid: trimesh.Trimesh) -> trimesh.Trimesh:
        if self.is_empty(solid):
            return trimesh.Trimesh()
        return solid.copy()

    def _boolean(self, op, meshes: List[trimesh.Trimesh]) -> trimesh.Trimesh:
        try:
            result = op(meshes, engine=self.engine, check_volume=False)
        except Exception as exc:
            raise BooleanOperationError(
                f"{op.__name__} of {len(meshes)} meshes failed ({self.engine}): {exc}"
            ) from exc
        return result if result is not None else self.empty()

    def union(self, solids: Sequence[trimesh.Trimesh]) -> trimesh.Trimesh:
        parts = [s for s in solids if not self.is_empty(s)]
        if not parts:
            return self.empty()
        if len(parts) == 1:
            return parts[0]
        return self._boolean(trimesh.boolean.union, parts)

    def subtract(
        self, solid: trimesh.Trimesh, cutters: Sequence[trimesh.Trimesh]
    ) -> trimesh.Trimesh:
        if self.is_empty(solid):
            return self.empty()
        cutter = self.union(cutters)
        if self.is_empty(cutter):
            return solid
        return self._boolean(trimesh.boolean.difference, [solid, cutter])

    def intersect(
        self, solid: trimesh.Trimesh, other: trimesh.Trimesh
    ) -> trimesh.Trimesh:
        if self.is_empty(solid) or self.is_empty(other):
            return self.empty()
        return self._boolean(trimesh.boolean.intersection, [solid, other])

    def volume(self, solid: trimesh.Trimesh) -> float:
        if self.is_empty(solid):
            return 0.0
        return float(solid.volume)


class ManifoldBackend(GeometryBackend):
    """Resident ``manifold3d.Manifold`` handles. ``None`` is the empty solid."""

    name = "manifold"

    def __init__(self):
        import manifold3d

        self._manifold3d = manifold3d

    def empty(self) -> None:
        return None

    def is_empty(self, solid) -> bool:
        return solid is None or solid.is_empty()

    def from_mesh(self, mesh: trimesh.Trimesh):
        if mesh.is_empty:
            return None
        m3d = self._manifold3d
        return m3d.Manifold(
            mesh=m3d.Mesh(
                vert_properties=np.asarray(mesh.vertices, dtype=np.float32),
                tri_verts=np.asarray(mesh.faces, dtype=np.uint32),
            )
        )

    def to_mesh(self, solid) -> trimesh.Trimesh:
        if self.is_empty(solid):
            return trimesh.Trimesh()
        out = solid.to_mesh()
        vertices = np.asarray(out.vert_properties, dtype=np.float64)[:, :3]
        faces = np.asarray(out.tri_verts, dtype=np.int64)
        return trimesh.Trimesh(vertices=vertices, faces=faces)

    def _apply(self, op, solids: Sequence):
        try:
            return reduce(op, solids)
        except Exception as exc:
            raise BooleanOperationError(
                f"manifold {op.__name__} of {len(solids)} solids failed: {exc}"
            ) from exc

    def union(self, solids: Sequence):
        parts = [s for s in solids if not self.is_empty(s)]
        if not parts:
            return None
        if len(parts) == 1:
            return parts[0]
        return self._apply(operator.add, parts)

    def subtract(self, solid, cutters: Sequence):
        if self.is_empty(solid):
            return None
        cutter = self.union(cutters)
        if self.is_empty(cutter):
            return solid
        result = self._apply(operator.sub, [solid, cutter])
        return None if result.is_empty() else result

    def intersect(self, solid, other):
        if self.is_empty(solid) or self.is_empty(other):
            return None
        result = self._apply(operator.xor, [solid, other])
        return None if result.is_empty() else result


BACKENDS: Dict[str, Type[GeometryBackend]] = {
    MeshBackend.name: MeshBackend,
    ManifoldBackend.name: ManifoldBackend,
}


def get_backend(name: str = "mesh", **kwargs) -> GeometryBackend:
    """Instantiate a registered backend by name."""
    try:
        backend_cls = BACKENDS[name]
    except KeyError:
        raise ValueError(
            f"Unknown geometry backend {name!r}; expected one of {sorted(BACKENDS)}"
        ) from None
    return backend_cls(**kwargs)


def backend_from_config(config: BuildConfig) -> GeometryBackend:
    if config.backend == MeshBackend.name:
        return MeshBackend(engine=config.boolean_engine)
    return get_backend(config.backend)


class SolidArena:
    """Scope that owns live intermediate solids and releases them on exit.

    Builders :meth:`release` a solid as soon as a newer one supersedes it,
    so the arena holds only what the accumulator still references. Whatever
    remains is released when the arena closes, whether the build finishes,
    fails, or is abandoned.
    """

    def __init__(self, backend: GeometryBackend):
        self.backend = backend
        self._handles: Dict[int, Solid] = {}
        self.closed = False

    def track(self, solid: Solid) -> Solid:
        if solid is not None and not self.closed:
            self._handles[id(solid)] = solid
        return solid

    def release(self, solid: Solid) -> None:
        handle = self._handles.pop(id(solid), None)
        if handle is not None:
            self.backend.release(handle)

    def __len__(self) -> int:
        return len(self._handles)

    def close(self) -> None:
        if self.closed:
            return
        for handle in self._handles.values():
            self.backend.release(handle)
        logger.debug("Released %d %s solids", len(self._handles), self.backend.name)
        self._handles.clear()
        self.closed = True

    def __enter__(self) -> "SolidArena":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
