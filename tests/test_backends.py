"""Tests for the interchangeable geometry backends."""
import pytest

from geometry_primitives import circle_profile, rect_profile
from pcb_solids.backends import (
    BACKENDS,
    ManifoldBackend,
    MeshBackend,
    SolidArena,
    backend_from_config,
    get_backend,
)
from pcb_solids.contracts import BuildConfig

from conftest import ngon_area


class TestRegistry:
    def test_known_backends(self):
        assert set(BACKENDS) == {"mesh", "manifold"}
        assert isinstance(get_backend("mesh"), MeshBackend)
        assert isinstance(get_backend("manifold"), ManifoldBackend)

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unknown geometry backend"):
            get_backend("jscad")

    def test_from_config_passes_engine(self):
        backend = backend_from_config(BuildConfig(backend="mesh", boolean_engine="manifold"))
        assert backend.engine == "manifold"


class TestExtrude:
    def test_box_volume(self, backend):
        solid = backend.extrude(rect_profile(4.0, 2.0), 1.5)
        assert backend.volume(solid) == pytest.approx(12.0)

    def test_centred_on_z(self, backend):
        solid = backend.extrude(rect_profile(1.0, 1.0), 2.0, z_center=3.0)
        bounds = backend.to_mesh(solid).bounds
        assert bounds[0][2] == pytest.approx(2.0, abs=1e-5)
        assert bounds[1][2] == pytest.approx(4.0, abs=1e-5)

    def test_empty_profile_gives_empty_solid(self, backend):
        assert backend.is_empty(backend.extrude(circle_profile(0.0), 1.0))

    def test_multipolygon(self, backend):
        two = rect_profile(1.0, 1.0, (-2.0, 0.0)).union(rect_profile(1.0, 1.0, (2.0, 0.0)))
        assert backend.volume(backend.extrude(two, 1.0)) == pytest.approx(2.0)


class TestBooleans:
    def test_subtract_bore(self, backend):
        plate = backend.extrude(rect_profile(10.0, 10.0), 1.0)
        bore = backend.extrude(circle_profile(1.0, 32), 2.0)
        result = backend.subtract(plate, [bore])
        assert backend.volume(result) == pytest.approx(100.0 - ngon_area(1.0, 32), rel=1e-5)

    def test_subtract_nothing_returns_input(self, backend):
        plate = backend.extrude(rect_profile(2.0, 2.0), 1.0)
        assert backend.subtract(plate, []) is plate

    def test_union_overlapping(self, backend):
        a = backend.extrude(rect_profile(2.0, 2.0, (0.0, 0.0)), 1.0)
        b = backend.extrude(rect_profile(2.0, 2.0, (1.0, 0.0)), 1.0)
        assert backend.volume(backend.union([a, b])) == pytest.approx(6.0, rel=1e-5)

    def test_union_skips_empty(self, backend):
        a = backend.extrude(rect_profile(2.0, 2.0), 1.0)
        assert backend.volume(backend.union([backend.empty(), a])) == pytest.approx(4.0)
        assert backend.is_empty(backend.union([]))

    def test_intersect(self, backend):
        a = backend.extrude(rect_profile(2.0, 2.0, (0.0, 0.0)), 1.0)
        b = backend.extrude(rect_profile(2.0, 2.0, (1.0, 1.0)), 1.0)
        assert backend.volume(backend.intersect(a, b)) == pytest.approx(1.0, rel=1e-5)

    def test_disjoint_intersection_is_empty(self, backend):
        a = backend.extrude(rect_profile(1.0, 1.0, (0.0, 0.0)), 1.0)
        b = backend.extrude(rect_profile(1.0, 1.0, (5.0, 0.0)), 1.0)
        assert backend.is_empty(backend.intersect(a, b))

    def test_to_mesh_is_independent(self, backend):
        solid = backend.extrude(rect_profile(1.0, 1.0), 1.0)
        mesh = backend.to_mesh(solid)
        mesh.apply_translation([5.0, 0.0, 0.0])
        assert backend.to_mesh(solid).bounds[0][0] == pytest.approx(-0.5, abs=1e-6)


class TestSolidArena:
    def test_tracks_until_closed(self, backend):
        with SolidArena(backend) as arena:
            arena.track(backend.extrude(rect_profile(1.0, 1.0), 1.0))
            arena.track(backend.empty())
            assert len(arena) >= 1
        assert arena.closed
        assert len(arena) == 0

    def test_released_on_error(self, backend):
        arena = SolidArena(backend)
        with pytest.raises(RuntimeError):
            with arena:
                arena.track(backend.extrude(rect_profile(1.0, 1.0), 1.0))
                raise RuntimeError("boom")
        assert arena.closed

    def test_release_drops_handle(self, backend):
        arena = SolidArena(backend)
        first = arena.track(backend.extrude(rect_profile(1.0, 1.0), 1.0))
        second = arena.track(backend.extrude(rect_profile(2.0, 1.0), 1.0))
        arena.track(first)
        assert len(arena) == 2
        arena.release(first)
        assert len(arena) == 1
        arena.release(first)
        assert len(arena) == 1
        arena.release(second)
        assert len(arena) == 0

    def test_superseded_boards_not_retained(self, make_work, board_record):
        ctx, work = make_work([board_record])
        baseline = len(ctx.arena)
        board = work.board
        for i in range(30):
            cutter = ctx.prism(circle_profile(0.1, 8, (-4 + 0.25 * i, 0.0)), 2.0)
            drilled = ctx.subtract(board, [cutter])
            ctx.retire(board, cutter, keep=drilled)
            board = drilled
        assert len(ctx.arena) == baseline
