"""Tests for cutout carving."""
import logging

import pytest

from geometry_primitives import rounded_rect_profile
from pcb_solids import build_board_solids
from pcb_solids.contracts import BuildConfig, Cutout
from pcb_solids.cutouts import build_cutout_solid, flush_cutouts, process_cutout
from pcb_solids.errors import DegenerateGeometryError, UnsupportedShapeError

from conftest import ngon_area

BOARD_VOLUME = 10 * 10 * 1.2


def cutout(**kwargs):
    record = {"type": "pcb_cutout", "pcb_cutout_id": kwargs.pop("id", "cut"), "shape": "rect",
              "center": {"x": 0, "y": 0}}
    record.update(kwargs)
    return record


class TestCutoutSolids:
    def test_cutter_is_taller_than_board(self, make_work, board_record):
        ctx, _ = make_work([board_record])
        solid = build_cutout_solid(Cutout.from_record(cutout(width=2, height=1)), ctx)
        bounds = ctx.backend.to_mesh(solid).bounds
        assert bounds[1][2] - bounds[0][2] == pytest.approx(1.8, abs=1e-5)

    def test_degenerate_polygon(self, make_work, board_record):
        ctx, _ = make_work([board_record])
        record = Cutout.from_record(cutout(shape="polygon", points=[{"x": 0, "y": 0}, {"x": 1, "y": 0}]))
        with pytest.raises(DegenerateGeometryError, match="fewer than 3"):
            build_cutout_solid(record, ctx)

    def test_unknown_shape(self, make_work, board_record):
        ctx, _ = make_work([board_record])
        with pytest.raises(UnsupportedShapeError):
            build_cutout_solid(Cutout.from_record(cutout(shape="star")), ctx)

    def test_carved_once_at_flush(self, make_work, board_record):
        ctx, work = make_work([board_record])
        board_before = work.board
        work = process_cutout(work, Cutout.from_record(cutout(width=2, height=1)), ctx)
        work = process_cutout(work, Cutout.from_record(cutout(id="c2", center={"x": 3, "y": 3}, width=1, height=1)), ctx)
        assert work.board is board_before
        assert len(work.pending_cutouts) == 2
        work = flush_cutouts(work, ctx)
        assert work.pending_cutouts == ()
        assert ctx.backend.volume(work.board) == pytest.approx(BOARD_VOLUME - 3 * 1.2, rel=1e-6)


class TestCutoutVolumes:
    """Board volume = outline area x thickness minus the cutouts' union."""

    def test_rect_cutout(self, board_record):
        result = build_board_solids([board_record, cutout(width=2, height=1)])
        assert result.board.mesh.volume == pytest.approx(BOARD_VOLUME - 2 * 1.2, rel=1e-6)

    def test_rotated_rect_cutout_same_area(self, board_record):
        result = build_board_solids([board_record, cutout(width=2, height=1, rotation=30)])
        assert result.board.mesh.volume == pytest.approx(BOARD_VOLUME - 2 * 1.2, rel=1e-6)

    def test_oversized_corner_radius_clamped(self, board_record):
        result = build_board_solids([board_record, cutout(width=2, height=1, corner_radius=10)])
        removed = rounded_rect_profile(2, 1, 0.5, BuildConfig().copper_segments).area * 1.2
        assert result.board.mesh.volume == pytest.approx(BOARD_VOLUME - removed, rel=1e-6)
        assert not result.skipped

    def test_circle_cutout(self, board_record):
        result = build_board_solids([board_record, cutout(shape="circle", radius=1.0)])
        removed = ngon_area(1.0, BuildConfig().drill_segments) * 1.2
        assert result.board.mesh.volume == pytest.approx(BOARD_VOLUME - removed, rel=1e-6)

    def test_overlapping_cutouts_union(self, board_record):
        records = [
            board_record,
            cutout(id="a", width=2, height=2),
            cutout(id="b", center={"x": 1, "y": 0}, width=2, height=2),
        ]
        result = build_board_solids(records)
        assert result.board.mesh.volume == pytest.approx(BOARD_VOLUME - 6 * 1.2, rel=1e-6)

    def test_polygon_cutout(self, board_record):
        points = [{"x": 0, "y": 0}, {"x": 2, "y": 0}, {"x": 0, "y": 2}]
        result = build_board_solids([board_record, cutout(shape="polygon", points=points)])
        assert result.board.mesh.volume == pytest.approx(BOARD_VOLUME - 2 * 1.2, rel=1e-6)

    def test_degenerate_polygon_skipped(self, board_record, caplog):
        bad = cutout(id="bad", shape="polygon", points=[{"x": 0, "y": 0}, {"x": 1, "y": 1}])
        with caplog.at_level(logging.WARNING):
            result = build_board_solids([board_record, bad, cutout(id="ok", width=1, height=1)])
        assert result.board.mesh.volume == pytest.approx(BOARD_VOLUME - 1.2, rel=1e-6)
        assert [(s.element_type, s.element_id) for s in result.skipped] == [("pcb_cutout", "bad")]
        assert "fewer than 3 points" in caplog.text
