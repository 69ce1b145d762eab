"""Tests for plated holes, non-plated holes and drill re-cuts."""
import numpy as np
import pytest

from pcb_solids import BoardSolidBuilder, build_board_solids
from pcb_solids.contracts import BuildConfig, FeatureKind, Hole, PlatedHole, SmtPad
from pcb_solids.copper import process_pad
from pcb_solids.drilling import (
    apply_drill,
    build_hole_drill,
    plated_hole_profiles,
    process_hole,
    process_plated_hole,
)
from pcb_solids.errors import BuilderStateError, UnsupportedShapeError

from conftest import ngon_area

CFG = BuildConfig()
BOARD_VOLUME = 10 * 10 * 1.2


def plated(**kwargs):
    record = {"type": "pcb_plated_hole", "pcb_plated_hole_id": kwargs.pop("id", "ph"),
              "shape": "circle", "x": 0, "y": 0}
    record.update(kwargs)
    return record


def near_center(mesh, window=3.0):
    """Board vertices away from the outer edges, i.e. on drilled walls."""
    v = mesh.vertices
    return v[(np.abs(v[:, 0]) < window) & (np.abs(v[:, 1]) < window)]


class TestCircularPlatedHole:
    """1.0 mm hole with a 2.0 mm ring on a 10x10x1.2 board."""

    @pytest.fixture
    def result(self, board_record):
        return build_board_solids([board_record, plated(hole_diameter=1.0, outer_diameter=2.0)])

    def test_board_has_one_bore(self, result):
        drill_r = 0.5 + CFG.drill_clearance
        expected = BOARD_VOLUME - ngon_area(drill_r, CFG.copper_segments) * 1.2
        assert result.board.mesh.volume == pytest.approx(expected, rel=1e-6)
        radii = np.hypot(*near_center(result.board.mesh)[:, :2].T)
        assert radii == pytest.approx(drill_r, abs=1e-6)

    def test_one_copper_ring(self, result):
        copper = result.by_kind(FeatureKind.PLATED_HOLE)
        assert len(copper) == 1
        mesh = copper[0].mesh
        extents = mesh.bounds[1] - mesh.bounds[0]
        assert extents[0] == pytest.approx(2.0, abs=1e-5)
        radii = np.hypot(mesh.vertices[:, 0], mesh.vertices[:, 1])
        assert radii.min() == pytest.approx(0.5, abs=1e-5)
        assert radii.max() == pytest.approx(1.0, abs=1e-5)

    def test_copper_spans_both_faces(self, result):
        mesh = result.by_kind(FeatureKind.PLATED_HOLE)[0].mesh
        top = 0.6 + CFG.copper_surface_offset + CFG.copper_thickness / 2
        assert mesh.bounds[1][2] == pytest.approx(top, abs=1e-5)
        assert mesh.bounds[0][2] == pytest.approx(-top, abs=1e-5)

    def test_copper_colored(self, result):
        solid = result.by_kind(FeatureKind.PLATED_HOLE)[0]
        assert solid.color == pytest.approx((0.9, 0.6, 0.2))
        rgb = solid.mesh.visual.face_colors[0][:3].astype(int)
        assert np.abs(rgb - [230, 153, 51]).max() <= 1

    def test_default_outer_when_missing(self, board_record):
        result = build_board_solids([board_record, plated(hole_diameter=1.0)])
        mesh = result.by_kind(FeatureKind.PLATED_HOLE)[0].mesh
        extents = mesh.bounds[1] - mesh.bounds[0]
        assert extents[0] == pytest.approx(1.0 + CFG.default_outer_margin, abs=1e-5)


class TestRectPadPlatedHoles:
    def test_pill_hole_offset_bore(self, board_record):
        record = plated(shape="pill_hole_with_rect_pad", hole_width=1.0, hole_height=0.6,
                        rect_pad_width=3.0, rect_pad_height=2.0, hole_offset_x=0.5)
        result = build_board_solids([board_record, record])
        xs = near_center(result.board.mesh)[:, 0]
        assert (xs.min() + xs.max()) / 2 == pytest.approx(0.5, abs=1e-6)
        assert xs.max() - xs.min() == pytest.approx(1.0 + 2 * CFG.drill_clearance, abs=1e-6)

        pad = result.by_kind(FeatureKind.PLATED_HOLE)[0].mesh
        assert pad.bounds[0][0] == pytest.approx(-1.5, abs=1e-5)
        assert pad.bounds[1][0] == pytest.approx(1.5, abs=1e-5)

    def test_circular_hole_rect_pad(self, board_record):
        record = plated(shape="circular_hole_with_rect_pad", hole_diameter=0.8,
                        rect_pad_width=2.0, rect_pad_height=2.0, hole_offset_y=-0.3)
        result = build_board_solids([board_record, record])
        ys = near_center(result.board.mesh)[:, 1]
        assert (ys.min() + ys.max()) / 2 == pytest.approx(-0.3, abs=1e-6)

    def test_rotated_pill_rect_pad(self, make_work, board_record):
        ctx, _ = make_work([board_record])
        record = PlatedHole.from_record(plated(
            shape="rotated_pill_hole_with_rect_pad", hole_width=1.0, hole_height=0.5,
            rect_pad_width=2.0, rect_pad_height=1.0, hole_ccw_rotation=90, rect_ccw_rotation=90))
        profiles = plated_hole_profiles(record, ctx)
        minx, miny, maxx, maxy = profiles.pad.bounds
        assert maxy - miny == pytest.approx(2.0)
        minx, miny, maxx, maxy = profiles.bore.bounds
        assert maxy - miny == pytest.approx(1.0)


class TestSlotPlatedHoles:
    @pytest.mark.parametrize("shape", ["pill", "oval", "rotated_pill"])
    def test_copper_encloses_bore(self, make_work, board_record, shape):
        ctx, _ = make_work([board_record])
        record = PlatedHole.from_record(plated(shape=shape, hole_width=1.5, hole_height=0.8,
                                               outer_width=2.5, outer_height=1.6, ccw_rotation=45))
        profiles = plated_hole_profiles(record, ctx)
        assert profiles.pad.contains(profiles.barrel)
        assert profiles.barrel.contains(profiles.bore)
        assert profiles.drill.area > profiles.bore.area

    def test_outer_smaller_than_hole_skipped(self, board_record):
        record = plated(id="bad", shape="pill", hole_width=2.0, hole_height=1.0,
                        outer_width=1.0, outer_height=1.0)
        result = build_board_solids([board_record, record])
        assert result.by_kind(FeatureKind.PLATED_HOLE) == []
        assert result.skipped[0].element_id == "bad"
        assert result.board.mesh.volume == pytest.approx(BOARD_VOLUME, rel=1e-6)


class TestPolygonPadPlatedHole:
    def square_pad(self, **kwargs):
        outline = [{"x": -1, "y": -1}, {"x": 1, "y": -1}, {"x": 1, "y": 1}, {"x": -1, "y": 1}]
        kwargs.setdefault("x", 2)
        kwargs.setdefault("y", 2)
        return plated(shape="hole_with_polygon_pad", pad_outline=outline, **kwargs)

    def test_board_hole_larger_than_copper_hole(self, board_record):
        result = build_board_solids([board_record, self.square_pad(hole_shape="circle", hole_diameter=0.8)])
        drill_r = (0.8 + 2 * CFG.drill_clearance) / 2
        expected = BOARD_VOLUME - ngon_area(drill_r, CFG.copper_segments) * 1.2
        assert result.board.mesh.volume == pytest.approx(expected, rel=1e-6)

        mesh = result.by_kind(FeatureKind.PLATED_HOLE)[0].mesh
        radii = np.hypot(mesh.vertices[:, 0] - 2, mesh.vertices[:, 1] - 2)
        assert radii.min() == pytest.approx(0.4, abs=1e-5)
        assert mesh.bounds[0][:2] == pytest.approx([1.0, 1.0], abs=1e-5)

    def test_other_hole_shape_drilled_as_cylinder(self, board_record):
        result = build_board_solids([board_record, self.square_pad(hole_shape="square", hole_diameter=0.8)])
        assert result.skipped == []
        drill_r = (0.8 + 2 * CFG.drill_clearance) / 2
        expected = BOARD_VOLUME - ngon_area(drill_r, CFG.copper_segments) * 1.2
        assert result.board.mesh.volume == pytest.approx(expected, rel=1e-6)

        mesh = result.by_kind(FeatureKind.PLATED_HOLE)[0].mesh
        radii = np.hypot(mesh.vertices[:, 0] - 2, mesh.vertices[:, 1] - 2)
        assert radii.min() == pytest.approx(0.4, abs=1e-5)

    def test_other_hole_shape_uses_width_without_diameter(self, make_work, board_record):
        ctx, _ = make_work([board_record])
        ph = PlatedHole.from_record(self.square_pad(hole_shape="hexagon", hole_width=0.6))
        bore = plated_hole_profiles(ph, ctx).bore
        assert bore.area == pytest.approx(ngon_area(0.3, CFG.copper_segments))
        assert bore.centroid.x == pytest.approx(2.0)

    def test_recuts_earlier_plated_copper(self, board_record):
        first = plated(id="first", x=2, y=2, hole_diameter=0.6, outer_diameter=3.0)
        alone = build_board_solids([board_record, first])
        both = build_board_solids(
            [board_record, first, self.square_pad(id="second", hole_shape="circle", hole_diameter=0.4, x=3, y=2)]
        )
        before = alone.by_kind(FeatureKind.PLATED_HOLE)[0].mesh.volume
        after = both.by_kind(FeatureKind.PLATED_HOLE)[0].mesh.volume
        assert after < before


class TestUnsupportedPlatedShape:
    def test_fatal_and_builder_unusable(self, board_record):
        builder = BoardSolidBuilder([board_record, plated(shape="hexagon", hole_diameter=1.0)])
        with pytest.raises(UnsupportedShapeError, match="hexagon"):
            builder.step(100)
        assert builder.failed
        with pytest.raises(BuilderStateError):
            builder.step(1)
        with pytest.raises(BuilderStateError):
            builder.get_results()


class TestNonPlatedHoles:
    def hole(self, **kwargs):
        record = {"type": "pcb_hole", "pcb_hole_id": kwargs.pop("id", "h"),
                  "hole_shape": "circle", "x": 0, "y": 0}
        record.update(kwargs)
        return record

    def test_circle_hole_volume(self, board_record):
        result = build_board_solids([board_record, self.hole(hole_diameter=1.0)])
        drill_r = 0.5 + CFG.drill_clearance
        expected = BOARD_VOLUME - ngon_area(drill_r, CFG.drill_segments) * 1.2
        assert result.board.mesh.volume == pytest.approx(expected, rel=1e-6)
        assert len(result.solids) == 1

    def test_pad_recut_by_hole(self, board_record):
        pad = {"type": "pcb_smtpad", "pcb_smtpad_id": "p", "shape": "rect",
               "x": 0, "y": 0, "width": 2, "height": 2, "layer": "top"}
        result = build_board_solids([board_record, pad, self.hole(hole_diameter=1.0)])
        drill_r = 0.5 + CFG.drill_clearance
        expected = (4.0 - ngon_area(drill_r, CFG.drill_segments)) * CFG.copper_thickness
        assert result.by_kind(FeatureKind.PAD)[0].mesh.volume == pytest.approx(expected, rel=1e-4)

    def test_non_overlapping_pad_untouched(self, make_work, board_record):
        ctx, work = make_work([board_record])
        work = process_pad(work, SmtPad.from_record(
            {"shape": "rect", "x": 3, "y": 3, "width": 1, "height": 1, "layer": "top"}), ctx)
        pad_before = work.pads[0].solid
        drill = build_hole_drill(Hole.from_record(self.hole(hole_diameter=1.0)), ctx)
        work = apply_drill(work, drill, ctx)
        assert work.pads[0].solid is pad_before
        assert len(work.drills) == 1

    def test_pill_hole_rotated(self, make_work, board_record):
        ctx, _ = make_work([board_record])
        hole = Hole.from_record(self.hole(hole_shape="rotated_pill", hole_width=2.0,
                                          hole_height=1.0, ccw_rotation=90))
        drill = build_hole_drill(hole, ctx)
        minx, miny, maxx, maxy = drill.footprint.bounds
        assert maxy - miny == pytest.approx(2.0)
        assert maxx - minx == pytest.approx(1.0)
        assert drill.footprint.contains(drill.copper_footprint)
        assert drill.footprint.area - drill.copper_footprint.area > 0

    def test_plated_copper_recut_by_later_hole(self, board_record):
        ring = plated(hole_diameter=1.0, outer_diameter=3.0)
        alone = build_board_solids([board_record, ring])
        cut = build_board_solids([board_record, ring, self.hole(x=1.0, hole_diameter=0.6)])
        before = alone.by_kind(FeatureKind.PLATED_HOLE)[0].mesh.volume
        after = cut.by_kind(FeatureKind.PLATED_HOLE)[0].mesh.volume
        assert after < before

    def test_square_hole_volume(self, board_record):
        result = build_board_solids([board_record, self.hole(hole_shape="square", hole_diameter=1.0)])
        assert result.board.mesh.volume == pytest.approx(BOARD_VOLUME - 1.2, rel=1e-6)

    def test_oval_hole_volume(self, board_record):
        record = self.hole(hole_shape="oval", hole_width=2.0, hole_height=1.0)
        result = build_board_solids([board_record, record])
        removed = ngon_area(1.0, CFG.drill_segments) * 0.5 * 1.2
        assert result.board.mesh.volume == pytest.approx(BOARD_VOLUME - removed, rel=1e-6)

    def test_unknown_hole_shape_skipped(self, board_record):
        result = build_board_solids([board_record, self.hole(id="odd", hole_shape="star", hole_diameter=1)])
        assert [s.element_id for s in result.skipped] == ["odd"]
        assert result.board.mesh.volume == pytest.approx(BOARD_VOLUME, rel=1e-6)

    def test_strict_shapes_makes_unknown_fatal(self, board_record):
        with pytest.raises(UnsupportedShapeError):
            build_board_solids(
                [board_record, self.hole(hole_shape="star", hole_diameter=1)],
                config=BuildConfig(strict_shapes=True),
            )


def test_process_plated_hole_appends_after_recut(make_work, board_record):
    ctx, work = make_work([board_record])
    work = process_plated_hole(work, PlatedHole.from_record(plated(hole_diameter=1.0, outer_diameter=2.0)), ctx)
    assert [f.key for f in work.plated_holes] == ["plated-hole-ph"]
    assert [d.key for d in work.drills] == ["plated-hole-ph"]


@pytest.mark.parametrize("count", [5, 20])
def test_arena_holds_only_live_solids(make_work, board_record, count):
    ctx, work = make_work([board_record])
    for i in range(count):
        x = -4 + 8 * (i % 5) / 4
        y = -4 + 8 * (i // 5) / 4
        hole = Hole.from_record({"hole_shape": "circle", "x": x, "y": y, "hole_diameter": 0.3})
        work = process_hole(work, hole, ctx)
    # Board and clip, plus the two cutters each drill keeps.
    assert len(ctx.arena) == 2 + 2 * count
    assert len(work.drills) == count
