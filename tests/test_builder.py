"""Tests for the target model builder."""

import pytest

from builder import (
    angle_to_ki, build_footprint, build_symbol, component_name, drill_for_pad,
    model_3d_path, sanitize_name,
)
from easyeda_api import record_from_payload
from geometry import UNIT_SCALE
from importers import FootprintImporter, SymbolImporter
from models import (
    ComponentRecord, FootprintArc, FootprintHole, FootprintPad, FootprintVia,
    KiDrill, ParsedFootprint, ParsedSymbol, SymbolPath, SymbolRectangle,
)


@pytest.fixture
def record(api_payload):
    return record_from_payload("C2040", api_payload)


def _record(**kwargs):
    return ComponentRecord(identifier="C1", title="Part", **kwargs)


class TestNaming:
    def test_sanitize_replaces_separators(self):
        assert sanitize_name("LQFN-56_L7.0/W7.0") == "LQFN-56_L7_0_W7_0"

    def test_sanitize_keeps_safe_chars(self):
        assert sanitize_name("RP2040-B2_x") == "RP2040-B2_x"

    def test_component_name_appends_id(self):
        assert component_name("RP2040", "C2040") == "RP2040_C2040"

    def test_same_title_different_ids(self):
        assert component_name("10k 0603", "C1") != component_name("10k 0603", "C2")

    def test_angle_to_ki(self):
        assert angle_to_ki(90) == 90
        assert angle_to_ki(180) == 180
        assert angle_to_ki(270) == -90


class TestBuildSymbol:
    def test_fixture_symbol(self, record):
        parsed = SymbolImporter().parse(record.symbol_shapes)
        symbol = build_symbol(record, parsed)

        assert symbol.name == "RP2040_C2040"
        assert symbol.reference == "U"
        assert symbol.value == "RP2040"
        assert symbol.footprint == "lcscbridge:RP2040_C2040"
        assert symbol.manufacturer == "Raspberry Pi"
        assert symbol.identifier == "C2040"
        assert symbol.part_class == "Extended Part"
        assert len(symbol.pins) == 2
        assert len(symbol.rectangles) == 1
        assert len(symbol.circles) == 1

    def test_pin_position_and_orientation(self, record):
        parsed = SymbolImporter().parse(record.symbol_shapes)
        vcc, gnd = build_symbol(record, parsed).pins
        # origin (400, 300), y inverted
        assert (vcc.x, vcc.y) == (-30, 10)
        assert vcc.rotation == 0
        assert gnd.rotation == 180
        assert vcc.length == 10
        assert vcc.pin_type == "unspecified"
        assert vcc.style == "line"

    def test_first_rectangle_forced_filled(self):
        parsed = ParsedSymbol(rectangles=[
            SymbolRectangle(0, 0, 10, 10, fill=False),
            SymbolRectangle(20, 0, 10, 10, fill=False),
            SymbolRectangle(40, 0, 10, 10, fill=True),
        ])
        symbol = build_symbol(_record(), parsed)
        assert [r.fill for r in symbol.rectangles] == [True, False, True]

    def test_short_paths_dropped(self):
        parsed = ParsedSymbol(paths=[
            SymbolPath("M 0 0 L 10 0 L 10 10 Z"),
            SymbolPath("M 5 5"),
        ])
        symbol = build_symbol(_record(), parsed)
        assert len(symbol.polylines) == 1
        assert symbol.polylines[0].points == [(0, 0), (10, 0), (10, -10), (0, 0)]


class TestDrill:
    def test_round(self):
        assert drill_for_pad(0.5, None, 1.5, 1.5) == KiDrill(diameter=1.0)

    def test_no_hole(self):
        assert drill_for_pad(None, None, 1.5, 1.5) is None

    def test_slot_along_taller_pad(self):
        assert drill_for_pad(0.5, 2.0, 1.5, 3.0) == KiDrill(diameter=1.0, width=2.0)

    def test_slot_along_wider_pad(self):
        assert drill_for_pad(0.5, 2.0, 3.0, 1.5) == KiDrill(diameter=2.0, width=1.0)


class TestBuildFootprint:
    def test_fixture_footprint(self, record):
        parsed = FootprintImporter().parse(record.footprint_shapes)
        footprint = build_footprint(record, parsed)

        assert footprint.name == "RP2040_C2040"
        assert len(footprint.pads) == 2
        pad = footprint.pads[0]
        assert pad.pad_type == "smd"
        assert pad.shape == "rect"
        assert pad.layers == ["F.Cu", "F.Paste", "F.Mask"]
        assert (pad.x, pad.y) == pytest.approx((-10 * UNIT_SCALE, 0))
        assert (pad.size_x, pad.size_y) == pytest.approx((6 * UNIT_SCALE, 4 * UNIT_SCALE))
        assert pad.drill is None

        assert len(footprint.lines) == 1
        assert footprint.lines[0].layer == "F.SilkS"
        assert footprint.model_3d is None

    def test_model_reference(self, record):
        parsed = FootprintImporter().parse(record.footprint_shapes)
        footprint = build_footprint(record, parsed, include_model=True)
        assert footprint.model_3d.path == (
            "${LCSCBRIDGE_3DMODELS}/lcscbridge.3dshapes/LQFN-56_L7_0-W7_0-H0_9_C2040.step")
        assert footprint.model_3d.scale == (1.0, 1.0, 1.0)

    def test_project_relative_model_reference(self):
        assert model_3d_path("M_C1", project_relative=True) == \
            "${KIPRJMOD}/lcscbridge.3dshapes/M_C1.step"

    def test_through_hole_pad(self):
        parsed = ParsedFootprint(pads=[
            FootprintPad("OVAL", 0, 0, 10, 20, 11, "1", hole_radius=2, rotation=270),
        ])
        pad = build_footprint(_record(), parsed).pads[0]
        assert pad.pad_type == "thru_hole"
        assert pad.shape == "oval"
        assert pad.layers == ["*.Cu", "*.Mask"]
        assert pad.drill.diameter == pytest.approx(4 * UNIT_SCALE)
        assert pad.rotation == -90

    def test_polygon_pad(self):
        parsed = ParsedFootprint(pads=[
            FootprintPad("POLYGON", 10, 10, 10, 10, 1, "1",
                         points="5 5 15 5 15 15", rotation=45),
        ])
        pad = build_footprint(_record(), parsed).pads[0]
        assert pad.shape == "custom"
        assert (pad.size_x, pad.size_y) == (0.01, 0.01)
        assert pad.rotation == 0
        assert pad.polygon == pytest.approx([(-1.27, -1.27), (1.27, -1.27), (1.27, 1.27)])

    def test_tiny_pad_clamped(self):
        parsed = ParsedFootprint(pads=[FootprintPad("RECT", 0, 0, 0, 0.01, 1, "1")])
        pad = build_footprint(_record(), parsed).pads[0]
        assert (pad.size_x, pad.size_y) == (0.01, 0.01)

    def test_holes_and_vias_become_pads(self):
        parsed = ParsedFootprint(
            holes=[FootprintHole(0, 0, 5)],
            vias=[FootprintVia(10, 10, 24, 6)],
        )
        hole, via = build_footprint(_record(), parsed).pads
        assert hole.pad_type == "np_thru_hole"
        assert hole.number == ""
        assert hole.size_x == pytest.approx(10 * UNIT_SCALE)
        assert hole.drill.diameter == pytest.approx(10 * UNIT_SCALE)
        assert via.pad_type == "thru_hole"
        assert via.size_x == pytest.approx(24 * UNIT_SCALE)
        assert via.drill.diameter == pytest.approx(12 * UNIT_SCALE)

    def test_arc_mid_point(self):
        record = ComponentRecord(identifier="C1", title="Part", footprint_origin=(4000, 3000))
        parsed = ParsedFootprint(arcs=[
            FootprintArc("M 3990 3000 A 10 10 0 0 1 4010 3000", 1, 3),
        ])
        arc = build_footprint(record, parsed).arcs[0]
        assert arc.start == pytest.approx((-10 * UNIT_SCALE, 0))
        assert arc.mid == pytest.approx((0, -10 * UNIT_SCALE))
        assert arc.end == pytest.approx((10 * UNIT_SCALE, 0), abs=1e-9)

    def test_degenerate_arc_skipped(self):
        parsed = ParsedFootprint(arcs=[
            FootprintArc("M 0 0 A 0 0 0 0 1 6 0", 1, 3),
            FootprintArc("garbage", 1, 3),
        ])
        assert build_footprint(_record(), parsed).arcs == []

    def test_rectangle_becomes_four_lines(self, record):
        parsed = FootprintImporter().parse(["RECT~3990~2990~20~20~1~gge4~3~0"])
        lines = build_footprint(record, parsed).lines
        assert len(lines) == 4
        assert lines[0].start == lines[-1].end
