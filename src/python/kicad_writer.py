"""KiCad writer — turns target models into kiutils symbols and footprints.

Symbols arrive in EasyEDA units (y already pointing up) and are scaled to mm
here; footprints are already in mm.
"""

from kiutils.footprint import DrillDefinition, Footprint, Model, Pad, PadOptions
from kiutils.items.common import Coordinate, Effects, Fill, Font, Position, Property, Stroke
from kiutils.items.fpitems import FpArc, FpCircle, FpLine, FpText
from kiutils.items.gritems import GrPoly
from kiutils.items.syitems import SyArc, SyCircle, SyPolyLine, SyRect
from kiutils.symbol import Symbol, SymbolLib, SymbolPin

from builder import LIB_NAME
from geometry import UNIT_SCALE
from models import KiFootprint, KiPad, KiSymbol

SYMBOL_LIB_VERSION = "20211014"
PRIMITIVE_WIDTH = 0.1


def _mm(value: float) -> float:
    return round(value * UNIT_SCALE, 4)


def _pos(x: float, y: float, angle=None) -> Position:
    return Position(X=round(x, 4), Y=round(y, 4), angle=angle)


def _sym_pos(x: float, y: float, angle=None) -> Position:
    return Position(X=_mm(x), Y=_mm(y), angle=angle)


def _hidden_property(key: str, value: str, prop_id: int) -> Property:
    return Property(key=key, value=value, id=prop_id, effects=Effects(font=Font(), hide=True))


def _set_property(symbol: Symbol, key: str, value: str) -> None:
    """Set or update a property on a symbol."""
    for prop in symbol.properties:
        if prop.key == key:
            prop.value = value
            return
    new_id = max((p.id for p in symbol.properties if p.id is not None), default=-1) + 1
    symbol.properties.append(_hidden_property(key, value, new_id))


def empty_symbol_library() -> str:
    """S-expression text of a symbol library with no entries."""
    return SymbolLib(version=SYMBOL_LIB_VERSION, generator=LIB_NAME).to_sexpr()


def symbol_to_kiutils(ki_symbol: KiSymbol) -> Symbol:
    symbol = Symbol.create_new(
        id=ki_symbol.name,
        reference=ki_symbol.reference,
        value=ki_symbol.value,
        footprint=ki_symbol.footprint,
        datasheet=ki_symbol.datasheet,
    )
    if ki_symbol.manufacturer:
        _set_property(symbol, "Manufacturer", ki_symbol.manufacturer)
    if ki_symbol.identifier:
        _set_property(symbol, "LCSC Part", ki_symbol.identifier)
    if ki_symbol.part_class:
        _set_property(symbol, "JLC Part Class", ki_symbol.part_class)

    unit = Symbol(entryName=ki_symbol.name, unitId=0, styleId=1)

    for rect in ki_symbol.rectangles:
        unit.graphicItems.append(SyRect(
            start=_sym_pos(rect.x1, rect.y1),
            end=_sym_pos(rect.x2, rect.y2),
            stroke=Stroke(width=_mm(rect.stroke_width)),
            fill=Fill(type="background" if rect.fill else "none"),
        ))
    for circle in ki_symbol.circles:
        unit.graphicItems.append(SyCircle(
            center=_sym_pos(circle.cx, circle.cy),
            radius=_mm(circle.radius),
            stroke=Stroke(width=_mm(circle.stroke_width)),
            fill=Fill(type="background" if circle.fill else "none"),
        ))
    for arc in ki_symbol.arcs:
        unit.graphicItems.append(SyArc(
            start=_sym_pos(*arc.start),
            mid=_sym_pos(*arc.mid),
            end=_sym_pos(*arc.end),
            stroke=Stroke(width=_mm(arc.stroke_width)),
            fill=Fill(type="none"),
        ))
    for polyline in ki_symbol.polylines:
        unit.graphicItems.append(SyPolyLine(
            points=[_sym_pos(x, y) for x, y in polyline.points],
            stroke=Stroke(width=_mm(polyline.stroke_width)),
            fill=Fill(type="background" if polyline.fill else "none"),
        ))
    for pin in ki_symbol.pins:
        unit.pins.append(SymbolPin(
            electricalType=pin.pin_type,
            graphicalStyle=pin.style,
            position=_sym_pos(pin.x, pin.y, pin.rotation),
            length=_mm(pin.length),
            name=pin.name or "~",
            number=pin.number,
        ))

    symbol.units.append(unit)
    return symbol


def symbol_to_sexpr(ki_symbol: KiSymbol) -> str:
    """Entry text for the shared symbol container."""
    return symbol_to_kiutils(ki_symbol).to_sexpr()


def _pad_to_kiutils(pad: KiPad) -> Pad:
    drill = None
    if pad.drill is not None:
        drill = DrillDefinition(
            oval=pad.drill.width is not None,
            diameter=round(pad.drill.diameter, 4),
            width=round(pad.drill.width, 4) if pad.drill.width is not None else None,
        )
    kipad = Pad(
        number=pad.number,
        type=pad.pad_type,
        shape=pad.shape,
        position=_pos(pad.x, pad.y, pad.rotation or None),
        size=Position(X=round(pad.size_x, 4), Y=round(pad.size_y, 4)),
        drill=drill,
        layers=list(pad.layers),
    )
    if pad.polygon:
        kipad.customPadOptions = PadOptions(clearance="outline", anchor="circle")
        kipad.customPadPrimitives = [GrPoly(
            coordinates=[_pos(x, y) for x, y in pad.polygon],
            width=PRIMITIVE_WIDTH,
        )]
    return kipad


def footprint_to_kiutils(ki_footprint: KiFootprint) -> Footprint:
    through_hole = any(p.pad_type == "thru_hole" for p in ki_footprint.pads)
    footprint = Footprint.create_new(
        library_id=ki_footprint.name,
        value=ki_footprint.name,
        type="through_hole" if through_hole else "smd",
    )

    for pad in ki_footprint.pads:
        footprint.pads.append(_pad_to_kiutils(pad))

    for line in ki_footprint.lines:
        footprint.graphicItems.append(FpLine(
            start=_pos(*line.start),
            end=_pos(*line.end),
            layer=line.layer,
            width=round(line.width, 4),
        ))
    for circle in ki_footprint.circles:
        footprint.graphicItems.append(FpCircle(
            center=_pos(*circle.center),
            end=_pos(*circle.end),
            layer=circle.layer,
            width=round(circle.width, 4),
        ))
    for arc in ki_footprint.arcs:
        footprint.graphicItems.append(FpArc(
            start=_pos(*arc.start),
            mid=_pos(*arc.mid),
            end=_pos(*arc.end),
            layer=arc.layer,
            width=round(arc.width, 4),
        ))
    for text in ki_footprint.texts:
        footprint.graphicItems.append(FpText(
            type="user",
            text=text.text,
            position=_pos(text.x, text.y, text.rotation or None),
            layer=text.layer,
            effects=Effects(font=Font(
                height=round(text.size, 4),
                width=round(text.size, 4),
                thickness=round(text.thickness, 4),
            )),
        ))

    if ki_footprint.model_3d is not None:
        model = ki_footprint.model_3d
        footprint.models = [Model(
            path=model.path,
            pos=Coordinate(*model.offset),
            scale=Coordinate(*model.scale),
            rotate=Coordinate(*model.rotate),
        )]
    return footprint
