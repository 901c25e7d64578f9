"""Target model builder — assembles normalized primitives into KiCad models.

Handles:
- Component naming (sanitized title + LCSC id)
- Symbol pins, outline policy and path flattening
- Pad classification, layer mapping and drill shape
- Hole / via conversion to pads
- 3D model reference paths (project-relative or ${LCSCBRIDGE_3DMODELS})
"""

import logging
import re
from typing import Optional

from errors import ArcGeometryError, MalformedRecord
from geometry import (
    CoordinateNormalizer, footprint_normalizer, parse_svg_arc,
    solve_endpoint_arc, symbol_arc_points, symbol_normalizer, tokenize_path,
)
from importers.base import parse_points
from models import (
    ComponentRecord, Ki3dModel, KiArc, KiCircle, KiDrill, KiFootprint,
    KiFpArc, KiFpCircle, KiLine, KiPad, KiPin, KiPolyline, KiRectangle,
    KiSymbol, KiText, ParsedFootprint, ParsedSymbol,
)

logger = logging.getLogger(__name__)

LIB_NAME = "lcscbridge"
MODEL_ENV_VAR = "LCSCBRIDGE_3DMODELS"
PROJECT_ENV_VAR = "KIPRJMOD"

MIN_SIZE = 0.01

_SANITIZE_RE = re.compile(r"[^\w\-]")

PIN_TYPES = {
    "0": "unspecified",
    "1": "input",
    "2": "output",
    "3": "bidirectional",
    "4": "power_in",
}

PAD_SHAPES = {
    "ELLIPSE": "circle",
    "RECT": "rect",
    "OVAL": "oval",
    "POLYGON": "custom",
}

# EasyEDA layer id -> KiCad layer
LAYERS = {
    1: "F.Cu",
    2: "B.Cu",
    3: "F.SilkS",
    4: "B.SilkS",
    5: "F.Paste",
    6: "B.Paste",
    7: "F.Mask",
    8: "B.Mask",
    10: "Edge.Cuts",
    11: "Edge.Cuts",
    12: "Cmts.User",
    13: "F.Fab",
    14: "B.Fab",
    15: "Dwgs.User",
    101: "F.Fab",
}
DEFAULT_LAYER = "F.SilkS"

PAD_LAYERS_SMD = {
    1: ["F.Cu", "F.Paste", "F.Mask"],
    2: ["B.Cu", "B.Paste", "B.Mask"],
    3: ["F.SilkS"],
    11: ["*.Cu", "*.Paste", "*.Mask"],
    13: ["F.Fab"],
    15: ["Dwgs.User"],
}
PAD_LAYERS_THT = {
    1: ["F.Cu", "F.Mask"],
    2: ["B.Cu", "B.Mask"],
    3: ["F.SilkS"],
    11: ["*.Cu", "*.Mask"],
    13: ["F.Fab"],
    15: ["Dwgs.User"],
}
THROUGH_LAYERS = ["*.Cu", "*.Mask"]


def sanitize_name(name: str) -> str:
    """Replace everything but (Unicode) alphanumerics, '_' and '-' with underscores."""
    return _SANITIZE_RE.sub("_", name)


def component_name(title: str, identifier: str) -> str:
    return f"{sanitize_name(title)}_{identifier}"


def map_layer(layer_id: int) -> str:
    return LAYERS.get(layer_id, DEFAULT_LAYER)


def map_pad_layers_smd(layer_id: int) -> list[str]:
    return list(PAD_LAYERS_SMD.get(layer_id, PAD_LAYERS_SMD[1]))


def map_pad_layers_tht(layer_id: int) -> list[str]:
    return list(PAD_LAYERS_THT.get(layer_id, PAD_LAYERS_THT[11]))


def angle_to_ki(rotation: float) -> float:
    """EasyEDA rotations above 180 degrees become negative KiCad angles."""
    if rotation > 180.0:
        return -(360.0 - rotation)
    return rotation


# ── Symbol ───────────────────────────────────────────────────────────────────

def build_symbol(record: ComponentRecord, parsed: ParsedSymbol) -> KiSymbol:
    name = component_name(record.title, record.identifier)
    norm = symbol_normalizer(record.symbol_origin)

    symbol = KiSymbol(
        name=name,
        reference=record.prefix,
        value=record.title,
        footprint=f"{LIB_NAME}:{name}",
        datasheet=record.datasheet,
        manufacturer=record.manufacturer,
        identifier=record.identifier,
        part_class=record.part_class,
    )

    for pin in parsed.pins:
        x, y = norm.point(pin.x, pin.y)
        if pin.dot:
            style = "inverted"
        elif pin.clock:
            style = "clock"
        else:
            style = "line"
        symbol.pins.append(KiPin(
            number=pin.number,
            name=pin.name,
            pin_type=PIN_TYPES.get(pin.electric_type, "unspecified"),
            style=style,
            x=x,
            y=y,
            rotation=(pin.rotation + 180.0) % 360.0,
            length=pin.length,
        ))

    for idx, rect in enumerate(parsed.rectangles):
        (x1, y1), (x2, y2) = norm.rectangle(rect.x, rect.y, rect.width, rect.height)
        # First rectangle is the body outline
        fill = True if idx == 0 else rect.fill
        symbol.rectangles.append(KiRectangle(
            x1=x1, y1=y1, x2=x2, y2=y2,
            stroke_width=rect.stroke_width,
            fill=fill,
        ))

    for circle in parsed.circles:
        cx, cy = norm.point(circle.cx, circle.cy)
        symbol.circles.append(KiCircle(
            cx=cx, cy=cy,
            radius=norm.length(circle.radius),
            stroke_width=circle.stroke_width,
            fill=circle.fill,
        ))

    # Lossy: KiCad symbols have no ellipse primitive
    for ellipse in parsed.ellipses:
        cx, cy = norm.point(ellipse.cx, ellipse.cy)
        symbol.circles.append(KiCircle(
            cx=cx, cy=cy,
            radius=norm.length((ellipse.rx + ellipse.ry) / 2.0),
            stroke_width=ellipse.stroke_width,
            fill=ellipse.fill,
        ))

    for arc in parsed.arcs:
        start, mid, end = symbol_arc_points(
            arc.cx, arc.cy, arc.radius, arc.start_angle, arc.end_angle)
        symbol.arcs.append(KiArc(
            start=norm.point(*start),
            mid=norm.point(*mid),
            end=norm.point(*end),
            stroke_width=arc.stroke_width,
        ))

    for polyline in parsed.polylines:
        symbol.polylines.append(KiPolyline(
            points=[norm.point(x, y) for x, y in polyline.points],
            stroke_width=polyline.stroke_width,
            fill=False,
        ))

    for polygon in parsed.polygons:
        symbol.polylines.append(KiPolyline(
            points=[norm.point(x, y) for x, y in polygon.points],
            stroke_width=polygon.stroke_width,
            fill=polygon.fill,
        ))

    for path in parsed.paths:
        points = tokenize_path(path.path, norm.point)
        if len(points) < 2:
            logger.debug("Dropping path with fewer than two points: %r", path.path)
            continue
        symbol.polylines.append(KiPolyline(
            points=points,
            stroke_width=path.stroke_width,
            fill=path.fill,
        ))

    return symbol


# ── Footprint ────────────────────────────────────────────────────────────────

def drill_for_pad(hole_radius: Optional[float], hole_length: Optional[float],
                  width: float, height: float) -> Optional[KiDrill]:
    """Drill definition for a through-hole pad, all values in mm.

    A hole length makes a slot; it runs along whichever pad axis leaves more
    copper around the hole.
    """
    if hole_radius is None:
        return None
    if hole_length is None:
        return KiDrill(diameter=hole_radius * 2.0)
    max_distance_hole = max(hole_radius * 2.0, hole_length)
    pos_0 = height - max_distance_hole
    pos_90 = width - max_distance_hole
    if pos_0 > pos_90:
        return KiDrill(diameter=hole_radius * 2.0, width=hole_length)
    return KiDrill(diameter=hole_length, width=hole_radius * 2.0)


def _polygon_outline(raw_points: str, norm: CoordinateNormalizer,
                     anchor: tuple[float, float]) -> Optional[list[tuple[float, float]]]:
    try:
        points = parse_points(raw_points)
    except MalformedRecord:
        return None
    if len(points) < 2:
        return None
    ax, ay = anchor
    outline = []
    for x, y in points:
        px, py = norm.point(x, y)
        outline.append((round(px - ax, 4), round(py - ay, 4)))
    return outline


def _stroke(norm: CoordinateNormalizer, width: float) -> float:
    return max(norm.length(width), MIN_SIZE)


def build_footprint(record: ComponentRecord, parsed: ParsedFootprint,
                    include_model: bool = False,
                    project_relative: bool = False) -> KiFootprint:
    name = component_name(record.title, record.identifier)
    norm = footprint_normalizer(record.footprint_origin)
    footprint = KiFootprint(name=name)

    for pad in parsed.pads:
        through_hole = pad.hole_radius is not None
        if through_hole:
            pad_type = "thru_hole"
            layers = map_pad_layers_tht(pad.layer_id)
        else:
            pad_type = "smd"
            layers = map_pad_layers_smd(pad.layer_id)

        x, y = norm.point(pad.x, pad.y)
        width = norm.length(pad.width)
        height = norm.length(pad.height)
        drill = drill_for_pad(
            norm.length(pad.hole_radius) if pad.hole_radius is not None else None,
            norm.length(pad.hole_length) if pad.hole_length is not None else None,
            width, height,
        )

        shape = PAD_SHAPES.get(pad.shape, "rect")
        polygon = None
        if pad.shape == "POLYGON" and pad.points:
            polygon = _polygon_outline(pad.points, norm, (x, y))
        if polygon is not None:
            size_x = size_y = MIN_SIZE
            rotation = 0.0
        else:
            if shape == "custom":
                shape = "rect"
            size_x = max(width, MIN_SIZE)
            size_y = max(height, MIN_SIZE)
            rotation = angle_to_ki(pad.rotation)

        footprint.pads.append(KiPad(
            number=pad.number,
            pad_type=pad_type,
            shape=shape,
            x=x, y=y,
            size_x=size_x, size_y=size_y,
            rotation=rotation,
            layers=layers,
            drill=drill,
            polygon=polygon,
        ))

    for track in parsed.tracks:
        try:
            points = parse_points(track.points)
        except MalformedRecord as e:
            logger.warning("Skipping track: %s", e)
            continue
        layer = map_layer(track.layer_id)
        width = _stroke(norm, track.stroke_width)
        for (x1, y1), (x2, y2) in zip(points, points[1:]):
            footprint.lines.append(KiLine(
                start=norm.point(x1, y1),
                end=norm.point(x2, y2),
                width=width,
                layer=layer,
            ))

    for rect in parsed.rectangles:
        (x1, y1), (x2, y2) = norm.rectangle(rect.x, rect.y, rect.width, rect.height)
        layer = map_layer(rect.layer_id)
        width = _stroke(norm, rect.stroke_width)
        corners = [(x1, y1), (x2, y1), (x2, y2), (x1, y2)]
        for start, end in zip(corners, corners[1:] + corners[:1]):
            footprint.lines.append(KiLine(start=start, end=end, width=width, layer=layer))

    for circle in parsed.circles:
        cx, cy = norm.point(circle.cx, circle.cy)
        footprint.circles.append(KiFpCircle(
            center=(cx, cy),
            end=(cx + norm.length(circle.radius), cy),
            width=_stroke(norm, circle.stroke_width),
            layer=map_layer(circle.layer_id),
        ))

    for arc in parsed.arcs:
        try:
            start, end, rx, ry, rotation, large_arc, sweep = parse_svg_arc(arc.path)
            solution = solve_endpoint_arc(start, end, rx, ry, rotation, large_arc, sweep)
        except ArcGeometryError as e:
            logger.warning("Skipping footprint arc: %s", e)
            continue
        footprint.arcs.append(KiFpArc(
            start=norm.point(*start),
            mid=norm.point(*solution.mid_point),
            end=norm.point(*end),
            width=_stroke(norm, arc.stroke_width),
            layer=map_layer(arc.layer_id),
        ))

    for text in parsed.texts:
        x, y = norm.point(text.x, text.y)
        footprint.texts.append(KiText(
            text=text.text,
            x=x, y=y,
            rotation=text.rotation,
            layer=map_layer(text.layer_id),
            size=max(norm.length(text.font_size), MIN_SIZE),
            thickness=_stroke(norm, text.stroke_width),
        ))

    for hole in parsed.holes:
        x, y = norm.point(hole.x, hole.y)
        diameter = norm.length(hole.radius) * 2.0
        footprint.pads.append(KiPad(
            number="",
            pad_type="np_thru_hole",
            shape="circle",
            x=x, y=y,
            size_x=diameter, size_y=diameter,
            rotation=0.0,
            layers=list(THROUGH_LAYERS),
            drill=KiDrill(diameter=diameter),
        ))

    for via in parsed.vias:
        x, y = norm.point(via.x, via.y)
        size = norm.length(via.diameter)
        footprint.pads.append(KiPad(
            number="",
            pad_type="thru_hole",
            shape="circle",
            x=x, y=y,
            size_x=size, size_y=size,
            rotation=0.0,
            layers=list(THROUGH_LAYERS),
            drill=KiDrill(diameter=norm.length(via.radius) * 2.0),
        ))

    if include_model and record.model_3d is not None:
        model_name = component_name(record.model_3d.title, record.identifier)
        footprint.model_3d = Ki3dModel(path=model_3d_path(model_name, project_relative))

    return footprint


def model_3d_path(model_name: str, project_relative: bool = False) -> str:
    """Footprint 3D reference; STEP is preferred over WRL for portability."""
    base = PROJECT_ENV_VAR if project_relative else MODEL_ENV_VAR
    return f"${{{base}}}/{LIB_NAME}.3dshapes/{model_name}.step"
