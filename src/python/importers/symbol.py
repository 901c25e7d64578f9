"""EasyEDA schematic symbol importer.

Record layouts (EasyEDA standard editor, ``~`` separated):
    P~show~electric~number~x~y~rotation~id~locked^^dot^^path~color^^name...^^num...^^dot...^^clock...
    R~x~y~rx~ry~width~height~strokeColor~strokeWidth~strokeStyle~fillColor~id
    C~cx~cy~r~strokeColor~strokeWidth~strokeStyle~fillColor~id
    E~cx~cy~rx~ry~strokeColor~strokeWidth~strokeStyle~fillColor~id
    A~cx~cy~radius~startAngle~endAngle~strokeColor~strokeWidth~strokeStyle~fillColor~id
    A~M sx sy A rx ry rot large sweep ex ey~helperDots~strokeColor~strokeWidth~strokeStyle~fillColor~id
    PL~points~strokeColor~strokeWidth~strokeStyle~fillColor~id
    PG~points~strokeColor~strokeWidth~strokeStyle~fillColor~id
    PT~path~strokeColor~strokeWidth~strokeStyle~fillColor~id
"""

import re

from errors import MalformedRecord
from geometry import parse_svg_arc, solve_endpoint_arc
from importers.base import (
    BaseImporter, FIELD_SEPARATOR, field, is_filled, optional_float,
    parse_points, required_float,
)
from models import (
    ParsedSymbol, SymbolArc, SymbolCircle, SymbolEllipse, SymbolPath,
    SymbolPin, SymbolPolygon, SymbolPolyline, SymbolRectangle,
)

PIN_SEGMENT_SEPARATOR = "^^"

_PIN_LENGTH_RE = re.compile(r"[hv]\s*(-?\d+(?:\.\d+)?)", re.IGNORECASE)


def _pin_length(path: str) -> float:
    m = _PIN_LENGTH_RE.search(path)
    return abs(float(m.group(1))) if m else 0.0


def _segment(segments: list[str], index: int) -> list[str]:
    return segments[index].split(FIELD_SEPARATOR) if index < len(segments) else []


class SymbolImporter(BaseImporter):

    kind = "symbol"

    def _new_target(self) -> ParsedSymbol:
        return ParsedSymbol()

    def _handlers(self, target: ParsedSymbol):
        return {
            "P": lambda r: target.pins.append(self._parse_pin(r)),
            "R": lambda r: target.rectangles.append(self._parse_rectangle(r)),
            "C": lambda r: target.circles.append(self._parse_circle(r)),
            "E": lambda r: target.ellipses.append(self._parse_ellipse(r)),
            "A": lambda r: target.arcs.append(self._parse_arc(r)),
            "PL": lambda r: target.polylines.append(
                SymbolPolyline(**self._parse_points_record(r))),
            "PG": lambda r: target.polygons.append(
                SymbolPolygon(**self._parse_points_record(r))),
            "PT": lambda r: target.paths.append(self._parse_path(r)),
        }

    def _parse_pin(self, record: str) -> SymbolPin:
        segments = record.split(PIN_SEGMENT_SEPARATOR)
        settings = segments[0].split(FIELD_SEPARATOR)
        name_parts = _segment(segments, 3)
        path_parts = _segment(segments, 2)
        dot_parts = _segment(segments, 5)
        clock_parts = _segment(segments, 6)
        return SymbolPin(
            number=field(settings, 3),
            name=field(name_parts, 4),
            electric_type=field(settings, 2, "0"),
            x=required_float(settings, 4, "x"),
            y=required_float(settings, 5, "y"),
            rotation=optional_float(settings, 6),
            length=_pin_length(field(path_parts, 0)),
            dot=field(dot_parts, 0) == "1",
            clock=field(clock_parts, 0) == "1",
        )

    def _parse_rectangle(self, record: str) -> SymbolRectangle:
        parts = record.split(FIELD_SEPARATOR)
        return SymbolRectangle(
            x=required_float(parts, 1, "x"),
            y=required_float(parts, 2, "y"),
            width=required_float(parts, 5, "width"),
            height=required_float(parts, 6, "height"),
            stroke_width=optional_float(parts, 8, 1.0),
            fill=is_filled(field(parts, 10)),
        )

    def _parse_circle(self, record: str) -> SymbolCircle:
        parts = record.split(FIELD_SEPARATOR)
        return SymbolCircle(
            cx=required_float(parts, 1, "cx"),
            cy=required_float(parts, 2, "cy"),
            radius=required_float(parts, 3, "radius"),
            stroke_width=optional_float(parts, 5, 1.0),
            fill=is_filled(field(parts, 7)),
        )

    def _parse_ellipse(self, record: str) -> SymbolEllipse:
        parts = record.split(FIELD_SEPARATOR)
        return SymbolEllipse(
            cx=required_float(parts, 1, "cx"),
            cy=required_float(parts, 2, "cy"),
            rx=required_float(parts, 3, "rx"),
            ry=required_float(parts, 4, "ry"),
            stroke_width=optional_float(parts, 6, 1.0),
            fill=is_filled(field(parts, 8)),
        )

    def _parse_arc(self, record: str) -> SymbolArc:
        parts = record.split(FIELD_SEPARATOR)
        if field(parts, 1).lstrip().startswith("M"):
            return self._parse_path_arc(parts)
        return SymbolArc(
            cx=required_float(parts, 1, "cx"),
            cy=required_float(parts, 2, "cy"),
            radius=required_float(parts, 3, "radius"),
            start_angle=required_float(parts, 4, "start_angle"),
            end_angle=required_float(parts, 5, "end_angle"),
            stroke_width=optional_float(parts, 7, 1.0),
            fill=is_filled(field(parts, 9)),
        )

    def _parse_path_arc(self, parts: list[str]) -> SymbolArc:
        """Reduce an SVG endpoint arc to center/radius/angles.

        The end angle is unwrapped in the sweep direction so the angular
        bisector lands on the drawn side of the arc.
        """
        start, end, rx, ry, rotation, large_arc, sweep = parse_svg_arc(parts[1])
        solution = solve_endpoint_arc(start, end, rx, ry, rotation, large_arc, sweep)
        start_angle = solution.start_angle + rotation
        end_angle = start_angle + solution.sweep_angle
        return SymbolArc(
            cx=solution.cx,
            cy=solution.cy,
            radius=(solution.rx + solution.ry) / 2.0,
            start_angle=start_angle,
            end_angle=end_angle,
            stroke_width=optional_float(parts, 4, 1.0),
            fill=is_filled(field(parts, 6)),
        )

    def _parse_points_record(self, record: str) -> dict:
        parts = record.split(FIELD_SEPARATOR)
        points = parse_points(field(parts, 1))
        if len(points) < 2:
            raise MalformedRecord(f"{parts[0]}: needs at least two points")
        return {
            "points": points,
            "stroke_width": optional_float(parts, 3, 1.0),
            "fill": is_filled(field(parts, 5)),
        }

    def _parse_path(self, record: str) -> SymbolPath:
        parts = record.split(FIELD_SEPARATOR)
        path = field(parts, 1).strip()
        if not path:
            raise MalformedRecord("PT: empty path")
        return SymbolPath(
            path=path,
            stroke_width=optional_float(parts, 3, 1.0),
            fill=is_filled(field(parts, 5)),
        )
