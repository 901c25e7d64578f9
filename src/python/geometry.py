"""Coordinate normalization, arc math and path interpretation.

EasyEDA draws in a y-down canvas measured in 10 mil units. Symbols keep those
native units here (the KiCad writer scales them); footprints are converted to
millimetres as they are normalized.

Arc reconstruction follows the endpoint-to-center conversion from the SVG
implementation notes (https://www.w3.org/TR/SVG/implnote.html#ArcImplementationNotes).
"""

import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from errors import ArcGeometryError
from models import Point

# 1 EasyEDA unit = 10 mil = 0.254 mm
UNIT_SCALE = 0.254


class Domain(Enum):
    SYMBOL = "symbol"
    FOOTPRINT = "footprint"


class CoordinateNormalizer:
    """Maps source coordinates onto the target origin for one domain.

    Symbol space inverts Y (source grows downward, KiCad symbols grow upward);
    footprint space only translates, then scales to millimetres.
    """

    def __init__(self, origin: Point, domain: Domain):
        self.origin = (float(origin[0]), float(origin[1]))
        self.domain = domain
        self.scale = UNIT_SCALE if domain is Domain.FOOTPRINT else 1.0

    def transform(self, x: float, y: float) -> Point:
        """Translate (and for symbols invert) without any unit change."""
        bx, by = self.origin
        if self.domain is Domain.SYMBOL:
            return (x - bx, by - y)
        return (x - bx, y - by)

    def point(self, x: float, y: float) -> Point:
        tx, ty = self.transform(x, y)
        return (tx * self.scale, ty * self.scale)

    def length(self, value: float) -> float:
        return value * self.scale

    def rectangle(self, x: float, y: float, width: float, height: float) -> tuple[Point, Point]:
        """Transform both corners independently; returns an opposite-corner pair."""
        return self.point(x, y), self.point(x + width, y + height)


def symbol_normalizer(origin: Point) -> CoordinateNormalizer:
    return CoordinateNormalizer(origin, Domain.SYMBOL)


def footprint_normalizer(origin: Point) -> CoordinateNormalizer:
    return CoordinateNormalizer(origin, Domain.FOOTPRINT)


# ── Arcs ─────────────────────────────────────────────────────────────────────

def symbol_arc_points(cx: float, cy: float, radius: float,
                      start_angle: float, end_angle: float) -> tuple[Point, Point, Point]:
    """Start, bisector midpoint and end of a center/radius/angle arc (degrees)."""
    start_rad = math.radians(start_angle)
    end_rad = math.radians(end_angle)
    mid_rad = (start_rad + end_rad) / 2.0
    start = (cx + radius * math.cos(start_rad), cy + radius * math.sin(start_rad))
    mid = (cx + radius * math.cos(mid_rad), cy + radius * math.sin(mid_rad))
    end = (cx + radius * math.cos(end_rad), cy + radius * math.sin(end_rad))
    return start, mid, end


@dataclass
class ArcSolution:
    """Center parameterization of an elliptical arc.

    Angles are parametric angles in the ellipse's own (unrotated) frame, in
    degrees within (-180, 180]. ``rx``/``ry`` are the radii actually used,
    i.e. after scaling up radii that were too small to span the endpoints.
    """
    cx: float
    cy: float
    rx: float
    ry: float
    rotation: float
    start_angle: float
    end_angle: float
    sweep: bool

    @property
    def mid_angle(self) -> float:
        mid = (self.start_angle + self.end_angle) / 2.0
        diff = self.end_angle - self.start_angle
        if (self.sweep and diff < 0) or (not self.sweep and diff > 0):
            mid += 180.0
        return mid

    @property
    def sweep_angle(self) -> float:
        """Signed angular extent traversed from start to end."""
        delta = self.end_angle - self.start_angle
        if self.sweep and delta < 0:
            delta += 360.0
        elif not self.sweep and delta > 0:
            delta -= 360.0
        return delta

    def point_at(self, angle: float) -> Point:
        theta = math.radians(angle)
        phi = math.radians(self.rotation)
        ex = self.rx * math.cos(theta)
        ey = self.ry * math.sin(theta)
        return (self.cx + math.cos(phi) * ex - math.sin(phi) * ey,
                self.cy + math.sin(phi) * ex + math.cos(phi) * ey)

    @property
    def start_point(self) -> Point:
        return self.point_at(self.start_angle)

    @property
    def mid_point(self) -> Point:
        return self.point_at(self.mid_angle)

    @property
    def end_point(self) -> Point:
        return self.point_at(self.end_angle)


def solve_endpoint_arc(start: Point, end: Point, rx: float, ry: float,
                       rotation: float, large_arc: bool, sweep: bool) -> ArcSolution:
    """Convert SVG-style endpoint arc parameters to a center parameterization."""
    if rx == 0 or ry == 0:
        raise ArcGeometryError(f"Arc radius is zero (rx={rx}, ry={ry})")
    x1, y1 = start
    x2, y2 = end
    if x1 == x2 and y1 == y2:
        raise ArcGeometryError(f"Arc endpoints coincide at ({x1}, {y1})")

    rx, ry = abs(rx), abs(ry)
    phi = math.radians(rotation)
    cos_phi, sin_phi = math.cos(phi), math.sin(phi)

    # Step 1: midpoint-relative start point in the ellipse frame
    dx2 = (x1 - x2) / 2.0
    dy2 = (y1 - y2) / 2.0
    x1p = cos_phi * dx2 + sin_phi * dy2
    y1p = -sin_phi * dx2 + cos_phi * dy2

    # Radii too small to reach: scale up uniformly
    lam = (x1p * x1p) / (rx * rx) + (y1p * y1p) / (ry * ry)
    if lam > 1.0:
        factor = math.sqrt(lam)
        rx *= factor
        ry *= factor

    # Step 2: center in the ellipse frame
    rx2, ry2 = rx * rx, ry * ry
    num = rx2 * ry2 - rx2 * y1p * y1p - ry2 * x1p * x1p
    den = rx2 * y1p * y1p + ry2 * x1p * x1p
    coef = math.sqrt(max(0.0, num / den))
    if large_arc == sweep:
        coef = -coef
    cxp = coef * (rx * y1p / ry)
    cyp = coef * (-ry * x1p / rx)

    # Step 3: back to source space
    cx = cos_phi * cxp - sin_phi * cyp + (x1 + x2) / 2.0
    cy = sin_phi * cxp + cos_phi * cyp + (y1 + y2) / 2.0

    # Step 4: parametric angles
    start_angle = math.degrees(math.atan2((y1p - cyp) / ry, (x1p - cxp) / rx))
    end_angle = math.degrees(math.atan2((-y1p - cyp) / ry, (-x1p - cxp) / rx))

    return ArcSolution(cx=cx, cy=cy, rx=rx, ry=ry, rotation=rotation,
                       start_angle=start_angle, end_angle=end_angle, sweep=sweep)


_ARC_COMMAND_RE = re.compile(r"([MA])")


def parse_svg_arc(path: str) -> tuple[Point, Point, float, float, float, bool, bool]:
    """Parse ``M sx sy A rx ry rotation large_arc sweep ex ey``.

    Commas and command letters glued to numbers are tolerated; any other shape
    raises ArcGeometryError.
    """
    spaced = _ARC_COMMAND_RE.sub(r" \1 ", path.replace(",", " "))
    tokens = spaced.split()
    if len(tokens) != 11 or tokens[0] != "M" or tokens[3] != "A":
        raise ArcGeometryError(f"Invalid arc path: {path!r}")
    try:
        sx, sy = float(tokens[1]), float(tokens[2])
        rx, ry = float(tokens[4]), float(tokens[5])
        rotation = float(tokens[6])
        ex, ey = float(tokens[9]), float(tokens[10])
    except ValueError as e:
        raise ArcGeometryError(f"Invalid arc path: {path!r}") from e
    large_arc = tokens[7] == "1"
    sweep = tokens[8] == "1"
    return (sx, sy), (ex, ey), rx, ry, rotation, large_arc, sweep


# ── Paths ────────────────────────────────────────────────────────────────────

def _parse_float(token: str) -> Optional[float]:
    try:
        return float(token)
    except ValueError:
        return None


def tokenize_path(path: str,
                  normalize: Optional[Callable[[float, float], Point]] = None) -> list[Point]:
    """Interpret the M/L/Z subset of an SVG path into a point sequence.

    ``M`` and ``L`` take one coordinate pair, written ``x,y`` or ``x y``.
    ``Z``/``z`` repeat the first point. Anything else is ignored.
    """
    if normalize is None:
        normalize = lambda x, y: (x, y)  # noqa: E731
    tokens = path.split()
    points: list[Point] = []
    i = 0
    while i < len(tokens):
        token = tokens[i]
        if token in ("M", "L"):
            if i + 1 < len(tokens):
                i += 1
                coord = tokens[i]
                if "," in coord:
                    x_str, y_str = coord.split(",", 1)
                    x, y = _parse_float(x_str), _parse_float(y_str)
                    if x is not None and y is not None:
                        points.append(normalize(x, y))
                elif i + 1 < len(tokens):
                    x, y = _parse_float(tokens[i]), _parse_float(tokens[i + 1])
                    if x is not None and y is not None:
                        points.append(normalize(x, y))
                        i += 1
        elif token in ("Z", "z"):
            if points:
                points.append(points[0])
        i += 1
    return points
