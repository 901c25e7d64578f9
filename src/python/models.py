"""Data models for the lcscbridge pipeline."""

from dataclasses import dataclass, field
from typing import Optional

Point = tuple[float, float]


@dataclass(frozen=True)
class Model3dRef:
    uuid: str
    title: str


@dataclass(frozen=True)
class ComponentRecord:
    """Validated component description as returned by the EasyEDA API."""
    identifier: str
    title: str
    symbol_shapes: tuple[str, ...] = ()
    symbol_origin: Point = (0.0, 0.0)
    footprint_shapes: tuple[str, ...] = ()
    footprint_origin: Point = (0.0, 0.0)
    model_3d: Optional[Model3dRef] = None
    prefix: str = "U"
    manufacturer: str = ""
    datasheet: str = ""
    part_class: str = ""


# ── Source primitives (EasyEDA units) ────────────────────────────────────────

@dataclass
class SymbolPin:
    number: str
    name: str
    electric_type: str
    x: float
    y: float
    rotation: float
    length: float
    dot: bool = False
    clock: bool = False


@dataclass
class SymbolRectangle:
    x: float
    y: float
    width: float
    height: float
    stroke_width: float = 1.0
    fill: bool = False


@dataclass
class SymbolCircle:
    cx: float
    cy: float
    radius: float
    stroke_width: float = 1.0
    fill: bool = False


@dataclass
class SymbolEllipse:
    cx: float
    cy: float
    rx: float
    ry: float
    stroke_width: float = 1.0
    fill: bool = False


@dataclass
class SymbolArc:
    cx: float
    cy: float
    radius: float
    start_angle: float
    end_angle: float
    stroke_width: float = 1.0
    fill: bool = False


@dataclass
class SymbolPolyline:
    points: list[Point]
    stroke_width: float = 1.0
    fill: bool = False


@dataclass
class SymbolPolygon:
    points: list[Point]
    stroke_width: float = 1.0
    fill: bool = False


@dataclass
class SymbolPath:
    path: str
    stroke_width: float = 1.0
    fill: bool = False


@dataclass
class ParsedSymbol:
    pins: list[SymbolPin] = field(default_factory=list)
    rectangles: list[SymbolRectangle] = field(default_factory=list)
    circles: list[SymbolCircle] = field(default_factory=list)
    ellipses: list[SymbolEllipse] = field(default_factory=list)
    arcs: list[SymbolArc] = field(default_factory=list)
    polylines: list[SymbolPolyline] = field(default_factory=list)
    polygons: list[SymbolPolygon] = field(default_factory=list)
    paths: list[SymbolPath] = field(default_factory=list)

    def primitive_count(self) -> int:
        return (len(self.pins) + len(self.rectangles) + len(self.circles)
                + len(self.ellipses) + len(self.arcs) + len(self.polylines)
                + len(self.polygons) + len(self.paths))


@dataclass
class FootprintPad:
    shape: str
    x: float
    y: float
    width: float
    height: float
    layer_id: int
    number: str
    hole_radius: Optional[float] = None
    points: str = ""
    rotation: float = 0.0
    hole_length: Optional[float] = None


@dataclass
class FootprintTrack:
    points: str
    stroke_width: float
    layer_id: int


@dataclass
class FootprintCircle:
    cx: float
    cy: float
    radius: float
    stroke_width: float
    layer_id: int


@dataclass
class FootprintArc:
    path: str
    stroke_width: float
    layer_id: int


@dataclass
class FootprintRectangle:
    x: float
    y: float
    width: float
    height: float
    stroke_width: float
    layer_id: int


@dataclass
class FootprintText:
    text: str
    x: float
    y: float
    rotation: float
    font_size: float
    stroke_width: float
    layer_id: int


@dataclass
class FootprintHole:
    x: float
    y: float
    radius: float


@dataclass
class FootprintVia:
    x: float
    y: float
    diameter: float
    radius: float


@dataclass
class ParsedFootprint:
    pads: list[FootprintPad] = field(default_factory=list)
    tracks: list[FootprintTrack] = field(default_factory=list)
    circles: list[FootprintCircle] = field(default_factory=list)
    arcs: list[FootprintArc] = field(default_factory=list)
    rectangles: list[FootprintRectangle] = field(default_factory=list)
    texts: list[FootprintText] = field(default_factory=list)
    holes: list[FootprintHole] = field(default_factory=list)
    vias: list[FootprintVia] = field(default_factory=list)

    def primitive_count(self) -> int:
        return (len(self.pads) + len(self.tracks) + len(self.circles)
                + len(self.arcs) + len(self.rectangles) + len(self.texts)
                + len(self.holes) + len(self.vias))


# ── Target models (KiCad) ────────────────────────────────────────────────────

@dataclass
class KiPin:
    number: str
    name: str
    pin_type: str  # kiutils electrical type, e.g. "input", "power_in"
    style: str     # "line", "inverted", "clock"
    x: float
    y: float
    rotation: float
    length: float


@dataclass
class KiRectangle:
    x1: float
    y1: float
    x2: float
    y2: float
    stroke_width: float
    fill: bool


@dataclass
class KiCircle:
    cx: float
    cy: float
    radius: float
    stroke_width: float
    fill: bool


@dataclass
class KiArc:
    start: Point
    mid: Point
    end: Point
    stroke_width: float


@dataclass
class KiPolyline:
    points: list[Point]
    stroke_width: float
    fill: bool = False


@dataclass
class KiSymbol:
    name: str
    reference: str
    value: str
    footprint: str
    datasheet: str = ""
    manufacturer: str = ""
    identifier: str = ""
    part_class: str = ""
    pins: list[KiPin] = field(default_factory=list)
    rectangles: list[KiRectangle] = field(default_factory=list)
    circles: list[KiCircle] = field(default_factory=list)
    arcs: list[KiArc] = field(default_factory=list)
    polylines: list[KiPolyline] = field(default_factory=list)


@dataclass
class KiDrill:
    diameter: float
    width: Optional[float] = None  # set for oval (slot) drills


@dataclass
class KiPad:
    number: str
    pad_type: str  # "smd", "thru_hole", "np_thru_hole"
    shape: str     # "circle", "rect", "oval", "custom"
    x: float
    y: float
    size_x: float
    size_y: float
    rotation: float
    layers: list[str]
    drill: Optional[KiDrill] = None
    polygon: Optional[list[Point]] = None  # outline relative to the pad, mm


@dataclass
class KiLine:
    start: Point
    end: Point
    width: float
    layer: str


@dataclass
class KiFpCircle:
    center: Point
    end: Point
    width: float
    layer: str


@dataclass
class KiFpArc:
    start: Point
    mid: Point
    end: Point
    width: float
    layer: str


@dataclass
class KiText:
    text: str
    x: float
    y: float
    rotation: float
    layer: str
    size: float
    thickness: float


@dataclass
class Ki3dModel:
    path: str
    offset: tuple[float, float, float] = (0.0, 0.0, 0.0)
    scale: tuple[float, float, float] = (1.0, 1.0, 1.0)
    rotate: tuple[float, float, float] = (0.0, 0.0, 0.0)


@dataclass
class KiFootprint:
    name: str
    pads: list[KiPad] = field(default_factory=list)
    lines: list[KiLine] = field(default_factory=list)
    circles: list[KiFpCircle] = field(default_factory=list)
    arcs: list[KiFpArc] = field(default_factory=list)
    texts: list[KiText] = field(default_factory=list)
    model_3d: Optional[Ki3dModel] = None


# ── Options and results ──────────────────────────────────────────────────────

@dataclass
class ConversionOptions:
    symbol: bool = False
    footprint: bool = False
    model_3d: bool = False
    full: bool = False
    output: str = "."
    overwrite: bool = False
    project_relative: bool = False
    continue_on_error: bool = False
    parallel: int = 4
    debug: bool = False

    @property
    def wants_symbol(self) -> bool:
        return self.symbol or self.full

    @property
    def wants_footprint(self) -> bool:
        return self.footprint or self.full

    @property
    def wants_model(self) -> bool:
        return self.model_3d or self.full


@dataclass
class ConversionResult:
    """Outcome of converting one component."""
    identifier: str
    name: Optional[str] = None
    symbol_written: bool = False
    footprint_written: bool = False
    model_formats: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass
class BatchReport:
    total: int
    success: int
    failed: int
    failed_ids: list[str] = field(default_factory=list)


@dataclass
class RemovalReport:
    symbols: int = 0
    footprints: int = 0
    models: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.symbols + self.footprints + self.models
