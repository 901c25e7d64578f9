"""EasyEDA package (footprint) importer.

Record layouts (``~`` separated):
    PAD~shape~cx~cy~width~height~layerId~net~number~holeRadius~points~rotation~id~holeLength~holePoint~isPlated~locked
    TRACK~strokeWidth~layerId~net~points~id~locked
    CIRCLE~cx~cy~radius~strokeWidth~layerId~id~locked
    ARC~strokeWidth~layerId~net~path~helperDots~id~locked
    RECT~x~y~width~height~strokeWidth~id~layerId~locked
    TEXT~type~x~y~strokeWidth~rotation~mirror~layerId~net~fontSize~text~textPath~display~id
    HOLE~x~y~radius~id~locked
    VIA~x~y~diameter~net~radius~id~locked
    SVGNODE~{"attrs": {"c_etype": "outline3D", "uuid": ..., "title": ...}, ...}
"""

import json
import logging
from typing import Iterable, Optional

from errors import MalformedRecord
from importers.base import (
    BaseImporter, FIELD_SEPARATOR, field, optional_float, positive_or_none,
    required_float,
)
from models import (
    FootprintArc, FootprintCircle, FootprintHole, FootprintPad,
    FootprintRectangle, FootprintText, FootprintTrack, FootprintVia,
    Model3dRef, ParsedFootprint,
)

logger = logging.getLogger(__name__)

MODEL_NODE_TAG = "SVGNODE"
MODEL_NODE_TYPE = "outline3D"


def _layer(parts: list[str], index: int) -> int:
    try:
        return int(float(field(parts, index)))
    except ValueError:
        return 0


def find_model_3d(records: Iterable[str]) -> Optional[Model3dRef]:
    """Locate the 3D model reference embedded in the footprint records.

    The first ``SVGNODE`` whose attrs declare an ``outline3D`` element with
    both a uuid and a title wins. Anything else means there is no model.
    """
    for record in records:
        if not record.startswith(MODEL_NODE_TAG + FIELD_SEPARATOR):
            continue
        payload = record.split(FIELD_SEPARATOR, 1)[1]
        try:
            node = json.loads(payload)
        except json.JSONDecodeError:
            logger.debug("Ignoring SVGNODE with invalid JSON payload")
            continue
        attrs = node.get("attrs") if isinstance(node, dict) else None
        if not isinstance(attrs, dict) or attrs.get("c_etype") != MODEL_NODE_TYPE:
            continue
        uuid = attrs.get("uuid")
        title = attrs.get("title")
        if isinstance(uuid, str) and uuid and isinstance(title, str) and title:
            return Model3dRef(uuid=uuid, title=title)
    return None


class FootprintImporter(BaseImporter):

    kind = "footprint"

    def _new_target(self) -> ParsedFootprint:
        return ParsedFootprint()

    def _handlers(self, target: ParsedFootprint):
        return {
            "PAD": lambda r: target.pads.append(self._parse_pad(r)),
            "TRACK": lambda r: target.tracks.append(self._parse_track(r)),
            "CIRCLE": lambda r: target.circles.append(self._parse_circle(r)),
            "ARC": lambda r: target.arcs.append(self._parse_arc(r)),
            "RECT": lambda r: target.rectangles.append(self._parse_rectangle(r)),
            "TEXT": lambda r: target.texts.append(self._parse_text(r)),
            "HOLE": lambda r: target.holes.append(self._parse_hole(r)),
            "VIA": lambda r: target.vias.append(self._parse_via(r)),
            # Consumed by find_model_3d, not a drawable primitive
            MODEL_NODE_TAG: lambda r: None,
        }

    def _parse_pad(self, record: str) -> FootprintPad:
        parts = record.split(FIELD_SEPARATOR)
        return FootprintPad(
            shape=field(parts, 1).upper(),
            x=required_float(parts, 2, "x"),
            y=required_float(parts, 3, "y"),
            width=required_float(parts, 4, "width"),
            height=required_float(parts, 5, "height"),
            layer_id=_layer(parts, 6),
            number=field(parts, 8),
            hole_radius=positive_or_none(parts, 9),
            points=field(parts, 10),
            rotation=optional_float(parts, 11),
            hole_length=positive_or_none(parts, 13),
        )

    def _parse_track(self, record: str) -> FootprintTrack:
        parts = record.split(FIELD_SEPARATOR)
        points = field(parts, 4).strip()
        if not points:
            raise MalformedRecord("TRACK: empty point list")
        return FootprintTrack(
            points=points,
            stroke_width=required_float(parts, 1, "stroke_width"),
            layer_id=_layer(parts, 2),
        )

    def _parse_circle(self, record: str) -> FootprintCircle:
        parts = record.split(FIELD_SEPARATOR)
        return FootprintCircle(
            cx=required_float(parts, 1, "cx"),
            cy=required_float(parts, 2, "cy"),
            radius=required_float(parts, 3, "radius"),
            stroke_width=optional_float(parts, 4, 1.0),
            layer_id=_layer(parts, 5),
        )

    def _parse_arc(self, record: str) -> FootprintArc:
        parts = record.split(FIELD_SEPARATOR)
        path = field(parts, 4).strip()
        if not path:
            raise MalformedRecord("ARC: empty path")
        return FootprintArc(
            path=path,
            stroke_width=required_float(parts, 1, "stroke_width"),
            layer_id=_layer(parts, 2),
        )

    def _parse_rectangle(self, record: str) -> FootprintRectangle:
        parts = record.split(FIELD_SEPARATOR)
        return FootprintRectangle(
            x=required_float(parts, 1, "x"),
            y=required_float(parts, 2, "y"),
            width=required_float(parts, 3, "width"),
            height=required_float(parts, 4, "height"),
            stroke_width=optional_float(parts, 5, 1.0),
            layer_id=_layer(parts, 7),
        )

    def _parse_text(self, record: str) -> FootprintText:
        parts = record.split(FIELD_SEPARATOR)
        return FootprintText(
            text=field(parts, 10),
            x=required_float(parts, 2, "x"),
            y=required_float(parts, 3, "y"),
            rotation=optional_float(parts, 5),
            font_size=optional_float(parts, 9, 5.0),
            stroke_width=optional_float(parts, 4, 1.0),
            layer_id=_layer(parts, 7),
        )

    def _parse_hole(self, record: str) -> FootprintHole:
        parts = record.split(FIELD_SEPARATOR)
        return FootprintHole(
            x=required_float(parts, 1, "x"),
            y=required_float(parts, 2, "y"),
            radius=required_float(parts, 3, "radius"),
        )

    def _parse_via(self, record: str) -> FootprintVia:
        parts = record.split(FIELD_SEPARATOR)
        return FootprintVia(
            x=required_float(parts, 1, "x"),
            y=required_float(parts, 2, "y"),
            diameter=required_float(parts, 3, "diameter"),
            radius=required_float(parts, 5, "radius"),
        )
