"""Base importer with shared shape-record helpers."""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

from errors import ArcGeometryError, GeometryError, MalformedRecord

logger = logging.getLogger(__name__)

FIELD_SEPARATOR = "~"


def field(parts: list[str], index: int, default: str = "") -> str:
    """Return a field by position, or ``default`` when the record is short."""
    return parts[index] if index < len(parts) else default


def required_float(parts: list[str], index: int, name: str) -> float:
    """Parse a numeric field that the primitive cannot do without."""
    raw = field(parts, index)
    try:
        return float(raw)
    except ValueError:
        raise MalformedRecord(f"{parts[0]}: field '{name}' is not a number: {raw!r}")


def optional_float(parts: list[str], index: int, default: float = 0.0) -> float:
    raw = field(parts, index).strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def positive_or_none(parts: list[str], index: int) -> Optional[float]:
    """Numeric field where blank, zero or negative means absent."""
    value = optional_float(parts, index, 0.0)
    return value if value > 0 else None


def is_filled(fill_color: str) -> bool:
    fill_color = fill_color.strip().lower()
    return bool(fill_color) and fill_color != "none"


def parse_points(raw: str) -> list[tuple[float, float]]:
    """Parse a flat ``x1 y1 x2 y2 ...`` list (commas also accepted)."""
    try:
        coords = [float(c) for c in raw.replace(",", " ").split()]
    except ValueError:
        raise MalformedRecord(f"invalid point list: {raw!r}")
    return [(coords[i], coords[i + 1]) for i in range(0, len(coords) - 1, 2)]


class BaseImporter(ABC):
    """Dispatches shape records by type tag to ``_parse_<kind>`` handlers.

    Unknown tags are skipped; malformed records are dropped with a warning.
    The whole parse fails only if records were given and none survived.
    """

    kind = "shape"

    @abstractmethod
    def _handlers(self, target) -> dict[str, Callable[[str], None]]:
        ...

    @abstractmethod
    def _new_target(self):
        ...

    def parse(self, records) -> object:
        target = self._new_target()
        handlers = self._handlers(target)
        records = list(records)
        for record in records:
            tag = record.split(FIELD_SEPARATOR, 1)[0]
            handler = handlers.get(tag)
            if handler is None:
                logger.debug("Skipping unknown %s record type %r", self.kind, tag)
                continue
            try:
                handler(record)
            except (MalformedRecord, ArcGeometryError, IndexError) as e:
                logger.warning("Skipping malformed %s record %r: %s", self.kind, record[:80], e)

        if target.primitive_count() == 0:
            raise GeometryError(f"No usable {self.kind} primitives in {len(records)} records")
        return target
