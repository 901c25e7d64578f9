"""Shape-record importers — decode EasyEDA shape strings into typed primitives."""

from importers.base import BaseImporter
from importers.footprint import FootprintImporter, find_model_3d
from importers.symbol import SymbolImporter

__all__ = ["BaseImporter", "FootprintImporter", "SymbolImporter", "find_model_3d"]
