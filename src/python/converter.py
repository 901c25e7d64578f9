"""Single-component pipeline: fetch → parse → build → export → store."""

import asyncio
import logging

from builder import build_footprint, build_symbol, component_name
from easyeda_api import EasyedaApi
from errors import ConversionError, RemoteError
from importers import FootprintImporter, SymbolImporter
from kicad_writer import footprint_to_kiutils, symbol_to_sexpr
from library_store import LibraryStore
from mesh import obj_to_wrl, validate_step
from models import ComponentRecord, ConversionOptions, ConversionResult

logger = logging.getLogger(__name__)


class ComponentConverter:
    """Runs every requested conversion for one identifier, strictly in order.

    Symbol, footprint and model each complete before the next starts. Store
    writes run in a worker thread so other components keep downloading.
    """

    def __init__(self, api: EasyedaApi, store: LibraryStore, options: ConversionOptions):
        self.api = api
        self.store = store
        self.options = options

    async def convert(self, identifier: str) -> ConversionResult:
        record = await self.api.get_component(identifier)
        logger.info("Fetched component: %s", record.title)

        result = ConversionResult(
            identifier=identifier,
            name=component_name(record.title, identifier),
        )

        if self.options.wants_symbol:
            await self._convert_symbol(record, result)
        if self.options.wants_footprint:
            await self._convert_footprint(record, result)
        if self.options.wants_model:
            await self._convert_model(record, result)
        return result

    async def _convert_symbol(self, record: ComponentRecord, result: ConversionResult) -> None:
        logger.info("Converting symbol...")
        parsed = SymbolImporter().parse(record.symbol_shapes)
        ki_symbol = build_symbol(record, parsed)
        payload = symbol_to_sexpr(ki_symbol)
        await asyncio.to_thread(
            self.store.add_or_update,
            self.store.symbol_lib_path, ki_symbol.name, payload, self.options.overwrite,
        )
        result.symbol_written = True
        print(f"✓ Symbol converted: {ki_symbol.name}")

    async def _convert_footprint(self, record: ComponentRecord, result: ConversionResult) -> None:
        logger.info("Converting footprint...")
        parsed = FootprintImporter().parse(record.footprint_shapes)
        ki_footprint = build_footprint(
            record, parsed,
            include_model=self.options.wants_model,
            project_relative=self.options.project_relative,
        )
        footprint = footprint_to_kiutils(ki_footprint)
        await asyncio.to_thread(self.store.write_footprint, ki_footprint.name, footprint)
        result.footprint_written = True
        print(f"✓ Footprint converted: {ki_footprint.name}")

    async def _convert_model(self, record: ComponentRecord, result: ConversionResult) -> None:
        if record.model_3d is None:
            message = "No 3D model metadata available for this component"
            logger.warning(message)
            result.warnings.append(message)
            return

        logger.info("Converting 3D model...")
        model = record.model_3d
        model_name = component_name(model.title, record.identifier)

        # The two encodings are independent: one failing only costs that format
        try:
            obj_data = await self.api.download_obj(model.uuid)
            wrl = obj_to_wrl(obj_data)
            await asyncio.to_thread(self.store.write_wrl_model, model_name, wrl)
            result.model_formats.append("wrl")
            logger.info("WRL model converted: %s", model_name)
        except ConversionError as e:
            logger.warning("WRL model unavailable: %s", e)
            result.warnings.append(f"wrl: {e}")

        try:
            step_data = validate_step(await self.api.download_step(model.uuid))
            await asyncio.to_thread(self.store.write_step_model, model_name, step_data)
            result.model_formats.append("step")
            logger.info("STEP model converted: %s", model_name)
        except ConversionError as e:
            logger.warning("STEP model unavailable: %s", e)
            result.warnings.append(f"step: {e}")

        if not result.model_formats:
            raise RemoteError(f"3D model {model.uuid} unavailable in any format")
        print(f"✓ 3D model converted: {model_name} ({' + '.join(f.upper() for f in result.model_formats)})")
