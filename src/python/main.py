"""lcscbridge — LCSC/EasyEDA to KiCad library converter CLI."""

import argparse
import asyncio
import logging
import os
import sys

from converter import ComponentConverter
from easyeda_api import EasyedaApi, extract_identifiers, validate_identifier
from errors import ConversionError, InputError
from library_store import LibraryStore
from models import BatchReport, ConversionOptions, RemovalReport
from orchestrator import BatchOrchestrator

logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(asctime)s %(levelname)s lcscbridge] %(message)s"
SUMMARY_RULE = "=" * 60


def setup_logging(debug: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        stream=sys.stderr,
        force=True,
    )
    # Per-request lines from the HTTP stack only matter when debugging
    if not debug:
        logging.getLogger("httpx").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lcscbridge",
        description="Convert LCSC/EasyEDA components into a shared KiCad library",
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--lcsc-id", metavar="ID", help="LCSC component ID (e.g. C2040)")
    source.add_argument("--batch", metavar="FILE",
                        help="Read LCSC IDs from a file (every C<digits> token)")
    source.add_argument("--remove", metavar="ID",
                        help="Remove a component's symbol, footprint and 3D models")

    parser.add_argument("--symbol", action="store_true", help="Convert symbol")
    parser.add_argument("--footprint", action="store_true", help="Convert footprint")
    parser.add_argument("--3d", dest="model_3d", action="store_true", help="Convert 3D model")
    parser.add_argument("--full", action="store_true",
                        help="Convert symbol, footprint and 3D model")
    parser.add_argument("-o", "--output", default=".", help="Library output directory")
    parser.add_argument("--from", dest="from_dir", metavar="DIR",
                        help="Library directory to remove from (default: --output)")
    parser.add_argument("--overwrite", action="store_true",
                        help="Replace components that already exist")
    parser.add_argument("--project-relative", action="store_true",
                        help="Reference 3D models via ${KIPRJMOD} instead of ${LCSCBRIDGE_3DMODELS}")
    parser.add_argument("--continue-on-error", action="store_true",
                        help="Keep going when a component in a batch fails")
    parser.add_argument("--parallel", type=int, default=4,
                        help="Components converted concurrently in batch mode (default: 4)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def options_from_args(args: argparse.Namespace) -> ConversionOptions:
    """Validate conversion arguments and map them onto ConversionOptions."""
    if args.lcsc_id is None and args.batch is None:
        raise InputError("Either --lcsc-id, --batch or --remove must be specified")
    if args.lcsc_id is not None:
        validate_identifier(args.lcsc_id)
    if not (args.symbol or args.footprint or args.model_3d or args.full):
        raise InputError(
            "At least one conversion option must be specified "
            "(--symbol, --footprint, --3d, or --full)"
        )
    if args.parallel < 1:
        raise InputError("--parallel must be at least 1")
    return ConversionOptions(
        symbol=args.symbol,
        footprint=args.footprint,
        model_3d=args.model_3d,
        full=args.full,
        output=args.output,
        overwrite=args.overwrite,
        project_relative=args.project_relative,
        continue_on_error=args.continue_on_error,
        parallel=args.parallel,
        debug=args.debug,
    )


def load_identifiers(args: argparse.Namespace) -> list[str]:
    if args.lcsc_id is not None:
        return [args.lcsc_id]
    try:
        with open(args.batch, "r", encoding="utf-8") as f:
            content = f.read()
    except OSError as e:
        raise InputError(f"Failed to open batch file: {e}")
    ids = extract_identifiers(content)
    logger.info("Loaded %d LCSC IDs from batch file", len(ids))
    return ids


async def convert_all(identifiers: list[str], options: ConversionOptions,
                      api: EasyedaApi | None = None) -> BatchReport:
    store = LibraryStore(options.output)
    store.create_directories()
    async with (api or EasyedaApi()) as client:
        converter = ComponentConverter(client, store, options)
        orchestrator = BatchOrchestrator(
            converter.convert,
            parallel=options.parallel,
            continue_on_error=options.continue_on_error,
        )
        return await orchestrator.run(identifiers)


def print_summary(report: BatchReport, output: str) -> None:
    if report.total > 1:
        print(f"\n{SUMMARY_RULE}")
        print("Batch conversion complete!")
        print(f"Total: {report.total} | Success: {report.success} | Failed: {report.failed}")
        if report.failed_ids:
            print("\nFailed components:")
            for identifier in report.failed_ids:
                print(f"  - {identifier}")
        print(f"Output directory: {output}")
        print(SUMMARY_RULE)
    else:
        print("\n✓ Conversion complete!")
        print(f"Output directory: {output}")


def remove(identifier: str, directory: str) -> RemovalReport:
    validate_identifier(identifier)
    if not os.path.isdir(directory):
        raise InputError(f"Directory does not exist: {directory}")
    logger.info("Removing component: %s", identifier)

    report = LibraryStore(directory).remove_component(identifier)
    if report.symbols:
        print(f"✓ Removed symbol containing: {identifier}")
    if report.footprints:
        print(f"✓ Removed {report.footprints} footprint(s) containing: {identifier}")
    if report.models:
        print(f"✓ Removed {report.models} 3D model(s) containing: {identifier}")
    if report.errors:
        print("\nErrors encountered:", file=sys.stderr)
        for error in report.errors:
            print(f"  - {error}", file=sys.stderr)
    if report.total == 0:
        print(f"No files found for component: {identifier}")
    else:
        print(f"\n✓ Removal complete! Removed {report.total} item(s)")
    return report


def run(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.debug)

    if args.remove is not None:
        remove(args.remove, args.from_dir or args.output)
        return 0

    options = options_from_args(args)
    identifiers = load_identifiers(args)
    report = asyncio.run(convert_all(identifiers, options))
    print_summary(report, options.output)
    return 0


def main():
    try:
        sys.exit(run())
    except ConversionError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
