"""Command line entry point: ``python -m fmg_import``."""

import argparse
import asyncio
import json
import sys

import structlog

from .config import settings
from .core.parser import MapFormatError
from .core.pins import PinOptions, build_pins
from .utils.loader import import_map_file
from .utils.log_config import configure_logging

logger = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fmg_import", description="Import Azgaar's Fantasy Map Generator exports"
    )
    parser.add_argument("--log-level", default=settings.log_level, help="Log level")
    commands = parser.add_subparsers(dest="command", required=True)

    import_cmd = commands.add_parser("import", help="Print the entity graph of a map file as JSON")
    import_cmd.add_argument("path", help="Path to a .map save or a full JSON export")
    import_cmd.add_argument("--pins", action="store_true", help="Print map pins instead")
    import_cmd.add_argument("--width", type=float, help="Scene width for pins")
    import_cmd.add_argument("--height", type=float, help="Scene height for pins")
    import_cmd.add_argument("--use-colors", action="store_true", help="Tint pins with entity colors")
    import_cmd.add_argument("--raw", action="store_true", help="Include source records")

    serve_cmd = commands.add_parser("serve", help="Run the HTTP API")
    serve_cmd.add_argument("--host", default=settings.api_host, help="Bind address")
    serve_cmd.add_argument("--port", type=int, default=settings.api_port, help="Port")
    return parser


def run_import(args: argparse.Namespace) -> int:
    try:
        graph = asyncio.run(import_map_file(args.path))
    except (MapFormatError, OSError) as e:
        logger.error("Map import failed", path=args.path, error=str(e))
        return 1

    if args.pins:
        options = PinOptions(
            target_width=args.width, target_height=args.height, use_colors=args.use_colors
        )
        output = [pin.model_dump(mode="json") for pin in build_pins(graph, options)]
    else:
        output = graph.to_dict(include_raw=args.raw)

    json.dump(output, sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0


def main(argv=None) -> int:
    """Main function."""
    args = build_parser().parse_args(argv)
    # Logs go to stderr so stdout stays valid JSON
    configure_logging(args.log_level, settings.log_format)

    if args.command == "serve":
        import uvicorn

        uvicorn.run("fmg_import.api.main:app", host=args.host, port=args.port)
        return 0
    return run_import(args)


if __name__ == "__main__":
    sys.exit(main())
