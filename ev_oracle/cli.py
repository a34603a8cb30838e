"""Command line interface.

Usage:
    ev-oracle query Tesla "Model 3" 2023
    ev-oracle query --json Nissan Leaf 2022
    ev-oracle add Tesla "Model 3" 2023 --capacity 75.0 --power 283.0 --chemistry NMC
    ev-oracle init
    ev-oracle serve
"""

import argparse
import asyncio
import sys

import uvicorn

from ev_oracle.config import get_settings
from ev_oracle.exceptions import EVOracleError
from ev_oracle.logging_config import get_logger, setup_logging
from ev_oracle.resolution.pipeline import ResolutionPipeline, build_pipeline
from ev_oracle.specs.models import SpecRecord

logger = get_logger(__name__)


def format_spec_text(record: SpecRecord) -> str:
    """Render a record as aligned ``Label: value`` lines."""
    return "\n".join(
        [
            f"Make:       {record.make}",
            f"Model:      {record.model}",
            f"Year:       {record.year}",
            f"Capacity:   {record.capacity_kwh:.1f} kWh",
            f"Power:      {record.power_kw:.1f} kW",
            f"Chemistry:  {record.chemistry}",
            f"Confidence: {record.confidence:.2f}",
            f"Source:     {record.source.value}",
        ]
    )


def format_spec_json(record: SpecRecord) -> str:
    """Render a record as indented JSON."""
    return record.model_dump_json(indent=2)


async def run_query(pipeline: ResolutionPipeline, args: argparse.Namespace) -> None:
    """Resolve one vehicle and print it."""
    record = await pipeline.resolve(args.make, args.model, args.year)
    print(format_spec_json(record) if args.json else format_spec_text(record))


async def run_add(pipeline: ResolutionPipeline, args: argparse.Namespace) -> None:
    """Store a known specification."""
    record = await pipeline.add(
        make=args.make,
        model=args.model,
        year=args.year,
        capacity_kwh=args.capacity,
        power_kw=args.power,
        chemistry=args.chemistry,
    )
    print(f"Successfully added {record.year} {record.make} {record.model} to the knowledge base!")
    print(f"  Capacity: {record.capacity_kwh:.1f} kWh")
    print(f"  Power: {record.power_kw:.1f} kW")
    print(f"  Chemistry: {record.chemistry}")


async def run_init(pipeline: ResolutionPipeline, _args: argparse.Namespace) -> None:
    """Create the knowledge store collection."""
    created = await pipeline.initialize()
    if created:
        print("Knowledge base initialized successfully!")
    else:
        print("Knowledge base already initialized.")
    print("You can now use 'ev-oracle query' to look up EV specifications.")


COMMANDS = {
    "query": run_query,
    "add": run_add,
    "init": run_init,
}


async def _run(args: argparse.Namespace) -> None:
    pipeline = build_pipeline()
    try:
        await COMMANDS[args.command](pipeline, args)
    finally:
        await pipeline.close()


def _add_vehicle_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("make", help="Vehicle manufacturer, e.g. Tesla")
    parser.add_argument("model", help='Vehicle model, e.g. "Model 3"')
    parser.add_argument("year", type=int, help="Model year, e.g. 2023")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="ev-oracle",
        description=(
            "Retrieve electric vehicle battery specifications from a vector "
            "knowledge base, falling back to an LLM when needed."
        ),
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level override (default from settings)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    query = subparsers.add_parser("query", help="Look up a vehicle's battery specifications")
    _add_vehicle_arguments(query)
    query.add_argument("--json", action="store_true", help="Output result in JSON format")

    add = subparsers.add_parser("add", help="Add a known specification to the knowledge base")
    _add_vehicle_arguments(add)
    add.add_argument("--capacity", type=float, required=True, help="Battery capacity in kWh")
    add.add_argument("--power", type=float, required=True, help="Power output in kW")
    add.add_argument("--chemistry", required=True, help="Battery chemistry type")

    subparsers.add_parser("init", help="Create the knowledge base collection")
    subparsers.add_parser("serve", help="Run the HTTP API")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Returns:
        Process exit code.
    """
    args = build_parser().parse_args(argv)
    setup_logging(level=args.log_level)

    if args.command == "serve":
        settings = get_settings()
        uvicorn.run("ev_oracle.api.app:app", host=settings.api_host, port=settings.api_port)
        return 0

    try:
        asyncio.run(_run(args))
    except EVOracleError as e:
        logger.debug("Command failed", exc_info=True)
        step = f" (step: {e.step})" if e.step else ""
        print(f"Error [{e.code.value}]{step}: {e.message}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
