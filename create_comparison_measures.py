"""CLI entry point: create comparison measures from exactly two selected measures."""

import argparse
import logging
import sys

from src.errors import OperationCancelled, SelectionError
from src.formatting.dax_formatter import get_formatter
from src.generators.measure_generator import MeasureGenerator
from src.prompts.prompter import ConsolePrompter
from src.utils.settings import load_settings, save_settings


def build_parser(settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Create comparison measures from two base measures and two-parameter DAX functions "
            "(e.g. ComparisonDeviation([Actual],[Budget]) named 'Actual Dev')."
        ),
    )
    parser.add_argument(
        "model",
        help="Path to a .pbip file, semantic model folder, model.bim or TMDL definition/ folder",
    )
    parser.add_argument(
        "measure1",
        help="First measure (Name, [Name] or Table[Name]); new measures go into its table and folder",
    )
    parser.add_argument(
        "measure2",
        help="Second measure (Name, [Name] or Table[Name])",
    )
    parser.add_argument(
        "-f", "--function",
        action="append",
        dest="functions",
        help="Comparison function to apply. Repeat for several. If omitted, pick from a list.",
    )
    parser.add_argument(
        "--prefix",
        default=settings.comparison_function_prefix,
        help=f"Name prefix of eligible functions (default: {settings.comparison_function_prefix})",
    )
    parser.add_argument(
        "--formatter",
        choices=["local", "service", "none"],
        default=settings.dax_formatter,
        help=f"How to format new DAX expressions (default: {settings.dax_formatter})",
    )
    parser.add_argument(
        "-y", "--yes",
        action="store_true",
        help="Continue without asking when metadata is missing",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be created without writing the model",
    )
    parser.add_argument(
        "--report",
        help="Write a Markdown report of created and skipped measures to this path",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser


def main(argv: list[str] | None = None):
    settings = load_settings()
    args = build_parser(settings).parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    generator = MeasureGenerator(
        prompter=ConsolePrompter(assume_yes=args.yes),
        formatter=get_formatter(args.formatter, settings.dax_formatter_url),
        comparison_prefix=args.prefix,
        dry_run=args.dry_run,
    )

    try:
        stats = generator.create_comparison_measures(
            args.model, [args.measure1, args.measure2], args.functions,
        )
    except (FileNotFoundError, SelectionError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except OperationCancelled as e:
        print(f"Cancelled: {e}", file=sys.stderr)
        sys.exit(1)

    settings.last_model_path = args.model
    save_settings(settings)

    if args.report:
        generator.write_report(args.report)

    print(f"\nGeneration complete:")
    print(f"  Functions: {stats['functions']}")
    print(f"  Created:   {stats['created']}")
    print(f"  Skipped:   {stats['skipped']}")


if __name__ == "__main__":
    main()
