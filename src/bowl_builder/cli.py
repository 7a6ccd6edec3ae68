"""
Command-line interface for Bowl Builder.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .calculator.render import boxed, render_categories, render_summary
from .calculator.state import BowlCalculator
from .catalog.ordering import load_ordering_view, move_item, save_ordering
from .catalog.repository import MongoCatalogStore
from .catalog.storefront import build_storefront_payload
from .taxonomy.cascade import CascadePropagator, CascadeResult
from .utils.config import Config
from .utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        description="Bowl Builder - build-your-own-bowl catalog and calculator tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  bowl-builder sync-taxonomy --field category --choices "Base,Protein,Topping"
  bowl-builder show-order
  bowl-builder move-category Topping Base
  bowl-builder export-payload --output calculator.json
  bowl-builder quote --payload calculator.json --template t1 --add rice --add rice
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"Bowl Builder {__version__}",
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    parser.add_argument(
        "--log-file",
        help="Log file path",
    )

    parser.add_argument(
        "--env-file",
        default=".env",
        help="Environment file with DB_CONNECTION_URL and friends (default: .env)",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        help="Available commands",
    )

    sync_parser = subparsers.add_parser(
        "sync-taxonomy",
        help="Replace the category or allergen vocabulary and cascade the change",
    )
    sync_parser.add_argument(
        "--field",
        choices=["category", "allergen"],
        default="category",
        help="Vocabulary to replace (default: category)",
    )
    sync_parser.add_argument(
        "--choices",
        required=True,
        help="Comma separated list of the new choices, in display order",
    )

    subparsers.add_parser(
        "show-order",
        help="Show the reconciled category and ingredient display order",
    )

    move_parser = subparsers.add_parser(
        "move-category",
        help="Move a category to the position of another one and save the order",
    )
    move_parser.add_argument("category", help="Category to move")
    move_parser.add_argument("target", help="Category whose position it takes")

    export_parser = subparsers.add_parser(
        "export-payload",
        help="Write the storefront calculator payload as JSON",
    )
    export_parser.add_argument("--output", help="Output file (default: stdout)")
    export_parser.add_argument("--settings", help="JSON file with storefront label settings")

    quote_parser = subparsers.add_parser(
        "quote",
        help="Price a bowl from a storefront payload",
    )
    quote_parser.add_argument("--payload", required=True, help="Storefront payload JSON file")
    quote_parser.add_argument("--template", required=True, help="Bowl template id")
    quote_parser.add_argument(
        "--add",
        action="append",
        default=[],
        metavar="INGREDIENT_ID",
        help="Add one unit of an ingredient (repeatable)",
    )
    quote_parser.add_argument(
        "--remove",
        action="append",
        default=[],
        metavar="INGREDIENT_ID",
        help="Remove one unit of an ingredient (repeatable, applied after --add)",
    )
    quote_parser.add_argument(
        "--json",
        action="store_true",
        help="Print totals as JSON instead of the text summary",
    )

    return parser


def parse_choices(raw: str) -> List[str]:
    return [choice.strip() for choice in raw.split(",") if choice.strip()]


def print_cascade_result(result: CascadeResult) -> None:
    header = [
        ("Field", result.field_key),
        ("Status", "SUCCESS" if result.success else "FAILED"),
    ]
    if result.diff is not None:
        header.append(("Added", ", ".join(result.diff.added) or "-"))
        header.append(("Removed", ", ".join(result.diff.removed) or "-"))
    print(boxed(header))

    print("\nCASCADE STEPS:")
    print("=" * 60)
    for step in result.steps:
        counts = f" ({step.attempted - step.failed}/{step.attempted})" if step.attempted else ""
        detail = f" - {step.detail}" if step.detail else ""
        print(f"   {step.name:<40} {step.status.upper()}{counts}{detail}")

    if result.errors:
        print("\nERRORS:")
        for error in result.errors:
            prefix = f"{error.field}: " if error.field else ""
            print(f"   {prefix}{error.message}")


async def sync_taxonomy(config: Config, field: str, choices: List[str]) -> int:
    field_key = config.get("category_field") if field == "category" else config.get("allergen_field")
    async with MongoCatalogStore(config=config) as store:
        definition = await store.read_field_definition(config.get("ingredient_type"), field_key)
        result = await CascadePropagator(store, config=config).apply(
            definition.id, field_key, choices, previous_categories=definition.validation_choices
        )
    print_cascade_result(result)
    return 0 if result.success else 1


async def show_order(config: Config) -> int:
    async with MongoCatalogStore(config=config) as store:
        view, ingredients = await load_ordering_view(
            store, config.get("ingredient_type"), config.get("category_field")
        )
    names = {ingredient.id: ingredient.name for ingredient in ingredients}
    print("DISPLAY ORDER:")
    print("=" * 60)
    for position, category in enumerate(view.category_order, start=1):
        print(f"{position:>3}. {category}")
        for ingredient_id in view.ingredient_order.get(category, []):
            print(f"       - {names.get(ingredient_id, ingredient_id)}")
    return 0


async def move_category(config: Config, category: str, target: str) -> int:
    async with MongoCatalogStore(config=config) as store:
        view, _ = await load_ordering_view(store, config.get("ingredient_type"), config.get("category_field"))
        if category not in view.category_order or target not in view.category_order:
            print(f"Unknown category: {category if category not in view.category_order else target}")
            return 1
        view.category_order = move_item(view.category_order, category, target)
        errors = await save_ordering(store, view)
    if errors:
        for error in errors:
            print(f"Error: {error.message}")
        return 1
    print("Order saved: " + ", ".join(view.category_order))
    return 0


async def export_payload(config: Config, output: Optional[str], settings_file: Optional[str]) -> int:
    settings = {}
    if settings_file:
        settings = json.loads(Path(settings_file).read_text(encoding="utf-8"))
    async with MongoCatalogStore(config=config) as store:
        payload = await build_storefront_payload(store, config=config, settings=settings)
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    if output:
        Path(output).write_text(text, encoding="utf-8")
        print(f"Payload written to {output}")
    else:
        print(text)
    return 0


def quote(payload_file: str, template_id: str, add: List[str], remove: List[str], as_json: bool = False) -> int:
    """Replay customer events against a payload and print the summary."""
    try:
        payload = Path(payload_file).read_text(encoding="utf-8")
    except OSError as e:
        logger.error(f"Error reading payload: {e}")
        payload = None

    calculator = BowlCalculator(payload)
    if calculator.data.inert:
        print("Calculator has no bowl templates to offer.")
        return 1

    totals = calculator.select_template(template_id)
    if totals is None:
        print(f"Unknown bowl template: {template_id}")
        return 1
    for ingredient_id in add:
        totals = calculator.add_unit(ingredient_id)
    for ingredient_id in remove:
        totals = calculator.remove_unit(ingredient_id)

    if as_json:
        print(json.dumps(totals.to_dict(), indent=2))
        return 0

    categories = render_categories(calculator.data, calculator.state)
    if categories:
        print(categories)
        print()
    print(render_summary(calculator.data, calculator.state, totals))
    return 0


def main(args: Optional[list] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        args: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    log_level = "DEBUG" if parsed_args.verbose else "INFO"
    logger = setup_logging(level=log_level, log_file=parsed_args.log_file)

    if not parsed_args.command:
        parser.print_help()
        return 1

    try:
        if parsed_args.command == "quote":
            return quote(
                payload_file=parsed_args.payload,
                template_id=parsed_args.template,
                add=parsed_args.add,
                remove=parsed_args.remove,
                as_json=parsed_args.json,
            )

        config = Config(parsed_args.env_file)
        if parsed_args.command == "sync-taxonomy":
            choices = parse_choices(parsed_args.choices)
            return asyncio.run(sync_taxonomy(config, parsed_args.field, choices))
        if parsed_args.command == "show-order":
            return asyncio.run(show_order(config))
        if parsed_args.command == "move-category":
            return asyncio.run(move_category(config, parsed_args.category, parsed_args.target))
        if parsed_args.command == "export-payload":
            return asyncio.run(export_payload(config, parsed_args.output, parsed_args.settings))

    except Exception as e:
        logger.error(f"Error: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
