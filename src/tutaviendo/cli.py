"""Command-line interface for tutaviendo."""

import argparse
import json
import sys
from pathlib import Path

from . import __version__
from .analytics import AnalyticsStore
from .date_ranges import PRESETS, preset_range
from .errors import TutaviendoError
from .kv_store import FileKeyValueStore
from .models import MessageTemplate, Order
from .observability import configure_logging
from .whatsapp import build_deep_link, compose_message, sanitize_message, validate_message


def get_analytics_store(data_dir: str | None = None) -> AnalyticsStore:
    """Get an AnalyticsStore over the file-backed data directory."""
    local = FileKeyValueStore(Path(data_dir) if data_dir else None)
    store = AnalyticsStore(local_store=local)
    store.load_log()
    return store


def _read_json(path: str) -> dict:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise TutaviendoError(f"Cannot read {path}: {e}") from e


def cmd_compose(args: argparse.Namespace) -> int:
    """Compose an order message from a JSON order file."""
    try:
        try:
            order = Order.from_dict(_read_json(args.order))
        except (KeyError, TypeError, ValueError) as e:
            print(f"Error: Invalid order file {args.order}: {e}", file=sys.stderr)
            return 1

        template = None
        if args.template:
            template = MessageTemplate.from_dict(_read_json(args.template))

        message = compose_message(order, template)
        if not validate_message(message):
            message = sanitize_message(message)

        if args.link:
            print(build_deep_link(args.link, message))
        else:
            print(message)
        return 0

    except TutaviendoError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_stats(args: argparse.Namespace) -> int:
    """Show dashboard stats for a store."""
    try:
        store = get_analytics_store(args.data_dir)
        date_range = preset_range(args.range) if args.range != "all" else None
        stats = store.get_stats(args.store_id, date_range)

        if args.json:
            data = stats.to_dict()
            data["store_id"] = args.store_id
            data["range"] = args.range
            print(json.dumps(data, indent=2))
            return 0

        label = date_range.label if date_range else "Todo"
        print(f"Store: {args.store_id} ({label})")
        print(f"  Visits:      {stats.visits}")
        print(f"  Orders:      {stats.orders}")
        print(f"  Order value: {stats.order_value:.2f}")
        if stats.top_products:
            print("  Top products:")
            for p in stats.top_products:
                print(f"    {p.product_id}: {p.views} view(s)")
        return 0

    except TutaviendoError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_prune(args: argparse.Namespace) -> int:
    """Apply the retention horizon to the stored event log."""
    try:
        store = AnalyticsStore(
            local_store=FileKeyValueStore(Path(args.data_dir) if args.data_dir else None)
        )
        # Loading applies the retention horizon
        kept = store.load_log()
        print(f"Events kept: {len(kept)}")
        return 0

    except TutaviendoError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the API server."""
    import uvicorn

    print("Starting tutaviendo API server...")
    print(f"API docs: http://{args.host}:{args.port}/docs")
    print()

    # When reload is enabled, uvicorn requires the app as an import string
    app_target = "tutaviendo.api:app" if args.reload else None
    if app_target is None:
        from .api import app
        app_target = app

    uvicorn.run(app_target, host=args.host, port=args.port, reload=args.reload)
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="tutaviendo",
        description="Compose WhatsApp order messages and inspect store analytics.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Log debug events to stderr"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # compose
    compose_parser = subparsers.add_parser("compose", help="Compose an order message")
    compose_parser.add_argument("order", help="Path to order JSON file")
    compose_parser.add_argument("--template", "-t", help="Path to message template JSON")
    compose_parser.add_argument(
        "--link", "-l", metavar="PHONE", help="Print a WhatsApp link to PHONE instead"
    )

    # stats
    stats_parser = subparsers.add_parser("stats", help="Show store analytics")
    stats_parser.add_argument("store_id", help="Store ID")
    stats_parser.add_argument(
        "--range", "-r",
        choices=[*PRESETS, "all"],
        default="today",
        help="Date range preset (default: today)",
    )
    stats_parser.add_argument("--data-dir", help="Override the data directory")
    stats_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # prune
    prune_parser = subparsers.add_parser("prune", help="Drop events past the retention horizon")
    prune_parser.add_argument("--data-dir", help="Override the data directory")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument(
        "--host", default="127.0.0.1", help="Host to bind to (default: 127.0.0.1)"
    )
    serve_parser.add_argument(
        "--port", "-p", type=int, default=8000, help="Port to bind to (default: 8000)"
    )
    serve_parser.add_argument(
        "--reload", action="store_true", help="Enable auto-reload for development"
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    configure_logging(verbose=args.verbose)

    commands = {
        "compose": cmd_compose,
        "stats": cmd_stats,
        "prune": cmd_prune,
        "serve": cmd_serve,
    }

    cmd_func = commands.get(args.command)
    if cmd_func:
        return cmd_func(args)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
