"""
MPLADS Works Query Tool

Run the works engine operations against a SQLite works database and print
the JSON response.

Usage:
    python query_works.py completed --state "Uttar Pradesh" --limit 10
    python query_works.py recommended --house "Lok Sabha" --ls-term both
    python query_works.py recommended --has-payments true --sort -recommendedAmount
    python query_works.py categories --state Kerala
    python query_works.py subregions --house "Rajya Sabha"
    python query_works.py detail completed 64f1c2a9e4b0a1d2c3b4a5f6
    python query_works.py payments 501

Exit status: 0 on success; 1 when the record or database is not found;
2 for a malformed identifier, an unreadable --config file, or usage errors.
"""

import argparse
import json
import logging
import sys
import textwrap
from pathlib import Path

from utils.config import WorksConfig
from utils.logging import configure_logging
from works import service
from works.errors import InvalidIdentifierError, WorkNotFoundError
from works.models import WorksQuery

logger = logging.getLogger("query_works")

_LIST_FILTERS = (
    "mp_id", "state", "constituency", "district", "category", "year",
    "min_cost", "max_cost", "search", "house", "ls_term",
)


def _add_gate_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--house", default=None,
                        help="'Lok Sabha' or 'Rajya Sabha' (default: both houses)")
    parser.add_argument("--ls-term", dest="ls_term", default=None,
                        help="Lok Sabha term number or 'both' (default: configured term)")


def _add_list_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--page", type=int, default=1, help="Page number (default: 1)")
    parser.add_argument("--limit", type=int, default=20, help="Items per page (default: 20)")
    parser.add_argument("--sort", default=None, help="Sort field, '-' prefix for descending")
    parser.add_argument("--mp-id", dest="mp_id", default=None,
                        help="Representative id or name")
    parser.add_argument("--state", default=None, help="State substring")
    parser.add_argument("--constituency", default=None, help="Exact constituency")
    parser.add_argument("--district", default=None, help="Exact district (alias of constituency)")
    parser.add_argument("--category", default=None, help="Category substring")
    parser.add_argument("--year", default=None, help="Completion/recommendation year")
    parser.add_argument("--min-cost", dest="min_cost", default=None, help="Minimum cost")
    parser.add_argument("--max-cost", dest="max_cost", default=None, help="Maximum cost")
    parser.add_argument("--search", default=None, help="Description/location substring")
    _add_gate_args(parser)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Query the MPLADS works database",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""
            Examples:
              python query_works.py completed --state Kerala --limit 5
              python query_works.py recommended --status Approved
              python query_works.py detail recommended 64f1c2a9e4b0a1d2c3b4a5f6
              python query_works.py payments 501
              python query_works.py --config works.json recommended --limit 5
        """),
    )
    parser.add_argument("--db", type=Path, default=None,
                        help="Database path (default: WORKS_DB_PATH)")
    parser.add_argument("--config", type=Path, default=None,
                        help="JSON settings file; its keys override WORKS_* variables")
    parser.add_argument("--indent", type=int, default=2, help="JSON indent (default: 2)")
    sub = parser.add_subparsers(dest="command", required=True)

    completed = sub.add_parser("completed", help="List completed works")
    _add_list_args(completed)

    recommended = sub.add_parser("recommended", help="List recommended works")
    _add_list_args(recommended)
    recommended.add_argument("--status", default=None, help="Exact status")
    recommended.add_argument("--has-payments", dest="has_payments", default=None,
                             help="'true'/'1' for paid works, anything else for unpaid")

    for name, text in (("categories", "Category totals"), ("subregions", "Sub-region totals")):
        p = sub.add_parser(name, help=text)
        p.add_argument("--state", default=None, help="State substring")
        _add_gate_args(p)

    detail = sub.add_parser("detail", help="One work with detail fields")
    detail.add_argument("kind", choices=["completed", "recommended"])
    detail.add_argument("id", help="24-hex document id")

    pay = sub.add_parser("payments", help="Payment report for a work id")
    pay.add_argument("work_id", help="Work identifier")

    return parser


def _list_query(args: argparse.Namespace, keys: tuple[str, ...]) -> WorksQuery:
    values = {k: getattr(args, k) for k in keys}
    return WorksQuery(page=args.page, limit=args.limit, sort=args.sort, **values)


def run(args: argparse.Namespace, config: WorksConfig) -> dict:
    """Dispatch a parsed command to the matching operation."""
    if args.command == "completed":
        return service.list_completed_works(
            _list_query(args, _LIST_FILTERS), config=config).to_response()
    if args.command == "recommended":
        keys = _LIST_FILTERS + ("status", "has_payments")
        return service.list_recommended_works(
            _list_query(args, keys), config=config).to_response()
    if args.command == "categories":
        return service.get_work_categories(
            args.state, args.house, args.ls_term, config=config).to_response()
    if args.command == "subregions":
        return service.get_sub_regions(
            args.state, args.house, args.ls_term, config=config).to_response()
    if args.command == "detail":
        lookup = service.get_completed_work if args.kind == "completed" else service.get_recommended_work
        return lookup(args.id, config=config).to_response()
    return service.get_work_payments(args.work_id, config=config).to_response()


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = WorksConfig.load_json(args.config) if args.config else WorksConfig.from_env()
    except json.JSONDecodeError as exc:
        print(f"ERROR: Invalid settings file {args.config}: {exc}", file=sys.stderr)
        return 2
    except FileNotFoundError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    if args.db is not None:
        config.db_path = args.db
    configure_logging(config)
    logger.debug("Effective settings: %s", config.to_dict())

    try:
        response = run(args, config)
    except InvalidIdentifierError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2
    except (WorkNotFoundError, FileNotFoundError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    print(json.dumps(response, indent=args.indent, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
