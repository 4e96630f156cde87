import argparse
import logging
from pathlib import Path
from typing import Sequence

from item_loans import parsers
from item_loans.aggregator import SORT_KEYS
from item_loans.logger import setup_logger
from item_loans.pipelines.item_import import ItemImportPipeline
from item_loans.pipelines.loan_statistics import LoanStatisticsPipeline
from item_loans.record_store import RecordStoreError, RestRecordStore

logger = logging.getLogger("item_loans")


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Bulk item registration and loan statistics."
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output.")
    commands = parser.add_subparsers(dest="command", required=True)

    import_cmd = commands.add_parser("import", help="Validate and register items from a CSV file.")
    import_cmd.add_argument("csv_path", type=Path)
    import_cmd.add_argument(
        "--dry-run", action="store_true", help="Validate and write the report without registering."
    )

    stats_cmd = commands.add_parser("stats", help="Export loan statistics for one event.")
    stats_cmd.add_argument("event_id")
    stats_cmd.add_argument("--merge", action="store_true", help="Merge items sharing a name.")
    stats_cmd.add_argument("--sort", choices=SORT_KEYS, default="loan_count")
    stats_cmd.add_argument("--asc", action="store_true", help="Sort ascending (default descending).")

    template_cmd = commands.add_parser("template", help="Write the CSV template.")
    template_cmd.add_argument("path", type=Path, nargs="?")

    return parser.parse_args(argv)


def run(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    setup_logger("item_loans", logging.DEBUG if args.verbose else None)

    if args.command == "template":
        parsers.write_csv_template(args.path)
        return 0

    try:
        store = RestRecordStore()
    except RecordStoreError as e:
        logger.error(f"❌ {e}")
        return 1

    if args.command == "import":
        pipeline = ItemImportPipeline(args.csv_path, store, dry_run=args.dry_run)
    else:
        pipeline = LoanStatisticsPipeline(
            args.event_id,
            store,
            merge_by_name=args.merge,
            sort_key=args.sort,
            descending=not args.asc,
        )

    try:
        ok = pipeline.run()
    except RecordStoreError as e:
        logger.error(f"❌ Record store request failed: {e}")
        return 2
    except Exception:
        logger.exception("Unexpected error, please retry the whole operation")
        return 3

    return 0 if ok else 1


if __name__ == "__main__":
    raise SystemExit(run())
