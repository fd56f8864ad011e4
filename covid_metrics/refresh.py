"""
Recompute the derived views from the two input files and materialise them.

    python -m covid_metrics.refresh --db data/covid_views.db --csv-dir data/views
"""
import argparse
import time
from typing import List, Optional

from covid_metrics import config
from covid_metrics.datasets import MissingColumnsError, load_case_records, load_vaccination_records
from covid_metrics.logger import setup_logger
from covid_metrics.views import VIEW_BUILDERS, export_views_csv, materialize_views, refresh_views

SEPARATORS = {"comma": ",", "tab": "\t", "semicolon": ";", "pipe": "|"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Refresh the COVID-19 metric views')
    parser.add_argument('--cases', type=str, default=str(config.DATA_DIR / config.CASES_FILE),
                        help='Path to the cases/deaths CSV')
    parser.add_argument('--vaccinations', type=str, default=str(config.DATA_DIR / config.VACCINATIONS_FILE),
                        help='Path to the vaccinations CSV')
    parser.add_argument('--db', type=str, default=str(config.VIEWS_DB), help='Path to SQLite database')
    parser.add_argument('--csv-dir', type=str, default=None, help='Also export each view as CSV into this directory')
    parser.add_argument('--view', action='append', choices=sorted(VIEW_BUILDERS), dest='views',
                        help='Refresh only this view (repeatable)')
    parser.add_argument('--separator', choices=sorted(SEPARATORS), default='comma', help='Input CSV separator')
    parser.add_argument('--log-level', type=str, default=config.LOG_LEVEL, help='Logging level')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Command-line entry point; returns the process exit code."""
    args = build_parser().parse_args(argv)
    logger = setup_logger("covid_metrics", level=args.log_level, log_dir=config.LOG_DIR)
    sep = SEPARATORS[args.separator]

    start = time.time()
    try:
        cases = load_case_records(args.cases, separator=sep)
        vaccinations = load_vaccination_records(args.vaccinations, separator=sep)
    except FileNotFoundError as e:
        logger.error(f"Input file not found: {e}")
        return 2
    except MissingColumnsError as e:
        logger.error(str(e))
        return 3

    views = refresh_views(cases, vaccinations, args.views)
    counts = materialize_views(args.db, views)
    if args.csv_dir:
        export_views_csv(args.csv_dir, views)

    elapsed = time.time() - start
    for name, count in counts.items():
        logger.info(f"{name}: {count} rows")
    logger.info(f"Refreshed {len(counts)} views in {elapsed:.2f}s")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
