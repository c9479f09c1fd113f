#!/usr/bin/env python3
"""
Session Analysis Script
=======================

Offline report for a ``complete_analysis.json`` document.

This script:
    1. Loads and validates the analysis document
    2. Logs aggregate discrepancy statistics
    3. Prints every classified discrepancy (optionally filtered)
    4. Optionally writes the CSV export

Usage:
    python scripts/analyze_session.py complete_analysis.json
    python scripts/analyze_session.py complete_analysis.json --only-discrepancies --missing-in-db
    python scripts/analyze_session.py complete_analysis.json --csv out/
"""

import argparse
import logging
import os
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from screenshot_debugger.analysis import DiscrepancyClassifier
from screenshot_debugger.ingest import AnalysisParseError, load_analysis_file
from screenshot_debugger.models import DiscrepancyCategory, FilterCriteria
from screenshot_debugger.observability import compute_statistics, export_filename, export_rows, to_csv
from screenshot_debugger.session import ResultCollection


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)


def run_report(path: str, criteria: FilterCriteria, csv_dir: str = None) -> int:
    """
    Load, summarize and print one analysis document.

    Returns:
        Number of results with discrepancies
    """
    session = load_analysis_file(path)
    stats = compute_statistics(session.results)

    logger.info("=" * 60)
    logger.info(f"Session: {session.session_id}")
    logger.info("=" * 60)
    logger.info(f"Platform / channel: {session.metadata.platform} / {session.metadata.channel}")
    logger.info(f"Results: {stats.total}")
    logger.info(f"With discrepancies: {stats.with_discrepancies} ({stats.discrepancy_rate:.1%})")
    for category in DiscrepancyCategory:
        logger.info(f"  {category.value:<14} {stats.per_category[category]}")
    logger.info(f"Inference failures: {stats.inference_failures}")
    logger.info(f"Post-processing failures: {stats.post_processing_failures}")
    if stats.flag_drift:
        logger.warning(f"Reported flags disagree with recomputed flags on {stats.flag_drift} result(s)")
    logger.info("=" * 60)

    collection = ResultCollection(session)
    outcome = collection.set_filter(criteria)
    if outcome.fallback:
        logger.warning("No results match the filters, reporting all results")

    classifier = DiscrepancyClassifier()
    for result in outcome.results:
        for discrepancy in classifier.classify(result):
            print(
                f"#{result.index:<6} {discrepancy.severity.value.upper():<7} "
                f"{discrepancy.title}: {discrepancy.description}"
            )

    if csv_dir:
        target = Path(csv_dir) / export_filename(session.session_id)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(to_csv(export_rows(session.results)), encoding="utf-8")
        logger.info(f"CSV written to {target}")

    return stats.with_discrepancies


def main():
    parser = argparse.ArgumentParser(
        description="Report discrepancies between ML inference, post-processing and database records"
    )
    parser.add_argument("path", help="Path to complete_analysis.json")
    parser.add_argument("--only-discrepancies", action="store_true", help="Only frames with any discrepancy")
    parser.add_argument("--ml-vs-post", action="store_true", help="Require ML vs post mismatch")
    parser.add_argument("--post-vs-db", action="store_true", help="Require post vs DB mismatch")
    parser.add_argument("--missing-in-db", action="store_true", help="Require missing DB sessions")
    parser.add_argument("--extra-in-db", action="store_true", help="Require extra DB sessions")
    parser.add_argument("--csv", metavar="DIR", default=None, help="Write the CSV export into DIR")
    parser.add_argument(
        "--fail-on-discrepancy",
        action="store_true",
        help="Exit with status 1 when any discrepancy is found",
    )

    args = parser.parse_args()

    criteria = FilterCriteria(
        only_discrepancies=args.only_discrepancies,
        ml_vs_post_only=args.ml_vs_post,
        post_vs_db_only=args.post_vs_db,
        missing_in_db_only=args.missing_in_db,
        extra_in_db_only=args.extra_in_db,
    )

    try:
        with_discrepancies = run_report(args.path, criteria, csv_dir=args.csv)
    except (AnalysisParseError, OSError) as e:
        logger.error(f"Could not load {args.path}: {e}")
        sys.exit(2)

    sys.exit(1 if args.fail_on_discrepancy and with_discrepancies else 0)


if __name__ == "__main__":
    main()
