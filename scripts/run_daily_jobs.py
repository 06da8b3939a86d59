"""
Run the daily batch jobs for every active index.

Usage:
    python scripts/run_daily_jobs.py --job points
    python scripts/run_daily_jobs.py --job screening --date 2025-06-02
    python scripts/run_daily_jobs.py --job all --db-prices --workers 2
"""

import argparse
import logging
import sys
import os
from datetime import date

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from theoindex.db.session import SessionLocal
from theoindex.jobs.config import JobConfig
from theoindex.jobs.runner import DailyJobRunner
from theoindex.providers.database import DatabasePriceProvider


def print_report(report) -> None:
    print(f"\n📊 {report.job} ({report.run_date}): "
          f"{report.success_count} ok, {report.failure_count} failed")
    for index_id, summary in sorted(report.successes.items()):
        print(f"   ✅ {index_id}: {summary}")
    for index_id, error in sorted(report.failures.items()):
        print(f"   ❌ {index_id}: {error}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Daily index jobs")
    parser.add_argument("--job", choices=["points", "screening", "all"], default="all")
    parser.add_argument("--date", type=date.fromisoformat, default=date.today())
    parser.add_argument("--db-prices", action="store_true", help="Read prices from daily_prices instead of Yahoo")
    parser.add_argument("--workers", type=int, default=None)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    config = JobConfig.from_env()
    if args.workers:
        config.max_workers = args.workers
    if args.db_prices:
        config.check_market_open = False

    runner = DailyJobRunner(
        session_factory=SessionLocal,
        provider_factory=DatabasePriceProvider if args.db_prices else None,
        config=config,
    )

    failed = False
    if args.job in ("points", "all"):
        report = runner.run_mark_to_market(args.date)
        print_report(report)
        failed |= report.failure_count > 0
    if args.job in ("screening", "all"):
        report = runner.run_screening(args.date)
        print_report(report)
        failed |= report.failure_count > 0

    sys.exit(1 if failed else 0)


if __name__ == "__main__":
    main()
