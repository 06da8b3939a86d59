"""
Create tables and load the screening universe from Yahoo Finance.

Usage:
    python scripts/seed_db.py PETR4 VALE3 ITUB4
    python scripts/seed_db.py --file data/tickers.txt --history-days 60
"""

import argparse
import logging
import sys
import os
from datetime import date
from pathlib import Path

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from theoindex.db.session import engine, SessionLocal
from theoindex.db.models.base import Base
from theoindex.db.repositories.ticker_repo import TickerRepository
from theoindex.db.repositories.snapshot_repo import SnapshotRepository
from theoindex.db.repositories.price_repo import PriceRepository
from theoindex.providers.yahoo.client import YFinanceProvider
from theoindex.ingestion.service import IngestionService


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed the universe tables")
    parser.add_argument("tickers", nargs="*", help="Ticker symbols (without .SA)")
    parser.add_argument("--file", type=Path, help="File with one ticker per line")
    parser.add_argument("--history-days", type=int, default=30)
    parser.add_argument("--date", type=date.fromisoformat, default=date.today())
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    print("Creating tables...")
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        service = IngestionService(
            provider=YFinanceProvider(),
            ticker_repo=TickerRepository(db),
            snapshot_repo=SnapshotRepository(db),
            price_repo=PriceRepository(db),
            history_days=args.history_days,
        )

        if args.file:
            report = service.ingest_from_file(args.file, args.date)
        elif args.tickers:
            report = service.ingest_tickers(args.tickers, args.date)
        else:
            parser.error("pass tickers or --file")
            return

        print("\nIngestion Report:")
        print(f"Successes: {report.success_count}")
        print(f"Failures: {report.failure_count}")
        print(f"Rows written: {report.rows_written}")
        if report.deactivated:
            print(f"⚠️ Deactivated: {', '.join(report.deactivated)}")
        if report.failures:
            print("Failures details:", report.failures)

        if report.success_count > 0:
            print("✅ Database seeding successful!")
        else:
            print("❌ Database seeding failed/empty.")
    finally:
        db.close()


if __name__ == "__main__":
    main()
