import logging
from datetime import date, timedelta
from pathlib import Path
from typing import List, Optional
import pandas as pd
from tqdm import tqdm

from theoindex.db.repositories.price_repo import PriceRepository
from theoindex.db.repositories.snapshot_repo import SnapshotRepository
from theoindex.db.repositories.ticker_repo import TickerRepository
from theoindex.providers.yahoo.client import YFinanceProvider
from .report import IngestionReport
from .snapshot_builder import SnapshotBuilder

logger = logging.getLogger(__name__)


class IngestionService:
    """Loads the screening universe: tickers, fundamentals snapshots and daily prices."""

    def __init__(
        self,
        provider: YFinanceProvider,
        ticker_repo: TickerRepository,
        snapshot_repo: SnapshotRepository,
        price_repo: PriceRepository,
        history_days: int = 30,
    ):
        self.provider = provider
        self.ticker_repo = ticker_repo
        self.snapshot_repo = snapshot_repo
        self.price_repo = price_repo
        self.session = ticker_repo.session
        self.history_days = history_days
        self.builder = SnapshotBuilder()

    def ingest_tickers(self, tickers: List[str], as_of: date) -> IngestionReport:
        report = IngestionReport(as_of=as_of)

        # Use tqdm for progress bar
        iterator = tqdm(tickers, desc="Ingesting universe")
        for ticker in iterator:
            report.add_attempt(ticker)
            try:
                info = self.provider.get_company_info(ticker)

                # Validation: no name means delisted/invalid
                if not info or not (info.get("longName") or info.get("shortName")):
                    if self.ticker_repo.deactivate(ticker, commit=False):
                        report.add_deactivated(ticker)
                    else:
                        report.add_failure(ticker, "Invalid/Missing Data")
                    continue

                hist = self._fetch_history(ticker, as_of) if self.history_days > 0 else None

                # A ticker's rows land together or not at all
                with self.session.begin_nested():
                    self.ticker_repo.upsert(self.builder.build_ticker(ticker, info), commit=False)
                    self.snapshot_repo.upsert(self.builder.build_snapshot(ticker, as_of, info), commit=False)
                    count = 1 + self._store_history(ticker, hist)

                report.add_success(ticker, count)
            except Exception as e:
                logger.warning(f"Ingestion failed for {ticker}: {e}")
                report.add_failure(ticker, str(e))

        # One commit for every pending ticker/snapshot/price row
        self.session.commit()
        return report

    def ingest_from_file(self, file_path: Path, as_of: date) -> IngestionReport:
        with open(file_path, 'r') as f:
            lines = f.readlines()

        tickers = []
        for line in lines:
            line = line.strip()
            if line and not line.startswith("#"):
                tickers.append(line.split("#")[0].strip())

        return self.ingest_tickers(tickers, as_of)

    def _fetch_history(self, ticker: str, as_of: date) -> pd.DataFrame:
        return self.provider.get_history(ticker, as_of - timedelta(days=self.history_days), as_of)

    def _store_history(self, ticker: str, hist: Optional[pd.DataFrame]) -> int:
        if hist is None or hist.empty:
            return 0

        count = 0
        for ts, row in hist.iterrows():
            d = pd.Timestamp(ts).date()
            close = row.get("Close")
            if close is not None and not pd.isna(close):
                self.price_repo.upsert_close(ticker, d, float(close), commit=False)
                count += 1
            dividend = row.get("Dividends")
            if dividend is not None and not pd.isna(dividend) and dividend > 0:
                self.price_repo.upsert_dividend(ticker, d, float(dividend), commit=False)
                count += 1
        return count
