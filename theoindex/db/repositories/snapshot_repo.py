from typing import Optional, List
from datetime import date
from sqlalchemy import func
from .base import BaseRepository
from theoindex.db.models.snapshot import FinancialSnapshot

class SnapshotRepository(BaseRepository[FinancialSnapshot]):
    def __init__(self, session):
        super().__init__(session, FinancialSnapshot)

    def latest_query(self, tickers: List[str], as_of_date: Optional[date] = None):
        """Query selecting the most recent snapshot per ticker (for pandas.read_sql)."""
        latest = self.session.query(
            FinancialSnapshot.ticker.label("ticker"),
            func.max(FinancialSnapshot.as_of_date).label("max_date"),
        ).filter(FinancialSnapshot.ticker.in_(tickers))
        if as_of_date:
            latest = latest.filter(FinancialSnapshot.as_of_date <= as_of_date)
        latest = latest.group_by(FinancialSnapshot.ticker).subquery()

        return self.session.query(FinancialSnapshot).join(
            latest,
            (FinancialSnapshot.ticker == latest.c.ticker)
            & (FinancialSnapshot.as_of_date == latest.c.max_date),
        )

    def upsert(self, snapshot: FinancialSnapshot, commit: bool = True) -> FinancialSnapshot:
        """Insert or replace the snapshot identified by (ticker, as_of_date)."""
        if snapshot.ticker is None or snapshot.as_of_date is None:
            raise ValueError("Ticker and as_of_date are required for upsert")

        return self.merge(snapshot, commit=commit)
