"""
Gap-fill recovery.

Before computing today, every trading date strictly between the last stored
point and today is computed in ascending order. Dates of one index are never
computed concurrently since each depends on the previous day's points.
"""

import logging
from datetime import date, timedelta
from typing import List, Optional
from sqlalchemy.orm import Session

from theoindex.db.repositories.index_repo import HistoryRepository, IndexRepository
from theoindex.errors import IndexNotFoundError, ProviderError
from .calendar import MarketCalendar
from .models import GapFillResult
from .points import IndexPointsEngine

logger = logging.getLogger(__name__)


class GapFillService:
    def __init__(
        self,
        session: Session,
        engine: IndexPointsEngine,
        calendar: Optional[MarketCalendar] = None,
    ):
        self.session = session
        self.engine = engine
        self.calendar = calendar or engine.calendar
        self.index_repo = IndexRepository(session)
        self.history_repo = HistoryRepository(session)

    def fill_missing_history(self, index_id: str, today: date) -> int:
        """
        Compute every missing trading date before today.

        Stops at (and re-raises) the first failing date so later dates are
        never computed on top of a hole. Returns the number of rows written.
        """
        return len(self._fill(index_id, today).filled_dates)

    def run_for_today(self, index_id: str, today: date) -> GapFillResult:
        """Fill gaps, then compute today."""
        result = self._fill(index_id, today)
        if result.seeded_on == today:
            return result
        result.today_written = self.engine.update_index_points(index_id, today)
        return result

    def recalculate_with_dividends(self, index_id: str, start: date, end: date) -> int:
        """
        Recompute stored points in [start, end] with force_update, in order.

        Used when dividends are recorded after the day was computed; every
        later point is recomputed too since the chain depends on it.
        """
        points = self.history_repo.get_series(index_id, start, end)
        updated = 0
        for point in points:
            if self.history_repo.get_last_point_before(index_id, point.date) is None:
                continue  # inception point stays at base value
            if self.engine.update_index_points(index_id, point.date, force_update=True):
                updated += 1
        logger.info(f"[{index_id}] Recalculated {updated} points between {start} and {end}")
        return updated

    def check_pending_dividends(
        self, index_id: str, today: date, lookback_days: int = 30
    ) -> List[date]:
        """
        Dates in the lookback window where a constituent has a dividend
        ex-date that the stored point does not reflect.
        """
        if self.engine.dividend_provider is None:
            return []

        start = today - timedelta(days=lookback_days)
        points = self.history_repo.get_series(index_id, start, today)
        pending: List[date] = []

        for point in points:
            previous = self.history_repo.get_last_point_before(index_id, point.date)
            if previous is None:
                continue
            recorded = set(point.dividends_by_ticker or {}) | set(point.missing_prices or [])
            constituents = self.engine.constituents_for(index_id, point.date, previous)
            for c in constituents:
                if c.ticker in recorded:
                    continue
                try:
                    amount = self.engine.dividend_provider.get_dividends_for_date(c.ticker, point.date)
                except ProviderError as e:
                    logger.warning(f"[{index_id}] Dividend check failed for {c.ticker} on {point.date}: {e}")
                    continue
                if amount:
                    logger.info(f"[{index_id}] Pending dividend {c.ticker} {amount} on {point.date}")
                    pending.append(point.date)
                    break

        return pending

    def _fill(self, index_id: str, today: date) -> GapFillResult:
        index_def = self.index_repo.get_index(index_id)
        if not index_def:
            raise IndexNotFoundError(index_id)

        result = GapFillResult(index_id=index_id, today=today)
        last = self.history_repo.get_last_point(index_id)

        if last is None:
            created = index_def.created_at.date() if index_def.created_at else today
            seed_date = self.calendar.next_trading_day(min(created, today))
            if seed_date > today:
                logger.info(f"[{index_id}] No trading day since creation yet")
                return result
            self.engine.seed_first_point(index_id, seed_date)
            result.seeded_on = seed_date
            start = seed_date
        else:
            start = last.date

        dates = self.calendar.trading_days_between(start, today)
        if dates:
            logger.info(f"[{index_id}] Gap-filling {len(dates)} dates: {dates[0]} .. {dates[-1]}")

        for d in dates:
            try:
                written = self.engine.update_index_points(index_id, d)
            except Exception as e:
                logger.error(f"[{index_id}] Gap-fill stopped at {d}: {e}")
                raise
            if written:
                result.filled_dates.append(d)

        return result
