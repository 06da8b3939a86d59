"""IndexPointsEngine - daily total-return points for one index."""

import logging
from datetime import date, timedelta
from typing import Dict, List, Optional
from sqlalchemy.orm import Session

from theoindex.db.models.index import IndexComposition, IndexHistoryPoint
from theoindex.db.repositories.index_repo import (
    CompositionRepository,
    HistoryRepository,
    IndexRepository,
)
from theoindex.db.repositories.price_repo import PriceRepository
from theoindex.errors import IndexNotFoundError, ProviderError, ProviderOutageError
from theoindex.providers.base import DividendProvider, QuoteProvider
from theoindex.providers.retry import with_retry
from .calendar import MarketCalendar
from .models import Constituent, DailyReturn

logger = logging.getLogger(__name__)

BASE_POINTS = 100.0
POINTS_TOLERANCE = 0.01

# Guard against a bad prior close for recent entrants
SUSPICIOUS_RETURN = 0.50
SUSPICIOUS_PRIOR_DEVIATION = 0.30
RECENT_ENTRY_DAYS = 7


class IndexPointsEngine:
    """
    Compute and persist one IndexHistoryPoint per (index, trading day).

    points_t = points_{t-1} * (1 + R_t), R_t = sum(w_i * r_i) and
    r_i = (close_i + dividend_i) / prior_close_i - 1. Dividends are folded
    into the adjusted price, so the index is total-return without a
    reinvestment ledger.
    """

    def __init__(
        self,
        session: Session,
        quote_provider: QuoteProvider,
        dividend_provider: Optional[DividendProvider] = None,
        calendar: Optional[MarketCalendar] = None,
        retry_count: int = 1,
        retry_delay: float = 0.0,
    ):
        self.session = session
        self.quote_provider = quote_provider
        if dividend_provider is None and isinstance(quote_provider, DividendProvider):
            dividend_provider = quote_provider
        self.dividend_provider = dividend_provider
        self.calendar = calendar or MarketCalendar()
        self.retry_count = retry_count
        self.retry_delay = retry_delay

        self.index_repo = IndexRepository(session)
        self.composition_repo = CompositionRepository(session)
        self.history_repo = HistoryRepository(session)
        self.price_repo = PriceRepository(session)

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def calculate_daily_return(self, index_id: str, target_date: date) -> Optional[DailyReturn]:
        """
        Compute (without persisting) the point for target_date.

        Returns None for dates before the index's first point.

        Raises:
            IndexNotFoundError: unknown index.
            ProviderOutageError: no constituent could be priced.
        """
        index_def = self.index_repo.get_index(index_id)
        if not index_def:
            raise IndexNotFoundError(index_id)

        previous = self.history_repo.get_last_point_before(index_id, target_date)
        if previous is None:
            first = self.history_repo.get_last_point(index_id)
            if first is not None and first.date > target_date:
                logger.warning(
                    f"[{index_id}] {target_date} is before the first point ({first.date}); skipping"
                )
                return None
            return DailyReturn(
                index_id=index_id,
                date=target_date,
                points=index_def.base_value or BASE_POINTS,
                daily_change=0.0,
                constituents=self._live_constituents(index_id),
            )

        constituents = self.constituents_for(index_id, target_date, previous)
        if not constituents:
            logger.warning(f"[{index_id}] No constituents for {target_date}; points carried forward")
            return DailyReturn(
                index_id=index_id,
                date=target_date,
                previous_date=previous.date,
                previous_points=previous.points,
                points=previous.points,
                daily_change=0.0,
            )

        daily_change = 0.0
        current_yield = 0.0
        contributions: Dict[str, float] = {}
        dividends: Dict[str, float] = {}
        missing: List[str] = []
        failures = 0

        for c in constituents:
            try:
                close = self._close(c.ticker, target_date)
                prior = self._prior_close(c, previous.date, target_date, close) if close is not None else None
            except ProviderError as e:
                logger.warning(f"[{index_id}] Provider failed for {c.ticker} on {target_date}: {e}")
                failures += 1
                missing.append(c.ticker)
                contributions[c.ticker] = 0.0
                continue

            if close is None or not prior:
                logger.warning(
                    f"[{index_id}] Missing price for {c.ticker} on {target_date} "
                    f"(close={close}, prior={prior}); contributing 0"
                )
                missing.append(c.ticker)
                contributions[c.ticker] = 0.0
                continue

            dividend = self._dividend(c.ticker, target_date)
            adjusted = close + dividend
            r = adjusted / prior - 1

            if self._is_suspicious(c, r, prior, target_date):
                logger.error(
                    f"[{index_id}] Suspicious return {r:.2%} for {c.ticker} on {target_date}: "
                    f"prior {prior} vs entry {c.entry_price}; using entry price"
                )
                prior = c.entry_price
                r = adjusted / prior - 1

            contributions[c.ticker] = c.weight * r
            daily_change += c.weight * r
            if dividend:
                dividends[c.ticker] = dividend
                current_yield += c.weight * dividend / prior

        if len(missing) == len(constituents):
            raise ProviderOutageError(
                f"[{index_id}] No prices for any of {len(constituents)} constituents on {target_date} "
                f"({failures} provider errors)"
            )

        return DailyReturn(
            index_id=index_id,
            date=target_date,
            previous_date=previous.date,
            previous_points=previous.points,
            points=previous.points * (1 + daily_change),
            daily_change=daily_change,
            current_yield=current_yield,
            dividends_received=previous.points * current_yield,
            dividends_by_ticker=dividends,
            contributions=contributions,
            missing_prices=missing,
            constituents=constituents,
        )

    def update_index_points(
        self, index_id: str, target_date: date, force_update: bool = False
    ) -> bool:
        """
        Compute and persist the point for target_date.

        Idempotent: an existing row matching the recomputed points within
        0.01 is left alone unless force_update. Returns True if a row was
        written.
        """
        if not self.calendar.was_open(target_date):
            logger.info(f"[{index_id}] {target_date} is not a trading day; skipping")
            return False

        result = self.calculate_daily_return(index_id, target_date)
        if result is None:
            return False

        existing = self.history_repo.get_point(index_id, target_date)
        if (
            existing is not None
            and not force_update
            and abs(existing.points - result.points) <= POINTS_TOLERANCE
        ):
            logger.info(f"[{index_id}] Point for {target_date} already up to date ({existing.points:.4f})")
            return False

        self.history_repo.upsert_point(
            index_id,
            target_date,
            {
                "points": result.points,
                "daily_change": result.daily_change,
                "current_yield": result.current_yield,
                "dividends_received": result.dividends_received,
                "dividends_by_ticker": result.dividends_by_ticker,
                "missing_prices": result.missing_prices,
                "composition_snapshot": self._snapshot_after_close(index_id, target_date, existing, result),
            },
        )
        logger.info(
            f"[{index_id}] {target_date}: {result.points:.4f} points ({result.daily_change:+.4%})"
            + (f", missing {result.missing_prices}" if result.missing_prices else "")
        )
        return True

    def seed_first_point(self, index_id: str, seed_date: date) -> bool:
        """Write the base point at inception. No-op if the index already has history."""
        index_def = self.index_repo.get_index(index_id)
        if not index_def:
            raise IndexNotFoundError(index_id)
        if self.history_repo.get_last_point(index_id) is not None:
            return False

        constituents = self._live_constituents(index_id)
        self.history_repo.upsert_point(
            index_id,
            seed_date,
            {
                "points": index_def.base_value or BASE_POINTS,
                "daily_change": 0.0,
                "current_yield": 0.0,
                "dividends_received": 0.0,
                "dividends_by_ticker": {},
                "missing_prices": [],
                "composition_snapshot": [c.to_snapshot() for c in constituents],
            },
        )
        logger.info(f"[{index_id}] Seeded {index_def.base_value or BASE_POINTS} points on {seed_date}")
        return True

    def constituents_for(
        self,
        index_id: str,
        target_date: date,
        previous: Optional[IndexHistoryPoint] = None,
    ) -> List[Constituent]:
        """
        Weights in effect at the start of target_date.

        A composition written on or after target_date only takes effect the
        following trading day, so the previous point's snapshot is used then.
        """
        rows = self.composition_repo.get_composition(index_id)
        if rows and all(r.as_of_date < target_date for r in rows):
            return [self._from_row(r) for r in rows]

        # An empty snapshot means the index held nothing that morning
        if previous is not None and previous.composition_snapshot is not None:
            return [Constituent.from_snapshot(item) for item in previous.composition_snapshot]

        if rows:
            logger.warning(
                f"[{index_id}] No composition snapshot before {target_date}; using current composition"
            )
        return [self._from_row(r) for r in rows]

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _call(self, func, description: str):
        return with_retry(func, self.retry_count, self.retry_delay, description)

    def _close(self, ticker: str, d: date) -> Optional[float]:
        return self._call(
            lambda: self.quote_provider.get_close_price(ticker, d), f"close {ticker} {d}"
        )

    def _dividend(self, ticker: str, d: date) -> float:
        if self.dividend_provider is None:
            return 0.0
        try:
            amount = self._call(
                lambda: self.dividend_provider.get_dividends_for_date(ticker, d),
                f"dividend {ticker} {d}",
            )
        except ProviderError as e:
            logger.warning(f"Dividend lookup failed for {ticker} on {d}: {e}; assuming none")
            return 0.0
        return float(amount) if amount else 0.0

    def _prior_close(
        self, c: Constituent, previous_date: date, target_date: date, today_close: float
    ) -> Optional[float]:
        prior = self._close(c.ticker, previous_date)
        if prior:
            return prior

        stored = self.price_repo.get_last_close_on_or_before(c.ticker, previous_date)
        if stored is not None and stored.close:
            logger.info(f"Using stored close {stored.close} ({stored.price_date}) as prior for {c.ticker}")
            return stored.close

        if c.entry_date == target_date:
            return today_close
        if c.entry_date == previous_date and c.entry_price:
            return c.entry_price
        return None

    @staticmethod
    def _is_suspicious(c: Constituent, r: float, prior: float, target_date: date) -> bool:
        if abs(r) <= SUSPICIOUS_RETURN or not c.entry_price or not c.entry_date:
            return False
        if target_date - c.entry_date > timedelta(days=RECENT_ENTRY_DAYS):
            return False
        return abs(prior / c.entry_price - 1) > SUSPICIOUS_PRIOR_DEVIATION

    def _live_constituents(self, index_id: str) -> List[Constituent]:
        return [self._from_row(r) for r in self.composition_repo.get_composition(index_id)]

    @staticmethod
    def _from_row(row: IndexComposition) -> Constituent:
        return Constituent(
            ticker=row.ticker,
            weight=row.target_weight,
            entry_price=row.entry_price,
            entry_date=row.entry_date,
        )

    def _snapshot_after_close(
        self,
        index_id: str,
        target_date: date,
        existing: Optional[IndexHistoryPoint],
        result: DailyReturn,
    ) -> List[dict]:
        """
        Composition in effect after the close of target_date, i.e. the
        weights the next day's return starts from.
        """
        rows = self.composition_repo.get_composition(index_id)
        if rows and all(r.as_of_date <= target_date for r in rows):
            return [self._from_row(r).to_snapshot() for r in rows]
        if existing is not None and existing.composition_snapshot is not None:
            return existing.composition_snapshot
        return [c.to_snapshot() for c in result.constituents]
