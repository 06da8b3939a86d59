"""Per-constituent performance over holding periods."""

import logging
from datetime import date
from typing import Dict, List, Optional, Tuple
from sqlalchemy.orm import Session

from theoindex.db.repositories.index_repo import (
    CompositionRepository,
    HistoryRepository,
    RebalanceLogRepository,
)
from theoindex.db.repositories.price_repo import PriceRepository
from theoindex.errors import ProviderError
from theoindex.providers.base import QuoteProvider
from .models import AssetPerformance

logger = logging.getLogger(__name__)


def _price(
    quote_provider: QuoteProvider, price_repo: PriceRepository, ticker: str, d: date
) -> Optional[float]:
    try:
        close = quote_provider.get_close_price(ticker, d)
    except ProviderError as e:
        logger.warning(f"Price lookup failed for {ticker} on {d}: {e}")
        close = None
    if close:
        return close
    stored = price_repo.get_last_close_on_or_before(ticker, d)
    return stored.close if stored else None


def _holding_periods(log) -> List[Tuple[str, date, Optional[date]]]:
    """(ticker, entry_date, exit_date) from ENTRY/EXIT log rows in date order."""
    open_entries: Dict[str, date] = {}
    periods: List[Tuple[str, date, Optional[date]]] = []
    for entry in log:
        if entry.action == "ENTRY":
            open_entries[entry.ticker] = entry.date
        elif entry.action == "EXIT" and entry.ticker in open_entries:
            periods.append((entry.ticker, open_entries.pop(entry.ticker), entry.date))
    return periods


def calculate_asset_performance(
    session: Session,
    index_id: str,
    quote_provider: QuoteProvider,
    as_of: date,
    include_exited: bool = True,
) -> List[AssetPerformance]:
    """
    Price and total return (price + dividends per share recorded in the
    point history) for current constituents and, optionally, past ones.
    """
    composition_repo = CompositionRepository(session)
    history_repo = HistoryRepository(session)
    log_repo = RebalanceLogRepository(session)
    price_repo = PriceRepository(session)

    points = history_repo.get_series(index_id, end_date=as_of)

    def dividends_between(ticker: str, start: date, end: date) -> float:
        return sum(
            (p.dividends_by_ticker or {}).get(ticker, 0.0)
            for p in points
            if start < p.date <= end
        )

    def build(ticker, entry_date, entry_price, end_date, is_current) -> AssetPerformance:
        last_price = _price(quote_provider, price_repo, ticker, end_date)
        dividends = dividends_between(ticker, entry_date, end_date)
        perf = AssetPerformance(
            ticker=ticker,
            entry_date=entry_date,
            exit_date=None if is_current else end_date,
            entry_price=entry_price,
            last_price=last_price,
            dividends_per_share=dividends,
            days_held=(end_date - entry_date).days,
            is_current=is_current,
        )
        if last_price is not None and entry_price:
            perf.price_return = last_price / entry_price - 1
            perf.total_return = (last_price + dividends) / entry_price - 1
        return perf

    results = [
        build(row.ticker, row.entry_date, row.entry_price, as_of, True)
        for row in composition_repo.get_composition(index_id)
    ]

    if include_exited:
        for ticker, entry_date, exit_date in _holding_periods(log_repo.get_log(index_id, end_date=as_of)):
            entry_price = _price(quote_provider, price_repo, ticker, entry_date)
            if not entry_price:
                logger.warning(f"[{index_id}] No entry price for exited {ticker} ({entry_date})")
                continue
            results.append(build(ticker, entry_date, entry_price, exit_date, False))

    return sorted(results, key=lambda p: (not p.is_current, p.ticker, p.entry_date))
