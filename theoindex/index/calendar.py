import logging
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional
import pandas as pd

from theoindex.errors import ProviderError
from theoindex.providers.base import QuoteProvider

logger = logging.getLogger(__name__)

DEFAULT_REFERENCE_SYMBOL = "^BVSP"


class MarketCalendar:
    """
    Trading days: weekdays minus configured holidays.

    When a quote provider is given, was_open() also requires the reference
    symbol to have a close on that date.
    """

    def __init__(
        self,
        holidays: Iterable[date] = (),
        quote_provider: Optional[QuoteProvider] = None,
        reference_symbol: str = DEFAULT_REFERENCE_SYMBOL,
    ):
        self.holidays = sorted(set(holidays))
        self._holiday_set = set(self.holidays)
        self.quote_provider = quote_provider
        self.reference_symbol = reference_symbol
        self._open_cache: Dict[date, bool] = {}

    def is_trading_day(self, d: date) -> bool:
        return d.weekday() < 5 and d not in self._holiday_set

    def was_open(self, d: date) -> bool:
        if not self.is_trading_day(d):
            return False
        if self.quote_provider is None:
            return True
        if d not in self._open_cache:
            try:
                close = self.quote_provider.get_close_price(self.reference_symbol, d)
            except ProviderError as e:
                # Unknown; let the points engine decide from constituent prices
                logger.warning(f"Market-open check for {d} failed ({e}); assuming open")
                return True
            self._open_cache[d] = close is not None
        return self._open_cache[d]

    def trading_days(self, start: date, end: date) -> List[date]:
        """Trading days in [start, end], ascending."""
        if start > end:
            return []
        days = pd.bdate_range(start, end, freq="C", holidays=self.holidays)
        return [ts.date() for ts in days]

    def trading_days_between(self, start: date, end: date) -> List[date]:
        """Trading days strictly between start and end, ascending."""
        return self.trading_days(start + timedelta(days=1), end - timedelta(days=1))

    def next_trading_day(self, d: date) -> date:
        """d itself if it is a trading day, else the first one after it."""
        while not self.is_trading_day(d):
            d += timedelta(days=1)
        return d
