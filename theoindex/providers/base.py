from abc import ABC, abstractmethod
from typing import Optional
from datetime import date


class QuoteProvider(ABC):
    """Abstract source of daily closing prices."""

    @abstractmethod
    def get_close_price(self, symbol: str, target_date: date) -> Optional[float]:
        """
        Closing price of symbol on target_date.

        Returns None when the provider has no quote for that date.
        Raises ProviderError when the provider itself fails.
        """
        pass


class DividendProvider(ABC):
    """Abstract source of per-share cash dividends keyed by ex-date."""

    @abstractmethod
    def get_dividends_for_date(self, symbol: str, ex_date: date) -> Optional[float]:
        """Dividend per share going ex on ex_date, or None if there is none."""
        pass


class MarketDataProvider(QuoteProvider, DividendProvider):
    """Convenience base for providers serving both quotes and dividends."""
