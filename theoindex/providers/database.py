from typing import Optional
from datetime import date
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from theoindex.db.repositories.price_repo import PriceRepository
from theoindex.errors import ProviderError
from .base import MarketDataProvider


class DatabasePriceProvider(MarketDataProvider):
    """Serves quotes and dividends already stored in daily_prices / dividends."""

    def __init__(self, session: Session):
        self.repo = PriceRepository(session)

    def get_close_price(self, symbol: str, target_date: date) -> Optional[float]:
        try:
            return self.repo.get_close(symbol, target_date)
        except SQLAlchemyError as e:
            raise ProviderError(f"Price lookup failed for {symbol} on {target_date}: {e}") from e

    def get_dividends_for_date(self, symbol: str, ex_date: date) -> Optional[float]:
        try:
            return self.repo.get_dividend(symbol, ex_date)
        except SQLAlchemyError as e:
            raise ProviderError(f"Dividend lookup failed for {symbol} on {ex_date}: {e}") from e
