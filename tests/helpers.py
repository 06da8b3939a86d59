"""Fakes and row builders shared by the test suites."""

from datetime import date, datetime
from typing import Dict, Optional, Set, Tuple

from theoindex.db.models import (
    FinancialSnapshot,
    IndexComposition,
    IndexDefinition,
    Ticker,
)
from theoindex.errors import ProviderError
from theoindex.providers.base import MarketDataProvider

# 2025-06-02 is a Monday
MON = date(2025, 6, 2)
TUE = date(2025, 6, 3)
WED = date(2025, 6, 4)
THU = date(2025, 6, 5)
FRI = date(2025, 6, 6)
NEXT_MON = date(2025, 6, 9)


class FakeMarketData(MarketDataProvider):
    """Dict-backed quotes and dividends; tickers in `failing` raise ProviderError."""

    def __init__(self):
        self.closes: Dict[Tuple[str, date], float] = {}
        self.dividends: Dict[Tuple[str, date], float] = {}
        self.failing: Set[str] = set()
        self.calls = 0

    def set_close(self, ticker: str, d: date, close: float) -> "FakeMarketData":
        self.closes[(ticker, d)] = close
        return self

    def set_dividend(self, ticker: str, d: date, amount: float) -> "FakeMarketData":
        self.dividends[(ticker, d)] = amount
        return self

    def get_close_price(self, symbol: str, target_date: date) -> Optional[float]:
        self.calls += 1
        if symbol in self.failing:
            raise ProviderError(f"{symbol} unavailable")
        return self.closes.get((symbol, target_date))

    def get_dividends_for_date(self, symbol: str, ex_date: date) -> Optional[float]:
        if symbol in self.failing:
            raise ProviderError(f"{symbol} unavailable")
        return self.dividends.get((symbol, ex_date))


def make_index(
    session,
    index_id: str = "IPJ-TEST",
    config: Optional[dict] = None,
    created: date = MON,
) -> IndexDefinition:
    index = IndexDefinition(
        index_id=index_id,
        name=f"{index_id} index",
        config=config or {},
        is_active=True,
        created_at=datetime.combine(created, datetime.min.time()),
    )
    session.add(index)
    session.commit()
    return index


def set_composition(
    session,
    index_id: str,
    weights: Dict[str, float],
    as_of: date,
    entry_prices: Optional[Dict[str, float]] = None,
) -> None:
    for row in session.query(IndexComposition).filter_by(index_id=index_id):
        session.delete(row)
    session.flush()
    for ticker, weight in weights.items():
        session.add(
            IndexComposition(
                index_id=index_id,
                ticker=ticker,
                target_weight=weight,
                entry_price=(entry_prices or {}).get(ticker, 10.0),
                entry_date=as_of,
                as_of_date=as_of,
            )
        )
    session.commit()


def add_security(
    session,
    ticker: str,
    as_of: date = MON,
    sector: Optional[str] = "Energia",
    asset_type: str = "STOCK",
    **fields,
) -> None:
    session.merge(
        Ticker(
            ticker=ticker,
            company_name=f"{ticker} SA",
            asset_type=asset_type,
            sector=sector,
            is_active=True,
        )
    )
    session.merge(FinancialSnapshot(ticker=ticker, as_of_date=as_of, **fields))
    session.commit()
