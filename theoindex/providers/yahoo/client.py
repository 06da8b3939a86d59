import logging
from typing import Any, Dict, Optional
from datetime import date, timedelta
import yfinance as yf
import pandas as pd

from theoindex.errors import ProviderError
from ..base import MarketDataProvider
from ..rate_limiter import YahooRateLimiter

logger = logging.getLogger(__name__)

# B3 listings carry the .SA suffix on Yahoo; index symbols (^BVSP) are left as-is
DEFAULT_SUFFIX = ".SA"


class YFinanceProvider(MarketDataProvider):
    """
    yfinance implementation of the quote and dividend interfaces.

    Closes are raw (auto_adjust=False): dividends are added back by the
    points engine, so dividend-adjusted closes would count them twice.
    """

    def __init__(
        self,
        rate_limit_delay: float = 0.25,
        timeout: float = 10.0,
        suffix: str = DEFAULT_SUFFIX,
    ):
        self.limiter = YahooRateLimiter(min_interval=rate_limit_delay)
        self.timeout = timeout
        self.suffix = suffix

    def _yahoo_symbol(self, symbol: str) -> str:
        if symbol.startswith("^") or "." in symbol or not self.suffix:
            return symbol
        return f"{symbol}{self.suffix}"

    def _history(self, symbol: str, target_date: date, actions: bool = False) -> pd.DataFrame:
        self.limiter.wait_if_needed()
        t = yf.Ticker(self._yahoo_symbol(symbol))
        start = target_date.strftime("%Y-%m-%d")
        end = (target_date + timedelta(days=1)).strftime("%Y-%m-%d")
        try:
            return t.history(
                start=start, end=end, actions=actions, auto_adjust=False, timeout=self.timeout
            )
        except Exception as e:
            raise ProviderError(f"yfinance history failed for {symbol} on {target_date}: {e}") from e

    def get_close_price(self, symbol: str, target_date: date) -> Optional[float]:
        hist = self._history(symbol, target_date)
        if hist is None or hist.empty or "Close" not in hist.columns:
            logger.debug(f"No yfinance quote for {symbol} on {target_date}")
            return None
        close = hist["Close"].iloc[0]
        if pd.isna(close):
            return None
        return float(close)

    def get_dividends_for_date(self, symbol: str, ex_date: date) -> Optional[float]:
        hist = self._history(symbol, ex_date, actions=True)
        if hist is None or hist.empty or "Dividends" not in hist.columns:
            return None
        amount = float(hist["Dividends"].sum())
        return amount if amount > 0 else None

    def get_company_info(self, symbol: str) -> Dict[str, Any]:
        """Fetch company metadata and summary fundamentals."""
        self.limiter.wait_if_needed()
        try:
            info = yf.Ticker(self._yahoo_symbol(symbol)).info
        except Exception as e:
            raise ProviderError(f"yfinance info failed for {symbol}: {e}") from e
        info = dict(info or {})
        # Cleanup
        info.pop("companyOfficers", None)
        return info

    def get_history(self, symbol: str, start: date, end: date) -> pd.DataFrame:
        """Daily closes and dividends in [start, end]."""
        self.limiter.wait_if_needed()
        t = yf.Ticker(self._yahoo_symbol(symbol))
        try:
            return t.history(
                start=start.strftime("%Y-%m-%d"),
                end=(end + timedelta(days=1)).strftime("%Y-%m-%d"),
                actions=True,
                auto_adjust=False,
                timeout=self.timeout,
            )
        except Exception as e:
            raise ProviderError(f"yfinance history failed for {symbol}: {e}") from e
