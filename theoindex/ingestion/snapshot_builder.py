from datetime import date
from typing import Any, Dict, Optional
import pandas as pd
from theoindex.db.models.snapshot import FinancialSnapshot
from theoindex.db.models.ticker import Ticker

QUOTE_TYPES = {"EQUITY": "STOCK", "ETF": "ETF", "INDEX": "INDEX"}


class SnapshotBuilder:
    """
    Builds Ticker and FinancialSnapshot objects from a provider info payload.
    Missing or non-numeric values stay None, never 0.
    """

    def build_ticker(self, symbol: str, info: Dict[str, Any]) -> Ticker:
        return Ticker(
            ticker=symbol,
            company_name=info.get("longName") or info.get("shortName"),
            asset_type=QUOTE_TYPES.get(str(info.get("quoteType", "")).upper(), "OTHER"),
            exchange=info.get("exchange"),
            sector=info.get("sector"),
            industry=info.get("industry"),
            is_active=True,
        )

    def build_snapshot(self, symbol: str, as_of: date, info: Dict[str, Any]) -> FinancialSnapshot:
        price = self._get_val(info, "currentPrice") or self._get_val(info, "regularMarketPrice")

        volume = self._get_val(info, "averageDailyVolume10Day") or self._get_val(info, "averageVolume")
        traded_value = volume * price if volume is not None and price is not None else None

        total_debt = self._get_val(info, "totalDebt")
        total_cash = self._get_val(info, "totalCash")
        ebitda = self._get_val(info, "ebitda")
        net_debt_ebitda = None
        if total_debt is not None and ebitda:
            net_debt_ebitda = (total_debt - (total_cash or 0.0)) / ebitda

        target = self._get_val(info, "targetMeanPrice")
        upside = None
        if target is not None and price:
            upside = round((target / price - 1) * 100, 2)

        return FinancialSnapshot(
            ticker=symbol,
            as_of_date=as_of,
            price=price,
            market_cap=self._get_val(info, "marketCap"),
            average_daily_volume=traded_value,
            eps=self._get_val(info, "trailingEps"),
            book_value_per_share=self._get_val(info, "bookValue"),
            roe=self._get_val(info, "returnOnEquity"),
            net_margin=self._get_val(info, "profitMargins"),
            net_debt_ebitda=net_debt_ebitda,
            payout=self._get_val(info, "payoutRatio"),
            dividend_yield=self._get_val(info, "trailingAnnualDividendYield"),
            pl=self._get_val(info, "trailingPE"),
            pvp=self._get_val(info, "priceToBook"),
            overall_score=self._get_val(info, "overallScore"),
            upside=upside,
            fair_value_model="ANALYST" if upside is not None else None,
        )

    def _get_val(self, data: Dict, key: str) -> Optional[float]:
        val = data.get(key)
        if val is None or isinstance(val, (str, bool)):
            return None
        if pd.isna(val):
            return None
        return float(val)
