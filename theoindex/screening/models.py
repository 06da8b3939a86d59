"""Pydantic models for screening output."""

import math
from typing import Any, Dict, List, Mapping, Optional
from pydantic import BaseModel, Field

OTHER_SECTOR = "Outros"


def _clean(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        value = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(value) else value


class ScreeningCandidate(BaseModel):
    """One security as seen by the screening engine."""

    ticker: str
    name: Optional[str] = None
    sector: Optional[str] = None
    price: Optional[float] = None
    upside: Optional[float] = Field(default=None, description="Percent, 25.0 = 25%")
    overall_score: Optional[float] = None
    dividend_yield: Optional[float] = None
    market_cap: Optional[float] = None
    average_daily_volume: Optional[float] = None
    fair_value_model: Optional[str] = None
    ranking_value: Optional[float] = Field(
        default=None, description="Value of the configured ranking field"
    )
    fields: Dict[str, Optional[float]] = Field(
        default_factory=dict, description="Numeric snapshot fields by column"
    )

    @property
    def sector_key(self) -> str:
        return self.sector or OTHER_SECTOR

    def get(self, column: str) -> Optional[float]:
        """Numeric field lookup used by the quality gate and ranking."""
        if column in self.fields:
            return self.fields[column]
        value = getattr(self, column, None)
        return _clean(value)

    @classmethod
    def from_row(cls, row: Mapping[str, Any], ranking_column: str) -> "ScreeningCandidate":
        fields = {
            k: _clean(v)
            for k, v in row.items()
            if k not in ("ticker", "company_name", "sector", "industry", "asset_type",
                         "exchange", "fair_value_model", "as_of_date")
        }
        model = row.get("fair_value_model")
        return cls(
            ticker=row["ticker"],
            name=row.get("company_name") if isinstance(row.get("company_name"), str) else None,
            sector=row.get("sector") if isinstance(row.get("sector"), str) else None,
            price=_clean(row.get("price")),
            upside=_clean(row.get("upside")),
            overall_score=_clean(row.get("overall_score")),
            dividend_yield=_clean(row.get("dividend_yield")),
            market_cap=_clean(row.get("market_cap")),
            average_daily_volume=_clean(row.get("average_daily_volume")),
            fair_value_model=model if isinstance(model, str) else None,
            ranking_value=_clean(row.get(ranking_column)),
            fields=fields,
        )


class Rejection(BaseModel):
    """Why a ticker did not make it into the ranked pool."""

    stage: str  # exclusion | liquidity | quality | upside | strategy | duplicate
    reason: str


class ScreeningResult(BaseModel):
    """Full outcome of screening one index configuration."""

    index_id: Optional[str] = None
    selected: List[ScreeningCandidate] = Field(default_factory=list)
    ranked_pool: List[ScreeningCandidate] = Field(
        default_factory=list, description="Candidates passing every filter, in ranking order, before selection"
    )
    removed_by_diversification: List[str] = Field(default_factory=list)
    rejected: Dict[str, Rejection] = Field(default_factory=dict)
    universe: Dict[str, ScreeningCandidate] = Field(
        default_factory=dict, description="Every loaded security, including rejected ones"
    )
    summary: Dict[str, Any] = Field(default_factory=dict)

    @property
    def tickers(self) -> List[str]:
        return [c.ticker for c in self.selected]

    def rank_of(self, ticker: str) -> Optional[int]:
        """1-based position in the ranked pool, or None."""
        for i, candidate in enumerate(self.ranked_pool, start=1):
            if candidate.ticker == ticker:
                return i
        return None
