"""Pydantic models for the Index module."""

from enum import Enum
from typing import Any, Dict, List, Optional
from datetime import date
from pydantic import BaseModel, Field


class WeightingScheme(str, Enum):
    """Available index weighting schemes."""

    EQUAL = "equal"
    MARKET_CAP = "marketCap"
    OVERALL_SCORE = "overallScore"
    CUSTOM = "custom"


class Constituent(BaseModel):
    """A security and its target weight as of the start of a trading day."""

    ticker: str
    weight: float
    entry_price: Optional[float] = None
    entry_date: Optional[date] = None

    def to_snapshot(self) -> Dict[str, Any]:
        return {
            "ticker": self.ticker,
            "weight": self.weight,
            "entry_price": self.entry_price,
            "entry_date": self.entry_date.isoformat() if self.entry_date else None,
        }

    @classmethod
    def from_snapshot(cls, item: Dict[str, Any]) -> "Constituent":
        entry_date = item.get("entry_date")
        return cls(
            ticker=item["ticker"],
            weight=float(item["weight"]),
            entry_price=item.get("entry_price"),
            entry_date=date.fromisoformat(entry_date) if entry_date else None,
        )


class DailyReturn(BaseModel):
    """Result of computing one index for one trading day."""

    index_id: str
    date: date
    previous_date: Optional[date] = None
    previous_points: Optional[float] = None

    points: float
    daily_change: float = Field(description="Weighted total return, 0.10 = +10%")
    current_yield: float = 0.0

    # Informational; dividends are already inside daily_change via the adjusted price
    dividends_received: float = 0.0
    dividends_by_ticker: Dict[str, float] = Field(default_factory=dict)

    contributions: Dict[str, float] = Field(
        default_factory=dict, description="w_i * r_i per constituent"
    )
    missing_prices: List[str] = Field(default_factory=list)
    constituents: List[Constituent] = Field(default_factory=list)

    @property
    def is_first_point(self) -> bool:
        return self.previous_date is None


class GapFillResult(BaseModel):
    """Outcome of a gap-fill + today run for one index."""

    index_id: str
    today: date
    filled_dates: List[date] = Field(default_factory=list)
    today_written: bool = False
    seeded_on: Optional[date] = None

    @property
    def filled_count(self) -> int:
        return len(self.filled_dates)


class AssetPerformance(BaseModel):
    """Contribution of one constituent over its holding period."""

    ticker: str
    entry_date: date
    exit_date: Optional[date] = None
    entry_price: float
    last_price: Optional[float] = None
    price_return: Optional[float] = None
    dividends_per_share: float = 0.0
    total_return: Optional[float] = None
    days_held: int = 0
    is_current: bool = True

    class Config:
        """Pydantic config."""

        use_enum_values = True
