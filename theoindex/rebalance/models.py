"""Pydantic models for rebalance decisions."""

from typing import Dict, List, Literal, Optional
from datetime import date
from pydantic import BaseModel, Field

from theoindex.screening.models import ScreeningCandidate, ScreeningResult

SYSTEM_TICKER = "SYSTEM"


class CompositionChange(BaseModel):
    action: Literal["ENTRY", "EXIT"]
    ticker: str
    reason: str


class HysteresisResult(BaseModel):
    """Proposed composition after applying the retention rules."""

    proposed: List[ScreeningCandidate] = Field(default_factory=list)
    exit_reasons: Dict[str, str] = Field(default_factory=dict)
    entry_reasons: Dict[str, str] = Field(default_factory=dict)

    @property
    def tickers(self) -> List[str]:
        return [c.ticker for c in self.proposed]


class RebalanceDecision(BaseModel):
    index_id: str
    as_of: date
    current: List[str] = Field(default_factory=list)
    proposed: List[ScreeningCandidate] = Field(default_factory=list)
    changes: List[CompositionChange] = Field(default_factory=list)
    should_rebalance: bool = False
    reason: Optional[str] = None
    applied: bool = False
    screening: Optional[ScreeningResult] = None

    @property
    def entries(self) -> List[str]:
        return [c.ticker for c in self.changes if c.action == "ENTRY"]

    @property
    def exits(self) -> List[str]:
        return [c.ticker for c in self.changes if c.action == "EXIT"]
