from datetime import date
from typing import Dict, List, Optional
from pydantic import BaseModel, Field


class IngestionReport(BaseModel):
    """Outcome of one universe load: rows written per ticker, failures, deactivations."""

    as_of: Optional[date] = None
    attempted: List[str] = Field(default_factory=list)
    successes: Dict[str, int] = Field(default_factory=dict)
    failures: Dict[str, str] = Field(default_factory=dict)
    deactivated: List[str] = Field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.successes)

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    @property
    def rows_written(self) -> int:
        """Snapshot plus price and dividend rows across every ticker."""
        return sum(self.successes.values())

    def add_attempt(self, ticker: str) -> None:
        self.attempted.append(ticker)

    def add_success(self, ticker: str, row_count: int) -> None:
        self.successes[ticker] = row_count

    def add_failure(self, ticker: str, error: str) -> None:
        self.failures[ticker] = error

    def add_deactivated(self, ticker: str) -> None:
        self.deactivated.append(ticker)
        self.failures[ticker] = "Invalid/Missing Data - deactivated"
