from pydantic import BaseModel, Field
from typing import List, Dict
from datetime import date


class JobReport(BaseModel):
    """Track per-index outcomes of one batch job run."""

    job: str
    run_date: date
    attempted: List[str] = Field(default_factory=list)
    successes: Dict[str, str] = Field(default_factory=dict)
    failures: Dict[str, str] = Field(default_factory=dict)

    @property
    def success_count(self) -> int:
        return len(self.successes)

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    def add_attempt(self, index_id: str) -> None:
        self.attempted.append(index_id)

    def add_success(self, index_id: str, summary: str) -> None:
        self.successes[index_id] = summary

    def add_failure(self, index_id: str, error: str) -> None:
        self.failures[index_id] = error
