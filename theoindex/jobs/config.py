import os
from datetime import date
from typing import List
from pydantic import BaseModel, Field


def _parse_dates(raw: str) -> List[date]:
    return [date.fromisoformat(part.strip()) for part in raw.split(",") if part.strip()]


class JobConfig(BaseModel):
    """Config for the daily batch jobs."""
    max_workers: int = Field(default=4, ge=1)
    retry_count: int = Field(default=3, ge=1)
    retry_delay: float = 1.0
    provider_timeout: float = 10.0
    market_reference_symbol: str = "^BVSP"
    check_market_open: bool = True
    dividend_lookback_days: int = 10
    holidays: List[date] = Field(default_factory=list)

    @classmethod
    def from_env(cls) -> "JobConfig":
        return cls(
            max_workers=int(os.getenv("JOB_MAX_WORKERS", "4")),
            retry_count=int(os.getenv("PROVIDER_RETRY_COUNT", "3")),
            retry_delay=float(os.getenv("PROVIDER_RETRY_DELAY", "1.0")),
            provider_timeout=float(os.getenv("PROVIDER_TIMEOUT", "10")),
            market_reference_symbol=os.getenv("MARKET_REFERENCE_SYMBOL", "^BVSP"),
            check_market_open=os.getenv("CHECK_MARKET_OPEN", "1") not in ("0", "false", "False"),
            dividend_lookback_days=int(os.getenv("DIVIDEND_LOOKBACK_DAYS", "10")),
            holidays=_parse_dates(os.getenv("MARKET_HOLIDAYS", "")),
        )
