"""
Daily batch jobs: mark-to-market (points) and screening/rebalance.

Indices are independent and run in parallel, one session per index.
Dates of a single index are always processed sequentially by gap-fill.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import date
from typing import Callable, List, Optional
from sqlalchemy.orm import Session
from tqdm import tqdm

from theoindex.db.repositories.index_repo import IndexRepository
from theoindex.db.session import SessionLocal
from theoindex.index.calendar import MarketCalendar
from theoindex.index.gapfill import GapFillService
from theoindex.index.points import IndexPointsEngine
from theoindex.providers.base import MarketDataProvider
from theoindex.providers.yahoo.client import YFinanceProvider
from theoindex.rebalance.service import RebalanceService
from .config import JobConfig
from .report import JobReport

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[Session], MarketDataProvider]


class DailyJobRunner:
    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        provider_factory: Optional[ProviderFactory] = None,
        config: JobConfig = JobConfig(),
    ):
        self.session_factory = session_factory
        self.config = config
        if provider_factory is None:
            shared = YFinanceProvider(timeout=config.provider_timeout)
            provider_factory = lambda session: shared
        self.provider_factory = provider_factory

    def active_index_ids(self) -> List[str]:
        session = self.session_factory()
        try:
            return [i.index_id for i in IndexRepository(session).get_active_indices()]
        finally:
            session.close()

    def run_mark_to_market(self, today: date) -> JobReport:
        """Gap-fill and compute today's point for every active index."""
        return self._run("mark_to_market", today, self._mark_index)

    def run_screening(self, today: date) -> JobReport:
        """Screen and rebalance every active index."""
        return self._run("screening", today, self._rebalance_index)

    def _run(self, job: str, today: date, task: Callable[[str, date], str]) -> JobReport:
        report = JobReport(job=job, run_date=today)
        index_ids = self.active_index_ids()
        logger.info(f"{job}: {len(index_ids)} active indices for {today}")

        with ThreadPoolExecutor(max_workers=self.config.max_workers) as pool:
            futures = {}
            for index_id in index_ids:
                report.add_attempt(index_id)
                futures[pool.submit(task, index_id, today)] = index_id

            for future in tqdm(as_completed(futures), total=len(futures), desc=job):
                index_id = futures[future]
                try:
                    report.add_success(index_id, future.result())
                except Exception as e:
                    logger.error(f"[{index_id}] {job} failed: {type(e).__name__}: {e}")
                    report.add_failure(index_id, f"{type(e).__name__}: {e}")

        logger.info(f"{job}: {report.success_count} succeeded, {report.failure_count} failed")
        return report

    def _calendar(self, provider: MarketDataProvider) -> MarketCalendar:
        return MarketCalendar(
            holidays=self.config.holidays,
            quote_provider=provider if self.config.check_market_open else None,
            reference_symbol=self.config.market_reference_symbol,
        )

    def _mark_index(self, index_id: str, today: date) -> str:
        session = self.session_factory()
        try:
            provider = self.provider_factory(session)
            engine = IndexPointsEngine(
                session,
                provider,
                calendar=self._calendar(provider),
                retry_count=self.config.retry_count,
                retry_delay=self.config.retry_delay,
            )
            gapfill = GapFillService(session, engine)
            result = gapfill.run_for_today(index_id, today)

            recalculated = 0
            if self.config.dividend_lookback_days > 0:
                pending = gapfill.check_pending_dividends(
                    index_id, today, self.config.dividend_lookback_days
                )
                if pending:
                    recalculated = gapfill.recalculate_with_dividends(index_id, min(pending), today)

            return (
                f"filled={result.filled_count}, today={'written' if result.today_written else 'unchanged'}"
                + (f", seeded={result.seeded_on}" if result.seeded_on else "")
                + (f", recalculated={recalculated}" if recalculated else "")
            )
        finally:
            session.close()

    def _rebalance_index(self, index_id: str, today: date) -> str:
        session = self.session_factory()
        try:
            service = RebalanceService(
                session,
                quote_provider=self.provider_factory(session),
                retry_count=self.config.retry_count,
                retry_delay=self.config.retry_delay,
            )
            decision = service.run(index_id, today)
            if not decision.applied:
                return "no change"
            return f"rebalanced: +{len(decision.entries)} -{len(decision.exits)}"
        finally:
            session.close()
