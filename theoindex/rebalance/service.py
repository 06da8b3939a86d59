"""RebalanceService - screens an index and replaces its composition when warranted."""

import logging
from datetime import date
from typing import List, Optional, Sequence
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from theoindex.config.index_config import IndexConfig, load_index_config
from theoindex.db.models.index import IndexComposition
from theoindex.db.repositories.index_repo import (
    CompositionRepository,
    HistoryRepository,
    IndexRepository,
    RebalanceLogRepository,
)
from theoindex.db.repositories.price_repo import PriceRepository
from theoindex.errors import IndexNotFoundError, ProviderError, RebalanceWriteError
from theoindex.index.models import Constituent
from theoindex.index.weights import calculate_weights
from theoindex.providers.base import QuoteProvider
from theoindex.providers.retry import with_retry
from theoindex.screening.models import ScreeningCandidate
from theoindex.screening.service import ScreeningService
from .decision import (
    apply_hysteresis,
    compare_composition,
    generate_rebalance_reason,
    should_rebalance,
)
from .models import SYSTEM_TICKER, CompositionChange, RebalanceDecision

logger = logging.getLogger(__name__)

WEIGHT_TOLERANCE = 1e-6


class RebalanceService:
    """
    Compare the ideal composition with the current one and, if the ticker
    set changes, replace the composition in a single transaction.

    The new composition takes effect from the next trading day; the point
    for as_of itself is computed with the weights in effect that morning.
    """

    def __init__(
        self,
        session: Session,
        quote_provider: Optional[QuoteProvider] = None,
        screening_service: Optional[ScreeningService] = None,
        retry_count: int = 1,
        retry_delay: float = 0.0,
    ):
        self.session = session
        self.quote_provider = quote_provider
        self.screening = screening_service or ScreeningService(session)
        self.retry_count = retry_count
        self.retry_delay = retry_delay

        self.index_repo = IndexRepository(session)
        self.composition_repo = CompositionRepository(session)
        self.history_repo = HistoryRepository(session)
        self.log_repo = RebalanceLogRepository(session)
        self.price_repo = PriceRepository(session)

    def evaluate(self, index_id: str, as_of: date) -> RebalanceDecision:
        """
        Screen and decide without writing anything.

        Raises:
            IndexNotFoundError: unknown index.
            ConfigurationError: malformed config or unknown strategy.
        """
        index_def = self.index_repo.get_index(index_id)
        if not index_def:
            raise IndexNotFoundError(index_id)
        config = load_index_config(index_def.config)

        screening = self.screening.screen(config, as_of_date=as_of, index_id=index_id)
        current = [row.ticker for row in self.composition_repo.get_composition(index_id)]

        hysteresis = apply_hysteresis(current, screening, config)
        changes = compare_composition(
            current,
            hysteresis.proposed,
            screening,
            hysteresis.exit_reasons,
            hysteresis.entry_reasons,
        )
        decision = RebalanceDecision(
            index_id=index_id,
            as_of=as_of,
            current=current,
            proposed=hysteresis.proposed,
            changes=changes,
            should_rebalance=should_rebalance(current, hysteresis.proposed),
            screening=screening,
        )

        if not hysteresis.proposed:
            logger.warning(f"[{index_id}] Screening produced no candidates; composition kept")
        if decision.should_rebalance:
            decision.reason = generate_rebalance_reason(changes, config, is_initial=not current)
        return decision

    def run(self, index_id: str, as_of: date) -> RebalanceDecision:
        """Evaluate and, when the ticker set changes, write the new composition."""
        decision = self.evaluate(index_id, as_of)
        if not decision.should_rebalance:
            logger.info(f"[{index_id}] No rebalance needed on {as_of}")
            return decision

        config = load_index_config(self.index_repo.get_index(index_id).config)
        self.update_composition(
            index_id,
            decision.proposed,
            decision.changes,
            decision.reason,
            as_of,
            config,
        )
        decision.applied = True
        return decision

    def update_composition(
        self,
        index_id: str,
        proposed: Sequence[ScreeningCandidate],
        changes: Sequence[CompositionChange],
        reason: str,
        as_of: date,
        config: Optional[IndexConfig] = None,
    ) -> int:
        """
        Atomically replace the composition and append the audit rows.

        Retained constituents keep their entry price and date. On any
        database error the transaction is rolled back and the previous
        composition stays authoritative.

        Raises:
            RebalanceWriteError: the write failed and was rolled back.
        """
        if config is None:
            index_def = self.index_repo.get_index(index_id)
            if not index_def:
                raise IndexNotFoundError(index_id)
            config = load_index_config(index_def.config)

        weights = calculate_weights(proposed, config.weights)
        total = sum(weights.values())
        if abs(total - 1.0) > WEIGHT_TOLERANCE:
            raise RebalanceWriteError(f"[{index_id}] Weights sum to {total}, expected 1.0")

        existing = {row.ticker: row for row in self.composition_repo.get_composition(index_id)}
        rows: List[IndexComposition] = []
        for candidate in proposed:
            held = existing.get(candidate.ticker)
            if held is not None:
                entry_price, entry_date = held.entry_price, held.entry_date
            else:
                entry_price, entry_date = self._entry_price(candidate, as_of), as_of
            if not entry_price:
                raise RebalanceWriteError(f"[{index_id}] No entry price for {candidate.ticker} on {as_of}")
            rows.append(
                IndexComposition(
                    ticker=candidate.ticker,
                    target_weight=weights[candidate.ticker],
                    entry_price=entry_price,
                    entry_date=entry_date,
                    as_of_date=as_of,
                )
            )

        try:
            count = self.composition_repo.replace(index_id, rows, commit=False)
            self.log_repo.add_entry(index_id, as_of, "REBALANCE", SYSTEM_TICKER, reason, commit=False)
            for change in changes:
                self.log_repo.add_entry(
                    index_id, as_of, change.action, change.ticker, change.reason, commit=False
                )

            # The point for as_of records the composition the next day starts from
            point = self.history_repo.get_point(index_id, as_of)
            if point is not None:
                point.composition_snapshot = [
                    Constituent(
                        ticker=r.ticker,
                        weight=r.target_weight,
                        entry_price=r.entry_price,
                        entry_date=r.entry_date,
                    ).to_snapshot()
                    for r in rows
                ]

            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"[{index_id}] Composition update rolled back: {e}")
            raise RebalanceWriteError(f"[{index_id}] Composition update failed: {e}") from e

        logger.info(f"[{index_id}] Composition replaced on {as_of}: {count} constituents. {reason}")
        return count

    def _entry_price(self, candidate: ScreeningCandidate, as_of: date) -> Optional[float]:
        if self.quote_provider is not None:
            try:
                close = with_retry(
                    lambda: self.quote_provider.get_close_price(candidate.ticker, as_of),
                    self.retry_count,
                    self.retry_delay,
                    f"entry price {candidate.ticker}",
                )
            except ProviderError as e:
                logger.warning(f"Entry price lookup failed for {candidate.ticker}: {e}")
                close = None
            if close:
                return close

        stored = self.price_repo.get_last_close_on_or_before(candidate.ticker, as_of)
        if stored is not None and stored.close:
            return stored.close
        return candidate.price
