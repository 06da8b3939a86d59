"""ScreeningService - turns an index configuration into a ranked candidate list."""

import logging
import re
from datetime import date
from typing import Callable, Dict, List, Optional, Tuple
import pandas as pd
from sqlalchemy.orm import Session

from theoindex.config.index_config import IndexConfig, load_index_config
from theoindex.db.repositories.index_repo import IndexRepository
from theoindex.db.repositories.snapshot_repo import SnapshotRepository
from theoindex.db.repositories.ticker_repo import TickerRepository
from theoindex.errors import ConfigurationError, IndexNotFoundError
from theoindex.filters.composer import DatasetFilter
from theoindex.filters.predicates import (
    exclude_tickers,
    matches_exclusion,
    min_average_daily_volume,
    min_upside,
    positive_upside,
)
from theoindex.filters.tree import StrategyRef
from theoindex.strategies import RankingStrategy, get_strategy
from .diversification import apply_diversification, select_by_score_bands
from .models import Rejection, ScreeningCandidate, ScreeningResult

logger = logging.getLogger(__name__)

TICKER_COLUMNS = ["ticker", "company_name", "asset_type", "sector", "industry"]
_TRAILING_DIGITS = re.compile(r"\d+$")


def company_base(ticker: str) -> str:
    """Share classes of one company share the base symbol (PETR3, PETR4 -> PETR)."""
    return _TRAILING_DIGITS.sub("", ticker.upper())


class ScreeningService:
    """
    Screen the tradable universe against an IndexConfig.

    Evaluation order: exclusions, liquidity, quality tree, upside filters,
    strategy intersection, ordering, same-company de-duplication, selection
    (topN or score bands) and finally sector diversification.
    """

    def __init__(
        self,
        session: Session,
        strategy_factory: Callable[[StrategyRef], RankingStrategy] = get_strategy,
    ):
        self.session = session
        self.ticker_repo = TickerRepository(session)
        self.snapshot_repo = SnapshotRepository(session)
        self.index_repo = IndexRepository(session)
        self.strategy_factory = strategy_factory

    # ------------------------------------------------------------------ #
    # Universe
    # ------------------------------------------------------------------ #

    def load_universe(
        self, asset_types: List[str], as_of_date: Optional[date] = None
    ) -> pd.DataFrame:
        """Active tickers of the given asset types joined to their latest snapshot."""
        tickers = self.ticker_repo.get_universe(asset_types)
        ticker_df = pd.DataFrame(
            [{col: getattr(t, col) for col in TICKER_COLUMNS} for t in tickers],
            columns=TICKER_COLUMNS,
        )
        if ticker_df.empty:
            return ticker_df

        query = self.snapshot_repo.latest_query(ticker_df["ticker"].tolist(), as_of_date)
        snapshots = pd.read_sql(query.statement, self.session.connection())
        snapshots = snapshots.drop(columns=["created_at", "updated_at"], errors="ignore")

        universe = ticker_df.merge(snapshots, on="ticker", how="left")
        logger.info(
            f"Loaded universe: {len(universe)} tickers, "
            f"{int(universe['as_of_date'].notna().sum())} with snapshots"
        )
        return universe

    # ------------------------------------------------------------------ #
    # Screening
    # ------------------------------------------------------------------ #

    def screen_index(self, index_id: str, as_of_date: Optional[date] = None) -> ScreeningResult:
        index_def = self.index_repo.get_index(index_id)
        if not index_def:
            raise IndexNotFoundError(index_id)
        config = load_index_config(index_def.config)
        return self.screen(config, as_of_date=as_of_date, index_id=index_id)

    def screen(
        self,
        config: IndexConfig,
        as_of_date: Optional[date] = None,
        index_id: Optional[str] = None,
    ) -> ScreeningResult:
        universe = self.load_universe(config.asset_types, as_of_date)
        return self.screen_frame(config, universe, index_id=index_id)

    def screen_frame(
        self,
        config: IndexConfig,
        universe: pd.DataFrame,
        index_id: Optional[str] = None,
    ) -> ScreeningResult:
        """
        Screen an already-loaded universe DataFrame.

        Raises:
            ConfigurationError: unknown strategy, quality field or ranking field.
        """
        label = index_id or "config"
        order_column = config.selection.order_column
        result = ScreeningResult(index_id=index_id)

        if universe.empty:
            logger.warning(f"[{label}] Empty universe; nothing to screen")
            return result

        df = universe.reset_index(drop=True).copy()

        # Exclusions are applied first and at lowest cost
        exclusion = DatasetFilter().add(
            exclude_tickers(config.excluded_tickers, config.excluded_ticker_patterns)
        )
        for ticker in exclusion.rejections(df):
            result.rejected[ticker] = Rejection(
                stage="exclusion", reason=self._exclusion_reason(ticker, config)
            )
        eligible = exclusion.apply(df)

        # Strategy valuation runs on the post-exclusion universe
        strategy_pool: Optional[List[str]] = None
        if config.quality.strategy:
            strategy = self.strategy_factory(config.quality.strategy)
            ranked = strategy.rank(eligible)
            strategy_pool = ranked["ticker"].tolist()
            eligible = self._merge_strategy_columns(eligible, ranked)
            logger.info(
                f"[{label}] Strategy '{config.quality.strategy.type}' ranked {len(strategy_pool)} candidates"
            )

        if order_column not in eligible.columns:
            raise ConfigurationError(f"Unknown ranking field '{config.selection.order_by}'")

        pipeline, stages = self._build_pipeline(config)
        result.summary = pipeline.summary(eligible)
        for ticker, predicate_name in pipeline.rejections(eligible).items():
            stage = stages[predicate_name]
            result.rejected[ticker] = Rejection(
                stage=stage, reason=self._filter_reason(stage, predicate_name, ticker, eligible, config)
            )
        passed = pipeline.apply(eligible).copy()

        if strategy_pool is not None:
            passed_set = set(passed["ticker"])
            for ticker in passed_set - set(strategy_pool):
                result.rejected[ticker] = Rejection(
                    stage="strategy",
                    reason=f"not ranked by strategy '{config.quality.strategy.type}'",
                )
            order = {t: i for i, t in enumerate(strategy_pool)}
            passed = passed[passed["ticker"].isin(order)].copy()
            passed["_strategy_rank"] = passed["ticker"].map(order)
            passed = passed.sort_values("_strategy_rank").drop(columns="_strategy_rank")
        else:
            passed["_order"] = pd.to_numeric(passed[order_column], errors="coerce")
            passed = passed.sort_values(
                ["_order", "ticker"],
                ascending=[config.selection.ascending, True],
                na_position="last",
            ).drop(columns="_order")

        ranked, duplicates = self._dedupe(passed)
        for ticker, kept in duplicates.items():
            result.rejected[ticker] = Rejection(stage="duplicate", reason=f"same company as {kept}")

        for _, row in eligible.iterrows():
            candidate = ScreeningCandidate.from_row(row.to_dict(), order_column)
            result.universe[candidate.ticker] = candidate
        for ticker in result.rejected:
            if ticker not in result.universe:
                row = df[df["ticker"] == ticker].iloc[0]
                result.universe[ticker] = ScreeningCandidate.from_row(row.to_dict(), order_column)

        result.ranked_pool = [result.universe[t] for t in ranked["ticker"]]
        result.selected, result.removed_by_diversification = self._select(
            result.ranked_pool, config
        )

        logger.info(
            f"[{label}] Screening: universe={len(df)}, passed={len(result.ranked_pool)}, "
            f"selected={len(result.selected)}, rejected={len(result.rejected)}"
        )
        if result.removed_by_diversification:
            logger.info(
                f"[{label}] Removed by diversification: {', '.join(result.removed_by_diversification)}"
            )
        return result

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _build_pipeline(self, config: IndexConfig) -> Tuple[DatasetFilter, Dict[str, str]]:
        pipeline = DatasetFilter()
        stages: Dict[str, str] = {}

        def add(predicate, stage):
            pipeline.add(predicate)
            stages[predicate.__name__] = stage

        if config.liquidity.min_average_daily_volume is not None:
            add(min_average_daily_volume(config.liquidity.min_average_daily_volume), "liquidity")
        for predicate in config.quality.predicates():
            add(predicate, "quality")
        if config.filters.min_upside is not None:
            add(min_upside(config.filters.min_upside), "upside")
        if config.filters.require_positive_upside:
            add(positive_upside(), "upside")

        return pipeline, stages

    @staticmethod
    def _merge_strategy_columns(eligible: pd.DataFrame, ranked: pd.DataFrame) -> pd.DataFrame:
        out = eligible.copy()
        overrides = ranked.set_index("ticker")
        for column in ("upside", "fair_value_model", "strategy_score"):
            if column not in overrides.columns:
                continue
            mapped = out["ticker"].map(overrides[column])
            if column in out.columns:
                out[column] = mapped.where(out["ticker"].isin(overrides.index), out[column])
            else:
                out[column] = mapped
        return out

    @staticmethod
    def _dedupe(ranked: pd.DataFrame) -> Tuple[pd.DataFrame, Dict[str, str]]:
        """Keep the best-ranked share class per company."""
        seen: Dict[str, str] = {}
        duplicates: Dict[str, str] = {}
        keep = []
        for ticker in ranked["ticker"]:
            base = company_base(ticker)
            if base in seen:
                duplicates[ticker] = seen[base]
                keep.append(False)
            else:
                seen[base] = ticker
                keep.append(True)
        return ranked[keep], duplicates

    @staticmethod
    def _select(
        pool: List[ScreeningCandidate], config: IndexConfig
    ) -> Tuple[List[ScreeningCandidate], List[str]]:
        top_n = config.selection.top_n
        bands = config.selection.score_bands
        diversification = config.diversification

        if bands:
            chosen = select_by_score_bands(pool, bands, top_n)
            baseline = chosen
            if diversification:
                chosen = apply_diversification(chosen, diversification, top_n)
        elif diversification:
            baseline = pool[:top_n]
            chosen = apply_diversification(pool, diversification, top_n)
        else:
            return pool[:top_n], []

        kept = {c.ticker for c in chosen}
        removed = [c.ticker for c in baseline if c.ticker not in kept]
        return chosen, removed

    @staticmethod
    def _exclusion_reason(ticker: str, config: IndexConfig) -> str:
        if ticker.upper() in {t.upper() for t in config.excluded_tickers}:
            return "listed in excludedTickers"
        for pattern in config.excluded_ticker_patterns:
            if matches_exclusion(ticker, patterns=[pattern]):
                return f"matches exclusion pattern '{pattern}'"
        return "excluded"

    @staticmethod
    def _filter_reason(
        stage: str,
        predicate_name: str,
        ticker: str,
        df: pd.DataFrame,
        config: IndexConfig,
    ) -> str:
        row = df[df["ticker"] == ticker].iloc[0].to_dict()
        if stage == "quality":
            failures = config.quality.failures(row)
            return "; ".join(failures) if failures else predicate_name
        if stage == "liquidity":
            volume = row.get("average_daily_volume")
            return (
                f"average daily volume {volume} below minimum "
                f"{config.liquidity.min_average_daily_volume:g}"
            )
        if stage == "upside":
            return f"upside {row.get('upside')} fails {predicate_name}"
        return predicate_name
