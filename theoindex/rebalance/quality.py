from typing import Dict, List, Sequence, Tuple

from theoindex.config.index_config import IndexConfig
from theoindex.filters.predicates import matches_exclusion
from theoindex.screening.models import ScreeningCandidate


def validate_candidate_quality(candidate: ScreeningCandidate, config: IndexConfig) -> List[str]:
    """
    Hard quality gate for one candidate.

    Checks exclusions, liquidity, every quality-tree leaf and the upside
    filters. Returns the failure reasons; an empty list means it passes.
    """
    reasons: List[str] = []

    if matches_exclusion(candidate.ticker, config.excluded_tickers, config.excluded_ticker_patterns):
        reasons.append("excluded by configuration")

    min_volume = config.liquidity.min_average_daily_volume
    if min_volume is not None:
        volume = candidate.get("average_daily_volume")
        if volume is None:
            reasons.append("average_daily_volume not available")
        elif volume < min_volume:
            reasons.append(f"average_daily_volume {volume:g} below minimum {min_volume:g}")

    for condition in config.quality.conditions:
        value = candidate.get(condition.column)
        if not condition.evaluate(value):
            reasons.append(condition.failure_reason(value))

    upside = candidate.upside
    if config.filters.min_upside is not None:
        if upside is None:
            reasons.append("upside not available")
        elif upside < config.filters.min_upside:
            reasons.append(f"upside {upside:g} below minimum {config.filters.min_upside:g}")
    if config.filters.require_positive_upside and (upside is None or upside <= 0):
        reasons.append("upside not positive")

    return reasons


def filter_by_quality(
    candidates: Sequence[ScreeningCandidate], config: IndexConfig
) -> Tuple[List[ScreeningCandidate], Dict[str, List[str]]]:
    """Split candidates into those passing the gate and failure reasons for the rest."""
    passed: List[ScreeningCandidate] = []
    failed: Dict[str, List[str]] = {}
    for candidate in candidates:
        reasons = validate_candidate_quality(candidate, config)
        if reasons:
            failed[candidate.ticker] = reasons
        else:
            passed.append(candidate)
    return passed, failed
