"""
Rebalance decision rules.

A current constituent is only evicted when it fails the hard gate (excluded,
no longer tradable, or failing quality when checkQuality is on) or when a
challenger beats the worst current constituent on the ranking metric by
more than the configured margin.
"""

import logging
import math
from typing import Dict, List, Optional, Sequence

from theoindex.config.index_config import IndexConfig, PERCENT_FIELDS
from theoindex.screening.models import ScreeningCandidate, ScreeningResult
from theoindex.screening.service import company_base
from .models import CompositionChange, HysteresisResult
from .quality import validate_candidate_quality

logger = logging.getLogger(__name__)


def _fmt(value: Optional[float], suffix: str = "") -> str:
    return "n/a" if value is None else f"{value:.2f}{suffix}"


def describe_candidate(candidate: ScreeningCandidate, screening: ScreeningResult) -> str:
    rank = screening.rank_of(candidate.ticker)
    parts = [f"rank {rank}" if rank else "unranked"]
    parts.append(f"upside {_fmt(candidate.upside, '%')}")
    parts.append(f"score {_fmt(candidate.overall_score)}")
    return ", ".join(parts)


def hysteresis_margin(config: IndexConfig, worst_value: Optional[float]) -> float:
    """
    Minimum advantage a challenger needs over the worst constituent.

    For percent-valued metrics (upside) the threshold is in percentage
    points, so 0.05 means 5 points; otherwise it is relative to the worst
    value, never below the threshold itself so a worst value of 0 still
    needs an absolute lead.
    """
    threshold = config.rebalance.threshold
    if config.ranking_column in PERCENT_FIELDS:
        return threshold * 100
    if worst_value is None:
        return 0.0
    return max(threshold * abs(worst_value), threshold)


def apply_hysteresis(
    current: Sequence[str],
    screening: ScreeningResult,
    config: IndexConfig,
) -> HysteresisResult:
    """Decide the proposed composition from the current one and the ideal."""
    column = config.ranking_column
    sign = -1.0 if config.selection.ascending else 1.0
    top_n = config.selection.top_n
    result = HysteresisResult()

    def metric(c: ScreeningCandidate) -> Optional[float]:
        return c.get(column)

    def sort_key(c: ScreeningCandidate):
        value = metric(c)
        # best first, missing values last, ticker as tie-break
        return (value is None, -sign * value if value is not None else 0.0, c.ticker)

    retained: List[ScreeningCandidate] = []
    for ticker in current:
        candidate = screening.universe.get(ticker)
        rejection = screening.rejected.get(ticker)
        if candidate is None:
            result.exit_reasons[ticker] = "no longer in the tradable universe"
            continue
        if rejection is not None and rejection.stage == "exclusion":
            result.exit_reasons[ticker] = f"excluded: {rejection.reason}"
            continue
        if config.rebalance.check_quality:
            failures = validate_candidate_quality(candidate, config)
            if failures:
                result.exit_reasons[ticker] = f"failed quality gate: {'; '.join(failures)}"
                continue
        retained.append(candidate)

    retained.sort(key=sort_key)
    while len(retained) > top_n:
        dropped = retained.pop()
        result.exit_reasons[dropped.ticker] = f"outside top {top_n} ({describe_candidate(dropped, screening)})"

    held = {c.ticker for c in retained}
    held_bases = {company_base(t) for t in held}
    challengers = [
        c for c in screening.selected
        if c.ticker not in held and company_base(c.ticker) not in held_bases
    ]

    # Vacancies are filled from the ideal list in ranking order
    while len(retained) < top_n and challengers:
        candidate = challengers.pop(0)
        retained.append(candidate)
        result.entry_reasons[candidate.ticker] = (
            f"filled vacancy ({describe_candidate(candidate, screening)})"
        )

    # One-for-one swaps while the best challenger clears the margin
    challengers.sort(key=sort_key)
    while challengers and retained:
        retained.sort(key=sort_key)
        worst = retained[-1]
        challenger = challengers[0]
        challenger_value = metric(challenger)
        worst_value = metric(worst)
        if challenger_value is None:
            break
        margin = hysteresis_margin(config, worst_value)
        advantage = math.inf if worst_value is None else sign * (challenger_value - worst_value)
        if advantage <= margin:
            logger.debug(
                f"Keeping {worst.ticker}: {challenger.ticker} advantage {advantage:.4f} <= margin {margin:.4f}"
            )
            break

        challengers.pop(0)
        retained[-1] = challenger
        result.exit_reasons.pop(challenger.ticker, None)
        if worst.ticker in result.entry_reasons:
            del result.entry_reasons[worst.ticker]
        else:
            result.exit_reasons[worst.ticker] = (
                f"replaced by {challenger.ticker}: {column} {_fmt(worst_value)} vs "
                f"{_fmt(challenger_value)} (margin {margin:.2f})"
            )
        result.entry_reasons[challenger.ticker] = (
            f"replaced {worst.ticker} ({describe_candidate(challenger, screening)}, "
            f"advantage {_fmt(advantage if advantage != math.inf else None)} > margin {margin:.2f})"
        )

    result.proposed = sorted(retained, key=sort_key)
    return result


def compare_composition(
    current: Sequence[str],
    proposed: Sequence[ScreeningCandidate],
    screening: Optional[ScreeningResult] = None,
    exit_reasons: Optional[Dict[str, str]] = None,
    entry_reasons: Optional[Dict[str, str]] = None,
) -> List[CompositionChange]:
    """EXIT rows for dropped tickers, then ENTRY rows for new ones, each with a reason."""
    exit_reasons = exit_reasons or {}
    entry_reasons = entry_reasons or {}
    current_set = set(current)
    proposed_set = {c.ticker for c in proposed}

    changes: List[CompositionChange] = []
    for ticker in sorted(current_set - proposed_set):
        reason = exit_reasons.get(ticker)
        if reason is None and screening is not None:
            rejection = screening.rejected.get(ticker)
            if rejection is not None:
                reason = f"{rejection.stage}: {rejection.reason}"
            elif ticker in screening.removed_by_diversification:
                reason = "removed by sector diversification"
            else:
                rank = screening.rank_of(ticker)
                reason = f"outside selection (rank {rank})" if rank else "not selected"
        changes.append(CompositionChange(action="EXIT", ticker=ticker, reason=reason or "not selected"))

    for candidate in proposed:
        if candidate.ticker in current_set:
            continue
        reason = entry_reasons.get(candidate.ticker)
        if reason is None:
            reason = (
                describe_candidate(candidate, screening) if screening is not None else "selected"
            )
        changes.append(CompositionChange(action="ENTRY", ticker=candidate.ticker, reason=reason))

    return changes


def should_rebalance(current: Sequence[str], proposed: Sequence[ScreeningCandidate]) -> bool:
    """True iff the proposed ticker set differs from the current one."""
    if not proposed:
        return False
    return set(current) != {c.ticker for c in proposed}


def generate_rebalance_reason(
    changes: Sequence[CompositionChange],
    config: IndexConfig,
    is_initial: bool = False,
) -> str:
    entries = [c.ticker for c in changes if c.action == "ENTRY"]
    exits = [c.ticker for c in changes if c.action == "EXIT"]
    if is_initial:
        return f"Initial composition: {len(entries)} constituents ({', '.join(entries)})"

    threshold = config.rebalance.threshold
    margin = (
        f"{threshold * 100:.1f} points"
        if config.ranking_column in PERCENT_FIELDS
        else f"{threshold:.1%}"
    )
    parts = [f"Rebalance: {len(exits)} exit(s), {len(entries)} entry(ies)"]
    if exits:
        parts.append(f"out: {', '.join(exits)}")
    if entries:
        parts.append(f"in: {', '.join(entries)}")
    parts.append(f"ranking {config.ranking_column}, hysteresis margin {margin}")
    return "; ".join(parts)
