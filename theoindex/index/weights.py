"""Weighting scheme implementations for index composition."""

import logging
from typing import Dict, List, Sequence

from theoindex.config.index_config import WeightsConfig
from theoindex.screening.models import ScreeningCandidate
from .models import WeightingScheme

logger = logging.getLogger(__name__)


def compute_equal_weights(tickers: List[str]) -> Dict[str, float]:
    """
    Compute equal weights for all tickers.

    Each ticker gets weight = 1/N.
    """
    n = len(tickers)
    if n == 0:
        return {}
    weight = 1.0 / n
    return {ticker: weight for ticker in tickers}


def compute_market_cap_weights(
    candidates: Sequence[ScreeningCandidate],
) -> Dict[str, float]:
    """
    Compute market-cap-weighted weights.

    Weight = market_cap_i / sum(market_cap).
    Larger companies have more influence on the index.
    """
    total_mcap = sum(c.market_cap for c in candidates if c.market_cap)

    if total_mcap == 0:
        # Fallback to equal weight if no market cap data
        return compute_equal_weights([c.ticker for c in candidates])

    weights = {}
    for c in candidates:
        mcap = c.market_cap if c.market_cap else 0
        weights[c.ticker] = mcap / total_mcap

    return weights


def compute_score_weights(
    candidates: Sequence[ScreeningCandidate],
    min_weight: float,
    max_weight: float,
) -> Dict[str, float]:
    """
    Weights proportional to overall score, each kept within [min_weight, max_weight].

    Candidates without a score share whatever weight the scored ones leave.
    The bounds hold after normalisation whenever they are feasible for the
    number of constituents.
    """
    scored = [c for c in candidates if c.overall_score is not None]
    unscored = [c for c in candidates if c.overall_score is None]
    total_score = sum(c.overall_score for c in scored)

    if not scored or total_score <= 0:
        return compute_equal_weights([c.ticker for c in candidates])

    weights = {
        c.ticker: max(min_weight, min(max_weight, c.overall_score / total_score))
        for c in scored
    }
    assigned = sum(weights.values())
    remaining = max(0.0, 1.0 - assigned)
    for c in unscored:
        weights[c.ticker] = remaining / len(unscored)

    return _bounded_normalize(weights, min_weight, max_weight)


def normalize_custom_weights(
    custom_weights: Dict[str, float],
    tickers: List[str],
) -> Dict[str, float]:
    """
    Apply user-provided weights to the selected tickers and normalize to 1.0.

    Tickers without a custom weight share the unassigned remainder equally.
    """
    lookup = {k.upper(): v for k, v in custom_weights.items()}
    weights = {t: lookup[t.upper()] for t in tickers if lookup.get(t.upper()) is not None}
    missing = [t for t in tickers if t not in weights]

    total = sum(weights.values())
    if total <= 0:
        logger.warning("No usable custom weights; using equal weight")
        return compute_equal_weights(tickers)

    remaining = max(0.0, 1.0 - total)
    for t in missing:
        weights[t] = remaining / len(missing)

    return _normalize(weights)


def calculate_weights(
    candidates: Sequence[ScreeningCandidate],
    config: WeightsConfig,
) -> Dict[str, float]:
    """Target weights for a new composition; always sums to 1.0."""
    if not candidates:
        return {}

    tickers = [c.ticker for c in candidates]
    scheme = WeightingScheme(config.type)

    if scheme == WeightingScheme.EQUAL:
        weights = compute_equal_weights(tickers)
        if config.value is not None and abs(config.value - 1.0 / len(tickers)) > 1e-6:
            logger.warning(
                f"weights.value {config.value:.4f} does not match {len(tickers)} constituents; "
                f"using 1/{len(tickers)}"
            )
        return weights
    elif scheme == WeightingScheme.MARKET_CAP:
        return _normalize(compute_market_cap_weights(candidates))
    elif scheme == WeightingScheme.OVERALL_SCORE:
        return compute_score_weights(candidates, config.min_weight, config.max_weight)
    elif scheme == WeightingScheme.CUSTOM:
        if not config.custom_weights:
            logger.warning("Custom weighting without customWeights; using equal weight")
            return compute_equal_weights(tickers)
        return normalize_custom_weights(config.custom_weights, tickers)
    else:
        raise ValueError(f"Unknown weighting scheme: {scheme}")


def _normalize(weights: Dict[str, float]) -> Dict[str, float]:
    total = sum(weights.values())
    if total <= 0:
        return compute_equal_weights(list(weights))
    return {ticker: w / total for ticker, w in weights.items()}


def _bounded_normalize(
    weights: Dict[str, float],
    min_weight: float,
    max_weight: float,
) -> Dict[str, float]:
    """
    Normalise to 1.0 keeping every weight within [min_weight, max_weight].

    Weights that would cross a bound are pinned to it and the rest are
    rescaled over the remaining budget, until nothing crosses.
    """
    n = len(weights)
    if n * max_weight < 1.0 or n * min_weight > 1.0:
        logger.warning(
            f"Weight bounds [{min_weight}, {max_weight}] cannot hold for {n} constituents; "
            "normalising without them"
        )
        return _normalize(weights)

    pinned: Dict[str, float] = {}
    free = dict(weights)
    while free:
        budget = 1.0 - sum(pinned.values())
        total = sum(free.values())
        if total > 0:
            scaled = {t: w * budget / total for t, w in free.items()}
        else:
            scaled = {t: budget / len(free) for t in free}

        over = [t for t, w in scaled.items() if w > max_weight + 1e-12]
        under = [] if over else [t for t, w in scaled.items() if w < min_weight - 1e-12]
        if not over and not under:
            pinned.update(scaled)
            break
        for t in over:
            pinned[t] = max_weight
            del free[t]
        for t in under:
            pinned[t] = min_weight
            del free[t]

    result = {t: pinned[t] for t in weights}
    if abs(sum(result.values()) - 1.0) > 1e-9:
        return _normalize(result)
    return result
