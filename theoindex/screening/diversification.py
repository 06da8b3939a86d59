"""
Sector diversification and score-band selection.

All functions take candidates already in ranking order (best first) and
preserve that order within each sector / band.
"""

import logging
import math
from typing import Dict, List, Sequence

from theoindex.config.index_config import DiversificationConfig, ScoreBand
from .models import ScreeningCandidate

logger = logging.getLogger(__name__)

DEFAULT_MAX_COUNT_PER_SECTOR = 4


def apply_allocation(
    candidates: Sequence[ScreeningCandidate],
    sector_allocation: Dict[str, float],
    top_n: int,
) -> List[ScreeningCandidate]:
    """
    Fill each sector's proportional slot count (ceil(top_n * pct), capped by
    supply), then fill the remainder with the best leftovers across sectors.
    Allocations summing above 100% are normalised first.
    """
    allocation = dict(sector_allocation)
    total = sum(allocation.values())
    if total > 1.0:
        logger.warning(f"Sector allocation sums to {total:.1%}; normalising")
        allocation = {sector: pct / total for sector, pct in allocation.items()}

    by_sector: Dict[str, List[ScreeningCandidate]] = {}
    for candidate in candidates:
        by_sector.setdefault(candidate.sector_key, []).append(candidate)

    picked = set()
    for sector, members in by_sector.items():
        pct = allocation.get(sector, 0.0)
        if pct <= 0:
            continue
        target = min(math.ceil(top_n * pct), len(members))
        for candidate in members[:target]:
            picked.add(candidate.ticker)

    # Keep global ranking order in the output
    selected = [c for c in candidates if c.ticker in picked]
    if len(selected) < top_n:
        for candidate in candidates:
            if len(selected) >= top_n:
                break
            if candidate.ticker not in picked:
                selected.append(candidate)
                picked.add(candidate.ticker)

    return _ranked_subset(candidates, selected)[:top_n]


def apply_max_count(
    candidates: Sequence[ScreeningCandidate],
    max_count_per_sector: Dict[str, int],
    top_n: int,
) -> List[ScreeningCandidate]:
    """
    Walk the ranked list admitting a candidate while its sector is under cap.

    With an empty cap map every sector is capped at 4; otherwise sectors
    missing from the map are uncapped.
    """
    default_cap = None if max_count_per_sector else DEFAULT_MAX_COUNT_PER_SECTOR
    counts: Dict[str, int] = {}
    selected: List[ScreeningCandidate] = []

    for candidate in candidates:
        if len(selected) >= top_n:
            break
        sector = candidate.sector_key
        cap = max_count_per_sector.get(sector, default_cap)
        current = counts.get(sector, 0)
        if cap is not None and current >= cap:
            continue
        selected.append(candidate)
        counts[sector] = current + 1

    return selected


def select_by_score_bands(
    candidates: Sequence[ScreeningCandidate],
    bands: Sequence[ScoreBand],
    top_n: int,
) -> List[ScreeningCandidate]:
    """
    Take up to maxCount candidates from each overall-score band, highest
    band first, then fill up to top_n from the overall ranking.
    """
    used = set()
    selected: List[ScreeningCandidate] = []

    for band in sorted(bands, key=lambda b: b.min, reverse=True):
        taken = 0
        for candidate in candidates:
            if taken >= band.max_count:
                break
            score = candidate.overall_score
            if candidate.ticker in used or score is None:
                continue
            if band.min <= score <= band.max:
                selected.append(candidate)
                used.add(candidate.ticker)
                taken += 1
        logger.debug(f"Score band [{band.min}-{band.max}]: {taken}/{band.max_count}")

    for candidate in candidates:
        if len(selected) >= top_n:
            break
        if candidate.ticker not in used:
            selected.append(candidate)
            used.add(candidate.ticker)

    return selected[:top_n]


def apply_diversification(
    candidates: Sequence[ScreeningCandidate],
    config: DiversificationConfig,
    top_n: int,
) -> List[ScreeningCandidate]:
    if config.type == "maxCount":
        return apply_max_count(candidates, config.max_count_per_sector, top_n)
    if config.type == "allocation" and config.sector_allocation:
        return apply_allocation(candidates, config.sector_allocation, top_n)
    return list(candidates)[:top_n]


def _ranked_subset(
    ranked: Sequence[ScreeningCandidate], chosen: Sequence[ScreeningCandidate]
) -> List[ScreeningCandidate]:
    keep = {c.ticker for c in chosen}
    return [c for c in ranked if c.ticker in keep]
