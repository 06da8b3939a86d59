import pytest

from theoindex.config.index_config import load_index_config
from theoindex.rebalance.decision import (
    apply_hysteresis,
    compare_composition,
    generate_rebalance_reason,
    hysteresis_margin,
    should_rebalance,
)
from theoindex.rebalance.models import CompositionChange
from theoindex.rebalance.quality import filter_by_quality, validate_candidate_quality
from theoindex.screening.models import Rejection, ScreeningCandidate, ScreeningResult


def _candidate(ticker, upside=None, **fields):
    return ScreeningCandidate(ticker=ticker, upside=upside, fields=fields)


def _screening(candidates, top_n=3, rejected=None, key="upside", ascending=False):
    rejected = rejected or {}
    pool = [c for c in candidates if c.ticker not in rejected and c.get(key) is not None]
    pool.sort(key=lambda c: c.get(key), reverse=not ascending)
    return ScreeningResult(
        selected=pool[:top_n],
        ranked_pool=pool,
        universe={c.ticker: c for c in candidates},
        rejected=rejected,
    )


def _config(**overrides):
    raw = {"selection": {"topN": 3, "orderBy": "upside"}, "rebalance": {"threshold": 0.05}}
    raw.update(overrides)
    return load_index_config(raw)


def test_margin_in_points_for_upside_and_relative_otherwise():
    assert hysteresis_margin(_config(), 10.0) == pytest.approx(5.0)

    by_score = _config(selection={"orderBy": "overallScore"}, rebalance={"threshold": 0.1})
    assert hysteresis_margin(by_score, 8.0) == pytest.approx(0.8)
    assert hysteresis_margin(by_score, None) == 0.0


def test_challenger_within_margin_does_not_replace():
    candidates = [_candidate("AAAA3", 20), _candidate("BBBB3", 15), _candidate("CCCC3", 10), _candidate("DDDD3", 14)]
    result = apply_hysteresis(["AAAA3", "BBBB3", "CCCC3"], _screening(candidates), _config())

    assert set(result.tickers) == {"AAAA3", "BBBB3", "CCCC3"}
    assert not should_rebalance(["AAAA3", "BBBB3", "CCCC3"], result.proposed)


def test_challenger_above_margin_replaces_worst():
    candidates = [_candidate("AAAA3", 20), _candidate("BBBB3", 15), _candidate("CCCC3", 10), _candidate("DDDD3", 16)]
    current = ["AAAA3", "BBBB3", "CCCC3"]
    screening = _screening(candidates)
    result = apply_hysteresis(current, screening, _config())

    assert result.tickers == ["AAAA3", "DDDD3", "BBBB3"]
    assert result.exit_reasons["CCCC3"].startswith("replaced by DDDD3")
    assert result.entry_reasons["DDDD3"].startswith("replaced CCCC3")

    changes = compare_composition(current, result.proposed, screening, result.exit_reasons, result.entry_reasons)
    assert [(c.action, c.ticker) for c in changes] == [("EXIT", "CCCC3"), ("ENTRY", "DDDD3")]
    assert should_rebalance(current, result.proposed)


def test_quality_failure_evicts_regardless_of_rank():
    candidates = [
        _candidate("AAAA3", 20, roe=0.2),
        _candidate("BBBB3", 15, roe=0.2),
        _candidate("CCCC3", 30, roe=0.05),
        _candidate("DDDD3", 11, roe=0.2),
    ]
    config = _config(quality={"roe": {"gte": 0.1}})
    screening = _screening(candidates, rejected={"CCCC3": Rejection(stage="quality", reason="roe 0.05 below minimum 0.1")})

    result = apply_hysteresis(["AAAA3", "BBBB3", "CCCC3"], screening, config)

    assert set(result.tickers) == {"AAAA3", "BBBB3", "DDDD3"}
    assert result.exit_reasons["CCCC3"] == "failed quality gate: roe 0.05 below minimum 0.1"
    assert result.entry_reasons["DDDD3"].startswith("filled vacancy")


def test_quality_gate_can_be_disabled():
    candidates = [
        _candidate("AAAA3", 20, roe=0.2),
        _candidate("BBBB3", 15, roe=0.2),
        _candidate("CCCC3", 10, roe=0.05),
        _candidate("DDDD3", 11, roe=0.2),
    ]
    config = _config(quality={"roe": {"gte": 0.1}}, rebalance={"threshold": 0.05, "checkQuality": False})
    screening = _screening(candidates, rejected={"CCCC3": Rejection(stage="quality", reason="roe")})

    result = apply_hysteresis(["AAAA3", "BBBB3", "CCCC3"], screening, config)
    assert set(result.tickers) == {"AAAA3", "BBBB3", "CCCC3"}


def test_exclusion_and_delisting_always_evict():
    candidates = [_candidate("AAAA3", 20), _candidate("TAEE5", 40), _candidate("DDDD3", 11), _candidate("EEEE3", 9)]
    screening = _screening(
        candidates,
        rejected={"TAEE5": Rejection(stage="exclusion", reason="matches exclusion pattern '*5'")},
    )
    config = _config(excludedTickerPatterns=["*5"], rebalance={"threshold": 0.05, "checkQuality": False})

    result = apply_hysteresis(["AAAA3", "TAEE5", "GONE3"], screening, config)

    assert result.exit_reasons["TAEE5"] == "excluded: matches exclusion pattern '*5'"
    assert result.exit_reasons["GONE3"] == "no longer in the tradable universe"
    assert set(result.tickers) == {"AAAA3", "DDDD3", "EEEE3"}


def test_other_share_class_of_held_company_is_not_a_challenger():
    candidates = [_candidate("PETR3", 5), _candidate("PETR4", 30), _candidate("AAAA3", 20), _candidate("BBBB3", 15)]
    result = apply_hysteresis(["PETR3", "AAAA3", "BBBB3"], _screening(candidates), _config())

    assert set(result.tickers) == {"PETR3", "AAAA3", "BBBB3"}


def test_worst_without_value_is_replaced():
    candidates = [_candidate("AAAA3", 20), _candidate("BBBB3", 15), _candidate("CCCC3", None), _candidate("DDDD3", 6)]
    result = apply_hysteresis(["AAAA3", "BBBB3", "CCCC3"], _screening(candidates), _config())

    assert set(result.tickers) == {"AAAA3", "BBBB3", "DDDD3"}
    assert "n/a" in result.exit_reasons["CCCC3"]


def test_ascending_ranking_field():
    candidates = [
        _candidate("AAAA3", pl=10.0),
        _candidate("BBBB3", pl=8.0),
        _candidate("DDDD3", pl=7.0),
    ]
    config = _config(
        selection={"topN": 2, "orderBy": "pl", "orderDirection": "asc"},
        rebalance={"threshold": 0.1},
    )
    screening = _screening(candidates, top_n=2, key="pl", ascending=True)

    # advantage 3.0 beats 10% of 10.0
    result = apply_hysteresis(["AAAA3", "BBBB3"], screening, config)
    assert result.tickers == ["DDDD3", "BBBB3"]


def test_smaller_top_n_trims_worst():
    candidates = [_candidate("AAAA3", 20), _candidate("BBBB3", 15), _candidate("CCCC3", 10)]
    config = _config(selection={"topN": 2, "orderBy": "upside"})

    result = apply_hysteresis(["AAAA3", "BBBB3", "CCCC3"], _screening(candidates, top_n=2), config)

    assert result.tickers == ["AAAA3", "BBBB3"]
    assert result.exit_reasons["CCCC3"].startswith("outside top 2")


def test_initial_composition_is_the_ideal_list():
    candidates = [_candidate("AAAA3", 20), _candidate("BBBB3", 15), _candidate("CCCC3", 10), _candidate("DDDD3", 5)]
    screening = _screening(candidates)
    result = apply_hysteresis([], screening, _config())

    assert result.tickers == ["AAAA3", "BBBB3", "CCCC3"]
    changes = compare_composition([], result.proposed, screening, result.exit_reasons, result.entry_reasons)
    assert generate_rebalance_reason(changes, _config(), is_initial=True) == (
        "Initial composition: 3 constituents (AAAA3, BBBB3, CCCC3)"
    )


def test_should_rebalance_requires_a_non_empty_proposal():
    assert not should_rebalance(["AAAA3"], [])
    assert should_rebalance([], [_candidate("AAAA3", 1)])


def test_exit_reason_falls_back_to_screening_outcome():
    screening = _screening([_candidate("AAAA3", 20)], rejected={"BBBB3": Rejection(stage="liquidity", reason="too thin")})
    screening.removed_by_diversification = ["CCCC3"]

    changes = compare_composition(["BBBB3", "CCCC3"], screening.selected, screening)

    assert changes == [
        CompositionChange(action="EXIT", ticker="BBBB3", reason="liquidity: too thin"),
        CompositionChange(action="EXIT", ticker="CCCC3", reason="removed by sector diversification"),
        CompositionChange(action="ENTRY", ticker="AAAA3", reason="rank 1, upside 20.00%, score n/a"),
    ]


def test_rebalance_reason_lists_changes():
    changes = [
        CompositionChange(action="EXIT", ticker="CCCC3", reason="x"),
        CompositionChange(action="ENTRY", ticker="DDDD3", reason="y"),
    ]
    reason = generate_rebalance_reason(changes, _config())

    assert reason == (
        "Rebalance: 1 exit(s), 1 entry(ies); out: CCCC3; in: DDDD3; "
        "ranking upside, hysteresis margin 5.0 points"
    )


def test_validate_candidate_quality():
    config = _config(
        excludedTickers=["PETR4"],
        liquidity={"minAverageDailyVolume": 1e6},
        quality={"roe": {"gte": 0.1}},
        filters={"requirePositiveUpside": True},
    )
    good = ScreeningCandidate(ticker="AAAA3", upside=10, average_daily_volume=5e6, fields={"roe": 0.2})
    bad = ScreeningCandidate(ticker="PETR4", upside=-1, fields={"roe": None})

    assert validate_candidate_quality(good, config) == []
    assert validate_candidate_quality(bad, config) == [
        "excluded by configuration",
        "average_daily_volume not available",
        "roe not available",
        "upside not positive",
    ]

    passed, failed = filter_by_quality([good, bad], config)
    assert [c.ticker for c in passed] == ["AAAA3"]
    assert list(failed) == ["PETR4"]


def test_zero_valued_worst_needs_an_absolute_lead():
    config = _config(selection={"topN": 1, "orderBy": "dividendYield"})
    assert hysteresis_margin(config, 0.0) == pytest.approx(0.05)

    noise = [_candidate("AAAA3", dividend_yield=0.0), _candidate("BBBB3", dividend_yield=1e-9)]
    result = apply_hysteresis(["AAAA3"], _screening(noise, top_n=1, key="dividend_yield"), config)
    assert result.tickers == ["AAAA3"]

    real = [_candidate("AAAA3", dividend_yield=0.0), _candidate("BBBB3", dividend_yield=0.08)]
    result = apply_hysteresis(["AAAA3"], _screening(real, top_n=1, key="dividend_yield"), config)
    assert result.tickers == ["BBBB3"]
