from theoindex.config.index_config import DiversificationConfig, ScoreBand
from theoindex.screening.diversification import (
    apply_allocation,
    apply_diversification,
    apply_max_count,
    select_by_score_bands,
)
from theoindex.screening.models import OTHER_SECTOR, ScreeningCandidate


def _candidates(*specs):
    return [
        ScreeningCandidate(ticker=ticker, sector=sector, overall_score=score)
        for ticker, sector, score in specs
    ]


def _tickers(candidates):
    return [c.ticker for c in candidates]


RANKED = _candidates(
    ("BANK1", "Bancos", 9.0),
    ("BANK2", "Bancos", 8.0),
    ("BANK3", "Bancos", 7.5),
    ("ENER1", "Energia", 7.0),
    ("BANK4", "Bancos", 6.5),
    ("BANK5", "Bancos", 6.0),
    ("MINE1", "Mineracao", 5.0),
    ("ENER2", "Energia", 4.0),
)


def test_max_count_caps_sector_and_keeps_order():
    selected = apply_max_count(RANKED, {"Bancos": 2}, top_n=5)
    assert _tickers(selected) == ["BANK1", "BANK2", "ENER1", "MINE1", "ENER2"]


def test_max_count_defaults_to_four_per_sector():
    selected = apply_max_count(RANKED, {}, top_n=8)
    assert _tickers(selected) == ["BANK1", "BANK2", "BANK3", "ENER1", "BANK4", "MINE1", "ENER2"]


def test_missing_sector_is_grouped_as_other():
    candidates = _candidates(("AAAA3", None, 5.0), ("BBBB3", None, 4.0), ("CCCC3", "Bancos", 3.0))
    assert candidates[0].sector_key == OTHER_SECTOR

    selected = apply_max_count(candidates, {OTHER_SECTOR: 1}, top_n=3)
    assert _tickers(selected) == ["AAAA3", "CCCC3"]


def test_allocation_reserves_proportional_slots():
    # Energia 50% of 4 -> 2 slots, Bancos 25% -> 1, remainder from the ranking
    selected = apply_allocation(RANKED, {"Energia": 0.5, "Bancos": 0.25}, top_n=4)
    assert _tickers(selected) == ["BANK1", "BANK2", "ENER1", "ENER2"]


def test_allocation_normalises_totals_above_one():
    selected = apply_allocation(RANKED, {"Energia": 1.0, "Mineracao": 1.0}, top_n=4)
    assert set(_tickers(selected)) == {"ENER1", "ENER2", "MINE1", "BANK1"}
    assert _tickers(selected) == ["BANK1", "ENER1", "MINE1", "ENER2"]


def test_allocation_capped_by_supply():
    selected = apply_allocation(RANKED, {"Mineracao": 0.75}, top_n=4)
    assert _tickers(selected) == ["BANK1", "BANK2", "BANK3", "MINE1"]


def test_apply_diversification_dispatches_on_type():
    config = DiversificationConfig(type="maxCount", max_count_per_sector={"Bancos": 1})
    assert _tickers(apply_diversification(RANKED, config, top_n=3)) == ["BANK1", "ENER1", "MINE1"]

    empty_allocation = DiversificationConfig(type="allocation")
    assert _tickers(apply_diversification(RANKED, empty_allocation, top_n=2)) == ["BANK1", "BANK2"]


def test_score_bands_take_from_highest_band_first():
    bands = [
        ScoreBand(min=0, max=6.9, max_count=1),
        ScoreBand(min=7, max=10, max_count=2),
    ]
    selected = select_by_score_bands(RANKED, bands, top_n=4)

    # two from [7, 10], one from [0, 6.9], then fill from the ranking
    assert _tickers(selected) == ["BANK1", "BANK2", "BANK4", "BANK3"]


def test_score_bands_never_exceed_top_n():
    bands = [ScoreBand(min=0, max=10, max_count=10)]
    assert len(select_by_score_bands(RANKED, bands, top_n=3)) == 3


def test_score_bands_skip_unscored_candidates():
    candidates = _candidates(("AAAA3", "Bancos", None), ("BBBB3", "Bancos", 8.0))
    bands = [ScoreBand(min=0, max=10, max_count=1)]

    assert _tickers(select_by_score_bands(candidates, bands, top_n=1)) == ["BBBB3"]
