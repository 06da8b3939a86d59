import pandas as pd
import pytest

from theoindex.filters.composer import DatasetFilter
from theoindex.filters.predicates import (
    exclude_tickers,
    matches_exclusion,
    min_average_daily_volume,
    min_upside,
    positive_upside,
)


@pytest.fixture
def universe():
    return pd.DataFrame({
        "ticker": ["PETR4", "VALE3", "TAEE11", "ITSA4", "BBSE3"],
        "asset_type": ["STOCK", "STOCK", "STOCK", "STOCK", "BDR"],
        "average_daily_volume": [5e8, 3e8, 2e6, None, 1e8],
        "upside": [25.0, -5.0, 10.0, 40.0, None],
        "roe": [0.2, 0.15, 0.3, 0.12, 0.25],
    })


@pytest.mark.parametrize(
    "ticker,excluded,patterns,expected",
    [
        ("PETR4", ["PETR4"], [], True),
        ("petr4", ["PETR4"], [], True),
        ("TAEE5", [], ["*5"], True),
        ("TAEE11", [], ["*5"], False),
        ("BBDC4", [], ["BBDC?"], True),
        ("BBDC", [], ["BBDC?"], False),
        ("PETR3", [], ["petr*"], True),
        ("VALE3", ["PETR4"], ["*5"], False),
    ],
)
def test_matches_exclusion(ticker, excluded, patterns, expected):
    assert matches_exclusion(ticker, excluded, patterns) is expected


def test_exclude_tickers(universe):
    result = exclude_tickers(["VALE3"], ["*11"])(universe)
    assert universe.loc[result, "ticker"].tolist() == ["PETR4", "ITSA4", "BBSE3"]


def test_liquidity_missing_volume_fails(universe):
    result = min_average_daily_volume(1e7)(universe)
    assert universe.loc[result, "ticker"].tolist() == ["PETR4", "VALE3", "BBSE3"]


def test_upside_filters(universe):
    assert universe.loc[min_upside(20)(universe), "ticker"].tolist() == ["PETR4", "ITSA4"]
    assert universe.loc[positive_upside()(universe), "ticker"].tolist() == ["PETR4", "TAEE11", "ITSA4"]


def test_composer_applies_and_logic(universe):
    pipeline = (
        DatasetFilter()
        .add(min_average_daily_volume(1e7))
        .add(positive_upside())
    )
    assert pipeline.apply(universe)["ticker"].tolist() == ["PETR4"]


def test_composer_without_predicates_returns_input(universe):
    assert len(DatasetFilter().apply(universe)) == len(universe)


def test_rejections_report_first_failing_predicate(universe):
    pipeline = DatasetFilter([exclude_tickers(["PETR4"]), min_average_daily_volume(1e7), positive_upside()])

    assert pipeline.rejections(universe) == {
        "PETR4": "exclusions",
        "TAEE11": "liquidity",
        "ITSA4": "liquidity",
        "VALE3": "positive_upside",
        "BBSE3": "positive_upside",
    }


def test_summary_counts(universe):
    summary = DatasetFilter().add(min_average_daily_volume(1e7)).add(positive_upside()).summary(universe)

    assert summary["original_count"] == 5
    assert summary["final_count"] == 1
    assert [s["dropped"] for s in summary["steps"]] == [2, 2]
