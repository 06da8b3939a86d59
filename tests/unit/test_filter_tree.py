import math

import pandas as pd
import pytest

from theoindex.errors import ConfigurationError
from theoindex.filters.composer import DatasetFilter
from theoindex.filters.tree import FilterTree, parse_quality_block, resolve_field


def test_resolve_field_aliases_and_camel_case():
    assert resolve_field("roe") == "roe"
    assert resolve_field("netMargin") == "net_margin"
    assert resolve_field("dy") == "dividend_yield"
    assert resolve_field("margemLiquida") == "net_margin"
    assert resolve_field("overallScore") == "overall_score"


def test_parse_quality_block_builds_conditions_and_strategy():
    tree = parse_quality_block({
        "roe": {"gte": 0.1},
        "pl": {"gt": 0, "lte": 15},
        "strategy": {"type": "graham", "params": {"marginOfSafety": 0.2}},
    })

    assert len(tree.conditions) == 3
    assert tree.fields == ["pl", "roe"]
    assert tree.strategy.type == "graham"
    assert tree.strategy.params == {"marginOfSafety": 0.2}


def test_parse_empty_block():
    assert parse_quality_block(None).conditions == []
    assert parse_quality_block({}).strategy is None


@pytest.mark.parametrize(
    "block",
    [
        {"roe": {"between": 0.1}},
        {"roe": {"gte": "high"}},
        {"roe": {"gte": True}},
        {"roe": 0.1},
        {"strategy": {"params": {}}},
        {"strategy": {"type": "graham", "params": [1, 2]}},
    ],
)
def test_parse_rejects_malformed_blocks(block):
    with pytest.raises(ConfigurationError):
        parse_quality_block(block)


def test_missing_value_fails_every_operator():
    tree = parse_quality_block({"roe": {"lte": 0.5}})
    condition = tree.conditions[0]

    assert condition.evaluate(None) is False
    assert condition.evaluate(math.nan) is False
    assert condition.evaluate(0.0) is True
    assert condition.failure_reason(None) == "roe not available"


def test_failures_describe_each_condition():
    tree = parse_quality_block({"roe": {"gte": 0.1}, "pl": {"lt": 10}})

    assert tree.failures({"roe": 0.08, "pl": 12}) == [
        "roe 0.08 below minimum 0.1",
        "pl 12 not below 10",
    ]
    assert tree.failures({"roe": 0.2, "pl": 5}) == []


def test_quality_predicates_treat_null_as_failure():
    df = pd.DataFrame({
        "ticker": ["AAAA3", "BBBB3", "CCCC3"],
        "roe": [0.2, None, 0.05],
    })
    tree = parse_quality_block({"roe": {"gte": 0.1}})

    assert DatasetFilter(tree.predicates()).apply(df)["ticker"].tolist() == ["AAAA3"]


def test_unknown_quality_column_is_configuration_error():
    df = pd.DataFrame({"ticker": ["AAAA3"], "roe": [0.2]})
    tree = parse_quality_block({"ebitdaMargin": {"gte": 0.1}})

    with pytest.raises(ConfigurationError, match="ebitdaMargin"):
        DatasetFilter(tree.predicates()).apply(df)


def test_quality_block_survives_serialization():
    block = {"roe": {"gte": 0.1}, "strategy": {"type": "lowPE", "params": {"maxPE": 12}}}
    tree = parse_quality_block(block)

    assert parse_quality_block(tree.to_quality_block()) == tree
    assert isinstance(parse_quality_block(tree), FilterTree)
