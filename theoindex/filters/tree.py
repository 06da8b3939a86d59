"""
Typed filter tree for the `quality` block of an index configuration.

The block is parsed once, when the configuration is loaded, into a list of
FieldCondition leaves (implicitly AND-ed) plus an optional StrategyRef.
Evaluation walks the leaves; nothing is generated or evaluated as code.
"""

import math
import operator
import re
from typing import Any, Callable, Dict, List, Mapping, Optional
import pandas as pd
from pydantic import BaseModel, Field

from theoindex.errors import ConfigurationError
from .predicates import FilterPredicate

OPERATORS: Dict[str, Callable[[Any, Any], Any]] = {
    "gte": operator.ge,
    "lte": operator.le,
    "gt": operator.gt,
    "lt": operator.lt,
    "equals": operator.eq,
}

FAILURE_WORDING = {
    "gte": "below minimum",
    "lte": "above maximum",
    "gt": "not above",
    "lt": "not below",
    "equals": "not equal to",
}

# Config keys that do not snake-case onto a snapshot column
FIELD_ALIASES = {
    "margemLiquida": "net_margin",
    "dividaLiquidaEbitda": "net_debt_ebitda",
    "overallScore": "overall_score",
    "marketCap": "market_cap",
    "dy": "dividend_yield",
    "dividendYield": "dividend_yield",
    "averageDailyVolume": "average_daily_volume",
    "lpa": "eps",
    "vpa": "book_value_per_share",
}

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def resolve_field(name: str) -> str:
    """Map a configuration field name onto the universe DataFrame column."""
    if name in FIELD_ALIASES:
        return FIELD_ALIASES[name]
    return _CAMEL_RE.sub("_", name).lower()


def is_missing(value: Any) -> bool:
    if value is None:
        return True
    try:
        return math.isnan(value)
    except TypeError:
        return False


class FieldCondition(BaseModel):
    """Leaf node: `<field> <operator> <value>`."""

    field: str
    column: str
    operator: str
    value: float

    def mask(self, df: pd.DataFrame) -> pd.Series:
        if self.column not in df.columns:
            raise ConfigurationError(f"Unknown quality field '{self.field}'")
        values = pd.to_numeric(df[self.column], errors="coerce")
        # NaN compares False under every operator, so missing data fails
        return OPERATORS[self.operator](values, self.value) & values.notna()

    def evaluate(self, value: Any) -> bool:
        if is_missing(value):
            return False
        return bool(OPERATORS[self.operator](float(value), self.value))

    def label(self) -> str:
        return f"{self.column}_{self.operator}_{self.value:g}"

    def failure_reason(self, value: Any) -> str:
        if is_missing(value):
            return f"{self.column} not available"
        return f"{self.column} {float(value):g} {FAILURE_WORDING[self.operator]} {self.value:g}"


class StrategyRef(BaseModel):
    """Reference to a named ranking strategy and its parameters."""

    type: str
    params: Dict[str, Any] = Field(default_factory=dict)


class FilterTree(BaseModel):
    conditions: List[FieldCondition] = Field(default_factory=list)
    strategy: Optional[StrategyRef] = None

    @property
    def fields(self) -> List[str]:
        return sorted({c.column for c in self.conditions})

    def predicates(self) -> List[FilterPredicate]:
        """One named predicate per leaf, for DatasetFilter composition."""
        result = []
        for condition in self.conditions:
            def predicate(df: pd.DataFrame, condition=condition) -> pd.Series:
                return condition.mask(df)
            predicate.__name__ = condition.label()
            result.append(predicate)
        return result

    def failures(self, row: Mapping[str, Any]) -> List[str]:
        """Reasons a single candidate fails the tree; empty when it passes."""
        reasons = []
        for condition in self.conditions:
            value = row.get(condition.column)
            if not condition.evaluate(value):
                reasons.append(condition.failure_reason(value))
        return reasons

    def to_quality_block(self) -> Dict[str, Any]:
        block: Dict[str, Any] = {}
        for condition in self.conditions:
            block.setdefault(condition.field, {})[condition.operator] = condition.value
        if self.strategy:
            block["strategy"] = self.strategy.model_dump()
        return block


def _parse_value(field: str, op: str, raw: Any) -> float:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ConfigurationError(
            f"Quality filter '{field}.{op}' expects a number, got {raw!r}"
        )
    if math.isnan(raw):
        raise ConfigurationError(f"Quality filter '{field}.{op}' is NaN")
    return float(raw)


def parse_quality_block(block: Optional[Mapping[str, Any]]) -> FilterTree:
    """
    Parse the `quality` configuration block.

    Raises:
        ConfigurationError: on unknown operators, non-numeric values or a
            malformed strategy reference.
    """
    if block is None:
        return FilterTree()
    if isinstance(block, FilterTree):
        return block
    if not isinstance(block, Mapping):
        raise ConfigurationError(f"quality must be an object, got {type(block).__name__}")

    conditions: List[FieldCondition] = []
    strategy: Optional[StrategyRef] = None

    for field, rule in block.items():
        if field == "strategy":
            if rule is None:
                continue
            if not isinstance(rule, Mapping) or not rule.get("type"):
                raise ConfigurationError("quality.strategy requires a 'type'")
            params = rule.get("params") or {}
            if not isinstance(params, Mapping):
                raise ConfigurationError("quality.strategy.params must be an object")
            strategy = StrategyRef(type=rule["type"], params=dict(params))
            continue

        if not isinstance(rule, Mapping) or not rule:
            raise ConfigurationError(
                f"Quality filter '{field}' must map operators to values, got {rule!r}"
            )
        column = resolve_field(field)
        for op, raw in rule.items():
            if op not in OPERATORS:
                raise ConfigurationError(
                    f"Unknown operator '{op}' in quality filter '{field}' "
                    f"(expected one of {', '.join(OPERATORS)})"
                )
            conditions.append(
                FieldCondition(
                    field=field,
                    column=column,
                    operator=op,
                    value=_parse_value(field, op, raw),
                )
            )

    return FilterTree(conditions=conditions, strategy=strategy)
