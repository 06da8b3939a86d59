"""Ranking strategy interface and registry."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Type
import pandas as pd

from theoindex.errors import ConfigurationError
from theoindex.filters.tree import StrategyRef

_REGISTRY: Dict[str, Type["RankingStrategy"]] = {}


class RankingStrategy(ABC):
    """
    A named, parameterized valuation algorithm.

    rank() receives the post-exclusion universe and returns the subset it
    considers eligible, best first, with a `strategy_score` column. It may
    overwrite `upside` / `fair_value_model` with its own valuation.
    """

    name: str = ""
    default_params: Dict[str, Any] = {}

    def __init__(self, params: Optional[Dict[str, Any]] = None):
        self.params = {**self.default_params, **(params or {})}

    def param(self, key: str) -> Any:
        return self.params.get(key)

    @abstractmethod
    def rank(self, universe: pd.DataFrame) -> pd.DataFrame:
        pass

    @staticmethod
    def _sorted(df: pd.DataFrame, score: pd.Series) -> pd.DataFrame:
        out = df.copy()
        out["strategy_score"] = score
        return out.sort_values(
            ["strategy_score", "ticker"], ascending=[False, True], na_position="last"
        )


def register_strategy(cls: Type[RankingStrategy]) -> Type[RankingStrategy]:
    _REGISTRY[cls.name] = cls
    return cls


def available_strategies() -> List[str]:
    return sorted(_REGISTRY)


def get_strategy(ref: StrategyRef) -> RankingStrategy:
    """
    Instantiate the strategy referenced in a configuration.

    Raises:
        ConfigurationError: if the strategy type is not registered.
    """
    cls = _REGISTRY.get(ref.type)
    if cls is None:
        raise ConfigurationError(
            f"Unknown strategy '{ref.type}' (available: {', '.join(available_strategies())})"
        )
    return cls(ref.params)
