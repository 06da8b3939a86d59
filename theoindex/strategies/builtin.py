import numpy as np
import pandas as pd

from .base import RankingStrategy, register_strategy


def _numeric(df: pd.DataFrame, column: str) -> pd.Series:
    if column not in df.columns:
        return pd.Series(np.nan, index=df.index, dtype=float)
    return pd.to_numeric(df[column], errors="coerce")


@register_strategy
class GrahamStrategy(RankingStrategy):
    """Fair value = sqrt(22.5 * EPS * BVPS); ranks by upside to fair value."""

    name = "graham"
    default_params = {"marginOfSafety": 0.0, "minMarketCap": None}

    def rank(self, universe: pd.DataFrame) -> pd.DataFrame:
        eps = _numeric(universe, "eps")
        bvps = _numeric(universe, "book_value_per_share")
        price = _numeric(universe, "price")

        valid = (eps > 0) & (bvps > 0) & (price > 0)
        fair_value = np.sqrt(22.5 * eps.where(valid) * bvps.where(valid))
        margin = fair_value / price - 1

        eligible = valid & (margin >= float(self.param("marginOfSafety") or 0.0))
        min_cap = self.param("minMarketCap")
        if min_cap is not None:
            eligible &= _numeric(universe, "market_cap") >= float(min_cap)

        ranked = universe[eligible].copy()
        ranked["fair_value"] = fair_value[eligible]
        ranked["upside"] = (margin[eligible] * 100).round(2)
        ranked["fair_value_model"] = "GRAHAM"
        return self._sorted(ranked, ranked["upside"])


@register_strategy
class DividendYieldStrategy(RankingStrategy):
    """Keeps payers yielding at least minYield; ranks by dividend yield."""

    name = "dividendYield"
    default_params = {"minYield": 0.06}

    def rank(self, universe: pd.DataFrame) -> pd.DataFrame:
        dy = _numeric(universe, "dividend_yield")
        eligible = dy.notna() & (dy >= float(self.param("minYield")))
        ranked = universe[eligible]
        return self._sorted(ranked, dy[eligible])


@register_strategy
class LowPEStrategy(RankingStrategy):
    """P/L between 3 and maxPE with ROE >= minROE; cheapest earnings first."""

    name = "lowPE"
    default_params = {"maxPE": 15.0, "minROE": 0.0}

    def rank(self, universe: pd.DataFrame) -> pd.DataFrame:
        pl = _numeric(universe, "pl")
        roe = _numeric(universe, "roe")
        eligible = (
            (pl > 3)
            & (pl <= float(self.param("maxPE")))
            & (roe >= float(self.param("minROE")))
        )
        ranked = universe[eligible]
        return self._sorted(ranked, 1.0 / pl[eligible])


@register_strategy
class OverallScoreStrategy(RankingStrategy):
    """Ranks by the precomputed overall score."""

    name = "overallScore"
    default_params = {"minScore": 0.0}

    def rank(self, universe: pd.DataFrame) -> pd.DataFrame:
        score = _numeric(universe, "overall_score")
        eligible = score.notna() & (score >= float(self.param("minScore")))
        ranked = universe[eligible]
        return self._sorted(ranked, score[eligible])
