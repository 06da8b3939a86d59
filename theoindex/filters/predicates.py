from fnmatch import fnmatchcase
from typing import Callable, Iterable
import pandas as pd

# Type alias for filter functions
FilterPredicate = Callable[[pd.DataFrame], pd.Series]


def matches_exclusion(
    ticker: str,
    excluded: Iterable[str] = (),
    patterns: Iterable[str] = (),
) -> bool:
    """
    True if ticker is explicitly excluded or matches a wildcard pattern.

    Matching is case-insensitive. Patterns use shell wildcards:
    "*5" ends with 5, "PETR*" starts with PETR, "BBDC?" one trailing char.
    """
    symbol = ticker.upper()
    if symbol in {t.upper() for t in excluded}:
        return True
    return any(fnmatchcase(symbol, p.upper()) for p in patterns)


def exclude_tickers(excluded: Iterable[str] = (), patterns: Iterable[str] = ()) -> FilterPredicate:
    """Drop explicitly excluded tickers and tickers matching exclusion patterns."""
    excluded = list(excluded)
    patterns = list(patterns)

    def predicate(df: pd.DataFrame) -> pd.Series:
        return ~df["ticker"].map(lambda t: matches_exclusion(t, excluded, patterns)).astype(bool)
    predicate.__name__ = "exclusions"
    return predicate


def min_average_daily_volume(min_volume: float) -> FilterPredicate:
    """Liquidity floor on average daily traded value. Missing volume fails."""
    def predicate(df: pd.DataFrame) -> pd.Series:
        volume = pd.to_numeric(df["average_daily_volume"], errors="coerce")
        return volume.notna() & (volume >= min_volume)
    predicate.__name__ = "liquidity"
    return predicate


def min_upside(min_pct: float) -> FilterPredicate:
    """Filter to candidates with upside (percent) >= min_pct."""
    def predicate(df: pd.DataFrame) -> pd.Series:
        upside = pd.to_numeric(df["upside"], errors="coerce")
        return upside.notna() & (upside >= min_pct)
    predicate.__name__ = "min_upside"
    return predicate


def positive_upside() -> FilterPredicate:
    """Filter to candidates with strictly positive upside."""
    def predicate(df: pd.DataFrame) -> pd.Series:
        upside = pd.to_numeric(df["upside"], errors="coerce")
        return upside.notna() & (upside > 0)
    predicate.__name__ = "positive_upside"
    return predicate
