"""Ranking strategies; importing the package registers the built-ins."""

from .base import RankingStrategy, available_strategies, get_strategy, register_strategy
from . import builtin  # noqa: F401

__all__ = ["RankingStrategy", "available_strategies", "get_strategy", "register_strategy"]
