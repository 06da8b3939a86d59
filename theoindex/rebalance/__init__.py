"""Rebalance module - hysteresis rules and transactional composition replacement."""

from .decision import apply_hysteresis, compare_composition, generate_rebalance_reason, should_rebalance
from .models import CompositionChange, HysteresisResult, RebalanceDecision
from .quality import filter_by_quality, validate_candidate_quality
from .service import RebalanceService

__all__ = [
    "apply_hysteresis",
    "compare_composition",
    "generate_rebalance_reason",
    "should_rebalance",
    "CompositionChange",
    "HysteresisResult",
    "RebalanceDecision",
    "filter_by_quality",
    "validate_candidate_quality",
    "RebalanceService",
]
