"""
Pydantic models for the JSON configuration stored on IndexDefinition.config.

Keys are camelCase in the stored JSON and snake_case in Python; both are
accepted on input.
"""

import json
from typing import Any, Dict, List, Literal, Mapping, Optional, Union
from pydantic import BaseModel, Field, ValidationError, field_validator, field_serializer, model_validator

from theoindex.errors import ConfigurationError
from theoindex.filters.tree import FilterTree, parse_quality_block, resolve_field

DEFAULT_TOP_N = 10
DEFAULT_THRESHOLD = 0.05
DEFAULT_MIN_SCORE_WEIGHT = 0.02
DEFAULT_MAX_SCORE_WEIGHT = 0.15

# Ranking fields whose values are already percentages (25.0 = 25%)
PERCENT_FIELDS = {"upside"}


class _CamelModel(BaseModel):
    class Config:
        populate_by_name = True
        extra = "ignore"


class LiquidityConfig(_CamelModel):
    min_average_daily_volume: Optional[float] = Field(default=None, alias="minAverageDailyVolume")


class UpsideFilterConfig(_CamelModel):
    min_upside: Optional[float] = Field(default=None, alias="minUpside")
    require_positive_upside: bool = Field(default=False, alias="requirePositiveUpside")


class ScoreBand(_CamelModel):
    min: float
    max: float
    max_count: int = Field(alias="maxCount", ge=0)

    @model_validator(mode="after")
    def check_bounds(self):
        if self.min > self.max:
            raise ValueError(f"score band min {self.min} is above max {self.max}")
        return self


class SelectionConfig(_CamelModel):
    top_n: int = Field(default=DEFAULT_TOP_N, alias="topN", gt=0)
    order_by: str = Field(default="upside", alias="orderBy")
    order_direction: Literal["asc", "desc"] = Field(default="desc", alias="orderDirection")
    score_bands: Optional[List[ScoreBand]] = Field(default=None, alias="scoreBands")

    @property
    def order_column(self) -> str:
        return resolve_field(self.order_by)

    @property
    def ascending(self) -> bool:
        return self.order_direction == "asc"


class WeightsConfig(_CamelModel):
    type: Literal["equal", "marketCap", "overallScore", "custom"] = "equal"
    # Stated per-constituent weight for "equal" (e.g. 1/15); the actual weight is 1/N
    value: Optional[float] = None
    min_weight: float = Field(default=DEFAULT_MIN_SCORE_WEIGHT, alias="minWeight", ge=0)
    max_weight: float = Field(default=DEFAULT_MAX_SCORE_WEIGHT, alias="maxWeight", gt=0)
    custom_weights: Dict[str, float] = Field(default_factory=dict, alias="customWeights")


class RebalanceConfig(_CamelModel):
    threshold: float = Field(default=DEFAULT_THRESHOLD, ge=0)
    check_quality: bool = Field(default=True, alias="checkQuality")
    ranking_field: Optional[str] = Field(default=None, alias="rankingField")


class DiversificationConfig(_CamelModel):
    type: Literal["allocation", "maxCount"]
    sector_allocation: Dict[str, float] = Field(default_factory=dict, alias="sectorAllocation")
    max_count_per_sector: Dict[str, int] = Field(default_factory=dict, alias="maxCountPerSector")

    @field_validator("sector_allocation")
    @classmethod
    def check_allocation(cls, v: Dict[str, float]) -> Dict[str, float]:
        for sector, pct in v.items():
            if pct < 0:
                raise ValueError(f"sector allocation for '{sector}' is negative")
        return v


class IndexConfig(_CamelModel):
    type: Optional[str] = None
    universe: Optional[str] = None
    asset_types: List[str] = Field(default_factory=lambda: ["STOCK"], alias="assetTypes")
    excluded_tickers: List[str] = Field(default_factory=list, alias="excludedTickers")
    excluded_ticker_patterns: List[str] = Field(default_factory=list, alias="excludedTickerPatterns")
    liquidity: LiquidityConfig = Field(default_factory=LiquidityConfig)
    quality: FilterTree = Field(default_factory=FilterTree)
    selection: SelectionConfig = Field(default_factory=SelectionConfig)
    weights: WeightsConfig = Field(default_factory=WeightsConfig)
    rebalance: RebalanceConfig = Field(default_factory=RebalanceConfig)
    diversification: Optional[DiversificationConfig] = None
    filters: UpsideFilterConfig = Field(default_factory=UpsideFilterConfig)

    @field_validator("quality", mode="before")
    @classmethod
    def parse_quality(cls, v: Any) -> FilterTree:
        return parse_quality_block(v)

    @field_serializer("quality")
    def serialize_quality(self, tree: FilterTree) -> Dict[str, Any]:
        return tree.to_quality_block()

    @property
    def ranking_column(self) -> str:
        """Column the hysteresis margin is measured on."""
        return resolve_field(self.rebalance.ranking_field or self.selection.order_by)

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def load_index_config(raw: Union[str, Mapping[str, Any], None]) -> IndexConfig:
    """
    Parse and validate a stored configuration.

    Raises:
        ConfigurationError: if the JSON is malformed or fails validation.
    """
    if raw is None:
        raw = {}
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Index config is not valid JSON: {e}") from e
    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"Index config must be an object, got {type(raw).__name__}")

    try:
        return IndexConfig.model_validate(dict(raw))
    except ValidationError as e:
        raise ConfigurationError(f"Invalid index config: {e}") from e
