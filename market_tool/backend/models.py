"""
Pydantic models for typed rows, what-if configuration and API request/response schemas.
"""
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from csv_parser import coerce_number
from normalizer import Dimension


# ============================================================================
# CSV Column Mappings
# ============================================================================

# Market/attractiveness table: CSV header -> MarketRow field
MARKET_COLUMNS = {
    "MSA": "market_id",
    "Product": "product",
    "LAT": "lat",
    "LON": "lon",
    "Market Size": "market_size",
    "Number of Companies": "company_count",
    "Risk": "risk",
    "Price": "price",
    "Lending Volume Annual Change": "lending_volume_change",
    "Loan to Deposit Ratio": "loan_to_deposit_ratio",
    "Revenue per Company": "revenue_per_company",
    "Herfindahl-Hirschman Index (HHI)": "hhi",
    "Economic_Growth": "economic_growth",
    "Proportion of International Cash Management Revenue": "international_cm_share",
    "Premium_Discount": "premium_discount",
    "Pricing_Rationality": "pricing_rationality",
    "Pricing_Rationality_Explanation": "pricing_rationality_explanation",
    "Driving_Metric": "driving_metric",
    "Attractiveness_Score": "attractiveness_score",
    "Attractiveness_Category": "attractiveness_category",
}

# Opportunity table: CSV header -> OpportunityRow field
OPPORTUNITY_COLUMNS = {
    "Provider": "provider",
    "MSA": "market_id",
    "Product": "product",
    "LAT": "lat",
    "LON": "lon",
    "Market Share": "market_share",
    "Market Size": "market_size",
    "Defend $": "defend_dollars",
    "Number of Companies": "company_count",
    "Exclusion": "excluded",
    "Included_In_Ranking": "included_in_ranking",
    "Provider_Opportunity_Rank": "provider_rank",
    "Overall_Opportunity_Rank": "overall_rank",
    "Weighted_Average_Score": "weighted_average_score",
    "Opportunity_Category": "opportunity_category",
}

LABEL_COLUMNS = {dimension.column: dimension for dimension in Dimension}


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


# ============================================================================
# Typed Rows
# ============================================================================

class MarketRow(BaseModel):
    """One market x product row of the attractiveness table."""
    model_config = ConfigDict(frozen=True)

    market_id: str
    product: str = ""
    lat: Optional[float] = None
    lon: Optional[float] = None
    market_size: Optional[float] = None
    company_count: Optional[float] = None
    risk: Optional[float] = None
    price: Optional[float] = None
    lending_volume_change: Optional[float] = None
    loan_to_deposit_ratio: Optional[float] = None
    revenue_per_company: Optional[float] = None
    hhi: Optional[float] = None
    economic_growth: Optional[float] = None
    international_cm_share: Optional[float] = None
    premium_discount: Optional[str] = None
    pricing_rationality: Optional[str] = None
    pricing_rationality_explanation: Optional[str] = None
    driving_metric: Optional[str] = None
    # Sub-metric category label per scored dimension
    labels: dict[Dimension, str] = Field(default_factory=dict)
    # Derived: always set together
    attractiveness_score: Optional[float] = None
    attractiveness_category: Optional[str] = None
    extras: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "MarketRow":
        """Build a typed row from a parsed CSV record; unmapped columns go to extras."""
        values: dict[str, Any] = {}
        labels: dict[Dimension, str] = {}
        extras: dict[str, Any] = {}
        for column, value in record.items():
            if column in LABEL_COLUMNS:
                text = _as_text(value)
                if text is not None:
                    labels[LABEL_COLUMNS[column]] = text
            elif column in MARKET_COLUMNS:
                values[MARKET_COLUMNS[column]] = value
            else:
                extras[column] = value

        text_fields = {
            "market_id", "product", "premium_discount", "pricing_rationality",
            "pricing_rationality_explanation", "driving_metric", "attractiveness_category",
        }
        for name in list(values):
            if name in text_fields:
                values[name] = _as_text(values[name])
            else:
                values[name] = coerce_number(values[name])
        values["market_id"] = values.get("market_id") or ""
        values["product"] = values.get("product") or ""
        return cls(**values, labels=labels, extras=extras)

    def label(self, dimension: Dimension) -> str:
        return self.labels.get(dimension, "")

    @property
    def key(self) -> tuple[str, str]:
        return (self.market_id, self.product)


class OpportunityRow(BaseModel):
    """One provider x market x product row of the opportunity table."""
    model_config = ConfigDict(frozen=True)

    provider: str
    market_id: str
    product: str = ""
    lat: Optional[float] = None
    lon: Optional[float] = None
    market_share: float = 0.0
    market_size: Optional[float] = None
    defend_dollars: float = 0.0
    company_count: Optional[float] = None
    excluded: bool = False
    included_in_ranking: bool = False
    provider_rank: Optional[int] = None
    overall_rank: Optional[int] = None
    weighted_average_score: Optional[float] = None
    # Derived fields
    defensive_value: Optional[float] = None
    defensive_rank: Optional[int] = None
    opportunity_category: Optional[str] = None
    attractiveness_category: Optional[str] = None
    attractiveness_score: Optional[float] = None
    # Joined from the matching market row
    revenue_per_company: Optional[float] = None
    labels: dict[Dimension, str] = Field(default_factory=dict)
    extras: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "OpportunityRow":
        """Build a typed row from a parsed CSV record; unmapped columns go to extras."""
        values: dict[str, Any] = {}
        extras: dict[str, Any] = {}
        for column, value in record.items():
            if column in OPPORTUNITY_COLUMNS:
                values[OPPORTUNITY_COLUMNS[column]] = value
            else:
                extras[column] = value

        for name in ("provider", "market_id", "product", "opportunity_category"):
            if name in values:
                values[name] = _as_text(values[name])
        for name in ("excluded", "included_in_ranking"):
            if name in values:
                values[name] = values[name] is True
        for name in ("provider_rank", "overall_rank"):
            if name in values:
                number = coerce_number(values[name])
                values[name] = int(number) if number is not None else None
        for name in ("lat", "lon", "market_size", "company_count", "weighted_average_score"):
            if name in values:
                values[name] = coerce_number(values[name])
        for name in ("market_share", "defend_dollars"):
            if name in values:
                values[name] = coerce_number(values[name]) or 0.0

        values["provider"] = values.get("provider") or ""
        values["market_id"] = values.get("market_id") or ""
        values["product"] = values.get("product") or ""
        return cls(**values, extras=extras)

    def label(self, dimension: Dimension) -> str:
        return self.labels.get(dimension, "")

    @property
    def key(self) -> tuple[str, str]:
        return (self.market_id, self.product)


class EconomicsRow(BaseModel):
    """Per-market economics; derived changes are computed once at load time."""
    model_config = ConfigDict(frozen=True)

    market_id: str
    unemployment_2023: float = 0.0
    unemployment_2024: float = 0.0
    unemployment_change: float = 0.0
    gdp: float = 0.0  # thousands
    gdp_growth: float = 0.0
    per_capita_income: float = 0.0
    income_growth: float = 0.0
    population_2023: float = 0.0
    population_2024: float = 0.0
    population_growth: float = 0.0


# ============================================================================
# What-If Configuration
# ============================================================================

class AttractivenessWeights(BaseModel):
    """Non-negative integer weight per scored dimension; sums to 100 by convention (not enforced)."""
    Market_Size: int = Field(default=0, ge=0)
    HHI: int = Field(default=12, ge=0)
    Economic_Growth: int = Field(default=12, ge=0)
    Loan_Growth: int = Field(default=10, ge=0)
    Risk: int = Field(default=8, ge=0)
    Risk_Migration: int = Field(default=12, ge=0)
    Relative_Risk_Migration: int = Field(default=10, ge=0)
    Premium_Discount: int = Field(default=12, ge=0)
    Pricing_Rationality: int = Field(default=12, ge=0)
    Revenue_per_Company: int = Field(default=0, ge=0)
    International_CM: int = Field(default=12, ge=0)

    def weight(self, dimension: Dimension) -> int:
        return getattr(self, dimension.value)

    def items(self) -> list[tuple[Dimension, int]]:
        return [(dimension, self.weight(dimension)) for dimension in Dimension]

    @property
    def total(self) -> int:
        return sum(weight for _, weight in self.items())


class BucketAssignment(BaseModel):
    """Maps a dimension to an importance bucket, or to an exclusion of one label value."""
    parameter_id: Dimension
    selected_value: str
    bucket: Literal["high", "medium", "exclusions"]
    position: int = 0

    @property
    def is_exclusion(self) -> bool:
        return self.bucket == "exclusions"


class ClassificationMode(str, Enum):
    PERCENTILE = "percentile"
    THRESHOLD = "threshold"


class ScoringConfig(BaseModel):
    """Everything a re-score depends on."""
    weights: AttractivenessWeights = Field(default_factory=AttractivenessWeights)
    bucket_assignments: list[BucketAssignment] = Field(default_factory=list)
    bucket_weights: dict[str, float] = Field(default_factory=lambda: {"high": 60.0, "medium": 40.0})
    use_buckets: bool = False
    mode: Optional[ClassificationMode] = None
    # (min_score, category) pairs, compared against the scaled score
    thresholds: Optional[list[tuple[float, str]]] = None
    scale: float = Field(default=1.0, gt=0)

    def cache_key(self) -> str:
        return self.model_dump_json()


class GlobalFilterSpec(BaseModel):
    """Cross-cutting filters applied before any page-local filtering."""
    market_size_range: tuple[float, float] = (0.0, 0.0)
    revenue_per_company_range: tuple[float, float] = (0.0, 0.0)
    selected_regions: list[str] = Field(default_factory=list)
    # Reserved: no industry data is available yet
    selected_industries: list[str] = Field(default_factory=list)


class ValueRange(BaseModel):
    min: float = 0.0
    max: float = 0.0


class RangeBucket(BaseModel):
    range: ValueRange = Field(default_factory=ValueRange)
    total_count: int = 0


class FilterBucketRanges(BaseModel):
    """Observed bounds used to build range sliders and detect full-range filters."""
    market_size: RangeBucket = Field(default_factory=RangeBucket)
    revenue_per_company: RangeBucket = Field(default_factory=RangeBucket)


# ============================================================================
# Summary
# ============================================================================

class MarketOverview(BaseModel):
    total_markets: int = 0
    total_providers: int = 0


class TargetedOpportunities(BaseModel):
    highly_attractive_markets: int = 0
    excellent_opportunities: int = 0
    opportunity_distribution: dict[str, int] = Field(default_factory=dict)


class NationalMarket(BaseModel):
    total_market_size: float = 0.0
    avg_risk: float = 0.0
    avg_price: float = 0.0
    avg_lending_volume_change: float = 0.0
    avg_loan_to_deposit_ratio: float = 0.0


class RiskPricing(BaseModel):
    premium_markets: int = 0
    par_markets: int = 0
    discount_markets: int = 0
    rational_pricing: int = 0
    irrational_pricing: int = 0
    overpriced_opportunity: int = 0
    underpriced_risk: int = 0


class SummaryData(BaseModel):
    """Headline statistics for the landing view."""
    market_overview: MarketOverview = Field(default_factory=MarketOverview)
    targeted_opportunities: TargetedOpportunities = Field(default_factory=TargetedOpportunities)
    national_market: NationalMarket = Field(default_factory=NationalMarket)
    risk_pricing: RiskPricing = Field(default_factory=RiskPricing)


# ============================================================================
# API Requests
# ============================================================================

class ScoreRequest(BaseModel):
    """Request body for POST /markets/score."""
    config: ScoringConfig = Field(default_factory=ScoringConfig)
    filters: GlobalFilterSpec = Field(default_factory=GlobalFilterSpec)


class OpportunityRequest(BaseModel):
    """Request body for POST /opportunities."""
    config: ScoringConfig = Field(default_factory=ScoringConfig)
    filters: GlobalFilterSpec = Field(default_factory=GlobalFilterSpec)
    sort_by: Optional[str] = Field(default=None, description="Column to sort by; default is overall rank")
    descending: bool = False
    limit: Optional[int] = Field(default=None, ge=1, description="Top-N page size")
    included_only: bool = True


# ============================================================================
# API Responses
# ============================================================================

class HealthResponse(BaseModel):
    """Response for GET /health endpoint."""
    status: str = "ok"
    loaded: bool = False


class DimensionInfo(BaseModel):
    id: Dimension
    label: str
    inverse: bool


class ConfigResponse(BaseModel):
    """Response model for GET /config endpoint."""
    dimensions: list[DimensionInfo]
    default_weights: AttractivenessWeights
    default_bucket_assignments: list[BucketAssignment]
    default_bucket_weights: dict[str, float]
    filter_buckets: FilterBucketRanges
    regions: list[str]
    products: list[str] = Field(default_factory=list)
    market_count: int
    opportunity_count: int
    economics_count: int


class MarketsResponse(BaseModel):
    """Response for POST /markets/score endpoint."""
    markets: list[MarketRow]
    category_counts: dict[str, int] = Field(default_factory=dict)


class MarketDetailResponse(BaseModel):
    """Response for GET /markets/{market_id} endpoint."""
    market_id: str
    attractiveness: list[MarketRow]
    opportunities: list[OpportunityRow]


class OpportunitiesResponse(BaseModel):
    """Response for POST /opportunities endpoint."""
    total: int
    opportunities: list[OpportunityRow]
    category_counts: dict[str, int] = Field(default_factory=dict)
