"""
Opportunity metrics and dataset summary statistics.
Implements the defensive value ranking metric and the headline summary aggregation.
"""
import numpy as np
import pandas as pd

from models import (
    MarketOverview,
    MarketRow,
    NationalMarket,
    OpportunityRow,
    RiskPricing,
    SummaryData,
    TargetedOpportunities,
)


# ============================================================================
# Defensive Value
# ============================================================================

def defensive_value(market_share: float, market_size: float, defend_dollars: float) -> float:
    """
    Compute the defensive value of a provider's position in one market.

    Defensive value is the geometric mean of the provider's exposure
    (market share x market size) and its revenue at competitive risk, so it
    is only large when the position is both large and at risk.

    Non-decreasing in market_share * market_size and in defend_dollars;
    negative inputs count as zero.

    Args:
        market_share: Provider market share as a fraction (0-1)
        market_size: Market size in dollars
        defend_dollars: Revenue at competitive risk in dollars

    Returns:
        Defensive value (same unit as the inputs' dollars)
    """
    share_dollars = max(market_share or 0.0, 0.0) * max(market_size or 0.0, 0.0)
    at_risk = max(defend_dollars or 0.0, 0.0)
    return float(np.sqrt(share_dollars * at_risk))


def exposure(row: OpportunityRow) -> float:
    """Market share dollars for an opportunity."""
    return max(row.market_share, 0.0) * max(row.market_size or 0.0, 0.0)


def percentage_at_risk(row: OpportunityRow) -> float:
    """
    Defend dollars as a percentage of the provider's market share dollars.

    Returns 0 when the provider has no exposure.
    """
    share_dollars = exposure(row)
    if share_dollars == 0:
        return 0.0
    return row.defend_dollars / share_dollars * 100.0


def opportunity_sort_key(row: OpportunityRow) -> tuple[float, float]:
    """(defensive value, exposure): sort descending for top opportunities."""
    value = row.defensive_value
    if value is None:
        value = defensive_value(row.market_share, row.market_size or 0.0, row.defend_dollars)
    return (value, exposure(row))


# ============================================================================
# Summary Statistics
# ============================================================================

def _mean(series: pd.Series) -> float:
    """Mean with missing values counted as zero (0 for an empty series)."""
    if series.empty:
        return 0.0
    return float(series.fillna(0).mean())


def markets_frame(rows: list[MarketRow]) -> pd.DataFrame:
    """Flatten market rows into a DataFrame (labels are not included)."""
    return pd.DataFrame(
        [row.model_dump(exclude={"labels", "extras"}) for row in rows],
        columns=[name for name in MarketRow.model_fields if name not in ("labels", "extras")],
    )


def opportunities_frame(rows: list[OpportunityRow]) -> pd.DataFrame:
    """Flatten opportunity rows into a DataFrame (labels are not included)."""
    return pd.DataFrame(
        [row.model_dump(exclude={"labels", "extras"}) for row in rows],
        columns=[name for name in OpportunityRow.model_fields if name not in ("labels", "extras")],
    )


def compute_summary(
    markets: list[MarketRow],
    ranked_opportunities: list[OpportunityRow],
    all_opportunities: list[OpportunityRow] | None = None,
) -> SummaryData:
    """
    Compute headline statistics for the landing view.

    Args:
        markets: Scored market rows
        ranked_opportunities: Opportunities included in ranking, with categories
        all_opportunities: Every opportunity row, used for the provider count

    Returns:
        SummaryData with market overview, targeted opportunities,
        national market averages and risk/pricing counts
    """
    markets_df = markets_frame(markets)
    ranked_df = opportunities_frame(ranked_opportunities)
    all_df = opportunities_frame(all_opportunities if all_opportunities is not None else ranked_opportunities)

    providers = all_df["provider"].dropna().astype(str).str.strip()
    overview = MarketOverview(
        total_markets=int(markets_df["market_id"].nunique()),
        total_providers=int(providers[providers != ""].nunique()),
    )

    # Unique (market, provider, product) opportunities
    unique_ranked = ranked_df.drop_duplicates(subset=["market_id", "provider", "product"])
    distribution = (
        unique_ranked["opportunity_category"].fillna("Unknown").replace("", "Unknown").value_counts()
    )
    highly_attractive = set(
        markets_df.loc[markets_df["attractiveness_category"] == "Highly Attractive", "market_id"]
    )
    excellent_in_high = unique_ranked[
        (unique_ranked["opportunity_category"] == "Excellent")
        & unique_ranked["market_id"].isin(highly_attractive)
    ]
    targeted = TargetedOpportunities(
        highly_attractive_markets=len(highly_attractive),
        excellent_opportunities=len(excellent_in_high),
        opportunity_distribution={str(k): int(v) for k, v in distribution.items()},
    )

    national = NationalMarket(
        total_market_size=float(markets_df["market_size"].fillna(0).sum()),
        avg_risk=_mean(markets_df["risk"]),
        avg_price=_mean(markets_df["price"]),
        avg_lending_volume_change=_mean(markets_df["lending_volume_change"]),
        avg_loan_to_deposit_ratio=_mean(markets_df["loan_to_deposit_ratio"]),
    )

    posture = markets_df["premium_discount"].fillna("")
    rationality = markets_df["pricing_rationality"].fillna("")
    overpriced = int(rationality.str.startswith("Overpriced").sum())
    underpriced = int(rationality.str.startswith("Underpriced").sum())
    risk_pricing = RiskPricing(
        premium_markets=int((posture == "Premium").sum()),
        par_markets=int((posture == "Par").sum()),
        discount_markets=int((posture == "Discount").sum()),
        rational_pricing=int((rationality == "Rational").sum()),
        irrational_pricing=overpriced + underpriced,
        overpriced_opportunity=overpriced,
        underpriced_risk=underpriced,
    )

    return SummaryData(
        market_overview=overview,
        targeted_opportunities=targeted,
        national_market=national,
        risk_pricing=risk_pricing,
    )
