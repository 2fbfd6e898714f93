"""
Opportunity enrichment and ranking.
Joins opportunities to market attractiveness, computes defensive value,
classifies the filtered cohort and orders it for display.
"""
import logging
from typing import Any, Iterable, Sequence

import pandas as pd
from pydantic import BaseModel, Field

from classifier import (
    ATTRACTIVENESS_CATEGORIES,
    OPPORTUNITY_CATEGORIES,
    OPPORTUNITY_WIDTHS,
    category_counts,
    classify_by_rank,
)
from filters import apply_global_filter
from metrics import defensive_value, exposure, opportunity_sort_key, opportunities_frame
from models import (
    BucketAssignment,
    FilterBucketRanges,
    GlobalFilterSpec,
    MarketRow,
    OpportunityRow,
)

logger = logging.getLogger(__name__)

UNKNOWN_CATEGORY = "Unknown"

# Rows without a rank sort after every ranked row
MISSING_RANK = 999999

# Fixed display order for ordinal columns (index 0 sorts first ascending)
ORDINAL_PRIORITY: dict[str, dict[str, int]] = {
    "attractiveness_category": {label: i for i, label in enumerate(ATTRACTIVENESS_CATEGORIES)},
    "opportunity_category": {label: i for i, label in enumerate(OPPORTUNITY_CATEGORIES)},
}


class RankedOpportunities(BaseModel):
    """Full ranked sequence; callers slice pages with top()."""
    rows: list[OpportunityRow] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)

    def top(self, n: int | None = None) -> list[OpportunityRow]:
        if n is None:
            return list(self.rows)
        return self.rows[:max(n, 0)]

    def category_counts(self) -> dict[str, int]:
        return category_counts(
            [row.opportunity_category or UNKNOWN_CATEGORY for row in self.rows],
            OPPORTUNITY_CATEGORIES,
        )


# ============================================================================
# Enrichment
# ============================================================================

def join_attractiveness(
    opportunities: Iterable[OpportunityRow],
    markets: Iterable[MarketRow],
) -> list[OpportunityRow]:
    """
    Attach market attractiveness to each opportunity by (market_id, product).

    Copies the market's category, score, sub-metric labels and revenue per
    company. Opportunities without a matching market get category "Unknown".
    """
    by_key = {market.key: market for market in markets}
    joined = []
    for opportunity in opportunities:
        market = by_key.get(opportunity.key)
        if market is None:
            joined.append(opportunity.model_copy(update={"attractiveness_category": UNKNOWN_CATEGORY}))
            continue
        joined.append(opportunity.model_copy(update={
            "attractiveness_category": market.attractiveness_category or UNKNOWN_CATEGORY,
            "attractiveness_score": market.attractiveness_score,
            "labels": dict(market.labels),
            "revenue_per_company": market.revenue_per_company,
        }))
    return joined


def with_defensive_values(opportunities: Iterable[OpportunityRow]) -> list[OpportunityRow]:
    return [
        row.model_copy(update={
            "defensive_value": defensive_value(row.market_share, row.market_size or 0.0, row.defend_dollars),
        })
        for row in opportunities
    ]


def classify_opportunities(
    opportunities: Sequence[OpportunityRow],
    widths: Sequence[float] = OPPORTUNITY_WIDTHS,
) -> list[OpportunityRow]:
    """
    Assign opportunity categories and defensive ranks within this cohort.

    Ranking is by defensive value, then exposure, both descending; remaining
    ties keep input order.
    """
    rows = list(opportunities)
    keys = [opportunity_sort_key(row) for row in rows]
    categories = classify_by_rank(
        [k[0] for k in keys],
        OPPORTUNITY_CATEGORIES,
        widths=widths,
        tie_breaker=[k[1] for k in keys],
    )

    # sorted(reverse=True) keeps input order among equal keys
    order = sorted(range(len(rows)), key=lambda i: keys[i], reverse=True)
    ranks = [0] * len(rows)
    for position, index in enumerate(order, start=1):
        ranks[index] = position

    return [
        row.model_copy(update={
            "defensive_value": keys[i][0],
            "opportunity_category": categories[i],
            "defensive_rank": ranks[i],
        })
        for i, row in enumerate(rows)
    ]


# ============================================================================
# Ordering
# ============================================================================

def _column_value(row: BaseModel, column: str) -> Any:
    if column in type(row).model_fields:
        return getattr(row, column)
    extras = getattr(row, "extras", {}) or {}
    return extras.get(column)


def sort_rows(rows: Iterable[BaseModel], column: str, descending: bool = False) -> list:
    """
    Stable sort by a column.

    Ordinal columns use the fixed domain priority (Highly Attractive ->
    Challenging, Excellent -> Poor) instead of alphabetical order. Missing
    values and values outside the priority table sort last in either direction.
    """
    priority = ORDINAL_PRIORITY.get(column)
    present, missing = [], []
    for row in rows:
        value = _column_value(row, column)
        if value is None or value != value or (priority is not None and value not in priority):
            missing.append(row)
        else:
            present.append(row)

    if priority is not None:
        present.sort(key=lambda r: priority[_column_value(r, column)], reverse=descending)
    else:
        present.sort(key=lambda r: _column_value(r, column), reverse=descending)
    return present + missing


def sort_by_overall_rank(rows: Iterable[OpportunityRow]) -> list[OpportunityRow]:
    """Default display order: overall rank ascending, unranked rows last."""
    return sorted(rows, key=lambda r: r.overall_rank if r.overall_rank is not None else MISSING_RANK)


def top_opportunities(rows: Iterable[OpportunityRow], n: int | None = None) -> list[OpportunityRow]:
    """Order by defensive value, then exposure, both descending."""
    ordered = sorted(rows, key=opportunity_sort_key, reverse=True)
    return ordered if n is None else ordered[:n]


# ============================================================================
# Pipeline
# ============================================================================

def rank_opportunities(
    opportunities: Iterable[OpportunityRow],
    markets: Iterable[MarketRow],
    filter_spec: GlobalFilterSpec | None = None,
    bucket_assignments: Sequence[BucketAssignment] = (),
    bucket_ranges: FilterBucketRanges | None = None,
    widths: Sequence[float] = OPPORTUNITY_WIDTHS,
    included_only: bool = True,
    exclude_flagged: bool = True,
) -> RankedOpportunities:
    """
    Join, value, filter, classify and order opportunities.

    Args:
        opportunities: Base opportunity rows (not modified)
        markets: Scored market rows to join against
        filter_spec: Global filter selection
        bucket_assignments: Bucket assignments (exclusions filter rows)
        bucket_ranges: Observed dataset ranges for full-range detection
        widths: Opportunity category widths, best -> worst
        included_only: Drop rows not flagged Included_In_Ranking
        exclude_flagged: Drop rows flagged in the Exclusion column

    Returns:
        RankedOpportunities ordered by overall rank
    """
    joined = join_attractiveness(opportunities, markets)
    if included_only:
        joined = [row for row in joined if row.included_in_ranking]
    if exclude_flagged:
        joined = [row for row in joined if not row.excluded]

    valued = with_defensive_values(joined)
    filtered = apply_global_filter(valued, filter_spec, bucket_assignments, bucket_ranges)
    classified = classify_opportunities(filtered, widths)

    logger.debug("Ranked %d opportunities (%d before filtering)", len(classified), len(valued))
    return RankedOpportunities(rows=sort_by_overall_rank(classified))


def provider_summary(rows: Sequence[OpportunityRow]) -> pd.DataFrame:
    """
    Per-provider aggregates: opportunity count, total defend dollars, total
    market share dollars and best overall rank. Sorted by share dollars, descending.
    """
    columns = ["provider", "opportunities", "total_defend_dollars", "total_share_dollars", "best_overall_rank"]
    if not rows:
        return pd.DataFrame(columns=columns)

    df = opportunities_frame(list(rows))
    df["share_dollars"] = [exposure(row) for row in rows]
    summary = (
        df.groupby("provider", sort=False)
        .agg(
            opportunities=("market_id", "size"),
            total_defend_dollars=("defend_dollars", "sum"),
            total_share_dollars=("share_dollars", "sum"),
            best_overall_rank=("overall_rank", "min"),
        )
        .reset_index()
        .sort_values("total_share_dollars", ascending=False, kind="stable")
        .reset_index(drop=True)
    )
    return summary[columns]
