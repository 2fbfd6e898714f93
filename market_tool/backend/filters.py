"""
Global filter engine: market-size and revenue-per-company ranges, geography and exclusions.
"""
import logging
from typing import Iterable, Sequence, TypeVar

from models import (
    BucketAssignment,
    FilterBucketRanges,
    GlobalFilterSpec,
    MarketRow,
    OpportunityRow,
    RangeBucket,
    ValueRange,
)
from normalizer import normalize_token
from regions import region_for_market

logger = logging.getLogger(__name__)

Row = TypeVar("Row", MarketRow, OpportunityRow)


# ============================================================================
# Observed Ranges
# ============================================================================

def _range_bucket(values: Iterable[float | None]) -> RangeBucket:
    observed = sorted(v for v in values if v is not None and v == v)
    if not observed:
        return RangeBucket()
    return RangeBucket(range=ValueRange(min=observed[0], max=observed[-1]), total_count=len(observed))


def compute_filter_bucket_ranges(rows: Sequence[MarketRow | OpportunityRow]) -> FilterBucketRanges:
    """Observed min/max of market size and revenue per company."""
    return FilterBucketRanges(
        market_size=_range_bucket(row.market_size for row in rows),
        revenue_per_company=_range_bucket(row.revenue_per_company for row in rows),
    )


# ============================================================================
# Predicates
# ============================================================================

def is_range_active(selected: tuple[float, float], observed: RangeBucket) -> bool:
    """
    A range constrains rows unless it is the full observed range or the (0, 0) sentinel.
    """
    low, high = selected
    if low == 0 and high == 0:
        return False
    if low == observed.range.min and high == observed.range.max:
        return False
    return True


def in_range(value: float | None, selected: tuple[float, float]) -> bool:
    if value is None or value != value:
        return False
    return selected[0] <= value <= selected[1]


def matches_region(row: MarketRow | OpportunityRow, selected_regions: Sequence[str]) -> bool:
    if not selected_regions:
        return True
    return region_for_market(row.market_id, row.lat, row.lon) in selected_regions


def passes_exclusions(row: MarketRow | OpportunityRow, exclusions: Sequence[BucketAssignment]) -> bool:
    """False if the row's label for any excluded dimension equals the excluded value."""
    for exclusion in exclusions:
        excluded = normalize_token(exclusion.selected_value)
        if excluded and normalize_token(row.label(exclusion.parameter_id)) == excluded:
            return False
    return True


# ============================================================================
# Global Filter
# ============================================================================

def apply_global_filter(
    rows: Sequence[Row],
    filter_spec: GlobalFilterSpec | None = None,
    bucket_assignments: Sequence[BucketAssignment] = (),
    bucket_ranges: FilterBucketRanges | None = None,
) -> list[Row]:
    """
    Keep the rows that pass every active global filter.

    Range filters are inactive when set to the full observed range or to
    (0, 0). The region filter is inactive when no region is selected, and the
    industry selection is reserved (never constrains). Any matching exclusion
    rejects a row.

    Args:
        rows: Market or opportunity rows
        filter_spec: The global filter selection
        bucket_assignments: Bucket assignments; only "exclusions" entries filter
        bucket_ranges: Observed ranges of the full dataset; derived from rows if omitted

    Returns:
        New list with the passing rows, in input order
    """
    rows = list(rows)
    if filter_spec is None:
        filter_spec = GlobalFilterSpec()
    if bucket_ranges is None:
        bucket_ranges = compute_filter_bucket_ranges(rows)

    size_active = is_range_active(filter_spec.market_size_range, bucket_ranges.market_size)
    revenue_active = is_range_active(filter_spec.revenue_per_company_range, bucket_ranges.revenue_per_company)
    exclusions = [a for a in bucket_assignments if a.is_exclusion]

    passed = []
    for row in rows:
        if size_active and not in_range(row.market_size, filter_spec.market_size_range):
            continue
        if revenue_active and not in_range(row.revenue_per_company, filter_spec.revenue_per_company_range):
            continue
        if not matches_region(row, filter_spec.selected_regions):
            continue
        if exclusions and not passes_exclusions(row, exclusions):
            continue
        passed.append(row)

    if len(passed) != len(rows):
        logger.debug("Global filter kept %d of %d rows", len(passed), len(rows))
    return passed
