"""
Attractiveness scoring: weighted composite scores, bucket-priority scores and categories.
Scoring is pure; the same base rows can be rescored under any configuration.
"""
import logging
import math
from typing import Iterable, Mapping, Sequence

from classifier import (
    ATTRACTIVENESS_CATEGORIES,
    DEFAULT_THRESHOLDS,
    classify_by_rank,
    classify_by_threshold,
)
from models import (
    AttractivenessWeights,
    BucketAssignment,
    ClassificationMode,
    MarketRow,
    ScoringConfig,
)
from normalizer import Dimension, match_score, score_dimension

logger = logging.getLogger(__name__)


# ============================================================================
# Defaults
# ============================================================================

DEFAULT_WEIGHTS = AttractivenessWeights()

DEFAULT_BUCKET_WEIGHTS = {"high": 60.0, "medium": 40.0}

# HIGH: the six dimensions carrying 12% in the default weights
# MEDIUM: the three carrying 8-10%
DEFAULT_BUCKET_ASSIGNMENTS = [
    BucketAssignment(parameter_id=Dimension.HHI, selected_value="Low", bucket="high", position=0),
    BucketAssignment(parameter_id=Dimension.ECONOMIC_GROWTH, selected_value="High", bucket="high", position=1),
    BucketAssignment(parameter_id=Dimension.RISK_MIGRATION, selected_value="Low", bucket="high", position=2),
    BucketAssignment(parameter_id=Dimension.PREMIUM_DISCOUNT, selected_value="Premium", bucket="high", position=3),
    BucketAssignment(parameter_id=Dimension.PRICING_RATIONALITY, selected_value="Rational", bucket="high", position=4),
    BucketAssignment(parameter_id=Dimension.INTERNATIONAL_CM, selected_value="High", bucket="high", position=5),
    BucketAssignment(parameter_id=Dimension.LOAN_GROWTH, selected_value="High", bucket="medium", position=0),
    BucketAssignment(
        parameter_id=Dimension.RELATIVE_RISK_MIGRATION,
        selected_value="Below National Avg",
        bucket="medium",
        position=1,
    ),
    BucketAssignment(parameter_id=Dimension.RISK, selected_value="Low", bucket="medium", position=2),
]

ANY_PREFERENCE = "Any"


# ============================================================================
# Composite Scores
# ============================================================================

def dimension_contributions(row: MarketRow, weights: AttractivenessWeights) -> dict[Dimension, float]:
    """Weighted contribution of each dimension to the raw (0-3) composite score."""
    return {
        dimension: score_dimension(dimension, row.label(dimension)) * (weight / 100)
        for dimension, weight in weights.items()
    }


def composite_score(
    row: MarketRow,
    weights: AttractivenessWeights = DEFAULT_WEIGHTS,
    scale: float = 1.0,
) -> float:
    """
    Weighted sum of normalized dimension scores.

    composite = sum(normalize(label, inverse) * weight / 100) * scale,
    rounded to 2 decimals. With weights summing to 100 the raw range is 0-3.
    """
    total = sum(dimension_contributions(row, weights).values())
    return round(total * scale, 2)


def driving_dimension(
    row: MarketRow,
    weights: AttractivenessWeights = DEFAULT_WEIGHTS,
) -> Dimension | None:
    """Dimension contributing most to the composite score (None if nothing contributes)."""
    contributions = dimension_contributions(row, weights)
    best = max(contributions, key=contributions.get, default=None)
    if best is None or contributions[best] <= 0:
        return None
    return best


def bucket_mode_score(
    row: MarketRow,
    assignments: Sequence[BucketAssignment],
    bucket_weights: Mapping[str, float] | None = None,
) -> float:
    """
    Bucket-priority score: average match score per bucket times the bucket weight.

    Each of the "high" and "medium" buckets with at least one assignment
    contributes mean(match_score(actual, target)) * bucket_weight / 100. Exclusion
    assignments contribute nothing (they filter rows instead). Without any
    assignments the default weighted composite score is used.
    """
    if not assignments:
        return composite_score(row, DEFAULT_WEIGHTS)

    weights = dict(DEFAULT_BUCKET_WEIGHTS)
    if bucket_weights:
        weights.update(bucket_weights)

    total = 0.0
    for bucket in ("high", "medium"):
        items = sorted(
            (a for a in assignments if a.bucket == bucket),
            key=lambda a: a.position,
        )
        if not items:
            continue
        scores = [match_score(row.label(a.parameter_id), a.selected_value) for a in items]
        average = sum(scores) / len(items)
        total += average * (weights[bucket] / 100)
    return round(total, 2)


def market_score(row: MarketRow, config: ScoringConfig) -> float:
    """Score one market under a configuration (weighted or bucket mode)."""
    if config.use_buckets:
        return round(
            bucket_mode_score(row, config.bucket_assignments, config.bucket_weights) * config.scale,
            2,
        )
    return composite_score(row, config.weights, config.scale)


# ============================================================================
# Categories
# ============================================================================

def resolve_mode(config: ScoringConfig) -> ClassificationMode:
    """Explicit mode wins; otherwise thresholds if configured, else percentile."""
    if config.mode is not None:
        return config.mode
    if config.thresholds:
        return ClassificationMode.THRESHOLD
    return ClassificationMode.PERCENTILE


def classify_scores(scores: Sequence[float], config: ScoringConfig) -> list[str]:
    """Bucket a cohort of scores into attractiveness categories."""
    mode = resolve_mode(config)
    if mode == ClassificationMode.THRESHOLD:
        thresholds = config.thresholds
        if not thresholds:
            thresholds = [(minimum * config.scale, label) for minimum, label in DEFAULT_THRESHOLDS]
        return classify_by_threshold(scores, thresholds, default=ATTRACTIVENESS_CATEGORIES[-1])
    return classify_by_rank(scores, ATTRACTIVENESS_CATEGORIES)


def score_markets(
    rows: Iterable[MarketRow],
    config: ScoringConfig | None = None,
) -> list[MarketRow]:
    """
    Rescore a cohort of markets.

    Computes every market's score, then classifies the whole cohort. Returns
    copies with score and category set together; the input rows are untouched.
    """
    config = config or ScoringConfig()
    rows = list(rows)
    scores = [market_score(row, config) for row in rows]
    categories = classify_scores(scores, config)
    logger.debug("Scored %d markets (mode=%s)", len(rows), resolve_mode(config).value)
    return [
        row.model_copy(update={"attractiveness_score": score, "attractiveness_category": category})
        for row, score, category in zip(rows, scores, categories)
    ]


# ============================================================================
# What-If Preferences
# ============================================================================

def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def weights_from_preferences(preferences: Mapping[Dimension, str]) -> AttractivenessWeights:
    """
    Convert preferred category labels into integer weights summing to 100.

    Each dimension earns points equal to the score of its preferred label
    ("Any" earns nothing). Weights are the rounded point shares; any rounding
    remainder goes to the largest weight (first in dimension order on ties),
    so no weight turns negative. If no dimension earns points, default weights apply.
    """
    points = {
        dimension: (0 if label == ANY_PREFERENCE else score_dimension(dimension, label))
        for dimension, label in preferences.items()
    }
    total = sum(points.values())
    if total == 0:
        return AttractivenessWeights()

    values = {dimension.value: 0 for dimension in Dimension}
    for dimension, earned in points.items():
        values[dimension.value] = _round_half_up(earned / total * 100)

    largest = max(values, key=values.get)
    values[largest] += 100 - sum(values.values())
    return AttractivenessWeights(**values)
