"""
Rank-based (percentile) and threshold-based category assignment.
Percentile boundaries are cohort-relative: reclassify whenever the cohort changes.
"""
from collections import Counter
from typing import Sequence

import numpy as np
import pandas as pd


# ============================================================================
# Category Labels (best -> worst)
# ============================================================================

ATTRACTIVENESS_CATEGORIES = ("Highly Attractive", "Attractive", "Neutral", "Challenging")
OPPORTUNITY_CATEGORIES = ("Excellent", "Good", "Fair", "Poor")

# Top 20% Excellent, next 30% Good, next 30% Fair, bottom 20% Poor
OPPORTUNITY_WIDTHS = (0.2, 0.3, 0.3, 0.2)

# (min_score, category) on the raw 0-3 composite scale
DEFAULT_THRESHOLDS = [
    (2.5, "Highly Attractive"),
    (2.0, "Attractive"),
    (1.5, "Neutral"),
]


# ============================================================================
# Percentile Classification
# ============================================================================

def _missing_lowest(values: Sequence[float]) -> np.ndarray:
    array = np.asarray([np.nan if v is None else v for v in values], dtype=float)
    return np.where(np.isnan(array), -np.inf, array)


def rank_order(
    scores: Sequence[float],
    tie_breaker: Sequence[float] | None = None,
) -> np.ndarray:
    """
    Ascending rank position (0-based) of each score.

    Ties are broken by the tie-breaker and then by original position, with
    earlier rows ranking higher, so equal inputs always produce the same order.
    """
    n = len(scores)
    primary = _missing_lowest(scores)
    secondary = _missing_lowest(tie_breaker) if tie_breaker is not None else np.zeros(n)
    # lexsort sorts by the last key first
    order = np.lexsort((-np.arange(n), secondary, primary))
    positions = np.empty(n, dtype=int)
    positions[order] = np.arange(n)
    return positions


def classify_by_rank(
    scores: Sequence[float],
    labels: Sequence[str] = ATTRACTIVENESS_CATEGORIES,
    widths: Sequence[float] | None = None,
    tie_breaker: Sequence[float] | None = None,
) -> list[str]:
    """
    Assign categories by rank within the cohort.

    Members are ranked from the top: the highest-ranked share of `widths[0]`
    gets the best label, the next share of `widths[1]` the next label, and so
    on. A member at rank r (0 = best) of n takes the first label whose
    cumulative share exceeds r / n, so the top member is always in the best
    bucket. With equal widths this is quartile assignment for four labels.

    Args:
        scores: Score per cohort member, in original order.
        labels: Category labels ordered best -> worst.
        widths: Fraction of the cohort per label (best -> worst); equal if omitted.
        tie_breaker: Optional secondary score used before original order.

    Returns:
        Category label per cohort member, in original order.
    """
    n = len(scores)
    if n == 0:
        return []

    k = len(labels)
    if widths is None:
        widths = [1.0 / k] * k
    if len(widths) != k:
        raise ValueError(f"Expected {k} widths, got {len(widths)}")

    shares = np.asarray(widths, dtype=float)
    boundaries = np.round(np.cumsum(shares) / shares.sum() * n, 9)
    ranks_from_top = n - 1 - rank_order(scores, tie_breaker)

    buckets = np.searchsorted(boundaries, ranks_from_top, side="right")
    buckets = np.minimum(buckets, k - 1)
    return [labels[int(b)] for b in buckets]


# ============================================================================
# Threshold Classification
# ============================================================================

def classify_by_threshold(
    scores: Sequence[float],
    thresholds: Sequence[tuple[float, str]] = DEFAULT_THRESHOLDS,
    default: str = ATTRACTIVENESS_CATEGORIES[-1],
) -> list[str]:
    """
    Assign each score the label of the highest threshold it meets.

    Args:
        scores: Scores to classify.
        thresholds: (min_score, label) pairs, in any order.
        default: Label for scores below every threshold (and for missing scores).
    """
    ordered = sorted(thresholds, key=lambda t: t[0], reverse=True)
    categories = []
    for score in scores:
        category = default
        if score is not None and not pd.isna(score):
            for minimum, label in ordered:
                if score >= minimum:
                    category = label
                    break
        categories.append(category)
    return categories


def category_counts(categories: Sequence[str], labels: Sequence[str]) -> dict[str, int]:
    """Count per label (zero-filled, in label order); unexpected labels are appended."""
    counts = Counter(categories)
    result = {label: counts.get(label, 0) for label in labels}
    for label, count in counts.items():
        if label not in result:
            result[label] = count
    return result
