"""
Score normalization for categorical sub-metric labels.
Maps ordinal labels (High/Medium/Low, Premium/Par/Discount, ...) onto a common 0-3 scale.
"""
import re
from enum import Enum
from typing import Mapping, NamedTuple


# ============================================================================
# Scored Dimensions
# ============================================================================

class Dimension(str, Enum):
    """The fixed set of scored market dimensions (value = parameter id)."""
    MARKET_SIZE = "Market_Size"
    HHI = "HHI"
    ECONOMIC_GROWTH = "Economic_Growth"
    LOAN_GROWTH = "Loan_Growth"
    RISK = "Risk"
    RISK_MIGRATION = "Risk_Migration"
    RELATIVE_RISK_MIGRATION = "Relative_Risk_Migration"
    PREMIUM_DISCOUNT = "Premium_Discount"
    PRICING_RATIONALITY = "Pricing_Rationality"
    REVENUE_PER_COMPANY = "Revenue_per_Company"
    INTERNATIONAL_CM = "International_CM"

    @property
    def column(self) -> str:
        """CSV column holding the category label for this dimension."""
        return f"{self.value}_Score"


# Pricing posture tables. The two conventions disagree on which end is best;
# PREMIUM_BEST is the one used for scoring.
PREMIUM_BEST: dict[str, int] = {"premium": 3, "par": 2, "discount": 1}
DISCOUNT_BEST: dict[str, int] = {"discount": 3, "par": 2, "premium": 1}

# Pricing rationality: "Rational", "Overpriced (Opportunity)", "Underpriced (Risk)", "Irrational"
PRICING_RATIONALITY_SCORES: dict[str, int] = {
    "irrational": 1,
    "underpriced": 1,
    "overpriced": 2,
    "rational": 3,
}

BASE_SCORES: dict[str, int] = {"high": 3, "medium": 2, "low": 1}


class DimensionSpec(NamedTuple):
    """How a dimension's labels are read: CSV column, direction and label table."""
    dimension: Dimension
    label: str
    inverse: bool = False
    table: Mapping[str, int] | None = None

    @property
    def column(self) -> str:
        return self.dimension.column


DIMENSION_SPECS: dict[Dimension, DimensionSpec] = {
    Dimension.MARKET_SIZE: DimensionSpec(Dimension.MARKET_SIZE, "Market Size"),
    # Concentration and risk are inverse: Low is good, High is bad
    Dimension.HHI: DimensionSpec(Dimension.HHI, "Market Concentration", inverse=True),
    Dimension.ECONOMIC_GROWTH: DimensionSpec(Dimension.ECONOMIC_GROWTH, "Economic Growth"),
    Dimension.LOAN_GROWTH: DimensionSpec(Dimension.LOAN_GROWTH, "Loan Growth"),
    Dimension.RISK: DimensionSpec(Dimension.RISK, "Credit Risk", inverse=True),
    Dimension.RISK_MIGRATION: DimensionSpec(Dimension.RISK_MIGRATION, "Risk Migration", inverse=True),
    Dimension.RELATIVE_RISK_MIGRATION: DimensionSpec(
        Dimension.RELATIVE_RISK_MIGRATION, "Relative Risk Migration", inverse=True
    ),
    Dimension.PREMIUM_DISCOUNT: DimensionSpec(
        Dimension.PREMIUM_DISCOUNT, "Premium / Discount Loan Pricing", table=PREMIUM_BEST
    ),
    Dimension.PRICING_RATIONALITY: DimensionSpec(
        Dimension.PRICING_RATIONALITY, "Pricing Rationality", table=PRICING_RATIONALITY_SCORES
    ),
    Dimension.REVENUE_PER_COMPANY: DimensionSpec(Dimension.REVENUE_PER_COMPANY, "Revenue per Company"),
    Dimension.INTERNATIONAL_CM: DimensionSpec(Dimension.INTERNATIONAL_CM, "International Cash Management"),
}


# ============================================================================
# Label Normalization
# ============================================================================

_WORD_SPLIT = re.compile(r"[^a-z]+")


def normalize_token(label: object) -> str:
    """Lower-case, trim and replace spaces with underscores ("Below National" -> "below_national")."""
    if label is None:
        return ""
    return str(label).strip().lower().replace(" ", "_")


def _words(label: str) -> set[str]:
    return {w for w in _WORD_SPLIT.split(label.lower()) if w}


def _pricing_rationality_score(text: str) -> int:
    # "irrational" contains "rational" so it has to be checked first
    if "irrational" in text or "underpriced" in text:
        return 1
    if "overpriced" in text:
        return 2
    if "rational" in text:
        return 3
    return 0


def _relative_migration_score(words: set[str], inverse: bool) -> int:
    if "below" in words:
        return 3 if inverse else 1
    if "above" in words:
        return 1 if inverse else 3
    if "at" in words:
        return 2
    return 0


def normalize(
    label: object,
    inverse: bool = False,
    table: Mapping[str, int] | None = None,
) -> int:
    """
    Convert a category label to its 0-3 score.

    Matching is case-insensitive and ignores surrounding whitespace. Domain
    overrides (custom table, pricing rationality, pricing posture) take
    precedence over the High/Medium/Low base table and are never inverted.
    Relative-migration labels ("Below National Avg", "at_national", ...) score
    below=3/at=2/above=1 when inverse, the reverse otherwise.

    Args:
        label: The raw label, free text allowed.
        inverse: True for dimensions where a lower raw value is better.
        table: Optional custom label table keyed by normalized token.

    Returns:
        Score in {0, 1, 2, 3}; 0 for unrecognized labels.
    """
    text = str(label).strip().lower() if label is not None else ""
    if not text:
        return 0

    token = text.replace(" ", "_")
    if table:
        custom = {normalize_token(k): v for k, v in table.items()}
        if token in custom:
            return custom[token]

    rationality = _pricing_rationality_score(text)
    if rationality:
        return rationality

    if token in PREMIUM_BEST:
        return PREMIUM_BEST[token]

    words = _words(text)
    migration = _relative_migration_score(words, inverse)
    if migration:
        return migration

    if token in BASE_SCORES:
        score = BASE_SCORES[token]
        return 4 - score if inverse else score
    return 0


def score_dimension(dimension: Dimension, label: object) -> int:
    """Score a label with the dimension's inverse flag and label table."""
    spec = DIMENSION_SPECS[dimension]
    return normalize(label, inverse=spec.inverse, table=spec.table)


# ============================================================================
# Bucket-Mode Match Scores
# ============================================================================

def match_score(actual: object, selected: object) -> int:
    """
    Score how closely an actual label matches a desired target label.

    Exact match scores 3. Otherwise, per label family of the target:
    High/Medium/Low gives 2 for "medium" and 1 for anything else; relative
    migration gives 2 for "at national" and 1 otherwise; Premium/Par/Discount
    gives 2 for "par" and 1 otherwise; Rational/Irrational gives 1. A target
    from an unknown family scores 0, as does a missing actual label.
    """
    normalized = normalize_token(actual)
    target = normalize_token(selected)
    if not normalized:
        return 0
    if normalized == target:
        return 3

    if target in BASE_SCORES:
        return 2 if normalized == "medium" else 1

    if "national" in target:
        actual_words = _words(normalized.replace("_", " "))
        target_words = _words(target.replace("_", " "))
        for word in ("below", "above", "at"):
            if word in target_words:
                if word in actual_words:
                    return 3
                break
        return 2 if "at" in actual_words and "national" in actual_words else 1

    if target in PREMIUM_BEST:
        return 2 if normalized == "par" else 1

    if target in ("rational", "irrational"):
        return 1

    return 0
