import pytest

from normalizer import (
    DIMENSION_SPECS,
    DISCOUNT_BEST,
    Dimension,
    match_score,
    normalize,
    normalize_token,
    score_dimension,
)


def test_normalize_base_labels():
    assert normalize("Low") == 1
    assert normalize("Low", inverse=True) == 3
    assert normalize("High") == 3
    assert normalize("High", inverse=True) == 1
    assert normalize("Medium") == 2
    assert normalize("Medium", inverse=True) == 2


def test_normalize_is_case_and_whitespace_insensitive():
    assert normalize("  hIgH ") == 3
    assert normalize("LOW", inverse=True) == 3


@pytest.mark.parametrize("label", [None, "", "   ", "unknown", "N/A"])
def test_normalize_unrecognized_is_zero(label):
    assert normalize(label) == 0
    assert normalize(label, inverse=True) == 0


def test_pricing_posture_premium_is_best():
    assert score_dimension(Dimension.PREMIUM_DISCOUNT, "Premium") == 3
    assert score_dimension(Dimension.PREMIUM_DISCOUNT, "Par") == 2
    assert score_dimension(Dimension.PREMIUM_DISCOUNT, "Discount") == 1


def test_custom_table_overrides_posture():
    assert normalize("Discount", table=DISCOUNT_BEST) == 3
    assert normalize("Premium", table=DISCOUNT_BEST) == 1


def test_pricing_rationality_labels():
    assert score_dimension(Dimension.PRICING_RATIONALITY, "Rational") == 3
    assert score_dimension(Dimension.PRICING_RATIONALITY, "Overpriced (Opportunity)") == 2
    assert score_dimension(Dimension.PRICING_RATIONALITY, "Underpriced (Risk)") == 1
    assert score_dimension(Dimension.PRICING_RATIONALITY, "Irrational") == 1


def test_relative_risk_migration_labels():
    dimension = Dimension.RELATIVE_RISK_MIGRATION
    assert score_dimension(dimension, "Below National Avg") == 3
    assert score_dimension(dimension, "At National Avg") == 2
    assert score_dimension(dimension, "Above National Avg") == 1
    assert score_dimension(dimension, "below_national") == 3


def test_inverse_dimensions():
    inverse = {spec.dimension for spec in DIMENSION_SPECS.values() if spec.inverse}
    assert inverse == {
        Dimension.HHI,
        Dimension.RISK,
        Dimension.RISK_MIGRATION,
        Dimension.RELATIVE_RISK_MIGRATION,
    }
    assert score_dimension(Dimension.HHI, "Low") == 3
    assert score_dimension(Dimension.ECONOMIC_GROWTH, "Low") == 1


def test_every_dimension_is_defined():
    assert set(DIMENSION_SPECS) == set(Dimension)
    assert Dimension.HHI.column == "HHI_Score"
    assert Dimension.INTERNATIONAL_CM.column == "International_CM_Score"


def test_normalize_token():
    assert normalize_token(" Below National ") == "below_national"
    assert normalize_token(None) == ""


def test_match_score_high_medium_low():
    assert match_score("High", "High") == 3
    assert match_score("Medium", "High") == 2
    assert match_score("Low", "High") == 1
    assert match_score(None, "High") == 0
    assert match_score("", "Low") == 0


def test_match_score_relative_migration():
    target = "Below National Avg"
    assert match_score("Below National Avg", target) == 3
    assert match_score("At National Avg", target) == 2
    assert match_score("Above National Avg", target) == 1


def test_match_score_posture_and_rationality():
    assert match_score("Premium", "Premium") == 3
    assert match_score("Par", "Premium") == 2
    assert match_score("Discount", "Premium") == 1
    assert match_score("Irrational", "Rational") == 1
    assert match_score("anything", "something else") == 0
