"""
MSA economics table: positional parsing, derived year-over-year changes and market lookup.
"""
import logging
import math

from csv_parser import split_rows
from models import EconomicsRow
from regions import extract_state_codes

logger = logging.getLogger(__name__)

# MSA,Unemp_2023,Unemp_2024,GDP_K,GDP_YoY,Per_Capita_Income,Income_YoY,Pop_2023,Pop_2024
ECONOMICS_FIELD_COUNT = 9


def _number(token: str) -> float:
    try:
        value = float(token)
    except (TypeError, ValueError):
        return 0.0
    return value if math.isfinite(value) else 0.0


def _as_percentage(value: float) -> float:
    """Growth values below 1 are decimals (0.025); larger ones are already percentages."""
    return value * 100 if value < 1 else value


def build_economics_row(tokens: list[str]) -> EconomicsRow:
    """Build one economics row from positional tokens, deriving changes and growth."""
    unemployment_2023 = _number(tokens[1])
    unemployment_2024 = _number(tokens[2])
    population_2023 = _number(tokens[7])
    population_2024 = _number(tokens[8])

    if population_2023 > 0:
        population_growth = (population_2024 - population_2023) / population_2023 * 100
    else:
        population_growth = 0.0

    return EconomicsRow(
        market_id=tokens[0].strip(),
        unemployment_2023=unemployment_2023,
        unemployment_2024=unemployment_2024,
        unemployment_change=unemployment_2024 - unemployment_2023,
        gdp=_number(tokens[3]),
        gdp_growth=_as_percentage(_number(tokens[4])),
        per_capita_income=_number(tokens[5]),
        income_growth=_as_percentage(_number(tokens[6])),
        population_2023=population_2023,
        population_2024=population_2024,
        population_growth=population_growth,
    )


def parse_economics(text: str) -> list[EconomicsRow]:
    """
    Parse the economics CSV by column position.

    Rows with fewer than nine fields, or more fields than the header, are
    skipped; numbers that do not parse count as zero.
    """
    rows = split_rows(text)
    if len(rows) <= 1:
        return []

    parsed = []
    for tokens in rows[1:]:
        if len(tokens) < ECONOMICS_FIELD_COUNT:
            continue
        parsed.append(build_economics_row(tokens))

    skipped = len(rows) - 1 - len(parsed)
    if skipped:
        logger.info("Skipped %d short economics rows", skipped)
    return parsed


def find_economics(rows: list[EconomicsRow], market_id: str) -> EconomicsRow | None:
    """
    Look up economics for a market name.

    Exact name match first. Otherwise match on a shared state code plus a
    similar principal city, e.g. "NC-SC-Charlotte-Concord-Gastonia" matches
    "NC-Charlotte-Concord". Returns None when nothing matches.
    """
    if not market_id:
        return None

    for row in rows:
        if row.market_id == market_id:
            return row

    state_codes = extract_state_codes(market_id)
    parts = market_id.split("-")
    city = parts[len(state_codes)].strip().lower() if len(parts) > len(state_codes) else ""
    if not city:
        return None

    for row in rows:
        row_parts = row.market_id.split("-")
        row_state = row_parts[0]
        row_city = row_parts[1].strip().lower() if len(row_parts) > 1 else ""
        if row_state not in state_codes or not row_city:
            continue
        if city[:4] in row_city or row_city[:4] in city:
            return row
    return None
