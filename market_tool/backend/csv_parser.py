"""
Delimited-text parsing with primitive type inference.
Rows that do not fit the table's schema are dropped and counted in the log.
"""
import io
import logging
import re
from typing import Any

import pandas as pd

logger = logging.getLogger(__name__)

NULL_TOKENS = {"", "null", "undefined"}

# A value must parse fully as a plain decimal number ("1_000", "nan" and "inf" stay text)
_NUMBER = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")
_INTEGER = re.compile(r"^[+-]?\d+$")


def infer_value(token: str) -> Any:
    """
    Infer the primitive type of a trimmed field token.

    TRUE/FALSE -> bool, empty/"null"/"undefined" -> None, a fully numeric token
    -> int or float, anything else -> the original text.
    """
    if token == "TRUE":
        return True
    if token == "FALSE":
        return False
    if token in NULL_TOKENS:
        return None
    if _NUMBER.match(token):
        if _INTEGER.match(token):
            return int(token)
        return float(token)
    return token


def coerce_number(value: Any) -> float | None:
    """
    Read a number from a parsed value, accepting currency text like "$2,500".

    Booleans, nulls and anything else that is not a finite decimal give None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).replace(",", "").replace("$", "").strip()
    if not _NUMBER.match(text):
        return None
    return float(text)


def _kind(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "bool"
    if coerce_number(value) is not None:
        return "number"
    return "text"


def _read_frame(text: str, delimiter: str) -> tuple[pd.DataFrame, int]:
    """Read raw text cells; returns the frame and the count of over-long rows skipped."""
    skipped: list[list[str]] = []

    def skip_line(bad_line: list[str]) -> None:
        skipped.append(bad_line)
        return None

    frame = pd.read_csv(
        io.StringIO(text.strip()),
        sep=delimiter,
        header=None,
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=True,
        on_bad_lines=skip_line,
        engine="python",
    )
    return frame, len(skipped)


def _frame_rows(frame: pd.DataFrame) -> list[list[str]]:
    # Short rows come back padded with NA; empty cells stay "".
    return [
        [str(cell).strip() for cell in row if not pd.isna(cell)]
        for row in frame.itertuples(index=False, name=None)
    ]


def split_rows(text: str, delimiter: str = ",") -> list[list[str]]:
    """
    Tokenize delimited text into rows of trimmed string tokens.

    The first line sets the table width: longer rows are skipped, shorter
    rows keep only the tokens they have. Quoted fields may contain the
    delimiter and doubled quotes ("" -> "). Blank lines are skipped.
    """
    if not text or not text.strip():
        return []
    frame, skipped = _read_frame(text, delimiter)
    if skipped:
        logger.info("Skipped %d rows wider than the header", skipped)
    return _frame_rows(frame)


def parse_table(text: str, delimiter: str = ",") -> list[dict[str, Any]]:
    """
    Parse delimited text with a header line into typed records.

    A data row is dropped when its token count differs from the header's, or
    when one of its values has a different kind (bool/number/text) than the
    column established in earlier accepted rows. Nulls fit every column, and
    currency text such as "$2,500" fits a numeric column.

    Args:
        text: Raw delimited text.
        delimiter: Field separator.

    Returns:
        List of dicts keyed by trimmed header names; empty for empty input.
    """
    if not text or not text.strip():
        return []
    frame, wide = _read_frame(text, delimiter)
    rows = _frame_rows(frame)
    if not rows:
        return []

    headers = rows[0]
    column_kinds: dict[str, str] = {}
    records: list[dict[str, Any]] = []
    dropped = wide

    for tokens in rows[1:]:
        if len(tokens) != len(headers):
            dropped += 1
            continue

        record = {header: infer_value(token) for header, token in zip(headers, tokens)}

        skewed = False
        for header, value in record.items():
            kind = _kind(value)
            if kind is None:
                continue
            expected = column_kinds.get(header)
            if expected is not None and expected != kind:
                skewed = True
                break
        if skewed:
            dropped += 1
            continue

        for header, value in record.items():
            kind = _kind(value)
            if kind is not None:
                column_kinds.setdefault(header, kind)
        records.append(record)

    if dropped:
        logger.info("Dropped %d malformed rows of %d", dropped, len(rows) - 1 + wide)
    return records
