"""
Date Parsing

Sales extracts encode dates as eight-digit integers (YYYYMMDD) with 0 or
short values standing in for "unknown". Parsing fails closed: anything that
is not a real calendar date becomes null so the row survives.
"""

from datetime import date, datetime
from typing import Any, Optional

import polars as pl

DATE_KEY_FORMAT = "%Y%m%d"
DATE_KEY_LENGTH = 8


def parse_date_key(value: Any) -> Optional[date]:
    """
    Convert a YYYYMMDD integer into a date.

    >>> parse_date_key(20101229)
    datetime.date(2010, 12, 29)
    >>> parse_date_key(0) is None
    True
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None

    text = str(number)
    if number == 0 or len(text) != DATE_KEY_LENGTH:
        return None
    try:
        return datetime.strptime(text, DATE_KEY_FORMAT).date()
    except ValueError:
        return None


def date_key_expr(column: str) -> pl.Expr:
    text = pl.col(column).cast(pl.Int64, strict=False).cast(pl.Utf8)
    return (
        pl.when(text.str.len_chars() == DATE_KEY_LENGTH)
        .then(text.str.to_date(DATE_KEY_FORMAT, strict=False))
        .otherwise(pl.lit(None, dtype=pl.Date))
    )
