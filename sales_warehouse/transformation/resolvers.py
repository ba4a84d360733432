"""
Row Resolvers

Multi-row and cross-field repairs applied during cleansing:
- Recency: keep the newest revision per natural key
- Validity intervals: derive each version's end date from the next start date
- Financial consistency: repair sales amount and unit price around quantity
"""

from dataclasses import dataclass
from typing import Optional, Union

import polars as pl
import structlog

logger = structlog.get_logger(__name__)

_ROW_NR = "_row_nr"

Number = Union[int, float]


def select_most_recent(
    df: pl.DataFrame,
    key: str,
    recency_column: str,
) -> pl.DataFrame:
    """
    Deduplicate revisions, keeping the most recent row per key.

    Rows with a null key are discarded. Ties on the recency column are broken
    by input order (the earliest row wins); rows with a null recency value
    rank last. Output is ordered by key.
    """
    deduplicated = (
        df.filter(pl.col(key).is_not_null())
        .with_row_index(_ROW_NR)
        .sort(
            [recency_column, _ROW_NR],
            descending=[True, False],
            nulls_last=True,
        )
        .unique(subset=[key], keep="first", maintain_order=True)
        .sort(key)
        .drop(_ROW_NR)
    )

    dropped = df.height - deduplicated.height
    if dropped:
        logger.debug("Superseded revisions removed", key=key, rows=dropped)
    return deduplicated


def compute_validity_intervals(
    df: pl.DataFrame,
    partition: str,
    start_column: str,
    end_column: str,
) -> pl.DataFrame:
    """
    Recompute end dates for slowly changing versions.

    Within each partition, versions are ordered by start date; a version ends
    the day before its successor starts and the latest version stays open
    (null end date). Input row order is preserved.
    """
    return (
        df.with_row_index(_ROW_NR)
        .sort([partition, start_column, _ROW_NR])
        .with_columns(
            (pl.col(start_column).shift(-1).over(partition) - pl.duration(days=1))
            .cast(pl.Date)
            .alias(end_column)
        )
        .sort(_ROW_NR)
        .drop(_ROW_NR)
    )


# =============================================================================
# Financial consistency
# =============================================================================

@dataclass(frozen=True)
class CorrectedAmounts:
    """Sales amount and unit price after correction"""
    sales_amount: Optional[Number]
    unit_price: Optional[float]


def correct_sales_amounts(
    sales_amount: Optional[Number],
    quantity: Optional[Number],
    unit_price: Optional[Number],
) -> CorrectedAmounts:
    """
    Enforce sales_amount = quantity * |unit_price| on one line.

    Both corrections read the original values, never each other's output.
    When the product cannot be formed (null quantity or price) the equality
    is unknown and a positive sales amount is kept as is.
    """
    expected = None
    if quantity is not None and unit_price is not None:
        expected = quantity * abs(unit_price)

    if sales_amount is None or sales_amount <= 0:
        corrected_sales = expected
    elif expected is not None and sales_amount != expected:
        corrected_sales = expected
    else:
        corrected_sales = sales_amount

    if unit_price is None or unit_price <= 0:
        if sales_amount is None or not quantity:
            corrected_price = None
        else:
            corrected_price = sales_amount / quantity
    else:
        corrected_price = float(unit_price)

    return CorrectedAmounts(sales_amount=corrected_sales, unit_price=corrected_price)


def corrected_sales_expr(sales: str, quantity: str, price: str) -> pl.Expr:
    expected = pl.col(quantity) * pl.col(price).abs()
    # a null product leaves the comparison null, which keeps the original amount
    needs_recompute = (
        pl.col(sales).is_null()
        | (pl.col(sales) <= 0)
        | (pl.col(sales) != expected)
    )
    return pl.when(needs_recompute).then(expected).otherwise(pl.col(sales))


def corrected_price_expr(sales: str, quantity: str, price: str) -> pl.Expr:
    safe_quantity = pl.when(pl.col(quantity) != 0).then(pl.col(quantity))
    derived = pl.col(sales) / safe_quantity
    return (
        pl.when(pl.col(price).is_null() | (pl.col(price) <= 0))
        .then(derived)
        .otherwise(pl.col(price))
        .cast(pl.Float64)
    )
