"""
Natural Key Handling

Product keys arrive as ``<category prefix><sep><product code>``: characters
1-5 are the category token (hyphens become underscores to match the ERP
category ids), character 6 is a separator and the product code runs from
character 7 to the end. Decomposition is purely positional.

ERP customer ids need two unrelated fixes to line up with the CRM customer
number: location ids lose every hyphen, and demographic ids lose a legacy
prefix.
"""

from typing import Optional, Tuple

import polars as pl

from sales_warehouse.exceptions import MalformedKeyError

CATEGORY_PREFIX_LENGTH = 5
PRODUCT_CODE_OFFSET = 6
PRODUCT_KEY_MIN_LENGTH = PRODUCT_CODE_OFFSET + 1


def decompose_product_key(key: Optional[str]) -> Tuple[str, str]:
    """
    Split a composite product key into (category_id, product_code).

    >>> decompose_product_key("CO-RF-FR-R92B-58")
    ('CO_RF', 'FR-R92B-58')

    Raises:
        MalformedKeyError: if the key is null or shorter than 7 characters
    """
    if key is None or len(key) < PRODUCT_KEY_MIN_LENGTH:
        raise MalformedKeyError(key, PRODUCT_KEY_MIN_LENGTH)
    return coerce_product_key(key)


def coerce_product_key(key: Optional[str]) -> Tuple[str, str]:
    """Best-effort split that never fails; short keys yield an empty product code."""
    text = key or ""
    return (
        text[:CATEGORY_PREFIX_LENGTH].replace("-", "_"),
        text[PRODUCT_CODE_OFFSET:],
    )


def strip_key_hyphens(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.replace("-", "")


def strip_legacy_prefix(value: Optional[str], prefix: str = "NAS") -> Optional[str]:
    if value is None or not prefix:
        return value
    if value.startswith(prefix):
        return value[len(prefix):]
    return value


# =============================================================================
# Expression forms
# =============================================================================

def is_decomposable_expr(column: str) -> pl.Expr:
    return pl.col(column).str.len_chars().fill_null(0) >= PRODUCT_KEY_MIN_LENGTH


def category_id_expr(column: str) -> pl.Expr:
    return (
        pl.col(column)
        .str.slice(0, CATEGORY_PREFIX_LENGTH)
        .str.replace_all("-", "_", literal=True)
        .fill_null("")
    )


def product_code_expr(column: str) -> pl.Expr:
    return pl.col(column).str.slice(PRODUCT_CODE_OFFSET).fill_null("")


def strip_key_hyphens_expr(column: str) -> pl.Expr:
    return pl.col(column).str.replace_all("-", "", literal=True)


def strip_legacy_prefix_expr(column: str, prefix: str = "NAS") -> pl.Expr:
    col = pl.col(column)
    if not prefix:
        return col
    return (
        pl.when(col.str.starts_with(prefix))
        .then(col.str.slice(len(prefix)))
        .otherwise(col)
    )
