"""
Field Normalizers

Coded source values mapped onto closed label sets. Every mapping is total:
input is trimmed and upper-cased before lookup, and anything unrecognized
(including null and blank) falls to an explicit default.

Each rule has a scalar form for single values and an expression form for
polars columns; both read the same lookup table.
"""

from typing import Any, Dict, Optional, Union

import polars as pl

NOT_AVAILABLE = "n/a"

GENDER_LABELS: Dict[str, str] = {
    "F": "Female",
    "FEMALE": "Female",
    "M": "Male",
    "MALE": "Male",
}

MARITAL_STATUS_LABELS: Dict[str, str] = {
    "S": "Single",
    "M": "Married",
}

PRODUCT_LINE_LABELS: Dict[str, str] = {
    "M": "Mountain",
    "R": "Road",
    "S": "Other Sales",
    "T": "Touring",
}

COUNTRY_LABELS: Dict[str, str] = {
    "DE": "Germany",
    "US": "United States",
    "USA": "United States",
}


def _lookup_key(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value).strip().upper()


def _lookup(value: Any, labels: Dict[str, str], default: str = NOT_AVAILABLE) -> str:
    key = _lookup_key(value)
    if key is None:
        return default
    return labels.get(key, default)


def normalize_gender(value: Any) -> str:
    return _lookup(value, GENDER_LABELS)


def normalize_marital_status(value: Any) -> str:
    return _lookup(value, MARITAL_STATUS_LABELS)


def normalize_product_line(value: Any) -> str:
    return _lookup(value, PRODUCT_LINE_LABELS)


def normalize_country(value: Any) -> str:
    """Known codes become names, blanks become n/a, anything else is kept trimmed."""
    if value is None:
        return NOT_AVAILABLE
    trimmed = str(value).strip()
    if not trimmed:
        return NOT_AVAILABLE
    return COUNTRY_LABELS.get(trimmed.upper(), trimmed)


def resolve_gender(crm_gender: Any, erp_gender: Any) -> str:
    """
    Pick the customer gender from both sources.

    The CRM value is the master when it carries a real label; otherwise the
    ERP demographic value is used, and n/a when neither has one.
    """
    crm_label = normalize_gender(crm_gender)
    if crm_label != NOT_AVAILABLE:
        return crm_label
    return normalize_gender(erp_gender)


# =============================================================================
# Expression forms
# =============================================================================

def _key_expr(column: Union[str, pl.Expr]) -> pl.Expr:
    col = pl.col(column) if isinstance(column, str) else column
    return col.cast(pl.Utf8).str.strip_chars().str.to_uppercase()


def lookup_expr(
    column: Union[str, pl.Expr],
    labels: Dict[str, str],
    default: Union[str, pl.Expr] = NOT_AVAILABLE,
) -> pl.Expr:
    """Build a when/then chain over a lookup table with a fallback branch"""
    key = _key_expr(column)
    chain = None
    for code, label in labels.items():
        if chain is None:
            chain = pl.when(key == code).then(pl.lit(label))
        else:
            chain = chain.when(key == code).then(pl.lit(label))

    fallback = pl.lit(default) if isinstance(default, str) else default
    if chain is None:
        return fallback
    return chain.otherwise(fallback)


def gender_expr(column: Union[str, pl.Expr]) -> pl.Expr:
    return lookup_expr(column, GENDER_LABELS)


def marital_status_expr(column: Union[str, pl.Expr]) -> pl.Expr:
    return lookup_expr(column, MARITAL_STATUS_LABELS)


def product_line_expr(column: Union[str, pl.Expr]) -> pl.Expr:
    return lookup_expr(column, PRODUCT_LINE_LABELS)


def country_expr(column: str) -> pl.Expr:
    trimmed = pl.col(column).cast(pl.Utf8).str.strip_chars()
    passthrough = (
        pl.when(trimmed.is_null() | (trimmed == ""))
        .then(pl.lit(NOT_AVAILABLE))
        .otherwise(trimmed)
    )
    return lookup_expr(column, COUNTRY_LABELS, default=passthrough)


def resolved_gender_expr(crm_column: str, erp_column: str) -> pl.Expr:
    crm_label = gender_expr(crm_column)
    return (
        pl.when(crm_label != NOT_AVAILABLE)
        .then(crm_label)
        .otherwise(gender_expr(erp_column))
    )
