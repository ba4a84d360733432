"""
Data Transformation Module
"""
from .cleaners import REJECT_REASON_COLUMN, CleanedTable, SilverCleaner
from .dates import date_key_expr, parse_date_key
from .keys import (
    coerce_product_key,
    decompose_product_key,
    strip_key_hyphens,
    strip_legacy_prefix,
)
from .normalizers import (
    NOT_AVAILABLE,
    normalize_country,
    normalize_gender,
    normalize_marital_status,
    normalize_product_line,
    resolve_gender,
)
from .resolvers import (
    CorrectedAmounts,
    compute_validity_intervals,
    correct_sales_amounts,
    select_most_recent,
)

__all__ = [
    "REJECT_REASON_COLUMN",
    "CleanedTable",
    "SilverCleaner",
    "date_key_expr",
    "parse_date_key",
    "coerce_product_key",
    "decompose_product_key",
    "strip_key_hyphens",
    "strip_legacy_prefix",
    "NOT_AVAILABLE",
    "normalize_country",
    "normalize_gender",
    "normalize_marital_status",
    "normalize_product_line",
    "resolve_gender",
    "CorrectedAmounts",
    "compute_validity_intervals",
    "correct_sales_amounts",
    "select_most_recent",
]
