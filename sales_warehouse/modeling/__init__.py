"""
Dimensional Modeling Module
"""
from .assembler import (
    CUSTOMER_DIMENSION_COLUMNS,
    PRODUCT_DIMENSION_COLUMNS,
    SALES_FACT_COLUMNS,
    DimensionalAssembler,
    GoldTable,
)
from .surrogate_keys import assign_surrogate_keys, is_dense

__all__ = [
    "CUSTOMER_DIMENSION_COLUMNS",
    "PRODUCT_DIMENSION_COLUMNS",
    "SALES_FACT_COLUMNS",
    "DimensionalAssembler",
    "GoldTable",
    "assign_surrogate_keys",
    "is_dense",
]
