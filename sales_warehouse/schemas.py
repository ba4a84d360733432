"""
Source Table Schemas

Column layouts of the six raw extracts (three CRM, three ERP) and helpers
that bring a raw frame onto its declared layout before cleansing.
"""

from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping

import polars as pl

from sales_warehouse.exceptions import SchemaMismatchError


class SourceSystem(str, Enum):
    """Upstream systems feeding the warehouse"""
    CRM = "crm"
    ERP = "erp"


class SourceTable(str, Enum):
    """Raw tables staged from the source systems"""
    CRM_CUSTOMERS = "crm_cust_info"
    CRM_PRODUCTS = "crm_prd_info"
    CRM_SALES = "crm_sales_details"
    ERP_CUSTOMERS = "erp_cust_az12"
    ERP_LOCATIONS = "erp_loc_a101"
    ERP_CATEGORIES = "erp_px_cat_g1v2"

    @property
    def system(self) -> SourceSystem:
        return SourceSystem.CRM if self.value.startswith("crm") else SourceSystem.ERP


RAW_SCHEMAS: Dict[SourceTable, Dict[str, pl.DataType]] = {
    SourceTable.CRM_CUSTOMERS: {
        "cst_id": pl.Int64,
        "cst_key": pl.Utf8,
        "cst_firstname": pl.Utf8,
        "cst_lastname": pl.Utf8,
        "cst_marital_status": pl.Utf8,
        "cst_gndr": pl.Utf8,
        "cst_create_date": pl.Date,
    },
    SourceTable.CRM_PRODUCTS: {
        "prd_id": pl.Int64,
        "prd_key": pl.Utf8,
        "prd_nm": pl.Utf8,
        "prd_cost": pl.Int64,
        "prd_line": pl.Utf8,
        "prd_start_dt": pl.Date,
        "prd_end_dt": pl.Date,
    },
    SourceTable.CRM_SALES: {
        "sls_ord_num": pl.Utf8,
        "sls_prd_key": pl.Utf8,
        "sls_cust_id": pl.Int64,
        "sls_order_dt": pl.Int64,
        "sls_ship_dt": pl.Int64,
        "sls_due_dt": pl.Int64,
        "sls_sales": pl.Int64,
        "sls_quantity": pl.Int64,
        "sls_price": pl.Int64,
    },
    SourceTable.ERP_CUSTOMERS: {
        "cid": pl.Utf8,
        "bdate": pl.Date,
        "gen": pl.Utf8,
    },
    SourceTable.ERP_LOCATIONS: {
        "cid": pl.Utf8,
        "cntry": pl.Utf8,
    },
    SourceTable.ERP_CATEGORIES: {
        "id": pl.Utf8,
        "cat": pl.Utf8,
        "subcat": pl.Utf8,
        "maintenance": pl.Utf8,
    },
}


def _conform_column(name: str, source_dtype: pl.DataType, target_dtype: pl.DataType) -> pl.Expr:
    col = pl.col(name)
    if target_dtype == pl.Date and source_dtype == pl.Utf8:
        # Extracts carry ISO dates, sometimes with a midnight time part
        return (
            col.str.strip_chars()
            .str.slice(0, 10)
            .str.to_date("%Y-%m-%d", strict=False)
            .alias(name)
        )
    if target_dtype != pl.Utf8 and source_dtype == pl.Utf8:
        return col.str.strip_chars().cast(target_dtype, strict=False).alias(name)
    return col.cast(target_dtype, strict=False).alias(name)


def conform_raw(table: SourceTable, df: pl.DataFrame) -> pl.DataFrame:
    """
    Project a raw frame onto the declared layout of its source table.

    Values that cannot be cast become null; the row is kept.

    Raises:
        SchemaMismatchError: if a declared column is absent
    """
    schema = RAW_SCHEMAS[table]
    missing = [name for name in schema if name not in df.columns]
    if missing:
        raise SchemaMismatchError(table.value, missing)

    return df.select([
        _conform_column(name, df.schema[name], dtype)
        for name, dtype in schema.items()
    ])


def frame_from_rows(table: SourceTable, rows: Iterable[Mapping[str, Any]]) -> pl.DataFrame:
    """Build a raw frame from in-memory records; absent keys become null."""
    schema = RAW_SCHEMAS[table]
    records: List[Dict[str, Any]] = [
        {name: row.get(name) for name in schema}
        for row in rows
    ]
    if not records:
        return empty_frame(table)
    return pl.from_dicts(records, schema=schema)


def empty_frame(table: SourceTable) -> pl.DataFrame:
    return pl.DataFrame(schema=RAW_SCHEMAS[table])
