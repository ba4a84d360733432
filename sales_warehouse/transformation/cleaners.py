"""
Silver Layer Cleansing

Per-table transformations from staged raw extracts to the cleansed layer.
Handles:
- Deduplication of customer revisions (most recent wins)
- Code-to-label standardization (gender, marital status, product line, country)
- Composite product key decomposition and validity intervals
- Sales date parsing and financial consistency repair
- ERP id alignment with CRM customer numbers
"""

from dataclasses import dataclass
from datetime import date
from typing import Callable, Dict, Optional

import polars as pl
import structlog

from sales_warehouse.config import MalformedKeyPolicy, get_settings
from sales_warehouse.schemas import SourceTable, conform_raw
from .dates import date_key_expr
from .keys import (
    PRODUCT_KEY_MIN_LENGTH,
    category_id_expr,
    is_decomposable_expr,
    product_code_expr,
    strip_key_hyphens_expr,
    strip_legacy_prefix_expr,
)
from .normalizers import country_expr, gender_expr, marital_status_expr, product_line_expr
from .resolvers import (
    compute_validity_intervals,
    corrected_price_expr,
    corrected_sales_expr,
    select_most_recent,
)

logger = structlog.get_logger(__name__)

REJECT_REASON_COLUMN = "reject_reason"


@dataclass
class CleanedTable:
    """Cleansed rows of one source table plus any rows excluded on the way"""
    table: SourceTable
    data: pl.DataFrame
    rejected: Optional[pl.DataFrame] = None

    @property
    def rejected_rows(self) -> int:
        return 0 if self.rejected is None else self.rejected.height


class SilverCleaner:
    """
    Cleansing rules for each raw source table.

    Every method is a pure function of its input frame: running it twice on
    the same raw snapshot yields identical output.

    Example:
        cleaner = SilverCleaner()
        cleaned = cleaner.clean(SourceTable.CRM_SALES, raw_sales)
        cleaned.data
    """

    def __init__(
        self,
        malformed_key_policy: Optional[MalformedKeyPolicy] = None,
        reference_date: Optional[date] = None,
        legacy_customer_prefix: Optional[str] = None,
    ):
        cleansing = get_settings().cleansing
        self.malformed_key_policy = MalformedKeyPolicy(
            malformed_key_policy or cleansing.malformed_key_policy
        )
        self.reference_date = reference_date or cleansing.reference_date or date.today()
        self.legacy_customer_prefix = (
            legacy_customer_prefix
            if legacy_customer_prefix is not None
            else cleansing.legacy_customer_prefix
        )
        self._rules: Dict[SourceTable, Callable[[pl.DataFrame], CleanedTable]] = {
            SourceTable.CRM_CUSTOMERS: self.clean_customers,
            SourceTable.CRM_PRODUCTS: self.clean_products,
            SourceTable.CRM_SALES: self.clean_sales,
            SourceTable.ERP_CUSTOMERS: self.clean_demographics,
            SourceTable.ERP_LOCATIONS: self.clean_locations,
            SourceTable.ERP_CATEGORIES: self.clean_categories,
        }

    def clean(self, table: SourceTable, df: pl.DataFrame) -> CleanedTable:
        """Conform a raw frame to its layout and apply the table's rules"""
        table = SourceTable(table)
        raw = conform_raw(table, df)
        cleaned = self._rules[table](raw)
        logger.info(
            "Table cleansed",
            table=table.value,
            input_rows=raw.height,
            output_rows=cleaned.data.height,
            rejected_rows=cleaned.rejected_rows,
        )
        return cleaned

    def clean_customers(self, df: pl.DataFrame) -> CleanedTable:
        """One row per customer id, newest revision, standardized codes"""
        latest = select_most_recent(df, key="cst_id", recency_column="cst_create_date")

        data = latest.select(
            pl.col("cst_id"),
            pl.col("cst_key"),
            pl.col("cst_firstname").str.strip_chars(),
            pl.col("cst_lastname").str.strip_chars(),
            marital_status_expr("cst_marital_status").alias("cst_marital_status"),
            gender_expr("cst_gndr").alias("cst_gndr"),
            pl.col("cst_create_date"),
        )
        return CleanedTable(SourceTable.CRM_CUSTOMERS, data)

    def clean_products(self, df: pl.DataFrame) -> CleanedTable:
        """Decompose keys, default cost, label product lines, recompute end dates"""
        rejected = None
        if self.malformed_key_policy == MalformedKeyPolicy.REJECT:
            decomposable = is_decomposable_expr("prd_key")
            rejected = df.filter(~decomposable).with_columns(
                pl.lit(
                    f"product key shorter than {PRODUCT_KEY_MIN_LENGTH} characters"
                ).alias(REJECT_REASON_COLUMN)
            )
            df = df.filter(decomposable)
            if rejected.height:
                logger.warning(
                    "Malformed product keys rejected",
                    rows=rejected.height,
                    keys=rejected["prd_key"].to_list()[:10],
                )

        versions = df.select(
            pl.col("prd_id"),
            category_id_expr("prd_key").alias("cat_id"),
            product_code_expr("prd_key").alias("prd_key"),
            pl.col("prd_nm"),
            pl.col("prd_cost").fill_null(0),
            product_line_expr("prd_line").alias("prd_line"),
            pl.col("prd_start_dt").cast(pl.Date),
        )
        data = compute_validity_intervals(
            versions,
            partition="prd_key",
            start_column="prd_start_dt",
            end_column="prd_end_dt",
        )
        # Coerced keys without a product code are not versions of one product
        data = data.with_columns(
            pl.when(pl.col("prd_key") == "")
            .then(pl.lit(None, dtype=pl.Date))
            .otherwise(pl.col("prd_end_dt"))
            .alias("prd_end_dt")
        )
        return CleanedTable(SourceTable.CRM_PRODUCTS, data, rejected)

    def clean_sales(self, df: pl.DataFrame) -> CleanedTable:
        """Parse date keys and repair sales amount / unit price"""
        data = df.select(
            pl.col("sls_ord_num"),
            pl.col("sls_prd_key"),
            pl.col("sls_cust_id"),
            date_key_expr("sls_order_dt").alias("sls_order_dt"),
            date_key_expr("sls_ship_dt").alias("sls_ship_dt"),
            date_key_expr("sls_due_dt").alias("sls_due_dt"),
            corrected_sales_expr("sls_sales", "sls_quantity", "sls_price").alias("sls_sales"),
            pl.col("sls_quantity"),
            corrected_price_expr("sls_sales", "sls_quantity", "sls_price").alias("sls_price"),
        )
        return CleanedTable(SourceTable.CRM_SALES, data)

    def clean_demographics(self, df: pl.DataFrame) -> CleanedTable:
        """Align ids with CRM customer numbers, drop future birthdates, label gender"""
        data = df.select(
            strip_legacy_prefix_expr("cid", self.legacy_customer_prefix).alias("cid"),
            pl.when(pl.col("bdate") > pl.lit(self.reference_date))
            .then(pl.lit(None, dtype=pl.Date))
            .otherwise(pl.col("bdate"))
            .alias("bdate"),
            gender_expr("gen").alias("gen"),
        )
        return CleanedTable(SourceTable.ERP_CUSTOMERS, data)

    def clean_locations(self, df: pl.DataFrame) -> CleanedTable:
        """Remove hyphens from ids and standardize country names"""
        data = df.select(
            strip_key_hyphens_expr("cid").alias("cid"),
            country_expr("cntry").alias("cntry"),
        )
        return CleanedTable(SourceTable.ERP_LOCATIONS, data)

    def clean_categories(self, df: pl.DataFrame) -> CleanedTable:
        """Category reference is taken over unchanged"""
        return CleanedTable(SourceTable.ERP_CATEGORIES, df.clone())
