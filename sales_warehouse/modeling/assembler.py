"""
Dimensional Assembly (Gold Layer)

Builds the star schema from the cleansed layer:
- dim_customers: CRM customers enriched with ERP demographics and location
- dim_products: current product versions enriched with ERP categories
- fact_sales: sales lines with natural references swapped for surrogate keys

Reference attributes are left-outer joined, so every dimension row is
emitted even without a match. Fact rows whose references cannot be resolved
are kept with a null surrogate key.
"""

from enum import Enum

import polars as pl
import structlog

from sales_warehouse.transformation.normalizers import resolved_gender_expr
from .surrogate_keys import assign_surrogate_keys

logger = structlog.get_logger(__name__)

_ROW_NR = "_row_nr"


class GoldTable(str, Enum):
    """Star schema tables"""
    DIM_CUSTOMERS = "dim_customers"
    DIM_PRODUCTS = "dim_products"
    FACT_SALES = "fact_sales"


# Dimension and fact layouts consumed by reporting
CUSTOMER_DIMENSION_COLUMNS = [
    "customer_key",
    "customer_id",
    "customer_number",
    "first_name",
    "last_name",
    "country",
    "marital_status",
    "gender",
    "birthdate",
    "create_date",
]

PRODUCT_DIMENSION_COLUMNS = [
    "product_key",
    "product_id",
    "product_number",
    "product_name",
    "category_id",
    "category",
    "subcategory",
    "maintenance",
    "cost",
    "product_line",
    "start_date",
]

SALES_FACT_COLUMNS = [
    "order_number",
    "product_key",
    "customer_key",
    "order_date",
    "shipping_date",
    "due_date",
    "sales_amount",
    "quantity",
    "unit_price",
]


def _unique_reference(df: pl.DataFrame, key: str, name: str) -> pl.DataFrame:
    """Keep the first row per key so a left join cannot fan out"""
    unique = df.filter(pl.col(key).is_not_null()).unique(
        subset=[key], keep="first", maintain_order=True
    )
    duplicates = df.height - unique.height
    if duplicates:
        logger.warning("Duplicate reference keys ignored", reference=name, key=key, rows=duplicates)
    return unique


class DimensionalAssembler:
    """
    Star schema builder over the cleansed tables.

    Dimensions must be built before the fact table, which resolves against
    the finished dimensions.

    Example:
        assembler = DimensionalAssembler()
        customers = assembler.build_customer_dimension(cust_info, cust_az12, loc_a101)
        products = assembler.build_product_dimension(prd_info, px_cat)
        sales = assembler.build_sales_fact(sales_details, products, customers)
    """

    def __init__(self, current_products_only: bool = True):
        self.current_products_only = current_products_only

    def build_customer_dimension(
        self,
        customers: pl.DataFrame,
        demographics: pl.DataFrame,
        locations: pl.DataFrame,
    ) -> pl.DataFrame:
        demo = _unique_reference(
            demographics.select(pl.col("cid").alias("cst_key"), "bdate", "gen"),
            "cst_key",
            "erp_cust_az12",
        )
        loc = _unique_reference(
            locations.select(pl.col("cid").alias("cst_key"), "cntry"),
            "cst_key",
            "erp_loc_a101",
        )

        joined = (
            customers.join(demo, on="cst_key", how="left")
            .join(loc, on="cst_key", how="left")
        )

        dimension = joined.select(
            pl.col("cst_id").alias("customer_id"),
            pl.col("cst_key").alias("customer_number"),
            pl.col("cst_firstname").alias("first_name"),
            pl.col("cst_lastname").alias("last_name"),
            pl.col("cntry").alias("country"),
            pl.col("cst_marital_status").alias("marital_status"),
            # CRM is the master for gender, ERP fills the gaps
            resolved_gender_expr("cst_gndr", "gen").alias("gender"),
            pl.col("bdate").alias("birthdate"),
            pl.col("cst_create_date").alias("create_date"),
        )

        dimension = assign_surrogate_keys(dimension, "customer_key", ["customer_id"])
        logger.info("Customer dimension built", rows=dimension.height)
        return dimension.select(CUSTOMER_DIMENSION_COLUMNS)

    def build_product_dimension(
        self,
        products: pl.DataFrame,
        categories: pl.DataFrame,
    ) -> pl.DataFrame:
        if self.current_products_only:
            products = products.filter(pl.col("prd_end_dt").is_null())

        cat = _unique_reference(
            categories.select(pl.col("id").alias("cat_id"), "cat", "subcat", "maintenance"),
            "cat_id",
            "erp_px_cat_g1v2",
        )

        dimension = products.join(cat, on="cat_id", how="left").select(
            pl.col("prd_id").alias("product_id"),
            pl.col("prd_key").alias("product_number"),
            pl.col("prd_nm").alias("product_name"),
            pl.col("cat_id").alias("category_id"),
            pl.col("cat").alias("category"),
            pl.col("subcat").alias("subcategory"),
            pl.col("maintenance"),
            pl.col("prd_cost").alias("cost"),
            pl.col("prd_line").alias("product_line"),
            pl.col("prd_start_dt").alias("start_date"),
        )

        dimension = assign_surrogate_keys(
            dimension, "product_key", ["start_date", "product_number"]
        )
        logger.info("Product dimension built", rows=dimension.height)
        return dimension.select(PRODUCT_DIMENSION_COLUMNS)

    def build_sales_fact(
        self,
        sales: pl.DataFrame,
        products: pl.DataFrame,
        customers: pl.DataFrame,
    ) -> pl.DataFrame:
        product_lookup = _unique_reference(
            products.sort("product_key").select(
                pl.col("product_number").alias("sls_prd_key"), "product_key"
            ),
            "sls_prd_key",
            GoldTable.DIM_PRODUCTS.value,
        )
        customer_lookup = _unique_reference(
            customers.sort("customer_key").select(
                pl.col("customer_id").alias("sls_cust_id"), "customer_key"
            ),
            "sls_cust_id",
            GoldTable.DIM_CUSTOMERS.value,
        )

        fact = (
            sales.with_row_index(_ROW_NR)
            .join(product_lookup, on="sls_prd_key", how="left")
            .join(customer_lookup, on="sls_cust_id", how="left")
            .sort(_ROW_NR)
            .select(
                pl.col("sls_ord_num").alias("order_number"),
                pl.col("product_key"),
                pl.col("customer_key"),
                pl.col("sls_order_dt").alias("order_date"),
                pl.col("sls_ship_dt").alias("shipping_date"),
                pl.col("sls_due_dt").alias("due_date"),
                pl.col("sls_sales").alias("sales_amount"),
                pl.col("sls_quantity").alias("quantity"),
                pl.col("sls_price").alias("unit_price"),
            )
        )

        unresolved = fact.filter(
            pl.col("product_key").is_null() | pl.col("customer_key").is_null()
        ).height
        logger.info("Sales fact built", rows=fact.height, unresolved_rows=unresolved)
        return fact

