"""
Test Suite Configuration
"""
from datetime import date
from typing import Dict

import pytest
import polars as pl

from sales_warehouse.config import MalformedKeyPolicy, Settings
from sales_warehouse.config.settings import CleansingSettings, PathSettings, QualitySettings
from sales_warehouse.schemas import SourceTable, frame_from_rows
from sales_warehouse.transformation import SilverCleaner


REFERENCE_DATE = date(2026, 1, 1)


@pytest.fixture
def reference_date() -> date:
    return REFERENCE_DATE


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Create test settings"""
    return Settings(
        paths=PathSettings(raw_path=str(tmp_path / "raw"), output_path=str(tmp_path / "warehouse")),
        cleansing=CleansingSettings(
            malformed_key_policy=MalformedKeyPolicy.REJECT,
            reference_date=REFERENCE_DATE,
        ),
        quality=QualitySettings(),
    )


@pytest.fixture
def cleaner() -> SilverCleaner:
    return SilverCleaner(
        malformed_key_policy=MalformedKeyPolicy.REJECT,
        reference_date=REFERENCE_DATE,
        legacy_customer_prefix="NAS",
    )


@pytest.fixture
def raw_customers() -> pl.DataFrame:
    """CRM customers with a superseded revision and a null id"""
    return frame_from_rows(SourceTable.CRM_CUSTOMERS, [
        {"cst_id": 1, "cst_key": "AW00001", "cst_firstname": " Jon ", "cst_lastname": "Yang ",
         "cst_marital_status": "M", "cst_gndr": "M", "cst_create_date": date(2025, 1, 1)},
        {"cst_id": 2, "cst_key": "AW00002", "cst_firstname": "Elaine", "cst_lastname": "Old",
         "cst_marital_status": "S", "cst_gndr": None, "cst_create_date": date(2024, 6, 1)},
        {"cst_id": 2, "cst_key": "AW00002", "cst_firstname": "Elaine", "cst_lastname": "Lu",
         "cst_marital_status": "S", "cst_gndr": "F", "cst_create_date": date(2025, 1, 2)},
        {"cst_id": 3, "cst_key": "AW00003", "cst_firstname": "Ruben", "cst_lastname": "Torres",
         "cst_marital_status": None, "cst_gndr": None, "cst_create_date": date(2025, 1, 3)},
        {"cst_id": None, "cst_key": "AW99999", "cst_firstname": "Ghost", "cst_lastname": "Row",
         "cst_marital_status": "S", "cst_gndr": "M", "cst_create_date": date(2025, 1, 4)},
    ])


@pytest.fixture
def raw_products() -> pl.DataFrame:
    """CRM product versions, including a key too short to decompose"""
    return frame_from_rows(SourceTable.CRM_PRODUCTS, [
        {"prd_id": 210, "prd_key": "CO-RF-FR-R92B-58", "prd_nm": "HL Road Frame - Black- 58",
         "prd_cost": None, "prd_line": "R ", "prd_start_dt": date(2003, 7, 1), "prd_end_dt": None},
        {"prd_id": 211, "prd_key": "BI-RB-BK-R93R-62", "prd_nm": "Road-150 Red- 62",
         "prd_cost": 2171, "prd_line": "R", "prd_start_dt": date(2011, 7, 1), "prd_end_dt": date(2011, 12, 28)},
        {"prd_id": 212, "prd_key": "BI-RB-BK-R93R-62", "prd_nm": "Road-150 Red- 62",
         "prd_cost": 2443, "prd_line": "R", "prd_start_dt": date(2012, 7, 1), "prd_end_dt": None},
        {"prd_id": 213, "prd_key": "BAD", "prd_nm": "Broken",
         "prd_cost": 10, "prd_line": "M", "prd_start_dt": date(2013, 7, 1), "prd_end_dt": None},
    ])


@pytest.fixture
def raw_sales() -> pl.DataFrame:
    """Sales lines covering each financial repair and an orphan line"""
    return frame_from_rows(SourceTable.CRM_SALES, [
        {"sls_ord_num": "SO1", "sls_prd_key": "FR-R92B-58", "sls_cust_id": 1,
         "sls_order_dt": 20101229, "sls_ship_dt": 20110105, "sls_due_dt": 20110110,
         "sls_sales": 30, "sls_quantity": 3, "sls_price": None},
        {"sls_ord_num": "SO2", "sls_prd_key": "BK-R93R-62", "sls_cust_id": 2,
         "sls_order_dt": 20110101, "sls_ship_dt": 20110108, "sls_due_dt": 20110113,
         "sls_sales": -5, "sls_quantity": 2, "sls_price": 1200},
        {"sls_ord_num": "SO3", "sls_prd_key": "BK-R93R-62", "sls_cust_id": 3,
         "sls_order_dt": 0, "sls_ship_dt": 20110108, "sls_due_dt": 32154,
         "sls_sales": 2443, "sls_quantity": 1, "sls_price": -2443},
        {"sls_ord_num": "SO4", "sls_prd_key": "XX-MISSING", "sls_cust_id": 99,
         "sls_order_dt": 20110101, "sls_ship_dt": 20110108, "sls_due_dt": 20110113,
         "sls_sales": 100, "sls_quantity": 0, "sls_price": 50},
    ])


@pytest.fixture
def raw_demographics() -> pl.DataFrame:
    return frame_from_rows(SourceTable.ERP_CUSTOMERS, [
        {"cid": "NASAW00001", "bdate": date(1971, 10, 6), "gen": "Male"},
        {"cid": "AW00002", "bdate": date(1976, 5, 10), "gen": "F"},
        {"cid": "NASAW00003", "bdate": date(2090, 1, 1), "gen": "Male"},
    ])


@pytest.fixture
def raw_locations() -> pl.DataFrame:
    return frame_from_rows(SourceTable.ERP_LOCATIONS, [
        {"cid": "AW-00001", "cntry": "DE"},
        {"cid": "AW-00002", "cntry": "USA "},
        {"cid": "AW-00003", "cntry": "  "},
    ])


@pytest.fixture
def raw_categories() -> pl.DataFrame:
    return frame_from_rows(SourceTable.ERP_CATEGORIES, [
        {"id": "CO_RF", "cat": "Components", "subcat": "Road Frames", "maintenance": "Yes"},
        {"id": "BI_RB", "cat": "Bikes", "subcat": "Road Bikes", "maintenance": "No"},
    ])


@pytest.fixture
def raw_tables(
    raw_customers,
    raw_products,
    raw_sales,
    raw_demographics,
    raw_locations,
    raw_categories,
) -> Dict[SourceTable, pl.DataFrame]:
    """Complete raw snapshot of all six source tables"""
    return {
        SourceTable.CRM_CUSTOMERS: raw_customers,
        SourceTable.CRM_PRODUCTS: raw_products,
        SourceTable.CRM_SALES: raw_sales,
        SourceTable.ERP_CUSTOMERS: raw_demographics,
        SourceTable.ERP_LOCATIONS: raw_locations,
        SourceTable.ERP_CATEGORIES: raw_categories,
    }


@pytest.fixture
def silver_tables(cleaner, raw_tables) -> Dict[str, pl.DataFrame]:
    """Cleansed layer built from the raw snapshot"""
    return {
        table.value: cleaner.clean(table, df).data
        for table, df in raw_tables.items()
    }
