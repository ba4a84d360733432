"""
Prefect Workflow Orchestration - Warehouse Refresh

Full-refresh workflow for the sales warehouse with:
- Raw extract staging
- Silver and gold layer builds
- Data quality checks
- Alerting on failure
"""

from datetime import date
from typing import Dict, Optional

import polars as pl
from prefect import flow, task, get_run_logger

from sales_warehouse.config import get_settings
from sales_warehouse.config.logging import configure_logging
from sales_warehouse.exceptions import ValidationGateError
from sales_warehouse.ingestion import RawLoader
from sales_warehouse.pipeline import WarehousePipeline
from sales_warehouse.quality import ValidationStatus
from sales_warehouse.schemas import SourceTable

settings = get_settings()


# =============================================================================
# TASKS
# =============================================================================

@task(
    name="load_raw_extracts",
    description="Stage the CRM and ERP extracts",
    retries=3,
    retry_delay_seconds=60,
)
def load_raw_extracts(raw_path: str) -> Dict[SourceTable, pl.DataFrame]:
    """Load all six source extracts"""
    logger = get_run_logger()

    loader = RawLoader(raw_path)
    raw = loader.load_all()

    total_rows = sum(r.rows_loaded for r in loader.results)
    logger.info(f"Raw load complete: {len(raw)} tables, {total_rows} rows")
    return raw


@task(
    name="build_silver_layer",
    description="Cleanse raw extracts into the silver layer",
)
def build_silver_layer(
    pipeline: WarehousePipeline,
    raw: Dict[SourceTable, pl.DataFrame],
) -> dict:
    """Cleanse every raw table"""
    logger = get_run_logger()

    results = pipeline.build_silver(raw)
    rejected = sum(r.rows_rejected for r in results)

    logger.info(f"Silver layer loaded: {len(results)} tables, {rejected} rows rejected")
    return {
        r.stage: {"input_rows": r.input_rows, "output_rows": r.output_rows}
        for r in results
    }


@task(
    name="build_gold_layer",
    description="Assemble the star schema",
)
def build_gold_layer(pipeline: WarehousePipeline) -> dict:
    """Build the dimensions and the sales fact"""
    logger = get_run_logger()

    results = pipeline.build_gold()

    logger.info(f"Gold layer loaded: {', '.join(r.stage for r in results)}")
    return {r.stage: {"output_rows": r.output_rows} for r in results}


@task(
    name="validate_warehouse",
    description="Run data quality validations",
)
def validate_warehouse(pipeline: WarehousePipeline) -> dict:
    """Validate both layers"""
    logger = get_run_logger()

    report = pipeline.validate()

    logger.info(
        f"Validation {report.status.value}: "
        f"{report.passed_checks}/{report.total_checks} checks passed"
    )
    return report.summary()


@task(
    name="send_alert",
    description="Send alert notification",
)
def send_alert(
    alert_type: str,
    message: str,
    severity: str = "info",
) -> None:
    """Send alert notification"""
    logger = get_run_logger()
    logger.warning(f"[{severity.upper()}] {alert_type}: {message}")


# =============================================================================
# FLOWS
# =============================================================================

@flow(
    name="warehouse_refresh",
    description="Full refresh of the sales warehouse",
)
def warehouse_refresh(
    raw_path: Optional[str] = None,
    reference_date: Optional[date] = None,
) -> dict:
    """
    Warehouse refresh pipeline.

    Steps:
    1. Stage raw extracts
    2. Build the silver layer
    3. Build the gold layer
    4. Validate both layers
    5. Alert on failed checks
    """
    logger = get_run_logger()
    configure_logging()

    raw_path = raw_path or settings.paths.raw_path
    pipeline = WarehousePipeline(settings=settings, reference_date=reference_date)

    logger.info(f"Starting warehouse refresh from {raw_path}")

    results = {"steps": {}}

    try:
        raw = load_raw_extracts(raw_path)
        results["steps"]["silver"] = build_silver_layer(pipeline, raw)
        results["steps"]["gold"] = build_gold_layer(pipeline)

        validation = validate_warehouse(pipeline)
        results["steps"]["validation"] = validation

        if validation["status"] == ValidationStatus.FAILED.value:
            message = f"{validation['failed_checks']} checks failed"
            send_alert(
                alert_type="Data Quality Failure",
                message=message,
                severity="critical",
            )
            if settings.quality.fail_on_validation_error:
                raise ValidationGateError([f["name"] for f in validation["failures"]])

        results["status"] = "success"

    except Exception as e:
        logger.error(f"Warehouse refresh failed: {e}")

        send_alert(
            alert_type="Refresh Failed",
            message=f"Warehouse refresh failed: {str(e)}",
            severity="critical",
        )

        results["status"] = "failed"
        results["error"] = str(e)
        raise

    return results


# =============================================================================
# DEPLOYMENT CONFIGURATION
# =============================================================================

if __name__ == "__main__":
    warehouse_refresh()
