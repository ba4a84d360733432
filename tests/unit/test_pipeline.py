"""
Unit Tests - Warehouse Pipeline
"""
from pathlib import Path

import pytest
import polars as pl
from polars.testing import assert_frame_equal

from sales_warehouse.config import Settings
from sales_warehouse.config.settings import CleansingSettings, PathSettings, QualitySettings
from sales_warehouse.exceptions import SchemaMismatchError, StageFailure, ValidationGateError
from sales_warehouse.pipeline import WarehousePipeline
from sales_warehouse.quality import ValidationStatus
from sales_warehouse.schemas import SourceTable
from sales_warehouse.storage import Layer, LayerStore


@pytest.fixture
def pipeline(test_settings) -> WarehousePipeline:
    return WarehousePipeline(settings=test_settings)


class TestWarehousePipeline:
    """Tests for the full refresh"""

    def test_run_builds_every_table(self, pipeline, raw_tables):
        """Test a run commits every silver and gold table"""
        run = pipeline.run(raw_tables)

        assert [s.stage for s in run.stages] == [t.value for t in SourceTable] + [
            "dim_customers",
            "dim_products",
            "fact_sales",
        ]
        assert pipeline.store.names(Layer.SILVER) == sorted(t.value for t in SourceTable)
        assert pipeline.store.names(Layer.GOLD) == ["dim_customers", "dim_products", "fact_sales"]
        assert run.completed_at is not None

    def test_stage_results(self, pipeline, raw_tables):
        """Test stage row counts and rejected rows"""
        run = pipeline.run(raw_tables)

        customers = run.stage("crm_cust_info")
        products = run.stage("crm_prd_info")
        assert customers.input_rows == 5
        assert customers.output_rows == 3
        assert customers.layer == Layer.SILVER
        assert products.rows_rejected == 1
        assert run.stage("fact_sales").output_rows == 4
        assert run.rejected["crm_prd_info"]["prd_id"].to_list() == [213]

    def test_report_covers_both_layers(self, pipeline, raw_tables):
        """Test the report spans silver and gold checks"""
        run = pipeline.run(raw_tables)

        assert run.report.status == ValidationStatus.PARTIAL
        assert run.report.failed_checks == 0
        tables = {c.table for c in run.report.checks}
        assert "crm_sales_details" in tables
        assert "fact_sales" in tables

    def test_skip_validation(self, pipeline, raw_tables):
        """Test validation can be skipped"""
        run = pipeline.run(raw_tables, validate=False)

        assert run.report is None

    def test_string_table_names_accepted(self, pipeline, raw_tables):
        """Test raw tables may be keyed by name"""
        raw = {table.value: df for table, df in raw_tables.items()}

        run = pipeline.run(raw)

        assert run.stage("fact_sales").output_rows == 4

    def test_rerun_is_idempotent(self, pipeline, raw_tables):
        """Test a rerun reproduces the gold tables"""
        pipeline.run(raw_tables)
        first = pipeline.store.tables(Layer.GOLD)

        pipeline.run(raw_tables)
        second = pipeline.store.tables(Layer.GOLD)

        for name in first:
            assert_frame_equal(first[name], second[name])


class TestStageFailure:
    """Tests for fatal stage errors"""

    def test_missing_raw_table(self, pipeline, raw_tables):
        """Test a missing raw table fails its stage"""
        raw = dict(raw_tables)
        del raw[SourceTable.ERP_LOCATIONS]

        with pytest.raises(StageFailure) as exc_info:
            pipeline.run(raw)

        failure = exc_info.value
        assert failure.stage == "erp_loc_a101"
        assert isinstance(failure.cause, KeyError)
        assert failure.duration_seconds >= 0
        assert failure.code == "STAGE_FAILURE"

    def test_schema_mismatch(self, pipeline, raw_tables):
        """Test a schema mismatch is wrapped in StageFailure"""
        raw = dict(raw_tables)
        raw[SourceTable.CRM_SALES] = raw_tables[SourceTable.CRM_SALES].drop("sls_price")

        with pytest.raises(StageFailure) as exc_info:
            pipeline.run(raw)

        assert exc_info.value.stage == "crm_sales_details"
        assert isinstance(exc_info.value.__cause__, SchemaMismatchError)
        assert exc_info.value.cause.missing_columns == ["sls_price"]

    def test_failure_keeps_committed_tables(self, pipeline, raw_tables):
        """Test a failed run leaves committed tables in place"""
        pipeline.run(raw_tables)
        committed = pipeline.store.get(Layer.SILVER, "crm_sales_details")
        fact = pipeline.store.get(Layer.GOLD, "fact_sales")

        raw = dict(raw_tables)
        raw[SourceTable.CRM_SALES] = raw_tables[SourceTable.CRM_SALES].drop("sls_price")
        with pytest.raises(StageFailure):
            pipeline.run(raw)

        assert pipeline.store.get(Layer.SILVER, "crm_sales_details") is committed
        assert pipeline.store.get(Layer.GOLD, "fact_sales") is fact

    def test_gold_before_silver(self, pipeline):
        """Test gold stages fail without silver tables"""
        with pytest.raises(StageFailure) as exc_info:
            pipeline.build_gold()

        assert exc_info.value.stage == "dim_customers"


class TestValidationGate:
    """Tests for the opt-in validation gate"""

    def _settings(self, tmp_path, reference_date, **quality) -> Settings:
        return Settings(
            paths=PathSettings(output_path=str(tmp_path)),
            cleansing=CleansingSettings(reference_date=reference_date),
            quality=QualitySettings(**quality),
        )

    def test_gate_raises_on_failure(self, tmp_path, reference_date, raw_tables):
        """Test the gate raises when checks fail"""
        settings = self._settings(
            tmp_path, reference_date, strict_mode=True, fail_on_validation_error=True
        )

        with pytest.raises(ValidationGateError) as exc_info:
            WarehousePipeline(settings=settings).run(raw_tables)

        assert "ref_crm_sales_details_sls_prd_key" in exc_info.value.failed_checks

    def test_gate_off_reports_only(self, tmp_path, reference_date, raw_tables):
        """Test failures are only reported with the gate off"""
        settings = self._settings(tmp_path, reference_date, strict_mode=True)

        run = WarehousePipeline(settings=settings).run(raw_tables)

        assert run.report.status == ValidationStatus.FAILED

    def test_gate_ignores_warnings_outside_strict_mode(self, tmp_path, reference_date, raw_tables):
        """Test warnings do not trip the gate outside strict mode"""
        settings = self._settings(tmp_path, reference_date, fail_on_validation_error=True)

        run = WarehousePipeline(settings=settings).run(raw_tables)

        assert run.report.status == ValidationStatus.PARTIAL


class TestLayerStore:
    """Tests for committed table storage"""

    def test_get_uncommitted(self, tmp_path):
        """Test reading an uncommitted table"""
        store = LayerStore(output_path=tmp_path, write_parquet=False)

        with pytest.raises(KeyError, match="silver.missing"):
            store.get(Layer.SILVER, "missing")

    def test_commit_replaces(self, tmp_path):
        """Test a commit replaces the previous table"""
        store = LayerStore(output_path=tmp_path, write_parquet=False)
        store.commit(Layer.GOLD, "t", pl.DataFrame({"a": [1]}))
        store.commit(Layer.GOLD, "t", pl.DataFrame({"a": [2, 3]}))

        assert store.get(Layer.GOLD, "t")["a"].to_list() == [2, 3]
        assert store.names(Layer.SILVER) == []

    def test_parquet_written(self, tmp_path, reference_date, raw_tables):
        """Test committed tables are mirrored to parquet"""
        settings = Settings(
            paths=PathSettings(output_path=str(tmp_path), write_parquet=True),
            cleansing=CleansingSettings(reference_date=reference_date),
        )
        pipeline = WarehousePipeline(settings=settings)

        pipeline.run(raw_tables)

        fact_path = Path(tmp_path) / "gold" / "fact_sales.parquet"
        assert fact_path.exists()
        assert not list(Path(tmp_path).rglob("*.tmp"))
        assert_frame_equal(pl.read_parquet(fact_path), pipeline.store.get(Layer.GOLD, "fact_sales"))

    def test_clear_layer(self, tmp_path):
        """Test clearing one layer keeps the other"""
        store = LayerStore(output_path=tmp_path, write_parquet=False)
        store.commit(Layer.SILVER, "a", pl.DataFrame({"x": [1]}))
        store.commit(Layer.GOLD, "b", pl.DataFrame({"x": [1]}))

        store.clear(Layer.SILVER)

        assert not store.has(Layer.SILVER, "a")
        assert store.has(Layer.GOLD, "b")
