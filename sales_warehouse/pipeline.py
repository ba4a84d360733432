"""
Warehouse Pipeline

Orchestrates the full refresh: raw extracts -> cleansed (silver) tables ->
star schema (gold) -> validation.

Each stage builds one complete table and commits it only when the build
succeeds, so a failed stage leaves every committed table untouched and can
simply be re-run.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Callable, Dict, List, Mapping, Optional, Union
import time
import uuid

import polars as pl
import structlog

from sales_warehouse.config import Settings, get_settings
from sales_warehouse.config.logging import stage_context
from sales_warehouse.exceptions import StageFailure, ValidationGateError
from sales_warehouse.modeling import DimensionalAssembler, GoldTable
from sales_warehouse.quality import (
    ValidationReport,
    ValidationStatus,
    create_gold_validator,
    create_silver_validator,
)
from sales_warehouse.schemas import SourceTable
from sales_warehouse.storage import Layer, LayerStore
from sales_warehouse.transformation import CleanedTable, SilverCleaner

logger = structlog.get_logger(__name__)

RawTables = Mapping[Union[SourceTable, str], pl.DataFrame]


@dataclass
class StageResult:
    """Outcome of one committed stage"""
    stage: str
    layer: Layer
    input_rows: int
    output_rows: int
    rows_rejected: int
    started_at: datetime
    completed_at: datetime
    duration_seconds: float


@dataclass
class PipelineRun:
    """Everything a full refresh produced"""
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    stages: List[StageResult] = field(default_factory=list)
    rejected: Dict[str, pl.DataFrame] = field(default_factory=dict)
    report: Optional[ValidationReport] = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> float:
        if self.completed_at is None:
            return 0.0
        return (self.completed_at - self.started_at).total_seconds()

    def stage(self, name: str) -> StageResult:
        for result in self.stages:
            if result.stage == name:
                return result
        raise KeyError(name)


class WarehousePipeline:
    """
    Full-refresh build of the sales warehouse.

    Example:
        pipeline = WarehousePipeline()
        run = pipeline.run(RawLoader().load_all())
        pipeline.store.get(Layer.GOLD, "fact_sales")
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        store: Optional[LayerStore] = None,
        cleaner: Optional[SilverCleaner] = None,
        assembler: Optional[DimensionalAssembler] = None,
        reference_date: Optional[date] = None,
    ):
        self.settings = settings or get_settings()
        cleansing = self.settings.cleansing
        self.reference_date = reference_date or cleansing.reference_date or date.today()
        self.store = store or LayerStore(
            output_path=self.settings.paths.output_path,
            write_parquet=self.settings.paths.write_parquet,
        )
        self.cleaner = cleaner or SilverCleaner(
            malformed_key_policy=cleansing.malformed_key_policy,
            reference_date=self.reference_date,
            legacy_customer_prefix=cleansing.legacy_customer_prefix,
        )
        self.assembler = assembler or DimensionalAssembler()
        self.rejected: Dict[str, pl.DataFrame] = {}

    def _run_stage(
        self,
        stage: str,
        layer: Layer,
        input_rows: Callable[[], int],
        build: Callable[[], Union[pl.DataFrame, CleanedTable]],
    ) -> StageResult:
        """Build a table and commit it; any failure becomes a StageFailure"""
        with stage_context(stage, layer.value):
            started_at = datetime.now(timezone.utc)
            start = time.perf_counter()
            logger.info("Stage started")

            try:
                rows_in = input_rows()
                output = build()
                if isinstance(output, CleanedTable):
                    data, rejected = output.data, output.rejected
                else:
                    data, rejected = output, None
                self.store.commit(layer, stage, data)
            except Exception as e:
                duration = time.perf_counter() - start
                logger.error(
                    "Stage failed",
                    duration=round(duration, 3),
                    error=str(e),
                    exc_info=True,
                )
                raise StageFailure(stage, duration, e) from e

            if rejected is not None and rejected.height:
                self.rejected[stage] = rejected
            else:
                self.rejected.pop(stage, None)

            duration = time.perf_counter() - start
            result = StageResult(
                stage=stage,
                layer=layer,
                input_rows=rows_in,
                output_rows=data.height,
                rows_rejected=0 if rejected is None else rejected.height,
                started_at=started_at,
                completed_at=datetime.now(timezone.utc),
                duration_seconds=duration,
            )
            logger.info(
                "Stage complete",
                input_rows=result.input_rows,
                output_rows=result.output_rows,
                rows_rejected=result.rows_rejected,
                duration=round(duration, 3),
            )
            return result

    def clean_table(self, table: SourceTable, raw: RawTables) -> StageResult:
        """Cleanse one raw table into the silver layer"""
        table = SourceTable(table)

        def source() -> pl.DataFrame:
            frame = raw.get(table)
            if frame is None:
                frame = raw.get(table.value)
            if frame is None:
                raise KeyError(f"Raw table '{table.value}' was not staged")
            return frame

        return self._run_stage(
            table.value,
            Layer.SILVER,
            input_rows=lambda: source().height,
            build=lambda: self.cleaner.clean(table, source()),
        )

    def build_silver(self, raw: RawTables) -> List[StageResult]:
        logger.info("Loading silver layer", tables=len(SourceTable))
        return [self.clean_table(table, raw) for table in SourceTable]

    def build_gold(self) -> List[StageResult]:
        """Dimensions first, then the fact table that resolves against them"""
        logger.info("Loading gold layer")

        def silver(name: str) -> pl.DataFrame:
            return self.store.get(Layer.SILVER, name)

        def gold(table: GoldTable) -> pl.DataFrame:
            return self.store.get(Layer.GOLD, table.value)

        return [
            self._run_stage(
                GoldTable.DIM_CUSTOMERS.value,
                Layer.GOLD,
                input_rows=lambda: silver("crm_cust_info").height,
                build=lambda: self.assembler.build_customer_dimension(
                    silver("crm_cust_info"), silver("erp_cust_az12"), silver("erp_loc_a101")
                ),
            ),
            self._run_stage(
                GoldTable.DIM_PRODUCTS.value,
                Layer.GOLD,
                input_rows=lambda: silver("crm_prd_info").height,
                build=lambda: self.assembler.build_product_dimension(
                    silver("crm_prd_info"), silver("erp_px_cat_g1v2")
                ),
            ),
            self._run_stage(
                GoldTable.FACT_SALES.value,
                Layer.GOLD,
                input_rows=lambda: silver("crm_sales_details").height,
                build=lambda: self.assembler.build_sales_fact(
                    silver("crm_sales_details"),
                    gold(GoldTable.DIM_PRODUCTS),
                    gold(GoldTable.DIM_CUSTOMERS),
                ),
            ),
        ]

    def validate(self) -> ValidationReport:
        """Run the silver and gold suites over whatever is committed"""
        quality = self.settings.quality
        silver_report = create_silver_validator(quality, self.reference_date).validate(
            self.store.tables(Layer.SILVER)
        )
        gold_report = create_gold_validator(quality).validate(self.store.tables(Layer.GOLD))
        return ValidationReport.combine(
            [silver_report, gold_report], strict_mode=quality.strict_mode
        )

    def run(self, raw: RawTables, validate: bool = True) -> PipelineRun:
        """
        Full refresh from a raw snapshot.

        Raises:
            StageFailure: when a stage cannot complete
            ValidationGateError: when checks fail and the gate is enabled
        """
        run = PipelineRun()

        with structlog.contextvars.bound_contextvars(run_id=run.run_id):
            logger.info("Warehouse refresh started")

            run.stages.extend(self.build_silver(raw))
            run.stages.extend(self.build_gold())
            run.rejected = dict(self.rejected)

            if validate:
                run.report = self.validate()

            run.completed_at = datetime.now(timezone.utc)
            logger.info(
                "Warehouse refresh complete",
                stages=len(run.stages),
                duration=round(run.duration_seconds, 3),
                validation=run.report.status.value if run.report else None,
            )

        if (
            run.report is not None
            and self.settings.quality.fail_on_validation_error
            and run.report.status == ValidationStatus.FAILED
        ):
            raise ValidationGateError([c.name for c in run.report.failures])

        return run
