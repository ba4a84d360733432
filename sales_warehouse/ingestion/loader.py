"""
Raw Extract Loader

Stages the CRM and ERP flat-file extracts verbatim as polars frames:
- One frame per source table, projected onto the declared raw layout
- No cleansing; unparsable values become null
- Load results with row counts and timings for the run log
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import polars as pl
import structlog

from sales_warehouse.config import get_settings
from sales_warehouse.schemas import SourceTable, conform_raw, frame_from_rows

logger = structlog.get_logger(__name__)


# Relative locations of the extracts under the raw root
SOURCE_FILES: Dict[SourceTable, str] = {
    SourceTable.CRM_CUSTOMERS: "source_crm/cust_info.csv",
    SourceTable.CRM_PRODUCTS: "source_crm/prd_info.csv",
    SourceTable.CRM_SALES: "source_crm/sales_details.csv",
    SourceTable.ERP_CUSTOMERS: "source_erp/CUST_AZ12.csv",
    SourceTable.ERP_LOCATIONS: "source_erp/LOC_A101.csv",
    SourceTable.ERP_CATEGORIES: "source_erp/PX_CAT_G1V2.csv",
}


class LoadStatus(str, Enum):
    """Raw load status"""
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class LoadResult:
    """Result of loading one extract"""
    table: SourceTable
    file_path: str
    status: LoadStatus
    rows_loaded: int = 0
    error_message: Optional[str] = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> float:
        if self.completed_at is None:
            return 0.0
        return (self.completed_at - self.started_at).total_seconds()


class RawLoader:
    """
    Loads the six source extracts into memory.

    Every column is read as text and then cast onto the raw layout, so a
    malformed value nulls one field instead of failing the file.

    Example:
        loader = RawLoader("datasets")
        raw = loader.load_all()
        raw[SourceTable.CRM_SALES].height
    """

    def __init__(
        self,
        raw_path: Optional[Union[str, Path]] = None,
        delimiter: str = ",",
        encoding: str = "utf8",
        null_values: Optional[List[str]] = None,
    ):
        self.raw_path = Path(raw_path or get_settings().paths.raw_path)
        self.delimiter = delimiter
        self.encoding = encoding
        self.null_values = null_values if null_values is not None else ["", "NULL", "null"]
        self.results: List[LoadResult] = []

    def path_for(self, table: SourceTable) -> Path:
        return self.raw_path / SOURCE_FILES[table]

    def _read_csv(self, file_path: Path) -> pl.DataFrame:
        """Read CSV with every column as text; ERP headers are upper-case"""
        df = pl.read_csv(
            file_path,
            separator=self.delimiter,
            encoding=self.encoding,
            null_values=self.null_values,
            infer_schema_length=0,
        )
        return df.rename({c: c.strip().lower() for c in df.columns})

    def load_table(self, table: SourceTable) -> pl.DataFrame:
        """
        Load one extract.

        Raises:
            FileNotFoundError: if the extract is missing
            SchemaMismatchError: if the header lacks a declared column
        """
        file_path = self.path_for(table)
        result = LoadResult(table=table, file_path=str(file_path), status=LoadStatus.FAILED)
        self.results.append(result)

        logger.info(
            "Loading raw extract",
            table=table.value,
            system=table.system.value,
            path=str(file_path),
        )

        try:
            if not file_path.exists():
                raise FileNotFoundError(f"File not found: {file_path}")
            df = conform_raw(table, self._read_csv(file_path))
        except Exception as e:
            result.error_message = str(e)
            result.completed_at = datetime.now(timezone.utc)
            logger.error("Raw load failed", table=table.value, error=str(e))
            raise

        result.status = LoadStatus.COMPLETED
        result.rows_loaded = df.height
        result.completed_at = datetime.now(timezone.utc)

        logger.info(
            "Raw extract loaded",
            table=table.value,
            rows=df.height,
            duration=round(result.duration_seconds, 3),
        )
        return df

    def load_all(self) -> Dict[SourceTable, pl.DataFrame]:
        """Load every extract; the first failure propagates"""
        return {table: self.load_table(table) for table in SourceTable}

    @staticmethod
    def from_rows(
        rows_by_table: Mapping[SourceTable, Iterable[Mapping[str, Any]]],
    ) -> Dict[SourceTable, pl.DataFrame]:
        """Stage in-memory records, e.g. from an extract API"""
        return {
            SourceTable(table): frame_from_rows(SourceTable(table), rows)
            for table, rows in rows_by_table.items()
        }
