"""
Data Validation Module

Read-only quality checks over the cleansed and dimensional layers.

Every check returns the offending rows (an empty frame means the check
passed) and never repairs data. Check kinds:
- Uniqueness: group by a claimed key, flag groups with more than one row
- Formatting: flag strings that differ from their trimmed form
- Domain: list the distinct values of a coded field for review
- Range / order: flag values outside bounds or out of sequence
- Referential: flag rows whose key has no match in the referenced table
- Consistency: flag rows violating a cross-field rule
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import polars as pl
import structlog

from sales_warehouse.config import get_settings
from sales_warehouse.config.settings import QualitySettings
from sales_warehouse.modeling.surrogate_keys import is_dense
from sales_warehouse.transformation.normalizers import (
    GENDER_LABELS,
    MARITAL_STATUS_LABELS,
    NOT_AVAILABLE,
    PRODUCT_LINE_LABELS,
)

logger = structlog.get_logger(__name__)

Tables = Mapping[str, pl.DataFrame]

# Derived prices are Float64 quotients, so products are compared relatively
AMOUNT_TOLERANCE = 1e-9


class ValidationSeverity(str, Enum):
    """Severity levels for validation failures"""
    ERROR = "error"  # Cleansing defect; fails the gate
    WARNING = "warning"  # Raw data beyond the normalization rules
    INFO = "info"  # Review only


class ValidationStatus(str, Enum):
    """Overall validation status"""
    PASSED = "passed"
    FAILED = "failed"
    PARTIAL = "partial"


class CheckKind(str, Enum):
    UNIQUENESS = "uniqueness"
    NOT_NULL = "not_null"
    FORMATTING = "formatting"
    DOMAIN = "domain"
    RANGE = "range"
    ORDER = "order"
    REFERENTIAL = "referential"
    CONSISTENCY = "consistency"
    DENSITY = "density"


@dataclass
class CheckResult:
    """Single validation check result"""
    name: str
    kind: CheckKind
    table: str
    passed: bool
    severity: ValidationSeverity
    message: str
    offending_rows: pl.DataFrame = field(default_factory=pl.DataFrame)
    details: Dict[str, Any] = field(default_factory=dict)
    total_rows: int = 0

    @property
    def failed_rows(self) -> int:
        return self.offending_rows.height


@dataclass
class ValidationReport:
    """Complete validation suite result"""
    status: ValidationStatus
    total_checks: int
    passed_checks: int
    failed_checks: int
    warning_count: int
    checks: List[CheckResult] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    @property
    def success_rate(self) -> float:
        """Percentage of passed checks"""
        if self.total_checks == 0:
            return 100.0
        return (self.passed_checks / self.total_checks) * 100

    @property
    def failures(self) -> List[CheckResult]:
        return [c for c in self.checks if not c.passed]

    def get(self, name: str) -> CheckResult:
        for check in self.checks:
            if check.name == name:
                return check
        raise KeyError(name)

    @classmethod
    def from_checks(
        cls,
        checks: Sequence[CheckResult],
        strict_mode: bool = False,
        started_at: Optional[datetime] = None,
    ) -> "ValidationReport":
        passed_checks = sum(1 for c in checks if c.passed)
        failed_checks = sum(
            1 for c in checks if not c.passed and c.severity == ValidationSeverity.ERROR
        )
        warning_count = sum(
            1 for c in checks if not c.passed and c.severity != ValidationSeverity.ERROR
        )

        if failed_checks > 0:
            status = ValidationStatus.FAILED
        elif warning_count > 0 and strict_mode:
            status = ValidationStatus.FAILED
        elif warning_count > 0:
            status = ValidationStatus.PARTIAL
        else:
            status = ValidationStatus.PASSED

        return cls(
            status=status,
            total_checks=len(checks),
            passed_checks=passed_checks,
            failed_checks=failed_checks,
            warning_count=warning_count,
            checks=list(checks),
            started_at=started_at or datetime.now(timezone.utc),
            completed_at=datetime.now(timezone.utc),
        )

    @classmethod
    def combine(cls, reports: Iterable["ValidationReport"], strict_mode: bool = False) -> "ValidationReport":
        reports = list(reports)
        checks = [c for r in reports for c in r.checks]
        started_at = min((r.started_at for r in reports), default=None)
        return cls.from_checks(checks, strict_mode=strict_mode, started_at=started_at)

    def summary(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "total_checks": self.total_checks,
            "passed_checks": self.passed_checks,
            "failed_checks": self.failed_checks,
            "warning_count": self.warning_count,
            "success_rate": self.success_rate,
            "failures": [
                {"name": c.name, "severity": c.severity.value, "rows": c.failed_rows}
                for c in self.failures
            ],
        }


# Finds offending rows in a table; may consult the other tables
Finder = Callable[[pl.DataFrame, Tables], Tuple[pl.DataFrame, Dict[str, Any]]]


def _as_list(columns: Union[str, Sequence[str]]) -> List[str]:
    return [columns] if isinstance(columns, str) else list(columns)


class DataValidator:
    """
    Validator over a set of named tables.

    Checks are registered with the builder methods and run together against
    a mapping of table name to frame, so referential checks can look across
    tables.

    Example:
        validator = (
            DataValidator()
            .add_unique_check("crm_cust_info", "cst_id")
            .add_trimmed_check("crm_cust_info", ["cst_firstname", "cst_lastname"])
        )
        report = validator.validate({"crm_cust_info": customers})
    """

    def __init__(self, strict_mode: bool = False):
        self.strict_mode = strict_mode  # Fail on any warning
        self._checks: List[Callable[[Tables], CheckResult]] = []

    def reset(self) -> None:
        """Reset validator state"""
        self._checks = []

    def __len__(self) -> int:
        return len(self._checks)

    def _register(
        self,
        name: str,
        kind: CheckKind,
        table: str,
        columns: Sequence[str],
        severity: ValidationSeverity,
        finder: Finder,
        description: str,
    ) -> "DataValidator":
        def check(tables: Tables) -> CheckResult:
            df = tables.get(table)
            if df is None:
                return CheckResult(
                    name=name,
                    kind=kind,
                    table=table,
                    passed=False,
                    severity=severity,
                    message=f"Table '{table}' not found",
                )

            missing = [c for c in columns if c not in df.columns]
            if missing:
                return CheckResult(
                    name=name,
                    kind=kind,
                    table=table,
                    passed=False,
                    severity=severity,
                    message=f"Columns not found in '{table}': {', '.join(missing)}",
                )

            offending, details = finder(df, tables)
            passed = offending.height == 0
            return CheckResult(
                name=name,
                kind=kind,
                table=table,
                passed=passed,
                severity=severity,
                message=(
                    f"{description}: {offending.height} offending rows"
                    if not passed
                    else f"{description}: ok"
                ),
                offending_rows=offending,
                details=details,
                total_rows=df.height,
            )

        self._checks.append(check)
        return self

    def add_unique_check(
        self,
        table: str,
        columns: Union[str, Sequence[str]],
        allow_null: bool = False,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
        name: Optional[str] = None,
    ) -> "DataValidator":
        """Flag key groups with more than one row (and null keys unless allowed)"""
        cols = _as_list(columns)

        def finder(df: pl.DataFrame, _: Tables) -> Tuple[pl.DataFrame, Dict[str, Any]]:
            condition = pl.col("row_count") > 1
            if not allow_null:
                condition = condition | pl.any_horizontal([pl.col(c).is_null() for c in cols])
            groups = (
                df.group_by(cols)
                .agg(pl.len().alias("row_count"))
                .filter(condition)
                .sort(cols, nulls_last=True)
            )
            return groups, {"duplicate_groups": groups.height}

        return self._register(
            name or f"unique_{table}_{'_'.join(cols)}",
            CheckKind.UNIQUENESS, table, cols, severity, finder,
            f"Uniqueness of {table}({', '.join(cols)})",
        )

    def add_not_null_check(
        self,
        table: str,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
        name: Optional[str] = None,
    ) -> "DataValidator":
        def finder(df: pl.DataFrame, _: Tables) -> Tuple[pl.DataFrame, Dict[str, Any]]:
            nulls = df.filter(pl.col(column).is_null())
            return nulls, {"null_count": nulls.height}

        return self._register(
            name or f"not_null_{table}_{column}",
            CheckKind.NOT_NULL, table, [column], severity, finder,
            f"Nulls in {table}.{column}",
        )

    def add_trimmed_check(
        self,
        table: str,
        columns: Union[str, Sequence[str]],
        severity: ValidationSeverity = ValidationSeverity.ERROR,
        name: Optional[str] = None,
    ) -> "DataValidator":
        """Flag rows where a string field carries leading or trailing spaces"""
        cols = _as_list(columns)

        def finder(df: pl.DataFrame, _: Tables) -> Tuple[pl.DataFrame, Dict[str, Any]]:
            untrimmed = df.filter(
                pl.any_horizontal([
                    (pl.col(c) != pl.col(c).str.strip_chars()).fill_null(False)
                    for c in cols
                ])
            )
            return untrimmed, {}

        return self._register(
            name or f"trimmed_{table}_{'_'.join(cols)}",
            CheckKind.FORMATTING, table, cols, severity, finder,
            f"Unwanted spaces in {table}({', '.join(cols)})",
        )

    def add_domain_check(
        self,
        table: str,
        column: str,
        allowed_values: Optional[Sequence[Any]] = None,
        severity: Optional[ValidationSeverity] = None,
        name: Optional[str] = None,
    ) -> "DataValidator":
        """
        Enumerate the distinct values of a coded field.

        Without ``allowed_values`` the check always passes and only reports the
        distinct values; with them, rows outside the set are offending.
        """
        if severity is None:
            severity = ValidationSeverity.INFO if allowed_values is None else ValidationSeverity.ERROR

        def finder(df: pl.DataFrame, _: Tables) -> Tuple[pl.DataFrame, Dict[str, Any]]:
            distinct = df.get_column(column).unique().sort(nulls_last=True).to_list()
            details: Dict[str, Any] = {"distinct_values": distinct}
            if allowed_values is None:
                return df.clear(), details
            details["allowed_values"] = list(allowed_values)
            outside = df.filter(
                pl.col(column).is_null() | ~pl.col(column).is_in(list(allowed_values))
            )
            return outside, details

        return self._register(
            name or f"domain_{table}_{column}",
            CheckKind.DOMAIN, table, [column], severity, finder,
            f"Values of {table}.{column}",
        )

    def add_range_check(
        self,
        table: str,
        column: str,
        min_value: Optional[Any] = None,
        max_value: Optional[Any] = None,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
        name: Optional[str] = None,
    ) -> "DataValidator":
        """Flag non-null values below min_value or above max_value"""
        def finder(df: pl.DataFrame, _: Tables) -> Tuple[pl.DataFrame, Dict[str, Any]]:
            conditions = []
            if min_value is not None:
                conditions.append(pl.col(column) < min_value)
            if max_value is not None:
                conditions.append(pl.col(column) > max_value)
            if not conditions:
                return df.clear(), {}
            out_of_range = df.filter(pl.any_horizontal(conditions).fill_null(False))
            return out_of_range, {"min": min_value, "max": max_value}

        return self._register(
            name or f"range_{table}_{column}",
            CheckKind.RANGE, table, [column], severity, finder,
            f"{table}.{column} outside [{min_value}, {max_value}]",
        )

    def add_order_check(
        self,
        table: str,
        earlier: str,
        later: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
        name: Optional[str] = None,
    ) -> "DataValidator":
        """Flag rows where ``later`` precedes ``earlier``"""
        def finder(df: pl.DataFrame, _: Tables) -> Tuple[pl.DataFrame, Dict[str, Any]]:
            return df.filter((pl.col(later) < pl.col(earlier)).fill_null(False)), {}

        return self._register(
            name or f"order_{table}_{earlier}_{later}",
            CheckKind.ORDER, table, [earlier, later], severity, finder,
            f"{table}.{later} before {earlier}",
        )

    def add_rule_check(
        self,
        table: str,
        name: str,
        violation: pl.Expr,
        columns: Sequence[str],
        description: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Flag rows for which the ``violation`` expression is true"""
        def finder(df: pl.DataFrame, _: Tables) -> Tuple[pl.DataFrame, Dict[str, Any]]:
            return df.filter(violation.fill_null(False)), {}

        return self._register(
            name, CheckKind.CONSISTENCY, table, list(columns), severity, finder, description
        )

    def add_referential_check(
        self,
        table: str,
        column: str,
        reference_table: str,
        reference_column: str,
        allow_null: bool = True,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
        name: Optional[str] = None,
    ) -> "DataValidator":
        """Flag rows whose ``column`` value is absent from the referenced table"""
        check_name = name or f"ref_{table}_{column}"

        def finder(df: pl.DataFrame, tables: Tables) -> Tuple[pl.DataFrame, Dict[str, Any]]:
            reference = tables.get(reference_table)
            if reference is None or reference_column not in reference.columns:
                raise KeyError(f"{reference_table}.{reference_column}")

            keys = (
                reference.select(
                    pl.col(reference_column).cast(df.schema[column], strict=False).alias(column)
                )
                .drop_nulls()
                .unique()
            )
            orphans = df.join(keys, on=column, how="anti")
            if allow_null:
                orphans = orphans.filter(pl.col(column).is_not_null())
            return orphans, {"orphan_count": orphans.height}

        def guarded(df: pl.DataFrame, tables: Tables) -> Tuple[pl.DataFrame, Dict[str, Any]]:
            try:
                return finder(df, tables)
            except KeyError as e:
                logger.warning("Reference table missing", check=check_name, reference=str(e))
                return df, {"missing_reference": str(e)}

        return self._register(
            check_name,
            CheckKind.REFERENTIAL, table, [column], severity, guarded,
            f"{table}.{column} without match in {reference_table}.{reference_column}",
        )

    def add_density_check(
        self,
        table: str,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
        name: Optional[str] = None,
    ) -> "DataValidator":
        """Flag surrogate keys that are null, repeated or outside 1..N"""
        def finder(df: pl.DataFrame, _: Tables) -> Tuple[pl.DataFrame, Dict[str, Any]]:
            n = df.height
            offending = df.filter(
                pl.col(column).is_null()
                | pl.col(column).is_duplicated()
                | (pl.col(column) < 1)
                | (pl.col(column) > n)
            )
            return offending, {"dense": is_dense(df.get_column(column))}

        return self._register(
            name or f"dense_{table}_{column}",
            CheckKind.DENSITY, table, [column], severity, finder,
            f"Density of {table}.{column}",
        )

    def validate(self, tables: Tables) -> ValidationReport:
        """
        Run all validation checks against the given tables.

        Args:
            tables: Frames by table name

        Returns:
            ValidationReport with all check results
        """
        started_at = datetime.now(timezone.utc)
        results = []

        logger.info("Running validation checks", checks=len(self._checks), tables=len(tables))

        for check_func in self._checks:
            result = check_func(tables)
            results.append(result)

            if not result.passed:
                logger.warning(
                    f"Validation failed: {result.name}",
                    message=result.message,
                    severity=result.severity.value,
                    rows=result.failed_rows,
                )

        report = ValidationReport.from_checks(
            results, strict_mode=self.strict_mode, started_at=started_at
        )

        logger.info(
            f"Validation complete: {report.status.value}",
            passed=report.passed_checks,
            failed=report.failed_checks,
            warnings=report.warning_count,
        )

        return report


# =============================================================================
# Pre-built suites
# =============================================================================

def _labels(table: Dict[str, str]) -> List[str]:
    return sorted(set(table.values())) + [NOT_AVAILABLE]


def create_silver_validator(
    quality: Optional[QualitySettings] = None,
    reference_date: Optional[date] = None,
) -> DataValidator:
    """Create pre-configured validator for the cleansed layer"""
    quality = quality or get_settings().quality
    reference_date = reference_date or get_settings().cleansing.reference_date or date.today()
    warn = ValidationSeverity.WARNING

    validator = DataValidator(strict_mode=quality.strict_mode)

    # crm_cust_info
    (
        validator
        .add_unique_check("crm_cust_info", "cst_id")
        .add_trimmed_check("crm_cust_info", ["cst_firstname", "cst_lastname"])
        .add_domain_check("crm_cust_info", "cst_gndr", _labels(GENDER_LABELS))
        .add_domain_check("crm_cust_info", "cst_marital_status", _labels(MARITAL_STATUS_LABELS))
    )

    # crm_prd_info
    (
        validator
        .add_unique_check("crm_prd_info", "prd_id")
        .add_not_null_check("crm_prd_info", "cat_id")
        .add_not_null_check("crm_prd_info", "prd_key")
        .add_trimmed_check("crm_prd_info", "prd_nm", severity=warn)
        .add_not_null_check("crm_prd_info", "prd_cost")
        .add_range_check("crm_prd_info", "prd_cost", min_value=0, severity=warn)
        .add_domain_check("crm_prd_info", "prd_line", _labels(PRODUCT_LINE_LABELS))
        .add_order_check("crm_prd_info", "prd_start_dt", "prd_end_dt")
    )

    # crm_sales_details
    sales = "crm_sales_details"
    expected = pl.col("sls_quantity") * pl.col("sls_price").abs()
    mismatch = (pl.col("sls_sales") - expected).abs() > AMOUNT_TOLERANCE * pl.max_horizontal(
        pl.col("sls_sales").abs(), pl.lit(1)
    )
    validator.add_trimmed_check(sales, "sls_ord_num", severity=warn)
    for column in ("sls_order_dt", "sls_ship_dt", "sls_due_dt"):
        validator.add_range_check(
            sales, column,
            min_value=quality.min_sales_date,
            max_value=quality.max_sales_date,
            severity=warn,
        )
    (
        validator
        .add_order_check(sales, "sls_order_dt", "sls_ship_dt", severity=warn)
        .add_order_check(sales, "sls_order_dt", "sls_due_dt", severity=warn)
        .add_rule_check(
            sales,
            name="financial_consistency_crm_sales_details",
            violation=(pl.col("sls_quantity") != 0) & mismatch,
            columns=["sls_sales", "sls_quantity", "sls_price"],
            description="sls_sales != sls_quantity * |sls_price|",
        )
        .add_rule_check(
            sales,
            name="financial_values_present_crm_sales_details",
            violation=(
                pl.col("sls_sales").is_null()
                | pl.col("sls_quantity").is_null()
                | pl.col("sls_price").is_null()
                | (pl.col("sls_sales") <= 0)
                | (pl.col("sls_quantity") <= 0)
                | (pl.col("sls_price") <= 0)
            ),
            columns=["sls_sales", "sls_quantity", "sls_price"],
            description="Missing or non-positive sales, quantity or price",
            severity=warn,
        )
        .add_referential_check(sales, "sls_prd_key", "crm_prd_info", "prd_key", severity=warn)
        .add_referential_check(sales, "sls_cust_id", "crm_cust_info", "cst_id", severity=warn)
    )

    # erp_cust_az12
    (
        validator
        .add_range_check(
            "erp_cust_az12", "bdate",
            min_value=quality.min_birthdate,
            max_value=reference_date,
            severity=warn,
        )
        .add_domain_check("erp_cust_az12", "gen", _labels(GENDER_LABELS))
        .add_unique_check("erp_cust_az12", "cid", severity=warn)
        .add_referential_check("erp_cust_az12", "cid", "crm_cust_info", "cst_key", severity=warn)
    )

    # erp_loc_a101
    (
        validator
        .add_domain_check("erp_loc_a101", "cntry")
        .add_unique_check("erp_loc_a101", "cid", severity=warn)
        .add_referential_check("erp_loc_a101", "cid", "crm_cust_info", "cst_key", severity=warn)
    )

    # erp_px_cat_g1v2
    (
        validator
        .add_trimmed_check("erp_px_cat_g1v2", ["cat", "subcat", "maintenance"], severity=warn)
        .add_domain_check("erp_px_cat_g1v2", "cat")
        .add_domain_check("erp_px_cat_g1v2", "subcat")
        .add_domain_check("erp_px_cat_g1v2", "maintenance")
    )

    return validator


def create_gold_validator(quality: Optional[QualitySettings] = None) -> DataValidator:
    """Create pre-configured validator for the star schema"""
    quality = quality or get_settings().quality
    warn = ValidationSeverity.WARNING

    return (
        DataValidator(strict_mode=quality.strict_mode)
        .add_unique_check("dim_customers", "customer_key")
        .add_density_check("dim_customers", "customer_key")
        .add_unique_check("dim_customers", "customer_id")
        .add_unique_check("dim_products", "product_key")
        .add_density_check("dim_products", "product_key")
        .add_unique_check("dim_products", "product_number", severity=warn)
        # Non-null keys must point at an existing dimension row
        .add_referential_check("fact_sales", "product_key", "dim_products", "product_key")
        .add_referential_check("fact_sales", "customer_key", "dim_customers", "customer_key")
        # Null keys are orphaned facts kept for follow-up
        .add_not_null_check("fact_sales", "product_key", severity=warn, name="unresolved_fact_sales_product_key")
        .add_not_null_check("fact_sales", "customer_key", severity=warn, name="unresolved_fact_sales_customer_key")
    )
