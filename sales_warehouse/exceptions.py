"""
Typed exceptions for the warehouse build.

    WarehouseError (base)
    |
    +-- MalformedKeyError      composite product key cannot be decomposed
    +-- SchemaMismatchError    raw table is missing required columns
    +-- StageFailure           a whole stage could not complete
    +-- ValidationGateError    error-severity checks failed under the CI gate

Unparsable dates, division by zero and unresolved fact references are not
errors: they degrade to null inside the transformations.
"""

from typing import Any, Dict, List, Optional


class WarehouseError(Exception):
    """Base class for all warehouse errors."""

    code: str = "WAREHOUSE_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class MalformedKeyError(WarehouseError):
    """Composite product key is null or shorter than the decomposition requires."""

    code = "MALFORMED_KEY"

    def __init__(self, key: Optional[str], min_length: int):
        super().__init__(
            f"Product key {key!r} is shorter than {min_length} characters",
            {"key": key, "min_length": min_length},
        )
        self.key = key
        self.min_length = min_length


class SchemaMismatchError(WarehouseError):
    """Raw table does not carry the columns its schema requires."""

    code = "SCHEMA_MISMATCH"

    def __init__(self, table: str, missing_columns: List[str]):
        super().__init__(
            f"Table '{table}' is missing columns: {', '.join(missing_columns)}",
            {"table": table, "missing_columns": missing_columns},
        )
        self.table = table
        self.missing_columns = missing_columns


class StageFailure(WarehouseError):
    """A per-table cleansing or assembly stage could not complete."""

    code = "STAGE_FAILURE"

    def __init__(self, stage: str, duration_seconds: float, cause: BaseException):
        super().__init__(
            f"Stage '{stage}' failed after {duration_seconds:.3f}s: {cause}",
            {"stage": stage, "duration_seconds": duration_seconds, "cause": repr(cause)},
        )
        self.stage = stage
        self.duration_seconds = duration_seconds
        self.cause = cause


class ValidationGateError(WarehouseError):
    """Error-severity validation checks failed while the gate is enabled."""

    code = "VALIDATION_GATE"

    def __init__(self, failed_checks: List[str]):
        super().__init__(
            f"{len(failed_checks)} validation checks failed: {', '.join(failed_checks)}",
            {"failed_checks": failed_checks},
        )
        self.failed_checks = failed_checks
