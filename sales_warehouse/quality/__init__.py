"""
Data Quality Module
"""
from .validators import (
    CheckKind,
    CheckResult,
    DataValidator,
    ValidationReport,
    ValidationSeverity,
    ValidationStatus,
    create_gold_validator,
    create_silver_validator,
)

__all__ = [
    "CheckKind",
    "CheckResult",
    "DataValidator",
    "ValidationReport",
    "ValidationSeverity",
    "ValidationStatus",
    "create_gold_validator",
    "create_silver_validator",
]
