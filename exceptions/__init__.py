"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    ValidationError,
    ConflictError,
    DatabaseError,
    InfrastructureFaultError,

    # Import pipeline
    RowValidationError,
    PersistenceConflictError,
    ImportModeRefusedError,
    ImportCancelledError,
    CatalogFileParseError,

    # Storage classification
    is_unique_violation,
    classify_storage_error,
)

__all__ = [
    # Base
    "AppError",
    "ValidationError",
    "ConflictError",
    "DatabaseError",
    "InfrastructureFaultError",

    # Import pipeline
    "RowValidationError",
    "PersistenceConflictError",
    "ImportModeRefusedError",
    "ImportCancelledError",
    "CatalogFileParseError",

    # Storage classification
    "is_unique_violation",
    "classify_storage_error",
]
