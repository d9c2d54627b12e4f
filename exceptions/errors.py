"""
Custom exception classes for the application.

Row-level import failures (RowValidationError, DatabaseError,
PersistenceConflictError) are caught at the row boundary and reported in the
import result. InfrastructureFaultError aborts the whole run.
"""

from typing import Optional, Any
from datetime import datetime

import httpx

# Postgres unique_violation
UNIQUE_VIOLATION_CODE = "23505"


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "PRODUCT_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.utcnow().isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ConflictError(AppError):
    """Conflict with existing resource (409)."""

    def __init__(
        self,
        message: str,
        code: str = "CONFLICT",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


class InfrastructureFaultError(AppError):
    """Storage or another backing service is unavailable (503). Aborts the run."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=f"{service.upper()}_UNAVAILABLE",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


# ===================
# IMPORT ERRORS
# ===================

class RowValidationError(ValidationError):
    """An import row failed blocking validation and is skipped."""

    def __init__(self, row: int, errors: list[str]):
        super().__init__(
            code="ROW_VALIDATION_FAILED",
            message="; ".join(errors),
            details={"row": row, "errors": errors}
        )
        self.row = row
        self.errors = errors


class PersistenceConflictError(ConflictError):
    """Natural-key upsert lost a race and the winning row could not be re-read."""

    def __init__(self, entity: str, key: str, value: Optional[str]):
        super().__init__(
            code=f"{entity.upper()}_CONFLICT",
            message=f"{entity} with {key} '{value}' conflicted and could not be re-read",
            details={key: value}
        )


class ImportModeRefusedError(ConflictError):
    """
    The import mode does not allow writing this record; the row is skipped.

    create_only refuses records that already exist, update_existing refuses
    records that do not exist yet.
    """

    def __init__(self, entity: str, key: str, value: Optional[str], mode: str, exists: bool):
        state = "already exists" if exists else "does not exist"
        super().__init__(
            code="IMPORT_MODE_SKIPPED",
            message=f"{entity.capitalize()} with {key} '{value}' {state} ({mode})",
            details={key: value, "import_mode": mode, "exists": exists}
        )
        self.entity = entity
        self.mode = mode


class ImportCancelledError(AppError):
    """Import stopped because its heartbeat went stale."""

    def __init__(self, processed_rows: int, heartbeat_age_seconds: Optional[float] = None):
        super().__init__(
            code="IMPORT_CANCELLED",
            message=f"Import cancelled after {processed_rows} rows",
            status_code=409,
            details={
                "processed_rows": processed_rows,
                "heartbeat_age_seconds": heartbeat_age_seconds
            }
        )


class CatalogFileParseError(ValidationError):
    """Uploaded catalog file could not be decoded."""

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="CATALOG_FILE_PARSE_ERROR",
            message=message,
            details=details
        )


# ===================
# STORAGE ERROR CLASSIFICATION
# ===================

def is_unique_violation(error: Exception) -> bool:
    """True if a storage error is a Postgres unique-constraint violation."""
    code = getattr(error, "code", None)
    if code is not None:
        return str(code) == UNIQUE_VIOLATION_CODE
    return UNIQUE_VIOLATION_CODE in str(error) or "duplicate key" in str(error)


def classify_storage_error(operation: str, error: Exception) -> AppError:
    """
    Map a raw storage exception to the application taxonomy.

    Transport failures (storage unreachable) become InfrastructureFaultError,
    which aborts an import run. Everything else is a row-level DatabaseError.
    """
    if isinstance(error, AppError):
        return error
    if isinstance(error, (httpx.TransportError, ConnectionError, OSError)):
        return InfrastructureFaultError(
            "supabase",
            f"Storage unavailable during {operation}: {str(error)}",
            details={"operation": operation}
        )
    return DatabaseError(operation, str(error))
