"""
Catalog import API routes.

POST /api/imports/analyze  - headers, sample rows and a suggested mapping
POST /api/imports          - run an import (or predict one with dry_run=true)

See STANDARDS_ERRORS.md for error response format.
"""

import json
from typing import Optional

import structlog
from fastapi import APIRouter, File, Form, UploadFile
from fastapi.responses import JSONResponse

from exceptions import AppError, ValidationError
from models.catalog_import import ImportAnalysisResponse, ImportMode, ImportResultResponse
from parsers.catalog_file_parser import parse_catalog_file
from services.column_mapping_service import ColumnMapping, auto_map_columns, validate_mapping
from services.import_service import ImportOptions, get_import_service
from services.mapping_cache_service import get_mapping_cache

logger = structlog.get_logger(__name__)

router = APIRouter()

SAMPLE_ROWS = 5


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    # Unexpected error
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


def _parse_json_form(value: Optional[str], field_name: str) -> dict:
    """Decode a JSON object sent as a form field."""
    if not value:
        return {}
    try:
        decoded = json.loads(value)
    except json.JSONDecodeError as e:
        raise ValidationError(
            f"{field_name} is not valid JSON: {e.msg}",
            details={"field": field_name}
        )
    if not isinstance(decoded, dict):
        raise ValidationError(
            f"{field_name} must be a JSON object",
            details={"field": field_name}
        )
    return decoded


def _positional_keys(mapping: dict) -> ColumnMapping:
    """JSON keys are always strings; turn "3" back into column 3."""
    return {
        int(k) if isinstance(k, str) and k.isdigit() else k: v
        for k, v in mapping.items()
    }


# ===================
# ROUTES
# ===================

@router.post("/analyze", response_model=ImportAnalysisResponse)
async def analyze_import_file(file: UploadFile = File(...)):
    """
    Read an uploaded catalog file and suggest a column mapping.

    A mapping saved for the same header row is returned when available,
    otherwise headers are auto-mapped.

    Raises:
        422: File could not be parsed
    """
    logger.info("import_analyze_started", filename=file.filename)

    try:
        content = await file.read()
        sheet = parse_catalog_file(content, filename=file.filename)

        cached = get_mapping_cache().load(sheet.headers)
        mapping = cached if cached is not None else auto_map_columns(sheet.headers)
        validation = validate_mapping(mapping, len(sheet.headers))

        logger.info(
            "import_analyze_completed",
            filename=file.filename,
            columns=len(sheet.headers),
            rows=sheet.total_rows,
            from_cache=cached is not None
        )

        return ImportAnalysisResponse(
            filename=file.filename,
            headers=sheet.headers,
            total_rows=sheet.total_rows,
            sample_rows=sheet.sample(SAMPLE_ROWS),
            column_mapping={str(k): v for k, v in mapping.items()},
            from_cache=cached is not None,
            validation=validation,
        )

    except Exception as e:
        return handle_error(e)


@router.post("", response_model=ImportResultResponse)
async def run_import(
    file: UploadFile = File(..., description="CSV or XLSX catalog file"),
    column_mapping: Optional[str] = Form(None, description="JSON {column: field}"),
    ad_hoc_attributes: Optional[str] = Form(None, description="JSON {key: value}"),
    group_rows: bool = Form(False, description="Cluster unparented rows into parents"),
    parent_sku: Optional[str] = Form(None),
    parent_name: Optional[str] = Form(None),
    import_mode: ImportMode = Form(ImportMode.CREATE_OR_UPDATE),
    dry_run: bool = Form(False, description="Predict counts without writing"),
):
    """
    Import a catalog file.

    Rows failing validation are skipped and reported; the run still
    completes. Rows the import mode refuses are skipped with the reason.
    The mapping used is remembered for the next upload with the same
    headers. With dry_run nothing is written and the counts are
    predictions.

    Raises:
        422: Bad file, mapping JSON, import mode, or a mapping with neither sku nor product_name
        503: Storage unavailable
    """
    logger.info(
        "import_upload_started",
        filename=file.filename,
        group_rows=group_rows,
        import_mode=import_mode.value,
        dry_run=dry_run
    )

    try:
        content = await file.read()
        sheet = parse_catalog_file(content, filename=file.filename)

        mapping = _positional_keys(_parse_json_form(column_mapping, "column_mapping"))
        if not mapping:
            mapping = get_mapping_cache().load(sheet.headers) or auto_map_columns(sheet.headers)

        validation = validate_mapping(mapping, len(sheet.headers))
        if not validation.is_valid:
            raise ValidationError(
                "; ".join(validation.errors),
                code="INVALID_COLUMN_MAPPING",
                details=validation.model_dump()
            )

        options = ImportOptions(
            column_mapping=mapping,
            ad_hoc_attributes={
                str(k): str(v)
                for k, v in _parse_json_form(ad_hoc_attributes, "ad_hoc_attributes").items()
                if v is not None
            },
            group_rows=group_rows,
            import_mode=import_mode,
            parent_sku=parent_sku or None,
            parent_name=parent_name or None,
        )

        service = get_import_service()
        if dry_run:
            result = service.dry_run(sheet.headers, sheet.rows, options)
        else:
            result = service.import_rows(sheet.headers, sheet.rows, options)
            get_mapping_cache().save(sheet.headers, mapping)

        response = result.to_response()
        response.warnings = validation.warnings + response.warnings
        return response

    except Exception as e:
        return handle_error(e)
