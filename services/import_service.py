"""
Import service: runs a catalog import end to end.

Per row:

    pending → extracting → resolving_parent → upserting
            → assigning_attributes → assigning_barcode → assigning_pricing
            → done | skipped | error

Rows fail independently. A row that fails validation is skipped, a row that
fails while persisting ends in error; both are counted in skipped_rows and
reported as "Row N: message". Attribute, barcode and pricing failures are
reported but do not undo the row. Only an InfrastructureFaultError stops the
whole run.

Rows are processed in order, in batches. Between batches the optional
heartbeat is checked; a stale heartbeat ends the run as CANCELLED.

The import mode (create_only, update_existing, create_or_update) can refuse
a row's product or variant; such rows are skipped with the reason.
dry_run() walks the same extract/validate/resolve steps and only reads, to
predict what a real run would create, update and skip.

See STANDARDS_LOGGING.md for logging patterns.
See STANDARDS_ERRORS.md for error handling patterns.
"""

import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Callable, Iterator, Optional, Protocol, Sequence

import structlog

from config import settings
from config.import_rules import FIELD_ATTRIBUTES, MAX_TEXT_SLOTS
from exceptions import (
    AppError,
    ImportCancelledError,
    ImportModeRefusedError,
    InfrastructureFaultError,
    RowValidationError,
)
from models.catalog_import import (
    ImportMode,
    ImportResultResponse,
    ImportStatus,
    OutcomeStatus,
    ParentInfo,
    ProductRecord,
    RawRow,
    RowState,
    VariantRecord,
)
from parsers.dimension_parser import extract_dimensions
from parsers.sku_parser import resolve_color, resolve_parent_info
from services.attribute_service import (
    AttributeService,
    detect_column_attributes,
    merge_attributes,
)
from services.barcode_service import BarcodeService
from services.catalog_service import (
    CatalogService,
    check_import_mode,
    product_natural_key,
)
from services.column_mapping_service import (
    ColumnMapping,
    auto_map_columns,
    build_mapping_index,
    extract_row_fields,
)
from services.grouping_service import GroupedRow, GroupingService, ParentGroup
from services.pricing_service import PricingService
from services.row_validator import parse_price, validate_row
from utils.text_utils import DefaultSecurityValidator

logger = structlog.get_logger(__name__)


class SecurityValidator(Protocol):
    """Cleans an extracted record before it is validated and stored."""

    def sanitize(self, record: dict[str, str]) -> dict[str, str]:
        ...


# ===================
# RESULT TYPES
# ===================

@dataclass(frozen=True)
class RowOutcome:
    """
    Terminal outcome of one row.

    product_created / variant_created are None when the row did not touch
    that entity (product already resolved earlier in the run, an existing
    product kept by create_only, or a product-only row with no SKU).
    refused marks a row skipped by the import mode.
    """
    row_number: int
    status: OutcomeStatus
    message: Optional[str] = None
    product_created: Optional[bool] = None
    variant_created: Optional[bool] = None
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    refused: bool = False


@dataclass(frozen=True)
class ImportResult:
    """Aggregate counts for a run. Immutable; fold outcomes with with_outcome()."""
    created_products: int = 0
    updated_products: int = 0
    created_variants: int = 0
    updated_variants: int = 0
    skipped_rows: int = 0
    refused_rows: int = 0
    processed_rows: int = 0
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    status: ImportStatus = ImportStatus.COMPLETED
    import_mode: ImportMode = ImportMode.CREATE_OR_UPDATE
    dry_run: bool = False
    duration_seconds: Optional[float] = None

    def with_outcome(self, outcome: RowOutcome) -> "ImportResult":
        """Return a new result with one row outcome folded in."""
        errors = self.errors
        if outcome.status in (OutcomeStatus.SKIPPED, OutcomeStatus.ERROR):
            errors = errors + (f"Row {outcome.row_number}: {outcome.message}",)
            return replace(
                self,
                skipped_rows=self.skipped_rows + 1,
                refused_rows=self.refused_rows + outcome.refused,
                errors=errors + outcome.errors,
                warnings=self.warnings + outcome.warnings,
            )

        return replace(
            self,
            processed_rows=self.processed_rows + 1,
            created_products=self.created_products + (outcome.product_created is True),
            updated_products=self.updated_products + (outcome.product_created is False),
            created_variants=self.created_variants + (outcome.variant_created is True),
            updated_variants=self.updated_variants + (outcome.variant_created is False),
            errors=errors + outcome.errors,
            warnings=self.warnings + outcome.warnings,
        )

    @property
    def likely_mapping_problem(self) -> bool:
        """
        Nothing processed but errors reported: usually a wrong column mapping.

        Not flagged when every skipped row was refused by the import mode
        (e.g. create_only re-run over an already imported file).
        """
        return (
            self.status == ImportStatus.COMPLETED
            and self.processed_rows == 0
            and len(self.errors) > 0
            and self.refused_rows < self.skipped_rows
        )

    def to_response(self) -> ImportResultResponse:
        return ImportResultResponse(
            status=self.status,
            import_mode=self.import_mode,
            dry_run=self.dry_run,
            created_products=self.created_products,
            updated_products=self.updated_products,
            created_variants=self.created_variants,
            updated_variants=self.updated_variants,
            skipped_rows=self.skipped_rows,
            processed_rows=self.processed_rows,
            errors=list(self.errors),
            warnings=list(self.warnings),
            likely_mapping_problem=self.likely_mapping_problem,
            duration_seconds=self.duration_seconds,
        )


@dataclass(frozen=True)
class ImportProgress:
    """Progress snapshot passed to ImportOptions.progress after each batch."""
    rows_done: int
    total_rows: int
    batch_number: int
    result: ImportResult

    @property
    def percent(self) -> float:
        if self.total_rows == 0:
            return 100.0
        return round(self.rows_done / self.total_rows * 100, 1)


@dataclass
class ImportOptions:
    """
    Caller choices for a run.

    column_mapping: {position | header: field}; auto-mapped when None
    ad_hoc_attributes: Extra key/values applied to every row
    parent_sku / parent_name: Force every row under one parent
    group_rows: Resolve parents with the GroupingEngine (run_grouped)
    import_mode: create_only / update_existing / create_or_update
    batch_size: Rows per batch (default settings.import_batch_size)
    heartbeat: Returns the job's last heartbeat time (aware, or naive UTC)
    progress: Called after each batch
    sanitizer: SecurityValidator (default DefaultSecurityValidator)
    """
    column_mapping: Optional[ColumnMapping] = None
    ad_hoc_attributes: dict[str, str] = field(default_factory=dict)
    parent_sku: Optional[str] = None
    parent_name: Optional[str] = None
    group_rows: bool = False
    import_mode: ImportMode = ImportMode.CREATE_OR_UPDATE
    batch_size: Optional[int] = None
    heartbeat: Optional[Callable[[], Optional[datetime]]] = None
    heartbeat_timeout_seconds: Optional[int] = None
    progress: Optional[Callable[[ImportProgress], None]] = None
    sanitizer: Optional[SecurityValidator] = None


@dataclass
class _PreparedRow:
    row: RawRow
    fields: dict[str, str]
    errors: list[str]
    warnings: list[str]


@dataclass
class _RunContext:
    headers: list[str]
    index: dict[str, str]
    options: ImportOptions
    sanitizer: SecurityValidator
    resolved_parents: dict[str, ProductRecord] = field(default_factory=dict)
    existing_barcodes: Optional[dict[str, str]] = None
    # dry run: parents and SKUs a real run would have written by now
    predicted_parents: set[str] = field(default_factory=set)
    predicted_skus: set[str] = field(default_factory=set)


def _chunks(items: Sequence, size: int) -> Iterator[Sequence]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


def _text_slots(fields: dict[str, str], prefix: str) -> list[str]:
    """product_features_1..5 → ordered list of the non-blank ones."""
    return [
        fields[f"{prefix}_{n}"]
        for n in range(1, MAX_TEXT_SLOTS + 1)
        if fields.get(f"{prefix}_{n}")
    ]


def _parent_key(parent_info: ParentInfo) -> str:
    if parent_info.parent_sku:
        return f"sku:{parent_info.parent_sku}"
    return f"name:{parent_info.product_name.lower()}"


def _group_parent(group: ParentGroup) -> ParentInfo:
    return ParentInfo(parent_sku=group.parent_sku, product_name=group.parent_name)


# ===================
# SERVICE
# ===================

class ImportService:
    """
    Orchestrates extraction, parent resolution, upserts and side effects.

    Args:
        db: Supabase client handed to the default collaborators
        catalog / attributes / barcodes / pricing / grouping: Collaborators
    """

    def __init__(
        self,
        db=None,
        catalog: Optional[CatalogService] = None,
        attributes: Optional[AttributeService] = None,
        barcodes: Optional[BarcodeService] = None,
        pricing: Optional[PricingService] = None,
        grouping: Optional[GroupingService] = None,
    ):
        self.catalog = catalog or CatalogService(db)
        self.attributes = attributes or AttributeService(db)
        self.barcodes = barcodes or BarcodeService(db)
        self.pricing = pricing or PricingService(db)
        self.grouping = grouping or GroupingService()

    # ===================
    # ENTRY POINTS
    # ===================

    def import_rows(
        self,
        headers: list[str],
        rows: list[RawRow],
        options: Optional[ImportOptions] = None
    ) -> ImportResult:
        """Run grouped or per-row depending on options.group_rows."""
        options = options or ImportOptions()
        if options.group_rows:
            return self.run_grouped(headers, rows, options)
        return self.run(headers, rows, options)

    def run(
        self,
        headers: list[str],
        rows: list[RawRow],
        options: Optional[ImportOptions] = None
    ) -> ImportResult:
        """
        Import rows, resolving each row's parent from its SKU and title.

        Args:
            headers: Header row
            rows: Data rows in file order
            options: Mapping and run options

        Returns:
            ImportResult (status COMPLETED or CANCELLED)

        Raises:
            InfrastructureFaultError: Storage unavailable; the run is aborted
        """
        options = options or ImportOptions()
        ctx, result = self._start(headers, rows, options, mode="per_row")
        started = time.monotonic()

        def process_batch(batch: Sequence[RawRow], result: ImportResult) -> ImportResult:
            prepared = [self._prepare_row(row, ctx) for row in batch]
            self._load_barcodes(prepared, ctx)
            for item in prepared:
                result = result.with_outcome(self._process_row(item, ctx))
            return result

        result = self._run_batches(list(rows), options, result, process_batch)
        return self._finish(result, started)

    def run_grouped(
        self,
        headers: list[str],
        rows: list[RawRow],
        options: Optional[ImportOptions] = None
    ) -> ImportResult:
        """
        Import unparented rows, clustering them into parents first.

        All rows are extracted and validated up front (grouping needs the
        whole batch), then each group's product is upserted once and its
        rows become variants.

        Args:
            headers: Header row
            rows: Data rows in file order
            options: Mapping and run options

        Returns:
            ImportResult

        Raises:
            InfrastructureFaultError: Storage unavailable; the run is aborted
        """
        options = options or ImportOptions()
        ctx, result = self._start(headers, rows, options, mode="grouped")
        started = time.monotonic()

        prepared = [self._prepare_row(row, ctx) for row in rows]
        for item in prepared:
            if item.errors:
                result = result.with_outcome(self._skip(item))

        work = self._grouped_work(prepared)

        def process_batch(
            batch: Sequence[tuple[ParentGroup, _PreparedRow]],
            result: ImportResult
        ) -> ImportResult:
            self._load_barcodes([item for _, item in batch], ctx)
            for group, item in batch:
                result = result.with_outcome(
                    self._process_row(item, ctx, parent_override=_group_parent(group))
                )
            return result

        result = self._run_batches(work, options, result, process_batch)
        return self._finish(result, started)

    def dry_run(
        self,
        headers: list[str],
        rows: list[RawRow],
        options: Optional[ImportOptions] = None
    ) -> ImportResult:
        """
        Predict the outcome of an import without writing anything.

        Rows are extracted, validated and parent-resolved exactly as in a
        real run (grouped when options.group_rows is set). Each product and
        variant is then looked up to predict create vs update, and the
        import mode is applied to predict skips. A SKU or parent seen
        earlier in the file counts as existing, as it would by then.

        Args:
            headers: Header row
            rows: Data rows in file order
            options: Mapping and run options

        Returns:
            ImportResult with dry_run=True; counts are predictions

        Raises:
            InfrastructureFaultError: Storage unavailable
        """
        options = options or ImportOptions()
        ctx, result = self._start(headers, rows, options, mode="dry_run")
        result = replace(result, dry_run=True)
        started = time.monotonic()

        prepared = [self._prepare_row(row, ctx) for row in rows]
        overrides: dict[int, ParentInfo] = {}
        if options.group_rows:
            overrides = {
                item.row.row_number: _group_parent(group)
                for group, item in self._grouped_work(prepared)
            }

        def process_batch(batch: Sequence[_PreparedRow], result: ImportResult) -> ImportResult:
            for item in batch:
                outcome = self._predict_row(item, ctx, overrides.get(item.row.row_number))
                result = result.with_outcome(outcome)
            return result

        result = self._run_batches(prepared, options, result, process_batch)
        return self._finish(result, started)

    def _grouped_work(
        self,
        prepared: list[_PreparedRow]
    ) -> list[tuple[ParentGroup, _PreparedRow]]:
        """Group the valid rows; (group, row) pairs in group order."""
        valid = {p.row.row_number: p for p in prepared if not p.errors}
        groups = self.grouping.group_rows(
            [GroupedRow(row_number=n, fields=p.fields) for n, p in valid.items()]
        )
        return [
            (group, valid[member.row_number])
            for group in groups
            for member in group.rows
        ]

    # ===================
    # RUN LIFECYCLE
    # ===================

    def _start(
        self,
        headers: list[str],
        rows: list[RawRow],
        options: ImportOptions,
        mode: str
    ) -> tuple[_RunContext, ImportResult]:
        mapping = options.column_mapping
        if mapping is None:
            mapping = auto_map_columns(headers)

        index, mapping_warnings = build_mapping_index(headers, mapping)

        logger.info(
            "import_started",
            mode=mode,
            total_rows=len(rows),
            mapped_columns=len(index),
            parent_sku=options.parent_sku,
            import_mode=options.import_mode.value
        )

        ctx = _RunContext(
            headers=headers,
            index=index,
            options=options,
            sanitizer=options.sanitizer or DefaultSecurityValidator(),
        )
        result = ImportResult(
            warnings=tuple(mapping_warnings),
            import_mode=options.import_mode,
        )
        return ctx, result

    def _run_batches(
        self,
        items: Sequence,
        options: ImportOptions,
        result: ImportResult,
        process_batch: Callable[[Sequence, ImportResult], ImportResult]
    ) -> ImportResult:
        batch_size = options.batch_size or settings.import_batch_size
        rows_done = 0

        try:
            for batch_number, batch in enumerate(_chunks(items, batch_size), start=1):
                if batch_number > 1:
                    self._check_heartbeat(options, result)

                result = process_batch(batch, result)
                rows_done += len(batch)

                logger.info(
                    "import_batch_completed",
                    batch=batch_number,
                    rows_done=rows_done,
                    total_rows=len(items),
                    errors=len(result.errors)
                )

                if options.progress:
                    options.progress(ImportProgress(
                        rows_done=rows_done,
                        total_rows=len(items),
                        batch_number=batch_number,
                        result=result,
                    ))

        except ImportCancelledError as e:
            logger.warning(
                "import_cancelled",
                processed_rows=result.processed_rows,
                heartbeat_age_seconds=e.details.get("heartbeat_age_seconds")
            )
            return replace(result, status=ImportStatus.CANCELLED)

        except InfrastructureFaultError as e:
            logger.error(
                "import_aborted",
                processed_rows=result.processed_rows,
                error=e.message
            )
            raise

        return result

    def _check_heartbeat(self, options: ImportOptions, result: ImportResult) -> None:
        """Raise ImportCancelledError when the heartbeat is older than the timeout."""
        if options.heartbeat is None:
            return

        last_beat = options.heartbeat()
        if last_beat is None:
            return
        if last_beat.tzinfo is None:
            last_beat = last_beat.replace(tzinfo=timezone.utc)

        age = (datetime.now(timezone.utc) - last_beat).total_seconds()
        timeout = options.heartbeat_timeout_seconds or settings.import_heartbeat_timeout_seconds

        if age > timeout:
            raise ImportCancelledError(result.processed_rows, round(age, 1))

    def _finish(self, result: ImportResult, started: float) -> ImportResult:
        result = replace(result, duration_seconds=round(time.monotonic() - started, 2))

        if result.likely_mapping_problem:
            logger.warning(
                "import_likely_mapping_problem",
                errors=len(result.errors),
                first_error=result.errors[0]
            )

        logger.info(
            "import_completed",
            status=result.status.value,
            dry_run=result.dry_run,
            created_products=result.created_products,
            updated_products=result.updated_products,
            created_variants=result.created_variants,
            updated_variants=result.updated_variants,
            skipped_rows=result.skipped_rows,
            refused_rows=result.refused_rows,
            duration_seconds=result.duration_seconds
        )

        return result

    # ===================
    # ROW PROCESSING
    # ===================

    def _prepare_row(self, row: RawRow, ctx: _RunContext) -> _PreparedRow:
        """Extract, sanitize and validate one row."""
        fields = extract_row_fields(ctx.headers, row.cells, ctx.index)
        fields = ctx.sanitizer.sanitize(fields)
        validation = validate_row(fields, row.row_number)

        return _PreparedRow(
            row=row,
            fields=fields,
            errors=validation.errors,
            warnings=[f"Row {row.row_number}: {w}" for w in validation.warnings],
        )

    def _load_barcodes(self, prepared: list[_PreparedRow], ctx: _RunContext) -> None:
        """One existence query per batch for every barcode in it."""
        values = [p.fields["barcode"] for p in prepared if p.fields.get("barcode") and not p.errors]
        try:
            ctx.existing_barcodes = self.barcodes.existing_barcodes(values)
        except InfrastructureFaultError:
            raise
        except AppError as e:
            # Fall back to per-row lookups for this batch
            logger.warning("batch_barcode_lookup_failed", error=e.message)
            ctx.existing_barcodes = None

    def _skip(self, item: _PreparedRow) -> RowOutcome:
        error = RowValidationError(item.row.row_number, item.errors)
        logger.info("row_skipped", row=error.row, errors=error.errors)
        return RowOutcome(
            row_number=item.row.row_number,
            status=OutcomeStatus.SKIPPED,
            message=error.message,
            warnings=tuple(item.warnings),
        )

    def _refused(self, item: _PreparedRow, error: ImportModeRefusedError) -> RowOutcome:
        logger.info(
            "row_skipped_by_import_mode",
            row=item.row.row_number,
            import_mode=error.mode,
            entity=error.entity,
            reason=error.message
        )
        return RowOutcome(
            row_number=item.row.row_number,
            status=OutcomeStatus.SKIPPED,
            message=error.message,
            warnings=tuple(item.warnings),
            refused=True,
        )

    def _resolve_parent(
        self,
        fields: dict[str, str],
        options: ImportOptions,
        parent_override: Optional[ParentInfo] = None
    ) -> ParentInfo:
        """
        ParentInfo from SKU/title, with explicit parent columns and options
        applied. A group's parent (parent_override) replaces the key and name.
        """
        sku = fields.get("sku")
        title = fields.get("product_name")

        if sku:
            parent_info = resolve_parent_info(sku, title)
        else:
            # No SKU: the row is a parent product in its own right
            dimensions = extract_dimensions(title)
            parent_info = ParentInfo(
                parent_sku=None,
                product_name=title,
                color=resolve_color(title),
                width=dimensions.width,
                drop=dimensions.drop,
            )

        overrides = {}
        parent_sku = fields.get("parent_sku") or options.parent_sku
        if parent_sku:
            overrides["parent_sku"] = parent_sku
        parent_name = fields.get("parent_name") or options.parent_name
        if parent_name:
            overrides["product_name"] = parent_name

        if parent_override is not None:
            overrides["parent_sku"] = parent_override.parent_sku
            overrides["product_name"] = parent_override.product_name

        if overrides:
            parent_info = parent_info.model_copy(update=overrides)
        return parent_info

    def _resolve_product(
        self,
        parent_info: ParentInfo,
        fields: dict[str, str],
        ctx: _RunContext
    ) -> tuple[ProductRecord, Optional[bool]]:
        """
        Upsert the parent once per run; later rows reuse it.

        Raises:
            ImportModeRefusedError: The mode refuses the product, or
                create_only found it already there for a product-only row
        """
        key = _parent_key(parent_info)
        cached = ctx.resolved_parents.get(key)
        if cached is not None:
            return cached, None

        mode = ctx.options.import_mode
        product, created = self.catalog.create_or_update_product(
            parent_info,
            description=fields.get("description"),
            features=_text_slots(fields, "product_features"),
            details=_text_slots(fields, "product_details"),
            status=None if fields.get("sku") else fields.get("status"),
            mode=mode,
        )
        if created is None and not fields.get("sku"):
            # Kept by create_only and nothing else to write for this row
            key_name, value = product_natural_key(parent_info)
            raise ImportModeRefusedError("product", key_name, value, mode.value, exists=True)

        ctx.resolved_parents[key] = product
        return product, created

    def _process_row(
        self,
        item: _PreparedRow,
        ctx: _RunContext,
        parent_override: Optional[ParentInfo] = None
    ) -> RowOutcome:
        """Run one validated row through the state machine."""
        row_number = item.row.row_number
        if item.errors:
            return self._skip(item)

        fields = item.fields
        state = RowState.RESOLVING_PARENT
        variant: Optional[VariantRecord] = None
        variant_created: Optional[bool] = None

        try:
            parent_info = self._resolve_parent(fields, ctx.options, parent_override)

            state = RowState.UPSERTING
            product, product_created = self._resolve_product(parent_info, fields, ctx)
            if fields.get("sku"):
                variant, variant_created = self.catalog.create_or_update_variant(
                    product, fields, parent_info, mode=ctx.options.import_mode
                )

        except InfrastructureFaultError:
            raise
        except ImportModeRefusedError as e:
            return self._refused(item, e)
        except Exception as e:
            message = e.message if isinstance(e, AppError) else str(e)
            logger.error(
                "row_failed",
                row=row_number,
                state=state.value,
                sku=fields.get("sku"),
                error=message
            )
            return RowOutcome(
                row_number=row_number,
                status=OutcomeStatus.ERROR,
                message=message,
                warnings=tuple(item.warnings),
            )

        side_errors = self._apply_side_effects(item, ctx, product, variant)

        if variant is not None:
            created = variant_created is True
        else:
            created = product_created is True

        logger.debug(
            "row_done",
            row=row_number,
            state=RowState.DONE.value,
            parent_sku=parent_info.parent_sku,
            sku=fields.get("sku")
        )

        return RowOutcome(
            row_number=row_number,
            status=OutcomeStatus.CREATED if created else OutcomeStatus.UPDATED,
            product_created=product_created,
            variant_created=variant_created,
            errors=tuple(side_errors),
            warnings=tuple(item.warnings),
        )

    # ===================
    # DRY RUN
    # ===================

    def _predict_row(
        self,
        item: _PreparedRow,
        ctx: _RunContext,
        parent_override: Optional[ParentInfo] = None
    ) -> RowOutcome:
        """Resolve one row and predict its outcome. Reads only."""
        row_number = item.row.row_number
        if item.errors:
            return self._skip(item)

        fields = item.fields
        variant_created: Optional[bool] = None

        try:
            parent_info = self._resolve_parent(fields, ctx.options, parent_override)
            product_created = self._predict_product(parent_info, fields, ctx)
            if fields.get("sku"):
                variant_created = self._predict_variant(fields["sku"], ctx)

        except InfrastructureFaultError:
            raise
        except ImportModeRefusedError as e:
            return self._refused(item, e)
        except Exception as e:
            message = e.message if isinstance(e, AppError) else str(e)
            logger.error("row_prediction_failed", row=row_number, sku=fields.get("sku"), error=message)
            return RowOutcome(
                row_number=row_number,
                status=OutcomeStatus.ERROR,
                message=message,
                warnings=tuple(item.warnings),
            )

        created = variant_created if fields.get("sku") else product_created
        return RowOutcome(
            row_number=row_number,
            status=OutcomeStatus.CREATED if created is True else OutcomeStatus.UPDATED,
            product_created=product_created,
            variant_created=variant_created,
            warnings=tuple(item.warnings),
        )

    def _predict_product(
        self,
        parent_info: ParentInfo,
        fields: dict[str, str],
        ctx: _RunContext
    ) -> Optional[bool]:
        """True = would create, False = would update, None = reused or kept."""
        key = _parent_key(parent_info)
        if key in ctx.predicted_parents:
            return None

        mode = ctx.options.import_mode
        key_name, value = product_natural_key(parent_info)
        exists = self.catalog.find_product(parent_info) is not None

        if exists and mode == ImportMode.CREATE_ONLY:
            if not fields.get("sku"):
                raise ImportModeRefusedError("product", key_name, value, mode.value, exists=True)
            ctx.predicted_parents.add(key)
            return None

        check_import_mode(mode, exists, "product", key_name, value)
        ctx.predicted_parents.add(key)
        return not exists

    def _predict_variant(self, sku: str, ctx: _RunContext) -> bool:
        """True = would create, False = would update."""
        exists = sku in ctx.predicted_skus or self.catalog.find_variant(sku) is not None
        check_import_mode(ctx.options.import_mode, exists, "variant", "sku", sku)
        ctx.predicted_skus.add(sku)
        return not exists

    # ===================
    # SIDE EFFECTS
    # ===================

    def _apply_side_effects(
        self,
        item: _PreparedRow,
        ctx: _RunContext,
        product: ProductRecord,
        variant: Optional[VariantRecord]
    ) -> list[str]:
        """Attributes, barcode and pricing. Failures are reported, not raised."""
        row_number = item.row.row_number
        fields = item.fields
        errors: list[str] = []

        steps: list[tuple[RowState, str, Callable[[], object]]] = [
            (
                RowState.ASSIGNING_ATTRIBUTES,
                "Attributes",
                lambda: self._assign_attributes(item, ctx, product, variant),
            ),
        ]
        if variant is not None:
            steps.append((
                RowState.ASSIGNING_BARCODE,
                "Barcode",
                lambda: self.barcodes.assign_barcode(
                    variant,
                    fields.get("barcode"),
                    fields.get("barcode_type"),
                    ctx.existing_barcodes,
                ),
            ))
            steps.append((
                RowState.ASSIGNING_PRICING,
                "Pricing",
                lambda: self._assign_pricing(variant, fields.get("price")),
            ))

        for state, label, step in steps:
            try:
                step()
            except InfrastructureFaultError:
                raise
            except Exception as e:
                message = e.message if isinstance(e, AppError) else str(e)
                logger.error(
                    "row_side_effect_failed",
                    row=row_number,
                    state=state.value,
                    error=message
                )
                errors.append(f"Row {row_number}: {label}: {message}")

        return errors

    def _assign_attributes(
        self,
        item: _PreparedRow,
        ctx: _RunContext,
        product: ProductRecord,
        variant: Optional[VariantRecord]
    ) -> None:
        mapped = {f: item.fields[f] for f in FIELD_ATTRIBUTES if item.fields.get(f)}
        detected = detect_column_attributes(ctx.headers, item.row.cells, ctx.index)
        attributes = merge_attributes({**mapped, **detected}, ctx.options.ad_hoc_attributes)
        if not attributes:
            return
        attributes = ctx.sanitizer.sanitize(attributes)
        self.attributes.assign(product, variant, attributes)

    def _assign_pricing(self, variant: VariantRecord, raw_price: Optional[str]) -> None:
        price = parse_price(raw_price)
        if price is None or price <= 0:
            return
        self.pricing.assign_pricing(variant, price)


# Singleton instance
_import_service: Optional[ImportService] = None


def get_import_service() -> ImportService:
    """Get or create import service instance."""
    global _import_service
    if _import_service is None:
        _import_service = ImportService()
    return _import_service
