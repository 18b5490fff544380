"""Bulk import of investor records.

Coordinates validation and chunked persistence for a whole submitted list
and folds everything into a single ``BulkOperationResult``:

- records that fail validation are reported at their input index and skipped
- records that pass are stamped and handed to the ``BatchWriter`` together
- totals, status and message are derived once at the end

File uploads are parsed first and then go through the same path.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from datetime import datetime

from investorhub.config import Settings
from investorhub.errors import (
    DuplicateNameError,
    InvestorHubError,
    MalformedInputError,
    RecordValidationError,
    UnsupportedFormatError,
)
from investorhub.models import BulkOperationResult, ErrorCode, InvestorRecord, utcnow
from investorhub.parser import parse_file
from investorhub.store import InvestorStore
from investorhub.validation import InvestorValidator
from investorhub.writer import BatchWriter

logger = logging.getLogger(__name__)


class InvestorImporter:
    """Validate-then-write pipeline for lists of investor records.

    Usage::

        importer = InvestorImporter(settings)
        result = importer.bulk_insert(records)
        print(result.message)

        # Or straight from an uploaded file
        result = importer.bulk_insert_from_file(data, "investors.csv")
    """

    def __init__(
        self,
        settings: Settings | None = None,
        store: InvestorStore | None = None,
        validator: InvestorValidator | None = None,
        writer: BatchWriter | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._store = store or InvestorStore(
            self._settings.db_path, max_retries=self._settings.store_max_retries
        )
        self._validator = validator or InvestorValidator(self._store)
        self._writer = writer or BatchWriter(self._store, self._settings.chunk_size)

    @property
    def store(self) -> InvestorStore:
        return self._store

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def bulk_insert(self, records: Sequence[InvestorRecord | None]) -> BulkOperationResult:
        """Validate and persist *records*, reporting every failure by index."""
        if not records:
            return BulkOperationResult.empty()

        started = time.monotonic()
        result = BulkOperationResult(total_processed=len(records))
        valid: list[InvestorRecord] = []
        valid_indices: list[int] = []
        now = utcnow()

        logger.info("Starting bulk insert of %d investors", len(records))
        for index, record in enumerate(records):
            name = record.name if record is not None else None
            try:
                self._validator.validate(record, index, check_duplicates=True)
            except RecordValidationError as exc:
                self._report_invalid(result, index, name, exc)
                continue
            except Exception as exc:
                logger.warning("Unexpected error processing investor at index %d: %s", index, exc)
                result.add_error(index, name, ErrorCode.PROCESSING_ERROR, str(exc))
                continue

            valid.append(self._stamp(record, now))
            valid_indices.append(index)

        logger.info("%d of %d investors passed validation", len(valid), len(records))

        if valid:
            try:
                written = self._writer.write(valid, indices=valid_indices)
            except Exception as exc:
                logger.exception("Bulk write of %d investors failed", len(valid))
                for index, record in zip(valid_indices, valid):
                    result.add_error(index, record.name, ErrorCode.BULK_INSERT_ERROR, str(exc))
            else:
                result.success_count += written.success_count
                result.errors.extend(written.errors)
                result.warnings.extend(written.warnings)

        result.errors.sort(key=lambda error: error.item_index)
        result.duration_ms = int((time.monotonic() - started) * 1000)
        result.update_status()
        logger.info(
            "Bulk insert completed in %dms. Total: %d, Success: %d, Failed: %d",
            result.duration_ms,
            result.total_processed,
            result.success_count,
            result.failure_count,
        )
        return result

    def bulk_insert_from_file(
        self,
        data: bytes,
        filename: str | None = None,
        content_type: str | None = None,
    ) -> BulkOperationResult:
        """Parse an uploaded file and bulk insert its records.

        ``UnsupportedFormatError`` and ``MalformedInputError`` propagate so the
        caller can reject the whole file. Any other failure while reading the
        file comes back as a single-error FAILED result.
        """
        try:
            records = parse_file(data, filename, content_type)
        except InvestorHubError:
            raise
        except Exception as exc:
            logger.exception("Error processing file %s", filename)
            return BulkOperationResult.file_failure(
                filename,
                ErrorCode.FILE_PROCESSING_ERROR,
                str(exc),
                prefix="File processing failed",
            )

        logger.info("Parsed %d investors from %s", len(records), filename or "<upload>")
        return self.bulk_insert(records)

    def create_investor(self, record: InvestorRecord) -> InvestorRecord:
        """Validate and store a single record.

        Raises ``RecordValidationError`` (``DuplicateNameError`` for a taken
        name) or ``StorageConstraintError`` if the unique index still trips.
        """
        self._validator.validate(record, 0, check_duplicates=True)
        created = self._store.insert_investor(self._stamp(record, utcnow()))
        logger.info("Created investor %s (%s)", created.name, created.id)
        return created

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @staticmethod
    def _stamp(record: InvestorRecord, now: datetime) -> InvestorRecord:
        return record.model_copy(
            update={"created_at": record.created_at or now, "updated_at": now}
        )

    @staticmethod
    def _report_invalid(
        result: BulkOperationResult,
        index: int,
        name: str | None,
        exc: RecordValidationError,
    ) -> None:
        code = (
            ErrorCode.DUPLICATE_NAME
            if isinstance(exc, DuplicateNameError)
            else ErrorCode.VALIDATION_ERROR
        )
        logger.warning("Investor at index %d rejected: %s", index, exc)
        if not exc.has_field_errors:
            result.add_error(index, name, code, str(exc))
            return
        for error in exc.field_errors:
            result.add_error(
                index,
                name,
                code,
                error.message,
                field_name=error.field_name,
                rejected_value=error.rejected_value,
            )


def file_error_result(exc: InvestorHubError, filename: str | None) -> BulkOperationResult:
    """Report a whole-file rejection as a single-error FAILED result."""
    if isinstance(exc, UnsupportedFormatError):
        return BulkOperationResult.file_failure(
            filename, ErrorCode.FILE_VALIDATION_ERROR, str(exc), prefix="File validation failed"
        )
    if isinstance(exc, MalformedInputError):
        return BulkOperationResult.file_failure(
            filename, ErrorCode.FILE_READ_ERROR, str(exc), prefix="File processing failed"
        )
    return BulkOperationResult.file_failure(
        filename, ErrorCode.FILE_PROCESSING_ERROR, str(exc), prefix="File processing failed"
    )
