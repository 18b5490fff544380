"""Data models for investor records and bulk ingestion results."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class OperationStatus(StrEnum):
    COMPLETED = "COMPLETED"
    PARTIAL_SUCCESS = "PARTIAL_SUCCESS"
    FAILED = "FAILED"
    IN_PROGRESS = "IN_PROGRESS"  # provisional async-job snapshot only


class JobState(StrEnum):
    CREATED = "CREATED"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    PARTIAL_SUCCESS = "PARTIAL_SUCCESS"
    FAILED = "FAILED"

    @property
    def is_finished(self) -> bool:
        return self not in (JobState.CREATED, JobState.RUNNING)


class ErrorCode(StrEnum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    DUPLICATE_NAME = "DUPLICATE_NAME"
    PROCESSING_ERROR = "PROCESSING_ERROR"
    CONVERSION_ERROR = "CONVERSION_ERROR"
    BATCH_PROCESSING_ERROR = "BATCH_PROCESSING_ERROR"
    BULK_INSERT_ERROR = "BULK_INSERT_ERROR"
    FILE_VALIDATION_ERROR = "FILE_VALIDATION_ERROR"
    FILE_READ_ERROR = "FILE_READ_ERROR"
    FILE_PROCESSING_ERROR = "FILE_PROCESSING_ERROR"


class CamelModel(BaseModel):
    """Base model exposing camelCase aliases on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Investor record
# ---------------------------------------------------------------------------

class Address(CamelModel):
    """Headquarters location."""

    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip: str | None = None
    country: str | None = None
    phone: str | None = None
    email: str | None = None
    fax: str | None = None
    sn: str | None = None


class Financials(CamelModel):
    """Investment ranges. Decimal throughout, never float."""

    inv_min: Decimal | None = None
    inv_max: Decimal | None = None
    inv_avg: Decimal | None = None
    deal_min: Decimal | None = None
    deal_max: Decimal | None = None
    cmp_val_min: Decimal | None = None
    cmp_val_max: Decimal | None = None
    ebitda_min: Decimal | None = None
    ebitda_max: Decimal | None = None
    ebit_min: Decimal | None = None
    ebit_max: Decimal | None = None


class Descriptions(CamelModel):
    """Free-text descriptions keyed by language."""

    it: str | None = None
    en: str | None = None
    fr: str | None = None
    de: str | None = None
    es: str | None = None
    ru: str | None = None
    ch: str | None = None


DESCRIPTION_LANGUAGES = tuple(Descriptions.model_fields)


class Contact(CamelModel):
    """A person to contact at the investor."""

    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    mobile: str | None = None
    fax: str | None = None
    role: str | None = None
    order_num: int | None = None

    def identity(self) -> tuple[tuple[str, Any], ...]:
        return tuple(self.model_dump().items())


class InvestorRecord(CamelModel):
    """An investor entity as submitted for ingestion."""

    id: str | None = Field(default=None, description="Assigned by the store on creation")
    name: str | None = None
    status: str | None = None
    type: str | None = None
    macro_type: str | None = None

    preferred_geographical_areas: list[str] = Field(default_factory=list)
    preferred_investment_types: list[str] = Field(default_factory=list)
    sectors: list[str] = Field(default_factory=list)
    verticals: list[str] = Field(default_factory=list)
    macro_areas: list[str] = Field(default_factory=list)

    website: str | None = None
    image: str | None = None
    is_old: bool | None = None
    creator_email: str | None = None
    admin_email: str | None = None
    completeness_score: int | None = None
    impressions: int | None = 0

    hq_location: Address | None = None
    financials: Financials | None = None
    descriptions: Descriptions | None = None
    contacts: list[Contact] = Field(default_factory=list)

    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("contacts")
    @classmethod
    def dedupe_contacts(cls, contacts: list[Contact]) -> list[Contact]:
        """Contacts behave as a set: identical entries collapse to one."""
        seen: set[tuple[tuple[str, Any], ...]] = set()
        unique: list[Contact] = []
        for contact in contacts:
            key = contact.identity()
            if key not in seen:
                seen.add(key)
                unique.append(contact)
        return unique

    def to_document(self) -> dict[str, Any]:
        """Storage representation: camelCase keys, decimals as strings."""
        doc = self.model_dump(mode="json", by_alias=True, exclude={"id"})
        doc["isOld"] = bool(self.is_old)
        if doc.get("impressions") is None:
            doc["impressions"] = 0
        return doc

    @classmethod
    def from_document(cls, record_id: str, document: dict[str, Any]) -> InvestorRecord:
        return cls.model_validate({**document, "id": record_id})


# ---------------------------------------------------------------------------
# Bulk operation reporting
# ---------------------------------------------------------------------------

class ErrorDetail(CamelModel):
    """One failed item inside a bulk operation."""

    item_index: int
    record_name: str | None = None
    error_code: ErrorCode
    error_message: str
    field_name: str | None = None
    rejected_value: Any = None


class BulkOperationResult(CamelModel):
    """Outcome of a bulk insert, reported per item."""

    total_processed: int = 0
    success_count: int = 0
    failure_count: int = 0
    status: OperationStatus = OperationStatus.COMPLETED
    message: str = ""
    errors: list[ErrorDetail] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    duration_ms: int = 0
    timestamp: datetime = Field(default_factory=utcnow)

    @classmethod
    def empty(cls) -> BulkOperationResult:
        return cls(status=OperationStatus.COMPLETED, message="No investors to process")

    @classmethod
    def in_progress(cls, message: str) -> BulkOperationResult:
        return cls(status=OperationStatus.IN_PROGRESS, message=message)

    @classmethod
    def file_failure(
        cls, filename: str | None, error_code: ErrorCode, detail: str, *, prefix: str
    ) -> BulkOperationResult:
        """A whole-file failure reported as one failed item."""
        result = cls(
            total_processed=1,
            success_count=0,
            failure_count=1,
            status=OperationStatus.FAILED,
            message=f"{prefix}: {detail}",
        )
        result.add_error(0, filename, error_code, detail)
        return result

    @property
    def success_rate(self) -> float:
        if self.total_processed == 0:
            return 0.0
        return self.success_count / self.total_processed

    @property
    def is_fully_successful(self) -> bool:
        return self.failure_count == 0 and self.success_count == self.total_processed

    @property
    def has_failures(self) -> bool:
        return self.failure_count > 0

    def add_error(
        self,
        item_index: int,
        record_name: str | None,
        error_code: ErrorCode,
        error_message: str,
        *,
        field_name: str | None = None,
        rejected_value: Any = None,
    ) -> None:
        self.errors.append(
            ErrorDetail(
                item_index=item_index,
                record_name=record_name,
                error_code=error_code,
                error_message=error_message,
                field_name=field_name,
                rejected_value=rejected_value,
            )
        )

    def add_warning(self, warning: str) -> None:
        self.warnings.append(warning)

    def update_status(self) -> None:
        """Derive failure count, status and message from the counts."""
        self.failure_count = self.total_processed - self.success_count
        if self.total_processed == 0:
            self.status = OperationStatus.COMPLETED
            self.message = "No investors to process"
        elif self.failure_count == 0:
            self.status = OperationStatus.COMPLETED
            self.message = f"Successfully processed all {self.success_count} investors"
        elif self.success_count > 0:
            self.status = OperationStatus.PARTIAL_SUCCESS
            self.message = (
                f"Processed {self.success_count} of {self.total_processed} investors "
                f"successfully. {self.failure_count} failed."
            )
        else:
            self.status = OperationStatus.FAILED
            self.message = f"Failed to process all {self.total_processed} investors"


# ---------------------------------------------------------------------------
# Async jobs
# ---------------------------------------------------------------------------

class AsyncJob(CamelModel):
    """An asynchronous file ingestion, addressable by id for polling."""

    job_id: int
    filename: str = ""
    source_checksum: str
    state: JobState = JobState.CREATED
    result: BulkOperationResult = Field(
        default_factory=lambda: BulkOperationResult.in_progress("Job created")
    )
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
