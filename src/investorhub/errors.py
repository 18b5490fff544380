"""Exceptions raised by the ingestion pipeline.

Only file-level and whole-list failures escape the pipeline as exceptions;
per-record problems end up as ``ErrorDetail`` entries in a
``BulkOperationResult``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class InvestorHubError(Exception):
    """Base class for all investorhub errors."""


# ---------------------------------------------------------------------------
# File-level
# ---------------------------------------------------------------------------

class UnsupportedFormatError(InvestorHubError):
    """The uploaded file is neither CSV nor JSON."""


class MalformedInputError(InvestorHubError):
    """The file content cannot be read as its declared format."""


# ---------------------------------------------------------------------------
# Record-level
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FieldError:
    """A single field-level validation problem."""

    field_name: str
    message: str
    rejected_value: Any = None


class RecordValidationError(InvestorHubError):
    """A record failed one or more validation checks."""

    def __init__(
        self,
        message: str,
        index: int | None = None,
        record_name: str | None = None,
        field_errors: list[FieldError] | None = None,
    ) -> None:
        self.index = index
        self.record_name = record_name
        self.field_errors = list(field_errors or [])
        super().__init__(message)

    @property
    def has_field_errors(self) -> bool:
        return bool(self.field_errors)

    def formatted(self) -> str:
        parts = [str(self)]
        if self.record_name is not None:
            parts.append(f" (Investor: {self.record_name})")
        if self.index is not None:
            parts.append(f" (Index: {self.index})")
        for error in self.field_errors:
            line = f"\n- {error.field_name}: {error.message}"
            if error.rejected_value is not None:
                line += f" (Rejected value: {error.rejected_value})"
            parts.append(line)
        return "".join(parts)


class DuplicateNameError(RecordValidationError):
    """An investor with the same name is already stored."""

    def __init__(self, name: str, index: int | None = None) -> None:
        message = f"Investor with name '{name}' already exists"
        super().__init__(
            message,
            index=index,
            record_name=name,
            field_errors=[FieldError("name", message, name)],
        )


# ---------------------------------------------------------------------------
# Storage / execution
# ---------------------------------------------------------------------------

class StorageConstraintError(InvestorHubError):
    """A write violated a storage-level constraint such as the unique name index."""


class JobRejectedError(InvestorHubError):
    """The worker pool is at capacity and cannot accept another job."""
