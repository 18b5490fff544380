"""Structural, format and uniqueness checks for a single investor record.

All structural checks run and their problems are collected together. The
duplicate-name lookup only happens once a record is otherwise clean, and it
raises on its own.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from investorhub.errors import DuplicateNameError, FieldError, RecordValidationError
from investorhub.models import DESCRIPTION_LANGUAGES, InvestorRecord

if TYPE_CHECKING:
    from investorhub.store import InvestorStore

logger = logging.getLogger(__name__)

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 200
WEBSITE_MAX_LENGTH = 500
DESCRIPTION_MAX_LENGTH = 5000
PREVIEW_LENGTH = 50

EMAIL_PATTERN = re.compile(
    r"^[a-zA-Z0-9_+&*-]+(?:\.[a-zA-Z0-9_+&*-]+)*@(?:[a-zA-Z0-9-]+\.)+[a-zA-Z]{2,7}$"
)
WEBSITE_PATTERN = re.compile(
    r"^(https?://)?([a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?\.)+[a-zA-Z]{2,}(/.*)?$"
)


def _has_text(value: str | None) -> bool:
    return bool(value and value.strip())


def _preview(value: str) -> str:
    if len(value) <= PREVIEW_LENGTH:
        return value
    return value[:PREVIEW_LENGTH] + "..."


def is_valid_email(value: str) -> bool:
    return EMAIL_PATTERN.fullmatch(value) is not None


def is_valid_website(value: str) -> bool:
    return WEBSITE_PATTERN.fullmatch(value) is not None


class InvestorValidator:
    """Validates investor records before they are written.

    The store is only consulted for the duplicate-name check, so a validator
    built without one can still run every structural check.
    """

    def __init__(self, store: InvestorStore | None = None) -> None:
        self._store = store

    def validate(
        self,
        record: InvestorRecord | None,
        index: int = 0,
        check_duplicates: bool = True,
    ) -> None:
        """Raise ``RecordValidationError`` if *record* is not acceptable.

        ``DuplicateNameError`` (a subclass) is raised when *check_duplicates*
        is set and a record with the same name is already stored.
        """
        if record is None:
            raise RecordValidationError("Investor data cannot be null", index=index)

        errors: list[FieldError] = []
        self._check_required(record, errors)
        self._check_lengths(record, errors)
        self._check_emails(record, errors)
        self._check_website(record, errors)
        self._check_contacts(record, errors)

        if errors:
            logger.debug("Investor at index %d has %d validation errors", index, len(errors))
            raise RecordValidationError(
                f"Validation failed for investor at index {index}",
                index=index,
                record_name=record.name,
                field_errors=errors,
            )

        if check_duplicates and _has_text(record.name):
            self._check_unique_name(record.name, index)

    # ---- Individual checks ------------------------------------------------

    @staticmethod
    def _check_required(record: InvestorRecord, errors: list[FieldError]) -> None:
        if not _has_text(record.name):
            errors.append(FieldError("name", "Investor name is required"))
        if not _has_text(record.status):
            errors.append(FieldError("status", "Status is required"))
        if not _has_text(record.type):
            errors.append(FieldError("type", "Type is required"))

    @staticmethod
    def _check_lengths(record: InvestorRecord, errors: list[FieldError]) -> None:
        name = record.name
        if _has_text(name) and not NAME_MIN_LENGTH <= len(name) <= NAME_MAX_LENGTH:
            errors.append(
                FieldError(
                    "name",
                    f"Name must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters",
                    _preview(name),
                )
            )

        website = record.website
        if _has_text(website) and len(website) > WEBSITE_MAX_LENGTH:
            errors.append(
                FieldError(
                    "website",
                    f"Website URL must not exceed {WEBSITE_MAX_LENGTH} characters",
                    _preview(website),
                )
            )

        if record.descriptions is None:
            return
        for language in DESCRIPTION_LANGUAGES:
            text = getattr(record.descriptions, language)
            if _has_text(text) and len(text) > DESCRIPTION_MAX_LENGTH:
                errors.append(
                    FieldError(
                        f"descriptions.{language}",
                        f"Description must not exceed {DESCRIPTION_MAX_LENGTH} characters",
                        _preview(text),
                    )
                )

    @staticmethod
    def _check_emails(record: InvestorRecord, errors: list[FieldError]) -> None:
        candidates: list[tuple[str, str | None]] = [
            ("creatorEmail", record.creator_email),
            ("adminEmail", record.admin_email),
        ]
        if record.hq_location is not None:
            candidates.append(("hqLocation.email", record.hq_location.email))
        for i, contact in enumerate(record.contacts):
            candidates.append((f"contacts[{i}].email", contact.email))

        for field_name, value in candidates:
            if _has_text(value) and not is_valid_email(value):
                errors.append(FieldError(field_name, "Invalid email format", value))

    @staticmethod
    def _check_website(record: InvestorRecord, errors: list[FieldError]) -> None:
        website = record.website
        if _has_text(website) and not is_valid_website(website):
            errors.append(FieldError("website", "Invalid website URL format", _preview(website)))

    @staticmethod
    def _check_contacts(record: InvestorRecord, errors: list[FieldError]) -> None:
        for i, contact in enumerate(record.contacts):
            if not _has_text(contact.first_name):
                errors.append(FieldError(f"contacts[{i}].firstName", "Contact first name is required"))
            if not _has_text(contact.last_name):
                errors.append(FieldError(f"contacts[{i}].lastName", "Contact last name is required"))

    def _check_unique_name(self, name: str, index: int) -> None:
        if self._store is None:
            return
        if self._store.exists_by_name(name):
            logger.info("Duplicate investor name at index %d: %s", index, name)
            raise DuplicateNameError(name, index=index)
