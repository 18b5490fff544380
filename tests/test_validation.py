"""Tests for record validation."""

from __future__ import annotations

import pytest
from conftest import make_record

from investorhub.errors import DuplicateNameError, RecordValidationError
from investorhub.models import InvestorRecord
from investorhub.store import InvestorStore
from investorhub.validation import InvestorValidator, is_valid_email, is_valid_website


@pytest.fixture()
def validator(store: InvestorStore) -> InvestorValidator:
    return InvestorValidator(store)


def _field_names(exc: RecordValidationError) -> list[str]:
    return [e.field_name for e in exc.field_errors]


def test_valid_record_passes(validator: InvestorValidator, valid_record: InvestorRecord) -> None:
    validator.validate(valid_record, 0, check_duplicates=True)


def test_validation_is_repeatable_without_duplicate_check(
    validator: InvestorValidator, valid_record: InvestorRecord
) -> None:
    validator.validate(valid_record, 0, check_duplicates=False)
    validator.validate(valid_record, 0, check_duplicates=False)


def test_none_record(validator: InvestorValidator) -> None:
    with pytest.raises(RecordValidationError, match="Investor data cannot be null"):
        validator.validate(None, 3)


def test_required_fields_are_collected(validator: InvestorValidator) -> None:
    with pytest.raises(RecordValidationError) as info:
        validator.validate(InvestorRecord(name="  "), 7)
    exc = info.value
    assert str(exc) == "Validation failed for investor at index 7"
    assert exc.index == 7
    assert _field_names(exc) == ["name", "status", "type"]
    assert exc.field_errors[0].message == "Investor name is required"


def test_name_length_bounds(validator: InvestorValidator) -> None:
    with pytest.raises(RecordValidationError) as info:
        validator.validate(make_record("A"), 0)
    assert _field_names(info.value) == ["name"]

    long_name = "N" * 201
    with pytest.raises(RecordValidationError) as info:
        validator.validate(make_record(long_name), 0)
    error = info.value.field_errors[0]
    assert error.field_name == "name"
    assert error.rejected_value == "N" * 50 + "..."

    validator.validate(make_record("N" * 200), 0, check_duplicates=False)


def test_description_too_long(validator: InvestorValidator) -> None:
    record = make_record(descriptions={"en": "x" * 5001, "it": "ok"})
    with pytest.raises(RecordValidationError) as info:
        validator.validate(record, 0)
    assert _field_names(info.value) == ["descriptions.en"]
    assert info.value.field_errors[0].rejected_value == "x" * 50 + "..."


def test_bad_creator_email_is_one_error(validator: InvestorValidator) -> None:
    with pytest.raises(RecordValidationError) as info:
        validator.validate(make_record(creatorEmail="not-an-email"), 0)
    assert _field_names(info.value) == ["creatorEmail"]
    assert info.value.field_errors[0].rejected_value == "not-an-email"


def test_nested_emails_are_checked(validator: InvestorValidator) -> None:
    record = make_record(
        adminEmail="admin@@acme",
        hqLocation={"email": "hq-at-acme"},
        contacts=[
            {"firstName": "Jane", "lastName": "Doe", "email": "jane@acme.com"},
            {"firstName": "John", "lastName": "Roe", "email": "john"},
        ],
    )
    with pytest.raises(RecordValidationError) as info:
        validator.validate(record, 0)
    assert _field_names(info.value) == ["adminEmail", "hqLocation.email", "contacts[1].email"]


def test_bad_website_is_one_error(validator: InvestorValidator) -> None:
    with pytest.raises(RecordValidationError) as info:
        validator.validate(make_record(website="not-a-valid-url"), 0)
    assert _field_names(info.value) == ["website"]


def test_missing_website_is_fine(validator: InvestorValidator) -> None:
    validator.validate(make_record(website=None), 0)


def test_contacts_need_both_names(validator: InvestorValidator) -> None:
    record = make_record(contacts=[{"firstName": "Jane"}, {"lastName": "Roe"}])
    with pytest.raises(RecordValidationError) as info:
        validator.validate(record, 0)
    assert _field_names(info.value) == ["contacts[0].lastName", "contacts[1].firstName"]


def test_duplicate_name(validator: InvestorValidator, store: InvestorStore) -> None:
    store.insert_investor(make_record("Acme"))

    with pytest.raises(DuplicateNameError) as info:
        validator.validate(make_record("Acme"), 4, check_duplicates=True)
    exc = info.value
    assert exc.index == 4
    assert exc.record_name == "Acme"
    assert str(exc) == "Investor with name 'Acme' already exists"
    assert _field_names(exc) == ["name"]

    validator.validate(make_record("Acme"), 4, check_duplicates=False)


def test_duplicate_check_runs_only_after_structural_checks(
    validator: InvestorValidator, store: InvestorStore
) -> None:
    store.insert_investor(make_record("Acme"))
    with pytest.raises(RecordValidationError) as info:
        validator.validate(make_record("Acme", type=None), 0)
    assert not isinstance(info.value, DuplicateNameError)
    assert _field_names(info.value) == ["type"]


def test_formatted_message(validator: InvestorValidator) -> None:
    with pytest.raises(RecordValidationError) as info:
        validator.validate(make_record(creatorEmail="bad"), 2)
    text = info.value.formatted()
    assert "(Investor: Acme Capital)" in text
    assert "(Index: 2)" in text
    assert "- creatorEmail: Invalid email format (Rejected value: bad)" in text


@pytest.mark.parametrize(
    "value, expected",
    [
        ("jane.doe@acme.com", True),
        ("j+tag@mail.acme.co.uk", True),
        ("jane@acme", False),
        ("@acme.com", False),
    ],
)
def test_email_pattern(value: str, expected: bool) -> None:
    assert is_valid_email(value) is expected


@pytest.mark.parametrize(
    "value, expected",
    [
        ("acme.com", True),
        ("https://www.acme.com/about", True),
        ("http://acme", False),
        ("ftp://acme.com", False),
    ],
)
def test_website_pattern(value: str, expected: bool) -> None:
    assert is_valid_website(value) is expected
