"""Tests for data models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from investorhub.models import (
    AsyncJob,
    BulkOperationResult,
    Contact,
    ErrorCode,
    InvestorRecord,
    JobState,
    OperationStatus,
)


def test_record_defaults() -> None:
    r = InvestorRecord(name="Acme")
    assert r.id is None
    assert r.sectors == []
    assert r.contacts == []
    assert r.impressions == 0
    assert r.is_old is None
    assert r.hq_location is None


def test_record_accepts_camel_case_and_ignores_unknown_keys() -> None:
    r = InvestorRecord.model_validate(
        {
            "name": "Acme",
            "macroType": "PRIVATE_EQUITY",
            "preferredGeographicalAreas": ["EU"],
            "hqLocation": {"city": "Rome"},
            "somethingElse": 42,
        }
    )
    assert r.macro_type == "PRIVATE_EQUITY"
    assert r.preferred_geographical_areas == ["EU"]
    assert r.hq_location is not None
    assert r.hq_location.city == "Rome"


def test_financials_keep_decimal_precision() -> None:
    r = InvestorRecord.model_validate(
        {"name": "Acme", "financials": {"invMin": "0.1", "ebitdaMax": "12345678901234567890.01"}}
    )
    assert r.financials is not None
    assert r.financials.inv_min == Decimal("0.1")
    doc = r.to_document()
    assert doc["financials"]["invMin"] == "0.1"
    assert doc["financials"]["ebitdaMax"] == "12345678901234567890.01"


def test_contacts_behave_as_a_set() -> None:
    jane = {"firstName": "Jane", "lastName": "Doe"}
    r = InvestorRecord.model_validate(
        {"name": "Acme", "contacts": [jane, {"firstName": "John", "lastName": "Roe"}, jane]}
    )
    assert [c.first_name for c in r.contacts] == ["Jane", "John"]


def test_contact_identity_uses_every_field() -> None:
    a = Contact(first_name="Jane", last_name="Doe", role="CEO")
    b = Contact(first_name="Jane", last_name="Doe", role="CFO")
    assert a.identity() != b.identity()


def test_to_document_defaults() -> None:
    r = InvestorRecord(id="abc", name="Acme", impressions=None)
    doc = r.to_document()
    assert "id" not in doc
    assert doc["isOld"] is False
    assert doc["impressions"] == 0
    assert doc["macroType"] is None


def test_from_document_round_trip() -> None:
    r = InvestorRecord(name="Acme", sectors=["FinTech"], is_old=True)
    restored = InvestorRecord.from_document("id-1", r.to_document())
    assert restored.id == "id-1"
    assert restored.sectors == ["FinTech"]
    assert restored.is_old is True


# ---------------------------------------------------------------------------
# BulkOperationResult
# ---------------------------------------------------------------------------


def test_result_empty() -> None:
    result = BulkOperationResult.empty()
    assert result.status == OperationStatus.COMPLETED
    assert result.total_processed == 0
    assert result.message == "No investors to process"


def test_update_status_completed() -> None:
    result = BulkOperationResult(total_processed=3, success_count=3)
    result.update_status()
    assert result.status == OperationStatus.COMPLETED
    assert result.failure_count == 0
    assert result.message == "Successfully processed all 3 investors"
    assert result.is_fully_successful


def test_update_status_partial() -> None:
    result = BulkOperationResult(total_processed=4, success_count=1)
    result.update_status()
    assert result.status == OperationStatus.PARTIAL_SUCCESS
    assert result.failure_count == 3
    assert result.message == "Processed 1 of 4 investors successfully. 3 failed."
    assert result.has_failures
    assert result.success_rate == 0.25


def test_update_status_failed() -> None:
    result = BulkOperationResult(total_processed=2, success_count=0)
    result.update_status()
    assert result.status == OperationStatus.FAILED
    assert result.failure_count == 2
    assert result.message == "Failed to process all 2 investors"


def test_file_failure() -> None:
    result = BulkOperationResult.file_failure(
        "bad.txt", ErrorCode.FILE_VALIDATION_ERROR, "Unsupported", prefix="File validation failed"
    )
    assert result.status == OperationStatus.FAILED
    assert result.total_processed == 1
    assert result.failure_count == 1
    assert result.message == "File validation failed: Unsupported"
    assert len(result.errors) == 1
    assert result.errors[0].record_name == "bad.txt"
    assert result.errors[0].error_code == ErrorCode.FILE_VALIDATION_ERROR


def test_result_serializes_with_camel_case() -> None:
    result = BulkOperationResult(total_processed=1)
    result.add_error(0, "Acme", ErrorCode.VALIDATION_ERROR, "bad", field_name="name")
    data = result.model_dump(mode="json", by_alias=True)
    assert data["totalProcessed"] == 1
    assert data["errors"][0]["itemIndex"] == 0
    assert data["errors"][0]["errorCode"] == "VALIDATION_ERROR"
    assert data["errors"][0]["fieldName"] == "name"
    assert isinstance(result.timestamp, datetime)


def test_async_job_defaults() -> None:
    job = AsyncJob(job_id=1, source_checksum="abc")
    assert job.state == JobState.CREATED
    assert job.result.status == OperationStatus.IN_PROGRESS
    assert not job.state.is_finished
    assert JobState.PARTIAL_SUCCESS.is_finished
