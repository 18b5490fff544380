"""Shared fixtures for investorhub tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from investorhub.config import Settings
from investorhub.models import InvestorRecord
from investorhub.store import InvestorStore


@pytest.fixture()
def tmp_db(tmp_path: Path) -> Path:
    return tmp_path / "test.db"


@pytest.fixture()
def store(tmp_db: Path) -> InvestorStore:
    s = InvestorStore(tmp_db)
    yield s
    s.close()


@pytest.fixture()
def settings(tmp_db: Path, tmp_path: Path) -> Settings:
    """Settings pointing to a temp database and scratch directory."""
    return Settings(
        db_path=tmp_db,
        scratch_dir=tmp_path / "scratch",
        chunk_size=1000,
        worker_threads=2,
        worker_queue_capacity=2,
    )


def make_record(name: str = "Acme Capital", **overrides: object) -> InvestorRecord:
    data: dict[str, object] = {"name": name, "status": "ACTIVE", "type": "VC"}
    data.update(overrides)
    return InvestorRecord.model_validate(data)


@pytest.fixture()
def valid_record() -> InvestorRecord:
    return make_record(
        website="https://acme.example.com",
        creatorEmail="creator@acme.com",
        sectors=["FinTech", "HealthTech"],
        hqLocation={"city": "Milan", "country": "Italy", "email": "info@acme.com"},
        financials={"invMin": "100000.50", "invMax": "2500000"},
        contacts=[{"firstName": "Jane", "lastName": "Doe", "email": "jane@acme.com"}],
    )
