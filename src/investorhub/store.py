"""SQLite-backed document store for investor records and ingestion jobs.

Each investor is persisted as a JSON document next to a handful of indexed
columns. The unique index on ``name`` is the storage-level backstop for the
duplicate-name check done during validation.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from uuid import uuid4

from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    String,
    Text,
    TypeDecorator,
    create_engine,
    func,
    select,
)
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from investorhub.errors import StorageConstraintError
from investorhub.models import AsyncJob, BulkOperationResult, InvestorRecord, JobState, utcnow

logger = logging.getLogger(__name__)

_ID_BATCH = 500


# ---------------------------------------------------------------------------
# SQLAlchemy ORM models
# ---------------------------------------------------------------------------

class UTCDateTime(TypeDecorator):
    """Timestamp column that always reads back as timezone-aware UTC.

    SQLite has no timezone type and returns naive datetimes.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(UTC).replace(tzinfo=None)
        return value

    def process_result_value(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value


class Base(DeclarativeBase):
    pass


class InvestorRow(Base):
    __tablename__ = "investors"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False, unique=True, index=True)
    status = Column(String, default="")
    type = Column(String, default="")
    completeness_score = Column(Integer, nullable=True, index=True)
    created_at = Column(UTCDateTime(), default=utcnow)
    updated_at = Column(UTCDateTime(), default=utcnow)
    document = Column(Text, nullable=False, default="{}")


class JobRow(Base):
    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    filename = Column(String, default="")
    source_checksum = Column(String, nullable=False, index=True)
    state = Column(String, nullable=False, default=JobState.CREATED.value)
    result_json = Column(Text, default="{}")
    created_at = Column(UTCDateTime(), default=utcnow)
    updated_at = Column(UTCDateTime(), default=utcnow)


class ProcessedFileRow(Base):
    """Maps a file checksum to the job that ingested it."""

    __tablename__ = "processed_files"

    checksum = Column(String, primary_key=True)
    job_id = Column(Integer, nullable=False, index=True)


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class InvestorStore:
    """Manages the local SQLite database of investors and ingestion jobs."""

    def __init__(self, db_path: Path | str = "investorhub.db", max_retries: int = 3) -> None:
        url = f"sqlite:///{db_path}"
        self._engine = create_engine(
            url,
            echo=False,
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        Base.metadata.create_all(self._engine)
        self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
        self._max_retries = max_retries

    def _session(self) -> Session:
        return self._session_factory()

    def _retrying(self) -> Retrying:
        return Retrying(
            retry=retry_if_exception_type(OperationalError),
            stop=stop_after_attempt(self._max_retries),
            wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    def close(self) -> None:
        self._engine.dispose()

    # ---- Investors --------------------------------------------------------

    @staticmethod
    def _to_row_values(document: dict[str, Any]) -> dict[str, Any]:
        record_id = document.pop("id", None) or uuid4().hex
        now = utcnow()
        return {
            "id": record_id,
            "name": document.get("name"),
            "status": document.get("status") or "",
            "type": document.get("type") or "",
            "completeness_score": document.get("completenessScore"),
            "created_at": _parse_timestamp(document.get("createdAt")) or now,
            "updated_at": _parse_timestamp(document.get("updatedAt")) or now,
            "document": json.dumps(document, default=str),
        }

    def insert_investor(self, record: InvestorRecord) -> InvestorRecord:
        """Insert one record and return it with its store-assigned id."""
        document = record.to_document()
        if record.id:
            document["id"] = record.id
        values = self._to_row_values(document)
        with self._session() as session:
            session.add(InvestorRow(**values))
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise StorageConstraintError(
                    f"Investor '{values['name']}' conflicts with an existing record"
                ) from exc
        return record.model_copy(update={"id": values["id"]})

    def insert_many_unordered(self, documents: Sequence[dict[str, Any]]) -> int:
        """Insert documents in one batch; conflicting rows are skipped.

        A document that collides with an existing id or name does not stop
        the others from being written. Returns the number actually inserted.
        """
        if not documents:
            return 0
        rows = [self._to_row_values(dict(doc)) for doc in documents]
        ids = [row["id"] for row in rows]

        def _insert() -> int:
            with self._session() as session:
                before = self._count_ids(session, ids)
                session.execute(sqlite_insert(InvestorRow).on_conflict_do_nothing(), rows)
                after = self._count_ids(session, ids)
                session.commit()
            return after - before

        return self._retrying()(_insert)

    @staticmethod
    def _count_ids(session: Session, ids: list[str]) -> int:
        total = 0
        # stay below SQLite's bound-parameter limit
        for start in range(0, len(ids), _ID_BATCH):
            batch = ids[start : start + _ID_BATCH]
            total += session.scalar(
                select(func.count()).select_from(InvestorRow).where(InvestorRow.id.in_(batch))
            ) or 0
        return total

    def get_investor(self, record_id: str) -> InvestorRecord | None:
        with self._session() as session:
            row = session.get(InvestorRow, record_id)
            if not row:
                return None
            return self._row_to_record(row)

    def find_by_name(self, name: str) -> InvestorRecord | None:
        with self._session() as session:
            row = session.scalars(select(InvestorRow).where(InvestorRow.name == name)).first()
            if not row:
                return None
            return self._row_to_record(row)

    def exists_by_name(self, name: str) -> bool:
        with self._session() as session:
            found = session.scalar(select(InvestorRow.id).where(InvestorRow.name == name).limit(1))
            return found is not None

    def list_investors(self, limit: int | None = None) -> list[InvestorRecord]:
        with self._session() as session:
            query = select(InvestorRow).order_by(InvestorRow.name)
            if limit is not None:
                query = query.limit(limit)
            return [self._row_to_record(r) for r in session.scalars(query)]

    def count_investors(self) -> int:
        with self._session() as session:
            return session.scalar(select(func.count()).select_from(InvestorRow)) or 0

    @staticmethod
    def _row_to_record(row: InvestorRow) -> InvestorRecord:
        document = json.loads(row.document) if row.document else {}
        return InvestorRecord.from_document(row.id, document)

    # ---- Jobs -------------------------------------------------------------

    def create_job(self, filename: str, checksum: str) -> AsyncJob:
        """Register a new job and claim *checksum* for it.

        Raises ``StorageConstraintError`` if another job already claimed the
        checksum.
        """
        result = BulkOperationResult.in_progress("Job queued")
        with self._session() as session:
            row = JobRow(
                filename=filename,
                source_checksum=checksum,
                state=JobState.CREATED.value,
                result_json=result.model_dump_json(by_alias=True),
            )
            session.add(row)
            session.flush()
            session.add(ProcessedFileRow(checksum=checksum, job_id=row.id))
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise StorageConstraintError(f"File {checksum} is already being processed") from exc
            return self._row_to_job(row)

    def update_job(self, job_id: int, state: JobState, result: BulkOperationResult) -> None:
        with self._session() as session:
            row = session.get(JobRow, job_id)
            if not row:
                logger.warning("Cannot update unknown job %s", job_id)
                return
            row.state = state.value
            row.result_json = result.model_dump_json(by_alias=True)
            row.updated_at = utcnow()
            session.commit()

    def get_job(self, job_id: int) -> AsyncJob | None:
        with self._session() as session:
            row = session.get(JobRow, job_id)
            if not row:
                return None
            return self._row_to_job(row)

    def list_jobs(self, limit: int = 20) -> list[AsyncJob]:
        with self._session() as session:
            rows = session.scalars(select(JobRow).order_by(JobRow.id.desc()).limit(limit))
            return [self._row_to_job(r) for r in rows]

    def find_job_by_checksum(self, checksum: str) -> AsyncJob | None:
        with self._session() as session:
            processed = session.get(ProcessedFileRow, checksum)
            if not processed:
                return None
            row = session.get(JobRow, processed.job_id)
            return self._row_to_job(row) if row else None

    def exists_by_checksum(self, checksum: str) -> bool:
        with self._session() as session:
            return session.get(ProcessedFileRow, checksum) is not None

    def release_checksum(self, checksum: str) -> None:
        """Forget *checksum* so the same file can be submitted again."""
        with self._session() as session:
            row = session.get(ProcessedFileRow, checksum)
            if row:
                session.delete(row)
                session.commit()

    @staticmethod
    def _row_to_job(row: JobRow) -> AsyncJob:
        result = (
            BulkOperationResult.model_validate_json(row.result_json)
            if row.result_json and row.result_json != "{}"
            else BulkOperationResult.in_progress("Job queued")
        )
        return AsyncJob(
            job_id=row.id,
            filename=row.filename or "",
            source_checksum=row.source_checksum,
            state=JobState(row.state),
            result=result,
            created_at=row.created_at or utcnow(),
            updated_at=row.updated_at or utcnow(),
        )


def _parse_timestamp(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None
