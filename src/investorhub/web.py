"""FastAPI web server for investor ingestion.

Exposes the bulk pipeline (JSON payloads, synchronous and asynchronous file
uploads with job polling) plus single-record creation and lookups.
"""

from typing import Any

from fastapi import FastAPI, File, HTTPException, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from investorhub.config import Settings
from investorhub.errors import (
    DuplicateNameError,
    InvestorHubError,
    JobRejectedError,
    RecordValidationError,
    StorageConstraintError,
)
from investorhub.importer import InvestorImporter, file_error_result
from investorhub.jobs import AsyncJobRunner
from investorhub.models import BulkOperationResult, InvestorRecord
from investorhub.parser import load_json, parse_json_array
from investorhub.store import InvestorStore

# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

_settings: Settings | None = None
_store: InvestorStore | None = None
_importer: InvestorImporter | None = None
_runner: AsyncJobRunner | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def get_store() -> InvestorStore:
    global _store
    if _store is None:
        settings = get_settings()
        _store = InvestorStore(settings.db_path, max_retries=settings.store_max_retries)
    return _store


def get_importer() -> InvestorImporter:
    global _importer
    if _importer is None:
        _importer = InvestorImporter(get_settings(), store=get_store())
    return _importer


def get_runner() -> AsyncJobRunner:
    global _runner
    if _runner is None:
        _runner = AsyncJobRunner(get_settings(), store=get_store(), importer=get_importer())
    return _runner


def _dump(result: BulkOperationResult) -> dict[str, Any]:
    return result.model_dump(mode="json", by_alias=True)


def _validation_body(exc: RecordValidationError) -> dict[str, Any]:
    return {
        "message": str(exc),
        "detail": exc.formatted(),
        "recordName": exc.record_name,
        "errors": [
            {
                "fieldName": e.field_name,
                "errorMessage": e.message,
                "rejectedValue": e.rejected_value,
            }
            for e in exc.field_errors
        ],
    }


def create_app(
    store: InvestorStore | None = None,
    runner: AsyncJobRunner | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    Anything passed in is used directly (useful for tests). Otherwise the
    collaborators are built from environment settings on first request.
    """
    app = FastAPI(title="Investor Hub", version="0.1.0")

    global _settings, _store, _importer, _runner
    if settings is not None:
        _settings = settings
    if store is not None:
        _store = store
        _importer = None
    if runner is not None:
        _runner = runner
    elif store is not None or settings is not None:
        _runner = None

    # ------------------------------------------------------------------
    # API: Bulk ingestion
    # ------------------------------------------------------------------

    @app.post("/api/investors/bulk")
    async def bulk_insert(request: Request) -> dict[str, Any]:
        # read by hand: fractional numbers must stay exact decimals
        body = await request.body()
        try:
            records = parse_json_array(body)
        except InvestorHubError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except ValidationError as exc:
            raise RequestValidationError(exc.errors(include_url=False)) from exc
        result = await run_in_threadpool(get_importer().bulk_insert, records)
        return _dump(result)

    @app.post("/api/investors/bulk/file", response_model=None)
    async def bulk_insert_file(file: UploadFile = File(...)) -> dict[str, Any] | JSONResponse:
        data = await file.read()
        try:
            result = await run_in_threadpool(
                get_importer().bulk_insert_from_file, data, file.filename, file.content_type
            )
        except InvestorHubError as exc:
            return JSONResponse(status_code=400, content=_dump(file_error_result(exc, file.filename)))
        return _dump(result)

    @app.post("/api/investors/bulk/file/async", status_code=202)
    async def bulk_insert_file_async(file: UploadFile = File(...)) -> dict[str, int]:
        data = await file.read()
        try:
            job_id = await run_in_threadpool(
                get_runner().launch, data, file.filename, file.content_type
            )
        except JobRejectedError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return {"jobId": job_id}

    @app.get("/api/investors/bulk/file/status/{job_id}")
    async def bulk_job_status(job_id: int) -> dict[str, Any]:
        result = get_runner().status(job_id)
        if result is None:
            raise HTTPException(status_code=404, detail="Job not found")
        return _dump(result)

    @app.get("/api/investors/bulk/jobs/{job_id}")
    async def bulk_job(job_id: int) -> dict[str, Any]:
        job = get_runner().get_job(job_id)
        if job is None:
            raise HTTPException(status_code=404, detail="Job not found")
        return job.model_dump(mode="json", by_alias=True)

    # ------------------------------------------------------------------
    # API: Investors
    # ------------------------------------------------------------------

    @app.post("/api/investors", status_code=201, response_model=None)
    async def create_investor(request: Request) -> dict[str, Any] | JSONResponse:
        body = await request.body()
        try:
            record = InvestorRecord.model_validate(load_json(body))
        except InvestorHubError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except ValidationError as exc:
            raise RequestValidationError(exc.errors(include_url=False)) from exc
        try:
            created = await run_in_threadpool(get_importer().create_investor, record)
        except DuplicateNameError as exc:
            return JSONResponse(status_code=409, content=_validation_body(exc))
        except RecordValidationError as exc:
            return JSONResponse(status_code=400, content=_validation_body(exc))
        except StorageConstraintError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return created.model_dump(mode="json", by_alias=True)

    @app.get("/api/investors")
    async def list_investors() -> list[dict[str, Any]]:
        investors = get_store().list_investors()
        return [i.model_dump(mode="json", by_alias=True) for i in investors]

    @app.get("/api/investors/by-name/{name}")
    async def get_investor_by_name(name: str) -> dict[str, Any]:
        investor = get_store().find_by_name(name)
        if not investor:
            raise HTTPException(status_code=404, detail="Investor not found")
        return investor.model_dump(mode="json", by_alias=True)

    @app.get("/api/investors/{investor_id}")
    async def get_investor(investor_id: str) -> dict[str, Any]:
        investor = get_store().get_investor(investor_id)
        if not investor:
            raise HTTPException(status_code=404, detail="Investor not found")
        return investor.model_dump(mode="json", by_alias=True)

    # ------------------------------------------------------------------
    # API: Status
    # ------------------------------------------------------------------

    @app.get("/api/status")
    async def status() -> dict[str, Any]:
        s = get_store()
        jobs = s.list_jobs(limit=5)
        return {
            "investorsStored": s.count_investors(),
            "recentJobs": [
                {
                    "jobId": j.job_id,
                    "filename": j.filename,
                    "state": j.state.value,
                    "message": j.result.message,
                }
                for j in jobs
            ],
        }

    return app
