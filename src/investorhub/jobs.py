"""Asynchronous file ingestion jobs.

An uploaded file is saved to scratch storage, fingerprinted and registered
as a job before the pipeline runs on a worker thread. Callers get the job id
straight away and poll for the latest result snapshot.

Submitting a file whose checksum belongs to a job that has not failed
returns that job's id instead of processing the file again.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any

from investorhub.config import Settings
from investorhub.errors import InvestorHubError, JobRejectedError, StorageConstraintError
from investorhub.files import ScratchFileStore
from investorhub.importer import InvestorImporter, file_error_result
from investorhub.models import AsyncJob, BulkOperationResult, ErrorCode, JobState
from investorhub.store import InvestorStore

logger = logging.getLogger(__name__)


class BoundedWorkerPool:
    """Thread pool that refuses work instead of queueing without limit.

    At most ``max_workers`` tasks run and ``queue_capacity`` more may wait;
    anything beyond that raises ``JobRejectedError``.
    """

    def __init__(
        self,
        max_workers: int,
        queue_capacity: int,
        thread_name_prefix: str = "bulk-file",
    ) -> None:
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix=thread_name_prefix
        )
        self._slots = threading.BoundedSemaphore(max_workers + queue_capacity)

    def submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        if not self._slots.acquire(blocking=False):
            raise JobRejectedError("Worker pool is at capacity, try again later")
        try:
            future = self._executor.submit(fn, *args)
        except BaseException:
            self._slots.release()
            raise
        future.add_done_callback(lambda _: self._slots.release())
        return future

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


class AsyncJobRunner:
    """Runs file ingestion in the background and tracks it as a job."""

    def __init__(
        self,
        settings: Settings | None = None,
        store: InvestorStore | None = None,
        importer: InvestorImporter | None = None,
        files: ScratchFileStore | None = None,
        pool: BoundedWorkerPool | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._store = store or InvestorStore(
            self._settings.db_path, max_retries=self._settings.store_max_retries
        )
        self._importer = importer or InvestorImporter(self._settings, store=self._store)
        self._files = files or ScratchFileStore(self._settings.scratch_dir)
        self._pool = pool or BoundedWorkerPool(
            self._settings.worker_threads, self._settings.worker_queue_capacity
        )
        self._futures: dict[int, Future] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def launch(self, data: bytes, filename: str | None = None, content_type: str | None = None) -> int:
        """Register a job for *data* and start it; returns the job id.

        Raises ``JobRejectedError`` when the worker pool is full.
        """
        path = self._files.save_to_temp(data, filename)
        checksum = self._files.checksum(path)

        prior = self._reusable_job(checksum)
        if prior is not None:
            logger.info("File %s already submitted as job %d", filename, prior.job_id)
            self._files.discard(path)
            return prior.job_id

        try:
            job = self._store.create_job(filename or "", checksum)
        except StorageConstraintError:
            # another launch claimed the checksum first
            self._files.discard(path)
            prior = self._store.find_job_by_checksum(checksum)
            if prior is None:
                raise
            return prior.job_id

        try:
            future = self._pool.submit(self._run, job.job_id, path, filename, content_type, checksum)
        except JobRejectedError as exc:
            logger.warning("Job %d rejected: %s", job.job_id, exc)
            self._store.update_job(
                job.job_id,
                JobState.FAILED,
                BulkOperationResult.file_failure(
                    filename, ErrorCode.FILE_PROCESSING_ERROR, str(exc), prefix="Job rejected"
                ),
            )
            self._store.release_checksum(checksum)
            self._files.discard(path)
            raise

        with self._lock:
            self._futures[job.job_id] = future
        future.add_done_callback(lambda _: self._forget(job.job_id))
        logger.info("Launched job %d for %s", job.job_id, filename or "<upload>")
        return job.job_id

    def status(self, job_id: int) -> BulkOperationResult | None:
        """Latest result snapshot for *job_id*, or None if unknown."""
        job = self._store.get_job(job_id)
        return job.result if job else None

    def get_job(self, job_id: int) -> AsyncJob | None:
        return self._store.get_job(job_id)

    def wait(self, job_id: int, timeout: float | None = None) -> BulkOperationResult | None:
        """Block until *job_id* finishes, then return its result."""
        with self._lock:
            future = self._futures.get(job_id)
        if future is not None:
            future.result(timeout=timeout)
        return self.status(job_id)

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _reusable_job(self, checksum: str) -> AsyncJob | None:
        prior = self._store.find_job_by_checksum(checksum)
        if prior is None:
            return None
        if prior.state is JobState.FAILED:
            self._store.release_checksum(checksum)
            return None
        return prior

    def _forget(self, job_id: int) -> None:
        with self._lock:
            self._futures.pop(job_id, None)

    def _run(
        self,
        job_id: int,
        path: Path,
        filename: str | None,
        content_type: str | None,
        checksum: str,
    ) -> None:
        try:
            self._store.update_job(job_id, JobState.RUNNING, BulkOperationResult.in_progress("Job running"))
            logger.info("Job %d started", job_id)
            result = self._ingest(job_id, path, filename, content_type)
            state = JobState(result.status.value)
            self._store.update_job(job_id, state, result)
            if state is JobState.FAILED:
                self._store.release_checksum(checksum)
        except Exception as exc:
            logger.exception("Job %d failed", job_id)
            self._mark_failed(job_id, checksum, filename, exc)
            return
        finally:
            self._files.discard(path)
        logger.info("Job %d finished: %s", job_id, result.message)

    def _ingest(
        self, job_id: int, path: Path, filename: str | None, content_type: str | None
    ) -> BulkOperationResult:
        try:
            data = Path(path).read_bytes()
            return self._importer.bulk_insert_from_file(data, filename, content_type)
        except InvestorHubError as exc:
            logger.warning("Job %d rejected file %s: %s", job_id, filename, exc)
            return file_error_result(exc, filename)
        except Exception as exc:
            logger.exception("Job %d could not process %s", job_id, filename)
            return BulkOperationResult.file_failure(
                filename, ErrorCode.FILE_PROCESSING_ERROR, str(exc), prefix="File processing failed"
            )

    def _mark_failed(self, job_id: int, checksum: str, filename: str | None, exc: Exception) -> None:
        """Record a FAILED result and free the checksum, logging anything that goes wrong."""
        result = BulkOperationResult.file_failure(
            filename, ErrorCode.FILE_PROCESSING_ERROR, str(exc), prefix="Job failed"
        )
        try:
            self._store.update_job(job_id, JobState.FAILED, result)
        except Exception:
            logger.exception("Could not record failure of job %d", job_id)
        try:
            self._store.release_checksum(checksum)
        except Exception:
            logger.exception("Could not release checksum of job %d", job_id)
