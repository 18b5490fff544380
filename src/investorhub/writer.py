"""Chunked, unordered bulk persistence of validated investor records."""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from typing import Any

from investorhub.models import BulkOperationResult, ErrorCode, InvestorRecord
from investorhub.store import InvestorStore

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1000


class BatchWriter:
    """Writes records to the store one contiguous chunk at a time.

    A failing chunk marks all of its items failed and the next chunk still
    runs. When the store inserts fewer documents than were submitted for a
    chunk, only a warning is recorded; individual failures are not retried.
    """

    def __init__(self, store: InvestorStore, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")
        self._store = store
        self._chunk_size = chunk_size

    def write(
        self,
        records: Sequence[InvestorRecord],
        chunk_size: int | None = None,
        indices: Sequence[int] | None = None,
    ) -> BulkOperationResult:
        """Persist *records* and report the outcome per item.

        *indices* maps each record position to the index reported in errors;
        it defaults to the position itself.
        """
        if not records:
            return BulkOperationResult.empty()

        size = self._chunk_size if chunk_size is None else chunk_size
        if size < 1:
            raise ValueError("chunk_size must be positive")
        if indices is not None and len(indices) != len(records):
            raise ValueError("indices must have one entry per record")

        started = time.monotonic()
        result = BulkOperationResult(total_processed=len(records))
        total_chunks = (len(records) + size - 1) // size
        logger.info("Writing %d investors in %d chunks of %d", len(records), total_chunks, size)

        for chunk_number, start in enumerate(range(0, len(records), size), start=1):
            chunk = records[start : start + size]
            positions = range(start, start + len(chunk))
            item_indices = [indices[p] if indices is not None else p for p in positions]
            try:
                inserted = self._write_chunk(chunk, item_indices, result)
                result.success_count += inserted
                logger.debug(
                    "Chunk %d/%d: %d investors, %d written",
                    chunk_number,
                    total_chunks,
                    len(chunk),
                    inserted,
                )
            except Exception as exc:
                logger.exception("Chunk %d/%d failed", chunk_number, total_chunks)
                already_reported = {error.item_index for error in result.errors}
                for item_index, record in zip(item_indices, chunk):
                    if item_index not in already_reported:
                        result.add_error(
                            item_index,
                            record.name,
                            ErrorCode.BATCH_PROCESSING_ERROR,
                            str(exc),
                        )

        result.duration_ms = int((time.monotonic() - started) * 1000)
        result.update_status()
        logger.info(
            "Bulk write finished in %dms. Total: %d, Success: %d, Failed: %d",
            result.duration_ms,
            result.total_processed,
            result.success_count,
            result.failure_count,
        )
        return result

    def _write_chunk(
        self,
        chunk: Sequence[InvestorRecord],
        item_indices: list[int],
        result: BulkOperationResult,
    ) -> int:
        documents: list[dict[str, Any]] = []
        for item_index, record in zip(item_indices, chunk):
            try:
                document = record.to_document()
            except Exception as exc:
                logger.warning("Could not convert investor at index %d: %s", item_index, exc)
                result.add_error(item_index, record.name, ErrorCode.CONVERSION_ERROR, str(exc))
                continue
            if record.id:
                document["id"] = record.id
            documents.append(document)

        if not documents:
            return 0

        inserted = self._store.insert_many_unordered(documents)
        if inserted < len(documents):
            logger.warning("Partial success in chunk: %d of %d written", inserted, len(documents))
            result.add_warning(
                f"Partial success detected in batch. {inserted} of {len(documents)} "
                "operations succeeded. Individual failures cannot be precisely identified."
            )
        return inserted
