"""Scratch storage for uploaded files awaiting asynchronous processing."""

from __future__ import annotations

import hashlib
import logging
import tempfile
from pathlib import Path, PurePath

logger = logging.getLogger(__name__)

_READ_BLOCK = 64 * 1024


class ScratchFileStore:
    """Saves uploads to a temp directory and fingerprints them."""

    def __init__(self, directory: Path | str | None = None) -> None:
        self._directory = Path(directory) if directory else None
        if self._directory is not None:
            self._directory.mkdir(parents=True, exist_ok=True)

    def save_to_temp(self, data: bytes, filename: str | None = None) -> Path:
        suffix = PurePath(filename).suffix if filename else ""
        with tempfile.NamedTemporaryFile(
            prefix="investor-import-",
            suffix=suffix,
            dir=self._directory,
            delete=False,
        ) as handle:
            handle.write(data)
        path = Path(handle.name)
        logger.debug("Saved upload %s to %s (%d bytes)", filename, path, len(data))
        return path

    @staticmethod
    def checksum(path: Path | str) -> str:
        """SHA-256 hex digest of the file content."""
        digest = hashlib.sha256()
        with open(path, "rb") as handle:
            for block in iter(lambda: handle.read(_READ_BLOCK), b""):
                digest.update(block)
        return digest.hexdigest()

    @staticmethod
    def discard(path: Path | str) -> None:
        try:
            Path(path).unlink(missing_ok=True)
        except OSError:
            logger.warning("Could not remove scratch file %s", path, exc_info=True)
