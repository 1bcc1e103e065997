"""Stores uploaded resume bytes on local disk and hands back an opaque reference."""

import logging
import uuid
from pathlib import Path

from resumeopt.core.errors import ExtractionError

logger = logging.getLogger(__name__)


class FileStorage:
    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, ref: str) -> Path:
        path = (self.root / ref).resolve()
        if self.root.resolve() not in path.parents:
            raise ValueError(f"Invalid file reference: {ref}")
        return path

    def save(self, data: bytes, filename: str) -> str:
        ref = f"{uuid.uuid4().hex}{Path(filename).suffix.lower()}"
        self._path(ref).write_bytes(data)
        logger.info("Stored %d bytes as %s", len(data), ref)
        return ref

    def read(self, ref: str) -> bytes:
        path = self._path(ref)
        if not path.exists():
            raise ExtractionError(f"Stored resume file {ref} is missing")
        return path.read_bytes()

    def delete(self, ref: str) -> None:
        self._path(ref).unlink(missing_ok=True)
