from __future__ import annotations

import base64
import hashlib
import os
import tempfile
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

DEFAULT_ALLOWED_EXTENSIONS = (".jpg", ".pdf", ".txt")
DEFAULT_MAX_FILE_BYTES = 10 * 1024 * 1024


class FileStorageError(ValueError):
    pass


@dataclass(slots=True)
class StoredFile:
    file_name: str
    file_path: str
    file_size: int
    checksum: str


def compute_checksum(content: bytes) -> str:
    """SHA-256 digest, base64 encoded."""
    return base64.b64encode(hashlib.sha256(content).digest()).decode("ascii")


class FileStorageService:
    def __init__(
        self,
        base_dir: str | Path,
        max_file_bytes: int = DEFAULT_MAX_FILE_BYTES,
        allowed_extensions: Iterable[str] = DEFAULT_ALLOWED_EXTENSIONS,
    ) -> None:
        self.base_dir = Path(base_dir).resolve()
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.max_file_bytes = max_file_bytes
        self.allowed_extensions = frozenset(ext.lower() for ext in allowed_extensions)

    @staticmethod
    def extension_of(filename: str) -> str:
        return Path(filename or "").suffix.lower()

    def validate_upload(self, filename: str, content: bytes) -> str:
        if not content:
            raise FileStorageError("No file provided")
        if len(content) > self.max_file_bytes:
            raise FileStorageError("File too large")

        extension = self.extension_of(filename)
        if extension not in self.allowed_extensions:
            raise FileStorageError("File type not allowed")
        return extension

    def _safe_path(self, filename: str) -> Path:
        candidate = (self.base_dir / filename).resolve()
        if self.base_dir not in candidate.parents:
            raise FileStorageError("Invalid file storage path.")
        return candidate

    @staticmethod
    def _write_file_atomic(path: Path, content: bytes, mode: int) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(mode="wb", dir=str(path.parent), prefix=f".{path.name}.", delete=False) as tmp_file:
            tmp_file.write(content)
            tmp_file.flush()
            os.fsync(tmp_file.fileno())
            temp_path = Path(tmp_file.name)

        os.chmod(temp_path, mode)
        os.replace(temp_path, path)

    def store(self, original_filename: str, content: bytes) -> StoredFile:
        """Validates and writes an upload under a random name; the client's name is never used on disk."""
        extension = self.validate_upload(original_filename, content)
        file_name = f"{uuid.uuid4()}{extension}"
        path = self._safe_path(file_name)
        self._write_file_atomic(path, content, 0o640)

        return StoredFile(
            file_name=file_name,
            file_path=str(path),
            file_size=len(content),
            checksum=compute_checksum(content),
        )

    def locate(self, file_path: str) -> Path:
        """Resolves a stored file, refusing anything outside the storage directory."""
        path = self._safe_path(Path(file_path).name)
        if not path.is_file():
            raise FileNotFoundError(path.name)
        return path
