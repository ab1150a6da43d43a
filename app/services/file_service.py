"""Statement storage: keys for uploaded fuel statements and their reviewed outputs."""

import uuid
from typing import Protocol


class ObjectStorage(Protocol):
    """Minimal object storage interface implemented by S3FileService."""

    def upload_fileobj(self, key: str, data: bytes) -> None: ...

    def download_fileobj(self, key: str) -> bytes: ...

    def file_exists(self, key: str) -> bool: ...


class FileService:
    """Service for statement file operations on top of an object storage backend."""

    def __init__(self, storage: ObjectStorage) -> None:
        """Initialize FileService with a storage backend."""
        self.storage = storage

    def save_file(self, key: str, data: bytes | str) -> None:
        """Save bytes (or UTF-8 text) under the given key."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        self.storage.upload_fileobj(key, data)

    def get_file(self, key: str) -> bytes:
        """Retrieve a stored file by key."""
        return self.storage.download_fileobj(key)

    def file_exists(self, key: str) -> bool:
        """Check if a file exists by key."""
        return self.storage.file_exists(key)

    def save_statement(self, data: bytes) -> tuple[str, str, str]:
        """Store an uploaded statement and return job_id, input key, and output key."""
        job_id = str(uuid.uuid4())
        in_key = f"statements/{job_id}.csv"
        out_key = f"statements/{job_id}_reviewed.csv"
        self.save_file(in_key, data)
        return job_id, in_key, out_key
