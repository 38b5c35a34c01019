"""Storage for uploaded lab documents."""

import os
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import BinaryIO, Optional

from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel

from lab_interpreter.core.logging import logger
from lab_interpreter.shared.exceptions import PayloadTooLargeException


class StoredFile(BaseModel):
    """Where an upload ended up."""
    filename: str
    original_name: Optional[str] = None
    path: str
    size: int
    content_type: Optional[str] = None


class FileStorage(ABC):
    """Persists uploads and gives them back by path."""

    @abstractmethod
    async def save_upload(
        self,
        file: BinaryIO,
        original_name: Optional[str],
        content_type: Optional[str] = None,
    ) -> StoredFile:
        ...

    @abstractmethod
    async def read_file(self, path: str) -> bytes:
        ...

    @abstractmethod
    async def delete_file(self, path: str) -> bool:
        """Remove the file; True if something was deleted."""

    @abstractmethod
    async def file_exists(self, path: str) -> bool:
        ...


def get_file_extension(filename: Optional[str]) -> str:
    """Get lowercase file extension."""
    return Path(filename or "").suffix.lower()


class LocalFileStorage(FileStorage):
    """Uploads kept as uniquely named files under one directory."""

    CHUNK_SIZE = 1024 * 1024

    def __init__(self, upload_dir: str, max_bytes: Optional[int] = None):
        self.upload_dir = Path(upload_dir)
        self.max_bytes = max_bytes

    def _generate_filename(self, original_name: Optional[str]) -> str:
        extension = get_file_extension(original_name) or ".pdf"
        return f"interpretation-{uuid.uuid4().hex}{extension}"

    def _write(self, source: BinaryIO, destination: Path) -> int:
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        written = 0
        try:
            with open(destination, "wb") as f:
                while True:
                    chunk = source.read(self.CHUNK_SIZE)
                    if not chunk:
                        break
                    written += len(chunk)
                    if self.max_bytes is not None and written > self.max_bytes:
                        break
                    f.write(chunk)
        except Exception:
            # No partial uploads left behind
            destination.unlink(missing_ok=True)
            raise
        return written

    async def save_upload(
        self,
        file: BinaryIO,
        original_name: Optional[str],
        content_type: Optional[str] = None,
    ) -> StoredFile:
        filename = self._generate_filename(original_name)
        destination = self.upload_dir / filename

        size = await run_in_threadpool(self._write, file, destination)

        if self.max_bytes is not None and size > self.max_bytes:
            await self.delete_file(str(destination))
            raise PayloadTooLargeException(
                f"File exceeds the {self.max_bytes // (1024 * 1024)} MB upload limit"
            )

        logger.info(f"Stored upload '{original_name}' as {destination} ({size} bytes)")
        return StoredFile(
            filename=filename,
            original_name=original_name,
            path=str(destination),
            size=size,
            content_type=content_type,
        )

    async def read_file(self, path: str) -> bytes:
        def _read() -> bytes:
            with open(path, "rb") as f:
                return f.read()

        return await run_in_threadpool(_read)

    async def delete_file(self, path: str) -> bool:
        def _delete() -> bool:
            try:
                os.remove(path)
                return True
            except FileNotFoundError:
                return False

        deleted = await run_in_threadpool(_delete)
        if deleted:
            logger.info(f"Deleted file {path}")
        else:
            logger.warning(f"File already gone: {path}")
        return deleted

    async def file_exists(self, path: str) -> bool:
        return await run_in_threadpool(os.path.isfile, path)
