import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Protocol, Sequence

from starlette.datastructures import UploadFile

from config import settings
from apps.uploader.catalog import CatalogInterface, pick_catalog
from apps.uploader.errors import (
    CatalogError,
    InvalidRequest,
    NotFound,
    StorageError,
    TooLarge,
    TooManyFiles,
    UnsupportedType,
)
from apps.uploader.schema import DEFAULT_MIME_TYPE, FileRecord, utc_timestamp
from apps.uploader.storage import LocalBlobStore, StoredBlob, safe_extension

logger = logging.getLogger(__name__)


class BlobStoreInterface(Protocol):
    async def put(self, stream, extension: str = '', limit: Optional[int] = None) -> StoredBlob:
        ...

    async def get(self, stored_name: str) -> Path:
        ...

    async def delete(self, stored_name: str) -> bool:
        ...


@dataclass(frozen=True)
class Download:
    path: Path
    name: str
    mime_type: str


def normalize_mime_type(content_type: Optional[str]) -> str:
    """``'Text/Plain; charset=utf-8'`` -> ``'text/plain'``"""
    if not content_type:
        return ''
    return content_type.split(';', 1)[0].strip().lower()


class FileService:
    """Upload, list, download and delete files kept in a blob store plus catalog."""

    def __init__(self,
                 store: BlobStoreInterface,
                 catalog: CatalogInterface,
                 max_file_size: int = settings.MAX_FILE_SIZE,
                 max_file_count: int = settings.MAX_FILE_COUNT,
                 allowed_types: Iterable[str] = settings.ALLOWED_MIME_TYPES):
        self.store = store
        self.catalog = catalog
        self.max_file_size = max_file_size
        self.max_file_count = max_file_count
        self.allowed_types = frozenset(normalize_mime_type(t) for t in allowed_types)

    async def list_files(self) -> List[FileRecord]:
        return await self.catalog.list()

    def validate(self, files: Sequence[UploadFile]) -> None:
        if not files:
            raise InvalidRequest('No files were uploaded')
        for upload in files:
            if normalize_mime_type(upload.content_type) not in self.allowed_types:
                raise UnsupportedType(f'Unsupported file type: {upload.content_type or "unknown"}')
        for upload in files:
            if upload.size is not None and upload.size > self.max_file_size:
                raise TooLarge(f'File {upload.filename} exceeds the maximum size of {self.max_file_size} bytes')
        if len(files) > self.max_file_count:
            raise TooManyFiles(f'At most {self.max_file_count} files can be uploaded at once')

    async def upload(self, files: Sequence[UploadFile]) -> List[FileRecord]:
        """Validate and store a batch of uploads; either every file is recorded or none is."""
        self.validate(files)

        written: List[str] = []
        records: List[FileRecord] = []
        try:
            for upload in files:
                blob = await self.store.put(upload, safe_extension(upload.filename), limit=self.max_file_size)
                written.append(blob.stored_name)
                records.append(FileRecord(
                    id=str(uuid.uuid4()),
                    name=upload.filename or blob.stored_name,
                    stored_name=blob.stored_name,
                    size=blob.size,
                    mime_type=normalize_mime_type(upload.content_type),
                    uploaded_at=utc_timestamp(),
                ))
            await self.catalog.append(records)
        except (TooLarge, StorageError, CatalogError) as e:
            await self._rollback(written, e)
            raise
        except Exception as e:
            await self._rollback(written, e)
            raise StorageError('File upload failed') from e

        logger.info('Stored %d file(s): %s', len(records), ', '.join(r.id for r in records))
        return records

    async def _rollback(self, stored_names: Sequence[str], cause: Exception) -> None:
        if not stored_names:
            return
        logger.warning('Upload batch failed (%s), removing %d written blob(s)', cause, len(stored_names))
        for stored_name in stored_names:
            await self.store.delete(stored_name)

    async def download(self, file_id: str) -> Download:
        record = await self.catalog.get(file_id)
        try:
            path = await self.store.get(record.stored_name)
        except NotFound:
            logger.warning('Catalog entry %s points at missing blob %s', file_id, record.stored_name)
            raise
        return Download(path=path, name=record.name, mime_type=record.mime_type or DEFAULT_MIME_TYPE)

    async def delete(self, file_id: str) -> FileRecord:
        record = await self.catalog.remove(file_id)
        if not await self.store.delete(record.stored_name):
            logger.warning('Deleted catalog entry %s but blob %s could not be removed', file_id, record.stored_name)
        logger.info('Deleted file %s (%s)', file_id, record.name)
        return record


def build_file_service() -> FileService:
    """Build the service from config.settings; called once at application startup."""
    return FileService(
        store=LocalBlobStore(settings.UPLOAD_DIR),
        catalog=pick_catalog(settings.CATALOG_BACKEND, settings.CATALOG_PATH),
        max_file_size=settings.MAX_FILE_SIZE,
        max_file_count=settings.MAX_FILE_COUNT,
        allowed_types=settings.ALLOWED_MIME_TYPES,
    )
