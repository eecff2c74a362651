import json
import logging
import os
import tempfile
import threading
from datetime import datetime, timezone
from typing import Dict, List, Protocol, Sequence, Tuple

from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool
from tortoise.exceptions import BaseORMException
from tortoise.transactions import in_transaction

from config import settings
from apps.uploader.errors import CatalogError, NotFound
from apps.uploader.models import FileEntry
from apps.uploader.schema import FileRecord

logger = logging.getLogger(__name__)


class CatalogInterface(Protocol):
    async def list(self) -> List[FileRecord]:
        ...

    async def get(self, file_id: str) -> FileRecord:
        ...

    async def append(self, records: Sequence[FileRecord]) -> None:
        ...

    async def remove(self, file_id: str) -> FileRecord:
        ...


# one mutation lock per catalog file, shared by every JSONCatalog instance in the process
_locks: Dict[str, threading.Lock] = {}
_locks_guard = threading.Lock()


def _lock_for(path: str) -> threading.Lock:
    key = os.path.realpath(path)
    with _locks_guard:
        return _locks.setdefault(key, threading.Lock())


class JSONCatalog:
    """Catalog stored as one JSON array, read and rewritten whole on every change.

    Reads that hit a missing or corrupt document degrade to an empty catalog and
    records that fail validation are skipped. Before a mutation rewrites a damaged
    document, the damaged copy is moved aside to ``<path>.corrupt-<timestamp>``.
    Mutations are serialized by a process-wide lock and land through an atomic
    rename, so readers always see a complete document.
    """

    def __init__(self, path: str):
        self.path = path
        self._lock = _lock_for(path)
        directory = os.path.dirname(os.path.abspath(path))
        os.makedirs(directory, exist_ok=True)
        with self._lock:
            if not os.path.exists(path):
                self._write([])

    def _load(self) -> Tuple[List[FileRecord], bool]:
        """Return the readable records and whether anything in the document was dropped."""
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                raw = json.load(f)
        except FileNotFoundError:
            logger.warning('Catalog %s is missing, treating it as empty', self.path)
            return [], False
        except ValueError as e:
            logger.warning('Catalog %s is corrupt (%s), treating it as empty', self.path, e)
            return [], True
        except OSError as e:
            raise CatalogError('Failed to read file catalog') from e

        if not isinstance(raw, list):
            logger.warning('Catalog %s does not hold a list, treating it as empty', self.path)
            return [], True

        records = []
        damaged = False
        for position, item in enumerate(raw):
            try:
                records.append(FileRecord.model_validate(item))
            except ValidationError as e:
                damaged = True
                logger.warning('Skipping invalid catalog record #%d in %s (%d error(s))',
                               position, self.path, e.error_count())
        return records, damaged

    def _read(self) -> List[FileRecord]:
        return self._load()[0]

    def _quarantine(self) -> None:
        stamp = datetime.now(timezone.utc).strftime('%Y%m%dT%H%M%S%fZ')
        target = f'{self.path}.corrupt-{stamp}'
        try:
            os.replace(self.path, target)
        except OSError as e:
            raise CatalogError('Failed to write file catalog') from e
        logger.error('Catalog %s was damaged, original moved to %s', self.path, target)

    def _write(self, records: Sequence[FileRecord]) -> None:
        payload = json.dumps([r.to_json() for r in records], ensure_ascii=False, indent=2)
        directory = os.path.dirname(os.path.abspath(self.path))
        fd, tmp_path = tempfile.mkstemp(prefix='.catalog-', suffix='.tmp', dir=directory)
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(payload)
            os.replace(tmp_path, self.path)
        except OSError as e:
            try:
                os.remove(tmp_path)
            except OSError:
                pass
            raise CatalogError('Failed to write file catalog') from e

    def _append(self, records: Sequence[FileRecord]) -> None:
        with self._lock:
            current, damaged = self._load()
            current.extend(records)
            if damaged:
                self._quarantine()
            self._write(current)

    def _remove(self, file_id: str) -> FileRecord:
        with self._lock:
            current, damaged = self._load()
            for index, record in enumerate(current):
                if record.id == file_id:
                    break
            else:
                raise NotFound()
            del current[index]
            if damaged:
                self._quarantine()
            self._write(current)
            return record

    async def list(self) -> List[FileRecord]:
        return await run_in_threadpool(self._read)

    async def get(self, file_id: str) -> FileRecord:
        for record in await self.list():
            if record.id == file_id:
                return record
        raise NotFound()

    async def append(self, records: Sequence[FileRecord]) -> None:
        if records:
            await run_in_threadpool(self._append, list(records))

    async def remove(self, file_id: str) -> FileRecord:
        return await run_in_threadpool(self._remove, file_id)


class DBCatalog:
    """Catalog kept in the ``files_catalog`` table through Tortoise ORM."""

    @staticmethod
    def _to_record(entry: FileEntry) -> FileRecord:
        return FileRecord(id=entry.file_id, name=entry.name, stored_name=entry.stored_name,
                          size=entry.size, mime_type=entry.mime_type, uploaded_at=entry.uploaded_at)

    async def list(self) -> List[FileRecord]:
        try:
            entries = await FileEntry.all().order_by('seq')
        except BaseORMException as e:
            raise CatalogError('Failed to read file catalog') from e
        return [self._to_record(e) for e in entries]

    async def get(self, file_id: str) -> FileRecord:
        try:
            entry = await FileEntry.filter(file_id=file_id).first()
        except BaseORMException as e:
            raise CatalogError('Failed to read file catalog') from e
        if not entry:
            raise NotFound()
        return self._to_record(entry)

    async def append(self, records: Sequence[FileRecord]) -> None:
        if not records:
            return
        try:
            async with in_transaction():
                # one insert per row keeps seq in batch order on every backend
                for r in records:
                    await FileEntry.create(file_id=r.id, name=r.name, stored_name=r.stored_name,
                                           size=r.size, mime_type=r.mime_type, uploaded_at=r.uploaded_at)
        except BaseORMException as e:
            raise CatalogError('Failed to write file catalog') from e

    async def remove(self, file_id: str) -> FileRecord:
        try:
            async with in_transaction():
                entry = await FileEntry.filter(file_id=file_id).first()
                if not entry:
                    raise NotFound()
                record = self._to_record(entry)
                await entry.delete()
        except BaseORMException as e:
            raise CatalogError('Failed to write file catalog') from e
        return record


def pick_catalog(backend: str | None = None, path: str | None = None) -> CatalogInterface:
    """Pick catalog implementation based on environment variables.

    json (default) -> JSONCatalog at CATALOG_PATH, db -> DBCatalog (needs init_db)
    """
    backend = (backend or settings.CATALOG_BACKEND).lower()
    if backend == 'db':
        return DBCatalog()
    return JSONCatalog(path or settings.CATALOG_PATH)
