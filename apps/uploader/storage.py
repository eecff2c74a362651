import logging
import os
import re
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

from starlette.concurrency import run_in_threadpool

from apps.uploader.errors import NotFound, StorageError, TooLarge

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024
_EXTENSION_RE = re.compile(r'^\.[A-Za-z0-9]{1,16}$')


class AsyncReadable(Protocol):
    async def read(self, size: int = -1) -> bytes:
        ...


@dataclass(frozen=True)
class StoredBlob:
    stored_name: str
    size: int


def safe_extension(filename: Optional[str]) -> str:
    """Return the extension of `filename` if it is a plain one (``.pdf``), else ``''``."""
    if not filename:
        return ''
    base = filename.replace('\\', '/').rsplit('/', 1)[-1]
    ext = os.path.splitext(base)[1]
    return ext if _EXTENSION_RE.match(ext) else ''


class LocalBlobStore:
    """Blob store backed by a single flat directory.

    Stored names are ``<uuid4><extension>``; blobs are written to a hidden
    ``.part`` file and renamed into place once complete.
    """

    def __init__(self, base_path: str):
        self.base_path = Path(base_path)
        os.makedirs(self.base_path, exist_ok=True)

    def _path(self, stored_name: str) -> Optional[Path]:
        # stored names come from the catalog; anything that is not a bare file name is rejected
        if not stored_name or stored_name in ('.', '..') or os.path.basename(stored_name) != stored_name \
                or '\\' in stored_name or stored_name.startswith('.'):
            return None
        return self.base_path / stored_name

    async def put(self, stream: AsyncReadable, extension: str = '', limit: Optional[int] = None) -> StoredBlob:
        stored_name = f'{uuid.uuid4()}{extension}'
        target = self.base_path / stored_name
        partial = self.base_path / f'.{stored_name}.part'
        size = 0
        try:
            handle = await run_in_threadpool(open, partial, 'xb')
            try:
                while True:
                    chunk = await stream.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if limit is not None and size > limit:
                        raise TooLarge(f'File exceeds the maximum size of {limit} bytes')
                    await run_in_threadpool(handle.write, chunk)
            finally:
                await run_in_threadpool(handle.close)
            await run_in_threadpool(os.replace, partial, target)
        except TooLarge:
            self._discard(partial)
            raise
        except OSError as e:
            self._discard(partial)
            logger.error('Failed to write blob %s: %s', stored_name, e)
            raise StorageError('Failed to store file') from e
        except Exception:
            self._discard(partial)
            raise
        return StoredBlob(stored_name=stored_name, size=size)

    async def get(self, stored_name: str) -> Path:
        path = self._path(stored_name)
        if path is None or not await run_in_threadpool(path.is_file):
            raise NotFound()
        return path

    async def delete(self, stored_name: str) -> bool:
        path = self._path(stored_name)
        if path is None:
            logger.warning('Refusing to delete blob with invalid name %r', stored_name)
            return False
        try:
            await run_in_threadpool(os.remove, path)
        except FileNotFoundError:
            logger.warning('Blob %s was already missing', stored_name)
            return False
        except OSError as e:
            logger.warning('Could not delete blob %s: %s', stored_name, e)
            return False
        return True

    @staticmethod
    def _discard(path: Path) -> None:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning('Could not remove partial blob %s: %s', path, e)
