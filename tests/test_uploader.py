import asyncio
import io
import os

import pytest

from apps.uploader.errors import NotFound, StorageError, TooLarge
from apps.uploader.storage import LocalBlobStore, safe_extension


class AsyncBytes:
    def __init__(self, data: bytes):
        self._buffer = io.BytesIO(data)

    async def read(self, size: int = -1) -> bytes:
        return self._buffer.read(size)


def test_store_creates_root(tmp_path):
    root = tmp_path / 'nested' / 'uploads'
    LocalBlobStore(str(root))
    assert root.is_dir()
    # idempotent
    LocalBlobStore(str(root))


def test_local_store_put_get(tmp_path):
    store = LocalBlobStore(str(tmp_path))
    data = b'hello world'
    blob = asyncio.run(store.put(AsyncBytes(data), '.txt'))
    assert blob.size == len(data)
    assert blob.stored_name.endswith('.txt')
    path = asyncio.run(store.get(blob.stored_name))
    assert path.read_bytes() == data
    # no temporary files left behind
    assert os.listdir(tmp_path) == [blob.stored_name]


def test_stored_names_are_unique(tmp_path):
    store = LocalBlobStore(str(tmp_path))

    async def put_many():
        return await asyncio.gather(*(store.put(AsyncBytes(b'x'), '.png') for _ in range(20)))

    blobs = asyncio.run(put_many())
    assert len({b.stored_name for b in blobs}) == 20


def test_put_over_limit_removes_partial_file(tmp_path):
    store = LocalBlobStore(str(tmp_path))
    with pytest.raises(TooLarge):
        asyncio.run(store.put(AsyncBytes(b'0123456789'), '.txt', limit=5))
    assert os.listdir(tmp_path) == []


def test_put_wraps_os_errors(tmp_path, monkeypatch):
    store = LocalBlobStore(str(tmp_path))

    def broken_replace(src, dst):
        raise OSError('disk full')

    monkeypatch.setattr('apps.uploader.storage.os.replace', broken_replace)
    with pytest.raises(StorageError):
        asyncio.run(store.put(AsyncBytes(b'data'), '.txt'))
    monkeypatch.undo()
    assert os.listdir(tmp_path) == []


def test_get_missing_raises_not_found(tmp_path):
    store = LocalBlobStore(str(tmp_path))
    with pytest.raises(NotFound):
        asyncio.run(store.get('does-not-exist.pdf'))


@pytest.mark.parametrize('name', ['../secret.txt', 'a/b.txt', '..', '', '.hidden.part'])
def test_get_rejects_names_outside_root(tmp_path, name):
    store = LocalBlobStore(str(tmp_path / 'uploads'))
    (tmp_path / 'secret.txt').write_text('nope')
    with pytest.raises(NotFound):
        asyncio.run(store.get(name))


def test_delete_is_best_effort(tmp_path):
    store = LocalBlobStore(str(tmp_path))
    blob = asyncio.run(store.put(AsyncBytes(b'bytes'), ''))
    assert asyncio.run(store.delete(blob.stored_name)) is True
    assert asyncio.run(store.delete(blob.stored_name)) is False
    assert asyncio.run(store.delete('../escape')) is False


@pytest.mark.parametrize('filename, expected', [
    ('report.pdf', '.pdf'),
    ('Archive.Final.DOCX', '.DOCX'),
    ('../../etc/passwd', ''),
    ('C:\\Users\\me\\photo.jpg', '.jpg'),
    ('no_extension', ''),
    ('weird.ex t', ''),
    ('.bashrc', ''),
    (None, ''),
])
def test_safe_extension(filename, expected):
    assert safe_extension(filename) == expected
