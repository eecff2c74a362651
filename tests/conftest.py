import io
import os
import shutil
import tempfile

# Environment defaults must be in place before config.settings is imported by any test module
_SESSION_ROOT = tempfile.mkdtemp(prefix='file-drop-tests-')
os.environ.setdefault('DATA_ROOT', _SESSION_ROOT)
os.environ.setdefault('CATALOG_BACKEND', 'json')
os.environ.setdefault('LOG_LEVEL', 'WARNING')

import pytest
from fastapi.testclient import TestClient
from starlette.datastructures import Headers, UploadFile

from config import settings


@pytest.fixture(autouse=True, scope='session')
def cleanup_session_root():
    yield
    shutil.rmtree(_SESSION_ROOT, ignore_errors=True)


@pytest.fixture
def data_root(tmp_path, monkeypatch):
    """Point uploads and the catalog at a fresh directory for one test."""
    monkeypatch.setattr(settings, 'DATA_ROOT', str(tmp_path))
    monkeypatch.setattr(settings, 'UPLOAD_DIR', str(tmp_path / 'uploads'))
    monkeypatch.setattr(settings, 'CATALOG_PATH', str(tmp_path / 'files.json'))
    monkeypatch.setattr(settings, 'CATALOG_BACKEND', 'json')
    return tmp_path


@pytest.fixture
def client(data_root):
    from main import create_app

    with TestClient(create_app()) as test_client:
        yield test_client


@pytest.fixture
def make_upload():
    def _make(data: bytes, filename: str = 'note.txt', content_type: str = 'text/plain', declare_size: bool = True):
        return UploadFile(
            file=io.BytesIO(data),
            filename=filename,
            size=len(data) if declare_size else None,
            headers=Headers({'content-type': content_type}),
        )

    return _make
