import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

load_dotenv(dotenv_path=BASE_DIR / '.env')


def _split(value: str) -> list[str]:
    return [item.strip().lower() for item in value.split(',') if item.strip()]


HOST = os.getenv('HOST', '0.0.0.0')
PORT = int(os.getenv('PORT', '3000'))

DATA_ROOT = os.getenv('DATA_ROOT', str(BASE_DIR / 'data'))
UPLOAD_DIR = os.getenv('UPLOAD_DIR', os.path.join(DATA_ROOT, 'uploads'))
STATIC_DIR = os.getenv('STATIC_DIR', str(BASE_DIR / 'static'))

# json: one flat document rewritten on every change, db: Tortoise table
CATALOG_BACKEND = os.getenv('CATALOG_BACKEND', 'json')
CATALOG_PATH = os.getenv('CATALOG_PATH', os.path.join(DATA_ROOT, 'files.json'))
DATABASE_URL = os.getenv('DATABASE_URL', f"sqlite://{os.path.join(DATA_ROOT, 'catalog.sqlite3')}")

MAX_FILE_SIZE = int(os.getenv('MAX_FILE_SIZE', str(50 * 1024 * 1024)))
MAX_FILE_COUNT = int(os.getenv('MAX_FILE_COUNT', '10'))

DEFAULT_ALLOWED_MIME_TYPES = (
    'application/msword',
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
    'application/pdf',
    'application/vnd.ms-excel',
    'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
    'image/jpeg',
    'image/png',
    'text/plain',
)
ALLOWED_MIME_TYPES = _split(os.getenv('ALLOWED_MIME_TYPES', ','.join(DEFAULT_ALLOWED_MIME_TYPES)))

CORS_ORIGINS = [origin.strip() for origin in os.getenv('CORS_ORIGINS', '*').split(',') if origin.strip()]

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
