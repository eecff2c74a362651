import logging
import os
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse

from config import settings
from config.db import close_db, init_db
from config.logging import setup_logging
from config.middleware import RequestLogMiddleware
from apps.uploader.errors import FileServiceError, InvalidRequest
from apps.uploader.routers import router as uploader_router
from apps.uploader.services import build_file_service

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # storage root and catalog are created here so a bad DATA_ROOT fails at startup
    os.makedirs(settings.DATA_ROOT, exist_ok=True)
    uses_db = settings.CATALOG_BACKEND.lower() == 'db'
    if uses_db:
        await init_db(settings.DATABASE_URL)
    app.state.file_service = build_file_service()
    logger.info('File service ready: uploads in %s, %s catalog', settings.UPLOAD_DIR, settings.CATALOG_BACKEND)
    yield
    if uses_db:
        await close_db()


async def file_service_error_handler(request: Request, exc: FileServiceError):
    if exc.status_code >= 500:
        logger.error('%s %s failed: %s', request.method, request.url.path, exc, exc_info=exc)
    return JSONResponse(status_code=exc.status_code, content={'error': exc.message})


async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.info('Rejected malformed request to %s: %s', request.url.path, exc.errors())
    return JSONResponse(status_code=InvalidRequest.status_code, content={'error': 'Malformed upload request'})


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception('Unhandled error on %s %s', request.method, request.url.path)
    return JSONResponse(status_code=500, content={'error': 'Internal server error'})


def create_app() -> FastAPI:
    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(title="File Drop", description="Minimal file hosting service", version="1.0.0",
                  lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition", "X-Request-ID"],
    )
    app.add_middleware(RequestLogMiddleware)

    app.add_exception_handler(FileServiceError, file_service_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(uploader_router)

    index_page = os.path.join(settings.STATIC_DIR, 'index.html')

    @app.get("/", include_in_schema=False)
    async def landing_page():
        return FileResponse(index_page, media_type='text/html')

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("main:app", host=settings.HOST, port=settings.PORT)
