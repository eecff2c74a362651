import os
from typing import List
from urllib.parse import quote

from fastapi import Depends, Request
from fastapi.responses import FileResponse
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import FormData, UploadFile

from apps.uploader.errors import InvalidRequest, NotFound
from apps.uploader.schema import FileRecord, MessageResponse, UploadResponse
from apps.uploader.services import FileService

UPLOAD_FIELD = 'files'

# characters JavaScript's encodeURIComponent leaves alone, besides the always-safe ones
_DISPOSITION_SAFE = "!~*'()"


def get_file_service(request: Request) -> FileService:
    return request.app.state.file_service


def content_disposition(name: str) -> str:
    return f'attachment; filename="{quote(name, safe=_DISPOSITION_SAFE)}"'


def file_parts(form: FormData) -> List[UploadFile]:
    """Uploaded files of the form; empty parts sent for an unused file input are dropped."""
    parts = []
    for item in form.getlist(UPLOAD_FIELD):
        if isinstance(item, UploadFile):
            if not item.filename and not item.size:
                continue
            parts.append(item)
        elif item:
            raise InvalidRequest('Malformed upload request')
    return parts


async def list_files(service: FileService = Depends(get_file_service)) -> List[FileRecord]:
    return await service.list_files()


async def upload_files(request: Request, service: FileService = Depends(get_file_service)) -> UploadResponse:
    async with request.form() as form:
        records = await service.upload(file_parts(form))
    return UploadResponse(message='Files uploaded successfully', count=len(records), files=records)


async def download_file(file_id: str, service: FileService = Depends(get_file_service)):
    download = await service.download(file_id)
    # the blob can still vanish before streaming starts; that surfaces as a 500 stream error
    try:
        stat_result = await run_in_threadpool(os.stat, download.path)
    except FileNotFoundError:
        raise NotFound()
    return FileResponse(
        download.path,
        media_type=download.mime_type,
        stat_result=stat_result,
        headers={'Content-Disposition': content_disposition(download.name)},
    )


async def delete_file(file_id: str, service: FileService = Depends(get_file_service)) -> MessageResponse:
    await service.delete(file_id)
    return MessageResponse(message='File deleted')


async def health():
    return {'status': 'ok'}
