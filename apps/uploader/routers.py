
# uploader/routers.py
from typing import List

from fastapi import APIRouter
from fastapi.responses import FileResponse

from apps.uploader.schema import ErrorResponse, FileRecord, MessageResponse, UploadResponse
from .views import delete_file, download_file, health, list_files, upload_files

router = APIRouter(tags=["files"])

_errors = {400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}

router.get("/files", response_model=List[FileRecord], responses={500: _errors[500]})(list_files)
router.post("/upload", response_model=UploadResponse, responses={400: _errors[400], 500: _errors[500]})(upload_files)
router.get("/download/{file_id}", response_class=FileResponse, responses={404: _errors[404], 500: _errors[500]})(download_file)
router.delete("/delete/{file_id}", response_model=MessageResponse, responses=_errors)(delete_file)
router.get("/health", include_in_schema=False)(health)
