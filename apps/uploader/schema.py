from datetime import datetime, timezone
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

DEFAULT_MIME_TYPE = 'application/octet-stream'


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2024-05-01T08:30:00.123Z"""
    return datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


class FileRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(..., min_length=1)
    name: str
    # catalogs written by the first version of the service keyed this as "filename"
    stored_name: str = Field(..., min_length=1,
                             validation_alias=AliasChoices('storedName', 'stored_name', 'filename'),
                             serialization_alias='storedName')
    size: int = Field(..., ge=0)
    mime_type: Optional[str] = Field(None,
                                     validation_alias=AliasChoices('mimeType', 'mime_type'),
                                     serialization_alias='mimeType')
    uploaded_at: str = Field(default_factory=utc_timestamp,
                             validation_alias=AliasChoices('uploadedAt', 'uploaded_at'),
                             serialization_alias='uploadedAt')

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True)


class UploadResponse(BaseModel):
    message: str
    count: int
    files: List[FileRecord]


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    error: str
