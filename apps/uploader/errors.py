"""Error taxonomy of the file service.

Every error knows the HTTP status it maps to; the application registers one
handler that renders them as ``{"error": message}``.
"""


class FileServiceError(Exception):
    status_code = 500
    default_message = 'Internal error'

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidRequest(FileServiceError):
    status_code = 400
    default_message = 'No files were uploaded'


class UnsupportedType(FileServiceError):
    status_code = 400
    default_message = 'Unsupported file type'


class TooLarge(FileServiceError):
    status_code = 400
    default_message = 'File is too large'


class TooManyFiles(FileServiceError):
    status_code = 400
    default_message = 'Too many files'


class NotFound(FileServiceError):
    status_code = 404
    default_message = 'File not found'


class StorageError(FileServiceError):
    status_code = 500
    default_message = 'File storage failed'


class CatalogError(FileServiceError):
    status_code = 500
    default_message = 'File catalog is unavailable'
