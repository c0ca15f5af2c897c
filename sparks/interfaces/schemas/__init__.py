from .base import Response
from .file import (
    DuplicateCheckResponse,
    FileRecordIn,
    UploadUrlRequest,
    UploadUrlResponse,
)

__all__ = [
    "Response",
    "DuplicateCheckResponse",
    "FileRecordIn",
    "UploadUrlRequest",
    "UploadUrlResponse",
]
