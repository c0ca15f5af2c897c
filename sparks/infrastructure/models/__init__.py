from .base import Base
from .file_record import FileRecordModel

__all__ = ["Base", "FileRecordModel"]
