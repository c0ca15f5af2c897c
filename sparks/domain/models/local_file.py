import mimetypes
from pathlib import Path
from typing import AsyncIterator, Optional

import anyio
from pydantic import BaseModel, Field, model_validator

CHUNK_SIZE = 256 * 1024  # 256KB


class LocalFile(BaseModel):
    """客户端选中的待上传文件，内容来自本地路径或内存字节"""

    name: str
    size: int = Field(default=0, ge=0)
    content_type: str = ""
    path: Optional[Path] = None
    content: Optional[bytes] = None

    @model_validator(mode="after")
    def _check_source(self) -> "LocalFile":
        if self.path is None and self.content is None:
            raise ValueError("LocalFile需要提供path或content")
        return self

    @classmethod
    def from_path(cls, path: Path, content_type: Optional[str] = None) -> "LocalFile":
        """根据本地路径构建待上传文件，未指定类型时按扩展名猜测"""
        guessed, _ = mimetypes.guess_type(path.name)
        return cls(
            name=path.name,
            size=path.stat().st_size,
            content_type=content_type or guessed or "application/octet-stream",
            path=path,
        )

    @classmethod
    def from_bytes(
        cls, name: str, content: bytes, content_type: str = "application/octet-stream"
    ) -> "LocalFile":
        return cls(name=name, size=len(content), content_type=content_type, content=content)

    async def iter_chunks(self, chunk_size: int = CHUNK_SIZE) -> AsyncIterator[bytes]:
        """按块读取文件内容"""
        if self.content is not None:
            for offset in range(0, len(self.content), chunk_size):
                yield self.content[offset : offset + chunk_size]
            return

        async with await anyio.open_file(self.path, "rb") as f:
            while True:
                chunk = await f.read(chunk_size)
                if not chunk:
                    break
                yield chunk
