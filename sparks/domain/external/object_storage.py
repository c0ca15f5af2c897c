from typing import List, Protocol

from sparks.domain.models.file_record import ObjectMetadata


class ObjectStorage(Protocol):
    """存储桶范围内的对象存储协议"""

    async def request_upload_url(
        self, key: str, content_type: str, ttl_minutes: int = 15
    ) -> str:
        """生成仅允许PUT的限时预签名上传地址，每次调用都会签发新的凭证"""
        ...

    def public_url(self, key: str) -> str:
        """返回对象的稳定访问地址(不含签名参数)"""
        ...

    async def get(self, key: str) -> bytes:
        """读取对象内容"""
        ...

    async def put(
        self, key: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> None:
        """写入对象，重复写入安全"""
        ...

    async def delete(self, key: str) -> None:
        """删除对象，对象不存在时视为成功"""
        ...

    async def list(self, prefix: str = "") -> List[str]:
        """列出存储桶中的对象路径"""
        ...

    async def exists(self, key: str) -> bool:
        """判断对象是否存在"""
        ...

    async def stat_metadata(self, key: str) -> ObjectMetadata:
        """获取对象元信息，对象不存在时抛出FileNotFoundError"""
        ...
