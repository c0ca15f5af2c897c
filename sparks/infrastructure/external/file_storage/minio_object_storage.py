import logging
from typing import List
from urllib.parse import quote

from sparks.domain.external.object_storage import ObjectStorage
from sparks.domain.models.file_record import ObjectMetadata
from sparks.infrastructure.storage.minio import MinioStore

logger = logging.getLogger(__name__)


class MinioObjectStorage(ObjectStorage):
    """基于MinIO的存储桶范围对象存储"""

    def __init__(self, bucket: str, minio_store: MinioStore) -> None:
        """构造函数，完成MinIO对象存储扩展初始化"""
        self.bucket = bucket
        self.minio_store = minio_store

    async def request_upload_url(
        self, key: str, content_type: str, ttl_minutes: int = 15
    ) -> str:
        """签发PUT预签名地址，客户端上传时需携带声明的Content-Type"""
        url = await self.minio_store.presigned_put_url(
            bucket_name=self.bucket,
            object_name=key,
            expiry_seconds=ttl_minutes * 60,
        )
        logger.info(f"生成预签名上传地址: {key} ({content_type}, {ttl_minutes}分钟)")
        return url

    def public_url(self, key: str) -> str:
        settings = self.minio_store.settings
        protocol = "https" if settings.minio_secure else "http"
        return f"{protocol}://{settings.minio_endpoint}/{self.bucket}/{quote(key)}"

    async def get(self, key: str) -> bytes:
        return await self.minio_store.download_bytes(self.bucket, key)

    async def put(
        self, key: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> None:
        await self.minio_store.upload_bytes(
            bucket_name=self.bucket,
            object_name=key,
            data=data,
            content_type=content_type,
        )
        logger.info(f"对象写入成功: {self.bucket}/{key}")

    async def delete(self, key: str) -> None:
        # S3语义下删除不存在的对象同样返回成功
        await self.minio_store.delete_object(bucket_name=self.bucket, object_name=key)
        logger.info(f"对象删除成功: {self.bucket}/{key}")

    async def list(self, prefix: str = "") -> List[str]:
        return await self.minio_store.list_object_names(self.bucket, prefix=prefix)

    async def exists(self, key: str) -> bool:
        try:
            await self.minio_store.stat_object(self.bucket, key)
            return True
        except FileNotFoundError:
            return False

    async def stat_metadata(self, key: str) -> ObjectMetadata:
        stat = await self.minio_store.stat_object(self.bucket, key)
        return ObjectMetadata(
            size=stat.size or 0,
            content_type=stat.content_type or "application/octet-stream",
            updated_at=stat.last_modified,
        )
