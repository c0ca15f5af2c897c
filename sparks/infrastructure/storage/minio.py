import io
import logging
from datetime import timedelta
from functools import lru_cache, partial
from typing import Any, List, Optional

import anyio
from minio import Minio
from minio.error import S3Error

from sparks.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

MISSING_OBJECT_CODES = ("NoSuchKey", "NoSuchObject", "ResourceNotFound")


class MinioStore:
    """MinIO（S3兼容）对象存储"""

    def __init__(self):
        """构造函数：获取配置 + 初始化 client 占位"""
        self._settings: Settings = get_settings()
        self._client: Optional[Minio] = None

    async def init(self) -> None:
        """创建 MinIO 客户端（Minio SDK 为同步客户端，但初始化本身很轻）"""
        if self._client is not None:
            logger.warning("MinIO 对象存储已初始化，无需重复操作")
            return

        try:
            self._client = Minio(
                endpoint=self._settings.minio_endpoint,
                access_key=self._settings.minio_access_key,
                secret_key=self._settings.minio_secret_key,
                secure=self._settings.minio_secure,
                region=self._settings.minio_region,
            )
            logger.info("MinIO 对象存储初始化成功")
        except Exception as e:
            logger.error(f"MinIO 对象存储初始化失败: {str(e)}")
            raise

    async def shutdown(self) -> None:
        """关闭 MinIO 客户端（SDK 无显式 close，释放引用即可）"""
        if self._client is not None:
            self._client = None
            logger.info("关闭 MinIO 对象存储成功")

        get_minio.cache_clear()

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def client(self) -> Minio:
        """只读属性：返回 MinIO 客户端"""
        if self._client is None:
            raise RuntimeError("MinIO 未初始化，请调用 init() 完成初始化")
        return self._client

    async def _run_sync(self, fn, /, *args, **kwargs):
        return await anyio.to_thread.run_sync(partial(fn, *args, **kwargs))

    async def bucket_exists(self, bucket_name: str) -> bool:
        client = self.client
        return await self._run_sync(client.bucket_exists, bucket_name)

    async def upload_bytes(
        self,
        bucket_name: str,
        object_name: str,
        data: bytes,
        content_type: str | None = None,
    ) -> dict[str, Any]:
        client = self.client
        result = await self._run_sync(
            client.put_object,
            bucket_name,
            object_name,
            io.BytesIO(data),
            len(data),
            content_type=content_type or "application/octet-stream",
        )
        return {
            "bucket": bucket_name,
            "object": object_name,
            "etag": getattr(result, "etag", None),
            "version_id": getattr(result, "version_id", None),
        }

    async def presigned_put_url(
        self, bucket_name: str, object_name: str, expiry_seconds: int = 900
    ) -> str:
        """生成仅允许PUT的预签名地址"""
        client = self.client
        return await self._run_sync(
            client.presigned_put_object,
            bucket_name,
            object_name,
            expires=timedelta(seconds=expiry_seconds),
        )

    async def download_bytes(self, bucket_name: str, object_name: str) -> bytes:
        """从MinIO下载对象内容，对象不存在时抛出FileNotFoundError"""
        client = self.client

        def _download() -> bytes:
            resp = client.get_object(bucket_name, object_name)
            # 读取完毕后需要释放连接
            try:
                return resp.read()
            finally:
                resp.close()
                resp.release_conn()

        try:
            return await anyio.to_thread.run_sync(_download)
        except S3Error as e:
            if e.code in MISSING_OBJECT_CODES:
                raise FileNotFoundError(object_name) from e
            raise

    async def stat_object(self, bucket_name: str, object_name: str):
        """获取对象元信息，对象不存在时抛出FileNotFoundError"""
        client = self.client
        try:
            return await self._run_sync(client.stat_object, bucket_name, object_name)
        except S3Error as e:
            if e.code in MISSING_OBJECT_CODES:
                raise FileNotFoundError(object_name) from e
            raise

    async def list_object_names(self, bucket_name: str, prefix: str = "") -> List[str]:
        client = self.client

        def _list() -> List[str]:
            return [
                obj.object_name
                for obj in client.list_objects(
                    bucket_name, prefix=prefix or None, recursive=True
                )
                if not obj.is_dir
            ]

        return await anyio.to_thread.run_sync(_list)

    async def delete_object(
        self,
        bucket_name: str,
        object_name: str,
    ) -> None:
        """从MinIO删除指定对象"""
        client = self.client
        await self._run_sync(client.remove_object, bucket_name, object_name)


@lru_cache()
def get_minio() -> MinioStore:
    """lru_cache 单例：获取 MinIO 对象存储实例"""
    return MinioStore()
