import logging

from fastapi import Depends

from sparks.application.services.file_service import FileService
from sparks.core.config import get_settings
from sparks.infrastructure.external.cache.redis_file_list_cache import RedisFileListCache
from sparks.infrastructure.external.file_storage.minio_object_storage import (
    MinioObjectStorage,
)
from sparks.infrastructure.storage.minio import MinioStore, get_minio
from sparks.infrastructure.storage.postgres import get_uow
from sparks.infrastructure.storage.redis import RedisClient, get_redis

logger = logging.getLogger(__name__)
settings = get_settings()


def get_file_service(
    minio_store: MinioStore = Depends(get_minio),
    redis_client: RedisClient = Depends(get_redis),
) -> FileService:
    # 1.初始化对象存储网关和文件列表缓存
    object_storage = MinioObjectStorage(
        bucket=settings.minio_bucket_name,
        minio_store=minio_store,
    )
    file_list_cache = RedisFileListCache(
        redis_client=redis_client,
        ttl_seconds=settings.file_list_cache_ttl_seconds,
    )

    # 2.构建服务并返回
    return FileService(
        uow_factory=get_uow,
        object_storage=object_storage,
        file_list_cache=file_list_cache,
        upload_url_expiry_minutes=settings.upload_url_expiry_minutes,
    )
