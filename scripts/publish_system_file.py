#!/usr/bin/env python3
"""
写入系统生成文件的CLI脚本，系统生成文件在界面上不可删除、不可替换

使用方法:
    python scripts/publish_system_file.py --product P1 summary.pdf
"""

import argparse
import asyncio
import json
import mimetypes
from pathlib import Path

from sparks.application.services.file_service import FileService
from sparks.core.config import get_settings
from sparks.infrastructure.external.cache.redis_file_list_cache import RedisFileListCache
from sparks.infrastructure.external.file_storage.minio_object_storage import (
    MinioObjectStorage,
)
from sparks.infrastructure.logging import setup_logging
from sparks.infrastructure.storage.minio import get_minio
from sparks.infrastructure.storage.postgres import get_postgres, get_uow
from sparks.infrastructure.storage.redis import get_redis


async def main() -> None:
    parser = argparse.ArgumentParser(description="Publish a system generated product file.")
    parser.add_argument("path", help="Local file path")
    parser.add_argument("--product", required=True, help="Product id")
    parser.add_argument("--name", default=None, help="File name (default: local file name)")
    parser.add_argument("--step", type=int, default=None, help="Step id")
    parser.add_argument("--sub-step", type=int, default=None, help="Sub step id")
    args = parser.parse_args()

    path = Path(args.path)
    if not path.is_file():
        raise SystemExit(f"File not found: {path}")

    setup_logging()
    settings = get_settings()

    postgres, redis_client, minio_store = get_postgres(), get_redis(), get_minio()
    await postgres.init()
    await redis_client.init()
    await minio_store.init()
    try:
        if not await minio_store.bucket_exists(settings.minio_bucket_name):
            raise SystemExit(f"Bucket not exists: {settings.minio_bucket_name}")

        file_service = FileService(
            uow_factory=get_uow,
            object_storage=MinioObjectStorage(settings.minio_bucket_name, minio_store),
            file_list_cache=RedisFileListCache(
                redis_client, ttl_seconds=settings.file_list_cache_ttl_seconds
            ),
        )
        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        record = await file_service.create_system_file(
            product_id=args.product,
            file_name=args.name or path.name,
            content=path.read_bytes(),
            content_type=content_type,
            step_id=args.step,
            sub_step_id=args.sub_step,
        )
        print(json.dumps(record.model_dump(mode="json", by_alias=True), ensure_ascii=False, indent=2))
    finally:
        await minio_store.shutdown()
        await redis_client.shutdown()
        await postgres.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
