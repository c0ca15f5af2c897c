#!/usr/bin/env python3
"""
对账对象存储与文件记录的CLI脚本

使用方法:
    python scripts/reconcile_orphans.py           # 只输出对账结果
    python scripts/reconcile_orphans.py --purge   # 删除超过宽限期的孤儿对象
"""

import argparse
import asyncio
import json
from datetime import timedelta

from sparks.application.services.reconcile_service import ReconcileService
from sparks.core.config import get_settings
from sparks.infrastructure.external.file_storage.minio_object_storage import (
    MinioObjectStorage,
)
from sparks.infrastructure.logging import setup_logging
from sparks.infrastructure.storage.minio import get_minio
from sparks.infrastructure.storage.postgres import get_postgres, get_uow


async def main() -> None:
    parser = argparse.ArgumentParser(description="Find or purge orphan objects.")
    parser.add_argument("--purge", action="store_true", help="Delete orphans older than the grace period")
    parser.add_argument(
        "--grace-minutes",
        type=int,
        default=None,
        help="Grace period in minutes (default: UPLOAD_URL_EXPIRY_MINUTES)",
    )
    args = parser.parse_args()

    setup_logging()
    settings = get_settings()
    grace_minutes = args.grace_minutes
    if grace_minutes is None:
        grace_minutes = settings.upload_url_expiry_minutes

    postgres, minio_store = get_postgres(), get_minio()
    await postgres.init()
    await minio_store.init()
    try:
        if not await minio_store.bucket_exists(settings.minio_bucket_name):
            raise SystemExit(f"Bucket not exists: {settings.minio_bucket_name}")

        service = ReconcileService(
            uow_factory=get_uow,
            object_storage=MinioObjectStorage(settings.minio_bucket_name, minio_store),
            grace_period=timedelta(minutes=grace_minutes),
        )
        if args.purge:
            result = {"purged": await service.purge_orphans()}
        else:
            result = (await service.find_orphans()).model_dump(mode="json", by_alias=True)
        print(json.dumps(result, ensure_ascii=False, indent=2))
    finally:
        await minio_store.shutdown()
        await postgres.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
