#!/usr/bin/env python3
"""
批量上传本地文件到产品附件的CLI脚本

使用方法:
    python scripts/upload_files.py --product P1 report.csv notes.pdf

重名文件会在终端询问替换还是跳过，--replace/--skip 可跳过询问。
"""

import argparse
import asyncio
import json
from pathlib import Path

import anyio

from sparks.application.services.upload_orchestrator import UploadOrchestrator
from sparks.core.config import get_settings
from sparks.domain.models.file_record import DuplicateResolution, FileUploadStatus
from sparks.domain.models.local_file import LocalFile
from sparks.infrastructure.external.file_api.http_file_api import HttpFileApi
from sparks.infrastructure.logging import setup_logging


# 并发上传时多个重名文件同时询问，逐个占用终端
_prompt_lock = asyncio.Lock()


async def prompt_duplicate(local_file: LocalFile) -> DuplicateResolution:
    """终端询问重名文件的处理方式，输入在工作线程中等待，不阻塞其它文件上传"""
    async with _prompt_lock:
        answer = await anyio.to_thread.run_sync(
            input, f"文件[{local_file.name}]已存在，是否替换? [y/N] "
        )
    answer = answer.strip().lower()
    return DuplicateResolution.REPLACE if answer in ("y", "yes") else DuplicateResolution.SKIP


def print_status(status: FileUploadStatus) -> None:
    print(f"[{status.index}] {status.name}: {status.state.value} {status.progress:.0f}%")


async def main() -> None:
    parser = argparse.ArgumentParser(description="Upload local files as product attachments.")
    parser.add_argument("paths", nargs="+", help="Local file paths")
    parser.add_argument("--product", required=True, help="Product id")
    parser.add_argument("--step", type=int, default=None, help="Step id")
    parser.add_argument("--sub-step", type=int, default=None, help="Sub step id")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--replace", action="store_true", help="Replace duplicates without asking")
    group.add_argument("--skip", action="store_true", help="Skip duplicates without asking")
    args = parser.parse_args()

    setup_logging()
    settings = get_settings()

    files = []
    for raw in args.paths:
        path = Path(raw)
        if not path.is_file():
            raise SystemExit(f"File not found: {path}")
        files.append(LocalFile.from_path(path))

    if args.replace:
        resolver = lambda _: DuplicateResolution.REPLACE  # noqa: E731
    elif args.skip:
        resolver = lambda _: DuplicateResolution.SKIP  # noqa: E731
    else:
        resolver = prompt_duplicate

    async with HttpFileApi(
        base_url=settings.api_base_url,
        token=settings.api_token,
        timeout=settings.http_timeout_seconds,
    ) as file_api:
        orchestrator = UploadOrchestrator(
            file_api=file_api,
            product_id=args.product,
            step_id=args.step,
            sub_step_id=args.sub_step,
            resolve_duplicate=resolver,
            on_status_change=print_status,
        )
        statuses = await orchestrator.upload(files)

    print(
        json.dumps(
            [status.model_dump(mode="json", exclude={"record"}) for status in statuses],
            ensure_ascii=False,
            indent=2,
        )
    )


if __name__ == "__main__":
    asyncio.run(main())
