"""客户端上传编排器

每个选中的文件独立执行一次上传握手:
1.重名检查 -> 2.重名确认(替换/跳过) -> 3.申请预签名地址 -> 4.直传对象存储
-> 5.提交元数据 -> 6.完成(清除列表缓存并通知上层)

状态流转为 pending -> uploading -> success/error，用户选择跳过时为 skipped。
同一批次的文件并发上传，某个文件失败不会影响其它文件，也不会自动重试。
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Union

import anyio

from sparks.domain.external.file_api import FileApi
from sparks.domain.external.file_list_cache import FileListCache
from sparks.domain.models.file_record import (
    DuplicateResolution,
    FileRecord,
    FileUploadStatus,
    UploadState,
)
from sparks.domain.models.local_file import LocalFile

logger = logging.getLogger(__name__)

DuplicateResolver = Callable[
    [LocalFile], Union[DuplicateResolution, Awaitable[DuplicateResolution]]
]
StatusListener = Callable[[FileUploadStatus], Any]


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class UploadOrchestrator:
    """批量文件上传编排器，按下标独立追踪每个文件的状态"""

    def __init__(
        self,
        file_api: FileApi,
        product_id: str,
        step_id: Optional[int] = None,
        sub_step_id: Optional[int] = None,
        resolve_duplicate: Optional[DuplicateResolver] = None,
        file_list_cache: Optional[FileListCache] = None,
        on_file_upload: Optional[Callable[[], Any]] = None,
        on_status_change: Optional[StatusListener] = None,
    ) -> None:
        self._file_api = file_api
        self.product_id = product_id
        self.step_id = step_id
        self.sub_step_id = sub_step_id
        self._resolve_duplicate = resolve_duplicate
        self._file_list_cache = file_list_cache
        self._on_file_upload = on_file_upload
        self._on_status_change = on_status_change
        self._files: List[LocalFile] = []
        self.statuses: List[FileUploadStatus] = []

    def select(self, files: Iterable[LocalFile]) -> List[FileUploadStatus]:
        """将选中的文件加入上传队列"""
        for local_file in files:
            self._files.append(local_file)
            self.statuses.append(
                FileUploadStatus(
                    index=len(self.statuses),
                    name=local_file.name,
                    size=local_file.size,
                )
            )
        return self.statuses

    def clear(self) -> None:
        """清空上传队列"""
        self._files.clear()
        self.statuses.clear()

    async def upload(self, files: Iterable[LocalFile]) -> List[FileUploadStatus]:
        """选中文件并立即上传"""
        self.select(files)
        return await self.upload_all()

    async def upload_all(self) -> List[FileUploadStatus]:
        """并发上传队列中所有pending状态的文件，等待全部进入终态"""
        pending = [
            (status.index, self._files[status.index])
            for status in self.statuses
            if status.state is UploadState.PENDING
        ]
        if not pending:
            return self.statuses

        await asyncio.gather(
            *(self._upload_one(index, local_file) for index, local_file in pending)
        )
        return self.statuses

    def _transition(self, index: int, **changes: Any) -> None:
        """更新指定下标文件的状态并通知监听方"""
        status = self.statuses[index].model_copy(update=changes)
        self.statuses[index] = status
        if self._on_status_change:
            try:
                self._on_status_change(status.model_copy())
            except Exception as e:
                logger.warning(f"上传状态监听回调执行失败: {e}")

    def _fail(self, index: int, msg: str) -> None:
        logger.error(f"文件[{self.statuses[index].name}]上传失败: {msg}")
        self._transition(index, state=UploadState.ERROR, progress=0.0, error=msg)

    async def _resolve(self, local_file: LocalFile) -> DuplicateResolution:
        """询问用户重名文件是替换还是跳过，未配置回调时默认跳过

        同步回调(例如终端输入)在工作线程中执行，等待期间同批次其它文件继续上传。
        """
        resolver = self._resolve_duplicate
        if not resolver:
            return DuplicateResolution.SKIP
        if inspect.iscoroutinefunction(resolver):
            result = await resolver(local_file)
        else:
            result = await _maybe_await(
                await anyio.to_thread.run_sync(resolver, local_file)
            )
        return DuplicateResolution(result)

    def _progress_reporter(self, index: int) -> Callable[[int, int], None]:
        """生成单调不减的进度回调(0-100)"""

        def report(sent: int, total: int) -> None:
            percent = 100.0 if total <= 0 else min(100.0, sent * 100.0 / total)
            if percent > self.statuses[index].progress:
                self._transition(index, state=UploadState.UPLOADING, progress=percent)

        return report

    async def _upload_one(self, index: int, local_file: LocalFile) -> None:
        """单个文件的上传握手，任何异常都转换为该文件的error状态"""
        # 1.重名检查，检查失败时阻止上传，避免误覆盖已有文件
        try:
            is_duplicate = await self._file_api.check_duplicate(
                local_file.name, self.product_id
            )
        except Exception as e:
            self._fail(index, f"重名检查失败: {e}")
            return

        # 2.重名文件需要用户确认替换或跳过
        if is_duplicate:
            try:
                resolution = await self._resolve(local_file)
            except Exception as e:
                self._fail(index, f"重名确认失败: {e}")
                return
            if resolution is DuplicateResolution.SKIP:
                logger.info(f"用户跳过重名文件: {local_file.name}")
                self._transition(index, state=UploadState.SKIPPED, progress=0.0)
                return

        # 3.申请预签名上传地址
        content_type = local_file.content_type or "application/octet-stream"
        try:
            upload_url = await self._file_api.request_upload_url(
                local_file.name, content_type, self.product_id
            )
        except Exception as e:
            self._fail(index, f"获取上传地址失败: {e}")
            return

        # 4.直传对象存储并汇报进度
        self._transition(
            index, state=UploadState.UPLOADING, progress=0.0, replaced=is_duplicate
        )
        try:
            await self._file_api.transfer(
                upload_url, local_file, on_progress=self._progress_reporter(index)
            )
        except Exception as e:
            self._fail(index, f"文件传输失败: {e}")
            return

        # 5.提交元数据，重名替换时更新已有记录
        record = FileRecord(
            name=local_file.name,
            size=local_file.size,
            content_type=content_type,
            url=upload_url.split("?", 1)[0],
            product_id=self.product_id,
            step_id=self.step_id,
            sub_step_id=self.sub_step_id,
            system_generated=False,
        )
        try:
            committed = await self._file_api.commit_record(record, replace=is_duplicate)
        except Exception as e:
            self._fail(index, f"保存文件元数据失败: {e}")
            return

        # 6.完成，清除列表缓存并通知上层
        self._transition(
            index, state=UploadState.SUCCESS, progress=100.0, record=committed, error=None
        )
        logger.info(f"文件上传成功: {local_file.name} (ID: {committed.id})")

        if self._file_list_cache:
            try:
                await self._file_list_cache.invalidate_product(self.product_id)
            except Exception as e:
                logger.warning(f"清除文件列表缓存失败: {e}")
        if self._on_file_upload:
            try:
                await _maybe_await(self._on_file_upload())
            except Exception as e:
                logger.warning(f"上传完成回调执行失败: {e}")
