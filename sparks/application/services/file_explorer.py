import inspect
import logging
from typing import Any, Awaitable, Callable, List, Optional, Union

from sparks.domain.external.file_api import FileApi
from sparks.domain.external.file_list_cache import FileListCache
from sparks.domain.models.file_record import DeleteOutcome, DeleteResult, FileRecord
from sparks.domain.services.file_listing import SortState, build_file_view

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[FileRecord], Union[bool, Awaitable[bool]]]


class FileExplorer:
    """客户端文件浏览器：列表缓存、搜索排序视图、受保护的删除"""

    def __init__(
        self,
        file_api: FileApi,
        product_id: str,
        step_id: Optional[int] = None,
        sub_step_id: Optional[int] = None,
        file_list_cache: Optional[FileListCache] = None,
        confirm: Optional[ConfirmCallback] = None,
    ) -> None:
        self._file_api = file_api
        self.product_id = product_id
        self.step_id = step_id
        self.sub_step_id = sub_step_id
        self._file_list_cache = file_list_cache
        self._confirm = confirm
        self.search_term = ""
        self.sort_state = SortState()
        self.error: Optional[str] = None

    async def fetch(self, refresh: bool = False) -> List[FileRecord]:
        """获取文件列表，refresh为True时跳过缓存"""
        if self._file_list_cache and not refresh:
            cached = await self._file_list_cache.get(
                self.product_id, self.step_id, self.sub_step_id
            )
            if cached is not None:
                return cached

        records = await self._file_api.list_files(
            self.product_id, step_id=self.step_id, sub_step_id=self.sub_step_id
        )
        if self._file_list_cache:
            await self._file_list_cache.set(
                self.product_id, records, self.step_id, self.sub_step_id
            )
        return records

    def sort_by(self, column: str) -> SortState:
        """点击列头切换排序"""
        self.sort_state = self.sort_state.toggle(column)
        return self.sort_state

    async def view(self, refresh: bool = False) -> List[FileRecord]:
        """生成当前的展示视图，加载失败时返回空列表并记录错误"""
        try:
            records = await self.fetch(refresh=refresh)
        except Exception as e:
            logger.error(f"获取产品[{self.product_id}]文件列表失败: {e}")
            self.error = str(e)
            return []

        self.error = None
        return build_file_view(records, self.search_term, self.sort_state)

    async def _confirmed(self, record: FileRecord) -> bool:
        if not self._confirm:
            return False
        result: Any = self._confirm(record)
        if inspect.isawaitable(result):
            result = await result
        return bool(result)

    async def delete(self, record: FileRecord) -> DeleteResult:
        """删除文件，系统生成文件直接拒绝且不发起任何网络请求"""
        if record.system_generated:
            return DeleteResult(
                outcome=DeleteOutcome.REJECTED,
                msg="系统生成的文件不能删除(cannot delete)",
            )

        try:
            if not await self._confirmed(record):
                return DeleteResult(outcome=DeleteOutcome.CANCELLED, msg="已取消删除")
            await self._file_api.delete_file(record.id)
        except Exception as e:
            logger.error(f"删除文件[{record.name}]失败: {e}")
            return DeleteResult(outcome=DeleteOutcome.FAILED, msg=f"删除文件失败: {e}")

        if self._file_list_cache:
            try:
                await self._file_list_cache.invalidate_product(self.product_id)
            except Exception as e:
                logger.warning(f"清除文件列表缓存失败: {e}")
        return DeleteResult(outcome=DeleteOutcome.DELETED, msg="删除文件成功")

    async def download(self, record: FileRecord) -> bytes:
        """下载文件内容"""
        return await self._file_api.download_file(record.name, record.product_id)
