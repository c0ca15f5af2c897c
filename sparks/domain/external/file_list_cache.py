from typing import List, Optional, Protocol

from sparks.domain.models.file_record import FileRecord


class FileListCache(Protocol):
    """按产品范围缓存文件列表的协议"""

    async def get(
        self,
        product_id: str,
        step_id: Optional[int] = None,
        sub_step_id: Optional[int] = None,
    ) -> Optional[List[FileRecord]]:
        """读取缓存的文件列表，未命中返回None"""
        ...

    async def set(
        self,
        product_id: str,
        records: List[FileRecord],
        step_id: Optional[int] = None,
        sub_step_id: Optional[int] = None,
    ) -> None:
        """写入文件列表缓存"""
        ...

    async def invalidate_product(self, product_id: str) -> None:
        """清除某个产品下所有步骤/子步骤的列表缓存"""
        ...
