from typing import Dict, List, Optional, Tuple

from sparks.domain.external.file_list_cache import FileListCache
from sparks.domain.models.file_record import FileRecord

CacheKey = Tuple[str, Optional[int], Optional[int]]


class MemoryFileListCache(FileListCache):
    """进程内的文件列表缓存，供客户端在同一会话中复用列表结果"""

    def __init__(self) -> None:
        self._entries: Dict[CacheKey, List[FileRecord]] = {}

    async def get(
        self,
        product_id: str,
        step_id: Optional[int] = None,
        sub_step_id: Optional[int] = None,
    ) -> Optional[List[FileRecord]]:
        records = self._entries.get((product_id, step_id, sub_step_id))
        return list(records) if records is not None else None

    async def set(
        self,
        product_id: str,
        records: List[FileRecord],
        step_id: Optional[int] = None,
        sub_step_id: Optional[int] = None,
    ) -> None:
        self._entries[(product_id, step_id, sub_step_id)] = list(records)

    async def invalidate_product(self, product_id: str) -> None:
        for key in [key for key in self._entries if key[0] == product_id]:
            del self._entries[key]
