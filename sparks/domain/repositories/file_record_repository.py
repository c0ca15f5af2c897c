from typing import List, Optional, Protocol

from sparks.domain.models.file_record import FileRecord


class FileRecordConflictError(Exception):
    """同一产品下已存在同名文件记录(唯一约束冲突)"""


class FileRecordRepository(Protocol):
    """文件元数据数据仓库"""

    async def add(self, record: FileRecord) -> FileRecord:
        """新增文件记录，(product_id, name)冲突时抛出FileRecordConflictError"""
        ...

    async def update(self, record: FileRecord) -> FileRecord:
        """更新已有文件记录"""
        ...

    async def get_by_id(self, record_id: str) -> Optional[FileRecord]:
        """根据记录id获取文件记录"""
        ...

    async def get_by_name(self, product_id: str, name: str) -> Optional[FileRecord]:
        """根据产品id+文件名获取文件记录"""
        ...

    async def list_by_product(
        self,
        product_id: str,
        step_id: Optional[int] = None,
        sub_step_id: Optional[int] = None,
    ) -> List[FileRecord]:
        """获取产品(可选步骤/子步骤)下的所有文件记录"""
        ...

    async def list_all(self) -> List[FileRecord]:
        """获取全部文件记录"""
        ...

    async def delete(self, record_id: str) -> None:
        """根据记录id删除文件记录"""
        ...
