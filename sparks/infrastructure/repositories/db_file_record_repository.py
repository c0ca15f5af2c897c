from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from sparks.domain.models.file_record import FileRecord
from sparks.domain.repositories.file_record_repository import (
    FileRecordConflictError,
    FileRecordRepository,
)
from sparks.infrastructure.models import FileRecordModel


class DBFileRecordRepository(FileRecordRepository):
    """基于数据库的文件元数据仓库"""

    def __init__(self, db_session: AsyncSession) -> None:
        """构造函数，完成数据仓库初始化"""
        self.db_session = db_session

    async def _get_model(self, record_id: str) -> Optional[FileRecordModel]:
        stmt = select(FileRecordModel).where(FileRecordModel.id == record_id)
        result = await self.db_session.execute(stmt)
        return result.scalar_one_or_none()

    async def add(self, record: FileRecord) -> FileRecord:
        """新增文件记录，立即flush让唯一约束冲突在当前上下文中暴露"""
        model = FileRecordModel.from_domain(record)
        self.db_session.add(model)
        try:
            await self.db_session.flush()
        except IntegrityError as e:
            raise FileRecordConflictError(
                f"产品[{record.product_id}]下已存在文件: {record.name}"
            ) from e
        return record

    async def update(self, record: FileRecord) -> FileRecord:
        """根据id更新文件记录"""
        model = await self._get_model(record.id)
        if model is None:
            raise LookupError(f"文件记录不存在: {record.id}")
        model.update_from_domain(record)
        try:
            await self.db_session.flush()
        except IntegrityError as e:
            raise FileRecordConflictError(
                f"产品[{record.product_id}]下已存在文件: {record.name}"
            ) from e
        return record

    async def get_by_id(self, record_id: str) -> Optional[FileRecord]:
        """根据传递的记录id获取文件记录"""
        model = await self._get_model(record_id)
        return model.to_domain() if model is not None else None

    async def get_by_name(self, product_id: str, name: str) -> Optional[FileRecord]:
        """根据产品id+文件名获取文件记录"""
        stmt = select(FileRecordModel).where(
            FileRecordModel.product_id == product_id,
            FileRecordModel.name == name,
        )
        result = await self.db_session.execute(stmt)
        model = result.scalar_one_or_none()
        return model.to_domain() if model is not None else None

    async def list_by_product(
        self,
        product_id: str,
        step_id: Optional[int] = None,
        sub_step_id: Optional[int] = None,
    ) -> List[FileRecord]:
        """获取产品下的文件记录，可按步骤/子步骤收窄范围"""
        stmt = select(FileRecordModel).where(FileRecordModel.product_id == product_id)
        if step_id is not None:
            stmt = stmt.where(FileRecordModel.step_id == step_id)
        if sub_step_id is not None:
            stmt = stmt.where(FileRecordModel.sub_step_id == sub_step_id)
        stmt = stmt.order_by(FileRecordModel.created_at.desc())

        result = await self.db_session.execute(stmt)
        return [model.to_domain() for model in result.scalars().all()]

    async def list_all(self) -> List[FileRecord]:
        result = await self.db_session.execute(select(FileRecordModel))
        return [model.to_domain() for model in result.scalars().all()]

    async def delete(self, record_id: str) -> None:
        """根据传递的记录id删除文件记录"""
        model = await self._get_model(record_id)
        if model:
            await self.db_session.delete(model)
