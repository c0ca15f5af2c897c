import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from pydantic import BaseModel, Field

from sparks.domain.external.object_storage import ObjectStorage
from sparks.domain.models.file_record import FileRecord
from sparks.domain.repositories.uow import IUnitOfWork

logger = logging.getLogger(__name__)


class OrphanReport(BaseModel):
    """对象存储与元数据记录的对账结果"""

    orphan_keys: List[str] = Field(default_factory=list)  # 有对象但无记录
    dangling_records: List[FileRecord] = Field(default_factory=list)  # 有记录但无对象


class ReconcileService:
    """对账服务：找出上传成功但元数据提交失败留下的孤儿对象"""

    def __init__(
        self,
        uow_factory: Callable[[], IUnitOfWork],
        object_storage: ObjectStorage,
        grace_period: timedelta = timedelta(minutes=15),
    ) -> None:
        self.object_storage = object_storage
        self.grace_period = grace_period
        self._uow = uow_factory()

    async def find_orphans(self) -> OrphanReport:
        """对比对象存储列表和元数据记录"""
        keys = set(await self.object_storage.list())
        async with self._uow:
            records = await self._uow.file_record.list_all()

        record_keys = {record.key for record in records}
        report = OrphanReport(
            orphan_keys=sorted(keys - record_keys),
            dangling_records=[record for record in records if record.key not in keys],
        )
        logger.info(
            f"对账完成: 孤儿对象{len(report.orphan_keys)}个, "
            f"悬空记录{len(report.dangling_records)}条"
        )
        return report

    async def purge_orphans(self, now: Optional[datetime] = None) -> List[str]:
        """删除超过宽限期的孤儿对象，宽限期内的对象可能仍在上传流程中"""
        now = now or datetime.now(timezone.utc)
        report = await self.find_orphans()

        purged: List[str] = []
        for key in report.orphan_keys:
            try:
                metadata = await self.object_storage.stat_metadata(key)
            except FileNotFoundError:
                continue

            updated_at = metadata.updated_at
            if updated_at is not None:
                if updated_at.tzinfo is None:
                    updated_at = updated_at.replace(tzinfo=timezone.utc)
                if now - updated_at < self.grace_period:
                    logger.info(f"孤儿对象仍在宽限期内, 跳过: {key}")
                    continue

            await self.object_storage.delete(key)
            purged.append(key)
            logger.info(f"已删除孤儿对象: {key}")
        return purged
