import logging
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from sparks.application.errors.exceptions import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ServerRequestsError,
)
from sparks.domain.external.file_list_cache import FileListCache
from sparks.domain.external.object_storage import ObjectStorage
from sparks.domain.models.file_record import (
    FileRecord,
    ObjectMetadata,
    build_object_key,
)
from sparks.domain.repositories.file_record_repository import FileRecordConflictError
from sparks.domain.repositories.uow import IUnitOfWork

logger = logging.getLogger(__name__)


class FileService:
    """产品附件文件服务：重名检查、预签名上传、元数据提交、列表、下载、删除"""

    def __init__(
        self,
        uow_factory: Callable[[], IUnitOfWork],
        object_storage: ObjectStorage,
        file_list_cache: Optional[FileListCache] = None,
        upload_url_expiry_minutes: int = 15,
    ) -> None:
        """构造函数，完成文件服务的初始化"""
        self.object_storage = object_storage
        self.file_list_cache = file_list_cache
        self.upload_url_expiry_minutes = upload_url_expiry_minutes
        self._uow_factory = uow_factory
        self._uow = uow_factory()

    @staticmethod
    def _require_name(file_name: str) -> str:
        name = (file_name or "").strip()
        if not name:
            raise BadRequestError("文件名不能为空")
        if "/" in name or "\\" in name:
            raise BadRequestError(f"文件名不能包含路径分隔符: {file_name}")
        return name

    async def _invalidate(self, product_id: str) -> None:
        """清除产品的文件列表缓存，缓存异常只记录不影响主流程"""
        if not self.file_list_cache:
            return
        try:
            await self.file_list_cache.invalidate_product(product_id)
        except Exception as e:
            logger.warning(f"清除产品[{product_id}]文件列表缓存失败: {e}")

    async def _stat_uploaded(self, key: str) -> ObjectMetadata:
        """确认对象已经上传到对象存储"""
        try:
            return await self.object_storage.stat_metadata(key)
        except FileNotFoundError:
            raise BadRequestError(f"对象存储中不存在该文件, 请先完成上传: {key}")

    async def list_files(
        self,
        product_id: str,
        step_id: Optional[int] = None,
        sub_step_id: Optional[int] = None,
    ) -> List[FileRecord]:
        """获取产品(可选步骤/子步骤)下的文件列表，优先读取缓存"""
        if self.file_list_cache:
            try:
                cached = await self.file_list_cache.get(product_id, step_id, sub_step_id)
                if cached is not None:
                    return cached
            except Exception as e:
                logger.warning(f"读取产品[{product_id}]文件列表缓存失败: {e}")

        async with self._uow:
            records = await self._uow.file_record.list_by_product(
                product_id, step_id=step_id, sub_step_id=sub_step_id
            )

        if self.file_list_cache:
            try:
                await self.file_list_cache.set(product_id, records, step_id, sub_step_id)
            except Exception as e:
                logger.warning(f"写入产品[{product_id}]文件列表缓存失败: {e}")
        return records

    async def check_duplicate(self, file_name: str, product_id: str) -> bool:
        """判断产品下是否已存在同名文件"""
        name = self._require_name(file_name)
        async with self._uow:
            record = await self._uow.file_record.get_by_name(product_id, name)
        return record is not None

    async def create_upload_url(
        self, file_name: str, content_type: str, product_id: str
    ) -> str:
        """为产品下的文件签发预签名上传地址，系统生成文件不签发，避免对象被覆盖"""
        name = self._require_name(file_name)
        async with self._uow:
            existing = await self._uow.file_record.get_by_name(product_id, name)
        if existing and existing.system_generated:
            logger.warning(f"拒绝为系统生成文件签发上传地址: {product_id}/{name}")
            raise ForbiddenError("系统生成的文件不能被替换")

        key = build_object_key(product_id, name)
        upload_url = await self.object_storage.request_upload_url(
            key,
            content_type or "application/octet-stream",
            ttl_minutes=self.upload_url_expiry_minutes,
        )
        logger.info(f"签发预签名上传地址: {key}")
        return upload_url

    async def create_record(self, record: FileRecord) -> FileRecord:
        """上传完成后新建文件记录，用户上传的文件永远不是系统生成文件"""
        # 1.确认对象已经存在，以对象存储中的大小为准
        name = self._require_name(record.name)
        key = build_object_key(record.product_id, name)
        metadata = await self._stat_uploaded(key)

        # 2.构建新记录
        now = datetime.now()
        new_record = FileRecord(
            name=name,
            size=metadata.size,
            content_type=record.content_type or metadata.content_type,
            url=self.object_storage.public_url(key),
            key=key,
            product_id=record.product_id,
            step_id=record.step_id,
            sub_step_id=record.sub_step_id,
            system_generated=False,
            created_at=now,
            updated_at=now,
        )

        # 3.持久化，唯一约束冲突时返回409而不是覆盖已有记录
        try:
            async with self._uow:
                await self._uow.file_record.add(new_record)
        except FileRecordConflictError:
            logger.warning(f"产品[{record.product_id}]下已存在同名文件: {name}")
            raise ConflictError(f"该产品下已存在同名文件: {name}")

        logger.info(f"文件记录创建成功: {name} (ID: {new_record.id})")
        await self._invalidate(record.product_id)
        return new_record

    async def replace_record(self, record: FileRecord) -> FileRecord:
        """确认替换重名文件后更新已有记录(保持id和创建时间)"""
        name = self._require_name(record.name)
        async with self._uow:
            existing = await self._uow.file_record.get_by_name(record.product_id, name)
        if not existing:
            raise NotFoundError(f"该文件记录不存在: {name}")
        if existing.system_generated:
            raise ForbiddenError("系统生成的文件不能被替换")

        key = build_object_key(record.product_id, name)
        metadata = await self._stat_uploaded(key)
        updated = existing.model_copy(
            update={
                "size": metadata.size,
                "content_type": record.content_type or metadata.content_type,
                "url": self.object_storage.public_url(key),
                "key": key,
                "step_id": record.step_id if record.step_id is not None else existing.step_id,
                "sub_step_id": (
                    record.sub_step_id
                    if record.sub_step_id is not None
                    else existing.sub_step_id
                ),
                "updated_at": datetime.now(),
            }
        )
        async with self._uow:
            await self._uow.file_record.update(updated)

        logger.info(f"文件记录替换成功: {name} (ID: {updated.id})")
        await self._invalidate(record.product_id)
        return updated

    async def get_file_record(self, file_id: str) -> FileRecord:
        """根据记录id获取文件记录"""
        async with self._uow:
            record = await self._uow.file_record.get_by_id(file_id)
        if not record:
            raise NotFoundError(f"该文件[{file_id}]不存在")
        return record

    async def download_file(self, file_name: str, product_id: str) -> Tuple[bytes, FileRecord]:
        """根据产品id+文件名下载文件"""
        name = self._require_name(file_name)
        async with self._uow:
            record = await self._uow.file_record.get_by_name(product_id, name)
        if not record:
            raise NotFoundError(f"该文件不存在: {name}")

        try:
            content = await self.object_storage.get(record.key)
        except FileNotFoundError:
            raise NotFoundError(f"对象存储中不存在该文件: {name}")
        return content, record

    async def delete_file(self, file_id: str) -> None:
        """删除文件：系统生成文件在任何变更前拒绝，先删对象再删记录"""
        # 1.检查文件是否存在及是否为系统生成
        record = await self.get_file_record(file_id)
        if record.system_generated:
            raise ForbiddenError("系统生成的文件不能删除")

        # 2.删除对象存储中的文件，失败时保留元数据记录
        try:
            await self.object_storage.delete(record.key)
        except Exception as e:
            logger.error(f"删除对象[{record.key}]失败: {str(e)}")
            raise ServerRequestsError(f"删除文件失败: {record.name}")

        # 3.删除数据库记录
        try:
            async with self._uow:
                await self._uow.file_record.delete(file_id)
        except Exception as e:
            logger.error(f"对象已删除但文件记录[{file_id}]删除失败: {str(e)}")
            raise ServerRequestsError(f"删除文件记录失败: {record.name}")

        logger.info(f"文件删除成功: {record.name} (ID: {file_id})")
        await self._invalidate(record.product_id)

    async def create_system_file(
        self,
        product_id: str,
        file_name: str,
        content: bytes,
        content_type: str = "application/octet-stream",
        step_id: Optional[int] = None,
        sub_step_id: Optional[int] = None,
    ) -> FileRecord:
        """由平台写入系统生成文件，同名时覆盖对象并更新记录"""
        name = self._require_name(file_name)
        key = build_object_key(product_id, name)

        # 1.服务端直接写入对象存储
        await self.object_storage.put(key, content, content_type=content_type)

        # 2.新增或更新系统生成文件记录
        now = datetime.now()
        async with self._uow:
            existing = await self._uow.file_record.get_by_name(product_id, name)
            if existing:
                record = existing.model_copy(
                    update={
                        "size": len(content),
                        "content_type": content_type,
                        "url": self.object_storage.public_url(key),
                        "key": key,
                        "system_generated": True,
                        "updated_at": now,
                    }
                )
                await self._uow.file_record.update(record)
            else:
                record = FileRecord(
                    name=name,
                    size=len(content),
                    content_type=content_type,
                    url=self.object_storage.public_url(key),
                    key=key,
                    product_id=product_id,
                    step_id=step_id,
                    sub_step_id=sub_step_id,
                    system_generated=True,
                    created_at=now,
                    updated_at=now,
                )
                await self._uow.file_record.add(record)

        logger.info(f"系统生成文件写入成功: {key} (ID: {record.id})")
        await self._invalidate(product_id)
        return record
