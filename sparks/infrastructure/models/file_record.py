import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Integer,
    PrimaryKeyConstraint,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from ...domain.models.file_record import FileRecord
from .base import Base


class FileRecordModel(Base):
    """产品附件元数据ORM模型"""

    __tablename__ = "file_records"
    __table_args__ = (
        PrimaryKeyConstraint("id", name="pk_file_records_id"),
        UniqueConstraint("product_id", "name", name="uq_file_records_product_id_name"),
    )

    id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )  # 记录id
    name: Mapped[str] = mapped_column(String(255), nullable=False)  # 文件名
    size: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        server_default=text("0"),
    )  # 文件大小
    content_type: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        server_default=text("'application/octet-stream'"),
    )  # 文件mime-type类型
    url: Mapped[str] = mapped_column(
        String(1024),
        nullable=False,
        server_default=text("''"),
    )  # 文件访问地址
    key: Mapped[str] = mapped_column(
        String(1024),
        nullable=False,
        server_default=text("''"),
    )  # minio存储路径
    product_id: Mapped[str] = mapped_column(
        String(255), nullable=False, index=True
    )  # 所属产品
    step_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    sub_step_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    system_generated: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("false"),
    )  # 是否为系统生成文件
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        onupdate=datetime.now,
        server_default=text("CURRENT_TIMESTAMP(0)"),
    )  # 更新时间
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP(0)"),
    )  # 创建时间

    @classmethod
    def from_domain(cls, record: FileRecord) -> "FileRecordModel":
        """从领域模型创建ORM模型"""
        return cls(**record.model_dump())

    def to_domain(self) -> FileRecord:
        """将ORM模型转换为领域模型"""
        return FileRecord.model_validate(self, from_attributes=True)

    def update_from_domain(self, record: FileRecord) -> None:
        """从领域模型更新数据"""
        for field, value in record.model_dump(exclude={"id", "created_at"}).items():
            setattr(self, field, value)
