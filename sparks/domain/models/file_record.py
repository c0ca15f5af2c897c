import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class FileRecord(BaseModel):
    """产品附件元数据Domain模型，记录用户上传or系统生成的文件"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))  # 记录id
    name: str  # 文件名，同一产品下唯一
    size: int = Field(default=0, ge=0)  # 文件大小，单位为字节
    content_type: str = "application/octet-stream"  # mime-type类型
    url: str = ""  # 对象存储访问地址(不含签名参数)
    key: str = ""  # 对象存储中的路径
    product_id: str  # 所属产品id
    step_id: Optional[int] = None  # 所属步骤
    sub_step_id: Optional[int] = None  # 所属子步骤
    system_generated: bool = False  # 是否为系统生成文件
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class ObjectMetadata(BaseModel):
    """对象存储中单个对象的元信息"""

    size: int
    content_type: str
    updated_at: Optional[datetime] = None


class UploadState(str, Enum):
    """单个文件上传状态"""

    PENDING = "pending"
    UPLOADING = "uploading"
    SUCCESS = "success"
    ERROR = "error"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in (UploadState.SUCCESS, UploadState.ERROR, UploadState.SKIPPED)


class DuplicateResolution(str, Enum):
    """重名文件的处理方式"""

    REPLACE = "replace"
    SKIP = "skip"


class FileUploadStatus(BaseModel):
    """上传队列中单个文件的状态快照"""

    index: int
    name: str
    size: int = 0
    state: UploadState = UploadState.PENDING
    progress: float = 0.0  # 0-100
    replaced: bool = False  # 是否为确认替换的重名上传
    record: Optional[FileRecord] = None
    error: Optional[str] = None


class DeleteOutcome(str, Enum):
    """删除操作的结果"""

    DELETED = "deleted"
    REJECTED = "rejected"  # 系统生成文件，拒绝删除
    CANCELLED = "cancelled"  # 用户未确认
    FAILED = "failed"


class DeleteResult(BaseModel):
    """删除操作的结果及提示信息"""

    outcome: DeleteOutcome
    msg: str = ""


def build_object_key(product_id: str, file_name: str) -> str:
    """按产品隔离对象存储路径，保证不同产品下的同名文件互不覆盖"""
    return f"{product_id}/{file_name}"
