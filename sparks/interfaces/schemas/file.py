from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """请求/响应统一使用驼峰字段名"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UploadUrlRequest(CamelModel):
    """获取预签名上传地址请求结构"""

    file_name: str = Field(..., min_length=1)
    content_type: str = "application/octet-stream"
    product_id: str = Field(..., min_length=1)


class UploadUrlResponse(CamelModel):
    """预签名上传地址响应结构"""

    upload_url: str
    expires_in: int  # 有效期，单位为秒


class DuplicateCheckResponse(CamelModel):
    """重名检查响应结构"""

    is_duplicate: bool


class FileRecordIn(CamelModel):
    """上传完成后提交的文件记录，大小与地址以对象存储为准"""

    name: str = Field(..., min_length=1)
    size: int = Field(default=0, ge=0)
    content_type: str = "application/octet-stream"
    url: str = ""
    product_id: str = Field(..., min_length=1)
    step_id: Optional[int] = None
    sub_step_id: Optional[int] = None
    system_generated: bool = False
