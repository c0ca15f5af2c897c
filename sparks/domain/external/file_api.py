from typing import Callable, List, Optional, Protocol

from sparks.domain.models.file_record import FileRecord
from sparks.domain.models.local_file import LocalFile

ProgressCallback = Callable[[int, int], None]  # (已发送字节数, 总字节数)


class FileApiError(RuntimeError):
    """文件API调用失败(网络异常或非2xx响应)"""

    def __init__(self, msg: str, status_code: Optional[int] = None) -> None:
        self.msg = msg
        self.status_code = status_code
        super().__init__(msg)


class FileApi(Protocol):
    """客户端访问文件服务及对象存储的协议"""

    async def list_files(
        self,
        product_id: str,
        step_id: Optional[int] = None,
        sub_step_id: Optional[int] = None,
    ) -> List[FileRecord]:
        """获取产品下的文件记录列表"""
        ...

    async def check_duplicate(self, file_name: str, product_id: str) -> bool:
        """查询产品下是否已有同名文件，查询失败抛出FileApiError而不是返回False"""
        ...

    async def request_upload_url(
        self, file_name: str, content_type: str, product_id: str
    ) -> str:
        """申请预签名上传地址"""
        ...

    async def transfer(
        self,
        upload_url: str,
        local_file: LocalFile,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        """使用预签名地址直接将文件PUT到对象存储"""
        ...

    async def commit_record(self, record: FileRecord, replace: bool = False) -> FileRecord:
        """提交文件元数据，replace为True时更新已有记录"""
        ...

    async def delete_file(self, file_id: str) -> None:
        """删除文件记录及对象"""
        ...

    async def download_file(self, file_name: str, product_id: str) -> bytes:
        """下载文件内容"""
        ...
