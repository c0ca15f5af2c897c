import logging
from typing import Any, AsyncIterator, List, Optional

import httpx

from sparks.domain.external.file_api import FileApi, FileApiError, ProgressCallback
from sparks.domain.models.file_record import FileRecord
from sparks.domain.models.local_file import LocalFile

logger = logging.getLogger(__name__)

COMMIT_FIELDS = {
    "name",
    "size",
    "content_type",
    "url",
    "product_id",
    "step_id",
    "sub_step_id",
    "system_generated",
}


class HttpFileApi(FileApi):
    """基于httpx的文件服务客户端，同时负责向预签名地址直传文件"""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )
        # 预签名地址自带签名，不能再携带Authorization头
        self._storage_client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()
        await self._storage_client.aclose()

    async def __aenter__(self) -> "HttpFileApi":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        """调用文件服务接口并解析统一响应结构中的data"""
        try:
            resp = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise FileApiError(f"文件服务不可用: {e}") from e

        if resp.is_error:
            msg = resp.text
            try:
                msg = resp.json().get("msg") or msg
            except (ValueError, AttributeError):
                pass
            logger.error(f"文件服务请求失败: {method} {url} -> {resp.status_code} {msg}")
            raise FileApiError(
                f"文件服务错误 {resp.status_code}: {msg}", status_code=resp.status_code
            )

        try:
            return resp.json().get("data")
        except ValueError as e:
            raise FileApiError(f"文件服务响应解析失败: {e}") from e

    async def list_files(
        self,
        product_id: str,
        step_id: Optional[int] = None,
        sub_step_id: Optional[int] = None,
    ) -> List[FileRecord]:
        params: dict[str, Any] = {"productId": product_id}
        if step_id is not None:
            params["stepId"] = step_id
        if sub_step_id is not None:
            params["subStepId"] = sub_step_id
        data = await self._request("GET", "/files", params=params)
        return [FileRecord.model_validate(item) for item in data or []]

    async def check_duplicate(self, file_name: str, product_id: str) -> bool:
        data = await self._request(
            "GET",
            "/files/check-duplicate",
            params={"fileName": file_name, "productId": product_id},
        )
        if not isinstance(data, dict) or "isDuplicate" not in data:
            raise FileApiError("重名检查响应缺少isDuplicate字段")
        return bool(data["isDuplicate"])

    async def request_upload_url(
        self, file_name: str, content_type: str, product_id: str
    ) -> str:
        data = await self._request(
            "POST",
            "/files/pre-signed",
            json={
                "fileName": file_name,
                "contentType": content_type,
                "productId": product_id,
            },
        )
        if not isinstance(data, dict) or not data.get("uploadUrl"):
            raise FileApiError("预签名响应缺少uploadUrl字段")
        return data["uploadUrl"]

    async def transfer(
        self,
        upload_url: str,
        local_file: LocalFile,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        """流式PUT文件内容，每发送一块汇报一次进度"""
        total = local_file.size

        async def _body() -> AsyncIterator[bytes]:
            sent = 0
            async for chunk in local_file.iter_chunks():
                yield chunk
                sent += len(chunk)
                if on_progress:
                    on_progress(sent, total)

        try:
            resp = await self._storage_client.put(
                upload_url,
                content=_body(),
                headers={
                    "Content-Type": local_file.content_type or "application/octet-stream",
                    "Content-Length": str(total),
                },
            )
        except httpx.HTTPError as e:
            raise FileApiError(f"上传到对象存储失败: {e}") from e

        if not resp.is_success:
            # 预签名地址过期时对象存储同样返回403
            raise FileApiError(
                f"对象存储拒绝上传 {resp.status_code}: {resp.text[:200]}",
                status_code=resp.status_code,
            )
        if total == 0 and on_progress:
            on_progress(0, 0)

    async def commit_record(self, record: FileRecord, replace: bool = False) -> FileRecord:
        payload = record.model_dump(mode="json", by_alias=True, include=COMMIT_FIELDS)
        data = await self._request("PUT" if replace else "POST", "/files", json=payload)
        return FileRecord.model_validate(data)

    async def delete_file(self, file_id: str) -> None:
        await self._request("DELETE", f"/files/{file_id}")

    async def download_file(self, file_name: str, product_id: str) -> bytes:
        try:
            resp = await self._client.get(
                "/files/download",
                params={"fileName": file_name, "productId": product_id},
            )
        except httpx.HTTPError as e:
            raise FileApiError(f"文件服务不可用: {e}") from e
        if resp.is_error:
            raise FileApiError(
                f"下载文件失败 {resp.status_code}", status_code=resp.status_code
            )
        return resp.content
