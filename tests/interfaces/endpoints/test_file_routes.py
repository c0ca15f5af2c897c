from __future__ import annotations

from typing import List, Optional

import httpx
import pytest

from sparks.application.errors.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
)
from sparks.application.services.file_service import FileService
from sparks.domain.models.file_record import FileRecord
from sparks.domain.models.principal import Principal
from sparks.interfaces.dependencies.auth import get_current_principal
from sparks.interfaces.service_dependencies import get_file_service
from sparks.main import app

pytestmark = pytest.mark.anyio


class _FakeFileService:
    upload_url_expiry_minutes = 15

    def __init__(self, records: Optional[List[FileRecord]] = None) -> None:
        self.records = {r.id: r for r in records or []}
        self.deleted: List[str] = []

    def _by_name(self, product_id: str, name: str) -> Optional[FileRecord]:
        for record in self.records.values():
            if record.product_id == product_id and record.name == name:
                return record
        return None

    async def list_files(self, product_id, step_id=None, sub_step_id=None):
        return [r for r in self.records.values() if r.product_id == product_id]

    async def check_duplicate(self, file_name: str, product_id: str) -> bool:
        return self._by_name(product_id, file_name) is not None

    async def create_upload_url(self, file_name, content_type, product_id) -> str:
        return f"https://s3.test/bucket/{product_id}/{file_name}?X-Amz-Signature=abc"

    async def create_record(self, record: FileRecord) -> FileRecord:
        if self._by_name(record.product_id, record.name):
            raise ConflictError(f"该产品下已存在同名文件: {record.name}")
        self.records[record.id] = record
        return record

    async def replace_record(self, record: FileRecord) -> FileRecord:
        existing = self._by_name(record.product_id, record.name)
        if not existing:
            raise NotFoundError("该文件记录不存在")
        if existing.system_generated:
            raise ForbiddenError("系统生成的文件不能被替换")
        updated = existing.model_copy(update={"size": record.size})
        self.records[updated.id] = updated
        return updated

    async def download_file(self, file_name: str, product_id: str):
        record = self._by_name(product_id, file_name)
        if not record:
            raise NotFoundError("该文件不存在")
        return b"hello", record

    async def delete_file(self, file_id: str) -> None:
        record = self.records.get(file_id)
        if not record:
            raise NotFoundError("该文件不存在")
        if record.system_generated:
            raise ForbiddenError("系统生成的文件不能删除")
        self.deleted.append(file_id)
        del self.records[file_id]


async def _request(
    method: str,
    url: str,
    *,
    fake_service: _FakeFileService | FileService,
    **kwargs,
) -> httpx.Response:
    app.dependency_overrides[get_current_principal] = lambda: Principal(id="u1")
    app.dependency_overrides[get_file_service] = lambda: fake_service
    try:
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            return await client.request(method, url, **kwargs)
    finally:
        app.dependency_overrides.pop(get_current_principal, None)
        app.dependency_overrides.pop(get_file_service, None)


async def test_list_files_returns_camel_case_records(make_record) -> None:
    service = _FakeFileService([make_record("a.txt", step_id=1)])

    response = await _request("GET", "/api/files", params={"productId": "P1"}, fake_service=service)
    body = response.json()

    assert response.status_code == 200
    assert body["code"] == 200
    assert body["data"][0]["productId"] == "P1"
    assert body["data"][0]["systemGenerated"] is False


async def test_list_files_requires_product_id() -> None:
    response = await _request("GET", "/api/files", fake_service=_FakeFileService())

    assert response.status_code == 422
    assert response.json()["code"] == 422


async def test_check_duplicate(make_record) -> None:
    service = _FakeFileService([make_record("a.txt")])

    response = await _request(
        "GET",
        "/api/files/check-duplicate",
        params={"fileName": "a.txt", "productId": "P1"},
        fake_service=service,
    )

    assert response.json()["data"] == {"isDuplicate": True}


async def test_pre_signed_returns_url_and_expiry() -> None:
    response = await _request(
        "POST",
        "/api/files/pre-signed",
        json={"fileName": "report.csv", "contentType": "text/csv", "productId": "P1"},
        fake_service=_FakeFileService(),
    )
    data = response.json()["data"]

    assert response.status_code == 200
    assert data["uploadUrl"].startswith("https://s3.test/bucket/P1/report.csv?")
    assert data["expiresIn"] == 900


async def test_create_record_conflict_is_409(make_record) -> None:
    service = _FakeFileService([make_record("a.txt")])

    response = await _request(
        "POST",
        "/api/files",
        json={"name": "a.txt", "productId": "P1", "size": 3},
        fake_service=service,
    )

    assert response.status_code == 409
    assert response.json()["code"] == 409


async def test_create_record_success() -> None:
    service = _FakeFileService()

    response = await _request(
        "POST",
        "/api/files",
        json={"name": "a.txt", "productId": "P1", "size": 3, "stepId": 4},
        fake_service=service,
    )

    assert response.status_code == 200
    assert response.json()["data"]["stepId"] == 4
    assert len(service.records) == 1


async def test_replace_system_generated_is_403(make_record) -> None:
    service = _FakeFileService([make_record("a.txt", system_generated=True)])

    response = await _request(
        "PUT",
        "/api/files",
        json={"name": "a.txt", "productId": "P1", "size": 3},
        fake_service=service,
    )

    assert response.status_code == 403


async def test_delete_system_generated_is_403(make_record) -> None:
    record = make_record("summary.pdf", system_generated=True)
    service = _FakeFileService([record])

    response = await _request("DELETE", f"/api/files/{record.id}", fake_service=service)

    assert response.status_code == 403
    assert service.deleted == []


async def test_delete_missing_is_404() -> None:
    response = await _request("DELETE", "/api/files/nope", fake_service=_FakeFileService())

    assert response.status_code == 404


async def test_download_streams_with_encoded_filename(make_record) -> None:
    service = _FakeFileService([make_record("报告.csv", content_type="text/csv")])

    response = await _request(
        "GET",
        "/api/files/download",
        params={"fileName": "报告.csv", "productId": "P1"},
        fake_service=service,
    )

    assert response.status_code == 200
    assert response.content == b"hello"
    assert "filename*=utf-8''%E6%8A%A5%E5%91%8A.csv" in response.headers["content-disposition"]


class _NameLookupRepo:
    def __init__(self, records: List[FileRecord]) -> None:
        self.records = records

    async def get_by_name(self, product_id: str, name: str) -> Optional[FileRecord]:
        for record in self.records:
            if record.product_id == product_id and record.name == name:
                return record
        return None


class _NameLookupUnitOfWork:
    def __init__(self, records: List[FileRecord]) -> None:
        self.file_record = _NameLookupRepo(records)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None


class _SigningStorage:
    def __init__(self) -> None:
        self.signed: List[str] = []

    async def request_upload_url(self, key, content_type, ttl_minutes=15) -> str:
        self.signed.append(key)
        return f"https://s3.test/bucket/{key}?X-Amz-Signature=abc"


async def test_pre_signed_refused_for_system_generated_file(make_record) -> None:
    storage = _SigningStorage()
    service = FileService(
        uow_factory=lambda: _NameLookupUnitOfWork([make_record("report.csv", system_generated=True)]),
        object_storage=storage,
    )

    response = await _request(
        "POST",
        "/api/files/pre-signed",
        json={"fileName": "report.csv", "contentType": "text/csv", "productId": "P1"},
        fake_service=service,
    )

    assert response.status_code == 403
    assert response.json()["code"] == 403
    assert storage.signed == []
