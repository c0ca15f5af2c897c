import asyncio
from datetime import datetime
from typing import Dict, List, Optional

import pytest

from sparks.application.errors.exceptions import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ServerRequestsError,
)
from sparks.application.services.file_service import FileService
from sparks.domain.models.file_record import FileRecord, ObjectMetadata
from sparks.domain.repositories.file_record_repository import FileRecordConflictError


class FakeFileRecordRepo:
    def __init__(self, records: Optional[List[FileRecord]] = None) -> None:
        self.records: Dict[str, FileRecord] = {r.id: r for r in records or []}
        self.fail_delete = False

    async def add(self, record: FileRecord) -> FileRecord:
        if await self.get_by_name(record.product_id, record.name):
            raise FileRecordConflictError(record.name)
        self.records[record.id] = record
        return record

    async def update(self, record: FileRecord) -> FileRecord:
        self.records[record.id] = record
        return record

    async def get_by_id(self, record_id: str) -> Optional[FileRecord]:
        return self.records.get(record_id)

    async def get_by_name(self, product_id: str, name: str) -> Optional[FileRecord]:
        for record in self.records.values():
            if record.product_id == product_id and record.name == name:
                return record
        return None

    async def list_by_product(self, product_id, step_id=None, sub_step_id=None):
        return [
            r
            for r in self.records.values()
            if r.product_id == product_id
            and (step_id is None or r.step_id == step_id)
            and (sub_step_id is None or r.sub_step_id == sub_step_id)
        ]

    async def list_all(self) -> List[FileRecord]:
        return list(self.records.values())

    async def delete(self, record_id: str) -> None:
        if self.fail_delete:
            raise RuntimeError("db down")
        self.records.pop(record_id, None)


class FakeUnitOfWork:
    def __init__(self, repo: FakeFileRecordRepo) -> None:
        self.file_record = repo

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None


class FakeObjectStorage:
    def __init__(self) -> None:
        self.objects: Dict[str, tuple[bytes, str]] = {}
        self.deleted: List[str] = []
        self.fail_delete = False

    async def request_upload_url(self, key, content_type, ttl_minutes=15):
        return f"https://s3.test/bucket/{key}?X-Amz-Expires={ttl_minutes * 60}"

    def public_url(self, key: str) -> str:
        return f"https://s3.test/bucket/{key}"

    async def get(self, key: str) -> bytes:
        if key not in self.objects:
            raise FileNotFoundError(key)
        return self.objects[key][0]

    async def put(self, key, data, content_type="application/octet-stream"):
        self.objects[key] = (data, content_type)

    async def delete(self, key: str) -> None:
        if self.fail_delete:
            raise RuntimeError("storage down")
        self.deleted.append(key)
        self.objects.pop(key, None)

    async def list(self, prefix: str = "") -> List[str]:
        return [k for k in self.objects if k.startswith(prefix)]

    async def exists(self, key: str) -> bool:
        return key in self.objects

    async def stat_metadata(self, key: str) -> ObjectMetadata:
        if key not in self.objects:
            raise FileNotFoundError(key)
        data, content_type = self.objects[key]
        return ObjectMetadata(size=len(data), content_type=content_type)


class FakeCache:
    def __init__(self) -> None:
        self.entries: dict = {}
        self.invalidated: List[str] = []

    async def get(self, product_id, step_id=None, sub_step_id=None):
        return self.entries.get((product_id, step_id, sub_step_id))

    async def set(self, product_id, records, step_id=None, sub_step_id=None):
        self.entries[(product_id, step_id, sub_step_id)] = records

    async def invalidate_product(self, product_id: str) -> None:
        self.invalidated.append(product_id)
        self.entries = {k: v for k, v in self.entries.items() if k[0] != product_id}


def _service(records=None):
    repo = FakeFileRecordRepo(records)
    storage = FakeObjectStorage()
    cache = FakeCache()
    service = FileService(
        uow_factory=lambda: FakeUnitOfWork(repo),
        object_storage=storage,
        file_list_cache=cache,
    )
    return service, repo, storage, cache


def test_create_record_uses_storage_size_and_forces_user_upload(make_record) -> None:
    service, repo, storage, cache = _service()
    storage.objects["P1/report.csv"] = (b"x" * 2_000_000, "text/csv")

    record = asyncio.run(
        service.create_record(
            FileRecord(name="report.csv", product_id="P1", size=1, system_generated=True)
        )
    )

    assert record.size == 2_000_000
    assert record.system_generated is False
    assert record.key == "P1/report.csv"
    assert record.url == "https://s3.test/bucket/P1/report.csv"
    assert repo.records[record.id] == record
    assert cache.invalidated == ["P1"]


def test_create_record_rejects_missing_object() -> None:
    service, repo, _, _ = _service()

    with pytest.raises(BadRequestError):
        asyncio.run(service.create_record(FileRecord(name="a.txt", product_id="P1")))
    assert repo.records == {}


def test_create_record_conflict_returns_409(make_record) -> None:
    service, repo, storage, _ = _service([make_record("a.txt")])
    storage.objects["P1/a.txt"] = (b"abc", "text/plain")

    with pytest.raises(ConflictError):
        asyncio.run(service.create_record(FileRecord(name="a.txt", product_id="P1")))
    assert len(repo.records) == 1


def test_check_duplicate_is_scoped_by_product(make_record) -> None:
    service, _, _, _ = _service([make_record("a.txt", product_id="P1")])

    assert asyncio.run(service.check_duplicate("a.txt", "P1")) is True
    assert asyncio.run(service.check_duplicate("a.txt", "P2")) is False


def test_check_duplicate_rejects_empty_name() -> None:
    service, _, _, _ = _service()

    with pytest.raises(BadRequestError):
        asyncio.run(service.check_duplicate("  ", "P1"))


def test_create_upload_url_uses_product_scoped_key() -> None:
    service, _, _, _ = _service()

    url = asyncio.run(service.create_upload_url("report.csv", "text/csv", "P1"))

    assert url.startswith("https://s3.test/bucket/P1/report.csv?")
    assert "X-Amz-Expires=900" in url


def test_create_upload_url_refuses_system_generated_file(make_record) -> None:
    record = make_record("report.csv", system_generated=True, size=4)
    service, repo, storage, _ = _service([record])
    storage.objects[record.key] = (b"sys!", "text/csv")

    with pytest.raises(ForbiddenError):
        asyncio.run(service.create_upload_url("report.csv", "text/csv", "P1"))

    assert storage.objects[record.key] == (b"sys!", "text/csv")
    assert repo.records[record.id].size == 4


def test_create_upload_url_allows_replacing_user_file(make_record) -> None:
    service, _, _, _ = _service([make_record("report.csv")])

    url = asyncio.run(service.create_upload_url("report.csv", "text/csv", "P1"))

    assert url.startswith("https://s3.test/bucket/P1/report.csv?")


def test_replace_record_keeps_identity(make_record) -> None:
    existing = make_record("a.txt", size=3)
    service, repo, storage, cache = _service([existing])
    storage.objects["P1/a.txt"] = (b"abcdef", "text/plain")

    updated = asyncio.run(service.replace_record(FileRecord(name="a.txt", product_id="P1")))

    assert updated.id == existing.id
    assert updated.created_at == existing.created_at
    assert updated.size == 6
    assert updated.updated_at > existing.updated_at
    assert repo.records[existing.id].size == 6
    assert cache.invalidated == ["P1"]


def test_replace_record_missing_returns_404() -> None:
    service, _, _, _ = _service()

    with pytest.raises(NotFoundError):
        asyncio.run(service.replace_record(FileRecord(name="a.txt", product_id="P1")))


def test_replace_system_generated_is_forbidden(make_record) -> None:
    service, repo, storage, _ = _service([make_record("a.txt", system_generated=True, size=3)])
    storage.objects["P1/a.txt"] = (b"abcdef", "text/plain")

    with pytest.raises(ForbiddenError):
        asyncio.run(service.replace_record(FileRecord(name="a.txt", product_id="P1")))
    assert next(iter(repo.records.values())).size == 3


def test_delete_system_generated_mutates_nothing(make_record) -> None:
    record = make_record("summary.pdf", system_generated=True)
    service, repo, storage, cache = _service([record])
    storage.objects[record.key] = (b"pdf", "application/pdf")

    with pytest.raises(ForbiddenError):
        asyncio.run(service.delete_file(record.id))

    assert record.id in repo.records
    assert record.key in storage.objects
    assert storage.deleted == []
    assert cache.invalidated == []


def test_delete_missing_returns_404() -> None:
    service, _, _, _ = _service()

    with pytest.raises(NotFoundError):
        asyncio.run(service.delete_file("nope"))


def test_delete_removes_object_then_record(make_record) -> None:
    record = make_record("a.txt")
    service, repo, storage, cache = _service([record])
    storage.objects[record.key] = (b"abc", "text/plain")

    asyncio.run(service.delete_file(record.id))

    assert storage.deleted == [record.key]
    assert repo.records == {}
    assert cache.invalidated == ["P1"]


def test_delete_keeps_record_when_storage_fails(make_record) -> None:
    record = make_record("a.txt")
    service, repo, storage, _ = _service([record])
    storage.fail_delete = True

    with pytest.raises(ServerRequestsError):
        asyncio.run(service.delete_file(record.id))
    assert record.id in repo.records


def test_delete_reports_metadata_failure(make_record) -> None:
    record = make_record("a.txt")
    service, repo, storage, _ = _service([record])
    repo.fail_delete = True

    with pytest.raises(ServerRequestsError):
        asyncio.run(service.delete_file(record.id))
    assert storage.deleted == [record.key]


def test_list_files_reads_through_cache(make_record) -> None:
    service, repo, _, cache = _service([make_record("a.txt", step_id=1), make_record("b.txt", step_id=2)])

    first = asyncio.run(service.list_files("P1", step_id=1))
    repo.records.clear()
    second = asyncio.run(service.list_files("P1", step_id=1))

    assert [r.name for r in first] == ["a.txt"]
    assert second == first


def test_download_file_returns_content(make_record) -> None:
    record = make_record("a.txt", content_type="text/plain")
    service, _, storage, _ = _service([record])
    storage.objects[record.key] = (b"hello", "text/plain")

    content, found = asyncio.run(service.download_file("a.txt", "P1"))

    assert content == b"hello"
    assert found.id == record.id


def test_download_missing_object_returns_404(make_record) -> None:
    service, _, _, _ = _service([make_record("a.txt")])

    with pytest.raises(NotFoundError):
        asyncio.run(service.download_file("a.txt", "P1"))


def test_create_system_file_then_user_cannot_delete() -> None:
    service, repo, storage, _ = _service()

    record = asyncio.run(
        service.create_system_file("P1", "summary.pdf", b"%PDF", content_type="application/pdf")
    )

    assert record.system_generated is True
    assert storage.objects["P1/summary.pdf"] == (b"%PDF", "application/pdf")
    with pytest.raises(ForbiddenError):
        asyncio.run(service.delete_file(record.id))


def test_create_system_file_overwrites_existing_record(make_record) -> None:
    existing = make_record("summary.pdf", created_at=datetime(2024, 1, 1))
    service, repo, _, _ = _service([existing])

    record = asyncio.run(service.create_system_file("P1", "summary.pdf", b"new"))

    assert record.id == existing.id
    assert record.size == 3
    assert record.system_generated is True
    assert len(repo.records) == 1
