import asyncio

import pytest

from sparks.domain.models.file_record import FileRecord, UploadState, build_object_key
from sparks.domain.models.local_file import LocalFile


def test_build_object_key_scopes_by_product() -> None:
    assert build_object_key("P1", "report.csv") == "P1/report.csv"
    assert build_object_key("P1", "a.txt") != build_object_key("P2", "a.txt")


def test_file_record_dumps_camel_case_aliases() -> None:
    record = FileRecord(name="a.txt", product_id="P1", step_id=2, system_generated=True)

    payload = record.model_dump(mode="json", by_alias=True)

    assert payload["productId"] == "P1"
    assert payload["stepId"] == 2
    assert payload["systemGenerated"] is True
    assert FileRecord.model_validate(payload).product_id == "P1"


def test_upload_state_terminal() -> None:
    assert UploadState.SUCCESS.is_terminal
    assert UploadState.SKIPPED.is_terminal
    assert not UploadState.UPLOADING.is_terminal


def test_local_file_requires_a_source() -> None:
    with pytest.raises(ValueError):
        LocalFile(name="a.txt")


def test_local_file_from_path_reads_chunks(tmp_path) -> None:
    path = tmp_path / "report.csv"
    path.write_bytes(b"a,b\n" * 1000)
    local_file = LocalFile.from_path(path)

    async def _read() -> bytes:
        return b"".join([chunk async for chunk in local_file.iter_chunks(chunk_size=1024)])

    assert local_file.content_type == "text/csv"
    assert local_file.size == 4000
    assert asyncio.run(_read()) == path.read_bytes()
