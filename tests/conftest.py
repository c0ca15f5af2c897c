from datetime import datetime
from typing import Callable

import pytest

from sparks.domain.models.file_record import FileRecord, build_object_key


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def make_record() -> Callable[..., FileRecord]:
    """构造测试用文件记录"""

    def factory(name: str = "report.csv", product_id: str = "P1", **kwargs) -> FileRecord:
        kwargs.setdefault("key", build_object_key(product_id, name))
        kwargs.setdefault("created_at", datetime(2024, 1, 1, 8, 0, 0))
        kwargs.setdefault("updated_at", kwargs["created_at"])
        return FileRecord(name=name, product_id=product_id, **kwargs)

    return factory
