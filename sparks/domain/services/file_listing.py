"""文件列表视图：按文件名搜索过滤 + 按列排序

视图只由输入决定(记录列表、排序列、排序方向、搜索词)，不保存任何隐藏状态。
排序规则：
- 字符串列按归一化后的字典序比较(NFKD + casefold，原串作为次序键)
- createdAt/updatedAt 按时间点比较，ISO字符串会先解析
- 数值列按数值比较
- 值为None的记录在升序时排在最后，降序时排在最前
"""

import unicodedata
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, List, Tuple

from pydantic import BaseModel

from sparks.domain.models.file_record import FileRecord

TIMESTAMP_COLUMNS = frozenset({"created_at", "updated_at"})


class SortDirection(str, Enum):
    """排序方向"""

    ASC = "asc"
    DESC = "desc"

    def flipped(self) -> "SortDirection":
        return SortDirection.DESC if self is SortDirection.ASC else SortDirection.ASC


class SortState(BaseModel):
    """当前排序列及方向"""

    column: str = "name"
    direction: SortDirection = SortDirection.ASC

    def toggle(self, column: str) -> "SortState":
        """点击同一列翻转方向，点击新列重置为升序"""
        if resolve_column(column) == resolve_column(self.column):
            return SortState(column=self.column, direction=self.direction.flipped())
        return SortState(column=column, direction=SortDirection.ASC)


def resolve_column(column: str) -> str:
    """将列名(字段名或camelCase别名)解析为FileRecord字段名"""
    fields = FileRecord.model_fields
    if column in fields:
        return column
    for name, field in fields.items():
        if field.alias == column:
            return name
    raise ValueError(f"不支持的排序列: {column}")


def _to_instant(value: Any) -> float:
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return value.timestamp()


def _sort_key(field: str, value: Any) -> Tuple[int, Any]:
    if field in TIMESTAMP_COLUMNS:
        return 0, _to_instant(value)
    if isinstance(value, (bool, int, float)):
        return 0, value
    if isinstance(value, datetime):
        return 0, value.timestamp()
    text = str(value)
    return 1, (unicodedata.normalize("NFKD", text).casefold(), text)


def sort_records(
    records: Iterable[FileRecord],
    column: str = "name",
    direction: SortDirection | str = SortDirection.ASC,
) -> List[FileRecord]:
    """按列排序，稳定且幂等"""
    field = resolve_column(column)
    direction = SortDirection(direction)

    # 1.先把缺失值拆出来，显式决定其位置
    defined: List[FileRecord] = []
    undefined: List[FileRecord] = []
    for record in records:
        if getattr(record, field) is None:
            undefined.append(record)
        else:
            defined.append(record)

    # 2.对有值的记录排序(sorted在reverse时同样保持稳定)
    ordered = sorted(
        defined,
        key=lambda record: _sort_key(field, getattr(record, field)),
        reverse=direction is SortDirection.DESC,
    )

    if direction is SortDirection.ASC:
        return ordered + undefined
    return undefined + ordered


def filter_by_name(records: Iterable[FileRecord], search_term: str = "") -> List[FileRecord]:
    """按文件名做大小写不敏感的子串过滤，空搜索词返回全部"""
    term = (search_term or "").casefold()
    return [record for record in records if term in record.name.casefold()]


def build_file_view(
    records: Iterable[FileRecord],
    search_term: str = "",
    sort_state: SortState | None = None,
) -> List[FileRecord]:
    """先过滤再排序，生成文件列表的展示视图"""
    sort_state = sort_state or SortState()
    return sort_records(
        filter_by_name(records, search_term),
        column=sort_state.column,
        direction=sort_state.direction,
    )
