import json
import logging
from typing import List, Optional

from sparks.domain.external.file_list_cache import FileListCache
from sparks.domain.models.file_record import FileRecord
from sparks.infrastructure.storage.redis import RedisClient, escape_glob

logger = logging.getLogger(__name__)


class RedisFileListCache(FileListCache):
    """基于Redis的文件列表缓存，键为 files:{product_id}:{step_id}:{sub_step_id}"""

    def __init__(
        self, redis_client: RedisClient, ttl_seconds: int = 300, prefix: str = "files"
    ) -> None:
        self._redis_client = redis_client
        self._ttl_seconds = ttl_seconds
        self._prefix = prefix

    def _key(
        self, product_id: str, step_id: Optional[int], sub_step_id: Optional[int]
    ) -> str:
        step = "all" if step_id is None else str(step_id)
        sub_step = "all" if sub_step_id is None else str(sub_step_id)
        return f"{self._prefix}:{product_id}:{step}:{sub_step}"

    async def get(
        self,
        product_id: str,
        step_id: Optional[int] = None,
        sub_step_id: Optional[int] = None,
    ) -> Optional[List[FileRecord]]:
        raw = await self._redis_client.client.get(
            self._key(product_id, step_id, sub_step_id)
        )
        if raw is None:
            return None
        return [FileRecord.model_validate(item) for item in json.loads(raw)]

    async def set(
        self,
        product_id: str,
        records: List[FileRecord],
        step_id: Optional[int] = None,
        sub_step_id: Optional[int] = None,
    ) -> None:
        payload = json.dumps([record.model_dump(mode="json") for record in records])
        await self._redis_client.client.set(
            self._key(product_id, step_id, sub_step_id),
            payload,
            ex=self._ttl_seconds,
        )

    async def invalidate_product(self, product_id: str) -> None:
        # 产品id中的通配字符按字面量匹配，避免误删其它产品的缓存
        pattern = f"{escape_glob(self._prefix)}:{escape_glob(product_id)}:*"
        deleted = await self._redis_client.delete_matching(pattern)
        if deleted:
            logger.info(f"已清除产品[{product_id}]的{deleted}个文件列表缓存")
