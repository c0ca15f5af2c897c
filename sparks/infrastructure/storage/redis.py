import logging
from functools import lru_cache
from typing import Optional

from redis.asyncio import Redis

from sparks.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

# SCAN MATCH的通配字符，用字符集写法转义，Redis与fnmatch都按字面量处理
_GLOB_ESCAPES = {"*": "[*]", "?": "[?]", "[": "[[]", "\\": "[\\\\]"}


def escape_glob(value: str) -> str:
    """转义键片段中的通配字符，使其在SCAN MATCH中只匹配自身"""
    return "".join(_GLOB_ESCAPES.get(ch, ch) for ch in value)


class RedisClient:
    """文件列表缓存使用的Redis客户端，负责连接管理与按模式批量删除键"""

    def __init__(
        self, settings: Optional[Settings] = None, client: Optional[Redis] = None
    ) -> None:
        self._settings: Settings = settings or get_settings()
        self._client: Redis | None = client

    async def init(self) -> None:
        """建立Redis连接并确认服务可用"""
        if self._client:
            logger.warning("Redis客户端已初始化，跳过重复初始化")
            return

        settings = self._settings
        try:
            self._client = Redis(
                host=settings.redis_host,
                port=settings.redis_port,
                db=settings.redis_db,
                password=settings.redis_password,
                socket_timeout=settings.redis_socket_timeout_seconds,
                socket_connect_timeout=settings.redis_socket_timeout_seconds,
                decode_responses=True,
            )
            await self._client.ping()
            logger.info(
                f"Redis客户端初始化成功: {settings.redis_host}:{settings.redis_port}/{settings.redis_db}"
            )
        except Exception as e:
            logger.error(f"Redis客户端初始化失败: {e}")
            self._client = None
            raise

    async def shutdown(self) -> None:
        """关闭Redis连接"""
        if self._client:
            await self._client.aclose()
            logger.info("Redis客户端连接已关闭")
        else:
            logger.warning("Redis客户端未初始化，无需关闭")
        self._client = None

        get_redis.cache_clear()

    @property
    def client(self) -> Redis:
        if not self._client:
            raise RuntimeError("Redis客户端未初始化，请先调用init方法进行初始化")
        return self._client

    async def delete_matching(self, pattern: str, batch_size: int = 500) -> int:
        """用SCAN遍历匹配pattern的键并分批删除，返回删除的键数量

        pattern中来自业务数据的片段需要先经过escape_glob转义。
        """
        deleted = 0
        batch: list[str] = []
        async for key in self.client.scan_iter(match=pattern, count=batch_size):
            batch.append(key)
            if len(batch) >= batch_size:
                deleted += await self.client.delete(*batch)
                batch = []
        if batch:
            deleted += await self.client.delete(*batch)
        return deleted


@lru_cache()
def get_redis() -> RedisClient:
    """获取Redis客户端单例"""
    return RedisClient()
