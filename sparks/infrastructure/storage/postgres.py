import logging
from functools import lru_cache
from typing import Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from sparks.core.config import get_settings
from sparks.domain.repositories.uow import IUnitOfWork
from sparks.infrastructure.repositories.db_uow import DBUnitOfWork

logger = logging.getLogger(__name__)


class Postgres:
    """Postgres数据库客户端封装类，用于完成Postgres的连接和基本操作"""

    def __init__(self):
        """构造函数，完成Postgres数据库引擎,会话工厂的创建"""
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker] = None
        self._settings = get_settings()

    async def init(self) -> None:
        """初始化Postgres数据库连接"""
        # 1. 判断是否已经初始化
        if self._engine is not None:
            logger.warning("Postgres数据库客户端已初始化，跳过重复初始化。")
            return
        # 2. 创建数据库引擎
        try:
            logger.info("正在初始化Postgres数据库客户端...")
            self._engine = create_async_engine(
                self._settings.sqlalchemy_database_url,
                echo=self._settings.env == "development",
                pool_pre_ping=True,  # 每次从连接池获取连接前先检测连接是否有效
            )

            # 3. 创建会话工厂
            self._session_factory = async_sessionmaker(
                autocommit=False,  # 禁用自动提交
                autoflush=False,  # 禁用自动刷新
                expire_on_commit=False,
                bind=self._engine,
            )
            logger.info("Postgres数据库客户端初始化成功。")
        except Exception as e:
            logger.error(f"Postgres数据库客户端初始化失败: {e}")
            raise

    async def shutdown(self) -> None:
        """关闭Postgres数据库连接"""
        if self._engine:
            await self._engine.dispose()
            logger.info("Postgres数据库客户端连接已关闭.")
        else:
            logger.warning("Postgres数据库客户端未初始化，无法关闭连接.")
        self._engine = None
        self._session_factory = None

        get_postgres.cache_clear()

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        """获取Postgres数据库会话工厂

        Returns:
            async_sessionmaker[AsyncSession]: Postgres数据库会话工厂
        """
        if not self._session_factory:
            raise RuntimeError(
                "Postgres数据库客户端未初始化，请先调用init方法进行初始化。"
            )
        return self._session_factory


@lru_cache()
def get_postgres() -> Postgres:
    """获取Postgres实例"""
    return Postgres()


def get_session_factory():
    """获取数据库会话工厂"""
    db = get_postgres()
    return db.session_factory


def get_uow() -> IUnitOfWork:
    return DBUnitOfWork(session_factory=get_session_factory())
