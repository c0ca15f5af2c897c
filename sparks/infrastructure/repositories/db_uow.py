import asyncio
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sparks.domain.repositories.uow import IUnitOfWork

from .db_file_record_repository import DBFileRecordRepository

logger = logging.getLogger(__name__)


class DBUnitOfWork(IUnitOfWork):
    """基于Postgres数据库的UoW实例"""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        """构造函数，完成UoW类初始化"""
        self.session_factory = session_factory
        self.db_session: Optional[AsyncSession] = None

    async def commit(self):
        """提交数据库持久化"""
        await self.db_session.commit()

    async def rollback(self):
        """数据库回退操作"""
        await self.db_session.rollback()

    async def __aenter__(self) -> "DBUnitOfWork":
        """进入UoW操作上下文管理器的逻辑"""
        # 1.为每个上下文开启一个新的会话
        self.db_session = self.session_factory()

        # 2.初始化所有数据库仓库
        self.file_record = DBFileRecordRepository(db_session=self.db_session)

        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """退出上下文时执行的逻辑，如果出现异常则回滚，否则提交

        提交失败需要继续向上抛出，否则元数据写入失败会被调用方误认为成功。
        """
        try:
            if exc_type:
                await self.rollback()
            else:
                await self.commit()
        except asyncio.CancelledError:
            logger.warning("UoW提交/回滚操作被取消(可能是客户端断开连接)")
            raise
        except Exception as e:
            logger.error(f"UoW提交/回滚操作失败: {e}")
            if not exc_type:
                raise
        finally:
            try:
                await self.db_session.close()
            except Exception as e:
                logger.warning(f"UoW关闭数据库会话失败: {e}")
