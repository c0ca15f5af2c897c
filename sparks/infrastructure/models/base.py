from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase

# 约束命名规则，与迁移脚本中的约束名保持一致，多列约束按全部列名拼接
# 例如 file_records 表上 (product_id, name) 的唯一约束为 uq_file_records_product_id_name
NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_N_name)s",
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s_%(column_0_N_name)s",
}


class Base(DeclarativeBase):
    """文件服务ORM模型基类"""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)
