"""
数据库自动初始化检查模块
在应用启动时检查表是否存在，不存在则建表
"""
from sqlalchemy import inspect
from piecesync.db.session import get_engine
from piecesync.db.init_db import init_db
from piecesync.logger import get_logger

logger = get_logger(__name__)

REQUIRED_TABLES = {"projects", "clients", "piece_groups", "piece_status", "audit_logs"}


def check_tables_exist(engine=None) -> bool:
    """检查数据库表是否存在"""
    inspector = inspect(engine or get_engine())
    tables = set(inspector.get_table_names())
    return REQUIRED_TABLES.issubset(tables)


def auto_init(engine=None) -> None:
    """
    自动初始化检查
    如果数据库未初始化，自动建表
    """
    logger.info("检查数据库初始化状态...")

    if check_tables_exist(engine):
        logger.info("数据库表已存在")
        return

    logger.info("数据库表不存在，正在创建...")
    try:
        init_db(engine)
    except Exception:
        logger.exception("数据库表创建失败")
        raise
    logger.info("数据库表创建成功")


if __name__ == "__main__":
    auto_init()
