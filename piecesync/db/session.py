# piecesync/db/session.py
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from piecesync.config import config
from piecesync.logger import get_logger

logger = get_logger(__name__)

_engine = None
_SessionLocal = None


def build_engine(db_url: str) -> Engine:
    '''
    创建 engine。SQLite 需要手动发 BEGIN，否则 pysqlite 下 SAVEPOINT（begin_nested）不可靠
    '''
    if not db_url.startswith("sqlite"):
        return create_engine(db_url)

    engine = create_engine(
        db_url,
        connect_args={"check_same_thread": False}
    )

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        db_url = config.DATABASE_URL
        if not db_url:
            raise RuntimeError("DATABASE_URL not set")
        logger.info(f"Using database URL: {db_url}")
        _engine = build_engine(db_url)
    return _engine


def get_session() -> Session:
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=get_engine()
        )
    return _SessionLocal()
