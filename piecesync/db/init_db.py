from piecesync.db.session import get_engine
from piecesync.db.base import Base


def init_db(engine=None):
    # 导入所有表，保证 metadata 完整
    import piecesync.models.project  # noqa: F401
    import piecesync.models.client  # noqa: F401
    import piecesync.models.piece_group  # noqa: F401
    import piecesync.models.piece_status  # noqa: F401
    import piecesync.models.audit_log  # noqa: F401

    Base.metadata.create_all(bind=engine or get_engine())
