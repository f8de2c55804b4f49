# piecesync/tests/conftest.py
import os
import tempfile
from xml.sax.saxutils import quoteattr, escape

import pytest

# 日志写到临时目录，必须在导入 piecesync 之前设置
os.environ.setdefault("PIECESYNC_LOG_DIR", os.path.join(tempfile.gettempdir(), "piecesync-test-logs"))

from sqlalchemy.orm import sessionmaker  # noqa: E402

from piecesync.db.init_db import init_db  # noqa: E402
from piecesync.db.session import build_engine  # noqa: E402
from piecesync.services.audit_log_service import AuditLogService  # noqa: E402
from piecesync.services.piece_store import PieceStore  # noqa: E402

_FIELD_TAGS = {
    "name": "NOMEPECA",
    "piece_type": "TIPOPRODUTO",
    "quantity": "QUANTIDADE",
    "section": "SECAO",
    "length": "COMPRIMENTO",
    "weight": "PESO",
    "unit_volume": "VOLUMEUNITARIO",
    "material_class": "CLASSECONCRETO",
}


def build_detailing_xml(
    pieces,
    *,
    obra="OB-1",
    name="Bldg A",
    cliente="Acme",
    projetista="Eng. Silva",
    encoding="ISO-8859-1",
) -> bytes:
    '''
    生成 <DETALHAMENTOTEKLA> 详图文件
    pieces: [{"name": "P1", "quantity": "3", "ids": ["A1", "A2"], ...}]，数值用字符串原样写入
    header 中传 None 的属性不写出
    '''
    attrs = []
    for key, value in (("obra", obra), ("name", name), ("cliente", cliente), ("projetista", projetista)):
        if value is not None:
            attrs.append(f"{key}={quoteattr(value)}")

    lines = [f'<?xml version="1.0" encoding="{encoding}"?>', f"<DETALHAMENTOTEKLA {' '.join(attrs)}>"]
    for piece in pieces:
        lines.append("  <PECA>")
        for field, tag in _FIELD_TAGS.items():
            if field in piece:
                lines.append(f"    <{tag}>{escape(str(piece[field]))}</{tag}>")
        if piece.get("ids"):
            lines.append("    <LISTAID>")
            for piece_id in piece["ids"]:
                lines.append(f"      <ID>{escape(piece_id)}</ID>")
            lines.append("    </LISTAID>")
        lines.append("  </PECA>")
    lines.append("</DETALHAMENTOTEKLA>")
    return "\n".join(lines).encode(encoding)


@pytest.fixture
def detailing_xml():
    return build_detailing_xml


@pytest.fixture
def ob1_pieces():
    # P1: 3 个单件编号；P2: 申报数量 5，无单件编号
    return [
        {
            "name": "P1", "piece_type": "PILAR", "quantity": "3", "section": "30x30",
            "length": "600", "weight": "1350,5", "unit_volume": "0,54", "material_class": "C30",
            "ids": ["P1-1", "P1-2", "P1-3"],
        },
        {
            "name": "P2", "piece_type": "VIGA", "quantity": "5", "section": "20x40",
            "length": "450", "weight": "900", "unit_volume": "0,36", "material_class": "C30",
        },
    ]


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    Session = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = Session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def store(db):
    return PieceStore(db)


@pytest.fixture
def audit(db):
    return AuditLogService(db=db)
