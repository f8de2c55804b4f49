# piecesync/tests/test_session_snapshot_service.py
import json

import pytest

from piecesync.errors import SessionVersionMismatch
from piecesync.schemas.piece import ImportHeader, PieceRecord
from piecesync.services import filter_service as fs
from piecesync.services.session_snapshot_service import SessionSnapshotService, snapshot_filename


@pytest.fixture
def session():
    pieces = [
        PieceRecord(name="P1", piece_type="PILAR", section="30x30", material_class="C30",
                    quantity=3, weight=1350.5, unit_volume=0.54, piece_ids=("P1-1", "P1-2", "P1-3")),
        PieceRecord(name="P2", piece_type="VIGA", section="20x40", material_class="C30",
                    quantity=5, weight=900.0, unit_volume=0.36),
    ]
    header = ImportHeader(project_code="OB-1", project_name="Bldg A", client_name="Acme")
    session = fs.new_session(pieces, header=header, display_label="Bldg A")
    session = fs.apply(fs.stage(session, types=["PILAR"]))
    session = fs.stage(session, sections=["30x30"], name="p")
    return fs.toggle_released(session, "P1-2")


def test_round_trip(session):
    service = SessionSnapshotService()
    restored = service.loads(service.dumps(session))

    assert restored.dataset == session.dataset
    assert restored.applied == session.applied
    assert restored.staged == session.staged
    assert set(restored.released_ids) == {"P1-2"}
    assert restored.header == session.header
    assert restored.display_label == "Bldg A"


def test_document_layout(session):
    document = json.loads(SessionSnapshotService().dumps(session))
    assert document["version"] == "1.0"
    assert set(document) == {
        "version", "original_data", "filters", "staged_filters", "released_pieces", "file_info_text",
    }
    assert len(document["original_data"]["pieces"]) == 2


def test_version_mismatch_is_rejected(session):
    document = json.loads(SessionSnapshotService().dumps(session))
    document["version"] = "0.9"

    with pytest.raises(SessionVersionMismatch) as exc:
        SessionSnapshotService().loads(json.dumps(document))
    assert "incompatible session file" in str(exc.value)
    assert exc.value.found == "0.9"


@pytest.mark.parametrize("text", ["not json", "[]", '{"original_data": {}}'])
def test_unreadable_documents_are_rejected(text):
    with pytest.raises(SessionVersionMismatch):
        SessionSnapshotService().loads(text)


def test_snapshot_filename():
    assert snapshot_filename("OB-1/Torre A") == "piece_session_ob_1_torre_a.json"
    assert snapshot_filename("") == "piece_session_session.json"
