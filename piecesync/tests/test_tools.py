# piecesync/tests/test_tools.py
import base64

import pytest

from piecesync.execution.executor import PythonExecutor
from piecesync.models.piece_group import PieceGroup
from piecesync.models.project import Project
from piecesync.schemas.error_type import ErrorType
from piecesync.services.filter_service import new_session
from piecesync.services.session_snapshot_service import SessionSnapshotService
from piecesync.tools.auto_discover import discover_tools
from piecesync.tools.registry import tool_registry

OWNER = "owner-1"

discover_tools()


@pytest.fixture
def ob1_file(detailing_xml, ob1_pieces):
    return [("ob1.xml", detailing_xml(ob1_pieces))]


def _create_project(db, files):
    spec = tool_registry.get("create_project_from_header")
    return spec.func(db=db, owner_id=OWNER, files=files, operator_id="u1")


def test_all_tools_are_registered():
    assert {
        "parse_batch",
        "create_project_from_header",
        "import_pieces",
        "delete_piece_group",
        "set_piece_release",
        "restore_session",
    } <= set(tool_registry.names())


def test_full_import_flow(db, ob1_file):
    parsed = tool_registry.get("parse_batch").func(db=db, owner_id=OWNER, files=ob1_file)
    assert parsed.ok
    assert parsed.data["reconciliation"]["kind"] == "new_project"
    assert parsed.data["reconciliation"]["client_name_to_create"] == "Acme"
    assert [g["name"] for g in parsed.data["groups"]] == ["P1", "P2"]

    created = _create_project(db, ob1_file)
    assert created.ok, created.error_message
    project_id = created.data["project"]["id"]
    assert created.data["client_created"] is True

    imported = tool_registry.get("import_pieces").func(
        db=db, project_id=project_id, files=ob1_file, policy="replace_all", operator_id="u1"
    )
    assert imported.ok, imported.error_message
    assert imported.error_type is None
    assert imported.data["groups_written"] == 2
    assert sorted(g["name"] for g in imported.data["groups"]) == ["P1", "P2"]
    assert imported.data["statuses"]["created"] == 3
    assert db.get(Project, project_id).total_volume == pytest.approx(0.54 * 3 + 0.36 * 5)

    released = tool_registry.get("set_piece_release").func(
        db=db, project_id=project_id, piece_mark="P1-2", released=True, operator_id="u1"
    )
    assert released.ok
    assert released.data["is_released"] is True


def test_parse_batch_conflict(db, ob1_file, detailing_xml, ob1_pieces):
    assert _create_project(db, ob1_file).ok

    conflicting = [("ob1.xml", detailing_xml(ob1_pieces, cliente="Acme Corp"))]
    result = tool_registry.get("parse_batch").func(db=db, owner_id=OWNER, files=conflicting)

    assert not result.ok
    assert result.error_type == ErrorType.RECONCILIATION_CONFLICT
    assert result.data["reconciliation"]["existing_client_name"] == "Acme"
    assert result.data["reconciliation"]["header_client_name"] == "Acme Corp"


def test_import_rejects_conflicting_header(db, ob1_file, detailing_xml, ob1_pieces):
    project_id = _create_project(db, ob1_file).data["project"]["id"]
    conflicting = [("ob1.xml", detailing_xml(ob1_pieces, cliente="Acme Corp"))]

    result = tool_registry.get("import_pieces").func(
        db=db, project_id=project_id, files=conflicting, policy="replace_all", operator_id="u1"
    )

    assert not result.ok
    assert result.error_type == ErrorType.RECONCILIATION_CONFLICT
    assert db.query(PieceGroup).count() == 0


def test_create_project_twice_is_business_rule_error(db, ob1_file):
    assert _create_project(db, ob1_file).ok
    again = _create_project(db, ob1_file)
    assert not again.ok
    assert again.error_type == ErrorType.BUSINESS_RULE_ERROR


def test_parse_error_is_classified(db, detailing_xml):
    result = tool_registry.get("parse_batch").func(
        db=db, owner_id=OWNER, files=[("empty.xml", detailing_xml([]))]
    )
    assert not result.ok
    assert result.error_type == ErrorType.PARSE_ERROR


def test_files_accept_base64_dicts(db, ob1_file):
    name, raw = ob1_file[0]
    files = [{"name": name, "content": base64.b64encode(raw).decode("ascii"), "base64": True}]
    result = tool_registry.get("parse_batch").func(db=db, owner_id=OWNER, files=files)
    assert result.ok
    assert result.data["file_names"] == ["ob1.xml"]


def test_import_partial_write_commits_pieces(db, ob1_file, monkeypatch):
    from piecesync.services.piece_store import PieceStore
    from piecesync.errors import StoreWriteError

    project_id = _create_project(db, ob1_file).data["project"]["id"]

    def broken_update(self, project_id, volume):
        raise StoreWriteError("update_project_volume", RuntimeError("timeout"))

    monkeypatch.setattr(PieceStore, "update_project_volume", broken_update)
    result = tool_registry.get("import_pieces").func(
        db=db, project_id=project_id, files=ob1_file, policy="append_only", operator_id="u1"
    )

    assert result.ok
    assert result.error_type == ErrorType.PARTIAL_WRITE
    assert result.data["volume_updated"] is False
    assert db.query(PieceGroup).count() == 2
    assert db.get(Project, project_id).total_volume == 0


def test_import_unknown_policy(db, ob1_file):
    project_id = _create_project(db, ob1_file).data["project"]["id"]
    result = tool_registry.get("import_pieces").func(
        db=db, project_id=project_id, files=ob1_file, policy="merge", operator_id="u1"
    )
    assert result.error_type == ErrorType.INPUT_ERROR


def test_delete_piece_group_tool(db, ob1_file):
    project_id = _create_project(db, ob1_file).data["project"]["id"]
    tool_registry.get("import_pieces").func(
        db=db, project_id=project_id, files=ob1_file, policy="replace_all", operator_id="u1"
    )
    group = db.query(PieceGroup).filter_by(name="P1").one()

    result = tool_registry.get("delete_piece_group").func(db=db, group_id=group.id, operator_id="u1")

    assert result.ok
    assert result.data["statuses_deleted"] == 3
    assert result.data["total_volume"] == pytest.approx(0.36 * 5)


def test_set_release_unknown_piece(db, ob1_file):
    project_id = _create_project(db, ob1_file).data["project"]["id"]
    result = tool_registry.get("set_piece_release").func(
        db=db, project_id=project_id, piece_mark="nope", released=True, operator_id="u1"
    )
    assert result.error_type == ErrorType.NOT_FOUND


def test_restore_session_tool():
    document = SessionSnapshotService().dumps(new_session([]))
    assert tool_registry.get("restore_session").func(document=document).ok

    bad = document.replace('"1.0"', '"2.0"')
    result = tool_registry.get("restore_session").func(document=bad)
    assert result.error_type == ErrorType.SESSION_VERSION_MISMATCH


def test_executor_enforces_allowlist(db, ob1_file):
    executor = PythonExecutor(tool_registry)

    denied = executor.execute(tool_name="import_pieces", args={}, allowlist={"parse_batch"})
    assert denied.error_type == ErrorType.TOOL_NOT_ALLOWED

    missing = executor.execute(tool_name="no_such_tool", args={}, allowlist={"no_such_tool"})
    assert missing.error_type == ErrorType.SYSTEM_ERROR

    result = executor.execute(
        tool_name="parse_batch",
        args={"db": db, "owner_id": OWNER, "files": ob1_file},
        allowlist={"parse_batch"},
    )
    assert result.ok


def test_executor_reports_bad_arguments():
    result = PythonExecutor(tool_registry).execute(
        tool_name="restore_session", args={"unexpected": 1}, allowlist={"restore_session"}
    )
    assert result.error_type == ErrorType.INPUT_ERROR


def test_delete_piece_group_partial_write(db, ob1_file, monkeypatch):
    from piecesync.services.piece_store import PieceStore
    from piecesync.errors import StoreWriteError

    project_id = _create_project(db, ob1_file).data["project"]["id"]
    tool_registry.get("import_pieces").func(
        db=db, project_id=project_id, files=ob1_file, policy="replace_all", operator_id="u1"
    )
    group = db.query(PieceGroup).filter_by(name="P2").one()

    def broken_update(self, project_id, volume):
        raise StoreWriteError("update_project_volume", RuntimeError("timeout"))

    monkeypatch.setattr(PieceStore, "update_project_volume", broken_update)
    result = tool_registry.get("delete_piece_group").func(db=db, group_id=group.id, operator_id="u1")

    assert result.ok
    assert result.error_type == ErrorType.PARTIAL_WRITE
    assert db.query(PieceGroup).count() == 1


def test_delete_piece_group_commit_failure_rolls_back(db, ob1_file, monkeypatch):
    from sqlalchemy.exc import OperationalError
    from piecesync.services.piece_store import PieceStore
    from piecesync.errors import StoreWriteError

    project_id = _create_project(db, ob1_file).data["project"]["id"]
    tool_registry.get("import_pieces").func(
        db=db, project_id=project_id, files=ob1_file, policy="replace_all", operator_id="u1"
    )
    group = db.query(PieceGroup).filter_by(name="P2").one()
    group_id = group.id

    def broken_update(self, project_id, volume):
        raise StoreWriteError("update_project_volume", RuntimeError("timeout"))

    def broken_commit():
        raise OperationalError("COMMIT", {}, RuntimeError("disk I/O error"))

    monkeypatch.setattr(PieceStore, "update_project_volume", broken_update)
    monkeypatch.setattr(db, "commit", broken_commit)
    result = tool_registry.get("delete_piece_group").func(db=db, group_id=group_id, operator_id="u1")

    assert not result.ok
    assert result.error_type == ErrorType.DATABASE_ERROR
    # 回滚后分组仍在
    assert db.get(PieceGroup, group_id) is not None
