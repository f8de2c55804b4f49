# piecesync/tests/test_status_sync_service.py
import pytest

from piecesync.db.enums import AuditAction
from piecesync.errors import NotFoundError
from piecesync.models.audit_log import AuditLog
from piecesync.schemas.piece import ImportHeader, PieceGroupData
from piecesync.services.piece_write_service import PieceWriteService
from piecesync.services.status_sync_service import StatusSyncService

OWNER = "owner-1"


@pytest.fixture
def project(store):
    return store.create_project(OWNER, ImportHeader(project_code="OB-1", client_name="Acme"), None)


@pytest.fixture
def status_sync(store, audit):
    return StatusSyncService(store, audit)


@pytest.fixture
def writer(store, audit, status_sync):
    return PieceWriteService(store, status_sync, audit)


def _group(name, ids, **kwargs):
    return PieceGroupData(name=name, quantity=len(ids), piece_ids=tuple(ids), **kwargs)


def test_reimport_preserves_released_and_refreshes_name(writer, status_sync, store, project):
    writer.write(project_id=project.id, groups=[_group("P1", ["A1", "A2"])], policy="replace_all", operator_id="u1")
    status_sync.set_released(project_id=project.id, instance_id="A1", released=True, operator_id="u1")

    # 同一批单件改名为 P1-rev，再加一个新单件
    writer.write(
        project_id=project.id,
        groups=[_group("P1-rev", ["A1", "A2", "A3"])],
        policy="replace_all",
        operator_id="u1",
    )

    statuses = store.get_statuses(project.id)
    assert statuses["A1"].is_released is True
    assert statuses["A2"].is_released is False
    assert statuses["A3"].is_released is False
    assert {s.piece_name for s in statuses.values()} == {"P1-rev"}


def test_orphan_statuses_are_kept_by_import(writer, status_sync, store, project):
    writer.write(project_id=project.id, groups=[_group("P1", ["A1"])], policy="replace_all", operator_id="u1")
    status_sync.set_released(project_id=project.id, instance_id="A1", released=True, operator_id="u1")

    writer.write(project_id=project.id, groups=[_group("P2", ["B1"])], policy="replace_all", operator_id="u1")

    statuses = store.get_statuses(project.id)
    assert set(statuses) == {"A1", "B1"}
    assert statuses["A1"].is_released is True


def test_set_released_sets_and_clears_timestamp(writer, status_sync, project, db):
    writer.write(project_id=project.id, groups=[_group("P1", ["A1"])], policy="replace_all", operator_id="u1")

    status = status_sync.set_released(project_id=project.id, instance_id="A1", released=True, operator_id="u1")
    assert status.is_released is True
    assert status.released_at is not None

    status = status_sync.set_released(project_id=project.id, instance_id="A1", released=False, operator_id="u2")
    assert status.is_released is False
    assert status.released_at is None

    updates = db.query(AuditLog).filter(AuditLog.action == AuditAction.update).all()
    assert sorted((u.before_value, u.after_value) for u in updates) == [(False, True), (True, False)]


def test_set_released_unknown_piece(writer, status_sync, project):
    writer.write(project_id=project.id, groups=[_group("P1", ["A1"])], policy="replace_all", operator_id="u1")
    with pytest.raises(NotFoundError):
        status_sync.set_released(project_id=project.id, instance_id="ZZ", released=True, operator_id="u1")


def test_set_released_creates_missing_status_row(status_sync, store, project):
    # 分组直接写入，没有同步状态
    store.append_piece_groups(project.id, OWNER, [_group("P1", ["A1"])])
    status = status_sync.set_released(project_id=project.id, instance_id="A1", released=True, operator_id="u1")
    assert status.piece_name == "P1"
    assert status.is_released is True


def test_release_report_expands_and_sorts_naturally(writer, status_sync, project):
    writer.write(
        project_id=project.id,
        groups=[
            _group("P10", ["P10-10", "P10-2"], piece_type="VIGA", weight=900.0),
            _group("P2", ["P2-1"], piece_type="PILAR", weight=1200.0),
        ],
        policy="replace_all",
        operator_id="u1",
    )
    status_sync.set_released(project_id=project.id, instance_id="P10-2", released=True, operator_id="u1")

    report = status_sync.release_report(project.id)

    assert [r.piece_mark for r in report.rows] == ["P2-1", "P10-2", "P10-10"]
    assert report.released_count == 1
    assert report.pending_count == 2
    row = report.rows[1]
    assert row.name == "P10"
    assert row.piece_type == "VIGA"
    assert row.is_released is True
    assert row.released_at is not None


def test_group_progress(writer, status_sync, project):
    writer.write(
        project_id=project.id,
        groups=[_group("P1", ["A1", "A2"]), _group("P2", ["B1"])],
        policy="replace_all",
        operator_id="u1",
    )
    status_sync.set_released(project_id=project.id, instance_id="A2", released=True, operator_id="u1")

    progress = {p.name: (p.released, p.total) for p in status_sync.group_progress(project.id)}
    assert progress == {"P1": (1, 2), "P2": (0, 1)}
