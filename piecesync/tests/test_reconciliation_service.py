# piecesync/tests/test_reconciliation_service.py
import pytest

from piecesync.db.enums import ReconciliationKind
from piecesync.errors import ReconciliationConflict
from piecesync.models.audit_log import AuditLog
from piecesync.models.client import Client
from piecesync.schemas.piece import ImportHeader
from piecesync.services.project_service import ProjectService
from piecesync.services.reconciliation_service import ReconciliationService

OWNER = "owner-1"


def _existing_project(store, code="OB-1", client_name="Acme"):
    client = store.create_client(OWNER, client_name)
    return store.create_project(OWNER, ImportHeader(project_code=code, client_name=client_name), client)


def test_matched_when_code_and_client_agree(store):
    project = _existing_project(store)
    outcome = ReconciliationService(store).resolve(OWNER, ImportHeader(project_code="OB-1", client_name="ACME "))
    assert outcome.kind == ReconciliationKind.MATCHED
    assert outcome.project_id == project.id


def test_conflict_when_client_differs(store):
    _existing_project(store, client_name="Acme")
    header = ImportHeader(project_code="OB-1", project_name="Bldg A", client_name="Acme Corp")

    outcome = ReconciliationService(store).resolve(OWNER, header)

    assert outcome.kind == ReconciliationKind.CONFLICT
    assert outcome.existing_client_name == "Acme"
    assert outcome.header_client_name == "Acme Corp"
    with pytest.raises(ReconciliationConflict):
        ReconciliationService(store).resolve_or_raise(OWNER, header)


def test_new_project_references_existing_client(store):
    client = store.create_client(OWNER, "Acme")
    outcome = ReconciliationService(store).resolve(
        OWNER, ImportHeader(project_code="OB-2", project_name="Tower", client_name="acme")
    )
    assert outcome.kind == ReconciliationKind.NEW_PROJECT
    assert outcome.existing_client_id == client.id
    assert outcome.client_name_to_create is None
    assert outcome.suggested_name == "Tower"


def test_new_project_with_unknown_client(store):
    outcome = ReconciliationService(store).resolve(OWNER, ImportHeader(project_code="OB-3", client_name="Beta"))
    assert outcome.kind == ReconciliationKind.NEW_PROJECT
    assert outcome.existing_client_id is None
    assert outcome.client_name_to_create == "Beta"
    assert outcome.suggested_name == "OB-3"


def test_projects_of_other_owners_are_invisible(store):
    _existing_project(store)
    outcome = ReconciliationService(store).resolve("owner-2", ImportHeader(project_code="OB-1", client_name="Zeta"))
    assert outcome.kind == ReconciliationKind.NEW_PROJECT


def test_resolve_never_creates_entities(store, db):
    ReconciliationService(store).resolve(OWNER, ImportHeader(project_code="OB-4", client_name="Nobody"))
    assert db.query(Client).count() == 0


def test_create_from_outcome_creates_client_then_project(store, audit, db):
    header = ImportHeader(project_code="OB-5", project_name="Depot", client_name="Delta")
    outcome = ReconciliationService(store).resolve(OWNER, header)

    project = ProjectService(store, audit).create_from_outcome(
        owner_id=OWNER, header=header, outcome=outcome, operator_id="u1"
    )

    assert project.name == "Depot"
    assert project.status == "Programar"
    assert project.client_name == "Delta"
    assert project.client_id is not None
    assert project.total_volume == 0
    actions = sorted(log.entity_type.value for log in db.query(AuditLog).all())
    assert actions == ["client", "project"]

    again = ReconciliationService(store).resolve(OWNER, header)
    assert again.kind == ReconciliationKind.MATCHED


def test_create_from_conflict_outcome_raises(store, audit):
    _existing_project(store, client_name="Acme")
    header = ImportHeader(project_code="OB-1", client_name="Acme Corp")
    outcome = ReconciliationService(store).resolve(OWNER, header)

    with pytest.raises(ReconciliationConflict):
        ProjectService(store, audit).create_from_outcome(
            owner_id=OWNER, header=header, outcome=outcome, operator_id="u1"
        )
