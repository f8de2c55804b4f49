from typing import Any, Optional, Sequence

from sqlalchemy.orm import Session

from piecesync.db.enums import ReconciliationKind
from piecesync.models.client import Client
from piecesync.schemas.dto.project_dto import ClientDTO, ProjectDTO
from piecesync.schemas.error_type import ErrorType
from piecesync.schemas.risk_profile import ToolRiskProfile
from piecesync.schemas.tool_result import ToolResult
from piecesync.schemas.tool_spec import ToolSpec
from piecesync.services.audit_log_service import AuditLogService
from piecesync.services.piece_store import PieceStore
from piecesync.services.project_service import ProjectService
from piecesync.services.reconciliation_service import ReconciliationService
from piecesync.services.xml_ingest_service import XmlIngestService
from piecesync.tools.common import classify_error, default_explanation, normalize_files
from piecesync.tools.registry import tool_registry


def create_project_from_header_tool(
    *,
    db: Session,
    owner_id: str,
    files: Sequence[Any],
    operator_id: str,
    status: Optional[str] = None,
) -> ToolResult:
    '''
    new_project 结果的显式确认步骤：需要时先建客户，再建项目
    '''
    store = PieceStore(db)
    audit = AuditLogService(db=db)
    project_service = ProjectService(store, audit)

    try:
        batch = XmlIngestService().parse_batch(normalize_files(files))
        outcome = ReconciliationService(store).resolve(owner_id, batch.header)

        if outcome.kind == ReconciliationKind.MATCHED:
            return ToolResult(
                ok=False,
                error_type=ErrorType.BUSINESS_RULE_ERROR,
                error_message=f"Project {outcome.project_code} already exists.",
                data={"project_id": outcome.project_id},
                explanation="The project already exists. Call import_pieces with this project_id instead.",
            )

        project = project_service.create_from_outcome(
            owner_id=owner_id,
            header=batch.header,
            outcome=outcome,
            operator_id=operator_id,
            status=status,
        )
        db.commit()

        dto = ProjectDTO.from_orm_model(project)
        client = db.get(Client, project.client_id) if project.client_id else None
        return ToolResult(
            ok=True,
            data={
                "project": dto.model_dump(mode="json"),
                "client": ClientDTO.from_orm_model(client).model_dump() if client else None,
                "client_created": outcome.existing_client_id is None,
            },
            explanation="Project created. Call import_pieces to write the pieces.",
            side_effect=True,
        )

    except Exception as e:
        db.rollback()
        et, msg = classify_error(e)
        return ToolResult(
            ok=False,
            error_type=et,
            error_message=msg,
            explanation=default_explanation(et),
        )


spec = ToolSpec(
    name="create_project_from_header",
    func=create_project_from_header_tool,
    description=(
        "Create the project (and its client when no client with that name exists) "
        "named by the header of a detailing batch. Only call after the user confirmed it."
    ),
    input_schema={
        "db": "Session",
        "owner_id": "str",
        "files": "List[(name, bytes)]",
        "operator_id": "str",
        "status": "Optional[str]",
    },
    risk_profile=ToolRiskProfile(
        modifies_persistent_data=True,
        affects_multiple_records=True,
    ),
)

tool_registry.register(spec)
