from sqlalchemy.orm import Session

from piecesync.schemas.dto.piece_group_dto import PieceStatusDTO
from piecesync.schemas.risk_profile import ToolRiskProfile
from piecesync.schemas.tool_result import ToolResult
from piecesync.schemas.tool_spec import ToolSpec
from piecesync.services.audit_log_service import AuditLogService
from piecesync.services.piece_store import PieceStore
from piecesync.services.status_sync_service import StatusSyncService
from piecesync.tools.common import classify_error, default_explanation
from piecesync.tools.registry import tool_registry


def set_piece_release_tool(
    *,
    db: Session,
    project_id: str,
    piece_mark: str,
    released: bool,
    operator_id: str,
) -> ToolResult:
    store = PieceStore(db)
    status_sync = StatusSyncService(store, AuditLogService(db=db))

    try:
        status = status_sync.set_released(
            project_id=project_id,
            instance_id=piece_mark,
            released=bool(released),
            operator_id=operator_id,
        )
        db.commit()
        return ToolResult(
            ok=True,
            data=PieceStatusDTO.from_orm_model(status).model_dump(),
            explanation=f"Piece {piece_mark} marked as {'released' if released else 'not released'}.",
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
    name="set_piece_release",
    func=set_piece_release_tool,
    description="Mark one piece instance of a project as released (or not released).",
    input_schema={
        "db": "Session",
        "project_id": "str",
        "piece_mark": "str",
        "released": "bool",
        "operator_id": "str",
    },
    risk_profile=ToolRiskProfile(modifies_persistent_data=True),
)

tool_registry.register(spec)
