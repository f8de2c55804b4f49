from sqlalchemy.orm import Session

from piecesync.errors import PartialWriteError
from piecesync.logger import get_logger
from piecesync.schemas.error_type import ErrorType
from piecesync.schemas.risk_profile import ToolRiskProfile
from piecesync.schemas.tool_result import ToolResult
from piecesync.schemas.tool_spec import ToolSpec
from piecesync.services.audit_log_service import AuditLogService
from piecesync.services.piece_store import PieceStore
from piecesync.services.piece_write_service import PieceWriteService
from piecesync.services.status_sync_service import StatusSyncService
from piecesync.tools.common import classify_error, default_explanation
from piecesync.tools.registry import tool_registry

logger = get_logger(__name__)


def delete_piece_group_tool(
    *,
    db: Session,
    group_id: str,
    operator_id: str,
) -> ToolResult:
    store = PieceStore(db)
    audit = AuditLogService(db=db)
    writer = PieceWriteService(store, StatusSyncService(store, audit), audit)

    try:
        result = writer.delete_group(group_id=group_id, operator_id=operator_id)
        db.commit()
        return ToolResult(
            ok=True,
            data=result.model_dump(),
            explanation="Piece group and its release statuses deleted; project total volume updated.",
            side_effect=True,
            irreversible=True,
        )

    except PartialWriteError as e:
        # 分组与状态已删除，只有 total_volume 失败：保留删除
        try:
            db.commit()
        except Exception as commit_error:
            db.rollback()
            logger.error(f"[delete] commit after partial write failed: {commit_error}")
            return ToolResult(
                ok=False,
                error_type=ErrorType.DATABASE_ERROR,
                error_message=str(commit_error),
                explanation=default_explanation(ErrorType.DATABASE_ERROR),
            )
        return ToolResult(
            ok=True,
            error_type=ErrorType.PARTIAL_WRITE,
            error_message=str(e),
            data=e.result.model_dump() if e.result is not None else None,
            explanation="Group deleted, but the project total volume update failed. Report this to the user.",
            side_effect=True,
            irreversible=True,
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
    name="delete_piece_group",
    func=delete_piece_group_tool,
    description="Delete one piece group together with the release statuses of its instances, then recompute the project volume.",
    input_schema={"db": "Session", "group_id": "str", "operator_id": "str"},
    risk_profile=ToolRiskProfile(
        modifies_persistent_data=True,
        irreversible=True,
        deletes_data=True,
        affects_multiple_records=True,
    ),
)

tool_registry.register(spec)
