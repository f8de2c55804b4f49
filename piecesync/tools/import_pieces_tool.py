from typing import Any, List, Optional, Sequence

from sqlalchemy.orm import Session

from piecesync.db.enums import ReconciliationKind, WritePolicy
from piecesync.errors import NotFoundError, PartialWriteError
from piecesync.logger import get_logger
from piecesync.orchestration.progress import ProgressRecorder
from piecesync.schemas.dto.piece_group_dto import PieceGroupDTO
from piecesync.schemas.error_type import ErrorType
from piecesync.schemas.risk_profile import ToolRiskProfile
from piecesync.schemas.tool_result import ToolResult
from piecesync.schemas.tool_spec import ToolSpec
from piecesync.services.audit_log_service import AuditLogService
from piecesync.services.grouping_service import GroupingService
from piecesync.services.piece_store import PieceStore
from piecesync.services.piece_write_service import PieceWriteService
from piecesync.services.reconciliation_service import ReconciliationService
from piecesync.services.status_sync_service import StatusSyncService
from piecesync.services.xml_ingest_service import XmlIngestService
from piecesync.tools.common import classify_error, default_explanation, normalize_files
from piecesync.tools.registry import tool_registry

logger = get_logger(__name__)


def _classify_import_error(e: Exception):
    et, msg = classify_error(e)
    if et == ErrorType.PARSE_ERROR and getattr(e, "piece_ids", None):
        explain = (
            "Some instance identifiers would belong to two piece groups. "
            "Nothing was written; fix the detailing files or use replace_all."
        )
    elif et == ErrorType.INPUT_ERROR:
        explain = "Invalid arguments (policy must be 'replace_all' or 'append_only'). Re-check inputs and retry."
    else:
        explain = default_explanation(et)
    return et, msg, explain


def import_pieces_tool(
    *,
    db: Session,
    project_id: str,
    files: Sequence[Any],
    policy: str,
    operator_id: str,
    group_names: Optional[List[str]] = None,
    progress: Optional[ProgressRecorder] = None,
) -> ToolResult:
    '''
    把一个批次写入已存在的项目

    1. 解析 + 分组（可按构件编号挑选）
    2. 对账：批次表头必须匹配到这个项目，冲突直接拒绝
    3. 按策略写入，同步单件状态，重算 total_volume
    部分成功（分组已写入、total_volume 失败）照常 commit，返回 ok=True + PARTIAL_WRITE
    '''
    store = PieceStore(db)
    audit = AuditLogService(db=db)
    writer = PieceWriteService(store, StatusSyncService(store, audit), audit)

    try:
        write_policy = WritePolicy(policy)
        project = store.get_project(project_id)
        if project is None:
            raise NotFoundError(f"Project {project_id} not found")

        batch = XmlIngestService().parse_batch(normalize_files(files), progress=progress)
        groups = GroupingService().group(batch.records)
        if group_names:
            groups = GroupingService.select(groups, group_names)

        outcome = ReconciliationService(store).resolve_or_raise(project.owner_id, batch.header)
        if outcome.kind != ReconciliationKind.MATCHED or outcome.project_id != project_id:
            db.rollback()
            return ToolResult(
                ok=False,
                error_type=ErrorType.BUSINESS_RULE_ERROR,
                error_message=(
                    f"Batch header names project {batch.header.project_code}, "
                    f"which is not project {project.project_code}."
                ),
                data={"reconciliation": outcome.model_dump(mode="json")},
                explanation="Import the batch into the project its header names, or create that project first.",
            )

        result = writer.write(
            project_id=project_id,
            groups=groups,
            policy=write_policy,
            operator_id=operator_id,
            progress=progress,
        )
        db.commit()
        stored = [PieceGroupDTO.from_orm_model(g).model_dump() for g in store.list_piece_groups(project_id)]

        return ToolResult(
            ok=True,
            data={
                **result.model_dump(),
                "groups": stored,
                "warnings": [w.model_dump() for w in batch.warnings],
                "header_mismatches": [m.model_dump() for m in batch.header_mismatches],
            },
            explanation="Pieces imported, statuses synchronized and project total volume updated.",
            side_effect=True,
            irreversible=write_policy == WritePolicy.REPLACE_ALL,
        )

    except PartialWriteError as e:
        # 分组与状态已写入，只有 total_volume 失败：保留写入
        try:
            db.commit()
        except Exception as commit_error:
            db.rollback()
            logger.error(f"[import] commit after partial write failed: {commit_error}")
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
            data=e.result.model_dump() if e.result is not None else {"project_id": e.project_id},
            explanation=(
                "Pieces saved, but the project total volume update failed. "
                "Report this to the user; re-running the import with replace_all recomputes the volume."
            ),
            side_effect=True,
        )

    except Exception as e:
        db.rollback()
        et, msg, explain = _classify_import_error(e)
        data = None
        if et == ErrorType.RECONCILIATION_CONFLICT:
            data = {
                "existing_client_name": e.existing_client_name,
                "header_client_name": e.header_client_name,
            }
        elif getattr(e, "piece_ids", None):
            data = {"piece_ids": e.piece_ids}
        return ToolResult(
            ok=False,
            error_type=et,
            error_message=msg,
            data=data,
            explanation=explain,
        )


spec = ToolSpec(
    name="import_pieces",
    func=import_pieces_tool,
    description=(
        "Write a parsed detailing batch into an existing project. policy='replace_all' deletes every "
        "existing piece group first; policy='append_only' only adds groups. Release statuses are kept."
    ),
    input_schema={
        "db": "Session",
        "project_id": "str",
        "files": "List[(name, bytes)]",
        "policy": "replace_all | append_only",
        "operator_id": "str",
        "group_names": "Optional[List[str]]",
        "progress": "Optional[ProgressRecorder]",
    },
    risk_profile=ToolRiskProfile(
        modifies_persistent_data=True,
        deletes_data=True,
        affects_multiple_records=True,
    ),
)

tool_registry.register(spec)
