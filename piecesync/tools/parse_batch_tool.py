from typing import Any, List, Optional, Sequence

from sqlalchemy.orm import Session

from piecesync.orchestration.progress import ProgressRecorder
from piecesync.schemas.error_type import ErrorType
from piecesync.schemas.risk_profile import ToolRiskProfile
from piecesync.schemas.tool_result import ToolResult
from piecesync.schemas.tool_spec import ToolSpec
from piecesync.services.grouping_service import GroupingService
from piecesync.services.metrics_service import compute_metrics
from piecesync.services.piece_store import PieceStore
from piecesync.services.reconciliation_service import ReconciliationService
from piecesync.services.xml_ingest_service import XmlIngestService
from piecesync.tools.common import classify_error, default_explanation, normalize_files
from piecesync.tools.registry import tool_registry


def parse_batch_tool(
    *,
    db: Session,
    owner_id: str,
    files: Sequence[Any],
    group_names: Optional[List[str]] = None,
    progress: Optional[ProgressRecorder] = None,
) -> ToolResult:
    '''
    只读：解析 + 分组 + 对账，不写任何数据
    '''
    store = PieceStore(db)
    try:
        batch = XmlIngestService().parse_batch(normalize_files(files), progress=progress)
        groups = GroupingService().group(batch.records)
        if group_names:
            groups = GroupingService.select(groups, group_names)
        outcome = ReconciliationService(store).resolve(owner_id, batch.header)
    except Exception as e:
        db.rollback()
        et, msg = classify_error(e)
        return ToolResult(
            ok=False,
            error_type=et,
            error_message=msg,
            explanation=default_explanation(et),
        )

    data = {
        "header": batch.header.model_dump(),
        "report_label": batch.report_label,
        "file_names": batch.file_names,
        "groups": [g.model_dump() for g in groups],
        "metrics": compute_metrics(groups).model_dump(),
        "warnings": [w.model_dump() for w in batch.warnings],
        "header_mismatches": [m.model_dump() for m in batch.header_mismatches],
        "reconciliation": outcome.model_dump(mode="json"),
    }

    if outcome.is_conflict:
        return ToolResult(
            ok=False,
            error_type=ErrorType.RECONCILIATION_CONFLICT,
            error_message=(
                f"Project {outcome.project_code} belongs to client '{outcome.existing_client_name}', "
                f"the file names client '{outcome.header_client_name}'"
            ),
            data=data,
            explanation=default_explanation(ErrorType.RECONCILIATION_CONFLICT),
        )

    if outcome.project_id:
        explain = "Batch parsed and matched to an existing project. Call import_pieces to write it."
    else:
        explain = (
            "Batch parsed; the project does not exist yet. Confirm with the user, "
            "then call create_project_from_header before import_pieces."
        )
    if batch.header_mismatches:
        explain += " Some files disagree with the first file's header; show header_mismatches to the user."
    return ToolResult(ok=True, data=data, explanation=explain)


spec = ToolSpec(
    name="parse_batch",
    func=parse_batch_tool,
    description="Parse one or more detailing XML files, group the pieces and reconcile the header with stored projects/clients. Read-only.",
    input_schema={
        "db": "Session",
        "owner_id": "str",
        "files": "List[(name, bytes)] | List[{name, content, base64}]",
        "group_names": "Optional[List[str]]",
        "progress": "Optional[ProgressRecorder]",
    },
    risk_profile=ToolRiskProfile(),
)

tool_registry.register(spec)
