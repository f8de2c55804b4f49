from piecesync.schemas.risk_profile import ToolRiskProfile
from piecesync.schemas.tool_result import ToolResult
from piecesync.schemas.tool_spec import ToolSpec
from piecesync.services.filter_service import session_options, visible_pieces
from piecesync.services.session_snapshot_service import SessionSnapshotService
from piecesync.tools.common import classify_error, default_explanation
from piecesync.tools.registry import tool_registry


def restore_session_tool(*, document) -> ToolResult:
    '''
    恢复分析会话文件；版本不一致直接拒绝
    '''
    try:
        session = SessionSnapshotService().loads(document)
    except Exception as e:
        et, msg = classify_error(e)
        return ToolResult(
            ok=False,
            error_type=et,
            error_message=msg,
            explanation=default_explanation(et),
        )

    return ToolResult(
        ok=True,
        data={
            "session": session.model_dump(mode="json"),
            "visible_count": len(visible_pieces(session)),
            "options": session_options(session).model_dump(),
        },
        explanation="Session restored without re-parsing the source files.",
    )


spec = ToolSpec(
    name="restore_session",
    func=restore_session_tool,
    description="Restore an analysis session from a saved session document.",
    input_schema={"document": "str | bytes"},
    risk_profile=ToolRiskProfile(),
)

tool_registry.register(spec)
