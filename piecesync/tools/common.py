# piecesync/tools/common.py
import base64
from typing import Any, List, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError

from piecesync.errors import (
    NotFoundError,
    ParseError,
    PartialWriteError,
    ReconciliationConflict,
    SessionVersionMismatch,
    StoreWriteError,
)
from piecesync.schemas.error_type import ErrorType


def classify_error(e: Exception) -> Tuple[ErrorType, str]:
    '''
    把 service 抛出的异常映射为 ErrorType
    顺序有意义：子类在前（PartialWriteError 在 StoreWriteError 前，领域异常在 ValueError 前）
    '''
    msg = str(e)
    if isinstance(e, SessionVersionMismatch):
        return ErrorType.SESSION_VERSION_MISMATCH, msg
    if isinstance(e, ParseError):
        return ErrorType.PARSE_ERROR, msg
    if isinstance(e, ReconciliationConflict):
        return ErrorType.RECONCILIATION_CONFLICT, msg
    if isinstance(e, PartialWriteError):
        return ErrorType.PARTIAL_WRITE, msg
    if isinstance(e, (StoreWriteError, SQLAlchemyError)):
        return ErrorType.DATABASE_ERROR, msg
    if isinstance(e, NotFoundError):
        return ErrorType.NOT_FOUND, msg
    if isinstance(e, ValueError):
        return ErrorType.INPUT_ERROR, msg

    # 兜底：未知异常
    return ErrorType.SYSTEM_ERROR, msg


def default_explanation(et: ErrorType) -> str:
    if et == ErrorType.PARSE_ERROR:
        return "The detailing files are structurally invalid. The whole batch was rejected; fix the files and retry."
    if et == ErrorType.RECONCILIATION_CONFLICT:
        return "The project code exists under a different client. Ask the user which client is correct; nothing was written."
    if et == ErrorType.NOT_FOUND:
        return "A referenced entity does not exist. Re-check the ids."
    if et == ErrorType.INPUT_ERROR:
        return "Arguments are invalid. Ask the user to re-check inputs and retry."
    if et == ErrorType.DATABASE_ERROR:
        return "Store operation failed and was rolled back. Retry may work; if repeated, escalate with the operation name."
    if et == ErrorType.SESSION_VERSION_MISMATCH:
        return "The session file is incompatible with this version. Re-import the source files instead."
    return "Unexpected system error occurred. Retry once; if it fails again, escalate."


def normalize_files(files: Sequence[Any]) -> List[Tuple[str, Any]]:
    '''
    接受 [(name, bytes)] 或 [{"name": ..., "content": bytes | str, "base64": bool}]
    str 内容原样交给解析器（已解码文本不再按声明编码解码）
    '''
    normalized: List[Tuple[str, Any]] = []
    for idx, item in enumerate(files or []):
        if isinstance(item, dict):
            name = item.get("name") or f"file_{idx + 1}.xml"
            content = item.get("content", b"")
            if item.get("base64"):
                content = base64.b64decode(content)
        else:
            name, content = item
        normalized.append((name, content))
    if not normalized:
        raise ValueError("files must contain at least one detailing file")
    return normalized
