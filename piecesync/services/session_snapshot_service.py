# piecesync/services/session_snapshot_service.py
import json
import re
from typing import Optional

from pydantic import ValidationError

from piecesync.config import config
from piecesync.errors import SessionVersionMismatch
from piecesync.logger import get_logger
from piecesync.schemas.filters import AnalysisSession
from piecesync.schemas.session import SessionSnapshot, SnapshotData

logger = get_logger(__name__)


class SessionSnapshotService:
    """
    Serialize an AnalysisSession to a portable, versioned JSON document and back.

    恢复时先检查 version，不一致直接拒绝，不做任何兼容转换
    """

    def __init__(self, version: Optional[str] = None):
        self.version = version or config.SESSION_VERSION

    def to_snapshot(self, session: AnalysisSession) -> SessionSnapshot:
        return SessionSnapshot(
            version=self.version,
            original_data=SnapshotData(header=session.header, pieces=list(session.dataset)),
            filters=session.applied,
            staged_filters=session.staged,
            released_pieces=list(session.released_ids),
            file_info_text=session.display_label,
        )

    def dumps(self, session: AnalysisSession) -> str:
        return self.to_snapshot(session).model_dump_json(indent=2)

    def loads(self, text) -> AnalysisSession:
        '''
        :param text: JSON 文本（str 或 bytes）
        :raises SessionVersionMismatch: JSON 无法解析、缺少 version 或 version 不一致
        '''
        try:
            raw = json.loads(text)
        except (TypeError, ValueError) as e:
            logger.warning(f"[session] unreadable session document: {e}")
            raise SessionVersionMismatch(expected=self.version, found=None) from e

        found = raw.get("version") if isinstance(raw, dict) else None
        if found != self.version:
            logger.warning(f"[session] version mismatch: expected={self.version} found={found}")
            raise SessionVersionMismatch(expected=self.version, found=found)

        try:
            snapshot = SessionSnapshot.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"[session] malformed session payload: {e}")
            raise SessionVersionMismatch(expected=self.version, found=found) from e

        logger.info(
            f"[session] restored pieces={len(snapshot.original_data.pieces)} "
            f"released={len(snapshot.released_pieces)}"
        )
        return AnalysisSession(
            dataset=tuple(snapshot.original_data.pieces),
            header=snapshot.original_data.header,
            applied=snapshot.filters,
            staged=snapshot.staged_filters,
            released_ids=tuple(snapshot.released_pieces),
            display_label=snapshot.file_info_text,
        )


def snapshot_filename(project_code: str) -> str:
    safe = re.sub(r"[^a-z0-9]", "_", project_code or "", flags=re.IGNORECASE).lower()
    return f"piece_session_{safe or 'session'}.json"
