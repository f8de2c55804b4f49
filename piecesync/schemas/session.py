# piecesync/schemas/session.py
from typing import List, Optional
from pydantic import BaseModel, Field

from piecesync.schemas.piece import PieceRecord, ImportHeader
from piecesync.schemas.filters import FilterState


class SnapshotData(BaseModel):
    header: Optional[ImportHeader] = None
    pieces: List[PieceRecord] = Field(default_factory=list)


class SessionSnapshot(BaseModel):
    """Portable session document: version tag + payload."""
    version: str
    original_data: SnapshotData
    filters: FilterState
    staged_filters: FilterState
    released_pieces: List[str] = Field(default_factory=list)
    file_info_text: str = ""
