# piecesync/schemas/report.py
from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, Field


class ReleaseReportRow(BaseModel):
    piece_mark: str
    name: str
    piece_type: str
    section: str
    weight: float
    unit_volume: float
    is_released: bool = False
    released_at: Optional[datetime] = None


class ReleaseReport(BaseModel):
    project_id: str
    rows: List[ReleaseReportRow] = Field(default_factory=list)
    released_count: int = 0
    pending_count: int = 0


class GroupProgress(BaseModel):
    group_id: str
    name: str
    released: int
    total: int
