# piecesync/schemas/piece.py
from typing import List, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field


class PieceRecord(BaseModel):
    '''
    一条详图明细（transient），每次导入重新生成，不直接入库

    name: 构件编号（NOMEPECA）
    piece_type: 产品类型（TIPOPRODUTO）
    quantity: 申报数量，>= 0
    piece_ids: 单件编号列表，文件可能不提供
    '''
    model_config = ConfigDict(frozen=True)

    name: str = ""
    piece_type: str = ""
    quantity: int = 0
    section: str = ""
    length: float = 0.0
    weight: float = 0.0
    unit_volume: float = 0.0
    material_class: str = ""
    piece_ids: Tuple[str, ...] = ()

    @property
    def total_volume(self) -> float:
        return self.unit_volume * self.quantity


GroupKey = Tuple[str, str, str, float, float, float, str]


class PieceGroupData(BaseModel):
    """Grouped pieces ready to be written to the store."""
    model_config = ConfigDict(frozen=True)

    name: str
    piece_type: str = ""
    section: str = ""
    length: float = 0.0
    weight: float = 0.0
    unit_volume: float = 0.0
    material_class: str = ""
    quantity: int = 0
    piece_ids: Tuple[str, ...] = ()

    @property
    def total_volume(self) -> float:
        return self.unit_volume * self.quantity


class ImportHeader(BaseModel):
    model_config = ConfigDict(frozen=True)

    project_code: str
    project_name: str = ""
    client_name: str
    engineer: Optional[str] = None


class FieldCoercionWarning(BaseModel):
    """Numeric field that could not be parsed and was recovered as 0."""
    file_name: str
    entry_index: int
    field: str
    raw_value: str


class HeaderMismatch(BaseModel):
    """A non-first file whose header disagrees with the authoritative one."""
    file_name: str
    field: str
    expected: str
    found: str


class ParsedBatch(BaseModel):
    header: ImportHeader
    records: List[PieceRecord]
    report_label: str
    file_names: List[str] = Field(default_factory=list)
    warnings: List[FieldCoercionWarning] = Field(default_factory=list)
    header_mismatches: List[HeaderMismatch] = Field(default_factory=list)


class StatusSyncResult(BaseModel):
    created: int = 0
    refreshed: int = 0


class WriteResult(BaseModel):
    project_id: str
    policy: str
    groups_written: int = 0
    groups_removed: int = 0
    total_volume: Optional[float] = None
    volume_updated: bool = True
    statuses: StatusSyncResult = Field(default_factory=StatusSyncResult)


class DeleteResult(BaseModel):
    project_id: str
    group_id: str
    statuses_deleted: int = 0
    total_volume: Optional[float] = None
    volume_updated: bool = True
