from typing import List
from pydantic import BaseModel

from piecesync.models.piece_group import PieceGroup
from piecesync.models.piece_status import PieceStatus


class PieceGroupDTO(BaseModel):
    id: str
    name: str
    piece_type: str
    section: str
    length: float
    weight: float
    unit_volume: float
    material_class: str
    quantity: int
    piece_ids: List[str] = []
    total_volume: float

    @classmethod
    def from_orm_model(cls, group: PieceGroup) -> "PieceGroupDTO":
        return cls(
            id=group.id,
            name=group.name,
            piece_type=group.piece_type,
            section=group.section,
            length=group.length,
            weight=group.weight,
            unit_volume=group.unit_volume,
            material_class=group.material_class,
            quantity=group.quantity,
            piece_ids=list(group.piece_ids or []),
            total_volume=group.total_volume,
        )


class PieceStatusDTO(BaseModel):
    project_id: str
    piece_mark: str
    piece_name: str = ""
    is_released: bool
    released_at: str = ""

    @classmethod
    def from_orm_model(cls, status: PieceStatus) -> "PieceStatusDTO":
        return cls(
            project_id=status.project_id,
            piece_mark=status.piece_mark,
            piece_name=status.piece_name or "",
            is_released=status.is_released,
            released_at=status.released_at.isoformat() if status.released_at else "",
        )
