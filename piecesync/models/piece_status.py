# piecesync/models/piece_status.py
from typing import Optional
from datetime import datetime

from sqlalchemy import String, Boolean, DateTime, UniqueConstraint, ForeignKey, func, text
from sqlalchemy.orm import Mapped, mapped_column

from piecesync.db.base import Base


class PieceStatus(Base):
    """
    Release status of one individual piece instance.

    Keyed by (project_id, piece_mark). Lifecycle is independent of PieceGroup:
    imports never delete rows, only an explicit group deletion does.
    """

    __tablename__ = "piece_status"
    __table_args__ = (
        UniqueConstraint("project_id", "piece_mark", name="uq_piece_status_project_mark"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, comment="Piece status UUID")
    project_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    piece_mark: Mapped[str] = mapped_column(String(100), nullable=False, comment="Instance identifier")
    piece_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, comment="Cached group name")

    is_released: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("0"),
    )
    released_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<PieceStatus project={self.project_id} mark={self.piece_mark} released={self.is_released}>"
