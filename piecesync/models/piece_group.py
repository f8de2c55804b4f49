# piecesync/models/piece_group.py
from typing import List
from datetime import datetime

from sqlalchemy import String, Integer, Float, DateTime, JSON, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column

from piecesync.db.base import Base


class PieceGroup(Base):
    """
    Persisted aggregate of detail lines sharing identical descriptive attributes.

    Invariants:
    - piece_ids has no duplicates
    - within one project an instance identifier belongs to at most one group
    """

    __tablename__ = "piece_groups"

    # =========
    # Identity & ownership
    # =========
    id: Mapped[str] = mapped_column(String(36), primary_key=True, comment="Piece group UUID")
    project_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Associated project ID",
    )
    owner_id: Mapped[str] = mapped_column(String(36), nullable=False, comment="Owning user/account ID")

    # =========
    # 📐 Descriptive attributes
    # =========
    name: Mapped[str] = mapped_column(String(255), nullable=False, comment="Piece mark")
    piece_type: Mapped[str] = mapped_column(String(100), nullable=False, default="", comment="Product type / group")
    section: Mapped[str] = mapped_column(String(100), nullable=False, default="", comment="Cross-section label")
    length: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    weight: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, comment="Unit weight")
    unit_volume: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    material_class: Mapped[str] = mapped_column(String(100), nullable=False, default="", comment="Concrete class")

    # =========
    # 🔢 Quantity & instances
    # =========
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    piece_ids: Mapped[List[str]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        comment="Ordered unique instance identifiers",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    @property
    def total_volume(self) -> float:
        return (self.unit_volume or 0.0) * (self.quantity or 0)

    def __repr__(self) -> str:
        return (
            f"<PieceGroup id={self.id} "
            f"name={self.name} "
            f"quantity={self.quantity}>"
        )
