# piecesync/models/project.py
from piecesync.db.base import Base
from datetime import datetime, date
from typing import Optional

from sqlalchemy import String, DateTime, Date, Float, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column


class Project(Base):
    __tablename__ = "projects"
    __table_args__ = (
        UniqueConstraint("owner_id", "project_code", name="uq_project_owner_code"),
    )

    # =========
    # 🔒 Immutable facts
    # =========
    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        comment="Project UUID")
    owner_id: Mapped[str] = mapped_column(
        String(36),
        nullable=False,
        index=True,
        comment="Owning user/account ID")
    project_code: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Human project code (obra) from the detailing header")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        comment="Creation timestamp")

    # =========
    # ✍️ Business editable
    # =========
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Project name")
    # 客户按名称软引用：client_id 可选，client_name 为冗余展示名
    client_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("clients.id", ondelete="SET NULL"),
        nullable=True,
        comment="Optional reference to the owning client")
    client_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="",
        comment="Denormalized client display name, matched case-insensitively")
    engineer: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, comment="Detailing engineer/designer")
    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    area: Mapped[Optional[float]] = mapped_column(Float, nullable=True, comment="Built area")
    registration_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, comment="Permit/registration number")
    status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, comment="Status label")
    start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # =========
    # 🔁 System maintained fields
    # =========
    total_volume: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0.0,
        comment="Σ(unit_volume × quantity) over all current piece groups")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
        comment="Last update timestamp",
    )

    def __repr__(self) -> str:
        return f"<Project id={self.id} code={self.project_code} name={self.name}>"
