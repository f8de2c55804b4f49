# piecesync/models/client.py
from piecesync.db.base import Base
from datetime import datetime
from typing import Optional

from sqlalchemy import String, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column


class Client(Base):
    __tablename__ = "clients"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, comment="Client UUID")
    owner_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True, comment="Owning user/account ID")
    name: Mapped[str] = mapped_column(String(255), nullable=False, comment="Client name")

    # 联系信息
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    document: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, comment="Tax/registration document")
    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

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
        return f"<Client id={self.id} name={self.name}>"
