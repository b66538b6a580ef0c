from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, Float, ForeignKey, Index, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from finapi.db.base import Base
from finapi.models.category import EntryType


class Transaction(Base):
    """Single income or expense entry. `category` holds the category name, not an id."""

    __tablename__ = "transactions"
    __table_args__ = (Index("ix_transactions_user_type_date", "user_id", "type", "date"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True)
    title: Mapped[str] = mapped_column(String(100))
    amount: Mapped[float] = mapped_column(Float)
    category: Mapped[str] = mapped_column(String(64), index=True)
    type: Mapped[EntryType] = mapped_column(
        Enum(EntryType, name="entry_type", values_callable=lambda e: [m.value for m in e])
    )
    # naive local time, as entered by the client
    date: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
