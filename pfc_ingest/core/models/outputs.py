"""Output and bill stage tables.

An Output is a government artifact (bill, policy paper, consultation ...)
tracked against a milestone. Its ``id`` is derived deterministically from
the source identifier (GOV.UK path, Parliament bill id) so repeated
refreshes address the same row.

Bill stages hang off an Output of type ``bill``; the whole stage set is
replaced on every refresh rather than merged.
"""

import datetime as dt
from typing import Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class Output(Base):
    __tablename__ = "outputs"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    milestone_slug: Mapped[str] = mapped_column(String(32), nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    url: Mapped[str] = mapped_column(Text, nullable=False)
    source: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(120), nullable=False, default="")
    published_date: Mapped[Optional[dt.date]] = mapped_column(Date, nullable=True)
    last_updated: Mapped[Optional[dt.date]] = mapped_column(Date, nullable=True)
    department: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    confidence: Mapped[str] = mapped_column(
        String(10), nullable=False, default="medium"
    )
    # User-curated columns, preserved across refreshes
    dismissed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    rationale: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    rationale_updated_at: Mapped[Optional[dt.datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    fetched_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_outputs_milestone_slug", "milestone_slug"),
        Index("ix_outputs_type", "type"),
    )


class BillStage(Base):
    __tablename__ = "bill_stages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    output_id: Mapped[str] = mapped_column(
        ForeignKey("outputs.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    house: Mapped[str] = mapped_column(String(10), nullable=False)
    date: Mapped[Optional[dt.date]] = mapped_column(Date, nullable=True)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (Index("ix_bill_stages_output_id", "output_id"),)
