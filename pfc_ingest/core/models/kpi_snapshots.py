"""KPI snapshot table -- one dated measurement of a milestone's headline metric.

Natural key: (milestone_slug, date). A later fetch for the same reporting
period replaces the stored value, so revised figures win. ``date`` is the
period anchor chosen by each source (quarter start, financial-year end,
month-end) and is never re-normalized here.
"""

import datetime as dt
from typing import Optional

from sqlalchemy import (
    Date,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class KpiSnapshot(Base):
    __tablename__ = "kpi_snapshots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    milestone_slug: Mapped[str] = mapped_column(String(32), nullable=False)
    value: Mapped[float] = mapped_column(Float, nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    label: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    fetched_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "milestone_slug", "date", name="uq_kpi_snapshots_natural_key"
        ),
        Index("ix_kpi_snapshots_milestone_slug", "milestone_slug"),
    )
