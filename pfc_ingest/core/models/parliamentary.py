"""Parliamentary activity tables: committee inquiries, debates, written questions.

All three are keyed by a deterministic id built from the upstream
identifier and are replaced wholesale on refresh.
"""

import datetime as dt
from typing import Optional

from sqlalchemy import Boolean, Date, DateTime, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class CommitteeInquiry(Base):
    __tablename__ = "committee_inquiries"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    milestone_slug: Mapped[str] = mapped_column(String(32), nullable=False)
    committee_name: Mapped[str] = mapped_column(String(255), nullable=False)
    committee_id: Mapped[int] = mapped_column(Integer, nullable=False)
    inquiry_title: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="Open")
    url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    evidence_sessions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reports_published: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_activity: Mapped[Optional[dt.date]] = mapped_column(Date, nullable=True)
    fetched_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_committee_inquiries_milestone_slug", "milestone_slug"),
    )


class Debate(Base):
    __tablename__ = "debates"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    milestone_slug: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    house: Mapped[str] = mapped_column(String(20), nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    source: Mapped[str] = mapped_column(String(20), nullable=False)
    fetched_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (Index("ix_debates_milestone_slug", "milestone_slug"),)


class WrittenQuestion(Base):
    __tablename__ = "written_questions"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    milestone_slug: Mapped[str] = mapped_column(String(32), nullable=False)
    question_title: Mapped[str] = mapped_column(Text, nullable=False)
    asked_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    answered: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    fetched_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_written_questions_milestone_slug", "milestone_slug"),
    )
