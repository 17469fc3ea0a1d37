"""Media article table -- press coverage linked to a milestone or output.

Unique by URL with insert-or-ignore semantics: the first fetch of an
article wins and is never overwritten, since published content does not
change.
"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import Date, DateTime, Index, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class MediaArticle(Base):
    __tablename__ = "media_articles"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    milestone_slug: Mapped[str] = mapped_column(String(32), nullable=False)
    output_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    url: Mapped[str] = mapped_column(String(500), nullable=False)
    source: Mapped[str] = mapped_column(String(100), nullable=False)
    published_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    excerpt: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    thumbnail_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    api_source: Mapped[str] = mapped_column(String(20), nullable=False)
    fetched_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("url", name="uq_media_articles_url"),
        Index("ix_media_articles_milestone_slug", "milestone_slug"),
        Index("ix_media_articles_output_id", "output_id"),
        Index("ix_media_articles_published_date", "published_date"),
    )
