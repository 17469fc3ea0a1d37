"""SQLAlchemy 2.0 ORM models for the Plan for Change ingestion store.

Re-exports Base and all 7 model classes for convenient imports:
  - KpiSnapshot: dated headline metric per milestone
  - Output, BillStage: government artifacts and bill progress
  - MediaArticle: press coverage
  - CommitteeInquiry, Debate, WrittenQuestion: parliamentary activity
"""

from .base import Base
from .kpi_snapshots import KpiSnapshot
from .media_articles import MediaArticle
from .outputs import BillStage, Output
from .parliamentary import CommitteeInquiry, Debate, WrittenQuestion

__all__ = [
    "Base",
    "KpiSnapshot",
    "Output",
    "BillStage",
    "MediaArticle",
    "CommitteeInquiry",
    "Debate",
    "WrittenQuestion",
]
