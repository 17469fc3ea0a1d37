"""Storage layer for the ingestion pipeline.

``Storage`` wraps an async SQLAlchemy engine and exposes the upsert
contracts the connectors write through:

- KPI snapshots and outputs: replace by natural key, last write wins
- bill stages: delete-all-then-insert per parent output, skipped when the
  stage list is unknown (None)
- media articles: insert-or-ignore by URL, first seen wins
- committee inquiries, debates, written questions: replace by id

Each public write runs in a single transaction, so a failed batch leaves
no partial rows behind. Writes are serialized through one asyncio.Lock
(single-writer discipline); reads are not locked.

The storage object is constructed explicitly and passed to connectors, so
tests can point it at an in-memory SQLite database::

    async with Storage("sqlite+aiosqlite:///:memory:") as storage:
        await storage.create_schema()
        await storage.upsert_kpi_snapshots("housing", points)
"""

from __future__ import annotations

import asyncio
import datetime as dt
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

from sqlalchemy import delete, event, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from .config import Settings, settings as default_settings
from .models import (
    Base,
    BillStage,
    CommitteeInquiry,
    Debate,
    KpiSnapshot,
    MediaArticle,
    Output,
    WrittenQuestion,
)
from .utils.logging_config import get_logger

logger = get_logger("core.database")

# Columns a refresh never overwrites on an existing output
USER_CURATED_OUTPUT_COLUMNS = ("dismissed", "rationale", "rationale_updated_at")


def _set_sqlite_pragma(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Storage:
    """Explicitly constructed handle on the relational store.

    Args:
        database_url: SQLAlchemy async URL. ``sqlite+aiosqlite`` and
            ``postgresql+asyncpg`` are supported.
        echo: Log SQL statements.
    """

    def __init__(self, database_url: str, echo: bool = False) -> None:
        self.database_url = database_url
        url = make_url(database_url)
        self.dialect = url.get_backend_name()
        self.log = logger.bind(dialect=self.dialect)

        engine_kwargs: dict[str, Any] = {"echo": echo}
        if self.dialect == "sqlite":
            database = url.database or ""
            if database in ("", ":memory:"):
                # One shared connection, otherwise each session sees its own empty DB
                engine_kwargs["poolclass"] = StaticPool
                engine_kwargs["connect_args"] = {"check_same_thread": False}
            else:
                Path(database).parent.mkdir(parents=True, exist_ok=True)
        else:
            engine_kwargs["pool_pre_ping"] = True

        self.engine: AsyncEngine = create_async_engine(database_url, **engine_kwargs)
        if self.dialect == "sqlite":
            event.listen(self.engine.sync_engine, "connect", _set_sqlite_pragma)

        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            autoflush=False,
            expire_on_commit=False,
        )
        self._write_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "Storage":
        config = config or default_settings
        return cls(config.database_url, echo=config.debug)

    async def __aenter__(self) -> "Storage":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def create_schema(self) -> None:
        """Create all tables that do not exist yet."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        await self.engine.dispose()

    # -----------------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------------
    def _insert(self, model_class: type) -> Any:
        if self.dialect == "postgresql":
            return pg_insert(model_class)
        return sqlite_insert(model_class)

    def _upsert_stmt(
        self,
        model_class: type,
        records: list[dict[str, Any]],
        index_elements: Sequence[str],
        preserve: Sequence[str] = (),
    ) -> Any:
        """INSERT ... ON CONFLICT (index_elements) DO UPDATE of all other columns."""
        stmt = self._insert(model_class).values(records)
        skip = set(index_elements) | set(preserve) | {"id"}
        update_cols = {
            key: stmt.excluded[key] for key in records[0] if key not in skip
        }
        update_cols["fetched_at"] = func.now()
        return stmt.on_conflict_do_update(
            index_elements=list(index_elements), set_=update_cols
        )

    # -----------------------------------------------------------------------
    # KPI snapshots
    # -----------------------------------------------------------------------
    async def upsert_kpi_snapshots(self, milestone_slug: str, points: Iterable[Any]) -> int:
        """Replace KPI snapshots on ``(milestone_slug, date)``.

        Points are de-duplicated by date (later points win) and written in
        ascending date order as one atomic batch.

        Args:
            milestone_slug: Milestone the points belong to.
            points: Objects with ``value``, ``date`` and ``label``
                attributes (DataPoint) or equivalent dicts.

        Returns:
            Number of snapshots written.
        """
        by_date: dict[dt.date, dict[str, Any]] = {}
        for point in points:
            record = _point_record(point)
            by_date[record["date"]] = record
        if not by_date:
            return 0

        records = [
            {"milestone_slug": milestone_slug, **by_date[d]} for d in sorted(by_date)
        ]
        async with self._write_lock:
            async with self.session_factory() as session:
                async with session.begin():
                    stmt = self._upsert_stmt(
                        KpiSnapshot, records, ("milestone_slug", "date")
                    )
                    await session.execute(stmt)

        self.log.info("kpi_snapshots_upserted", milestone=milestone_slug, count=len(records))
        return len(records)

    async def get_kpi_snapshots(self, milestone_slug: str) -> list[KpiSnapshot]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(KpiSnapshot)
                .where(KpiSnapshot.milestone_slug == milestone_slug)
                .order_by(KpiSnapshot.date)
            )
            return list(result.scalars().all())

    # -----------------------------------------------------------------------
    # Outputs and bill stages
    # -----------------------------------------------------------------------
    async def upsert_outputs(self, outputs: Sequence[dict[str, Any]]) -> int:
        """Replace outputs by id, keeping user-curated columns of existing rows."""
        records = _dedupe_by_id(outputs)
        if not records:
            return 0
        async with self._write_lock:
            async with self.session_factory() as session:
                async with session.begin():
                    await self._upsert_outputs(session, records)
        return len(records)

    async def _upsert_outputs(self, session: AsyncSession, records: list[dict[str, Any]]) -> None:
        for chunk in _group_by_keys(records):
            stmt = self._upsert_stmt(
                Output, chunk, ("id",), preserve=USER_CURATED_OUTPUT_COLUMNS
            )
            await session.execute(stmt)

    async def replace_bill_stages(
        self, output_id: str, stages: Sequence[dict[str, Any]]
    ) -> int:
        """Delete every stage of ``output_id`` and insert ``stages`` in order."""
        async with self._write_lock:
            async with self.session_factory() as session:
                async with session.begin():
                    return await self._replace_bill_stages(session, output_id, stages)

    async def _replace_bill_stages(
        self, session: AsyncSession, output_id: str, stages: Sequence[dict[str, Any]]
    ) -> int:
        await session.execute(delete(BillStage).where(BillStage.output_id == output_id))
        for position, stage in enumerate(stages):
            session.add(
                BillStage(
                    output_id=output_id,
                    position=position,
                    name=stage["name"],
                    house=stage["house"],
                    date=stage.get("date"),
                    completed=bool(stage.get("completed", False)),
                )
            )
        return len(stages)

    async def upsert_bill(
        self, output: dict[str, Any], stages: Optional[Sequence[dict[str, Any]]]
    ) -> None:
        """Upsert a bill output and replace its stages in one transaction."""
        await self.upsert_bills([(output, stages)])

    async def upsert_bills(
        self,
        bills: Sequence[tuple[dict[str, Any], Optional[Sequence[dict[str, Any]]]]],
    ) -> int:
        """Upsert bill outputs and their stages as one atomic batch.

        Args:
            bills: ``(output, stages)`` pairs. ``stages`` of None means the
                stage list could not be fetched; the stored stages of that
                bill are left as they are.

        Returns:
            Number of bills written.
        """
        if not bills:
            return 0
        async with self._write_lock:
            async with self.session_factory() as session:
                async with session.begin():
                    await self._upsert_outputs(session, _dedupe_by_id(output for output, _ in bills))
                    for output, stages in bills:
                        if stages is not None:
                            await self._replace_bill_stages(session, output["id"], stages)
        return len(bills)

    async def get_output(self, output_id: str) -> Output | None:
        async with self.session_factory() as session:
            return await session.get(Output, output_id)

    async def get_bill_stages(self, output_id: str) -> list[BillStage]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(BillStage)
                .where(BillStage.output_id == output_id)
                .order_by(BillStage.position)
            )
            return list(result.scalars().all())

    async def list_high_confidence_outputs(
        self,
        milestone_slug: str,
        types: Sequence[str],
        since: dt.date,
        limit: int = 50,
    ) -> list[Output]:
        """Non-dismissed high-confidence outputs of ``types`` published since ``since``."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(Output)
                .where(
                    Output.milestone_slug == milestone_slug,
                    Output.confidence == "high",
                    Output.dismissed.is_(False),
                    Output.type.in_(list(types)),
                    Output.published_date >= since,
                )
                .order_by(Output.published_date.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    async def set_dismissed(self, output_id: str, dismissed: bool = True) -> None:
        async with self._write_lock:
            async with self.session_factory() as session:
                async with session.begin():
                    await session.execute(
                        update(Output)
                        .where(Output.id == output_id)
                        .values(dismissed=dismissed)
                    )

    # -----------------------------------------------------------------------
    # Media articles
    # -----------------------------------------------------------------------
    async def insert_media_articles(self, articles: Sequence[dict[str, Any]]) -> int:
        """Insert articles, ignoring any whose URL (or id) is already stored.

        Returns:
            Number of rows actually inserted.
        """
        seen_urls: set[str] = set()
        records: list[dict[str, Any]] = []
        for article in _dedupe_by_id(articles):
            if article["url"] in seen_urls:
                continue
            seen_urls.add(article["url"])
            records.append(article)
        if not records:
            return 0

        inserted = 0
        async with self._write_lock:
            async with self.session_factory() as session:
                async with session.begin():
                    for chunk in _group_by_keys(records):
                        stmt = self._insert(MediaArticle).values(chunk).on_conflict_do_nothing()
                        result = await session.execute(stmt)
                        inserted += max(result.rowcount or 0, 0)
        return inserted

    async def get_media_articles(self, milestone_slug: str) -> list[MediaArticle]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(MediaArticle)
                .where(MediaArticle.milestone_slug == milestone_slug)
                .order_by(MediaArticle.published_date.desc())
            )
            return list(result.scalars().all())

    # -----------------------------------------------------------------------
    # Parliamentary activity
    # -----------------------------------------------------------------------
    async def _replace_by_id(self, *batches: tuple[type, Sequence[dict[str, Any]]]) -> int:
        """Replace rows by id for every ``(model_class, rows)`` batch in one transaction."""
        deduped = [(model_class, _dedupe_by_id(rows)) for model_class, rows in batches]
        written = sum(len(records) for _, records in deduped)
        if not written:
            return 0
        async with self._write_lock:
            async with self.session_factory() as session:
                async with session.begin():
                    for model_class, records in deduped:
                        for chunk in _group_by_keys(records):
                            await session.execute(self._upsert_stmt(model_class, chunk, ("id",)))
        return written

    async def upsert_committee_inquiries(self, inquiries: Sequence[dict[str, Any]]) -> int:
        return await self._replace_by_id((CommitteeInquiry, inquiries))

    async def upsert_debates(self, debates: Sequence[dict[str, Any]]) -> int:
        return await self._replace_by_id((Debate, debates))

    async def upsert_written_questions(self, questions: Sequence[dict[str, Any]]) -> int:
        return await self._replace_by_id((WrittenQuestion, questions))

    async def upsert_hansard(
        self, debates: Sequence[dict[str, Any]], questions: Sequence[dict[str, Any]]
    ) -> int:
        """Replace debates and written questions together as one atomic batch."""
        return await self._replace_by_id((Debate, debates), (WrittenQuestion, questions))

    # -----------------------------------------------------------------------
    # Diagnostics
    # -----------------------------------------------------------------------
    async def count_rows(self, model_class: type) -> int:
        async with self.session_factory() as session:
            result = await session.execute(select(func.count()).select_from(model_class))
            return int(result.scalar_one())


# ---------------------------------------------------------------------------
# Record helpers
# ---------------------------------------------------------------------------
def _point_record(point: Any) -> dict[str, Any]:
    if isinstance(point, dict):
        return {"value": point["value"], "date": point["date"], "label": point.get("label")}
    return {"value": point.value, "date": point.date, "label": point.label}


def _dedupe_by_id(rows: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    """Later rows with the same id replace earlier ones; order of first sight kept."""
    by_id: dict[Any, dict[str, Any]] = {}
    for row in rows:
        by_id[row["id"]] = dict(row)
    return list(by_id.values())


def _group_by_keys(records: list[dict[str, Any]]) -> list[list[dict[str, Any]]]:
    """Split records into batches sharing the same key set.

    A multi-row VALUES clause needs every row to name the same columns.
    """
    groups: dict[tuple[str, ...], list[dict[str, Any]]] = {}
    for record in records:
        groups.setdefault(tuple(sorted(record)), []).append(record)
    return list(groups.values())
