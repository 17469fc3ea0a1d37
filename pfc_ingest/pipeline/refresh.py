"""Refresh pipeline -- sequential run of every connector against one store.

RefreshPipeline runs, in order:

    KPI connectors (ons, housing, nhs, police, education, energy)
    -> per milestone: govuk, bills, committees, twfy, guardian
    -> per milestone: guardian coverage of key outputs

Each step is timed and isolated: an exception is logged and recorded as a
failed step, a MissingCredentialError marks the step skipped, and the run
always continues. Steps run one at a time, so the store only ever sees a
single writer.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence

from pfc_ingest.connectors import (
    BaseConnector,
    CommitteesConnector,
    EducationConnector,
    EnergyTrendsConnector,
    GovUkSearchConnector,
    GuardianConnector,
    GuardianOutputCoverageConnector,
    HousingConnector,
    MissingCredentialError,
    NhsRttConnector,
    OnsGdpConnector,
    ParliamentBillsConnector,
    PoliceConnector,
    TheyWorkForYouConnector,
)
from pfc_ingest.core.config import Settings, settings as default_settings
from pfc_ingest.core.database import Storage
from pfc_ingest.core.milestones import MILESTONE_MAPPINGS, MilestoneMapping
from pfc_ingest.core.utils.logging_config import get_logger

logger = get_logger("pipeline.refresh")

KPI_STEPS: list[tuple[str, type[BaseConnector]]] = [
    ("ons", OnsGdpConnector),
    ("housing", HousingConnector),
    ("nhs", NhsRttConnector),
    ("police", PoliceConnector),
    ("education", EducationConnector),
    ("energy", EnergyTrendsConnector),
]

ENTITY_STEPS: list[tuple[str, type[BaseConnector]]] = [
    ("govuk", GovUkSearchConnector),
    ("bills", ParliamentBillsConnector),
    ("committees", CommitteesConnector),
    ("twfy", TheyWorkForYouConnector),
    ("guardian", GuardianConnector),
]

COVERAGE_STEP: tuple[str, type[BaseConnector]] = ("guardian_outputs", GuardianOutputCoverageConnector)

STEP_KEYS = [key for key, _ in KPI_STEPS] + [key for key, _ in ENTITY_STEPS] + [COVERAGE_STEP[0]]


# ---------------------------------------------------------------------------
# RefreshResult dataclass
# ---------------------------------------------------------------------------
@dataclass
class RefreshResult:
    """Output of a complete refresh run.

    Attributes:
        run_id: Unique UUID for this run.
        started_at: UTC start time.
        status: ``"SUCCESS"``, ``"PARTIAL"`` (some steps failed) or
            ``"FAILED"`` (every executed step failed).
        duration_seconds: Total wall-clock seconds.
        step_timings: Per-step wall-clock seconds.
        record_counts: Per-step records written.
        failed_steps: Names of steps that raised.
        skipped_steps: Names of steps skipped for a missing credential.
    """

    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    status: str = "SUCCESS"
    duration_seconds: float = 0.0
    step_timings: dict[str, float] = field(default_factory=dict)
    record_counts: dict[str, int] = field(default_factory=dict)
    failed_steps: list[str] = field(default_factory=list)
    skipped_steps: list[str] = field(default_factory=list)

    @property
    def total_records(self) -> int:
        return sum(self.record_counts.values())

    def step_status(self, name: str) -> str:
        if name in self.failed_steps:
            return "FAIL"
        if name in self.skipped_steps:
            return "SKIP"
        return "OK"

    def finalize_status(self) -> None:
        executed = [name for name in self.step_timings if name not in self.skipped_steps]
        if not self.failed_steps:
            self.status = "SUCCESS"
        elif executed and len(self.failed_steps) == len(executed):
            self.status = "FAILED"
        else:
            self.status = "PARTIAL"


@dataclass(frozen=True)
class RefreshStep:
    """A named unit of work: build a connector, then run it."""

    name: str
    key: str
    build: Callable[[], BaseConnector]


# ---------------------------------------------------------------------------
# RefreshPipeline
# ---------------------------------------------------------------------------
class RefreshPipeline:
    """Run every connector in the refresh order against one Storage.

    Args:
        storage: Target store. The caller owns its lifecycle unless the
            pipeline was built with ``from_settings``.
        settings: Settings passed to every connector.
        milestones: Milestone mappings for the entity steps (default: all).
        only: Step keys to run (e.g. ``{"ons", "govuk"}``); None runs all.
        include_kpis: Run the KPI connectors.
        include_entities: Run the entity connectors and coverage step.
    """

    def __init__(
        self,
        storage: Storage,
        settings: Optional[Settings] = None,
        milestones: Optional[Sequence[MilestoneMapping]] = None,
        only: Optional[set[str]] = None,
        include_kpis: bool = True,
        include_entities: bool = True,
    ) -> None:
        self.storage = storage
        self.settings = settings or default_settings
        self.milestones = list(milestones if milestones is not None else MILESTONE_MAPPINGS)
        self.only = only
        self.include_kpis = include_kpis
        self.include_entities = include_entities
        self._owns_storage = False

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None, **kwargs) -> "RefreshPipeline":
        """Build a pipeline with its own Storage, closed when the run ends."""
        config = config or default_settings
        pipeline = cls(Storage.from_settings(config), settings=config, **kwargs)
        pipeline._owns_storage = True
        return pipeline

    # ------------------------------------------------------------------
    # Plan
    # ------------------------------------------------------------------
    def _selected(self, key: str) -> bool:
        return self.only is None or key in self.only

    def steps(self) -> list[RefreshStep]:
        """The ordered steps this pipeline would run."""
        steps: list[RefreshStep] = []

        if self.include_kpis:
            for key, connector_class in KPI_STEPS:
                if self._selected(key):
                    steps.append(RefreshStep(key, key, self._kpi_factory(connector_class)))

        if self.include_entities:
            for mapping in self.milestones:
                for key, connector_class in ENTITY_STEPS:
                    if self._selected(key):
                        steps.append(
                            RefreshStep(
                                f"{key}:{mapping.slug.value}",
                                key,
                                self._entity_factory(connector_class, mapping),
                            )
                        )
            key, connector_class = COVERAGE_STEP
            if self._selected(key):
                for mapping in self.milestones:
                    steps.append(
                        RefreshStep(
                            f"{key}:{mapping.slug.value}",
                            key,
                            self._entity_factory(connector_class, mapping),
                        )
                    )
        return steps

    def _kpi_factory(self, connector_class: type[BaseConnector]) -> Callable[[], BaseConnector]:
        return lambda: connector_class(storage=self.storage, settings=self.settings)

    def _entity_factory(
        self, connector_class: type[BaseConnector], mapping: MilestoneMapping
    ) -> Callable[[], BaseConnector]:
        return lambda: connector_class(mapping, storage=self.storage, settings=self.settings)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    async def run(self) -> RefreshResult:
        """Execute every step in order; never raises for a step failure.

        Schema creation is not a step: without a usable store no step can
        write, so its failure aborts the run.

        Returns:
            RefreshResult with per-step timings, counts and outcomes.

        Raises:
            Exception: Whatever ``Storage.create_schema`` raised.
        """
        result = RefreshResult()
        t0 = time.monotonic()
        logger.info("refresh_started", run_id=result.run_id)

        try:
            try:
                await self.storage.create_schema()
            except Exception:
                logger.exception("storage_unavailable", run_id=result.run_id)
                raise
            for step in self.steps():
                await self._run_step(step, result)
        finally:
            if self._owns_storage:
                await self.storage.close()

        result.duration_seconds = round(time.monotonic() - t0, 3)
        result.finalize_status()
        logger.info(
            "refresh_completed",
            run_id=result.run_id,
            status=result.status,
            duration=f"{result.duration_seconds:.1f}s",
            records=result.total_records,
            failed=result.failed_steps,
            skipped=result.skipped_steps,
        )
        return result

    # ------------------------------------------------------------------
    # Step execution wrapper
    # ------------------------------------------------------------------
    async def _run_step(self, step: RefreshStep, result: RefreshResult) -> None:
        """Time a step and record its outcome; exceptions stop here."""
        t0 = time.monotonic()
        written = 0
        try:
            async with step.build() as conn:
                written = await conn.run()
        except MissingCredentialError as exc:
            result.skipped_steps.append(step.name)
            logger.info("source_skipped", step=step.name, reason=str(exc))
        except Exception as exc:  # noqa: BLE001
            result.failed_steps.append(step.name)
            logger.exception("source_failed", step=step.name, error=str(exc))
        finally:
            result.step_timings[step.name] = round(time.monotonic() - t0, 3)
        result.record_counts[step.name] = written
