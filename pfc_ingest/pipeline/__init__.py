"""Refresh orchestration for the Plan for Change ingestion.

Provides the RefreshPipeline class that runs every KPI and entity
connector in order against one Storage.

Usage::

    from pfc_ingest.pipeline import RefreshPipeline
    result = await RefreshPipeline.from_settings().run()
"""

from pfc_ingest.pipeline.refresh import RefreshPipeline, RefreshResult, RefreshStep, STEP_KEYS

__all__ = [
    "RefreshPipeline",
    "RefreshResult",
    "RefreshStep",
    "STEP_KEYS",
]
