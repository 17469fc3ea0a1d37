"""Tests for pfc_ingest.core.utils.logging_config."""

from __future__ import annotations

from unittest.mock import patch

import structlog

from pfc_ingest.core.utils import logging_config
from pfc_ingest.core.utils.logging_config import configure_logging, get_logger


def test_get_logger_binds_context() -> None:
    log = get_logger("tests.logging").bind(step="ons")
    log.info("logger_ready")


def test_verbose_reconfigures_after_default(monkeypatch) -> None:
    monkeypatch.setattr(logging_config, "_configured", True)
    with patch.object(structlog, "configure") as configure:
        configure_logging()
        configure_logging(verbose=True)
    assert configure.call_count == 1
