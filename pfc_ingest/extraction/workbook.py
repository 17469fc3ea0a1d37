"""Spreadsheet payload parsing into typed Workbooks.

Government statistics arrive as .xlsx, legacy .xls or .ods, and GOV.UK has
been migrating attachments between these formats, so the URL extension is
not always trustworthy. The engine is chosen from the file signature
first and the filename second, then pandas reads every sheet with no
header inference (``header=None``) so row/column positions are preserved
exactly as they appear in the file.
"""

from __future__ import annotations

import io
from urllib.parse import urlparse

import pandas as pd
import structlog

from pfc_ingest.core.exceptions import DataParsingError
from pfc_ingest.extraction.cells import Sheet, Workbook

logger = structlog.get_logger(__name__)

_OLE_SIGNATURE = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"
_ZIP_SIGNATURE = b"PK\x03\x04"
_ODS_MIMETYPE = b"application/vnd.oasis.opendocument.spreadsheet"

ENGINE_BY_EXTENSION = {
    ".xlsx": "openpyxl",
    ".xlsm": "openpyxl",
    ".xls": "xlrd",
    ".ods": "odf",
}


def detect_engine(content: bytes, filename: str = "") -> str:
    """Pick the pandas Excel engine for a payload.

    Args:
        content: Raw file bytes.
        filename: URL or file name, used when the signature is ambiguous.

    Returns:
        One of "openpyxl", "xlrd" or "odf".

    Raises:
        DataParsingError: If the payload is not a recognizable spreadsheet.
    """
    head = content[:128]
    if head.startswith(_OLE_SIGNATURE):
        return "xlrd"
    if head.startswith(_ZIP_SIGNATURE):
        # ODF packages store an uncompressed "mimetype" entry first
        if _ODS_MIMETYPE in head or _ODS_MIMETYPE in content[:512]:
            return "odf"
        return "openpyxl"

    path = urlparse(filename).path.lower() if filename else ""
    for ext, engine in ENGINE_BY_EXTENSION.items():
        if path.endswith(ext):
            return engine

    raise DataParsingError(
        f"Unrecognized spreadsheet payload ({len(content)} bytes) from {filename or '<bytes>'}"
    )


def load_workbook(content: bytes, filename: str = "") -> Workbook:
    """Parse spreadsheet bytes into a Workbook of typed cells.

    Args:
        content: Raw .xlsx / .xls / .ods bytes.
        filename: Source URL or file name (for engine fallback and logging).

    Returns:
        Workbook with one Sheet per worksheet, in file order.

    Raises:
        DataParsingError: If the payload cannot be read by any engine.
    """
    if not content:
        raise DataParsingError(f"Empty spreadsheet payload from {filename or '<bytes>'}")

    engine = detect_engine(content, filename)
    try:
        frames = pd.read_excel(
            io.BytesIO(content),
            sheet_name=None,
            header=None,
            dtype=object,
            engine=engine,
        )
    except Exception as exc:
        raise DataParsingError(
            f"Failed to parse spreadsheet from {filename or '<bytes>'} "
            f"with engine {engine}: {exc}"
        ) from exc

    sheets = [
        Sheet.from_values(str(name), df.values.tolist())
        for name, df in frames.items()
    ]
    logger.debug(
        "workbook_loaded",
        source=filename,
        engine=engine,
        sheets=[s.name for s in sheets],
    )
    return Workbook(sheets=sheets, source=filename)
