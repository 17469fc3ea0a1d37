"""Worksheet selection heuristics.

Statistical workbooks bundle a cover page, contents, notes and many
tables. Selection order is: an exact known sheet name, then name patterns
in priority order, then an optional name prefix, then the first sheet that
is not front matter, and finally the first sheet of any kind.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from pfc_ingest.extraction.cells import Sheet, Workbook

FRONT_MATTER_WORDS = ("content", "note", "cover", "info")


@dataclass(frozen=True)
class SheetPreference:
    exact_names: tuple[str, ...] = ()
    patterns: tuple[str, ...] = ()
    prefix: str | None = None
    front_matter: tuple[str, ...] = FRONT_MATTER_WORDS


def is_front_matter(name: str, words: tuple[str, ...] = FRONT_MATTER_WORDS) -> bool:
    lower = name.lower()
    return any(word in lower for word in words)


def select_sheet(workbook: Workbook, preference: SheetPreference) -> Sheet | None:
    """Choose the most likely data sheet in ``workbook``.

    Args:
        workbook: Parsed workbook.
        preference: Source-specific naming preferences.

    Returns:
        The selected Sheet, or None for an empty workbook.
    """
    for name in preference.exact_names:
        sheet = workbook.get(name)
        if sheet is not None:
            return sheet

    for pattern in preference.patterns:
        regex = re.compile(pattern, re.IGNORECASE)
        for sheet in workbook:
            if regex.search(sheet.name):
                return sheet

    if preference.prefix:
        prefix = preference.prefix.lower()
        for sheet in workbook:
            if sheet.name.lower().startswith(prefix):
                return sheet

    for sheet in workbook:
        if not is_front_matter(sheet.name, preference.front_matter):
            return sheet

    return workbook.sheets[0] if workbook.sheets else None
