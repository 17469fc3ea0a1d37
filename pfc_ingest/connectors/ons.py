"""ONS connector -- economic growth from the ONS time series JSON endpoint.

Fetches quarterly observations from
``https://www.ons.gov.uk/{topic}/timeseries/{series}/{dataset}/data`` and
stores them as KPI snapshots for the economic-growth milestone.

Key design decisions:
- Primary: real household disposable income per head (CRXS, then CRXX in
  UKEA); secondary: GDP quarterly growth (IHYQ, then ABMI in PN2)
- The first series returning a non-empty ``quarters`` array is used
- The legacy api.ons.gov.uk domain no longer serves time series data, so
  the website endpoint is used
- Date = first day of the quarter; label "Q3 2024"; years before 2020
  dropped
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from pfc_ingest.connectors.base import KpiConnector
from pfc_ingest.core.enums import MilestoneSlug
from pfc_ingest.core.utils.parsing import parse_numeric_value, parse_quarter_number, parse_year, quarter_period
from pfc_ingest.extraction.points import DataPoint

ONS_BASE_URL = "https://www.ons.gov.uk"
GDP_TOPIC = "economy/grossdomesticproductgdp"

_QUARTER_RE = re.compile(r"Q([1-4])", re.IGNORECASE)


@dataclass(frozen=True)
class SeriesConfig:
    """One ONS time series: CDID, dataset and topic path."""

    series_id: str
    dataset_id: str
    label: str
    topic_path: str = GDP_TOPIC

    @property
    def url(self) -> str:
        return (
            f"{ONS_BASE_URL}/{self.topic_path}/timeseries/"
            f"{self.series_id.lower()}/{self.dataset_id.lower()}/data"
        )


PRIMARY_SERIES = (
    SeriesConfig("CRXS", "UKEA", "RHDI per head index"),
    SeriesConfig("CRXX", "UKEA", "RHDI per head (alt)"),
)
SECONDARY_SERIES = (
    SeriesConfig("IHYQ", "PN2", "GDP quarterly growth"),
    SeriesConfig("ABMI", "PN2", "GDP at market prices"),
)


def parse_quarters(quarters: Sequence[Any]) -> list[DataPoint]:
    """Map ONS ``quarters`` entries to points, skipping unusable entries.

    An entry's quarter comes from its ``quarter`` field, or from the
    ``date`` text ("2024 Q3") when that is blank.
    """
    points: list[DataPoint] = []
    for entry in quarters:
        if not isinstance(entry, dict):
            continue
        year = parse_year(entry.get("year"))
        value = parse_numeric_value(entry.get("value"))
        if year is None or value is None:
            continue
        quarter = parse_quarter_number(entry.get("quarter"))
        if quarter is None:
            m = _QUARTER_RE.search(str(entry.get("date") or ""))
            quarter = int(m.group(1)) if m else None
        if quarter is None:
            continue
        points.append(DataPoint.at(value, quarter_period(year, quarter)))
    return points


class OnsGdpConnector(KpiConnector):
    """Connector for ONS economic growth time series.

    Usage::

        async with OnsGdpConnector(storage) as conn:
            count = await conn.run()
    """

    SOURCE_NAME: str = "ONS"
    MILESTONE: str = MilestoneSlug.ECONOMIC_GROWTH.value

    async def fetch_series(self, config: SeriesConfig) -> Optional[list[Any]]:
        """Return the ``quarters`` array of one series, or None."""
        self.log.info("fetching_series", series=config.series_id, label=config.label)
        data = await self._get_json_soft(config.url, headers={"Accept": "application/json"})
        if data is None:
            return None
        quarters = data.get("quarters") if isinstance(data, dict) else None
        if not isinstance(quarters, list):
            self.log.warning("series_without_quarters", series=config.series_id)
            return None
        return quarters

    async def fetch(self, **kwargs: Any) -> list[DataPoint]:
        """Fetch the first available series, primary before secondary.

        Returns:
            Quarterly observations from 2020, oldest first.
        """
        for config in (*PRIMARY_SERIES, *SECONDARY_SERIES):
            quarters = await self.fetch_series(config)
            if not quarters:
                continue
            points = self.finalize(parse_quarters(quarters))
            if not points:
                self.log.error("no_valid_quarters", series=config.series_id)
                return []
            self.log.info(
                "series_selected",
                series=config.series_id,
                label=config.label,
                count=len(points),
                latest=points[-1].label,
            )
            return points

        self.log.error("all_series_failed")
        return []
