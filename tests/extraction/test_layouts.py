"""Tests for layout hypotheses and the table extractor.

Verifies:
- Transposed layout: heading row by period count or by section title,
  data row by label, stacked tables separated by blank rows
- Row-oriented layout: value/date columns from the header row, year +
  quarter columns, rows with unusable cells dropped
- Column-oriented layout: keyword value column with a numeric fallback
- Computed ratio layout: share derived from two absolute columns
- TableExtractor: hypothesis order, cross-sheet retry, cutoff, and a
  raising hypothesis treated as a miss
"""

from __future__ import annotations

from datetime import date

from pfc_ingest.core.utils.parsing import round_count
from pfc_ingest.extraction.cells import Sheet, Workbook, to_cell
from pfc_ingest.extraction.headers import HeaderRule, exactly
from pfc_ingest.extraction.layouts import (
    ColumnOrientedLayout,
    ComputedRatioLayout,
    ExtractionHypothesis,
    PeriodColumns,
    RowOrientedLayout,
    TableExtractor,
    TransposedLayout,
    ValueColumn,
    period_from_row,
)
from pfc_ingest.extraction.periods import financial_year_end, month_reference, month_snapshot
from pfc_ingest.extraction.points import DataPoint
from pfc_ingest.extraction.sheets import SheetPreference

TOTAL_ROW = HeaderRule(keywords=("total net additional",))
SHARE_SECTION = HeaderRule(keywords=("share",), qualifiers=("electric",))
ALL_RENEWABLES = HeaderRule(keywords=("all renewable",))


def _values(points: list[DataPoint]) -> list[tuple[date, float, str]]:
    return [(p.date, p.value, p.label) for p in points]


# ---------------------------------------------------------------------------
# Transposed
# ---------------------------------------------------------------------------
class TestTransposedLayout:
    def test_financial_year_heading_row(self, make_sheet) -> None:
        sheet = make_sheet(
            [
                ["Table 120: net additional dwellings"],
                [None],
                [None, "2021-22", "2022-23", "2023-24"],
                ["Total net additional dwellings", 232820.4, 234400, "221,070"],
            ]
        )
        layout = TransposedLayout(
            row_label=TOTAL_ROW,
            period_parser=financial_year_end,
            min_period_headers=3,
            value_transform=round_count,
        )
        assert _values(layout.extract(sheet)) == [
            (date(2022, 3, 31), 232820, "2021-22"),
            (date(2023, 3, 31), 234400, "2022-23"),
            (date(2024, 3, 31), 221070, "2023-24"),
        ]

    def test_section_header_and_blank_row_boundary(self, make_sheet) -> None:
        sheet = make_sheet(
            [
                ["Electricity generation (GWh)", "2024 1st quarter", "2024 2nd quarter"],
                ["All renewables", 40000, 35000],
                [None],
                ["Renewables' share of electricity generation (%)", "2024 1st quarter", "2024 2nd quarter"],
                ["Wind", 0.301, 0.252],
                ["All renewables", 0.501, "[x]"],
            ]
        )
        layout = TransposedLayout(row_label=ALL_RENEWABLES, section_header=SHARE_SECTION)
        assert _values(layout.extract(sheet)) == [(date(2024, 1, 1), 50.1, "Q1 2024")]

    def test_data_row_not_crossed_past_blank(self, make_sheet) -> None:
        sheet = make_sheet(
            [
                ["Renewables' share of electricity generation (%)", "2024 1st quarter"],
                ["Wind", 30.1],
                [None],
                ["All renewables", 50.1],
            ]
        )
        layout = TransposedLayout(row_label=ALL_RENEWABLES, section_header=SHARE_SECTION)
        assert layout.extract(sheet) == []

    def test_blank_rows_under_heading_are_skipped(self, make_sheet) -> None:
        headings = ["2024 \r\n1st quarter", "2024 \r\n2nd quarter", "2024 \r\n3rd quarter", "2024 \r\n4th quarter"]
        rows: list[list] = [[None]] * 10
        rows[0] = ["Energy Trends 6.1"]
        rows[5] = ["SHARES OF ELECTRICITY GENERATED (%)", *headings]
        rows[8] = ["All renewables", 45.2, 46.1, 44.8, 47.0]
        layout = TransposedLayout(row_label=ALL_RENEWABLES, section_header=SHARE_SECTION)

        assert _values(layout.extract(make_sheet(rows))) == [
            (date(2024, 1, 1), 45.2, "Q1 2024"),
            (date(2024, 4, 1), 46.1, "Q2 2024"),
            (date(2024, 7, 1), 44.8, "Q3 2024"),
            (date(2024, 10, 1), 47.0, "Q4 2024"),
        ]

    def test_min_value_filters_zero(self, make_sheet) -> None:
        sheet = make_sheet(
            [
                [None, "2021-22", "2022-23"],
                ["Total net additional dwellings", 0, 234400],
            ]
        )
        layout = TransposedLayout(
            row_label=TOTAL_ROW,
            period_parser=financial_year_end,
            min_value=0,
            value_transform=round_count,
        )
        assert _values(layout.extract(sheet)) == [(date(2023, 3, 31), 234400, "2022-23")]

    def test_no_heading_row(self, make_sheet) -> None:
        sheet = make_sheet([["Notes"], ["Nothing to see"]])
        assert TransposedLayout(row_label=TOTAL_ROW).extract(sheet) == []


# ---------------------------------------------------------------------------
# Row-oriented
# ---------------------------------------------------------------------------
WITHIN_18 = HeaderRule(keywords=("% within 18 weeks",), max_length=40)


class TestRowOrientedLayout:
    def test_date_column_and_fraction_values(self, make_sheet) -> None:
        sheet = make_sheet(
            [
                ["RTT overview timeseries, England"],
                ["Region", "Year", "Month", "Total waiting", "% within 18 weeks"],
                ["England", "2024-25", 45383, 7_540_000, 0.589],
                ["England", "2024-25", 45413, 7_570_000, 0.591],
                ["England", "2024-25", "* Feb-24", 7_600_000, 0.6],
                ["England", "2024-25", 45444, 7_600_000, "-"],
            ]
        )
        layout = RowOrientedLayout(
            value_columns=(ValueColumn("within", (WITHIN_18,)),),
            date_column=exactly("month"),
            date_parser=month_snapshot,
        )
        assert _values(layout.extract(sheet)) == [
            (date(2024, 4, 1), 58.9, "Apr 2024"),
            (date(2024, 5, 1), 59.1, "May 2024"),
        ]

    def test_default_date_column(self, make_sheet) -> None:
        sheet = make_sheet(
            [
                [None, None, None, "% within 18 weeks"],
                ["England", None, 45383, 0.589],
            ]
        )
        layout = RowOrientedLayout(
            value_columns=(ValueColumn("within", (WITHIN_18,)),),
            date_column=exactly("month"),
            default_date_col=2,
            date_parser=month_snapshot,
        )
        assert _values(layout.extract(sheet)) == [(date(2024, 4, 1), 58.9, "Apr 2024")]

    def test_year_and_quarter_columns(self, make_sheet) -> None:
        sheet = make_sheet(
            [
                ["Year", "Quarter", "Renewable share of generation (%)"],
                [2024, "Q1", 50.1],
                [2024, "2nd quarter", 0.452],
                ["Revised", None, 12.0],
            ]
        )
        layout = RowOrientedLayout(
            value_columns=(ValueColumn("share", (HeaderRule(keywords=("share",)),)),),
            year_column=exactly("year"),
            quarter_column=exactly("quarter"),
        )
        assert _values(layout.extract(sheet)) == [
            (date(2024, 1, 1), 50.1, "Q1 2024"),
            (date(2024, 4, 1), 45.2, "Q2 2024"),
        ]

    def test_year_only_is_annual(self, make_sheet) -> None:
        sheet = make_sheet([["Year", "Share"], [2023, 47.3]])
        layout = RowOrientedLayout(
            value_columns=(ValueColumn("share", (exactly("share"),)),),
            year_column=exactly("year"),
        )
        assert _values(layout.extract(sheet)) == [(date(2023, 1, 1), 47.3, "2023")]

    def test_accept_rejects_header(self, make_sheet) -> None:
        sheet = make_sheet([["Year", "Share"], [2023, 47.3]])
        layout = RowOrientedLayout(
            value_columns=(ValueColumn("share", (exactly("share"),)),),
            year_column=exactly("year"),
            accept=lambda match: False,
        )
        assert layout.find_header(sheet) is None
        assert layout.extract(sheet) == []

    def test_combine_and_skip_zero(self, make_sheet) -> None:
        sheet = make_sheet(
            [
                ["As at", "Officers", "PCSOs"],
                ["31 March 2023", 147_000, 7_000],
                ["30 September 2023", 0, 0],
            ]
        )
        layout = RowOrientedLayout(
            value_columns=(
                ValueColumn("officers", (exactly("officers"),)),
                ValueColumn("pcsos", (exactly("pcsos"),)),
            ),
            date_column=exactly("as at"),
            date_parser=month_reference,
            combine=lambda values: sum(v or 0 for v in values.values()),
            skip_zero=True,
            value_transform=round_count,
        )
        assert _values(layout.extract(sheet)) == [(date(2023, 3, 31), 154000, "Mar 2023")]


class TestPeriodFromRow:
    def test_leading_serial(self) -> None:
        row = [to_cell(v) for v in ["England", 45383, 0.5]]
        period = period_from_row(row, PeriodColumns())
        assert period is not None
        assert period.date == date(2024, 4, 1)

    def test_date_column_beyond_row(self) -> None:
        row = [to_cell("x")]
        assert period_from_row(row, PeriodColumns(date_col=3)) is None


# ---------------------------------------------------------------------------
# Column-oriented
# ---------------------------------------------------------------------------
class TestColumnOrientedLayout:
    def test_value_header_and_fallback(self, make_sheet) -> None:
        sheet = make_sheet(
            [
                ["Table 120"],
                ["Financial year", "England"],
                ["2021-22", 232820],
                ["2022-23", "234,400"],
                ["Note: provisional", None],
                ["2023-24", None, 221070.4],
            ]
        )
        layout = ColumnOrientedLayout(
            period_parser=financial_year_end,
            value_header=exactly("england"),
            fallback_threshold=1000,
            value_transform=round_count,
        )
        assert _values(layout.extract(sheet)) == [
            (date(2022, 3, 31), 232820, "2021-22"),
            (date(2023, 3, 31), 234400, "2022-23"),
            (date(2024, 3, 31), 221070, "2023-24"),
        ]

    def test_default_value_column(self, make_sheet) -> None:
        sheet = make_sheet([["2022-23", 234400], ["2023-24", -5]])
        layout = ColumnOrientedLayout(period_parser=financial_year_end)
        assert _values(layout.extract(sheet)) == [(date(2023, 3, 31), 234400.0, "2022-23")]


# ---------------------------------------------------------------------------
# Computed ratio
# ---------------------------------------------------------------------------
class TestComputedRatioLayout:
    def test_share_from_two_columns(self, make_sheet) -> None:
        sheet = make_sheet(
            [
                ["Year", "Quarter", "Renewable generation total (GWh)", "Total electricity generation (GWh)"],
                [2024, 1, 40000, 80000],
                [2024, 2, 35000, 0],
                [2024, 3, 30000, 90000],
            ]
        )
        layout = ComputedRatioLayout(
            numerator=HeaderRule(keywords=("renewable",)),
            denominator=HeaderRule(required=("total", "generation"), excluded=("renewable",)),
            year_column=exactly("year"),
            quarter_column=exactly("quarter"),
        )
        assert _values(layout.extract(sheet)) == [
            (date(2024, 1, 1), 50.0, "Q1 2024"),
            (date(2024, 7, 1), 33.3, "Q3 2024"),
        ]

    def test_missing_denominator(self, make_sheet) -> None:
        sheet = make_sheet([["Year", "Renewable generation"], [2024, 1]])
        layout = ComputedRatioLayout(
            numerator=HeaderRule(keywords=("renewable",)),
            denominator=HeaderRule(required=("total", "generation")),
        )
        assert layout.extract(sheet) == []


# ---------------------------------------------------------------------------
# TableExtractor
# ---------------------------------------------------------------------------
class _Exploding(ExtractionHypothesis):
    name = "exploding"

    def extract(self, sheet: Sheet) -> list[DataPoint]:
        raise ValueError("malformed table")


def _annual_layout() -> ColumnOrientedLayout:
    return ColumnOrientedLayout(period_parser=financial_year_end, value_transform=round_count)


class TestTableExtractor:
    def test_raising_hypothesis_is_a_miss(self) -> None:
        workbook = Workbook(sheets=[Sheet.from_values("Data", [["2022-23", 234400]])])
        extractor = TableExtractor(hypotheses=[_Exploding(), _annual_layout()])
        assert _values(extractor.extract(workbook)) == [(date(2023, 3, 31), 234400, "2022-23")]

    def test_retry_on_other_sheets(self) -> None:
        workbook = Workbook(
            sheets=[
                Sheet.from_values("Cover", [["Live tables"]]),
                Sheet.from_values("Data", [["No periods here"]]),
                Sheet.from_values("Table 2", [["2022-23", 234400]]),
            ]
        )
        extractor = TableExtractor(
            hypotheses=[_annual_layout()],
            sheet_preference=SheetPreference(patterns=(r"data",)),
        )
        points = extractor.extract(workbook)
        assert _values(points) == [(date(2023, 3, 31), 234400, "2022-23")]

    def test_retry_sheet_filter(self) -> None:
        workbook = Workbook(
            sheets=[
                Sheet.from_values("Data", [["No periods here"]]),
                Sheet.from_values("Diversity", [["2022-23", 234400]]),
            ]
        )
        extractor = TableExtractor(
            hypotheses=[_annual_layout()],
            retry_sheets=lambda sheet: "table" in sheet.name.lower(),
        )
        assert extractor.extract(workbook) == []

    def test_points_before_cutoff_count_as_miss(self) -> None:
        sheet = Sheet.from_values(
            "Data",
            [
                ["Year", "Old series", "England"],
                ["2012-13", 124720, None],
                ["2015-16", None, 189650],
            ],
        )
        early = ColumnOrientedLayout(period_parser=financial_year_end, name="early")
        late = ColumnOrientedLayout(
            period_parser=financial_year_end,
            value_header=exactly("england"),
            name="late",
        )
        extractor = TableExtractor(hypotheses=[early, late], cutoff=date(2016, 1, 1))
        assert _values(extractor.extract(Workbook(sheets=[sheet]))) == [
            (date(2016, 3, 31), 189650.0, "2015-16")
        ]

    def test_empty_workbook(self) -> None:
        assert TableExtractor(hypotheses=[_annual_layout()]).extract(Workbook()) == []

    def test_dedupe_last_wins(self) -> None:
        sheet = Sheet.from_values("Data", [["2022-23", 230000], ["2022-23 (revised)", 234400]])
        extractor = TableExtractor(hypotheses=[_annual_layout()])
        assert _values(extractor.extract(Workbook(sheets=[sheet]))) == [
            (date(2023, 3, 31), 234400, "2022-23")
        ]
