"""
CSV and spreadsheet exports of a probability report.

Layout (column order is relied on by downstream consumers):
  provenance comment line
  summary header + one summary row
  blank line
  per-day header + one row per sample day
"""
from __future__ import annotations

import csv
import io
import logging
import math
import re

from openpyxl import Workbook
from openpyxl.chart import BarChart, Reference
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side

import config
from models.observation import Location
from models.report import CONDITION_KEYS, ProbabilityReport
from services.probability_engine import Thresholds, all_daily_breakdowns, resolve_conditions

logger = logging.getLogger("power_odds.export")

SUMMARY_HEADER = [
    "name",
    "lat",
    "lng",
    "month",
    "day",
    "windowDays",
    "veryHot_pct",
    "veryCold_pct",
    "veryWet_pct",
    "veryWindy_pct",
    "veryUncomfortable_pct",
    "sampleCount",
]
SAMPLE_HEADER = ["date", "T2M", "RH2M", "WS2M", "PRECTOTCORR"]

_WHITESPACE_RE = re.compile(r"\s+")


def _format_number(value: float | int | None) -> str:
    """Plain decimal text; absent → empty field. 33.0 → '33', 25.1 → '25.1'."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return repr(value) if isinstance(value, float) else str(value)


def build_csv(report: ProbabilityReport, location: Location) -> str:
    """Render *report* for *location* as CSV text (UTF-8 safe, '\\n' line endings)."""
    buf = io.StringIO()
    buf.write(config.EXPORT_SOURCE_LINE + "\n")
    writer = csv.writer(buf, lineterminator="\n")

    writer.writerow(SUMMARY_HEADER)
    writer.writerow(
        [
            location.name or "",
            _format_number(location.lat),
            _format_number(location.lng),
            report.target_month,
            report.target_day,
            report.window_days,
            *(report.condition(key).percentage for key in CONDITION_KEYS),
            report.sample_count,
        ]
    )

    buf.write("\n")
    writer.writerow(SAMPLE_HEADER)
    for obs in report.sample:
        writer.writerow(
            [
                obs.date,
                _format_number(obs.temperature_c),
                _format_number(obs.relative_humidity_pct),
                _format_number(obs.wind_speed_mps),
                _format_number(obs.precipitation_mm_per_day),
            ]
        )
    if not report.sample:
        buf.write("\n")

    text = buf.getvalue()
    logger.debug("Built CSV export for %r: %d sample rows", location.name, report.sample_count)
    return text


def export_filename(location: Location, report: ProbabilityReport) -> str:
    """Download name, e.g. nasa_power_prob_sibu,_sarawak_6_15_pm2.csv."""
    name = _WHITESPACE_RE.sub("_", location.name or "location").lower()
    return (
        f"{config.EXPORT_FILENAME_PREFIX}_{name}_"
        f"{report.target_month}_{report.target_day}_pm{report.window_days}.csv"
    )


# ── Spreadsheet export ────────────────────────────────────────────────────────

XLSX_SHEET_TITLE = "Weather Analysis"
XLSX_SUMMARY_HEADER = ["Weather Condition", "Probability (%)", "Visual Chart"]
XLSX_DAILY_HEADER = [
    "Date",
    "Month",
    "Day",
    "Very Hot (%)",
    "Very Cold (%)",
    "Very Wet (%)",
    "Very Windy (%)",
    "Very Uncomfortable (%)",
]
XLSX_SUMMARY_FIRST_ROW = 4  # title, blank, header
_BAR_WIDTH = 40

_TITLE_FONT = Font(size=16, bold=True, color="FF1F4788")
_SECTION_FONT = Font(size=14, bold=True, color="FF1F4788")
_HEADER_FONT = Font(bold=True, color="FFFFFFFF")
_TITLE_FILL = PatternFill("solid", fgColor="FFE7F3FF")
_HEADER_FILL = PatternFill("solid", fgColor="FF4472C4")
_CENTER = Alignment(horizontal="center", vertical="center")
_THIN = Side(style="thin")
_BORDER = Border(top=_THIN, left=_THIN, bottom=_THIN, right=_THIN)


def _level_fill(percentage: int) -> PatternFill:
    """Red from 60%, amber from 30%, green below."""
    if percentage >= 60:
        color = "FFFF6B6B"
    elif percentage >= 30:
        color = "FFFFD93D"
    else:
        color = "FF92D050"
    return PatternFill("solid", fgColor=color)


def _mean_percentage(values: list[int]) -> int:
    if not values:
        return 0
    return int(math.floor(sum(values) / len(values) + 0.5))


def _style_header(ws, row: int) -> None:
    for cell in ws[row]:
        cell.font = _HEADER_FONT
        cell.fill = _HEADER_FILL
        cell.alignment = _CENTER


def build_xlsx(
    report: ProbabilityReport,
    location: Location,
    thresholds: Thresholds | None = None,
) -> bytes:
    """
    Render *report* as a one-sheet workbook and return the .xlsx bytes.

    Sheet layout:
      row 1            title
      rows 3..8        summary table, one row per condition with the mean of
                       its per-day percentages, a coloured cell and a text bar,
                       plus a bar chart over the same cells
      after a gap      "Daily Breakdown Data" and one row per month/day with
                       every condition's percentage
    """
    breakdowns = all_daily_breakdowns(report, thresholds)
    conditions = resolve_conditions(thresholds)

    days: dict[tuple[int, int], dict[str, int]] = {}
    for key in CONDITION_KEYS:
        for entry in breakdowns[key]:
            days.setdefault((entry.month, entry.day), {})[key] = entry.percentage

    wb = Workbook()
    ws = wb.active
    ws.title = XLSX_SHEET_TITLE

    ws.merge_cells("A1:C1")
    title = ws["A1"]
    title.value = f"Weather Probability Analysis - {location.name or 'Location'}"
    title.font = _TITLE_FONT
    title.fill = _TITLE_FILL
    title.alignment = _CENTER
    ws.row_dimensions[1].height = 30

    ws.append([])
    ws.append(XLSX_SUMMARY_HEADER)
    _style_header(ws, ws.max_row)
    ws.row_dimensions[ws.max_row].height = 25

    for key in CONDITION_KEYS:
        pct = _mean_percentage([entry.percentage for entry in breakdowns[key]])
        bar = "█" * max(1, int(math.floor(pct / 100 * _BAR_WIDTH + 0.5)))
        ws.append([conditions[key].label, pct, f"{bar} {pct}%"])
        row = ws.max_row
        ws.cell(row, 1).alignment = _CENTER
        pct_cell = ws.cell(row, 2)
        pct_cell.fill = _level_fill(pct)
        pct_cell.font = Font(bold=True, size=14)
        pct_cell.alignment = _CENTER
        bar_cell = ws.cell(row, 3)
        bar_cell.font = Font(size=11, color="FF4472C4")
        bar_cell.alignment = Alignment(horizontal="left", vertical="center")
        ws.row_dimensions[row].height = 22
    summary_last_row = ws.max_row

    if days:
        chart = BarChart()
        chart.type = "col"
        chart.title = "Probability by condition"
        chart.y_axis.title = "%"
        chart.legend = None
        data = Reference(ws, min_col=2, min_row=XLSX_SUMMARY_FIRST_ROW - 1,
                         max_row=summary_last_row)
        labels = Reference(ws, min_col=1, min_row=XLSX_SUMMARY_FIRST_ROW,
                           max_row=summary_last_row)
        chart.add_data(data, titles_from_data=True)
        chart.set_categories(labels)
        ws.add_chart(chart, "E3")

    ws.append([])
    ws.append([])
    ws.append(["Daily Breakdown Data"])
    row = ws.max_row
    ws.merge_cells(start_row=row, start_column=1, end_row=row, end_column=len(XLSX_DAILY_HEADER))
    section = ws.cell(row, 1)
    section.font = _SECTION_FONT
    section.fill = _TITLE_FILL
    section.alignment = _CENTER
    ws.row_dimensions[row].height = 25

    ws.append(XLSX_DAILY_HEADER)
    _style_header(ws, ws.max_row)
    for (month, day), pcts in sorted(days.items()):
        ws.append([f"{month}/{day}", month, day, *(pcts.get(key, 0) for key in CONDITION_KEYS)])
        for cell in ws[ws.max_row]:
            cell.alignment = _CENTER

    for column, width in zip("ABCDEFGH", (25, 18, 60, 15, 15, 15, 15, 22)):
        ws.column_dimensions[column].width = width
    for cells in ws.iter_rows(min_row=2):
        for cell in cells:
            if cell.value is not None:
                cell.border = _BORDER

    buf = io.BytesIO()
    wb.save(buf)
    logger.debug("Built workbook export for %r: %d days", location.name, len(days))
    return buf.getvalue()


def xlsx_filename(location: Location, report: ProbabilityReport) -> str:
    """Download name, e.g. weather_analysis_sibu,_sarawak_6_15.xlsx."""
    name = _WHITESPACE_RE.sub("_", location.name or "location").lower()
    return f"{config.XLSX_FILENAME_PREFIX}_{name}_{report.target_month}_{report.target_day}.xlsx"
