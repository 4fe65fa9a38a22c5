"""Spreadsheet export of the HAZID table.

The main sheet lays every hazard out as a block of merged cells using the
same row allocation as the on-screen table. Two auxiliary sheets (risk
summary, recommendations) are flat lists built independently.
"""

from __future__ import annotations

import copy
import sys
from dataclasses import dataclass, field
from io import BytesIO
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from .config import ExportSettings
from .layout import allocate_block
from .models import Hazard
from .risk_matrix import RiskMatrix

MAIN_SHEET = "HAZID"
SUMMARY_SHEET = "Risk summary"
RECOMMENDATION_SHEET = "Recommendations"

HEADERS = (
    "Hazard",
    "Causes",
    "Prevention measures",
    "Consequences",
    "Mitigation measures",
    "Severity category",
    "Severity level",
    "Likelihood level",
    "Risk",
    "Recommendations",
)
SUMMARY_HEADERS = ("Hazard", "Consequence", "Severity category", "Severity level", "Likelihood level", "Risk")
RECOMMENDATION_HEADERS = ("Hazard", "Action", "Responsible")

COL_HAZARD = 1
COL_CAUSE = 2
COL_PREVENTION = 3
COL_CONSEQUENCE = 4
COL_MITIGATION = 5
COL_SEV_CAT = 6
COL_SEV = 7
COL_LIKE = 8
COL_RISK = 9
COL_RECOMMENDATIONS = 10

WHITE = "FFFFFFFF"
TOP_LEFT_WRAP = Alignment(vertical="top", horizontal="left", wrap_text=True)
HEADER_ALIGNMENT = Alignment(vertical="center", horizontal="center", wrap_text=True)


class ExportError(RuntimeError):
    """Raised when the workbook cannot be serialised or written."""


@dataclass
class ExportReport:
    warnings: List[str] = field(default_factory=list)


def css_hex_to_argb(hex_color: str) -> str:
    """``#abc``/``#aabbcc`` to openpyxl's ``FFAABBCC``; anything else is black."""
    clean = (hex_color or "").strip().lstrip("#")
    if len(clean) == 6:
        return "FF" + clean.upper()
    if len(clean) == 3:
        return "FF" + "".join(ch * 2 for ch in clean).upper()
    return "FF000000"


def all_borders(hex_color: str) -> Border:
    side = Side(style="thin", color=css_hex_to_argb(hex_color))
    return Border(top=side, left=side, bottom=side, right=side)


def header_borders(hex_color: str) -> Border:
    outer = Side(style="thin", color=css_hex_to_argb(hex_color))
    inner = Side(style="thin", color=WHITE)
    return Border(top=outer, left=inner, bottom=outer, right=inner)


def risk_fill(hex_color: str) -> PatternFill:
    argb = css_hex_to_argb(hex_color)
    return PatternFill(fill_type="solid", start_color=argb, end_color=argb)


def merge_and_set(ws: Worksheet, start_row: int, col: int, row_span: int, value: Any) -> None:
    """Merge ``row_span`` rows of column ``col`` from ``start_row`` and write ``value``."""
    end_row = start_row + max(row_span, 1) - 1
    if end_row > start_row:
        ws.merge_cells(start_row=start_row, start_column=col, end_row=end_row, end_column=col)
    cell = ws.cell(row=start_row, column=col)
    cell.value = "" if value is None else str(value)
    cell.alignment = TOP_LEFT_WRAP


def write_header(ws: Worksheet, headers: Sequence[str], settings: ExportSettings) -> None:
    ws.append(list(headers))
    fill = risk_fill(settings.header_color)
    border = header_borders(settings.header_color)
    for cell in ws[1]:
        cell.font = Font(bold=True, color=WHITE)
        cell.fill = fill
        cell.alignment = HEADER_ALIGNMENT
        cell.border = border


def set_column_widths(ws: Worksheet, widths: Iterable[float]) -> None:
    for index, width in enumerate(widths, start=1):
        ws.column_dimensions[get_column_letter(index)].width = width


def hazard_heading(hazard: Hazard) -> str:
    return hazard.title + (f"\n{hazard.description}" if hazard.description else "")


def recommendation_lines(hazard: Hazard) -> str:
    return "\n".join(f"{r.action} — {r.responsible}" for r in hazard.recommendations)


# ----- main sheet -----

def write_hazard_block(ws: Worksheet, start_row: int, hazard: Hazard, matrix: RiskMatrix, settings: ExportSettings) -> int:
    """Write one hazard block starting at ``start_row``; returns the rows used."""
    allocation = allocate_block(hazard)
    block_rows = allocation.block_rows

    merge_and_set(ws, start_row, COL_HAZARD, block_rows, hazard_heading(hazard))

    for item in allocation.causes:
        cause = hazard.causes[item.index]
        merge_and_set(ws, start_row + item.start_row, COL_CAUSE, item.row_span, cause.text)
        for span in item.measures:
            measure = cause.prevention_measures[span.index]
            merge_and_set(ws, start_row + span.start_row, COL_PREVENTION, span.row_span, measure.text)

    for item in allocation.consequences:
        consequence = hazard.consequences[item.index]
        row = start_row + item.start_row
        merge_and_set(ws, row, COL_CONSEQUENCE, item.row_span, consequence.text)
        for span in item.measures:
            measure = consequence.mitigation_measures[span.index]
            merge_and_set(ws, start_row + span.start_row, COL_MITIGATION, span.row_span, measure.text)
        risk = consequence.risk
        merge_and_set(ws, row, COL_SEV_CAT, item.row_span, risk.severity_category)
        merge_and_set(ws, row, COL_SEV, item.row_span, risk.severity_level)
        merge_and_set(ws, row, COL_LIKE, item.row_span, risk.likelihood_level)
        merge_and_set(ws, row, COL_RISK, item.row_span, risk.risk_score)

    merge_and_set(ws, start_row, COL_RECOMMENDATIONS, block_rows, recommendation_lines(hazard))

    border = all_borders(settings.border_color)
    for r in range(start_row, start_row + block_rows):
        for c in range(COL_HAZARD, COL_RECOMMENDATIONS + 1):
            cell = ws.cell(row=r, column=c)
            cell.border = border
            cell.alignment = TOP_LEFT_WRAP

    # Colour pass runs last so the border/alignment pass cannot reset it.
    for item in allocation.consequences:
        risk = hazard.consequences[item.index].risk
        color = matrix.color_for(risk.severity_level, risk.likelihood_level)
        if not color or not risk.risk_score:
            continue
        fill = risk_fill(color)
        for r in range(start_row + item.start_row, start_row + item.start_row + item.row_span):
            cell = ws.cell(row=r, column=COL_RISK)
            cell.fill = fill
            cell.font = Font(color=WHITE)

    return block_rows


def write_main_sheet(ws: Worksheet, hazards: Sequence[Hazard], matrix: RiskMatrix, settings: ExportSettings) -> None:
    write_header(ws, HEADERS, settings)
    current_row = 2
    for hazard in hazards:
        current_row += write_hazard_block(ws, current_row, hazard, matrix, settings)
    set_column_widths(ws, settings.column_widths)
    ws.freeze_panes = "A2"


# ----- auxiliary sheets -----

def risk_summary_frame(hazards: Sequence[Hazard], matrix: RiskMatrix) -> pd.DataFrame:
    """One row per rated consequence, in table order."""
    rows = []
    for hazard_index, hazard in enumerate(hazards):
        for consequence in hazard.consequences:
            risk = consequence.risk
            if not risk.is_rated:
                continue
            rows.append({
                "hazard_index": hazard_index,
                "Hazard": hazard.title,
                "Consequence": consequence.text,
                "Severity category": risk.severity_category,
                "Severity level": risk.severity_level,
                "Likelihood level": risk.likelihood_level,
                "Risk": matrix.label_for(risk.severity_level, risk.likelihood_level),
                "color": matrix.color_for(risk.severity_level, risk.likelihood_level),
            })
    return pd.DataFrame(rows, columns=["hazard_index", *SUMMARY_HEADERS, "color"])


def recommendations_frame(hazards: Sequence[Hazard]) -> pd.DataFrame:
    rows = [
        {"hazard_index": hazard_index, "Hazard": hazard.title, "Action": r.action, "Responsible": r.responsible}
        for hazard_index, hazard in enumerate(hazards)
        for r in hazard.recommendations
    ]
    return pd.DataFrame(rows, columns=["hazard_index", *RECOMMENDATION_HEADERS])


def _write_flat_sheet(ws: Worksheet, frame: pd.DataFrame, headers: Sequence[str], settings: ExportSettings) -> None:
    write_header(ws, headers, settings)
    border = all_borders(settings.border_color)
    for record in frame.to_dict("records"):
        ws.append(["" if record[h] is None else str(record[h]) for h in headers])
        for cell in ws[ws.max_row]:
            cell.border = border
            cell.alignment = TOP_LEFT_WRAP
    # Rows are already grouped by hazard; merge the hazard column per group.
    for _, group in frame.groupby("hazard_index", sort=False):
        first = 2 + int(group.index.min())
        last = 2 + int(group.index.max())
        if last > first:
            ws.merge_cells(start_row=first, start_column=1, end_row=last, end_column=1)
    ws.freeze_panes = "A2"


def write_summary_sheet(ws: Worksheet, hazards: Sequence[Hazard], matrix: RiskMatrix, settings: ExportSettings) -> None:
    frame = risk_summary_frame(hazards, matrix)
    _write_flat_sheet(ws, frame, SUMMARY_HEADERS, settings)
    risk_col = SUMMARY_HEADERS.index("Risk") + 1
    for offset, color in enumerate(frame["color"].tolist()):
        if not color:
            continue
        cell = ws.cell(row=2 + offset, column=risk_col)
        cell.fill = risk_fill(color)
        cell.font = Font(color=WHITE)
    set_column_widths(ws, (30, 30, 18, 14, 18, 12))


def write_recommendation_sheet(ws: Worksheet, hazards: Sequence[Hazard], matrix: RiskMatrix, settings: ExportSettings) -> None:
    _write_flat_sheet(ws, recommendations_frame(hazards), RECOMMENDATION_HEADERS, settings)
    set_column_widths(ws, (30, 40, 24))


AuxBuilder = Callable[[Worksheet, Sequence[Hazard], RiskMatrix, ExportSettings], None]

AUXILIARY_SHEETS: Sequence[Tuple[str, AuxBuilder]] = (
    (SUMMARY_SHEET, write_summary_sheet),
    (RECOMMENDATION_SHEET, write_recommendation_sheet),
)


def build_workbook(
    hazards: Iterable[Hazard],
    matrix: RiskMatrix,
    settings: Optional[ExportSettings] = None,
    report: Optional[ExportReport] = None,
    auxiliary: Sequence[Tuple[str, AuxBuilder]] = AUXILIARY_SHEETS,
) -> Workbook:
    """Build the export workbook from a snapshot of ``hazards``.

    Risk scores are recomputed on the snapshot. A failing auxiliary sheet is
    dropped and noted in ``report``; the other sheets are kept.
    """
    settings = settings or ExportSettings()
    snapshot = copy.deepcopy(list(hazards))
    matrix.refresh_risk_scores(snapshot)

    wb = Workbook()
    ws = wb.active
    ws.title = MAIN_SHEET
    write_main_sheet(ws, snapshot, matrix, settings)

    for title, builder in auxiliary:
        sheet = wb.create_sheet(title)
        try:
            builder(sheet, snapshot, matrix, settings)
        except Exception as e:
            message = f"[export] Sheet \"{title}\" skipped: {e}"
            print(message, file=sys.stderr)
            if report is not None:
                report.warnings.append(message)
            wb.remove(sheet)
    return wb


def export_xlsx_bytes(
    hazards: Iterable[Hazard],
    matrix: RiskMatrix,
    settings: Optional[ExportSettings] = None,
    report: Optional[ExportReport] = None,
) -> bytes:
    wb = build_workbook(hazards, matrix, settings, report)
    buffer = BytesIO()
    try:
        wb.save(buffer)
    except Exception as e:
        raise ExportError(f"Excel export failed: {e}") from e
    return buffer.getvalue()


def export_xlsx(
    path: str,
    hazards: Iterable[Hazard],
    matrix: RiskMatrix,
    settings: Optional[ExportSettings] = None,
    report: Optional[ExportReport] = None,
) -> None:
    data = export_xlsx_bytes(hazards, matrix, settings, report)
    try:
        with open(path, "wb") as f:
            f.write(data)
    except OSError as e:
        raise ExportError(f"Could not write '{path}': {e}") from e
