from io import BytesIO

import pytest
from openpyxl import load_workbook

from hazid_core.config import ExportSettings
from hazid_core.export import (
    MAIN_SHEET,
    RECOMMENDATION_SHEET,
    SUMMARY_SHEET,
    ExportError,
    ExportReport,
    build_workbook,
    css_hex_to_argb,
    export_xlsx,
    export_xlsx_bytes,
    risk_summary_frame,
)
from hazid_core.models import Cause, Consequence, Hazard, Measure
from hazid_core.risk_matrix import RiskMatrix


def _load(hazards, matrix, settings=None):
    return load_workbook(BytesIO(export_xlsx_bytes(hazards, matrix, settings)))


def _merged(ws) -> set:
    return {str(r) for r in ws.merged_cells.ranges}


@pytest.mark.parametrize(
    "css, argb",
    [("#024F75", "FF024F75"), ("#abc", "FFAABBCC"), ("28a745", "FF28A745"), ("", "FF000000"), ("#12345", "FF000000")],
)
def test_css_hex_to_argb(css: str, argb: str) -> None:
    assert css_hex_to_argb(css) == argb


def test_main_sheet_merges_follow_allocation(workshop_hazard: Hazard, default_matrix: RiskMatrix) -> None:
    ws = _load([workshop_hazard], default_matrix)[MAIN_SHEET]

    assert _merged(ws) == {
        "A2:A5", "B2:B3", "B4:B5", "C4:C5", "D3:D5",
        "F3:F5", "G3:G5", "H3:H5", "I3:I5", "J2:J5",
    }
    assert ws["A2"].value == "Loss of containment\nFlange leak at pump P-101"
    assert [ws.cell(row=r, column=3).value for r in (2, 3, 4)] == ["A1", "A2", "B1"]
    assert [ws.cell(row=r, column=5).value for r in (2, 3, 4, 5)] == ["X1", "Y1", "Y2", "Y3"]
    assert ws["J2"].value == "Install leak detection — Ops\nReview gasket selection — Mech"
    assert ws.freeze_panes == "A2"


def test_risk_cells_are_coloured(workshop_hazard: Hazard, default_matrix: RiskMatrix) -> None:
    ws = _load([workshop_hazard], default_matrix)[MAIN_SHEET]

    assert ws["I2"].value == "High"
    assert ws["I2"].fill.start_color.rgb == "FFDC3545"
    assert ws["I2"].font.color.rgb == "FFFFFFFF"
    assert ws["I3"].value == "Low"
    assert ws["I3"].fill.start_color.rgb == "FF28A745"


def test_unrated_consequence_has_no_fill(default_matrix: RiskMatrix) -> None:
    hazard = Hazard(title="H", consequences=[Consequence(text="c")])
    hazard.consequences[0].risk.severity_level = "3"

    ws = _load([hazard], default_matrix)[MAIN_SHEET]

    assert ws["I2"].fill.fill_type is None


def test_header_styling(default_matrix: RiskMatrix) -> None:
    ws = _load([], default_matrix, ExportSettings(header_color="#112233", column_widths=(40, 10)))[MAIN_SHEET]

    assert ws["A1"].value == "Hazard"
    assert ws["J1"].value == "Recommendations"
    assert ws["A1"].font.bold
    assert ws["A1"].fill.start_color.rgb == "FF112233"
    assert ws.column_dimensions["A"].width == 40
    assert ws.column_dimensions["B"].width == 10
    assert ws.max_row == 1


def test_item_without_measures_is_not_merged(default_matrix: RiskMatrix) -> None:
    hazard = Hazard(
        title="H",
        causes=[Cause(text="c")],
        consequences=[Consequence(text="x", mitigation_measures=[Measure(text="m1"), Measure(text="m2")])],
    )

    ws = _load([hazard], default_matrix)[MAIN_SHEET]

    assert "B2:B3" in _merged(ws)
    assert not any(r.startswith("C") for r in _merged(ws))


def test_blocks_are_stacked(workshop_hazard: Hazard, default_matrix: RiskMatrix) -> None:
    second = Hazard(title="Second")

    ws = _load([workshop_hazard, second], default_matrix)[MAIN_SHEET]

    assert ws["A6"].value == "Second"
    assert ws.max_row == 6


def test_export_works_on_a_snapshot(workshop_hazard: Hazard, default_matrix: RiskMatrix) -> None:
    build_workbook([workshop_hazard], default_matrix)

    assert workshop_hazard.consequences[0].risk.risk_score == ""


def test_auxiliary_sheets(workshop_hazard: Hazard, default_matrix: RiskMatrix) -> None:
    wb = _load([workshop_hazard], default_matrix)

    assert wb.sheetnames == [MAIN_SHEET, SUMMARY_SHEET, RECOMMENDATION_SHEET]
    summary = wb[SUMMARY_SHEET]
    assert [summary.cell(row=r, column=2).value for r in (2, 3)] == ["X", "Y"]
    assert summary["F2"].value == "High"
    assert summary["F2"].fill.start_color.rgb == "FFDC3545"
    assert "A2:A3" in _merged(summary)
    recos = wb[RECOMMENDATION_SHEET]
    assert recos["B3"].value == "Review gasket selection"
    assert recos["C3"].value == "Mech"


def test_summary_only_lists_rated_consequences(workshop_hazard: Hazard, default_matrix: RiskMatrix) -> None:
    workshop_hazard.consequences[1].risk.likelihood_level = ""

    frame = risk_summary_frame([workshop_hazard], default_matrix)

    assert frame["Consequence"].tolist() == ["X"]


def test_failing_auxiliary_sheet_is_dropped(workshop_hazard: Hazard, default_matrix: RiskMatrix, capsys) -> None:
    def broken(ws, hazards, matrix, settings):
        raise KeyError("color")

    report = ExportReport()
    wb = build_workbook([workshop_hazard], default_matrix, report=report, auxiliary=[("Broken", broken)])

    assert wb.sheetnames == [MAIN_SHEET]
    assert len(report.warnings) == 1
    assert "Broken" in report.warnings[0]
    assert "Broken" in capsys.readouterr().err


def test_unwritable_path_raises_export_error(tmp_path, workshop_hazard: Hazard, default_matrix: RiskMatrix) -> None:
    with pytest.raises(ExportError):
        export_xlsx(str(tmp_path), [workshop_hazard], default_matrix)


def test_written_file_opens(tmp_path, workshop_hazard: Hazard, default_matrix: RiskMatrix) -> None:
    path = tmp_path / "hazid.xlsx"

    export_xlsx(str(path), [workshop_hazard], default_matrix)

    assert load_workbook(str(path))[MAIN_SHEET]["B2"].value == "A"
