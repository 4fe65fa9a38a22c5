import json

import pytest

from hazid_core.documents import (
    DocumentError,
    build_hazard_document,
    parse_hazard_document,
    read_document,
    read_risk_config,
    write_document,
    write_risk_config,
)
from hazid_core.models import Hazard
from hazid_core.risk_matrix import RiskMatrix


@pytest.mark.parametrize("data", [None, 42, "text", {"items": []}, {"hazards": None}])
def test_invalid_documents_are_rejected(data) -> None:
    with pytest.raises(DocumentError):
        parse_hazard_document(data)


def test_legacy_list_has_no_matrix() -> None:
    parsed = parse_hazard_document([{"title": "Only hazards"}, "junk"])

    assert parsed.legacy
    assert parsed.risk_matrix is None
    assert [h.title for h in parsed.hazards] == ["Only hazards"]


def test_missing_fields_are_normalised() -> None:
    parsed = parse_hazard_document({"hazards": [{"causes": [{"preventionMeasures": [{"text": 3}]}],
                                                 "consequences": [{"risk": {"severityCategory": "weather"}}]}]})

    hazard = parsed.hazards[0]
    assert hazard.title == ""
    assert hazard.id
    assert hazard.causes[0].prevention_measures[0].text == "3"
    assert hazard.consequences[0].risk.severity_category == ""
    assert hazard.recommendations == []


def test_json_file_keeps_wire_names(tmp_path, workshop_hazard: Hazard, default_matrix: RiskMatrix) -> None:
    path = tmp_path / "hazid.json"

    write_document(str(path), [workshop_hazard], default_matrix)

    raw = json.loads(path.read_text(encoding="utf-8"))
    assert raw["hazards"][0]["causes"][0]["preventionMeasures"][0]["text"] == "A1"
    assert raw["hazards"][0]["consequences"][0]["risk"]["severityLevel"] == "5"
    assert raw["riskMatrix"]["matrix"]["E-5"]["label"] == "High"


def test_yaml_file_can_be_read_back(tmp_path, workshop_hazard: Hazard, default_matrix: RiskMatrix) -> None:
    path = tmp_path / "hazid.yaml"
    default_matrix.set_cell("A", "1", "high")

    write_document(str(path), [workshop_hazard], default_matrix)
    parsed = read_document(str(path))

    assert parsed.hazards[0].consequences[1].mitigation_measures[2].text == "Y3"
    assert parsed.risk_matrix.label_for("1", "A") == "High"


def test_empty_file_is_a_document_error(tmp_path) -> None:
    path = tmp_path / "empty.json"
    path.write_text("  \n", encoding="utf-8")

    with pytest.raises(DocumentError):
        read_document(str(path))


def test_malformed_file_is_a_document_error(tmp_path) -> None:
    path = tmp_path / "broken.yaml"
    path.write_text("hazards: [unclosed", encoding="utf-8")

    with pytest.raises(DocumentError):
        read_document(str(path))


def test_risk_config_file(tmp_path, default_matrix: RiskMatrix) -> None:
    path = tmp_path / "matrix.json"
    default_matrix.set_cell("E", "5", "low")

    write_risk_config(str(path), default_matrix)
    loaded = RiskMatrix.from_config(read_risk_config(str(path)))

    assert loaded.label_for("5", "E") == "Low"


def test_risk_config_must_be_an_object(tmp_path) -> None:
    path = tmp_path / "matrix.json"
    path.write_text("[1, 2]", encoding="utf-8")

    with pytest.raises(DocumentError):
        read_risk_config(str(path))


def test_built_document_shape(workshop_hazard: Hazard, default_matrix: RiskMatrix) -> None:
    doc = build_hazard_document([workshop_hazard], default_matrix)

    assert set(doc) == {"hazards", "riskMatrix"}
    assert set(doc["riskMatrix"]) == {"likelihood", "severity", "severityDescriptions", "riskLevels", "matrix"}
