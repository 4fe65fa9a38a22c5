import pytest

from hazid_core.models import Consequence, Hazard, LikelihoodLevel, RiskLevel, SeverityLevel
from hazid_core.risk_matrix import RiskMatrix, cell_key, default_ordinal


@pytest.mark.parametrize(
    "severity, likelihood, label",
    [
        ("1", "A", "Low"),
        ("2", "B", "Low"),
        ("3", "A", "Low"),
        ("4", "B", "Medium"),
        ("3", "C", "Medium"),
        ("5", "A", "Medium"),
        ("4", "D", "High"),
        ("5", "E", "High"),
    ],
)
def test_default_matrix_cells(default_matrix: RiskMatrix, severity: str, likelihood: str, label: str) -> None:
    assert default_matrix.label_for(severity, likelihood) == label


def test_severity_3_likelihood_d_is_medium(default_matrix: RiskMatrix) -> None:
    li, si = 3, 2
    assert (li + si) / (4 + 4) == pytest.approx(0.625)
    assert default_ordinal(li, si, 5, 5) == 1
    assert default_matrix.resolve("3", "D").id == "medium"


def test_relabelled_levels_keep_the_same_ordinals(default_matrix: RiskMatrix) -> None:
    relabelled = RiskMatrix(
        [LikelihoodLevel(f"L{i}", f"Likelihood {i}") for i in range(5)],
        [SeverityLevel(f"S{i}", f"Severity {i}") for i in range(5)],
        [RiskLevel("g", "Green", "#00ff00"), RiskLevel("a", "Amber", "#ffbf00"), RiskLevel("r", "Red", "#ff0000")],
    )
    ordinal = {"low": 0, "medium": 1, "high": 2, "g": 0, "a": 1, "r": 2}

    for li, lik in enumerate(default_matrix.likelihood):
        for si, sev in enumerate(default_matrix.severity):
            original = default_matrix.resolve(sev.id, lik.id)
            renamed = relabelled.resolve(f"S{si}", f"L{li}")
            assert ordinal[original.id] == ordinal[renamed.id]


def test_default_colors(default_matrix: RiskMatrix) -> None:
    assert default_matrix.color_for("1", "A") == "#28a745"
    assert default_matrix.color_for("3", "C") == "#ffc107"
    assert default_matrix.color_for("5", "E") == "#dc3545"


@pytest.mark.parametrize("severity, likelihood", [("", "A"), ("1", ""), ("9", "A"), ("1", "Z"), (None, None)])
def test_unresolvable_ratings_give_empty_label(default_matrix: RiskMatrix, severity, likelihood) -> None:
    assert default_matrix.resolve(severity, likelihood) is None
    assert default_matrix.label_for(severity, likelihood) == ""
    assert default_matrix.color_for(severity, likelihood) == ""


def test_single_cell_matrix_is_lowest_level() -> None:
    assert default_ordinal(0, 0, 1, 1) == 0
    matrix = RiskMatrix([LikelihoodLevel("A", "A")], [SeverityLevel("1", "1")], [RiskLevel("low", "Low", "#0f0")])
    assert matrix.label_for("1", "A") == "Low"


def test_ordinal_is_clamped_to_available_levels() -> None:
    matrix = RiskMatrix.default()
    matrix.risk_levels = [RiskLevel("ok", "OK", "#00ff00"), RiskLevel("bad", "Bad", "#ff0000")]
    matrix.regenerate()

    assert matrix.label_for("1", "A") == "OK"
    assert matrix.label_for("3", "C") == "Bad"
    assert matrix.label_for("5", "E") == "Bad"


def test_no_risk_levels_leaves_matrix_empty() -> None:
    matrix = RiskMatrix.default()
    matrix.risk_levels = []
    matrix.regenerate()

    assert matrix.cells == {}
    assert matrix.label_for("5", "E") == ""


def test_changing_levels_regenerates(default_matrix: RiskMatrix) -> None:
    default_matrix.set_likelihood_levels([LikelihoodLevel("L", "Low"), LikelihoodLevel("H", "High")])

    assert default_matrix.resolve("1", "A") is None
    assert default_matrix.label_for("5", "H") == "High"
    assert len(default_matrix.cells) == 2 * 5


def test_set_cell_override_and_unknown_level(default_matrix: RiskMatrix) -> None:
    assert default_matrix.set_cell("A", "1", "high")
    assert default_matrix.label_for("1", "A") == "High"
    assert not default_matrix.set_cell("A", "1", "extreme")
    assert default_matrix.label_for("1", "A") == "High"


def test_apply_mapping_drops_unknown_entries(default_matrix: RiskMatrix) -> None:
    default_matrix.apply_mapping({
        cell_key("A", "1"): "high",
        cell_key("B", "1"): {"id": "medium", "label": "Medium", "color": "#ffc107"},
        cell_key("C", "1"): "nope",
        "Z-9": "low",
    })

    assert default_matrix.label_for("1", "A") == "High"
    assert default_matrix.label_for("1", "B") == "Medium"
    assert default_matrix.resolve("1", "C") is None
    assert len(default_matrix.cells) == 2


def test_refresh_overwrites_stale_scores(default_matrix: RiskMatrix) -> None:
    hazard = Hazard(consequences=[Consequence(), Consequence()])
    hazard.consequences[0].risk.severity_level = "5"
    hazard.consequences[0].risk.likelihood_level = "E"
    hazard.consequences[0].risk.risk_score = "Low"
    hazard.consequences[1].risk.risk_score = "High"

    default_matrix.refresh_risk_scores([hazard])

    assert hazard.consequences[0].risk.risk_score == "High"
    assert hazard.consequences[1].risk.risk_score == ""


def test_config_keeps_cell_overrides(default_matrix: RiskMatrix) -> None:
    default_matrix.set_cell("A", "1", "high")
    default_matrix.severity_descriptions["1"]["personnel"] = "First aid case"

    loaded = RiskMatrix.from_config(default_matrix.to_config())

    assert loaded.label_for("1", "A") == "High"
    assert loaded.mapping_ids() == default_matrix.mapping_ids()
    assert loaded.severity_description("1", "personnel") == "First aid case"


def test_config_without_matrix_regenerates() -> None:
    matrix = RiskMatrix.from_config({
        "likelihoodDescriptions": [{"id": "L", "label": "Low"}, {"id": "M"}, {"id": "H", "label": "High"}],
        "severityDescriptions": {"a": {"personnel": "x"}, "b": {"personnel": "y"}},
    })

    assert [lvl.id for lvl in matrix.likelihood] == ["L", "M", "H"]
    assert matrix.likelihood[1].label == "M"
    assert [lvl.id for lvl in matrix.severity] == ["a", "b"]
    assert matrix.label_for("a", "L") == "Low"
    assert matrix.label_for("b", "H") == "High"


def test_config_format_fields(default_matrix: RiskMatrix) -> None:
    config = default_matrix.to_config()

    assert config["likelihoodLevels"] == 5
    assert config["riskLevels"] == 3
    assert config["severityCategories"] == ["personnel", "asset", "environmental", "reputation", "operation"]
    assert config["matrix"]["E-5"] == "high"


def test_document_with_empty_cells_regenerates() -> None:
    matrix = RiskMatrix.from_document({"riskLevels": [{"id": "only", "label": "Only", "color": "#123456"}], "matrix": {}})

    assert matrix.label_for("5", "E") == "Only"


def test_document_tolerates_garbage() -> None:
    matrix = RiskMatrix.from_document("not a matrix")

    assert matrix.label_for("5", "E") == "High"
