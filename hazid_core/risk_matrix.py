"""Likelihood x severity risk matrix and its configuration format."""

from __future__ import annotations

import copy
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .models import (
    SEVERITY_CATEGORIES,
    Hazard,
    LikelihoodLevel,
    RiskLevel,
    SeverityLevel,
)

# Ratio cut-offs of the default population rule (ordinal 2 / ordinal 1).
HIGH_RISK_RATIO = 0.7
MEDIUM_RISK_RATIO = 0.4

DEFAULT_LIKELIHOOD: Tuple[Tuple[str, str, str], ...] = (
    ("A", "A", "Very unlikely"),
    ("B", "B", "Unlikely"),
    ("C", "C", "Possible"),
    ("D", "D", "Likely"),
    ("E", "E", "Very likely"),
)

DEFAULT_SEVERITY: Tuple[Tuple[str, str, str], ...] = (
    ("1", "1", "Negligible effect"),
    ("2", "2", "Minor effect"),
    ("3", "3", "Moderate effect"),
    ("4", "4", "Major effect"),
    ("5", "5", "Severest effect"),
)

DEFAULT_RISK_LEVELS: Tuple[Tuple[str, str, str], ...] = (
    ("low", "Low", "#28a745"),
    ("medium", "Medium", "#ffc107"),
    ("high", "High", "#dc3545"),
)

DEFAULT_SEVERITY_DESCRIPTIONS: Dict[str, Dict[str, str]] = {
    "1": {
        "personnel": "Minor injury, no lost time",
        "asset": "Minor damage, easily repairable",
        "environmental": "Minimal environmental impact",
        "reputation": "No reputation impact",
        "operation": "No operational impact",
    },
    "2": {
        "personnel": "Minor injury, some lost time",
        "asset": "Moderate damage, repairable",
        "environmental": "Minor environmental impact",
        "reputation": "Minor local reputation impact",
        "operation": "Minor operational disruption",
    },
    "3": {
        "personnel": "Serious injury, significant lost time",
        "asset": "Major damage, expensive repair",
        "environmental": "Moderate environmental impact",
        "reputation": "Moderate reputation impact",
        "operation": "Moderate operational disruption",
    },
    "4": {
        "personnel": "Major injury, permanent disability",
        "asset": "Severe damage, major repair cost",
        "environmental": "Major environmental impact",
        "reputation": "Major reputation impact",
        "operation": "Major operational disruption",
    },
    "5": {
        "personnel": "Multiple fatalities",
        "asset": "Total loss of facility",
        "environmental": "Permanent environmental damage",
        "reputation": "Major international effect",
        "operation": "Loss of operation up to a year",
    },
}


def cell_key(likelihood_id: str, severity_id: str) -> str:
    """Wire key of a matrix cell, ``"<likelihoodId>-<severityId>"``."""
    return f"{likelihood_id}-{severity_id}"


def default_ordinal(li: int, si: int, likelihood_count: int, severity_count: int) -> int:
    """Return the risk-level ordinal (0 low, 1 medium, 2 high) for one cell."""
    max_sum = (likelihood_count - 1) + (severity_count - 1)
    ratio = (li + si) / max_sum if max_sum > 0 else 0.0
    if ratio >= HIGH_RISK_RATIO:
        return 2
    if ratio >= MEDIUM_RISK_RATIO:
        return 1
    return 0


class RiskMatrix:
    """Risk matrix configuration plus the computed (likelihood, severity) mapping."""

    def __init__(
        self,
        likelihood: Iterable[LikelihoodLevel],
        severity: Iterable[SeverityLevel],
        risk_levels: Iterable[RiskLevel],
        severity_descriptions: Optional[Mapping[str, Mapping[str, str]]] = None,
    ):
        self.likelihood: List[LikelihoodLevel] = list(likelihood)
        self.severity: List[SeverityLevel] = list(severity)
        self.risk_levels: List[RiskLevel] = list(risk_levels)
        self.severity_descriptions: Dict[str, Dict[str, str]] = {
            str(k): dict(v) for k, v in (severity_descriptions or {}).items()
        }
        self.cells: Dict[Tuple[str, str], RiskLevel] = {}
        self.regenerate()

    @classmethod
    def default(cls) -> "RiskMatrix":
        return cls(
            likelihood=[LikelihoodLevel(*row) for row in DEFAULT_LIKELIHOOD],
            severity=[SeverityLevel(*row) for row in DEFAULT_SEVERITY],
            risk_levels=[RiskLevel(*row) for row in DEFAULT_RISK_LEVELS],
            severity_descriptions=copy.deepcopy(DEFAULT_SEVERITY_DESCRIPTIONS),
        )

    # ----- mapping -----
    def regenerate(self) -> None:
        """Rebuild every cell from list order using the default ratio rule."""
        self.cells = {}
        if not self.risk_levels:
            return
        n_lik = len(self.likelihood)
        n_sev = len(self.severity)
        for li, lik in enumerate(self.likelihood):
            for si, sev in enumerate(self.severity):
                ordinal = min(default_ordinal(li, si, n_lik, n_sev), len(self.risk_levels) - 1)
                self.cells[(lik.id, sev.id)] = self.risk_levels[ordinal]

    def set_likelihood_levels(self, levels: Iterable[LikelihoodLevel]) -> None:
        self.likelihood = list(levels)
        self.regenerate()

    def set_severity_levels(self, levels: Iterable[SeverityLevel]) -> None:
        self.severity = list(levels)
        self.regenerate()

    def risk_level_by_id(self, risk_level_id: Any) -> Optional[RiskLevel]:
        for level in self.risk_levels:
            if level.id == risk_level_id:
                return level
        return None

    def set_cell(self, likelihood_id: str, severity_id: str, risk_level_id: str) -> bool:
        """Override one cell; unknown risk-level ids are ignored and return ``False``."""
        level = self.risk_level_by_id(risk_level_id)
        if level is None:
            return False
        self.cells[(likelihood_id, severity_id)] = level
        return True

    def apply_mapping(self, mapping: Mapping[str, Any]) -> None:
        """Replace the mapping with ``{"<lik>-<sev>": riskLevelId}`` entries.

        Entries whose risk-level id does not resolve, or whose key does not
        name a known (likelihood, severity) pair, are dropped. Those cells
        then resolve to nothing.
        """
        self.cells = {}
        for lik in self.likelihood:
            for sev in self.severity:
                value = mapping.get(cell_key(lik.id, sev.id))
                if isinstance(value, Mapping):
                    value = value.get("id")
                if value is None:
                    continue
                self.set_cell(lik.id, sev.id, value)

    # ----- evaluation -----
    def resolve(self, severity_level: Any, likelihood_level: Any) -> Optional[RiskLevel]:
        if not severity_level or not likelihood_level:
            return None
        return self.cells.get((str(likelihood_level), str(severity_level)))

    def label_for(self, severity_level: Any, likelihood_level: Any) -> str:
        level = self.resolve(severity_level, likelihood_level)
        return level.label if level else ""

    def color_for(self, severity_level: Any, likelihood_level: Any) -> str:
        level = self.resolve(severity_level, likelihood_level)
        return level.color if level else ""

    def severity_description(self, severity_id: str, category: str) -> str:
        return self.severity_descriptions.get(severity_id, {}).get(category, "")

    def refresh_risk_scores(self, hazards: Iterable[Hazard]) -> None:
        """Overwrite every cached ``risk_score`` with the current matrix label."""
        for hazard in hazards:
            for consequence in hazard.consequences:
                risk = consequence.risk
                risk.risk_score = self.label_for(risk.severity_level, risk.likelihood_level)

    def mapping_ids(self) -> Dict[str, str]:
        return {cell_key(lik, sev): level.id for (lik, sev), level in self.cells.items()}

    # ----- configuration import/export -----
    def to_config(self) -> Dict[str, Any]:
        """Export in the shareable risk-matrix configuration format."""
        return {
            "likelihoodLevels": len(self.likelihood),
            "likelihoodDescriptions": [lvl.to_dict() for lvl in self.likelihood],
            "severityLevelDescriptions": [lvl.to_dict() for lvl in self.severity],
            "severityCategories": list(SEVERITY_CATEGORIES),
            "severityDescriptions": copy.deepcopy(self.severity_descriptions),
            "riskLevels": len(self.risk_levels),
            "riskLevelDescriptions": [lvl.to_dict() for lvl in self.risk_levels],
            "matrix": self.mapping_ids(),
        }

    def load_config(self, data: Mapping[str, Any]) -> None:
        """Apply a configuration document on top of the current settings.

        Sections that are missing or malformed keep their current value.
        Without a ``matrix`` entry the mapping is regenerated from the
        default rule.
        """
        likelihood = _levels(data.get("likelihoodDescriptions"), LikelihoodLevel)
        if likelihood is not None:
            self.likelihood = likelihood

        severity = _levels(data.get("severityLevelDescriptions"), SeverityLevel)
        descriptions = _severity_descriptions(data.get("severityDescriptions"))
        if descriptions is not None:
            self.severity_descriptions = descriptions
            if severity is None:
                known = {lvl.id: lvl for lvl in self.severity}
                severity = [known.get(sev_id) or SeverityLevel(sev_id, sev_id) for sev_id in descriptions]
        if severity is not None:
            self.severity = severity

        risk_levels = _risk_levels(data.get("riskLevelDescriptions"))
        if risk_levels is not None:
            self.risk_levels = risk_levels

        matrix = data.get("matrix")
        if isinstance(matrix, Mapping):
            self.apply_mapping(matrix)
        else:
            self.regenerate()

    @classmethod
    def from_config(cls, data: Mapping[str, Any]) -> "RiskMatrix":
        matrix = cls.default()
        matrix.load_config(data)
        return matrix

    # ----- hazard document (persisted state) -----
    def to_document(self) -> Dict[str, Any]:
        return {
            "likelihood": [lvl.to_dict() for lvl in self.likelihood],
            "severity": [lvl.to_dict() for lvl in self.severity],
            "severityDescriptions": copy.deepcopy(self.severity_descriptions),
            "riskLevels": [lvl.to_dict() for lvl in self.risk_levels],
            "matrix": {cell_key(lik, sev): level.to_dict() for (lik, sev), level in self.cells.items()},
        }

    @classmethod
    def from_document(cls, data: Any) -> "RiskMatrix":
        """Tolerant loader for the ``riskMatrix`` part of a hazard document."""
        matrix = cls.default()
        if not isinstance(data, Mapping):
            return matrix
        likelihood = _levels(data.get("likelihood"), LikelihoodLevel)
        if likelihood is not None:
            matrix.likelihood = likelihood
        severity = _levels(data.get("severity"), SeverityLevel)
        if severity is not None:
            matrix.severity = severity
        descriptions = _severity_descriptions(data.get("severityDescriptions"))
        if descriptions is not None:
            matrix.severity_descriptions = descriptions
        risk_levels = _risk_levels(data.get("riskLevels"))
        if risk_levels is not None:
            matrix.risk_levels = risk_levels
        cells = data.get("matrix")
        if isinstance(cells, Mapping) and cells:
            matrix.apply_mapping(cells)
        else:
            matrix.regenerate()
        return matrix


def _levels(raw: Any, level_cls) -> Optional[list]:
    if not isinstance(raw, Sequence) or isinstance(raw, (str, bytes)):
        return None
    levels = []
    for entry in raw:
        if not isinstance(entry, Mapping) or entry.get("id") in (None, ""):
            continue
        level_id = str(entry["id"])
        levels.append(level_cls(
            id=level_id,
            label=str(entry.get("label") or level_id),
            description=str(entry.get("description") or ""),
        ))
    return levels


def _risk_levels(raw: Any) -> Optional[List[RiskLevel]]:
    if not isinstance(raw, Sequence) or isinstance(raw, (str, bytes)):
        return None
    levels = []
    for entry in raw:
        if not isinstance(entry, Mapping) or entry.get("id") in (None, ""):
            continue
        level_id = str(entry["id"])
        levels.append(RiskLevel(
            id=level_id,
            label=str(entry.get("label") or level_id),
            color=str(entry.get("color") or ""),
        ))
    return levels


def _severity_descriptions(raw: Any) -> Optional[Dict[str, Dict[str, str]]]:
    if not isinstance(raw, Mapping):
        return None
    result: Dict[str, Dict[str, str]] = {}
    for sev_id, texts in raw.items():
        if not isinstance(texts, Mapping):
            continue
        result[str(sev_id)] = {str(cat): "" if text is None else str(text) for cat, text in texts.items()}
    return result
