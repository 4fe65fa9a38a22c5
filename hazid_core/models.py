"""Domain models for HAZID workshop records."""

from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Mapping

SEVERITY_CATEGORIES = ("personnel", "asset", "environmental", "reputation", "operation")

MeasureOwner = Literal["cause", "consequence"]


def new_id() -> str:
    return uuid.uuid4().hex


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _id(raw: Mapping[str, Any]) -> str:
    value = raw.get("id")
    if value is None or (isinstance(value, str) and not value.strip()):
        return new_id()
    return _text(value)


def _dict_entries(raw: Mapping[str, Any], key: str) -> List[Mapping[str, Any]]:
    """Return the dict entries stored under ``key``; anything else counts as empty."""
    value = raw.get(key)
    if not isinstance(value, list):
        return []
    return [entry for entry in value if isinstance(entry, Mapping)]


@dataclass
class Measure:
    """A prevention (cause side) or mitigation (consequence side) measure."""

    id: str = field(default_factory=new_id)
    text: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "text": self.text}

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Measure":
        return cls(id=_id(raw), text=_text(raw.get("text")))


@dataclass
class Risk:
    """Risk rating of a consequence.

    ``risk_score`` is a cached label only. It is overwritten from the risk
    matrix whenever the rating is displayed or exported.
    """

    severity_category: str = ""
    severity_level: str = ""
    likelihood_level: str = ""
    risk_score: str = ""

    @property
    def is_rated(self) -> bool:
        return bool(self.severity_level and self.likelihood_level)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "severityCategory": self.severity_category,
            "severityLevel": self.severity_level,
            "likelihoodLevel": self.likelihood_level,
            "riskScore": self.risk_score,
        }

    @classmethod
    def from_dict(cls, raw: Any) -> "Risk":
        if not isinstance(raw, Mapping):
            return cls()
        category = _text(raw.get("severityCategory"))
        if category not in SEVERITY_CATEGORIES:
            category = ""
        return cls(
            severity_category=category,
            severity_level=_text(raw.get("severityLevel")),
            likelihood_level=_text(raw.get("likelihoodLevel")),
            risk_score=_text(raw.get("riskScore")),
        )


@dataclass
class Cause:
    id: str = field(default_factory=new_id)
    text: str = ""
    prevention_measures: List[Measure] = field(default_factory=list)

    @property
    def measures(self) -> List[Measure]:
        return self.prevention_measures

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "preventionMeasures": [m.to_dict() for m in self.prevention_measures],
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Cause":
        return cls(
            id=_id(raw),
            text=_text(raw.get("text")),
            prevention_measures=[Measure.from_dict(m) for m in _dict_entries(raw, "preventionMeasures")],
        )


@dataclass
class Consequence:
    id: str = field(default_factory=new_id)
    text: str = ""
    mitigation_measures: List[Measure] = field(default_factory=list)
    risk: Risk = field(default_factory=Risk)

    @property
    def measures(self) -> List[Measure]:
        return self.mitigation_measures

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "mitigationMeasures": [m.to_dict() for m in self.mitigation_measures],
            "risk": self.risk.to_dict(),
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Consequence":
        return cls(
            id=_id(raw),
            text=_text(raw.get("text")),
            mitigation_measures=[Measure.from_dict(m) for m in _dict_entries(raw, "mitigationMeasures")],
            risk=Risk.from_dict(raw.get("risk")),
        )


@dataclass
class Recommendation:
    id: str = field(default_factory=new_id)
    action: str = ""
    responsible: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "action": self.action, "responsible": self.responsible}

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Recommendation":
        return cls(id=_id(raw), action=_text(raw.get("action")), responsible=_text(raw.get("responsible")))


@dataclass
class Hazard:
    """One hazard row of the workshop table together with all nested content."""

    id: str = field(default_factory=new_id)
    title: str = ""
    description: str = ""
    causes: List[Cause] = field(default_factory=list)
    consequences: List[Consequence] = field(default_factory=list)
    recommendations: List[Recommendation] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "causes": [c.to_dict() for c in self.causes],
            "consequences": [c.to_dict() for c in self.consequences],
            "recommendations": [r.to_dict() for r in self.recommendations],
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Hazard":
        return cls(
            id=_id(raw),
            title=_text(raw.get("title")),
            description=_text(raw.get("description")),
            causes=[Cause.from_dict(c) for c in _dict_entries(raw, "causes")],
            consequences=[Consequence.from_dict(c) for c in _dict_entries(raw, "consequences")],
            recommendations=[Recommendation.from_dict(r) for r in _dict_entries(raw, "recommendations")],
        )


@dataclass
class LikelihoodLevel:
    id: str
    label: str
    description: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "label": self.label, "description": self.description}


@dataclass
class SeverityLevel:
    id: str
    label: str
    description: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "label": self.label, "description": self.description}


@dataclass
class RiskLevel:
    id: str
    label: str
    color: str

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "label": self.label, "color": self.color}


def hazards_from_list(raw: Any) -> List[Hazard]:
    """Normalize a list of raw hazard dicts; non-lists give an empty list."""
    if not isinstance(raw, list):
        return []
    return [Hazard.from_dict(h) for h in raw if isinstance(h, Mapping)]


def hazards_to_list(hazards: List[Hazard]) -> List[Dict[str, Any]]:
    return [h.to_dict() for h in hazards]


# ----- factories -----

def create_hazard() -> Hazard:
    return Hazard()


def create_cause() -> Cause:
    return Cause()


def create_consequence() -> Consequence:
    return Consequence()


def create_measure() -> Measure:
    return Measure()


def create_recommendation() -> Recommendation:
    return Recommendation()


def seed_hazard() -> Hazard:
    """Starter record shown when there is nothing to load."""
    return Hazard(
        title="New hazard",
        causes=[create_cause()],
        consequences=[create_consequence()],
        recommendations=[create_recommendation()],
    )


def clone_with_new_ids(entity):
    """Deep copy ``entity`` and give the copy and every nested entity a fresh id."""
    clone = copy.deepcopy(entity)
    _reassign_ids(clone)
    return clone


def _reassign_ids(entity: Any) -> None:
    if isinstance(entity, (Measure, Recommendation)):
        entity.id = new_id()
    elif isinstance(entity, (Cause, Consequence)):
        entity.id = new_id()
        for measure in entity.measures:
            measure.id = new_id()
    elif isinstance(entity, Hazard):
        entity.id = new_id()
        for child in (*entity.causes, *entity.consequences, *entity.recommendations):
            _reassign_ids(child)
