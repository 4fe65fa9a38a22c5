"""Hazard and risk-matrix documents (JSON or YAML files)."""

from __future__ import annotations

import copy
import json
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

import yaml

from .models import Hazard, hazards_from_list, hazards_to_list
from .risk_matrix import RiskMatrix


class DocumentError(ValueError):
    """Raised when an imported document cannot be used."""


@dataclass
class ParsedDocument:
    hazards: List[Hazard]
    risk_matrix: Optional[RiskMatrix] = None
    legacy: bool = False


def parse_hazard_document(data: Any) -> ParsedDocument:
    """Interpret ``data`` as ``{"hazards": [...], "riskMatrix": {...}}``.

    A bare list is the legacy format and carries no risk matrix. Anything
    that is neither a list nor a mapping with a ``hazards`` field raises
    :class:`DocumentError`.
    """
    if isinstance(data, list):
        return ParsedDocument(hazards=hazards_from_list(data), legacy=True)
    if isinstance(data, Mapping) and data.get("hazards") is not None:
        matrix_raw = data.get("riskMatrix")
        matrix = RiskMatrix.from_document(matrix_raw) if isinstance(matrix_raw, Mapping) else None
        return ParsedDocument(hazards=hazards_from_list(data.get("hazards")), risk_matrix=matrix)
    raise DocumentError("Invalid file format: expected a hazard list or an object with a 'hazards' field.")


def build_hazard_document(hazards: List[Hazard], matrix: RiskMatrix) -> Dict[str, Any]:
    """Serialisable document; cached risk scores are recomputed from ``matrix`` on a copy."""
    snapshot = copy.deepcopy(list(hazards))
    matrix.refresh_risk_scores(snapshot)
    return {"hazards": hazards_to_list(snapshot), "riskMatrix": matrix.to_document()}


def read_document_data(path: str) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        text = f.read()
    if not text.strip():
        raise DocumentError(f"{os.path.basename(path)} is empty.")
    try:
        # JSON documents are valid YAML as well.
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise DocumentError(f"{os.path.basename(path)}: {e}") from e


def _write(path: str, payload: Mapping[str, Any]) -> None:
    with open(path, "w", encoding="utf-8") as f:
        if path.lower().endswith(".json"):
            json.dump(payload, f, indent=2, ensure_ascii=False)
        else:
            yaml.safe_dump(dict(payload), f, sort_keys=False, allow_unicode=True)


def read_document(path: str) -> ParsedDocument:
    return parse_hazard_document(read_document_data(path))


def write_document(path: str, hazards: List[Hazard], matrix: RiskMatrix) -> None:
    _write(path, build_hazard_document(hazards, matrix))


def read_risk_config(path: str) -> Mapping[str, Any]:
    data = read_document_data(path)
    if not isinstance(data, Mapping):
        raise DocumentError(f"{os.path.basename(path)}: risk matrix configuration must be an object.")
    return data


def write_risk_config(path: str, matrix: RiskMatrix) -> None:
    _write(path, matrix.to_config())
