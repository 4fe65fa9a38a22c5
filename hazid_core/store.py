"""Owned, mutable hazard list with structural edits and persistence."""

from __future__ import annotations

import copy
import json
import sys
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol, Union

from .models import (
    Cause,
    Consequence,
    Hazard,
    Measure,
    MeasureOwner,
    Recommendation,
    clone_with_new_ids,
    create_cause,
    create_consequence,
    create_hazard,
    create_measure,
    create_recommendation,
    seed_hazard,
)
from .documents import build_hazard_document, parse_hazard_document
from .risk_matrix import RiskMatrix


class KeyValueStore(Protocol):
    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: str) -> None: ...


class DictKeyValueStore:
    """In-memory key-value store."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self.data: Dict[str, Any] = dict(initial or {})

    def get(self, key: str) -> Any:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value


@dataclass(frozen=True)
class ItemRef:
    """Address of an item inside the hazard list.

    ``kind`` is one of ``cause``, ``consequence``, ``measure`` or
    ``recommendation``. Measures also need ``owner`` and ``measure_index``.
    """

    kind: str
    hazard_index: int
    row_index: Optional[int] = None
    owner: Optional[MeasureOwner] = None
    measure_index: Optional[int] = None


@dataclass
class ClipboardEntry:
    kind: str
    data: Any
    owner: Optional[MeasureOwner] = None


Copyable = Union[Hazard, Cause, Consequence, Measure, Recommendation]


class HazardStore:
    def __init__(
        self,
        persistence: Optional[KeyValueStore] = None,
        storage_key: str = "hazid_v1",
        autosave: bool = True,
        risk_matrix: Optional[RiskMatrix] = None,
    ):
        self.persistence = persistence
        self.storage_key = storage_key
        self.autosave = autosave
        self.hazards: List[Hazard] = []
        self.risk_matrix = risk_matrix or RiskMatrix.default()
        self.clipboard: Optional[ClipboardEntry] = None
        self.listeners: List[Callable[[], None]] = []

    # ----- change notification -----
    def notify_changed(self) -> None:
        """Persist (if autosave is on) and tell listeners the structure changed."""
        self.autosave_now()
        for listener in list(self.listeners):
            listener()

    def autosave_now(self) -> None:
        if self.autosave:
            self.save()

    # ----- persistence -----
    def load(self) -> List[Hazard]:
        """Load hazards (and the stored risk matrix) from the key-value store.

        Absent or corrupt data gives an empty list.
        """
        if self.persistence is None:
            return []
        try:
            raw = self.persistence.get(self.storage_key)
            if raw is None or raw == "":
                return []
            data = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
            parsed = parse_hazard_document(data)
        except Exception as e:
            print(f"HazardStore.load(): Failed to load data. Error: {e}", file=sys.stderr)
            return []
        self.hazards = parsed.hazards
        if parsed.risk_matrix is not None:
            self.risk_matrix = parsed.risk_matrix
        return self.hazards

    def save(self) -> bool:
        """Best-effort save; problems are reported on stderr, never raised."""
        if self.persistence is None:
            return False
        try:
            self.persistence.set(self.storage_key, json.dumps(self.to_document()))
        except Exception as e:
            print(f"HazardStore.save(): Failed to save data. Error: {e}", file=sys.stderr)
            return False
        return True

    def ensure_seed(self) -> None:
        if not self.hazards:
            self.hazards.append(seed_hazard())

    def to_document(self) -> Dict[str, Any]:
        return build_hazard_document(self.hazards, self.risk_matrix)

    def replace_from_document(self, data: Any) -> None:
        """Apply an imported hazard document; raises ``DocumentError`` if unusable."""
        parsed = parse_hazard_document(data)
        self.hazards = parsed.hazards
        if parsed.risk_matrix is not None:
            self.risk_matrix = parsed.risk_matrix
        self.notify_changed()

    def set_risk_matrix(self, matrix: RiskMatrix) -> None:
        self.risk_matrix = matrix
        self.notify_changed()

    def snapshot(self) -> List[Hazard]:
        return copy.deepcopy(self.hazards)

    # ----- hazards -----
    def add_hazard(self) -> Hazard:
        hazard = create_hazard()
        self.hazards.append(hazard)
        self.notify_changed()
        return hazard

    def insert_hazard(self, index: int) -> Hazard:
        hazard = create_hazard()
        self.hazards.insert(index, hazard)
        self.notify_changed()
        return hazard

    def remove_hazard(self, index: int) -> Hazard:
        hazard = self.hazards.pop(index)
        self.notify_changed()
        return hazard

    def duplicate_hazard(self, index: int) -> Hazard:
        clone = clone_with_new_ids(self.hazards[index])
        self.hazards.insert(index + 1, clone)
        self.notify_changed()
        return clone

    def clear(self) -> None:
        self.hazards = []
        self.notify_changed()

    # ----- causes / consequences -----
    def add_cause(self, hazard_index: int) -> Cause:
        cause = create_cause()
        self.hazards[hazard_index].causes.append(cause)
        self.notify_changed()
        return cause

    def remove_cause(self, hazard_index: int, row_index: int) -> Cause:
        cause = self.hazards[hazard_index].causes.pop(row_index)
        self.notify_changed()
        return cause

    def add_consequence(self, hazard_index: int) -> Consequence:
        consequence = create_consequence()
        self.hazards[hazard_index].consequences.append(consequence)
        self.notify_changed()
        return consequence

    def remove_consequence(self, hazard_index: int, row_index: int) -> Consequence:
        consequence = self.hazards[hazard_index].consequences.pop(row_index)
        self.notify_changed()
        return consequence

    # ----- measures -----
    def measures_of(self, hazard_index: int, owner: MeasureOwner, row_index: int) -> List[Measure]:
        hazard = self.hazards[hazard_index]
        if owner == "cause":
            return hazard.causes[row_index].prevention_measures
        return hazard.consequences[row_index].mitigation_measures

    def add_measure(
        self,
        hazard_index: int,
        owner: MeasureOwner,
        row_index: int,
        after: Optional[int] = None,
    ) -> Measure:
        """Append a measure, or insert it right below ``after``."""
        measures = self.measures_of(hazard_index, owner, row_index)
        measure = create_measure()
        if after is None:
            measures.append(measure)
        else:
            measures.insert(after + 1, measure)
        self.notify_changed()
        return measure

    def remove_measure(self, hazard_index: int, owner: MeasureOwner, row_index: int, measure_index: int) -> Measure:
        measure = self.measures_of(hazard_index, owner, row_index).pop(measure_index)
        self.notify_changed()
        return measure

    # ----- recommendations -----
    def add_recommendation(self, hazard_index: int) -> Recommendation:
        recommendation = create_recommendation()
        self.hazards[hazard_index].recommendations.append(recommendation)
        self.notify_changed()
        return recommendation

    def remove_recommendation(self, hazard_index: int, reco_index: int) -> Recommendation:
        recommendation = self.hazards[hazard_index].recommendations.pop(reco_index)
        self.notify_changed()
        return recommendation

    # ----- clipboard -----
    def copy_hazard(self, index: int) -> None:
        self.clipboard = ClipboardEntry(kind="hazard", data=copy.deepcopy(self.hazards[index]))

    def paste_hazard(self, index: int) -> Optional[Hazard]:
        """Insert a fresh copy of the clipboard hazard below ``index``."""
        if self.clipboard is None or self.clipboard.kind != "hazard":
            return None
        clone = clone_with_new_ids(self.clipboard.data)
        self.hazards.insert(index + 1, clone)
        self.notify_changed()
        return clone

    def _resolve(self, ref: ItemRef) -> Optional[Copyable]:
        hazard = self.hazards[ref.hazard_index]
        try:
            if ref.kind == "cause":
                return hazard.causes[ref.row_index]
            if ref.kind == "consequence":
                return hazard.consequences[ref.row_index]
            if ref.kind == "recommendation":
                return hazard.recommendations[ref.row_index]
            if ref.kind == "measure" and ref.owner is not None:
                return self.measures_of(ref.hazard_index, ref.owner, ref.row_index)[ref.measure_index]
        except (IndexError, TypeError):
            return None
        return None

    def copy_item(self, ref: ItemRef) -> bool:
        item = self._resolve(ref)
        if item is None:
            return False
        self.clipboard = ClipboardEntry(kind=ref.kind, data=copy.deepcopy(item), owner=ref.owner)
        return True

    def paste_item(self, ref: ItemRef) -> Optional[Copyable]:
        """Paste the clipboard item right below ``ref``.

        Only same-kind pastes are accepted, and measures only between owners
        of the same side (prevention to prevention, mitigation to mitigation).
        """
        clip = self.clipboard
        if clip is None or clip.kind != ref.kind:
            return None
        if ref.kind == "measure" and clip.owner != ref.owner:
            return None
        hazard = self.hazards[ref.hazard_index]
        clone = clone_with_new_ids(clip.data)
        if ref.kind == "cause":
            target = hazard.causes
        elif ref.kind == "consequence":
            target = hazard.consequences
        elif ref.kind == "recommendation":
            target = hazard.recommendations
        else:
            try:
                target = self.measures_of(ref.hazard_index, ref.owner, ref.row_index)
            except (IndexError, TypeError):
                return None
        position = ref.measure_index if ref.kind == "measure" else ref.row_index
        if position is None:
            position = len(target) - 1
        target.insert(position + 1, clone)
        self.notify_changed()
        return clone
