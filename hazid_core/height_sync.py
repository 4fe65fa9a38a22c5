"""Height synchronisation of on-screen segments.

The table shows every item and measure as a segment inside a column
stack. Text wraps differently per column, so segments that belong to the
same cause or consequence are measured and stretched to a common height.
The widget toolkit is hidden behind :class:`MeasurableSurface` so this
module runs without a display.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, NamedTuple, Optional, Protocol

from .layout import CAUSE_KINDS, CONSEQUENCE_KINDS, AlignmentGroup, BlockAllocation, alignment_groups


class SegmentKey(NamedTuple):
    hazard_index: int
    kind: str
    item_index: int


class MeasurableSurface(Protocol):
    def clear_forced_height(self, key: SegmentKey) -> None: ...

    def natural_height(self, key: SegmentKey) -> int: ...

    def force_height(self, key: SegmentKey, height: int) -> None: ...

    def has_segment(self, key: SegmentKey) -> bool: ...


@dataclass(frozen=True)
class SyncResult:
    key: SegmentKey
    height: int
    members: int


def segment_keys(hazard_index: int, allocation: BlockAllocation) -> List[SegmentKey]:
    """All segment keys of one hazard block, in column order."""
    keys = [SegmentKey(hazard_index, kind, item.index) for kind in CAUSE_KINDS for item in allocation.causes]
    keys.extend(
        SegmentKey(hazard_index, kind, item.index)
        for kind in CONSEQUENCE_KINDS
        for item in allocation.consequences
    )
    return keys


def group_members(hazard_index: int, group: AlignmentGroup) -> List[SegmentKey]:
    return [SegmentKey(hazard_index, kind, group.item_index) for kind in group.kinds]


def sync_segment_heights(
    surface: MeasurableSurface,
    allocations: Mapping[int, BlockAllocation],
) -> List[SyncResult]:
    """Run the measure-then-stretch cycle for every hazard block.

    Parameters
    ----------
    surface:
        Rendering surface holding the segments.
    allocations:
        ``{hazard_index: BlockAllocation}`` for the blocks currently shown.

    Forced heights from the previous run are cleared first so natural
    heights are measured again and can shrink.
    """

    for hazard_index, allocation in allocations.items():
        for key in segment_keys(hazard_index, allocation):
            if surface.has_segment(key):
                surface.clear_forced_height(key)

    results: List[SyncResult] = []
    for hazard_index, allocation in allocations.items():
        for group in alignment_groups(allocation):
            members = [k for k in group_members(hazard_index, group) if surface.has_segment(k)]
            if not members:
                continue
            target = max(surface.natural_height(k) for k in members)
            for key in members:
                surface.force_height(key, target)
            results.append(SyncResult(key=members[0], height=target, members=len(members)))
    return results


class RelayoutCoalescer:
    """Collapse bursts of relayout requests into one run per scheduling tick.

    ``post`` hands a zero-argument callable to the event loop (for Qt:
    ``lambda fn: QTimer.singleShot(0, fn)``). Each request supersedes the
    pending one; superseded callbacks still fire but do nothing.
    """

    def __init__(self, relayout: Callable[[], Any], post: Callable[[Callable[[], None]], Any]):
        self._relayout = relayout
        self._post = post
        self._generation = 0
        self._pending: Optional[int] = None
        self.runs = 0

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def request(self) -> None:
        self._generation += 1
        generation = self._generation
        self._pending = generation
        self._post(lambda: self._fire(generation))

    def cancel(self) -> None:
        self._pending = None

    def flush(self) -> None:
        if self._pending is not None:
            self._fire(self._pending)

    def _fire(self, generation: int) -> None:
        if self._pending != generation:
            return
        self._pending = None
        self.runs += 1
        self._relayout()
