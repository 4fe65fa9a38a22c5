"""Row allocation for hazard blocks.

A hazard is drawn as a block of grid rows. The cause side (causes and
their prevention measures) and the consequence side (consequences, their
mitigation measures and the risk fields) are allocated independently into
the same number of rows. Both the on-screen table and the spreadsheet
export read the result of :func:`allocate_block`, so they cannot diverge.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Literal, Sequence, Tuple

from .models import Hazard

Side = Literal["cause", "consequence"]

CAUSE_KINDS: Tuple[str, ...] = ("cause", "cause-measures")
CONSEQUENCE_KINDS: Tuple[str, ...] = (
    "consequence",
    "consequence-measures",
    "risk-sev-cat",
    "risk-sev",
    "risk-like",
    "risk-score",
)


@dataclass(frozen=True)
class MeasureSpan:
    index: int
    start_row: int
    row_span: int

    @property
    def end_row(self) -> int:
        return self.start_row + self.row_span - 1


@dataclass(frozen=True)
class ItemSpan:
    """Rows given to one cause or consequence.

    ``placeholder`` marks an item without measures: its measure column shows
    a single "add" slot over the whole item range and ``measures`` is empty.
    """

    index: int
    start_row: int
    row_span: int
    measures: Tuple[MeasureSpan, ...] = ()
    placeholder: bool = False

    @property
    def end_row(self) -> int:
        return self.start_row + self.row_span - 1


@dataclass(frozen=True)
class BlockAllocation:
    block_rows: int
    causes: Tuple[ItemSpan, ...] = ()
    consequences: Tuple[ItemSpan, ...] = ()

    def side(self, side: Side) -> Tuple[ItemSpan, ...]:
        return self.causes if side == "cause" else self.consequences


@dataclass(frozen=True)
class AlignmentGroup:
    """Segments that must end up with one common height on screen."""

    side: Side
    item_index: int
    start_row: int
    row_span: int
    kinds: Tuple[str, ...] = field(default=())


def natural_total(measure_counts: Iterable[int]) -> int:
    """Sum of ``max(count, 1)`` per item; an empty list sums to 0."""
    return sum(max(count, 1) for count in measure_counts)


def prevention_total(hazard: Hazard) -> int:
    return natural_total(len(c.prevention_measures) for c in hazard.causes)


def mitigation_total(hazard: Hazard) -> int:
    return natural_total(len(c.mitigation_measures) for c in hazard.consequences)


def block_row_count(hazard: Hazard) -> int:
    """Return the number of grid rows the hazard's block occupies (at least 1)."""
    return max(prevention_total(hazard), mitigation_total(hazard), 1)


def allocate_side(measure_counts: Sequence[int], block_rows: int) -> Tuple[ItemSpan, ...]:
    """Allocate ``block_rows`` rows over items with the given measure counts.

    Every item gets its natural span ``max(count, 1)`` except the last one,
    which absorbs all rows not used by its siblings. Inside an item each
    measure gets one row and the last measure absorbs the rest of the item.
    """
    spans: List[ItemSpan] = []
    offset = 0
    last = len(measure_counts) - 1
    for index, count in enumerate(measure_counts):
        row_span = max(count, 1)
        if index == last:
            row_span = block_rows - offset
        measures = tuple(
            MeasureSpan(
                index=mi,
                start_row=offset + mi,
                row_span=row_span - mi if mi == count - 1 else 1,
            )
            for mi in range(count)
        )
        spans.append(ItemSpan(
            index=index,
            start_row=offset,
            row_span=row_span,
            measures=measures,
            placeholder=count == 0,
        ))
        offset += row_span
    return tuple(spans)


def allocate_block(hazard: Hazard) -> BlockAllocation:
    block_rows = block_row_count(hazard)
    return BlockAllocation(
        block_rows=block_rows,
        causes=allocate_side([len(c.prevention_measures) for c in hazard.causes], block_rows),
        consequences=allocate_side([len(c.mitigation_measures) for c in hazard.consequences], block_rows),
    )


def alignment_groups(allocation: BlockAllocation) -> List[AlignmentGroup]:
    groups = [
        AlignmentGroup("cause", item.index, item.start_row, item.row_span, CAUSE_KINDS)
        for item in allocation.causes
    ]
    groups.extend(
        AlignmentGroup("consequence", item.index, item.start_row, item.row_span, CONSEQUENCE_KINDS)
        for item in allocation.consequences
    )
    return groups
