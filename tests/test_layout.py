import pytest

from hazid_core.layout import (
    CAUSE_KINDS,
    CONSEQUENCE_KINDS,
    allocate_block,
    allocate_side,
    alignment_groups,
    block_row_count,
)
from hazid_core.models import Cause, Consequence, Hazard, Measure


def _hazard(cause_counts: list[int], consequence_counts: list[int]) -> Hazard:
    return Hazard(
        causes=[Cause(prevention_measures=[Measure() for _ in range(n)]) for n in cause_counts],
        consequences=[Consequence(mitigation_measures=[Measure() for _ in range(n)]) for n in consequence_counts],
    )


def test_block_rows_of_workshop_hazard(workshop_hazard: Hazard) -> None:
    assert block_row_count(workshop_hazard) == 4


@pytest.mark.parametrize(
    "causes, consequences, expected",
    [
        ([], [], 1),
        ([0], [], 1),
        ([], [0], 1),
        ([0, 0, 0], [2], 3),
        ([1], [0, 0], 2),
        ([5], [1, 1], 5),
    ],
)
def test_block_row_count_counts_empty_items_as_one(causes: list[int], consequences: list[int], expected: int) -> None:
    assert block_row_count(_hazard(causes, consequences)) == expected


def test_allocation_of_workshop_hazard(workshop_hazard: Hazard) -> None:
    alloc = allocate_block(workshop_hazard)

    assert alloc.block_rows == 4
    assert [(s.start_row, s.row_span) for s in alloc.causes] == [(0, 2), (2, 2)]
    assert [(s.start_row, s.row_span) for s in alloc.consequences] == [(0, 1), (1, 3)]
    # B has one measure; it absorbs both rows of B
    assert [(m.start_row, m.row_span) for m in alloc.causes[1].measures] == [(2, 2)]
    assert [(m.start_row, m.row_span) for m in alloc.consequences[1].measures] == [(1, 1), (2, 1), (3, 1)]


def test_last_item_absorbs_remaining_rows() -> None:
    spans = allocate_side([1, 0], 5)

    assert [(s.start_row, s.row_span) for s in spans] == [(0, 1), (1, 4)]
    assert spans[1].placeholder
    assert spans[1].measures == ()


def test_last_measure_absorbs_item_rows() -> None:
    spans = allocate_side([2], 4)

    assert [(m.start_row, m.row_span) for m in spans[0].measures] == [(0, 1), (1, 3)]
    assert spans[0].measures[-1].end_row == 3


def test_empty_side_allocates_nothing() -> None:
    alloc = allocate_block(_hazard([], [3]))

    assert alloc.causes == ()
    assert alloc.block_rows == 3


@pytest.mark.parametrize(
    "causes, consequences",
    [([2, 1], [1, 3]), ([0], [0]), ([3, 0, 2], [1]), ([1, 1, 1, 1], [4]), ([0, 0], [5, 0, 1])],
)
def test_spans_tile_the_block_on_each_side(causes: list[int], consequences: list[int]) -> None:
    alloc = allocate_block(_hazard(causes, consequences))

    for side, counts in ((alloc.causes, causes), (alloc.consequences, consequences)):
        row = 0
        for item, count in zip(side, counts):
            natural = max(count, 1)
            assert item.start_row == row
            if item.index == len(counts) - 1:
                assert item.row_span >= natural
            else:
                assert item.row_span == natural
            row += item.row_span
            inner = item.start_row
            for m in item.measures:
                assert m.start_row == inner
                inner += m.row_span
            if item.measures:
                assert inner == item.start_row + item.row_span
        if counts:
            assert row == alloc.block_rows


def test_zero_causes_and_one_empty_consequence() -> None:
    alloc = allocate_block(_hazard([], [0]))

    assert alloc.block_rows == 1
    assert alloc.causes == ()
    assert [(s.start_row, s.row_span) for s in alloc.consequences] == [(0, 1)]
    assert alloc.consequences[0].placeholder


def test_alignment_groups_follow_items(workshop_hazard: Hazard) -> None:
    groups = alignment_groups(allocate_block(workshop_hazard))

    assert [(g.side, g.item_index) for g in groups] == [
        ("cause", 0), ("cause", 1), ("consequence", 0), ("consequence", 1),
    ]
    assert groups[0].kinds == CAUSE_KINDS
    assert groups[3].kinds == CONSEQUENCE_KINDS
    assert groups[3].row_span == 3
