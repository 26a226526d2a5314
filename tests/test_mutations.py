"""Tests for studyflow/mutations.py: pure section updates and counters."""

import random

from studyflow.checklist_parser import parse_markdown_checklist
from studyflow.mutations import (
    count_items,
    find_item,
    first_uncompleted,
    recalculate_totals,
    toggle_all_in_section,
    update_item_completion,
)


MD = """# Plan
## One
- [ ] A
    - [ ] A1
    - [x] A2
- [ ] B
## Two
- [ ] C
"""


def _sections():
    return parse_markdown_checklist(MD).sections


def _completed_flags(items):
    n = 0
    for item in items:
        n += 1 if item.completed else 0
        n += _completed_flags(item.children)
    return n


def test_update_nested_item_adjusts_counter():
    sections = _sections()
    one = sections[0]
    a1 = one.items[0].children[0]

    result = update_item_completion(sections, one.id, a1.id, True)

    assert result[0].items[0].children[0].completed is True
    assert result[0].completed_count == 2
    # Inputs untouched
    assert a1.completed is False
    assert one.completed_count == 1


def test_update_shares_untouched_objects():
    sections = _sections()
    one = sections[0]
    b = one.items[1]

    result = update_item_completion(sections, one.id, b.id, True)

    assert result[1] is sections[1]
    assert result[0] is not sections[0]
    # Sibling subtree that was not on the path is shared
    assert result[0].items[0] is one.items[0]


def test_update_is_idempotent():
    sections = _sections()
    one = sections[0]
    b = one.items[1]

    once = update_item_completion(sections, one.id, b.id, True)
    twice = update_item_completion(once, one.id, b.id, True)

    assert once[0].completed_count == 2
    assert twice[0].completed_count == 2


def test_update_unknown_ids_are_noops():
    sections = _sections()
    result = update_item_completion(sections, "missing", "nope", True)
    assert all(r is s for r, s in zip(result, sections))

    result = update_item_completion(sections, sections[0].id, "nope", True)
    assert result[0] is sections[0]


def test_completing_parent_does_not_cascade():
    sections = _sections()
    one = sections[0]
    a = one.items[0]

    result = update_item_completion(sections, one.id, a.id, True)

    parent = result[0].items[0]
    assert parent.completed is True
    assert [c.completed for c in parent.children] == [False, True]
    assert result[0].completed_count == 2


def test_toggle_all_in_section():
    sections = _sections()
    one = sections[0]

    done = toggle_all_in_section(sections, one.id, True)
    assert done[0].completed_count == done[0].total_count == 4
    assert _completed_flags(done[0].items) == 4
    assert done[1] is sections[1]

    cleared = toggle_all_in_section(done, one.id, False)
    assert cleared[0].completed_count == 0
    assert _completed_flags(cleared[0].items) == 0


def test_recalculate_totals():
    sections = _sections()
    assert recalculate_totals(sections) == (1, 5)


def test_recalculate_totals_with_corrupt_counters():
    sections = _sections()
    sections[0].completed_count = float("nan")
    sections[0].total_count = "lots"
    sections[1].total_count = float("inf")
    # Falls back to 0 completed and the number of top-level items
    assert recalculate_totals(sections) == (0, 2 + 1)


def test_counters_track_flags_over_random_toggles():
    sections = _sections()
    ids = []

    def walk(section, items):
        for item in items:
            ids.append((section.id, item.id))
            walk(section, item.children)

    for section in sections:
        walk(section, section.items)

    rng = random.Random(7)
    for _ in range(200):
        section_id, item_id = rng.choice(ids)
        if rng.random() < 0.1:
            sections = toggle_all_in_section(sections, section_id, rng.random() < 0.5)
        else:
            sections = update_item_completion(sections, section_id, item_id, rng.random() < 0.5)
        for section in sections:
            assert section.completed_count == _completed_flags(section.items)
            assert 0 <= section.completed_count <= section.total_count


def test_count_items():
    sections = _sections()
    assert count_items(sections[0].items) == (4, 1)
    assert count_items([]) == (0, 0)


def test_find_item_at_depth():
    sections = _sections()
    a2 = sections[0].items[0].children[1]
    section, item = find_item(sections, a2.id)
    assert section is sections[0]
    assert item is a2
    assert find_item(sections, "missing") is None


def test_first_uncompleted_searches_under_completed_parent():
    sections = _sections()
    one = sections[0]
    a = one.items[0]
    assert first_uncompleted(one.items) is a

    done_a = update_item_completion(sections, one.id, a.id, True)
    assert first_uncompleted(done_a[0].items).text == "A1"

    all_done = toggle_all_in_section(sections, one.id, True)
    assert first_uncompleted(all_done[0].items) is None
