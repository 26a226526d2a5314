"""Pure checklist mutations.

Every function takes a list of TodoSection and returns a new list; inputs are
never modified. Objects on the path of a change are rebuilt with
dataclasses.replace, everything else is shared, so callers can detect
changes by identity. Unknown section or item ids are silent no-ops.
"""

from __future__ import annotations

import math
from dataclasses import replace

from studyflow.models import TodoItem, TodoSection


def _set_completed(
    items: list[TodoItem], item_id: str, completed: bool
) -> tuple[list[TodoItem], int] | None:
    """Rebuild the path to *item_id*. Returns (new_items, completed_delta) or None."""
    for i, item in enumerate(items):
        if item.id == item_id:
            if item.completed == completed:
                delta = 0
            else:
                delta = 1 if completed else -1
            updated = replace(item, completed=completed)
            return items[:i] + [updated] + items[i + 1:], delta
        found = _set_completed(item.children, item_id, completed)
        if found is not None:
            children, delta = found
            return items[:i] + [replace(item, children=children)] + items[i + 1:], delta
    return None


def update_item_completion(
    sections: list[TodoSection],
    section_id: str,
    item_id: str,
    completed: bool,
) -> list[TodoSection]:
    """Set one item's completed flag, at any depth, and adjust the section counter.

    Children are not cascaded. Setting the value an item already has leaves
    completed_count unchanged.
    """
    result = []
    for section in sections:
        if section.id != section_id:
            result.append(section)
            continue
        found = _set_completed(section.items, item_id, completed)
        if found is None:
            result.append(section)
            continue
        items, delta = found
        result.append(replace(section, items=items, completed_count=section.completed_count + delta))
    return result


def _set_all(items: list[TodoItem], completed: bool) -> list[TodoItem]:
    return [
        replace(item, completed=completed, children=_set_all(item.children, completed))
        for item in items
    ]


def toggle_all_in_section(
    sections: list[TodoSection],
    section_id: str,
    completed: bool,
) -> list[TodoSection]:
    """Set every item and descendant in a section to *completed*."""
    return [
        replace(
            section,
            items=_set_all(section.items, completed),
            completed_count=section.total_count if completed else 0,
        )
        if section.id == section_id
        else section
        for section in sections
    ]


def is_valid_count(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def recalculate_totals(sections: list[TodoSection]) -> tuple[int, int]:
    """Sum section counters into (total_completed, total_items).

    Counters that are not finite numbers (corrupted state) count as 0, or as
    the number of top-level items for the total.
    """
    total_completed = 0
    total_items = 0
    for section in sections:
        completed = section.completed_count if is_valid_count(section.completed_count) else 0
        total = section.total_count if is_valid_count(section.total_count) else len(section.items or [])
        total_completed += int(completed)
        total_items += int(total)
    return total_completed, total_items


def count_items(items: list[TodoItem]) -> tuple[int, int]:
    """Walk a tree and return (total, completed), nested children included."""
    total = 0
    completed = 0
    for item in items:
        t, c = item.counts()
        total += t
        completed += c
    return total, completed


def find_item(sections: list[TodoSection], item_id: str) -> tuple[TodoSection, TodoItem] | None:
    """Locate an item anywhere in the tree. Returns (section, item) or None."""

    def _walk(items: list[TodoItem]) -> TodoItem | None:
        for item in items:
            if item.id == item_id:
                return item
            hit = _walk(item.children)
            if hit is not None:
                return hit
        return None

    for section in sections:
        hit = _walk(section.items)
        if hit is not None:
            return section, hit
    return None


def first_uncompleted(items: list[TodoItem]) -> TodoItem | None:
    """Depth-first pre-order search for the first open item.

    Children of a completed item are still searched: completion does not
    cascade.
    """
    for item in items:
        if not item.completed:
            return item
        hit = first_uncompleted(item.children)
        if hit is not None:
            return hit
    return None
